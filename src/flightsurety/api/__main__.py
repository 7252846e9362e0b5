# src/flightsurety/api/__main__.py
from __future__ import annotations

import uvicorn

from flightsurety.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so FLIGHTSURETY_* vars exist before anything reads them.
    load_dotenv_if_present()

    from flightsurety.api.app import create_app
    from flightsurety.api.structured_logging import configure_structured_logging
    from flightsurety.runtime.config import load_oracle_config

    cfg = load_oracle_config()
    configure_structured_logging(cfg.log_level)

    uvicorn.run(create_app(), host=cfg.api_host, port=cfg.api_port, log_level="info")


if __name__ == "__main__":
    main()
