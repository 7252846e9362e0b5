# src/flightsurety/runtime/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

Json = Dict[str, Any]

WEI_PER_ETHER = 10**18


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_opt_int(v: Any, default: Optional[int]) -> Optional[int]:
    if v is None or (isinstance(v, str) and not v.strip()):
        return default
    try:
        return int(v)
    except Exception:
        return default


@dataclass(frozen=True)
class OracleConfig:
    mode: str  # "dev" | "testnet" | "prod"

    # Oracle participation
    registration_fee: int
    min_responses: int
    max_index: int

    # Airline participation
    airline_fund: int
    multiparty_threshold: int
    owner_airline: str

    # Oracle agent process
    oracle_count: int
    seed: Optional[int]

    # Empty path keeps the event log in memory.
    event_log_path: str

    api_host: str
    api_port: int

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_oracle_config(cfg: OracleConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.registration_fee) < 0:
        raise ValueError(f"registration_fee must be >= 0; got: {cfg.registration_fee}")

    if int(cfg.min_responses) < 1:
        raise ValueError(f"min_responses must be >= 1; got: {cfg.min_responses}")

    if int(cfg.max_index) < 1 or int(cfg.max_index) > 256:
        raise ValueError(f"max_index must be 1..256; got: {cfg.max_index}")

    if int(cfg.airline_fund) < 0:
        raise ValueError(f"airline_fund must be >= 0; got: {cfg.airline_fund}")

    if int(cfg.multiparty_threshold) < 1:
        raise ValueError(f"multiparty_threshold must be >= 1; got: {cfg.multiparty_threshold}")

    if not isinstance(cfg.owner_airline, str) or not cfg.owner_airline.strip():
        raise ValueError("owner_airline must be a non-empty string")

    if int(cfg.oracle_count) < 0:
        raise ValueError(f"oracle_count must be >= 0; got: {cfg.oracle_count}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")


def default_oracle_config() -> OracleConfig:
    return OracleConfig(
        mode="prod",
        registration_fee=1 * WEI_PER_ETHER,
        min_responses=3,
        max_index=10,
        airline_fund=10 * WEI_PER_ETHER,
        multiparty_threshold=4,
        owner_airline="airline-0",
        oracle_count=20,
        seed=None,
        event_log_path="",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _config_from_mapping(raw: Json, d: OracleConfig) -> OracleConfig:
    return OracleConfig(
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        registration_fee=_as_int(raw.get("registration_fee"), d.registration_fee),
        min_responses=_as_int(raw.get("min_responses"), d.min_responses),
        max_index=_as_int(raw.get("max_index"), d.max_index),
        airline_fund=_as_int(raw.get("airline_fund"), d.airline_fund),
        multiparty_threshold=_as_int(raw.get("multiparty_threshold"), d.multiparty_threshold),
        owner_airline=_as_str(raw.get("owner_airline"), d.owner_airline),
        oracle_count=_as_int(raw.get("oracle_count"), d.oracle_count),
        seed=_as_opt_int(raw.get("seed"), d.seed),
        event_log_path=_as_str(raw.get("event_log_path"), d.event_log_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
    )


def read_oracle_config_file(path: str) -> OracleConfig:
    """Read a JSON or YAML config file on top of the defaults."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML in {p}: {e}") from e
    else:
        raw = json.loads(text)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("oracle config must be a mapping")

    cfg = _config_from_mapping(raw, default_oracle_config())
    validate_oracle_config(cfg)
    return cfg


_ENV_KEYS = {
    "mode": "FLIGHTSURETY_MODE",
    "registration_fee": "FLIGHTSURETY_REGISTRATION_FEE",
    "min_responses": "FLIGHTSURETY_MIN_RESPONSES",
    "max_index": "FLIGHTSURETY_MAX_INDEX",
    "airline_fund": "FLIGHTSURETY_AIRLINE_FUND",
    "multiparty_threshold": "FLIGHTSURETY_MULTIPARTY_THRESHOLD",
    "owner_airline": "FLIGHTSURETY_OWNER_AIRLINE",
    "oracle_count": "FLIGHTSURETY_ORACLE_COUNT",
    "seed": "FLIGHTSURETY_SEED",
    "event_log_path": "FLIGHTSURETY_EVENT_LOG_PATH",
    "api_host": "FLIGHTSURETY_API_HOST",
    "api_port": "FLIGHTSURETY_API_PORT",
    "log_level": "FLIGHTSURETY_LOG_LEVEL",
}


def apply_env_overrides(cfg: OracleConfig) -> OracleConfig:
    raw: Json = {}
    for field, env_name in _ENV_KEYS.items():
        v = os.environ.get(env_name)
        if v is not None and v.strip():
            raw[field] = v.strip()
    if not raw:
        return cfg
    out = _config_from_mapping(raw, cfg)
    validate_oracle_config(out)
    return out


def load_oracle_config(*, config_path: Optional[str] = None) -> OracleConfig:
    p = config_path or os.environ.get("FLIGHTSURETY_CONFIG_PATH")
    cfg = read_oracle_config_file(p) if p else default_oracle_config()
    cfg = apply_env_overrides(cfg)
    validate_oracle_config(cfg)
    return cfg


def with_overrides(cfg: OracleConfig, **changes: Any) -> OracleConfig:
    out = replace(cfg, **changes)
    validate_oracle_config(out)
    return out
