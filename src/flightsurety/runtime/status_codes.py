from __future__ import annotations

from typing import Final, Tuple

STATUS_CODE_UNKNOWN: Final[int] = 0
STATUS_CODE_ON_TIME: Final[int] = 10
STATUS_CODE_LATE_AIRLINE: Final[int] = 20
STATUS_CODE_LATE_WEATHER: Final[int] = 30
STATUS_CODE_LATE_TECHNICAL: Final[int] = 40
STATUS_CODE_LATE_OTHER: Final[int] = 50

STATUS_CODES: Final[Tuple[int, ...]] = (
    STATUS_CODE_UNKNOWN,
    STATUS_CODE_ON_TIME,
    STATUS_CODE_LATE_AIRLINE,
    STATUS_CODE_LATE_WEATHER,
    STATUS_CODE_LATE_TECHNICAL,
    STATUS_CODE_LATE_OTHER,
)

# Simulated oracles draw uniformly from this table, so "late (airline)" wins most often.
WEIGHTED_STATUS_TABLE: Final[Tuple[int, ...]] = (0, 10, 20, 30, 40, 50, 20, 20, 20, 20)

_NAMES = {
    STATUS_CODE_UNKNOWN: "unknown",
    STATUS_CODE_ON_TIME: "on_time",
    STATUS_CODE_LATE_AIRLINE: "late_airline",
    STATUS_CODE_LATE_WEATHER: "late_weather",
    STATUS_CODE_LATE_TECHNICAL: "late_technical",
    STATUS_CODE_LATE_OTHER: "late_other",
}


def status_name(code: int) -> str:
    return _NAMES.get(int(code), f"status_{int(code)}")
