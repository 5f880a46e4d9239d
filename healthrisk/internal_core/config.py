from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _getenv_opt_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _env_set(name: str) -> bool:
    value = os.getenv(name)
    return value is not None and value != ""


def _getenv_float_preset(name: str, default: float, preset_value: Optional[float]) -> float:
    if _env_set(name):
        return _getenv_float(name, default)
    if preset_value is not None:
        return float(preset_value)
    return default


def _preset_overrides(name: str) -> dict[str, object]:
    # Shortened dwell/relaxation timings for demos and UI walkthroughs.
    if name == "demo_fast_v1":
        return {
            "HEALTHRISK_STAGE_DWELL_SECONDS": 1.0,
            "HEALTHRISK_RELAXATION_SECONDS": 3.0,
        }
    return {}


@dataclass(frozen=True)
class RiskConfig:
    HEALTHRISK_READINESS_THRESHOLD: float
    HEALTHRISK_RELAXATION_BONUS: float
    HEALTHRISK_SUPPORT_BONUS: float
    HEALTHRISK_RELAXATION_SECONDS: float
    HEALTHRISK_STAGE_DWELL_SECONDS: float
    HEALTHRISK_DEFAULT_STYLE: str
    HEALTHRISK_SESSION_TTL_SECONDS: int
    HEALTHRISK_PERSISTENCE_ENABLED: bool
    HEALTHRISK_DEFAULT_USER_ID: Optional[str]
    HEALTHRISK_LOG_LEVEL: str
    HEALTHRISK_TIMING_PRESET: str


def load_config() -> RiskConfig:
    timing_preset = _getenv_str("HEALTHRISK_TIMING_PRESET", "")
    preset = _preset_overrides(timing_preset)

    default_style = _getenv_str("HEALTHRISK_DEFAULT_STYLE", "gentle").strip().lower()
    if default_style not in {"direct", "gentle", "staged"}:
        default_style = "gentle"

    return RiskConfig(
        HEALTHRISK_READINESS_THRESHOLD=_getenv_float("HEALTHRISK_READINESS_THRESHOLD", 60.0),
        HEALTHRISK_RELAXATION_BONUS=_getenv_float("HEALTHRISK_RELAXATION_BONUS", 15.0),
        HEALTHRISK_SUPPORT_BONUS=_getenv_float("HEALTHRISK_SUPPORT_BONUS", 10.0),
        HEALTHRISK_RELAXATION_SECONDS=_getenv_float_preset(
            "HEALTHRISK_RELAXATION_SECONDS", 60.0, preset.get("HEALTHRISK_RELAXATION_SECONDS")
        ),
        HEALTHRISK_STAGE_DWELL_SECONDS=_getenv_float_preset(
            "HEALTHRISK_STAGE_DWELL_SECONDS", 8.0, preset.get("HEALTHRISK_STAGE_DWELL_SECONDS")
        ),
        HEALTHRISK_DEFAULT_STYLE=default_style,
        HEALTHRISK_SESSION_TTL_SECONDS=_getenv_int("HEALTHRISK_SESSION_TTL_SECONDS", 3600),
        HEALTHRISK_PERSISTENCE_ENABLED=_getenv_bool("HEALTHRISK_PERSISTENCE_ENABLED", True),
        HEALTHRISK_DEFAULT_USER_ID=_getenv_opt_str("HEALTHRISK_DEFAULT_USER_ID"),
        HEALTHRISK_LOG_LEVEL=_getenv_str("HEALTHRISK_LOG_LEVEL", "INFO"),
        HEALTHRISK_TIMING_PRESET=timing_preset,
    )
