"""Shared scoring policy: config loading, level bands and score composition.

final_score = min(round(sum(factor points)), 100)
Levels: LOW < 34 ≤ MEDIUM < 67 ≤ HIGH (bands configurable under ``score_bands``).
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Mapping, NamedTuple, Optional

import yaml

from frostline.config import settings
from frostline.models.base import RiskLevelEnum, TripStatusEnum
from frostline.modules.risk_factors import FactorResult, round_half_up

logger = logging.getLogger(__name__)

MAX_SCORE = 100

_SCORING_CONFIG: dict[str, Any] | None = None

_EXPECTED_SECTIONS = [
    "temperature_variance", "alert_density", "data_staleness", "movement_anomaly",
    "temperature_deviation", "violation_count", "trip_delay", "temperature_spike",
    "score_bands", "default_range",
]


def load_scoring_config() -> dict[str, Any]:
    global _SCORING_CONFIG
    if _SCORING_CONFIG is None:
        config_path = Path(settings.RISK_SCORING_CONFIG)
        if not config_path.exists():
            logger.warning("risk_scoring.yaml not found at %s — using built-in defaults", config_path)
            _SCORING_CONFIG = {}
        else:
            with open(config_path) as f:
                _SCORING_CONFIG = yaml.safe_load(f) or {}
            missing = [s for s in _EXPECTED_SECTIONS if s not in _SCORING_CONFIG]
            if missing:
                logger.warning("risk_scoring.yaml missing sections: %s", ", ".join(missing))
        for section_name in _EXPECTED_SECTIONS:
            section = _SCORING_CONFIG.get(section_name, {})
            if isinstance(section, dict):
                for key, val in section.items():
                    if section_name == "default_range":
                        continue
                    if isinstance(val, (int, float)) and val < 0:
                        logger.warning("risk_scoring.yaml %s.%s=%s is negative", section_name, key, val)
    return _SCORING_CONFIG


def reload_scoring_config() -> dict[str, Any]:
    """Force-reload scoring config from disk (e.g. after YAML edits)."""
    global _SCORING_CONFIG
    _SCORING_CONFIG = None
    return load_scoring_config()


def score_to_level(score: float, config: Optional[Mapping[str, Any]] = None) -> RiskLevelEnum:
    bands = (config or {}).get("score_bands", {})
    if score >= bands.get("high", 67):
        return RiskLevelEnum.HIGH
    if score >= bands.get("medium", 34):
        return RiskLevelEnum.MEDIUM
    return RiskLevelEnum.LOW


class CombinedScore(NamedTuple):
    score: int
    level: RiskLevelEnum
    reasons: list[str]
    breakdown: dict[str, int]


def combine_factors(
    factors: Mapping[str, FactorResult],
    default_reason: str,
    config: Optional[Mapping[str, Any]] = None,
) -> CombinedScore:
    """Sum factor points, clamp to [0, 100], classify and collect reasons in factor order."""
    breakdown = {name: int(result.points) for name, result in factors.items()}
    total = round_half_up(sum(result.points for result in factors.values()))
    score = max(0, min(total, MAX_SCORE))
    reasons = [result.reason for result in factors.values() if result.reason]
    if not reasons:
        reasons = [default_reason]
    return CombinedScore(score, score_to_level(score, config), reasons, breakdown)


def projected_completion(
    status: str,
    planned_end: datetime,
    actual_end: Optional[datetime],
    delay_minutes: int,
) -> datetime:
    """Expected arrival: planned end pushed by the live delay, or the recorded end."""
    if status == TripStatusEnum.ACTIVE:
        return planned_end + timedelta(minutes=delay_minutes)
    if actual_end is not None:
        return actual_end
    return planned_end
