"""Pydantic schemas for risk engine results and snapshot history."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from frostline.models.base import RiskLevelEnum


class VehicleRiskScore(BaseModel):
    score: int = Field(ge=0, le=100)
    level: RiskLevelEnum
    reasons: list[str]


class TripRiskForecast(BaseModel):
    score: int = Field(ge=0, le=100)
    level: RiskLevelEnum
    reasons: list[str]
    predicted_completion: datetime
    expected_delay_minutes: int = Field(ge=0)


class RiskSnapshotRead(BaseModel):
    """One persisted scoring result, vehicle or trip."""
    snapshot_id: str
    subject_id: str
    score: int
    level: RiskLevelEnum
    reasons: list[str]
    breakdown: Optional[dict[str, int]] = None
    predicted_completion: Optional[datetime] = None
    expected_delay_minutes: Optional[int] = None
    calculated_at: datetime
