"""Risk snapshots — append-only audit log of every scoring computation.

A fresh row is inserted on each scoring call; rows are never updated or
deleted by the engine.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, DateTime, JSON, ForeignKey, Enum as SAEnum, Index
from sqlalchemy.orm import Mapped, mapped_column
from frostline.models.base import Base, RiskLevelEnum


class VehicleRiskSnapshot(Base):
    __tablename__ = "vehicle_risk_snapshots"
    __table_args__ = (
        Index("ix_vehicle_snapshot_calc", "vehicle_id", "calculated_at"),
    )

    snapshot_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    vehicle_id: Mapped[str] = mapped_column(String(64), ForeignKey("vehicles.vehicle_id"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[str] = mapped_column(SAEnum(RiskLevelEnum), nullable=False)
    reasons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # {factor_name: points}; sums to score before the 100 cap
    breakdown_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    calculated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class TripRiskSnapshot(Base):
    __tablename__ = "trip_risk_snapshots"
    __table_args__ = (
        Index("ix_trip_snapshot_calc", "trip_id", "calculated_at"),
    )

    snapshot_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    trip_id: Mapped[str] = mapped_column(String(64), ForeignKey("trips.trip_id"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[str] = mapped_column(SAEnum(RiskLevelEnum), nullable=False)
    reasons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    breakdown_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    predicted_completion: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expected_delay_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    calculated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
