"""Trip entity — one cold-chain delivery run of a vehicle."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Float, Boolean, DateTime, Text, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from frostline.models.base import Base, TripStatusEnum
from frostline.utils.clock import utcnow


class Trip(Base):
    __tablename__ = "trips"

    trip_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    trip_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    vehicle_id: Mapped[str] = mapped_column(String(64), ForeignKey("vehicles.vehicle_id"), nullable=False, index=True)
    origin: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    destination: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cargo_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        SAEnum(TripStatusEnum), nullable=False, default=TripStatusEnum.PLANNED, index=True
    )
    planned_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    planned_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    actual_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    actual_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    # Aggregates maintained by the trip lifecycle process, read-only here
    min_temp_recorded: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_temp_recorded: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    avg_temp_recorded: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    violation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_compliant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    vehicle: Mapped["Vehicle"] = relationship("Vehicle", back_populates="trips")
    readings: Mapped[list] = relationship("TripReading", back_populates="trip", cascade="all, delete-orphan")
    trip_alerts: Mapped[list] = relationship("TripAlert", back_populates="trip", cascade="all, delete-orphan")
