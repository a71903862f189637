"""SensorReading entity — one telemetry push from a vehicle. Append-only."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, String, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from frostline.models.base import Base


class SensorReading(Base):
    __tablename__ = "sensor_readings"
    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_reading_lat_bounds"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_reading_lon_bounds"),
        Index("ix_sensor_vehicle_ts", "vehicle_id", "timestamp"),
    )

    reading_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vehicle_id: Mapped[str] = mapped_column(String(64), ForeignKey("vehicles.vehicle_id"), nullable=False, index=True)
    temperature: Mapped[float] = mapped_column(Float, nullable=False)
    humidity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    vehicle: Mapped["Vehicle"] = relationship("Vehicle", back_populates="sensor_readings")
