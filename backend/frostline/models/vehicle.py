"""Vehicle entity — refrigerated unit with its acceptable temperature band."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Float, DateTime, Enum as SAEnum, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from frostline.models.base import Base, VehicleStatusEnum
from frostline.utils.clock import utcnow


class Vehicle(Base):
    __tablename__ = "vehicles"
    __table_args__ = (
        CheckConstraint("min_temp <= max_temp", name="ck_vehicle_temp_band"),
    )

    vehicle_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    vehicle_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    current_temp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    min_temp: Mapped[float] = mapped_column(Float, nullable=False)
    max_temp: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(
        SAEnum(VehicleStatusEnum), nullable=False, default=VehicleStatusEnum.ACTIVE, index=True
    )
    # Time of the most recent telemetry push; drives the staleness factor
    last_update: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    sensor_readings: Mapped[list] = relationship("SensorReading", back_populates="vehicle", cascade="all, delete-orphan")
    alerts: Mapped[list] = relationship("Alert", back_populates="vehicle", cascade="all, delete-orphan")
    trips: Mapped[list] = relationship("Trip", back_populates="vehicle")
