"""Alert entity — vehicle-level temperature/sensor alert."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, Float, Boolean, DateTime, Text, ForeignKey, Enum as SAEnum, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from frostline.models.base import Base, AlertSeverityEnum
from frostline.utils.clock import utcnow


class Alert(Base):
    __tablename__ = "alerts"
    __table_args__ = (
        Index("ix_alert_vehicle_created", "vehicle_id", "created_at"),
    )

    alert_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vehicle_id: Mapped[str] = mapped_column(String(64), ForeignKey("vehicles.vehicle_id"), nullable=False, index=True)
    alert_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # high_temp, low_temp, sensor_offline
    severity: Mapped[str] = mapped_column(SAEnum(AlertSeverityEnum), nullable=False, index=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Flipped by the resolution workflow; the risk engine never writes it
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    vehicle: Mapped["Vehicle"] = relationship("Vehicle", back_populates="alerts")
