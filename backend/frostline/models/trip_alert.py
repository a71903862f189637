"""TripAlert entity — trip-scoped violation record, distinct from vehicle Alert."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, Float, Boolean, DateTime, Text, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from frostline.models.base import Base, AlertSeverityEnum
from frostline.utils.clock import utcnow


class TripAlert(Base):
    __tablename__ = "trip_alerts"

    trip_alert_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trip_id: Mapped[str] = mapped_column(String(64), ForeignKey("trips.trip_id"), nullable=False, index=True)
    vehicle_id: Mapped[str] = mapped_column(String(64), ForeignKey("vehicles.vehicle_id"), nullable=False)
    alert_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    severity: Mapped[str] = mapped_column(SAEnum(AlertSeverityEnum), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    trip: Mapped["Trip"] = relationship("Trip", back_populates="trip_alerts")
