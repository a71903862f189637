"""Data access for the risk engine.

``RiskDataSource`` is the read/append interface the scorers depend on.
``SqlAlchemyRiskDataSource`` implements it against the async ORM:

  - every query runs in its own short-lived AsyncSession, so a scorer can
    fan its factor queries out concurrently
  - subject lookups and snapshot history are dispatched through tables keyed
    by ``EntityKind`` rather than by attribute name
  - snapshots are inserted in their own transaction and never updated
  - any ``SQLAlchemyError`` is logged and re-raised as ``DataUnavailableError``
"""
from __future__ import annotations

import logging
import statistics
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, NamedTuple, Optional, Protocol, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from frostline.exceptions import DataUnavailableError
from frostline.models.alert import Alert
from frostline.models.base import AlertSeverityEnum, EntityKind
from frostline.models.risk_snapshot import TripRiskSnapshot, VehicleRiskSnapshot
from frostline.models.sensor_reading import SensorReading
from frostline.models.trip import Trip
from frostline.models.trip_alert import TripAlert
from frostline.models.trip_reading import TripReading
from frostline.models.vehicle import Vehicle

logger = logging.getLogger(__name__)

RiskSnapshot = Union[VehicleRiskSnapshot, TripRiskSnapshot]


class SensorSample(NamedTuple):
    temperature: float
    humidity: Optional[float]
    latitude: float
    longitude: float
    timestamp: datetime


class TripSample(NamedTuple):
    temperature: float
    timestamp: datetime


class SensorStats(NamedTuple):
    """Temperature aggregate over a window. All fields but ``count`` are None when empty."""
    avg: Optional[float]
    min: Optional[float]
    max: Optional[float]
    std_dev: Optional[float]
    count: int


def summarize_temperatures(values: Iterable[float]) -> SensorStats:
    """Reduce temperatures to avg/min/max and population standard deviation."""
    temps = [float(v) for v in values]
    if not temps:
        return SensorStats(avg=None, min=None, max=None, std_dev=None, count=0)
    return SensorStats(
        avg=statistics.fmean(temps),
        min=min(temps),
        max=max(temps),
        std_dev=statistics.pstdev(temps),
        count=len(temps),
    )


class RiskDataSource(Protocol):
    """Everything the scorers read, plus the snapshot append."""

    async def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]: ...

    async def get_trip(self, trip_id: str) -> Optional[Trip]: ...

    async def list_vehicle_ids(self, status: Optional[str] = None) -> list[str]: ...

    async def list_trip_ids(self, status: Optional[str] = None) -> list[str]: ...

    async def list_sensor_readings(
        self, vehicle_id: str, since: datetime, limit: int,
    ) -> list[SensorSample]: ...

    async def aggregate_sensor_stats(self, vehicle_id: str, since: datetime) -> SensorStats: ...

    async def count_alerts_by_severity(self, vehicle_id: str, since: datetime) -> dict[str, int]: ...

    async def list_trip_readings(self, trip_id: str, limit: int) -> list[TripSample]: ...

    async def count_trip_alerts(self, trip_id: str, resolved: Optional[bool] = None) -> int: ...

    async def append_risk_snapshot(self, snapshot: RiskSnapshot) -> None: ...

    async def list_risk_snapshots(
        self, kind: EntityKind, subject_id: str, limit: int,
    ) -> list[RiskSnapshot]: ...


# Subject and snapshot tables per entity kind
_SUBJECT_MODELS: dict[EntityKind, type] = {
    EntityKind.VEHICLE: Vehicle,
    EntityKind.TRIP: Trip,
}
_SNAPSHOT_MODELS: dict[EntityKind, tuple[type, object]] = {
    EntityKind.VEHICLE: (VehicleRiskSnapshot, VehicleRiskSnapshot.vehicle_id),
    EntityKind.TRIP: (TripRiskSnapshot, TripRiskSnapshot.trip_id),
}


class SqlAlchemyRiskDataSource:
    """``RiskDataSource`` backed by an ``async_sessionmaker``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Data access failed during %s: %s", operation, exc)
            raise DataUnavailableError(operation, str(exc)) from exc

    async def _get(self, kind: EntityKind, entity_id: str):
        async with self._session(f"get_{kind.value}") as session:
            return await session.get(_SUBJECT_MODELS[kind], entity_id)

    async def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return await self._get(EntityKind.VEHICLE, vehicle_id)

    async def get_trip(self, trip_id: str) -> Optional[Trip]:
        return await self._get(EntityKind.TRIP, trip_id)

    async def list_vehicle_ids(self, status: Optional[str] = None) -> list[str]:
        stmt = select(Vehicle.vehicle_id).order_by(Vehicle.vehicle_id)
        if status is not None:
            stmt = stmt.where(Vehicle.status == status)
        async with self._session("list_vehicle_ids") as session:
            return list((await session.scalars(stmt)).all())

    async def list_trip_ids(self, status: Optional[str] = None) -> list[str]:
        stmt = select(Trip.trip_id).order_by(Trip.trip_id)
        if status is not None:
            stmt = stmt.where(Trip.status == status)
        async with self._session("list_trip_ids") as session:
            return list((await session.scalars(stmt)).all())

    async def list_sensor_readings(
        self, vehicle_id: str, since: datetime, limit: int,
    ) -> list[SensorSample]:
        stmt = (
            select(
                SensorReading.temperature,
                SensorReading.humidity,
                SensorReading.latitude,
                SensorReading.longitude,
                SensorReading.timestamp,
            )
            .where(
                SensorReading.vehicle_id == vehicle_id,
                SensorReading.timestamp >= since,
            )
            .order_by(SensorReading.timestamp)
            .limit(limit)
        )
        async with self._session("list_sensor_readings") as session:
            rows = (await session.execute(stmt)).all()
        return [SensorSample(*row) for row in rows]

    async def aggregate_sensor_stats(self, vehicle_id: str, since: datetime) -> SensorStats:
        # Reduced client-side: SQLite has no population stddev aggregate
        stmt = select(SensorReading.temperature).where(
            SensorReading.vehicle_id == vehicle_id,
            SensorReading.timestamp >= since,
        )
        async with self._session("aggregate_sensor_stats") as session:
            temps = (await session.scalars(stmt)).all()
        return summarize_temperatures(temps)

    async def count_alerts_by_severity(self, vehicle_id: str, since: datetime) -> dict[str, int]:
        stmt = (
            select(Alert.severity, func.count())
            .where(Alert.vehicle_id == vehicle_id, Alert.created_at >= since)
            .group_by(Alert.severity)
        )
        async with self._session("count_alerts_by_severity") as session:
            rows = (await session.execute(stmt)).all()
        return {AlertSeverityEnum(severity).value: count for severity, count in rows}

    async def list_trip_readings(self, trip_id: str, limit: int) -> list[TripSample]:
        stmt = (
            select(TripReading.temperature, TripReading.timestamp)
            .where(TripReading.trip_id == trip_id)
            .order_by(TripReading.timestamp)
            .limit(limit)
        )
        async with self._session("list_trip_readings") as session:
            rows = (await session.execute(stmt)).all()
        return [TripSample(*row) for row in rows]

    async def count_trip_alerts(self, trip_id: str, resolved: Optional[bool] = None) -> int:
        stmt = select(func.count()).select_from(TripAlert).where(TripAlert.trip_id == trip_id)
        if resolved is not None:
            stmt = stmt.where(TripAlert.is_resolved == resolved)
        async with self._session("count_trip_alerts") as session:
            return int(await session.scalar(stmt) or 0)

    async def append_risk_snapshot(self, snapshot: RiskSnapshot) -> None:
        async with self._session("append_risk_snapshot") as session:
            async with session.begin():
                session.add(snapshot)

    async def list_risk_snapshots(
        self, kind: EntityKind, subject_id: str, limit: int,
    ) -> list[RiskSnapshot]:
        model, subject_col = _SNAPSHOT_MODELS[kind]
        stmt = (
            select(model)
            .where(subject_col == subject_id)
            .order_by(model.calculated_at.desc())
            .limit(limit)
        )
        async with self._session("list_risk_snapshots") as session:
            return list((await session.scalars(stmt)).all())
