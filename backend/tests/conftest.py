"""Shared fixtures: in-memory RiskDataSource and a throwaway SQLite database."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from frostline.exceptions import DataUnavailableError
from frostline.models import Base
from frostline.models.base import (
    AlertSeverityEnum,
    EntityKind,
    TripStatusEnum,
    VehicleStatusEnum,
)
from frostline.models.risk_snapshot import TripRiskSnapshot, VehicleRiskSnapshot
from frostline.models.trip import Trip
from frostline.models.vehicle import Vehicle
from frostline.repository import SensorSample, TripSample, summarize_temperatures

NOW = datetime(2026, 3, 1, 12, 0, 0)


class FakeRiskDataSource:
    """Dict-backed RiskDataSource. Records every appended snapshot.

    ``fail_on`` holds method names that raise DataUnavailableError when called.
    """

    def __init__(self):
        self.vehicles: dict[str, Vehicle] = {}
        self.trips: dict[str, Trip] = {}
        self.sensor_readings: dict[str, list[SensorSample]] = {}
        self.alerts: list[tuple[str, str, datetime]] = []
        self.trip_readings: dict[str, list[TripSample]] = {}
        self.trip_alerts: list[tuple[str, bool]] = []
        self.snapshots: list = []
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise DataUnavailableError(operation, f"injected failure in {operation}")

    # ── seeding helpers ──────────────────────────────────────────────────

    def add_vehicle(self, vehicle_id: str = "V-1", **kwargs) -> Vehicle:
        fields = dict(
            name="Reefer 1",
            min_temp=-25.0,
            max_temp=-15.0,
            current_temp=-20.0,
            status=VehicleStatusEnum.ACTIVE,
            last_update=NOW,
        )
        fields.update(kwargs)
        vehicle = Vehicle(vehicle_id=vehicle_id, **fields)
        self.vehicles[vehicle_id] = vehicle
        return vehicle

    def add_trip(self, trip_id: str = "T-1", **kwargs) -> Trip:
        fields = dict(
            vehicle_id="V-1",
            status=TripStatusEnum.ACTIVE,
            planned_start=datetime(2026, 3, 1, 6, 0),
            planned_end=NOW,
            actual_start=datetime(2026, 3, 1, 6, 0),
            actual_end=None,
            avg_temp_recorded=-20.0,
        )
        fields.update(kwargs)
        trip = Trip(trip_id=trip_id, **fields)
        self.trips[trip_id] = trip
        return trip

    def add_reading(
        self, vehicle_id: str, ts: datetime, temperature: float,
        lat: float = 52.0, lon: float = 13.0,
    ) -> None:
        self.sensor_readings.setdefault(vehicle_id, []).append(
            SensorSample(temperature, 60.0, lat, lon, ts)
        )

    def add_alert(self, vehicle_id: str, severity: AlertSeverityEnum, created_at: datetime) -> None:
        self.alerts.append((vehicle_id, severity.value, created_at))

    def add_trip_reading(self, trip_id: str, ts: datetime, temperature: float) -> None:
        self.trip_readings.setdefault(trip_id, []).append(TripSample(temperature, ts))

    def add_trip_alert(self, trip_id: str, resolved: bool = False) -> None:
        self.trip_alerts.append((trip_id, resolved))

    # ── RiskDataSource ───────────────────────────────────────────────────

    async def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        self._record("get_vehicle")
        return self.vehicles.get(vehicle_id)

    async def get_trip(self, trip_id: str) -> Optional[Trip]:
        self._record("get_trip")
        return self.trips.get(trip_id)

    async def list_vehicle_ids(self, status=None) -> list[str]:
        self._record("list_vehicle_ids")
        return sorted(
            vid for vid, v in self.vehicles.items()
            if status is None or v.status == status
        )

    async def list_trip_ids(self, status=None) -> list[str]:
        self._record("list_trip_ids")
        return sorted(
            tid for tid, t in self.trips.items()
            if status is None or t.status == status
        )

    async def list_sensor_readings(self, vehicle_id: str, since: datetime, limit: int):
        self._record("list_sensor_readings")
        rows = [r for r in self.sensor_readings.get(vehicle_id, []) if r.timestamp >= since]
        return sorted(rows, key=lambda r: r.timestamp)[:limit]

    async def aggregate_sensor_stats(self, vehicle_id: str, since: datetime):
        self._record("aggregate_sensor_stats")
        return summarize_temperatures(
            r.temperature for r in self.sensor_readings.get(vehicle_id, []) if r.timestamp >= since
        )

    async def count_alerts_by_severity(self, vehicle_id: str, since: datetime) -> dict[str, int]:
        self._record("count_alerts_by_severity")
        counts: dict[str, int] = {}
        for vid, severity, created_at in self.alerts:
            if vid == vehicle_id and created_at >= since:
                counts[severity] = counts.get(severity, 0) + 1
        return counts

    async def list_trip_readings(self, trip_id: str, limit: int):
        self._record("list_trip_readings")
        return sorted(self.trip_readings.get(trip_id, []), key=lambda r: r.timestamp)[:limit]

    async def count_trip_alerts(self, trip_id: str, resolved: Optional[bool] = None) -> int:
        self._record("count_trip_alerts")
        return sum(
            1 for tid, is_resolved in self.trip_alerts
            if tid == trip_id and (resolved is None or is_resolved == resolved)
        )

    async def append_risk_snapshot(self, snapshot) -> None:
        self._record("append_risk_snapshot")
        self.snapshots.append(snapshot)

    async def list_risk_snapshots(self, kind: EntityKind, subject_id: str, limit: int):
        self._record("list_risk_snapshots")
        if kind == EntityKind.TRIP:
            rows = [s for s in self.snapshots if isinstance(s, TripRiskSnapshot) and s.trip_id == subject_id]
        else:
            rows = [s for s in self.snapshots if isinstance(s, VehicleRiskSnapshot) and s.vehicle_id == subject_id]
        return sorted(rows, key=lambda s: s.calculated_at, reverse=True)[:limit]


@pytest.fixture
def fake_source():
    return FakeRiskDataSource()


@pytest.fixture
def scoring_config():
    """Empty policy: every factor falls back to its built-in defaults."""
    return {}


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """File-backed SQLite so concurrent sessions get their own connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'frostline-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()
