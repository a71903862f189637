"""Tests for SqlAlchemyRiskDataSource against a real (SQLite) database."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from frostline.exceptions import DataUnavailableError
from frostline.models.alert import Alert
from frostline.models.base import (
    AlertSeverityEnum,
    EntityKind,
    RiskLevelEnum,
    TripStatusEnum,
    VehicleStatusEnum,
)
from frostline.models.risk_snapshot import TripRiskSnapshot, VehicleRiskSnapshot
from frostline.models.sensor_reading import SensorReading
from frostline.models.trip import Trip
from frostline.models.trip_alert import TripAlert
from frostline.models.trip_reading import TripReading
from frostline.models.vehicle import Vehicle
from frostline.modules.risk_history import get_risk_history
from frostline.modules.trip_risk import TripRiskForecaster
from frostline.modules.vehicle_risk import VehicleRiskScorer
from frostline.repository import SqlAlchemyRiskDataSource, summarize_temperatures

NOW = datetime(2026, 3, 1, 12, 0, 0)


async def _seed(session_factory, *rows):
    async with session_factory() as session:
        async with session.begin():
            session.add_all(rows)


def _vehicle(vehicle_id="V-1", **kwargs):
    fields = dict(
        min_temp=-25.0, max_temp=-15.0, status=VehicleStatusEnum.ACTIVE,
        last_update=NOW - timedelta(hours=2),
    )
    fields.update(kwargs)
    return Vehicle(vehicle_id=vehicle_id, **fields)


def _trip(trip_id="T-1", **kwargs):
    fields = dict(
        vehicle_id="V-1", status=TripStatusEnum.ACTIVE,
        planned_start=NOW - timedelta(hours=6), planned_end=NOW - timedelta(minutes=90),
        actual_start=NOW - timedelta(hours=6), avg_temp_recorded=-10.0,
    )
    fields.update(kwargs)
    return Trip(trip_id=trip_id, **fields)


def _reading(ts, temperature, vehicle_id="V-1", lat=52.0, lon=13.0):
    return SensorReading(
        vehicle_id=vehicle_id, temperature=temperature, humidity=55.0,
        latitude=lat, longitude=lon, timestamp=ts,
    )


def _snapshot(vehicle_id, calculated_at, score=10, snapshot_id=None):
    return VehicleRiskSnapshot(
        snapshot_id=snapshot_id or f"snap-{calculated_at:%H%M%S}",
        vehicle_id=vehicle_id,
        score=score,
        level=RiskLevelEnum.LOW,
        reasons=["x"],
        breakdown_json={"temperature_variance": score},
        calculated_at=calculated_at,
    )


class TestSummarizeTemperatures:
    def test_empty(self):
        stats = summarize_temperatures([])
        assert stats.count == 0
        assert stats.avg is None and stats.std_dev is None

    def test_population_std_dev(self):
        stats = summarize_temperatures([-20, -8, -20, -8])
        assert stats.avg == pytest.approx(-14.0)
        assert stats.min == -20 and stats.max == -8
        assert stats.std_dev == pytest.approx(6.0)
        assert stats.count == 4


class TestSqlAlchemyRiskDataSource:
    @pytest.mark.asyncio
    async def test_get_subjects(self, session_factory):
        await _seed(session_factory, _vehicle(), _trip())
        source = SqlAlchemyRiskDataSource(session_factory)

        vehicle = await source.get_vehicle("V-1")
        assert vehicle.min_temp == -25.0
        assert vehicle.last_update == NOW - timedelta(hours=2)
        trip = await source.get_trip("T-1")
        assert trip.status == TripStatusEnum.ACTIVE
        assert await source.get_vehicle("missing") is None
        assert await source.get_trip("missing") is None

    @pytest.mark.asyncio
    async def test_list_ids_by_status(self, session_factory):
        await _seed(
            session_factory,
            _vehicle("V-2"), _vehicle("V-1"),
            _vehicle("V-3", status=VehicleStatusEnum.MAINTENANCE),
            _trip("T-1"), _trip("T-2", status=TripStatusEnum.COMPLETED),
        )
        source = SqlAlchemyRiskDataSource(session_factory)

        assert await source.list_vehicle_ids() == ["V-1", "V-2", "V-3"]
        assert await source.list_vehicle_ids(status=VehicleStatusEnum.ACTIVE) == ["V-1", "V-2"]
        assert await source.list_trip_ids(status=TripStatusEnum.ACTIVE) == ["T-1"]

    @pytest.mark.asyncio
    async def test_sensor_readings_window_order_and_limit(self, session_factory):
        await _seed(
            session_factory,
            _vehicle(), _vehicle("V-2"),
            _reading(NOW - timedelta(hours=1), -18.0),
            _reading(NOW - timedelta(hours=3), -20.0),
            _reading(NOW - timedelta(hours=2), -19.0),
            _reading(NOW - timedelta(hours=8), 5.0),
            _reading(NOW - timedelta(hours=1), 0.0, vehicle_id="V-2"),
        )
        source = SqlAlchemyRiskDataSource(session_factory)
        since = NOW - timedelta(hours=6)

        readings = await source.list_sensor_readings("V-1", since, limit=10)
        assert [r.temperature for r in readings] == [-20.0, -19.0, -18.0]
        assert readings[0].timestamp == NOW - timedelta(hours=3)
        assert readings[0].latitude == 52.0

        limited = await source.list_sensor_readings("V-1", since, limit=2)
        assert [r.temperature for r in limited] == [-20.0, -19.0]

    @pytest.mark.asyncio
    async def test_aggregate_sensor_stats(self, session_factory):
        await _seed(
            session_factory,
            _vehicle(),
            _reading(NOW - timedelta(hours=1), -20.0),
            _reading(NOW - timedelta(hours=2), -8.0),
            _reading(NOW - timedelta(hours=7), 30.0),
        )
        source = SqlAlchemyRiskDataSource(session_factory)

        stats = await source.aggregate_sensor_stats("V-1", NOW - timedelta(hours=6))
        assert stats.count == 2
        assert stats.min == -20.0 and stats.max == -8.0
        assert stats.avg == pytest.approx(-14.0)
        assert stats.std_dev == pytest.approx(6.0)

        empty = await source.aggregate_sensor_stats("V-1", NOW)
        assert empty.count == 0 and empty.max is None

    @pytest.mark.asyncio
    async def test_count_alerts_by_severity(self, session_factory):
        def alert(severity, age_hours, resolved=False):
            return Alert(
                vehicle_id="V-1", severity=severity, is_resolved=resolved,
                created_at=NOW - timedelta(hours=age_hours),
            )

        await _seed(
            session_factory,
            _vehicle(),
            alert(AlertSeverityEnum.CRITICAL, 1),
            alert(AlertSeverityEnum.CRITICAL, 2, resolved=True),
            alert(AlertSeverityEnum.WARNING, 3),
            alert(AlertSeverityEnum.INFO, 4),
            alert(AlertSeverityEnum.CRITICAL, 30),
        )
        source = SqlAlchemyRiskDataSource(session_factory)

        counts = await source.count_alerts_by_severity("V-1", NOW - timedelta(hours=24))
        assert counts == {"critical": 2, "warning": 1, "info": 1}

    @pytest.mark.asyncio
    async def test_trip_readings_and_alerts(self, session_factory):
        def trip_reading(minutes, temperature):
            return TripReading(
                trip_id="T-1", vehicle_id="V-1", temperature=temperature,
                timestamp=NOW - timedelta(minutes=minutes),
            )

        def trip_alert(resolved):
            return TripAlert(
                trip_id="T-1", vehicle_id="V-1", severity=AlertSeverityEnum.WARNING,
                is_resolved=resolved,
            )

        await _seed(
            session_factory,
            _vehicle(), _trip(),
            trip_reading(10, -8.0), trip_reading(30, -20.0), trip_reading(20, -15.0),
            trip_alert(False), trip_alert(False), trip_alert(True),
        )
        source = SqlAlchemyRiskDataSource(session_factory)

        readings = await source.list_trip_readings("T-1", limit=5000)
        assert [r.temperature for r in readings] == [-20.0, -15.0, -8.0]
        assert len(await source.list_trip_readings("T-1", limit=1)) == 1

        assert await source.count_trip_alerts("T-1") == 3
        assert await source.count_trip_alerts("T-1", resolved=False) == 2
        assert await source.count_trip_alerts("T-1", resolved=True) == 1
        assert await source.count_trip_alerts("T-NONE") == 0

    @pytest.mark.asyncio
    async def test_snapshots_append_and_list_newest_first(self, session_factory):
        await _seed(session_factory, _vehicle())
        source = SqlAlchemyRiskDataSource(session_factory)

        for minutes in (30, 10, 20):
            await source.append_risk_snapshot(
                _snapshot("V-1", NOW - timedelta(minutes=minutes), score=minutes)
            )

        rows = await source.list_risk_snapshots(EntityKind.VEHICLE, "V-1", limit=10)
        assert [r.score for r in rows] == [10, 20, 30]
        assert rows[0].breakdown_json == {"temperature_variance": 10}
        assert rows[0].level == RiskLevelEnum.LOW

        assert len(await source.list_risk_snapshots(EntityKind.VEHICLE, "V-1", limit=2)) == 2
        assert await source.list_risk_snapshots(EntityKind.TRIP, "V-1", limit=10) == []

    @pytest.mark.asyncio
    async def test_trip_snapshot_round_trip(self, session_factory):
        await _seed(session_factory, _vehicle(), _trip())
        source = SqlAlchemyRiskDataSource(session_factory)
        await source.append_risk_snapshot(TripRiskSnapshot(
            snapshot_id="trip-snap-1", trip_id="T-1", score=73, level=RiskLevelEnum.HIGH,
            reasons=["late"], breakdown_json={"trip_delay": 20},
            predicted_completion=NOW, expected_delay_minutes=90, calculated_at=NOW,
        ))

        (row,) = await source.list_risk_snapshots(EntityKind.TRIP, "T-1", limit=5)
        assert row.expected_delay_minutes == 90
        assert row.predicted_completion == NOW
        assert row.reasons == ["late"]

    @pytest.mark.asyncio
    async def test_duplicate_snapshot_id_is_data_unavailable(self, session_factory):
        await _seed(session_factory, _vehicle())
        source = SqlAlchemyRiskDataSource(session_factory)
        await source.append_risk_snapshot(_snapshot("V-1", NOW, snapshot_id="dup"))

        with pytest.raises(DataUnavailableError) as exc_info:
            await source.append_risk_snapshot(_snapshot("V-1", NOW, snapshot_id="dup"))
        assert exc_info.value.operation == "append_risk_snapshot"

    @pytest.mark.asyncio
    async def test_missing_schema_is_data_unavailable(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        source = SqlAlchemyRiskDataSource(async_sessionmaker(engine, expire_on_commit=False))
        try:
            with pytest.raises(DataUnavailableError) as exc_info:
                await source.get_vehicle("V-1")
            assert exc_info.value.operation == "get_vehicle"
            with pytest.raises(DataUnavailableError):
                await source.count_alerts_by_severity("V-1", NOW)
        finally:
            await engine.dispose()


class TestScoringOverSql:
    @pytest.mark.asyncio
    async def test_vehicle_score_persists_snapshot(self, session_factory):
        readings = [
            _reading(NOW - timedelta(hours=5) + timedelta(minutes=20 * i), -20.0 if i % 2 == 0 else -8.0)
            for i in range(12)
        ]
        alerts = [
            Alert(vehicle_id="V-1", severity=AlertSeverityEnum.CRITICAL, created_at=NOW - timedelta(hours=1))
            for _ in range(3)
        ]
        await _seed(session_factory, _vehicle(), *readings, *alerts)
        source = SqlAlchemyRiskDataSource(session_factory)

        result = await VehicleRiskScorer(source, config={}).score("V-1", now=NOW)
        assert result.score == 73
        assert result.level == RiskLevelEnum.HIGH

        await VehicleRiskScorer(source, config={}).score("V-1", now=NOW + timedelta(minutes=1))
        history = await get_risk_history(source, EntityKind.VEHICLE, "V-1")
        assert len(history) == 2
        assert history[0].calculated_at == NOW + timedelta(minutes=1)
        assert history[1].breakdown == {
            "temperature_variance": 25,
            "alert_density": 18,
            "data_staleness": 20,
            "movement_anomaly": 10,
        }
        assert history[0].snapshot_id != history[1].snapshot_id

    @pytest.mark.asyncio
    async def test_trip_forecast_persists_snapshot(self, session_factory):
        await _seed(session_factory, _vehicle(), _trip())
        source = SqlAlchemyRiskDataSource(session_factory)

        result = await TripRiskForecaster(source, config={}).forecast("T-1", now=NOW)
        assert result.expected_delay_minutes == 90
        assert result.score == 50  # 30 deviation + 20 delay

        (snap,) = await get_risk_history(source, EntityKind.TRIP, "T-1")
        assert snap.subject_id == "T-1"
        assert snap.predicted_completion == NOW
        assert snap.expected_delay_minutes == 90
        assert snap.score == result.score
