"""Vehicle risk scoring.

Four factors, each capped, summed into a 0–100 score:
  - temperature variance over the last 6h (0–25)
  - alert density over the last 24h (0–30)
  - telemetry staleness (0–20)
  - movement anomaly from GPS track over the last 6h (0–25)

Every call appends a VehicleRiskSnapshot. Any data-access failure aborts the
call before the snapshot is written.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

from frostline.config import settings
from frostline.exceptions import NotFoundError
from frostline.models.base import EntityKind
from frostline.models.risk_snapshot import VehicleRiskSnapshot
from frostline.modules.risk_factors import (
    FactorResult,
    alert_density_factor,
    data_staleness_factor,
    movement_anomaly_factor,
    temperature_variance_factor,
)
from frostline.modules.risk_scoring import combine_factors, load_scoring_config
from frostline.repository import RiskDataSource
from frostline.schemas.risk import VehicleRiskScore
from frostline.utils.clock import as_naive_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_REASON = "All vehicle metrics are within normal range"


class VehicleRiskScorer:
    def __init__(
        self,
        data_source: RiskDataSource,
        config: Optional[dict[str, Any]] = None,
        gps_reading_limit: Optional[int] = None,
        parallel: Optional[bool] = None,
    ):
        self._source = data_source
        self._config = config if config is not None else load_scoring_config()
        self._gps_limit = gps_reading_limit or settings.GPS_READING_LIMIT
        self._parallel = settings.PARALLEL_FACTORS if parallel is None else parallel

    async def score(self, vehicle_id: str, now: Optional[datetime] = None) -> VehicleRiskScore:
        """Score a vehicle and persist the snapshot.

        Args:
            now: Fixed "current time" for reproducible scoring. Defaults to UTC now.

        Raises:
            NotFoundError: vehicle does not exist (nothing persisted).
            DataUnavailableError: a query or the snapshot write failed.
        """
        now = as_naive_utc(now) if now is not None else utcnow()

        vehicle = await self._source.get_vehicle(vehicle_id)
        if vehicle is None:
            raise NotFoundError(EntityKind.VEHICLE, vehicle_id)

        steps = (self._temperature_variance, self._alert_density, self._movement_anomaly)
        if self._parallel:
            variance, alerts, movement = await asyncio.gather(*(step(vehicle_id, now) for step in steps))
        else:
            variance, alerts, movement = [await step(vehicle_id, now) for step in steps]

        factors = {
            "temperature_variance": variance,
            "alert_density": alerts,
            "data_staleness": data_staleness_factor(vehicle.last_update, now, self._config),
            "movement_anomaly": movement,
        }
        for name, result in factors.items():
            logger.debug("Vehicle %s %s: %d pts", vehicle_id, name, result.points)

        combined = combine_factors(factors, DEFAULT_REASON, self._config)

        await self._source.append_risk_snapshot(VehicleRiskSnapshot(
            snapshot_id=str(uuid.uuid4()),
            vehicle_id=vehicle_id,
            score=combined.score,
            level=combined.level,
            reasons=list(combined.reasons),
            breakdown_json=combined.breakdown,
            calculated_at=now,
        ))
        logger.info("Vehicle %s risk %d (%s)", vehicle_id, combined.score, combined.level.value)
        return VehicleRiskScore(score=combined.score, level=combined.level, reasons=combined.reasons)

    def _window_start(self, section: str, default_hours: float, now: datetime) -> datetime:
        hours = self._config.get(section, {}).get("window_hours", default_hours)
        return now - timedelta(hours=hours)

    async def _temperature_variance(self, vehicle_id: str, now: datetime) -> FactorResult:
        since = self._window_start("temperature_variance", 6, now)
        stats = await self._source.aggregate_sensor_stats(vehicle_id, since)
        return temperature_variance_factor(stats, self._config)

    async def _alert_density(self, vehicle_id: str, now: datetime) -> FactorResult:
        since = self._window_start("alert_density", 24, now)
        counts = await self._source.count_alerts_by_severity(vehicle_id, since)
        return alert_density_factor(counts, self._config)

    async def _movement_anomaly(self, vehicle_id: str, now: datetime) -> FactorResult:
        since = self._window_start("movement_anomaly", 6, now)
        readings = await self._source.list_sensor_readings(vehicle_id, since, self._gps_limit)
        return movement_anomaly_factor(readings, self._config)
