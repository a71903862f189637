"""Trip risk forecasting.

Four factors, each capped, summed into a 0–100 score:
  - average temperature vs the vehicle's acceptable band (0–30)
  - trip violation records, unresolved weighted higher (0–25)
  - delay past the planned end (0–25)
  - temperature spikes between consecutive trip readings (0–20)

The delay also feeds the projected completion time. Every call appends a
TripRiskSnapshot.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from frostline.config import settings
from frostline.exceptions import NotFoundError
from frostline.models.base import EntityKind
from frostline.models.risk_snapshot import TripRiskSnapshot
from frostline.models.trip import Trip
from frostline.modules.risk_factors import (
    FactorResult,
    delay_factor,
    temperature_deviation_factor,
    temperature_spike_factor,
    trip_delay_minutes,
    violation_count_factor,
)
from frostline.modules.risk_scoring import combine_factors, load_scoring_config, projected_completion
from frostline.repository import RiskDataSource
from frostline.schemas.risk import TripRiskForecast
from frostline.utils.clock import as_naive_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_REASON = "All trip metrics are within normal range"


class TripRiskForecaster:
    def __init__(
        self,
        data_source: RiskDataSource,
        config: Optional[dict[str, Any]] = None,
        trip_reading_limit: Optional[int] = None,
        parallel: Optional[bool] = None,
    ):
        self._source = data_source
        self._config = config if config is not None else load_scoring_config()
        self._reading_limit = trip_reading_limit or settings.TRIP_READING_LIMIT
        self._parallel = settings.PARALLEL_FACTORS if parallel is None else parallel

    async def forecast(self, trip_id: str, now: Optional[datetime] = None) -> TripRiskForecast:
        """Forecast a trip's risk and completion time, and persist the snapshot.

        Raises:
            NotFoundError: trip does not exist (nothing persisted).
            DataUnavailableError: a query or the snapshot write failed.
        """
        now = as_naive_utc(now) if now is not None else utcnow()

        trip = await self._source.get_trip(trip_id)
        if trip is None:
            raise NotFoundError(EntityKind.TRIP, trip_id)

        steps = (self._temperature_deviation, self._violations, self._temperature_spikes)
        if self._parallel:
            deviation, violations, spikes = await asyncio.gather(*(step(trip) for step in steps))
        else:
            deviation, violations, spikes = [await step(trip) for step in steps]

        delay = delay_factor(
            trip_delay_minutes(trip.status, trip.planned_end, trip.actual_end, now),
            self._config,
        )
        factors = {
            "temperature_deviation": deviation,
            "violation_count": violations,
            "trip_delay": FactorResult(delay.points, delay.reason),
            "temperature_spike": spikes,
        }
        for name, result in factors.items():
            logger.debug("Trip %s %s: %d pts", trip_id, name, result.points)

        combined = combine_factors(factors, DEFAULT_REASON, self._config)
        eta = projected_completion(trip.status, trip.planned_end, trip.actual_end, delay.delay_minutes)

        await self._source.append_risk_snapshot(TripRiskSnapshot(
            snapshot_id=str(uuid.uuid4()),
            trip_id=trip_id,
            score=combined.score,
            level=combined.level,
            reasons=list(combined.reasons),
            breakdown_json=combined.breakdown,
            predicted_completion=eta,
            expected_delay_minutes=delay.delay_minutes,
            calculated_at=now,
        ))
        logger.info(
            "Trip %s risk %d (%s), delay %d min",
            trip_id, combined.score, combined.level.value, delay.delay_minutes,
        )
        return TripRiskForecast(
            score=combined.score,
            level=combined.level,
            reasons=combined.reasons,
            predicted_completion=eta,
            expected_delay_minutes=delay.delay_minutes,
        )

    async def _temperature_deviation(self, trip: Trip) -> FactorResult:
        # Missing vehicle record is tolerated: fall back to the default band
        vehicle = await self._source.get_vehicle(trip.vehicle_id)
        fallback = self._config.get("default_range", {})
        if vehicle is not None:
            min_temp, max_temp = vehicle.min_temp, vehicle.max_temp
        else:
            min_temp = fallback.get("min_temp", -25)
            max_temp = fallback.get("max_temp", -15)
        return temperature_deviation_factor(trip.avg_temp_recorded, min_temp, max_temp, self._config)

    async def _violations(self, trip: Trip) -> FactorResult:
        # Unresolved first: on append-only records the later total can only be larger
        unresolved = await self._source.count_trip_alerts(trip.trip_id, resolved=False)
        total = await self._source.count_trip_alerts(trip.trip_id)
        return violation_count_factor(total, unresolved, self._config)

    async def _temperature_spikes(self, trip: Trip) -> FactorResult:
        readings = await self._source.list_trip_readings(trip.trip_id, self._reading_limit)
        return temperature_spike_factor(readings, self._config)
