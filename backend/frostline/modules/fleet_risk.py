"""Batch risk scoring across the fleet.

Subjects are independent, so they are scored concurrently, bounded by
``settings.SCORING_CONCURRENCY``. A subject that fails with a FrostlineError
(deleted between listing and scoring, data store hiccup) is recorded in the
summary and the rest of the batch continues; anything else propagates.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Optional

from frostline.config import settings
from frostline.exceptions import FrostlineError
from frostline.models.base import TripStatusEnum, VehicleStatusEnum
from frostline.modules.trip_risk import TripRiskForecaster
from frostline.modules.vehicle_risk import VehicleRiskScorer
from frostline.repository import RiskDataSource

logger = logging.getLogger(__name__)


async def _run_batch(
    subject_ids: Iterable[str],
    score_one: Callable[[str], Awaitable[Any]],
    concurrency: int,
) -> dict:
    semaphore = asyncio.Semaphore(max(1, concurrency))
    results: dict[str, Any] = {}
    failed: dict[str, str] = {}

    async def _guarded(subject_id: str) -> None:
        async with semaphore:
            try:
                results[subject_id] = await score_one(subject_id)
            except FrostlineError as exc:
                logger.error("Scoring %s failed: %s", subject_id, exc)
                failed[subject_id] = str(exc)

    await asyncio.gather(*(_guarded(sid) for sid in subject_ids))
    return {"scored": len(results), "failed": failed, "results": results}


async def score_vehicles(
    data_source: RiskDataSource,
    vehicle_ids: Optional[Iterable[str]] = None,
    config: Optional[dict] = None,
    now: Optional[datetime] = None,
    concurrency: Optional[int] = None,
) -> dict:
    """Score the given vehicles (default: every active vehicle).

    Returns:
        ``{"scored": N, "failed": {vehicle_id: message}, "results": {vehicle_id: VehicleRiskScore}}``
    """
    if vehicle_ids is None:
        vehicle_ids = await data_source.list_vehicle_ids(status=VehicleStatusEnum.ACTIVE)
    scorer = VehicleRiskScorer(data_source, config=config)
    summary = await _run_batch(
        list(vehicle_ids),
        lambda vid: scorer.score(vid, now=now),
        concurrency or settings.SCORING_CONCURRENCY,
    )
    logger.info("Scored %d vehicles (%d failed)", summary["scored"], len(summary["failed"]))
    return summary


async def forecast_trips(
    data_source: RiskDataSource,
    trip_ids: Optional[Iterable[str]] = None,
    config: Optional[dict] = None,
    now: Optional[datetime] = None,
    concurrency: Optional[int] = None,
) -> dict:
    """Forecast the given trips (default: every active trip). Same summary shape as score_vehicles."""
    if trip_ids is None:
        trip_ids = await data_source.list_trip_ids(status=TripStatusEnum.ACTIVE)
    forecaster = TripRiskForecaster(data_source, config=config)
    summary = await _run_batch(
        list(trip_ids),
        lambda tid: forecaster.forecast(tid, now=now),
        concurrency or settings.SCORING_CONCURRENCY,
    )
    logger.info("Forecast %d trips (%d failed)", summary["scored"], len(summary["failed"]))
    return summary
