"""Risk factor calculators.

Each factor is a pure function over already-fetched data and its section of
risk_scoring.yaml, returning ``FactorResult(points, reason)``. A factor emits
a reason only when its points are worth explaining; the orchestrators sum the
points and collect the reasons in factor order.

Vehicle-scoped (caps): temperature variance (25), alert density (30),
data staleness (20), movement anomaly (25).
Trip-scoped (caps): temperature deviation (30), violation count (25),
delay (25), temperature spike (20).

Rounding is half-up throughout: 17.5 → 18, 4.5 → 5.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import NamedTuple, Optional, Sequence

from frostline.models.base import AlertSeverityEnum, TripStatusEnum
from frostline.repository import SensorSample, SensorStats, TripSample
from frostline.utils.geo import path_length_km


class FactorResult(NamedTuple):
    points: int
    reason: Optional[str]


class DelayResult(NamedTuple):
    points: int
    reason: Optional[str]
    delay_minutes: int


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _fmt_temp(value: float) -> str:
    """Render a band edge without a trailing .0 (-25.0 → "-25", -17.5 → "-17.5")."""
    return f"{value:g}"


# ── Vehicle factors ───────────────────────────────────────────────────────────

def temperature_variance_factor(stats: SensorStats, config: dict) -> FactorResult:
    """Spread of sensor temperatures over the trailing window."""
    cfg = config.get("temperature_variance", {})
    cap = cfg.get("cap", 25)
    window_h = cfg.get("window_hours", 6)

    if stats.count == 0:
        return FactorResult(
            cfg.get("no_data_points", 5),
            f"No recent sensor readings in last {window_h:g} hours",
        )

    spread = (stats.max or 0.0) - (stats.min or 0.0)
    std_dev = stats.std_dev or 0.0

    high_range = cfg.get("high_range_c", 10)
    moderate_range = cfg.get("moderate_range_c", 5)
    if spread > high_range:
        points = cap
    elif spread > moderate_range:
        points = round_half_up(spread / high_range * cap)
    else:
        # Scaled against 15 rather than the cap: there is a step at the
        # moderate threshold (5.0°C → 8 points, 5.01°C → 13 points)
        points = round_half_up(spread / high_range * cfg.get("low_range_scale", 15))

    if std_dev > cfg.get("std_dev_threshold_c", 3):
        points = min(points + cfg.get("std_dev_bonus", 5), cap)

    if points >= cfg.get("high_reason_points", 15):
        reason = (
            f"High temperature variance: {spread:.1f}°C range "
            f"(σ={std_dev:.1f}) in last {window_h:g}h"
        )
    elif points >= cfg.get("moderate_reason_points", 8):
        reason = f"Moderate temperature variance: {spread:.1f}°C range in last {window_h:g}h"
    else:
        reason = None
    return FactorResult(points, reason)


def alert_density_factor(counts: dict[str, int], config: dict) -> FactorResult:
    """Weighted count of alerts raised in the trailing window, resolved or not."""
    cfg = config.get("alert_density", {})
    window_h = cfg.get("window_hours", 24)

    by_severity = {getattr(sev, "value", sev): n for sev, n in counts.items()}
    critical = by_severity.get(AlertSeverityEnum.CRITICAL.value, 0)
    warning = by_severity.get(AlertSeverityEnum.WARNING.value, 0)
    total = sum(by_severity.values())

    points = min(
        critical * cfg.get("critical_points", 6) + warning * cfg.get("warning_points", 3),
        cfg.get("cap", 30),
    )
    reason = None
    if total > 0:
        reason = (
            f"{total} alert(s) in last {window_h:g}h "
            f"({critical} critical, {warning} warning)"
        )
    return FactorResult(points, reason)


def data_staleness_factor(
    last_update: Optional[datetime], now: datetime, config: dict,
) -> FactorResult:
    """Minutes since the vehicle last pushed telemetry."""
    cfg = config.get("data_staleness", {})
    cap = cfg.get("cap", 20)

    if last_update is None:
        return FactorResult(cap, "Vehicle has never reported telemetry")

    gap_minutes = (now - last_update).total_seconds() / 60
    if gap_minutes > cfg.get("over_60_min_threshold", 60):
        points = cap
    elif gap_minutes > cfg.get("over_30_min_threshold", 30):
        points = cfg.get("over_30_min", 15)
    elif gap_minutes > cfg.get("over_15_min_threshold", 15):
        points = cfg.get("over_15_min", 10)
    elif gap_minutes > cfg.get("over_5_min_threshold", 5):
        points = cfg.get("over_5_min", 5)
    else:
        points = 0

    reason = None
    if points >= cfg.get("reason_points", 10):
        reason = f"Vehicle data is {round_half_up(gap_minutes)} minutes stale"
    return FactorResult(points, reason)


def movement_anomaly_factor(readings: Sequence[SensorSample], config: dict) -> FactorResult:
    """Distance covered in the trailing window: too far, or parked while reporting."""
    cfg = config.get("movement_anomaly", {})
    window_h = cfg.get("window_hours", 6)

    if len(readings) < 2:
        reason = "No GPS data available for distance calculation" if not readings else None
        return FactorResult(cfg.get("insufficient_data_points", 5), reason)

    distance_km = path_length_km((r.latitude, r.longitude) for r in readings)

    excessive_km = cfg.get("excessive_km", 500)
    if distance_km > excessive_km:
        points = cfg.get("cap", 25)
    elif distance_km > cfg.get("high_km", 300):
        points = cfg.get("high_points", 15)
    elif (
        distance_km < cfg.get("stationary_km", 1)
        and len(readings) > cfg.get("stationary_min_readings", 10)
    ):
        return FactorResult(
            cfg.get("stationary_points", 10),
            "Vehicle appears stationary despite active readings",
        )
    else:
        points = round_half_up(distance_km / excessive_km * cfg.get("distance_scale", 10))

    reason = None
    if points >= cfg.get("high_points", 15):
        reason = f"Unusual distance pattern: {distance_km:.1f}km in last {window_h:g}h"
    return FactorResult(points, reason)


# ── Trip factors ──────────────────────────────────────────────────────────────

def temperature_deviation_factor(
    avg_temp: Optional[float], min_temp: float, max_temp: float, config: dict,
) -> FactorResult:
    """How far the trip's average temperature sits outside (or near the edge of) the band."""
    cfg = config.get("temperature_deviation", {})
    cap = cfg.get("cap", 30)
    severe = cfg.get("severe_deviation_c", 5)
    band = f"[{_fmt_temp(min_temp)}°C, {_fmt_temp(max_temp)}°C]"

    if avg_temp is None:
        return FactorResult(cfg.get("no_data_points", 5), "No temperature readings recorded yet")

    deviation = 0.0
    if avg_temp < min_temp:
        deviation = min_temp - avg_temp
    elif avg_temp > max_temp:
        deviation = avg_temp - max_temp

    if deviation == 0:
        dist_to_edge = min(abs(avg_temp - min_temp), abs(avg_temp - max_temp))
        near_edge = dist_to_edge < (max_temp - min_temp) * cfg.get("edge_fraction", 0.1)
        points = cfg.get("near_edge_points", 10) if near_edge else 0
    elif deviation > severe:
        points = cap
    elif deviation > cfg.get("moderate_deviation_c", 2):
        points = round_half_up(deviation / severe * cap)
    else:
        points = round_half_up(deviation / severe * cfg.get("minor_scale", 15))

    if deviation > 0:
        reason = (
            f"Average temperature {avg_temp:.1f}°C is {deviation:.1f}°C "
            f"outside acceptable range {band}"
        )
    elif points >= cfg.get("near_edge_points", 10):
        reason = f"Average temperature {avg_temp:.1f}°C is near the edge of acceptable range {band}"
    else:
        reason = None
    return FactorResult(points, reason)


def violation_count_factor(total: int, unresolved: int, config: dict) -> FactorResult:
    """Trip-scoped violation records; unresolved ones weigh more."""
    cfg = config.get("violation_count", {})
    # Separate reads: never report more unresolved than total
    total = max(total, unresolved)
    resolved = total - unresolved
    points = min(
        unresolved * cfg.get("unresolved_points", 5) + resolved * cfg.get("resolved_points", 2),
        cfg.get("cap", 25),
    )
    reason = None
    if total > 0:
        reason = f"{total} violation(s) detected ({unresolved} unresolved)"
    return FactorResult(points, reason)


def trip_delay_minutes(
    status: str,
    planned_end: datetime,
    actual_end: Optional[datetime],
    now: datetime,
) -> int:
    """Whole minutes past the planned end: live for active trips, final otherwise."""
    if status == TripStatusEnum.ACTIVE:
        if now > planned_end:
            return round_half_up((now - planned_end).total_seconds() / 60)
        return 0
    if actual_end is not None and actual_end > planned_end:
        return round_half_up((actual_end - planned_end).total_seconds() / 60)
    return 0


def delay_factor(delay_minutes: int, config: dict) -> DelayResult:
    cfg = config.get("trip_delay", {})
    if delay_minutes > cfg.get("over_120_min_threshold", 120):
        points = cfg.get("cap", 25)
    elif delay_minutes > cfg.get("over_60_min_threshold", 60):
        points = cfg.get("over_60_min", 20)
    elif delay_minutes > cfg.get("over_30_min_threshold", 30):
        points = cfg.get("over_30_min", 15)
    elif delay_minutes > cfg.get("over_10_min_threshold", 10):
        points = round_half_up(delay_minutes / 60 * cfg.get("minor_scale", 15))
    else:
        points = 0

    reason = None
    if delay_minutes > 0:
        reason = f"Trip is delayed by {delay_minutes} minutes beyond planned end"
    return DelayResult(points, reason, delay_minutes)


def temperature_spike_factor(readings: Sequence[TripSample], config: dict) -> FactorResult:
    """Jumps between consecutive trip readings larger than the spike delta."""
    cfg = config.get("temperature_spike", {})
    cap = cfg.get("cap", 20)
    spike_delta = cfg.get("spike_delta_c", 3)

    if len(readings) < 2:
        return FactorResult(0, None)

    spike_count = 0
    max_spike = 0.0
    for prev, cur in zip(readings, readings[1:]):
        diff = abs(cur.temperature - prev.temperature)
        if diff > spike_delta:
            spike_count += 1
            max_spike = max(max_spike, diff)

    if spike_count > cfg.get("many_spikes", 10):
        points = cap
    elif spike_count > cfg.get("several_spikes", 5):
        points = cfg.get("several_points", 15)
    else:
        points = round_half_up(spike_count / 5 * cfg.get("spike_scale", 10))

    if max_spike > cfg.get("large_spike_c", 10):
        points = min(points + cfg.get("large_spike_bonus", 5), cap)

    reason = None
    if spike_count > 0:
        reason = f"{spike_count} temperature spike(s) detected (max {max_spike:.1f}°C jump)"
    return FactorResult(points, reason)
