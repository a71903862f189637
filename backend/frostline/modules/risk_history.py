"""Read-side of the snapshot audit log."""
from __future__ import annotations

from frostline.exceptions import NotFoundError
from frostline.models.base import EntityKind
from frostline.repository import RiskDataSource, RiskSnapshot
from frostline.schemas.risk import RiskSnapshotRead


def _to_read(kind: EntityKind, snapshot: RiskSnapshot) -> RiskSnapshotRead:
    is_trip = kind == EntityKind.TRIP
    return RiskSnapshotRead(
        snapshot_id=snapshot.snapshot_id,
        subject_id=snapshot.trip_id if is_trip else snapshot.vehicle_id,
        score=snapshot.score,
        level=snapshot.level,
        reasons=list(snapshot.reasons or []),
        breakdown=snapshot.breakdown_json,
        predicted_completion=snapshot.predicted_completion if is_trip else None,
        expected_delay_minutes=snapshot.expected_delay_minutes if is_trip else None,
        calculated_at=snapshot.calculated_at,
    )


async def get_risk_history(
    data_source: RiskDataSource,
    kind: EntityKind,
    subject_id: str,
    limit: int = 20,
) -> list[RiskSnapshotRead]:
    """Most recent snapshots for a vehicle or trip, newest first."""
    lookup = data_source.get_trip if kind == EntityKind.TRIP else data_source.get_vehicle
    if await lookup(subject_id) is None:
        raise NotFoundError(kind, subject_id)
    snapshots = await data_source.list_risk_snapshots(kind, subject_id, limit)
    return [_to_read(kind, s) for s in snapshots]
