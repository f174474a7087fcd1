"""
Snap-side assignment for connector endpoints.

Decides which face (top / right / bottom / left) of each endpoint shape a
connector attaches to. The side follows the dominant axis of the vector
between the two shapes; when that side is already used on the shape, one
of the two orthogonal sides takes over if it is less loaded.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass

from connector_optimizer.models import ConnectionRecord, Connector, ConnectorShape, Side


# Connectors touched by the optimizer are switched to orthogonal routing.
OPTIMIZED_SHAPE = ConnectorShape.ELBOWED


@dataclass
class SnapAssignment:
    """Computed attachment for one connector."""
    connector_id: str
    start_snap: Side
    end_snap: Side
    shape: ConnectorShape
    changed: bool


def choose_snap_side(
    source_x: float,
    source_y: float,
    target_x: float,
    target_y: float,
    existing: list[ConnectionRecord],
) -> Side:
    """Pick the side of the source shape facing the target.

    Horizontal when ``|dx| > |dy|``, vertical otherwise (ties go vertical).
    If that side already holds a connection, the less loaded of the two
    orthogonal sides is used instead, but only when it is strictly less
    loaded than the preferred side. The opposite side is never chosen.
    """
    dx = target_x - source_x
    dy = target_y - source_y

    horizontal = abs(dx) > abs(dy)
    if horizontal:
        side = Side.RIGHT if dx > 0 else Side.LEFT
    else:
        side = Side.BOTTOM if dy > 0 else Side.TOP

    counts = {s: 0 for s in Side}
    for rec in existing:
        counts[rec.snap_to] += 1

    if counts[side] >= 1:
        alt1, alt2 = (Side.TOP, Side.BOTTOM) if horizontal else (Side.LEFT, Side.RIGHT)
        if counts[alt1] < counts[side] or counts[alt2] < counts[side]:
            side = alt1 if counts[alt1] <= counts[alt2] else alt2

    return side


def side_to_port(side: Side) -> tuple[float, float]:
    """Convert a side to its centre port in 0..1 shape-relative coordinates."""
    return {
        Side.TOP: (0.5, 0.0),
        Side.BOTTOM: (0.5, 1.0),
        Side.LEFT: (0.0, 0.5),
        Side.RIGHT: (1.0, 0.5),
    }[side]


def assign_snap_sides(
    connectors: list[Connector],
    positions: dict[str, tuple[float, float]],
    records: dict[str, list[ConnectionRecord]] | None = None,
) -> list[SnapAssignment]:
    """Compute start/end sides for a batch of connectors.

    Connectors are processed in order; each assignment is recorded on both
    endpoint shapes so later connectors see the updated load. Connectors
    with an endpoint missing from *positions* are skipped.

    Args:
        connectors: Connectors to assign.
        positions: Centre position of every shape that may be an endpoint.
        records: Running per-shape connection records. A fresh map is used
            when omitted; pass one in to inspect the load afterwards.

    Returns:
        One ``SnapAssignment`` per connector that could be assigned, with
        ``changed`` set when its sides or shape differ from the current ones.
    """
    if records is None:
        records = defaultdict(list)

    results: list[SnapAssignment] = []
    for conn in connectors:
        start_id = conn.start.item
        end_id = conn.end.item
        if not start_id or not end_id:
            continue
        start_pos = positions.get(start_id)
        end_pos = positions.get(end_id)
        if start_pos is None or end_pos is None:
            continue

        start_recs = records.setdefault(start_id, [])
        end_recs = records.setdefault(end_id, [])

        start_snap = choose_snap_side(*start_pos, *end_pos, start_recs)
        end_snap = choose_snap_side(*end_pos, *start_pos, end_recs)

        angle = math.degrees(math.atan2(end_pos[1] - start_pos[1], end_pos[0] - start_pos[0]))
        start_recs.append(ConnectionRecord(angle, start_snap))
        end_recs.append(ConnectionRecord(angle + 180, end_snap))

        changed = (
            conn.start.snap_to != start_snap
            or conn.end.snap_to != end_snap
            or conn.shape != OPTIMIZED_SHAPE
        )
        results.append(SnapAssignment(conn.id, start_snap, end_snap, OPTIMIZED_SHAPE, changed))

    return results
