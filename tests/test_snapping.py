"""Tests for snap-side assignment."""

from collections import Counter

import pytest

from connector_optimizer.models import (
    ConnectionRecord,
    Connector,
    ConnectorEnd,
    ConnectorShape,
    Side,
)
from connector_optimizer.snapping import (
    assign_snap_sides,
    choose_snap_side,
    side_to_port,
)


def _conn(cid: str, src: str, tgt: str, **kwargs) -> Connector:
    return Connector(cid, ConnectorEnd(src), ConnectorEnd(tgt), **kwargs)


def _recs(*sides: Side) -> list[ConnectionRecord]:
    return [ConnectionRecord(0, s) for s in sides]


# ===================================================================
# choose_snap_side
# ===================================================================

class TestChooseSnapSide:

    def test_horizontal(self) -> None:
        assert choose_snap_side(0, 0, 100, 0, []) == Side.RIGHT
        assert choose_snap_side(100, 0, 0, 0, []) == Side.LEFT

    def test_vertical(self) -> None:
        assert choose_snap_side(0, 0, 0, 100, []) == Side.BOTTOM
        assert choose_snap_side(0, 100, 0, 0, []) == Side.TOP

    def test_dominant_axis_wins(self) -> None:
        assert choose_snap_side(0, 0, 100, 30, []) == Side.RIGHT
        assert choose_snap_side(0, 0, 30, -100, []) == Side.TOP

    def test_diagonal_tie_goes_vertical(self) -> None:
        assert choose_snap_side(0, 0, 50, 50, []) == Side.BOTTOM

    def test_busy_side_falls_back_to_orthogonal(self) -> None:
        assert choose_snap_side(0, 0, 100, 0, _recs(Side.RIGHT)) == Side.TOP
        assert choose_snap_side(0, 0, 100, 0, _recs(Side.RIGHT, Side.TOP)) == Side.BOTTOM
        assert choose_snap_side(0, 0, 0, 100, _recs(Side.BOTTOM)) == Side.LEFT

    def test_never_switches_to_opposite_side(self) -> None:
        side = choose_snap_side(0, 0, 100, 0, _recs(Side.RIGHT, Side.TOP, Side.BOTTOM))
        assert side == Side.RIGHT

    def test_only_switches_when_strictly_less_loaded(self) -> None:
        side = choose_snap_side(0, 0, 100, 0, _recs(Side.RIGHT, Side.TOP, Side.TOP, Side.BOTTOM))
        assert side == Side.RIGHT

    def test_result_is_always_a_side(self) -> None:
        for dx, dy in [(0, 0), (1, 0), (-1, 0), (0, 1), (0, -1), (3, -3)]:
            assert choose_snap_side(0, 0, dx, dy, []) in set(Side)


def test_side_to_port() -> None:
    assert side_to_port(Side.TOP) == (0.5, 0.0)
    assert side_to_port(Side.RIGHT) == (1.0, 0.5)
    assert side_to_port(Side.BOTTOM) == (0.5, 1.0)
    assert side_to_port(Side.LEFT) == (0.0, 0.5)


# ===================================================================
# assign_snap_sides
# ===================================================================

class TestAssignSnapSides:

    def test_horizontal_connector(self) -> None:
        [a] = assign_snap_sides([_conn("c", "A", "B")], {"A": (0, 0), "B": (200, 0)})
        assert a.start_snap == Side.RIGHT
        assert a.end_snap == Side.LEFT
        assert a.shape == ConnectorShape.ELBOWED
        assert a.changed

    def test_unchanged_connector_is_not_flagged(self) -> None:
        conn = Connector(
            "c",
            ConnectorEnd("A", Side.RIGHT),
            ConnectorEnd("B", Side.LEFT),
            shape=ConnectorShape.ELBOWED,
        )
        [a] = assign_snap_sides([conn], {"A": (0, 0), "B": (200, 0)})
        assert not a.changed

    def test_shape_change_alone_flags_connector(self) -> None:
        conn = Connector("c", ConnectorEnd("A", Side.RIGHT), ConnectorEnd("B", Side.LEFT))
        [a] = assign_snap_sides([conn], {"A": (0, 0), "B": (200, 0)})
        assert a.changed

    def test_congested_hub_is_rebalanced(self) -> None:
        positions = {"H": (0, 0)}
        conns = []
        for i in range(5):
            positions[f"S{i}"] = (200 * (i + 1), 0)
            conns.append(_conn(f"h{i}", "H", f"S{i}"))

        records: dict[str, list[ConnectionRecord]] = {}
        result = assign_snap_sides(conns, positions, records)

        hub_sides = Counter(a.start_snap for a in result)
        assert hub_sides[Side.RIGHT] < 5
        assert len(hub_sides) > 1
        assert Side.LEFT not in hub_sides
        assert all(a.end_snap == Side.LEFT for a in result)
        assert len(records["H"]) == 5

    def test_records_angles(self) -> None:
        records: dict[str, list[ConnectionRecord]] = {}
        assign_snap_sides([_conn("c", "A", "B")], {"A": (0, 0), "B": (0, 100)}, records)
        assert records["A"][0].angle == pytest.approx(90)
        assert records["B"][0].angle == pytest.approx(270)
        assert records["A"][0].snap_to == Side.BOTTOM
        assert records["B"][0].snap_to == Side.TOP

    def test_skips_unpositioned_endpoints(self) -> None:
        conns = [_conn("c1", "A", "ghost"), _conn("c2", "A", "B"), Connector("c3")]
        result = assign_snap_sides(conns, {"A": (0, 0), "B": (100, 0)})
        assert [a.connector_id for a in result] == ["c2"]
