"""Tests for the connector optimization pipeline."""

import asyncio
import logging

from connector_optimizer.grid_layout import GridSearchConfig
from connector_optimizer.models import (
    Board,
    ConnectorShape,
    OptimizationOptions,
    Side,
)
from connector_optimizer.orchestrator import optimize_connectors


class _FlakyBoard(Board):
    """Board whose position commits fail for some ids."""

    def __init__(self, failing: set[str], raise_on_fail: bool = False, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failing = failing
        self.raise_on_fail = raise_on_fail

    async def commit_position(self, node_id: str, x: float, y: float) -> bool:
        if node_id in self.failing:
            if self.raise_on_fail:
                raise ConnectionError(f"sync of {node_id} timed out")
            return False
        return await super().commit_position(node_id, x, y)


class _BrokenBoard(Board):
    async def get_selection(self):
        raise RuntimeError("board went away")


class _ReadOnlyBoard(Board):
    async def commit_position(self, node_id: str, x: float, y: float) -> bool:
        return False

    async def commit_connector(self, connector_id, start_snap, end_snap, shape) -> bool:
        return False


def _run(board: Board, **kwargs):
    return asyncio.run(optimize_connectors(board, **kwargs))


def _pair_board(cls=Board, **kwargs) -> Board:
    b = cls(**kwargs)
    b.add_shape(0, 0, item_id="A")
    b.add_shape(300, 0, item_id="B")
    b.add_connector("A", "B", item_id="ab")
    b.select(["A"])
    return b


# ===================================================================
# Input handling
# ===================================================================

def test_empty_selection_is_rejected(chain_board: Board) -> None:
    result = _run(chain_board)
    assert not result.success
    assert "No objects selected" in result.message
    assert result.objects_processed == 0
    assert result.connectors_optimized == 0


def test_invalid_options_are_rejected(chain_board: Board) -> None:
    chain_board.select(["A"])
    result = _run(chain_board, options=OptimizationOptions(spacing_factor=0))
    assert not result.success
    assert "spacing_factor" in result.message
    assert chain_board.connectors["ab"].shape == ConnectorShape.STRAIGHT


def test_priority_out_of_range_is_rejected(chain_board: Board) -> None:
    chain_board.select(["A"])
    result = _run(chain_board, options=OptimizationOptions(priority=101))
    assert not result.success
    assert "priority" in result.message


def test_unexpected_failure_becomes_result() -> None:
    result = _run(_BrokenBoard())
    assert not result.success
    assert "board went away" in result.message


# ===================================================================
# Pipeline
# ===================================================================

def test_snap_only_keeps_positions(chain_board: Board) -> None:
    chain_board.select(["A"])
    result = _run(chain_board, options=OptimizationOptions(allow_movement=False))

    assert result.success
    assert result.objects_processed == 3
    assert result.connectors_optimized == 2
    assert (chain_board.shapes["B"].x, chain_board.shapes["B"].y) == (300, 0)

    ab = chain_board.connectors["ab"]
    bc = chain_board.connectors["bc"]
    assert (ab.start.snap_to, ab.end.snap_to) == (Side.RIGHT, Side.LEFT)
    assert (bc.start.snap_to, bc.end.snap_to) == (Side.RIGHT, Side.LEFT)
    assert ab.shape == bc.shape == ConnectorShape.ELBOWED


def test_second_run_changes_nothing(chain_board: Board) -> None:
    chain_board.select(["A"])
    opts = OptimizationOptions(allow_movement=False)
    _run(chain_board, options=opts)
    result = _run(chain_board, options=opts)
    assert result.success
    assert result.connectors_optimized == 0


def test_unconnected_shapes_are_untouched(chain_board: Board) -> None:
    chain_board.select(["B"])
    result = _run(chain_board, options=OptimizationOptions(seed=1))
    assert result.objects_processed == 3
    assert (chain_board.shapes["D"].x, chain_board.shapes["D"].y) == (0, 600)


def test_movement_separates_stacked_shapes() -> None:
    b = Board()
    for sid in "ABCD":
        b.add_shape(0, 0, item_id=sid)
    b.add_connector("A", "B")
    b.add_connector("B", "C")
    b.add_connector("C", "D")
    b.select(["A"])

    result = _run(b, options=OptimizationOptions(seed=3))

    assert result.success
    assert result.objects_processed == 4
    positions = {(s.x, s.y) for s in b.shapes.values()}
    assert len(positions) == 4
    for conn in b.connectors.values():
        assert conn.start.snap_to in set(Side)
        assert conn.end.snap_to in set(Side)


def test_seeded_runs_are_reproducible() -> None:
    def layout(priority: int) -> dict:
        b = Board()
        for i, sid in enumerate("ABCDE"):
            b.add_shape(i * 37.0, (i % 2) * 91.0, item_id=sid)
        for s, t in ["AB", "AC", "AD", "BE", "CE"]:
            b.add_connector(s, t)
        b.select(["A"])
        opts = OptimizationOptions(seed=11, priority=priority)
        _run(b, options=opts, config=GridSearchConfig(anneal_iterations=300))
        return {sid: (s.x, s.y) for sid, s in b.shapes.items()}

    # priority is reserved and must not change the outcome
    assert layout(0) == layout(100)


def test_selected_connector_seeds_its_endpoints(chain_board: Board) -> None:
    result = _run(
        chain_board,
        options=OptimizationOptions(allow_movement=False),
        selection=[chain_board.connectors["bc"]],
    )
    assert result.success
    assert result.objects_processed == 3


def test_dangling_connector_is_not_counted() -> None:
    b = _pair_board()
    b.add_connector("B", "ghost", item_id="dangling")
    result = _run(b, options=OptimizationOptions(allow_movement=False))
    assert result.success
    assert result.objects_processed == 2
    assert result.connectors_optimized == 1
    assert b.connectors["dangling"].shape == ConnectorShape.STRAIGHT


def test_congested_hub_spreads_over_sides(star_board: Board) -> None:
    star_board.select(["H"])
    result = _run(star_board, options=OptimizationOptions(allow_movement=False))
    assert result.connectors_optimized == 5
    hub_sides = [c.start.snap_to for c in star_board.connectors.values()]
    assert hub_sides.count(Side.RIGHT) < 5


# ===================================================================
# Persistence failures
# ===================================================================

def test_partial_persistence_still_succeeds(caplog) -> None:
    b = _pair_board(_FlakyBoard, failing={"A"})
    with caplog.at_level(logging.WARNING, logger="connector-optimizer"):
        result = _run(b, options=OptimizationOptions(seed=0))
    assert result.success
    assert result.objects_processed == 2
    assert "Failed to sync item A" in caplog.text


def test_raising_commit_is_isolated(caplog) -> None:
    b = _pair_board(_FlakyBoard, failing={"A"}, raise_on_fail=True)
    with caplog.at_level(logging.WARNING, logger="connector-optimizer"):
        result = _run(b, options=OptimizationOptions(seed=0))
    assert result.success
    assert result.connectors_optimized == 1
    assert "timed out" in caplog.text


def test_all_writes_failing_is_a_failure() -> None:
    b = _pair_board(_ReadOnlyBoard)
    result = _run(b, options=OptimizationOptions(seed=0))
    assert not result.success
    assert result.connectors_optimized == 0
    assert result.objects_processed == 2
