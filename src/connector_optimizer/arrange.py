"""
Align and distribute helpers for a board selection.

Both operate on the selected shapes only (connectors are ignored), pick
their axis from the spread of the selection and write positions back
best-effort through the board's commit call.
"""

from __future__ import annotations

import logging

from connector_optimizer.models import ArrangeResult, BoardItem, GraphAccess, ItemType, Shape
from connector_optimizer.validation import ValidationError, validate_spacing_factor

logger = logging.getLogger("connector-optimizer")


async def auto_align(
    graph: GraphAccess,
    selection: list[BoardItem] | None = None,
) -> ArrangeResult:
    """Line up the selected shapes on a common centre line.

    When the selection spreads further horizontally than vertically the
    shapes are put on one row (same y), otherwise on one column (same x).
    Needs at least two shapes.
    """
    try:
        shapes = await _selected_shapes(graph, selection)
        if len(shapes) < 2:
            return ArrangeResult(False, "Select at least 2 objects (excluding connectors).")

        min_x, max_x, min_y, max_y = _extent(shapes)
        if max_x - min_x > max_y - min_y:
            centre = (min_y + max_y) / 2
            await _commit_all(graph, [(s, s.x, centre) for s in shapes])
            return ArrangeResult(True, f"Aligned {len(shapes)} object(s) on a row.", len(shapes))

        centre = (min_x + max_x) / 2
        await _commit_all(graph, [(s, centre, s.y) for s in shapes])
        return ArrangeResult(True, f"Aligned {len(shapes)} object(s) on a column.", len(shapes))
    except Exception as exc:
        logger.exception("Error aligning objects")
        return ArrangeResult(False, f"Alignment failed: {exc}")


async def distribute_evenly(
    graph: GraphAccess,
    spacing_factor: float = 1.5,
    selection: list[BoardItem] | None = None,
) -> ArrangeResult:
    """Space the selected shapes at equal centre-to-centre distances.

    Shapes are sorted along the axis of greatest spread and placed
    ``mean size × spacing_factor`` apart, starting from the first shape,
    which keeps its position. A factor of 1.0 makes the shapes touch.
    Needs at least three shapes.
    """
    try:
        validate_spacing_factor(spacing_factor)
    except ValidationError as exc:
        return ArrangeResult(False, f"Invalid options: {exc.message}")

    try:
        shapes = await _selected_shapes(graph, selection)
        if len(shapes) < 3:
            return ArrangeResult(False, "Select at least 3 objects (excluding connectors).")

        min_x, max_x, min_y, max_y = _extent(shapes)
        if max_x - min_x > max_y - min_y:
            ordered = sorted(shapes, key=lambda s: s.x)
            step = sum(s.width for s in ordered) / len(ordered) * spacing_factor
            start = ordered[0].x
            moves = [(s, start + i * step, s.y) for i, s in enumerate(ordered)]
            axis = "horizontally"
        else:
            ordered = sorted(shapes, key=lambda s: s.y)
            step = sum(s.height for s in ordered) / len(ordered) * spacing_factor
            start = ordered[0].y
            moves = [(s, s.x, start + i * step) for i, s in enumerate(ordered)]
            axis = "vertically"

        await _commit_all(graph, moves)
        return ArrangeResult(
            True,
            f"Distributed {len(shapes)} object(s) {axis} (spacing x{spacing_factor:g}).",
            len(shapes),
        )
    except Exception as exc:
        logger.exception("Error distributing objects")
        return ArrangeResult(False, f"Distribution failed: {exc}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _selected_shapes(
    graph: GraphAccess,
    selection: list[BoardItem] | None,
) -> list[Shape]:
    if selection is None:
        selection = await graph.get_selection()
    return [item for item in selection if item is not None and item.type != ItemType.CONNECTOR]


def _extent(shapes: list[Shape]) -> tuple[float, float, float, float]:
    xs = [s.x for s in shapes]
    ys = [s.y for s in shapes]
    return min(xs), max(xs), min(ys), max(ys)


async def _commit_all(graph: GraphAccess, moves: list[tuple[Shape, float, float]]) -> int:
    """Write each new position; failures are logged and skipped."""
    done = 0
    for shape, x, y in moves:
        try:
            ok = await graph.commit_position(shape.id, x, y)
        except Exception as exc:
            logger.warning("Failed to sync item %s: %s", shape.id, exc)
            continue
        if ok:
            done += 1
        else:
            logger.warning("Failed to sync item %s", shape.id)
    return done
