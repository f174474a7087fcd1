"""
Connector Optimizer MCP Server — tidy diagram connectors via Model Context Protocol.

Exposes 4 tools that let an LLM agent build a board of shapes and
connectors, run the connector-layout optimizer on a selection, and save
or export the result.

Tools:
  1. board    — lifecycle: create, save, load, list, get_json, export_drawio
  2. draw     — content:  add nodes / connectors, delete items, select
  3. optimize — run:      connector optimization, align, distribute
  4. inspect  — read-only: items, connected component, layout penalty,
                           overlaps, info
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from connector_optimizer.arrange import auto_align, distribute_evenly
from connector_optimizer.collector import collect_connected
from connector_optimizer.export import board_to_drawio_xml
from connector_optimizer.grid_layout import evaluate_layout
from connector_optimizer.models import (
    Board,
    ConnectorShape,
    Edge,
    Node,
    OptimizationOptions,
)
from connector_optimizer.orchestrator import optimize_connectors
from connector_optimizer.validation import (
    ValidationError,
    validate_action,
    validate_board_dict,
    validate_bool,
    validate_connector_dict,
    validate_connector_shape,
    validate_file_path,
    validate_int,
    validate_list,
    validate_node_dict,
    validate_non_empty_string,
    validate_priority,
    validate_side,
    validate_spacing_factor,
    _BOARD_ACTIONS,
    _DRAW_ACTIONS,
    _INSPECT_ACTIONS,
    _OPTIMIZE_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging: keep routine FastMCP INFO messages off stderr.
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("connector-optimizer")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "connector-optimizer",
    instructions=(
        "MCP server for tidying diagram connectors.\n\n"
        "=== ONLY 4 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. board(action, ...) — lifecycle: create, save, load, list, get_json,\n"
        "   export_drawio.\n"
        "2. draw(action, ...) — content: add_nodes, add_connectors,\n"
        "   delete_items, select.\n"
        "3. optimize(action, ...) — connectors, align, distribute.\n"
        "4. inspect(action, ...) — read-only: items, component, penalty,\n"
        "   overlaps, info.\n\n"
        "=== HOW OPTIMIZATION WORKS ===\n"
        "- Select one or more shapes with draw(action='select').\n"
        "- optimize(action='connectors') finds every shape connected to the\n"
        "  selection, moves them onto a grid that avoids overlaps, edges\n"
        "  through shapes and crowded sides, then picks the top/right/bottom/\n"
        "  left side for each connector end and switches it to elbowed routing.\n"
        "- Coordinates are shape CENTRES.\n"
        "- The search is randomized; pass seed for repeatable results.\n"
        "- priority is accepted but currently has no effect.\n"
    ),
)

# In-memory board registry: name -> Board
# Guarded by _boards_lock for thread-safety.
_boards: dict[str, Board] = {}
_boards_lock = threading.Lock()


# ===================================================================
# TOOL 1: board, lifecycle
# ===================================================================

@mcp.tool()
def board(
    action: str,
    name: str = "",
    file_path: str = "",
) -> str:
    """Board lifecycle management.

    Actions:
      create        — Create a new empty board. Params: name.
      save          — Save board to a JSON file. Params: name, file_path.
      load          — Load a board JSON file from disk. Params: name, file_path.
      list          — List all in-memory boards. No params needed.
      get_json      — Get the board as JSON. Params: name.
      export_drawio — Write the board as a .drawio file (or return the XML
                      when file_path is empty). Params: name, file_path.

    Returns:
        Result string or JSON depending on action.
    """
    try:
        action = validate_action(action, "board", _BOARD_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        result = [
            {"name": n, "shapes": len(b.shapes), "connectors": len(b.connectors),
             "selected": len(b.selection)}
            for n, b in _boards.items()
        ]
        return json.dumps(result, indent=2)

    try:
        name = validate_non_empty_string(name, "name")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "create":
        with _boards_lock:
            _boards[name] = Board(name=name)
        return f"Board '{name}' created."

    if action == "load":
        try:
            validate_file_path(file_path, "file_path")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        path = Path(file_path)
        if not path.exists():
            return f"Error: file '{file_path}' not found."
        try:
            data = validate_board_dict(json.loads(path.read_text(encoding="utf-8")))
        except json.JSONDecodeError as exc:
            return f"Error: invalid JSON in '{file_path}': {exc}"
        except ValidationError as exc:
            return f"Error: {exc.message}"
        b = Board.from_dict(data)
        b.name = name
        with _boards_lock:
            _boards[name] = b
        return f"Loaded '{name}' with {len(b.shapes)} shape(s) and {len(b.connectors)} connector(s)."

    b = _boards.get(name)
    if not b:
        return f"Error: board '{name}' not found."

    if action == "save":
        try:
            validate_file_path(file_path, "file_path")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(b.to_dict(), indent=2), encoding="utf-8")
        return f"Board saved to {path.resolve()}"

    if action == "get_json":
        return json.dumps(b.to_dict(), indent=2)

    # export_drawio
    xml = board_to_drawio_xml(b)
    if not file_path.strip():
        return xml
    path = Path(file_path.strip())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(xml, encoding="utf-8")
    return f"Board exported to {path.resolve()}"


# ===================================================================
# TOOL 2: draw, content
# ===================================================================

@mcp.tool()
def draw(
    action: str,
    board_name: str = "",
    nodes: list[dict[str, Any]] | None = None,
    connectors: list[dict[str, Any]] | None = None,
    item_ids: list[str] | None = None,
) -> str:
    """Add, delete and select board items.

    Actions:
      add_nodes      — Add shapes. Params: nodes (list of {x, y, width?,
                       height?, label?, id?}). Returns the new IDs.
      add_connectors — Add connectors. Params: connectors (list of
                       {source_id, target_id, shape?, start_snap?, end_snap?,
                       label?, id?}). Returns the new IDs.
      delete_items   — Delete shapes (with their connectors) or connectors.
                       Params: item_ids.
      select         — Replace the selection. Params: item_ids.

    Returns:
        JSON list of IDs or confirmation message.
    """
    try:
        action = validate_action(action, "draw", _DRAW_ACTIONS)
        validate_non_empty_string(board_name, "board_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    b = _boards.get(board_name)
    if not b:
        return f"Error: board '{board_name}' not found."

    if action == "add_nodes":
        try:
            validate_list(nodes, "nodes", min_length=1)
            new_ids: set[str] = set()
            for i, v in enumerate(nodes):
                validate_node_dict(v, i)
                _check_new_id(b, v.get("id"), new_ids, f"Node at index {i}")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        ids = [
            b.add_shape(
                v["x"], v["y"],
                v.get("width", 100), v.get("height", 100),
                label=v.get("label", ""),
                item_id=v.get("id"),
            )
            for v in nodes
        ]
        return json.dumps(ids)

    if action == "add_connectors":
        try:
            validate_list(connectors, "connectors", min_length=1)
            new_ids = set()
            for i, c in enumerate(connectors):
                validate_connector_dict(c, i)
                for key in ("source_id", "target_id"):
                    if c[key] not in b.shapes:
                        raise ValidationError(
                            f"Connector at index {i}: {key} '{c[key]}' not found."
                        )
                _check_new_id(b, c.get("id"), new_ids, f"Connector at index {i}")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        ids: list[str] = []
        for i, c in enumerate(connectors):
            ids.append(b.add_connector(
                c["source_id"],
                c["target_id"],
                shape=validate_connector_shape(c.get("shape", "straight"), "shape"),
                start_snap=validate_side(c["start_snap"], "start_snap") if c.get("start_snap") else None,
                end_snap=validate_side(c["end_snap"], "end_snap") if c.get("end_snap") else None,
                label=c.get("label", ""),
                item_id=c.get("id"),
            ))
        return json.dumps(ids)

    try:
        validate_list(item_ids, "item_ids", min_length=1)
        for i, item_id in enumerate(item_ids):
            validate_non_empty_string(item_id, f"item_ids[{i}]")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "delete_items":
        removed = [i for i in item_ids if b.remove_item(i)]
        missing = [i for i in item_ids if i not in removed]
        msg = f"Deleted {len(removed)} item(s)."
        if missing:
            msg += f" Not found: {', '.join(missing)}."
        return msg

    # select
    b.select(item_ids)
    return f"Selected {len(b.selection)} item(s)."


# ===================================================================
# TOOL 3: optimize, run the optimizer
# ===================================================================

@mcp.tool()
async def optimize(
    action: str,
    board_name: str = "",
    item_ids: list[str] | None = None,
    allow_movement: bool = True,
    spacing_factor: float = 1.5,
    priority: int = 50,
    seed: int | None = None,
) -> str:
    """Optimize the connectors of, align, or distribute the selection.

    Actions:
      connectors — Collect every shape connected to the selection, re-lay
                   them out on a grid (unless allow_movement is false) and
                   assign connector snap sides. Params: allow_movement,
                   spacing_factor, priority (reserved), seed.
      align      — Put the selected shapes on one row or column.
      distribute — Space the selected shapes evenly. Params: spacing_factor.

    item_ids, when given, replaces the board selection first.

    Returns:
        JSON summary {success, message, objectsProcessed, connectorsOptimized?}.
    """
    try:
        action = validate_action(action, "optimize", _OPTIMIZE_ACTIONS)
        validate_non_empty_string(board_name, "board_name")
        validate_bool(allow_movement, "allow_movement")
        validate_spacing_factor(spacing_factor)
        validate_priority(priority)
        if seed is not None:
            validate_int(seed, "seed")
        if item_ids is not None:
            validate_list(item_ids, "item_ids")
            for i, item_id in enumerate(item_ids):
                validate_non_empty_string(item_id, f"item_ids[{i}]")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    b = _boards.get(board_name)
    if not b:
        return f"Error: board '{board_name}' not found."
    if item_ids is not None:
        b.select(item_ids)

    if action == "connectors":
        options = OptimizationOptions(
            allow_movement=allow_movement,
            spacing_factor=spacing_factor,
            priority=priority,
            seed=seed,
        )
        result = await optimize_connectors(b, options)
    elif action == "align":
        result = await auto_align(b)
    else:
        result = await distribute_evenly(b, spacing_factor)
    return json.dumps(result.to_dict(), indent=2)


# ===================================================================
# TOOL 4: inspect, read-only
# ===================================================================

@mcp.tool()
async def inspect(
    action: str,
    board_name: str = "",
    spacing_factor: float = 1.5,
    margin: float = 0,
) -> str:
    """Read-only inspection of boards.

    Actions:
      items     — List all shapes and connectors.
      component — IDs of every shape connected to the current selection.
      penalty   — Grid cost of the current layout (overlap, pass_through,
                  congestion, distance, penalty, total). Params: spacing_factor.
      overlaps  — Pairs of overlapping shapes. Params: margin.
      info      — Board summary.

    Returns:
        JSON data or formatted text.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        validate_non_empty_string(board_name, "board_name")
        spacing_factor = validate_spacing_factor(spacing_factor)
    except ValidationError as exc:
        return f"Error: {exc.message}"
    b = _boards.get(board_name)
    if not b:
        return f"Error: board '{board_name}' not found."

    if action == "items":
        return json.dumps(b.to_dict()["items"], indent=2)

    if action == "component":
        seeds: list[str] = []
        for item in await b.get_selection():
            if item.id in b.connectors:
                seeds += [i for i in (item.start.item, item.end.item) if i]
            else:
                seeds.append(item.id)
        found = await collect_connected(seeds, b)
        return json.dumps(sorted(i for i in found if i in b.shapes))

    if action == "penalty":
        nodes = [Node.from_shape(s) for s in b.shapes.values()]
        edges = [
            Edge(c.start.item, c.end.item)
            for c in b.connectors.values()
            if c.start.item and c.end.item
        ]
        return json.dumps(evaluate_layout(nodes, edges, spacing_factor), indent=2)

    if action == "overlaps":
        shapes = list(b.shapes.values())
        pairs = [
            {"shape_a": a.id, "shape_b": c.id}
            for i, a in enumerate(shapes)
            for c in shapes[i + 1:]
            if a.bounds.intersects(c.bounds, margin)
        ]
        if not pairs:
            return "No overlaps found. Board is clean!"
        return json.dumps(pairs, indent=2)

    # info
    elbowed = sum(1 for c in b.connectors.values() if c.shape == ConnectorShape.ELBOWED)
    return json.dumps({
        "name": b.name,
        "shapes": len(b.shapes),
        "connectors": len(b.connectors),
        "elbowed_connectors": elbowed,
        "selection": list(b.selection),
    }, indent=2)


# ===================================================================
# Helpers
# ===================================================================

def _check_new_id(b: Board, item_id: Any, batch: set[str], where: str) -> None:
    """Reject an explicit id already used on the board or earlier in *batch*."""
    if item_id is None:
        return
    if b.has_id(item_id) or item_id in batch:
        raise ValidationError(f"{where}: id '{item_id}' already exists.")
    batch.add(item_id)


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
