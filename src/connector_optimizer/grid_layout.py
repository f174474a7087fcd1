"""
Grid-based layout optimizer for connected diagram shapes.

Maps shapes onto an integer grid and searches for a placement that keeps
every shape in its own cell, avoids edges running through shapes, spreads
neighbours over the four sides of each shape and keeps edges short:

1. Initial placement — round each position to the nearest cell, resolving
   collisions with an outward spiral search.
2. Simulated annealing — random swaps and single-cell nudges, accepted by
   the Metropolis rule under a geometrically cooling temperature.
3. Iterative repair — greedy single-cell moves that strictly lower the
   constraint penalty, until no move helps.
4. Compaction — drop empty rows and columns.
5. De-gridding — convert cells back to coordinates centred on the
   original selection.

The search is randomized. Pass a seeded ``random.Random`` for repeatable
results; unseeded runs differ from one call to the next.
"""

from __future__ import annotations

import logging
import math
import random
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from connector_optimizer.models import Edge, GridNode, Node, OptimizationOptions

logger = logging.getLogger("connector-optimizer")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class GridSearchConfig:
    """Constants of the grid search."""
    # Grid
    fallback_cell_size: float = 100
    max_spiral_radius: int = 20

    # Cost weights
    overlap_penalty: float = 100000    # Per extra shape sharing a cell
    pass_through_penalty: float = 1000  # Per shape sitting on a straight edge
    congestion_penalty: float = 500     # Per extra neighbour on one side
    distance_weight: float = 10         # Per cell of Manhattan edge length

    # Phase 1: simulated annealing
    anneal_iterations: int = 2000
    initial_temperature: float = 100
    cooling_rate: float = 0.95
    swap_probability: float = 0.5

    # Phase 2: iterative repair
    max_repair_passes: int = 500


@dataclass
class LayoutReport:
    """Outcome of one grid search."""
    positions: dict[str, tuple[float, float]] = field(default_factory=dict)
    cell_width: float = 0
    cell_height: float = 0
    initial_cost: float = 0
    final_cost: float = 0
    final_penalty: float = 0
    accepted_moves: int = 0
    repair_passes: int = 0


_NUDGES = [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)]
_REPAIR_MOVES = [(0, -1), (0, 1), (-1, 0), (1, 0)]


# ---------------------------------------------------------------------------
# Grid state
# ---------------------------------------------------------------------------

class _Grid:
    """Cell occupancy of the grid nodes plus the edges the cost runs over.

    Occupancy maps a cell to the ids placed on it. Outside a move, a cell
    holds more than one id only when the spiral search gave up and
    force-placed a node.
    """

    def __init__(
        self,
        grid_nodes: list[GridNode],
        edges: list[Edge],
        config: GridSearchConfig,
    ) -> None:
        self.nodes = grid_nodes
        self.by_id: dict[str, GridNode] = {n.id: n for n in grid_nodes}
        self.edges = edges
        self.cfg = config
        self.occupancy: dict[tuple[int, int], list[str]] = defaultdict(list)
        for n in grid_nodes:
            self.place(n)
        self.neighbors: dict[str, list[str]] = defaultdict(list)
        for e in edges:
            self.neighbors[e.source_id].append(e.target_id)
            self.neighbors[e.target_id].append(e.source_id)

    # ----- occupancy -----

    def is_empty(self, cell: tuple[int, int]) -> bool:
        return not self.occupancy.get(cell)

    def place(self, node: GridNode) -> None:
        self.occupancy[node.cell].append(node.id)

    def _vacate(self, node: GridNode) -> None:
        ids = self.occupancy[node.cell]
        ids.remove(node.id)
        if not ids:
            del self.occupancy[node.cell]

    def move(self, node: GridNode, gx: int, gy: int) -> None:
        self._vacate(node)
        node.gx, node.gy = gx, gy
        self.place(node)

    def swap(self, a: GridNode, b: GridNode) -> None:
        self._vacate(a)
        self._vacate(b)
        a.gx, a.gy, b.gx, b.gy = b.gx, b.gy, a.gx, a.gy
        self.place(a)
        self.place(b)

    # ----- cost -----

    def breakdown(self) -> dict[str, float]:
        """Return every cost component by name."""
        cfg = self.cfg

        overlap = 0.0
        for ids in self.occupancy.values():
            if len(ids) > 1:
                overlap += (len(ids) - 1) * cfg.overlap_penalty

        pass_through = 0.0
        distance = 0.0
        for e in self.edges:
            s = self.by_id[e.source_id]
            t = self.by_id[e.target_id]
            distance += (abs(s.gx - t.gx) + abs(s.gy - t.gy)) * cfg.distance_weight
            if s.gx != t.gx and s.gy != t.gy:
                continue
            # Linear in node count, independent of the gap in cells
            lo_x, hi_x = sorted((s.gx, t.gx))
            lo_y, hi_y = sorted((s.gy, t.gy))
            for n in self.nodes:
                if n is s or n is t:
                    continue
                if s.gy == t.gy and n.gy == s.gy and lo_x < n.gx < hi_x:
                    pass_through += cfg.pass_through_penalty
                elif s.gx == t.gx and n.gx == s.gx and lo_y < n.gy < hi_y:
                    pass_through += cfg.pass_through_penalty

        congestion = 0.0
        for node in self.nodes:
            ports = {"top": 0, "right": 0, "bottom": 0, "left": 0}
            for nid in self.neighbors.get(node.id, ()):
                nb = self.by_id[nid]
                dx = nb.gx - node.gx
                dy = nb.gy - node.gy
                if abs(dx) > abs(dy):
                    ports["right" if dx > 0 else "left"] += 1
                else:
                    ports["bottom" if dy > 0 else "top"] += 1
            for count in ports.values():
                if count > 1:
                    congestion += (count - 1) * cfg.congestion_penalty

        return {
            "overlap": overlap,
            "pass_through": pass_through,
            "congestion": congestion,
            "distance": distance,
        }

    def penalty(self) -> float:
        b = self.breakdown()
        return b["overlap"] + b["pass_through"] + b["congestion"]

    def cost(self) -> float:
        return sum(self.breakdown().values())


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def optimize_grid_layout(
    nodes: list[Node],
    edges: list[Edge],
    options: OptimizationOptions | None = None,
    config: GridSearchConfig | None = None,
    rng: random.Random | None = None,
) -> dict[str, tuple[float, float]]:
    """Compute new centre positions for *nodes*.

    Edges whose endpoints are not both in *nodes* are ignored. The result
    is randomized; pass a seeded *rng* (or set ``options.seed``) to make it
    reproducible.

    Returns:
        Dict mapping node id → (new_x, new_y).
    """
    return run_grid_search(nodes, edges, options, config, rng).positions


def run_grid_search(
    nodes: list[Node],
    edges: list[Edge],
    options: OptimizationOptions | None = None,
    config: GridSearchConfig | None = None,
    rng: random.Random | None = None,
) -> LayoutReport:
    """Run the full grid search and return positions with search statistics."""
    opts = options or OptimizationOptions()
    cfg = config or GridSearchConfig()
    if rng is None:
        rng = random.Random(opts.seed)

    cell_w, cell_h = compute_cell_size(nodes, opts.spacing_factor, cfg)
    report = LayoutReport(cell_width=cell_w, cell_height=cell_h)
    if not nodes:
        return report

    valid_edges = filter_edges(nodes, edges)
    grid = _Grid(_initial_placement(nodes, cell_w, cell_h, cfg), valid_edges, cfg)
    report.initial_cost = grid.cost()

    report.accepted_moves = _anneal(grid, cfg, rng)
    report.repair_passes = _repair(grid, cfg, rng)
    report.final_penalty = grid.penalty()
    report.final_cost = grid.cost()

    logger.debug(
        "Grid search on %d nodes / %d edges: cost %.0f -> %.0f, "
        "%d accepted moves, %d repair passes, residual penalty %.0f",
        len(nodes), len(valid_edges), report.initial_cost, report.final_cost,
        report.accepted_moves, report.repair_passes, report.final_penalty,
    )

    _compact(grid.nodes)
    report.positions = _to_coordinates(nodes, grid.nodes, cell_w, cell_h)
    return report


def evaluate_layout(
    nodes: list[Node],
    edges: list[Edge],
    spacing_factor: float = 1.5,
    config: GridSearchConfig | None = None,
) -> dict[str, float]:
    """Score the current positions without searching.

    Places *nodes* on the grid exactly as the first step of the search does
    and returns the cost components plus ``penalty`` and ``total``.
    """
    cfg = config or GridSearchConfig()
    cell_w, cell_h = compute_cell_size(nodes, spacing_factor, cfg)
    grid = _Grid(
        _initial_placement(nodes, cell_w, cell_h, cfg),
        filter_edges(nodes, edges),
        cfg,
    )
    scores = grid.breakdown()
    scores["penalty"] = scores["overlap"] + scores["pass_through"] + scores["congestion"]
    scores["total"] = scores["penalty"] + scores["distance"]
    return scores


def compute_cell_size(
    nodes: list[Node],
    spacing_factor: float,
    config: GridSearchConfig | None = None,
) -> tuple[float, float]:
    """Grid cell size per axis: mean node size × spacing factor."""
    cfg = config or GridSearchConfig()
    if not nodes:
        return cfg.fallback_cell_size, cfg.fallback_cell_size
    avg_w = sum(n.width for n in nodes) / len(nodes)
    avg_h = sum(n.height for n in nodes) / len(nodes)
    return avg_w * spacing_factor, avg_h * spacing_factor


def filter_edges(nodes: list[Node], edges: list[Edge]) -> list[Edge]:
    """Keep only edges whose endpoints are both in *nodes*."""
    ids = {n.id for n in nodes}
    kept = [e for e in edges if e.source_id in ids and e.target_id in ids]
    if len(kept) != len(edges):
        logger.debug("Dropped %d edge(s) with unknown endpoints", len(edges) - len(kept))
    return kept


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

def _initial_placement(
    nodes: list[Node],
    cell_w: float,
    cell_h: float,
    cfg: GridSearchConfig,
) -> list[GridNode]:
    """Snap nodes to their nearest cell, spiralling outwards on collision."""
    taken: set[tuple[int, int]] = set()
    placed: list[GridNode] = []

    for n in nodes:
        gn = GridNode(
            id=n.id,
            gx=round(n.x / cell_w),
            gy=round(n.y / cell_h),
            orig_x=n.x,
            orig_y=n.y,
        )
        if gn.cell in taken:
            spot = _spiral_search(gn.gx, gn.gy, taken, cfg.max_spiral_radius)
            if spot is None:
                logger.debug("No free cell near (%d, %d) for %s; force-placing", gn.gx, gn.gy, n.id)
            else:
                gn.gx, gn.gy = spot
        taken.add(gn.cell)
        placed.append(gn)

    return placed


def _spiral_search(
    gx: int,
    gy: int,
    taken: set[tuple[int, int]],
    max_radius: int,
) -> Optional[tuple[int, int]]:
    """Find the nearest free cell scanning square rings of growing radius."""
    for r in range(1, max_radius + 1):
        for dx in range(-r, r + 1):
            for dy in range(-r, r + 1):
                # Ring perimeter only
                if abs(dx) != r and abs(dy) != r:
                    continue
                cell = (gx + dx, gy + dy)
                if cell not in taken:
                    return cell
    return None


def _anneal(grid: _Grid, cfg: GridSearchConfig, rng: random.Random) -> int:
    """Phase 1: simulated annealing. Returns the number of accepted moves."""
    nodes = grid.nodes
    current = grid.cost()
    temperature = cfg.initial_temperature
    accepted = 0

    for _ in range(cfg.anneal_iterations):
        if rng.random() < cfg.swap_probability:
            i = rng.randrange(len(nodes))
            j = rng.randrange(len(nodes))
            if i != j:
                a, b = nodes[i], nodes[j]
                grid.swap(a, b)
                new = grid.cost()
                if _accept(new - current, temperature, rng):
                    current = new
                    accepted += 1
                else:
                    grid.swap(a, b)
        else:
            node = nodes[rng.randrange(len(nodes))]
            dx, dy = rng.choice(_NUDGES)
            target = (node.gx + dx, node.gy + dy)
            if grid.is_empty(target):
                old = node.cell
                grid.move(node, *target)
                new = grid.cost()
                if _accept(new - current, temperature, rng):
                    current = new
                    accepted += 1
                else:
                    grid.move(node, *old)
        temperature *= cfg.cooling_rate

    return accepted


def _accept(delta: float, temperature: float, rng: random.Random) -> bool:
    """Metropolis acceptance rule."""
    if delta <= 0:
        return True
    if temperature <= 0:
        return False
    return rng.random() < math.exp(-delta / temperature)


def _repair(grid: _Grid, cfg: GridSearchConfig, rng: random.Random) -> int:
    """Phase 2: greedy penalty descent. Returns the number of passes run."""
    penalty = grid.penalty()
    passes = 0

    while penalty > 0 and passes < cfg.max_repair_passes:
        passes += 1
        improved = False
        order = list(grid.nodes)
        rng.shuffle(order)

        for node in order:
            best_penalty = grid.penalty()
            best_cell: Optional[tuple[int, int]] = None
            origin = node.cell

            for dx, dy in _REPAIR_MOVES:
                cell = (origin[0] + dx, origin[1] + dy)
                if not grid.is_empty(cell):
                    continue
                grid.move(node, *cell)
                trial = grid.penalty()
                grid.move(node, *origin)
                if trial < best_penalty:
                    best_penalty = trial
                    best_cell = cell

            if best_cell is not None:
                grid.move(node, *best_cell)
                improved = True

        penalty = grid.penalty()
        if not improved:
            break

    return passes


def _compact(grid_nodes: list[GridNode]) -> None:
    """Remap used columns and rows onto a dense 0..k range."""
    xs = {v: i for i, v in enumerate(sorted({n.gx for n in grid_nodes}))}
    ys = {v: i for i, v in enumerate(sorted({n.gy for n in grid_nodes}))}
    for n in grid_nodes:
        n.gx = xs[n.gx]
        n.gy = ys[n.gy]


def _to_coordinates(
    nodes: list[Node],
    grid_nodes: list[GridNode],
    cell_w: float,
    cell_h: float,
) -> dict[str, tuple[float, float]]:
    """Convert cells to coordinates, anchoring the grid centroid on the
    centroid of the original positions."""
    grid_cx = sum(n.gx for n in grid_nodes) / len(grid_nodes)
    grid_cy = sum(n.gy for n in grid_nodes) / len(grid_nodes)
    orig_cx = sum(n.x for n in nodes) / len(nodes)
    orig_cy = sum(n.y for n in nodes) / len(nodes)

    return {
        gn.id: (
            orig_cx + (gn.gx - grid_cx) * cell_w,
            orig_cy + (gn.gy - grid_cy) * cell_h,
        )
        for gn in grid_nodes
    }
