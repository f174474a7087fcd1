"""
Core model classes for connector-layout optimization.

Provides the typed items a board exposes (shapes and connectors), the
transient views the optimizer works on (nodes, edges, grid nodes), the
options/result records of an optimization run, and an in-memory ``Board``
that implements the graph-access protocol the optimizer depends on.

Coordinates are centre-based: ``x``/``y`` locate the middle of a shape.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol, Union


DEFAULT_NODE_SIZE = 100.0


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Side(str, Enum):
    """Face of a shape where a connector endpoint attaches."""
    TOP = "top"
    RIGHT = "right"
    BOTTOM = "bottom"
    LEFT = "left"


class ConnectorShape(str, Enum):
    """Routing style of a connector."""
    STRAIGHT = "straight"
    ELBOWED = "elbowed"
    CURVED = "curved"


class ItemType(str, Enum):
    SHAPE = "shape"
    CONNECTOR = "connector"


# ---------------------------------------------------------------------------
# Board items
# ---------------------------------------------------------------------------

@dataclass
class Shape:
    """A drawable node on the board."""
    id: str
    x: float
    y: float
    width: float = DEFAULT_NODE_SIZE
    height: float = DEFAULT_NODE_SIZE
    label: str = ""
    type: ItemType = field(default=ItemType.SHAPE, init=False)

    @property
    def bounds(self) -> CellBounds:
        return CellBounds(
            self.x - self.width / 2,
            self.y - self.height / 2,
            self.width,
            self.height,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "label": self.label,
        }


@dataclass
class ConnectorEnd:
    """One endpoint of a connector: the item it is attached to and the side."""
    item: Optional[str] = None
    snap_to: Optional[Side] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "item": self.item,
            "snapTo": self.snap_to.value if self.snap_to else None,
        }


@dataclass
class Connector:
    """A line between two shapes."""
    id: str
    start: ConnectorEnd = field(default_factory=ConnectorEnd)
    end: ConnectorEnd = field(default_factory=ConnectorEnd)
    shape: ConnectorShape = ConnectorShape.STRAIGHT
    label: str = ""
    type: ItemType = field(default=ItemType.CONNECTOR, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
            "shape": self.shape.value,
            "label": self.label,
        }


BoardItem = Union[Shape, Connector]


# ---------------------------------------------------------------------------
# Optimizer views
# ---------------------------------------------------------------------------

@dataclass
class Node:
    """Layout view of a shape: id, centre position and size."""
    id: str
    x: float
    y: float
    width: float = DEFAULT_NODE_SIZE
    height: float = DEFAULT_NODE_SIZE

    @classmethod
    def from_shape(cls, shape: Shape) -> Node:
        # Unknown or degenerate sizes fall back to the default.
        width = shape.width if shape.width and shape.width > 0 else DEFAULT_NODE_SIZE
        height = shape.height if shape.height and shape.height > 0 else DEFAULT_NODE_SIZE
        return cls(shape.id, shape.x, shape.y, width, height)


@dataclass
class Edge:
    """Layout view of a connector."""
    source_id: str
    target_id: str


@dataclass
class GridNode:
    """A node snapped to an abstract grid cell for one optimization call."""
    id: str
    gx: int
    gy: int
    orig_x: float
    orig_y: float

    @property
    def cell(self) -> tuple[int, int]:
        return (self.gx, self.gy)


@dataclass
class ConnectionRecord:
    """Side already assigned to one connector endpoint on a node."""
    angle: float
    snap_to: Side


# ---------------------------------------------------------------------------
# Options / results
# ---------------------------------------------------------------------------

@dataclass
class OptimizationOptions:
    """User-facing options for a connector optimization run.

    ``priority`` is accepted and validated but reserved: nothing in the
    search consults it. ``seed`` makes the randomized search reproducible.
    """
    allow_movement: bool = True
    spacing_factor: float = 1.5
    priority: int = 50
    seed: Optional[int] = None


@dataclass
class OptimizationResult:
    """Summary of one optimization run."""
    success: bool
    message: str
    objects_processed: int = 0
    connectors_optimized: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "objectsProcessed": self.objects_processed,
            "connectorsOptimized": self.connectors_optimized,
        }


@dataclass
class ArrangeResult:
    """Summary of an align/distribute run."""
    success: bool
    message: str
    objects_processed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "objectsProcessed": self.objects_processed,
        }


# ---------------------------------------------------------------------------
# Graph access
# ---------------------------------------------------------------------------

class GraphAccess(Protocol):
    """Capability the optimizer needs from the host board."""

    async def get_item_by_id(self, item_id: str) -> Optional[BoardItem]: ...

    async def get_incident_connectors(self, node_id: str) -> list[Connector]: ...

    async def get_selection(self) -> list[BoardItem]: ...

    async def commit_position(self, node_id: str, x: float, y: float) -> bool: ...

    async def commit_connector(
        self,
        connector_id: str,
        start_snap: Optional[Side],
        end_snap: Optional[Side],
        shape: ConnectorShape,
    ) -> bool: ...


@dataclass
class Board:
    """In-memory board holding shapes, connectors and the current selection."""
    name: str = "Board-1"
    shapes: dict[str, Shape] = field(default_factory=dict)
    connectors: dict[str, Connector] = field(default_factory=dict)
    selection: list[str] = field(default_factory=list)

    # ----- builder helpers -----

    def has_id(self, item_id: str) -> bool:
        return item_id in self.shapes or item_id in self.connectors

    def _claim_id(self, item_id: Optional[str]) -> str:
        if not item_id:
            return _uid()
        if self.has_id(item_id):
            raise ValueError(f"Item id '{item_id}' already exists.")
        return item_id

    def add_shape(
        self,
        x: float,
        y: float,
        width: float = DEFAULT_NODE_SIZE,
        height: float = DEFAULT_NODE_SIZE,
        label: str = "",
        item_id: Optional[str] = None,
    ) -> str:
        sid = self._claim_id(item_id)
        self.shapes[sid] = Shape(sid, x, y, width, height, label)
        return sid

    def add_connector(
        self,
        source_id: str,
        target_id: str,
        shape: ConnectorShape = ConnectorShape.STRAIGHT,
        start_snap: Optional[Side] = None,
        end_snap: Optional[Side] = None,
        label: str = "",
        item_id: Optional[str] = None,
    ) -> str:
        cid = self._claim_id(item_id)
        self.connectors[cid] = Connector(
            id=cid,
            start=ConnectorEnd(source_id, start_snap),
            end=ConnectorEnd(target_id, end_snap),
            shape=shape,
            label=label,
        )
        return cid

    def remove_item(self, item_id: str) -> bool:
        """Remove a shape (and its connectors) or a connector."""
        removed = {item_id}
        if item_id in self.shapes:
            del self.shapes[item_id]
            for cid in [c.id for c in self.connectors.values()
                        if item_id in (c.start.item, c.end.item)]:
                del self.connectors[cid]
                removed.add(cid)
        elif item_id in self.connectors:
            del self.connectors[item_id]
        else:
            return False
        self.selection = [i for i in self.selection if i not in removed]
        return True

    def select(self, item_ids: list[str]) -> None:
        self.selection = [i for i in item_ids if self.has_id(i)]

    def get(self, item_id: str) -> Optional[BoardItem]:
        return self.shapes.get(item_id) or self.connectors.get(item_id)

    # ----- GraphAccess -----

    async def get_item_by_id(self, item_id: str) -> Optional[BoardItem]:
        return self.get(item_id)

    async def get_incident_connectors(self, node_id: str) -> list[Connector]:
        return [
            c for c in self.connectors.values()
            if node_id in (c.start.item, c.end.item)
        ]

    async def get_selection(self) -> list[BoardItem]:
        items = [self.get(i) for i in self.selection]
        return [item for item in items if item is not None]

    async def commit_position(self, node_id: str, x: float, y: float) -> bool:
        shape = self.shapes.get(node_id)
        if shape is None:
            return False
        shape.x = x
        shape.y = y
        return True

    async def commit_connector(
        self,
        connector_id: str,
        start_snap: Optional[Side],
        end_snap: Optional[Side],
        shape: ConnectorShape,
    ) -> bool:
        conn = self.connectors.get(connector_id)
        if conn is None:
            return False
        conn.start.snap_to = start_snap
        conn.end.snap_to = end_snap
        conn.shape = shape
        return True

    # ----- serialization -----

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "items": [s.to_dict() for s in self.shapes.values()]
                     + [c.to_dict() for c in self.connectors.values()],
            "selection": list(self.selection),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Board:
        """Build a board from the structure produced by ``to_dict``.

        Callers are expected to have validated *data* (see
        ``validation.validate_board_dict``).
        """
        board = cls(name=data.get("name", "Board-1"))
        for item in data.get("items", []):
            if item.get("type") == ItemType.CONNECTOR.value:
                start = item.get("start") or {}
                end = item.get("end") or {}
                board.add_connector(
                    start.get("item"),
                    end.get("item"),
                    shape=ConnectorShape(item.get("shape", "straight").lower()),
                    start_snap=Side(start["snapTo"].lower()) if start.get("snapTo") else None,
                    end_snap=Side(end["snapTo"].lower()) if end.get("snapTo") else None,
                    label=item.get("label", ""),
                    item_id=item["id"],
                )
            else:
                board.add_shape(
                    item["x"],
                    item["y"],
                    item.get("width", DEFAULT_NODE_SIZE),
                    item.get("height", DEFAULT_NODE_SIZE),
                    label=item.get("label", ""),
                    item_id=item["id"],
                )
        board.select(list(data.get("selection", [])))
        return board


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _uid() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class CellBounds:
    """Axis-aligned bounding box (top-left origin)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    def intersects(self, other: 'CellBounds', margin: float = 0) -> bool:
        """Check if two bounding boxes overlap (with optional margin)."""
        return not (
            self.right + margin <= other.x
            or other.right + margin <= self.x
            or self.bottom + margin <= other.y
            or other.bottom + margin <= self.y
        )
