"""Shared board fixtures."""

import pytest

from connector_optimizer.models import Board


@pytest.fixture
def chain_board() -> Board:
    """A -> B -> C on one row, plus an unconnected D."""
    b = Board(name="chain")
    b.add_shape(0, 0, item_id="A")
    b.add_shape(300, 0, item_id="B")
    b.add_shape(600, 0, item_id="C")
    b.add_shape(0, 600, item_id="D")
    b.add_connector("A", "B", item_id="ab")
    b.add_connector("B", "C", item_id="bc")
    return b


@pytest.fixture
def star_board() -> Board:
    """Hub H with five spokes S0..S4 placed directly to its right."""
    b = Board(name="star")
    b.add_shape(0, 0, item_id="H")
    for i in range(5):
        b.add_shape(200 * (i + 1), 0, item_id=f"S{i}")
        b.add_connector("H", f"S{i}", item_id=f"h{i}")
    return b
