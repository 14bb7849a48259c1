from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Set

DEFAULT_ROWS = 6
DEFAULT_COLS = 6


@dataclass
class Cell:
    count: int = 0
    owner: Optional[int] = None  # player index, None while empty

    def to_dict(self) -> dict:
        # "player" is the field name used inside the persisted blob
        return {"count": self.count, "player": self.owner}


Board = List[List[Cell]]


def create_empty_board(rows: int = DEFAULT_ROWS, cols: int = DEFAULT_COLS) -> Board:
    # A corner on a single row/column would lose atoms when it explodes
    if rows < 2 or cols < 2:
        raise ValueError(f"board must be at least 2x2, got {rows}x{cols}")
    return [[Cell() for _ in range(cols)] for _ in range(rows)]


def clone_board(board: Board) -> Board:
    """Deep copy. Every mutating path works on a clone, never on the caller's board."""
    return [[Cell(cell.count, cell.owner) for cell in row] for row in board]


def board_size(board: Board) -> tuple:
    rows = len(board)
    cols = len(board[0]) if rows else 0
    return rows, cols


def total_atoms(board: Board) -> int:
    return sum(cell.count for row in board for cell in row)


def active_owners(board: Board) -> Set[int]:
    return {
        cell.owner
        for row in board
        for cell in row
        if cell.count > 0 and cell.owner is not None
    }


def board_to_list(board: Board) -> List[List[dict]]:
    return [[cell.to_dict() for cell in row] for row in board]


def board_from_list(data) -> Board:
    """Parse the persisted board shape, raising ValueError on anything malformed."""
    if not isinstance(data, list) or not data:
        raise ValueError("board must be a non-empty list of rows")

    cols = None
    board: Board = []
    for r, raw_row in enumerate(data):
        if not isinstance(raw_row, list) or not raw_row:
            raise ValueError(f"row {r} is not a non-empty list")
        if cols is None:
            cols = len(raw_row)
        elif len(raw_row) != cols:
            raise ValueError(f"row {r} has {len(raw_row)} cells, expected {cols}")

        row = []
        for c, raw in enumerate(raw_row):
            if not isinstance(raw, dict):
                raise ValueError(f"cell ({r}, {c}) is not an object")
            count = raw.get("count", 0)
            owner = raw.get("player")
            if not isinstance(count, int) or isinstance(count, bool) or count < 0:
                raise ValueError(f"cell ({r}, {c}) has invalid count {count!r}")
            if owner is not None and (not isinstance(owner, int) or isinstance(owner, bool)):
                raise ValueError(f"cell ({r}, {c}) has invalid player {owner!r}")
            if count == 0 and owner is not None:
                raise ValueError(f"cell ({r}, {c}) is empty but owned")
            row.append(Cell(count, owner))
        board.append(row)

    if len(board) < 2 or cols < 2:
        raise ValueError(f"board must be at least 2x2, got {len(board)}x{cols}")
    return board
