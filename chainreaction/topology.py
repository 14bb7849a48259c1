from __future__ import annotations

from typing import List, Tuple


def is_corner(r: int, c: int, rows: int, cols: int) -> bool:
    return r in (0, rows - 1) and c in (0, cols - 1)


def is_edge(r: int, c: int, rows: int, cols: int) -> bool:
    # Corners count as edges too
    return r == 0 or c == 0 or r == rows - 1 or c == cols - 1


def critical_mass(r: int, c: int, rows: int, cols: int) -> int:
    """Atoms a cell can hold before it explodes: one more than it has neighbors."""
    if is_corner(r, c, rows, cols):
        return 2
    if is_edge(r, c, rows, cols):
        return 3
    return 4


def neighbors(r: int, c: int, rows: int, cols: int) -> List[Tuple[int, int]]:
    # up, down, left, right
    deltas = [(-1, 0), (1, 0), (0, -1), (0, 1)]
    res = []
    for dr, dc in deltas:
        nr, nc = r + dr, c + dc
        if 0 <= nr < rows and 0 <= nc < cols:
            res.append((nr, nc))
    return res
