from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .board import (
    Board,
    DEFAULT_COLS,
    DEFAULT_ROWS,
    active_owners,
    board_from_list,
    board_size,
    board_to_list,
    clone_board,
    create_empty_board,
    total_atoms,
)
from .errors import IllegalMove
from .topology import critical_mass, neighbors

PLAYER_COUNT = 2

STATUS_WAITING = "waiting"
STATUS_PLAYING = "playing"
STATUS_FINISHED = "finished"
ROOM_STATUSES = (STATUS_WAITING, STATUS_PLAYING, STATUS_FINISHED)


@dataclass
class GameState:
    board: Board = field(default_factory=create_empty_board)
    current_player: int = 0
    game_over: bool = False
    winner: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "board": board_to_list(self.board),
            "currentPlayer": self.current_player,
            "gameOver": self.game_over,
            "winner": self.winner,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GameState":
        if not isinstance(data, dict):
            raise ValueError("game state must be an object")
        current = data.get("currentPlayer", 0)
        if not isinstance(current, int) or isinstance(current, bool) or current < 0:
            raise ValueError(f"invalid currentPlayer {current!r}")
        winner = data.get("winner")
        if winner is not None and (not isinstance(winner, int) or isinstance(winner, bool)):
            raise ValueError(f"invalid winner {winner!r}")
        return cls(
            board=board_from_list(data.get("board")),
            current_player=current,
            game_over=bool(data.get("gameOver", False)),
            winner=winner,
        )

    def copy(self) -> "GameState":
        return GameState(clone_board(self.board), self.current_player, self.game_over, self.winner)


@dataclass
class Evaluation:
    game_over: bool
    winner: Optional[int]


def new_game_state(rows: int = DEFAULT_ROWS, cols: int = DEFAULT_COLS) -> GameState:
    return GameState(board=create_empty_board(rows, cols))


def apply_move_and_cascade(
    board: Board,
    r: int,
    c: int,
    player: int,
    explosions: Optional[List[Tuple[int, int]]] = None,
) -> Board:
    """
    Place one atom for `player` at (r, c) and resolve the chain reaction.

    Mutates and returns `board`; callers clone first. If `explosions` is given,
    the coordinates of every explosion are appended to it in processing order.

    The returned board is stable unless every cell has exploded during the move.
    Such a cascade never settles, so it is stopped there; by then every occupied
    cell belongs to `player`.
    """
    rows, cols = board_size(board)

    board[r][c].count += 1
    board[r][c].owner = player

    # FIFO worklist. A cell may be queued more than once; it only explodes if it
    # is still at or above critical mass when popped.
    queue = deque([(r, c)])
    fired = set()

    while queue:
        if len(fired) == rows * cols:
            break

        cur_r, cur_c = queue.popleft()
        mass = critical_mass(cur_r, cur_c, rows, cols)
        cell = board[cur_r][cur_c]
        if cell.count < mass:
            continue

        cell.count -= mass
        if cell.count == 0:
            cell.owner = None
        fired.add((cur_r, cur_c))
        if explosions is not None:
            explosions.append((cur_r, cur_c))

        # Neighbors are taken over by the exploding player
        for nr, nc in neighbors(cur_r, cur_c, rows, cols):
            target = board[nr][nc]
            target.count += 1
            target.owner = player
            if target.count >= critical_mass(nr, nc, rows, cols):
                queue.append((nr, nc))

    return board


def evaluate(board: Board) -> Evaluation:
    owners = active_owners(board)
    # A lone atom after the opening move is not a win
    game_over = len(owners) == 1 and total_atoms(board) > 1
    winner = next(iter(owners)) if game_over else None
    return Evaluation(game_over=game_over, winner=winner)


def validate(state: GameState, room_status: str, player: int, r: int, c: int) -> Optional[str]:
    """Return the reason a move is rejected, or None if it is legal."""
    if room_status != STATUS_PLAYING:
        return f"Game is not in progress (room is {room_status})"
    if state.game_over:
        return "Game is already over"
    if player != state.current_player:
        return "Not your turn"
    rows, cols = board_size(state.board)
    if not (0 <= r < rows and 0 <= c < cols):
        return "Coordinates out of bounds"
    cell = state.board[r][c]
    if cell.count > 0 and cell.owner != player:
        return "Cannot place on an opponent's cell"
    return None


def play_move(
    state: GameState,
    room_status: str,
    player: int,
    r: int,
    c: int,
    player_count: int = PLAYER_COUNT,
    explosions: Optional[List[Tuple[int, int]]] = None,
) -> GameState:
    """Validate, apply and evaluate a move, returning the next state. `state` is left untouched."""
    reason = validate(state, room_status, player, r, c)
    if reason is not None:
        raise IllegalMove(reason)

    board = apply_move_and_cascade(clone_board(state.board), r, c, player, explosions)
    result = evaluate(board)

    next_player = player if result.game_over else (player + 1) % player_count
    return GameState(
        board=board,
        current_player=next_player,
        game_over=result.game_over,
        winner=result.winner,
    )
