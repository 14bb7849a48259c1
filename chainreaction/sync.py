"""
Client side of the shared room protocol.

A RoomClient keeps one canonical in-memory view of the room it is bound to and
exposes the actions the presentation layer calls. The store is the only source
of truth: change notifications are treated as wakeups, each one triggers a
fresh fetch, and the fetched record replaces the whole local GameState.

Writes follow fetch -> merge -> write. The new GameState fields are merged onto
the freshly fetched blob and the room status is derived from the fetched
record, so a move racing a join never clobbers the join.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .board import DEFAULT_COLS, DEFAULT_ROWS, board_to_list
from .errors import (
    AuthRequired,
    ChainReactionError,
    IllegalMove,
    InvalidIdentifier,
    PersistenceFailure,
    RoomNotFound,
    RoomNotJoinable,
)
from .game_engine import (
    PLAYER_COUNT,
    STATUS_FINISHED,
    STATUS_PLAYING,
    STATUS_WAITING,
    GameState,
    new_game_state,
    play_move,
)
from .identity import SessionIdentity
from .room_store import (
    EVENT_DELETE,
    GameRoom,
    RoomChange,
    RoomStore,
    Subscription,
    derive_status,
    is_valid_room_id,
)

logger = logging.getLogger(__name__)


class ClientPhase(str, Enum):
    UNJOINED = "unjoined"
    WAITING = "waiting"
    ACTIVE = "active"
    FINISHED = "finished"


PHASE_BY_STATUS = {
    STATUS_WAITING: ClientPhase.WAITING,
    STATUS_PLAYING: ClientPhase.ACTIVE,
    STATUS_FINISHED: ClientPhase.FINISHED,
}


class _Liveness:
    """Flag shared by one subscription and every update it schedules."""

    def __init__(self):
        self.alive = True


def _run_now(fn: Callable[[], None]) -> None:
    fn()


def _norm_room_id(room_id) -> str:
    return (room_id or "").strip().lower() if isinstance(room_id, str) else ""


class RoomClient:
    def __init__(
        self,
        store: RoomStore,
        identity: SessionIdentity,
        rows: int = DEFAULT_ROWS,
        cols: int = DEFAULT_COLS,
        player_count: int = PLAYER_COUNT,
        defer: Optional[Callable[[Callable[[], None]], None]] = None,
    ):
        """
        store: the shared room store.
        identity: source of the signed-in user.
        defer: schedules the application of fetched records (default: run inline).
        """
        self._store = store
        self._identity = identity
        self.rows = rows
        self.cols = cols
        self.player_count = player_count
        self._defer = defer or _run_now

        self._lock = threading.Lock()
        self._subscription: Optional[Subscription] = None
        self._live: Optional[_Liveness] = None
        self._fetch_seq = 0
        self._applied_seq = 0
        self._clear_room()

    def _clear_room(self) -> None:
        self._room_id: Optional[str] = None
        self._player_number: Optional[int] = None
        self._state = new_game_state(self.rows, self.cols)
        self._room_status: Optional[str] = None
        self._phase = ClientPhase.UNJOINED

    # -------- read side --------

    @property
    def phase(self) -> ClientPhase:
        with self._lock:
            return self._phase

    @property
    def room_id(self) -> Optional[str]:
        with self._lock:
            return self._room_id

    def snapshot(self) -> dict:
        with self._lock:
            state = self._state
            return {
                "board": board_to_list(state.board),
                "currentPlayer": state.current_player,
                "gameOver": state.game_over,
                "winner": state.winner,
                "roomStatus": self._room_status,
                "roomId": self._room_id,
                "playerNumber": self._player_number,
                "phase": self._phase.value,
            }

    # -------- actions --------

    def create_room(self) -> dict:
        return self._run("create_room", self._create_room)

    def check_room(self, room_id: str) -> dict:
        return self._run("check_room", self._check_room, room_id)

    def join_room(self, room_id: str) -> dict:
        return self._run("join_room", self._join_room, room_id)

    def submit_move(self, row, col) -> dict:
        return self._run("submit_move", self._submit_move, row, col)

    def reset_game(self) -> dict:
        return self._run("reset_game", self._reset_game)

    def refresh(self) -> dict:
        return self._run("refresh", self._refresh_action)

    def leave_room(self) -> dict:
        room_id = self.room_id
        self._detach()
        if room_id:
            logger.info("left room %s", room_id)
        return {"ok": True}

    def _run(self, name: str, fn, *args) -> dict:
        try:
            result = fn(*args)
        except ChainReactionError as e:
            logger.warning("%s rejected: %s", name, e.message)
            return e.to_result()
        res = {"ok": True}
        res.update(result or {})
        return res

    # -------- action bodies --------

    def _create_room(self) -> dict:
        user = self._require_user()
        state = new_game_state(self.rows, self.cols)
        # Numbered before the insert: anything observed after subscribing is newer
        seq = self._next_seq()
        try:
            room = self._store.insert_room(user, state.to_dict())
        except Exception as e:
            raise PersistenceFailure("Failed to create game room") from e

        self._attach(room.id, player_number=0)
        with self._lock:
            token = self._live
        self._apply_room(seq, room, token)
        logger.info("created room %s for %s", room.id, user)
        return {"room_id": room.id, "player_number": 0}

    def _check_room(self, room_id: str) -> dict:
        self._require_user()
        room_id = _norm_room_id(room_id)
        if not is_valid_room_id(room_id):
            return {"exists": False, "can_join": False}
        room = self._fetch(room_id)
        if room is None:
            return {"exists": False, "can_join": False}
        return {
            "exists": True,
            "can_join": room.status == STATUS_WAITING and room.player2_id is None,
        }

    def _join_room(self, room_id: str) -> dict:
        user = self._require_user()
        room_id = _norm_room_id(room_id)
        if not is_valid_room_id(room_id):
            raise InvalidIdentifier("Invalid room id")

        room = self._fetch(room_id)
        if room is None:
            raise RoomNotFound("Game room does not exist")
        if room.player1_id == user:
            raise RoomNotJoinable("Cannot join your own game room")
        if room.status != STATUS_WAITING or room.player2_id is not None:
            raise RoomNotJoinable("Room is not available for joining")

        blob = dict(room.current_state or {})
        blob["currentPlayer"] = 0  # player 1 always opens
        fields = {
            "player2_id": user,
            "status": derive_status(user, False),
            "current_state": blob,
        }
        self._write(room_id, fields, "Failed to join game room")

        self._attach(room_id, player_number=1)
        self._refresh(room_id)
        logger.info("%s joined room %s", user, room_id)
        return {"room_id": room_id, "player_number": 1}

    def _submit_move(self, row, col) -> dict:
        self._require_user()
        for value in (row, col):
            if not isinstance(value, int) or isinstance(value, bool):
                raise IllegalMove("row and col must be integers")

        with self._lock:
            room_id = self._room_id
            player = self._player_number
            state = self._state.copy()
            room_status = self._room_status
        if room_id is None:
            raise IllegalMove("Not in a game room")

        explosions: List[Tuple[int, int]] = []
        next_state = play_move(
            state, room_status, player, row, col,
            player_count=self.player_count, explosions=explosions,
        )
        logger.info(
            "player %s plays (%s, %s) in room %s: %d explosions",
            player, row, col, room_id, len(explosions),
        )

        self._publish(room_id, next_state)
        self._refresh(room_id)
        return {
            "explosions": [list(rc) for rc in explosions],
            "next_player": next_state.current_player,
            "game_over": next_state.game_over,
            "winner": next_state.winner,
        }

    def _reset_game(self) -> dict:
        self._require_user()
        with self._lock:
            room_id = self._room_id
            finished = self._state.game_over and self._state.winner is not None
        if room_id is None:
            raise IllegalMove("Not in a game room")
        if not finished:
            raise IllegalMove("Game can only be reset once it has a winner")

        self._publish(room_id, new_game_state(self.rows, self.cols))
        self._refresh(room_id)
        logger.info("room %s reset", room_id)
        return {}

    def _refresh_action(self) -> dict:
        self._require_user()
        room_id = self.room_id
        if room_id is None:
            raise IllegalMove("Not in a game room")
        self._refresh(room_id)
        return {}

    # -------- protocol internals --------

    def _require_user(self) -> str:
        user = self._identity.current_user()
        if not user:
            raise AuthRequired()
        return user

    def _next_seq(self) -> int:
        with self._lock:
            self._fetch_seq += 1
            return self._fetch_seq

    def _fetch(self, room_id: str) -> Optional[GameRoom]:
        try:
            return self._store.fetch_room(room_id)
        except Exception as e:
            raise PersistenceFailure("Failed to fetch game room") from e

    def _write(self, room_id: str, fields: dict, failure_message: str) -> None:
        try:
            ok = self._store.write_room(room_id, fields)
        except Exception as e:
            raise PersistenceFailure(failure_message) from e
        if not ok:
            raise PersistenceFailure(failure_message)

    def _publish(self, room_id: str, state: GameState) -> None:
        # Merge onto a fresh fetch, never onto the local copy
        fresh = self._fetch(room_id)
        if fresh is None:
            raise RoomNotFound("Game room does not exist")

        blob = dict(fresh.current_state or {})
        blob.update(state.to_dict())
        fields = {
            "current_state": blob,
            "game_over": state.game_over,
            "winner": state.winner,
            "status": derive_status(fresh.player2_id, state.game_over),
        }
        self._write(room_id, fields, "Failed to update game state")

    def _refresh(self, room_id: str) -> None:
        seq = self._next_seq()
        room = self._fetch(room_id)
        if room is None:
            raise RoomNotFound("Game room does not exist")
        with self._lock:
            token = self._live
        self._apply_room(seq, room, token)

    def _attach(self, room_id: str, player_number: int) -> None:
        self._detach()
        token = _Liveness()
        with self._lock:
            self._room_id = room_id
            self._player_number = player_number
            self._phase = ClientPhase.WAITING
            self._live = token
        sub = self._store.subscribe(room_id, lambda change: self._on_change(token, change))
        with self._lock:
            if self._live is token:
                self._subscription = sub
                return
        sub.unsubscribe()

    def _detach(self) -> None:
        with self._lock:
            token, sub = self._live, self._subscription
            self._live = None
            self._subscription = None
            self._clear_room()
        if token is not None:
            token.alive = False
        if sub is not None:
            sub.unsubscribe()

    def _on_change(self, token: _Liveness, change: RoomChange) -> None:
        if not token.alive:
            return
        if change.event == EVENT_DELETE:
            logger.info("ignoring DELETE event for room %s", change.room_id)
            return

        # The payload may be stale; only the fetched record is trusted
        seq = self._next_seq()
        try:
            room = self._fetch(change.room_id)
        except PersistenceFailure as e:
            logger.error("error fetching latest state for room %s: %s", change.room_id, e.message)
            return
        if room is None:
            logger.warning("room %s vanished while refreshing", change.room_id)
            return

        self._defer(lambda: self._apply_room(seq, room, token))

    def _apply_room(self, seq: int, room: GameRoom, token: Optional[_Liveness]) -> None:
        # Checked when the update runs, not when it was scheduled
        if token is None or not token.alive:
            return
        try:
            state = GameState.from_dict(room.current_state)
        except ValueError as e:
            logger.error("invalid game state received for room %s: %s", room.id, e)
            return

        with self._lock:
            if self._live is not token or self._room_id != room.id:
                return
            if seq <= self._applied_seq:
                logger.debug("dropping stale fetch %d for room %s", seq, room.id)
                return
            self._applied_seq = seq
            self._state = state
            self._room_status = room.status
            self._phase = PHASE_BY_STATUS.get(room.status, ClientPhase.ACTIVE)
