from __future__ import annotations

import copy
import logging
import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .game_engine import ROOM_STATUSES, STATUS_FINISHED, STATUS_PLAYING, STATUS_WAITING

logger = logging.getLogger(__name__)

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"

WRITABLE_FIELDS = {"player2_id", "current_state", "game_over", "winner", "status"}

_UUID4_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_valid_room_id(room_id) -> bool:
    return isinstance(room_id, str) and bool(_UUID4_RE.match(room_id))


def derive_status(player2_id: Optional[str], game_over: bool) -> str:
    if player2_id is None:
        return STATUS_WAITING
    return STATUS_FINISHED if game_over else STATUS_PLAYING


@dataclass
class GameRoom:
    id: str
    created_at: str
    player1_id: str
    player2_id: Optional[str]
    current_state: dict  # persisted GameState blob, see GameState.to_dict()
    game_over: bool = False
    winner: Optional[int] = None
    status: str = STATUS_WAITING


@dataclass
class RoomChange:
    event: str  # INSERT / UPDATE / DELETE
    room_id: str
    record: Optional[GameRoom]  # None for DELETE


@dataclass(eq=False)
class Subscription:
    room_id: str
    callback: Callable[[RoomChange], None]
    _store: "RoomStore" = field(repr=False, default=None)
    active: bool = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._store is not None:
            self._store._remove_subscription(self)


def _deliver_now(fn: Callable[[], None]) -> None:
    fn()


class RoomStore:
    """
    In-process room record store with change notifications.

    Records are copied on the way in and on the way out, so callers never share
    mutable state with the store. Notifications are handed to `dispatch` after
    the lock is released; the default delivers them immediately, tests pass a
    dispatcher that holds, duplicates or reorders them.
    """

    def __init__(self, dispatch: Optional[Callable[[Callable[[], None]], None]] = None):
        self._lock = threading.Lock()
        self._rooms: Dict[str, GameRoom] = {}
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._dispatch = dispatch or _deliver_now

    def insert_room(self, player1_id: str, current_state: dict) -> GameRoom:
        with self._lock:
            while True:
                room_id = str(uuid.uuid4())
                if room_id not in self._rooms:
                    break

            room = GameRoom(
                id=room_id,
                created_at=_now(),
                player1_id=player1_id,
                player2_id=None,
                current_state=copy.deepcopy(current_state),
                game_over=bool(current_state.get("gameOver", False)),
                winner=current_state.get("winner"),
                status=STATUS_WAITING,
            )
            self._rooms[room_id] = room
            result = copy.deepcopy(room)
            pending = self._pending(room_id, EVENT_INSERT, room)

        self._notify(pending)
        return result

    def fetch_room(self, room_id: str) -> Optional[GameRoom]:
        with self._lock:
            room = self._rooms.get(room_id)
            return copy.deepcopy(room) if room else None

    def write_room(self, room_id: str, fields: dict) -> bool:
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"fields not writable: {sorted(unknown)}")
        status = fields.get("status")
        if status is not None and status not in ROOM_STATUSES:
            raise ValueError(f"unknown room status {status!r}")

        with self._lock:
            room = self._rooms.get(room_id)
            if not room:
                logger.warning("write to missing room %s", room_id)
                return False
            for key, value in fields.items():
                setattr(room, key, copy.deepcopy(value))
            pending = self._pending(room_id, EVENT_UPDATE, room)

        self._notify(pending)
        return True

    def delete_room(self, room_id: str) -> bool:
        with self._lock:
            room = self._rooms.pop(room_id, None)
            if not room:
                return False
            pending = self._pending(room_id, EVENT_DELETE, None)

        self._notify(pending)
        return True

    def subscribe(self, room_id: str, on_change: Callable[[RoomChange], None]) -> Subscription:
        sub = Subscription(room_id=room_id, callback=on_change, _store=self)
        with self._lock:
            self._subscriptions.setdefault(room_id, []).append(sub)
        logger.debug("subscribed to room %s", room_id)
        return sub

    def subscriber_count(self, room_id: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(room_id, []))

    def _remove_subscription(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.room_id, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subscriptions.pop(sub.room_id, None)
        logger.debug("unsubscribed from room %s", sub.room_id)

    def _pending(self, room_id: str, event: str, room: Optional[GameRoom]) -> List[tuple]:
        # Called with the lock held: snapshot subscribers and payload
        subs = list(self._subscriptions.get(room_id, []))
        change = RoomChange(event=event, room_id=room_id, record=copy.deepcopy(room))
        return [(sub, change) for sub in subs]

    def _notify(self, pending: List[tuple]) -> None:
        for sub, change in pending:
            self._dispatch(self._delivery(sub, change))

    @staticmethod
    def _delivery(sub: Subscription, change: RoomChange) -> Callable[[], None]:
        def deliver() -> None:
            if sub.active:
                sub.callback(copy.deepcopy(change))
        return deliver
