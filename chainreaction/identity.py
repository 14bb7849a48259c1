from __future__ import annotations

import threading
from typing import Optional


class SessionIdentity:
    """Holds the signed-in user for one client."""

    def __init__(self, user_id: Optional[str] = None):
        self._lock = threading.Lock()
        self._user_id = user_id

    def sign_in(self, user_id: str) -> None:
        user_id = (user_id or "").strip()
        if not user_id:
            raise ValueError("user_id is required")
        with self._lock:
            self._user_id = user_id

    def sign_out(self) -> None:
        with self._lock:
            self._user_id = None

    def current_user(self) -> Optional[str]:
        with self._lock:
            return self._user_id
