"""
Errors raised by the room protocol.

Every action on RoomClient catches ChainReactionError and reports it as
{"ok": False, "error": message, "code": status_code}; nothing here is meant to
reach the user as a traceback.
"""

from __future__ import annotations


class ChainReactionError(Exception):
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_result(self) -> dict:
        return {"ok": False, "error": self.message, "code": self.status_code}


class AuthRequired(ChainReactionError):
    """No user is signed in."""
    status_code = 401

    def __init__(self, message: str = "Auth required"):
        super().__init__(message)


class InvalidIdentifier(ChainReactionError):
    """Room id is not a UUID4 string."""
    status_code = 400


class RoomNotFound(ChainReactionError):
    status_code = 404


class RoomNotJoinable(ChainReactionError):
    """Room already has two players, or the user tried to join their own room."""
    status_code = 409


class IllegalMove(ChainReactionError):
    status_code = 400


class PersistenceFailure(ChainReactionError):
    """A fetch or write against the room store failed. Never retried automatically."""
    status_code = 503
