from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from flask import Flask, jsonify, request

from .config import Settings
from .identity import SessionIdentity
from .room_store import RoomStore
from .sync import RoomClient


def _status_for(res: dict) -> int:
    if res.get("ok") is False:
        return res.get("code", 400)
    return 200


def create_app(settings: Optional[Settings] = None, store: Optional[RoomStore] = None) -> Flask:
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    app.logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    # One RoomStore stands in for the shared database; every signed-in user
    # gets their own RoomClient, exactly as separate browsers would.
    store = store or RoomStore()
    clients: Dict[str, RoomClient] = {}
    clients_lock = threading.Lock()

    app.config["ROOM_STORE"] = store
    app.config["SETTINGS"] = settings

    def _user_id() -> str:
        if request.method == "GET":
            raw = request.args.get("user_id")
        else:
            data = request.get_json(silent=True) or {}
            raw = data.get("user_id")
        return (raw or "").strip() if isinstance(raw, str) else ""

    def _client() -> Optional[RoomClient]:
        user_id = _user_id()
        if not user_id:
            return None
        with clients_lock:
            return clients.get(user_id)

    def _auth_required():
        return jsonify({"ok": False, "error": "Auth required", "code": 401}), 401

    # -------- session --------

    @app.post("/api/session")
    def api_sign_in():
        user_id = _user_id()
        if not user_id:
            return jsonify({"ok": False, "error": "user_id is required", "code": 400}), 400

        with clients_lock:
            client = clients.get(user_id)
            if client is None:
                identity = SessionIdentity(user_id)
                client = RoomClient(
                    store,
                    identity,
                    rows=settings.rows,
                    cols=settings.cols,
                    player_count=settings.player_count,
                )
                clients[user_id] = client
        app.logger.info(f"[👤] {user_id} signed in")
        return jsonify({"ok": True, "user_id": user_id})

    @app.post("/api/session/logout")
    def api_sign_out():
        user_id = _user_id()
        with clients_lock:
            client = clients.pop(user_id, None) if user_id else None
        if client is None:
            return _auth_required()
        client.leave_room()
        app.logger.info(f"[🚪] {user_id} signed out")
        return jsonify({"ok": True})

    @app.get("/api/state")
    def api_state():
        client = _client()
        if client is None:
            return _auth_required()
        return jsonify(client.snapshot())

    # -------- rooms --------

    @app.post("/api/rooms")
    def api_create_room():
        client = _client()
        if client is None:
            return _auth_required()
        res = client.create_room()
        if res["ok"]:
            app.logger.info(f"[✅] Room {res['room_id']} created by {_user_id()}")
        else:
            app.logger.warning(f"[❌] Could not create room: {res.get('error')}")
        return jsonify(res), _status_for(res)

    @app.get("/api/rooms/<room_id>")
    def api_check_room(room_id: str):
        client = _client()
        if client is None:
            return _auth_required()
        res = client.check_room(room_id)
        return jsonify(res), _status_for(res)

    @app.post("/api/rooms/<room_id>/join")
    def api_join_room(room_id: str):
        client = _client()
        if client is None:
            return _auth_required()
        app.logger.info(f"[👤] {_user_id()} trying to join {room_id}")
        res = client.join_room(room_id)
        if res["ok"] is False:
            app.logger.warning(f"[❌] Join failed: {res.get('error')}")
        else:
            app.logger.info(f"[✅] {_user_id()} joined {room_id}")
        return jsonify(res), _status_for(res)

    @app.post("/api/rooms/leave")
    def api_leave_room():
        client = _client()
        if client is None:
            return _auth_required()
        room_id = client.room_id
        res = client.leave_room()
        if room_id:
            app.logger.info(f"[🚪] {_user_id()} left room {room_id}")
        return jsonify(res)

    # -------- game --------

    @app.post("/api/move")
    def api_move():
        client = _client()
        if client is None:
            return _auth_required()
        data = request.get_json(silent=True) or {}
        res = client.submit_move(data.get("row"), data.get("col"))
        return jsonify(res), _status_for(res)

    @app.post("/api/reset")
    def api_reset():
        client = _client()
        if client is None:
            return _auth_required()
        res = client.reset_game()
        if res["ok"]:
            app.logger.info(f"[🔄] Room {client.room_id} reset by {_user_id()}")
        return jsonify(res), _status_for(res)

    return app
