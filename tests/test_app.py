import unittest

from chainreaction.app import create_app
from chainreaction.config import Settings
from chainreaction.room_store import RoomStore


class TestApi(unittest.TestCase):
    def setUp(self):
        self.store = RoomStore()
        self.app = create_app(Settings(), store=self.store)
        self.app.testing = True
        self.http = self.app.test_client()

    def _sign_in(self, user_id):
        resp = self.http.post("/api/session", json={"user_id": user_id})
        self.assertEqual(resp.status_code, 200)

    def _start(self):
        self._sign_in("alice")
        self._sign_in("bob")
        room_id = self.http.post("/api/rooms", json={"user_id": "alice"}).get_json()["room_id"]
        resp = self.http.post(f"/api/rooms/{room_id}/join", json={"user_id": "bob"})
        self.assertEqual(resp.status_code, 200)
        return room_id

    def test_requires_session(self):
        resp = self.http.get("/api/state?user_id=alice")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.get_json()["error"], "Auth required")

        resp = self.http.post("/api/move", json={"row": 0, "col": 0})
        self.assertEqual(resp.status_code, 401)

        resp = self.http.post("/api/session", json={})
        self.assertEqual(resp.status_code, 400)

    def test_state_before_joining(self):
        self._sign_in("alice")
        data = self.http.get("/api/state?user_id=alice").get_json()
        self.assertEqual(data["phase"], "unjoined")
        self.assertEqual(len(data["board"]), 6)
        self.assertIsNone(data["roomId"])

    def test_full_game_flow(self):
        room_id = self._start()

        resp = self.http.post("/api/move", json={"user_id": "alice", "row": 0, "col": 0})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["next_player"], 1)

        resp = self.http.post("/api/move", json={"user_id": "alice", "row": 0, "col": 0})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "Not your turn")

        bob = self.http.get("/api/state?user_id=bob").get_json()
        self.assertEqual(bob["roomId"], room_id)
        self.assertEqual(bob["roomStatus"], "playing")
        self.assertEqual(bob["currentPlayer"], 1)
        self.assertEqual(bob["board"][0][0], {"count": 1, "player": 0})

    def test_bad_move_payload(self):
        self._start()
        resp = self.http.post("/api/move", json={"user_id": "alice", "row": "a", "col": 0})
        self.assertEqual(resp.status_code, 400)

    def test_room_checks_and_join_errors(self):
        room_id = self._start()
        self._sign_in("carol")

        data = self.http.get(f"/api/rooms/{room_id}?user_id=carol").get_json()
        self.assertTrue(data["exists"])
        self.assertFalse(data["can_join"])

        resp = self.http.post(f"/api/rooms/{room_id}/join", json={"user_id": "carol"})
        self.assertEqual(resp.status_code, 409)

        resp = self.http.post("/api/rooms/nope/join", json={"user_id": "carol"})
        self.assertEqual(resp.status_code, 400)

        resp = self.http.post(
            "/api/rooms/00000000-0000-4000-8000-000000000000/join", json={"user_id": "carol"}
        )
        self.assertEqual(resp.status_code, 404)

    def test_reset_requires_finished_game(self):
        self._start()
        resp = self.http.post("/api/reset", json={"user_id": "alice"})
        self.assertEqual(resp.status_code, 400)

    def test_leave_and_logout(self):
        room_id = self._start()

        resp = self.http.post("/api/rooms/leave", json={"user_id": "bob"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.http.get("/api/state?user_id=bob").get_json()["phase"], "unjoined")
        self.assertEqual(self.store.subscriber_count(room_id), 1)

        resp = self.http.post("/api/session/logout", json={"user_id": "alice"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.store.subscriber_count(room_id), 0)
        self.assertEqual(self.http.get("/api/state?user_id=alice").status_code, 401)


if __name__ == '__main__':
    unittest.main()
