from __future__ import annotations

from unittest import TestCase

from fastapi.testclient import TestClient

from . import main

QUESTIONS = [
    {"text": "2 + 2?", "options": ["3", "4", "5"], "correctIndex": 1},
    {"text": "Capital of France?", "options": ["Paris", "Rome"], "correctIndex": 0, "timeLimit": 10},
]


def _connect(client: TestClient):
    ws = client.websocket_connect("/ws").__enter__()
    hello = ws.receive_json()
    assert hello["event"] == "connected"
    return ws, hello["data"]["connectionId"]


class HttpTests(TestCase):
    def setUp(self) -> None:  # noqa: D401 - standard unittest hook
        self.client = TestClient(main.app)

    def test_root(self):
        res = self.client.get("/")
        self.assertEqual(res.status_code, 200)
        self.assertIn("running", res.text)

    def test_unknown_session(self):
        res = self.client.get("/api/session/000000")
        self.assertEqual(res.status_code, 404)

    def test_public_view_hides_questions(self):
        code = main.engine.create_game("http-host", [])
        try:
            body = self.client.get(f"/api/session/{code}").json()
        finally:
            main.engine.disconnect("http-host")

        self.assertEqual(
            body,
            {"code": code, "phase": "LOBBY", "participants": [], "currentIndex": -1, "totalQuestions": 0},
        )


class WebSocketFlowTests(TestCase):
    def setUp(self) -> None:  # noqa: D401 - standard unittest hook
        # entering the client shares one event loop between all sockets of a test
        self.client = TestClient(main.app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)
        self.sockets = []

    def tearDown(self) -> None:  # noqa: D401 - standard unittest hook
        for ws in self.sockets:
            ws.__exit__(None, None, None)

    def connect(self):
        ws, cid = _connect(self.client)
        self.sockets.append(ws)
        return ws, cid

    def expect(self, ws, event: str):
        message = ws.receive_json()
        self.assertEqual(message["event"], event, message)
        return message["data"]

    def test_full_game(self):
        host, host_id = self.connect()
        host.send_json({"event": "create_game", "data": QUESTIONS})
        code = self.expect(host, "game_created")
        self.assertRegex(code, r"^\d{6}$")

        ana, ana_id = self.connect()
        ana.send_json({"event": "join_game", "data": {"code": code, "nickname": "Ana"}})
        self.assertEqual(self.expect(ana, "player_joined")[0]["nickname"], "Ana")
        self.assertEqual(self.expect(ana, "joined_success"), {"code": code, "nickname": "Ana"})
        self.expect(host, "player_joined")

        host.send_json({"event": "start_game", "data": code})
        self.expect(host, "game_started")
        self.assertEqual(self.expect(host, "new_question_host")["correctIndex"], 1)
        self.expect(ana, "game_started")
        question = self.expect(ana, "new_question_player")
        self.assertEqual(question, {"text": "2 + 2?", "options": ["3", "4", "5"], "timeLimit": 20, "index": 0, "total": 2})

        ana.send_json({"event": "submit_answer", "data": {"code": code, "answerIndex": 1, "timeLeft": 15}})
        self.assertEqual(self.expect(host, "player_answered"), {"participantId": ana_id, "count": 1})

        host.send_json({"event": "show_results", "data": code})
        results = self.expect(ana, "question_results")
        self.assertEqual(results["correctAnswer"], 1)
        self.assertEqual(results["leaderboard"][0]["score"], 875)
        self.expect(host, "question_results")

        host.send_json({"event": "next_question", "data": code})
        self.expect(host, "new_question_host")
        self.assertEqual(self.expect(ana, "new_question_player")["timeLimit"], 10)

        host.send_json({"event": "next_question", "data": code})
        board = self.expect(ana, "game_over")
        self.assertEqual(board, [{"connectionId": ana_id, "nickname": "Ana", "score": 875, "streak": 1}])
        self.expect(host, "game_over")
        self.assertIsNotNone(main.registry.get_session(code))
        self.assertNotEqual(host_id, ana_id)

    def test_join_unknown_game(self):
        ws, _ = self.connect()
        ws.send_json({"event": "join_game", "data": {"code": "000000", "nickname": "Ana"}})
        self.assertEqual(self.expect(ws, "error"), "Game not found or already started")

    def test_malformed_join(self):
        ws, _ = self.connect()
        ws.send_json({"event": "join_game", "data": {"nickname": "Ana"}})
        self.assertEqual(self.expect(ws, "error"), "Invalid join request")

    def test_malformed_create(self):
        ws, _ = self.connect()
        ws.send_json({"event": "create_game", "data": [{"text": "no options"}]})
        self.assertEqual(self.expect(ws, "error"), "Invalid question set")

    def test_garbage_frames_are_ignored(self):
        ws, _ = self.connect()
        ws.send_text("not json")
        ws.send_json({"event": "dance"})
        ws.send_json({"event": "start_game"})
        ws.send_json({"event": "create_game", "data": {"questions": []}})
        self.assertRegex(self.expect(ws, "game_created"), r"^\d{6}$")

    def test_nan_time_left_is_dropped_and_connection_survives(self):
        host, _ = self.connect()
        host.send_json({"event": "create_game", "data": QUESTIONS})
        code = self.expect(host, "game_created")

        ana, ana_id = self.connect()
        ana.send_json({"event": "join_game", "data": {"code": code, "nickname": "Ana"}})
        self.expect(host, "player_joined")
        host.send_json({"event": "start_game", "data": code})
        self.expect(host, "game_started")
        self.expect(host, "new_question_host")

        # json.dumps would refuse NaN, so send the raw frame
        ana.send_text(
            '{"event": "submit_answer", "data": {"code": "%s", "answerIndex": 1, "timeLeft": NaN}}' % code
        )
        ana.send_json({"event": "submit_answer", "data": {"code": code, "answerIndex": 1, "timeLeft": 20}})
        self.assertEqual(self.expect(host, "player_answered"), {"participantId": ana_id, "count": 1})

        s = main.registry.get_session(code)
        self.assertEqual(s.answers_by_question[0], {ana_id: 1})
        self.assertEqual(s.find_participant(ana_id).score, 1000)

    def test_numeric_code_is_accepted(self):
        host, _ = self.connect()
        host.send_json({"event": "create_game", "data": QUESTIONS})
        code = self.expect(host, "game_created")

        ana, _ = self.connect()
        ana.send_json({"event": "join_game", "data": {"code": int(code), "nickname": "Ana"}})
        self.expect(ana, "player_joined")
        self.expect(ana, "joined_success")

    def test_participant_leaving(self):
        host, _ = self.connect()
        host.send_json({"event": "create_game", "data": QUESTIONS})
        code = self.expect(host, "game_created")

        ana, _ = self.connect()
        ana.send_json({"event": "join_game", "data": {"code": code, "nickname": "Ana"}})
        self.expect(host, "player_joined")

        self.sockets.remove(ana)
        ana.__exit__(None, None, None)
        self.assertEqual(self.expect(host, "player_left"), [])
        self.assertEqual(main.registry.get_session(code).participants, [])

    def test_host_leaving_closes_game(self):
        host, _ = self.connect()
        host.send_json({"event": "create_game", "data": QUESTIONS})
        code = self.expect(host, "game_created")

        ana, _ = self.connect()
        ana.send_json({"event": "join_game", "data": {"code": code, "nickname": "Ana"}})
        self.expect(ana, "player_joined")
        self.expect(ana, "joined_success")

        self.sockets.remove(host)
        host.__exit__(None, None, None)
        self.assertIsNone(self.expect(ana, "host_disconnected"))
        self.assertIsNone(main.registry.get_session(code))

        ana.send_json({"event": "join_game", "data": {"code": code, "nickname": "Ana"}})
        self.assertEqual(self.expect(ana, "error"), "Game not found or already started")
