from __future__ import annotations

import logging
import math
from typing import List, Optional

from .events import ConnectionHub
from .models import Participant, Phase, Question, Session
from .registry import Removal, SessionRegistry
from .utils import sort_leaderboard

logger = logging.getLogger(__name__)


BASE_POINTS = 500
SPEED_POINTS = 500
SCORING_WINDOW_SEC = 20

JOIN_REJECTED = "Game not found or already started"
ALREADY_IN_GAME = "Connection already belongs to a game"


def points_for(time_left: float) -> int:
    """Points for a correct answer given the seconds the client had left.

    The client's clock is trusted, but clamped to the scoring window so one
    answer is always worth between 500 and 1000 points.
    """
    time_left = min(max(time_left, 0), SCORING_WINDOW_SEC)
    return BASE_POINTS + math.floor(SPEED_POINTS * time_left / SCORING_WINDOW_SEC)


class SessionEngine:
    def __init__(self, registry: SessionRegistry, hub: ConnectionHub):
        self.registry = registry
        self.hub = hub

    def _host_session(self, code: str, connection_id: str) -> Optional[Session]:
        s = self.registry.get_session(code)
        if not s or s.host_connection != connection_id:
            logger.debug("ignoring host command on %s from %s", code, connection_id)
            return None
        return s

    def create_game(self, connection_id: str, questions: List[Question]) -> Optional[str]:
        try:
            code = self.registry.create_session(connection_id)
        except ValueError as exc:
            self.hub.send(connection_id, "error", str(exc))
            return None

        s = self.registry.get_session(code)
        s.questions = list(questions)
        self.hub.join_room(code, connection_id)
        self.hub.send(connection_id, "game_created", code)
        return code

    def start_game(self, code: str, connection_id: str) -> bool:
        s = self._host_session(code, connection_id)
        if not s or s.phase != Phase.LOBBY or not s.questions:
            return False

        s.phase = Phase.QUESTION
        s.current_index = 0
        s.answers_by_question[0] = {}
        logger.info("session %s started with %d participants", code, len(s.participants))

        self.hub.broadcast(code, "game_started")
        self.send_question(s)
        return True

    def next_question(self, code: str, connection_id: str) -> bool:
        s = self._host_session(code, connection_id)
        if not s or s.phase in (Phase.LOBBY, Phase.END):
            return False

        s.current_index += 1
        if s.current_index < len(s.questions):
            s.phase = Phase.QUESTION
            s.answers_by_question[s.current_index] = {}
            self.send_question(s)
        else:
            s.phase = Phase.END
            logger.info("session %s finished", code)
            self.hub.broadcast(code, "game_over", self._wire_leaderboard(s))
        return True

    def show_results(self, code: str, connection_id: str) -> bool:
        s = self._host_session(code, connection_id)
        if not s:
            return False

        q = s.current_question
        if q is None:
            return False

        s.phase = Phase.RESULT
        self.hub.broadcast(
            code,
            "question_results",
            {"correctAnswer": q.correct_index, "leaderboard": self._wire_leaderboard(s)},
        )
        return True

    def join_game(self, code: str, connection_id: str, nickname: str) -> Optional[Participant]:
        s = self.registry.get_session(code)
        if not s or s.phase != Phase.LOBBY:
            self.hub.send(connection_id, "error", JOIN_REJECTED)
            return None

        if self.registry.session_for(connection_id):
            self.hub.send(connection_id, "error", ALREADY_IN_GAME)
            return None

        p = Participant(connection_id=connection_id, nickname=nickname)
        self.registry.add_participant(code, p)

        self.hub.join_room(code, connection_id)
        self.hub.broadcast(code, "player_joined", self._wire_participants(s))
        self.hub.send(connection_id, "joined_success", {"code": code, "nickname": nickname})
        return p

    def submit_answer(self, code: str, connection_id: str, answer_index: int, time_left: float) -> bool:
        s = self.registry.get_session(code)
        if not s or s.phase != Phase.QUESTION or not math.isfinite(time_left):
            return False

        p = s.find_participant(connection_id)
        if not p:
            return False

        answers = s.answers_by_question.setdefault(s.current_index, {})
        if connection_id in answers:
            return False
        answers[connection_id] = answer_index

        if answer_index == s.current_question.correct_index:
            p.score += points_for(time_left)
            p.streak += 1
        else:
            p.streak = 0

        self.hub.send(
            s.host_connection,
            "player_answered",
            {"participantId": connection_id, "count": len(answers)},
        )
        return True

    def disconnect(self, connection_id: str) -> Optional[Removal]:
        removal = self.registry.remove_by_connection(connection_id)
        if not removal:
            return None

        self.hub.leave_room(removal.code, connection_id)
        if removal.host_left:
            self.hub.broadcast(removal.code, "host_disconnected")
            self.hub.close_room(removal.code)
        else:
            self.hub.broadcast(removal.code, "player_left", self._wire_participants(removal.session))
        return removal

    def send_question(self, s: Session) -> None:
        q = s.current_question
        full = q.wire()
        full["timeLimit"] = q.effective_time_limit
        self.hub.send(s.host_connection, "new_question_host", full)
        self.hub.broadcast(
            s.code,
            "new_question_player",
            {
                "text": q.text,
                "options": q.options,
                "timeLimit": q.effective_time_limit,
                "index": s.current_index,
                "total": len(s.questions),
            },
            skip=s.host_connection,
        )

    def get_leaderboard(self, s: Session) -> List[Participant]:
        return sort_leaderboard(s.participants)

    def _wire_leaderboard(self, s: Session) -> List[dict]:
        return [p.wire() for p in self.get_leaderboard(s)]

    def _wire_participants(self, s: Session) -> List[dict]:
        return [p.wire() for p in s.participants]
