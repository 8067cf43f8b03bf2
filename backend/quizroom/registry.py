from __future__ import annotations

import logging
import random
from typing import Dict, NamedTuple, Optional

from .models import Participant, Session

logger = logging.getLogger(__name__)

CODE_DIGITS = 6


class Removal(NamedTuple):
    code: str
    session: Session
    host_left: bool


class SessionRegistry:
    """Live sessions keyed by join code.

    Every connection is bound to at most one session, either as its host or
    as a participant. The binding is what lets a disconnect be resolved
    without guessing.
    """

    def __init__(self, rng: Optional[random.Random] = None, code_digits: int = CODE_DIGITS):
        self.sessions: Dict[str, Session] = {}
        self._bindings: Dict[str, str] = {}  # connection id -> code
        self._rng = rng or random.SystemRandom()
        self._low = 10 ** (code_digits - 1)
        self._high = 10 ** code_digits - 1

    def _generate_code(self) -> str:
        code = str(self._rng.randint(self._low, self._high))
        while code in self.sessions:
            code = str(self._rng.randint(self._low, self._high))
        return code

    def create_session(self, host_connection_id: str) -> str:
        if host_connection_id in self._bindings:
            raise ValueError("Connection already belongs to a game")

        code = self._generate_code()
        self.sessions[code] = Session(code=code, host_connection=host_connection_id)
        self._bindings[host_connection_id] = code
        logger.info("session %s created by %s", code, host_connection_id)
        return code

    def get_session(self, code: str) -> Optional[Session]:
        return self.sessions.get(code)

    def session_for(self, connection_id: str) -> Optional[Session]:
        code = self._bindings.get(connection_id)
        return self.sessions.get(code) if code else None

    def add_participant(self, code: str, participant: Participant) -> bool:
        s = self.sessions.get(code)
        if not s or participant.connection_id in self._bindings:
            return False
        s.participants.append(participant)
        self._bindings[participant.connection_id] = code
        return True

    def remove_by_connection(self, connection_id: str) -> Optional[Removal]:
        code = self._bindings.pop(connection_id, None)
        s = self.sessions.get(code) if code else None
        if not s:
            return None

        if s.host_connection == connection_id:
            del self.sessions[code]
            for p in s.participants:
                self._bindings.pop(p.connection_id, None)
            logger.info("session %s removed, host %s left", code, connection_id)
            return Removal(code, s, host_left=True)

        s.participants = [p for p in s.participants if p.connection_id != connection_id]
        return Removal(code, s, host_left=False)
