from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_TIME_LIMIT = 20


class WireModel(BaseModel):
    """Base for everything that crosses the socket: camelCase out, either case in."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Question(WireModel):
    text: str
    options: List[str]
    correct_index: int
    time_limit: Optional[int] = None

    @property
    def effective_time_limit(self) -> int:
        return self.time_limit or DEFAULT_TIME_LIMIT


class Participant(WireModel):
    connection_id: str
    nickname: str
    score: int = 0
    streak: int = 0


# States: LOBBY -> QUESTION <-> RESULT -> END
class Phase(str, Enum):
    LOBBY = "LOBBY"
    QUESTION = "QUESTION"
    RESULT = "RESULT"
    END = "END"


class Session(BaseModel):
    code: str
    host_connection: str
    phase: Phase = Phase.LOBBY
    participants: List[Participant] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    current_index: int = -1
    answers_by_question: Dict[int, Dict[str, int]] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def find_participant(self, connection_id: str) -> Optional[Participant]:
        for p in self.participants:
            if p.connection_id == connection_id:
                return p
        return None
