from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field

from .models import Participant, Phase, Question, WireModel


class InboundFrame(BaseModel):
    event: str
    data: Any = None


class CreateGameIn(BaseModel):
    questions: List[Question]


class CodeIn(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    code: str


class JoinIn(WireModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    code: str
    nickname: str


class AnswerIn(WireModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    code: str
    answer_index: int
    time_left: float = Field(0, allow_inf_nan=False)


class PublicSessionOut(WireModel):
    code: str
    phase: Phase
    participants: List[Participant]
    current_index: int
    total_questions: int
