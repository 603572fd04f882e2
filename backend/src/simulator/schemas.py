from __future__ import annotations

from datetime import datetime
from typing import Literal, Tuple
import uuid

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.advisor.schemas import SimulationStats

TEST_PLAN: Tuple[str, ...] = (
    "greeting",
    "income_report",
    "expense_report",
    "financial_question",
    "goal_setting",
    "advice_request",
    "follow_up",
    "farewell",
)


class Persona(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    age: int = Field(ge=25, le=54)
    profession: str
    personality: str
    financial_situation: str


class ConversationState(BaseModel):
    is_active: bool = False
    is_paused: bool = False
    current_step: int = Field(default=0, ge=0)
    total_steps: int = Field(default=len(TEST_PLAN), gt=0)

    @model_validator(mode="after")
    def _step_within_plan(self) -> "ConversationState":
        if self.current_step > self.total_steps:
            raise ValueError("current_step cannot exceed total_steps")
        return self


class ChatEvent(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    sender: Literal["client", "agent"]
    timestamp: datetime = Field(default_factory=datetime.now)
    kind: Literal["text", "system"] = "text"


class StatsEvent(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=datetime.now)
    stats: SimulationStats
