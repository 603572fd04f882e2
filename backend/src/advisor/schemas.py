from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field

UNSPECIFIED = "unspecified"
DEFAULT_CURRENCY = "soles"


def _now_iso() -> str:
    return datetime.now().isoformat()


class Transaction(BaseModel):
    """A single income or expense registered from a conversation."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    amount: float = Field(gt=0)
    currency: str = DEFAULT_CURRENCY
    source: Optional[str] = None
    category: Optional[str] = None
    date: str = Field(default_factory=_now_iso)
    registered_at: str = Field(default_factory=_now_iso)
    ai_processed: bool = True


class FinancialData(BaseModel):
    income: List[Transaction] = Field(default_factory=list)
    expenses: List[Transaction] = Field(default_factory=list)
    goals: List[Any] = Field(default_factory=list)


class UserProfile(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    financial_data: FinancialData = Field(default_factory=FinancialData)
    last_updated: Optional[str] = None


class Exchange(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    user: str
    agent: str
    formatted_time: str = Field(default_factory=lambda: datetime.now().strftime("%d/%m/%Y %H:%M"))


class ConversationContext(BaseModel):
    recent_messages: List[Exchange] = Field(default_factory=list)
    user_profile: UserProfile = Field(default_factory=UserProfile)
    total_interactions: int = 0
    first_interaction: Optional[str] = None
    last_interaction: Optional[str] = None


class IncomeCandidate(BaseModel):
    amount: float = Field(gt=0)
    source: str = UNSPECIFIED


class ExpenseCandidate(BaseModel):
    amount: float = Field(gt=0)
    category: str = UNSPECIFIED


class DetectedFacts(BaseModel):
    name: Optional[str] = None
    incomes: List[IncomeCandidate] = Field(default_factory=list)
    expenses: List[ExpenseCandidate] = Field(default_factory=list)


class TaggedTransaction(Transaction):
    type: Literal["income", "expense"]


class SimulationStats(BaseModel):
    income_count: int = 0
    expense_count: int = 0
    name_detected: bool = False
    total_income: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0
    transactions: List[TaggedTransaction] = Field(default_factory=list)
