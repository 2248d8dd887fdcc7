"""Pydantic models for decisions, the decision log and API payloads."""

import random
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chaispas.errors import ValidationError


class Choice(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(description="Unique identifier of this entry.")
    text: str = Field(min_length=1, description="What the user typed.")
    number: int = Field(
        description="Informational tag shown next to the entry. Never used for selection."
    )

    @classmethod
    def create(cls, text: str) -> "Choice":
        """Build a fresh entry from user input, the way the input form does."""
        text = text.strip()
        if not text:
            raise ValidationError("Choice text cannot be empty")
        return cls(id=uuid4().hex, text=text, number=random.randint(1, 1000))


class DecisionRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    id: str
    timestamp: datetime
    choices: List[Choice] = Field(
        min_length=2, description="The full candidate set at decision time."
    )
    selected_choice: Choice = Field(alias="selectedChoice")
    decision_time: int = Field(
        alias="decisionTime", ge=0, description="Elapsed decision time in milliseconds."
    )

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are UTC, the same way the database stores them
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_consistent(self) -> bool:
        return self.selected_choice.id in {choice.id for choice in self.choices}


class ChoiceCount(BaseModel):
    text: str
    count: int


class AnalyticsSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_decisions: int = Field(alias="totalDecisions")
    total_choices: int = Field(alias="totalChoices")
    average_choices_per_decision: float = Field(alias="averageChoicesPerDecision")
    average_decision_time: int = Field(alias="averageDecisionTime")
    most_common_choices: List[ChoiceCount] = Field(alias="mostCommonChoices")
    recent_decisions: List[DecisionRecord] = Field(alias="recentDecisions")
    decision_history: List[DecisionRecord] = Field(alias="decisionHistory")

    def timeline(self, n: int = 7) -> List[DecisionRecord]:
        """The last ``n`` decisions, most recent first."""
        if n <= 0:
            return []
        return list(reversed(self.decision_history[-n:]))


class DecideRequest(BaseModel):
    choices: List[Choice]


class DecideResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    selected_choice: Choice = Field(alias="selectedChoice")
    decision_time: int = Field(alias="decisionTime")


class SubmittedChoice(BaseModel):
    # Ids are assigned server side, so any client id is ignored.
    id: Optional[str] = None
    text: str = Field(min_length=1)
    number: int


class SaveDecisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    choices: List[SubmittedChoice] = Field(min_length=2)
    selected_choice: SubmittedChoice = Field(alias="selectedChoice")
    decision_time: int = Field(alias="decisionTime", ge=0)


class SaveDecisionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    decision_id: str = Field(alias="decisionId")
