"""Records exchanged with storage and the inference service."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

LiteracyLevel = Literal["beginner", "intermediate", "advanced"]
GoalStatus = Literal["active", "on_track", "behind", "completed", "abandoned"]
GoalDomain = Literal["budgeting", "debt", "saving", "investing", "income"]
Role = Literal["user", "assistant"]

# Goals in these states are injected into the coaching context.
ACTIVE_STATUSES: tuple[str, ...] = ("active", "on_track", "behind")


class Profile(BaseModel):
    """A row of the ``users`` table."""

    id: str
    email: str = ""
    display_name: Optional[str] = None
    financial_literacy_level: LiteracyLevel = "beginner"
    financial_situation: dict[str, Any] = Field(default_factory=dict)
    coaching_preferences: dict[str, Any] = Field(default_factory=dict)
    onboarding_completed: bool = False


class Goal(BaseModel):
    id: str = ""
    user_id: str = ""
    title: str
    description: Optional[str] = None
    target_value: Optional[float] = None
    target_unit: Optional[str] = None
    deadline: Optional[date] = None
    status: GoalStatus = "active"
    domain: Optional[GoalDomain] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class SessionRecord(BaseModel):
    """A row of the ``sessions`` table."""

    id: str
    user_id: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    is_onboarding: bool = False


class Turn(BaseModel):
    role: Role
    content: str


def active_goals(goals: list[Goal]) -> list[Goal]:
    """Keep only goals eligible for context injection, preserving order."""
    return [g for g in goals if g.is_active]
