"""Shared fakes for the coaching tests."""

from __future__ import annotations

import itertools
from datetime import date, datetime
from typing import Any, Iterable, Optional

import pytest

from coaching_pkg.errors import InferenceError
from coaching_pkg.models import ACTIVE_STATUSES, Goal, Profile, SessionRecord


class FakeStore:
    """In-memory ``CoachStore`` that records every write."""

    def __init__(self, profile: Optional[Profile] = None, goals: list[Goal] | None = None,
                 tokens: dict[str, str] | None = None):
        self.profile = profile
        self.goals = list(goals or [])
        self.tokens = tokens or {}
        self.sessions: dict[str, SessionRecord] = {}
        self.profile_updates: list[tuple[str, dict[str, Any]]] = []
        self.ended: list[tuple[str, datetime]] = []
        self.fail_profile_update = False
        self._ids = itertools.count(1)

    def get_current_user(self, access_token: str) -> Optional[str]:
        return self.tokens.get(access_token)

    def fetch_profile(self, user_id: str) -> Optional[Profile]:
        return self.profile

    def fetch_goals(self, user_id: str, statuses: Iterable[str] | None = ACTIVE_STATUSES) -> list[Goal]:
        if statuses is None:
            return list(self.goals)
        allowed = set(statuses)
        return [g for g in self.goals if g.status in allowed]

    def insert_goal(self, user_id: str, fields: dict[str, Any]) -> Optional[Goal]:
        goal = Goal(id=f"goal-{next(self._ids)}", user_id=user_id,
                    **{k: v for k, v in fields.items() if v is not None})
        self.goals.insert(0, goal)
        return goal

    def update_goal_status(self, user_id: str, goal_id: str, status: str) -> bool:
        for i, g in enumerate(self.goals):
            if g.id == goal_id and g.user_id == user_id:
                self.goals[i] = g.model_copy(update={"status": status})
                return True
        return False

    def create_session(self, user_id: str, is_onboarding: bool) -> Optional[SessionRecord]:
        record = SessionRecord(id=f"session-{next(self._ids)}", user_id=user_id, is_onboarding=is_onboarding)
        self.sessions[record.id] = record
        return record

    def end_session(self, session_id: str, ended_at: datetime) -> bool:
        self.ended.append((session_id, ended_at))
        self.sessions[session_id] = self.sessions[session_id].model_copy(update={"ended_at": ended_at})
        return True

    def update_profile(self, user_id: str, fields: dict[str, Any]) -> bool:
        self.profile_updates.append((user_id, dict(fields)))
        return not self.fail_profile_update


class FakeInference:
    """Scripted inference service that records the instructions it was given."""

    def __init__(self, replies: list[str] | None = None, fail: bool = False):
        self.replies = list(replies or [])
        self.fail = fail
        self.calls: list[tuple[list[dict[str, str]], str]] = []

    async def complete(self, messages: list[dict[str, str]], system_instructions: str) -> str:
        self.calls.append((list(messages), system_instructions))
        if self.fail:
            raise InferenceError("upstream unavailable")
        if self.replies:
            return self.replies.pop(0)
        return f"reply {len(self.calls)}"


@pytest.fixture
def new_profile() -> Profile:
    return Profile(id="user-1", email="sam@example.com", display_name="Sam")


@pytest.fixture
def onboarded_profile() -> Profile:
    return Profile(
        id="user-1",
        email="sam@example.com",
        display_name="Sam",
        financial_literacy_level="beginner",
        financial_situation={"income_range": "50-75k", "employment": "full-time"},
        coaching_preferences={"check_in": "weekly"},
        onboarding_completed=True,
    )


@pytest.fixture
def emergency_fund_goal() -> Goal:
    return Goal(
        id="goal-ef",
        user_id="user-1",
        title="Build $5,000 emergency fund",
        status="behind",
        domain="saving",
        deadline=date(2025, 12, 1),
    )
