"""Supabase storage and identity for the coaching service.

Helpers are best-effort: a failed query is logged and reported as ``None``,
``False`` or ``[]`` instead of raising, so a storage hiccup never breaks a
conversation turn.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Protocol

from supabase import Client, create_client

from .config import Settings
from .models import ACTIVE_STATUSES, Goal, GoalStatus, Profile, SessionRecord

logger = logging.getLogger("coach.db")

_client: Client | None = None


def get_db(settings: Settings | None = None) -> Client:
    global _client
    if _client is None:
        settings = settings or Settings.from_env()
        if not settings.supabase_url or not settings.supabase_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client initialized")
    return _client


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


# ── Generic helpers ─────────────────────────────────────────────────

def insert_row(table: str, row: dict[str, Any]) -> dict | None:
    try:
        resp = get_db().table(table).insert(row).execute()
        return resp.data[0] if resp.data else None
    except Exception as e:
        logger.error(f"insert_row({table}) failed: {e}")
        return None


def update_rows(table: str, values: dict[str, Any], filters: dict[str, Any]) -> list[dict] | None:
    """Return the updated rows (empty when nothing matched), or None on failure."""
    try:
        q = get_db().table(table).update(values)
        for k, v in filters.items():
            q = q.eq(k, v)
        resp = q.execute()
        return resp.data or []
    except Exception as e:
        logger.error(f"update_rows({table}) failed: {e}")
        return None


def find_one(table: str, filters: dict[str, Any], select: str = "*") -> dict | None:
    try:
        q = get_db().table(table).select(select)
        for k, v in filters.items():
            q = q.eq(k, v)
        resp = q.limit(1).maybe_single().execute()
        return resp.data if resp else None
    except Exception as e:
        logger.error(f"find_one({table}) failed: {e}")
        return None


def find_many(table: str, filters: dict[str, Any], select: str = "*",
              in_filters: dict[str, Iterable[Any]] | None = None,
              order_by: str | None = None, ascending: bool = True,
              limit: int = 100) -> list[dict]:
    try:
        q = get_db().table(table).select(select)
        for k, v in filters.items():
            q = q.eq(k, v)
        for k, values in (in_filters or {}).items():
            q = q.in_(k, list(values))
        if order_by:
            q = q.order(order_by, desc=not ascending)
        resp = q.limit(limit).execute()
        return resp.data or []
    except Exception as e:
        logger.error(f"find_many({table}) failed: {e}")
        return []


# ── Table names ─────────────────────────────────────────────────────

USERS = "users"
GOALS = "goals"
SESSIONS = "sessions"


# ── Store interface ─────────────────────────────────────────────────

class CoachStore(Protocol):
    """Identity and record storage consumed by the coaching core."""

    def get_current_user(self, access_token: str) -> Optional[str]: ...

    def fetch_profile(self, user_id: str) -> Optional[Profile]: ...

    def fetch_goals(self, user_id: str, statuses: Iterable[str] | None = None) -> list[Goal]: ...

    def insert_goal(self, user_id: str, fields: dict[str, Any]) -> Optional[Goal]: ...

    def update_goal_status(self, user_id: str, goal_id: str, status: GoalStatus) -> bool: ...

    def create_session(self, user_id: str, is_onboarding: bool) -> Optional[SessionRecord]: ...

    def end_session(self, session_id: str, ended_at: datetime) -> bool: ...

    def update_profile(self, user_id: str, fields: dict[str, Any]) -> bool: ...


class SupabaseStore:
    """``CoachStore`` backed by the Supabase tables and auth API."""

    def get_current_user(self, access_token: str) -> Optional[str]:
        try:
            resp = get_db().auth.get_user(access_token)
        except Exception as e:
            logger.warning(f"get_current_user failed: {e}")
            return None
        user = getattr(resp, "user", None)
        return getattr(user, "id", None)

    def fetch_profile(self, user_id: str) -> Optional[Profile]:
        row = find_one(USERS, {"id": user_id})
        return Profile.model_validate(row) if row else None

    def fetch_goals(self, user_id: str, statuses: Iterable[str] | None = ACTIVE_STATUSES) -> list[Goal]:
        rows = find_many(
            GOALS, {"user_id": user_id},
            in_filters={"status": statuses} if statuses is not None else None,
            order_by="created_at", ascending=False,
        )
        return [Goal.model_validate(r) for r in rows]

    def insert_goal(self, user_id: str, fields: dict[str, Any]) -> Optional[Goal]:
        row = {k: v for k, v in fields.items() if v is not None}
        if "deadline" in row:
            row["deadline"] = str(row["deadline"])
        created = insert_row(GOALS, {**row, "user_id": user_id})
        return Goal.model_validate(created) if created else None

    def update_goal_status(self, user_id: str, goal_id: str, status: GoalStatus) -> bool:
        """False when the goal does not exist or belongs to another user."""
        return bool(update_rows(GOALS, {"status": status}, {"id": goal_id, "user_id": user_id}))

    def create_session(self, user_id: str, is_onboarding: bool) -> Optional[SessionRecord]:
        row = insert_row(SESSIONS, {"user_id": user_id, "is_onboarding": is_onboarding})
        return SessionRecord.model_validate(row) if row else None

    def end_session(self, session_id: str, ended_at: datetime) -> bool:
        return update_rows(SESSIONS, {"ended_at": ended_at.isoformat()}, {"id": session_id}) is not None

    def update_profile(self, user_id: str, fields: dict[str, Any]) -> bool:
        return update_rows(USERS, fields, {"id": user_id}) is not None
