"""Session lifecycle: onboarding vs. coaching, start, end and completion."""

from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Optional

from .config import ONBOARDING_TURN_THRESHOLD
from .context import is_onboarding_mode
from .db import CoachStore, now_utc
from .errors import SessionEndedError
from .models import Profile, SessionRecord

logger = logging.getLogger("coach.lifecycle")


class SessionState(str, enum.Enum):
    NOT_STARTED = "not_started"
    ONBOARDING = "onboarding"
    COACHING = "coaching"
    ENDED = "ended"


class SessionController:
    """Owns the state machine of one coaching session.

    ``is_onboarding`` on the session record is a snapshot taken at start and
    never changes afterwards, even when onboarding completes mid-session. The
    live mode is tracked separately in ``state``.
    """

    def __init__(self, store: CoachStore, user_id: str, profile: Optional[Profile],
                 turn_threshold: int = ONBOARDING_TURN_THRESHOLD):
        self.store = store
        self.user_id = user_id
        self.profile = profile
        self.turn_threshold = turn_threshold
        self.state = SessionState.NOT_STARTED
        self.record: Optional[SessionRecord] = None
        self.is_onboarding_snapshot = False
        self.ended_at: Optional[datetime] = None
        self._completion_sent = False

    @property
    def session_id(self) -> Optional[str]:
        return self.record.id if self.record else None

    @property
    def is_onboarding(self) -> bool:
        return self.state == SessionState.ONBOARDING

    @property
    def is_ended(self) -> bool:
        return self.state == SessionState.ENDED

    def start(self) -> SessionState:
        if self.state != SessionState.NOT_STARTED:
            return self.state

        self.is_onboarding_snapshot = is_onboarding_mode(self.profile)
        self.record = self.store.create_session(self.user_id, self.is_onboarding_snapshot)
        if self.record is None:
            # Persisting the session is best-effort; the conversation still runs.
            logger.error(f"[start] session record not created user={self.user_id}")

        self.state = SessionState.ONBOARDING if self.is_onboarding_snapshot else SessionState.COACHING
        logger.info(
            f"[start] user={self.user_id} session={self.session_id} "
            f"state={self.state.value}"
        )
        return self.state

    def record_successful_turn(self, user_turn_count: int) -> bool:
        """Flip to coaching once the user has written enough turns.

        Returns True only on the call that completed onboarding. The profile
        update is issued at most once per session; the in-memory transition
        happens even if that update fails.
        """
        if self.state != SessionState.ONBOARDING or self._completion_sent:
            return False
        if self.profile is None or user_turn_count < self.turn_threshold:
            return False

        self._completion_sent = True
        ok = self.store.update_profile(self.user_id, {"onboarding_completed": True})
        if not ok:
            logger.error(f"[complete_onboarding] profile update failed user={self.user_id}; continuing in coaching mode")

        self.profile = self.profile.model_copy(update={"onboarding_completed": True})
        self.state = SessionState.COACHING
        logger.info(f"[complete_onboarding] user={self.user_id} turns={user_turn_count}")
        return True

    def end(self) -> datetime:
        if self.state == SessionState.ENDED:
            raise SessionEndedError(f"session {self.session_id} already ended")

        self.ended_at = now_utc()
        if self.record is not None:
            if not self.store.end_session(self.record.id, self.ended_at):
                logger.error(f"[end] could not stamp ended_at session={self.record.id}")
        self.state = SessionState.ENDED
        logger.info(f"[end] user={self.user_id} session={self.session_id}")
        return self.ended_at
