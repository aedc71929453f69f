"""A live coaching session and the per-user registry of open sessions."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .config import Settings
from .db import CoachStore
from .inference import InferenceService
from .lifecycle import SessionController, SessionState
from .models import Goal, Profile
from .orchestrator import DialogueOrchestrator, TurnResult
from .transcript import Transcript

logger = logging.getLogger("coach.session")


class CoachingSession:
    """Profile, goals and transcript of one open conversation window."""

    def __init__(self, user_id: str, goals: list[Goal], controller: SessionController, orchestrator: DialogueOrchestrator):
        self.user_id = user_id
        self.goals = goals
        self.transcript = Transcript()
        self.controller = controller
        self.orchestrator = orchestrator

    @classmethod
    async def open(cls, store: CoachStore, inference: InferenceService, user_id: str,
                   settings: Settings | None = None) -> "CoachingSession":
        """Load the user's state, create the session record and greet if onboarding."""
        settings = settings or Settings()
        profile = store.fetch_profile(user_id)
        goals = store.fetch_goals(user_id)

        controller = SessionController(store, user_id, profile, settings.onboarding_turn_threshold)
        session = cls(user_id, goals, controller, DialogueOrchestrator(inference, controller))
        controller.start()
        await session.orchestrator.greet(session.transcript, profile)
        return session

    @property
    def profile(self) -> Optional[Profile]:
        # The controller holds the copy updated when onboarding completes.
        return self.controller.profile

    @property
    def session_id(self) -> Optional[str]:
        return self.controller.session_id

    @property
    def state(self) -> SessionState:
        return self.controller.state

    async def send(self, text: str) -> TurnResult:
        return await self.orchestrator.submit_turn(self.transcript, text, self.profile, self.goals)

    def end(self) -> datetime:
        return self.controller.end()


class SessionRegistry:
    """Keeps at most one open session per user, in process memory."""

    def __init__(self):
        self._sessions: dict[str, CoachingSession] = {}

    def get(self, user_id: str) -> Optional[CoachingSession]:
        return self._sessions.get(user_id)

    async def open(self, store: CoachStore, inference: InferenceService, user_id: str,
                   settings: Settings | None = None) -> CoachingSession:
        self._end_registered(user_id)
        session = await CoachingSession.open(store, inference, user_id, settings)
        # An overlapping open may have registered a session during the greeting.
        self._end_registered(user_id)
        self._sessions[user_id] = session
        return session

    def _end_registered(self, user_id: str) -> None:
        previous = self._sessions.pop(user_id, None)
        if previous is not None and not previous.controller.is_ended:
            logger.info(f"[open] ending previous session={previous.session_id} user={user_id}")
            previous.end()

    def close(self, user_id: str) -> Optional[datetime]:
        session = self._sessions.pop(user_id, None)
        if session is None:
            return None
        return session.end()

    def __len__(self) -> int:
        return len(self._sessions)
