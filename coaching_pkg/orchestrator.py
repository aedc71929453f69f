"""Drives a single request/response turn of a coaching conversation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .context import build_context
from .errors import EmptyMessageError, SessionEndedError, TurnInFlightError
from .inference import InferenceService
from .lifecycle import SessionController
from .models import Goal, Profile
from .transcript import Transcript

logger = logging.getLogger("coach.orchestrator")

FALLBACK_GREETING = (
    "Welcome! I'm your personal finance coach. I'm here to help you build better "
    "financial habits and reach your goals. Let's start by getting to know each other — "
    "what's your name, and what brought you here today?"
)

FALLBACK_REPLY = (
    "I'm sorry, I'm having trouble connecting right now. Please try again in a moment."
)


@dataclass
class TurnResult:
    transcript: Transcript
    reply: str
    fallback: bool = False
    onboarding_completed: bool = False


class DialogueOrchestrator:
    """Sequences turns for one session.

    The user turn is appended before the inference call is awaited, and only
    one turn may be pending at a time, so turns can never be reordered.
    Inference failures become a fallback assistant turn; they never propagate.
    """

    def __init__(self, inference: InferenceService, controller: SessionController):
        self.inference = inference
        self.controller = controller
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def submit_turn(
        self,
        transcript: Transcript,
        user_text: str,
        profile: Optional[Profile],
        goals: Iterable[Goal],
    ) -> TurnResult:
        text = (user_text or "").strip()
        if not text:
            raise EmptyMessageError("message is empty")
        if self.controller.is_ended:
            raise SessionEndedError(f"session {self.controller.session_id} has ended")
        if self._in_flight:
            raise TurnInFlightError("a turn is already pending for this session")

        self._in_flight = True
        try:
            transcript.add_user(text)
            instructions = build_context(profile, goals, onboarding=self.controller.is_onboarding)
            logger.info(
                f"[submit_turn] user={self.controller.user_id} "
                f"mode={self.controller.state.value} msg={text[:80]}"
            )
            try:
                reply = await self.inference.complete(transcript.as_messages(), instructions)
            except Exception as e:
                logger.warning(f"[submit_turn] inference failed user={self.controller.user_id}: {e}")
                transcript.add_assistant(FALLBACK_REPLY)
                return TurnResult(transcript, FALLBACK_REPLY, fallback=True)

            transcript.add_assistant(reply)
            completed = self.controller.record_successful_turn(transcript.user_turn_count)
            return TurnResult(transcript, reply, onboarding_completed=completed)
        finally:
            self._in_flight = False

    async def greet(self, transcript: Transcript, profile: Optional[Profile]) -> Optional[TurnResult]:
        """Ask for an opening message when an onboarding session starts empty.

        Returns None when no greeting applies.
        """
        if not self.controller.is_onboarding or len(transcript) > 0:
            return None
        if self._in_flight:
            raise TurnInFlightError("a turn is already pending for this session")

        self._in_flight = True
        try:
            instructions = build_context(profile, [], onboarding=True)
            try:
                greeting = await self.inference.complete([], instructions)
            except Exception as e:
                logger.warning(f"[greet] inference failed user={self.controller.user_id}: {e}")
                transcript.add_assistant(FALLBACK_GREETING)
                return TurnResult(transcript, FALLBACK_GREETING, fallback=True)

            transcript.add_assistant(greeting)
            return TurnResult(transcript, greeting)
        finally:
            self._in_flight = False
