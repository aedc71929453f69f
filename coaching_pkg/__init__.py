"""Finance coaching service — context assembly and session orchestration."""

from .context import build_context
from .orchestrator import DialogueOrchestrator, TurnResult
from .session import CoachingSession, SessionRegistry

__all__ = ["build_context", "DialogueOrchestrator", "TurnResult", "CoachingSession", "SessionRegistry"]
