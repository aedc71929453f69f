"""Exceptions raised by the coaching core."""

from __future__ import annotations


class CoachingError(Exception):
    """Base class for coaching errors."""


class EmptyMessageError(CoachingError):
    """The outgoing message was empty after trimming whitespace."""


class TurnInFlightError(CoachingError):
    """A turn is already pending for this session."""


class SessionEndedError(CoachingError):
    """The session has already been ended."""


class InferenceError(CoachingError):
    """The inference service failed or timed out.

    Only carries a human-readable message; the upstream service exposes
    no structured error taxonomy.
    """
