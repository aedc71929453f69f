"""Runtime configuration for the coaching service.

Values come from the environment (``.env`` is loaded by ``main.py``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

# Number of user-authored turns after which onboarding counts as complete.
ONBOARDING_TURN_THRESHOLD = 5


def _optional_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


@dataclass(frozen=True)
class Settings:
    supabase_url: str = ""
    supabase_key: str = ""
    model: str = "gpt-4o"
    temperature: float = 0.7
    onboarding_turn_threshold: int = ONBOARDING_TURN_THRESHOLD
    # None disables the timeout; the inference service has no deadline of its own.
    inference_timeout_s: float | None = None
    port: int = 8100

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_SERVICE_KEY", ""),
            model=os.getenv("COACH_MODEL", "gpt-4o"),
            temperature=float(os.getenv("COACH_TEMPERATURE", "0.7")),
            onboarding_turn_threshold=int(os.getenv("ONBOARDING_TURN_THRESHOLD", str(ONBOARDING_TURN_THRESHOLD))),
            inference_timeout_s=_optional_float("INFERENCE_TIMEOUT_S"),
            port=int(os.getenv("PORT", "8100")),
        )
