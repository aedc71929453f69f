"""Language-model backend for coaching turns.

The core only needs ``complete(messages, system_instructions) -> str``; the
OpenAI Agents SDK adapter below is the production implementation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from agents import Agent, ModelSettings, Runner

from .config import Settings
from .errors import InferenceError

logger = logging.getLogger("coach.inference")


class InferenceService(Protocol):
    async def complete(self, messages: list[dict[str, str]], system_instructions: str) -> str:
        """Return the assistant reply or raise ``InferenceError``."""
        ...


class AgentsInference:
    """Runs one Agents SDK agent per call with the rendered instructions."""

    def __init__(self, settings: Settings):
        self.model = settings.model
        self.temperature = settings.temperature
        self.timeout_s = settings.inference_timeout_s

    def _build_agent(self, system_instructions: str) -> Agent:
        return Agent(
            name="Finance Coach",
            instructions=system_instructions,
            model=self.model,
            model_settings=ModelSettings(temperature=self.temperature),
        )

    async def complete(self, messages: list[dict[str, str]], system_instructions: str) -> str:
        agent = self._build_agent(system_instructions)
        try:
            run = Runner.run(agent, list(messages))
            if self.timeout_s is not None:
                result = await asyncio.wait_for(run, timeout=self.timeout_s)
            else:
                result = await run
        except asyncio.TimeoutError as e:
            logger.warning(f"[complete] timed out after {self.timeout_s}s")
            raise InferenceError("Inference timed out") from e
        except Exception as e:
            logger.error(f"[complete] failed: {e}")
            raise InferenceError(str(e)[:200] or "Inference failed") from e

        text = str(result.final_output or "").strip()
        if not text:
            raise InferenceError("Inference returned an empty response")
        logger.info(f"[complete] model={self.model} turns={len(messages)} len={len(text)}")
        return text
