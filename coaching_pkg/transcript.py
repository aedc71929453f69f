"""In-memory conversation log for one coaching session."""

from __future__ import annotations

from typing import Iterator

from .models import Role, Turn


class Transcript:
    """Ordered, append-only list of turns.

    Lives only as long as the session that owns it; nothing here is persisted.
    """

    def __init__(self, turns: list[Turn] | None = None):
        self._turns: list[Turn] = list(turns or [])

    def append(self, role: Role, content: str) -> Turn:
        turn = Turn(role=role, content=content)
        self._turns.append(turn)
        return turn

    def add_user(self, content: str) -> Turn:
        return self.append("user", content)

    def add_assistant(self, content: str) -> Turn:
        return self.append("assistant", content)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def user_turn_count(self) -> int:
        return sum(1 for t in self._turns if t.role == "user")

    def as_messages(self) -> list[dict[str, str]]:
        """Turns in the ``{"role", "content"}`` shape the inference service takes."""
        return [{"role": t.role, "content": t.content} for t in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)
