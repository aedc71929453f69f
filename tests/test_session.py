"""
Coaching Session & Registry Tests
=================================

End-to-end flows over fake storage and inference.
"""

import asyncio

from coaching_pkg.config import Settings
from coaching_pkg.context import COACHING_INSTRUCTIONS, ONBOARDING_INSTRUCTIONS
from coaching_pkg.lifecycle import SessionState
from coaching_pkg.models import Goal
from coaching_pkg.orchestrator import FALLBACK_GREETING
from coaching_pkg.session import CoachingSession, SessionRegistry
from tests.conftest import FakeInference, FakeStore


class TestCoachingSession:

    def test_onboarding_open_greets(self, new_profile):
        store = FakeStore(new_profile)
        inference = FakeInference(["Welcome aboard!"])

        session = asyncio.run(CoachingSession.open(store, inference, "user-1"))

        assert session.state == SessionState.ONBOARDING
        assert session.transcript.as_messages() == [{"role": "assistant", "content": "Welcome aboard!"}]

    def test_onboarding_open_with_failing_inference(self, new_profile):
        session = asyncio.run(CoachingSession.open(FakeStore(new_profile), FakeInference(fail=True), "user-1"))
        assert session.transcript.as_messages() == [{"role": "assistant", "content": FALLBACK_GREETING}]

    def test_coaching_open_starts_empty(self, onboarded_profile):
        inference = FakeInference()
        session = asyncio.run(CoachingSession.open(FakeStore(onboarded_profile), inference, "user-1"))

        assert session.state == SessionState.COACHING
        assert len(session.transcript) == 0
        assert inference.calls == []

    def test_only_active_goals_loaded(self, onboarded_profile, emergency_fund_goal):
        store = FakeStore(onboarded_profile, goals=[
            emergency_fund_goal,
            Goal(id="g2", title="Paid off student loan", status="completed"),
        ])
        session = asyncio.run(CoachingSession.open(store, FakeInference(), "user-1"))
        assert [g.title for g in session.goals] == ["Build $5,000 emergency fund"]

    def test_sixth_turn_uses_coaching_instructions(self, new_profile, emergency_fund_goal):
        store = FakeStore(new_profile, goals=[emergency_fund_goal])
        inference = FakeInference()

        async def run():
            session = await CoachingSession.open(store, inference, "user-1")
            for i in range(6):
                await session.send(f"message {i + 1}")
            return session

        session = asyncio.run(run())

        # greeting + 6 turns
        assert len(inference.calls) == 7
        assert inference.calls[5][1] == ONBOARDING_INSTRUCTIONS
        assert inference.calls[6][1].startswith(COACHING_INSTRUCTIONS)
        assert "Build $5,000 emergency fund" in inference.calls[6][1]
        assert store.profile_updates == [("user-1", {"onboarding_completed": True})]
        assert session.state == SessionState.COACHING
        assert store.sessions[session.session_id].is_onboarding is True

    def test_threshold_from_settings(self, new_profile):
        store = FakeStore(new_profile)

        async def run():
            session = await CoachingSession.open(
                store, FakeInference(), "user-1", Settings(onboarding_turn_threshold=2))
            await session.send("one")
            await session.send("two")
            return session

        assert asyncio.run(run()).state == SessionState.COACHING


class TestSessionRegistry:

    def test_open_replaces_and_ends_previous(self, onboarded_profile):
        store = FakeStore(onboarded_profile)
        registry = SessionRegistry()

        async def run():
            first = await registry.open(store, FakeInference(), "user-1")
            second = await registry.open(store, FakeInference(), "user-1")
            return first, second

        first, second = asyncio.run(run())

        assert first.state == SessionState.ENDED
        assert registry.get("user-1") is second
        assert [sid for sid, _ in store.ended] == [first.session_id]
        assert len(registry) == 1

    def test_close_ends_and_forgets(self, onboarded_profile):
        store = FakeStore(onboarded_profile)
        registry = SessionRegistry()
        session = asyncio.run(registry.open(store, FakeInference(), "user-1"))

        ended_at = registry.close("user-1")

        assert ended_at is not None
        assert session.state == SessionState.ENDED
        assert registry.get("user-1") is None
        assert registry.close("user-1") is None

    def test_overlapping_opens_leave_no_open_orphan(self, new_profile):
        """Two opens racing through the greeting: the loser is ended, not dropped."""
        store = FakeStore(new_profile)
        registry = SessionRegistry()

        class SlowGreeting(FakeInference):
            async def complete(self, messages, system_instructions):
                await asyncio.sleep(0.01)
                return await super().complete(messages, system_instructions)

        async def run():
            return await asyncio.gather(
                registry.open(store, SlowGreeting(), "user-1"),
                registry.open(store, SlowGreeting(), "user-1"),
            )

        first, second = asyncio.run(run())

        assert len(store.sessions) == 2
        registered = registry.get("user-1")
        assert registered in (first, second)
        orphan = second if registered is first else first
        assert orphan.state == SessionState.ENDED
        assert registered.state == SessionState.ONBOARDING
        assert [sid for sid, _ in store.ended] == [orphan.session_id]
        assert store.sessions[orphan.session_id].ended_at is not None

    def test_users_are_isolated(self, onboarded_profile):
        store = FakeStore(onboarded_profile)
        registry = SessionRegistry()

        async def run():
            await registry.open(store, FakeInference(), "user-1")
            await registry.open(store, FakeInference(), "user-2")

        asyncio.run(run())
        assert len(registry) == 2
        assert store.ended == []
