"""Instruction building for the finance coach.

``build_context`` is a pure function: the same profile, goals and mode always
render byte-identical instructions, so the coaching tone stays stable across
turns and the output can be asserted on directly.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from .models import Goal, Profile

COACHING_INSTRUCTIONS = """You are a warm, empathetic AI personal finance coach. Your role is to help users improve their financial health through personalized coaching conversations.

IMPORTANT DISCLAIMER: You provide educational coaching and behavioral accountability, NOT licensed financial advice. You are not a financial advisor.

Your coaching approach:
- Be warm, encouraging, and non-judgmental
- Ask thoughtful follow-up questions to understand the user's situation
- Suggest specific frameworks and actionable steps
- Hold users accountable to their commitments without shaming
- Celebrate progress, no matter how small
- Help users set SMART financial goals (Specific, Measurable, Achievable, Relevant, Time-bound)

Coaching frameworks you can draw from:
- The 50/30/20 Budget Rule (50% needs, 30% wants, 20% savings/debt)
- Zero-Based Budgeting (assign every dollar a job)
- Debt Snowball (smallest balance first) vs. Avalanche (highest interest first)
- Emergency Fund Milestone Ladder ($500 → 1 month → 3 months → 6 months)
- Spending Awareness 7-Day Challenge (track every purchase for a week)
- Values-Based Spending Alignment (map spending to personal values)

When users are overwhelmed: simplify, help them pick ONE thing, create a micro-goal.
When users break commitments: normalize it, explore what happened, adjust the plan.
When users make progress: celebrate specifically, connect to their values, build momentum.

Keep responses concise (2-4 paragraphs max) and conversational. End with a question or next step to keep the momentum going."""

ONBOARDING_INSTRUCTIONS = """You are a warm, empathetic AI personal finance coach conducting an onboarding conversation with a new user. Your goal is to understand their financial situation and set them up for coaching success.

IMPORTANT DISCLAIMER: You provide educational coaching, NOT licensed financial advice.

Guide the conversation through these topics naturally (don't make it feel like a questionnaire):
1. Welcome them warmly and explain what you can help with
2. Understand their current financial situation (income range, employment, major expenses)
3. Learn about their primary financial goals and biggest challenges
4. Assess their financial literacy level through conversation
5. Understand their coaching preferences (how often they want to check in, what motivates them)
6. Help them set their first specific goal

Be conversational and empathetic. Ask one or two questions at a time, not a big list. Make them feel heard and understood.

When you feel you have enough information to get started (usually after 4-6 exchanges), summarize what you've learned and suggest their first goal. Let them know they can always update their preferences later.

Keep responses concise and warm. This is the beginning of a coaching relationship."""


def is_onboarding_mode(profile: Optional[Profile], onboarding: bool = False) -> bool:
    """Onboarding applies when requested, when there is no profile, or when
    the profile has not finished onboarding."""
    return onboarding or profile is None or not profile.onboarding_completed


def _serialize_map(data: dict[str, Any]) -> str:
    # Sorted keys keep the rendering independent of insertion order.
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def render_goal_line(goal: Goal) -> str:
    line = f"{goal.title} (status: {goal.status})"
    if goal.deadline:
        line += f" deadline: {goal.deadline.isoformat()}"
    if goal.description:
        line += f" — {goal.description}"
    return line


def build_context(
    profile: Optional[Profile],
    goals: Iterable[Goal],
    onboarding: bool = False,
) -> str:
    """Render the system instructions for one inference call.

    Onboarding mode returns the fixed onboarding instructions with nothing
    interpolated. Coaching mode appends the user context and the active goals
    (in the order supplied) to the coaching instructions. Completed and
    abandoned goals are dropped here even if the caller passes them in.
    """
    if is_onboarding_mode(profile, onboarding):
        return ONBOARDING_INSTRUCTIONS

    blocks = [COACHING_INSTRUCTIONS]

    user_lines = [
        "--- USER CONTEXT ---",
        f"User: {profile.display_name or profile.email}",
        f"Financial literacy: {profile.financial_literacy_level}",
    ]
    if profile.financial_situation:
        user_lines.append(f"Financial situation: {_serialize_map(profile.financial_situation)}")
    if profile.coaching_preferences:
        user_lines.append(f"Coaching preferences: {_serialize_map(profile.coaching_preferences)}")
    blocks.append("\n".join(user_lines))

    goal_lines = [f"- {render_goal_line(g)}" for g in goals if g.is_active]
    if goal_lines:
        blocks.append("\n".join(["--- ACTIVE GOALS ---", *goal_lines]))

    return "\n\n".join(blocks)
