from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from app.core.response_contract import DEFAULT_CONTRACT, ResponseContract
from app.core.types import ActionCategory, ChatMessage, CoachingStyle, ComposedPrompt, ContextBundle, ConversationTurn

HISTORY_WINDOW = 3
ACTIVE_STYLE_MARKER = "<- this user"

PERSONA_PROMPT = """
You are Mira, the friendly retirement coach in the Primify app, a mirror into each user's next chapter.

Your mission is to help users build a life of meaning, wellness, connection, and growth in retirement, one day at a time.

You offer:
- Personalized daily nudges
- Reflections and affirmations
- Specific activities to try
- Links to sign up or learn more from well-known sites such as Eventbrite, VolunteerMatch or Meetup (you cannot browse, so only share links you are confident exist)
"""

TONE_BY_STYLE: dict[str, str] = {
    CoachingStyle.laid_back.value: "gentle and encouraging",
    CoachingStyle.structured.value: "step-by-step and motivating",
    CoachingStyle.playful.value: "light and fun",
    CoachingStyle.focused.value: "clear and goal-oriented",
}

UNKNOWN_STYLE_TONE = "no matching tone, stay warm and encouraging"


@dataclass(frozen=True)
class PromptTemplate:
    version: str
    persona: str
    contract: ResponseContract


PROMPT_TEMPLATES: dict[str, PromptTemplate] = {
    "mira-v2": PromptTemplate(version="mira-v2", persona=PERSONA_PROMPT, contract=DEFAULT_CONTRACT),
}

DEFAULT_PROMPT_VERSION = "mira-v2"


def _join_or_none(values: Sequence[str]) -> str:
    return ", ".join(values) if values else "None"


def _tone_lines(active_style: str) -> list[str]:
    lines = []
    for style, tone in TONE_BY_STYLE.items():
        suffix = f"  {ACTIVE_STYLE_MARKER}" if style == active_style else ""
        lines.append(f"- {style}: {tone}{suffix}")
    if active_style not in TONE_BY_STYLE:
        lines.append(f"- {active_style}: {UNKNOWN_STYLE_TONE}  {ACTIVE_STYLE_MARKER}")
    return lines


def _output_contract_lines(contract: ResponseContract) -> list[str]:
    categories = ", ".join(f'"{item.value}"' for item in ActionCategory)
    return [
        "Response format:",
        "Always reply with one JSON object and nothing else (no markdown, no code fences):",
        "{",
        '  "humanMessage": string, at most 2 sentences, in the user\'s tone,',
        f'  "microActions": array of 0 to {contract.max_micro_actions} objects, each with',
        '    "title": string, a short title,',
        '    "description": string, one sentence,',
        '    "learnMoreLink": string, optional absolute https URL to sign up or learn more,',
        f'    "category": one of {categories},',
        f'  "followUpPrompts": array of {contract.min_follow_ups} to {contract.max_follow_ups} strings, '
        f"short replies the user might send next, first person, at most "
        f"{contract.follow_up_soft_max_words} words each",
        "}",
        'Leave out "learnMoreLink" when you have no reliable link.',
    ]


def _bypass_lines(contract: ResponseContract) -> list[str]:
    return [
        "When to suggest:",
        f"- If the user asks for ideas, activities or help with their day, include 1 to {contract.max_micro_actions} "
        "microActions that fit their interests and what is still pending today.",
        "- Never suggest something the user already completed today.",
        "- If the user is sharing feelings, venting or just chatting, they are not seeking suggestions: "
        'return "microActions": [] and a purely conversational humanMessage; "followUpPrompts" may be empty too.',
    ]


def render_instruction(context: ContextBundle, *, version: str = DEFAULT_PROMPT_VERSION) -> str:
    template = PROMPT_TEMPLATES[version]
    profile = context.profile
    plan = context.plan
    lines = [
        template.persona.strip(),
        "",
        f'Your tone follows the user\'s coaching style. Use the tone on the line marked "{ACTIVE_STYLE_MARKER}":',
        *_tone_lines(profile.coaching_style),
        "",
        "User profile:",
        f"- Friendly name: {profile.friendly_name}",
        f'- Coaching style: see the line marked "{ACTIVE_STYLE_MARKER}" above',
        f"- Retirement stage: {profile.retirement_stage}",
        f"- Broad interest categories: {_join_or_none(profile.interest_categories)}",
        f"- Specific interests: {_join_or_none(context.interests)}",
        "",
        f"Today's plan ({plan.day.isoformat()}):",
        f"- Completed: {_join_or_none(plan.completed)}",
        f"- Pending: {_join_or_none(plan.pending)}",
        "",
        *_output_contract_lines(template.contract),
        "",
        *_bypass_lines(template.contract),
    ]
    return "\n".join(lines).strip()


def bound_history(history: Sequence[ChatMessage]) -> tuple[ConversationTurn, ...]:
    recent = list(history)[-HISTORY_WINDOW:] if history else []
    return tuple(
        ConversationTurn(role="user" if item.sender == "user" else "assistant", text=item.text)
        for item in recent
    )


def compose_prompt(
    context: ContextBundle,
    history: Sequence[ChatMessage] = (),
    *,
    version: str = DEFAULT_PROMPT_VERSION,
) -> ComposedPrompt:
    return ComposedPrompt(
        instruction=render_instruction(context, version=version),
        turns=bound_history(history),
        version=version,
    )
