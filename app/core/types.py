from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class CoachingStyle(str, Enum):
    laid_back = "LaidBack"
    structured = "Structured"
    playful = "Playful"
    focused = "Focused"


class RetirementStage(str, Enum):
    planning = "Planning"
    just_retired = "JustRetired"
    settling_in = "SettlingIn"
    redefining = "Redefining"


class ActionCategory(str, Enum):
    growth = "Growth"
    social = "Social"
    giving_back = "GivingBack"
    health = "Health"


@dataclass(frozen=True)
class UserProfile:
    friendly_name: str
    coaching_style: str
    retirement_stage: str
    interest_categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlanItem:
    title: str
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class PlanSnapshot:
    day: date
    completed: tuple[str, ...] = ()
    pending: tuple[str, ...] = ()


@dataclass(frozen=True)
class ContextBundle:
    user_id: str
    profile: UserProfile
    interests: tuple[str, ...]
    plan: PlanSnapshot


@dataclass(frozen=True)
class ChatMessage:
    sender: str
    text: str


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    text: str


@dataclass(frozen=True)
class ComposedPrompt:
    instruction: str
    turns: tuple[ConversationTurn, ...] = field(default_factory=tuple)
    version: str = ""
