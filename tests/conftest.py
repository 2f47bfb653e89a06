import json
import os
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence
from uuid import uuid4

os.environ.setdefault("DB_PATH", str(Path(tempfile.gettempdir()) / f"mira_import_{uuid4().hex[:8]}.db"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.core.errors import StoreUnavailable, UpstreamError  # noqa: E402
from app.core.types import ConversationTurn, PlanItem, UserProfile  # noqa: E402
from app.db.models import DailyPlanItem, Profile, UserInterest  # noqa: E402
from app.db.session import SessionLocal, configure_database, create_tables  # noqa: E402
from app.db.stores import CoachStores, get_coach_stores  # noqa: E402
from app.services.llm import get_llm_client  # noqa: E402

TERRY = UserProfile(
    friendly_name="Terry",
    coaching_style="Playful",
    retirement_stage="JustRetired",
    interest_categories=("Health",),
)


class FakeScenario(str, Enum):
    SUGGESTIONS = "SUGGESTIONS"
    CONVERSATIONAL = "CONVERSATIONAL"
    CONVERSATIONAL_BARE = "CONVERSATIONAL_BARE"
    FENCED = "FENCED"
    MISSING_HUMAN_MESSAGE = "MISSING_HUMAN_MESSAGE"
    BAD_CATEGORY = "BAD_CATEGORY"
    BAD_LINK = "BAD_LINK"
    PLAIN_TEXT = "PLAIN_TEXT"
    TIMEOUT = "TIMEOUT"


class FakeLLMClient:
    def __init__(self, scenario: FakeScenario, fixture_dir: Path) -> None:
        self.scenario = scenario
        self.fixture_dir = fixture_dir
        self.calls: list[dict] = []

    def _load(self, name: str, suffix: str = "json") -> str:
        return (self.fixture_dir / f"{name}.{suffix}").read_text(encoding="utf-8")

    def complete(self, instruction: str, turns: Sequence[ConversationTurn], user_message: str) -> str:
        self.calls.append({"instruction": instruction, "turns": list(turns), "user_message": user_message})
        if self.scenario == FakeScenario.TIMEOUT:
            raise UpstreamError("simulated timeout", provider="openai", model="gpt-4o")
        if self.scenario == FakeScenario.FENCED:
            return "```json\n" + self._load("SUGGESTIONS") + "\n```"
        if self.scenario == FakeScenario.PLAIN_TEXT:
            return self._load("PLAIN_TEXT", "txt")
        return self._load(self.scenario.value)


class FakeProfileStore:
    def __init__(self, profile: Optional[UserProfile] = TERRY, fail: bool = False) -> None:
        self.profile = profile
        self.fail = fail
        self.calls: list[str] = []

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        self.calls.append(user_id)
        if self.fail:
            raise StoreUnavailable("simulated store outage")
        return self.profile


class FakeInterestStore:
    def __init__(self, interests: Optional[list[str]] = None, error: Optional[Exception] = None) -> None:
        self.interests = interests or []
        self.error = error
        self.calls: list[str] = []

    def get_interests(self, user_id: str) -> list[str]:
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        return list(self.interests)


class FakePlanStore:
    def __init__(self, items: Optional[list[PlanItem]] = None, error: Optional[Exception] = None) -> None:
        self.items = items or []
        self.error = error
        self.calls: list[tuple[str, datetime, datetime]] = []

    def get_plan_items(self, user_id: str, start: datetime, end: datetime) -> list[PlanItem]:
        self.calls.append((user_id, start, end))
        if self.error is not None:
            raise self.error
        return list(self.items)


@pytest.fixture(scope="session")
def fixture_dir() -> Path:
    return Path(__file__).resolve().parent / "fixtures" / "llm"


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    db_path = tmp_path_factory.mktemp("db") / "mira_test.db"
    configure_database(str(db_path))
    create_tables()
    return db_path


@pytest.fixture(scope="session")
def app(test_db_path: Path):
    from app.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def client(app):
    app.dependency_overrides = {}
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def db_session(test_db_path: Path):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def seed_profile(db_session: Session) -> Callable[..., str]:
    def _seed(
        coaching_style: str = "Playful",
        retirement_stage: str = "JustRetired",
        interest_categories: Optional[list[str]] = None,
        interests: Optional[list[str]] = None,
        friendly_name: str = "Terry",
    ) -> str:
        user_id = f"user_{uuid4().hex[:10]}"
        db_session.add(
            Profile(
                user_id=user_id,
                friendly_name=friendly_name,
                coaching_style=coaching_style,
                retirement_stage=retirement_stage,
                interest_categories_json=json.dumps(interest_categories if interest_categories is not None else ["Health"]),
            )
        )
        db_session.flush()
        for interest in interests or []:
            db_session.add(UserInterest(user_id=user_id, interest=interest))
        db_session.commit()
        return user_id

    return _seed


@pytest.fixture
def seed_plan_item(db_session: Session):
    def _seed(
        user_id: str,
        title: str,
        planned_for: datetime,
        completed_at: Optional[datetime] = None,
    ) -> DailyPlanItem:
        row = DailyPlanItem(
            user_id=user_id,
            title=title,
            planned_for=planned_for.astimezone(timezone.utc).replace(tzinfo=None),
            completed_at=completed_at,
        )
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _seed


@pytest.fixture
def fake_llm_factory(fixture_dir: Path) -> Callable[[FakeScenario], FakeLLMClient]:
    def _factory(scenario: FakeScenario) -> FakeLLMClient:
        return FakeLLMClient(scenario=scenario, fixture_dir=fixture_dir)

    return _factory


@pytest.fixture
def override_llm(app, fake_llm_factory):
    def _override(scenario: FakeScenario) -> FakeLLMClient:
        fake = fake_llm_factory(scenario)
        app.dependency_overrides[get_llm_client] = lambda: fake
        return fake

    return _override


@pytest.fixture
def override_stores(app):
    def _override(
        profile: Optional[UserProfile] = TERRY,
        interests: Optional[list[str]] = None,
        plan_items: Optional[list[PlanItem]] = None,
        fail_profile: bool = False,
        interests_error: Optional[Exception] = None,
        plans_error: Optional[Exception] = None,
    ) -> CoachStores:
        stores = CoachStores(
            profiles=FakeProfileStore(profile=profile, fail=fail_profile),
            interests=FakeInterestStore(interests, error=interests_error),
            plans=FakePlanStore(plan_items, error=plans_error),
        )
        app.dependency_overrides[get_coach_stores] = lambda: stores
        return stores

    return _override
