import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StoreUnavailable
from app.core.types import PlanItem, UserProfile
from app.db.models import DailyPlanItem, Profile, UserInterest
from app.db.session import get_db


class ProfileStore(Protocol):
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...


class InterestStore(Protocol):
    def get_interests(self, user_id: str) -> list[str]:
        ...


class PlanStore(Protocol):
    def get_plan_items(self, user_id: str, start: datetime, end: datetime) -> list[PlanItem]:
        ...


@dataclass
class CoachStores:
    profiles: ProfileStore
    interests: InterestStore
    plans: PlanStore


def _parse_categories(raw: Optional[str]) -> tuple[str, ...]:
    if not raw:
        return ()
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        # Older rows hold a comma-separated string.
        parsed = raw.split(",")
    if isinstance(parsed, str):
        parsed = [parsed]
    if not isinstance(parsed, list):
        return ()
    seen: list[str] = []
    for item in parsed:
        value = str(item).strip()
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SqlProfileStore:
    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            row = self.db.query(Profile).filter(Profile.user_id == user_id).first()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"profile lookup failed: {exc}") from exc
        if not row:
            return None
        return UserProfile(
            friendly_name=row.friendly_name,
            coaching_style=row.coaching_style,
            retirement_stage=row.retirement_stage,
            interest_categories=_parse_categories(row.interest_categories_json),
        )


class SqlInterestStore:
    def __init__(self, db: Session):
        self.db = db

    def get_interests(self, user_id: str) -> list[str]:
        try:
            rows = (
                self.db.query(UserInterest)
                .filter(UserInterest.user_id == user_id)
                .order_by(UserInterest.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"interest lookup failed: {exc}") from exc
        return [row.interest for row in rows]


class SqlPlanStore:
    def __init__(self, db: Session):
        self.db = db

    def get_plan_items(self, user_id: str, start: datetime, end: datetime) -> list[PlanItem]:
        try:
            rows = (
                self.db.query(DailyPlanItem)
                .filter(
                    DailyPlanItem.user_id == user_id,
                    DailyPlanItem.planned_for >= _to_naive_utc(start),
                    DailyPlanItem.planned_for < _to_naive_utc(end),
                )
                .order_by(DailyPlanItem.planned_for.asc(), DailyPlanItem.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"plan lookup failed: {exc}") from exc
        return [PlanItem(title=row.title, completed_at=row.completed_at) for row in rows]


def get_coach_stores(db: Session = Depends(get_db)) -> CoachStores:
    return CoachStores(
        profiles=SqlProfileStore(db),
        interests=SqlInterestStore(db),
        plans=SqlPlanStore(db),
    )
