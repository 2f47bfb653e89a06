import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from app.core.errors import ProfileNotFound, StoreUnavailable
from app.core.types import ContextBundle, PlanItem, PlanSnapshot
from app.db.stores import CoachStores

# IANA zone that defines "today" for daily plan items.
PLAN_TIMEZONE = os.getenv("PLAN_TIMEZONE", "UTC").strip() or "UTC"
# Resolved at import so a bad zone name fails at startup.
PLAN_ZONE = ZoneInfo(PLAN_TIMEZONE)


def day_bounds(now: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Half-open [start, end) interval of the calendar day containing ``now`` in ``tz``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz)
    start = datetime(local.year, local.month, local.day, tzinfo=tz)
    next_day = start.date() + timedelta(days=1)
    end = datetime(next_day.year, next_day.month, next_day.day, tzinfo=tz)
    return start, end


def _partition_plan(items: list[PlanItem], start: datetime) -> PlanSnapshot:
    completed = tuple(item.title for item in items if item.completed_at is not None)
    pending = tuple(item.title for item in items if item.completed_at is None)
    return PlanSnapshot(day=start.date(), completed=completed, pending=pending)


def build_coaching_context(
    user_id: str,
    *,
    stores: CoachStores,
    now: Optional[datetime] = None,
    plan_timezone: Optional[str] = None,
) -> ContextBundle:
    try:
        profile = stores.profiles.get_profile(user_id)
    except StoreUnavailable:
        raise
    except Exception as exc:
        raise StoreUnavailable(f"profile lookup failed: {exc}") from exc
    if profile is None:
        raise ProfileNotFound(f"no profile for user_id={user_id}")

    zone = ZoneInfo(plan_timezone) if plan_timezone else PLAN_ZONE
    start, end = day_bounds(now or datetime.now(timezone.utc), zone)
    try:
        interests = [str(item).strip() for item in stores.interests.get_interests(user_id)]
        plan_items = stores.plans.get_plan_items(user_id, start, end)
    except StoreUnavailable:
        raise
    except Exception as exc:
        raise StoreUnavailable(f"context lookup failed: {exc}") from exc

    return ContextBundle(
        user_id=user_id,
        profile=profile,
        interests=tuple(item for item in interests if item),
        plan=_partition_plan(plan_items, start),
    )
