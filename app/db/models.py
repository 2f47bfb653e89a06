from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    friendly_name: Mapped[str] = mapped_column(String(120), nullable=False)
    coaching_style: Mapped[str] = mapped_column(String(32), nullable=False)
    retirement_stage: Mapped[str] = mapped_column(String(32), nullable=False)
    # JSON list of broad tags, e.g. ["Health", "Social"].
    interest_categories_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    interests: Mapped[list["UserInterest"]] = relationship(
        "UserInterest", back_populates="profile", cascade="all, delete-orphan"
    )
    plan_items: Mapped[list["DailyPlanItem"]] = relationship(
        "DailyPlanItem", back_populates="profile", cascade="all, delete-orphan"
    )


class UserInterest(Base):
    __tablename__ = "user_interests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.user_id"), nullable=False, index=True)
    interest: Mapped[str] = mapped_column(String(120), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    profile: Mapped[Profile] = relationship("Profile", back_populates="interests")


class DailyPlanItem(Base):
    __tablename__ = "daily_plan_items"
    __table_args__ = (Index("ix_daily_plan_items_user_planned", "user_id", "planned_for"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.user_id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    # Naive UTC timestamps.
    planned_for: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    profile: Mapped[Profile] = relationship("Profile", back_populates="plan_items")
