"""
friends.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- applications       — API clients allowed to authenticate users
- users              — Member accounts
- user_metadata      — 1:1 member profile (names, demographics, points)
- membership_records — External membership roster (``roster`` provider)
- badges / activities / rewards — Gamification catalogue (read-only here)
- user_badges / user_activities / user_rewards — Earned / completed items
- bookmarks          — Items a member saved for later
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Friends ORM models."""


# ---------------------------------------------------------------------------
# Association tables — what a member has earned or completed
# ---------------------------------------------------------------------------
def _user_pivot(name: str, target_table: str, target_col: str) -> Table:
    return Table(
        name,
        Base.metadata,
        Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        Column(
            target_col,
            ForeignKey(f"{target_table}.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        Column("created_at", DateTime(timezone=True), server_default=func.now()),
    )


user_badges = _user_pivot("user_badges", "badges", "badge_id")
user_activities = _user_pivot("user_activities", "activities", "activity_id")
user_rewards = _user_pivot("user_rewards", "rewards", "reward_id")


# ---------------------------------------------------------------------------
# Application — API client keyed by app_key
# ---------------------------------------------------------------------------
class Application(Base):
    """An integration (kiosk, mobile app, partner site) allowed to call the API.

    Every token is scoped to the ``app_key`` that requested it.
    """
    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    app_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Application id={self.id} name={self.name!r} active={self.is_active}>"


# ---------------------------------------------------------------------------
# Users — one row per member
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    username: Mapped[str | None] = mapped_column(String(255), unique=True, default=None)
    barcode_id: Mapped[str | None] = mapped_column(String(64), unique=True, default=None)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    # Set for accounts imported without a usable password
    password_reset_required: Mapped[bool] = mapped_column(Boolean, default=False)
    phone: Mapped[str] = mapped_column(String(50), default="")
    street_addr: Mapped[str] = mapped_column(String(255), default="")
    city: Mapped[str] = mapped_column(String(100), default="")
    state: Mapped[str] = mapped_column(String(50), default="")
    zip: Mapped[str] = mapped_column(String(20), default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    metadata_: Mapped[UserMetadata | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    badges: Mapped[list[Badge]] = relationship(secondary=user_badges)
    activities: Mapped[list[Activity]] = relationship(secondary=user_activities)
    rewards: Mapped[list[Reward]] = relationship(secondary=user_rewards)
    bookmarks: Mapped[list[Bookmark]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"


# ---------------------------------------------------------------------------
# UserMetadata — member profile
# ---------------------------------------------------------------------------
class UserMetadata(Base):
    __tablename__ = "user_metadata"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    birth_date: Mapped[date | None] = mapped_column(Date, default=None)
    email_optin: Mapped[bool] = mapped_column(Boolean, default=False)
    gender: Mapped[str | None] = mapped_column(String(50), default=None)
    race: Mapped[str | None] = mapped_column(String(100), default=None)
    household_income: Mapped[str | None] = mapped_column(String(50), default=None)
    household_size: Mapped[str | None] = mapped_column(String(10), default=None)
    education: Mapped[str | None] = mapped_column(String(100), default=None)
    points: Mapped[int] = mapped_column(Integer, default=0)
    current_member: Mapped[bool] = mapped_column(Boolean, default=False)
    current_member_number: Mapped[str] = mapped_column(String(64), default="")

    user: Mapped[User] = relationship(back_populates="metadata_")

    def __repr__(self) -> str:
        return f"<UserMetadata user={self.user_id} member={self.current_member}>"


# ---------------------------------------------------------------------------
# MembershipRecord — external membership roster
# ---------------------------------------------------------------------------
class MembershipRecord(Base):
    """A membership held outside the Friends platform.

    Rows are loaded from the membership office's roster.  A record becomes
    bound to a member account once the member verifies it and registers.
    """
    __tablename__ = "membership_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    level: Mapped[str | None] = mapped_column(String(50), default=None)
    expires_on: Mapped[date | None] = mapped_column(Date, default=None)
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("ix_membership_records_email", "email"),
    )

    def __repr__(self) -> str:
        return f"<MembershipRecord number={self.member_number!r} user={self.user_id}>"


# ---------------------------------------------------------------------------
# Gamification catalogue
# ---------------------------------------------------------------------------
class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    points: Mapped[int] = mapped_column(Integer, default=0)
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    wordpress_id: Mapped[int | None] = mapped_column(Integer, default=None)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<Badge id={self.id} title={self.title!r}>"


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    activity_code: Mapped[str | None] = mapped_column(String(50), default=None)
    points: Mapped[int] = mapped_column(Integer, default=0)
    wordpress_id: Mapped[int | None] = mapped_column(Integer, default=None)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("ix_activities_code", "activity_code"),
    )

    def __repr__(self) -> str:
        return f"<Activity id={self.id} title={self.title!r}>"


class Reward(Base):
    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    points: Mapped[int] = mapped_column(Integer, default=0)
    inventory: Mapped[int | None] = mapped_column(Integer, default=None)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<Reward id={self.id} title={self.title!r}>"


# ---------------------------------------------------------------------------
# Bookmark — a member's saved badge / activity / reward
# ---------------------------------------------------------------------------
class Bookmark(Base):
    __tablename__ = "bookmarks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    object_type: Mapped[str] = mapped_column(String(20), nullable=False)
    object_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="bookmarks")

    __table_args__ = (
        UniqueConstraint("user_id", "object_type", "object_id", name="uq_bookmarks_user_object"),
        Index("ix_bookmarks_user_type", "user_id", "object_type"),
    )

    def __repr__(self) -> str:
        return f"<Bookmark user={self.user_id} {self.object_type}={self.object_id}>"
