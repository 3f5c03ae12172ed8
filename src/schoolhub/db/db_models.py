"""SQLAlchemy ORM models.

Every replaceable asset is stored as five columns on the owning row:
``{prefix}_url``, ``{prefix}_object_key``, ``{prefix}_url_old``,
``{prefix}_object_key_old`` and ``{prefix}_delete_pending_until``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base declarative class."""


class SchoolModel(Base):
    __tablename__ = "schools"

    school_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    school_name: Mapped[str] = mapped_column(String(100), nullable=False)
    school_bio_short: Mapped[str | None] = mapped_column(Text)
    school_city: Mapped[str | None] = mapped_column(String(80))
    school_is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # media: icon
    school_icon_url: Mapped[str | None] = mapped_column(Text)
    school_icon_object_key: Mapped[str | None] = mapped_column(Text)
    school_icon_url_old: Mapped[str | None] = mapped_column(Text)
    school_icon_object_key_old: Mapped[str | None] = mapped_column(Text)
    school_icon_delete_pending_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True
    )

    # media: logo
    school_logo_url: Mapped[str | None] = mapped_column(Text)
    school_logo_object_key: Mapped[str | None] = mapped_column(Text)
    school_logo_url_old: Mapped[str | None] = mapped_column(Text)
    school_logo_object_key_old: Mapped[str | None] = mapped_column(Text)
    school_logo_delete_pending_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True
    )

    # media: background
    school_background_url: Mapped[str | None] = mapped_column(Text)
    school_background_object_key: Mapped[str | None] = mapped_column(Text)
    school_background_url_old: Mapped[str | None] = mapped_column(Text)
    school_background_object_key_old: Mapped[str | None] = mapped_column(Text)
    school_background_delete_pending_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True
    )

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class SchoolServicePlanModel(Base):
    __tablename__ = "school_service_plans"

    plan_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    plan_code: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    plan_name: Mapped[str] = mapped_column(String(100), nullable=False)
    plan_description: Mapped[str | None] = mapped_column(Text)
    plan_price_monthly: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    plan_is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    plan_image_url: Mapped[str | None] = mapped_column(Text)
    plan_image_object_key: Mapped[str | None] = mapped_column(Text)
    plan_image_url_old: Mapped[str | None] = mapped_column(Text)
    plan_image_object_key_old: Mapped[str | None] = mapped_column(Text)
    plan_image_delete_pending_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True
    )

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class SubjectModel(Base):
    __tablename__ = "subjects"

    subject_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    subject_school_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("schools.school_id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject_code: Mapped[str] = mapped_column(String(40), nullable=False)
    subject_name: Mapped[str] = mapped_column(String(120), nullable=False)
    subject_desc: Mapped[str | None] = mapped_column(Text)
    subject_is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    subject_image_url: Mapped[str | None] = mapped_column(Text)
    subject_image_object_key: Mapped[str | None] = mapped_column(Text)
    subject_image_url_old: Mapped[str | None] = mapped_column(Text)
    subject_image_object_key_old: Mapped[str | None] = mapped_column(Text)
    subject_image_delete_pending_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True
    )

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class PostModel(Base):
    __tablename__ = "posts"

    post_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    post_school_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("schools.school_id", ondelete="CASCADE"), nullable=False, index=True
    )
    post_title: Mapped[str] = mapped_column(String(200), nullable=False)
    post_content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    post_is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    post_image_url: Mapped[str | None] = mapped_column(Text)
    post_image_object_key: Mapped[str | None] = mapped_column(Text)
    post_image_url_old: Mapped[str | None] = mapped_column(Text)
    post_image_object_key_old: Mapped[str | None] = mapped_column(Text)
    post_image_delete_pending_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True
    )

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class BookModel(Base):
    __tablename__ = "books"

    book_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    book_school_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("schools.school_id", ondelete="CASCADE"), nullable=False, index=True
    )
    book_title: Mapped[str] = mapped_column(String(200), nullable=False)
    book_author: Mapped[str | None] = mapped_column(String(120))
    book_desc: Mapped[str | None] = mapped_column(Text)

    book_image_url: Mapped[str | None] = mapped_column(Text)
    book_image_object_key: Mapped[str | None] = mapped_column(Text)
    book_image_url_old: Mapped[str | None] = mapped_column(Text)
    book_image_object_key_old: Mapped[str | None] = mapped_column(Text)
    book_image_delete_pending_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True
    )

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
