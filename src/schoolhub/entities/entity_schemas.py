"""Pydantic schemas for entity payloads.

Media columns are never part of these schemas; slots change only through
uploads or explicit ``{slot}_url`` / ``{slot}_object_key`` / ``{slot}_clear``
keys handled by the router.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class SchoolCreate(_Payload):
    school_name: str = Field(..., min_length=1, max_length=100)
    school_bio_short: str | None = None
    school_city: str | None = Field(default=None, max_length=80)
    school_is_active: bool = True


class SchoolUpdate(_Payload):
    school_name: str | None = Field(default=None, min_length=1, max_length=100)
    school_bio_short: str | None = None
    school_city: str | None = Field(default=None, max_length=80)
    school_is_active: bool | None = None


class ServicePlanCreate(_Payload):
    plan_code: str = Field(..., min_length=1, max_length=30)
    plan_name: str = Field(..., min_length=1, max_length=100)
    plan_description: str | None = None
    plan_price_monthly: Decimal | None = Field(default=None, ge=0)
    plan_is_active: bool = True


class ServicePlanUpdate(_Payload):
    plan_code: str | None = Field(default=None, min_length=1, max_length=30)
    plan_name: str | None = Field(default=None, min_length=1, max_length=100)
    plan_description: str | None = None
    plan_price_monthly: Decimal | None = Field(default=None, ge=0)
    plan_is_active: bool | None = None


class SubjectCreate(_Payload):
    subject_code: str = Field(..., min_length=1, max_length=40)
    subject_name: str = Field(..., min_length=1, max_length=120)
    subject_desc: str | None = None
    subject_is_active: bool = True


class SubjectUpdate(_Payload):
    subject_code: str | None = Field(default=None, min_length=1, max_length=40)
    subject_name: str | None = Field(default=None, min_length=1, max_length=120)
    subject_desc: str | None = None
    subject_is_active: bool | None = None


class PostCreate(_Payload):
    post_title: str = Field(..., min_length=1, max_length=200)
    post_content: str = ""
    post_is_published: bool = False


class PostUpdate(_Payload):
    post_title: str | None = Field(default=None, min_length=1, max_length=200)
    post_content: str | None = None
    post_is_published: bool | None = None


class BookCreate(_Payload):
    book_title: str = Field(..., min_length=1, max_length=200)
    book_author: str | None = Field(default=None, max_length=120)
    book_desc: str | None = None


class BookUpdate(_Payload):
    book_title: str | None = Field(default=None, min_length=1, max_length=200)
    book_author: str | None = Field(default=None, max_length=120)
    book_desc: str | None = None


class SlotReceipt(BaseModel):
    uploaded_url: str | None = None
    moved_old_url: str | None = None
    deleted_keys: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


__all__ = [
    "BookCreate",
    "BookUpdate",
    "PostCreate",
    "PostUpdate",
    "SchoolCreate",
    "SchoolUpdate",
    "ServicePlanCreate",
    "ServicePlanUpdate",
    "SlotReceipt",
    "SubjectCreate",
    "SubjectUpdate",
]
