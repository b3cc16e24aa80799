"""
intent.py — Pydantic schema for a fully hydrated intent.

This is the record shape the region drill-down returns. The columns come
from the platform's intents table; nested objects are assembled in SQL by
IntentStore.hydrate() (json_build_object / json_agg), so this module only
describes and validates them.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UserSummary(_CamelModel):
    id: str
    name: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    verified_at: Optional[datetime] = Field(default=None, alias="verifiedAt")


class CategoryOut(BaseModel):
    id: str
    slug: str
    name: Optional[str] = None


class TagOut(BaseModel):
    id: str
    slug: str
    label: Optional[str] = None


class SponsorshipOut(_CamelModel):
    plan: str
    status: Optional[str] = None
    sponsor: Optional[UserSummary] = None


class Intent(_CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    start_at: datetime = Field(..., alias="startAt")
    end_at: datetime = Field(..., alias="endAt")

    visibility: str
    join_mode: str = Field(..., alias="joinMode")
    meeting_kind: str = Field(..., alias="meetingKind")
    levels: list[str] = Field(default_factory=list)

    # Promotion timestamp; only counts for ordering within the boost window.
    boosted_at: Optional[datetime] = Field(default=None, alias="boostedAt")
    canceled_at: Optional[datetime] = Field(default=None, alias="canceledAt")
    deleted_at: Optional[datetime] = Field(default=None, alias="deletedAt")
    created_at: datetime = Field(..., alias="createdAt")

    members_count: int = Field(default=0, alias="membersCount")
    owner: Optional[UserSummary] = None
    categories: list[CategoryOut] = Field(default_factory=list)
    tags: list[TagOut] = Field(default_factory=list)
    sponsorship: Optional[SponsorshipOut] = None
