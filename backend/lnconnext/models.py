"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.

Directory records (organizers, bitcoiners, events, locations, users)
are never deleted: `active_flag` is `'A'` for the live row and `'R'`
for removed rows and history snapshots. Timestamps are stored as naive
UTC datetimes in plain `DateTime` columns.
"""

from typing import List, Optional
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, JSON
from sqlmodel import SQLModel, Field, Relationship

ACTIVE = "A"
REMOVED = "R"


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


_CHILDREN = {"cascade": "all, delete-orphan"}


class Organizer(SQLModel, table=True):
    """An entity that hosts events and has member bitcoiners."""
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)
    bio: str = ""
    website: str = ""
    active_flag: str = Field(default=ACTIVE, index=True, max_length=1)
    updated_by_uid: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    social_media: List["SocialMedia"] = Relationship(back_populates="organizer", sa_relationship_kwargs=_CHILDREN)
    members: List["Bitcoiner"] = Relationship(back_populates="organizer")


class Bitcoiner(SQLModel, table=True):
    """A community member / speaker profile."""
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)
    bio: str = ""
    organizer_id: Optional[str] = Field(default=None, foreign_key="organizer.id", index=True)
    active_flag: str = Field(default=ACTIVE, index=True, max_length=1)
    updated_by_uid: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    organizer: Optional[Organizer] = Relationship(back_populates="members")
    social_media: List["SocialMedia"] = Relationship(back_populates="bitcoiner", sa_relationship_kwargs=_CHILDREN)


class SocialMedia(SQLModel, table=True):
    """A social-media link owned by either a bitcoiner or an organizer."""
    id: str = Field(default_factory=new_id, primary_key=True)
    display_text: str
    platform: str = Field(index=True)
    url_link: str
    bitcoiner_id: Optional[str] = Field(default=None, foreign_key="bitcoiner.id", index=True)
    organizer_id: Optional[str] = Field(default=None, foreign_key="organizer.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    bitcoiner: Optional[Bitcoiner] = Relationship(back_populates="social_media")
    organizer: Optional[Organizer] = Relationship(back_populates="social_media")


class Location(SQLModel, table=True):
    """A venue. Event edits create new rows instead of mutating shared ones."""
    id: str = Field(default_factory=new_id, primary_key=True)
    building_name: str
    address: str
    city: str = Field(index=True)
    google_maps_url: str
    active_flag: str = Field(default=ACTIVE, max_length=1)
    updated_by_uid: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Event(SQLModel, table=True):
    """A published event with its sections, websites and venue."""
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)
    description: str = ""
    start_date: datetime = Field(index=True, sa_type=DateTime)
    end_date: Optional[datetime] = Field(default=None, sa_type=DateTime)
    price: float = 0.0
    currency: str = "THB"
    images: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    organizer_id: str = Field(foreign_key="organizer.id", index=True)
    location_id: Optional[str] = Field(default=None, foreign_key="location.id", index=True)
    active_flag: str = Field(default=ACTIVE, index=True, max_length=1)
    updated_by_uid: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    organizer: Optional[Organizer] = Relationship()
    location: Optional[Location] = Relationship()
    websites: List["EventWebsite"] = Relationship(back_populates="event", sa_relationship_kwargs=_CHILDREN)
    sections: List["EventSection"] = Relationship(
        back_populates="event",
        sa_relationship_kwargs={**_CHILDREN, "order_by": "EventSection.start_time"},
    )


class EventWebsite(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    url: str
    display_text: str
    type: str
    event_id: str = Field(foreign_key="event.id", index=True)
    event: Optional[Event] = Relationship(back_populates="websites")


class EventSection(SQLModel, table=True):
    """A time slot inside an event (talk, panel, workshop)."""
    id: str = Field(default_factory=new_id, primary_key=True)
    section_name: str
    start_time: Optional[datetime] = Field(default=None, sa_type=DateTime)
    end_time: Optional[datetime] = Field(default=None, sa_type=DateTime)
    spot: str = ""
    description: str = ""
    event_id: str = Field(foreign_key="event.id", index=True)
    event: Optional[Event] = Relationship(back_populates="sections")
    participants: List["SectionParticipant"] = Relationship(back_populates="section", sa_relationship_kwargs=_CHILDREN)


class SectionParticipant(SQLModel, table=True):
    """A bitcoiner speaking in an event section."""
    id: str = Field(default_factory=new_id, primary_key=True)
    section_id: str = Field(foreign_key="eventsection.id", index=True)
    bitcoiner_id: str = Field(foreign_key="bitcoiner.id", index=True)
    section: Optional[EventSection] = Relationship(back_populates="participants")
    bitcoiner: Optional[Bitcoiner] = Relationship()


class User(SQLModel, table=True):
    """An editor account mirrored from the identity provider.

    Fields:
    - `uid`: identity provider user id (unique)
    - `role`: application role, `editor` for self-registered users
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    uid: str = Field(index=True, nullable=False, unique=True)
    email: str
    email_verified: bool = False
    role: str = "editor"
    last_login_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    active_flag: str = Field(default=ACTIVE, max_length=1)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
