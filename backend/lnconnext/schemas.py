"""Pydantic schemas for normalized request payloads.

Handlers receive raw JSON; `validators` checks it field by field (so
error messages stay stable for clients) and returns these schemas with
trimmed / lower-cased / parsed values that services can trust.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SocialMediaIn(BaseModel):
    """A social-media link on a bitcoiner or organizer."""
    display_text: str
    platform: str
    url_link: str


class BitcoinerIn(BaseModel):
    """Create/update payload for a bitcoiner."""
    name: str
    bio: str
    social_media: List[SocialMediaIn] = Field(default_factory=list)
    organizer_id: Optional[str] = None


class OrganizerIn(BaseModel):
    """Create/update payload for an organizer."""
    name: str
    bio: str
    website: str
    social_media: List[SocialMediaIn] = Field(default_factory=list)


class LocationIn(BaseModel):
    building_name: str
    address: str
    city: str
    google_maps_url: str


class WebsiteIn(BaseModel):
    url: str
    display_text: str
    type: str


class SectionIn(BaseModel):
    section_name: str
    start_time: datetime
    end_time: datetime
    spot: str
    description: str
    speaker_ids: List[str] = Field(default_factory=list)


class EventIn(BaseModel):
    """Create/update payload for an event."""
    name: str
    description: str
    start_date: datetime
    end_date: datetime
    price: float
    currency: str
    images: List[str] = Field(default_factory=list)
    organizer_id: str
    location: Optional[LocationIn] = None
    websites: List[WebsiteIn] = Field(default_factory=list)
    sections: List[SectionIn] = Field(default_factory=list)


class DirectoryFilters(BaseModel):
    """List filters shared by the bitcoiner and organizer directories."""
    search_term: Optional[str] = None
    selected_platform: Optional[str] = None
    limit: int = 100
    offset: int = 0


class EventFilters(BaseModel):
    search_term: Optional[str] = None
    organizer_id: Optional[str] = None
    location_id: Optional[str] = None
    start_date_from: Optional[datetime] = None
    start_date_to: Optional[datetime] = None
    limit: int = 100
    offset: int = 0
