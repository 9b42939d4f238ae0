"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and shape their results into the camelCase dictionaries the web client
reads. Services check cross-record rules (an organizer must be active,
speakers must exist) and raise `AppError` subclasses on failure.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from . import models, repositories
from .auth import CurrentUser
from .config import settings
from .errors import ConflictError, NotFoundError, ValidationError
from .models import utcnow
from .schemas import BitcoinerIn, DirectoryFilters, EventFilters, EventIn, OrganizerIn
from .utils import calendar, sitemap

logger = logging.getLogger("lnconnext.services")

RECENT_EVENTS = 5


def iso(value: Optional[datetime]) -> Optional[str]:
    """Format a naive UTC datetime as ISO-8601 with a `Z` suffix."""
    if value is None:
        return None
    return value.isoformat() + "Z"


def social_media_out(rows: List[models.SocialMedia]) -> List[dict]:
    return [
        {"id": s.id, "displayText": s.display_text, "platform": s.platform, "urlLink": s.url_link}
        for s in rows
    ]


def location_out(location: Optional[models.Location]) -> Optional[dict]:
    if location is None:
        return None
    return {
        "id": location.id,
        "buildingName": location.building_name,
        "address": location.address,
        "city": location.city,
        "googleMapsUrl": location.google_maps_url,
    }


def event_item(event: models.Event) -> dict:
    """Compact representation used by every event listing."""
    images = event.images or []
    return {
        "id": event.id,
        "name": event.name,
        "startDate": iso(event.start_date),
        "price": event.price,
        "currency": event.currency,
        "firstImage": images[0] if images else "",
        "organizerName": event.organizer.name if event.organizer else "",
        "location": location_out(event.location),
    }


def event_participants(event: models.Event) -> List[dict]:
    """Speakers across all sections, unique by bitcoiner, first seen first."""
    seen = set()
    out = []
    for section in event.sections:
        for p in section.participants:
            if p.bitcoiner_id in seen:
                continue
            seen.add(p.bitcoiner_id)
            out.append({
                "id": p.id,
                "bitcoinerId": p.bitcoiner_id,
                "bitcoinerName": p.bitcoiner.name if p.bitcoiner else "",
            })
    return out


def _ensure_active_organizer(session: Session, organizer_id: Optional[str]) -> None:
    if organizer_id is None:
        return
    if repositories.OrganizerRepository(session).get(organizer_id) is None:
        raise ValidationError("Organizer not found or inactive")


class BitcoinerService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.BitcoinerRepository(session)

    def create(self, data: BitcoinerIn, user: CurrentUser) -> dict:
        _ensure_active_organizer(self.session, data.organizer_id)
        bitcoiner = self.repo.create(data, user.uid)
        logger.info("bitcoiner created id=%s by=%s", bitcoiner.id, user.uid)
        return {}

    def get(self, bitcoiner_id: str) -> dict:
        b = self.repo.get(bitcoiner_id)
        if b is None:
            raise NotFoundError("Bitcoiner not found")
        return {
            "id": b.id,
            "name": b.name,
            "bio": b.bio,
            "socialMedia": social_media_out(b.social_media),
            "organizerId": b.organizer_id,
            "organizerName": b.organizer.name if b.organizer else None,
            "updatedAt": iso(b.updated_at),
        }

    def list(self, filters: DirectoryFilters) -> dict:
        rows, total = self.repo.list(filters)
        return {
            "bitcoiners": [
                {
                    "id": b.id,
                    "name": b.name,
                    "bio": b.bio,
                    "socialMedia": social_media_out(b.social_media),
                    "organizerId": b.organizer_id,
                    "updatedAt": iso(b.updated_at),
                }
                for b in rows
            ],
            "total": total,
        }

    def update(self, bitcoiner_id: str, data: BitcoinerIn, user: CurrentUser) -> dict:
        _ensure_active_organizer(self.session, data.organizer_id)
        if self.repo.update(bitcoiner_id, data, user.uid) is None:
            raise NotFoundError("Bitcoiner not found")
        logger.info("bitcoiner updated id=%s by=%s", bitcoiner_id, user.uid)
        return {}

    def delete(self, bitcoiner_id: str, user: CurrentUser) -> dict:
        if not self.repo.soft_delete(bitcoiner_id, user.uid):
            raise NotFoundError("Bitcoiner not found")
        logger.info("bitcoiner removed id=%s by=%s", bitcoiner_id, user.uid)
        return {}


class OrganizerService:
    """Organizer CRUD plus the per-organizer event views."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.OrganizerRepository(session)
        self.events = repositories.EventRepository(session)

    def _require(self, organizer_id: str) -> models.Organizer:
        organizer = self.repo.get(organizer_id)
        if organizer is None:
            raise NotFoundError("Organizer not found")
        return organizer

    def create(self, data: OrganizerIn, user: CurrentUser) -> dict:
        organizer = self.repo.create(data, user.uid)
        logger.info("organizer created id=%s by=%s", organizer.id, user.uid)
        return {"id": organizer.id}

    def get(self, organizer_id: str) -> dict:
        o = self._require(organizer_id)
        return {
            "id": o.id,
            "name": o.name,
            "bio": o.bio,
            "website": o.website,
            "socialMedia": social_media_out(o.social_media),
            "members": [{"id": m.id, "name": m.name} for m in o.members if m.active_flag == models.ACTIVE],
            "updatedAt": iso(o.updated_at),
        }

    def list(self, filters: DirectoryFilters) -> dict:
        rows, total = self.repo.list(filters)
        return {
            "organizers": [
                {
                    "id": o.id,
                    "name": o.name,
                    "bio": o.bio,
                    "website": o.website,
                    "socialMedia": social_media_out(o.social_media),
                    "updatedAt": iso(o.updated_at),
                }
                for o in rows
            ],
            "total": total,
        }

    def update(self, organizer_id: str, data: OrganizerIn, user: CurrentUser) -> dict:
        if self.repo.update(organizer_id, data, user.uid) is None:
            raise NotFoundError("Organizer not found")
        logger.info("organizer updated id=%s by=%s", organizer_id, user.uid)
        return {}

    def delete(self, organizer_id: str, user: CurrentUser) -> dict:
        if not self.repo.soft_delete(organizer_id, user.uid):
            raise NotFoundError("Organizer not found")
        logger.info("organizer removed id=%s by=%s", organizer_id, user.uid)
        return {}

    def events_for(self, organizer_id: str) -> List[dict]:
        self._require(organizer_id)
        return [event_item(e) for e in self.events.by_organizer(organizer_id)]

    def search(self, query: str) -> List[dict]:
        return [
            {"id": o.id, "name": o.name, "bio": o.bio, "website": o.website}
            for o in self.repo.search(query)
        ]

    def stats(self, organizer_id: str, now: Optional[datetime] = None) -> dict:
        """Event counts and speaker reach for one organizer."""
        self._require(organizer_id)
        now = now or utcnow()
        events = self.events.by_organizer(organizer_id)
        upcoming = sum(1 for e in events if e.start_date > now)
        return {
            "totalEvents": len(events),
            "upcomingEvents": upcoming,
            "pastEvents": len(events) - upcoming,
            "totalSpeakers": self.events.count_speakers_for_organizer(organizer_id),
            # by_organizer is already latest-first
            "recentEvents": [event_item(e) for e in events[:RECENT_EVENTS]],
        }


class EventService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.EventRepository(session)
        self.bitcoiners = repositories.BitcoinerRepository(session)

    def _check_references(self, data: EventIn) -> None:
        _ensure_active_organizer(self.session, data.organizer_id)
        speaker_ids = {sid for s in data.sections for sid in s.speaker_ids}
        if not speaker_ids:
            return
        found = {b.id for b in self.bitcoiners.get_many(sorted(speaker_ids))}
        missing = sorted(speaker_ids - found)
        if missing:
            raise ValidationError(f"Speaker not found or inactive: {missing[0]}")

    def create(self, data: EventIn, user: CurrentUser) -> dict:
        self._check_references(data)
        event = self.repo.create(data, user.uid)
        logger.info("event created id=%s by=%s", event.id, user.uid)
        return {"id": event.id}

    def get(self, event_id: str) -> dict:
        e = self.repo.get(event_id)
        if e is None:
            raise NotFoundError("Event not found")
        if e.organizer is None:
            raise NotFoundError("Event organizer not found")
        return {
            "id": e.id,
            "name": e.name,
            "description": e.description,
            "startDate": iso(e.start_date),
            "endDate": iso(e.end_date),
            "price": e.price,
            "currency": e.currency,
            "images": list(e.images or []),
            "organizerId": e.organizer_id,
            "organizerName": e.organizer.name,
            "location": location_out(e.location),
            "websites": [
                {"id": w.id, "url": w.url, "displayText": w.display_text, "type": w.type} for w in e.websites
            ],
            "sections": [
                {
                    "id": s.id,
                    "sectionName": s.section_name,
                    "startTime": iso(s.start_time),
                    "endTime": iso(s.end_time),
                    "spot": s.spot,
                    "description": s.description,
                    "participants": [
                        {
                            "id": p.id,
                            "bitcoinerId": p.bitcoiner_id,
                            "bitcoinerName": p.bitcoiner.name if p.bitcoiner else "",
                        }
                        for p in s.participants
                    ],
                }
                for s in e.sections
            ],
            "eventParticipants": event_participants(e),
            "updatedAt": iso(e.updated_at),
        }

    def list(self, filters: EventFilters) -> dict:
        rows, total = self.repo.list(filters)
        return {"events": [event_item(e) for e in rows], "total": total}

    def update(self, event_id: str, data: EventIn, user: CurrentUser) -> dict:
        if self.repo.get(event_id) is None:
            raise NotFoundError("Event not found")
        self._check_references(data)
        self.repo.update(event_id, data, user.uid)
        logger.info("event updated id=%s by=%s", event_id, user.uid)
        return {}

    def delete(self, event_id: str, user: CurrentUser) -> dict:
        if not self.repo.soft_delete(event_id, user.uid):
            raise NotFoundError("Event not found")
        logger.info("event removed id=%s by=%s", event_id, user.uid)
        return {}

    def upcoming(self, limit: int, now: Optional[datetime] = None) -> dict:
        events = self.repo.upcoming(now or utcnow(), limit)
        return {"events": [event_item(e) for e in events], "pagination": {"total": len(events), "limit": limit}}

    def past(self, limit: int, now: Optional[datetime] = None) -> dict:
        events = self.repo.past(now or utcnow(), limit)
        return {"events": [event_item(e) for e in events], "pagination": {"total": len(events), "limit": limit}}

    def search(self, query: str, organizer_id: Optional[str], limit: int) -> dict:
        events = self.repo.search(query, organizer_id, limit)
        return {
            "events": [event_item(e) for e in events],
            "query": query,
            "pagination": {
                "total": len(events),
                "page": 1,
                "limit": limit,
                "hasMore": len(events) == limit,
            },
        }

    def calendar(self, view: str, anchor: date, today: Optional[date] = None) -> dict:
        """Days of the requested grid with the events touching each day."""
        dates = calendar.grid_for_view(view, anchor)
        if not dates:
            return {"view": view, "days": []}
        window_start = datetime.combine(dates[0], datetime.min.time())
        window_end = datetime.combine(dates[-1], datetime.max.time())
        events = [
            {"start": e.start_date, "end": e.end_date, "item": event_item(e)}
            for e in self.repo.between(window_start, window_end)
        ]
        return {
            "view": view,
            "startDate": dates[0].isoformat(),
            "endDate": dates[-1].isoformat(),
            "days": calendar.generate_calendar_days(dates, events, today or utcnow().date()),
        }


class UserService:
    """Mirror identity-provider users into the local `User` table."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.UserRepository(session)

    def create(self, user: CurrentUser) -> dict:
        """Create the caller's row, or refresh `last_login_at` if it exists."""
        if not user.email:
            raise ValidationError("User email is required")
        existing = self.repo.get_by_uid(user.uid, active_only=False)
        if existing is not None:
            self.repo.record_login(existing, user.email_verified)
            return {}
        try:
            self.repo.create(models.User(
                uid=user.uid,
                email=user.email,
                email_verified=user.email_verified,
                role="editor",
                last_login_at=utcnow(),
            ))
        except IntegrityError:
            self.session.rollback()
            raise ConflictError("User already exists")
        logger.info("user registered uid=%s", user.uid)
        return {}

    def get(self, user: CurrentUser) -> dict:
        u = self.repo.get_by_uid(user.uid)
        if u is None:
            raise NotFoundError("User not found")
        return {
            "id": u.id,
            "uid": u.uid,
            "email": u.email,
            "emailVerified": u.email_verified,
            "role": u.role,
            "lastLoginAt": iso(u.last_login_at),
        }


class SitemapService:
    def __init__(self, session: Session):
        self.session = session

    def entries(self, now: Optional[datetime] = None) -> List[dict]:
        """Static pages plus one entry per active record.

        Falls back to the home page alone if the database cannot be read.
        """
        now = now or utcnow()
        base = settings.BASE_URL
        try:
            organizers = repositories.OrganizerRepository(self.session).all_active()
            events = repositories.EventRepository(self.session).all_active()
            bitcoiners = repositories.BitcoinerRepository(self.session).all_active()
        except SQLAlchemyError:
            logger.exception("sitemap generation failed")
            return sitemap.static_entries(base, now)[:1]
        out = sitemap.static_entries(base, now)
        out += [sitemap.entry(f"{base}/organizer/{o.id}", o.updated_at, "monthly", 0.6) for o in organizers]
        out += [sitemap.entry(f"{base}/event/{e.id}", e.updated_at, "weekly", 0.7) for e in events]
        out += [sitemap.entry(f"{base}/bitcoiner/{b.id}", b.updated_at, "monthly", 0.6) for b in bitcoiners]
        return out
