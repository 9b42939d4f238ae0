"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
organizers, bitcoiners, locations, events). Repositories return SQLModel
objects and perform commits/refreshes where appropriate.

Reads only ever see rows whose `active_flag` is `'A'`. Updates keep
history: the previous state is copied into a new `'R'` row (children
included) and the live row, whose id clients hold, is overwritten in
the same commit. Deletes only flip the flag.
"""

from datetime import datetime
from typing import List, Optional, Tuple, Type

from sqlalchemy import distinct, func, or_
from sqlmodel import Session, SQLModel, col, select

from . import models
from .models import ACTIVE, REMOVED, utcnow
from .schemas import (
    BitcoinerIn,
    DirectoryFilters,
    EventFilters,
    EventIn,
    LocationIn,
    OrganizerIn,
    SectionIn,
    WebsiteIn,
)


def _contains(column, term: str):
    return col(column).icontains(term, autoescape=True)


def _count(session: Session, model: Type[SQLModel], conditions: list) -> int:
    stmt = select(func.count()).select_from(model).where(*conditions)
    return session.exec(stmt).one()


def _get_active(session: Session, model: Type[SQLModel], record_id: str):
    stmt = select(model).where(model.id == record_id, model.active_flag == ACTIVE)
    return session.exec(stmt).first()


def _soft_delete(session: Session, model: Type[SQLModel], record_id: str, uid: str) -> bool:
    row = _get_active(session, model, record_id)
    if row is None:
        return False
    row.active_flag = REMOVED
    row.updated_by_uid = uid
    row.updated_at = utcnow()
    session.add(row)
    session.commit()
    return True


def _social_rows(items) -> List[models.SocialMedia]:
    return [models.SocialMedia(display_text=s.display_text, platform=s.platform, url_link=s.url_link) for s in items]


class UserRepository:
    """Lookup and upsert of `User` rows keyed by identity-provider uid."""
    def __init__(self, session: Session):
        self.session = session

    def get_by_uid(self, uid: str, active_only: bool = True) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.uid == uid)
        if active_only:
            stmt = stmt.where(models.User.active_flag == ACTIVE)
        return self.session.exec(stmt).first()

    def create(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def record_login(self, user: models.User, email_verified: bool) -> models.User:
        """Stamp `last_login_at` and refresh the verified flag."""
        user.last_login_at = utcnow()
        user.email_verified = email_verified
        user.updated_at = utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user


class OrganizerRepository:
    """CRUD operations for `Organizer` and its social-media links."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, organizer_id: str) -> Optional[models.Organizer]:
        """Return the active organizer with this id, or None."""
        return _get_active(self.session, models.Organizer, organizer_id)

    def list(self, filters: DirectoryFilters) -> Tuple[List[models.Organizer], int]:
        """Return one page of active organizers and the total match count."""
        conditions = [models.Organizer.active_flag == ACTIVE]
        if filters.search_term:
            conditions.append(_contains(models.Organizer.name, filters.search_term))
        if filters.selected_platform:
            owners = select(models.SocialMedia.organizer_id).where(
                models.SocialMedia.platform == filters.selected_platform
            )
            conditions.append(col(models.Organizer.id).in_(owners))
        total = _count(self.session, models.Organizer, conditions)
        stmt = (
            select(models.Organizer)
            .where(*conditions)
            .order_by(col(models.Organizer.updated_at).desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        return self.session.exec(stmt).all(), total

    def search(self, query: str) -> List[models.Organizer]:
        stmt = (
            select(models.Organizer)
            .where(models.Organizer.active_flag == ACTIVE, _contains(models.Organizer.name, query))
            .order_by(models.Organizer.name)
        )
        return self.session.exec(stmt).all()

    def all_active(self) -> List[models.Organizer]:
        stmt = select(models.Organizer).where(models.Organizer.active_flag == ACTIVE)
        return self.session.exec(stmt).all()

    def create(self, data: OrganizerIn, uid: str) -> models.Organizer:
        organizer = models.Organizer(
            name=data.name,
            bio=data.bio,
            website=data.website,
            updated_by_uid=uid,
            social_media=_social_rows(data.social_media),
        )
        self.session.add(organizer)
        self.session.commit()
        self.session.refresh(organizer)
        return organizer

    def update(self, organizer_id: str, data: OrganizerIn, uid: str) -> Optional[models.Organizer]:
        """Snapshot the current state as a removed row, then overwrite it.

        Returns None when there is no active organizer with this id.
        """
        existing = self.get(organizer_id)
        if existing is None:
            return None
        snapshot = models.Organizer(
            name=existing.name,
            bio=existing.bio,
            website=existing.website,
            active_flag=REMOVED,
            updated_by_uid=uid,
            social_media=_social_rows(existing.social_media),
        )
        self.session.add(snapshot)
        existing.name = data.name
        existing.bio = data.bio
        existing.website = data.website
        existing.social_media = _social_rows(data.social_media)
        existing.updated_by_uid = uid
        existing.updated_at = utcnow()
        self.session.add(existing)
        self.session.commit()
        self.session.refresh(existing)
        return existing

    def soft_delete(self, organizer_id: str, uid: str) -> bool:
        return _soft_delete(self.session, models.Organizer, organizer_id, uid)


class BitcoinerRepository:
    """CRUD operations for `Bitcoiner` and its social-media links."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, bitcoiner_id: str) -> Optional[models.Bitcoiner]:
        return _get_active(self.session, models.Bitcoiner, bitcoiner_id)

    def get_many(self, bitcoiner_ids: List[str]) -> List[models.Bitcoiner]:
        """Return the active bitcoiners among `bitcoiner_ids`."""
        if not bitcoiner_ids:
            return []
        stmt = select(models.Bitcoiner).where(
            col(models.Bitcoiner.id).in_(bitcoiner_ids), models.Bitcoiner.active_flag == ACTIVE
        )
        return self.session.exec(stmt).all()

    def list(self, filters: DirectoryFilters) -> Tuple[List[models.Bitcoiner], int]:
        """Return one page of active bitcoiners and the total match count."""
        conditions = [models.Bitcoiner.active_flag == ACTIVE]
        if filters.search_term:
            conditions.append(_contains(models.Bitcoiner.name, filters.search_term))
        if filters.selected_platform:
            owners = select(models.SocialMedia.bitcoiner_id).where(
                models.SocialMedia.platform == filters.selected_platform
            )
            conditions.append(col(models.Bitcoiner.id).in_(owners))
        total = _count(self.session, models.Bitcoiner, conditions)
        stmt = (
            select(models.Bitcoiner)
            .where(*conditions)
            .order_by(col(models.Bitcoiner.updated_at).desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        return self.session.exec(stmt).all(), total

    def all_active(self) -> List[models.Bitcoiner]:
        stmt = select(models.Bitcoiner).where(models.Bitcoiner.active_flag == ACTIVE)
        return self.session.exec(stmt).all()

    def create(self, data: BitcoinerIn, uid: str) -> models.Bitcoiner:
        bitcoiner = models.Bitcoiner(
            name=data.name,
            bio=data.bio,
            organizer_id=data.organizer_id,
            updated_by_uid=uid,
            social_media=_social_rows(data.social_media),
        )
        self.session.add(bitcoiner)
        self.session.commit()
        self.session.refresh(bitcoiner)
        return bitcoiner

    def update(self, bitcoiner_id: str, data: BitcoinerIn, uid: str) -> Optional[models.Bitcoiner]:
        """Snapshot the current state as a removed row, then overwrite it."""
        existing = self.get(bitcoiner_id)
        if existing is None:
            return None
        snapshot = models.Bitcoiner(
            name=existing.name,
            bio=existing.bio,
            organizer_id=existing.organizer_id,
            active_flag=REMOVED,
            updated_by_uid=uid,
            social_media=_social_rows(existing.social_media),
        )
        self.session.add(snapshot)
        existing.name = data.name
        existing.bio = data.bio
        existing.organizer_id = data.organizer_id
        existing.social_media = _social_rows(data.social_media)
        existing.updated_by_uid = uid
        existing.updated_at = utcnow()
        self.session.add(existing)
        self.session.commit()
        self.session.refresh(existing)
        return existing

    def soft_delete(self, bitcoiner_id: str, uid: str) -> bool:
        return _soft_delete(self.session, models.Bitcoiner, bitcoiner_id, uid)


class LocationRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, location_id: str) -> Optional[models.Location]:
        return _get_active(self.session, models.Location, location_id)

    def build(self, data: LocationIn, uid: str) -> models.Location:
        """Return a new, uncommitted location row for `data`."""
        location = models.Location(
            building_name=data.building_name,
            address=data.address,
            city=data.city,
            google_maps_url=data.google_maps_url,
            updated_by_uid=uid,
        )
        self.session.add(location)
        return location


def _website_rows(items: List[WebsiteIn]) -> List[models.EventWebsite]:
    return [models.EventWebsite(url=w.url, display_text=w.display_text, type=w.type) for w in items]


def _section_rows(items: List[SectionIn]) -> List[models.EventSection]:
    return [
        models.EventSection(
            section_name=s.section_name,
            start_time=s.start_time,
            end_time=s.end_time,
            spot=s.spot,
            description=s.description,
            participants=[models.SectionParticipant(bitcoiner_id=b) for b in s.speaker_ids],
        )
        for s in items
    ]


class EventRepository:
    """CRUD and query helpers for `Event` with its websites and sections."""
    def __init__(self, session: Session):
        self.session = session
        self.locations = LocationRepository(session)

    def get(self, event_id: str) -> Optional[models.Event]:
        return _get_active(self.session, models.Event, event_id)

    def list(self, filters: EventFilters) -> Tuple[List[models.Event], int]:
        conditions = [models.Event.active_flag == ACTIVE]
        if filters.search_term:
            conditions.append(_contains(models.Event.name, filters.search_term))
        if filters.organizer_id:
            conditions.append(models.Event.organizer_id == filters.organizer_id)
        if filters.location_id:
            conditions.append(models.Event.location_id == filters.location_id)
        if filters.start_date_from:
            conditions.append(col(models.Event.start_date) >= filters.start_date_from)
        if filters.start_date_to:
            conditions.append(col(models.Event.start_date) <= filters.start_date_to)
        total = _count(self.session, models.Event, conditions)
        stmt = (
            select(models.Event)
            .where(*conditions)
            .order_by(models.Event.start_date)
            .offset(filters.offset)
            .limit(filters.limit)
        )
        return self.session.exec(stmt).all(), total

    def upcoming(self, now: datetime, limit: int) -> List[models.Event]:
        """Active events starting after `now`, soonest first."""
        stmt = (
            select(models.Event)
            .where(models.Event.active_flag == ACTIVE, col(models.Event.start_date) > now)
            .order_by(models.Event.start_date)
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def past(self, now: datetime, limit: int) -> List[models.Event]:
        """Active events that started at or before `now`, latest first."""
        stmt = (
            select(models.Event)
            .where(models.Event.active_flag == ACTIVE, col(models.Event.start_date) <= now)
            .order_by(col(models.Event.start_date).desc())
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def search(self, query: str, organizer_id: Optional[str], limit: int) -> List[models.Event]:
        """Match `query` against name or description."""
        stmt = select(models.Event).where(
            models.Event.active_flag == ACTIVE,
            or_(_contains(models.Event.name, query), _contains(models.Event.description, query)),
        )
        if organizer_id:
            stmt = stmt.where(models.Event.organizer_id == organizer_id)
        stmt = stmt.order_by(col(models.Event.start_date).desc()).limit(limit)
        return self.session.exec(stmt).all()

    def between(self, start: datetime, end: datetime) -> List[models.Event]:
        """Active events whose [start_date, end_date] overlaps [start, end]."""
        stmt = (
            select(models.Event)
            .where(
                models.Event.active_flag == ACTIVE,
                col(models.Event.start_date) <= end,
                or_(
                    col(models.Event.end_date) >= start,
                    (col(models.Event.end_date).is_(None)) & (col(models.Event.start_date) >= start),
                ),
            )
            .order_by(models.Event.start_date)
        )
        return self.session.exec(stmt).all()

    def by_organizer(self, organizer_id: str) -> List[models.Event]:
        stmt = (
            select(models.Event)
            .where(models.Event.active_flag == ACTIVE, models.Event.organizer_id == organizer_id)
            .order_by(col(models.Event.start_date).desc())
        )
        return self.session.exec(stmt).all()

    def count_speakers_for_organizer(self, organizer_id: str) -> int:
        """Distinct active bitcoiners speaking at the organizer's active events."""
        stmt = (
            select(func.count(distinct(models.SectionParticipant.bitcoiner_id)))
            .select_from(models.SectionParticipant)
            .join(models.EventSection, models.EventSection.id == models.SectionParticipant.section_id)
            .join(models.Event, models.Event.id == models.EventSection.event_id)
            .join(models.Bitcoiner, models.Bitcoiner.id == models.SectionParticipant.bitcoiner_id)
            .where(
                models.Event.organizer_id == organizer_id,
                models.Event.active_flag == ACTIVE,
                models.Bitcoiner.active_flag == ACTIVE,
            )
        )
        return self.session.exec(stmt).one()

    def all_active(self) -> List[models.Event]:
        stmt = select(models.Event).where(models.Event.active_flag == ACTIVE)
        return self.session.exec(stmt).all()

    def create(self, data: EventIn, uid: str) -> models.Event:
        location_id = None
        if data.location is not None:
            location_id = self.locations.build(data.location, uid).id
        event = models.Event(
            name=data.name,
            description=data.description,
            start_date=data.start_date,
            end_date=data.end_date,
            price=data.price,
            currency=data.currency,
            images=list(data.images),
            organizer_id=data.organizer_id,
            location_id=location_id,
            updated_by_uid=uid,
            websites=_website_rows(data.websites),
            sections=_section_rows(data.sections),
        )
        self.session.add(event)
        self.session.commit()
        self.session.refresh(event)
        return event

    def update(self, event_id: str, data: EventIn, uid: str) -> Optional[models.Event]:
        """Snapshot the event (websites, sections, participants) then overwrite it.

        A new location row is created when `data.location` is given;
        otherwise the event keeps its current location.
        """
        existing = self.get(event_id)
        if existing is None:
            return None
        location_id = existing.location_id
        if data.location is not None:
            location_id = self.locations.build(data.location, uid).id

        snapshot = models.Event(
            name=existing.name,
            description=existing.description,
            start_date=existing.start_date,
            end_date=existing.end_date,
            price=existing.price,
            currency=existing.currency,
            images=list(existing.images or []),
            organizer_id=existing.organizer_id,
            location_id=existing.location_id,
            active_flag=REMOVED,
            updated_by_uid=uid,
            websites=[
                models.EventWebsite(url=w.url, display_text=w.display_text, type=w.type)
                for w in existing.websites
            ],
            sections=[
                models.EventSection(
                    section_name=s.section_name,
                    start_time=s.start_time,
                    end_time=s.end_time,
                    spot=s.spot,
                    description=s.description,
                    participants=[models.SectionParticipant(bitcoiner_id=p.bitcoiner_id) for p in s.participants],
                )
                for s in existing.sections
            ],
        )
        self.session.add(snapshot)

        existing.name = data.name
        existing.description = data.description
        existing.start_date = data.start_date
        existing.end_date = data.end_date
        existing.price = data.price
        existing.currency = data.currency
        existing.images = list(data.images)
        existing.organizer_id = data.organizer_id
        existing.location_id = location_id
        existing.websites = _website_rows(data.websites)
        existing.sections = _section_rows(data.sections)
        existing.updated_by_uid = uid
        existing.updated_at = utcnow()
        self.session.add(existing)
        self.session.commit()
        self.session.refresh(existing)
        return existing

    def soft_delete(self, event_id: str, uid: str) -> bool:
        return _soft_delete(self.session, models.Event, event_id, uid)
