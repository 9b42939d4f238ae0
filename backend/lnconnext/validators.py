"""Payload validation and normalization for the directory API.

Every function takes the decoded JSON body (plain dicts/lists, camelCase
keys as sent by the web client) and either returns a normalized schema
from `schemas` or raises `ValidationError` with a client-facing message.
List items are numbered from 1 in messages.
"""

import math
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .schemas import (
    BitcoinerIn,
    DirectoryFilters,
    EventFilters,
    EventIn,
    LocationIn,
    OrganizerIn,
    SectionIn,
    SocialMediaIn,
    WebsiteIn,
)

PLATFORMS = ("facebook", "youtube", "twitter", "linkedin", "instagram", "other")
DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 100

_URL = TypeAdapter(AnyUrl)


def is_valid_url(value: str) -> bool:
    """Return True for an absolute URL (scheme + host)."""
    try:
        _URL.validate_python(value)
    except PydanticValidationError:
        return False
    return True


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime into a naive UTC datetime.

    Returns None when the value cannot be parsed. Values without an
    offset are taken as UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def require_object(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON format")
    return payload


def require_id(payload: dict, key: str = "id", message: str = "ID is required") -> str:
    value = payload.get(key)
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value.strip()


def _required_text(payload: dict, key: str, label: str, max_len: int) -> str:
    value = payload.get(key)
    if not value or not isinstance(value, str):
        raise ValidationError(f"{label} is required and must be a string")
    trimmed = value.strip()
    if len(trimmed) > max_len:
        raise ValidationError(f"{label} must be less than {max_len} characters")
    return trimmed


def _item_text(item: dict, key: str, prefix: str, max_len: int, allow_blank: bool = False) -> str:
    value = item.get(key)
    if not isinstance(value, str) or (not value and not allow_blank):
        raise ValidationError(f"{prefix}: {key} is required and must be a string")
    if not allow_blank and not value.strip():
        raise ValidationError(f"{prefix}: {key} cannot be empty")
    if len(value) > max_len:
        raise ValidationError(f"{prefix}: {key} must be less than {max_len} characters")
    return value.strip()


def _item_url(item: dict, key: str, prefix: str, max_len: int = 1000) -> str:
    value = item.get(key)
    if not value or not isinstance(value, str):
        raise ValidationError(f"{prefix}: {key} is required and must be a string")
    if not is_valid_url(value.strip()):
        raise ValidationError(f"{prefix}: {key} must be a valid URL")
    if len(value) > max_len:
        raise ValidationError(f"{prefix}: {key} must be less than {max_len} characters")
    return value.strip()


def _item_platform(item: dict, key: str, prefix: str) -> str:
    value = item.get(key)
    if not value or not isinstance(value, str):
        raise ValidationError(f"{prefix}: {key} is required and must be a string")
    if value.strip().lower() not in PLATFORMS:
        raise ValidationError(f"{prefix}: {key} must be one of: {', '.join(PLATFORMS)}")
    return value.strip().lower()


def _require_list(payload: dict, key: str, label: str) -> list:
    value = payload.get(key)
    if not isinstance(value, list):
        raise ValidationError(f"{label} must be an array")
    return value


def validate_social_media(items: Any) -> List[SocialMediaIn]:
    if not isinstance(items, list):
        raise ValidationError("Social media must be an array")
    out = []
    for i, item in enumerate(items, start=1):
        prefix = f"Social media item {i}"
        if not isinstance(item, dict):
            raise ValidationError(f"{prefix} must be an object")
        out.append(SocialMediaIn(
            display_text=_item_text(item, "displayText", prefix, 200),
            platform=_item_platform(item, "platform", prefix),
            url_link=_item_url(item, "urlLink", prefix),
        ))
    return out


def validate_bitcoiner(payload: dict) -> BitcoinerIn:
    """Validate a bitcoiner create/update body.

    The organizer reference is only checked for shape here; the service
    verifies that it names an active organizer.
    """
    name = _required_text(payload, "name", "Name", 100)
    bio = _required_text(payload, "bio", "Bio", 1000)
    social_media = validate_social_media(payload.get("socialMedia"))
    organizer_id = payload.get("organizerId")
    if organizer_id is not None:
        if not isinstance(organizer_id, str):
            raise ValidationError("Organizer ID must be a string")
        if not organizer_id.strip():
            raise ValidationError("Organizer ID cannot be empty")
        organizer_id = organizer_id.strip()
    return BitcoinerIn(name=name, bio=bio, social_media=social_media, organizer_id=organizer_id)


def validate_organizer(payload: dict) -> OrganizerIn:
    name = _required_text(payload, "name", "Name", 100)
    bio = _required_text(payload, "bio", "Bio", 1000)
    website = payload.get("website")
    if not website or not isinstance(website, str):
        raise ValidationError("Website is required and must be a string")
    website = website.strip()
    if not is_valid_url(website):
        raise ValidationError("Website must be a valid URL")
    if len(website) > 1000:
        raise ValidationError("Website must be less than 1000 characters")
    social_media = validate_social_media(payload.get("socialMedia"))
    return OrganizerIn(name=name, bio=bio, website=website, social_media=social_media)


def _validate_location(location: Any) -> LocationIn:
    if not isinstance(location, dict):
        raise ValidationError("Location must be an object")
    prefix = "Location"

    def text(key, max_len):
        value = location.get(key)
        if not value or not isinstance(value, str):
            raise ValidationError(f"{prefix} {key} is required and must be a string")
        if not value.strip():
            raise ValidationError(f"{prefix} {key} cannot be empty")
        if len(value) > max_len:
            raise ValidationError(f"{prefix} {key} must be less than {max_len} characters")
        return value.strip()

    building_name = text("buildingName", 200)
    address = text("address", 500)
    city = text("city", 100)
    maps_url = text("googleMapsUrl", 1000)
    if not is_valid_url(maps_url):
        raise ValidationError("Location googleMapsUrl must be a valid URL")
    return LocationIn(building_name=building_name, address=address, city=city, google_maps_url=maps_url)


def _validate_websites(items: list) -> List[WebsiteIn]:
    out = []
    for i, item in enumerate(items, start=1):
        prefix = f"Website item {i}"
        if not isinstance(item, dict):
            raise ValidationError(f"{prefix} must be an object")
        out.append(WebsiteIn(
            url=_item_url(item, "url", prefix),
            display_text=_item_text(item, "displayText", prefix, 200),
            type=_item_platform(item, "type", prefix),
        ))
    return out


def _validate_sections(items: list) -> List[SectionIn]:
    out = []
    for i, item in enumerate(items, start=1):
        prefix = f"Section {i}"
        if not isinstance(item, dict):
            raise ValidationError(f"{prefix} must be an object")
        section_name = _item_text(item, "sectionName", prefix, 200)
        for key in ("startTime", "endTime"):
            if not item.get(key) or not isinstance(item.get(key), str):
                raise ValidationError(f"{prefix}: {key} is required and must be a valid date")
        start_time = parse_datetime(item["startTime"])
        if start_time is None:
            raise ValidationError(f"{prefix}: startTime must be a valid date")
        end_time = parse_datetime(item["endTime"])
        if end_time is None:
            raise ValidationError(f"{prefix}: endTime must be a valid date")
        if end_time <= start_time:
            raise ValidationError(f"{prefix}: endTime must be after startTime")
        spot = _item_text(item, "spot", prefix, 200)
        description = _item_text(item, "description", prefix, 2000, allow_blank=True)
        speaker_ids = item.get("speakerIds")
        if not isinstance(speaker_ids, list):
            raise ValidationError(f"{prefix}: speakerIds must be an array")
        for j, speaker_id in enumerate(speaker_ids, start=1):
            if not isinstance(speaker_id, str):
                raise ValidationError(f"{prefix}, speaker {j}: speakerId must be a string")
        out.append(SectionIn(
            section_name=section_name,
            start_time=start_time,
            end_time=end_time,
            spot=spot,
            description=description,
            speaker_ids=speaker_ids,
        ))
    return out


def validate_event(payload: dict) -> EventIn:
    """Validate an event create/update body and normalize its values."""
    name = _required_text(payload, "name", "Name", 200)
    description = _required_text(payload, "description", "Description", 5000)

    if not payload.get("startDate") or not isinstance(payload.get("startDate"), str):
        raise ValidationError("Start date is required and must be a valid date")
    if not payload.get("endDate") or not isinstance(payload.get("endDate"), str):
        raise ValidationError("End date is required and must be a valid date")
    start_date = parse_datetime(payload["startDate"])
    if start_date is None:
        raise ValidationError("Start date must be a valid date")
    end_date = parse_datetime(payload["endDate"])
    if end_date is None:
        raise ValidationError("End date must be a valid date")
    if end_date <= start_date:
        raise ValidationError("End date must be after start date")

    price = payload.get("price")
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise ValidationError("Price must be a non-negative number")
    try:
        price = float(price)
    except OverflowError:
        raise ValidationError("Price must be a non-negative number")
    if not math.isfinite(price) or price < 0:
        raise ValidationError("Price must be a non-negative number")

    currency = payload.get("currency")
    if not currency or not isinstance(currency, str):
        raise ValidationError("Currency is required and must be a string")
    if len(currency) > 10:
        raise ValidationError("Currency must be less than 10 characters")

    images = _require_list(payload, "images", "Images")
    for i, image in enumerate(images, start=1):
        if not isinstance(image, str):
            raise ValidationError(f"Image {i} must be a string")
        if not is_valid_url(image):
            raise ValidationError(f"Image {i} must be a valid URL")

    organizer_id = payload.get("organizerId")
    if not organizer_id or not isinstance(organizer_id, str):
        raise ValidationError("Organizer ID is required and must be a string")

    location = None
    if payload.get("location") is not None:
        location = _validate_location(payload["location"])

    websites = _validate_websites(_require_list(payload, "websites", "Websites"))
    sections = _validate_sections(_require_list(payload, "sections", "Sections"))

    return EventIn(
        name=name,
        description=description,
        start_date=start_date,
        end_date=end_date,
        price=price,
        currency=currency.strip().upper(),
        images=images,
        organizer_id=organizer_id.strip(),
        location=location,
        websites=websites,
        sections=sections,
    )


def parse_limit(value: Any, default: int, maximum: int = MAX_LIST_LIMIT, key: str = "limit") -> int:
    """Return a non-negative page size, capped at `maximum`."""
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{key} must be a non-negative integer")
    return min(value, maximum)


def parse_offset(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError("offset must be a non-negative integer")
    return value


def _filters_object(payload: dict) -> dict:
    filters = payload.get("filters") or {}
    if not isinstance(filters, dict):
        raise ValidationError("filters must be an object")
    return filters


def _optional_str(filters: dict, key: str) -> Optional[str]:
    value = filters.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip() or None


def validate_directory_filters(payload: dict) -> DirectoryFilters:
    filters = _filters_object(payload)
    platform = _optional_str(filters, "selectedPlatform")
    return DirectoryFilters(
        search_term=_optional_str(filters, "searchTerm"),
        selected_platform=platform.lower() if platform else None,
        limit=parse_limit(filters.get("limit"), DEFAULT_LIST_LIMIT),
        offset=parse_offset(filters.get("offset")),
    )


def validate_event_filters(payload: dict) -> EventFilters:
    filters = _filters_object(payload)
    bounds = {}
    for key in ("startDateFrom", "startDateTo"):
        raw = filters.get(key)
        if raw is None or raw == "":
            bounds[key] = None
            continue
        parsed = parse_datetime(raw)
        if parsed is None:
            raise ValidationError(f"{key} must be a valid date")
        bounds[key] = parsed
    return EventFilters(
        search_term=_optional_str(filters, "searchTerm"),
        organizer_id=_optional_str(filters, "organizerId"),
        location_id=_optional_str(filters, "locationId"),
        start_date_from=bounds["startDateFrom"],
        start_date_to=bounds["startDateTo"],
        limit=parse_limit(filters.get("limit"), DEFAULT_LIST_LIMIT),
        offset=parse_offset(filters.get("offset")),
    )
