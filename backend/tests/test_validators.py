from datetime import datetime

import pytest

from lnconnext import validators
from lnconnext.errors import ValidationError


def _event(**overrides):
    payload = {
        "name": "  Lightning Workshop ",
        "description": "Open a channel",
        "startDate": "2099-05-01T10:00:00+07:00",
        "endDate": "2099-05-01T12:00:00+07:00",
        "price": 150,
        "currency": "thb",
        "images": ["https://example.com/poster.jpg"],
        "organizerId": "org-1",
        "websites": [],
        "sections": [],
    }
    payload.update(overrides)
    return payload


def _message(fn, payload):
    with pytest.raises(ValidationError) as exc:
        fn(payload)
    return exc.value.message


def test_bitcoiner_is_trimmed_and_platform_lowercased():
    data = validators.validate_bitcoiner({
        "name": "  Nok ",
        "bio": "node runner ",
        "socialMedia": [{"displayText": "Nok", "platform": "YouTube", "urlLink": "https://youtube.com/@nok"}],
    })
    assert data.name == "Nok"
    assert data.bio == "node runner"
    assert data.social_media[0].platform == "youtube"
    assert data.organizer_id is None


def test_bitcoiner_field_errors():
    base = {"name": "Nok", "bio": "bio", "socialMedia": []}
    assert _message(validators.validate_bitcoiner, {**base, "name": ""}) == "Name is required and must be a string"
    assert _message(validators.validate_bitcoiner, {**base, "name": "x" * 101}) == "Name must be less than 100 characters"
    assert _message(validators.validate_bitcoiner, {**base, "bio": "x" * 1001}) == "Bio must be less than 1000 characters"
    assert _message(validators.validate_bitcoiner, {**base, "socialMedia": "nope"}) == "Social media must be an array"
    assert _message(validators.validate_bitcoiner, {**base, "organizerId": 5}) == "Organizer ID must be a string"
    assert _message(validators.validate_bitcoiner, {**base, "organizerId": "  "}) == "Organizer ID cannot be empty"


def test_social_media_items_are_numbered_from_one():
    items = [
        {"displayText": "ok", "platform": "twitter", "urlLink": "https://twitter.com/a"},
        {"displayText": "bad", "platform": "myspace", "urlLink": "https://myspace.com/a"},
    ]
    msg = _message(validators.validate_social_media, items)
    assert msg.startswith("Social media item 2: platform must be one of: facebook")

    items = [{"displayText": "ok", "platform": "other", "urlLink": "not a url"}]
    assert _message(validators.validate_social_media, items) == "Social media item 1: urlLink must be a valid URL"


def test_organizer_requires_absolute_website():
    base = {"name": "BOB Space", "bio": "space", "socialMedia": []}
    assert _message(validators.validate_organizer, base) == "Website is required and must be a string"
    assert _message(validators.validate_organizer, {**base, "website": "bobspace"}) == "Website must be a valid URL"
    data = validators.validate_organizer({**base, "website": " https://bobspace.co "})
    assert data.website == "https://bobspace.co"


def test_event_normalizes_dates_and_currency():
    data = validators.validate_event(_event())
    assert data.name == "Lightning Workshop"
    assert data.currency == "THB"
    assert data.price == 150.0
    # +07:00 offsets are stored as naive UTC
    assert data.start_date == datetime(2099, 5, 1, 3, 0)
    assert data.location is None


def test_event_date_and_price_rules():
    assert _message(validators.validate_event, _event(startDate=None)) == "Start date is required and must be a valid date"
    assert _message(validators.validate_event, _event(startDate="tomorrow")) == "Start date must be a valid date"
    assert _message(validators.validate_event, _event(endDate="2099-05-01T09:00:00+07:00")) == "End date must be after start date"
    assert _message(validators.validate_event, _event(price=-1)) == "Price must be a non-negative number"
    assert _message(validators.validate_event, _event(price=True)) == "Price must be a non-negative number"
    assert _message(validators.validate_event, _event(price=float("nan"))) == "Price must be a non-negative number"
    assert _message(validators.validate_event, _event(price=float("inf"))) == "Price must be a non-negative number"
    assert _message(validators.validate_event, _event(price=10**400)) == "Price must be a non-negative number"
    assert _message(validators.validate_event, _event(currency="X" * 11)) == "Currency must be less than 10 characters"
    assert _message(validators.validate_event, _event(images=["https://ok.test/a.png", "nope"])) == "Image 2 must be a valid URL"
    assert _message(validators.validate_event, _event(organizerId="")) == "Organizer ID is required and must be a string"


def test_event_location_websites_and_sections():
    location = {"buildingName": "BOB Space", "address": "Sukhumvit", "city": "Bangkok", "googleMapsUrl": "maps"}
    assert _message(validators.validate_event, _event(location=location)) == "Location googleMapsUrl must be a valid URL"

    websites = [{"url": "https://meetup.com/e/1", "displayText": "", "type": "other"}]
    assert _message(validators.validate_event, _event(websites=websites)) == "Website item 1: displayText is required and must be a string"

    section = {
        "sectionName": "Talk",
        "startTime": "2099-05-01T10:30:00Z",
        "endTime": "2099-05-01T10:00:00Z",
        "spot": "Main",
        "description": "",
        "speakerIds": [],
    }
    assert _message(validators.validate_event, _event(sections=[section])) == "Section 1: endTime must be after startTime"

    section["endTime"] = "2099-05-01T11:00:00Z"
    section["speakerIds"] = ["b-1", 7]
    assert _message(validators.validate_event, _event(sections=[section])) == "Section 1, speaker 2: speakerId must be a string"

    section["speakerIds"] = ["b-1"]
    data = validators.validate_event(_event(sections=[section]))
    assert data.sections[0].description == ""
    assert data.sections[0].speaker_ids == ["b-1"]


def test_list_filters_defaults_and_caps():
    f = validators.validate_directory_filters({})
    assert (f.limit, f.offset, f.search_term, f.selected_platform) == (100, 0, None, None)

    f = validators.validate_directory_filters({"filters": {"limit": 500, "selectedPlatform": "YouTube", "searchTerm": " nok "}})
    assert f.limit == 100
    assert f.selected_platform == "youtube"
    assert f.search_term == "nok"

    assert _message(validators.validate_directory_filters, {"filters": {"limit": -1}}) == "limit must be a non-negative integer"
    assert _message(validators.validate_directory_filters, {"filters": {"offset": "2"}}) == "offset must be a non-negative integer"
    assert _message(validators.validate_event_filters, {"filters": {"startDateFrom": "soon"}}) == "startDateFrom must be a valid date"


def test_parse_datetime():
    assert validators.parse_datetime("2024-02-14T10:00:00Z") == datetime(2024, 2, 14, 10, 0)
    assert validators.parse_datetime("2024-02-14") == datetime(2024, 2, 14)
    assert validators.parse_datetime("") is None
    assert validators.parse_datetime(42) is None
