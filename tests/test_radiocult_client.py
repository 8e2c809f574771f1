"""Tests for radiocult_client module."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest

from wwfm import cache, radiocult_client
from wwfm.exceptions import ConfigError, RadioCultError
from wwfm.models import RadioCultArtist, RadioCultEvent

NOW = datetime(2025, 1, 7, 12, 0, tzinfo=UTC)


def _event(event_id, start, end, **kwargs):
    return RadioCultEvent(id=event_id, show_id="s", show_name=f"Show {event_id}",
                          start_time=start, end_time=end, **kwargs)


@pytest.fixture
def mock_settings():
    with patch("wwfm.radiocult_client.settings") as s:
        s.radiocult_station_id = "station"
        s.radiocult_publishable_key = "pub"
        s.radiocult_secret_key = ""
        s.radiocult_api_url = "https://api.radiocult.example"
        yield s


def test_parse_events_accepts_every_shape():
    item = {"id": "e1", "title": "Breakfast", "start": "2025-01-07T08:00:00Z",
            "end": "2025-01-07T10:00:00Z", "duration": 120}
    for key in ("schedules", "events", "schedule"):
        events = radiocult_client.parse_events({key: [item]})
        assert events[0].id == "e1"
        assert events[0].show_name == "Breakfast"
        assert events[0].start_time == "2025-01-07T08:00:00Z"
        assert events[0].duration == 120


def test_parse_events_unexpected_shape():
    assert radiocult_client.parse_events({"data": []}) == []


def test_parse_schedule_item_artists_and_image():
    item = {"id": "e1", "showName": "Show", "startTime": "s", "endTime": "e",
            "image": {"url": "https://img"}, "tags": ["Jazz", 3],
            "artists": [{"id": "a1", "name": "Host", "slug": "host"}]}
    event = radiocult_client.parse_events({"schedules": [item]})[0]
    assert event.image_url == "https://img"
    assert event.tags == ["Jazz"]
    assert event.artists == [RadioCultArtist(id="a1", name="Host", slug="host")]


def test_fetch_raises_on_success_false(mock_settings):
    resp = MagicMock(ok=True)
    resp.json.return_value = {"success": False, "error": "bad station"}
    with patch("wwfm.radiocult_client.requests.get", return_value=resp):
        with pytest.raises(RadioCultError, match="bad station"):
            radiocult_client._fetch("/api/x")


def test_fetch_sends_api_key(mock_settings):
    resp = MagicMock(ok=True)
    resp.json.return_value = {"schedules": []}
    with patch("wwfm.radiocult_client.requests.get", return_value=resp) as mock_get:
        radiocult_client._fetch("/api/x")
    assert mock_get.call_args.kwargs["headers"] == {"x-api-key": "pub"}
    assert mock_get.call_args.args[0] == "https://api.radiocult.example/api/x"


def test_fetch_requires_secret_key(mock_settings):
    with pytest.raises(ConfigError, match="Secret"):
        radiocult_client._fetch("/api/x", use_secret_key=True)


def test_get_events_unconfigured_is_empty(mock_settings):
    mock_settings.radiocult_station_id = ""
    assert radiocult_client.get_events(NOW, NOW) == []


def test_get_events_cached(mock_settings):
    with patch("wwfm.radiocult_client._fetch", return_value={"events": []}) as mock_fetch:
        radiocult_client.get_events(NOW, NOW)
        radiocult_client.get_events(NOW, NOW)
    mock_fetch.assert_called_once()


def test_get_artists_degrades_to_empty(mock_settings):
    with patch("wwfm.radiocult_client._fetch", side_effect=RadioCultError("boom")):
        assert radiocult_client.get_artists() == []


def test_split_live_schedule():
    events = [
        _event("later", "2025-01-07T14:00:00Z", "2025-01-07T16:00:00Z"),
        _event("now", "2025-01-07T11:00:00Z", "2025-01-07T13:00:00Z"),
        _event("next", "2025-01-07T13:00:00Z", "2025-01-07T14:00:00Z"),
        _event("past", "2025-01-07T08:00:00Z", "2025-01-07T10:00:00Z"),
    ]
    result = radiocult_client.split_live_schedule(events, NOW)
    assert result["current_event"].id == "now"
    assert result["upcoming_event"].id == "next"
    assert [e.id for e in result["upcoming_events"]] == ["later"]


def test_split_live_schedule_nothing_on_air():
    result = radiocult_client.split_live_schedule([], NOW)
    assert result == {"current_event": None, "upcoming_event": None, "upcoming_events": []}


def test_get_schedule_data_survives_errors():
    with patch("wwfm.radiocult_client.get_events", side_effect=RadioCultError("down")):
        result = radiocult_client.get_schedule_data(NOW)
    assert result["current_event"] is None


def test_event_to_radio_show():
    event = _event("e1", "2025-01-07T08:00:00Z", "2025-01-07T10:00:00Z", slug="breakfast",
                   duration=120, tags=["Deep House"],
                   artists=[RadioCultArtist(id="a1", name="Host", slug="host")])
    show = radiocult_client.event_to_radio_show(event)
    assert show["slug"] == "breakfast"
    assert show["metadata"]["broadcast_date"] == "2025-01-07"
    assert show["metadata"]["broadcast_time"] == "08:00"
    assert show["metadata"]["duration"] == "120:00"
    assert show["metadata"]["genres"][0]["slug"] == "deep-house"
    assert show["metadata"]["regular_hosts"] == [{"id": "a1", "slug": "host", "title": "Host"}]
    assert show["metadata"]["image"] is None


def test_fetch_undecodable_body_raises_radiocult_error(mock_settings):
    resp = MagicMock(ok=True)
    resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    with patch("wwfm.radiocult_client.requests.get", return_value=resp):
        with pytest.raises(RadioCultError, match="undecodable"):
            radiocult_client._fetch("/api/x")


def test_fetch_non_object_body_raises_radiocult_error(mock_settings):
    resp = MagicMock(ok=True)
    resp.json.return_value = ["not", "an", "object"]
    with patch("wwfm.radiocult_client.requests.get", return_value=resp):
        with pytest.raises(RadioCultError, match="Unexpected"):
            radiocult_client._fetch("/api/x")


def test_parse_schedule_item_string_image_and_fractional_duration():
    item = {"id": "e1", "title": "Show", "image": "https://img/plain.jpg", "duration": "60.5"}
    event = radiocult_client.parse_events({"events": [item]})[0]
    assert event.image_url == "https://img/plain.jpg"
    assert event.duration == 60


def test_parse_schedule_item_garbage_duration_is_zero():
    event = radiocult_client.parse_events({"events": [{"id": "e1", "duration": "an hour"}]})[0]
    assert event.duration == 0


def test_get_schedule_data_fetches_once_per_hour(mock_settings):
    with patch("wwfm.radiocult_client._fetch", return_value={"events": []}) as mock_fetch:
        for i in range(50):
            radiocult_client.get_schedule_data(NOW.replace(second=i))
    mock_fetch.assert_called_once()
    assert cache.size() == 1
    endpoint = mock_fetch.call_args.args[0]
    assert "startDate=2025-01-07T12%3A00%3A00%2B00%3A00" in endpoint


@pytest.fixture
def write_settings(mock_settings):
    mock_settings.radiocult_secret_key = "secret"
    return mock_settings


def test_create_show_posts_with_secret_key(write_settings):
    resp = MagicMock(ok=True)
    resp.json.return_value = {"show": {"id": "show-1"}}
    with patch("wwfm.radiocult_client.requests.post", return_value=resp) as mock_post:
        assert radiocult_client.create_show("Jazz Hour", "Late jazz", "artist-1") == "show-1"
    assert mock_post.call_args.args[0] == "https://api.radiocult.example/api/station/station/show"
    assert mock_post.call_args.kwargs["headers"] == {"x-api-key": "secret"}
    assert mock_post.call_args.kwargs["json"] == {
        "name": "Jazz Hour", "description": "Late jazz", "artistId": "artist-1",
    }


def test_create_event_sends_utc_times(write_settings):
    resp = MagicMock(ok=True)
    resp.json.return_value = {"event": {"id": "event-1"}}
    end = datetime(2025, 1, 7, 13, 0, tzinfo=UTC)
    with patch("wwfm.radiocult_client.requests.post", return_value=resp) as mock_post:
        assert radiocult_client.create_event("show-1", NOW, end, "media-1", "desc") == "event-1"
    payload = mock_post.call_args.kwargs["json"]
    assert payload["startTime"] == "2025-01-07T12:00:00Z"
    assert payload["endTime"] == "2025-01-07T13:00:00Z"
    assert payload["mediaId"] == "media-1"


def test_create_event_without_id_raises(write_settings):
    resp = MagicMock(ok=True)
    resp.json.return_value = {"event": {}}
    with patch("wwfm.radiocult_client.requests.post", return_value=resp):
        with pytest.raises(RadioCultError, match="No event ID"):
            radiocult_client.create_event("show-1", NOW, NOW, "media-1")


def test_create_show_requires_secret_key(mock_settings):
    with pytest.raises(ConfigError, match="Secret"):
        radiocult_client.create_show("Jazz Hour", "", "artist-1")
