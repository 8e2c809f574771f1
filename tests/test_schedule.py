"""Tests for schedule module."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

from wwfm import schedule
from wwfm.exceptions import CosmicAPIError
from wwfm.models import RadioCultArtist, RadioCultEvent, ScheduleShow

DAY_DATES = {
    "Monday": "2025-01-06", "Tuesday": "2025-01-07", "Wednesday": "2025-01-08",
    "Thursday": "2025-01-09", "Friday": "2025-01-10", "Saturday": "2025-01-11",
    "Sunday": "2025-01-12",
}

EPISODE = {
    "id": "ep1",
    "type": "episode",
    "slug": "breakfast-show",
    "title": "Breakfast Show",
    "created_at": "2025-01-01T00:00:00Z",
    "metadata": {
        "broadcast_date": "2025-01-07",
        "broadcast_time": "08:00",
        "duration": "02:00",
        "image": {"imgix_url": "https://imgix/bfast.jpg"},
        "genres": [{"title": "Jazz"}],
        "regular_hosts": [{"title": "Ana"}],
    },
}


def _show(name, day="Tuesday", time="08:00", event_id=None, url="", is_manual=False,
          source="cosmic"):
    return ScheduleShow(
        show_key=name.lower(), event_id=event_id or f"id-{name}", show_time=time, show_day=day,
        date=DAY_DATES[day], name=name, url=url, is_manual=is_manual, source=source,
    )


def test_target_days_default_is_whole_week():
    with patch("wwfm.schedule.settings") as s:
        s.schedule_days = ""
        assert schedule.target_days() == list(DAY_DATES)


def test_target_days_from_setting_keeps_week_order():
    with patch("wwfm.schedule.settings") as s:
        s.schedule_days = "friday, Tuesday,bogus"
        assert schedule.target_days() == ["Tuesday", "Friday"]


def test_resolve_episode_embedded_object():
    assert schedule.resolve_episode(EPISODE) is EPISODE
    assert schedule.resolve_episode({"episode": EPISODE}) is EPISODE
    assert schedule.resolve_episode({"metadata": {"episode_link": EPISODE}}) is EPISODE


def test_resolve_episode_fetches_by_id_then_slug():
    with patch("wwfm.schedule.cosmic_client.find_one", side_effect=[None, EPISODE]) as mock_find:
        assert schedule.resolve_episode("breakfast-show") == EPISODE
    assert mock_find.call_args_list[0].kwargs["object_id"] == "breakfast-show"
    assert mock_find.call_args_list[1].kwargs["slug"] == "breakfast-show"


def test_resolve_episode_caches_fetches():
    with patch("wwfm.schedule.cosmic_client.find_one", return_value=EPISODE) as mock_find:
        schedule.resolve_episode({"episode_link": {"id": "ep1"}})
        schedule.resolve_episode({"id": "ep1"})
    mock_find.assert_called_once()


def test_resolve_episode_fetch_error_is_none():
    with patch("wwfm.schedule.cosmic_client.find_one", side_effect=CosmicAPIError("down")):
        assert schedule.resolve_episode({"slug": "x"}) is None
    assert schedule.resolve_episode(None) is None
    assert schedule.resolve_episode(42) is None


def test_build_schedule_show_from_episode():
    show = schedule.build_schedule_show(EPISODE, "", "Tuesday", "2025-01-07", "8:00", is_manual=True)
    assert show.name == "Breakfast Show"
    assert show.url == "/episode/breakfast-show"
    assert show.has_detail_page
    assert show.event_id == "episode-ep1"
    assert show.show_time == "08:00"
    assert show.picture == "https://imgix/bfast.jpg"
    assert show.tags == ["Jazz"]
    assert show.hosts == ["Ana"]
    assert show.duration == 7200
    assert show.is_manual


def test_build_schedule_show_without_episode():
    show = schedule.build_schedule_show(None, "", "Tuesday", "2025-01-07", "bad", is_manual=True,
                                        override_duration="1")
    assert show.name == schedule.UNTITLED
    assert show.show_time == "00:00"
    assert show.picture == schedule.PLACEHOLDER_IMAGE
    assert show.url == ""
    assert show.duration == 3600


def test_fetch_manual_overrides():
    schedules = [
        {"id": "main", "metadata": {"tuesday": {"show": [
            {"episode": EPISODE, "override_broadcast_time": "09:00", "override_duration": "1"},
        ]}}},
        {"id": "reruns", "metadata": {"wednesday": [{"title": "Rerun", "url": "/x"}]}},
    ]
    with (
        patch("wwfm.schedule.cosmic_client.find_all_objects", return_value=schedules),
        patch("wwfm.schedule.settings") as s,
    ):
        s.rerun_schedule_id = "reruns"
        items = schedule.fetch_manual_overrides(DAY_DATES, ["Tuesday", "Wednesday"])

    assert [(i.name, i.show_day, i.show_time) for i in items] == [
        ("Breakfast Show", "Tuesday", "09:00"),
        ("Rerun", "Wednesday", "00:00"),
    ]
    assert items[0].duration == 3600
    assert not items[0].is_replay
    assert items[1].is_replay
    assert items[1].url == "/x"


def test_fetch_manual_overrides_error_is_empty():
    with patch("wwfm.schedule.cosmic_client.find_all_objects", side_effect=CosmicAPIError("x")):
        assert schedule.fetch_manual_overrides(DAY_DATES, ["Tuesday"]) == []


def test_fetch_automatic_episodes_only_target_days():
    other = {**EPISODE, "id": "ep2", "slug": "other",
             "metadata": {**EPISODE["metadata"], "broadcast_date": "2025-01-08T00:00:00Z"}}
    with patch("wwfm.schedule.fetch_episodes_by_date", side_effect=[[EPISODE]]) as mock_fetch:
        items = schedule.fetch_automatic_episodes(DAY_DATES, ["Tuesday"])
    mock_fetch.assert_called_once_with("2025-01-07")
    assert [i.name for i in items] == ["Breakfast Show"]
    assert not items[0].is_manual

    with patch("wwfm.schedule.fetch_episodes_by_date", return_value=[other]):
        assert schedule.fetch_automatic_episodes(DAY_DATES, ["Tuesday"]) == []


def test_radiocult_event_to_show_uses_london_time():
    event = RadioCultEvent(
        id="r1", show_id="s1", show_name="Late Night", slug="late-night",
        start_time="2025-07-01T21:00:00Z", end_time="2025-07-01T23:00:00Z", duration=120,
        artists=[RadioCultArtist(id="a", name="DJ")],
    )
    show = schedule.radiocult_event_to_show(event, known_slugs={"late-night"})
    assert show.show_time == "22:00"
    assert show.show_day == "Tuesday"
    assert show.url == "/episode/late-night"
    assert show.duration == 7200
    assert show.source == "radiocult"
    assert show.hosts == ["DJ"]

    unknown = schedule.radiocult_event_to_show(event, known_slugs=set())
    assert unknown.url == ""


def test_radiocult_event_without_start_is_skipped():
    event = RadioCultEvent(id="r1", show_id="s1", show_name="X", start_time="", end_time="")
    assert schedule.radiocult_event_to_show(event, set()) is None


def test_fetch_radiocult_shows_filters_to_week():
    events = [
        RadioCultEvent(id="in", show_id="s", show_name="In", start_time="2025-01-07T10:00:00Z",
                       end_time="2025-01-07T11:00:00Z"),
        RadioCultEvent(id="out", show_id="s", show_name="Out", start_time="2025-01-20T10:00:00Z",
                       end_time="2025-01-20T11:00:00Z"),
    ]
    with patch("wwfm.schedule.radiocult_client.get_events", return_value=events) as mock_events:
        items = schedule.fetch_radiocult_shows(DAY_DATES, list(DAY_DATES), set())
    assert [i.name for i in items] == ["In"]
    start, end = mock_events.call_args.args
    assert start == datetime(2025, 1, 6, 0, 0, tzinfo=UTC)
    assert end == datetime(2025, 1, 13, 0, 0, tzinfo=UTC)


def test_merge_drops_untitled_and_duplicate_events():
    items = schedule.merge_schedule(
        [_show("A", event_id="e1"), _show(schedule.UNTITLED, time="10:00")],
        [_show("B", event_id="e1", time="12:00")],
    )
    assert [i.name for i in items] == ["A"]


def test_merge_later_manual_override_replaces_earlier():
    manual = [
        _show("Old", event_id="e1", is_manual=True),
        _show("New", event_id="e1", is_manual=True),
    ]
    items = schedule.merge_schedule(manual, [_show("Auto", event_id="e1")])
    assert [i.name for i in items] == ["New"]


def test_merge_one_item_per_slot_detail_page_wins():
    manual = [_show("Manual", is_manual=True)]
    automatic = [_show("Auto", url="/episode/auto")]
    items = schedule.merge_schedule(manual, automatic)
    assert [i.name for i in items] == ["Auto"]


def test_merge_manual_beats_automatic():
    items = schedule.merge_schedule([_show("Manual", is_manual=True)], [_show("Auto")])
    assert [i.name for i in items] == ["Manual"]


def test_merge_cosmic_beats_radiocult_and_first_seen_wins_ties():
    external = [_show("Live", source="radiocult")]
    assert [i.name for i in schedule.merge_schedule([], [_show("Auto")], external)] == ["Auto"]
    tied = schedule.merge_schedule([], [_show("First"), _show("Second")])
    assert [i.name for i in tied] == ["First"]


def test_merge_sorts_by_day_then_time():
    items = schedule.merge_schedule([], [
        _show("Fri", day="Friday", time="07:00"),
        _show("TueLate", time="22:00"),
        _show("TueEarly", time="06:00"),
    ])
    assert [i.name for i in items] == ["TueEarly", "TueLate", "Fri"]


def test_get_weekly_schedule():
    manual = [_show("Manual", is_manual=True, url="/episode/manual")]
    with (
        patch("wwfm.schedule.target_days", return_value=["Tuesday"]),
        patch("wwfm.schedule.fetch_manual_overrides", return_value=manual),
        patch("wwfm.schedule.fetch_automatic_episodes", return_value=[]),
        patch("wwfm.schedule.fetch_radiocult_shows", return_value=[]) as mock_rc,
    ):
        result = schedule.get_weekly_schedule(datetime(2025, 1, 8, tzinfo=UTC))

    assert result.is_active
    assert result.error is None
    assert result.day_dates == DAY_DATES
    assert [i.name for i in result.items] == ["Manual"]
    assert mock_rc.call_args.args[2] == {"manual"}


def test_get_weekly_schedule_empty_is_inactive():
    with (
        patch("wwfm.schedule.fetch_manual_overrides", return_value=[]),
        patch("wwfm.schedule.fetch_automatic_episodes", return_value=[]),
        patch("wwfm.schedule.fetch_radiocult_shows", return_value=[]),
    ):
        result = schedule.get_weekly_schedule(datetime(2025, 1, 8, tzinfo=UTC))
    assert not result.is_active
    assert result.items == []


def test_get_weekly_schedule_unexpected_error():
    with patch("wwfm.schedule.fetch_manual_overrides", side_effect=RuntimeError("boom")):
        result = schedule.get_weekly_schedule(datetime(2025, 1, 8, tzinfo=UTC))
    assert not result.is_active
    assert result.error == "boom"
    assert result.day_dates["Monday"] == "2025-01-06"


def test_get_weekly_schedule_keeps_cms_items_when_radiocult_body_is_garbage():
    bad = MagicMock(ok=True)
    bad.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    with (
        patch("wwfm.schedule.target_days", return_value=["Tuesday"]),
        patch("wwfm.schedule.fetch_manual_overrides", return_value=[]),
        patch("wwfm.schedule.fetch_episodes_by_date", return_value=[EPISODE]),
        patch("wwfm.radiocult_client.settings") as rc_settings,
        patch("wwfm.radiocult_client.requests.get", return_value=bad),
    ):
        rc_settings.radiocult_station_id = "station"
        rc_settings.radiocult_publishable_key = "pub"
        rc_settings.radiocult_api_url = "https://api.radiocult.example"
        result = schedule.get_weekly_schedule(datetime(2025, 1, 8, tzinfo=UTC))

    assert result.error is None
    assert result.is_active
    assert [i.name for i in result.items] == ["Breakfast Show"]
