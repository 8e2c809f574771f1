"""Tests for migration module."""

from unittest.mock import call, patch

from wwfm import database, migration
from wwfm.exceptions import ConfigError, CosmicAPIError
from wwfm.models import CategoryMove, ImageLinkReport, LegacyImageRef

RADIO_SHOW_ENTRY = {
    "id": 101,
    "title": "Jazz Hour",
    "slug": "jazz-hour",
    "dateCreated": "2024-05-01T10:00:00+00:00",
    "broadcastDate": "2025-01-07T20:00:00+00:00",
    "duration": "2",
    "tracklist": "<p>Track A</p><script>x()</script>",
    "bodyText": '<p>Body</p><iframe src="https://w.soundcloud.com/player"></iframe>',
    "thumbnail": [{"filename": "jazz.jpg"}],
}


def test_transform_radio_show():
    payload = migration.transform_radio_show(RADIO_SHOW_ENTRY)
    assert payload["type"] == "radio-shows"
    assert payload["title"] == "Jazz Hour"
    meta = payload["metadata"]
    assert meta["broadcast_date"] == "2025-01-07"
    assert meta["broadcast_time"] == "20:00"
    assert meta["tracklist"] == "<p>Track A</p>"
    assert "<iframe" in meta["body_text"]
    assert meta["image"] == "jazz.jpg"


def test_transform_radio_show_falls_back_to_created_date():
    entry = {**RADIO_SHOW_ENTRY, "broadcastDate": None, "thumbnail": None}
    meta = migration.transform_radio_show(entry)["metadata"]
    assert meta["broadcast_date"] == "2024-05-01"
    assert meta["broadcast_time"] == ""
    assert "image" not in meta


def test_transform_article_from_matrix_blocks():
    entry = {
        "id": 5, "title": "Interview", "slug": "interview", "dateCreated": "2024-03-02T09:00:00Z",
        "body": [{"text": "First para"}, {"text": "<p>Second</p>"}, {"type": "image"}],
        "thumbnail": "https://cdn.example/img/cover.png?w=600",
    }
    payload = migration.transform_article(entry, author_id="author-1")
    assert payload["type"] == "posts"
    assert payload["status"] == "published"
    meta = payload["metadata"]
    assert meta["content"] == "<p>First para</p><p>Second</p>"
    assert meta["excerpt"] == "First para"
    assert meta["date"] == "2024-03-02"
    assert meta["author"] == "author-1"
    assert meta["image"] == "cover.png"


def test_transform_article_prefers_description_for_excerpt():
    entry = {"title": "T", "slug": "t", "body": "<p>Body</p>", "description": "<p>Short <i>one</i></p>"}
    meta = migration.transform_article(entry)["metadata"]
    assert meta["excerpt"] == "Short one"
    assert "author" not in meta


def test_dedupe_by_title_keeps_latest():
    entries = [
        {"id": 1, "title": "Same", "dateCreated": "2024-01-01"},
        {"id": 2, "title": "Same", "dateCreated": "2024-06-01"},
        {"id": 3, "title": "Other", "dateCreated": "2023-01-01"},
    ]
    assert sorted(e["id"] for e in migration.dedupe_by_title(entries)) == [2, 3]


def test_migrate_entries_skips_already_migrated(tmp_path):
    db_path = tmp_path / "test.db"
    database.record_mapping("radio-show", "1", "existing", db_path=db_path)
    entries = [
        {"id": 1, "title": "Done", "slug": "done"},
        {"id": 2, "title": "", "slug": "untitled"},
        {"id": 3, "title": "New", "slug": "new"},
    ]
    with patch("wwfm.migration.cosmic_client.insert_object", return_value={"id": "c3"}) as mock_insert:
        stats = migration.migrate_entries("radio-show", entries, migration.transform_radio_show,
                                          db_path=db_path)

    assert stats == {"total": 3, "migrated": 1, "skipped": 2, "failed": 0}
    mock_insert.assert_called_once()
    assert database.get_mapping("radio-show", "3", db_path=db_path) == "c3"


def test_migrate_entries_dry_run_and_limit(tmp_path):
    db_path = tmp_path / "test.db"
    entries = [{"id": i, "title": f"Show {i}", "slug": f"s{i}"} for i in range(5)]
    with patch("wwfm.migration.cosmic_client.insert_object") as mock_insert:
        stats = migration.migrate_entries("radio-show", entries, migration.transform_radio_show,
                                          dry_run=True, limit=2, db_path=db_path)
    assert stats["total"] == 2
    assert stats["migrated"] == 2
    mock_insert.assert_not_called()
    assert database.list_mappings("radio-show", db_path=db_path) == {}


def test_migrate_entries_counts_failures(tmp_path):
    db_path = tmp_path / "test.db"
    with patch("wwfm.migration.cosmic_client.insert_object", side_effect=CosmicAPIError("boom")):
        stats = migration.migrate_entries("article", [{"id": 1, "title": "A", "slug": "a"}],
                                          migration.transform_article, db_path=db_path)
    assert stats["failed"] == 1
    assert database.get_mapping("article", "1", db_path=db_path) is None


def test_find_media_retries_without_extension():
    lookup = migration.build_media_lookup([
        {"id": "m1", "name": "abc-Cover", "original_name": "Cover"},
        {"id": "m2", "name": "no-original"},
    ])
    assert migration.find_media(lookup, "cover.jpg")["id"] == "m1"
    assert migration.find_media(lookup, "missing.jpg") is None


def test_load_legacy_image_refs():
    entries = [
        {"id": 1, "title": "A", "slug": "a", "thumbnailId": 10, "dateCreated": "2024-01-01"},
        {"id": 2, "title": "B", "slug": "b", "thumbnail": "https://cdn/x/b.png?w=1",
         "dateCreated": "2025-01-01"},
        {"id": 3, "title": "No image", "slug": "c"},
    ]
    refs = migration.load_legacy_image_refs(entries, [{"id": 10, "filename": "a.jpg"}])
    assert [(r.slug, r.image, r.asset_id) for r in refs] == [("b", "b.png", ""), ("a", "a.jpg", "10")]


def test_link_images():
    refs = [
        LegacyImageRef(entry_id="1", title="Jazz Hour", slug="jazz-hour", image="jazz.jpg"),
        LegacyImageRef(entry_id="2", title="Lost", slug="lost", image="none.png"),
        LegacyImageRef(entry_id="3", title="Orphan", slug="zzz-qqq", image="jazz.jpg"),
    ]
    media = [{"id": "m1", "name": "abc-jazz.jpg", "original_name": "jazz.jpg"}]
    objects = [{"id": "o1", "slug": "jazz-hour", "title": "Jazz Hour"}]

    with patch("wwfm.migration.cosmic_client.update_object") as mock_update:
        report = migration.link_images(refs, media, objects)

    mock_update.assert_called_once_with("o1", {
        "metadata": {"image": "abc-jazz.jpg"},
        "thumbnail": "abc-jazz.jpg",
    })
    assert report.updated == ["jazz-hour"]
    assert report.missing_media == ["none.png"]
    assert report.unmatched_slugs == ["zzz-qqq"]


def test_link_images_dry_run():
    refs = [LegacyImageRef(entry_id="1", title="Jazz Hour", slug="jazz-hour", image="jazz.jpg")]
    media = [{"id": "m1", "name": "abc-jazz.jpg", "original_name": "jazz.jpg"}]
    objects = [{"id": "o1", "slug": "jazz-hour", "title": "Jazz Hour"}]
    with patch("wwfm.migration.cosmic_client.update_object") as mock_update:
        report = migration.link_images(refs, media, objects, dry_run=True)
    mock_update.assert_not_called()
    assert report.updated == ["jazz-hour"]


def test_format_image_report():
    text = migration.format_image_report(ImageLinkReport(updated=["a"], unmatched_slugs=["b"]))
    assert "Updated:        1" in text
    assert "? b" in text


def test_plan_deduplication_keeps_most_complete():
    shows = [
        {"id": "1", "title": "Jazz Hour", "metadata": {"description": "d"}},
        {"id": "2", "title": "jazz hour ", "metadata": {"description": "d", "player": "p", "image": "i"}},
        {"id": "3", "title": "Unique", "metadata": {}},
    ]
    plan = migration.plan_deduplication(shows)
    assert len(plan) == 1
    kept, dropped = plan[0]
    assert kept["id"] == "2"
    assert [s["id"] for s in dropped] == ["1"]
    assert migration.metadata_score(kept) == 8


def test_deduplicate_radio_shows_deletes_duplicates():
    shows = [
        {"id": "1", "title": "A", "metadata": {}},
        {"id": "2", "title": "A", "metadata": {"player": "p"}},
        {"id": "3", "title": "A", "metadata": {}},
    ]
    with patch("wwfm.migration.cosmic_client.delete_object",
               side_effect=[None, CosmicAPIError("x")]) as mock_delete:
        deleted = migration.deduplicate_radio_shows(shows)
    assert mock_delete.call_args_list == [call("1"), call("3")]
    assert deleted == ["1"]


def test_split_broadcast_date():
    assert migration.split_broadcast_date({"broadcast_date": "2025-01-07T20:00:00Z"}) == {
        "broadcast_date": "2025-01-07",
        "broadcast_time": "20:00",
        "broadcast_date_old": "2025-01-07T20:00:00Z",
    }
    assert migration.split_broadcast_date({"broadcast_date": "2025-01-07"}) is None
    assert migration.split_broadcast_date({}) is None


def test_update_broadcast_dates():
    episodes = [
        {"id": "1", "title": "Old", "metadata": {"broadcast_date": "2025-01-07T20:00:00Z"}},
        {"id": "2", "title": "New", "metadata": {"broadcast_date": "2025-01-07"}},
        {"id": "3", "title": "Broken", "metadata": {"broadcast_date": "2025-01-08T10:00:00Z"}},
    ]
    with patch("wwfm.migration.cosmic_client.update_object",
               side_effect=[{}, CosmicAPIError("x")]) as mock_update:
        stats = migration.update_broadcast_dates(episodes)
    assert stats == {"total": 3, "migrated": 1, "skipped": 1, "errors": 1}
    assert mock_update.call_args_list[0].args[1]["metadata"]["broadcast_time"] == "20:00"


def test_apply_category_moves(tmp_path):
    db_path = tmp_path / "test.db"
    objects = [{"id": "3", "slug": "london", "metadata": {"note": "x"}}]
    moves = [
        CategoryMove(object_id="2", title="jazz", from_type="genres", to_type="genres", duplicate_of="1"),
        CategoryMove(object_id="3", title="London", from_type="genres", to_type="locations"),
    ]
    with (
        patch("wwfm.migration.cosmic_client.insert_object", return_value={"id": "new3"}) as mock_insert,
        patch("wwfm.migration.cosmic_client.delete_object") as mock_delete,
    ):
        stats = migration.apply_category_moves(moves, objects, db_path=db_path)

    mock_insert.assert_called_once_with({
        "type": "locations", "title": "London", "slug": "london", "metadata": {"note": "x"},
    })
    assert mock_delete.call_args_list == [call("2"), call("3")]
    assert stats == {"deleted": 1, "moved": 1, "failed": 0}
    assert database.get_mapping("category-move", "3", db_path=db_path) == "new3"


def test_apply_category_moves_failed_delete_is_not_reinserted_on_rerun(tmp_path):
    db_path = tmp_path / "test.db"
    objects = [{"id": "3", "slug": "london", "metadata": {}}]
    moves = [CategoryMove(object_id="3", title="London", from_type="genres", to_type="locations")]

    with (
        patch("wwfm.migration.cosmic_client.insert_object", return_value={"id": "new3"}) as mock_insert,
        patch("wwfm.migration.cosmic_client.delete_object",
              side_effect=CosmicAPIError("gateway timeout", status_code=504)),
    ):
        first = migration.apply_category_moves(moves, objects, db_path=db_path)
    assert first == {"deleted": 0, "moved": 0, "failed": 1}
    mock_insert.assert_called_once()
    assert database.get_mapping("category-move", "3", db_path=db_path) == "new3"

    with (
        patch("wwfm.migration.cosmic_client.insert_object") as mock_insert,
        patch("wwfm.migration.cosmic_client.delete_object") as mock_delete,
    ):
        second = migration.apply_category_moves(moves, objects, db_path=db_path)
    mock_insert.assert_not_called()
    mock_delete.assert_called_once_with("3")
    assert second == {"deleted": 0, "moved": 1, "failed": 0}


def test_apply_category_moves_missing_write_key_counts_as_failed(tmp_path):
    moves = [CategoryMove(object_id="2", title="jazz", from_type="genres", to_type="genres", duplicate_of="1")]
    with patch("wwfm.migration.cosmic_client.delete_object",
               side_effect=ConfigError("No COSMIC_WRITE_KEY configured")):
        stats = migration.apply_category_moves(moves, [], db_path=tmp_path / "test.db")
    assert stats == {"deleted": 0, "moved": 0, "failed": 1}


def test_apply_category_moves_dry_run():
    moves = [CategoryMove(object_id="3", title="London", from_type="genres", to_type="locations")]
    with patch("wwfm.migration.cosmic_client.delete_object") as mock_delete:
        stats = migration.apply_category_moves(moves, [], dry_run=True)
    mock_delete.assert_not_called()
    assert stats == {"deleted": 0, "moved": 0, "failed": 0}
