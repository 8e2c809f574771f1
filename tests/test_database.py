"""Tests for database module."""

from wwfm import database


def test_start_and_finish_run(tmp_path):
    db_path = tmp_path / "test.db"
    database.start_run("run-1", script="migrate_content", dry_run=True, db_path=db_path)
    database.log_step("run-1", "migrate radio-shows", "success", "10 migrated", db_path=db_path)
    database.finish_run("run-1", "success", db_path=db_path)

    run = database.get_run("run-1", db_path=db_path)
    assert run["script"] == "migrate_content"
    assert run["dry_run"] is True
    assert run["status"] == "success"
    assert run["finished_at"]
    assert run["current_step"] == "migrate radio-shows"
    assert run["steps_log"][0]["message"] == "10 migrated"


def test_log_step_unknown_run_is_ignored(tmp_path):
    db_path = tmp_path / "test.db"
    database.log_step("missing", "step", "success", db_path=db_path)
    assert database.get_run("missing", db_path=db_path) is None


def test_finish_run_records_error(tmp_path):
    db_path = tmp_path / "test.db"
    database.start_run("run-1", db_path=db_path)
    database.finish_run("run-1", "failed", "Cosmic down", db_path=db_path)
    run = database.get_run("run-1", db_path=db_path)
    assert run["status"] == "failed"
    assert run["error_message"] == "Cosmic down"


def test_list_runs_most_recent_first(tmp_path):
    db_path = tmp_path / "test.db"
    for run_id in ("a", "b", "c"):
        database.start_run(run_id, db_path=db_path)

    runs = database.list_runs(db_path=db_path)
    assert [r["run_id"] for r in runs] == ["c", "b", "a"]
    assert len(database.list_runs(limit=2, db_path=db_path)) == 2


def test_record_and_get_mapping(tmp_path):
    db_path = tmp_path / "test.db"
    database.record_mapping("radio-show", "42", "cosmic-1", slug="show", db_path=db_path)

    assert database.get_mapping("radio-show", "42", db_path=db_path) == "cosmic-1"
    assert database.get_mapping("article", "42", db_path=db_path) is None


def test_record_mapping_upserts(tmp_path):
    db_path = tmp_path / "test.db"
    database.record_mapping("radio-show", 42, "old", db_path=db_path)
    database.record_mapping("radio-show", "42", "new", db_path=db_path)

    assert database.list_mappings("radio-show", db_path=db_path) == {"42": "new"}
