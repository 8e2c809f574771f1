"""SQLite ledger for migration runs and legacy-id -> Cosmic-id mappings."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from config import settings

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS migration_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT UNIQUE NOT NULL,
    script TEXT NOT NULL DEFAULT '',
    dry_run INTEGER NOT NULL DEFAULT 0,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    status TEXT NOT NULL DEFAULT 'running',
    current_step TEXT,
    error_message TEXT,
    steps_log TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS mappings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    legacy_id TEXT NOT NULL,
    cosmic_id TEXT NOT NULL,
    slug TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    UNIQUE (kind, legacy_id)
);

CREATE INDEX IF NOT EXISTS idx_runs_started ON migration_runs(started_at);
CREATE INDEX IF NOT EXISTS idx_mappings_kind ON mappings(kind);
"""


def _utcnow() -> str:
    return datetime.now(UTC).isoformat()


@contextmanager
def _ledger(db_path: Path | None = None):
    """Open the ledger (creating file and schema on first use), commit on success."""
    ledger_file = db_path or settings.ledger_path
    ledger_file.parent.mkdir(parents=True, exist_ok=True)
    db = sqlite3.connect(str(ledger_file))
    db.row_factory = sqlite3.Row
    try:
        db.execute("PRAGMA journal_mode=WAL")
        db.executescript(SCHEMA)
        yield db
        db.commit()
    finally:
        db.close()


# --- Migration run logging ---

def start_run(run_id: str, script: str = "", dry_run: bool = False,
              db_path: Path | None = None) -> None:
    """Record the start of a migration run."""
    with _ledger(db_path) as db:
        db.execute(
            "INSERT INTO migration_runs (run_id, script, dry_run, started_at) VALUES (?, ?, ?, ?)",
            (run_id, script, int(dry_run), _utcnow()),
        )


def log_step(run_id: str, step: str, status: str, message: str = "",
             db_path: Path | None = None) -> None:
    """Append a step to a run's log. Unknown runs are ignored."""
    with _ledger(db_path) as db:
        found = db.execute(
            "SELECT steps_log FROM migration_runs WHERE run_id = ?", (run_id,)
        ).fetchone()
        if found is None:
            logger.warning("log_step for unknown run %s", run_id)
            return

        entries = json.loads(found["steps_log"])
        entries.append({"step": step, "status": status, "message": message, "timestamp": _utcnow()})
        db.execute(
            "UPDATE migration_runs SET steps_log = ?, current_step = ? WHERE run_id = ?",
            (json.dumps(entries), step, run_id),
        )


def finish_run(run_id: str, status: str, error_message: str = "",
               db_path: Path | None = None) -> None:
    with _ledger(db_path) as db:
        db.execute(
            "UPDATE migration_runs SET status = ?, finished_at = ?, error_message = ? WHERE run_id = ?",
            (status, _utcnow(), error_message, run_id),
        )


def _as_run(record: sqlite3.Row) -> dict:
    run = dict(record)
    run["steps_log"] = json.loads(run["steps_log"])
    run["dry_run"] = bool(run["dry_run"])
    return run


def list_runs(limit: int = 20, db_path: Path | None = None) -> list[dict]:
    """List recent migration runs (most recent first)."""
    with _ledger(db_path) as db:
        records = db.execute(
            "SELECT * FROM migration_runs ORDER BY started_at DESC, id DESC LIMIT ?", (limit,)
        ).fetchall()
    return [_as_run(r) for r in records]


def get_run(run_id: str, db_path: Path | None = None) -> dict | None:
    with _ledger(db_path) as db:
        record = db.execute("SELECT * FROM migration_runs WHERE run_id = ?", (run_id,)).fetchone()
    return _as_run(record) if record else None


# --- Legacy id mappings ---

def record_mapping(kind: str, legacy_id: str, cosmic_id: str, slug: str = "",
                   db_path: Path | None = None) -> None:
    """Remember that a legacy entry now lives in Cosmic. Re-recording replaces it."""
    with _ledger(db_path) as db:
        db.execute(
            "INSERT INTO mappings (kind, legacy_id, cosmic_id, slug, created_at) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(kind, legacy_id) DO UPDATE SET "
            "cosmic_id = excluded.cosmic_id, slug = excluded.slug",
            (kind, str(legacy_id), cosmic_id, slug, _utcnow()),
        )


def get_mapping(kind: str, legacy_id: str, db_path: Path | None = None) -> str | None:
    """Cosmic id for a legacy entry, or None if it was never migrated."""
    with _ledger(db_path) as db:
        record = db.execute(
            "SELECT cosmic_id FROM mappings WHERE kind = ? AND legacy_id = ?",
            (kind, str(legacy_id)),
        ).fetchone()
    return record["cosmic_id"] if record else None


def list_mappings(kind: str, db_path: Path | None = None) -> dict[str, str]:
    """All legacy_id -> cosmic_id mappings of one kind."""
    with _ledger(db_path) as db:
        records = db.execute(
            "SELECT legacy_id, cosmic_id FROM mappings WHERE kind = ? ORDER BY id", (kind,)
        ).fetchall()
    return {r["legacy_id"]: r["cosmic_id"] for r in records}
