"""Store application records in a CSV table with file locking."""
from __future__ import annotations

import csv
import fcntl
import threading
from dataclasses import asdict, fields
from datetime import datetime, timezone
from pathlib import Path

from autoapply.log import get_logger
from autoapply.models import ApplicationRecord, CommitResult

log = get_logger(__name__)

HEADERS: list[str] = [f.name for f in fields(ApplicationRecord)]
_BOOL_FIELDS = ("from_headhunter", "from_other_site")


class DuplicateApplicationError(Exception):
    """A record for this user already exists with the same posting or title/employer."""


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


def _to_row(record: ApplicationRecord) -> dict[str, str]:
    row = {k: str(v) for k, v in asdict(record).items()}
    for name in _BOOL_FIELDS:
        row[name] = "1" if getattr(record, name) else "0"
    return row


def _from_row(row: dict[str, str]) -> ApplicationRecord:
    values: dict = {name: row.get(name) or "" for name in HEADERS}
    try:
        values["salary"] = int(values["salary"] or 0)
    except ValueError:
        values["salary"] = 0
    for name in _BOOL_FIELDS:
        values[name] = values[name] == "1"
    return ApplicationRecord(**values)


def _keys(record: ApplicationRecord) -> tuple[tuple[str, str], tuple[str, str, str]]:
    return (record.user_id, record.posting_id), (record.user_id, record.title, record.employer)


class ApplicationTracker:
    """Append-only application store.

    Uniqueness on (user, posting id) and (user, title, employer) is enforced on
    insert, so two pipelines that race past the title pre-check still commit a
    posting only once.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._mutex = threading.Lock()

    def ensure(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            with open(self.path, "w", newline="", encoding="utf-8") as f:
                _lock(f)
                csv.writer(f).writerow(HEADERS)
                _unlock(f)
            log.info("Created application tracker → %s", self.path.name)

    def get_records(self, user_id: str | None = None) -> list[ApplicationRecord]:
        self.ensure()
        with open(self.path, "r", newline="", encoding="utf-8") as f:
            _lock(f, exclusive=False)
            rows = list(csv.DictReader(f))
            _unlock(f)
        records = [_from_row(r) for r in rows]
        if user_id is not None:
            records = [r for r in records if r.user_id == user_id]
        return records

    def has_title(self, user_id: str, title: str) -> bool:
        return any(r.title == title for r in self.get_records(user_id))

    def insert_many(self, records: list[ApplicationRecord]) -> CommitResult:
        """Insert each record independently; one bad record never blocks the rest."""
        result = CommitResult()
        self.ensure()
        with self._mutex, open(self.path, "a+", newline="", encoding="utf-8") as f:
            _lock(f)
            try:
                f.seek(0)
                taken: set[tuple] = set()
                for existing in csv.DictReader(f):
                    taken.update(_keys(_from_row(existing)))
                f.seek(0, 2)
                writer = csv.DictWriter(f, fieldnames=HEADERS)
                for record in records:
                    try:
                        self._insert_one(writer, record, taken)
                        result.inserted += 1
                    except DuplicateApplicationError as exc:
                        log.info("Skipping duplicate application: %s", exc)
                        result.duplicates += 1
                    except (OSError, ValueError, csv.Error) as exc:
                        log.error("Failed to store application %s: %s", record.posting_id, exc)
                        result.failed += 1
                f.flush()
            finally:
                _unlock(f)
        return result

    @staticmethod
    def _insert_one(writer: csv.DictWriter, record: ApplicationRecord, taken: set[tuple]) -> None:
        by_id, by_title = _keys(record)
        if by_id in taken or by_title in taken:
            raise DuplicateApplicationError(f"{record.title} @ {record.employer} for user {record.user_id}")
        if not record.cover_letter:
            raise ValueError("cover letter is required")
        if not record.created_at:
            record.created_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M")
        writer.writerow(_to_row(record))
        taken.update((by_id, by_title))


def commit_records(tracker: ApplicationTracker, records: list[ApplicationRecord]) -> CommitResult:
    """Best-effort bulk insert; logs the outcome and never raises."""
    try:
        result = tracker.insert_many(records)
    except Exception as exc:
        log.error("Error inserting %d application(s): %s", len(records), exc)
        return CommitResult(failed=len(records))
    log.info(
        "Applications stored: %d/%d inserted, duplicates=%d, failed=%d",
        result.inserted, result.attempted, result.duplicates, result.failed,
    )
    return result
