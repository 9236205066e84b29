"""User store: job seekers, their criteria and linked-account tokens, in YAML."""
from __future__ import annotations

import fcntl
import threading
from pathlib import Path
from typing import Any

import yaml

from autoapply.config import parse_bool
from autoapply.log import get_logger
from autoapply.models import ACTIVE, Credentials, Criterion, TokenPair, User

log = get_logger(__name__)


def _parse_user(entry: dict[str, Any]) -> User:
    criteria = []
    for c in entry.get("criteria") or []:
        if isinstance(c, str):
            criteria.append(Criterion(text=c))
        else:
            criteria.append(Criterion(text=str(c.get("text") or ""), status=str(c.get("status") or ACTIVE)))
    return User(
        id=str(entry["id"]),
        first_name=entry.get("first_name") or "",
        last_name=entry.get("last_name") or "",
        email=entry.get("email") or "",
        criteria=criteria,
        only_with_salary=parse_bool(entry.get("only_with_salary")),
        has_linked_account=parse_bool(entry.get("linked_account")),
        credentials=Credentials(
            access_token=entry.get("access_token") or "",
            refresh_token=entry.get("refresh_token") or "",
        ),
    )


class UserStore:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._mutex = threading.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            raise FileNotFoundError(f"User store not found: {self.path}")
        with open(self.path, "r", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_SH)
            try:
                data = yaml.safe_load(f) or {}
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path.name} must contain a mapping with a 'users' list")
        return data

    def load_users(self) -> list[User]:
        """Snapshot of every user; entries that cannot be parsed are skipped."""
        users: list[User] = []
        for idx, entry in enumerate(self._read().get("users") or []):
            try:
                users.append(_parse_user(entry))
            except (KeyError, TypeError, AttributeError, ValueError) as exc:
                log.error("Skipping malformed user entry #%d in %s: %s", idx, self.path.name, exc)
        return users

    def update_credentials(self, user_id: str, tokens: TokenPair) -> None:
        """Rewrite only the token fields of one user."""
        with self._mutex, open(self.path, "r+", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                data = yaml.safe_load(f) or {}
                entry = next(
                    (u for u in data.get("users") or [] if str(u.get("id")) == user_id),
                    None,
                )
                if entry is None:
                    raise KeyError(f"Unknown user {user_id}")
                entry["access_token"] = tokens.access_token
                entry["refresh_token"] = tokens.refresh_token
                f.seek(0)
                f.truncate()
                yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False)
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        log.debug("Stored refreshed credentials for user %s", user_id)
