# lfslocks — Advisory Git LFS file locks for unmergeable assets.
#
# Copyright (c) 2026 Max Rheiner / Somniacs AG
#
# Licensed under the MIT License. You may obtain a copy
# of the license at:
#
#     https://opensource.org/licenses/MIT
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND.

"""Lock records, immutable lock snapshots and the ``git lfs locks --json`` parser."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Iterable, Iterator

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator

from lfslocks.errors import LockListingParseError
from lfslocks.git.repo import normalize_path

LIST_OPEN_TOKEN = "["
EMPTY_LIST_TOKEN = "[]"

# Companion files that are never locked on their own.
IGNORED_EXTENSIONS = (".meta",)


class LockOwner(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


class LockRecord(BaseModel):
    """One lock as reported by the LFS server."""
    model_config = ConfigDict(frozen=True)

    id: int
    path: str
    owner: LockOwner
    locked_at: datetime

    @field_validator("path")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_path(v)

    @property
    def owner_name(self) -> str:
        return self.owner.name

    def is_owned_by(self, username: str) -> bool:
        return bool(username) and self.owner.name == username

    def resolve_asset(self, resolver: Callable[[str], Any]) -> Any:
        """Look up the asset behind this lock.  Only the path is kept here."""
        return resolver(self.path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "owner": self.owner.name,
            "locked_at": self.locked_at.isoformat(),
        }


_RECORDS = TypeAdapter(list[LockRecord])


def parse_lock_listing(payload: str) -> list[LockRecord]:
    """Parse a structured listing into records.

    Raises:
        LockListingParseError: payload is not a JSON list of valid records,
            or lists the same path twice.
    """
    text = payload.strip()
    if not text.startswith(LIST_OPEN_TOKEN):
        raise LockListingParseError("Lock listing is not a JSON list", payload)
    try:
        records = _RECORDS.validate_json(text)
    except ValidationError as e:
        raise LockListingParseError(f"Invalid lock listing: {e}", payload) from e

    seen: set[str] = set()
    for r in records:
        if r.path in seen:
            raise LockListingParseError(f"Duplicate lock on {r.path}", payload)
        seen.add(r.path)
    return records


def has_ignored_extension(path: str) -> bool:
    return any(ext in path for ext in IGNORED_EXTENSIONS)


class LockSnapshot:
    """Complete, immutable set of known locks.

    Records owned by *username* come first, each group ordered by path.
    A snapshot is never modified after construction; refreshing builds a
    new one.
    """

    __slots__ = ("_records", "_by_path", "username", "created_at")

    def __init__(self, records: Iterable[LockRecord], username: str = "",
                 created_at: float | None = None):
        self.username = username
        self.created_at = created_at
        self._records: tuple[LockRecord, ...] = tuple(
            sorted(records, key=lambda r: (not r.is_owned_by(username), r.path))
        )
        self._by_path = {r.path: r for r in self._records}

    @classmethod
    def from_payload(cls, payload: str, username: str = "",
                     created_at: float | None = None) -> LockSnapshot:
        return cls(parse_lock_listing(payload), username, created_at)

    @property
    def records(self) -> tuple[LockRecord, ...]:
        return self._records

    def __iter__(self) -> Iterator[LockRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: str) -> bool:
        return normalize_path(path) in self._by_path

    def get(self, path: str) -> LockRecord | None:
        return self._by_path.get(normalize_path(path))

    def is_mine(self, record: LockRecord) -> bool:
        return record.is_owned_by(self.username)

    def own_locks(self) -> list[LockRecord]:
        return [r for r in self._records if self.is_mine(r)]

    def other_locks(self) -> list[LockRecord]:
        return [r for r in self._records if not self.is_mine(r)]

    def new_since(self, previous: LockSnapshot | None) -> list[LockRecord]:
        """Locks held by others that were not in *previous*."""
        old_paths = set(previous._by_path) if previous is not None else set()
        return [r for r in self.other_locks() if r.path not in old_paths]

    def is_available_to_lock(self, path: str) -> bool:
        return not has_ignored_extension(path) and path not in self

    def is_available_to_unlock(self, path: str) -> bool:
        if has_ignored_extension(path):
            return False
        record = self.get(path)
        return record is not None and self.is_mine(record)

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "created_at": self.created_at,
            "mine": [r.to_dict() for r in self.own_locks()],
            "others": [r.to_dict() for r in self.other_locks()],
        }
