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

"""Conflicts between local uncommitted work and locks held by someone else."""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable

from lfslocks.git.repo import normalize_path
from lfslocks.locks.models import LockRecord, LockSnapshot

log = logging.getLogger(__name__)


def is_conflicting(record: LockRecord, uncommitted: AbstractSet[str], username: str) -> bool:
    """A lock conflicts when someone else holds it on a file we changed.

    Without a configured username ownership is unknown, so nothing conflicts.
    """
    if not username:
        return False
    return record.path in uncommitted and not record.is_owned_by(username)


class ConflictDetector:
    """Finds conflicting locks and remembers which ones were already reported."""

    def __init__(self):
        self._ignored: dict[str, None] = {}  # insertion-ordered set

    @property
    def ignored(self) -> list[str]:
        return list(self._ignored)

    def is_ignored(self, path: str) -> bool:
        return normalize_path(path) in self._ignored

    def ignore(self, path: str) -> None:
        self._ignored[normalize_path(path)] = None

    def evaluate(self, snapshot: LockSnapshot, uncommitted: AbstractSet[str]) -> list[LockRecord]:
        """Return conflicts not reported before, and stop reporting them again."""
        fresh = [
            r for r in snapshot
            if is_conflicting(r, uncommitted, snapshot.username) and r.path not in self._ignored
        ]
        for r in fresh:
            self.ignore(r.path)
        if fresh:
            log.info("%d new lock conflict(s): %s", len(fresh), ", ".join(r.path for r in fresh))
        return fresh

    def prune(self, snapshot: LockSnapshot) -> list[str]:
        """Forget paths whose lock is gone or now belongs to the current user."""
        dropped = []
        for path in list(self._ignored):
            record = snapshot.get(path)
            if record is None or snapshot.is_mine(record):
                del self._ignored[path]
                dropped.append(path)
        if dropped:
            log.debug("Conflict ignore list pruned: %s", ", ".join(dropped))
        return dropped

    def check_save(self, paths: Iterable[str], snapshot: LockSnapshot) -> list[LockRecord]:
        """Locks held by others on files about to be saved, reported once each."""
        hits = []
        for path in paths:
            record = snapshot.get(path)
            if record is None or snapshot.is_mine(record) or record.path in self._ignored:
                continue
            self.ignore(record.path)
            hits.append(record)
        return hits
