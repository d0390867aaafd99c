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

"""Owned lock state: the published snapshot and the refresh cycle bookkeeping."""

from __future__ import annotations

import enum

from lfslocks.locks.models import LockSnapshot


class RefreshState(str, enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class LockCache:
    """Single-writer holder of the current snapshot.

    ``snapshot`` is None until the first successful refresh.  Only
    :meth:`install` replaces it, and always with a complete snapshot.
    """

    def __init__(self):
        self.snapshot: LockSnapshot | None = None
        self.last_refresh: float | None = None
        self.state = RefreshState.IDLE

    @property
    def refreshing(self) -> bool:
        return self.state is RefreshState.REFRESHING

    def begin_refresh(self, now: float) -> bool:
        """Enter REFRESHING.  Returns False if a refresh is already running."""
        if self.refreshing:
            return False
        self.last_refresh = now
        self.state = RefreshState.REFRESHING
        return True

    def end_refresh(self) -> None:
        self.state = RefreshState.IDLE

    def install(self, snapshot: LockSnapshot) -> None:
        """Publish *snapshot* in place of the current one."""
        self.snapshot = snapshot

    @property
    def current(self) -> LockSnapshot:
        """The published snapshot, or an empty one before the first refresh."""
        return self.snapshot if self.snapshot is not None else LockSnapshot(())
