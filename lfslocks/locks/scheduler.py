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

"""Throttle for automatic lock refreshes."""

from __future__ import annotations

import time
from typing import Callable

from lfslocks.utils.config import Settings


class RefreshScheduler:
    """Decides whether an automatic refresh is due.

    A refresh is due when auto-refresh is on, the configured interval has
    passed since the last refresh, and the host is not busy.  Busy only
    postpones the refresh to a later tick.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    def is_due(self, settings: Settings, last_refresh: float | None, busy: bool = False) -> bool:
        if not settings.auto_refresh or busy:
            return False
        if last_refresh is None:
            return True
        return self._clock() >= last_refresh + settings.refresh_interval_minutes * 60

    def check_and_maybe_refresh(self, settings: Settings, last_refresh: float | None,
                                refresh: Callable[[], bool], busy: bool = False) -> bool:
        """Call *refresh* if due.  Returns whether a refresh was started."""
        if self.is_due(settings, last_refresh, busy):
            return refresh()
        return False
