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

"""How the engine talks to a human: warnings and yes/no questions."""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any, Protocol

log = logging.getLogger(__name__)


class Notifier(Protocol):
    def warn(self, title: str, message: str) -> None:
        """Show a message the user acknowledges with OK."""

    def confirm(self, title: str, message: str, ok: str = "OK", cancel: str = "Cancel") -> bool:
        """Ask a question; True means the *ok* choice."""


class LogNotifier:
    """Non-interactive notifier for headless use (the HTTP server).

    Warnings are logged and kept in a short history.  Every question gets
    the preset *answer*.
    """

    def __init__(self, answer: bool = False, history: int = 50):
        self.answer = answer
        self.recent: deque[dict[str, Any]] = deque(maxlen=history)

    def warn(self, title: str, message: str) -> None:
        log.warning("%s: %s", title, message)
        self.recent.append({"time": time.time(), "kind": "warning",
                            "title": title, "message": message})

    def confirm(self, title: str, message: str, ok: str = "OK", cancel: str = "Cancel") -> bool:
        choice = ok if self.answer else cancel
        log.warning("%s: %s [auto-answered: %s]", title, message, choice)
        self.recent.append({"time": time.time(), "kind": "question", "title": title,
                            "message": message, "answer": choice})
        return self.answer
