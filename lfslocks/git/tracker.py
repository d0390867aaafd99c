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

"""Set of files with local uncommitted modifications (staged + unstaged)."""

from __future__ import annotations

import logging
from typing import Callable

from lfslocks.git.repo import normalize_path
from lfslocks.proxy.runner import ProcessRunner

log = logging.getLogger(__name__)

FileExists = Callable[[str], bool]


class UncommittedFileTracker:
    """Lazily rebuilt view of ``git diff --name-only`` (staged and unstaged).

    The set starts dirty.  File-change notifications mark it dirty again and
    the next consumer rebuilds it.
    """

    def __init__(self, runner: ProcessRunner, file_exists: FileExists):
        self._runner = runner
        self._file_exists = file_exists
        self._files: frozenset[str] = frozenset()
        self.dirty = True

    def mark_dirty(self) -> None:
        self.dirty = True

    @property
    def files(self) -> frozenset[str]:
        """The current set, rebuilt first if it has been marked dirty."""
        if self.dirty:
            self.rebuild()
        return self._files

    def rebuild(self) -> frozenset[str]:
        candidates: list[str] = []
        for args in (["diff", "--name-only", "--staged"], ["diff", "--name-only"]):
            r = self._runner.run_sync("git", args)
            if not r.ok:
                log.warning("git %s failed: %s", " ".join(args), r.error_text)
                continue
            candidates.extend(r.lines())

        # Diffs can mention paths that no longer exist (deletions, renames).
        files = {p for p in map(normalize_path, candidates) if p and self._file_exists(p)}
        self._files = frozenset(files)
        self.dirty = False
        log.debug("Uncommitted files rebuilt: %d file(s)", len(self._files))
        return self._files

    def __contains__(self, path: str) -> bool:
        return normalize_path(path) in self.files
