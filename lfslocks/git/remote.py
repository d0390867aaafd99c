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

"""Files changed upstream but not merged locally.

Never cached: a stale answer would let someone lock a file that was changed
on the server after the last check.  The cost is one fetch and one rev-list
per branch plus one diff-tree per unmerged commit, so keep it out of hot paths.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from lfslocks.git.repo import current_branch, normalize_path
from lfslocks.proxy.runner import ProcessRunner

log = logging.getLogger(__name__)

_REMOTE = "origin"


def branches_to_check(extra_branches: Iterable[str], branch: str) -> list[str]:
    """Configured extra branches plus the current branch, without duplicates."""
    ordered = dict.fromkeys(b for b in extra_branches if b)
    if branch:
        ordered[branch] = None
    return list(ordered)


def build_remote_modified_set(runner: ProcessRunner, extra_branches: Iterable[str],
                              file_exists: Callable[[str], bool]) -> frozenset[str]:
    """Union of files touched by commits on the remote branches missing locally."""
    local = current_branch(runner)
    if not local:
        log.warning("Could not determine the current branch; skipping remote check")
        return frozenset()

    modified: set[str] = set()
    for branch in branches_to_check(extra_branches, local):
        fetch = runner.run_sync("git", ["fetch", _REMOTE, branch])
        if not fetch.ok or fetch.returncode:
            log.warning("git fetch %s %s failed: %s", _REMOTE, branch, fetch.error_text)

        revs = runner.run_sync("git", ["rev-list", f"{local}..{_REMOTE}/{branch}"])
        if revs.returncode:
            log.debug("No remote range for %s: %s", branch, revs.error_text)
            continue
        commits = revs.lines()
        log.debug("%d unmerged commit(s) on %s/%s", len(commits), _REMOTE, branch)

        for commit in commits:
            tree = runner.run_sync(
                "git", ["diff-tree", "--no-commit-id", "--name-only", "-r", commit]
            )
            for path in map(normalize_path, tree.lines()):
                if path and file_exists(path):
                    modified.add(path)

    return frozenset(modified)
