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

"""Short synchronous git queries — repo root, branch, version, credentials."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from lfslocks.errors import NotARepositoryError
from lfslocks.proxy.runner import ProcessRunner

log = logging.getLogger(__name__)

# Git releases older than this ship a credential manager that cannot
# authenticate against most LFS hosts.
MIN_GIT_VERSION = (2, 30)

_VERSION_RE = re.compile(r"(\d+)\.(\d+)")


def git_output(runner: ProcessRunner, *args: str) -> str:
    """Run a git command and return stripped stdout, or "" on any failure."""
    r = runner.run_sync("git", args)
    if not r.ok or r.returncode != 0:
        return ""
    return r.stdout.strip()


def normalize_path(path: str) -> str:
    """Repository-relative path with forward slashes and no stray whitespace."""
    return path.strip().replace("\r", "").replace("\\", "/")


def find_repo_root(path: str | Path) -> str:
    """Return the top-level directory of the repository containing *path*."""
    root = git_output(ProcessRunner(cwd=path), "rev-parse", "--show-toplevel")
    if not root:
        raise NotARepositoryError(f"Not a git repository: {path}")
    return root


def current_branch(runner: ProcessRunner) -> str:
    output = git_output(runner, "rev-parse", "--abbrev-ref", "HEAD")
    return output.split("\n")[0].strip()


def git_version(runner: ProcessRunner) -> str:
    """The ``git --version`` banner, e.g. ``git version 2.43.0``."""
    return git_output(runner, "--version")


def parse_git_version(banner: str) -> tuple[int, int] | None:
    match = _VERSION_RE.search(banner or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def is_git_outdated(banner: str) -> bool:
    """True when git is older than MIN_GIT_VERSION or its version can't be read."""
    version = parse_git_version(banner)
    if version is None:
        log.warning("Could not parse git version from %r", banner)
        return True
    return version < MIN_GIT_VERSION


def setup_credential_helper(runner: ProcessRunner, helper: str = "manager",
                            scope: str = "--global") -> str:
    """Configure git's credential helper.  Returns stderr text, empty on success."""
    log.info("Setting up credential helper %s (%s)", helper, scope)
    r = runner.run_sync("git", ["config", scope, "credential.helper", helper])
    return r.error_text
