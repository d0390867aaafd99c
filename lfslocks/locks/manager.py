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

"""Lock state synchronization — refresh cycle, lock requests, editor hooks."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from lfslocks.errors import LockListingParseError, UserAbort
from lfslocks.git.remote import build_remote_modified_set
from lfslocks.git.repo import normalize_path, setup_credential_helper
from lfslocks.git.tracker import UncommittedFileTracker
from lfslocks.locks.batching import batch_paths, lock_args, unlock_args
from lfslocks.locks.cache import LockCache
from lfslocks.locks.conflicts import ConflictDetector, is_conflicting
from lfslocks.locks.models import (
    EMPTY_LIST_TOKEN, LIST_OPEN_TOKEN, LockRecord, LockSnapshot, parse_lock_listing,
)
from lfslocks.locks.notify import LogNotifier, Notifier
from lfslocks.locks.scheduler import RefreshScheduler
from lfslocks.proxy.runner import AsyncResult, ProcessResult, ProcessRunner
from lfslocks.utils.config import Settings

log = logging.getLogger(__name__)

# Tags for background results staged by the runner.
TAG_LISTING = "locks-json"
TAG_DIAGNOSTIC = "locks-text"

_ERROR_TITLE = "Git LFS locks error"
_CONFLICT_MESSAGE = ("The following files are currently locked and you have uncommitted "
                     "changes on them that you'll probably not be able to push:")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class RequestResult:
    """Outcome of a batched lock or unlock request."""
    action: str                 # lock | unlock
    paths: list[str]
    batches: int = 0            # git invocations issued
    errors: list[str] = field(default_factory=list)
    aborted: bool = False       # user declined the remote-modification prompt
    message: str = ""

    @property
    def success(self) -> bool:
        return not self.aborted and not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "paths": self.paths,
            "batches": self.batches,
            "errors": self.errors,
            "aborted": self.aborted,
            "success": self.success,
            "message": self.message,
        }


# ---------------------------------------------------------------------------
# LockManager
# ---------------------------------------------------------------------------

class LockManager:
    """Owns the lock cache and drives every state change from :meth:`tick`.

    Background command output is only staged by the runner; parsing,
    snapshot replacement and conflict evaluation all happen inside
    ``tick()`` on the caller's thread.  Callers must use a single thread
    for ``tick()`` and the request methods.
    """

    def __init__(self, repo_root: str | Path, settings: Settings | None = None,
                 runner: ProcessRunner | None = None, notifier: Notifier | None = None,
                 file_exists: Callable[[str], bool] | None = None,
                 busy: Callable[[], bool] | None = None,
                 clock: Callable[[], float] = time.time):
        self.repo_root = Path(repo_root)
        self.settings = settings or Settings()
        self.runner = runner or ProcessRunner(cwd=self.repo_root)
        self.notifier = notifier or LogNotifier()
        self.file_exists = file_exists or (lambda p: (self.repo_root / p).is_file())
        self._busy = busy or (lambda: False)
        self._clock = clock

        self.cache = LockCache()
        self.tracker = UncommittedFileTracker(self.runner, self.file_exists)
        self.detector = ConflictDetector()
        self.scheduler = RefreshScheduler(clock)
        self._listeners: list[Callable[[], None]] = []

    # -- Read-only views -----------------------------------------------------

    @property
    def snapshot(self) -> LockSnapshot:
        return self.cache.current

    @property
    def has_snapshot(self) -> bool:
        return self.cache.snapshot is not None

    @property
    def refreshing(self) -> bool:
        return self.cache.refreshing

    @property
    def last_refresh(self) -> float | None:
        return self.cache.last_refresh

    def is_conflicting(self, record: LockRecord) -> bool:
        return is_conflicting(record, self.tracker.files, self.settings.host_username)

    def is_available_to_lock(self, path: str) -> bool:
        return self.has_snapshot and self.snapshot.is_available_to_lock(path)

    def is_available_to_unlock(self, path: str) -> bool:
        return self.has_snapshot and self.snapshot.is_available_to_unlock(path)

    def remote_modified_files(self) -> frozenset[str]:
        return build_remote_modified_set(self.runner, self.settings.extra_branches,
                                         self.file_exists)

    # -- Repaint listeners ---------------------------------------------------

    def subscribe(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify_listeners(self) -> None:
        for callback in list(self._listeners):
            try:
                callback()
            except Exception:
                log.exception("Repaint listener failed")

    # -- Refresh cycle -------------------------------------------------------

    def refresh(self) -> bool:
        """Start an asynchronous lock listing.  No-op while one is running or when disabled."""
        if not self.settings.enabled:
            log.debug("Refresh skipped: disabled")
            return False
        if not self.cache.begin_refresh(self._clock()):
            log.debug("Refresh skipped: already refreshing")
            return False
        self.runner.run_async("git", ["lfs", "locks", "--json"], tag=TAG_LISTING)
        return True

    def check_and_maybe_refresh(self) -> bool:
        return self.scheduler.check_and_maybe_refresh(
            self.settings, self.cache.last_refresh, self.refresh, busy=self._busy()
        )

    def tick(self) -> None:
        """One pass of the main loop.  Call it regularly from a single thread."""
        if not self.settings.enabled or self._busy():
            return

        results = self.runner.drain()
        # A pending listing rebuilds the uncommitted set while publishing.
        if self.tracker.dirty and not any(r.tag == TAG_LISTING for r in results):
            self.tracker.rebuild()
            self._notify_listeners()

        for item in results:
            self._handle(item)

        self.check_and_maybe_refresh()

    def _handle(self, item: AsyncResult) -> None:
        if item.tag == TAG_LISTING:
            try:
                self._complete_listing(item.result)
            finally:
                self.cache.end_refresh()
                self._notify_listeners()
        elif item.tag == TAG_DIAGNOSTIC:
            self._complete_diagnostic(item.result)
        else:
            log.debug("Ignoring background result %s (%s)", item.tag, item.command)

    def _complete_listing(self, result: ProcessResult) -> None:
        if not result.ok:
            self._surface_error(result.error_text)
            return

        payload = result.stdout.strip()
        if payload == EMPTY_LIST_TOKEN:
            # An empty list is also what an auth failure looks like; the
            # plain listing prints the actual error, if there is one.
            self.runner.run_async("git", ["lfs", "locks"], tag=TAG_DIAGNOSTIC)

        if payload.startswith(LIST_OPEN_TOKEN):
            try:
                records = parse_lock_listing(payload)
            except LockListingParseError as e:
                log.error("Keeping previous lock snapshot: %s", e)
            else:
                self._publish(records)
        elif payload:
            log.info("Lock listing returned no data: %s", payload)

        if result.stderr.strip():
            self._surface_error(result.stderr.strip())

    def _complete_diagnostic(self, result: ProcessResult) -> None:
        error = result.error_text
        if error:
            self._surface_error(error)
        elif result.stdout.strip():
            log.info("git lfs locks: %s", result.stdout.strip())

    def _publish(self, records: list[LockRecord]) -> None:
        snapshot = LockSnapshot(records, self.settings.host_username, created_at=self._clock())
        previous = self.cache.snapshot
        uncommitted = self.tracker.rebuild()

        if self.settings.show_conflict_warning:
            conflicts = self.detector.evaluate(snapshot, uncommitted)
            if conflicts:
                self.notifier.warn(
                    "Warning", "\n".join([_CONFLICT_MESSAGE, *(r.path for r in conflicts)])
                )

        self.detector.prune(snapshot)

        if self.settings.notify_new_locks:
            new_locks = snapshot.new_since(previous)
            if new_locks:
                self.notifier.warn(
                    "New locks", "\n".join(f"[{r.owner_name}] {r.path}" for r in new_locks)
                )

        self.cache.install(snapshot)
        log.info("Lock snapshot published: %d mine, %d others",
                 len(snapshot.own_locks()), len(snapshot.other_locks()))

    def _surface_error(self, text: str) -> None:
        message = (f"Git LFS locks error:\n\n{text}\n\n"
                   "If it's your first time using the tool, you should probably "
                   "set up the credentials manager.")
        if self.notifier.confirm(_ERROR_TITLE, message, ok="Set up credentials", cancel="OK"):
            error = setup_credential_helper(self.runner)
            if error:
                self.notifier.warn(_ERROR_TITLE, error)

    # -- Lock / unlock requests ----------------------------------------------

    def lock_files(self, paths: Sequence[str]) -> RequestResult:
        """Lock *paths* in batches, then refresh.

        With ``warn_if_remote_modified`` each path is checked against the
        files changed upstream first; declining any prompt cancels the whole
        request before a single lock is taken.
        """
        paths = _clean(paths)
        result = RequestResult("lock", paths)
        if not paths:
            return result
        log.info("Trying to lock %d file(s): %s", len(paths), ", ".join(paths))

        if self.settings.warn_if_remote_modified:
            try:
                self._confirm_not_modified_on_server(paths)
            except UserAbort as e:
                log.info("Lock request cancelled: %s", e)
                result.aborted = True
                result.message = str(e)
                return result

        batches = batch_paths(paths, self.settings.max_files_per_request)
        self._run_batches(result, [lock_args(b) for b in batches])
        self.refresh()
        return result

    def unlock_files(self, paths: Sequence[str], force: bool = False) -> RequestResult:
        paths = _clean(paths)
        result = RequestResult("unlock", paths)
        if not paths:
            return result
        log.info("Trying to unlock %d file(s)%s: %s", len(paths),
                 " (forced)" if force else "", ", ".join(paths))

        batches = batch_paths(paths, self.settings.max_files_per_request)
        self._run_batches(result, [unlock_args(b, force=force) for b in batches])
        self.refresh()
        return result

    def unlock_records(self, records: Iterable[LockRecord]) -> RequestResult:
        """Unlock the given records, skipping any that are not ours."""
        snapshot = self.snapshot
        return self.unlock_files([r.path for r in records if snapshot.is_mine(r)])

    def unlock_all_mine(self) -> RequestResult:
        return self.unlock_records(self.snapshot.own_locks())

    def _confirm_not_modified_on_server(self, paths: list[str]) -> None:
        modified = self.remote_modified_files()
        for path in paths:
            if path not in modified:
                continue
            proceed = self.notifier.confirm(
                "File modified on the server",
                f"Warning! {path} has already been modified on the server. You really "
                "should pull before locking or you'll almost certainly get merge conflicts.",
                ok="I know what I'm doing, lock anyway",
                cancel="OK, don't lock yet",
            )
            if not proceed:
                raise UserAbort(f"{path} has been modified on the server", path=path)

    def _run_batches(self, result: RequestResult, commands: list[list[str]]) -> None:
        for args in commands:
            r = self.runner.run_sync("git", args)
            result.batches += 1
            error = r.error_text
            if error:
                result.errors.append(error)
                self.notifier.warn(_ERROR_TITLE, error)

    # -- Host hooks ----------------------------------------------------------

    def mark_uncommitted_dirty(self) -> None:
        self.tracker.mark_dirty()

    def on_files_changed(self, paths: Iterable[str]) -> None:
        """File-change notification: only locked files can change a conflict."""
        snapshot = self.snapshot
        if any(p in snapshot for p in paths):
            self.tracker.mark_dirty()

    def on_will_save(self, paths: Sequence[str]) -> Sequence[str]:
        """Warn about saving files someone else has locked.  Never blocks the save."""
        if not self.settings.enabled:
            return paths

        self.tracker.mark_dirty()
        if self.settings.show_conflict_warning and self.has_snapshot:
            for record in self.detector.check_save(paths, self.snapshot):
                self.notifier.warn(
                    "Warning",
                    f"The following file you just saved is currently locked by "
                    f"{record.owner_name}, you will not be able to push it.\n{record.path}",
                )
        return paths

    def wants_to_quit(self) -> bool:
        """Quit guard.  False means the user chose to stay."""
        if not self.settings.enabled:
            return True

        own = self.snapshot.own_locks()
        if self.settings.warn_on_quit_with_open_locks and own:
            return self.notifier.confirm(
                "Remaining locks",
                f"You still own {len(own)} lock(s), do you want to quit anyway?",
                ok="Yes", cancel="No, take me back",
            )
        return True


def _clean(paths: Iterable[str]) -> list[str]:
    return [normalize_path(p) for p in paths if p and p.strip()]
