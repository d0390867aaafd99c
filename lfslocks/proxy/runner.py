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

"""External command execution — blocking calls and a serialized background queue.

Synchronous calls block the caller for at most ``timeout`` seconds and are
meant for short queries (branch name, diffs, version).  Asynchronous calls
are queued and executed one at a time on a single worker thread; their
output is collected line by line off the calling thread and staged into a
bounded result channel.  Nothing is interpreted here: the owner of the
runner drains the channel from its own tick and decides what the text means.
"""

from __future__ import annotations

import enum
import logging
import queue
import shlex
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Sequence

from lfslocks.utils.config import REQUEST_TIMEOUT

log = logging.getLogger(__name__)

# Upper bound on staged async results waiting for the next tick.
_CHANNEL_SIZE = 16


class Outcome(str, enum.Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    LAUNCH_FAILURE = "launch-failure"


@dataclass(frozen=True)
class ProcessResult:
    """Captured output of one external command."""
    stdout: str
    stderr: str
    outcome: Outcome
    returncode: int | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def error_text(self) -> str:
        """Text worth showing to a user, empty when there is nothing to report."""
        if self.outcome is Outcome.OK:
            return self.stderr.strip()
        return self.stderr.strip() or f"Process {self.outcome.value}"

    def lines(self) -> list[str]:
        """Non-empty stdout lines, with stray carriage returns removed."""
        if not self.ok:
            return []
        return [l.strip() for l in self.stdout.replace("\r", "").split("\n") if l.strip()]


@dataclass(frozen=True)
class AsyncResult:
    """A finished background command, tagged with the purpose it was issued for."""
    tag: str
    command: str
    result: ProcessResult


@dataclass(frozen=True)
class _Job:
    tag: str
    cmd: str
    args: tuple[str, ...]
    timeout: float


def format_command(cmd: str, args: Sequence[str]) -> str:
    return shlex.join([cmd, *args])


class ProcessRunner:
    """Runs external commands with the repository root as working directory."""

    def __init__(self, cwd: str | Path | None = None, timeout: float = REQUEST_TIMEOUT,
                 channel_size: int = _CHANNEL_SIZE):
        self.cwd = str(cwd) if cwd else None
        self.timeout = timeout
        self._jobs: queue.Queue[_Job | None] = queue.Queue()
        self._results: queue.Queue[AsyncResult] = queue.Queue(maxsize=channel_size)
        self._worker: threading.Thread | None = None
        self._worker_lock = threading.Lock()

    # -- Synchronous ---------------------------------------------------------

    def run_sync(self, cmd: str, args: Sequence[str],
                 timeout: float | None = None) -> ProcessResult:
        """Run a command and block until it exits or *timeout* expires.

        A ``TIMEOUT`` result carries no usable output and must not be parsed.
        """
        timeout = self.timeout if timeout is None else timeout
        command = format_command(cmd, args)
        log.debug("run_sync: %s (cwd=%s)", command, self.cwd)
        try:
            r = subprocess.run(
                [cmd, *args], cwd=self.cwd,
                capture_output=True, text=True, encoding="utf-8", errors="replace",
                timeout=timeout, check=False,
            )
        except subprocess.TimeoutExpired:
            log.warning("Process timed out after %ss: %s", timeout, command)
            return ProcessResult("", f"Error: Process timed out ({command})", Outcome.TIMEOUT)
        except OSError as e:
            log.warning("Could not launch %s: %s", command, e)
            return ProcessResult("", str(e), Outcome.LAUNCH_FAILURE)

        if r.returncode != 0:
            log.debug("%s exited with %d: %s", command, r.returncode, r.stderr.strip())
        return ProcessResult(r.stdout, r.stderr, Outcome.OK, r.returncode)

    # -- Asynchronous --------------------------------------------------------

    def run_async(self, cmd: str, args: Sequence[str], tag: str,
                  timeout: float | None = None) -> None:
        """Queue a command for the background worker and return immediately.

        Jobs run strictly one after another, so two background commands never
        overlap.  The finished result is staged under *tag* for :meth:`drain`.
        """
        timeout = self.timeout if timeout is None else timeout
        log.debug("run_async[%s]: %s", tag, format_command(cmd, args))
        self._ensure_worker()
        self._jobs.put(_Job(tag, cmd, tuple(args), timeout))

    def drain(self) -> list[AsyncResult]:
        """Take every staged result.  Called once per tick by the owner."""
        results = []
        while True:
            try:
                results.append(self._results.get_nowait())
            except queue.Empty:
                return results

    @property
    def busy(self) -> bool:
        """True while a background job is queued or running."""
        return self._jobs.unfinished_tasks > 0

    def close(self) -> None:
        """Stop the worker after the queued jobs have run."""
        with self._worker_lock:
            if self._worker is None:
                return
            self._jobs.put(None)
            self._worker.join(timeout=self.timeout)
            self._worker = None

    def _ensure_worker(self) -> None:
        with self._worker_lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._work_loop, name="lfslocks-runner", daemon=True
                )
                self._worker.start()

    def _work_loop(self) -> None:
        while True:
            job = self._jobs.get()
            try:
                if job is None:
                    return
                result = self._run_streaming(job)
                # Blocks if the owner stopped draining; the channel is bounded.
                self._results.put(AsyncResult(job.tag, format_command(job.cmd, job.args), result))
            except Exception:
                log.exception("Background job failed unexpectedly")
            finally:
                self._jobs.task_done()

    def _run_streaming(self, job: _Job) -> ProcessResult:
        command = format_command(job.cmd, job.args)
        try:
            proc = subprocess.Popen(
                [job.cmd, *job.args], cwd=self.cwd,
                stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                text=True, encoding="utf-8", errors="replace",
            )
        except OSError as e:
            log.warning("Could not launch %s: %s", command, e)
            return ProcessResult("", str(e), Outcome.LAUNCH_FAILURE)

        out_lines: list[str] = []
        err_lines: list[str] = []
        readers = [
            threading.Thread(target=_collect_lines, args=(proc.stdout, out_lines), daemon=True),
            threading.Thread(target=_collect_lines, args=(proc.stderr, err_lines), daemon=True),
        ]
        for t in readers:
            t.start()

        try:
            proc.wait(timeout=job.timeout)
        except subprocess.TimeoutExpired:
            log.warning("Background process timed out after %ss: %s", job.timeout, command)
            proc.kill()
            proc.wait()
            for t in readers:
                t.join(timeout=1)
            return ProcessResult("", f"Error: Process timed out ({command})", Outcome.TIMEOUT)

        for t in readers:
            t.join(timeout=job.timeout)
        return ProcessResult("\n".join(out_lines), "\n".join(err_lines),
                             Outcome.OK, proc.returncode)


def _collect_lines(stream: IO[str], sink: list[str]) -> None:
    """Reader thread body: append each line of *stream* to *sink*."""
    try:
        for line in stream:
            sink.append(line.rstrip("\r\n"))
    except (OSError, ValueError):
        pass
    finally:
        stream.close()
