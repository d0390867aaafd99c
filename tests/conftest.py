"""Shared fixtures: a scripted process runner, a recording notifier and a manager factory."""

import json

import pytest

from lfslocks.locks.manager import LockManager
from lfslocks.proxy.runner import AsyncResult, Outcome, ProcessResult
from lfslocks.utils import config as cfg
from lfslocks.utils.config import Settings


class FakeRunner:
    """Stand-in for ProcessRunner that answers from a script.

    Async results are staged immediately and come out of the next drain().
    """

    def __init__(self):
        self.sync_responses: dict[tuple, ProcessResult] = {}
        self.async_responses: dict[tuple, ProcessResult] = {}
        self.sync_calls: list[tuple] = []
        self.async_calls: list[tuple] = []
        self._staged: list[AsyncResult] = []
        self.closed = False

    def on(self, *argv, stdout="", stderr="", outcome=Outcome.OK, returncode=0):
        self.sync_responses[argv] = ProcessResult(stdout, stderr, outcome, returncode)

    def on_async(self, *argv, stdout="", stderr="", outcome=Outcome.OK, returncode=0):
        self.async_responses[argv] = ProcessResult(stdout, stderr, outcome, returncode)

    def run_sync(self, cmd, args, timeout=None):
        argv = (cmd, *args)
        self.sync_calls.append(argv)
        return self.sync_responses.get(argv, ProcessResult("", "", Outcome.OK, 0))

    def run_async(self, cmd, args, tag, timeout=None):
        argv = (cmd, *args)
        self.async_calls.append((tag, argv))
        result = self.async_responses.get(argv, ProcessResult("", "", Outcome.OK, 0))
        self._staged.append(AsyncResult(tag, " ".join(argv), result))

    def drain(self):
        staged, self._staged = self._staged, []
        return staged

    @property
    def busy(self):
        return False

    def close(self):
        self.closed = True

    def calls_starting_with(self, *prefix):
        return [c for c in self.sync_calls if c[:len(prefix)] == prefix]


class RecordingNotifier:
    """Notifier that records everything and answers questions from a list."""

    def __init__(self, answers=None, default=False):
        self.answers = list(answers or [])
        self.default = default
        self.warnings: list[tuple[str, str]] = []
        self.questions: list[tuple[str, str]] = []

    def warn(self, title, message):
        self.warnings.append((title, message))

    def confirm(self, title, message, ok="OK", cancel="Cancel"):
        self.questions.append((title, message))
        return self.answers.pop(0) if self.answers else self.default


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def listing(*locks):
    """Build a ``git lfs locks --json`` payload from (path, owner) pairs."""
    return json.dumps([
        {"id": i + 1, "path": path, "owner": {"name": owner},
         "locked_at": "2024-01-01T10:00:00Z"}
        for i, (path, owner) in enumerate(locks)
    ])


@pytest.fixture(autouse=True)
def user_config(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.lfslocks/config.yaml."""
    path = tmp_path / "home" / "config.yaml"
    monkeypatch.setattr(cfg, "USER_CONFIG_FILE", path)
    return path


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def existing_files():
    """Paths the fake file system reports as present."""
    return set()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_manager(tmp_path, runner, notifier, existing_files, clock):
    def factory(**settings):
        defaults = {"host_username": "alice", "warn_if_remote_modified": False}
        return LockManager(
            tmp_path,
            settings=Settings(**{**defaults, **settings}),
            runner=runner,
            notifier=notifier,
            file_exists=lambda p: p in existing_files,
            clock=clock,
        )
    return factory


def refresh_with(manager, runner, payload):
    """Answer the next lock listing with *payload* and run one tick."""
    runner.on_async("git", "lfs", "locks", "--json", stdout=payload)
    assert manager.refresh()
    manager.tick()
