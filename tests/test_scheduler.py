"""Tests for the refresh throttle."""

from conftest import FakeClock
from lfslocks.locks.scheduler import RefreshScheduler
from lfslocks.utils.config import Settings


class TestRefreshScheduler:
    """Test when automatic refreshes are due."""

    def test_first_refresh_is_due(self):
        scheduler = RefreshScheduler(FakeClock())
        assert scheduler.is_due(Settings(), last_refresh=None)

    def test_waits_for_interval(self):
        clock = FakeClock()
        scheduler = RefreshScheduler(clock)
        settings = Settings(refresh_interval_minutes=5)
        last = clock()

        clock.advance(4 * 60 + 59)
        assert not scheduler.is_due(settings, last)
        clock.advance(1)
        assert scheduler.is_due(settings, last)

    def test_auto_refresh_disabled(self):
        scheduler = RefreshScheduler(FakeClock())
        assert not scheduler.is_due(Settings(auto_refresh=False), last_refresh=None)

    def test_busy_host_postpones(self):
        scheduler = RefreshScheduler(FakeClock())
        assert not scheduler.is_due(Settings(), last_refresh=None, busy=True)
        assert scheduler.is_due(Settings(), last_refresh=None, busy=False)

    def test_check_and_maybe_refresh_calls_refresh(self):
        scheduler = RefreshScheduler(FakeClock())
        calls = []

        def refresh():
            calls.append(1)
            return True

        assert scheduler.check_and_maybe_refresh(Settings(), None, refresh)
        assert not scheduler.check_and_maybe_refresh(Settings(auto_refresh=False), None, refresh)
        assert calls == [1]
