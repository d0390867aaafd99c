"""Tests for conflict detection and the ignore list."""

from conftest import listing
from lfslocks.locks.conflicts import ConflictDetector, is_conflicting
from lfslocks.locks.models import LockSnapshot, parse_lock_listing


def _record(path="Assets/a.png", owner="bob"):
    return parse_lock_listing(listing((path, owner)))[0]


class TestIsConflicting:
    """Test the conflict rule."""

    def test_locked_by_other_with_local_changes(self):
        assert is_conflicting(_record(owner="bob"), {"Assets/a.png"}, "alice")

    def test_locked_by_me(self):
        assert not is_conflicting(_record(owner="bob"), {"Assets/a.png"}, "bob")

    def test_no_identity_configured(self):
        assert not is_conflicting(_record(owner="bob"), {"Assets/a.png"}, "")

    def test_no_local_changes(self):
        assert not is_conflicting(_record(owner="bob"), {"Assets/other.png"}, "alice")


class TestConflictDetector:
    """Test per-cycle reporting and pruning."""

    def test_reports_each_conflict_once(self):
        detector = ConflictDetector()
        snapshot = LockSnapshot.from_payload(listing(("a.png", "bob"), ("b.png", "carol")), "alice")
        uncommitted = {"a.png", "b.png"}

        first = detector.evaluate(snapshot, uncommitted)
        assert [r.path for r in first] == ["a.png", "b.png"]
        assert detector.evaluate(snapshot, uncommitted) == []
        assert detector.ignored == ["a.png", "b.png"]

    def test_prune_drops_released_locks(self):
        detector = ConflictDetector()
        before = LockSnapshot.from_payload(listing(("a.png", "bob"), ("b.png", "bob")), "alice")
        detector.evaluate(before, {"a.png", "b.png"})

        after = LockSnapshot.from_payload(listing(("b.png", "bob")), "alice")
        assert detector.prune(after) == ["a.png"]
        assert detector.ignored == ["b.png"]

    def test_prune_drops_locks_that_became_mine(self):
        detector = ConflictDetector()
        detector.evaluate(LockSnapshot.from_payload(listing(("a.png", "bob")), "alice"), {"a.png"})

        detector.prune(LockSnapshot.from_payload(listing(("a.png", "alice")), "alice"))
        assert not detector.is_ignored("a.png")

    def test_conflict_reported_again_after_lock_returns(self):
        detector = ConflictDetector()
        locked = LockSnapshot.from_payload(listing(("a.png", "bob")), "alice")
        detector.evaluate(locked, {"a.png"})
        detector.prune(LockSnapshot.from_payload("[]", "alice"))

        assert [r.path for r in detector.evaluate(locked, {"a.png"})] == ["a.png"]

    def test_check_save_warns_once_per_path(self):
        detector = ConflictDetector()
        snapshot = LockSnapshot.from_payload(listing(("a.png", "bob"), ("mine.png", "alice")),
                                             "alice")
        hits = detector.check_save(["a.png", "mine.png", "free.png"], snapshot)
        assert [r.path for r in hits] == ["a.png"]
        assert detector.check_save(["a.png"], snapshot) == []

    def test_check_save_respects_refresh_ignore_list(self):
        detector = ConflictDetector()
        snapshot = LockSnapshot.from_payload(listing(("a.png", "bob")), "alice")
        detector.evaluate(snapshot, {"a.png"})
        assert detector.check_save(["a.png"], snapshot) == []
