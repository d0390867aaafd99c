"""Tests for request batching."""

import math

import pytest

from lfslocks.locks.batching import batch_paths, lock_args, unlock_args


class TestBatchPaths:
    """Test splitting of path lists."""

    @pytest.mark.parametrize("max_size", [1, 2, 3, 7, 15, 100])
    def test_batches_cover_input_in_order(self, max_size):
        for n in range(0, 40):
            paths = [f"Assets/file{i}.png" for i in range(n)]
            batches = batch_paths(paths, max_size)

            assert len(batches) == math.ceil(n / max_size)
            assert all(len(b) <= max_size for b in batches)
            assert [p for b in batches for p in b] == paths

    def test_fifteen_per_request(self):
        batches = batch_paths([str(i) for i in range(31)], 15)
        assert [len(b) for b in batches] == [15, 15, 1]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            batch_paths(["a"], 0)


class TestCommandArgs:
    """Test git lfs argument lists."""

    def test_lock_args_keep_paths_with_spaces_whole(self):
        assert lock_args(["My Assets/a b.png", "c.png"]) == [
            "lfs", "lock", "My Assets/a b.png", "c.png",
        ]

    def test_unlock_force(self):
        assert unlock_args(["a.png"]) == ["lfs", "unlock", "a.png"]
        assert unlock_args(["a.png"], force=True) == ["lfs", "unlock", "a.png", "--force"]
