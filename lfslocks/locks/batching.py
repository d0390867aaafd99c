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

"""Split path lists into bounded batches so one git call never gets too long."""

from __future__ import annotations

from typing import Sequence


def batch_paths(paths: Sequence[str], max_size: int) -> list[list[str]]:
    """Chunk *paths* into ``ceil(len(paths) / max_size)`` ordered batches."""
    if max_size < 1:
        raise ValueError(f"Batch size must be at least 1, got {max_size}")
    return [list(paths[i:i + max_size]) for i in range(0, len(paths), max_size)]


def lock_args(batch: Sequence[str]) -> list[str]:
    # One argv element per path: no shell quoting needed.
    return ["lfs", "lock", *batch]


def unlock_args(batch: Sequence[str], force: bool = False) -> list[str]:
    args = ["lfs", "unlock", *batch]
    if force:
        args.append("--force")
    return args
