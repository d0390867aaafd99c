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

"""Exceptions raised by the lock engine."""


class LfsLocksError(Exception):
    """Base exception for lfslocks."""


class NotARepositoryError(LfsLocksError, ValueError):
    """The working directory is not inside a git repository."""


class LockListingParseError(LfsLocksError, ValueError):
    """A structured lock listing could not be turned into lock records."""

    def __init__(self, message: str, payload: str = ""):
        super().__init__(message)
        self.payload = payload


class UserAbort(LfsLocksError):
    """The user declined an interactive confirmation."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path
