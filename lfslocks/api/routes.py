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

"""REST routes over the lock manager.

Every call into the manager is funnelled through one single-thread
executor, the same one that runs the periodic tick, so the manager only
ever sees one thread.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from lfslocks.git.repo import current_branch, git_version, is_git_outdated
from lfslocks.locks.manager import LockManager
from lfslocks.locks.notify import LogNotifier
from lfslocks.utils import config as cfg

router = APIRouter()

_core = ThreadPoolExecutor(max_workers=1, thread_name_prefix="lfslocks-core")
_manager: LockManager | None = None


def set_manager(manager: LockManager | None) -> None:
    global _manager
    _manager = manager


def get_manager() -> LockManager:
    if _manager is None:
        raise HTTPException(status_code=503, detail="Lock manager not configured")
    return _manager


async def call_core(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run *fn* on the core thread and await its result."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_core, functools.partial(fn, *args, **kwargs))


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class PathsRequest(BaseModel):
    paths: list[str]


class UnlockRequest(BaseModel):
    paths: list[str]
    force: bool = False


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str
    version: str


class StatusResponse(BaseModel):
    ok: bool


# ---------------------------------------------------------------------------
# Server info
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
async def health():
    return {"status": "ok", "version": cfg.VERSION}


@router.get("/git/info")
async def git_info():
    manager = get_manager()
    banner = await call_core(git_version, manager.runner)
    branch = await call_core(current_branch, manager.runner)
    return {
        "repo_root": str(manager.repo_root),
        "version": banner,
        "outdated": is_git_outdated(banner),
        "branch": branch,
    }


# ---------------------------------------------------------------------------
# Locks
# ---------------------------------------------------------------------------

def _locks_view(manager: LockManager) -> dict[str, Any]:
    snapshot = manager.snapshot
    return {
        "received": manager.has_snapshot,
        "refreshing": manager.refreshing,
        "last_refresh": manager.last_refresh,
        "displayed_own_locks_count": manager.settings.displayed_own_locks_count,
        "mine": [r.to_dict() for r in snapshot.own_locks()],
        "others": [
            {**r.to_dict(), "conflicting": manager.is_conflicting(r)}
            for r in snapshot.other_locks()
        ],
    }


@router.get("/locks")
async def list_locks():
    manager = get_manager()
    return await call_core(_locks_view, manager)


@router.post("/locks/refresh")
async def refresh_locks():
    manager = get_manager()
    if not manager.settings.enabled:
        raise HTTPException(status_code=409, detail="lfslocks is disabled")
    started = await call_core(manager.refresh)
    return {"started": started}


@router.post("/locks/lock")
async def lock_files(req: PathsRequest):
    manager = get_manager()
    if not req.paths:
        raise HTTPException(status_code=400, detail="No paths given")
    result = await call_core(manager.lock_files, req.paths)
    if result.aborted:
        raise HTTPException(status_code=409, detail=result.message)
    return result.to_dict()


@router.post("/locks/unlock")
async def unlock_files(req: UnlockRequest):
    manager = get_manager()
    if not req.paths:
        raise HTTPException(status_code=400, detail="No paths given")
    result = await call_core(manager.unlock_files, req.paths, force=req.force)
    return result.to_dict()


@router.post("/locks/unlock-mine")
async def unlock_mine():
    manager = get_manager()
    result = await call_core(manager.unlock_all_mine)
    return result.to_dict()


@router.post("/hooks/save")
async def save_hook(req: PathsRequest):
    manager = get_manager()
    paths = await call_core(manager.on_will_save, req.paths)
    return {"paths": list(paths)}


@router.post("/hooks/changed", response_model=StatusResponse)
async def files_changed(req: PathsRequest):
    manager = get_manager()
    await call_core(manager.on_files_changed, req.paths)
    return {"ok": True}


@router.post("/hooks/dirty", response_model=StatusResponse)
async def uncommitted_dirty():
    """Force the uncommitted file set to be rebuilt (after a commit, checkout, ...)."""
    manager = get_manager()
    await call_core(manager.mark_uncommitted_dirty)
    return {"ok": True}


@router.get("/notifications")
async def notifications():
    manager = get_manager()
    if not isinstance(manager.notifier, LogNotifier):
        return []
    return list(manager.notifier.recent)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@router.get("/config")
async def get_config():
    return get_manager().settings.to_dict()


@router.put("/config")
async def update_config(changes: dict[str, Any]):
    """Apply a partial settings mapping; values are validated by ``Settings``."""
    manager = get_manager()
    try:
        settings = manager.settings.updated(**changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    cfg.save_settings(settings)
    await call_core(setattr, manager, "settings", settings)
    return settings.to_dict()


@router.post("/config/reset")
async def reset_config():
    manager = get_manager()
    settings = cfg.reset_to_defaults()
    await call_core(setattr, manager, "settings", settings)
    return settings.to_dict()
