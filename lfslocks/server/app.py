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

"""FastAPI application — lock routes plus the background tick loop."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lfslocks.api.routes import call_core, get_manager, router, set_manager
from lfslocks.locks.manager import LockManager
from lfslocks.utils.config import HOST, PORT, TICK_INTERVAL, VERSION

log = logging.getLogger(__name__)


async def _tick_loop(interval: float):
    manager = get_manager()
    while True:
        try:
            await call_core(manager.tick)
        except Exception:
            log.exception("Tick failed")
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(_tick_loop(TICK_INTERVAL))
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    get_manager().runner.close()


def create_app(manager: LockManager | None = None) -> FastAPI:
    if manager is not None:
        set_manager(manager)
    app = FastAPI(title="lfslocks", version=VERSION, lifespan=lifespan)
    app.include_router(router)
    return app


def run_server(manager: LockManager, host: str = HOST, port: int = PORT):
    import uvicorn

    uvicorn.run(create_app(manager), host=host, port=port, log_level="info")
