"""Cukedash FastAPI Backend — main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import asyncio

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from cukedash import config
from cukedash.routers.features import features_router
from cukedash.routers.links import links_router
from cukedash.routers.runs import runs_router
from cukedash.services.feature_index import FeatureIndex
from cukedash.services.file_watcher import FeatureFileWatcher
from cukedash.services.workspace_files import LocalWorkspaceFiles
from cukedash.observability import initialize as initialize_observability, shutdown as shutdown_observability

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cukedash")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Cukedash backend starting up")
    initialize_observability(app)

    # 1. One index per process, owned by the app
    files = LocalWorkspaceFiles(config.WORKSPACE_ROOT)
    index = FeatureIndex(files)
    app.state.feature_index = index

    # 2. Initial rebuild (background task)
    if config.STARTUP_REBUILD:
        logger.info(f"Indexing feature files under {files.root}...")
        app.state.rebuild_task = asyncio.create_task(index.rebuild())

    # 3. Start File Watcher
    watcher = FeatureFileWatcher(files.root, index.exclude_pattern)
    app.state.file_watcher = watcher
    if config.WATCH_ENABLED:
        await watcher.start(index, files.root)

    yield

    logger.info("Cukedash backend shutting down")

    # Cancel background rebuild if running
    if hasattr(app.state, "rebuild_task"):
        app.state.rebuild_task.cancel()
        try:
            await app.state.rebuild_task
        except asyncio.CancelledError:
            pass

    await watcher.stop()
    index.close()
    shutdown_observability(app)


app = FastAPI(
    title="Cukedash API",
    description="Feature index, reference resolution and run targets for godog feature files",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(features_router)
app.include_router(links_router)
app.include_router(runs_router)


@app.get("/api/health")
def health(request: Request):
    """Health check endpoint."""
    index = getattr(request.app.state, "feature_index", None)
    watcher = getattr(request.app.state, "file_watcher", None)
    return {
        "status": "ok",
        "index": "ready" if index is not None and not index.is_closed else "unavailable",
        "features": len(index) if index is not None else 0,
        "watcher": "running" if watcher is not None and watcher.is_running else "stopped",
    }
