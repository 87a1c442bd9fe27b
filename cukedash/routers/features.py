"""Feature index API router."""
from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from cukedash.models import FeatureRecord
from cukedash.services.feature_index import FeatureIndex

features_router = APIRouter(prefix="/api/features", tags=["features"])
logger = logging.getLogger("cukedash.features")


# ── Request models ──────────────────────────────────────────────────

class FeatureChangeRequest(BaseModel):
    path: str = Field(..., min_length=1)
    changeType: Literal["created", "changed", "deleted"] = "changed"


def get_feature_index(request: Request) -> FeatureIndex:
    index = getattr(request.app.state, "feature_index", None)
    if index is None:
        raise HTTPException(status_code=503, detail="Feature index not initialized")
    return index


@features_router.get("", response_model=list[FeatureRecord])
async def list_features(request: Request):
    """List every indexed feature, building the index on first use."""
    index = get_feature_index(request)
    await index.ensure_initialized()
    return list(index.records)


@features_router.get("/by-path", response_model=FeatureRecord)
async def get_feature_by_path(request: Request, path: str = Query(..., min_length=1)):
    index = get_feature_index(request)
    await index.ensure_initialized()
    record = index.find_by_path(path)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No feature indexed for {path}")
    return record


@features_router.get("/by-name/{name}", response_model=FeatureRecord)
async def get_feature_by_name(request: Request, name: str):
    index = get_feature_index(request)
    await index.ensure_initialized()
    record = index.find_by_name(name)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Feature {name} not found")
    return record


@features_router.post("/rebuild")
async def rebuild_features(request: Request):
    """Discard the cache and rescan every feature file."""
    index = get_feature_index(request)
    await index.rebuild()
    return {"status": "ok", "count": len(index)}


@features_router.post("/changes")
async def notify_feature_change(request: Request, req: FeatureChangeRequest):
    """Accept a created/changed/deleted notification from a host watcher."""
    index = get_feature_index(request)
    await index.handle_change(req.changeType, req.path)
    logger.info(f"Rebuilt feature index after {req.changeType}: {req.path}")
    return {"status": "ok", "changeType": req.changeType, "count": len(index)}
