"""Reference resolution and terminal link API."""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from cukedash.models import Location, TerminalLink
from cukedash.routers.features import get_feature_index
from cukedash.services.reference_resolver import ReferenceResolver
from cukedash.services.terminal_links import TerminalLinkService

links_router = APIRouter(prefix="/api/links", tags=["links"])


class ResolveRequest(BaseModel):
    fragment: str = Field(..., min_length=1)
    kind: Optional[Literal["feature", "scenario"]] = None


class TerminalLineRequest(BaseModel):
    line: str = ""


@links_router.post("/resolve", response_model=Location)
async def resolve_reference(request: Request, req: ResolveRequest):
    resolver = ReferenceResolver(get_feature_index(request))
    location = await resolver.resolve(req.fragment, req.kind)
    if location is None:
        label = req.kind or "feature or scenario"
        raise HTTPException(status_code=404, detail=f"Could not find {label}: {req.fragment}")
    return location


@links_router.post("/terminal", response_model=list[TerminalLink])
async def provide_terminal_links(request: Request, req: TerminalLineRequest):
    """Find clickable feature/scenario references in one line of runner output."""
    service = TerminalLinkService(get_feature_index(request))
    return await service.provide_links(req.line)
