"""Run-target API: commands, annotations and the test tree."""
from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from cukedash.models import RunAnnotation, RunnerConfig, RunTarget, TestItem
from cukedash.routers.features import get_feature_index
from cukedash.services.annotations import build_run_annotations
from cukedash.services.run_target import format_run_target
from cukedash.services.test_tree import build_test_tree, plan_test_run

runs_router = APIRouter(prefix="/api/run", tags=["run"])


class RunTargetRequest(BaseModel):
    filePath: str = Field(..., min_length=1)
    featureName: Optional[str] = None
    scenarioName: Optional[str] = None
    config: Optional[RunnerConfig] = None


class AnnotationRequest(BaseModel):
    filePath: str = Field(..., min_length=1)
    text: str = ""


class TestRunRequest(BaseModel):
    __test__ = False

    include: list[str] = Field(default_factory=list)
    config: Optional[RunnerConfig] = None


@runs_router.post("/target", response_model=RunTarget)
async def get_run_target(req: RunTargetRequest):
    # Locating the working directory walks the file system.
    return await asyncio.to_thread(
        format_run_target, req.config, req.filePath, req.featureName, req.scenarioName
    )


@runs_router.post("/annotations", response_model=list[RunAnnotation])
async def get_run_annotations(request: Request, req: AnnotationRequest):
    return await build_run_annotations(get_feature_index(request), req.filePath, req.text)


@runs_router.get("/tests", response_model=list[TestItem])
async def get_test_tree(request: Request):
    index = get_feature_index(request)
    await index.ensure_initialized()
    return build_test_tree(index.records)


@runs_router.post("/tests", response_model=list[RunTarget])
async def plan_tests(request: Request, req: TestRunRequest):
    index = get_feature_index(request)
    await index.ensure_initialized()
    items = build_test_tree(index.records)
    return await asyncio.to_thread(plan_test_run, items, req.include or None, req.config)
