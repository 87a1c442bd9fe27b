"""Resolve free-text feature/scenario references to file locations.

Two fragment shapes are accepted:

* qualified, ``<feature>/<scenario>:<line>`` where ``line`` is 1-based and
  taken as authoritative over the cached scenario line;
* unqualified, a bare feature or scenario name.

Resolution runs as two named strategies: ``index`` (the cached records) and
then ``rescan`` (a fresh full-text pass over the listed feature files).
When several records share a name the first in index order wins.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Literal, Optional

from cukedash.models import Location
from cukedash.observability import record_resolution
from cukedash.parsers.features import parse_feature_text, read_feature_document
from cukedash.services.feature_index import FeatureIndex

logger = logging.getLogger("cukedash.resolver")

FragmentKind = Literal["feature", "scenario"]

_LINE_SUFFIX = re.compile(r"^(?P<name>.*):(?P<line>\d+)$")


@dataclass(frozen=True)
class Reference:
    feature_name: Optional[str] = None
    scenario_name: Optional[str] = None
    line_number: Optional[int] = None  # 0-based, only for qualified fragments

    @property
    def is_qualified(self) -> bool:
        return self.line_number is not None


def parse_fragment(fragment: str, kind: FragmentKind | None = None) -> Reference:
    """Split a fragment into its feature/scenario/line parts."""
    text = (fragment or "").strip()
    parts = text.split("/")
    if len(parts) == 2:
        match = _LINE_SUFFIX.match(parts[1])
        if match:
            return Reference(
                feature_name=parts[0].strip(),
                scenario_name=match.group("name").strip(),
                line_number=max(0, int(match.group("line")) - 1),
            )
    if kind == "scenario":
        return Reference(scenario_name=text)
    if kind == "feature":
        return Reference(feature_name=text)
    # Unknown kind: treat as a feature name first, scenario second.
    return Reference(feature_name=text, scenario_name=text)


class ReferenceResolver:
    def __init__(self, index: FeatureIndex):
        self.index = index

    async def resolve(
        self,
        fragment: str,
        kind: FragmentKind | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Optional[Location]:
        return await self.resolve_reference(parse_fragment(fragment, kind), kind, cancel, label=fragment)

    async def resolve_reference(
        self,
        reference: Reference,
        kind: FragmentKind | None = None,
        cancel: asyncio.Event | None = None,
        label: str | None = None,
    ) -> Optional[Location]:
        """Resolve already-split parts, skipping fragment parsing."""
        if not (reference.feature_name or reference.scenario_name):
            return None

        await self.index.ensure_initialized()

        location = self._resolve_from_index(reference)
        if location is not None:
            record_resolution("index", "found")
            return location

        if reference.feature_name and (reference.is_qualified or kind != "scenario"):
            location = await self._resolve_by_rescan(reference, cancel)
            if location is not None:
                record_resolution("rescan", "found")
                return location

        logger.info(f"Could not resolve reference: {label or reference}")
        record_resolution("none", "not_found")
        return None

    def _resolve_from_index(self, reference: Reference) -> Optional[Location]:
        if reference.is_qualified:
            record = self.index.find_by_name(reference.feature_name or "")
            if record is None:
                return None
            return Location(filePath=record.filePath, lineNumber=reference.line_number)

        if reference.feature_name:
            record = self.index.find_by_name(reference.feature_name)
            if record is not None:
                return Location(filePath=record.filePath, lineNumber=record.lineNumber)

        if reference.scenario_name:
            record = self.index.find_by_scenario(reference.scenario_name)
            if record is not None:
                return Location(
                    filePath=record.filePath,
                    lineNumber=record.scenarioLineNumbers[reference.scenario_name],
                )
        return None

    async def _resolve_by_rescan(
        self,
        reference: Reference,
        cancel: asyncio.Event | None = None,
    ) -> Optional[Location]:
        needle = f"Feature: {reference.feature_name}"
        for file_path in await self.index.list_feature_files():
            if cancel is not None and cancel.is_set():
                return None
            text = await read_feature_document(self.index.files, file_path)
            if text is None or needle not in text:
                continue
            if reference.is_qualified:
                return Location(filePath=file_path, lineNumber=reference.line_number)
            # A substring hit may belong to a longer name ("Feature: Login page").
            for record in parse_feature_text(file_path, text):
                if record.name == reference.feature_name:
                    return Location(filePath=file_path, lineNumber=record.lineNumber)
        return None
