"""Clickable references in runner output.

Scans one line of ``go test``/godog output for feature and scenario headers
and turns each into a TerminalLink whose fragment the ReferenceResolver
understands.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from cukedash.models import Location, TerminalLink
from cukedash.parsers.patterns import (
    ANNOTATED_SCENARIO_PATTERN,
    FEATURE_OUTPUT_PATTERN,
    SCENARIO_OUTLINE_OUTPUT_PATTERN,
    SCENARIO_OUTPUT_PATTERN,
    HeaderKind,
    find_headers,
)
from cukedash.services.feature_index import FeatureIndex
from cukedash.services.reference_resolver import Reference, ReferenceResolver

logger = logging.getLogger("cukedash.links")


def _tooltip(kind: str, fragment: str) -> str:
    return f"Open {kind}: {fragment}"


class TerminalLinkService:
    def __init__(self, index: FeatureIndex, resolver: ReferenceResolver | None = None):
        self.index = index
        self.resolver = resolver or ReferenceResolver(index)

    def _feature_name_for_source(self, source: str) -> str:
        record = self.index.find_by_path_suffix(source)
        return record.name if record else source

    async def provide_links(self, line: str, cancel: asyncio.Event | None = None) -> list[TerminalLink]:
        links: list[TerminalLink] = []
        if not line:
            return links

        await self.index.ensure_initialized()

        annotated = list(ANNOTATED_SCENARIO_PATTERN.finditer(line))
        for match in annotated:
            if cancel is not None and cancel.is_set():
                return links
            scenario_name = match.group(1).strip()
            feature_name = self._feature_name_for_source(match.group(2).strip())
            line_number = int(match.group(3))
            fragment = f"{feature_name}/{scenario_name}:{line_number}"
            links.append(
                TerminalLink(
                    startIndex=line.find(scenario_name, match.start(1)),
                    length=len(scenario_name),
                    kind="scenario",
                    fragment=fragment,
                    tooltip=_tooltip("scenario", fragment),
                    featureName=feature_name,
                    scenarioName=scenario_name,
                    lineNumber=max(0, line_number - 1),
                )
            )

        scans = [(FEATURE_OUTPUT_PATTERN, HeaderKind.FEATURE)]
        if not annotated:
            scans.append((SCENARIO_OUTPUT_PATTERN, HeaderKind.SCENARIO))
            scans.append((SCENARIO_OUTLINE_OUTPUT_PATTERN, HeaderKind.SCENARIO_OUTLINE))

        for pattern, kind in scans:
            for header in find_headers(line, pattern, kind):
                if cancel is not None and cancel.is_set():
                    return links
                if not header.name:
                    continue
                link_kind = "scenario" if kind.is_scenario else "feature"
                links.append(
                    TerminalLink(
                        startIndex=header.start,
                        length=len(header.name),
                        kind=link_kind,
                        fragment=header.name,
                        tooltip=_tooltip(link_kind, header.name),
                    )
                )
        return links

    async def handle_link(self, link: TerminalLink) -> Optional[Location]:
        if link.lineNumber is not None:
            # Names may contain "/", so annotated links are not re-parsed.
            reference = Reference(
                feature_name=link.featureName,
                scenario_name=link.scenarioName,
                line_number=link.lineNumber,
            )
            location = await self.resolver.resolve_reference(reference, link.kind, label=link.fragment)
        else:
            location = await self.resolver.resolve(link.fragment, link.kind)
        if location is None:
            logger.warning(f"Could not find {link.kind}: {link.fragment}")
        return location
