"""Header line classification for Gherkin feature documents.

Only the three header shapes the index cares about are recognized:
``Feature:``, ``Scenario:`` and ``Scenario Outline:``. Steps, tags, tables
and backgrounds are ignored.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class HeaderKind(str, Enum):
    FEATURE = "feature"
    SCENARIO = "scenario"
    SCENARIO_OUTLINE = "scenario_outline"

    @property
    def is_scenario(self) -> bool:
        return self is not HeaderKind.FEATURE


@dataclass(frozen=True)
class HeaderMatch:
    kind: HeaderKind
    name: str
    start: int = 0
    end: int = 0


# Anchored document patterns: full line, leading whitespace allowed.
FEATURE_PATTERN = re.compile(r"^\s*Feature:\s*(.*)$")
SCENARIO_PATTERN = re.compile(r"^\s*Scenario:\s*(.*)$")
SCENARIO_OUTLINE_PATTERN = re.compile(r"^\s*Scenario Outline:\s*(.*)$")

_LINE_PATTERNS: tuple[tuple[HeaderKind, re.Pattern[str]], ...] = (
    (HeaderKind.FEATURE, FEATURE_PATTERN),
    (HeaderKind.SCENARIO, SCENARIO_PATTERN),
    (HeaderKind.SCENARIO_OUTLINE, SCENARIO_OUTLINE_PATTERN),
)

# Unanchored output patterns, used on runner output where headers are embedded.
FEATURE_OUTPUT_PATTERN = re.compile(r"Feature: ([^\n]+)")
SCENARIO_OUTPUT_PATTERN = re.compile(r"Scenario: ([^\n]+)")
SCENARIO_OUTLINE_OUTPUT_PATTERN = re.compile(r"Scenario Outline: ([^\n]+)")
ANNOTATED_SCENARIO_PATTERN = re.compile(r"\s*Scenario(?: Outline)?: ([^\n#]+)\s+# ([^:]+):(\d+)")


def classify(line: str) -> Optional[HeaderMatch]:
    """Classify one document line as a feature/scenario header, or None."""
    for kind, pattern in _LINE_PATTERNS:
        match = pattern.match(line)
        if match:
            return HeaderMatch(
                kind=kind,
                name=match.group(1).strip(),
                start=match.start(1),
                end=match.end(1),
            )
    return None


def find_headers(text: str, pattern: re.Pattern[str], kind: HeaderKind) -> list[HeaderMatch]:
    """Return every unanchored header match in ``text`` for one pattern."""
    matches: list[HeaderMatch] = []
    for match in pattern.finditer(text):
        raw = match.group(1)
        name = raw.strip()
        start = match.start(1) + (len(raw) - len(raw.lstrip()))
        matches.append(HeaderMatch(kind=kind, name=name, start=start, end=start + len(name)))
    return matches
