"""Pydantic models shared by the index, resolver and HTTP routers."""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal, Optional

from cukedash import config

# ── Index models ───────────────────────────────────────────────────

class FeatureRecord(BaseModel):
    name: str
    filePath: str
    lineNumber: int = Field(0, ge=0)
    scenarioNames: list[str] = Field(default_factory=list)
    scenarioLineNumbers: dict[str, int] = Field(default_factory=dict)

    def add_scenario(self, name: str, line_number: int) -> None:
        # Both collections move together; a repeated name keeps its last line.
        self.scenarioNames.append(name)
        self.scenarioLineNumbers[name] = line_number


class Location(BaseModel):
    filePath: str
    lineNumber: int = 0


# ── Runner models ──────────────────────────────────────────────────

class RunnerConfig(BaseModel):
    program: str = config.PROGRAM
    programArgument: str = config.PROGRAM_ARGUMENT
    programWorkingDirectory: str = config.PROGRAM_WORKING_DIRECTORY
    testPatternFormat: str = config.TEST_PATTERN_FORMAT


class RunTarget(BaseModel):
    command: str
    workingDirectory: str
    pattern: str = ""


class RunAnnotation(BaseModel):
    lineNumber: int
    title: str
    command: str  # "runFeature" | "runScenario"
    filePath: str
    featureName: Optional[str] = None
    scenarioName: Optional[str] = None


class TestItem(BaseModel):
    __test__ = False

    id: str
    label: str
    kind: Literal["feature", "scenario"]
    filePath: str
    lineNumber: int = 0
    featureName: str = ""
    scenarioName: Optional[str] = None
    children: list[TestItem] = Field(default_factory=list)


# ── Terminal link models ───────────────────────────────────────────

class TerminalLink(BaseModel):
    startIndex: int
    length: int
    kind: Literal["feature", "scenario"]
    fragment: str
    tooltip: str = ""
    # Set for annotated scenario lines; lineNumber is 0-based.
    featureName: Optional[str] = None
    scenarioName: Optional[str] = None
    lineNumber: Optional[int] = None
