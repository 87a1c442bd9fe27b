"""Run-target formatting for the external test runner.

Builds the ``go test ... -run "<pattern>"`` command line and the directory it
should run in for a feature file, an optional feature name and an optional
scenario name. Nothing is executed here.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from cukedash import config
from cukedash.models import RunnerConfig, RunTarget

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9]")
PLACEHOLDERS = (
    "${featureName}",
    "${scenarioName}",
    "${sanitizedFeatureName}",
    "${sanitizedScenarioName}",
    "${featureFilePath}",
)


def sanitize_name(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", name or "")


def _default_pattern(sanitized_feature: str, sanitized_scenario: str, has_feature: bool, has_scenario: bool) -> str:
    if has_feature and has_scenario:
        return f"/{sanitized_feature}/{sanitized_scenario}$"
    if has_scenario:
        return f"//{sanitized_scenario}$"
    if has_feature:
        return f"/{sanitized_feature}/"
    return ""


def build_test_pattern(
    test_pattern_format: str,
    feature_name: Optional[str] = None,
    scenario_name: Optional[str] = None,
    feature_file_path: str = "",
) -> str:
    """Substitute placeholders into the configured pattern template.

    A template without any placeholder is treated as an old-style format and
    replaced by the default pattern for the names supplied. With neither a
    feature nor a scenario name there is no filter at all.
    """
    if not feature_name and not scenario_name:
        return ""

    sanitized_feature = sanitize_name(feature_name or "")
    sanitized_scenario = sanitize_name(scenario_name or "")
    variables = {
        "${featureName}": feature_name or "",
        "${scenarioName}": scenario_name or "",
        "${sanitizedFeatureName}": sanitized_feature,
        "${sanitizedScenarioName}": sanitized_scenario,
        "${featureFilePath}": feature_file_path or "",
    }

    template = test_pattern_format or ""
    pattern = template
    for placeholder, value in variables.items():
        pattern = pattern.replace(placeholder, value)

    if pattern == template:
        pattern = _default_pattern(
            sanitized_feature,
            sanitized_scenario,
            bool(feature_name),
            bool(scenario_name),
        )
    return pattern


def _has_test_sources(directory: Path) -> bool:
    try:
        return any(
            entry.name.endswith(config.TEST_SOURCE_SUFFIX)
            for entry in directory.iterdir()
        )
    except OSError:
        return False


def find_nearest_test_directory(start_dir: Path | str) -> Path:
    """Walk upward to the nearest directory holding test sources.

    Stops at the first directory carrying the build-root marker when no test
    source was found below it. Falls back to ``start_dir`` at the file
    system root.
    """
    start = Path(start_dir)
    current = start.resolve(strict=False)

    while True:
        if _has_test_sources(current):
            return current
        if (current / config.BUILD_ROOT_MARKER).exists():
            return current

        parent = current.parent
        if parent == current:
            return start
        current = parent


def calculate_working_directory(feature_dir: Path | str, program_working_directory: str) -> Path:
    base = Path(feature_dir)
    target = program_working_directory or "."
    if target.startswith("."):
        computed = (base / target).resolve(strict=False)
    else:
        computed = Path(target).expanduser()
        if not computed.is_absolute():
            computed = base / computed
        computed = computed.resolve(strict=False)
    return find_nearest_test_directory(computed)


def format_run_target(
    runner: RunnerConfig | None,
    file_path: str,
    feature_name: Optional[str] = None,
    scenario_name: Optional[str] = None,
) -> RunTarget:
    runner = runner or RunnerConfig()
    program = runner.program or config.PROGRAM

    working_dir = calculate_working_directory(Path(file_path).parent, runner.programWorkingDirectory)
    pattern = build_test_pattern(runner.testPatternFormat, feature_name, scenario_name, file_path)

    run_arg = f'-run "{pattern}"' if pattern else ""
    command = f"{program} {runner.programArgument} {run_arg}".strip()
    return RunTarget(command=command, workingDirectory=str(working_dir), pattern=pattern)
