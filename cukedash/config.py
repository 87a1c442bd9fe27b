"""Cukedash Backend Configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default

# Workspace scanned for feature documents
WORKSPACE_ROOT = Path(os.getenv("CUKEDASH_WORKSPACE_ROOT", os.getcwd())).expanduser()
FEATURE_GLOB = os.getenv("CUKEDASH_FEATURE_GLOB", "**/*.feature")
FEATURE_EXCLUDE = os.getenv("CUKEDASH_FEATURE_EXCLUDE", "**/node_modules/**")
FEATURE_SUFFIX = ".feature"

# Runner defaults (godog driven through `go test`)
PROGRAM = os.getenv("CUKEDASH_PROGRAM", "go")
PROGRAM_ARGUMENT = os.getenv("CUKEDASH_PROGRAM_ARGUMENT", "test -v .")
PROGRAM_WORKING_DIRECTORY = os.getenv("CUKEDASH_PROGRAM_WORKING_DIRECTORY", "../")
TEST_PATTERN_FORMAT = os.getenv(
    "CUKEDASH_TEST_PATTERN_FORMAT",
    "/${sanitizedFeatureName}/${sanitizedScenarioName}$",
)
BUILD_ROOT_MARKER = "go.mod"
TEST_SOURCE_SUFFIX = "_test.go"

# Observability
OTEL_ENABLED = _env_bool("CUKEDASH_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CUKEDASH_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CUKEDASH_OTEL_SERVICE_NAME", "cukedash-backend")
PROM_PORT = _env_int("CUKEDASH_PROM_PORT", 9464)

# Startup tuning
WATCH_ENABLED = _env_bool("CUKEDASH_WATCH_ENABLED", True)
STARTUP_REBUILD = _env_bool("CUKEDASH_STARTUP_REBUILD", True)

# CORS
FRONTEND_ORIGIN = os.getenv("CUKEDASH_FRONTEND_ORIGIN", "http://localhost:3000")
