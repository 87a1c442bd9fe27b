"""Process-wide feature index.

Maps feature documents to FeatureRecords. The index is always rebuilt
wholesale from the current file set; a changed file triggers a full rescan
rather than a per-file merge, so the cache never holds a stale record next to
a fresh one for the same file.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from cukedash import config
from cukedash.models import FeatureRecord
from cukedash.observability import record_rebuild, start_span
from cukedash.parsers.features import parse_feature_document
from cukedash.services.workspace_files import LocalWorkspaceFiles, WorkspaceFiles

logger = logging.getLogger("cukedash.index")

CHANGE_TYPES = ("created", "changed", "deleted")


def _detached(record: FeatureRecord) -> FeatureRecord:
    # Readers get copies; the cache only changes through rebuild.
    return record.model_copy(deep=True)


class FeatureIndex:
    """Owns the feature cache; mutation happens only in ``rebuild``.

    Construct one per host and pass it by reference. Overlapping rebuilds are
    not serialized: the last one to finish wins.
    """

    def __init__(
        self,
        files: WorkspaceFiles | None = None,
        glob_pattern: str = config.FEATURE_GLOB,
        exclude_pattern: str | None = config.FEATURE_EXCLUDE,
    ):
        self.files: WorkspaceFiles = files if files is not None else LocalWorkspaceFiles()
        self.glob_pattern = glob_pattern
        self.exclude_pattern = exclude_pattern
        self._records: list[FeatureRecord] = []
        self._closed = False

    @property
    def records(self) -> tuple[FeatureRecord, ...]:
        return tuple(_detached(r) for r in self._records)

    def __len__(self) -> int:
        return len(self._records)

    async def list_feature_files(self) -> list[str]:
        return await self.files.list_matching_files(self.glob_pattern, self.exclude_pattern)

    async def rebuild(self, cancel: asyncio.Event | None = None) -> bool:
        """Rescan every matching file and replace the cache.

        Returns False when ``cancel`` was set before the scan finished; the
        previous cache is then left untouched.
        """
        started = time.monotonic()
        with start_span("feature_index.rebuild", {"glob": self.glob_pattern}):
            feature_files = await self.list_feature_files()
            if not feature_files:
                self._records = []
                logger.info("Feature index cleared (no feature files found)")
                record_rebuild("empty", (time.monotonic() - started) * 1000)
                return True

            records: list[FeatureRecord] = []
            for file_path in feature_files:
                if cancel is not None and cancel.is_set():
                    logger.info("Feature index rebuild cancelled; keeping previous cache")
                    record_rebuild("cancelled", (time.monotonic() - started) * 1000)
                    return False
                records.extend(await parse_feature_document(self.files, file_path))

            self._records = records

        logger.info(f"Feature index rebuilt with {len(records)} features from {len(feature_files)} files")
        record_rebuild("success", (time.monotonic() - started) * 1000, feature_count=len(records))
        return True

    async def ensure_initialized(self) -> None:
        # An empty index is indistinguishable from an unbuilt one, so a
        # workspace with no features rescans on every call.
        if not self._records:
            await self.rebuild()

    async def handle_change(self, change_type: str, file_path: str) -> None:
        """React to a created/changed/deleted notification with a full rebuild."""
        if change_type not in CHANGE_TYPES:
            raise ValueError(f"Unknown change type: {change_type}")
        logger.debug(f"Feature file {change_type}: {file_path}")
        await self.rebuild()

    def find_by_path(self, path: str) -> Optional[FeatureRecord]:
        for record in self._records:
            if record.filePath == path:
                return _detached(record)
        return None

    def find_by_name(self, name: str) -> Optional[FeatureRecord]:
        # First match wins when several files declare the same feature name.
        for record in self._records:
            if record.name == name:
                return _detached(record)
        return None

    def find_by_scenario(self, scenario_name: str) -> Optional[FeatureRecord]:
        for record in self._records:
            if scenario_name in record.scenarioNames:
                return _detached(record)
        return None

    def find_by_path_suffix(self, suffix: str) -> Optional[FeatureRecord]:
        token = suffix.replace("\\", "/").strip()
        if token.startswith("./"):
            token = token[2:]
        if not token:
            return None
        for record in self._records:
            path = record.filePath.replace("\\", "/")
            if path == token or path.endswith(f"/{token}"):
                return _detached(record)
        return None

    def close(self) -> None:
        self._records = []
        self._closed = True

    @property
    def is_closed(self) -> bool:
        return self._closed
