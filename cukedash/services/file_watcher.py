"""Feature file watcher using watchfiles.

Monitors the workspace for ``.feature`` changes and triggers one full index
rebuild per batch of created/changed/deleted files.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import awatch, Change

from cukedash import config
from cukedash.services.feature_index import FeatureIndex
from cukedash.services.workspace_files import ExcludeMatcher

logger = logging.getLogger("cukedash.watcher")

_CHANGE_NAMES = {
    Change.added: "created",
    Change.modified: "changed",
    Change.deleted: "deleted",
}


class FeatureFileWatcher:
    """Background file watcher that rebuilds the feature index on change.

    Uses `watchfiles` (Rust-accelerated) for efficient watching.
    """

    def __init__(self, root: Path | None = None, exclude_pattern: str | None = config.FEATURE_EXCLUDE):
        self._root = root
        self._exclude = ExcludeMatcher(exclude_pattern)
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False

    async def start(self, index: FeatureIndex, root: Path) -> None:
        """Start watching the workspace root in a background task."""
        if self._running:
            logger.warning("File watcher already running")
            return

        self._running = True
        self._root = root
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(index, root, self._stop_event))
        logger.info(f"File watcher started for {root}")

    async def stop(self) -> None:
        """Stop the file watcher."""
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def _watch_loop(self, index: FeatureIndex, root: Path, stop_event: asyncio.Event) -> None:
        if not root.exists():
            logger.warning(f"Watch root {root} does not exist, watcher has nothing to monitor")
            self._running = False
            return

        logger.info(f"Watching {root} for feature file changes")

        try:
            async for changes in awatch(root, stop_event=stop_event):
                if not self._running:
                    break
                await self.dispatch(index, changes)
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        except Exception as e:
            logger.error(f"File watcher error: {e}")
        finally:
            self._running = False

    async def dispatch(self, index: FeatureIndex, changes: set[tuple[Change, str]]) -> int:
        """Forward a batch of raw changes to the index; returns the count that mattered."""
        classified = self._classify_changes(changes)
        if not classified:
            return 0

        logger.info(f"Detected {len(classified)} feature file changes, rebuilding index...")
        change_type, path = classified[0]
        try:
            await index.handle_change(change_type, str(path))
        except Exception as e:
            logger.error(f"Error rebuilding feature index: {e}")
        return len(classified)

    def _relative(self, path: Path) -> str:
        if self._root is not None:
            try:
                return path.relative_to(self._root).as_posix()
            except ValueError:
                pass
        return path.as_posix()

    def _classify_changes(self, changes: set[tuple[Change, str]]) -> list[tuple[str, Path]]:
        """Classify raw watchfiles changes into (change_type, path) pairs.

        Only returns feature documents outside the excluded directories.
        """
        result = []
        for change_type, path_str in sorted(changes, key=lambda c: c[1]):
            path = Path(path_str)
            if path.suffix != config.FEATURE_SUFFIX:
                continue
            if self._exclude.matches(self._relative(path)):
                continue
            name = _CHANGE_NAMES.get(change_type)
            if name:
                result.append((name, path))
        return result
