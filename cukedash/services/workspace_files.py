"""Workspace file access used by the feature index.

The index only needs two things from its environment: a list of files
matching an include/exclude glob pair and the full text of one file. Both are
exposed as coroutines so a host may back them with its own file system view.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Protocol

import pathspec

from cukedash import config

logger = logging.getLogger("cukedash.workspace")

BUILTIN_EXCLUDES = (".git/", "node_modules/", ".venv/")


class WorkspaceFiles(Protocol):
    async def list_matching_files(self, glob_pattern: str, exclude_pattern: str | None = None) -> list[str]:
        ...

    async def read_full_text(self, file_path: str) -> str:
        ...


def _compile(patterns: list[str]) -> pathspec.PathSpec | None:
    lines = [p.strip() for p in patterns if p and p.strip()]
    if not lines:
        return None
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


def _is_builtin_excluded(rel_dir: str) -> bool:
    lowered = rel_dir.lower()
    for blocked in BUILTIN_EXCLUDES:
        token = blocked.strip("/").lower()
        if lowered == token or lowered.startswith(f"{token}/") or f"/{token}/" in f"/{lowered}/":
            return True
    return False


class ExcludeMatcher:
    """Built-in directory excludes plus one gitwildmatch exclude pattern."""

    def __init__(self, exclude_pattern: str | None = None):
        self._spec = _compile([exclude_pattern or ""])

    def matches(self, rel_path: str) -> bool:
        rel_path = rel_path.replace("\\", "/").strip("/")
        rel_dir = rel_path.rsplit("/", 1)[0] if "/" in rel_path else ""
        if rel_dir and _is_builtin_excluded(rel_dir):
            return True
        return self._spec is not None and self._spec.match_file(rel_path)


class LocalWorkspaceFiles:
    """Local file system implementation rooted at one workspace directory."""

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root or config.WORKSPACE_ROOT).expanduser().resolve(strict=False)

    def _walk(self, glob_pattern: str, exclude_pattern: str | None) -> list[str]:
        include = _compile([glob_pattern])
        exclude = ExcludeMatcher(exclude_pattern)
        if include is None:
            return []
        if not self.root.is_dir():
            logger.warning(f"Workspace root does not exist: {self.root}")
            return []

        matches: list[str] = []
        for current, dirnames, filenames in os.walk(self.root):
            rel_dir = Path(current).relative_to(self.root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir
            dirnames[:] = sorted(
                d for d in dirnames
                if not _is_builtin_excluded(f"{rel_dir}/{d}" if rel_dir else d)
            )
            for filename in sorted(filenames):
                rel = f"{rel_dir}/{filename}" if rel_dir else filename
                if not include.match_file(rel):
                    continue
                if exclude.matches(rel):
                    continue
                matches.append(str(self.root / rel))
        return matches

    async def list_matching_files(self, glob_pattern: str, exclude_pattern: str | None = None) -> list[str]:
        return await asyncio.to_thread(self._walk, glob_pattern, exclude_pattern)

    async def read_full_text(self, file_path: str) -> str:
        return await asyncio.to_thread(Path(file_path).read_text, encoding="utf-8")
