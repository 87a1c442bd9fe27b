"""Feature document parsing.

Turn the full text of one ``.feature`` document into FeatureRecord objects
holding the feature header line and the ordered scenario names with their
zero-based line numbers.
"""
from __future__ import annotations

import logging
from typing import Optional

from cukedash.models import FeatureRecord
from cukedash.observability import record_parser_failure
from cukedash.parsers.patterns import HeaderKind, classify
from cukedash.services.workspace_files import WorkspaceFiles

logger = logging.getLogger("cukedash.parser")


def split_lines(text: str) -> list[str]:
    # Split on "\n" only so indexes line up with editor line numbers;
    # trailing "\r" is removed by the header name strip.
    return text.split("\n")


def parse_feature_text(file_path: str, text: str) -> list[FeatureRecord]:
    """Parse one document's text into FeatureRecords in document order.

    Scenarios that appear before any ``Feature:`` header have no owning
    feature and are dropped.
    """
    features: list[FeatureRecord] = []
    current: Optional[FeatureRecord] = None

    for index, line in enumerate(split_lines(text)):
        header = classify(line)
        if header is None:
            continue
        if header.kind is HeaderKind.FEATURE:
            current = FeatureRecord(name=header.name, filePath=file_path, lineNumber=index)
            features.append(current)
            continue
        if current is not None:
            current.add_scenario(header.name, index)

    return features


async def read_feature_document(files: WorkspaceFiles, file_path: str) -> Optional[str]:
    """Read a document, returning None (and logging) when it cannot be read."""
    try:
        return await files.read_full_text(file_path)
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Error reading feature file {file_path}: {e}")
        record_parser_failure("feature")
        return None


async def parse_feature_document(files: WorkspaceFiles, file_path: str) -> list[FeatureRecord]:
    text = await read_feature_document(files, file_path)
    if text is None:
        return []
    return parse_feature_text(file_path, text)
