"""Run annotations for an open feature document."""
from __future__ import annotations

import logging
from typing import Optional

from cukedash.models import RunAnnotation
from cukedash.parsers.features import split_lines
from cukedash.parsers.patterns import HeaderKind, classify
from cukedash.services.feature_index import FeatureIndex

logger = logging.getLogger("cukedash.annotations")

RUN_FEATURE_TITLE = "▶ Run Feature"
RUN_SCENARIO_TITLE = "▶ Run Scenario"


def _feature_annotation(file_path: str, line_number: int, feature_name: str) -> RunAnnotation:
    return RunAnnotation(
        lineNumber=line_number,
        title=RUN_FEATURE_TITLE,
        command="runFeature",
        filePath=file_path,
        featureName=feature_name,
    )


def _scenario_annotation(
    file_path: str,
    line_number: int,
    feature_name: Optional[str],
    scenario_name: str,
) -> RunAnnotation:
    return RunAnnotation(
        lineNumber=line_number,
        title=RUN_SCENARIO_TITLE,
        command="runScenario",
        filePath=file_path,
        featureName=feature_name,
        scenarioName=scenario_name,
    )


def annotations_from_text(file_path: str, text: str) -> list[RunAnnotation]:
    """Annotate a document directly, without consulting the index.

    Unlike the indexed view, scenarios ahead of any feature header are kept,
    with no feature name.
    """
    annotations: list[RunAnnotation] = []
    current_feature: Optional[str] = None
    for index, line in enumerate(split_lines(text)):
        header = classify(line)
        if header is None:
            continue
        if header.kind is HeaderKind.FEATURE:
            current_feature = header.name
            annotations.append(_feature_annotation(file_path, index, header.name))
        else:
            annotations.append(_scenario_annotation(file_path, index, current_feature, header.name))
    return annotations


async def build_run_annotations(index: FeatureIndex, file_path: str, text: str) -> list[RunAnnotation]:
    await index.ensure_initialized()

    record = index.find_by_path(file_path)
    if record is None:
        # Not indexed yet: answer from the text and let the cache catch up.
        annotations = annotations_from_text(file_path, text)
        await index.rebuild()
        return annotations

    annotations = [_feature_annotation(file_path, record.lineNumber, record.name)]
    for scenario_name in record.scenarioNames:
        line_number = record.scenarioLineNumbers.get(scenario_name)
        if line_number is None:
            continue
        annotations.append(_scenario_annotation(file_path, line_number, record.name, scenario_name))
    return annotations
