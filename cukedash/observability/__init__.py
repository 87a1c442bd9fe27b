"""Observability helpers."""

from cukedash.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_rebuild,
    record_parser_failure,
    record_resolution,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_rebuild",
    "record_parser_failure",
    "record_resolution",
]
