"""Batch rendering of Mermaid diagrams across a documentation tree."""

from .lib import (
    BatchConfig,
    BatchRenderer,
    DocumentResult,
    DocumentStatus,
    NumberingMode,
    RenderJob,
    RunReport,
    discover_documents,
    output_path_for,
)

__all__ = [
    "BatchConfig",
    "BatchRenderer",
    "DocumentResult",
    "DocumentStatus",
    "NumberingMode",
    "RenderJob",
    "RunReport",
    "discover_documents",
    "output_path_for",
]
