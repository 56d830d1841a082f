"""Mermaid block extraction from Markdown documents."""

from .lib import (
    FENCE_PATTERN,
    DiagramCandidate,
    Document,
    extract_blocks,
    extract_candidates,
    read_document,
)

__all__ = [
    "FENCE_PATTERN",
    "DiagramCandidate",
    "Document",
    "extract_blocks",
    "extract_candidates",
    "read_document",
]
