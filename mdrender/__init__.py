"""mdrender: render Mermaid diagrams embedded in Markdown documents."""

from mdrender.batch import BatchConfig, BatchRenderer, RunReport, discover_documents
from mdrender.extract import Document, extract_blocks, extract_candidates
from mdrender.render import (
    DiagramRenderer,
    RenderConfig,
    RendererUnavailableError,
    RenderResult,
    get_renderer,
    list_renderers,
)
from mdrender.validation import DiagramKind, is_valid_diagram, validate_candidates

__all__ = [
    # Extraction
    "Document",
    "extract_blocks",
    "extract_candidates",
    # Validation
    "DiagramKind",
    "is_valid_diagram",
    "validate_candidates",
    # Rendering
    "DiagramRenderer",
    "RenderConfig",
    "RenderResult",
    "RendererUnavailableError",
    "get_renderer",
    "list_renderers",
    # Batch
    "BatchConfig",
    "BatchRenderer",
    "RunReport",
    "discover_documents",
]
