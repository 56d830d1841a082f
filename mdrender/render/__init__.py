"""Render module for Mermaid diagrams.

Turns one Mermaid source into one image file, either with the Mermaid CLI
(mmdc, default) or through a Kroki service.
"""

from .lib import (
    DiagramRenderer,
    OutputFormat,
    RenderConfig,
    RenderError,
    RendererUnavailableError,
    RenderResult,
    get_renderer,
    list_renderers,
    register_renderer,
)
from .kroki import KrokiRenderer
from .mmdc import MermaidCliRenderer, discover_mmdc, transient_path

__all__ = [
    "DiagramRenderer",
    "KrokiRenderer",
    "MermaidCliRenderer",
    "OutputFormat",
    "RenderConfig",
    "RenderError",
    "RenderResult",
    "RendererUnavailableError",
    "discover_mmdc",
    "get_renderer",
    "list_renderers",
    "register_renderer",
    "transient_path",
]
