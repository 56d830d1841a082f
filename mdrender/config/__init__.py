"""Centralized configuration management for mdrender.

Provides unified access to all configuration via the `get_environment()` function.

Example:
    >>> from mdrender.config import EnvVar, get_environment
    >>>
    >>> min_length = get_environment(EnvVar.MDRENDER_MIN_LENGTH)  # Returns int: 10
    >>> renderer = get_environment(EnvVar.MDRENDER_RENDERER)  # Returns str: "mmdc"

Environment Variable Categories:
    renderer: Which renderer runs and where it lives (mmdc, Kroki)
    render: Presentation options (size bounds, background, theme)
    batch: Document discovery, exclusions and validation threshold
"""

from .lib import (
    INDEX_DOCUMENT,
    EnvConfig,
    EnvVar,
    get_docs_dir,
    get_environment,
    get_environment_info,
    get_exclusions,
    get_mermaid_cli,
    list_environment_variables,
)

__all__ = [
    # Core types
    "INDEX_DOCUMENT",
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_mermaid_cli",
    "get_docs_dir",
    "get_exclusions",
    # Introspection
    "list_environment_variables",
]
