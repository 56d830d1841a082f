"""Centralized environment configuration management for mdrender.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Example:
    >>> from mdrender.config import EnvVar, get_environment
    >>>
    >>> width = get_environment(EnvVar.MDRENDER_MAX_WIDTH)  # Returns int: 2048
    >>> width = get_environment(EnvVar.MDRENDER_MAX_WIDTH, override=1024)
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, overload

# Top-level index document; never rendered whatever else is excluded.
INDEX_DOCUMENT = "README.md"


# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "MDRENDER_MAX_WIDTH").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, float,
            Path, tuple).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables used by mdrender.

    Each member contains an EnvConfig with name, default, type, and description.
    Use with `get_environment()` for type-safe access.

    Categories:
        - renderer: External renderer selection and location
        - render: Presentation options passed to the renderer
        - batch: Document discovery and batch behaviour
    """

    # -------------------------------------------------------------------------
    # Renderer
    # -------------------------------------------------------------------------
    MERMAID_CLI = EnvConfig(
        name="MERMAID_CLI",
        default=None,
        var_type=str,
        description="Mermaid CLI command or path (e.g. 'mmdc' or 'npx --yes @mermaid-js/mermaid-cli')",
        category="renderer",
    )
    MDRENDER_RENDERER = EnvConfig(
        name="MDRENDER_RENDERER",
        default="mmdc",
        var_type=str,
        description="Rendering backend: 'mmdc' (Mermaid CLI) or 'kroki'",
        category="renderer",
    )
    KROKI_URL = EnvConfig(
        name="KROKI_URL",
        default="http://localhost:8000",
        var_type=str,
        description="Kroki rendering service URL (kroki backend only)",
        category="renderer",
    )
    MDRENDER_TIMEOUT = EnvConfig(
        name="MDRENDER_TIMEOUT",
        default=None,
        var_type=float,
        description="Per-diagram render timeout in seconds (unset = wait forever)",
        category="renderer",
    )

    # -------------------------------------------------------------------------
    # Render Options
    # -------------------------------------------------------------------------
    MDRENDER_MAX_WIDTH = EnvConfig(
        name="MDRENDER_MAX_WIDTH",
        default=2048,
        var_type=int,
        description="Maximum image width in pixels",
        category="render",
    )
    MDRENDER_MAX_HEIGHT = EnvConfig(
        name="MDRENDER_MAX_HEIGHT",
        default=2048,
        var_type=int,
        description="Maximum image height in pixels",
        category="render",
    )
    MDRENDER_BACKGROUND = EnvConfig(
        name="MDRENDER_BACKGROUND",
        default="transparent",
        var_type=str,
        description="Image background ('transparent' or a CSS color)",
        category="render",
    )
    MDRENDER_THEME = EnvConfig(
        name="MDRENDER_THEME",
        default=None,
        var_type=str,
        description="Mermaid theme (default, neutral, dark, forest)",
        category="render",
    )

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------
    MDRENDER_DOCS_DIR = EnvConfig(
        name="MDRENDER_DOCS_DIR",
        default=None,  # Current working directory
        var_type=Path,
        description="Directory containing the Markdown documents",
        category="batch",
    )
    MDRENDER_OUTPUT_DIR = EnvConfig(
        name="MDRENDER_OUTPUT_DIR",
        default=None,  # Next to each document
        var_type=Path,
        description="Directory for generated images",
        category="batch",
    )
    MDRENDER_EXCLUDE = EnvConfig(
        name="MDRENDER_EXCLUDE",
        default=("README.md",),
        var_type=tuple,
        description="Comma-separated document names to skip in addition to README.md",
        category="batch",
    )
    MDRENDER_MIN_LENGTH = EnvConfig(
        name="MDRENDER_MIN_LENGTH",
        default=10,
        var_type=int,
        description="Blocks must be longer than this many characters to render",
        category="batch",
    )
    MDRENDER_WORKERS = EnvConfig(
        name="MDRENDER_WORKERS",
        default=1,
        var_type=int,
        description="Number of documents processed in parallel",
        category="batch",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_list(value: str) -> tuple[str, ...]:
    """Split a comma-separated value, dropping empty items."""
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None:
        return default

    if var_type is str:
        return value

    if var_type in (int, float):
        try:
            return var_type(value)
        except ValueError:
            return default

    if var_type is Path:
        return Path(value) if value.strip() else default

    if var_type is tuple:
        return _parse_list(value)

    # Unknown type, return as-is
    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: Path) -> Path: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type.

    Example:
        >>> get_environment(EnvVar.MDRENDER_MIN_LENGTH)
        10
        >>> get_environment(EnvVar.MDRENDER_MIN_LENGTH, override=20)
        20
    """
    config: EnvConfig = env_var.value

    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable.

    Args:
        env_var: Environment variable enum member.

    Returns:
        EnvConfig with name, default, type, and description.
    """
    return env_var.value


# =============================================================================
# Convenience Functions
# =============================================================================


def get_mermaid_cli(override: str | None = None) -> list[str] | None:
    """Get the Mermaid CLI command as an argument list.

    Resolution: override > MERMAID_CLI. The value may contain several words
    (``npx --yes @mermaid-js/mermaid-cli``) and is split with shell rules, so
    it can be executed without a shell.

    Returns:
        Argument list, or None when neither source is set.
    """
    value = get_environment(EnvVar.MERMAID_CLI, override=override or None)
    if not value or not value.strip():
        return None
    return shlex.split(value)


def get_docs_dir(override: Path | str | None = None) -> Path:
    """Get the documents directory.

    Resolution: override > MDRENDER_DOCS_DIR > current working directory.
    """
    if override is not None:
        return Path(override)
    return get_environment(EnvVar.MDRENDER_DOCS_DIR) or Path.cwd()


def get_exclusions(override: list[str] | tuple[str, ...] | None = None) -> frozenset[str]:
    """Get the document denylist.

    Resolution: override > MDRENDER_EXCLUDE. INDEX_DOCUMENT is always part
    of the result, so configured names add to it rather than replace it.
    """
    names = override if override is not None else get_environment(EnvVar.MDRENDER_EXCLUDE)
    return frozenset(names) | {INDEX_DOCUMENT}


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (renderer, render, batch).
                 None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


__all__ = [
    "INDEX_DOCUMENT",
    "EnvConfig",
    "EnvVar",
    "get_environment",
    "get_environment_info",
    "get_mermaid_cli",
    "get_docs_dir",
    "get_exclusions",
    "list_environment_variables",
]
