"""Renderer abstraction for Mermaid diagrams.

Defines the presentation options passed to every renderer, the per-diagram
result, and a registry so backends can be selected by name. A renderer turns
one diagram source into one image file; it never raises for a diagram that
fails to render, the failure is reported in the returned RenderResult.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from mdrender.config import EnvVar, get_environment

logger = logging.getLogger(__name__)


class OutputFormat(Enum):
    """Supported image formats."""

    PNG = "png"
    SVG = "svg"
    PDF = "pdf"


@dataclass
class RenderConfig:
    """Presentation options applied to every diagram of a run.

    Attributes:
        output_format: Image format (PNG, SVG, PDF).
        background: Background color, e.g. "transparent" or "#ffffff".
        width: Maximum width in pixels.
        height: Maximum height in pixels.
        theme: Mermaid theme name (default, neutral, dark, forest).
        timeout: Seconds to wait for one render; None waits indefinitely.
        config_file: Mermaid JSON config passed to the renderer.
        puppeteer_config: Puppeteer JSON config (headless browser flags).
    """

    output_format: OutputFormat = OutputFormat.PNG
    background: str = "transparent"
    width: int = 2048
    height: int = 2048
    theme: str | None = None
    timeout: float | None = None
    config_file: Path | None = None
    puppeteer_config: Path | None = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.width < 1:
            raise ValueError(f"Width must be positive, got {self.width}")
        if self.height < 1:
            raise ValueError(f"Height must be positive, got {self.height}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {self.timeout}")
        if not self.background.strip():
            raise ValueError("Background must not be empty")

    @classmethod
    def from_environment(cls, **overrides) -> RenderConfig:
        """Build a config from MDRENDER_* variables.

        Keyword arguments that are not None take precedence over the
        environment.
        """
        values = {
            "background": get_environment(EnvVar.MDRENDER_BACKGROUND),
            "width": get_environment(EnvVar.MDRENDER_MAX_WIDTH),
            "height": get_environment(EnvVar.MDRENDER_MAX_HEIGHT),
            "theme": get_environment(EnvVar.MDRENDER_THEME),
            "timeout": get_environment(EnvVar.MDRENDER_TIMEOUT),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass(frozen=True)
class RenderResult:
    """Outcome of rendering one diagram.

    Attributes:
        output_path: Where the image was (or should have been) written.
        success: True only if the renderer succeeded and the file exists.
        error: Failure detail for logs and reports.
    """

    output_path: Path
    success: bool
    error: str | None = None


class RenderError(Exception):
    """Error raised inside a renderer for a single diagram."""

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class RendererUnavailableError(RuntimeError):
    """The external renderer cannot be used at all."""


class DiagramRenderer(ABC):
    """Base class for rendering backends.

    Subclasses implement `_render`, which writes the image or raises
    RenderError. `render` wraps it so callers always get a RenderResult and
    never a per-diagram exception.
    """

    name: str = ""

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the backend can render at all."""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable description of the backend (command, URL)."""

    @abstractmethod
    def _render(self, source: str, output_path: Path, config: RenderConfig) -> None:
        """Write the image for `source` to `output_path`."""

    def require_available(self) -> None:
        """Raise RendererUnavailableError unless the backend is usable."""
        if not self.is_available():
            raise RendererUnavailableError(
                f"Renderer '{self.name}' is not available ({self.describe()})"
            )

    def render(
        self,
        source: str,
        output_path: Path | str,
        config: RenderConfig | None = None,
    ) -> RenderResult:
        """Render one diagram to an image file.

        An existing file at `output_path` is removed first so that the
        existence check afterwards reflects this render only.

        Args:
            source: Mermaid diagram source.
            output_path: Image file to produce.
            config: Presentation options.

        Returns:
            RenderResult; success requires the output file to exist.
        """
        config = config or RenderConfig()
        output_path = Path(output_path)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.unlink(missing_ok=True)
            self._render(source, output_path, config)
        except RenderError as e:
            return RenderResult(output_path=output_path, success=False, error=str(e))
        except OSError as e:
            return RenderResult(
                output_path=output_path,
                success=False,
                error=f"File system error: {e}",
            )

        if not output_path.exists():
            return RenderResult(
                output_path=output_path,
                success=False,
                error="Renderer finished but no output file was written",
            )
        return RenderResult(output_path=output_path, success=True)


# =============================================================================
# Registry
# =============================================================================

_registry: dict[str, type[DiagramRenderer]] = {}


def register_renderer(renderer_cls: type[DiagramRenderer]) -> type[DiagramRenderer]:
    """Register a renderer class under its `name`.

    Example:
        >>> @register_renderer
        ... class MyRenderer(DiagramRenderer):
        ...     name = "mine"
    """
    if not renderer_cls.name:
        raise ValueError(f"{renderer_cls.__name__} has no name")
    _registry[renderer_cls.name] = renderer_cls
    return renderer_cls


def get_renderer(name: str, **kwargs) -> DiagramRenderer:
    """Get a renderer instance by name.

    Args:
        name: Renderer identifier ("mmdc", "kroki").
        **kwargs: Passed to the renderer constructor.

    Raises:
        KeyError: If no renderer with the given name is registered.
    """
    _import_renderers()
    if name not in _registry:
        available = ", ".join(sorted(_registry)) or "(none)"
        raise KeyError(f"Unknown renderer '{name}'. Available: {available}")
    return _registry[name](**kwargs)


def list_renderers() -> list[str]:
    """List registered renderer names."""
    _import_renderers()
    return sorted(_registry)


def _import_renderers() -> None:
    """Import backend modules to trigger registration."""
    import importlib

    for module_name in ("mmdc", "kroki"):
        importlib.import_module(f"mdrender.render.{module_name}")


__all__ = [
    "DiagramRenderer",
    "OutputFormat",
    "RenderConfig",
    "RenderError",
    "RenderResult",
    "RendererUnavailableError",
    "get_renderer",
    "list_renderers",
    "register_renderer",
]
