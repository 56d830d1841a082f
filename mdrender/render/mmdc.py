"""Mermaid CLI (mmdc) renderer.

mmdc only reads diagrams from files, so each render writes the source to a
transient ``.mmd`` file next to the target image and removes it afterwards,
whatever the outcome.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from pathlib import Path

from mdrender.config import get_mermaid_cli

from .lib import DiagramRenderer, RenderConfig, RenderError, register_renderer

logger = logging.getLogger(__name__)

TRANSIENT_SUFFIX = ".mmd"
VERSION_TIMEOUT = 60.0
MAX_ERROR_CHARS = 500


def discover_mmdc() -> list[str]:
    """Resolve the Mermaid CLI command.

    Priority:
        1) MERMAID_CLI env (may contain several words, e.g. 'npx --yes @mermaid-js/mermaid-cli')
        2) 'mmdc' discoverable on PATH
        3) bare 'mmdc', which fails the availability check if missing
    """
    command = get_mermaid_cli()
    if command:
        return command
    return [shutil.which("mmdc") or "mmdc"]


def transient_path(output_path: Path) -> Path:
    """Source file location for a given image path."""
    return output_path.with_suffix(TRANSIENT_SUFFIX)


def _summarize_output(text: str | None) -> str:
    """Keep the tail of mmdc output, where the parse error usually is."""
    lines = [line.rstrip() for line in (text or "").splitlines() if line.strip()]
    summary = "\n".join(lines)
    if len(summary) > MAX_ERROR_CHARS:
        summary = "..." + summary[-MAX_ERROR_CHARS:]
    return summary


@register_renderer
class MermaidCliRenderer(DiagramRenderer):
    """Render diagrams by running the Mermaid CLI as a subprocess.

    Example:
        >>> renderer = MermaidCliRenderer()
        >>> if renderer.is_available():
        ...     result = renderer.render("graph TD\\n  A --> B", Path("out.png"))

    Attributes:
        command: Argument list that starts mmdc.
    """

    name = "mmdc"

    def __init__(self, command: list[str] | str | None = None):
        """Initialize the renderer.

        Args:
            command: mmdc command as an argument list or a shell-style string.
                Defaults to MERMAID_CLI or `mmdc` on PATH.
        """
        if isinstance(command, str):
            command = shlex.split(command)
        self.command: list[str] = list(command) if command else discover_mmdc()

    def describe(self) -> str:
        return shlex.join(self.command)

    def version(self) -> str | None:
        """Return the mmdc version string, or None if it cannot run."""
        try:
            result = subprocess.run(
                [*self.command, "--version"],
                capture_output=True,
                text=True,
                timeout=VERSION_TIMEOUT,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"mmdc version check failed: {e}")
            return None
        if result.returncode != 0:
            logger.debug(f"mmdc --version exited with {result.returncode}")
            return None
        return result.stdout.strip() or "unknown"

    def is_available(self) -> bool:
        return self.version() is not None

    def build_command(
        self,
        input_path: Path,
        output_path: Path,
        config: RenderConfig,
    ) -> list[str]:
        """Build the mmdc argument list for one diagram."""
        args = [
            *self.command,
            "-i",
            str(input_path),
            "-o",
            str(output_path),
            "-b",
            config.background,
            "-w",
            str(config.width),
            "-H",
            str(config.height),
        ]
        if config.theme:
            args += ["-t", config.theme]
        if config.config_file:
            args += ["-c", str(config.config_file)]
        if config.puppeteer_config:
            args += ["-p", str(config.puppeteer_config)]
        return args

    def _render(self, source: str, output_path: Path, config: RenderConfig) -> None:
        source_path = transient_path(output_path)
        try:
            source_path.write_text(source, encoding="utf-8")
            cmd = self.build_command(source_path, output_path, config)
            logger.debug(f"Running: {shlex.join(cmd)}")

            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=config.timeout,
                )
            except subprocess.TimeoutExpired as e:
                raise RenderError(f"mmdc timed out after {config.timeout}s") from e
            except OSError as e:
                raise RenderError(f"Could not run {self.command[0]}: {e}") from e

            if result.returncode != 0:
                detail = _summarize_output(result.stderr) or _summarize_output(result.stdout)
                raise RenderError(
                    detail or f"mmdc exited with code {result.returncode}",
                    returncode=result.returncode,
                    stderr=result.stderr,
                )
        finally:
            source_path.unlink(missing_ok=True)


__all__ = ["MermaidCliRenderer", "discover_mmdc", "transient_path"]
