"""Kroki HTTP renderer.

Sends the diagram source to a Kroki instance instead of running mmdc
locally. Kroki applies its own sizing, so width, height and background from
RenderConfig are not forwarded.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from mdrender.config import EnvVar, get_environment

from .lib import DiagramRenderer, RenderConfig, RenderError, register_renderer

logger = logging.getLogger(__name__)


@register_renderer
class KrokiRenderer(DiagramRenderer):
    """HTTP client rendering Mermaid diagrams through Kroki.

    Attributes:
        base_url: Kroki service URL.
        timeout: Default request timeout in seconds.
    """

    name = "kroki"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        """Initialize the Kroki renderer.

        Args:
            base_url: Kroki service URL. Defaults to KROKI_URL.
            timeout: Request timeout in seconds, unless RenderConfig sets one.
            client: Preconfigured HTTP client (mainly for tests).
        """
        self.base_url = (base_url or get_environment(EnvVar.KROKI_URL)).rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def __del__(self) -> None:
        """Clean up HTTP client."""
        if hasattr(self, "_client"):
            self._client.close()

    def describe(self) -> str:
        return self.base_url

    def is_available(self) -> bool:
        """Check if the Kroki service is reachable."""
        try:
            response = self._client.get(f"{self.base_url}/health", timeout=5.0)
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Kroki health check failed: {e}")
            return False

    def _render(self, source: str, output_path: Path, config: RenderConfig) -> None:
        url = f"{self.base_url}/mermaid/{config.output_format.value}"
        try:
            response = self._client.post(
                url,
                content=source.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
                timeout=config.timeout or self.timeout,
            )
        except httpx.TimeoutException as e:
            raise RenderError(f"Kroki request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise RenderError(f"Kroki request failed: {e}") from e

        if response.status_code != 200:
            raise RenderError(
                f"Kroki returned {response.status_code}: {response.text[:500]}",
                returncode=response.status_code,
                stderr=response.text,
            )

        output_path.write_bytes(response.content)


__all__ = ["KrokiRenderer"]
