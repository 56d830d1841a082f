"""Tests for render module.

Unit tests mock the subprocess and HTTP layers. Integration tests run a fake
mmdc executable; tests marked ``mmdc`` need the real Mermaid CLI.
"""

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from mdrender.render import (
    DiagramRenderer,
    KrokiRenderer,
    MermaidCliRenderer,
    OutputFormat,
    RenderConfig,
    RendererUnavailableError,
    RenderResult,
    get_renderer,
    list_renderers,
    transient_path,
)

SOURCE = "graph TD\n    A --> B"

# =============================================================================
# Unit Tests (Mocked)
# =============================================================================


class TestRenderConfig:
    """Tests for RenderConfig dataclass."""

    @pytest.mark.unit
    def test_default_values(self):
        """Defaults are a transparent 2048x2048 PNG."""
        config = RenderConfig()
        assert config.output_format == OutputFormat.PNG
        assert config.background == "transparent"
        assert (config.width, config.height) == (2048, 2048)
        assert config.theme is None
        assert config.timeout is None

    @pytest.mark.unit
    def test_invalid_width(self):
        """Config rejects non-positive width."""
        with pytest.raises(ValueError, match="Width must be positive"):
            RenderConfig(width=0)

    @pytest.mark.unit
    def test_invalid_height(self):
        """Config rejects negative height."""
        with pytest.raises(ValueError, match="Height must be positive"):
            RenderConfig(height=-5)

    @pytest.mark.unit
    def test_invalid_timeout(self):
        """Config rejects zero timeout."""
        with pytest.raises(ValueError, match="Timeout must be positive"):
            RenderConfig(timeout=0)

    @pytest.mark.unit
    def test_from_environment(self, monkeypatch):
        """Environment values are used unless overridden."""
        monkeypatch.setenv("MDRENDER_MAX_WIDTH", "1024")
        monkeypatch.setenv("MDRENDER_BACKGROUND", "#ffffff")
        monkeypatch.setenv("MDRENDER_THEME", "dark")
        config = RenderConfig.from_environment(height=512, theme=None)
        assert config.width == 1024
        assert config.height == 512
        assert config.background == "#ffffff"
        assert config.theme == "dark"


class TestRegistry:
    """Tests for renderer lookup by name."""

    @pytest.mark.unit
    def test_list_renderers(self):
        """Both backends are registered."""
        assert list_renderers() == ["kroki", "mmdc"]

    @pytest.mark.unit
    def test_get_renderer_passes_kwargs(self):
        """Constructor arguments are forwarded."""
        renderer = get_renderer("mmdc", command=["/opt/mmdc"])
        assert isinstance(renderer, MermaidCliRenderer)
        assert renderer.command == ["/opt/mmdc"]

    @pytest.mark.unit
    def test_unknown_renderer(self):
        """Unknown names list the alternatives."""
        with pytest.raises(KeyError, match="Available: kroki, mmdc"):
            get_renderer("graphviz")


class TestMermaidCliCommand:
    """Tests for mmdc command construction."""

    @pytest.mark.unit
    def test_string_command_is_split(self):
        """Shell-style strings become argv without using a shell."""
        renderer = MermaidCliRenderer("npx --yes @mermaid-js/mermaid-cli")
        assert renderer.command == ["npx", "--yes", "@mermaid-js/mermaid-cli"]

    @pytest.mark.unit
    def test_discovers_env_command(self, monkeypatch):
        """MERMAID_CLI is used when no command is given."""
        monkeypatch.setenv("MERMAID_CLI", "/custom/mmdc")
        assert MermaidCliRenderer().command == ["/custom/mmdc"]

    @pytest.mark.unit
    def test_discovers_path(self, monkeypatch):
        """Falls back to mmdc on PATH."""
        monkeypatch.delenv("MERMAID_CLI", raising=False)
        with patch("mdrender.render.mmdc.shutil.which", return_value="/usr/bin/mmdc"):
            assert MermaidCliRenderer().command == ["/usr/bin/mmdc"]

    @pytest.mark.unit
    def test_build_command_defaults(self):
        """Fixed option contract: input, output, background, bounds."""
        renderer = MermaidCliRenderer(["mmdc"])
        cmd = renderer.build_command(Path("a b.mmd"), Path("a b.png"), RenderConfig())
        assert cmd == [
            "mmdc",
            "-i",
            "a b.mmd",
            "-o",
            "a b.png",
            "-b",
            "transparent",
            "-w",
            "2048",
            "-H",
            "2048",
        ]

    @pytest.mark.unit
    def test_build_command_optional_flags(self, tmp_path):
        """Theme and config files are appended when set."""
        renderer = MermaidCliRenderer(["mmdc"])
        config = RenderConfig(
            theme="forest",
            config_file=tmp_path / "mermaid.json",
            puppeteer_config=tmp_path / "puppeteer.json",
        )
        cmd = renderer.build_command(Path("x.mmd"), Path("x.png"), config)
        assert cmd[-6:] == [
            "-t",
            "forest",
            "-c",
            str(tmp_path / "mermaid.json"),
            "-p",
            str(tmp_path / "puppeteer.json"),
        ]

    @pytest.mark.unit
    def test_transient_path(self):
        """Transient source swaps the image extension for .mmd."""
        assert transient_path(Path("out/guide-1.png")) == Path("out/guide-1.mmd")


class TestMermaidCliAvailability:
    """Tests for the up-front availability check."""

    @pytest.mark.unit
    def test_version(self):
        """Version is read from stdout."""
        completed = subprocess.CompletedProcess([], 0, stdout="10.9.1\n", stderr="")
        with patch("mdrender.render.mmdc.subprocess.run", return_value=completed):
            renderer = MermaidCliRenderer(["mmdc"])
            assert renderer.version() == "10.9.1"
            assert renderer.is_available() is True

    @pytest.mark.unit
    def test_missing_binary(self):
        """A binary that cannot start is unavailable."""
        with patch(
            "mdrender.render.mmdc.subprocess.run",
            side_effect=FileNotFoundError("mmdc"),
        ):
            renderer = MermaidCliRenderer(["mmdc"])
            assert renderer.is_available() is False
            with pytest.raises(RendererUnavailableError, match="mmdc"):
                renderer.require_available()

    @pytest.mark.unit
    def test_nonzero_version_exit(self):
        """Non-zero exit from --version means unavailable."""
        completed = subprocess.CompletedProcess([], 127, stdout="", stderr="not found")
        with patch("mdrender.render.mmdc.subprocess.run", return_value=completed):
            assert MermaidCliRenderer(["mmdc"]).is_available() is False


class TestMermaidCliRenderMocked:
    """Tests for rendering with a mocked subprocess."""

    @pytest.mark.unit
    def test_success_requires_output_file(self, tmp_path):
        """Exit code 0 without an image is a failure."""
        completed = subprocess.CompletedProcess([], 0, stdout="", stderr="")
        with patch("mdrender.render.mmdc.subprocess.run", return_value=completed):
            result = MermaidCliRenderer(["mmdc"]).render(SOURCE, tmp_path / "d-1.png")
        assert result.success is False
        assert "no output file" in result.error
        assert not (tmp_path / "d-1.mmd").exists()

    @pytest.mark.unit
    def test_stale_output_removed(self, tmp_path):
        """A leftover image from an earlier run does not count as success."""
        output = tmp_path / "d-1.png"
        output.write_bytes(b"old")
        completed = subprocess.CompletedProcess([], 0, stdout="", stderr="")
        with patch("mdrender.render.mmdc.subprocess.run", return_value=completed):
            result = MermaidCliRenderer(["mmdc"]).render(SOURCE, output)
        assert result.success is False
        assert not output.exists()

    @pytest.mark.unit
    def test_transient_file_present_during_run(self, tmp_path):
        """The source file exists while mmdc runs and is gone afterwards."""
        seen: dict[str, str] = {}

        def fake_run(cmd, **kwargs):
            source_path = Path(cmd[cmd.index("-i") + 1])
            seen["source"] = source_path.read_text(encoding="utf-8")
            Path(cmd[cmd.index("-o") + 1]).write_bytes(b"png")
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

        with patch("mdrender.render.mmdc.subprocess.run", side_effect=fake_run):
            result = MermaidCliRenderer(["mmdc"]).render(SOURCE, tmp_path / "d-1.png")

        assert result == RenderResult(output_path=tmp_path / "d-1.png", success=True)
        assert seen["source"] == SOURCE
        assert not (tmp_path / "d-1.mmd").exists()

    @pytest.mark.unit
    def test_nonzero_exit_reports_stderr(self, tmp_path):
        """Renderer errors carry the captured stderr."""
        completed = subprocess.CompletedProcess(
            [], 1, stdout="", stderr="Error: Parse error on line 2\n"
        )
        with patch("mdrender.render.mmdc.subprocess.run", return_value=completed):
            result = MermaidCliRenderer(["mmdc"]).render(SOURCE, tmp_path / "d-1.png")
        assert result.success is False
        assert result.error == "Error: Parse error on line 2"
        assert not (tmp_path / "d-1.mmd").exists()

    @pytest.mark.unit
    def test_timeout(self, tmp_path):
        """A hung renderer is stopped by the configured timeout."""
        with patch(
            "mdrender.render.mmdc.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["mmdc"], 5),
        ) as run:
            result = MermaidCliRenderer(["mmdc"]).render(
                SOURCE, tmp_path / "d-1.png", RenderConfig(timeout=5)
            )
        assert run.call_args.kwargs["timeout"] == 5
        assert result.success is False
        assert "timed out" in result.error
        assert not (tmp_path / "d-1.mmd").exists()

    @pytest.mark.unit
    def test_unexpected_exception_still_cleans_up(self, tmp_path):
        """Exceptions that escape still remove the transient file."""
        with patch(
            "mdrender.render.mmdc.subprocess.run",
            side_effect=RuntimeError("renderer crashed"),
        ):
            with pytest.raises(RuntimeError, match="renderer crashed"):
                MermaidCliRenderer(["mmdc"]).render(SOURCE, tmp_path / "d-1.png")
        assert not (tmp_path / "d-1.mmd").exists()

    @pytest.mark.unit
    def test_creates_output_directory(self, tmp_path):
        """Missing output directories are created."""

        def fake_run(cmd, **kwargs):
            Path(cmd[cmd.index("-o") + 1]).write_bytes(b"png")
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

        output = tmp_path / "images" / "nested" / "d-1.png"
        with patch("mdrender.render.mmdc.subprocess.run", side_effect=fake_run):
            result = MermaidCliRenderer(["mmdc"]).render(SOURCE, output)
        assert result.success is True


class TestKrokiRenderer:
    """Tests for the Kroki backend using httpx.MockTransport."""

    @staticmethod
    def _renderer(handler) -> KrokiRenderer:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return KrokiRenderer(base_url="http://kroki.test/", client=client)

    @pytest.mark.unit
    def test_base_url_from_env(self, monkeypatch):
        """KROKI_URL is used by default."""
        monkeypatch.setenv("KROKI_URL", "http://kroki.internal:9000/")
        renderer = KrokiRenderer(client=MagicMock())
        assert renderer.base_url == "http://kroki.internal:9000"

    @pytest.mark.unit
    def test_is_available(self):
        """Health endpoint decides availability."""
        renderer = self._renderer(lambda request: httpx.Response(200))
        assert renderer.is_available() is True

    @pytest.mark.unit
    def test_unreachable(self):
        """Connection errors mean unavailable."""

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert self._renderer(handler).is_available() is False

    @pytest.mark.unit
    def test_render_posts_source(self, tmp_path):
        """Source is posted as plain text and the body saved."""
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, content=b"\x89PNGdata")

        result = self._renderer(handler).render(SOURCE, tmp_path / "k-1.png")
        assert result.success is True
        assert (tmp_path / "k-1.png").read_bytes() == b"\x89PNGdata"
        assert str(requests[0].url) == "http://kroki.test/mermaid/png"
        assert requests[0].content == SOURCE.encode("utf-8")

    @pytest.mark.unit
    def test_render_error_status(self, tmp_path):
        """Non-200 responses become failed results."""
        renderer = self._renderer(lambda request: httpx.Response(400, text="Syntax error"))
        result = renderer.render(SOURCE, tmp_path / "k-1.png")
        assert result.success is False
        assert "400" in result.error
        assert not (tmp_path / "k-1.png").exists()


class TestDiagramRendererContract:
    """Tests for the base class wrapper."""

    @pytest.mark.unit
    def test_os_error_becomes_failure(self, tmp_path):
        """File system errors are reported, not raised."""

        class BrokenRenderer(DiagramRenderer):
            name = "broken"

            def is_available(self):
                return True

            def describe(self):
                return "broken"

            def _render(self, source, output_path, config):
                raise PermissionError("read-only file system")

        result = BrokenRenderer().render(SOURCE, tmp_path / "x.png")
        assert result.success is False
        assert "read-only" in result.error


# =============================================================================
# Integration Tests (fake mmdc executable)
# =============================================================================


class TestMermaidCliRenderFake:
    """Tests running a stand-in mmdc as a real subprocess."""

    @pytest.mark.integration
    def test_is_available(self, fake_mmdc):
        """The fake reports a version."""
        assert MermaidCliRenderer([str(fake_mmdc)]).version() == "10.9.1"

    @pytest.mark.integration
    def test_missing_binary(self, missing_mmdc):
        """A non-existent path is unavailable."""
        assert MermaidCliRenderer([str(missing_mmdc)]).is_available() is False

    @pytest.mark.integration
    def test_render_success(self, fake_mmdc, tmp_path, monkeypatch):
        """Image is written and the transient file removed."""
        log = tmp_path / "calls.jsonl"
        monkeypatch.setenv("FAKE_MMDC_LOG", str(log))
        output = tmp_path / "out dir" / "my doc-1.png"

        result = MermaidCliRenderer([str(fake_mmdc)]).render(SOURCE, output)

        assert result.success is True
        assert output.read_bytes().endswith(SOURCE.encode("utf-8"))
        assert not transient_path(output).exists()
        (args,) = [json.loads(line) for line in log.read_text().splitlines()]
        assert args[args.index("-o") + 1] == str(output)

    @pytest.mark.integration
    def test_render_failure(self, fake_mmdc, tmp_path):
        """Parse errors are surfaced and the transient file removed."""
        output = tmp_path / "bad-1.png"
        result = MermaidCliRenderer([str(fake_mmdc)]).render("graph TD\n FAIL", output)
        assert result.success is False
        assert "Parse error" in result.error
        assert not output.exists()
        assert not transient_path(output).exists()


class TestMermaidCliReal:
    """Tests against an installed Mermaid CLI."""

    @pytest.mark.mmdc
    @pytest.mark.integration
    def test_render_png(self, tmp_path):
        """A simple flowchart renders to a PNG file."""
        output = tmp_path / "real-1.png"
        result = MermaidCliRenderer().render(SOURCE, output)
        assert result.success is True, result.error
        assert output.read_bytes()[:4] == b"\x89PNG"
