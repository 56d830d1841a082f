"""Tests for the render, check and config CLI commands."""

import json
import subprocess
import sys
from pathlib import Path

import pytest

from mdrender.cli import main

REPO_ROOT = Path(__file__).resolve().parents[2]
FENCE = "```"


@pytest.fixture
def docs(tmp_path, clean_markdown, prose_markdown, mixed_markdown) -> Path:
    """Documentation directory with sample documents.

    Returns:
        Path to the docs directory.
    """
    root = tmp_path / "docs"
    root.mkdir()
    (root / "README.md").write_text(clean_markdown, encoding="utf-8")
    (root / "flows.md").write_text(clean_markdown, encoding="utf-8")
    (root / "authoring.md").write_text(prose_markdown, encoding="utf-8")
    (root / "architecture.md").write_text(mixed_markdown, encoding="utf-8")
    return root


@pytest.fixture
def with_fake_mmdc(fake_mmdc, monkeypatch) -> Path:
    """Point MERMAID_CLI at the fake executable.

    Returns:
        Path to the fake mmdc.
    """
    monkeypatch.setenv("MERMAID_CLI", str(fake_mmdc))
    monkeypatch.delenv("MDRENDER_RENDERER", raising=False)
    return fake_mmdc


@pytest.mark.integration
def test_render_writes_images_and_summary(docs, with_fake_mmdc, capsys):
    """render produces one image per valid diagram and prints the summary."""
    assert main(["render", str(docs)]) == 0

    assert sorted(p.name for p in docs.glob("*.png")) == [
        "architecture-1.png",
        "architecture-2.png",
        "flows-1.png",
    ]
    out = capsys.readouterr().out
    assert "=== Generation Complete ===" in out
    assert "Documents processed: 3" in out
    assert "Successfully generated: 3 images" in out
    assert "No valid diagrams found in: authoring.md" in out


@pytest.mark.integration
def test_render_output_dir_and_manifest(docs, with_fake_mmdc, tmp_path):
    """Images go to -o and the manifest lists them."""
    out_dir = tmp_path / "images"
    manifest = tmp_path / "manifest.json"

    assert main(["render", str(docs), "-o", str(out_dir), "--manifest", str(manifest), "-q"]) == 0

    data = json.loads(manifest.read_text(encoding="utf-8"))
    assert data == {
        str(docs / "architecture.md"): [
            str(out_dir / "architecture-1.png"),
            str(out_dir / "architecture-2.png"),
        ],
        str(docs / "flows.md"): [str(out_dir / "flows-1.png")],
    }
    assert list(docs.glob("*.png")) == []


@pytest.mark.integration
def test_render_exclude_adds_to_default(docs, with_fake_mmdc):
    """--exclude skips more documents and README.md stays excluded."""
    assert main(["render", str(docs), "-x", "flows.md", "-q"]) == 0
    names = sorted(p.name for p in docs.glob("*.png"))
    assert names == ["architecture-1.png", "architecture-2.png"]


@pytest.mark.integration
def test_render_position_numbering(docs, with_fake_mmdc):
    """--numbering position keeps block positions in names."""
    assert main(["render", str(docs), "--numbering", "position", "-q"]) == 0
    assert (docs / "architecture-3.png").exists()
    assert not (docs / "architecture-2.png").exists()


@pytest.mark.integration
def test_render_failures_exit_zero_by_default(tmp_path, with_fake_mmdc, capsys):
    """Failed diagrams are reported but the run still succeeds."""
    (tmp_path / "broken.md").write_text(
        f"{FENCE}mermaid\ngraph TD\n    FAIL --> B\n{FENCE}\n", encoding="utf-8"
    )
    assert main(["render", str(tmp_path), "-q"]) == 0
    assert "Failed to generate: 1 images" in capsys.readouterr().out


@pytest.mark.integration
def test_render_fail_on_error(tmp_path, with_fake_mmdc):
    """--fail-on-error turns render failures into exit code 3."""
    (tmp_path / "broken.md").write_text(
        f"{FENCE}mermaid\ngraph TD\n    FAIL --> B\n{FENCE}\n", encoding="utf-8"
    )
    assert main(["render", str(tmp_path), "--fail-on-error", "-q"]) == 3


@pytest.mark.integration
def test_render_renderer_unavailable(docs, missing_mmdc, monkeypatch):
    """A missing mmdc exits with code 2 and renders nothing."""
    monkeypatch.delenv("MDRENDER_RENDERER", raising=False)
    assert main(["render", str(docs), "--mmdc", str(missing_mmdc), "-q"]) == 2
    assert list(docs.glob("*.png")) == []


@pytest.mark.unit
def test_render_list_only(docs, missing_mmdc, capsys):
    """--list-only plans without needing the renderer."""
    assert main(["render", str(docs), "--mmdc", str(missing_mmdc), "--list-only", "-q"]) == 0

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line]
    assert [Path(job["output"]).name for job in lines] == [
        "architecture-1.png",
        "architecture-2.png",
        "flows-1.png",
    ]
    assert lines[1]["kind"] == "erDiagram"
    assert lines[0]["line"] == 3
    assert list(docs.glob("*.png")) == []


@pytest.mark.unit
def test_render_unknown_renderer(docs):
    """Unknown backends are a usage error."""
    assert main(["render", str(docs), "--renderer", "graphviz", "-q"]) == 1


@pytest.mark.unit
def test_render_invalid_width(docs):
    """Invalid presentation options are a usage error."""
    assert main(["render", str(docs), "--width", "0", "-q"]) == 1


@pytest.mark.unit
def test_render_missing_docs_dir(tmp_path, missing_mmdc):
    """A missing documents directory is a usage error."""
    assert main(["render", str(tmp_path / "nope"), "--list-only", "-q"]) == 1


@pytest.mark.integration
def test_check_reports_version(with_fake_mmdc, capsys):
    """check prints the mmdc version when it runs."""
    assert main(["check"]) == 0
    out = capsys.readouterr().out
    assert "Renderer: mmdc" in out
    assert "Version: 10.9.1" in out
    assert "kroki, mmdc" in out


@pytest.mark.integration
def test_check_missing(missing_mmdc, monkeypatch):
    """check fails with code 2 when mmdc cannot run."""
    monkeypatch.delenv("MDRENDER_RENDERER", raising=False)
    assert main(["check", "--mmdc", str(missing_mmdc)]) == 2


@pytest.mark.unit
def test_config_lists_variables(capsys):
    """config shows every category by default."""
    assert main(["config"]) == 0
    out = capsys.readouterr().out
    assert "[renderer]" in out
    assert "[batch]" in out
    assert "MERMAID_CLI" in out
    assert "MDRENDER_MIN_LENGTH" in out


@pytest.mark.unit
def test_config_single_category(capsys):
    """config can be filtered to one category."""
    assert main(["config", "render"]) == 0
    out = capsys.readouterr().out
    assert "MDRENDER_MAX_WIDTH" in out
    assert "MERMAID_CLI" not in out


@pytest.mark.unit
def test_no_command_shows_help(capsys):
    """Running without a command prints usage and exits 1."""
    assert main([]) == 1
    assert "Usage: python . {command}" in capsys.readouterr().out


@pytest.mark.unit
def test_unknown_command():
    """Unknown commands exit 1."""
    assert main(["frobnicate"]) == 1


@pytest.mark.integration
def test_entry_point_help():
    """python . --help runs from a checkout."""
    result = subprocess.run(
        [sys.executable, ".", "--help"],
        capture_output=True,
        text=True,
        cwd=REPO_ROOT,
        timeout=30,
    )
    assert result.returncode == 0
    assert "render" in result.stdout


@pytest.mark.unit
def test_cli_logger_in_package_hierarchy():
    """CLI messages go through the mdrender logger tree."""
    from mdrender import cli

    assert cli.logger.name == "mdrender.cli"
