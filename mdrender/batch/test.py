"""Tests for the batch orchestrator.

Unit tests use an in-memory renderer; integration tests drive the fake mmdc
executable from the shared fixtures.
"""

import json
import logging
import threading
from pathlib import Path

import pytest

from mdrender.batch import (
    BatchConfig,
    BatchRenderer,
    DocumentResult,
    DocumentStatus,
    NumberingMode,
    RunReport,
    discover_documents,
    output_path_for,
)
from mdrender.render import (
    DiagramRenderer,
    MermaidCliRenderer,
    RenderConfig,
    RenderError,
    RendererUnavailableError,
    RenderResult,
)

FENCE = "```"


class RecordingRenderer(DiagramRenderer):
    """In-memory renderer that writes the source as the image."""

    name = "recording"

    def __init__(self, available: bool = True):
        self.available = available
        self.calls: list[tuple[str, Path]] = []
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self.available

    def describe(self) -> str:
        return "in-memory"

    def _render(self, source: str, output_path: Path, config: RenderConfig) -> None:
        with self._lock:
            self.calls.append((source, output_path))
        if "CRASH" in source:
            raise ValueError("unexpected renderer bug")
        if "FAIL" in source:
            raise RenderError("Parse error on line 2")
        output_path.write_text(source, encoding="utf-8")


def _block(body: str) -> str:
    return f"{FENCE}mermaid\n{body}\n{FENCE}\n"


@pytest.fixture
def docs(tmp_path, clean_markdown, prose_markdown, mixed_markdown) -> Path:
    """Documentation tree with the three sample documents and a README.

    Returns:
        Path to the docs directory.
    """
    root = tmp_path / "docs"
    root.mkdir()
    (root / "README.md").write_text(_block("graph TD\n    Index --> Docs"), encoding="utf-8")
    (root / "flows.md").write_text(clean_markdown, encoding="utf-8")
    (root / "authoring.md").write_text(prose_markdown, encoding="utf-8")
    (root / "architecture.md").write_text(mixed_markdown, encoding="utf-8")
    (root / "notes.txt").write_text(_block("graph TD\n    Not --> Markdown"), encoding="utf-8")
    return root


# =============================================================================
# Discovery and naming
# =============================================================================


class TestDiscoverDocuments:
    """Tests for document enumeration."""

    @pytest.mark.unit
    def test_sorted_and_excluded(self, docs):
        """README and non-Markdown files are skipped; order is stable."""
        names = [p.name for p in discover_documents(docs)]
        assert names == ["architecture.md", "authoring.md", "flows.md"]

    @pytest.mark.unit
    def test_custom_exclusions_keep_readme(self, docs):
        """Configured names are skipped in addition to README.md."""
        names = [p.name for p in discover_documents(docs, exclude={"flows.md"})]
        assert names == ["architecture.md", "authoring.md"]
        assert [p.name for p in discover_documents(docs, exclude=set())] == [
            "architecture.md",
            "authoring.md",
            "flows.md",
        ]

    @pytest.mark.unit
    def test_not_recursive_by_default(self, docs):
        """Subdirectories are ignored unless requested."""
        (docs / "guides").mkdir()
        (docs / "guides" / "setup.md").write_text("# Setup\n", encoding="utf-8")
        assert "setup.md" not in [p.name for p in discover_documents(docs)]

    @pytest.mark.unit
    def test_recursive_with_relative_exclusion(self, docs):
        """Relative paths can be excluded in recursive mode."""
        (docs / "guides").mkdir()
        (docs / "guides" / "setup.md").write_text("# Setup\n", encoding="utf-8")
        (docs / "guides" / "README.md").write_text("# Guides\n", encoding="utf-8")
        found = discover_documents(docs, exclude={"README.md", "flows.md"}, recursive=True)
        relative = [p.relative_to(docs).as_posix() for p in found]
        assert relative == ["architecture.md", "authoring.md", "guides/setup.md"]

    @pytest.mark.unit
    def test_extension_case_insensitive(self, tmp_path):
        """Upper-case extensions are accepted."""
        (tmp_path / "LOUD.MD").write_text("# Hi\n", encoding="utf-8")
        assert [p.name for p in discover_documents(tmp_path)] == ["LOUD.MD"]

    @pytest.mark.unit
    def test_missing_directory(self, tmp_path):
        """A missing root is reported clearly."""
        with pytest.raises(NotADirectoryError, match="not found"):
            discover_documents(tmp_path / "nope")


class TestOutputPath:
    """Tests for output naming."""

    @pytest.mark.unit
    def test_next_to_document(self):
        """Default output sits beside the document."""
        path = output_path_for(Path("docs/api flow.md"), 3, Path("docs"))
        assert path == Path("docs/api flow-3.png")

    @pytest.mark.unit
    def test_mirrors_into_output_dir(self):
        """Relative layout is kept under the output directory."""
        path = output_path_for(
            Path("docs/guides/setup.md"), 1, Path("docs"), Path("build/img"), "svg"
        )
        assert path == Path("build/img/guides/setup-1.svg")

    @pytest.mark.unit
    def test_document_outside_docs_dir(self):
        """Documents outside the docs directory go straight into the output directory."""
        path = output_path_for(Path("elsewhere/notes.md"), 2, Path("docs"), Path("build/img"))
        assert path == Path("build/img/notes-2.png")


class TestBatchConfig:
    """Tests for batch configuration."""

    @pytest.mark.unit
    def test_defaults(self, tmp_path):
        """Defaults skip README.md and number densely."""
        config = BatchConfig(docs_dir=tmp_path)
        assert config.exclude == frozenset({"README.md"})
        assert config.min_length == 10
        assert config.numbering is NumberingMode.DENSE
        assert config.workers == 1

    @pytest.mark.unit
    def test_exclusions_keep_readme(self, tmp_path):
        """Configured exclusions are added to README.md."""
        config = BatchConfig(docs_dir=tmp_path, exclude={"drafts.md"})
        assert config.exclude == frozenset({"README.md", "drafts.md"})

    @pytest.mark.unit
    def test_numbering_from_string(self, tmp_path):
        """Numbering accepts its string value."""
        assert BatchConfig(docs_dir=tmp_path, numbering="position").numbering is NumberingMode.POSITION

    @pytest.mark.unit
    def test_invalid_workers(self, tmp_path):
        """Zero workers is rejected."""
        with pytest.raises(ValueError, match="Workers"):
            BatchConfig(docs_dir=tmp_path, workers=0)

    @pytest.mark.unit
    def test_invalid_min_length(self, tmp_path):
        """Negative thresholds are rejected."""
        with pytest.raises(ValueError, match="Minimum length"):
            BatchConfig(docs_dir=tmp_path, min_length=-1)

    @pytest.mark.unit
    def test_from_environment(self, tmp_path, monkeypatch):
        """Environment values fill the config; overrides win."""
        monkeypatch.setenv("MDRENDER_DOCS_DIR", str(tmp_path))
        monkeypatch.setenv("MDRENDER_EXCLUDE", "index.md,README.md")
        monkeypatch.setenv("MDRENDER_MIN_LENGTH", "20")
        config = BatchConfig.from_environment(min_length=5, output_dir=None)
        assert config.docs_dir == tmp_path
        assert config.exclude == frozenset({"index.md", "README.md"})
        assert config.min_length == 5
        assert config.output_dir is None


# =============================================================================
# Orchestration (in-memory renderer)
# =============================================================================


class TestBatchRun:
    """Tests for the end-to-end batch flow."""

    @pytest.mark.unit
    def test_clean_document(self, tmp_path, clean_markdown):
        """One block gives one job named after the document."""
        (tmp_path / "docname.md").write_text(clean_markdown, encoding="utf-8")
        renderer = RecordingRenderer()
        report = BatchRenderer(renderer, BatchConfig(docs_dir=tmp_path)).run()

        assert [p.name for _, p in renderer.calls] == ["docname-1.png"]
        assert renderer.calls[0][0] == "graph TD\n    A --> B"
        assert (report.valid_diagrams, report.images_generated, report.images_failed) == (1, 1, 0)

    @pytest.mark.unit
    def test_prose_document(self, tmp_path, prose_markdown):
        """Prose mentions produce nothing and are not failures."""
        (tmp_path / "authoring.md").write_text(prose_markdown, encoding="utf-8")
        renderer = RecordingRenderer()
        report = BatchRenderer(renderer, BatchConfig(docs_dir=tmp_path)).run()

        assert renderer.calls == []
        assert report.candidates_found == 0
        assert report.images_failed == 0
        assert report.documents[0].status is DocumentStatus.NO_DIAGRAMS
        assert report.has_failures is False

    @pytest.mark.unit
    def test_mixed_document_dense_numbering(self, tmp_path, mixed_markdown):
        """Invalid blocks are skipped without using up a number."""
        (tmp_path / "arch.md").write_text(mixed_markdown, encoding="utf-8")
        renderer = RecordingRenderer()
        report = BatchRenderer(renderer, BatchConfig(docs_dir=tmp_path)).run()

        assert [p.name for _, p in renderer.calls] == ["arch-1.png", "arch-2.png"]
        assert renderer.calls[1][0].startswith("erDiagram")
        assert report.candidates_found == 3
        assert report.valid_diagrams == 2
        assert report.images_failed == 0

    @pytest.mark.unit
    def test_mixed_document_position_numbering(self, tmp_path, mixed_markdown):
        """Position numbering keeps gaps for skipped blocks."""
        (tmp_path / "arch.md").write_text(mixed_markdown, encoding="utf-8")
        renderer = RecordingRenderer()
        config = BatchConfig(docs_dir=tmp_path, numbering=NumberingMode.POSITION)
        BatchRenderer(renderer, config).run()

        assert [p.name for _, p in renderer.calls] == ["arch-1.png", "arch-3.png"]

    @pytest.mark.unit
    def test_dense_numbering_has_no_gaps(self, tmp_path):
        """N valid blocks give exactly base-1 .. base-N."""
        body = "".join(
            _block(f"graph LR\n    N{i} --> M{i}") + _block("nope") for i in range(5)
        )
        (tmp_path / "many.md").write_text(body, encoding="utf-8")
        renderer = RecordingRenderer()
        BatchRenderer(renderer, BatchConfig(docs_dir=tmp_path)).run()

        assert [p.name for _, p in renderer.calls] == [f"many-{n}.png" for n in range(1, 6)]

    @pytest.mark.unit
    def test_renderer_unavailable(self, tmp_path):
        """The precondition fails before any document is looked at."""
        renderer = RecordingRenderer(available=False)
        batch = BatchRenderer(renderer, BatchConfig(docs_dir=tmp_path / "missing"))
        with pytest.raises(RendererUnavailableError, match="recording"):
            batch.run()
        assert renderer.calls == []

    @pytest.mark.unit
    def test_failure_does_not_abort(self, tmp_path, caplog):
        """A failing diagram is logged and the rest still render."""
        text = (
            _block("graph TD\n    A --> B")
            + _block("graph TD\n    FAIL --> B")
            + _block("graph TD\n    C --> D")
        )
        (tmp_path / "guide.md").write_text(text, encoding="utf-8")
        (tmp_path / "later.md").write_text(_block("pie\n    \"x\" : 1"), encoding="utf-8")
        renderer = RecordingRenderer()

        with caplog.at_level(logging.INFO):
            report = BatchRenderer(renderer, BatchConfig(docs_dir=tmp_path)).run()

        assert report.images_generated == 3
        assert report.images_failed == 1
        assert report.documents[0].status is DocumentStatus.PARTIAL
        assert report.documents[1].status is DocumentStatus.RENDERED
        errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "guide-2.png" in errors[0]
        assert "Parse error on line 2" in errors[0]

    @pytest.mark.unit
    @pytest.mark.parametrize("workers", [1, 2])
    def test_unexpected_renderer_exception_does_not_abort(self, tmp_path, workers, caplog):
        """A renderer bug fails one job and the batch carries on."""
        (tmp_path / "a.md").write_text(_block("graph TD\n    CRASH --> B"), encoding="utf-8")
        (tmp_path / "b.md").write_text(_block("graph TD\n    A --> B"), encoding="utf-8")
        renderer = RecordingRenderer()

        with caplog.at_level(logging.INFO):
            report = BatchRenderer(renderer, BatchConfig(docs_dir=tmp_path, workers=workers)).run()

        assert sorted(p.name for _, p in renderer.calls) == ["a-1.png", "b-1.png"]
        assert report.documents_scanned == 2
        assert report.images_generated == 1
        assert report.images_failed == 1
        failed = report.documents[0].results[0]
        assert failed.error == "ValueError: unexpected renderer bug"
        assert "a-1.png" in caplog.text

    @pytest.mark.unit
    def test_explicit_document_outside_docs_dir(self, tmp_path, clean_markdown):
        """Explicit documents outside docs_dir render flat into the output directory."""
        docs = tmp_path / "docs"
        docs.mkdir()
        outside = tmp_path / "notes.md"
        outside.write_text(clean_markdown, encoding="utf-8")
        out = tmp_path / "images"
        config = BatchConfig(docs_dir=docs, output_dir=out)

        report = BatchRenderer(RecordingRenderer(), config).run([outside])

        assert report.images_generated == 1
        assert (out / "notes-1.png").exists()

    @pytest.mark.unit
    def test_unreadable_document_does_not_abort(self, tmp_path, clean_markdown):
        """A document that cannot be read is reported and skipped."""
        good = tmp_path / "good.md"
        good.write_text(clean_markdown, encoding="utf-8")
        renderer = RecordingRenderer()
        report = BatchRenderer(renderer, BatchConfig(docs_dir=tmp_path)).run(
            [tmp_path / "gone.md", good]
        )

        assert report.documents_scanned == 2
        assert report.documents[0].status is DocumentStatus.UNREADABLE
        assert report.images_generated == 1
        assert report.has_failures is True

    @pytest.mark.unit
    def test_output_dir(self, docs, tmp_path):
        """Images go to the configured directory."""
        out = tmp_path / "images"
        renderer = RecordingRenderer()
        BatchRenderer(renderer, BatchConfig(docs_dir=docs, output_dir=out)).run()
        assert sorted(p.name for p in out.iterdir()) == [
            "architecture-1.png",
            "architecture-2.png",
            "flows-1.png",
        ]

    @pytest.mark.unit
    def test_render_config_forwarded(self, tmp_path, clean_markdown):
        """The output format drives the extension."""
        from mdrender.render import OutputFormat

        (tmp_path / "doc.md").write_text(clean_markdown, encoding="utf-8")
        renderer = RecordingRenderer()
        config = BatchConfig(docs_dir=tmp_path, render=RenderConfig(output_format=OutputFormat.SVG))
        BatchRenderer(renderer, config).run()
        assert renderer.calls[0][1].name == "doc-1.svg"

    @pytest.mark.unit
    def test_plan_does_not_render(self, docs):
        """Planning lists jobs without invoking the renderer."""
        renderer = RecordingRenderer(available=False)
        jobs = BatchRenderer(renderer, BatchConfig(docs_dir=docs)).plan()
        assert [j.output_path.name for j in jobs] == [
            "architecture-1.png",
            "architecture-2.png",
            "flows-1.png",
        ]
        assert jobs[0].describe()["kind"] == "sequenceDiagram"
        assert renderer.calls == []


class TestParallelRun:
    """Tests for document-level parallelism."""

    @pytest.mark.unit
    def test_parallel_matches_sequential(self, docs):
        """Worker count does not change the report."""
        sequential = BatchRenderer(RecordingRenderer(), BatchConfig(docs_dir=docs)).run()
        parallel = BatchRenderer(RecordingRenderer(), BatchConfig(docs_dir=docs, workers=4)).run()

        assert [d.path for d in parallel.documents] == [d.path for d in sequential.documents]
        assert parallel.images_generated == sequential.images_generated == 3

    @pytest.mark.unit
    def test_shared_output_names_serialized(self, tmp_path, caplog):
        """Documents with the same stem are processed in order by one worker."""
        (tmp_path / "api.md").write_text(_block("graph TD\n    First --> One"), encoding="utf-8")
        (tmp_path / "api.markdown").write_text(_block("graph TD\n    Second --> Two"), encoding="utf-8")
        (tmp_path / "other.md").write_text(_block("graph TD\n    Other --> X"), encoding="utf-8")
        config = BatchConfig(docs_dir=tmp_path, extensions=(".md", ".markdown"), workers=3)

        with caplog.at_level(logging.WARNING):
            report = BatchRenderer(RecordingRenderer(), config).run()

        assert "share output names" in caplog.text
        assert report.images_generated == 3
        assert "First" in (tmp_path / "api-1.png").read_text(encoding="utf-8")


# =============================================================================
# Report
# =============================================================================


class TestRunReport:
    """Tests for report folding and output."""

    @staticmethod
    def _result(path: str, ok: int, bad: int, candidates: int | None = None) -> DocumentResult:
        results = tuple(
            RenderResult(output_path=Path(f"{path}-{i}.png"), success=i <= ok, error=None if i <= ok else "boom")
            for i in range(1, ok + bad + 1)
        )
        return DocumentResult(
            path=Path(f"{path}.md"),
            candidates=candidates if candidates is not None else ok + bad,
            valid=ok + bad,
            results=results,
        )

    @pytest.mark.unit
    def test_fold(self):
        """Counters are summed across documents."""
        report = RunReport.from_results(
            [self._result("a", 2, 1, candidates=4), self._result("b", 0, 0), self._result("c", 1, 0)]
        )
        assert report.documents_scanned == 3
        assert report.candidates_found == 4 + 0 + 1
        assert report.valid_diagrams == 4
        assert report.images_generated == 3
        assert report.images_failed == 1

    @pytest.mark.unit
    def test_add_returns_new_report(self):
        """Reports are immutable values."""
        empty = RunReport()
        updated = empty.add(self._result("a", 1, 0))
        assert empty.documents_scanned == 0
        assert updated.documents_scanned == 1

    @pytest.mark.unit
    def test_manifest(self, tmp_path):
        """Manifest lists only successful images."""
        report = RunReport.from_results([self._result("a", 1, 1), self._result("b", 0, 0)])
        assert report.to_manifest() == {"a.md": ["a-1.png"]}
        path = tmp_path / "out" / "manifest.json"
        report.write_manifest(path)
        assert json.loads(path.read_text(encoding="utf-8")) == {"a.md": ["a-1.png"]}

    @pytest.mark.unit
    def test_summary_distinguishes_empty_from_failed(self, capsys):
        """Operators can tell missing diagrams from broken ones."""
        report = RunReport.from_results([self._result("a", 1, 1), self._result("b", 0, 0)])
        report.print_summary(output_dir=Path("docs"))
        out = capsys.readouterr().out
        assert "Documents processed: 2" in out
        assert "Successfully generated: 1 images" in out
        assert "Failed to generate: 1 images" in out
        assert "a-2.png: boom" in out
        assert "No valid diagrams found in: b.md" in out
        assert "Images saved in: docs" in out

    @pytest.mark.unit
    def test_summary_without_failures(self, capsys):
        """The failure line only appears when something failed."""
        RunReport.from_results([self._result("a", 2, 0)]).print_summary()
        assert "Failed to generate" not in capsys.readouterr().out


# =============================================================================
# Integration Tests (fake mmdc executable)
# =============================================================================


class TestBatchWithFakeMmdc:
    """Tests running the batch against a stand-in mmdc."""

    @pytest.mark.integration
    def test_idempotent(self, docs, fake_mmdc):
        """Two runs give the same names and counts."""
        config = BatchConfig(docs_dir=docs)

        first = BatchRenderer(MermaidCliRenderer([str(fake_mmdc)]), config).run()
        names_first = sorted(p.name for p in docs.glob("*.png"))
        second = BatchRenderer(MermaidCliRenderer([str(fake_mmdc)]), config).run()
        names_second = sorted(p.name for p in docs.glob("*.png"))

        assert names_first == names_second == [
            "architecture-1.png",
            "architecture-2.png",
            "flows-1.png",
        ]
        assert first.model_dump(exclude={"documents"}) == second.model_dump(exclude={"documents"})

    @pytest.mark.integration
    def test_no_transient_files_left(self, tmp_path, fake_mmdc):
        """Neither success nor failure leaves .mmd files behind."""
        text = _block("graph TD\n    A --> B") + _block("graph TD\n    FAIL --> B") + _block(
            "graph TD\n    NOOUTPUT --> B"
        )
        (tmp_path / "guide.md").write_text(text, encoding="utf-8")

        report = BatchRenderer(MermaidCliRenderer([str(fake_mmdc)]), BatchConfig(docs_dir=tmp_path)).run()

        assert report.images_generated == 1
        assert report.images_failed == 2
        assert list(tmp_path.glob("*.mmd")) == []
        assert [p.name for p in tmp_path.glob("*.png")] == ["guide-1.png"]

    @pytest.mark.integration
    def test_missing_mmdc(self, docs, missing_mmdc):
        """A missing binary stops the run before any output."""
        batch = BatchRenderer(MermaidCliRenderer([str(missing_mmdc)]), BatchConfig(docs_dir=docs))
        with pytest.raises(RendererUnavailableError):
            batch.run()
        assert list(docs.glob("*.png")) == []
