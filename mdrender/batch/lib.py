"""Batch rendering of Mermaid diagrams across a documentation tree.

Enumerates Markdown documents, extracts and validates their Mermaid blocks,
names each surviving block ``{document-stem}-{n}.{ext}`` and renders it.
Per-document outcomes are folded into an immutable RunReport; a diagram that
fails to render is logged and counted, and the batch moves on.

Example:
    >>> from mdrender.batch import BatchConfig, BatchRenderer
    >>> from mdrender.render import get_renderer
    >>>
    >>> batch = BatchRenderer(get_renderer("mmdc"), BatchConfig(docs_dir=Path("docs")))
    >>> report = batch.run()
    >>> report.print_summary()
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from mdrender.config import (
    INDEX_DOCUMENT,
    EnvVar,
    get_docs_dir,
    get_environment,
    get_exclusions,
)
from mdrender.extract import Document, extract_candidates, read_document
from mdrender.render import DiagramRenderer, RenderConfig, RenderResult
from mdrender.validation import ValidatedDiagram, validate_candidates

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".md",)


class NumberingMode(str, Enum):
    """How output sequence numbers are assigned within a document.

    DENSE numbers valid diagrams 1..N, so a skipped block does not leave a
    gap. POSITION keeps the block's position among all fenced blocks, so
    names stay stable if validation rules change.
    """

    DENSE = "dense"
    POSITION = "position"


class DocumentStatus(str, Enum):
    """Final state of one document in a run."""

    NO_DIAGRAMS = "no_diagrams"
    RENDERED = "rendered"
    PARTIAL = "partial"
    FAILED = "failed"
    UNREADABLE = "unreadable"


@dataclass
class BatchConfig:
    """Settings for one batch run.

    Attributes:
        docs_dir: Root directory of the documents.
        output_dir: Where images go; None writes them next to each document.
        exclude: Document names (or paths relative to docs_dir) to skip;
            README.md is always among them.
        recursive: Descend into subdirectories of docs_dir.
        extensions: Document file extensions to pick up.
        min_length: Blocks must be longer than this to be rendered.
        numbering: Sequence numbering mode.
        workers: Documents processed in parallel.
        render: Presentation options passed to the renderer.
    """

    docs_dir: Path
    output_dir: Path | None = None
    exclude: frozenset[str] = frozenset({INDEX_DOCUMENT})
    recursive: bool = False
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    min_length: int = 10
    numbering: NumberingMode = NumberingMode.DENSE
    workers: int = 1
    render: RenderConfig = field(default_factory=RenderConfig)

    def __post_init__(self) -> None:
        """Normalize and validate configuration values."""
        self.docs_dir = Path(self.docs_dir)
        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)
        self.exclude = frozenset(self.exclude) | {INDEX_DOCUMENT}
        self.extensions = tuple(ext.lower() for ext in self.extensions)
        self.numbering = NumberingMode(self.numbering)
        if self.min_length < 0:
            raise ValueError(f"Minimum length must not be negative, got {self.min_length}")
        if self.workers < 1:
            raise ValueError(f"Workers must be at least 1, got {self.workers}")

    @classmethod
    def from_environment(cls, **overrides) -> BatchConfig:
        """Build a config from MDRENDER_* variables.

        Keyword arguments that are not None take precedence over the
        environment.
        """
        values = {
            "docs_dir": get_docs_dir(),
            "output_dir": get_environment(EnvVar.MDRENDER_OUTPUT_DIR),
            "exclude": get_exclusions(),
            "min_length": get_environment(EnvVar.MDRENDER_MIN_LENGTH),
            "workers": get_environment(EnvVar.MDRENDER_WORKERS),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class RenderJob(BaseModel):
    """One validated diagram paired with its target image.

    Attributes:
        document: Path of the source document.
        sequence: Number used in the output file name.
        diagram: The validated block.
        output_path: Image file to produce.
    """

    document: Path
    sequence: int
    diagram: ValidatedDiagram
    output_path: Path

    model_config = ConfigDict(frozen=True)

    def describe(self) -> dict:
        """JSON-friendly summary used by list-only mode."""
        return {
            "source": str(self.document),
            "line": self.diagram.candidate.line,
            "kind": self.diagram.kind.value if self.diagram.kind else None,
            "output": str(self.output_path),
        }


class DocumentResult(BaseModel):
    """Outcome for one document.

    Attributes:
        path: Document path.
        candidates: Fenced Mermaid blocks found.
        valid: Blocks that passed validation.
        results: One RenderResult per rendered block, in order.
        error: Why the document could not be read, if it could not.
    """

    path: Path
    candidates: int = 0
    valid: int = 0
    results: tuple[RenderResult, ...] = ()
    error: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def generated(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def status(self) -> DocumentStatus:
        if self.error is not None:
            return DocumentStatus.UNREADABLE
        if not self.results:
            return DocumentStatus.NO_DIAGRAMS
        if not self.failed:
            return DocumentStatus.RENDERED
        if not self.generated:
            return DocumentStatus.FAILED
        return DocumentStatus.PARTIAL


class RunReport(BaseModel):
    """Aggregate counters for a run, built by folding DocumentResults.

    Attributes:
        documents_scanned: Documents enumerated and processed.
        candidates_found: Fenced blocks found across all documents.
        valid_diagrams: Blocks that passed validation.
        images_generated: Images rendered successfully.
        images_failed: Renders that failed.
        documents: Per-document detail in enumeration order.
    """

    documents_scanned: int = 0
    candidates_found: int = 0
    valid_diagrams: int = 0
    images_generated: int = 0
    images_failed: int = 0
    documents: tuple[DocumentResult, ...] = ()

    model_config = ConfigDict(frozen=True)

    def add(self, result: DocumentResult) -> RunReport:
        """Return a new report that includes `result`."""
        return RunReport(
            documents_scanned=self.documents_scanned + 1,
            candidates_found=self.candidates_found + result.candidates,
            valid_diagrams=self.valid_diagrams + result.valid,
            images_generated=self.images_generated + result.generated,
            images_failed=self.images_failed + result.failed,
            documents=self.documents + (result,),
        )

    @classmethod
    def from_results(cls, results: list[DocumentResult]) -> RunReport:
        """Fold document results, in order, into one report."""
        return reduce(cls.add, results, cls())

    @property
    def has_failures(self) -> bool:
        return self.images_failed > 0 or any(d.error for d in self.documents)

    def to_manifest(self) -> dict[str, list[str]]:
        """Map each document to the images generated from it."""
        return {
            str(doc.path): [str(r.output_path) for r in doc.results if r.success]
            for doc in self.documents
            if doc.generated
        }

    def write_manifest(self, path: Path) -> None:
        """Write the manifest as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_manifest(), indent=2), encoding="utf-8")

    def print_summary(self, output_dir: Path | None = None) -> None:
        """Print a human-readable summary to stdout."""
        print("=== Generation Complete ===")
        print()
        print(f"Documents processed: {self.documents_scanned}")
        print(f"Diagrams found: {self.valid_diagrams} valid of {self.candidates_found} blocks")
        print(f"Successfully generated: {self.images_generated} images")
        if self.images_failed:
            print(f"Failed to generate: {self.images_failed} images")
            for doc in self.documents:
                for r in doc.results:
                    if not r.success:
                        print(f"  ! {r.output_path.name}: {r.error}")

        empty = [d.path.name for d in self.documents if d.status == DocumentStatus.NO_DIAGRAMS]
        if empty:
            print(f"No valid diagrams found in: {', '.join(empty)}")
        unreadable = [d for d in self.documents if d.status == DocumentStatus.UNREADABLE]
        for doc in unreadable:
            print(f"Could not read {doc.path.name}: {doc.error}")

        if output_dir is not None:
            print()
            print(f"Images saved in: {output_dir}")


# =============================================================================
# Discovery and naming
# =============================================================================


def discover_documents(
    root: Path,
    exclude: frozenset[str] | set[str] = frozenset({INDEX_DOCUMENT}),
    recursive: bool = False,
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS,
) -> list[Path]:
    """List documents under `root` in a stable order.

    Args:
        root: Directory to scan.
        exclude: File names, or paths relative to `root`, to skip, in
            addition to README.md.
        recursive: Include subdirectories.
        extensions: Accepted file extensions (case-insensitive).

    Returns:
        Document paths sorted by their path relative to `root`.

    Raises:
        NotADirectoryError: If `root` is not a directory.
    """
    root = Path(root)
    if not root.is_dir():
        raise NotADirectoryError(f"Documents directory not found: {root}")
    exclude = frozenset(exclude) | {INDEX_DOCUMENT}

    entries = root.rglob("*") if recursive else root.iterdir()
    documents = []
    for path in entries:
        if not path.is_file() or path.suffix.lower() not in extensions:
            continue
        relative = path.relative_to(root).as_posix()
        if path.name in exclude or relative in exclude:
            logger.debug(f"Excluded: {relative}")
            continue
        documents.append(path)
    return sorted(documents, key=lambda p: p.relative_to(root).as_posix())


def output_path_for(
    document: Path,
    sequence: int,
    docs_dir: Path,
    output_dir: Path | None = None,
    extension: str = "png",
) -> Path:
    """Image path for the `sequence`-th diagram of `document`.

    With an output directory, the document's location relative to
    `docs_dir` is mirrored beneath it. Documents outside `docs_dir` are
    placed directly in the output directory.
    """
    if output_dir is None:
        target_dir = document.parent
    elif document.parent.is_relative_to(docs_dir):
        target_dir = output_dir / document.parent.relative_to(docs_dir)
    else:
        target_dir = output_dir
    return target_dir / f"{document.stem}-{sequence}.{extension}"


# =============================================================================
# Orchestrator
# =============================================================================


class BatchRenderer:
    """Render every Mermaid diagram of a documentation tree.

    Attributes:
        renderer: Backend producing the images.
        config: Batch settings.
    """

    def __init__(self, renderer: DiagramRenderer, config: BatchConfig):
        self.renderer = renderer
        self.config = config

    def discover(self) -> list[Path]:
        """Documents selected by the configuration."""
        return discover_documents(
            self.config.docs_dir,
            exclude=self.config.exclude,
            recursive=self.config.recursive,
            extensions=self.config.extensions,
        )

    def plan_document(self, document: Document) -> tuple[int, list[RenderJob]]:
        """Extract, validate and name the diagrams of one document.

        Returns:
            Number of fenced blocks found, and the jobs for the valid ones.
        """
        candidates = extract_candidates(document)
        valid = validate_candidates(candidates, self.config.min_length)
        extension = self.config.render.output_format.value

        jobs = []
        for position, diagram in enumerate(valid, start=1):
            if self.config.numbering == NumberingMode.DENSE:
                sequence = position
            else:
                sequence = diagram.candidate.index
            jobs.append(
                RenderJob(
                    document=document.path,
                    sequence=sequence,
                    diagram=diagram,
                    output_path=output_path_for(
                        document.path,
                        sequence,
                        self.config.docs_dir,
                        self.config.output_dir,
                        extension,
                    ),
                )
            )
        return len(candidates), jobs

    def plan(self, documents: list[Path] | None = None) -> list[RenderJob]:
        """All render jobs for a run, without rendering anything."""
        paths = self.discover() if documents is None else documents
        jobs: list[RenderJob] = []
        for path in paths:
            _, document_jobs = self.plan_document(read_document(path))
            jobs.extend(document_jobs)
        return jobs

    def process_document(self, path: Path) -> DocumentResult:
        """Render all valid diagrams of one document, in order."""
        logger.info(f"Processing: {path.name}")
        try:
            document = read_document(path)
        except OSError as e:
            logger.error(f"  Could not read {path.name}: {e}")
            return DocumentResult(path=path, error=str(e))

        candidates, jobs = self.plan_document(document)
        if not jobs:
            logger.info("  No mermaid diagrams found")
            return DocumentResult(path=path, candidates=candidates)

        logger.info(f"  Found {len(jobs)} mermaid diagram(s)")
        results = []
        for job in jobs:
            name = job.output_path.name
            logger.info(f"    Generating: {name}")
            try:
                result = self.renderer.render(
                    job.diagram.source, job.output_path, self.config.render
                )
            except Exception as e:
                logger.debug(f"    Renderer raised while generating {name}", exc_info=True)
                result = RenderResult(
                    output_path=job.output_path,
                    success=False,
                    error=f"{type(e).__name__}: {e}",
                )
            if result.success:
                logger.info(f"    Generated: {name}")
            else:
                logger.error(
                    f"    Failed: {name} ({path.name} line {job.diagram.candidate.line}): {result.error}"
                )
            results.append(result)

        return DocumentResult(
            path=path,
            candidates=candidates,
            valid=len(jobs),
            results=tuple(results),
        )

    def run(self, documents: list[Path] | None = None) -> RunReport:
        """Process all documents and return the aggregate report.

        The renderer is checked once before any document is touched.

        Args:
            documents: Explicit document list; defaults to discovery.

        Raises:
            RendererUnavailableError: If the renderer cannot run at all.
        """
        self.renderer.require_available()
        logger.info(f"Renderer: {self.renderer.name} ({self.renderer.describe()})")

        paths = self.discover() if documents is None else list(documents)
        logger.info(f"Processing {len(paths)} markdown files...")

        groups = self._group_by_output(paths)
        if self.config.workers > 1 and len(groups) > 1:
            results = self._process_parallel(paths, groups)
        else:
            results = [self.process_document(path) for path in paths]
        return RunReport.from_results(results)

    def _output_key(self, path: Path) -> Path:
        """Directory and stem shared by all images of a document."""
        return output_path_for(
            path, 1, self.config.docs_dir, self.config.output_dir
        ).with_name(path.stem)

    def _group_by_output(self, paths: list[Path]) -> list[list[int]]:
        """Group document indices by the image names they would produce."""
        groups: dict[Path, list[int]] = {}
        for i, path in enumerate(paths):
            groups.setdefault(self._output_key(path), []).append(i)

        for key, members in groups.items():
            if len(members) > 1:
                names = ", ".join(paths[i].name for i in members)
                logger.warning(f"Documents share output names ({key.name}-N): {names}")
        return list(groups.values())

    def _process_parallel(
        self,
        paths: list[Path],
        groups: list[list[int]],
    ) -> list[DocumentResult]:
        """Process documents on a thread pool.

        Documents whose images would share names are handled one after
        another by the same worker, in enumeration order.
        """

        def process_group(indices: list[int]) -> list[tuple[int, DocumentResult]]:
            return [(i, self.process_document(paths[i])) for i in indices]

        ordered: list[DocumentResult | None] = [None] * len(paths)
        with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
            for group_results in pool.map(process_group, groups):
                for i, result in group_results:
                    ordered[i] = result
        return [r for r in ordered if r is not None]


__all__ = [
    "BatchConfig",
    "BatchRenderer",
    "DocumentResult",
    "DocumentStatus",
    "NumberingMode",
    "RenderJob",
    "RunReport",
    "discover_documents",
    "output_path_for",
]
