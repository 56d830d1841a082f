"""Fenced Mermaid block extraction.

A block opens with ```` ```mermaid ```` at the start of a line and closes at
the nearest following line-initial ```` ``` ````. Fences that are indented or
appear mid-line (prose that talks about the syntax, nested code samples) never
open or close a block.
"""

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

FENCE_PATTERN = re.compile(
    r"^```mermaid\s*\n(?P<code>.*?)^```",
    re.MULTILINE | re.DOTALL,
)


class Document(BaseModel):
    """A Markdown document loaded for one run.

    Attributes:
        path: Location of the document on disk.
        text: Full document text.
    """

    path: Path
    text: str

    model_config = ConfigDict(frozen=True)

    @property
    def name(self) -> str:
        """File name including extension (used for exclusions and logs)."""
        return self.path.name

    @property
    def stem(self) -> str:
        """Base identifier used to name generated images."""
        return self.path.stem


class DiagramCandidate(BaseModel):
    """A fenced Mermaid block found in a document.

    Attributes:
        document: Stem of the source document.
        index: 1-based position among all blocks of the document.
        source: Block body with surrounding whitespace trimmed.
        line: 1-based line number of the opening fence.
    """

    document: str
    index: int = Field(ge=1)
    source: str
    line: int = Field(ge=1)

    model_config = ConfigDict(frozen=True)


def read_document(path: Path | str) -> Document:
    """Load a document as UTF-8, replacing undecodable bytes."""
    path = Path(path)
    text = path.read_text(encoding="utf-8", errors="replace")
    return Document(path=path, text=text)


def extract_blocks(text: str) -> list[str]:
    """Return the trimmed bodies of all Mermaid blocks in document order."""
    return [match.group("code").strip() for match in FENCE_PATTERN.finditer(text)]


def extract_candidates(document: Document) -> list[DiagramCandidate]:
    """Extract every Mermaid block of a document as numbered candidates.

    Numbering covers all blocks regardless of whether they later pass
    validation.

    Args:
        document: Loaded document.

    Returns:
        Candidates in the order they appear in the text.
    """
    candidates: list[DiagramCandidate] = []
    for index, match in enumerate(FENCE_PATTERN.finditer(document.text), start=1):
        line = document.text.count("\n", 0, match.start()) + 1
        candidates.append(
            DiagramCandidate(
                document=document.stem,
                index=index,
                source=match.group("code").strip(),
                line=line,
            )
        )
    return candidates


__all__ = [
    "FENCE_PATTERN",
    "DiagramCandidate",
    "Document",
    "extract_blocks",
    "extract_candidates",
    "read_document",
]
