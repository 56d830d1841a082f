"""Diagram block validation.

Separates genuine Mermaid definitions from fenced blocks that only look like
one (placeholders, illustrative fragments). Rejection is an expected outcome
and is never reported as an error.
"""

import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict

from mdrender.extract import DiagramCandidate

logger = logging.getLogger(__name__)

DEFAULT_MIN_LENGTH = 10


class DiagramKind(str, Enum):
    """Mermaid diagram grammars accepted for rendering.

    The value is the keyword a block must start with.
    """

    GRAPH = "graph"
    FLOWCHART = "flowchart"
    SEQUENCE = "sequenceDiagram"
    CLASS = "classDiagram"
    STATE = "stateDiagram"
    STATE_V2 = "stateDiagram-v2"
    ER = "erDiagram"
    GANTT = "gantt"
    PIE = "pie"
    GIT_GRAPH = "gitGraph"
    MINDMAP = "mindmap"

    @classmethod
    def from_source(cls, source: str) -> "DiagramKind | None":
        """Look up the kind declared at the start of a block.

        Matching is by prefix from the first non-whitespace character; the
        longest keyword wins so versioned variants are told apart.

        Args:
            source: Block text.

        Returns:
            Matching kind, or None if the block declares no known kind.
        """
        text = source.lstrip()
        for kind in sorted(cls, key=lambda k: len(k.value), reverse=True):
            if text.startswith(kind.value):
                return kind
        return None


class ValidatedDiagram(BaseModel):
    """A candidate with its validation outcome.

    Attributes:
        candidate: The extracted block.
        valid: Whether the block should be rendered.
        kind: Declared diagram kind; None unless the block is valid.
    """

    candidate: DiagramCandidate
    valid: bool
    kind: DiagramKind | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def source(self) -> str:
        return self.candidate.source


def is_valid_diagram(source: str, min_length: int = DEFAULT_MIN_LENGTH) -> bool:
    """Check whether a block is long enough and declares a known kind."""
    text = source.strip()
    return len(text) > min_length and DiagramKind.from_source(text) is not None


def validate_candidate(
    candidate: DiagramCandidate,
    min_length: int = DEFAULT_MIN_LENGTH,
) -> ValidatedDiagram:
    """Validate one extracted block.

    Args:
        candidate: Extracted block.
        min_length: Blocks must be strictly longer than this after trimming.

    Returns:
        ValidatedDiagram carrying the verdict and the kind.
    """
    text = candidate.source.strip()
    kind = DiagramKind.from_source(text)
    valid = len(text) > min_length and kind is not None
    if not valid:
        logger.debug(
            f"Skipping block {candidate.index} of {candidate.document} "
            f"(line {candidate.line}): not a diagram definition"
        )
    return ValidatedDiagram(candidate=candidate, valid=valid, kind=kind if valid else None)


def validate_candidates(
    candidates: list[DiagramCandidate],
    min_length: int = DEFAULT_MIN_LENGTH,
) -> list[ValidatedDiagram]:
    """Validate blocks and keep the valid ones in extraction order."""
    results = [validate_candidate(c, min_length) for c in candidates]
    return [r for r in results if r.valid]


__all__ = [
    "DEFAULT_MIN_LENGTH",
    "DiagramKind",
    "ValidatedDiagram",
    "validate_candidate",
    "validate_candidates",
    "is_valid_diagram",
]
