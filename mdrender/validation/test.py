"""Tests for diagram validation."""

import pytest

from mdrender.extract import DiagramCandidate
from mdrender.validation import (
    DiagramKind,
    is_valid_diagram,
    validate_candidate,
    validate_candidates,
)


def _candidate(source: str, index: int = 1) -> DiagramCandidate:
    return DiagramCandidate(document="doc", index=index, source=source, line=1)


class TestDiagramKind:
    """Tests for kind lookup."""

    @pytest.mark.unit
    @pytest.mark.parametrize("kind", list(DiagramKind))
    def test_every_kind_recognised(self, kind):
        """Each keyword maps back to its own member."""
        assert DiagramKind.from_source(f"{kind.value}\n  body") is kind

    @pytest.mark.unit
    def test_versioned_state_diagram(self):
        """The versioned variant is tagged separately."""
        assert DiagramKind.from_source("stateDiagram-v2\n  [*] --> A") is DiagramKind.STATE_V2
        assert DiagramKind.from_source("stateDiagram\n  [*] --> A") is DiagramKind.STATE

    @pytest.mark.unit
    def test_leading_whitespace_ignored(self):
        """Lookup starts at the first non-whitespace character."""
        assert DiagramKind.from_source("\n   graph LR") is DiagramKind.GRAPH

    @pytest.mark.unit
    def test_unknown_keyword(self):
        """Unknown first tokens have no kind."""
        assert DiagramKind.from_source("diagram LR\n a --> b") is None

    @pytest.mark.unit
    def test_case_sensitive(self):
        """Keywords are matched exactly."""
        assert DiagramKind.from_source("Graph TD\n A --> B") is None


class TestIsValidDiagram:
    """Tests for the validity predicate."""

    @pytest.mark.unit
    @pytest.mark.parametrize("source", ["", "graph", "graph TD A", "pie   \n  x "])
    def test_short_blocks_rejected(self, source):
        """Ten characters or fewer after trimming is never valid."""
        assert len(source.strip()) <= 10
        assert is_valid_diagram(source) is False

    @pytest.mark.unit
    def test_exactly_threshold_rejected(self):
        """The threshold is exclusive."""
        assert is_valid_diagram("graph TD;A") is False
        assert is_valid_diagram("graph TD;AB") is True

    @pytest.mark.unit
    def test_long_unknown_rejected(self):
        """Length alone is not enough."""
        assert is_valid_diagram("journey\n  title My working day\n") is False

    @pytest.mark.unit
    def test_custom_threshold(self):
        """The threshold is configurable."""
        assert is_valid_diagram("graph TD\n A --> B", min_length=40) is False
        assert is_valid_diagram("graph TD", min_length=0) is True


class TestValidateCandidates:
    """Tests for candidate validation."""

    @pytest.mark.unit
    def test_valid_candidate_has_kind(self):
        """Valid blocks carry their kind."""
        result = validate_candidate(_candidate("flowchart LR\n  a --> b"))
        assert result.valid is True
        assert result.kind is DiagramKind.FLOWCHART
        assert result.source == "flowchart LR\n  a --> b"

    @pytest.mark.unit
    def test_short_candidate_has_no_kind(self):
        """Blocks that are too short carry no kind tag."""
        result = validate_candidate(_candidate("pie"))
        assert result.valid is False
        assert result.kind is None

    @pytest.mark.unit
    def test_filter_preserves_order(self):
        """Invalid blocks are dropped, order kept."""
        candidates = [
            _candidate("sequenceDiagram\n A->>B: hi", 1),
            _candidate("diagram LR\n x --> y", 2),
            _candidate("erDiagram\n A ||--o{ B : has", 3),
        ]
        valid = validate_candidates(candidates)
        assert [v.candidate.index for v in valid] == [1, 3]

    @pytest.mark.unit
    def test_rejection_not_logged_as_warning(self, caplog):
        """Rejected blocks never produce warnings."""
        with caplog.at_level("INFO"):
            validate_candidates([_candidate("diagram LR\n x --> y")])
        assert caplog.records == []
