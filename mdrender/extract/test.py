"""Tests for Mermaid block extraction."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from mdrender.extract import (
    DiagramCandidate,
    Document,
    extract_blocks,
    extract_candidates,
    read_document,
)

FENCE = "```"


def _document(text: str, name: str = "guide.md") -> Document:
    return Document(path=Path("docs") / name, text=text)


class TestExtractBlocks:
    """Tests for the fence pattern."""

    @pytest.mark.unit
    def test_single_block(self, clean_markdown):
        """A clean document yields its one block, trimmed."""
        assert extract_blocks(clean_markdown) == ["graph TD\n    A --> B"]

    @pytest.mark.unit
    def test_prose_mention_yields_nothing(self, prose_markdown):
        """Inline fence text inside a sentence is not a block."""
        assert extract_blocks(prose_markdown) == []

    @pytest.mark.unit
    def test_no_blocks(self):
        """Plain text yields an empty list."""
        assert extract_blocks("# Title\n\nNothing here.\n") == []

    @pytest.mark.unit
    def test_multiple_blocks_non_greedy(self):
        """Each block stops at its nearest closing fence."""
        text = (
            f"{FENCE}mermaid\npie\n    \"a\" : 1\n{FENCE}\n"
            "between\n"
            f"{FENCE}mermaid\ngantt\n    title Plan\n{FENCE}\n"
        )
        assert extract_blocks(text) == ['pie\n    "a" : 1', "gantt\n    title Plan"]

    @pytest.mark.unit
    def test_indented_closing_fence_does_not_terminate(self):
        """Capture extends past indented fences to the next line-initial one."""
        text = (
            f"{FENCE}mermaid\n"
            "graph TD\n"
            f"    A --> B\n"
            f"    {FENCE}\n"
            "    C --> D\n"
            f"{FENCE}\n"
        )
        (block,) = extract_blocks(text)
        assert block.endswith("C --> D")
        assert f"    {FENCE}" in block

    @pytest.mark.unit
    def test_mid_line_fence_does_not_terminate(self):
        """A fence in the middle of a line is part of the block."""
        text = f"{FENCE}mermaid\ngraph LR\n    A[\"uses {FENCE}\"] --> B\n{FENCE}\n"
        assert extract_blocks(text) == [f'graph LR\n    A["uses {FENCE}"] --> B']

    @pytest.mark.unit
    def test_indented_opening_fence_ignored(self):
        """Nested samples with indented fences are not blocks."""
        text = f"- example:\n\n    {FENCE}mermaid\n    graph TD\n    {FENCE}\n"
        assert extract_blocks(text) == []

    @pytest.mark.unit
    def test_other_languages_ignored(self):
        """Only mermaid fences are captured."""
        text = f"{FENCE}python\nprint('graph TD')\n{FENCE}\n"
        assert extract_blocks(text) == []

    @pytest.mark.unit
    def test_trailing_space_after_tag(self):
        """Whitespace after the tag is tolerated."""
        text = f"{FENCE}mermaid   \nmindmap\n  root\n{FENCE}\n"
        assert extract_blocks(text) == ["mindmap\n  root"]

    @pytest.mark.unit
    def test_empty_block(self):
        """An empty fence pair yields an empty string."""
        assert extract_blocks(f"{FENCE}mermaid\n{FENCE}\n") == [""]


class TestExtractCandidates:
    """Tests for candidate numbering."""

    @pytest.mark.unit
    def test_numbers_all_blocks(self, mixed_markdown):
        """Indices cover every block, valid or not."""
        candidates = extract_candidates(_document(mixed_markdown, "arch.md"))
        assert [c.index for c in candidates] == [1, 2, 3]
        assert all(c.document == "arch" for c in candidates)
        assert candidates[1].source.startswith("diagram LR")

    @pytest.mark.unit
    def test_line_numbers(self, clean_markdown):
        """Line number points at the opening fence."""
        (candidate,) = extract_candidates(_document(clean_markdown))
        assert candidate.line == 5

    @pytest.mark.unit
    def test_candidates_are_frozen(self, clean_markdown):
        """Candidates cannot be mutated after extraction."""
        (candidate,) = extract_candidates(_document(clean_markdown))
        assert isinstance(candidate, DiagramCandidate)
        with pytest.raises(ValidationError):
            candidate.index = 7


class TestReadDocument:
    """Tests for document loading."""

    @pytest.mark.unit
    def test_read_document(self, tmp_path, clean_markdown):
        """Documents expose name and stem."""
        path = tmp_path / "flows.md"
        path.write_text(clean_markdown, encoding="utf-8")
        document = read_document(path)
        assert document.name == "flows.md"
        assert document.stem == "flows"
        assert document.text == clean_markdown

    @pytest.mark.unit
    def test_undecodable_bytes_replaced(self, tmp_path):
        """Bad bytes do not abort the read."""
        path = tmp_path / "broken.md"
        path.write_bytes(b"# Title \xff\xfe\n")
        document = read_document(path)
        assert document.text.startswith("# Title")
