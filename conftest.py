"""Root pytest configuration.

This module provides:
- Environment setup (loads .env)
- Auto-skipping of tests that need a real Mermaid CLI or Kroki service
- Sample Markdown documents and a fake mmdc executable
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Tool Availability (Private Functions)
# =============================================================================


def _is_mmdc_available() -> bool:
    """Check if the configured Mermaid CLI runs."""
    from mdrender.render import MermaidCliRenderer

    return MermaidCliRenderer().is_available()


def _is_kroki_healthy() -> bool:
    """Check if the configured Kroki service is responding."""
    from mdrender.render import KrokiRenderer

    return KrokiRenderer().is_available()


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]):
    """Modify test collection based on available tools.

    Auto-skips tests marked with mmdc/kroki when the tool is unavailable.
    Availability is only probed when such tests were collected.
    """
    checks = {
        "mmdc": (_is_mmdc_available, "Mermaid CLI (mmdc) not available"),
        "kroki": (_is_kroki_healthy, "Kroki service not available"),
    }

    for marker, (probe, reason) in checks.items():
        marked = [item for item in items if marker in item.keywords]
        if not marked or probe():
            continue
        skip = pytest.mark.skip(reason=reason)
        for item in marked:
            item.add_marker(skip)


# =============================================================================
# Sample Documents
# =============================================================================


FENCE = "```"


@pytest.fixture
def clean_markdown() -> str:
    """Document with exactly one flowchart block.

    Returns:
        Markdown text.
    """
    return f"# Overview\n\nThe flow:\n\n{FENCE}mermaid\ngraph TD\n    A --> B\n{FENCE}\n\nDone.\n"


@pytest.fixture
def prose_markdown() -> str:
    """Document that only talks about the fence syntax.

    Returns:
        Markdown text without a real block.
    """
    return (
        "# Writing diagrams\n\n"
        "Wrap diagrams in a `mermaid` fence, for example "
        f"{FENCE}mermaid graph TD{FENCE} inline is not a block.\n"
    )


@pytest.fixture
def mixed_markdown() -> str:
    """Three blocks where the second declares an unknown kind.

    Returns:
        Markdown text.
    """
    return (
        "# Architecture\n\n"
        f"{FENCE}mermaid\nsequenceDiagram\n    Alice->>Bob: Hello\n{FENCE}\n\n"
        "An illustrative fragment:\n\n"
        f"{FENCE}mermaid\ndiagram LR\n    x --> y\n{FENCE}\n\n"
        f"{FENCE}mermaid\nerDiagram\n    USER ||--o{{ ORDER : places\n{FENCE}\n"
    )


# =============================================================================
# Fake Mermaid CLI
# =============================================================================


FAKE_MMDC = '''#!{python}
"""Stand-in for the Mermaid CLI used by tests."""
import json
import os
import sys

args = sys.argv[1:]
if "--version" in args:
    print("10.9.1")
    sys.exit(0)

log_path = os.environ.get("FAKE_MMDC_LOG")
if log_path:
    with open(log_path, "a", encoding="utf-8") as log:
        log.write(json.dumps(args) + "\\n")

opts = dict(zip(args[::2], args[1::2]))
with open(opts["-i"], encoding="utf-8") as handle:
    source = handle.read()

if "FAIL" in source:
    print("Error: Parse error on line 2:", file=sys.stderr)
    print("Expecting 'NODE_STRING', got 'FAIL'", file=sys.stderr)
    sys.exit(1)
if "NOOUTPUT" in source:
    sys.exit(0)

with open(opts["-o"], "wb") as out:
    out.write(b"\\x89PNG\\r\\n\\x1a\\n" + source.encode("utf-8"))
'''


@pytest.fixture
def fake_mmdc(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Executable that mimics mmdc.

    Writes a fake PNG containing the source, fails with exit code 1 when the
    source contains ``FAIL`` and exits 0 without output for ``NOOUTPUT``.
    Appends each argv as a JSON line to ``$FAKE_MMDC_LOG`` when set.

    Returns:
        Path to the executable.
    """
    path = tmp_path_factory.mktemp("bin") / "mmdc"
    path.write_text(FAKE_MMDC.format(python=sys.executable), encoding="utf-8")
    path.chmod(0o755)
    return path


@pytest.fixture
def missing_mmdc(tmp_path: Path) -> Path:
    """Path to an mmdc that does not exist.

    Returns:
        Non-existent executable path.
    """
    return tmp_path / "no-such-dir" / "mmdc"
