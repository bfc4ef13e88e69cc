"""
Shared fixtures for the pickport test suite.
"""

import sys
from pathlib import Path

import pytest

# Ensure the src/ directory is on the import path so that
# pickport.core.engine / pickport.core.export / etc. can be imported.
SRC_ROOT = Path(__file__).resolve().parent.parent / "src"
sys.path.insert(0, str(SRC_ROOT))

from pickport.core.config import PickportConfig  # noqa: E402
from pickport.core.engine import (  # noqa: E402
    Candidate,
    CandidateKind,
    Container,
    DecorationRange,
    LazyRef,
    LocationResolver,
    Workspace,
)

MARKER = "▸ "


def make_candidate(container: str, line: int, text: str,
                   kind: CandidateKind = CandidateKind.LINE_MATCH) -> Candidate:
    """A line-match candidate whose display starts with a decorated marker."""
    return Candidate(
        display=MARKER + text,
        kind=kind,
        ref=LazyRef(container, line),
        decorations=(DecorationRange(0, len(MARKER)),),
    )


# =============================================================================
# Fixtures: workspace with two in-memory containers
# =============================================================================

@pytest.fixture
def config() -> PickportConfig:
    return PickportConfig()


@pytest.fixture
def workspace() -> Workspace:
    """Workspace holding ``foo`` (20 lines) and ``bar`` (8 lines)."""
    ws = Workspace()
    ws.add(Container("foo", [f"foo line {n}" for n in range(1, 21)]))
    ws.add(Container("bar", [f"bar line {n}" for n in range(1, 9)]))
    return ws


@pytest.fixture
def resolver(workspace, config) -> LocationResolver:
    return LocationResolver(workspace, config)


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """
    Create a temporary project directory with a couple of source files
    for integration tests.
    """
    src = tmp_path / "src"
    src.mkdir()
    (src / "app.py").write_text(
        "def parse_config(path):\n"
        "    return load(path)\n"
        "\n"
        "def main():\n"
        "    cfg = parse_config('app.toml')\n"
        "    return cfg\n",
        encoding="utf-8",
    )
    (src / "util.py").write_text(
        "# helpers\n"
        "def load(path):\n"
        "    # TODO cache parse_config results\n"
        "    return open(path).read()\n",
        encoding="utf-8",
    )

    # Excluded directory (should be ignored)
    excluded = tmp_path / "__pycache__"
    excluded.mkdir()
    (excluded / "app.cpython-312.pyc").write_bytes(b"fake bytecode")

    return tmp_path
