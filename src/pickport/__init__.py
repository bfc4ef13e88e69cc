"""
pickport: turn live search candidates into durable, navigable reports.

The ``pickport`` package sits between an interactive search session and a
"pick a candidate, then act on it" framework.  It resolves candidates to
source locations that survive the session, strips display-only decoration,
and exports whole candidate lists into grouped, flat or cross-reference
report buffers.

Quick start (programmatic API)::

    from pickport import Pickport
    from pickport.core.sources import line_candidates

    client = Pickport()
    client.open(["./src"])
    candidates = line_candidates(client.workspace, r"def \\w+")
    buf = client.export(candidates)
    print(buf.render())

Quick start (CLI)::

    pickport lines "def \\w+" ./src
    rg --vimgrep TODO | pickport grep
"""

__version__ = "1.0.0"

# Primary public API: the Pickport facade
from pickport.client import Pickport

# Configuration
from pickport.core.config import PickportConfig

# Core data types that callers interact with
from pickport.core.engine import Candidate, CandidateKind, DecorationRange, LazyRef
from pickport.core.export import ReportBuffer, XrefItem

# Exception hierarchy
from pickport.exceptions import (
    ConfigError,
    NoCandidatesError,
    PickportError,
    ReportEditError,
    ResolutionError,
)

__all__ = [
    "__version__",
    # Facade
    "Pickport",
    # Config
    "PickportConfig",
    # Data types
    "Candidate",
    "CandidateKind",
    "DecorationRange",
    "LazyRef",
    "ReportBuffer",
    "XrefItem",
    # Exceptions
    "PickportError",
    "ConfigError",
    "ResolutionError",
    "NoCandidatesError",
    "ReportEditError",
]
