"""
pickport Core: configuration, candidates, resolution, navigation and export.

Re-exports the primary classes for convenience::

    from pickport.core import Candidate, LocationResolver, GroupedExporter
"""

from pickport.core.config import PickportConfig
from pickport.core.engine import (
    Anchor,
    Candidate,
    CandidateKind,
    Container,
    DecorationRange,
    DurableRef,
    LazyRef,
    LocationResolver,
    Workspace,
    strip_decorations,
)
from pickport.core.export import (
    FlatExporter,
    GroupedExporter,
    ReportBuffer,
    ReportEntry,
    ReportFormatter,
    XrefExporter,
    XrefItem,
    filter_items,
    parse_grep_line,
)
from pickport.core.navigate import Viewport, jump, preview

__all__ = [
    "PickportConfig",
    "Anchor",
    "Candidate",
    "CandidateKind",
    "Container",
    "DecorationRange",
    "DurableRef",
    "LazyRef",
    "LocationResolver",
    "Workspace",
    "strip_decorations",
    "FlatExporter",
    "GroupedExporter",
    "ReportBuffer",
    "ReportEntry",
    "ReportFormatter",
    "XrefExporter",
    "XrefItem",
    "filter_items",
    "parse_grep_line",
    "Viewport",
    "jump",
    "preview",
]
