"""
pickport Client Facade

Single entry point for programmatic use of pickport.  Owns one workspace
(the open containers), one resolver (and therefore the resolution cache)
and one viewport, and wires the exporters to them.

Usage::

    from pickport import Pickport

    client = Pickport()
    client.open(["./src"])

    # Candidates from a search session
    candidates = line_candidates(client.workspace, r"TODO")

    # Pick one ...
    client.jump(candidates[0])

    # ... or export them all
    buf = client.export(candidates)
    print(buf.render())
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from pickport.core.config import PickportConfig
from pickport.core.engine import (
    Candidate, CandidateKind, Container, DurableRef, LocationResolver, Workspace,
)
from pickport.core.export import (
    Fetcher, FlatExporter, GroupedExporter, ReportBuffer, Transform, XrefExporter,
)
from pickport.core.navigate import Viewport, goto_location, jump, preview
from pickport.core.sources import load_paths
from pickport.exceptions import NoCandidatesError, PickportError

logger = logging.getLogger(__name__)


# Which exporter handles which kind of candidate list.
EXPORTERS: Dict[CandidateKind, str] = {
    CandidateKind.LINE_MATCH: "export_lines",
    CandidateKind.GREP_MATCH: "export_grep",
    CandidateKind.XREF_ITEM: "export_xref",
}


class Pickport:
    """
    High-level pickport client.

    Each instance carries its own :class:`PickportConfig`, workspace and
    resolution cache and never touches global state.

    Args:
        config: Explicit configuration object.  When *None*, a config
            is built from environment variables or keyword overrides.
        validate_on_init: If True, call :meth:`PickportConfig.validate`
            in __init__ so a bad setting surfaces immediately.
        **kwargs: Forwarded to :class:`PickportConfig` when *config* is
            ``None`` (e.g. ``line_number_width=5``).
    """

    def __init__(
        self,
        config: PickportConfig | None = None,
        *,
        validate_on_init: bool = False,
        **kwargs,
    ):
        if config is not None:
            self._config = config
        elif kwargs:
            # Build a config from env, then overlay keyword overrides
            base = PickportConfig.from_env()
            merged = {
                f.name: kwargs.get(f.name, getattr(base, f.name))
                for f in base.__dataclass_fields__.values()
            }
            self._config = PickportConfig(**merged)
        else:
            self._config = PickportConfig.from_env()

        if validate_on_init:
            self._config.validate()

        self._workspace = Workspace()
        self._resolver = LocationResolver(self._workspace, self._config)
        self._viewport = Viewport()

    # ── Accessors ─────────────────────────────────────────────────

    @property
    def config(self) -> PickportConfig:
        """The active configuration for this client."""
        return self._config

    @property
    def workspace(self) -> Workspace:
        return self._workspace

    @property
    def resolver(self) -> LocationResolver:
        return self._resolver

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    # ── Containers ────────────────────────────────────────────────

    def open(self, paths: Sequence[str | Path]) -> List[Container]:
        """Load files (or whole directories) into the workspace."""
        return load_paths(self._workspace, [Path(p) for p in paths], self._config)

    def open_text(self, name: str, text: str) -> Container:
        """Register an in-memory container called *name*."""
        return self._workspace.add(Container.from_text(name, text))

    # ── Resolution & navigation ───────────────────────────────────

    def resolve(self, candidate: Candidate) -> DurableRef:
        """Durable location of *candidate*; raises ``ResolutionError``."""
        return self._resolver.resolve(candidate)

    def upgrade(self, candidates: Sequence[Candidate], *, show_progress: bool = False) -> None:
        """Promote lazy references before *candidates* outlive their session."""
        self._resolver.upgrade(candidates, show_progress=show_progress)

    def jump(self, candidate: Candidate) -> DurableRef:
        """Move the viewport to *candidate* and flash its line."""
        return jump(self._resolver, candidate, self._viewport, self._config)

    @contextmanager
    def preview(self, candidate: Candidate) -> Iterator[DurableRef]:
        """Show *candidate* inside a ``with`` block, then restore the viewport."""
        with preview(self._resolver, candidate, self._viewport, self._config) as loc:
            yield loc

    def visit(self, buffer: ReportBuffer, index: int | None = None) -> DurableRef:
        """Jump to the entry at *index* (default: point) of a report buffer."""
        location = buffer.location(index)
        return goto_location(location, self._viewport, self._config.highlight_seconds)

    # ── Export ────────────────────────────────────────────────────

    def export_lines(self, candidates: Sequence[Candidate]) -> ReportBuffer:
        """Grouped, editable occur-style report of line matches."""
        return GroupedExporter(self._resolver, self._config).export(candidates)

    def export_grep(self, lines: Sequence[str] | Sequence[Candidate],
                    rerun: Callable[[], Sequence[str]] | None = None) -> ReportBuffer:
        """Flat grep-style report; *lines* may be strings or grep candidates."""
        text = [ln.stripped() if isinstance(ln, Candidate) else ln for ln in lines]
        return FlatExporter(self._workspace, self._config).export(text, rerun=rerun)

    def export_xref(self, candidates: Sequence[Candidate], fetcher: Fetcher | None = None,
                    query: str = "", transform: Transform | None = None) -> ReportBuffer:
        """Reference listing recovered by re-running *fetcher* with *query*."""
        return XrefExporter(self._workspace, self._config).export(
            candidates, fetcher, query, transform,
        )

    def export(self, candidates: Sequence[Candidate], *,
               kind: Optional[CandidateKind] = None, **kwargs) -> ReportBuffer:
        """
        Export *candidates* with the exporter registered for their kind.

        The kind of the first candidate decides unless *kind* is given.
        Extra keyword arguments go to the chosen exporter.

        Raises:
            NoCandidatesError: The list is empty and no *kind* was given.
            PickportError: No exporter handles the kind.
        """
        if kind is None:
            if not candidates:
                raise NoCandidatesError("Nothing to export")
            kind = candidates[0].kind
        method = EXPORTERS.get(kind)
        if method is None:
            raise PickportError(f"No exporter for {kind.value} candidates")
        logger.debug(f"Exporting {len(candidates)} {kind.value} candidate(s) via {method}")
        return getattr(self, method)(candidates, **kwargs)

    # ── Health ────────────────────────────────────────────────────

    def health(self) -> Dict[str, object]:
        """
        Small status dict: version, open containers and cached resolutions.

        ``resolved`` counts only candidates that are still alive; the cache
        is keyed weakly on candidate identity.
        """
        from pickport import __version__

        return {
            "version": __version__,
            "containers": len(self._workspace),
            "buffers": len(self._workspace.buffers),
            "resolved": len(self._resolver),
        }
