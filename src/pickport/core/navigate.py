"""
pickport Jump / Preview

Move a viewport to a resolved location and flash the target line.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple

from pickport.core.config import PickportConfig
from pickport.core.engine import Candidate, Container, DurableRef, LocationResolver

logger = logging.getLogger(__name__)


@dataclass
class Highlight:
    """A transient highlight covering one full line."""
    container: Container
    line: int
    start: int
    end: int
    expires_at: float


class Viewport:
    """
    The editor surface a jump lands in.

    Tracks which container is shown, the line the cursor sits on, and at
    most one transient highlight.  *clock* is injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.container: Optional[Container] = None
        self.line: Optional[int] = None
        self._highlight: Optional[Highlight] = None

    @property
    def position(self) -> Tuple[Optional[Container], Optional[int]]:
        return self.container, self.line

    def show(self, container: Container, line: int) -> None:
        self.container = container
        self.line = line

    def restore(self, position: Tuple[Optional[Container], Optional[int]]) -> None:
        self.container, self.line = position
        self._highlight = None

    def highlight(self, container: Container, line: int, duration: float) -> Highlight:
        """Highlight the whole of *line* for *duration* seconds."""
        self._highlight = Highlight(
            container=container,
            line=line,
            start=0,
            end=len(container.line(line)),
            expires_at=self._clock() + duration,
        )
        return self._highlight

    @property
    def active_highlight(self) -> Optional[Highlight]:
        """The current highlight, or None once it has expired."""
        if self._highlight is not None and self._clock() >= self._highlight.expires_at:
            self._highlight = None
        return self._highlight


def goto_location(location: DurableRef, viewport: Viewport,
                  highlight_seconds: float) -> DurableRef:
    """Show *location* in *viewport* and flash its line."""
    viewport.show(location.container, location.line)
    viewport.highlight(location.container, location.line, highlight_seconds)
    logger.debug(f"Jumped to {location.container_id}:{location.line}")
    return location


def jump(resolver: LocationResolver, candidate: Candidate, viewport: Viewport,
         config: PickportConfig | None = None) -> DurableRef:
    """
    Resolve *candidate* and move *viewport* to it.

    Raises:
        ResolutionError: Propagated unchanged; a failed jump is the
            operation's failure.
    """
    cfg = config or PickportConfig()
    return goto_location(resolver.resolve(candidate), viewport, cfg.highlight_seconds)


@contextmanager
def preview(resolver: LocationResolver, candidate: Candidate, viewport: Viewport,
            config: PickportConfig | None = None) -> Iterator[DurableRef]:
    """
    Jump to *candidate* for the duration of the ``with`` block, then put the
    viewport back where it was.

    Usage::

        with preview(resolver, cand, viewport) as loc:
            render(viewport)
    """
    saved = viewport.position
    try:
        yield jump(resolver, candidate, viewport, config)
    finally:
        viewport.restore(saved)
