"""
pickport Core Engine

Candidate data model, text containers with change-tracking anchors,
decoration stripping, and candidate-to-location resolution.

Candidates are produced by a live search session and carry their location
as a *lazy* reference (container name + approximate line).  Resolution
promotes a lazy reference to a *durable* one (an anchor that follows edits
to its container) and caches the result per candidate identity.
"""

import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from tqdm import tqdm

from pickport.core.config import PickportConfig
from pickport.exceptions import ResolutionError

# Application code (CLI) is responsible for configuring logging.
logger = logging.getLogger(__name__)


# =============================================================================
# Containers and anchors
# =============================================================================

class Anchor:
    """A line position inside a :class:`Container` that follows edits.

    The anchor holds a strong reference to its container, so the container
    stays usable for as long as the anchor lives, even after it has been
    closed in the workspace.
    """

    def __init__(self, container: "Container", line: int):
        self.container = container
        self.line = line

    def __repr__(self) -> str:
        return f"Anchor({self.container.name!r}, line={self.line})"


class Container:
    """A named, line-oriented unit of source text (an open file, a buffer).

    Lines are 1-based.  Every edit made through :meth:`insert_lines`,
    :meth:`delete_lines` or :meth:`replace_line` moves the anchors that were
    created with :meth:`anchor` so they keep pointing at the same text.
    """

    def __init__(self, name: str, lines: Iterable[str] = (), path: Optional[str] = None):
        self.name = name
        self.path = path
        self._lines: List[str] = list(lines)
        self._anchors: "weakref.WeakSet[Anchor]" = weakref.WeakSet()

    @classmethod
    def from_text(cls, name: str, text: str, path: Optional[str] = None) -> "Container":
        return cls(name, text.splitlines(), path=path)

    def __len__(self) -> int:
        return len(self._lines)

    def __repr__(self) -> str:
        return f"Container({self.name!r}, lines={len(self._lines)})"

    @property
    def lines(self) -> Tuple[str, ...]:
        return tuple(self._lines)

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    def line(self, number: int) -> str:
        """Return the text of 1-based line *number*."""
        if not 1 <= number <= len(self._lines):
            raise IndexError(f"line {number} outside 1..{len(self._lines)} in {self.name}")
        return self._lines[number - 1]

    def anchor(self, line: int) -> Anchor:
        """Create an anchor at *line* that tracks future edits."""
        anchor = Anchor(self, line)
        self._anchors.add(anchor)
        return anchor

    # ── Editing ───────────────────────────────────────────────────

    def insert_lines(self, before: int, lines: Sequence[str]) -> None:
        """Insert *lines* so the first one becomes line *before*."""
        if not 1 <= before <= len(self._lines) + 1:
            raise IndexError(f"cannot insert before line {before} in {self.name}")
        count = len(lines)
        self._lines[before - 1:before - 1] = list(lines)
        for anchor in self._anchors:
            if anchor.line >= before:
                anchor.line += count

    def delete_lines(self, start: int, count: int = 1) -> None:
        """Delete *count* lines starting at *start*.

        Anchors inside the deleted range collapse onto *start*.
        """
        if count < 1 or not 1 <= start <= len(self._lines) - count + 1:
            raise IndexError(f"cannot delete {count} line(s) at {start} in {self.name}")
        del self._lines[start - 1:start - 1 + count]
        end = start + count
        for anchor in self._anchors:
            if anchor.line >= end:
                anchor.line -= count
            elif anchor.line >= start:
                anchor.line = max(1, min(start, len(self._lines)))

    def replace_line(self, number: int, text: str) -> None:
        self.line(number)
        self._lines[number - 1] = text


class Workspace:
    """Registry of open containers and of the report buffers built from them.

    A container's identity is its name.  Closing a container removes it from
    lookup (lazy references to it stop resolving) but leaves anchors that
    were already created intact.
    """

    def __init__(self):
        self._containers: Dict[str, Container] = {}
        self._buffers: Dict[str, Any] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._containers

    def __iter__(self) -> Iterator[Container]:
        return iter(list(self._containers.values()))

    def __len__(self) -> int:
        return len(self._containers)

    def add(self, container: Container) -> Container:
        """Register *container*, replacing any container with the same name."""
        self._containers[container.name] = container
        return container

    def get(self, name: str) -> Optional[Container]:
        return self._containers.get(name)

    def close(self, name: str) -> Optional[Container]:
        """Remove the container called *name* from the workspace."""
        return self._containers.pop(name, None)

    # ── Report buffers ────────────────────────────────────────────

    def generate_buffer_name(self, base: str) -> str:
        """Return *base*, or ``base<N>`` when that name is already taken."""
        if base not in self._buffers:
            return base
        n = 2
        while f"{base}<{n}>" in self._buffers:
            n += 1
        return f"{base}<{n}>"

    def add_buffer(self, buffer) -> None:
        self._buffers[buffer.name] = buffer

    def buffer(self, name: str):
        return self._buffers.get(name)

    @property
    def buffers(self) -> List[Any]:
        return list(self._buffers.values())


# =============================================================================
# Location references
# =============================================================================

@dataclass(frozen=True)
class DurableRef:
    """A resolved location: an :class:`Anchor` that tracks edits."""
    anchor: Anchor

    @property
    def container(self) -> Container:
        return self.anchor.container

    @property
    def container_id(self) -> str:
        return self.anchor.container.name

    @property
    def line(self) -> int:
        return self.anchor.line


@dataclass(frozen=True)
class LazyRef:
    """An unresolved location: container name plus approximate line.

    Cheap to build and does not keep the container alive.
    """
    container_id: str
    line: int

    def promote(self, workspace: Workspace) -> DurableRef:
        """Resolve against *workspace* and return a :class:`DurableRef`.

        Raises:
            ResolutionError: If the container is gone or the line is out of range.
        """
        container = workspace.get(self.container_id)
        if container is None:
            raise ResolutionError(f"No container named '{self.container_id}'")
        if not 1 <= self.line <= len(container):
            raise ResolutionError(
                f"Line {self.line} is outside {self.container_id} "
                f"(1..{len(container)})"
            )
        return DurableRef(container.anchor(self.line))


LocationRef = Union[LazyRef, DurableRef]


# =============================================================================
# Candidates
# =============================================================================

class CandidateKind(str, Enum):
    """Kind tags both the producing session and the exporters agree on."""
    LINE_MATCH = "line-match"
    GREP_MATCH = "grep-match"
    XREF_ITEM = "xref-item"
    GENERIC = "generic"


@dataclass(frozen=True)
class DecorationRange:
    """Half-open span ``[start, end)`` of display text that is decoration only."""
    start: int
    end: int


@dataclass(frozen=True, eq=False)
class Candidate:
    """One selectable search result.

    Compared and hashed by identity: two candidates with the same display
    text are still different candidates, and resolution is cached per
    candidate object.
    """
    display: str
    kind: CandidateKind = CandidateKind.GENERIC
    ref: Optional[LocationRef] = None
    decorations: Tuple[DecorationRange, ...] = ()
    payload: Any = None
    """Kind-specific data, e.g. an ``XrefItem`` for XREF_ITEM candidates."""

    def __post_init__(self):
        if not isinstance(self.decorations, tuple):
            object.__setattr__(self, "decorations", tuple(self.decorations))

    def stripped(self) -> str:
        """Display text with every decoration range removed."""
        return strip_decorations(self.display, self.decorations)


def strip_decorations(text: str, decorations: Sequence[DecorationRange] = ()) -> str:
    """
    Remove every decorated span from *text*.

    Ranges may overlap or arrive unsorted; they are clipped to the text and
    merged.  Undecorated runs are concatenated in their original order.
    With no ranges the input string itself is returned.
    """
    if not decorations:
        return text
    spans = sorted(
        (max(0, r.start), min(len(text), r.end))
        for r in decorations
        if r.end > r.start
    )
    parts: List[str] = []
    pos = 0
    for start, end in spans:
        if start > pos:
            parts.append(text[pos:start])
        pos = max(pos, end)
    parts.append(text[pos:])
    return "".join(parts)


# =============================================================================
# Resolution
# =============================================================================

class LocationResolver:
    """
    Resolve candidates to durable locations, memoized per candidate.

    The first successful resolution of a candidate is cached and returned on
    every later call, even if the container has changed since; the durable
    anchor follows those changes.  The cache is only ever appended to.
    Entries go away only together with the candidate object (weak keys).
    """

    def __init__(self, workspace: Workspace, config: PickportConfig | None = None):
        self.workspace = workspace
        self._config = config or PickportConfig()
        self._cache: "weakref.WeakKeyDictionary[Candidate, DurableRef]" = (
            weakref.WeakKeyDictionary()
        )

    def __len__(self) -> int:
        return len(self._cache)

    def is_resolved(self, candidate: Candidate) -> bool:
        return candidate in self._cache

    def resolve(self, candidate: Candidate) -> DurableRef:
        """
        Return the durable location of *candidate*.

        Raises:
            ResolutionError: The candidate has no reference, or its lazy
                reference points at a missing container or line.
        """
        cached = self._cache.get(candidate)
        if cached is not None:
            return cached

        ref = candidate.ref
        if ref is None:
            raise ResolutionError(f"Candidate {candidate.display!r} carries no location")
        durable = ref if isinstance(ref, DurableRef) else ref.promote(self.workspace)
        self._cache[candidate] = durable
        return durable

    def upgrade(self, candidates: Iterable[Candidate], show_progress: bool = False) -> None:
        """
        Promote every lazy reference in *candidates* before they outlive
        their session.

        Only candidates whose kind is listed in
        ``config.lazy_reference_kinds`` are touched.  A candidate whose
        container has vanished is logged and skipped; the pass never fails
        as a whole.
        """
        lazy_kinds = self._config.lazy_reference_kinds
        pending = [
            c for c in candidates
            if c.kind.value in lazy_kinds and c not in self._cache
        ]
        skipped = 0
        for candidate in tqdm(pending, desc="Upgrading references", unit="cand",
                              disable=not show_progress):
            try:
                self.resolve(candidate)
            except ResolutionError as exc:
                skipped += 1
                logger.debug(f"Skipping {candidate.display!r}: {exc}")

        if skipped:
            logger.warning(
                f"Reference upgrade skipped {skipped} of {len(pending)} candidate(s)"
            )
        else:
            logger.debug(f"Reference upgrade promoted {len(pending)} candidate(s)")
