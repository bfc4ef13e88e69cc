"""
pickport Report Exporters

Turn a finished session's candidate list into a report buffer that outlives
the session:

- :class:`GroupedExporter`: occur-style listing of line matches, grouped by
  container, numbered, and editable in place with write-back.
- :class:`FlatExporter`: grep-style listing of self-describing
  ``file:line:col:text`` lines, revertable by re-running the search.
- :class:`XrefExporter`: re-runs a reference search with the final query
  and lists whatever the selection step keeps.

Every exporter builds its entries off to the side and registers the buffer
in the workspace only once it is complete.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pickport.core.config import PickportConfig
from pickport.core.engine import (
    Candidate, DurableRef, LazyRef, LocationRef, LocationResolver, Workspace,
)
from pickport.exceptions import (
    NoCandidatesError, PickportError, ReportEditError, ResolutionError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Keymaps and modes
# =============================================================================

class Keymap:
    """Key → command bindings with an optional parent to fall back on."""

    def __init__(self, bindings: Dict[str, str] | None = None,
                 parent: Optional["Keymap"] = None):
        self.bindings: Dict[str, str] = dict(bindings or {})
        self.parent = parent

    def lookup(self, key: str) -> Optional[str]:
        keymap: Optional[Keymap] = self
        while keymap is not None:
            if key in keymap.bindings:
                return keymap.bindings[key]
            keymap = keymap.parent
        return None

    def derive(self, bindings: Dict[str, str] | None = None) -> "Keymap":
        """A child keymap whose unbound keys fall through to this one."""
        return Keymap(bindings, parent=self)


_GREP_FOOTER = re.compile(r"^Grep (finished|exited|interrupted)")


def tool_header_footer(lines: Sequence[str]) -> Tuple[int, int]:
    """
    Count the header and footer lines a grep tool wraps around its matches.

    The header is every leading line that does not parse as a match; the
    footer is the trailing ``Grep finished ...`` status block.
    """
    head = 0
    while head < len(lines) and _parse_grep(lines[head]) is None:
        head += 1
    foot = 0
    while foot < len(lines) - head and (
        _GREP_FOOTER.match(lines[-1 - foot]) or not lines[-1 - foot].strip()
    ):
        foot += 1
    return head, foot


@dataclass(frozen=True)
class ReportMode:
    """Behaviour shared by every report buffer of one format."""
    name: str
    keymap: Keymap
    editable: bool = False
    header_footer_parser: Optional[Callable[[Sequence[str]], Tuple[int, int]]] = None


_NAVIGATION = {"n": "next-entry", "p": "previous-entry", "RET": "goto-entry"}

OCCUR_MODE = ReportMode(
    "occur", Keymap({**_NAVIGATION, "e": "edit-mode"}), editable=True,
)
GREP_MODE = ReportMode(
    "grep", Keymap({**_NAVIGATION, "g": "recompile", "e": "edit-mode"}),
    editable=True, header_footer_parser=tool_header_footer,
)
XREF_MODE = ReportMode("xref", Keymap({**_NAVIGATION, "g": "revert"}))


# =============================================================================
# Report buffer
# =============================================================================

class EntryKind(str, Enum):
    HEADER = "header"
    MATCH = "match"
    COMMENT = "comment"


@dataclass
class ReportEntry:
    """One line of a report buffer.

    ``prefix`` is read-only (the line number column, or a grep line's
    ``path:line:col:`` head); only ``text`` can be edited.  ``target`` is the
    jump target; grep entries leave it unset and are promoted from
    ``container_id`` and ``line_number`` when visited.
    """
    kind: EntryKind
    text: str
    prefix: str = ""
    container_id: Optional[str] = None
    line_number: Optional[int] = None
    target: Optional[DurableRef] = None
    editable: bool = False
    original_text: Optional[str] = None

    @property
    def rendered(self) -> str:
        return self.prefix + self.text

    @property
    def modified(self) -> bool:
        return self.original_text is not None and self.original_text != self.text


@dataclass(frozen=True)
class GrepLocation:
    path: str
    line: int
    column: Optional[int]
    text: str


_GREP_LINE = re.compile(r"^(?P<path>.+?):(?P<line>\d+):(?:(?P<col>\d+):)?(?P<text>.*)$")


def _parse_grep(line: str) -> Optional[GrepLocation]:
    m = _GREP_LINE.match(line)
    if not m:
        return None
    col = m.group("col")
    return GrepLocation(
        path=m.group("path"),
        line=int(m.group("line")),
        column=int(col) if col is not None else None,
        text=m.group("text"),
    )


def parse_grep_line(line: str) -> GrepLocation:
    """
    Parse ``path:line:col:text`` or ``path:line:text``.

    Raises:
        ResolutionError: If *line* has no ``path:line:`` prefix.
    """
    loc = _parse_grep(line)
    if loc is None:
        raise ResolutionError(f"Not a grep match line: {line!r}")
    return loc


class ReportBuffer:
    """
    A persistent, navigable listing produced by an exporter.

    The buffer keeps a *point* (index of the current entry), buffer-local
    variables that override mode defaults, and a keymap.  Grouped and grep
    buffers can be edited in place; :meth:`commit_edits` writes the edited
    text back into the source containers.
    """

    def __init__(self, name: str, mode: ReportMode, entries: List[ReportEntry],
                 workspace: Workspace, *, keymap: Keymap | None = None,
                 local_vars: Dict[str, Any] | None = None,
                 rerun: Callable[[], Any] | None = None,
                 rebuild: Callable[[Any], List[ReportEntry]] | None = None):
        self.name = name
        self.mode = mode
        self.workspace = workspace
        self.keymap = keymap or mode.keymap
        self._base_keymap = self.keymap
        self.local_vars: Dict[str, Any] = dict(local_vars or {})
        self.editing = False
        self.point = 0
        self._entries = entries
        self._rerun = rerun
        self._rebuild = rebuild

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ReportBuffer({self.name!r}, mode={self.mode.name}, entries={len(self._entries)})"

    @property
    def entries(self) -> List[ReportEntry]:
        return list(self._entries)

    def lines(self) -> List[str]:
        return [e.rendered for e in self._entries]

    def render(self) -> str:
        return "\n".join(self.lines())

    @property
    def header_footer_parser(self):
        """Buffer-local override first, then the mode's parser."""
        if "header_footer_parser" in self.local_vars:
            return self.local_vars["header_footer_parser"]
        return self.mode.header_footer_parser

    # ── Navigation ────────────────────────────────────────────────

    def current_entry(self) -> Optional[ReportEntry]:
        if 0 <= self.point < len(self._entries):
            return self._entries[self.point]
        return None

    def _step(self, direction: int) -> Optional[ReportEntry]:
        i = self.point + direction
        while 0 <= i < len(self._entries):
            if self._entries[i].kind is EntryKind.MATCH:
                self.point = i
                return self._entries[i]
            i += direction
        return None

    def next_entry(self) -> Optional[ReportEntry]:
        """Move point to the next match entry, skipping headers."""
        return self._step(1)

    def previous_entry(self) -> Optional[ReportEntry]:
        return self._step(-1)

    def location(self, index: int | None = None) -> DurableRef:
        """
        Jump target of the entry at *index* (default: point).

        Grep entries are promoted from the location parsed at export time,
        so edits to their text never move the target.
        """
        idx = self.point if index is None else index
        if not 0 <= idx < len(self._entries):
            raise ResolutionError(f"No entry at index {idx} in {self.name}")
        entry = self._entries[idx]
        if entry.target is not None:
            return entry.target
        if entry.kind is not EntryKind.MATCH or entry.container_id is None \
                or entry.line_number is None:
            raise ResolutionError(f"Entry {idx} in {self.name} is not a match")
        return LazyRef(entry.container_id, entry.line_number).promote(self.workspace)

    # ── Editing ───────────────────────────────────────────────────

    def enter_edit_mode(self) -> None:
        """
        Make match entries editable (grep buffers start read-only).

        Lines the header/footer parser claims stay read-only.  The edit
        keymap is derived from the buffer's current keymap, so local
        bindings such as ``revert`` keep working.
        """
        if not self.mode.editable:
            raise ReportEditError(f"{self.mode.name} buffers cannot be edited")
        if self.editing:
            return
        head, foot = 0, 0
        parser = self.header_footer_parser
        if parser is not None:
            head, foot = parser(self.lines())
        last = len(self._entries) - foot
        for i, entry in enumerate(self._entries):
            entry.editable = entry.kind is EntryKind.MATCH and head <= i < last
        self._base_keymap = self.keymap
        self.keymap = self.keymap.derive({"C-c C-c": "commit-edits", "C-c C-k": "abort-edits"})
        self.editing = True

    def edit_entry(self, index: int, text: str) -> None:
        """Replace the body text of entry *index*; its prefix never changes."""
        entry = self._entries[index]
        if not entry.editable:
            raise ReportEditError(f"Entry {index} in {self.name} is read-only")
        if entry.original_text is None:
            entry.original_text = entry.text
        entry.text = text

    def abort_edits(self) -> None:
        for entry in self._entries:
            if entry.original_text is not None:
                entry.text = entry.original_text
                entry.original_text = None

    def commit_edits(self) -> int:
        """
        Write every modified entry back to its source line.

        The source line is the one the entry's target points at *now*, so
        edits made to the container since the export are accounted for.
        Every target is checked before anything is written, so a failure
        leaves both the sources and the pending edits untouched.
        Returns the number of lines written.

        Raises:
            ResolutionError: An edited entry's source line no longer exists.
        """
        pending = []
        for i, entry in enumerate(self._entries):
            if not entry.modified:
                continue
            location = self.location(i)
            container, line = location.container, location.line
            try:
                container.line(line)
            except IndexError as exc:
                raise ResolutionError(f"Entry {i} in {self.name}: {exc}") from exc
            pending.append((container, line, entry.text))

        for container, line, text in pending:
            container.replace_line(line, text)
        for entry in self._entries:
            entry.original_text = None
        written = len(pending)
        logger.info(f"Wrote {written} edited line(s) from {self.name}")
        return written

    # ── Revert ────────────────────────────────────────────────────

    def revert(self) -> None:
        """Re-run the command that produced this buffer and rebuild it."""
        if self._rerun is None or self._rebuild is None:
            raise PickportError(f"{self.name} has no command to re-run")
        entries = self._rebuild(self._rerun())
        self._entries = entries
        self.point = 0
        self.keymap = self._base_keymap
        self.editing = False
        logger.debug(f"Reverted {self.name}: {len(entries)} entries")


# =============================================================================
# Exporters
# =============================================================================

def _header(name: str, fmt: str, target: Optional[DurableRef]) -> ReportEntry:
    return ReportEntry(
        kind=EntryKind.HEADER,
        text=fmt.format(name=name),
        container_id=name,
        target=target,
    )


class GroupedExporter:
    """Occur-style export of line-match candidates."""

    buffer_name = "*Export Occur*"

    def __init__(self, resolver: LocationResolver, config: PickportConfig | None = None):
        self.resolver = resolver
        self._config = config or PickportConfig()

    def build_entries(self, candidates: Sequence[Candidate]) -> List[ReportEntry]:
        """
        Resolve, strip and number each candidate, inserting a group header
        whenever the container changes.

        Raises:
            ResolutionError: Aborts the export; no partial listing is kept.
        """
        width = self._config.line_number_width
        entries: List[ReportEntry] = []
        last: Optional[str] = None
        for cand in candidates:
            location = self.resolver.resolve(cand)
            if location.container_id != last:
                entries.append(_header(
                    location.container_id, self._config.group_header_format, location,
                ))
                last = location.container_id
            entries.append(ReportEntry(
                kind=EntryKind.MATCH,
                text=cand.stripped(),
                prefix=f"{location.line:>{width}d}:",
                container_id=location.container_id,
                line_number=location.line,
                target=location,
                editable=True,
            ))
        return entries

    def export(self, candidates: Sequence[Candidate]) -> ReportBuffer:
        entries = self.build_entries(candidates)
        workspace = self.resolver.workspace
        buf = ReportBuffer(
            workspace.generate_buffer_name(self.buffer_name),
            OCCUR_MODE, entries, workspace,
        )
        workspace.add_buffer(buf)
        logger.info(f"Exported {len(candidates)} line match(es) to {buf.name}")
        return buf


class FlatExporter:
    """Grep-style export of self-describing match lines."""

    buffer_name = "*Export Grep*"

    def __init__(self, workspace: Workspace, config: PickportConfig | None = None):
        self.workspace = workspace
        self._config = config or PickportConfig()

    def build_entries(self, lines: Sequence[str]) -> List[ReportEntry]:
        entries = [
            ReportEntry(kind=EntryKind.COMMENT, text=self._config.flat_header),
            ReportEntry(kind=EntryKind.COMMENT, text=""),
        ]
        entries.extend(self._match_entry(line) for line in lines)
        return entries

    def _match_entry(self, line: str) -> ReportEntry:
        """Split *line* into a read-only location head and an editable body."""
        m = _GREP_LINE.match(line)
        if m is None:
            return ReportEntry(kind=EntryKind.COMMENT, text=line)
        loc = _parse_grep(line)
        body = loc.text
        if loc.column is not None:
            without_column = line[m.end("line") + 1:]
            if self._column_is_body(loc, without_column):
                body = without_column
        return ReportEntry(
            kind=EntryKind.MATCH,
            text=body,
            prefix=line[:len(line) - len(body)],
            container_id=loc.path,
            line_number=loc.line,
        )

    def _column_is_body(self, loc: GrepLocation, without_column: str) -> bool:
        # ``path:line:NN:rest`` without a column field reads like one; the
        # open source line decides.
        container = self.workspace.get(loc.path)
        if container is None:
            return False
        try:
            source = container.line(loc.line)
        except IndexError:
            return False
        return source != loc.text and source == without_column

    def export(self, lines: Sequence[str],
               rerun: Callable[[], Sequence[str]] | None = None) -> ReportBuffer:
        """
        Emit the header comment then *lines* verbatim.

        *rerun* re-executes the original search for :meth:`ReportBuffer.revert`.
        """
        lines = [line.rstrip("\n") for line in lines]
        buf = ReportBuffer(
            self.workspace.generate_buffer_name(self.buffer_name),
            GREP_MODE,
            self.build_entries(lines),
            self.workspace,
            # The header is synthesized, not a real tool's output.
            local_vars={"header_footer_parser": None},
            keymap=GREP_MODE.keymap.derive({"g": "revert"}),
            rerun=rerun,
            rebuild=lambda fresh: self.build_entries([line.rstrip("\n") for line in fresh]),
        )
        self.workspace.add_buffer(buf)
        logger.info(f"Exported {len(lines)} grep line(s) to {buf.name}")
        return buf


@dataclass(frozen=True)
class XrefItem:
    """A cross-reference hit: a summary line and where it lives."""
    summary: str
    ref: LocationRef

    @property
    def container_id(self) -> str:
        return self.ref.container_id

    @property
    def line(self) -> int:
        return self.ref.line


Fetcher = Callable[[], Sequence[XrefItem]]
Transform = Callable[[Sequence[XrefItem], str], Sequence[XrefItem]]


def filter_items(items: Sequence[XrefItem], query: str) -> List[XrefItem]:
    """Keep items whose summary or container matches every word of *query*."""
    words = query.casefold().split()
    return [
        item for item in items
        if all(w in f"{item.container_id} {item.summary}".casefold() for w in words)
    ]


class XrefExporter:
    """Reference-listing export driven by a re-run of the session's fetcher."""

    buffer_name = "*Export Xref*"

    def __init__(self, workspace: Workspace, config: PickportConfig | None = None):
        self.workspace = workspace
        self._config = config or PickportConfig()

    def select(self, fetcher: Fetcher, query: str,
               transform: Transform | None = None) -> List[XrefItem]:
        """
        Fetch the full item set and pick the subset to export.

        A single fetched item is used as is; otherwise *transform* decides.

        Raises:
            NoCandidatesError: The selection is empty.
        """
        items = list(fetcher())
        if len(items) == 1:
            return items
        selected = list((transform or filter_items)(items, query))
        if not selected:
            raise NoCandidatesError(
                f"No references left after filtering {len(items)} item(s) with {query!r}"
            )
        return selected

    def build_entries(self, items: Sequence[XrefItem]) -> List[ReportEntry]:
        width = self._config.xref_number_width
        entries: List[ReportEntry] = []
        last: Optional[str] = None
        for item in items:
            ref = item.ref
            location = ref if isinstance(ref, DurableRef) else ref.promote(self.workspace)
            if location.container_id != last:
                entries.append(_header(location.container_id, "{name}", location))
                last = location.container_id
            entries.append(ReportEntry(
                kind=EntryKind.MATCH,
                text=item.summary,
                prefix=f"{location.line:>{width}d}: ",
                container_id=location.container_id,
                line_number=location.line,
                target=location,
            ))
        return entries

    def export(self, candidates: Sequence[Candidate], fetcher: Fetcher | None,
               query: str, transform: Transform | None = None) -> ReportBuffer:
        """
        Re-run the reference search with *query* and list what it selects.

        When *fetcher* is None the candidates' own ``XrefItem`` payloads
        stand in for the fetched set.
        """
        if fetcher is None:
            snapshot = [c.payload for c in candidates if isinstance(c.payload, XrefItem)]
            fetcher = lambda: snapshot  # noqa: E731

        items = self.select(fetcher, query, transform)
        entries = self.build_entries(items)
        auto_jump = self._config.xref_auto_jump
        buf = ReportBuffer(
            self.workspace.generate_buffer_name(self.buffer_name),
            XREF_MODE, entries, self.workspace,
            local_vars={
                "auto_jump": auto_jump,
                "window_placement": self._config.xref_window_placement,
                "query": query,
            },
            rerun=lambda: self.select(fetcher, query, transform),
            rebuild=self.build_entries,
        )
        if auto_jump:
            buf.next_entry()
        self.workspace.add_buffer(buf)
        logger.info(
            f"Exported {len(items)} of {len(candidates)} reference(s) to {buf.name}"
        )
        return buf


# =============================================================================
# Report formatting
# =============================================================================

class ReportFormatter:
    """Format report buffers for output."""

    @staticmethod
    def _sanitize_for_json(s: str) -> str:
        """Strip control characters that break strict JSON parsers."""
        if not s:
            return s
        return "".join(c for c in s if (ord(c) >= 32 and ord(c) != 127) or c == "\t")

    @staticmethod
    def format_text(buffer: ReportBuffer) -> str:
        return buffer.render()

    @staticmethod
    def format_json(buffer: ReportBuffer) -> str:
        """One object per entry, in buffer order, plus the buffer's mode."""
        def _to_obj(e: ReportEntry) -> dict:
            obj = {
                "kind": e.kind.value,
                "text": ReportFormatter._sanitize_for_json(e.text),
            }
            if e.prefix:
                obj["prefix"] = e.prefix
            if e.container_id is not None:
                obj["container"] = ReportFormatter._sanitize_for_json(e.container_id)
            if e.line_number is not None:
                obj["line"] = e.line_number
            return obj

        return json.dumps(
            {
                "buffer": buffer.name,
                "mode": buffer.mode.name,
                "entries": [_to_obj(e) for e in buffer.entries],
            },
            indent=2,
            allow_nan=False,
        )
