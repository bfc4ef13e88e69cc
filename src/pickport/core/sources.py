"""
pickport Candidate Sources

Small candidate producers that stand in for a live search session: load
files into a workspace, scan them for line matches, read grep output, and
build a re-invocable reference fetcher.  They exist so the CLI and tests
have something to export; they are not a search engine.
"""

import logging
import os
import re
from pathlib import Path
from typing import IO, Iterable, Iterator, List

from pickport.core.config import PickportConfig
from pickport.core.engine import (
    Candidate, CandidateKind, Container, DecorationRange, LazyRef, Workspace,
)
from pickport.core.export import Fetcher, XrefItem

logger = logging.getLogger(__name__)


def scan_paths(paths: Iterable[Path], config: PickportConfig | None = None) -> List[Path]:
    """
    Expand *paths* into the list of files to load.

    Directories are walked with early pruning of ``config.exclude_dirs``;
    files larger than ``config.max_file_size_mb`` are skipped.  Explicit
    file arguments are kept as given.
    """
    cfg = config or PickportConfig()
    exclude = cfg.exclude_dirs
    max_bytes = cfg.max_file_size_bytes
    files: List[Path] = []

    for root in paths:
        root = Path(root)
        if root.is_file():
            files.append(root)
            continue
        found: List[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            # Prune in place so os.walk never descends into excluded dirs.
            dirnames[:] = [d for d in dirnames if d not in exclude]
            for fname in filenames:
                full = os.path.join(dirpath, fname)
                try:
                    size = os.path.getsize(full)
                except OSError:
                    continue
                if size <= max_bytes:
                    found.append(Path(full))
                else:
                    logger.warning(
                        f"Skipping large file: {full} ({size / (1024 * 1024):.1f}MB)"
                    )
        files.extend(sorted(found))
    return files


def load_paths(workspace: Workspace, paths: Iterable[Path],
               config: PickportConfig | None = None) -> List[Container]:
    """Open every file under *paths* as a container named by its path."""
    cfg = config or PickportConfig()
    loaded: List[Container] = []
    for path in scan_paths(paths, cfg):
        try:
            text = path.read_text(encoding=cfg.file_encoding)
        except UnicodeDecodeError:
            logger.debug(f"Skipping undecodable file: {path}")
            continue
        loaded.append(workspace.add(Container.from_text(str(path), text, path=str(path))))
    logger.debug(f"Loaded {len(loaded)} container(s)")
    return loaded


def line_candidates(workspace: Workspace, pattern: str,
                    ignore_case: bool = False) -> List[Candidate]:
    """
    Line-match candidates for every line matching *pattern*.

    Each display string starts with a line-number column that is marked as
    decoration, the way a completion UI pads candidates for alignment.
    """
    regex = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
    candidates: List[Candidate] = []
    for container in workspace:
        for number, text in enumerate(container.lines, start=1):
            if not regex.search(text):
                continue
            marker = f"{number:>5} │ "
            candidates.append(Candidate(
                display=marker + text,
                kind=CandidateKind.LINE_MATCH,
                ref=LazyRef(container.name, number),
                decorations=(DecorationRange(0, len(marker)),),
            ))
    return candidates


def read_grep_lines(stream: IO[str]) -> Iterator[str]:
    """Yield non-empty lines of grep-style output without their newline."""
    for line in stream:
        line = line.rstrip("\r\n")
        if line:
            yield line


def grep_candidates(lines: Iterable[str]) -> List[Candidate]:
    return [Candidate(display=line, kind=CandidateKind.GREP_MATCH) for line in lines]


def xref_fetcher(workspace: Workspace, symbol: str) -> Fetcher:
    """
    A fetcher listing every whole-word occurrence of *symbol*.

    Each call rescans the workspace and returns a fresh list, so it can be
    re-invoked without affecting earlier results.
    """
    regex = re.compile(rf"\b{re.escape(symbol)}\b")

    def fetch() -> List[XrefItem]:
        return [
            XrefItem(summary=text.strip(), ref=LazyRef(container.name, number))
            for container in workspace
            for number, text in enumerate(container.lines, start=1)
            if regex.search(text)
        ]

    return fetch


def xref_candidates(items: Iterable[XrefItem]) -> List[Candidate]:
    return [
        Candidate(display=item.summary, kind=CandidateKind.XREF_ITEM,
                  ref=item.ref, payload=item)
        for item in items
    ]
