"""
pickport Configuration Module

Centralized configuration for candidate resolution and report export.
Every setting lives on a :class:`PickportConfig` instance that is passed
through the call stack; nothing here mutates global state.
"""

import os
from dataclasses import dataclass

# =============================================================================
# Instance-Based Configuration
# =============================================================================

# Kind tags (``CandidateKind`` values) whose candidates carry lazy references
# by default.  Kept as plain strings so this module has no engine import.
DEFAULT_LAZY_KINDS = frozenset(("line-match",))

WINDOW_PLACEMENTS = ("same", "other", "below", "right")


@dataclass
class PickportConfig:
    """
    Instance-based configuration for pickport.

    Create from environment variables::

        config = PickportConfig.from_env()

    Or with explicit values::

        config = PickportConfig(line_number_width=5, xref_auto_jump=True)
    """

    # ── Grouped (occur-style) reports ─────────────────────────────
    line_number_width: int = 7
    group_header_format: str = "lines from buffer: {name}"

    # ── Flat (grep-style) reports ─────────────────────────────────
    flat_header: str = "Exported grep results:"

    # ── Reference (xref-style) reports ────────────────────────────
    xref_number_width: int = 4
    xref_auto_jump: bool = False
    xref_window_placement: str = "other"

    # ── Resolution ────────────────────────────────────────────────
    lazy_reference_kinds: frozenset = DEFAULT_LAZY_KINDS

    # ── Jump / preview ────────────────────────────────────────────
    highlight_seconds: float = 0.2

    # ── File loading (reference collaborators) ────────────────────
    exclude_dirs: frozenset = frozenset((
        "__pycache__", ".git", ".venv", "venv",
        ".pytest_cache", "dist", "build", "node_modules",
    ))
    max_file_size_mb: int = 5
    file_encoding: str = "utf-8"

    # ── Logging ───────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ── Factory ───────────────────────────────────────────────────

    @classmethod
    def from_env(cls) -> "PickportConfig":
        """Build a config snapshot from current environment variables.

        Reads :envvar:`PICKPORT_XREF_AUTO_JUMP` (1/true/yes) to make
        reference reports land on their first item.
        """
        auto_jump_raw = os.getenv("PICKPORT_XREF_AUTO_JUMP", "").lower()
        return cls(
            line_number_width=int(os.getenv("PICKPORT_LINE_NUMBER_WIDTH", "7")),
            xref_number_width=int(os.getenv("PICKPORT_XREF_NUMBER_WIDTH", "4")),
            xref_auto_jump=auto_jump_raw in ("1", "true", "yes", "on"),
            xref_window_placement=os.getenv("PICKPORT_XREF_WINDOW", "other").lower(),
            highlight_seconds=float(os.getenv("PICKPORT_HIGHLIGHT_SECONDS", "0.2")),
            file_encoding=os.getenv("PICKPORT_FILE_ENCODING", "utf-8"),
            log_level=os.getenv("PICKPORT_LOG_LEVEL", "INFO").upper(),
        )

    # ── Validation ────────────────────────────────────────────────

    def validate(self) -> bool:
        """
        Check that widths, durations and placements make sense.

        Raises :class:`~pickport.exceptions.ConfigError` on failure.
        """
        from pickport.exceptions import ConfigError

        if self.line_number_width < 1 or self.xref_number_width < 1:
            raise ConfigError(
                "Line number widths must be positive "
                f"(got {self.line_number_width} / {self.xref_number_width})."
            )
        if self.highlight_seconds < 0:
            raise ConfigError(
                f"highlight_seconds must be >= 0 (got {self.highlight_seconds})."
            )
        if self.xref_window_placement not in WINDOW_PLACEMENTS:
            raise ConfigError(
                f"Unknown window placement '{self.xref_window_placement}'. "
                f"Supported: {', '.join(WINDOW_PLACEMENTS)}.\n"
                "  Set via: export PICKPORT_XREF_WINDOW=other"
            )
        if "{name}" not in self.group_header_format:
            raise ConfigError(
                "group_header_format must contain a '{name}' placeholder."
            )
        return True

    @property
    def max_file_size_bytes(self) -> int:
        """Size cap applied when loading files into a workspace."""
        return self.max_file_size_mb * 1024 * 1024
