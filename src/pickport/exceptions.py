"""
pickport Exception Hierarchy

Structured exceptions for clear error handling across the CLI and the
programmatic API.  Each exception type maps to a specific failure mode so
that callers can tell "this candidate does not resolve" apart from "the
selection step yielded nothing" without parsing message strings.

Usage::

    from pickport.exceptions import PickportError, NoCandidatesError

    try:
        buf = client.export_xref(items, fetcher, query)
    except NoCandidatesError:
        print("Nothing selected.")
    except PickportError as exc:
        print(f"pickport error: {exc}")
"""


class PickportError(Exception):
    """Base exception for all pickport errors."""


class ConfigError(PickportError, ValueError):
    """Configuration is invalid (e.g. a non-positive column width).

    Inherits from ``ValueError`` so code that already catches
    ``ValueError`` from ``PickportConfig.validate()`` keeps working.
    """


class ResolutionError(PickportError, LookupError):
    """A location reference does not resolve.

    Raised when the referenced container no longer exists, when the line is
    outside the container's current bounds, or when a candidate carries no
    reference at all.
    """


class NoCandidatesError(PickportError):
    """An export or filter step that needs at least one result got none."""


class ReportEditError(PickportError):
    """An edit targeted a read-only part of a report buffer."""
