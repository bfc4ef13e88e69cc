"""
Tests for pickport.core.export: grouped, flat and reference exporters,
report buffer navigation, editing and revert.
"""

import json

import pytest
from conftest import make_candidate

from pickport.core.config import PickportConfig
from pickport.core.engine import Container, LazyRef
from pickport.core.export import (
    GREP_MODE,
    EntryKind,
    FlatExporter,
    GroupedExporter,
    ReportFormatter,
    XrefExporter,
    XrefItem,
    filter_items,
    parse_grep_line,
    tool_header_footer,
)
from pickport.exceptions import (
    NoCandidatesError,
    PickportError,
    ReportEditError,
    ResolutionError,
)


# =============================================================================
# Grouped exporter
# =============================================================================

class TestGroupedExporter:
    """Occur-style export: numbered entries grouped by container."""

    def test_concrete_scenario(self, resolver):
        cands = [
            make_candidate("foo", 10, "text10"),
            make_candidate("foo", 12, "text12"),
            make_candidate("bar", 5, "text5"),
        ]
        buf = GroupedExporter(resolver).export(cands)
        assert buf.lines() == [
            "lines from buffer: foo",
            "     10:text10",
            "     12:text12",
            "lines from buffer: bar",
            "      5:text5",
        ]

    def test_non_adjacent_runs_get_own_headers(self, resolver):
        cands = [
            make_candidate("foo", 1, "a"),
            make_candidate("foo", 2, "b"),
            make_candidate("bar", 1, "c"),
            make_candidate("foo", 3, "d"),
        ]
        buf = GroupedExporter(resolver).export(cands)
        headers = [e.container_id for e in buf.entries if e.kind is EntryKind.HEADER]
        assert headers == ["foo", "bar", "foo"]

    def test_empty_export_has_no_lines(self, resolver):
        buf = GroupedExporter(resolver).export([])
        assert buf.lines() == []
        assert buf.mode.name == "occur"

    def test_entries_carry_targets(self, resolver):
        cand = make_candidate("bar", 3, "bar line 3")
        buf = GroupedExporter(resolver).export([cand])
        header, entry = buf.entries
        assert entry.target is resolver.resolve(cand)
        assert header.target is entry.target
        assert entry.editable and not header.editable

    def test_resolution_failure_aborts_without_buffer(self, resolver, workspace):
        cands = [make_candidate("foo", 1, "ok"), make_candidate("gone", 1, "bad")]
        with pytest.raises(ResolutionError):
            GroupedExporter(resolver).export(cands)
        assert workspace.buffers == []

    def test_buffer_registered_and_at_start(self, resolver, workspace):
        buf = GroupedExporter(resolver).export([make_candidate("foo", 1, "x")])
        assert workspace.buffer(buf.name) is buf
        assert buf.point == 0

    def test_second_export_gets_unique_name(self, resolver):
        exporter = GroupedExporter(resolver)
        first = exporter.export([])
        second = exporter.export([])
        assert first.name != second.name

    def test_custom_width_and_header(self, workspace):
        from pickport.core.engine import LocationResolver

        cfg = PickportConfig(line_number_width=3, group_header_format="== {name} ==")
        buf = GroupedExporter(LocationResolver(workspace, cfg), cfg).export(
            [make_candidate("foo", 4, "x")]
        )
        assert buf.lines() == ["== foo ==", "  4:x"]


class TestReportNavigation:

    def _buffer(self, resolver):
        cands = [
            make_candidate("foo", 1, "a"),
            make_candidate("bar", 2, "b"),
        ]
        return GroupedExporter(resolver).export(cands)

    def test_next_skips_headers(self, resolver):
        buf = self._buffer(resolver)
        assert buf.next_entry().text == "a"
        assert buf.next_entry().text == "b"
        assert buf.point == 3
        assert buf.next_entry() is None
        assert buf.point == 3

    def test_previous_entry(self, resolver):
        buf = self._buffer(resolver)
        buf.point = 3
        assert buf.previous_entry().text == "a"
        assert buf.previous_entry() is None

    def test_location_of_entry(self, resolver):
        buf = self._buffer(resolver)
        loc = buf.location(3)
        assert (loc.container_id, loc.line) == ("bar", 2)


class TestGroupedEditing:
    """In-place edits are written back to the anchored source line."""

    def test_edit_and_commit(self, resolver, workspace):
        buf = GroupedExporter(resolver).export([make_candidate("foo", 10, "foo line 10")])
        buf.edit_entry(1, "rewritten")
        assert buf.lines()[1] == "     10:rewritten"
        assert buf.commit_edits() == 1
        assert workspace.get("foo").line(10) == "rewritten"

    def test_commit_follows_shifted_line(self, resolver, workspace):
        buf = GroupedExporter(resolver).export([make_candidate("foo", 10, "foo line 10")])
        buf.edit_entry(1, "rewritten")
        workspace.get("foo").insert_lines(1, ["inserted"])
        buf.commit_edits()
        foo = workspace.get("foo")
        assert foo.line(11) == "rewritten"
        assert foo.line(10) == "foo line 9"

    def test_header_is_read_only(self, resolver):
        buf = GroupedExporter(resolver).export([make_candidate("foo", 1, "x")])
        with pytest.raises(ReportEditError):
            buf.edit_entry(0, "nope")

    def test_abort_restores_text(self, resolver, workspace):
        buf = GroupedExporter(resolver).export([make_candidate("foo", 1, "foo line 1")])
        buf.edit_entry(1, "temp")
        buf.abort_edits()
        assert buf.entries[1].text == "foo line 1"
        assert buf.commit_edits() == 0

    def test_commit_to_emptied_container_raises(self, resolver, workspace):
        buf = GroupedExporter(resolver).export([make_candidate("bar", 3, "bar line 3")])
        buf.edit_entry(1, "rewritten")
        workspace.get("bar").delete_lines(1, 8)
        with pytest.raises(ResolutionError):
            buf.commit_edits()
        assert buf.entries[1].modified

    def test_unchanged_edit_is_not_written(self, resolver):
        buf = GroupedExporter(resolver).export([make_candidate("foo", 1, "foo line 1")])
        buf.edit_entry(1, "foo line 1")
        assert buf.commit_edits() == 0


# =============================================================================
# Flat exporter
# =============================================================================

class TestParseGrepLine:

    def test_with_column(self):
        loc = parse_grep_line("src/a.py:12:3:text: more")
        assert (loc.path, loc.line, loc.column, loc.text) == ("src/a.py", 12, 3, "text: more")

    def test_without_column(self):
        loc = parse_grep_line("a.py:7:hello")
        assert loc.column is None
        assert loc.text == "hello"

    def test_not_a_match_line(self):
        with pytest.raises(ResolutionError):
            parse_grep_line("no location here")


class TestFlatExporter:
    """Grep-style export: header comment, then lines verbatim."""

    LINES = ["foo:3:1:foo line 3", "bar:2:bar line 2", "foo:1:foo line 1"]

    def test_header_then_verbatim_lines(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        assert buf.lines() == ["Exported grep results:", ""] + self.LINES
        assert buf.mode is GREP_MODE

    def test_empty_export_is_comment_only(self, workspace):
        buf = FlatExporter(workspace).export([])
        assert buf.lines() == ["Exported grep results:", ""]
        assert all(e.kind is EntryKind.COMMENT for e in buf.entries)

    def test_trailing_newlines_dropped(self, workspace):
        buf = FlatExporter(workspace).export(["foo:1:x\n"])
        assert buf.lines()[-1] == "foo:1:x"

    def test_header_footer_parser_disabled_locally(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        assert GREP_MODE.header_footer_parser is tool_header_footer
        assert buf.header_footer_parser is None

    def test_revert_binding_ahead_of_mode(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        assert GREP_MODE.keymap.lookup("g") == "recompile"
        assert buf.keymap.lookup("g") == "revert"
        assert buf.keymap.lookup("n") == "next-entry"

    def test_edit_mode_inherits_revert(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        buf.enter_edit_mode()
        assert buf.keymap.lookup("g") == "revert"
        assert buf.keymap.lookup("C-c C-c") == "commit-edits"

    def test_location_reparsed_from_line(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        loc = buf.location(3)
        assert (loc.container_id, loc.line) == ("bar", 2)

    def test_location_of_comment_fails(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        with pytest.raises(ResolutionError):
            buf.location(0)

    def test_read_only_until_edit_mode(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        with pytest.raises(ReportEditError):
            buf.edit_entry(2, "changed")

    def test_edit_mode_write_back(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        buf.enter_edit_mode()
        with pytest.raises(ReportEditError):
            buf.edit_entry(0, "header")
        buf.edit_entry(2, "changed")
        assert buf.lines()[2] == "foo:3:1:changed"
        assert buf.commit_edits() == 1
        assert workspace.get("foo").line(3) == "changed"

    def test_location_head_is_read_only_prefix(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        entry = buf.entries[3]
        assert (entry.prefix, entry.text) == ("bar:2:", "bar line 2")
        buf.enter_edit_mode()
        buf.edit_entry(3, "x = 2")
        buf.commit_edits()
        assert workspace.get("bar").line(2) == "x = 2"
        assert workspace.get("foo").lines[0] == "foo line 1"

    def test_body_that_looks_like_a_column(self, workspace):
        workspace.add(Container("a.py", ["10:30 meeting"]))
        buf = FlatExporter(workspace).export(["a.py:1:10:30 meeting"])
        entry = buf.entries[2]
        assert (entry.prefix, entry.text) == ("a.py:1:", "10:30 meeting")
        buf.enter_edit_mode()
        buf.edit_entry(2, "10:30 standup")
        buf.commit_edits()
        assert workspace.get("a.py").line(1) == "10:30 standup"

    def test_real_column_stays_in_prefix(self, workspace):
        workspace.add(Container("a.py", ["30 meeting"]))
        buf = FlatExporter(workspace).export(["a.py:1:10:30 meeting"])
        assert buf.entries[2].prefix == "a.py:1:10:"

    def test_unparseable_lines_are_comments(self, workspace):
        buf = FlatExporter(workspace).export(["not a match", "foo:1:x"])
        assert buf.entries[2].kind is EntryKind.COMMENT
        assert buf.next_entry().text == "x"

    def test_failed_commit_writes_nothing(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        buf.enter_edit_mode()
        buf.edit_entry(2, "foo changed")
        buf.edit_entry(3, "bar changed")
        workspace.close("bar")
        with pytest.raises(ResolutionError):
            buf.commit_edits()
        assert workspace.get("foo").line(3) == "foo line 3"
        assert buf.entries[2].modified and buf.entries[3].modified

    def test_revert_leaves_edit_mode(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES, rerun=lambda: self.LINES)
        plain = buf.keymap
        buf.enter_edit_mode()
        buf.revert()
        assert buf.keymap is plain
        assert buf.keymap.lookup("C-c C-c") is None
        buf.enter_edit_mode()
        assert buf.keymap.parent is plain

    def test_revert_reruns(self, workspace):
        runs = []

        def rerun():
            runs.append(1)
            return ["bar:1:bar line 1\n"]

        buf = FlatExporter(workspace).export(self.LINES, rerun=rerun)
        buf.point = 3
        buf.revert()
        assert runs == [1]
        assert buf.lines() == ["Exported grep results:", "", "bar:1:bar line 1"]
        assert buf.point == 0

    def test_revert_without_command(self, workspace):
        buf = FlatExporter(workspace).export(self.LINES)
        with pytest.raises(PickportError):
            buf.revert()


def test_tool_header_footer_counts():
    lines = [
        "-*- mode: grep -*-",
        "",
        "a.py:1:x",
        "b.py:2:y",
        "",
        "Grep finished with 2 matches found",
    ]
    assert tool_header_footer(lines) == (2, 2)


# =============================================================================
# Reference-item exporter
# =============================================================================

def _items():
    return [
        XrefItem("alpha = 1", LazyRef("foo", 1)),
        XrefItem("use(alpha)", LazyRef("foo", 4)),
        XrefItem("beta(alpha)", LazyRef("bar", 2)),
    ]


class TestFilterItems:

    def test_all_words_must_match(self):
        assert [i.summary for i in filter_items(_items(), "ALPHA use")] == ["use(alpha)"]

    def test_matches_container_name(self):
        assert [i.summary for i in filter_items(_items(), "bar")] == ["beta(alpha)"]

    def test_empty_query_keeps_everything(self):
        assert len(filter_items(_items(), "  ")) == 3


class TestXrefExporter:

    def test_grouped_listing(self, workspace):
        buf = XrefExporter(workspace).export([], _items, "alpha")
        assert buf.lines() == [
            "foo",
            "   1: alpha = 1",
            "   4: use(alpha)",
            "bar",
            "   2: beta(alpha)",
        ]
        assert buf.mode.name == "xref"

    def test_query_filters(self, workspace):
        buf = XrefExporter(workspace).export([], _items, "beta")
        assert buf.lines() == ["bar", "   2: beta(alpha)"]

    def test_no_selection_raises(self, workspace):
        with pytest.raises(NoCandidatesError):
            XrefExporter(workspace).export([], _items, "nothing-matches")
        assert workspace.buffers == []

    def test_empty_fetch_raises(self, workspace):
        with pytest.raises(NoCandidatesError):
            XrefExporter(workspace).export([], lambda: [], "")

    def test_single_item_short_circuits(self, workspace):
        calls = []

        def transform(items, query):
            calls.append(query)
            return []

        single = lambda: [XrefItem("only", LazyRef("foo", 2))]  # noqa: E731
        buf = XrefExporter(workspace).export([], single, "zzz", transform)
        assert calls == []
        assert buf.lines() == ["foo", "   2: only"]

    def test_multiple_items_defer_to_transform(self, workspace):
        seen = []

        def transform(items, query):
            seen.append((len(items), query))
            return items[-1:]

        buf = XrefExporter(workspace).export([], _items, "q", transform)
        assert seen == [(3, "q")]
        assert buf.lines() == ["bar", "   2: beta(alpha)"]

    def test_preserves_jump_and_window_config(self, workspace):
        cfg = PickportConfig(xref_auto_jump=True, xref_window_placement="below")
        buf = XrefExporter(workspace, cfg).export([], _items, "")
        assert buf.local_vars["auto_jump"] is True
        assert buf.local_vars["window_placement"] == "below"
        assert buf.point == 1

    def test_without_auto_jump_point_at_start(self, workspace):
        buf = XrefExporter(workspace).export([], _items, "")
        assert buf.point == 0
        assert buf.local_vars["auto_jump"] is False

    def test_candidate_payloads_without_fetcher(self, workspace):
        from pickport.core.sources import xref_candidates

        cands = xref_candidates(_items())
        buf = XrefExporter(workspace).export(cands, None, "use")
        assert buf.lines() == ["foo", "   4: use(alpha)"]

    def test_revert_refetches(self, workspace):
        items = _items()[:2]
        buf = XrefExporter(workspace).export([], lambda: list(items), "alpha")
        items.append(XrefItem("alpha again", LazyRef("bar", 7)))
        buf.revert()
        assert buf.lines()[-2:] == ["bar", "   7: alpha again"]

    def test_unresolvable_item_raises(self, workspace):
        fetch = lambda: [XrefItem("x", LazyRef("gone", 1))]  # noqa: E731
        with pytest.raises(ResolutionError):
            XrefExporter(workspace).export([], fetch, "")


# =============================================================================
# ReportFormatter
# =============================================================================

class TestReportFormatter:

    def test_json_round_trip_shape(self, resolver):
        buf = GroupedExporter(resolver).export([make_candidate("foo", 2, "x\x07y")])
        data = json.loads(ReportFormatter.format_json(buf))
        assert data["mode"] == "occur"
        header, entry = data["entries"]
        assert header == {"kind": "header", "text": "lines from buffer: foo", "container": "foo"}
        assert entry["line"] == 2
        assert entry["prefix"] == "      2:"
        assert entry["text"] == "xy"

    def test_text_is_render(self, workspace):
        buf = FlatExporter(workspace).export(["foo:1:x"])
        assert ReportFormatter.format_text(buf) == "Exported grep results:\n\nfoo:1:x"


def test_container_replaced_under_same_name(workspace, resolver):
    """A recreated container is a new target; cached refs keep the old one."""
    cand = make_candidate("foo", 1, "foo line 1")
    old = resolver.resolve(cand)
    workspace.add(Container("foo", ["fresh"]))
    assert resolver.resolve(cand) is old
    assert old.container.line(1) == "foo line 1"
