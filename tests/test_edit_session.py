"""Tests for EditSession: file-level search_and_replace and apply_diff."""

import logging

import pytest

from diffedit_mcp.engine import (
    ApplyDiffRequest,
    DiffParseError,
    EditConfig,
    EditFileNotFoundError,
    EditSession,
    MissingParameterError,
    OverlappingBlocksError,
    SearchReplaceRequest,
)


def make_block(start_line: int, search: str, replace: str) -> str:
    return (
        f"<<<<<<< SEARCH\n:start_line:{start_line}\n-------\n"
        f"{search}\n=======\n{replace}\n>>>>>>> REPLACE"
    )


# =============================================================================
# search_and_replace
# =============================================================================


class TestSearchAndReplace:
    def test_replaces_and_tracks_caret_after_last_match(self, session, write_file):
        """The caret lands one column past the last replacement."""
        path = write_file("a.txt", "foo foo foo")

        outcome = session.search_and_replace(
            SearchReplaceRequest(path="a.txt", search="foo", replace="bar")
        )

        assert outcome.status == "success"
        assert outcome.written
        assert path.read_text() == "bar bar bar"
        assert outcome.lines_modified == 1
        position = session.primary_position("a.txt")
        assert position is not None
        assert position.edit_type == "replace"
        assert (position.start_line, position.end_line) == (1, 1)
        assert (position.start_column, position.end_column) == (11, 12)

    def test_bounded_replacement(self, session, write_file):
        """Line bounds limit both the replacement and the reported range."""
        path = write_file("a.txt", "line1\nline2\nline3")

        outcome = session.search_and_replace(
            SearchReplaceRequest(path="a.txt", search="line", replace="L", start_line=2, end_line=2)
        )

        assert outcome.status == "success"
        assert path.read_text() == "line1\nL2\nline3"
        assert outcome.change_range is not None
        assert outcome.change_range.end_line == 2

    def test_no_match_is_no_change(self, session, write_file):
        """Nothing matched means nothing written and nothing tracked."""
        path = write_file("a.txt", "hello")

        outcome = session.search_and_replace(
            SearchReplaceRequest(path="a.txt", search="zzz", replace="y")
        )

        assert outcome.status == "no_change"
        assert not outcome.written
        assert path.read_text() == "hello"
        assert session.primary_position("a.txt") is None

    def test_dry_run_does_not_write_or_track(self, session, write_file):
        """A dry run reports the outcome but leaves the file and positions alone."""
        path = write_file("a.txt", "foo")

        outcome = session.search_and_replace(
            SearchReplaceRequest(path="a.txt", search="foo", replace="bar", dry_run=True)
        )

        assert outcome.status == "success"
        assert not outcome.written
        assert outcome.new_content == "bar"
        assert outcome.position is not None
        assert path.read_text() == "foo"
        assert session.primary_position("a.txt") is None

    def test_crlf_line_endings_survive(self, session, write_file):
        """CRLF endings are written back unchanged."""
        path = write_file("crlf.txt", "a\r\nb\r\nc")

        session.search_and_replace(SearchReplaceRequest(path="crlf.txt", search="b", replace="B"))

        assert path.read_bytes() == b"a\r\nB\r\nc"

    def test_start_anchor_in_line_window_is_tracked(self, session, write_file):
        """An anchored pattern inside line bounds still records a position."""
        path = write_file("a.txt", "aaa\nbbb\nccc")

        outcome = session.search_and_replace(
            SearchReplaceRequest(
                path="a.txt", search="^b", replace="X", use_regex=True, start_line=2, end_line=2
            )
        )

        assert outcome.status == "success"
        assert path.read_text() == "aaa\nXbb\nccc"
        position = session.primary_position("a.txt")
        assert position is not None
        assert (position.start_line, position.end_line) == (2, 2)
        assert (position.start_column, position.end_column) == (1, 2)

    def test_invalid_regex(self, session, write_file):
        """A bad pattern is reported as a ValueError."""
        write_file("a.txt", "x")

        with pytest.raises(ValueError, match="Invalid regular expression"):
            session.search_and_replace(
                SearchReplaceRequest(path="a.txt", search="(", replace="y", use_regex=True)
            )

    @pytest.mark.parametrize(
        ("request_fields", "parameter"),
        [
            ({"search": "a", "replace": "b"}, "path"),
            ({"path": "a.txt", "replace": "b"}, "search"),
            ({"path": "a.txt", "search": "", "replace": "b"}, "search"),
            ({"path": "a.txt", "search": "a"}, "replace"),
        ],
    )
    def test_missing_parameters(self, session, request_fields, parameter):
        """Each required parameter is reported by name."""
        with pytest.raises(MissingParameterError) as exc_info:
            session.search_and_replace(SearchReplaceRequest(**request_fields))

        assert exc_info.value.parameter == parameter
        assert exc_info.value.tool_name == "search_and_replace"

    def test_empty_replacement_is_allowed(self, session, write_file):
        """An empty replacement deletes the match."""
        path = write_file("a.txt", "keep drop")

        session.search_and_replace(SearchReplaceRequest(path="a.txt", search=" drop", replace=""))

        assert path.read_text() == "keep"

    def test_missing_file(self, session, working_dir):
        """The error names the resolved path."""
        with pytest.raises(EditFileNotFoundError) as exc_info:
            session.search_and_replace(
                SearchReplaceRequest(path="missing.txt", search="a", replace="b")
            )

        assert str(exc_info.value).startswith("File does not exist at path:")
        assert str(working_dir.resolve() / "missing.txt") in str(exc_info.value)

    def test_path_outside_working_dir(self, session):
        """Paths escaping the working directory are rejected."""
        with pytest.raises(ValueError, match="Invalid path"):
            session.search_and_replace(
                SearchReplaceRequest(path="../outside.txt", search="a", replace="b")
            )


# =============================================================================
# apply_diff
# =============================================================================


class TestApplyDiff:
    def test_single_block(self, session, write_file):
        """One block is applied and its position tracked as a modify."""
        path = write_file("a.txt", "line1\nline2\nline3")

        outcome = session.apply_diff(
            ApplyDiffRequest(path="a.txt", diff=make_block(2, "line2", "L2"))
        )

        assert outcome.status == "success"
        assert outcome.single_block
        assert path.read_text() == "line1\nL2\nline3"
        position = session.primary_position("a.txt")
        assert position is not None
        assert position.edit_type == "modify"
        assert (position.start_line, position.end_line) == (2, 2)
        assert (position.start_column, position.end_column) == (3, 3)

    def test_position_follows_line_drift(self, session, write_file):
        """The last block's position includes lines added by earlier blocks."""
        write_file("a.txt", "\n".join(f"line {i}" for i in range(1, 31)))
        diff = "\n".join(
            [
                make_block(10, "line 10", "a\nb\nc\nd"),
                make_block(20, "line 20", "X"),
            ]
        )

        outcome = session.apply_diff(ApplyDiffRequest(path="a.txt", diff=diff))

        assert outcome.status == "success"
        assert outcome.blocks_applied == 2
        assert not outcome.single_block
        assert outcome.position is not None
        assert outcome.position.start_line == 23
        assert outcome.new_content is not None
        assert outcome.new_content.split("\n")[22] == "X"

    def test_empty_replace_section_deletes_lines(self, session, write_file):
        """A block with nothing between ======= and REPLACE removes its lines."""
        path = write_file("a.txt", "a\nb\nc")
        diff = "<<<<<<< SEARCH\n:start_line:2\n-------\nb\n=======\n>>>>>>> REPLACE"

        outcome = session.apply_diff(ApplyDiffRequest(path="a.txt", diff=diff))

        assert outcome.status == "success"
        assert path.read_text() == "a\nc"
        assert outcome.position is not None
        assert outcome.position.start_line == 2

    def test_crlf_file_keeps_crlf_for_inserted_lines(self, session, write_file):
        """Lines added to a CRLF file get CRLF, not bare LF."""
        path = write_file("crlf.txt", "one\r\ntwo\r\nthree\r\n")

        outcome = session.apply_diff(
            ApplyDiffRequest(path="crlf.txt", diff=make_block(2, "two", "TWO\nTWO-B"))
        )

        assert outcome.status == "success"
        assert path.read_bytes() == b"one\r\nTWO\r\nTWO-B\r\nthree\r\n"

    def test_partial_application_writes_applied_blocks(self, session, write_file):
        """Blocks that applied are written even when another failed."""
        path = write_file("a.txt", "a\nb\nc")
        diff = "\n".join([make_block(1, "missing", "x"), make_block(2, "b", "B")])

        outcome = session.apply_diff(ApplyDiffRequest(path="a.txt", diff=diff))

        assert outcome.status == "partial"
        assert outcome.written
        assert path.read_text() == "a\nB\nc"
        assert len(outcome.failures) == 1
        assert outcome.failures[0].block_index == 0
        assert outcome.consecutive_failures == 1

    def test_failure_escalates_after_threshold(self, session, write_file, caplog):
        """The second consecutive failure escalates and logs a warning."""
        path = write_file("a.txt", "a\nb\nc")
        request = ApplyDiffRequest(path="a.txt", diff=make_block(1, "nothing", "x"))

        first = session.apply_diff(request)
        with caplog.at_level(logging.WARNING):
            second = session.apply_diff(request)

        assert first.status == "failure"
        assert first.consecutive_failures == 1
        assert not first.escalate
        assert second.consecutive_failures == 2
        assert second.escalate
        assert "2 consecutive apply_diff failures" in caplog.text
        assert path.read_text() == "a\nb\nc"

    def test_success_resets_failure_count(self, session, write_file):
        """A full success zeroes the failure counter."""
        write_file("a.txt", "a\nb\nc")
        session.apply_diff(ApplyDiffRequest(path="a.txt", diff=make_block(1, "nothing", "x")))

        outcome = session.apply_diff(ApplyDiffRequest(path="a.txt", diff=make_block(1, "a", "A")))

        assert outcome.status == "success"
        assert outcome.consecutive_failures == 0
        assert session.consecutive_failures("a.txt") == 0

    def test_failure_counts_are_per_file(self, session, write_file):
        """Failures on one file do not count against another."""
        write_file("a.txt", "a")
        write_file("b.txt", "b")

        session.apply_diff(ApplyDiffRequest(path="a.txt", diff=make_block(1, "zzz", "x")))

        assert session.consecutive_failures("a.txt") == 1
        assert session.consecutive_failures("b.txt") == 0

    def test_unparseable_diff(self, session, write_file):
        """A diff with no blocks raises and counts as a failure."""
        write_file("a.txt", "a")

        with pytest.raises(DiffParseError):
            session.apply_diff(ApplyDiffRequest(path="a.txt", diff="not a diff"))

        assert session.consecutive_failures("a.txt") == 1

    def test_overlapping_blocks(self, session, write_file):
        """Overlapping blocks raise and the file is left untouched."""
        path = write_file("a.txt", "a\nb\nc")
        diff = "\n".join([make_block(1, "a\nb", "x"), make_block(2, "b", "y")])

        with pytest.raises(OverlappingBlocksError):
            session.apply_diff(ApplyDiffRequest(path="a.txt", diff=diff))

        assert path.read_text() == "a\nb\nc"

    def test_legacy_block_uses_request_start_line(self, session, write_file):
        """A legacy block takes its hint from the request."""
        path = write_file("a.txt", "x\ny\nx")
        diff = "<<<<<<< SEARCH\nx\n=======\nz\n>>>>>>> REPLACE"

        outcome = session.apply_diff(ApplyDiffRequest(path="a.txt", diff=diff, start_line=3))

        assert outcome.status == "success"
        assert path.read_text() == "x\ny\nz"

    def test_identical_replacement_is_no_change(self, session, write_file):
        """Replacing text with itself is not a change."""
        write_file("a.txt", "a\nb")

        outcome = session.apply_diff(ApplyDiffRequest(path="a.txt", diff=make_block(2, "b", "b")))

        assert outcome.status == "no_change"
        assert not outcome.written

    def test_html_entities_unescaped_when_enabled(self, working_dir, write_file):
        """Escaped HTML in blocks is unescaped before matching."""
        path = write_file("page.html", "<div>old</div>")
        diff = make_block(1, "&lt;div&gt;old&lt;/div&gt;", "&lt;div&gt;new&lt;/div&gt;")
        config = EditConfig(unescape_html_entities=True)

        with EditSession(config, working_dir=working_dir) as session:
            outcome = session.apply_diff(ApplyDiffRequest(path="page.html", diff=diff))

        assert outcome.status == "success"
        assert path.read_text() == "<div>new</div>"

    def test_configured_dry_run(self, working_dir, write_file):
        """dry_run in the config applies to every request."""
        path = write_file("a.txt", "a")

        with EditSession(EditConfig(dry_run=True), working_dir=working_dir) as session:
            outcome = session.apply_diff(
                ApplyDiffRequest(path="a.txt", diff=make_block(1, "a", "b"))
            )

        assert outcome.status == "success"
        assert not outcome.written
        assert "+++ b/a.txt" in outcome.diff
        assert path.read_text() == "a"

    @pytest.mark.parametrize(
        ("request_fields", "parameter"),
        [
            ({"diff": "x"}, "path"),
            ({"path": "a.txt"}, "diff"),
            ({"path": "a.txt", "diff": ""}, "diff"),
        ],
    )
    def test_missing_parameters(self, session, request_fields, parameter):
        """Each required parameter is reported by name."""
        with pytest.raises(MissingParameterError) as exc_info:
            session.apply_diff(ApplyDiffRequest(**request_fields))

        assert exc_info.value.parameter == parameter


# =============================================================================
# Session lifecycle
# =============================================================================


class TestSessionLifecycle:
    def test_positions_accumulate_and_primary_is_first(self, session, write_file):
        """Positions are kept per edit and the first one is primary."""
        write_file("a.txt", "a\nb\nc\nd")
        session.apply_diff(ApplyDiffRequest(path="a.txt", diff=make_block(3, "c", "C")))
        session.apply_diff(ApplyDiffRequest(path="a.txt", diff=make_block(1, "a", "A")))

        positions = session.positions.get_positions("a.txt")
        primary = session.primary_position("a.txt")

        assert [p.start_line for p in positions] == [3, 1]
        assert primary is not None
        assert primary.start_line == 3

    def test_clear_positions(self, session, write_file):
        """Clearing forgets the file's positions."""
        write_file("a.txt", "a")
        session.apply_diff(ApplyDiffRequest(path="a.txt", diff=make_block(1, "a", "b")))

        session.clear_positions("a.txt")

        assert session.primary_position("a.txt") is None

    def test_close_clears_state(self, working_dir, write_file):
        """Closing drops positions and failure counters."""
        write_file("a.txt", "a")
        session = EditSession(working_dir=working_dir)
        session.apply_diff(ApplyDiffRequest(path="a.txt", diff=make_block(1, "zzz", "b")))
        session.apply_diff(ApplyDiffRequest(path="a.txt", diff=make_block(1, "a", "b")))

        session.close()

        assert session.primary_position("a.txt") is None
        assert session.consecutive_failures("a.txt") == 0
