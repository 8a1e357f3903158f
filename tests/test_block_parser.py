"""Tests for SEARCH/REPLACE block parsing."""

import logging

from diffedit_mcp.engine import count_search_markers, parse_blocks


def make_block(start_line: int, search: str, replace: str) -> str:
    return (
        f"<<<<<<< SEARCH\n:start_line:{start_line}\n-------\n"
        f"{search}\n=======\n{replace}\n>>>>>>> REPLACE"
    )


def make_deleting_block(start_line: int, search: str) -> str:
    return (
        f"<<<<<<< SEARCH\n:start_line:{start_line}\n-------\n"
        f"{search}\n=======\n>>>>>>> REPLACE"
    )


class TestMultiBlockGrammar:
    """The strict grammar with :start_line: and ------- lines."""

    def test_single_block(self):
        """All fields of a well-formed block are captured."""
        blocks = parse_blocks(make_block(2, "line2", "L2"))

        assert len(blocks) == 1
        block = blocks[0]
        assert block.declared_start_line == 2
        assert block.search_text == "line2"
        assert block.replace_text == "L2"
        assert block.source_order_index == 0

    def test_blocks_keep_source_order(self):
        """Blocks are returned in the order they appear, not by line."""
        diff = "\n".join([make_block(20, "b", "B"), make_block(10, "a", "A")])

        blocks = parse_blocks(diff)

        assert [b.declared_start_line for b in blocks] == [20, 10]
        assert [b.source_order_index for b in blocks] == [0, 1]

    def test_multiline_content(self):
        """Search and replace sections may span several lines."""
        blocks = parse_blocks(make_block(5, "def f():\n    return 1", "def f():\n    return 2"))

        assert blocks[0].search_text == "def f():\n    return 1"
        assert blocks[0].replace_text == "def f():\n    return 2"

    def test_blank_replace_line_deletes(self):
        """A replace section holding one blank line parses as empty."""
        diff = "<<<<<<< SEARCH\n:start_line:3\n-------\nremove me\n=======\n\n>>>>>>> REPLACE"

        blocks = parse_blocks(diff)

        assert blocks[0].replace_text == ""

    def test_empty_replace_section(self):
        """REPLACE may directly follow the separator."""
        blocks = parse_blocks(make_deleting_block(3, "remove me"))

        assert len(blocks) == 1
        assert blocks[0].declared_start_line == 3
        assert blocks[0].search_text == "remove me"
        assert blocks[0].replace_text == ""

    def test_empty_replace_section_does_not_swallow_next_block(self):
        """A deleting block followed by another block yields two blocks."""
        diff = "\n".join([make_deleting_block(1, "a"), make_block(3, "c", "C")])

        blocks = parse_blocks(diff)

        assert len(blocks) == 2
        assert blocks[0].replace_text == ""
        assert blocks[1].search_text == "c"
        assert blocks[1].replace_text == "C"

    def test_escaped_markers_in_content_are_unescaped(self):
        """Backslash-escaped markers inside content become literal text."""
        blocks = parse_blocks(make_block(1, "a\n\\=======\nb", "a\nb"))

        assert blocks[0].search_text == "a\n=======\nb"

    def test_malformed_block_is_skipped_with_warning(self, caplog):
        """Unparseable blocks are dropped and the marker mismatch is logged."""
        diff = "\n".join(
            [
                make_block(1, "a", "A"),
                "<<<<<<< SEARCH\nno separator here\n>>>>>>> REPLACE",
            ]
        )

        with caplog.at_level(logging.WARNING):
            blocks = parse_blocks(diff)

        assert len(blocks) == 1
        assert "2 SEARCH markers" in caplog.text


class TestLegacyGrammar:
    """Fallback single-block grammar."""

    def test_block_without_start_line_defaults_to_one(self):
        """A missing :start_line: means line 1."""
        diff = "<<<<<<< SEARCH\nold\n=======\nnew\n>>>>>>> REPLACE"

        blocks = parse_blocks(diff)

        assert len(blocks) == 1
        assert blocks[0].declared_start_line == 1
        assert blocks[0].search_text == "old"
        assert blocks[0].replace_text == "new"

    def test_default_start_line_is_used(self):
        """The caller's start line fills in for a missing :start_line:."""
        diff = "<<<<<<< SEARCH\nold\n=======\nnew\n>>>>>>> REPLACE"

        blocks = parse_blocks(diff, default_start_line=7)

        assert blocks[0].declared_start_line == 7

    def test_crlf_diff_is_normalized(self):
        """CRLF diffs parse, and their content comes back with LF."""
        diff = (
            "<<<<<<< SEARCH\r\n:start_line:4\r\n"
            "old 1\r\nold 2\r\n=======\r\nnew\r\n>>>>>>> REPLACE"
        )

        blocks = parse_blocks(diff)

        assert blocks[0].declared_start_line == 4
        assert blocks[0].search_text == "old 1\nold 2"
        assert blocks[0].replace_text == "new"

    def test_crlf_empty_replace_section(self):
        """The legacy grammar also accepts an empty replace section."""
        diff = "<<<<<<< SEARCH\r\nold\r\n=======\r\n>>>>>>> REPLACE"

        blocks = parse_blocks(diff)

        assert len(blocks) == 1
        assert blocks[0].search_text == "old"
        assert blocks[0].replace_text == ""

    def test_trailing_whitespace_on_markers(self):
        """Spaces after the markers are ignored."""
        diff = "<<<<<<< SEARCH  \n-------\nold\n=======  \nnew\n>>>>>>> REPLACE"

        blocks = parse_blocks(diff)

        assert blocks[0].search_text == "old"


def test_unparseable_diff_yields_no_blocks():
    """Text without complete blocks parses to nothing."""
    assert parse_blocks("just some text") == []
    assert parse_blocks("<<<<<<< SEARCH\nold\n>>>>>>> REPLACE") == []


def test_count_search_markers():
    """Only SEARCH markers are counted."""
    diff = "\n".join([make_block(1, "a", "A"), make_block(3, "c", "C")])
    assert count_search_markers(diff) == 2
    assert count_search_markers("") == 0
