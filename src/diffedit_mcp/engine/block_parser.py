"""SEARCH/REPLACE block parsing for the apply_diff operation.

Diff format (blocks may be concatenated):

    <<<<<<< SEARCH
    :start_line:12
    -------
    old text
    =======
    new text
    >>>>>>> REPLACE

The strict grammar is tried first, globally. Only when it yields nothing is
the lenient legacy grammar tried, for exactly one block.
"""

from __future__ import annotations

import logging
import re

from .models import SearchReplaceBlock

logger = logging.getLogger(__name__)

SEARCH_MARKER = "<<<<<<< SEARCH"

# An empty replace section deletes the searched lines.
_BLOCK_RE = re.compile(
    r"<<<<<<< SEARCH\n:start_line:(\d+)\n-------\n"
    r"([\s\S]*?)\n=======\n"
    r"(?:(?!>>>>>>> REPLACE)([\s\S]*?)\n)?>>>>>>> REPLACE"
)

# Legacy grammar: CRLF line endings, trailing whitespace on markers, optional
# :start_line: and ------- lines.
_LEGACY_BLOCK_RE = re.compile(
    r"<<<<<<< SEARCH[ \t]*\r?\n"
    r"(?::start_line:[ \t]*(\d+)[ \t]*\r?\n)?"
    r"(?:-------[ \t]*\r?\n)?"
    r"([\s\S]*?)\r?\n=======[ \t]*\r?\n"
    r"(?:(?!>>>>>>> REPLACE)([\s\S]*?)\r?\n)?>>>>>>> REPLACE"
)

_ESCAPED_MARKER_RE = re.compile(r"^\\(<<<<<<<|=======|>>>>>>>|-------)", re.MULTILINE)


def _unescape_markers(text: str) -> str:
    """Turn escaped marker lines (e.g. \\=======) inside block content back into markers."""
    return _ESCAPED_MARKER_RE.sub(r"\1", text)


def count_search_markers(diff_text: str) -> int:
    """Number of SEARCH markers in the diff, parsed or not."""
    return diff_text.count(SEARCH_MARKER)


def parse_blocks(diff_text: str, default_start_line: int | None = None) -> list[SearchReplaceBlock]:
    """Extract SEARCH/REPLACE blocks from diff text, in source order.

    Args:
        diff_text: Diff containing one or more SEARCH/REPLACE blocks
        default_start_line: Start line used when a legacy block omits
            :start_line: (defaults to 1)

    Returns:
        Parsed blocks; an empty list when neither grammar matched
    """
    blocks = [
        SearchReplaceBlock(
            declared_start_line=int(match.group(1)),
            search_text=_unescape_markers(match.group(2)),
            replace_text=_unescape_markers(match.group(3) or ""),
            source_order_index=index,
        )
        for index, match in enumerate(_BLOCK_RE.finditer(diff_text))
    ]

    if blocks:
        markers = count_search_markers(diff_text)
        if markers > len(blocks):
            logger.warning(
                f"Diff contains {markers} SEARCH markers but only {len(blocks)} "
                "well-formed blocks; malformed blocks were ignored"
            )
        return blocks

    match = _LEGACY_BLOCK_RE.search(diff_text)
    if match is None:
        return []

    if match.group(1) is not None:
        start_line = int(match.group(1))
    else:
        start_line = default_start_line if default_start_line is not None else 1
    logger.debug(f"Parsed diff with legacy single-block grammar (start_line={start_line})")

    # Normalize CRLF inside the captured content so line counting stays consistent
    search_text = match.group(2).replace("\r\n", "\n")
    replace_text = (match.group(3) or "").replace("\r\n", "\n")
    return [
        SearchReplaceBlock(
            declared_start_line=start_line,
            search_text=_unescape_markers(search_text),
            replace_text=_unescape_markers(replace_text),
            source_order_index=0,
        )
    ]


__all__ = ["SEARCH_MARKER", "count_search_markers", "parse_blocks"]
