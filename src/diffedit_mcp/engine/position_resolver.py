"""Resolution of where an edit landed in the final document.

Two entry points:

- resolve_block_position: locate a SEARCH/REPLACE block's replacement
  inside the final text, given its drift-corrected line range.
- resolve_replacement_end: for search/replace edits, find the last
  qualifying match in the original text and report where its replacement
  ends in the new text.

Column resolution is best effort. Patch application may re-indent or
otherwise perturb the replacement, so substring search falls back to
indentation- and length-based columns when the text is not found verbatim.
"""

from __future__ import annotations

import bisect
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from .models import AdjustedBlock, ChangeRange, ReplaceOptions
from .text_replacer import expand_replacement, replacement_spans


@dataclass(frozen=True)
class MatchLocation:
    """A regex match as 0-based offsets into the scanned text plus 1-based
    line/column coordinates.

    match belongs to the scanned span, so its own offsets are span-relative.
    end_column is the column of the match's last character; for a
    zero-length match it is start_column - 1.
    """

    match: re.Match[str]
    start_offset: int
    end_offset: int
    start_line: int
    start_column: int
    end_line: int
    end_column: int


class _LineIndex:
    """Offset to (line, column) conversion for one text."""

    def __init__(self, text: str):
        self.starts = [0]
        for line in text.split("\n")[:-1]:
            self.starts.append(self.starts[-1] + len(line) + 1)

    def locate(self, offset: int) -> tuple[int, int]:
        """1-based (line, column) of the character at offset."""
        index = bisect.bisect_right(self.starts, offset) - 1
        return index + 1, offset - self.starts[index] + 1


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0]


def _last_line(text: str) -> str:
    return text.rsplit("\n", 1)[-1]


# =============================================================================
# SEARCH/REPLACE blocks
# =============================================================================


def resolve_block_position(
    final_text: str,
    adjusted_start_line: int,
    adjusted_end_line: int,
    replace_text: str,
) -> ChangeRange:
    """Locate a block's replacement text within the final document.

    Start column: index of the trimmed first replacement line within final
    line adjusted_start_line, else the replacement's own indentation + 1.
    End column: one past the right-trimmed last replacement line within
    final line adjusted_end_line, else the trimmed length of that line + 1.
    Columns default to 1 when the line is out of range or empty.
    """
    final_lines = final_text.split("\n")
    replace_first = _first_line(replace_text)
    replace_last = _last_line(replace_text)

    start_column = 1
    if 0 < adjusted_start_line <= len(final_lines):
        line = final_lines[adjusted_start_line - 1]
        if line:
            index = line.find(replace_first.strip())
            if index != -1:
                start_column = index + 1
            else:
                start_column = len(replace_first) - len(replace_first.lstrip()) + 1

    end_column = 1
    if 0 < adjusted_end_line <= len(final_lines):
        line = final_lines[adjusted_end_line - 1]
        if line:
            trimmed = replace_last.rstrip()
            index = line.find(trimmed)
            if index != -1:
                end_column = index + len(trimmed) + 1
            else:
                end_column = len(line.rstrip()) + 1

    return ChangeRange(
        start_line=adjusted_start_line,
        start_column=start_column,
        end_line=adjusted_end_line,
        end_column=end_column,
    )


def resolve_last_block_position(
    final_text: str, adjusted_blocks: Sequence[AdjustedBlock]
) -> ChangeRange | None:
    """Position of the last block in processing order, or None without blocks."""
    if not adjusted_blocks:
        return None
    last = adjusted_blocks[-1]
    return resolve_block_position(
        final_text,
        last.adjusted_start_line,
        last.adjusted_end_line,
        last.block.replace_text,
    )


# =============================================================================
# Search/replace matches
# =============================================================================


def iter_qualifying_matches(
    text: str, regex: re.Pattern[str], options: ReplaceOptions | None = None
) -> Iterator[MatchLocation]:
    """Yield, left to right, the matches the bounded replacer would replace.

    Each span from replacement_spans is scanned on its own with the same
    matching rules as re.sub, and offsets are mapped back to text.
    """
    index = _LineIndex(text)
    for span_start, span_end in replacement_spans(text, options):
        for match in regex.finditer(text[span_start:span_end]):
            start_offset = span_start + match.start()
            end_offset = span_start + match.end()
            start_line, start_column = index.locate(start_offset)
            if end_offset > start_offset:
                end_line, end_column = index.locate(end_offset - 1)
            else:
                end_line, end_column = start_line, start_column - 1
            yield MatchLocation(
                match, start_offset, end_offset, start_line, start_column, end_line, end_column
            )


def find_last_match(
    text: str, regex: re.Pattern[str], options: ReplaceOptions | None = None
) -> MatchLocation | None:
    """The last qualifying match, or None if nothing qualifies."""
    last: MatchLocation | None = None
    for location in iter_qualifying_matches(text, regex, options):
        last = location
    return last


def resolve_replacement_end(
    original_text: str,
    new_text: str,
    regex: re.Pattern[str],
    replacement: str,
    options: ReplaceOptions | None = None,
) -> ChangeRange | None:
    """Where the replacement of the last qualifying match sits in new_text.

    The last match in original_text is the anchor. Its offset is shifted by
    the length change of every earlier replaced match, giving the start of
    its replacement in new_text; the end is then advanced by the shape of the
    replacement text. A single-line replacement ends at
    start_column + len(replacement) - 1; a multi-line one ends on line
    start_line + line_count - 1 at the length of its last line.

    Returns:
        ChangeRange from the replacement's first to its last character, or
        None when no match qualifies
    """
    options = options or ReplaceOptions()
    matches = list(iter_qualifying_matches(original_text, regex, options))
    if not matches:
        return None

    drift = 0
    for location in matches[:-1]:
        replaced = expand_replacement(location.match, replacement, options.use_regex)
        drift += len(replaced) - (location.end_offset - location.start_offset)

    last = matches[-1]
    replaced = expand_replacement(last.match, replacement, options.use_regex)
    anchor = min(max(last.start_offset + drift, 0), len(new_text))
    start_line, start_column = _LineIndex(new_text).locate(anchor)

    replacement_lines = replaced.split("\n")
    if len(replacement_lines) == 1:
        end_line = start_line
        end_column = start_column + len(replaced) - 1
    else:
        end_line = start_line + len(replacement_lines) - 1
        end_column = len(replacement_lines[-1])

    return ChangeRange(
        start_line=start_line,
        start_column=start_column,
        end_line=end_line,
        end_column=end_column,
    )


__all__ = [
    "MatchLocation",
    "find_last_match",
    "iter_qualifying_matches",
    "resolve_block_position",
    "resolve_last_block_position",
    "resolve_replacement_end",
]
