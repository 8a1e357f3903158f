"""Bounded text replacement for the search_and_replace operation.

Replaces literal or regex matches over whole documents, or only inside a
window of lines and (optionally) a column slice of each of those lines.
"""

from __future__ import annotations

import re

from .models import ReplaceOptions


def compile_search_pattern(pattern: str, use_regex: bool, ignore_case: bool) -> re.Pattern[str]:
    """Compile the search pattern.

    Literal patterns are escaped so that regex metacharacters match verbatim.

    Raises:
        re.error: If use_regex is set and the pattern is not a valid regex
    """
    flags = re.IGNORECASE if ignore_case else 0
    source = pattern if use_regex else re.escape(pattern)
    return re.compile(source, flags)


def expand_replacement(match: re.Match[str], replacement: str, use_regex: bool) -> str:
    """Text that replaces one match.

    Regex mode expands backreferences (\\1, \\g<name>); literal mode inserts
    the replacement as-is.
    """
    return match.expand(replacement) if use_regex else replacement


def line_range(line_count: int, start_line: int | None, end_line: int | None) -> tuple[int, int]:
    """Clamp 1-based inclusive line bounds to 0-based inclusive indices.

    The returned range is empty (start > end) when the bounds do not
    intersect the document.
    """
    start = max((start_line if start_line is not None else 1) - 1, 0)
    end = min((end_line if end_line is not None else line_count) - 1, line_count - 1)
    return start, end


def column_slice(
    line: str, start_column: int | None, end_column: int | None
) -> tuple[int, int] | None:
    """Clamp 1-based inclusive column bounds to a 0-based half-open slice of line.

    Returns None when no well-formed slice remains (start index not strictly
    before the end index), in which case the line is left untouched.
    """
    lo = max((start_column if start_column is not None else 1) - 1, 0)
    hi = min((end_column if end_column is not None else len(line)) - 1, len(line) - 1)
    if lo >= hi:
        return None
    return lo, hi + 1


def replacement_spans(text: str, options: ReplaceOptions | None = None) -> list[tuple[int, int]]:
    """Half-open offset spans of text that the pattern is applied to.

    Unbounded options give the whole text. Line bounds give one span from
    the start of the first in-range line to the end of the last; column
    bounds give one span per in-range line with a well-formed column slice.
    Each span is matched on its own, so anchors such as ^ and \\b see the
    span's edges.
    """
    options = options or ReplaceOptions()
    if not options.is_bounded:
        return [(0, len(text))]

    lines = text.split("\n")
    first, last = line_range(len(lines), options.start_line, options.end_line)
    if first > last:
        return []

    starts = [0]
    for line in lines[:-1]:
        starts.append(starts[-1] + len(line) + 1)

    if not options.has_column_bounds:
        return [(starts[first], starts[last] + len(lines[last]))]

    spans = []
    for index in range(first, last + 1):
        bounds = column_slice(lines[index], options.start_column, options.end_column)
        if bounds is not None:
            lo, hi = bounds
            spans.append((starts[index] + lo, starts[index] + hi))
    return spans


def replace_text(
    file_text: str,
    pattern: str,
    replacement: str,
    options: ReplaceOptions | None = None,
) -> str:
    """Replace pattern occurrences in file_text.

    Without bounds every non-overlapping match is replaced in a single
    left-to-right pass. With bounds, lines outside [start_line, end_line]
    pass through unchanged; with column bounds the replacement is further
    restricted to the column slice of each in-range line, line by line.
    See replacement_spans.

    Args:
        file_text: Full document text
        pattern: Literal text or regex (see options.use_regex)
        replacement: Replacement text
        options: Matching mode and optional bounds

    Returns:
        New document text (identical to file_text when nothing matched)
    """
    options = options or ReplaceOptions()
    regex = compile_search_pattern(pattern, options.use_regex, options.ignore_case)

    def _substitute(match: re.Match[str]) -> str:
        return expand_replacement(match, replacement, options.use_regex)

    pieces: list[str] = []
    cursor = 0
    for start, end in replacement_spans(file_text, options):
        pieces.append(file_text[cursor:start])
        pieces.append(regex.sub(_substitute, file_text[start:end]))
        cursor = end
    pieces.append(file_text[cursor:])
    return "".join(pieces)


__all__ = [
    "column_slice",
    "compile_search_pattern",
    "expand_replacement",
    "line_range",
    "replace_text",
    "replacement_spans",
]
