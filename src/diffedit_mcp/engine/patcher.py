"""Patch matching for SEARCH/REPLACE blocks.

The block applier depends only on the BlockPatcher protocol. The default
SearchReplacePatcher locates a block's search lines near a line hint,
scoring candidate windows with difflib.SequenceMatcher over
whitespace-normalized text, and splices the replacement in.

With the default threshold (1.0) a match must be identical after whitespace
normalization, so a block whose indentation differs from the file still
applies; its replacement is then re-indented to the matched lines. An empty
replacement removes the matched lines. Files with CRLF endings keep them:
matching ignores the carriage returns and inserted lines are written with them.
"""

from __future__ import annotations

import difflib
from collections.abc import Iterator
from typing import Protocol

from .load_result import LoadResult

DEFAULT_FUZZY_THRESHOLD = 1.0
DEFAULT_BUFFER_LINES = 40


class BlockPatcher(Protocol):
    """Applies one located search/replace pair to a document."""

    def patch(
        self,
        content: str,
        search_text: str,
        replace_text: str,
        start_line_hint: int | None = None,
    ) -> LoadResult[str]:
        """Return the patched content, or a failure with details in metadata.

        Successful results carry the 1-based matched line in
        metadata["matched_start_line"].
        """
        ...


def _normalize(text: str) -> str:
    return "\n".join(" ".join(line.split()) for line in text.split("\n"))


def _split_line_endings(content: str) -> tuple[list[str], list[str]]:
    """Split content into lines, separating each line's trailing carriage return."""
    lines = content.split("\n")
    if "\r" not in content:
        return lines, [""] * len(lines)
    endings = ["\r" if line.endswith("\r") else "" for line in lines]
    return [line[: len(line) - len(ending)] for line, ending in zip(lines, endings)], endings


def _leading_whitespace(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _middle_out(center: int, lo: int, hi: int) -> Iterator[int]:
    """Indices in [lo, hi], nearest to center first."""
    yield center
    step = 1
    while center - step >= lo or center + step <= hi:
        if center - step >= lo:
            yield center - step
        if center + step <= hi:
            yield center + step
        step += 1


class SearchReplacePatcher:
    """difflib-based BlockPatcher.

    Attributes:
        fuzzy_threshold: Minimum similarity (0-1) for a candidate window
        buffer_lines: Lines searched on each side of the hinted line
    """

    def __init__(
        self,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
        buffer_lines: int = DEFAULT_BUFFER_LINES,
    ):
        self.fuzzy_threshold = fuzzy_threshold
        self.buffer_lines = buffer_lines

    def patch(
        self,
        content: str,
        search_text: str,
        replace_text: str,
        start_line_hint: int | None = None,
    ) -> LoadResult[str]:
        if search_text == "":
            return LoadResult.failure(
                "Empty search content is not allowed",
                metadata={"start_line": start_line_hint},
            )

        lines, line_endings = _split_line_endings(content)
        search_text = search_text.replace("\r\n", "\n")
        replace_text = replace_text.replace("\r\n", "\n")
        search_lines = search_text.split("\n")
        window = len(search_lines)

        if window > len(lines):
            return LoadResult.failure(
                f"Search content has {window} lines but the file only has {len(lines)}",
                metadata={"start_line": start_line_hint},
            )

        last_start = len(lines) - window
        if start_line_hint is not None:
            center = min(max(start_line_hint - 1, 0), last_start)
            lo = max(0, center - self.buffer_lines)
            hi = min(last_start, center + self.buffer_lines)
            searched = f"lines {lo + 1}-{hi + window}"
        else:
            center, lo, hi = 0, 0, last_start
            searched = "entire file"

        best_index, best_score = self._best_window(lines, search_text, window, center, lo, hi)

        if best_score < self.fuzzy_threshold and start_line_hint is not None:
            # Line hints are often stale; accept an exact match anywhere
            exact_index = self._exact_window(lines, search_text, window, center, last_start)
            if exact_index is not None:
                best_index, best_score = exact_index, 1.0

        if best_index is None or best_score < self.fuzzy_threshold:
            at_line = f" at line: {start_line_hint}" if start_line_hint is not None else ""
            best_match = (
                "\n".join(lines[best_index : best_index + window]) if best_index is not None else ""
            )
            return LoadResult.failure(
                f"No sufficiently similar match found{at_line} "
                f"({best_score:.0%} similar, needs {self.fuzzy_threshold:.0%})",
                metadata={
                    "similarity": round(best_score, 4),
                    "threshold": self.fuzzy_threshold,
                    "search_range": searched,
                    "search_content": search_text,
                    "best_match": best_match,
                    "best_match_line": best_index + 1 if best_index is not None else None,
                },
            )

        end = best_index + window
        matched = lines[best_index:end]
        replace_lines = replace_text.split("\n") if replace_text else []
        replacement = self._reindent(matched, search_lines, replace_lines)

        # Inserted lines take the file's line ending; the last one keeps the
        # ending of the last replaced line (none at end of file).
        eol = "\r" if "\r" in line_endings else ""
        inserted = [line + eol for line in replacement[:-1]]
        if replacement:
            inserted.append(replacement[-1] + line_endings[end - 1])

        restored = [line + ending for line, ending in zip(lines, line_endings)]
        patched = restored[:best_index] + inserted + restored[end:]
        return LoadResult.success(
            "\n".join(patched),
            metadata={"matched_start_line": best_index + 1, "similarity": round(best_score, 4)},
        )

    def _best_window(
        self,
        lines: list[str],
        search_text: str,
        window: int,
        center: int,
        lo: int,
        hi: int,
    ) -> tuple[int | None, float]:
        """Highest scoring window start in [lo, hi]; exact hits end the scan."""
        target = _normalize(search_text)
        best_index: int | None = None
        best_score = 0.0

        for index in _middle_out(center, lo, hi):
            chunk = "\n".join(lines[index : index + window])
            if chunk == search_text:
                return index, 1.0
            normalized = _normalize(chunk)
            if normalized == target:
                score = 1.0
            else:
                matcher = difflib.SequenceMatcher(None, normalized, target, autojunk=False)
                if matcher.real_quick_ratio() <= best_score or matcher.quick_ratio() <= best_score:
                    continue
                score = matcher.ratio()
            if score > best_score:
                best_index, best_score = index, score

        return best_index, best_score

    @staticmethod
    def _exact_window(
        lines: list[str], search_text: str, window: int, center: int, last_start: int
    ) -> int | None:
        for index in _middle_out(center, 0, last_start):
            if "\n".join(lines[index : index + window]) == search_text:
                return index
        return None

    @staticmethod
    def _reindent(
        matched: list[str], search_lines: list[str], replace_lines: list[str]
    ) -> list[str]:
        """Shift replacement indentation from the search base to the matched base."""
        matched_base = _leading_whitespace(matched[0])
        search_base = _leading_whitespace(search_lines[0])
        if matched_base == search_base:
            return replace_lines

        reindented = []
        for line in replace_lines:
            indent = _leading_whitespace(line)
            if line.strip() and indent.startswith(search_base):
                line = matched_base + line[len(search_base) :]
            reindented.append(line)
        return reindented


__all__ = [
    "DEFAULT_BUFFER_LINES",
    "DEFAULT_FUZZY_THRESHOLD",
    "BlockPatcher",
    "SearchReplacePatcher",
]
