"""Edit session - search_and_replace and apply_diff over files.

Architecture:
- One EditSession per task; it owns the EditPositionStore and the
  per-file consecutive failure counters, and tears both down on close()
- Operations return EditOutcome directly
- Raises exceptions for structural problems (missing parameters, missing
  file, unreadable file, unparseable or overlapping diff)
- Block application failures are results, not exceptions
"""

from __future__ import annotations

import difflib
import html
import logging
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from .block_applier import apply_blocks
from .block_parser import count_search_markers, parse_blocks
from .edit_config import EditConfig
from .exceptions import (
    DiffParseError,
    EditFileNotFoundError,
    MissingParameterError,
    OverlappingBlocksError,
)
from .file_utils import FileOperations, PathResolver
from .line_offsets import resolve_adjusted_lines
from .models import BlockFailure, ChangeRange, EditPosition, ReplaceOptions
from .patcher import BlockPatcher, SearchReplacePatcher
from .position_resolver import resolve_last_block_position, resolve_replacement_end
from .position_store import EditPositionStore
from .text_replacer import compile_search_pattern, replace_text

logger = logging.getLogger(__name__)

EditStatus = Literal["success", "partial", "no_change", "failure"]


# ============================================================================
# Requests and outcome
# ============================================================================


class SearchReplaceRequest(BaseModel):
    """Input for a search_and_replace edit.

    Required fields are optional at the model level so that a missing value
    is reported as MissingParameterError by the session.
    """

    model_config = {"extra": "forbid"}

    path: str | None = Field(default=None, description="File path (relative to working dir)")
    search: str | None = Field(default=None, description="Text or regex to search for")
    replace: str | None = Field(default=None, description="Replacement text")
    use_regex: bool = Field(default=False, description="Treat search as a regular expression")
    ignore_case: bool = Field(default=False, description="Case-insensitive matching")
    start_line: int | None = Field(default=None, description="First line eligible (1-based)")
    end_line: int | None = Field(default=None, description="Last line eligible (1-based)")
    start_column: int | None = Field(default=None, description="First column eligible (1-based)")
    end_column: int | None = Field(default=None, description="Last column eligible (1-based)")
    dry_run: bool | None = Field(default=None, description="Override the configured dry_run")


class ApplyDiffRequest(BaseModel):
    """Input for an apply_diff edit."""

    model_config = {"extra": "forbid"}

    path: str | None = Field(default=None, description="File path (relative to working dir)")
    diff: str | None = Field(default=None, description="One or more SEARCH/REPLACE blocks")
    start_line: int | None = Field(
        default=None,
        description="Start line for a legacy block without :start_line:",
    )
    dry_run: bool | None = Field(default=None, description="Override the configured dry_run")


class EditOutcome(BaseModel):
    """Result of one edit operation."""

    tool: Literal["search_and_replace", "apply_diff"]
    path: str
    absolute_path: str
    status: EditStatus
    new_content: str | None = Field(
        default=None, description="Resulting text (None when nothing applied)"
    )
    diff: str = Field(default="", description="Unified diff of the change")
    lines_added: int = 0
    lines_removed: int = 0
    lines_modified: int = 0
    written: bool = Field(default=False, description="True if the file was written")
    position: EditPosition | None = Field(
        default=None, description="Position tracked for focus, if any"
    )
    change_range: ChangeRange | None = Field(
        default=None, description="Full span of the last change in the new text"
    )
    blocks_total: int = 0
    blocks_applied: int = 0
    failures: list[BlockFailure] = Field(default_factory=list)
    consecutive_failures: int = 0
    escalate: bool = Field(
        default=False,
        description="True once consecutive failures reach the escalation threshold",
    )

    @property
    def single_block(self) -> bool:
        return self.tool == "apply_diff" and self.blocks_total == 1

    def to_response(self) -> dict[str, Any]:
        """Structured tool response; file content is left out."""
        response: dict[str, Any] = {
            "status": self.status,
            "path": self.path,
            "absolute_path": self.absolute_path,
            "written": self.written,
        }
        if self.status in ("success", "partial"):
            response["diff"] = self.diff
            response["lines_added"] = self.lines_added
            response["lines_removed"] = self.lines_removed
            response["lines_modified"] = self.lines_modified
        if self.position is not None:
            response["position"] = self.position.model_dump(exclude_none=True)
        if self.change_range is not None:
            response["change_range"] = self.change_range.model_dump()
        if self.tool == "apply_diff":
            response["blocks_total"] = self.blocks_total
            response["blocks_applied"] = self.blocks_applied
        if self.failures:
            response["failures"] = [failure.model_dump() for failure in self.failures]
        if self.consecutive_failures:
            response["consecutive_failures"] = self.consecutive_failures
            response["escalate"] = self.escalate
        return response


# ============================================================================
# Diff statistics
# ============================================================================


def compute_unified_diff(original: str, modified: str, filepath: str) -> str:
    """Unified diff between original and modified content (one line per entry)."""
    diff_lines = difflib.unified_diff(
        original.splitlines(),
        modified.splitlines(),
        fromfile=f"a/{filepath}",
        tofile=f"b/{filepath}",
        lineterm="",
    )
    return "\n".join(diff_lines)


def compute_line_stats(original: str, modified: str) -> dict[str, int]:
    """Count added, removed and modified lines between two texts.

    Returns:
        Dictionary with 'added', 'removed', 'modified' counts
    """
    matcher = difflib.SequenceMatcher(None, original.splitlines(), modified.splitlines())

    stats = {"added": 0, "removed": 0, "modified": 0}
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "replace":
            stats["modified"] += max(i2 - i1, j2 - j1)
        elif tag == "delete":
            stats["removed"] += i2 - i1
        elif tag == "insert":
            stats["added"] += j2 - j1
    return stats


# ============================================================================
# Session
# ============================================================================


class EditSession:
    """Performs edits for one task and remembers where they landed.

    Usage:
        with EditSession(config, working_dir=Path("/repo")) as session:
            outcome = session.apply_diff(ApplyDiffRequest(path="app.py", diff=diff))
            focus = session.primary_position("app.py")

    Edits to the same file must not run concurrently; callers serialize them.
    """

    def __init__(
        self,
        config: EditConfig | None = None,
        working_dir: Path | None = None,
        patcher: BlockPatcher | None = None,
        store: EditPositionStore | None = None,
    ):
        self.config = config or EditConfig()
        self.working_dir = working_dir or Path.cwd()
        self.patcher = patcher or SearchReplacePatcher(
            fuzzy_threshold=self.config.fuzzy_threshold,
            buffer_lines=self.config.buffer_lines,
        )
        self.positions = store if store is not None else EditPositionStore()
        self._failure_counts: dict[str, int] = {}

    def __enter__(self) -> EditSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """End the session: drop all tracked positions and failure counters."""
        self.positions.clear_all()
        self._failure_counts.clear()

    # ------------------------------------------------------------------
    # Positions and counters
    # ------------------------------------------------------------------

    def primary_position(self, path: str) -> EditPosition | None:
        """First position tracked for path in this session."""
        return self.positions.get_primary_position(path)

    def clear_positions(self, path: str) -> None:
        """Forget positions for path (end of an edit cycle)."""
        self.positions.clear_positions(path)

    def consecutive_failures(self, path: str) -> int:
        return self._failure_counts.get(path, 0)

    def _record_failure(self, path: str) -> int:
        count = self._failure_counts.get(path, 0) + 1
        self._failure_counts[path] = count
        return count

    def _reset_failures(self, path: str) -> None:
        self._failure_counts.pop(path, None)

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _load(self, path: str) -> tuple[Path, str]:
        """Resolve and read the edit target.

        Raises:
            ValueError: Invalid path
            EditFileNotFoundError: File does not exist
            OSError: File could not be read
        """
        path_result = PathResolver.resolve_and_validate(
            path, working_dir=self.working_dir, allow_traversal=self.config.allow_traversal
        )
        if not path_result.is_success:
            raise ValueError(f"Invalid path: {path_result.error}")

        assert path_result.value is not None
        file_path = path_result.value

        if not file_path.exists():
            raise EditFileNotFoundError(str(file_path))

        read_result = FileOperations.read_text(
            file_path,
            encoding=self.config.encoding,
            max_size_bytes=self.config.max_file_size_bytes,
        )
        if not read_result.is_success:
            raise OSError(
                f"Error reading file: {file_path}\n{read_result.error}\n"
                "Please verify file permissions and try again."
            )

        assert read_result.value is not None
        return file_path, read_result.value

    def _write(self, file_path: Path, content: str, dry_run: bool) -> bool:
        if dry_run:
            logger.debug(f"Dry run: not writing {file_path}")
            return False

        write_result = FileOperations.write_text(file_path, content, encoding=self.config.encoding)
        if not write_result.is_success:
            raise OSError(f"Failed to write file: {write_result.error}")
        logger.info(f"Wrote {write_result.value} bytes to {file_path}")
        return True

    def _changed_outcome(
        self,
        tool: Literal["search_and_replace", "apply_diff"],
        path: str,
        file_path: Path,
        original: str,
        new_content: str,
        **fields: Any,
    ) -> EditOutcome:
        stats = compute_line_stats(original, new_content)
        return EditOutcome(
            tool=tool,
            path=path,
            absolute_path=str(file_path),
            new_content=new_content,
            diff=compute_unified_diff(original, new_content, path),
            lines_added=stats["added"],
            lines_removed=stats["removed"],
            lines_modified=stats["modified"],
            **fields,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def search_and_replace(self, request: SearchReplaceRequest) -> EditOutcome:
        """Replace literal or regex matches, optionally within line/column bounds.

        The last replaced match is tracked as the focus position: a caret at
        the end of its replacement text.

        Raises:
            MissingParameterError: path, search or replace not supplied
            EditFileNotFoundError: Target file does not exist
            ValueError: Invalid path or invalid regular expression
            OSError: Read or write failure
        """
        tool: Literal["search_and_replace"] = "search_and_replace"
        if not request.path:
            raise MissingParameterError(tool, "path")
        if not request.search:
            raise MissingParameterError(tool, "search")
        if request.replace is None:
            raise MissingParameterError(tool, "replace")

        path = request.path
        file_path, original = self._load(path)
        dry_run = self.config.dry_run if request.dry_run is None else request.dry_run

        options = ReplaceOptions(
            use_regex=request.use_regex,
            ignore_case=request.ignore_case,
            start_line=request.start_line,
            end_line=request.end_line,
            start_column=request.start_column,
            end_column=request.end_column,
        )
        try:
            regex = compile_search_pattern(request.search, options.use_regex, options.ignore_case)
            new_content = replace_text(original, request.search, request.replace, options)
        except re.error as e:
            raise ValueError(f"Invalid regular expression '{request.search}': {e}") from e

        if new_content == original:
            logger.info(f"No changes needed for '{path}'")
            return EditOutcome(
                tool=tool,
                path=path,
                absolute_path=str(file_path),
                status="no_change",
                new_content=original,
            )

        change_range = resolve_replacement_end(
            original, new_content, regex, request.replace, options
        )
        written = self._write(file_path, new_content, dry_run)

        position: EditPosition | None = None
        if change_range is not None:
            column = max(change_range.end_column, 1)
            position = EditPosition(
                file_path=path,
                start_line=change_range.end_line,
                end_line=change_range.end_line,
                start_column=column,
                end_column=column + 1,
                edit_type="replace",
            )
            if written:
                self.positions.track_position(path, position)

        return self._changed_outcome(
            tool,
            path,
            file_path,
            original,
            new_content,
            status="success",
            written=written,
            position=position,
            change_range=change_range,
        )

    def apply_diff(self, request: ApplyDiffRequest) -> EditOutcome:
        """Apply SEARCH/REPLACE blocks to a file.

        Blocks that cannot be located are reported in the outcome while the
        rest still apply. The end of the last block (in line order) is
        tracked as the focus position.

        Raises:
            MissingParameterError: path or diff not supplied
            EditFileNotFoundError: Target file does not exist
            DiffParseError: No SEARCH/REPLACE block could be parsed
            OverlappingBlocksError: Blocks declare overlapping line ranges
            ValueError: Invalid path
            OSError: Read or write failure
        """
        tool: Literal["apply_diff"] = "apply_diff"
        if not request.path:
            raise MissingParameterError(tool, "path")
        if not request.diff:
            raise MissingParameterError(tool, "diff")

        path = request.path
        file_path, original = self._load(path)
        dry_run = self.config.dry_run if request.dry_run is None else request.dry_run

        diff_text = request.diff
        if self.config.unescape_html_entities:
            diff_text = html.unescape(diff_text)

        try:
            blocks = parse_blocks(diff_text, default_start_line=request.start_line)
            if not blocks:
                raise DiffParseError(
                    "Invalid diff format: no SEARCH/REPLACE blocks found. Expected:\n"
                    "<<<<<<< SEARCH\n:start_line:<line>\n-------\n[search]\n=======\n"
                    "[replace]\n>>>>>>> REPLACE"
                )
            result = apply_blocks(original, blocks, self.patcher)
        except (DiffParseError, OverlappingBlocksError) as e:
            count = self._record_failure(path)
            logger.warning(f"apply_diff failed for '{path}' (attempt {count}): {e}")
            raise

        blocks_total = max(len(blocks), count_search_markers(diff_text))

        if not result.applied_blocks:
            count = self._record_failure(path)
            escalate = count >= self.config.failure_escalation_threshold
            if escalate:
                details = "\n".join(f"- {failure.error}" for failure in result.fail_parts)
                logger.warning(
                    f"{count} consecutive apply_diff failures for '{path}':\n{details}"
                )
            return EditOutcome(
                tool=tool,
                path=path,
                absolute_path=str(file_path),
                status="failure",
                blocks_total=blocks_total,
                failures=result.fail_parts,
                consecutive_failures=count,
                escalate=escalate,
            )

        if result.succeeded:
            self._reset_failures(path)
            count = 0
        else:
            count = self._record_failure(path)

        if result.new_content == original:
            logger.info(f"No changes needed for '{path}'")
            return EditOutcome(
                tool=tool,
                path=path,
                absolute_path=str(file_path),
                status="no_change",
                new_content=original,
                blocks_total=blocks_total,
                blocks_applied=len(result.applied_blocks),
                failures=result.fail_parts,
                consecutive_failures=count,
            )

        written = self._write(file_path, result.new_content, dry_run)

        adjusted = resolve_adjusted_lines(result.applied_blocks)
        change_range = resolve_last_block_position(result.new_content, adjusted)
        position: EditPosition | None = None
        if change_range is not None:
            line = max(change_range.end_line, 1)
            position = EditPosition(
                file_path=path,
                start_line=line,
                end_line=line,
                start_column=change_range.end_column,
                end_column=change_range.end_column,
                edit_type="modify",
            )
            if written:
                self.positions.track_position(path, position)

        return self._changed_outcome(
            tool,
            path,
            file_path,
            original,
            result.new_content,
            status="success" if result.succeeded else "partial",
            written=written,
            position=position,
            change_range=change_range,
            blocks_total=blocks_total,
            blocks_applied=len(result.applied_blocks),
            failures=result.fail_parts,
            consecutive_failures=count,
            escalate=count >= self.config.failure_escalation_threshold,
        )


__all__ = [
    "ApplyDiffRequest",
    "EditOutcome",
    "EditSession",
    "SearchReplaceRequest",
    "compute_line_stats",
    "compute_unified_diff",
]
