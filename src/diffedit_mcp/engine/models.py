"""Pydantic models shared by the edit engine.

Positions are 1-based and inclusive, matching editor conventions.
Blocks and replacement results are ephemeral: they are produced by the
parser/applier for one edit and discarded afterwards. Only EditPosition
outlives an edit, inside the EditPositionStore.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

EditType = Literal["modify", "insert", "replace", "create"]


class EditPosition(BaseModel):
    """One resolved location of interest in an edited file.

    Columns are optional; absent columns mean "whole line(s)".
    """

    file_path: str = Field(description="Path of the edited file (as given by the caller)")
    start_line: int = Field(ge=1, description="1-based inclusive start line")
    end_line: int = Field(ge=1, description="1-based inclusive end line")
    start_column: int | None = Field(default=None, ge=1, description="1-based start column")
    end_column: int | None = Field(default=None, ge=1, description="1-based end column")
    edit_type: EditType = Field(default="modify", description="Nature of the edit")

    @model_validator(mode="after")
    def _check_ordering(self) -> EditPosition:
        if self.start_line > self.end_line:
            raise ValueError(
                f"start_line ({self.start_line}) must not exceed end_line ({self.end_line})"
            )
        if (
            self.start_column is not None
            and self.end_column is not None
            and self.start_line == self.end_line
            and self.start_column > self.end_column + 1
        ):
            raise ValueError(
                f"start_column ({self.start_column}) must not exceed "
                f"end_column + 1 ({self.end_column + 1}) on a single line"
            )
        return self


class ChangeRange(BaseModel):
    """Line/column span of a change inside the final document."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int


class SearchReplaceBlock(BaseModel):
    """A single SEARCH/REPLACE block as written in the diff text."""

    model_config = ConfigDict(frozen=True)

    declared_start_line: int = Field(description="Start line as declared, before drift correction")
    search_text: str
    replace_text: str
    source_order_index: int = Field(default=0, description="Position in the original diff text")


class AdjustedBlock(BaseModel):
    """A block with its line range corrected for earlier blocks' line drift."""

    block: SearchReplaceBlock
    adjusted_start_line: int
    adjusted_end_line: int


class BlockFailure(BaseModel):
    """A block that could not be located in the working document."""

    block_index: int = Field(description="source_order_index of the failed block")
    declared_start_line: int
    error: str
    details: dict[str, Any] | None = None


class ReplacementResult(BaseModel):
    """Outcome of applying a sequence of blocks.

    new_content reflects every block that did apply, even when
    succeeded is False.
    """

    new_content: str
    succeeded: bool
    applied_blocks: list[SearchReplaceBlock] = Field(default_factory=list)
    fail_parts: list[BlockFailure] = Field(default_factory=list)


class ReplaceOptions(BaseModel):
    """Matching mode and optional line/column bounds for a search/replace."""

    use_regex: bool = False
    ignore_case: bool = False
    start_line: int | None = None
    end_line: int | None = None
    start_column: int | None = None
    end_column: int | None = None

    @property
    def has_line_bounds(self) -> bool:
        return self.start_line is not None or self.end_line is not None

    @property
    def has_column_bounds(self) -> bool:
        return self.start_column is not None or self.end_column is not None

    @property
    def is_bounded(self) -> bool:
        """True when any line or column bound was given."""
        return self.has_line_bounds or self.has_column_bounds


__all__ = [
    "AdjustedBlock",
    "BlockFailure",
    "ChangeRange",
    "EditPosition",
    "EditType",
    "ReplaceOptions",
    "ReplacementResult",
    "SearchReplaceBlock",
]
