"""Edit engine exceptions.

Only structurally missing or contradictory input is an exception here.
Malformed bounds are clamped, zero-length matches are skipped, and blocks
that fail to apply are reported in ReplacementResult.fail_parts instead.
"""

from __future__ import annotations


class MissingParameterError(ValueError):
    """
    A required edit parameter was not supplied.

    Raised before any file access or text processing takes place.

    Attributes:
        tool_name: Name of the edit operation (search_and_replace, apply_diff)
        parameter: Name of the missing parameter
    """

    def __init__(self, tool_name: str, parameter: str):
        self.tool_name = tool_name
        self.parameter = parameter
        super().__init__(
            f"Missing value for required parameter '{parameter}' in {tool_name}. "
            "Please retry with complete input."
        )

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return f"MissingParameterError(tool={self.tool_name!r}, parameter={self.parameter!r})"


class EditFileNotFoundError(FileNotFoundError):
    """
    The target file of an edit does not exist.

    Attributes:
        absolute_path: Resolved absolute path that was checked
    """

    def __init__(self, absolute_path: str):
        self.absolute_path = absolute_path
        super().__init__(
            f"File does not exist at path: {absolute_path}\n"
            "The specified file could not be found. Please verify the file path and try again."
        )

    def __str__(self) -> str:
        return str(self.args[0])


class DiffParseError(ValueError):
    """Neither the multi-block nor the legacy single-block grammar matched."""

    def __init__(self, message: str = "No valid SEARCH/REPLACE blocks found in diff"):
        super().__init__(message)


class OverlappingBlocksError(ValueError):
    """
    Two SEARCH/REPLACE blocks declare overlapping line ranges.

    Cumulative line-offset correction assumes blocks never overlap, so this
    is reported instead of guessing an order.

    Attributes:
        first_index: source_order_index of the earlier block
        second_index: source_order_index of the overlapping block
    """

    def __init__(
        self,
        first_index: int,
        first_range: tuple[int, int],
        second_index: int,
        second_start: int,
    ):
        self.first_index = first_index
        self.second_index = second_index
        super().__init__(
            f"SEARCH/REPLACE block {second_index + 1} (start_line {second_start}) overlaps "
            f"block {first_index + 1} (lines {first_range[0]}-{first_range[1]}). "
            "Blocks must target non-overlapping line ranges."
        )


__all__ = [
    "DiffParseError",
    "EditFileNotFoundError",
    "MissingParameterError",
    "OverlappingBlocksError",
]
