"""Shared formatting utilities for MCP tool responses.

Human-readable messages for edit outcomes live here; the structured part
of each response comes from EditOutcome.to_response().
"""

import json

from .engine import BlockFailure, EditOutcome, EditPosition

SINGLE_BLOCK_NOTICE = (
    "<notice>Making multiple related changes in a single apply_diff is more efficient. "
    "If other changes are needed in this file, please include them as additional "
    "SEARCH/REPLACE blocks.</notice>"
)


def format_block_failure(failure: BlockFailure) -> str:
    """Format one failed block as an <error_details> section."""
    details = failure.details if failure.details is not None else {}
    return (
        "<error_details>\n"
        f"Block {failure.block_index + 1} (start_line {failure.declared_start_line}): "
        f"{failure.error}\n\n"
        f"Details:\n{json.dumps(details, indent=2, default=str)}\n"
        "</error_details>"
    )


def format_block_failures(failures: list[BlockFailure]) -> str:
    return "\n".join(format_block_failure(failure) for failure in failures)


def format_partial_failure_hint(absolute_path: str) -> str:
    return (
        f"But unable to apply all diff parts to file: {absolute_path}, "
        "silently use <read_file> tool to check newest file version and re-apply diffs"
    )


def format_position(position: EditPosition) -> str:
    """Short "line L, column C" description of a tracked position."""
    if position.end_column is None:
        return f"line {position.end_line}"
    return f"line {position.end_line}, column {position.end_column}"


def format_edit_message(outcome: EditOutcome) -> str:
    """Build the human-readable message for an edit outcome.

    Args:
        outcome: Result of search_and_replace or apply_diff

    Returns:
        Message text, including failure details and notices where relevant
    """
    if outcome.status == "no_change":
        message = f"No changes needed for '{outcome.path}'"
        if outcome.failures:
            message += "\n\n" + format_block_failures(outcome.failures)
        return message

    if outcome.status == "failure":
        parts = [f"Unable to apply diff to file: {outcome.absolute_path}"]
        if outcome.escalate:
            parts.append(
                f"{outcome.consecutive_failures} consecutive failed attempts on this file. "
                "Use <read_file> to check its current content before retrying."
            )
        parts.append(format_block_failures(outcome.failures))
        return "\n\n".join(parts)

    verb = "Would apply" if not outcome.written else "Applied"
    lines = [
        f"{verb} changes to '{outcome.path}' "
        f"(+{outcome.lines_added} -{outcome.lines_removed} ~{outcome.lines_modified})"
    ]
    if outcome.position is not None:
        lines.append(f"Edit ends at {format_position(outcome.position)}")

    if outcome.status == "partial":
        lines.append("")
        lines.append(format_partial_failure_hint(outcome.absolute_path))
        lines.append(format_block_failures(outcome.failures))

    message = "\n".join(lines)
    if outcome.single_block and outcome.status == "success":
        message += "\n\n" + SINGLE_BLOCK_NOTICE
    return message


__all__ = [
    "SINGLE_BLOCK_NOTICE",
    "format_block_failure",
    "format_block_failures",
    "format_edit_message",
    "format_partial_failure_hint",
    "format_position",
]
