"""Line drift correction for multi-block diffs.

Blocks declare start lines against the original file. Once a block has
changed the line count, every block further down shifts by the net delta;
resolve_adjusted_lines maps each declared start line onto the document as
it exists after all earlier blocks were applied.
"""

from __future__ import annotations

from collections.abc import Iterable

from .exceptions import OverlappingBlocksError
from .models import AdjustedBlock, SearchReplaceBlock


def count_lines(text: str) -> int:
    """Number of lines in text; an empty string has none (a deleting block)."""
    if not text:
        return 0
    return len(text.split("\n"))


def order_blocks(blocks: Iterable[SearchReplaceBlock]) -> list[SearchReplaceBlock]:
    """Sort blocks by declared start line, stable on source order.

    Blocks sharing a start line keep their source order. A block starting
    strictly inside an earlier block's declared search range is rejected.

    Raises:
        OverlappingBlocksError: If two blocks' declared ranges overlap
    """
    ordered = sorted(blocks, key=lambda b: (b.declared_start_line, b.source_order_index))

    reach: SearchReplaceBlock | None = None
    reach_end = 0
    for block in ordered:
        if (
            reach is not None
            and reach.declared_start_line < block.declared_start_line <= reach_end
        ):
            raise OverlappingBlocksError(
                first_index=reach.source_order_index,
                first_range=(reach.declared_start_line, reach_end),
                second_index=block.source_order_index,
                second_start=block.declared_start_line,
            )
        block_end = block.declared_start_line + count_lines(block.search_text) - 1
        if reach is None or block_end > reach_end:
            reach, reach_end = block, block_end

    return ordered


def resolve_adjusted_lines(blocks: Iterable[SearchReplaceBlock]) -> list[AdjustedBlock]:
    """Correct each block's line range for the drift of the blocks before it.

    Args:
        blocks: Blocks in any order; they are processed in declared order,
            which is the order the applier uses

    Returns:
        One AdjustedBlock per block, in processing order. adjusted_end_line
        is the last line of the block's replacement text, or the start line
        when the block deletes lines.

    Raises:
        OverlappingBlocksError: If two blocks' declared ranges overlap
    """
    adjusted: list[AdjustedBlock] = []
    cumulative_line_offset = 0

    for block in order_blocks(blocks):
        replace_lines = count_lines(block.replace_text)
        line_delta = replace_lines - count_lines(block.search_text)

        adjusted_start = block.declared_start_line + cumulative_line_offset
        adjusted.append(
            AdjustedBlock(
                block=block,
                adjusted_start_line=adjusted_start,
                adjusted_end_line=adjusted_start + max(replace_lines, 1) - 1,
            )
        )

        cumulative_line_offset += line_delta

    return adjusted


__all__ = ["count_lines", "order_blocks", "resolve_adjusted_lines"]
