"""Sequential application of SEARCH/REPLACE blocks."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .line_offsets import count_lines, order_blocks
from .models import BlockFailure, ReplacementResult, SearchReplaceBlock
from .patcher import BlockPatcher, SearchReplacePatcher

logger = logging.getLogger(__name__)


def apply_blocks(
    original_text: str,
    blocks: Sequence[SearchReplaceBlock],
    patcher: BlockPatcher | None = None,
) -> ReplacementResult:
    """Apply blocks one after another to an evolving document.

    Blocks are applied in declared start-line order (the same order the
    line-offset tracker uses). Each block is located in the current working
    text, with its line hint shifted by the net line delta of the blocks
    already applied. A block that cannot be located is recorded in
    fail_parts and the remaining blocks are still attempted.

    Args:
        original_text: Document before any block is applied
        blocks: Parsed blocks, in any order
        patcher: Patch-matching primitive (defaults to SearchReplacePatcher())

    Returns:
        ReplacementResult whose new_content includes every applied block;
        succeeded is True only if all blocks applied

    Raises:
        OverlappingBlocksError: If two blocks' declared ranges overlap
    """
    patcher = patcher or SearchReplacePatcher()

    content = original_text
    applied: list[SearchReplaceBlock] = []
    failures: list[BlockFailure] = []
    line_delta = 0

    for block in order_blocks(blocks):
        hint = block.declared_start_line + line_delta
        result = patcher.patch(content, block.search_text, block.replace_text, hint)

        if not result.is_success:
            assert result.error is not None
            logger.debug(
                f"Block {block.source_order_index + 1} "
                f"(start_line {block.declared_start_line}) failed: {result.error}"
            )
            failures.append(
                BlockFailure(
                    block_index=block.source_order_index,
                    declared_start_line=block.declared_start_line,
                    error=result.error,
                    details=result.metadata or None,
                )
            )
            continue

        assert result.value is not None
        content = result.value
        applied.append(block)
        line_delta += count_lines(block.replace_text) - count_lines(block.search_text)

    if failures:
        logger.info(f"Applied {len(applied)}/{len(blocks)} blocks ({len(failures)} failed)")

    return ReplacementResult(
        new_content=content,
        succeeded=not failures,
        applied_blocks=applied,
        fail_parts=failures,
    )


__all__ = ["apply_blocks"]
