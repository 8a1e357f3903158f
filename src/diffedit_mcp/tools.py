"""MCP tool implementations for file editing.

Tools:
- search_and_replace: literal or regex replacement, optionally bounded
- apply_diff: SEARCH/REPLACE blocks with per-block failure reporting
- get_edit_position: where the first tracked edit of a file landed
- clear_edit_positions: forget tracked positions for a file
"""

import logging
from typing import Annotated, Any

from mcp.types import ToolAnnotations
from pydantic import Field

from .context import AppContextType
from .engine import (
    ApplyDiffRequest,
    DiffParseError,
    EditFileNotFoundError,
    MissingParameterError,
    OverlappingBlocksError,
    SearchReplaceRequest,
)
from .formatting import format_edit_message, format_position
from .server import mcp

logger = logging.getLogger(__name__)

_NO_CONTEXT_ERROR = {
    "status": "failure",
    "error": "Server context not available. Tool requires context to access resources.",
}


def _failure(error: Exception | str) -> dict[str, Any]:
    return {"status": "failure", "error": str(error)}


# =============================================================================
# Edit tools
# =============================================================================


@mcp.tool(
    annotations=ToolAnnotations(
        title="Search and Replace",
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=False,
        openWorldHint=False,
    )
)
async def search_and_replace(
    path: Annotated[str, Field(description="File path (relative to working directory)")],
    search: Annotated[str, Field(description="Text or regular expression to search for")],
    replace: Annotated[str, Field(description="Replacement text (\\1, \\g<name> in regex mode)")],
    use_regex: Annotated[bool, Field(description="Treat search as a regular expression")] = False,
    ignore_case: Annotated[bool, Field(description="Case-insensitive matching")] = False,
    start_line: Annotated[int | None, Field(description="First line to search (1-based)")] = None,
    end_line: Annotated[int | None, Field(description="Last line to search (1-based)")] = None,
    start_column: Annotated[
        int | None, Field(description="First column to search on each line (1-based)")
    ] = None,
    end_column: Annotated[
        int | None, Field(description="Last column to search on each line (1-based)")
    ] = None,
    dry_run: Annotated[
        bool | None, Field(description="Compute the change without writing the file")
    ] = None,
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Replace every match of search in a file. Optional line/column bounds restrict matching."""
    if ctx is None:
        return dict(_NO_CONTEXT_ERROR)

    session = ctx.request_context.lifespan_context.session
    request = SearchReplaceRequest(
        path=path,
        search=search,
        replace=replace,
        use_regex=use_regex,
        ignore_case=ignore_case,
        start_line=start_line,
        end_line=end_line,
        start_column=start_column,
        end_column=end_column,
        dry_run=dry_run,
    )

    try:
        outcome = session.search_and_replace(request)
    except (MissingParameterError, EditFileNotFoundError, ValueError, OSError) as e:
        logger.info(f"search_and_replace failed for '{path}': {e}")
        return _failure(e)

    response = outcome.to_response()
    response["message"] = format_edit_message(outcome)
    return response


@mcp.tool(
    annotations=ToolAnnotations(
        title="Apply Diff",
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=False,
        openWorldHint=False,
    )
)
async def apply_diff(
    path: Annotated[str, Field(description="File path (relative to working directory)")],
    diff: Annotated[
        str,
        Field(
            description=(
                "One or more blocks: <<<<<<< SEARCH / :start_line:N / ------- / "
                "search text / ======= / replace text / >>>>>>> REPLACE"
            )
        ),
    ],
    start_line: Annotated[
        int | None,
        Field(description="Start line for a block without :start_line:"),
    ] = None,
    dry_run: Annotated[
        bool | None, Field(description="Compute the change without writing the file")
    ] = None,
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Apply SEARCH/REPLACE blocks to a file. Blocks that cannot be located are reported."""
    if ctx is None:
        return dict(_NO_CONTEXT_ERROR)

    session = ctx.request_context.lifespan_context.session
    request = ApplyDiffRequest(path=path, diff=diff, start_line=start_line, dry_run=dry_run)

    try:
        outcome = session.apply_diff(request)
    except (DiffParseError, OverlappingBlocksError) as e:
        response = _failure(e)
        response["consecutive_failures"] = session.consecutive_failures(path)
        return response
    except (MissingParameterError, EditFileNotFoundError, ValueError, OSError) as e:
        logger.info(f"apply_diff failed for '{path}': {e}")
        return _failure(e)

    response = outcome.to_response()
    response["message"] = format_edit_message(outcome)
    return response


# =============================================================================
# Position tools
# =============================================================================


@mcp.tool(
    annotations=ToolAnnotations(
        title="Get Edit Position",
        readOnlyHint=True,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def get_edit_position(
    path: Annotated[str, Field(description="File path as passed to the edit tools")],
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Return the first tracked edit position for a file, if any."""
    if ctx is None:
        return dict(_NO_CONTEXT_ERROR)

    session = ctx.request_context.lifespan_context.session
    position = session.primary_position(path)
    if position is None:
        return {"status": "success", "path": path, "position": None}

    return {
        "status": "success",
        "path": path,
        "position": position.model_dump(exclude_none=True),
        "tracked": len(session.positions.get_positions(path)),
        "message": f"First edit ends at {format_position(position)}",
    }


@mcp.tool(
    annotations=ToolAnnotations(
        title="Clear Edit Positions",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def clear_edit_positions(
    path: Annotated[str, Field(description="File path as passed to the edit tools")],
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Forget all tracked edit positions for a file."""
    if ctx is None:
        return dict(_NO_CONTEXT_ERROR)

    session = ctx.request_context.lifespan_context.session
    session.clear_positions(path)
    return {"status": "success", "path": path}


__all__ = [
    "apply_diff",
    "clear_edit_positions",
    "get_edit_position",
    "search_and_replace",
]
