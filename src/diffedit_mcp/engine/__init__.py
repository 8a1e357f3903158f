"""Edit engine: diff application and edit-position resolution.

Key Components:

- replace_text: Literal/regex replacement with optional line and column bounds
- parse_blocks: SEARCH/REPLACE block parsing (multi-block and legacy grammar)
- apply_blocks: Sequential block application with per-block failure reporting
- SearchReplacePatcher: Windowed, optionally fuzzy, block matching
- resolve_adjusted_lines: Cumulative line-offset correction across blocks
- resolve_last_block_position / resolve_replacement_end: Final edit positions
- EditPositionStore: Per-session record of where edits landed
- EditSession: search_and_replace / apply_diff over files, returns EditOutcome
- EditConfig / EditConfigLoader: YAML configuration
- LoadResult: Error monad for path and file helpers
"""

from .block_applier import apply_blocks
from .block_parser import count_search_markers, parse_blocks
from .edit_config import EditConfig, EditConfigLoader, get_working_dir
from .edit_session import (
    ApplyDiffRequest,
    EditOutcome,
    EditSession,
    SearchReplaceRequest,
    compute_line_stats,
    compute_unified_diff,
)
from .exceptions import (
    DiffParseError,
    EditFileNotFoundError,
    MissingParameterError,
    OverlappingBlocksError,
)
from .file_utils import FileOperations, PathResolver
from .line_offsets import count_lines, order_blocks, resolve_adjusted_lines
from .load_result import LoadResult, LoadStatus
from .models import (
    AdjustedBlock,
    BlockFailure,
    ChangeRange,
    EditPosition,
    EditType,
    ReplaceOptions,
    ReplacementResult,
    SearchReplaceBlock,
)
from .patcher import BlockPatcher, SearchReplacePatcher
from .position_resolver import (
    MatchLocation,
    find_last_match,
    iter_qualifying_matches,
    resolve_block_position,
    resolve_last_block_position,
    resolve_replacement_end,
)
from .position_store import EditPositionStore
from .text_replacer import compile_search_pattern, replace_text, replacement_spans

__all__ = [
    # Models
    "AdjustedBlock",
    "BlockFailure",
    "ChangeRange",
    "EditPosition",
    "EditType",
    "ReplaceOptions",
    "ReplacementResult",
    "SearchReplaceBlock",
    # Replacement and parsing
    "compile_search_pattern",
    "replace_text",
    "replacement_spans",
    "count_search_markers",
    "parse_blocks",
    # Application
    "BlockPatcher",
    "SearchReplacePatcher",
    "apply_blocks",
    # Positions
    "count_lines",
    "order_blocks",
    "resolve_adjusted_lines",
    "MatchLocation",
    "find_last_match",
    "iter_qualifying_matches",
    "resolve_block_position",
    "resolve_last_block_position",
    "resolve_replacement_end",
    "EditPositionStore",
    # Session
    "ApplyDiffRequest",
    "EditOutcome",
    "EditSession",
    "SearchReplaceRequest",
    "compute_line_stats",
    "compute_unified_diff",
    # Config
    "EditConfig",
    "EditConfigLoader",
    "get_working_dir",
    # Errors and results
    "DiffParseError",
    "EditFileNotFoundError",
    "MissingParameterError",
    "OverlappingBlocksError",
    "FileOperations",
    "PathResolver",
    "LoadResult",
    "LoadStatus",
]
