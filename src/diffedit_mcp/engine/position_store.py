"""Per-session record of resolved edit positions.

An EditPositionStore is owned by one EditSession and passed explicitly to
whatever needs it; there is no module-level instance. Concurrent edits to
the same file are serialized by the caller, so no locking is done here.
"""

from __future__ import annotations

import logging

from .models import EditPosition

logger = logging.getLogger(__name__)


class EditPositionStore:
    """Append-only, per-file ordered list of EditPosition records."""

    def __init__(self) -> None:
        self._positions: dict[str, list[EditPosition]] = {}

    def track_position(self, file_path: str, position: EditPosition) -> None:
        """Append a position for file_path (no deduplication)."""
        self._positions.setdefault(file_path, []).append(position)
        logger.debug(
            f"Tracked {position.edit_type} position for {file_path}: "
            f"line {position.end_line}, column {position.end_column}"
        )

    def get_primary_position(self, file_path: str) -> EditPosition | None:
        """First (oldest) position recorded for file_path, or None."""
        positions = self._positions.get(file_path)
        if not positions:
            return None
        return positions[0]

    def get_positions(self, file_path: str) -> list[EditPosition]:
        """All positions for file_path in insertion order (a copy)."""
        return list(self._positions.get(file_path, []))

    def clear_positions(self, file_path: str) -> None:
        """Forget every position recorded for file_path."""
        self._positions.pop(file_path, None)

    def clear_all(self) -> None:
        """Forget every position for every file."""
        self._positions.clear()

    def __contains__(self, file_path: object) -> bool:
        return isinstance(file_path, str) and bool(self._positions.get(file_path))

    def __len__(self) -> int:
        return sum(len(positions) for positions in self._positions.values())


__all__ = ["EditPositionStore"]
