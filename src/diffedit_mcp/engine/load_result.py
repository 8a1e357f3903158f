"""LoadResult error monad for file access and patch matching.

Used at the edges of the engine where failure is an expected outcome rather
than a bug: reading/writing files (file_utils) and locating a block's
search text (patcher). Callers branch on is_success instead of catching.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class LoadStatus(str, Enum):
    """Status of a file or patch operation."""

    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class LoadResult(Generic[T]):  # noqa: UP046
    """
    Result of an operation that may fail without raising.

    Uses a discriminated union pattern with LoadStatus enum to prevent
    invalid state combinations. metadata carries operation-specific extras
    (e.g. the matched line of a patch, or similarity details on failure).

    Usage:
        read_result = FileOperations.read_text(path)
        if read_result.is_success:
            content = read_result.value
        else:
            print(f"Read error: {read_result.error}")
    """

    status: LoadStatus
    value: T | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate state consistency after initialization.

        - SUCCESS results must have a value
        - FAILED results must have an error message
        """
        if self.status == LoadStatus.SUCCESS and self.value is None:
            raise ValueError("Success result must have a value")
        if self.status == LoadStatus.FAILED and not self.error:
            raise ValueError("Failed result must have an error message")

    @property
    def is_success(self) -> bool:
        """Check if the operation was successful."""
        return self.status == LoadStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        """Check if the operation failed."""
        return self.status == LoadStatus.FAILED

    @classmethod
    def success(cls, value: T, metadata: dict[str, Any] | None = None) -> "LoadResult[T]":
        """Create a successful result.

        Args:
            value: The produced value (an empty string is a valid value)
            metadata: Optional metadata dictionary (defaults to empty dict)
        """
        return cls(
            status=LoadStatus.SUCCESS,
            value=value,
            metadata=metadata or {},
        )

    @classmethod
    def failure(cls, error: str, metadata: dict[str, Any] | None = None) -> "LoadResult[T]":
        """Create a failed result.

        Args:
            error: Error message describing the failure
            metadata: Optional structured details (defaults to empty dict)
        """
        return cls(
            status=LoadStatus.FAILED,
            error=error,
            metadata=metadata or {},
        )
