"""Path resolution and text file I/O for edit operations.

Both helpers return LoadResult instead of raising, so the edit session can
turn each failure into the right user-facing error.
"""

from pathlib import Path

from .load_result import LoadResult


class PathResolver:
    """Resolve edit targets relative to a working directory.

    Guards against:
    - Path traversal out of the working directory (unless allowed)
    - Editing through a symlink
    """

    @staticmethod
    def resolve_and_validate(
        path: str,
        working_dir: Path | None = None,
        allow_traversal: bool = False,
    ) -> LoadResult[Path]:
        """Resolve path to a canonical absolute path.

        Args:
            path: File path as given by the caller (relative or absolute)
            working_dir: Base directory for relative paths (defaults to cwd)
            allow_traversal: If False, the resolved path must stay inside working_dir

        Returns:
            LoadResult.success(resolved_path) or LoadResult.failure(error_message)
        """
        if working_dir is None:
            working_dir = Path.cwd()

        file_path = Path(path).expanduser()
        absolute_path = file_path if file_path.is_absolute() else working_dir / file_path

        if absolute_path.is_symlink():
            return LoadResult.failure(f"Symlinks not allowed for security: {absolute_path}")

        try:
            resolved_path = absolute_path.resolve()
        except (OSError, RuntimeError) as e:
            return LoadResult.failure(f"Failed to resolve path '{path}': {e}")

        if not allow_traversal:
            try:
                resolved_path.relative_to(working_dir.resolve())
            except ValueError:
                return LoadResult.failure(
                    f"Path escapes working directory. "
                    f"Path: {path}, Resolved: {resolved_path}, Working dir: {working_dir}"
                )

        return LoadResult.success(resolved_path)


class FileOperations:
    """Text file reads and writes with LoadResult error handling."""

    @staticmethod
    def read_text(
        path: Path,
        encoding: str = "utf-8",
        max_size_bytes: int | None = None,
    ) -> LoadResult[str]:
        """Read a whole text file.

        Content is returned exactly as stored (no newline translation), so
        CRLF files survive an edit unchanged outside the edited region.

        Args:
            path: File to read (must exist)
            encoding: Text encoding
            max_size_bytes: Optional size limit

        Returns:
            LoadResult.success(content) or LoadResult.failure(error_message)
        """
        if not path.exists():
            return LoadResult.failure(f"File not found: {path}")

        if not path.is_file():
            return LoadResult.failure(f"Path is not a file: {path}")

        if max_size_bytes is not None:
            try:
                file_size = path.stat().st_size
            except OSError as e:
                return LoadResult.failure(f"Failed to stat file '{path}': {e}")
            if file_size > max_size_bytes:
                return LoadResult.failure(
                    f"File too large: {file_size} bytes exceeds limit of {max_size_bytes}"
                )

        try:
            with open(path, encoding=encoding, newline="") as f:
                return LoadResult.success(f.read())
        except UnicodeDecodeError as e:
            return LoadResult.failure(f"Encoding error reading '{path}' with {encoding}: {e}")
        except OSError as e:
            return LoadResult.failure(f"Failed to read file '{path}': {e}")

    @staticmethod
    def write_text(path: Path, content: str, encoding: str = "utf-8") -> LoadResult[int]:
        """Write content to an existing file's location, byte for byte.

        Returns:
            LoadResult.success(bytes_written) or LoadResult.failure(error_message)
        """
        try:
            with open(path, "w", encoding=encoding, newline="") as f:
                f.write(content)
        except UnicodeEncodeError as e:
            return LoadResult.failure(f"Encoding error writing '{path}' with {encoding}: {e}")
        except OSError as e:
            return LoadResult.failure(f"Failed to write file '{path}': {e}")

        return LoadResult.success(len(content.encode(encoding)))


__all__ = ["FileOperations", "PathResolver"]
