"""Edit engine configuration.

Configuration file location priority:
1. Explicit path passed to EditConfigLoader
2. DIFFEDIT_CONFIG environment variable
3. Standard location: ~/.diffedit/config.yml
4. Built-in defaults (if no config file found)

Example config file:
```yaml
encoding: utf-8
fuzzy_threshold: 0.95      # 1.0 = match must be identical after whitespace normalization
buffer_lines: 40           # lines searched around a block's start_line
failure_escalation_threshold: 2
allow_traversal: false
dry_run: false
unescape_html_entities: false
max_file_size_bytes: 10485760
```
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from .patcher import DEFAULT_BUFFER_LINES, DEFAULT_FUZZY_THRESHOLD

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DIFFEDIT_CONFIG"
WORKING_DIR_ENV_VAR = "DIFFEDIT_WORKING_DIR"


class EditConfig(BaseModel):
    """Root edit configuration model."""

    model_config = {"extra": "forbid"}

    encoding: str = Field(default="utf-8", description="Text encoding for reads and writes")
    fuzzy_threshold: float = Field(
        default=DEFAULT_FUZZY_THRESHOLD,
        ge=0.5,
        le=1.0,
        description="Minimum similarity for a SEARCH block to match (1.0 = exact)",
    )
    buffer_lines: int = Field(
        default=DEFAULT_BUFFER_LINES,
        ge=0,
        le=10000,
        description="Lines searched on each side of a block's declared start line",
    )
    failure_escalation_threshold: int = Field(
        default=2,
        ge=1,
        description="Consecutive failures on one file before detailed diagnostics are surfaced",
    )
    allow_traversal: bool = Field(
        default=False,
        description="Allow editing files outside the working directory",
    )
    dry_run: bool = Field(
        default=False,
        description="Compute edits without writing files",
    )
    unescape_html_entities: bool = Field(
        default=False,
        description="Unescape HTML entities (&lt; &gt; &amp; ...) in diffs before parsing",
    )
    max_file_size_bytes: int | None = Field(
        default=None,
        ge=1,
        description="Refuse to edit files larger than this",
    )


class EditConfigLoader:
    """Loader for the edit configuration YAML file.

    The loaded config is cached; call load_config() once at startup.
    """

    def __init__(self, config_path: str | Path | None = None):
        """Initialize config loader with optional explicit path.

        Args:
            config_path: Explicit path to config file (optional).
                If not provided, uses environment variable or standard location.
        """
        self._config: EditConfig | None = None
        self._explicit_path = Path(config_path) if config_path else None

    def get_config_path(self) -> Path | None:
        """Determine config file path using priority order.

        Returns:
            Path to config file, or None if no config file exists
        """
        if self._explicit_path:
            if self._explicit_path.exists():
                return self._explicit_path
            logger.warning(f"Explicit edit config path does not exist: {self._explicit_path}")
            return None

        env_path_str = os.getenv(CONFIG_ENV_VAR)
        if env_path_str:
            env_path = Path(env_path_str).expanduser()
            if env_path.exists():
                return env_path
            logger.warning(f"{CONFIG_ENV_VAR} path does not exist: {env_path}")
            return None

        standard_path = Path.home() / ".diffedit" / "config.yml"
        if standard_path.exists():
            return standard_path

        return None

    def load_config(self) -> EditConfig:
        """Load and validate the edit configuration.

        Returns:
            Validated EditConfig (defaults if no config file was found)

        Raises:
            ValueError: If the config file is not valid YAML or fails validation
        """
        if self._config is not None:
            return self._config

        config_path = self.get_config_path()
        if config_path is None:
            logger.info("No edit config file found. Using defaults.")
            self._config = EditConfig()
            return self._config

        logger.info(f"Loading edit config from: {config_path}")

        try:
            with open(config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)

            if raw_config is None:
                raw_config = {}
            if not isinstance(raw_config, dict):
                raise ValueError("Config file must contain a YAML dictionary")

            config = EditConfig(**raw_config)
        except (yaml.YAMLError, ValueError) as e:
            raise ValueError(f"Failed to load edit config from {config_path}: {e}") from e

        logger.info(
            f"Loaded edit config: fuzzy_threshold={config.fuzzy_threshold}, "
            f"buffer_lines={config.buffer_lines}, dry_run={config.dry_run}"
        )
        self._config = config
        return config


def get_working_dir() -> Path:
    """Working directory for relative edit paths.

    Reads DIFFEDIT_WORKING_DIR, falling back to the process cwd when it is
    unset or not a directory.
    """
    env_dir = os.getenv(WORKING_DIR_ENV_VAR, "").strip()
    if env_dir:
        path = Path(env_dir).expanduser()
        if path.is_dir():
            return path.resolve()
        logger.warning(f"{WORKING_DIR_ENV_VAR} is not a directory, using cwd: {path}")
    return Path.cwd()


__all__ = [
    "CONFIG_ENV_VAR",
    "WORKING_DIR_ENV_VAR",
    "EditConfig",
    "EditConfigLoader",
    "get_working_dir",
]
