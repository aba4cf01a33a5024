"""Configuration file support for mutex-run.

Defaults for the command line flags can live in ``[tool.mutex-run]`` of the
working directory's ``pyproject.toml``, or in a file passed with ``--config``.
"""

import tomllib
from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field, ValidationError

PYPROJECT = "pyproject.toml"
TOOL_SECTION = "mutex-run"


class ConfigError(Exception):
    """Configuration file could not be read or is invalid."""


class FileConfig(BaseModel):
    """Flag defaults read from TOML. Unset keys fall back to built-in defaults."""

    lock: str | None = None
    wait: bool | None = None
    timeout: int | None = Field(default=None, ge=0, description="Milliseconds")
    stale_timeout: int | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("stale_timeout", "stale-timeout"),
        description="Milliseconds",
    )


def _tool_section(data: dict) -> dict | None:
    return data.get("tool", {}).get(TOOL_SECTION)


def load_config(path: Path | None = None, cwd: Path | None = None) -> FileConfig:
    """Load flag defaults.

    Args:
        path: Explicit config file. Its ``[tool.mutex-run]`` table is used if
            present, otherwise the top-level table.
        cwd: Directory searched for ``pyproject.toml`` when ``path`` is None

    Returns:
        Loaded configuration, or defaults if no config exists

    Raises:
        ConfigError: If the file is not valid TOML or has invalid values
    """
    if path is None:
        path = (cwd or Path.cwd()) / PYPROJECT
        if not path.exists():
            return FileConfig()
        explicit = False
    else:
        explicit = True

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    section = _tool_section(data)
    if section is None:
        section = data if explicit else {}

    try:
        return FileConfig.model_validate(section)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e
