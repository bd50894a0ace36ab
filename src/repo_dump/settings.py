from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from repo_dump.config import DEFAULT_BRANCH, DEFAULT_TREE_DEPTH, MissingFilePolicy, SelectionRules
from repo_dump.exceptions import ConfigFileError

if TYPE_CHECKING:
    from collections.abc import Mapping

ENV_FILE = find_dotenv(usecwd=True)

ENV_PREFIX = "REPO_DUMP_"

ENV_KEYS = ("output_dir", "tree_depth", "missing_file_policy", "log_file")


class Settings(BaseModel):
    """Configuration settings for the repo_dump package."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    repository_url: str = Field(default="", description="GitHub repository URL.")
    branch: str = Field(default=DEFAULT_BRANCH, description="Branch or tag to dump.")
    path: str = Field(default="", description="Directory or file inside the repository.")
    output_dir: Path = Field(default=Path("output"), description="Directory receiving the artifacts.")
    tree_depth: int = Field(default=DEFAULT_TREE_DEPTH, ge=1, description="Depth of the directory tree listing.")
    missing_file_policy: MissingFilePolicy = Field(
        default=MissingFilePolicy.SKIP,
        description="What to do with files that vanish before being read.",
    )
    log_file: str = Field(default="", description="Log file path.")
    verbose: bool = Field(default=False, description="Log debug events.")
    rules: SelectionRules = Field(default_factory=SelectionRules, description="Selection tables.")


def env_values(env_file: str | Path | None = ENV_FILE) -> dict[str, str]:
    """Collect `REPO_DUMP_*` settings from a `.env` file and the process environment.

    The process environment wins over the file. Empty values are ignored.

    Args:
        env_file (str | Path | None): the `.env` file to read, if any

    Returns:
        dict[str, str]: settings keys mapped to their raw values
    """
    merged: dict[str, str | None] = dict(dotenv_values(env_file)) if env_file else {}
    merged.update(os.environ)
    out: dict[str, str] = {}
    for key in ENV_KEYS:
        value = merged.get(f"{ENV_PREFIX}{key.upper()}")
        if value:
            out[key] = value
    return out


def read_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML configuration file.

    Args:
        path (Path): the file to read

    Raises:
        ConfigFileError: if the file cannot be read, is not valid YAML, or is not a mapping.

    Returns:
        dict[str, Any]: the settings it defines (empty for an empty file)
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigFileError(path=path, message=f"Cannot load configuration file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(path=path, message=f"Configuration file {path} must contain a mapping.")
    return data


def load_settings(
    cli_values: Mapping[str, Any] | None = None,
    config_file: Path | None = None,
    env_file: str | Path | None = ENV_FILE,
) -> Settings:
    """Merge defaults, environment, configuration file and CLI values.

    Later layers win; CLI values equal to None are treated as not given.

    Args:
        cli_values (Mapping[str, Any] | None): values parsed from the command line
        config_file (Path | None): optional YAML configuration file
        env_file (str | Path | None): optional `.env` file

    Raises:
        ConfigFileError: if the configuration file is unusable or the merged values are invalid.

    Returns:
        Settings: the validated settings
    """
    values: dict[str, Any] = {}
    values.update(env_values(env_file))
    if config_file is not None:
        values.update(read_config_file(config_file))
    values.update({k: v for k, v in (cli_values or {}).items() if v is not None})
    try:
        return Settings.model_validate(values)
    except ValidationError as e:
        raise ConfigFileError(path=config_file, message=f"Invalid settings: {e}") from e
