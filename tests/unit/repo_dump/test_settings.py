from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from repo_dump.config import MissingFilePolicy
from repo_dump.exceptions import ConfigFileError
from repo_dump.settings import Settings, env_values, load_settings, read_config_file

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in ("OUTPUT_DIR", "TREE_DEPTH", "MISSING_FILE_POLICY", "LOG_FILE"):
        monkeypatch.delenv(f"REPO_DUMP_{key}", raising=False)
    yield


@pytest.mark.unit
def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.branch == "main"
    assert not settings.path
    assert settings.output_dir == Path("output")
    assert settings.tree_depth == 24
    assert settings.missing_file_policy is MissingFilePolicy.SKIP
    assert ".git" in settings.rules.excluded_dirs


@pytest.mark.unit
def test_env_values_prefers_process_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("REPO_DUMP_TREE_DEPTH=3\nREPO_DUMP_OUTPUT_DIR=from-file\nOTHER=1\n", encoding="utf-8")
    monkeypatch.setenv("REPO_DUMP_TREE_DEPTH", "5")

    assert env_values(env_file) == {"tree_depth": "5", "output_dir": "from-file"}


@pytest.mark.unit
def test_load_settings_layers_env_config_and_cli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text("tree_depth: 6\nmissing_file_policy: fail\nbranch: develop\n", encoding="utf-8")
    monkeypatch.setenv("REPO_DUMP_TREE_DEPTH", "3")
    monkeypatch.setenv("REPO_DUMP_OUTPUT_DIR", str(tmp_path / "env-out"))

    settings = load_settings({"branch": "release", "tree_depth": None}, config_file=config, env_file=None)

    assert settings.output_dir == tmp_path / "env-out"
    assert settings.tree_depth == 6
    assert settings.missing_file_policy is MissingFilePolicy.FAIL
    assert settings.branch == "release"


@pytest.mark.unit
def test_load_settings_reads_rules_from_config(tmp_path: Path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text("rules:\n  excluded_dirs: [dist]\n  media_extensions: [.pdf]\n", encoding="utf-8")

    settings = load_settings(config_file=config, env_file=None)

    assert settings.rules.excluded_dirs == frozenset({"dist"})
    assert settings.rules.media_extensions == frozenset({"pdf"})
    assert settings.rules.excluded_names == Settings().rules.excluded_names


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    [
        "tree_depth: 0\n",
        "missing_file_policy: ignore\n",
        "unknown_key: 1\n",
    ],
)
def test_load_settings_rejects_invalid_values(tmp_path: Path, content: str) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigFileError, match="Invalid settings"):
        load_settings(config_file=config, env_file=None)


@pytest.mark.unit
def test_read_config_file_errors(tmp_path: Path) -> None:
    broken = tmp_path / "broken.yaml"
    broken.write_text("tree_depth: [1\n", encoding="utf-8")
    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")

    with pytest.raises(ConfigFileError, match="Cannot load"):
        read_config_file(broken)
    with pytest.raises(ConfigFileError, match="mapping"):
        read_config_file(listing)
    with pytest.raises(ConfigFileError, match="Cannot load"):
        read_config_file(tmp_path / "missing.yaml")
    assert read_config_file(empty) == {}
