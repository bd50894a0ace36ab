from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    WriteFiles = Callable[[Mapping[str, str | bytes]], Path]


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def write_files(repo_dir: Path) -> WriteFiles:
    """Create files (relative path -> text or bytes) under `repo_dir` and return it."""

    def _write(files: Mapping[str, str | bytes]) -> Path:
        for rel, content in files.items():
            path = repo_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return repo_dir

    return _write


def git(*args: str, cwd: Path) -> str:
    out = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=str(cwd),
        text=True,
        capture_output=True,
        check=True,
    )
    return out.stdout


@pytest.fixture
def git_repo(write_files: WriteFiles) -> Path:
    """A committed git repository on branch `main`."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    root = write_files(
        {
            "README.md": "# Demo\n",
            "src/app.py": "print('hello')\n",
            "package-lock.json": "{}\n",
            ".github/workflows/ci.yml": "on: push\n",
        },
    )
    git("init", "--quiet", cwd=root)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=root)
    git("add", "-A", cwd=root)
    git("commit", "--quiet", "-m", "initial commit", cwd=root)
    return root
