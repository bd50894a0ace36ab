from __future__ import annotations

import os
import re
import shutil
import subprocess  # noqa: S404
import tempfile
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from repo_dump.exceptions import (
    DependencyMissingError,
    GitCommandError,
    InvalidRepositoryUrlError,
)
from repo_dump.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

GITHUB_URL_PATTERN = re.compile(r"^https://github\.com/[^/]+/[^/]+(\.git)?$")

_COMMIT_QUERIES: dict[str, list[str]] = {
    "last_commit_hash": ["rev-parse", "--short", "HEAD"],
    "last_commit_date": ["log", "-1", "--format=%cd"],
    "last_commit_message": ["log", "-1", "--format=%B"],
}


def validate_repository_url(url: str) -> str:
    """Check that `url` is an https GitHub repository URL.

    Args:
        url (str): the URL given by the user

    Raises:
        InvalidRepositoryUrlError: if the URL does not look like `https://github.com/<owner>/<repo>[.git]`.

    Returns:
        str: the URL, stripped of surrounding whitespace
    """
    candidate = (url or "").strip()
    if not GITHUB_URL_PATTERN.match(candidate):
        raise InvalidRepositoryUrlError(
            url=candidate,
            message=f"Invalid GitHub repository URL: {candidate!r}",
        )
    return candidate


def repository_name(url: str) -> str:
    """Return the repository name of a URL (last segment, without `.git`)."""
    return PurePosixPath(url.strip().rstrip("/")).name.removesuffix(".git")


def ensure_git_available() -> None:
    """Raise `DependencyMissingError` when `git` is not on PATH."""
    if shutil.which("git") is None:
        raise DependencyMissingError(
            executable="git",
            message="git is required but it's not installed.",
        )


def run_git(args: Sequence[str], *, cwd: Path | None = None) -> str:
    """Run a git command and return its standard output.

    Credential prompts are disabled so an unknown or private repository fails
    instead of blocking on stdin.

    Args:
        args (Sequence[str]): arguments following `git`
        cwd (Path | None): working directory of the command

    Raises:
        DependencyMissingError: if the git executable cannot be started.
        GitCommandError: if git exits with a non-zero status.

    Returns:
        str: the captured standard output
    """
    cmd = ["git", *args]
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    try:
        out = subprocess.run(  # noqa: S603
            cmd,
            cwd=str(cwd) if cwd else None,
            text=True,
            capture_output=True,
            check=True,
            env=env,
        )
    except FileNotFoundError as e:
        raise DependencyMissingError(executable="git", message="git is required but it's not installed.") from e
    except subprocess.CalledProcessError as e:
        raise GitCommandError(
            command=" ".join(cmd),
            returncode=e.returncode,
            stdout=e.stdout or "",
            stderr=e.stderr or "",
        ) from e
    return out.stdout


def remote_ref_exists(url: str, ref: str) -> bool:
    """Check whether `ref` is a branch or tag of the remote repository.

    Args:
        url (str): the remote repository URL
        ref (str): branch or tag name

    Raises:
        GitCommandError: if the remote cannot be queried.

    Returns:
        bool: True if the remote advertises a matching branch or tag
    """
    out = run_git(["ls-remote", "--heads", "--tags", url, ref])
    return any(line.strip() for line in out.splitlines())


def clone_repository(url: str, branch: str, destination: Path) -> Path:
    """Shallow-clone `branch` of `url` into `destination`.

    Returns:
        Path: the clone root
    """
    logger.info("Cloning repository", url=url, branch=branch)
    run_git(["clone", "--depth=1", "--branch", branch, url, str(destination)])
    logger.info("Repository cloned", root=str(destination))
    return destination


@contextmanager
def cloned_repository(url: str, branch: str) -> Iterator[Path]:
    """Clone a repository into a temporary directory removed on exit.

    The directory is deleted whatever happens inside the `with` block,
    including failures of the clone itself and `KeyboardInterrupt`.

    Args:
        url (str): the remote repository URL
        branch (str): branch or tag to check out

    Yields:
        Path: the root of the fresh clone
    """
    name = repository_name(url)
    with tempfile.TemporaryDirectory(prefix=f"{name}_repo_") as tmp:
        try:
            yield clone_repository(url, branch, Path(tmp) / name)
        finally:
            logger.info("Cleaning up the temporary repository directory", path=tmp)


def read_last_commit(root: Path) -> dict[str, str | None]:
    """Read the short hash, date and message of the checked-out commit.

    A value git cannot provide is reported as None rather than failing the run.

    Args:
        root (Path): a git working tree

    Returns:
        dict[str, str | None]: `last_commit_hash`, `last_commit_date` and `last_commit_message`
    """
    info: dict[str, str | None] = {}
    for key, args in _COMMIT_QUERIES.items():
        try:
            value = run_git(args, cwd=root).strip()
        except GitCommandError as e:
            logger.warning("Commit metadata unavailable", field=key, error=str(e))
            value = ""
        info[key] = value or None
    return info
