"""
repo_dump: flatten a GitHub repository into a single text file.

Overview
--------
The tool clones a repository (shallow, one branch) into a temporary
directory, selects its files, and writes one document containing:

- the repository metadata (URL, branch, last commit),
- a directory tree listing,
- the raw content of every selected file, README files first and `.github`
  files last.

The document is saved as `<repo>_<branch>_<timestamp>.txt` in the output
directory, together with a gzip copy. The temporary clone is always removed.

Dependency folders, lock files, `.env`, OS metadata and media files are
skipped; `.env.example` is kept. Passing a path restricts the dump to a
directory, or to a single file.

Usage
-----
Run `python -m repo_dump.cli --help` for full options. Common examples:
    - Whole repository:
        repo-dump https://github.com/owner/project
    - One directory of a branch:
        repo-dump https://github.com/owner/project develop src/
    - One file, shallower tree, strict reads:
        repo-dump https://github.com/owner/project main docs/guide.md --on-missing fail
    - Log to a file:
        repo-dump https://github.com/owner/project --log-file dump.log
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import TYPE_CHECKING

from repo_dump import __version__
from repo_dump.aggregation import aggregate
from repo_dump.config import MissingFilePolicy, OutputArtifact, RepositoryMetadata
from repo_dump.exceptions import ConfigFileError, RefNotFoundError, RepoDumpError
from repo_dump.git import (
    cloned_repository,
    ensure_git_available,
    read_last_commit,
    remote_ref_exists,
    repository_name,
    validate_repository_url,
)
from repo_dump.logging import logger, setup_logging
from repo_dump.selection import relpath, resolve_selection_root, select_files
from repo_dump.settings import Settings, load_settings

if TYPE_CHECKING:
    from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser.

    Options default to None so that unset flags do not override the
    environment or the configuration file.
    """
    p = argparse.ArgumentParser(
        prog="repo-dump",
        description="Dump a GitHub repository into a single text file and its gzip archive.",
    )
    p.add_argument(
        "repository",
        nargs="?",
        default=None,
        help="GitHub repository URL (prompted when omitted).",
    )
    p.add_argument("branch", nargs="?", default=None, help="Branch or tag (default: main).")
    p.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Directory or file inside the repository (default: whole repository).",
    )
    p.add_argument("--output-dir", type=Path, default=None, help="Artifact directory (default: ./output).")
    p.add_argument("--tree-depth", type=int, default=None, help="Depth of the directory tree (default: 24).")
    p.add_argument(
        "--on-missing",
        dest="missing_file_policy",
        choices=[policy.value for policy in MissingFilePolicy],
        default=None,
        help="Skip or fail on files that disappear before being read (default: skip).",
    )
    p.add_argument("--config", type=Path, default=None, help="YAML configuration file.")
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    p.add_argument("--verbose", action="store_true", default=None, help="Log debug events.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    args = vars(build_parser().parse_args(argv))
    config_file = args.pop("config")
    args["repository_url"] = args.pop("repository")
    return load_settings(args, config_file=config_file)


def prompt_repository_url() -> str:
    """Ask for the repository URL on stdin; an empty answer fails validation later."""
    try:
        return input("Please provide a GitHub repository URL: ").strip()
    except EOFError:
        return ""


def build_metadata(root: Path, *, url: str, branch: str, sub_path: str | None) -> RepositoryMetadata:
    """Collect the document header; commit details only describe a whole-repository dump."""
    commit = read_last_commit(root) if not sub_path else {}
    return RepositoryMetadata(url=url, branch=branch, directory=sub_path, **commit)


def run(settings: Settings) -> OutputArtifact:
    """Validate the input, clone, select, aggregate and compress.

    Input errors are raised before anything is cloned. Every other failure
    propagates through the clone context, which removes the temporary copy.

    Raises:
        RepoDumpError: on any validation or collaborator failure.
    """
    url = validate_repository_url(settings.repository_url)
    ensure_git_available()
    if not remote_ref_exists(url, settings.branch):
        raise RefNotFoundError(
            url=url,
            ref=settings.branch,
            message=f"Branch or tag {settings.branch!r} not found in {url}",
        )

    with cloned_repository(url, settings.branch) as root:
        root = root.resolve()
        selection_root = resolve_selection_root(root, settings.path)
        sub_path = relpath(selection_root, root) if selection_root != root else None
        selection = select_files(root, settings.path, settings.rules)
        metadata = build_metadata(root, url=url, branch=settings.branch, sub_path=sub_path)
        return aggregate(
            selection,
            metadata,
            selection_root=selection_root,
            output_dir=settings.output_dir,
            repo_name=repository_name(url),
            tree_depth=settings.tree_depth,
            missing_files=settings.missing_file_policy,
        )


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = parse_args(argv)
    except ConfigFileError as e:
        logger.error("Invalid configuration", error=str(e))
        return 1
    if settings.log_file or settings.verbose:
        setup_logging(settings.log_file or None, verbose=settings.verbose)

    if not settings.repository_url:
        settings = settings.model_copy(update={"repository_url": prompt_repository_url()})

    logger.info(
        "Starting the repository dump",
        url=settings.repository_url,
        branch=settings.branch,
        path=settings.path or ".",
    )
    try:
        artifact = run(settings)
    except RepoDumpError as e:
        logger.error("Repository dump failed", error=str(e), error_type=type(e).__name__)
        return 1
    except KeyboardInterrupt:
        logger.error("Repository dump interrupted")
        return 130

    logger.info(
        "Repository dump complete",
        text=str(artifact.text_path),
        compressed=str(artifact.compressed_path),
        files=artifact.file_count,
        skipped=len(artifact.skipped),
    )
    print(f"Wrote {artifact.text_path} and {artifact.compressed_path} files={artifact.file_count}")  # noqa: T201
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
