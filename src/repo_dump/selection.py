from __future__ import annotations

import fnmatch
import os
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from repo_dump.config import PRUNED_DIRS, FileEntry, SelectionRules, SelectionSet
from repo_dump.exceptions import SubPathNotFoundError
from repo_dump.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

DEFAULT_RULES = SelectionRules()


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def resolve_selection_root(root: Path, sub_path: str | None = None) -> Path:
    """Resolve the directory or file the selection is restricted to.

    Args:
        root (Path): the repository root
        sub_path (str | None): optional path relative to `root`

    Raises:
        SubPathNotFoundError: if `sub_path` does not exist or points outside `root`.

    Returns:
        Path: the absolute, resolved selection root (`root` itself when no sub-path is given)
    """
    root = root.resolve()
    normalized = (sub_path or "").strip().replace("\\", "/").strip("/")
    if not normalized or normalized == ".":
        return root
    target = (root / normalized).resolve()
    if target != root and root not in target.parents:
        raise SubPathNotFoundError(
            root=root,
            sub_path=normalized,
            message=f"The requested path escapes the repository root: {normalized}",
        )
    if not target.exists():
        raise SubPathNotFoundError(
            root=root,
            sub_path=normalized,
            message=f"The requested path does not exist in the repository: {normalized}",
        )
    return target


def walk_files(base: Path) -> list[Path]:
    """Walk the directory tree rooted at `base` and return every regular file.

    Hidden files are included and `.git` is pruned. Symbolic links, to files
    or directories, are neither returned nor followed.

    Args:
        base (Path): the root directory to walk

    Returns:
        list[Path]: all regular files found, in walk order
    """
    results: list[Path] = []
    for current, dirs, files in os.walk(base):
        dirs[:] = sorted(d for d in dirs if d not in PRUNED_DIRS)
        for name in sorted(files):
            p = Path(current) / name
            if p.is_file() and not p.is_symlink():
                results.append(p)
    return results


def is_media_file(name: str, rules: SelectionRules = DEFAULT_RULES) -> bool:
    """Check a file name against the media extensions (case-sensitive).

    Args:
        name (str): the file name, without directories
        rules (SelectionRules): the selection tables to apply

    Returns:
        bool: True if the name ends with one of the media extensions
    """
    return any(name.endswith(f".{ext}") for ext in rules.media_extensions)


def in_excluded_dir(parts: Sequence[str], rules: SelectionRules = DEFAULT_RULES) -> bool:
    """Check if any directory segment of a split path is excluded.

    Args:
        parts (Sequence[str]): the path segments, the file name last
        rules (SelectionRules): the selection tables to apply

    Returns:
        bool: True if a directory segment is an excluded or media directory
    """
    return any(p in rules.excluded_dirs or p in rules.excluded_media_dirs for p in parts[:-1])


def is_excluded(rel: str, rules: SelectionRules = DEFAULT_RULES) -> bool:
    """Apply the primary exclusion rules to a relative path.

    Directory exclusions win over everything. Names listed in
    `rules.always_included` (`.env.example`) then survive the name-level
    rules (lock files, `.env`, editor swap files, OS metadata, media).

    Args:
        rel (str): POSIX path relative to the selection root
        rules (SelectionRules): the selection tables to apply

    Returns:
        bool: True if the path must not be selected
    """
    parts = PurePosixPath(rel).parts
    if not parts or in_excluded_dir(parts, rules):
        return True
    name = parts[-1]
    if name in rules.always_included:
        return False
    if name in rules.excluded_names:
        return True
    if any(fnmatch.fnmatchcase(name, pat) for pat in rules.excluded_patterns):
        return True
    return is_media_file(name, rules)


def order_entries(
    readmes: Iterable[FileEntry],
    others: Iterable[FileEntry],
    workflows: Iterable[FileEntry],
) -> tuple[FileEntry, ...]:
    """Concatenate the three selection tiers, each sorted by relative path.

    Args:
        readmes (Iterable[FileEntry]): README.md files outside `.github`
        others (Iterable[FileEntry]): every other selected file outside `.github`
        workflows (Iterable[FileEntry]): files under a `.github` directory

    Returns:
        tuple[FileEntry, ...]: README files first, workflow configuration last.
    """

    def by_rel(entries: Iterable[FileEntry]) -> list[FileEntry]:
        return sorted(entries, key=lambda e: e.rel)

    return (*by_rel(readmes), *by_rel(others), *by_rel(workflows))


def select_files(
    root: Path,
    sub_path: str | None = None,
    rules: SelectionRules | None = None,
) -> SelectionSet:
    """Select and order the files of a repository (or of a part of it).

    When `sub_path` names a file, the selection is that single file and no
    rule applies. Otherwise every regular file under the selection root is
    classified once: files under `.github` only drop media, the others go
    through `is_excluded`. Exclusions are evaluated relative to the selection
    root; the entries keep paths relative to the repository root.

    Args:
        root (Path): the repository root
        sub_path (str | None): optional path restricting the selection
        rules (SelectionRules | None): selection tables, defaults to the built-in policy

    Returns:
        SelectionSet: the ordered selection
    """
    rules = rules or DEFAULT_RULES
    root = root.resolve()
    base = resolve_selection_root(root, sub_path)

    if base.is_file():
        entry = FileEntry(root=root, rel=relpath(base, root))
        logger.info("Single file selected", file=entry.rel)
        return SelectionSet(entries=(entry,), single_file=True)

    readmes: list[FileEntry] = []
    others: list[FileEntry] = []
    workflows: list[FileEntry] = []
    excluded = 0
    for path in walk_files(base):
        entry = FileEntry(root=root, rel=relpath(path, root))
        if entry.is_workflow_config:
            if is_media_file(path.name, rules):
                excluded += 1
            else:
                workflows.append(entry)
            continue
        if is_excluded(relpath(path, base), rules):
            excluded += 1
            continue
        (readmes if entry.is_readme else others).append(entry)

    selection = SelectionSet(entries=order_entries(readmes, others, workflows))
    logger.info(
        "Files selected",
        root=str(base),
        readmes=len(readmes),
        files=len(others),
        workflow_files=len(workflows),
        excluded=excluded,
    )
    return selection
