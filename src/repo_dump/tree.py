"""Directory tree listing in the style of `tree -v -L <depth> --charset utf-8`."""

from __future__ import annotations

import os
import re
from typing import TYPE_CHECKING

from repo_dump.config import DEFAULT_TREE_DEPTH
from repo_dump.exceptions import TreeRenderError
from repo_dump.logging import logger

if TYPE_CHECKING:
    from pathlib import Path

_DIGITS = re.compile(r"(\d+)")


def version_key(name: str) -> list[int | str]:
    """Natural sort key: digit runs compare as numbers (`file2` < `file10`)."""
    return [int(tok) if tok.isdigit() else tok for tok in _DIGITS.split(name)]


def list_visible(directory: Path | str) -> list[os.DirEntry[str]]:
    """List non-hidden entries of a directory in natural order.

    Raises:
        OSError: if the directory cannot be opened.
    """
    with os.scandir(directory) as it:
        entries = [e for e in it if not e.name.startswith(".")]
    return sorted(entries, key=lambda e: version_key(e.name))


def render_tree(root: Path, max_depth: int = DEFAULT_TREE_DEPTH) -> str:
    """Render the directory tree under `root`, at most `max_depth` levels deep.

    Hidden entries are omitted and symbolic links are shown but never
    followed. A subdirectory that cannot be opened is marked with
    `[error opening dir]`; the listing ends with a directory/file count.

    Args:
        root (Path): the directory to list
        max_depth (int): number of levels below `root` to descend into

    Raises:
        ValueError: if `max_depth` is lower than 1.
        TreeRenderError: if `root` is not a readable directory.

    Returns:
        str: the listing, without a trailing newline
    """
    if max_depth < 1:
        msg = f"max_depth must be >= 1, got {max_depth}"
        raise ValueError(msg)
    if not root.is_dir():
        raise TreeRenderError(root=root, message=f"Not a directory: {root}")
    try:
        top = list_visible(root)
    except OSError as e:
        raise TreeRenderError(root=root, message=f"Failed to generate directory tree: {e}") from e

    lines: list[str] = ["."]
    counts = {"dirs": 0, "files": 0}

    def walk(entries: list[os.DirEntry[str]], prefix: str, depth: int) -> None:
        for idx, entry in enumerate(entries):
            last = idx == len(entries) - 1
            branch = "└── " if last else "├── "
            if entry.is_symlink():
                lines.append(f"{prefix}{branch}{entry.name} -> {os.readlink(entry.path)}")
                counts["dirs" if entry.is_dir() else "files"] += 1
                continue
            lines.append(prefix + branch + entry.name)
            if not entry.is_dir(follow_symlinks=False):
                counts["files"] += 1
                continue
            counts["dirs"] += 1
            if depth >= max_depth:
                continue
            try:
                children = list_visible(entry.path)
            except OSError:
                lines[-1] += "  [error opening dir]"
                continue
            walk(children, prefix + ("    " if last else "│   "), depth + 1)

    walk(top, "", 1)

    dirs, files = counts["dirs"], counts["files"]
    lines.append("")
    lines.append(
        f"{dirs} director{'y' if dirs == 1 else 'ies'}, {files} file{'' if files == 1 else 's'}",
    )
    logger.info("Directory tree rendered", root=str(root), depth=max_depth, directories=dirs, files=files)
    return "\n".join(lines)
