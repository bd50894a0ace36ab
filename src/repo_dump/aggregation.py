from __future__ import annotations

import gzip
import io
import shutil
from datetime import datetime
from typing import TYPE_CHECKING

from repo_dump.config import (
    DEFAULT_TREE_DEPTH,
    SEPARATOR,
    TIMESTAMP_FORMAT,
    MissingFilePolicy,
    OutputArtifact,
)
from repo_dump.exceptions import CompressionError, FileReadError, OutputWriteError, TreeRenderError
from repo_dump.logging import logger
from repo_dump.tree import render_tree

if TYPE_CHECKING:
    from pathlib import Path

    from repo_dump.config import FileEntry, RepositoryMetadata, SelectionSet

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def _encode(text: str) -> bytes:
    return text.encode(_ENCODING, _ERRORS)


def read_entry(
    entry: FileEntry,
    *,
    missing_files: MissingFilePolicy,
    skipped: list[str],
) -> bytes | None:
    """Read the raw bytes of a selected file.

    Args:
        entry (FileEntry): the file to read
        missing_files (MissingFilePolicy): SKIP records the path in `skipped`
            and returns None, FAIL raises.
        skipped (list[str]): collects the relative paths of skipped files

    Raises:
        FileReadError: if the file cannot be read and the policy is FAIL.

    Returns:
        bytes | None: the file content, untouched, or None when skipped
    """
    try:
        return entry.path.read_bytes()
    except OSError as e:
        if missing_files is MissingFilePolicy.FAIL:
            raise FileReadError(path=entry.path, message=f"Cannot read {entry.rel}: {e}") from e
        logger.warning("Skipping unreadable file", file=entry.rel, error=str(e))
        skipped.append(entry.rel)
        return None


def build_document(
    selection: SelectionSet,
    metadata: RepositoryMetadata,
    tree_listing: str | None,
    *,
    missing_files: MissingFilePolicy = MissingFilePolicy.SKIP,
) -> tuple[bytes, list[str]]:
    """Build the aggregated document.

    Full mode writes, in this order: the metadata lines, a separator, the
    `Directory Tree:` section, then one block per selected file (separator,
    `File: <rel>`, separator, raw content). A block ends with a newline
    (added only when the content lacks one) and a blank line.

    Single-file mode writes `File: <rel>` and a blank line, followed by the
    raw content. Metadata and tree are left out, and the file must be
    readable whatever the policy, since it is the whole document.

    Args:
        selection (SelectionSet): the ordered files
        metadata (RepositoryMetadata): repository facts for the header
        tree_listing (str | None): directory listing of the selection root
        missing_files (MissingFilePolicy): policy for files unreadable at read time

    Raises:
        TreeRenderError: if the tree listing is missing in full mode.
        FileReadError: if a file cannot be read and the policy (or single-file mode) requires it.

    Returns:
        tuple[bytes, list[str]]: the document and the relative paths of skipped files
    """
    out = io.BytesIO()
    skipped: list[str] = []

    if selection.single_file:
        entry = selection.entries[0]
        content = read_entry(entry, missing_files=MissingFilePolicy.FAIL, skipped=skipped)
        out.write(_encode(f"File: {entry.rel}\n\n"))
        out.write(content or b"")
        return out.getvalue(), skipped

    if tree_listing is None:
        raise TreeRenderError(message="Directory tree listing is missing.")

    for line in metadata.header_lines():
        out.write(_encode(f"{line}\n"))
    out.write(_encode(f"{SEPARATOR}\nDirectory Tree:\n"))
    out.write(_encode(tree_listing.rstrip("\n") + "\n\n"))

    for entry in selection.entries:
        content = read_entry(entry, missing_files=missing_files, skipped=skipped)
        if content is None:
            continue
        out.write(_encode(f"{SEPARATOR}\nFile: {entry.rel}\n{SEPARATOR}\n"))
        out.write(content)
        if not content.endswith(b"\n"):
            out.write(b"\n")
        out.write(b"\n")

    return out.getvalue(), skipped


def artifact_name(
    repo_name: str,
    branch: str | None,
    timestamp: datetime,
    base_file: str | None = None,
) -> str:
    """Name of the text artifact: `<repo>[_<branch>]_<timestamp>[_<basefile>].txt`.

    Path separators and whitespace in the branch are replaced by `-`.
    """
    parts = [repo_name]
    if branch:
        parts.append("-".join(branch.replace("\\", "/").replace("/", " ").split()))
    parts.append(timestamp.strftime(TIMESTAMP_FORMAT))
    if base_file:
        parts.append(base_file)
    return "_".join(parts) + ".txt"


def unique_destination(output_dir: Path, name: str) -> Path:
    """Return a path in `output_dir` that no previous artifact uses.

    The directory is created if absent. When `name` (or its `.gz`) is taken,
    `_1`, `_2`, ... is inserted before the `.txt` suffix.

    Raises:
        OutputWriteError: if the output directory cannot be created.
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputWriteError(path=output_dir, message=f"Cannot create output directory {output_dir}: {e}") from e

    stem = name.removesuffix(".txt")
    candidate = output_dir / name
    n = 0
    while candidate.exists() or candidate.with_name(candidate.name + ".gz").exists():
        n += 1
        candidate = output_dir / f"{stem}_{n}.txt"
    return candidate


def write_document(path: Path, document: bytes) -> Path:
    """Write the document to a new file.

    Raises:
        OutputWriteError: if the file exists already or cannot be written.
    """
    try:
        with path.open("xb") as f:
            f.write(document)
    except OSError as e:
        raise OutputWriteError(path=path, message=f"Failed to write the buffer to {path}: {e}") from e
    logger.info("Buffer written to the output file", path=str(path), size=len(document))
    return path


def compress_file(path: Path) -> Path:
    """Gzip `path` into `<path>.gz`, keeping the original file.

    Raises:
        CompressionError: if the source cannot be read or the archive cannot be written.
    """
    target = path.with_name(path.name + ".gz")
    try:
        with path.open("rb") as src, gzip.open(target, "xb") as dst:
            shutil.copyfileobj(src, dst)
    except FileExistsError as e:
        raise CompressionError(path=path, message=f"Compressed output already exists: {target}") from e
    except OSError as e:
        target.unlink(missing_ok=True)
        raise CompressionError(path=path, message=f"Failed to compress {path}: {e}") from e
    logger.info("Output file compressed", path=str(target))
    return target


def aggregate(
    selection: SelectionSet,
    metadata: RepositoryMetadata,
    *,
    selection_root: Path,
    output_dir: Path,
    repo_name: str,
    tree_depth: int = DEFAULT_TREE_DEPTH,
    missing_files: MissingFilePolicy = MissingFilePolicy.SKIP,
    timestamp: datetime | None = None,
) -> OutputArtifact:
    """Build, write and compress the document for one run.

    Args:
        selection (SelectionSet): the ordered files
        metadata (RepositoryMetadata): repository facts for the header
        selection_root (Path): directory the tree listing is rendered for
        output_dir (Path): where the artifacts go (created if absent)
        repo_name (str): repository name used in the artifact name
        tree_depth (int): maximum depth of the tree listing
        missing_files (MissingFilePolicy): policy for files unreadable at read time
        timestamp (datetime | None): artifact timestamp, defaults to now

    Returns:
        OutputArtifact: the text and compressed paths
    """
    timestamp = timestamp or datetime.now().astimezone()
    base_file = None
    tree_listing = None
    if selection.single_file:
        base_file = selection.entries[0].path.name
    else:
        tree_listing = render_tree(selection_root, max_depth=tree_depth)

    document, skipped = build_document(selection, metadata, tree_listing, missing_files=missing_files)

    destination = unique_destination(output_dir, artifact_name(repo_name, metadata.branch, timestamp, base_file))
    write_document(destination, document)
    compressed = compress_file(destination)

    return OutputArtifact(
        text_path=destination,
        compressed_path=compressed,
        file_count=len(selection) - len(skipped),
        skipped=tuple(skipped),
    )
