from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

SEPARATOR = "========================="

DEFAULT_TREE_DEPTH = 24

TIMESTAMP_FORMAT = "%Y_%m_%d_%H_%M_%S"

DEFAULT_BRANCH = "main"

EXCLUDED_DIRS = frozenset(
    {
        ".git",
        "node_modules",
        "build",
        "output",
        ".yarn",
        "temp",
        ".vscode",
    },
)

EXCLUDED_MEDIA_DIRS = frozenset({"images", "fonts", "videos"})

EXCLUDED_NAMES = frozenset(
    {
        ".env",
        "pnpm-lock.yaml",
        "yarn.lock",
        "package-lock.json",
        ".DS_Store",
        "Thumbs.db",
    },
)

# fnmatch patterns checked against the file name only
EXCLUDED_PATTERNS = ("*-lock*", ".*.swp")

MEDIA_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "mp4", "svg", "ico"})

ALWAYS_INCLUDED = frozenset({".env.example"})

WORKFLOW_DIR = ".github"

# never descended into while walking
PRUNED_DIRS = frozenset({".git"})

README_NAME = "readme.md"


class MissingFilePolicy(StrEnum):
    """What to do when a selected file can no longer be read at aggregation time."""

    SKIP = auto()
    FAIL = auto()


class SelectionRules(BaseModel):
    """Inclusion/exclusion tables applied by the selector.

    Defaults reproduce the built-in policy. Each table can be replaced from a
    configuration file; extensions are matched case-sensitively and without
    the leading dot.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    excluded_dirs: frozenset[str] = Field(default=EXCLUDED_DIRS)
    excluded_media_dirs: frozenset[str] = Field(default=EXCLUDED_MEDIA_DIRS)
    excluded_names: frozenset[str] = Field(default=EXCLUDED_NAMES)
    excluded_patterns: tuple[str, ...] = Field(default=EXCLUDED_PATTERNS)
    media_extensions: frozenset[str] = Field(default=MEDIA_EXTENSIONS)
    always_included: frozenset[str] = Field(default=ALWAYS_INCLUDED)

    @field_validator("media_extensions", mode="before")
    @classmethod
    def _strip_leading_dots(cls, value: object) -> object:
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(str(ext).lstrip(".") for ext in value)
        return value


class FileEntry(BaseModel):
    """A single selected file.

    Attributes:
        root: Absolute path of the repository root.
        rel: POSIX path of the file relative to `root`.
    """

    model_config = ConfigDict(frozen=True)

    root: Path = Field(..., description="Repository root")
    rel: str = Field(..., min_length=1, description="File path relative to the repository root")

    @computed_field
    @property
    def path(self) -> Path:
        """Absolute path of the file on disk."""
        return self.root.joinpath(*PurePosixPath(self.rel).parts)

    @computed_field
    @property
    def is_readme(self) -> bool:
        """Whether the entry is a README.md file, at any depth, in any case."""
        return PurePosixPath(self.rel).name.lower() == README_NAME

    @computed_field
    @property
    def is_workflow_config(self) -> bool:
        """Whether the entry lives under a `.github` directory."""
        return WORKFLOW_DIR in PurePosixPath(self.rel).parts[:-1]


class SelectionSet(BaseModel):
    """Ordered, duplicate-free sequence of selected files."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[FileEntry, ...] = ()
    single_file: bool = False

    @field_validator("entries")
    @classmethod
    def _reject_duplicates(cls, entries: tuple[FileEntry, ...]) -> tuple[FileEntry, ...]:
        seen: set[str] = set()
        for entry in entries:
            if entry.rel in seen:
                msg = f"Duplicate path in selection: {entry.rel}"
                raise ValueError(msg)
            seen.add(entry.rel)
        return entries

    @property
    def paths(self) -> list[str]:
        return [entry.rel for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


class RepositoryMetadata(BaseModel):
    """Repository facts written at the top of the aggregated document."""

    model_config = ConfigDict(frozen=True)

    url: str
    branch: str | None = None
    directory: str | None = None
    last_commit_date: str | None = None
    last_commit_hash: str | None = None
    last_commit_message: str | None = None

    def header_lines(self) -> list[str]:
        """Render one labeled line per present field, labels aligned on 21 columns."""
        fields = [
            ("Repository", self.url),
            ("Branch", self.branch),
            ("Directory", self.directory),
            ("Last Commit Date", self.last_commit_date),
            ("Last Commit Hash", self.last_commit_hash),
            ("Last Commit Message", self.last_commit_message),
        ]
        return [f"{label + ':':<21}{value}" for label, value in fields if value]


class OutputArtifact(BaseModel):
    """The plain-text document and its compressed sibling."""

    model_config = ConfigDict(frozen=True)

    text_path: Path
    compressed_path: Path
    file_count: int = Field(0, ge=0)
    skipped: tuple[str, ...] = ()
