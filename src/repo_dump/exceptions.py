from dataclasses import dataclass
from pathlib import Path


@dataclass(eq=False)
class RepoDumpError(Exception):
    """Base exception for errors in the repo_dump package."""

    def __str__(self) -> str:
        return getattr(self, "message", "") or (self.__doc__ or "").strip()


@dataclass(eq=False)
class InvalidRepositoryUrlError(RepoDumpError):
    """Raised when the repository URL is not a GitHub repository URL."""

    url: str
    message: str = "Invalid GitHub repository URL. Please provide a valid URL."


@dataclass(eq=False)
class RefNotFoundError(RepoDumpError):
    """Raised when the requested branch or tag does not exist on the remote."""

    url: str
    ref: str
    message: str = "The requested branch or reference does not exist on the remote."


@dataclass(eq=False)
class SubPathNotFoundError(RepoDumpError):
    """Raised when the targeted path does not exist inside the repository."""

    root: Path
    sub_path: str
    message: str = "The requested path does not exist in the repository."


@dataclass(eq=False)
class DependencyMissingError(RepoDumpError):
    """Raised when a required executable is not installed."""

    executable: str
    message: str = "A required executable is not installed."


@dataclass(eq=False)
class GitCommandError(RepoDumpError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str
    message: str = "A git command failed."

    def __str__(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        return f"{self.message} `{self.command}` exited with {self.returncode}: {detail}"


@dataclass(eq=False)
class TreeRenderError(RepoDumpError):
    """Raised when the directory tree listing cannot be produced."""

    root: Path | None = None
    message: str = "Failed to generate directory tree."


@dataclass(eq=False)
class OutputWriteError(RepoDumpError):
    """Raised when the aggregated document cannot be written."""

    path: Path
    message: str = "Failed to write the buffer to the output file."


@dataclass(eq=False)
class CompressionError(RepoDumpError):
    """Raised when the output file cannot be compressed."""

    path: Path
    message: str = "Failed to compress the output file."


@dataclass(eq=False)
class FileReadError(RepoDumpError):
    """Raised when a selected file cannot be read and missing files are fatal."""

    path: Path
    message: str = "A selected file could not be read."


@dataclass(eq=False)
class ConfigFileError(RepoDumpError):
    """Raised when a configuration file cannot be loaded."""

    path: Path | None = None
    message: str = "The configuration file is invalid."
