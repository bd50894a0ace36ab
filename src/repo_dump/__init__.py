"""repo_dump: flatten a GitHub repository into a single text archive."""

__version__ = "0.1.0"
