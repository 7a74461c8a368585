"""
Input formats and their wire content types
"""

import enum
from pathlib import Path
from typing import Optional

from core.exceptions import UnsupportedFormatError

STDIN_PATH = Path("-")


class Format(str, enum.Enum):
    """Format of one input, fixed for the whole file."""

    JSON = "json"
    NDJSON = "ndjson"
    CSV = "csv"

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @classmethod
    def from_path(cls, path: Path) -> Optional["Format"]:
        """Guess the format from the file extension."""
        return _EXTENSIONS.get(path.suffix.lower().lstrip("."))

    @classmethod
    def resolve(cls, path: Path, override: Optional["Format"] = None) -> "Format":
        """
        Pick the format for ``path``. An explicit override always wins;
        standard input has no extension and therefore requires one.
        """
        if override is not None:
            return override

        if path == STDIN_PATH:
            raise UnsupportedFormatError(
                "Reading from standard input requires an explicit format",
                context={"path": str(path)}
            )

        fmt = cls.from_path(path)
        if fmt is None:
            raise UnsupportedFormatError(
                f"Could not determine the format of {path}",
                context={"path": str(path), "extension": path.suffix or None}
            )
        return fmt


_MIME_TYPES = {
    Format.JSON: "application/json",
    Format.NDJSON: "application/x-ndjson",
    Format.CSV: "text/csv",
}

_EXTENSIONS = {
    "json": Format.JSON,
    "ndjson": Format.NDJSON,
    "jsonl": Format.NDJSON,
    "csv": Format.CSV,
}
