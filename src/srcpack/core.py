"""
Shared configuration, events and exceptions for srcpack.
"""

from __future__ import annotations

import enum
import sys
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from colorama import Fore, Style, init as colorama_init

colorama_init()

PathLike = Union[str, Path]


# Exceptions
class SrcpackError(Exception):
    """Base exception for srcpack errors."""


class ConfigError(SrcpackError):
    """Raised when a configuration value is out of range."""


class ConfigFileError(SrcpackError):
    """Raised when there are issues with a pattern file."""


class AccessError(SrcpackError):
    """Raised when the scan root is missing or unreadable."""


class InvalidPatternError(SrcpackError):
    """Raised when a user exclude pattern cannot be compiled."""


class WalkEntryError(SrcpackError):
    """A single entry could not be visited. Reported, never raised by a scan."""

    def __init__(self, path: PathLike, reason: object) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class CreateError(SrcpackError):
    """Raised when the destination archive cannot be created."""


class SourceReadError(SrcpackError):
    """Raised when a source file vanished or could not be read."""


class WriteError(SrcpackError):
    """Raised when writing into the destination archive fails."""


class FinalizeError(SrcpackError):
    """Raised when the archive footer cannot be written."""


# Build artifacts & tool directories, never packed
ARTIFACT_NAMES = frozenset(
    {
        "node_modules",
        "target",
        "build",
        "dist",
        ".git",
        ".idea",
        ".vscode",
    }
)


def is_build_artifact(parts: Iterable[str]) -> bool:
    """True when any path component is a blacklisted artifact name."""
    return any(part in ARTIFACT_NAMES for part in parts)


class Compression(enum.Enum):
    STORED = zipfile.ZIP_STORED
    DEFLATED = zipfile.ZIP_DEFLATED
    BZIP2 = zipfile.ZIP_BZIP2
    LZMA = zipfile.ZIP_LZMA

    @property
    def level_range(self) -> Optional[Tuple[int, int]]:
        """Accepted compression levels, or None when the method has none."""
        if self is Compression.DEFLATED:
            return (0, 9)
        if self is Compression.BZIP2:
            return (1, 9)
        return None


@dataclass(frozen=True)
class ScanConfig:
    root_path: Path
    exclude_patterns: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "root_path", Path(self.root_path).absolute())
        object.__setattr__(self, "exclude_patterns", tuple(self.exclude_patterns))


@dataclass(frozen=True)
class PackConfig:
    root_path: Path
    output_path: Path
    compression: Compression = Compression.DEFLATED
    compression_level: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "root_path", Path(self.root_path).absolute())
        object.__setattr__(self, "output_path", Path(self.output_path).absolute())

        level = self.compression_level
        if level is None:
            return
        if isinstance(level, bool) or not isinstance(level, int):
            raise ConfigError(f"Compression level must be an integer, got {level!r}")
        bounds = self.compression.level_range
        if bounds is None:
            # STORED and LZMA take no level
            object.__setattr__(self, "compression_level", None)
            return
        low, high = bounds
        if not low <= level <= high:
            raise ConfigError(
                f"Compression level {level} out of range {low}..{high} "
                f"for {self.compression.name.lower()}"
            )


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted once per packed file, in input order."""

    path: Path
    file_size: int
    cumulative_size: int


def warn(message: str) -> None:
    print(Fore.YELLOW + f"[srcpack] ! {message}" + Style.RESET_ALL, file=sys.stderr)


def report_walk_error(error: WalkEntryError) -> None:
    """Default scan warning sink: one yellow line on stderr."""
    warn(f"Scan warning: {error}")
