"""
srcpack - pack a source tree into a single zip archive.

This package scans a project directory, filters out files ignored by
.gitignore-style rules, user exclude patterns and well-known build artifact
directories, then streams the remaining files into a ZIP64 archive while
reporting progress.
"""

__version__ = "0.1.0"
__author__ = "srcpack Team"

from .archiver import pack_files
from .core import (
    AccessError,
    Compression,
    ConfigError,
    ConfigFileError,
    CreateError,
    FinalizeError,
    InvalidPatternError,
    PackConfig,
    ProgressEvent,
    ScanConfig,
    SourceReadError,
    SrcpackError,
    WalkEntryError,
    WriteError,
)
from .scanner import scan_files

__all__ = [
    "AccessError",
    "Compression",
    "ConfigError",
    "ConfigFileError",
    "CreateError",
    "FinalizeError",
    "InvalidPatternError",
    "PackConfig",
    "ProgressEvent",
    "ScanConfig",
    "SourceReadError",
    "SrcpackError",
    "WalkEntryError",
    "WriteError",
    "pack_files",
    "scan_files",
]
