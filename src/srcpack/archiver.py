"""
Streaming ZIP writer for srcpack.
"""

from __future__ import annotations

import contextlib
import os
import secrets
import stat
import time
import zipfile
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Optional, Tuple

from .core import (
    CreateError,
    FinalizeError,
    PackConfig,
    ProgressEvent,
    SourceReadError,
    WriteError,
)

CHUNK_SIZE = 1024 * 1024
WRITE_BUFFER_SIZE = 1024 * 1024

# rw-r--r--, used where the OS has no POSIX mode bits
DEFAULT_PERMISSIONS = 0o644

ProgressCallback = Callable[[ProgressEvent], None]

_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
_ZIP_LAST = (2107, 12, 31, 23, 59, 58)


def archive_name(path: Path, root: Path) -> str:
    """Root-relative entry name with forward slashes; *path* as-is when outside *root*."""
    try:
        rel = path.relative_to(root)
    except ValueError:
        rel = path
    return str(rel).replace("\\", "/")


def file_permissions(st: os.stat_result) -> int:
    if os.name == "posix":
        return stat.S_IMODE(st.st_mode)
    return DEFAULT_PERMISSIONS


def _zip_timestamp(mtime: float) -> tuple:
    date_time = time.localtime(mtime)[:6]
    return min(max(date_time, _ZIP_EPOCH), _ZIP_LAST)


def _entry_info(name: str, st: os.stat_result, config: PackConfig) -> zipfile.ZipInfo:
    zinfo = zipfile.ZipInfo(name, date_time=_zip_timestamp(st.st_mtime))
    zinfo.create_system = 3  # unix, so extractors honour the mode bits
    zinfo.external_attr = (stat.S_IFREG | file_permissions(st)) << 16
    zinfo.file_size = st.st_size
    zinfo.compress_type = config.compression.value
    # CPython 3.13 renamed ZipInfo._compresslevel to compress_level
    if hasattr(zinfo, "compress_level"):
        zinfo.compress_level = config.compression_level
    else:
        zinfo._compresslevel = config.compression_level
    return zinfo


def _copy_into(src: BinaryIO, dest: BinaryIO, path: Path) -> None:
    while True:
        try:
            chunk = src.read(CHUNK_SIZE)
        except OSError as e:
            raise SourceReadError(f"Could not read '{path}': {e}") from e
        if not chunk:
            break
        dest.write(chunk)


def add_file(zf: zipfile.ZipFile, path: Path, config: PackConfig) -> int:
    """Stream one source file into *zf*; returns its size in bytes."""
    name = archive_name(path, config.root_path)
    try:
        src = open(path, "rb")
    except OSError as e:
        raise SourceReadError(f"Could not open '{path}': {e}") from e

    with src:
        try:
            st = os.fstat(src.fileno())
            zinfo = _entry_info(name, st, config)
        except (OSError, OverflowError, ValueError) as e:
            raise SourceReadError(f"Could not read metadata of '{path}': {e}") from e
        try:
            with zf.open(zinfo, mode="w", force_zip64=True) as dest:
                _copy_into(src, dest, path)
        except OSError as e:
            raise WriteError(f"Could not write '{name}' to archive: {e}") from e

    return st.st_size


def _discard(tmp_path: str) -> None:
    try:
        os.unlink(tmp_path)
    except FileNotFoundError:
        pass


def _create_temp(output: Path) -> Tuple[int, str]:
    """Exclusive sibling of *output*; mode 0o666 filtered by the umask, like open()."""
    flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)
    tmp_path = str(output.parent / f".{output.name}.{secrets.token_hex(8)}.part")
    return os.open(tmp_path, flags, 0o666), tmp_path


def pack_files(
    paths: Iterable[Path],
    config: PackConfig,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """
    Write every file in *paths* into a ZIP archive at ``config.output_path``.

    Files are processed strictly in input order, one at a time, and streamed
    in fixed-size chunks, so memory stays flat whatever the file sizes. Every
    entry carries the ZIP64 extension. *on_progress* receives a
    :class:`ProgressEvent` after each file; its return value is ignored.

    The archive is assembled in a temporary file next to the destination and
    moved into place only once finalized. On any failure the temporary file
    is removed and the destination is left untouched.

    Returns the total number of bytes packed.
    """
    output = config.output_path
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = _create_temp(output)
    except OSError as e:
        raise CreateError(f"Could not create output file '{output}': {e}") from e

    total = 0
    try:
        with os.fdopen(fd, "wb", buffering=WRITE_BUFFER_SIZE) as fh:
            zf = zipfile.ZipFile(
                fh,
                mode="w",
                compression=config.compression.value,
                compresslevel=config.compression_level,
                allowZip64=True,
            )
            try:
                for path in paths:
                    path = Path(path)
                    size = add_file(zf, path, config)
                    total += size
                    if on_progress is not None:
                        on_progress(ProgressEvent(path, size, total))
            except BaseException:
                # release zf while fh is still open; the temp file is dropped anyway
                with contextlib.suppress(Exception):
                    zf.close()
                raise

            try:
                zf.close()
                fh.flush()
            except (OSError, ValueError) as e:
                raise FinalizeError(f"Could not finalize archive '{output}': {e}") from e

        try:
            os.replace(tmp_path, output)
        except OSError as e:
            raise FinalizeError(f"Could not move archive into place at '{output}': {e}") from e
    except BaseException:
        _discard(tmp_path)
        raise

    return total
