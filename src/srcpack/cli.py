"""
CLI entrypoint for srcpack.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from colorama import Fore, Style
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from . import __version__
from .archiver import pack_files
from .core import (
    Compression,
    ConfigFileError,
    PackConfig,
    ProgressEvent,
    ScanConfig,
    SrcpackError,
)
from .scanner import scan_files

KB = 1024
MB = 1024 * KB
GB = 1024 * MB


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="srcpack",
        description="Pack a source tree into a zip file, respecting .gitignore.",
        epilog="Build artifacts such as target/, node_modules/ and .git/ are always left out.",
    )
    p.add_argument("path", type=Path, nargs="?", default=Path("."), help="Root directory to scan")
    p.add_argument("-o", "--output", type=Path, help="Output zip file (default: <dir>.zip)")
    p.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Scan and list files without creating a zip",
    )
    p.add_argument(
        "--top",
        type=int,
        default=0,
        metavar="N",
        help="With --dry-run, show the N largest files",
    )
    p.add_argument(
        "-x",
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help='Exclude files matching PATTERN (e.g. "*.mp4", "secrets/"); repeatable',
    )
    p.add_argument(
        "--exclude-from",
        type=Path,
        metavar="FILE",
        help="Read extra exclude patterns from FILE (one per line)",
    )
    p.add_argument("--store", action="store_true", help="Store files without compression")
    p.add_argument("--level", type=int, help="Compression level (0-9 for deflate)")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ns = p.parse_args(argv)
    if ns.top and not ns.dry_run:
        p.error("--top requires --dry-run")
    if ns.top < 0:
        p.error("--top must not be negative")
    return ns


def load_exclude_file(path: Path) -> List[str]:
    """Newline-separated patterns; blank lines and ``#`` comments are skipped."""
    if not path.exists():
        raise ConfigFileError(f"Exclude file '{path}' does not exist")
    if not path.is_file():
        raise ConfigFileError(f"'{path}' is not a file")
    try:
        with path.open("r", encoding="utf-8") as fh:
            return [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read exclude file '{path}': {e}") from e


def format_size(num_bytes: int) -> str:
    if num_bytes >= GB:
        return f"{num_bytes / GB:.2f} GB"
    if num_bytes >= MB:
        return f"{num_bytes / MB:.2f} MB"
    if num_bytes >= KB:
        return f"{num_bytes / KB:.2f} KB"
    return f"{num_bytes} B"


def truncate(text: str, max_chars: int = 35) -> str:
    """Keep the tail of *text*, prefixed with ``...`` when it was cut."""
    if len(text) <= max_chars:
        return text
    keep = max(max_chars - 3, 0)
    return "..." + (text[-keep:] if keep else "")


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def default_output(root: Path) -> Path:
    return Path(f"{root.name or 'archive'}.zip")


def largest_files(stats: List[Tuple[int, Path]], n: int) -> List[Tuple[int, Path]]:
    return sorted(stats, key=lambda item: item[0], reverse=True)[:n]


def print_top_files(stats: List[Tuple[int, Path]], n: int, root: Path) -> None:
    top = largest_files(stats, n)
    print(f"\nLargest {len(top)} files:")
    print("-" * 60)
    print(f"{'Size':<12} | File Path")
    print("-" * 60)
    for size, path in top:
        print(f"{format_size(size):<12} | {_relative(path, root)}")
    print("-" * 60)


def dry_run(files: List[Path], root: Path, top: int) -> None:
    print("\n--- Dry Run Mode (No Zip Created) ---")
    stats: List[Tuple[int, Path]] = []
    for f in files:
        try:
            size = f.stat().st_size
        except OSError:
            size = 0
        stats.append((size, f))

    if top == 0:
        for _, f in stats:
            print(_relative(f, root))

    print(f"\nTotal size: {format_size(sum(size for size, _ in stats))}")
    if top > 0:
        print_top_files(stats, top, root)
    else:
        print("Tip: Use '--top 10' with '--dry-run' to see the largest files.")


class PackProgress:
    """Progress bar fed by pack events: ``elapsed [bar] i/N pct ETA path | Total``."""

    def __init__(self, total_files: int, root: Path, console: Optional[Console] = None) -> None:
        self.root = root
        self.progress = Progress(
            TimeElapsedColumn(),
            BarColumn(bar_width=30),
            MofNCompleteColumn(),
            TaskProgressColumn(),
            TextColumn("ETA"),
            TimeRemainingColumn(),
            TextColumn("{task.fields[status]}", style="cyan", markup=False),
            console=console,
        )
        self.task = self.progress.add_task("pack", total=total_files, status="")

    def __enter__(self) -> "PackProgress":
        self.progress.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.progress.stop()

    def __call__(self, event: ProgressEvent) -> None:
        name = truncate(_relative(event.path, self.root))
        self.progress.update(
            self.task,
            advance=1,
            status=f"{name} | Total: {format_size(event.cumulative_size)}",
        )

    def finish(self, message: str) -> None:
        self.progress.update(self.task, status=message)


def run(ns: argparse.Namespace) -> None:
    root = ns.path.resolve()

    patterns = list(ns.exclude)
    if ns.exclude_from:
        patterns.extend(load_exclude_file(ns.exclude_from.resolve()))
        if ns.verbose:
            print(f"[srcpack] Loaded extra patterns from {ns.exclude_from}")

    console = Console()
    with Progress(
        SpinnerColumn(), TextColumn("{task.description}"), console=console, transient=True
    ) as spinner:
        spinner.add_task(f"Scanning: {root.name or root}", total=None)
        files = scan_files(ScanConfig(root, patterns))

    output = (ns.output or default_output(root)).resolve()
    if not ns.dry_run:
        # never pack a previous archive into the new one
        files = [f for f in files if f != output]
    print(f"Found {len(files)} files.")

    if ns.dry_run:
        dry_run(files, root, ns.top)
        return

    config = PackConfig(
        root,
        output,
        compression=Compression.STORED if ns.store else Compression.DEFLATED,
        compression_level=ns.level,
    )
    print(f"Compressing to: {output.name}")
    with PackProgress(len(files), root, console) as progress:
        total = pack_files(files, config, progress)
        progress.finish("Done!")

    if ns.verbose:
        print(f"[srcpack] {len(files)} files, {format_size(total)} packed.")
    print(Fore.GREEN + f"Success! Saved to: {output}" + Style.RESET_ALL)


def main(argv: Optional[Sequence[str]] = None) -> None:
    try:
        ns = _parse_args(argv)
        try:
            run(ns)
        except SrcpackError as e:
            print(Fore.RED + f"Error: {e}" + Style.RESET_ALL, file=sys.stderr)
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
