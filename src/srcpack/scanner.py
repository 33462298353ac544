"""
File discovery for srcpack.

Walks a project root depth-first and keeps the files a developer would
consider part of the source tree. Three rule layers decide, highest
precedence first:

* the hardcoded build-artifact blacklist (``node_modules``, ``target``, ...),
  a final veto nothing can override;
* the user's exclude patterns;
* ignore files found along the way (``.ignore`` over ``.gitignore``, deeper
  directories over shallower ones, then ``.git/info/exclude`` and git's
  global excludes file).

Hidden files are kept unless one of the layers drops them.
"""

from __future__ import annotations

import configparser
import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

import pathspec

from .core import (
    AccessError,
    InvalidPatternError,
    ScanConfig,
    WalkEntryError,
    is_build_artifact,
    report_walk_error,
)

# Per-directory ignore files, lowest precedence first
IGNORE_FILENAMES = (".gitignore", ".ignore")

WarningHandler = Callable[[WalkEntryError], None]

_gitwildmatch = pathspec.util.lookup_pattern("gitwildmatch")


class RuleSet:
    """Compiled gitignore-style patterns anchored at *base*."""

    def __init__(self, base: Path, spec: "pathspec.PathSpec", source: str = "") -> None:
        self.base = base
        self.spec = spec
        self.source = source

    def __repr__(self) -> str:
        return f"RuleSet({self.source or self.base!s}, {len(self.spec.patterns)} patterns)"

    def decide(self, path: Path, is_dir: bool = False) -> Optional[bool]:
        """
        Return True (ignore), False (re-included by a ``!`` rule) or None when
        no pattern matches. Within one set the last matching pattern wins.
        """
        try:
            rel = path.relative_to(self.base).as_posix()
        except ValueError:
            return None
        if is_dir:
            rel += "/"
        for pattern in reversed(self.spec.patterns):
            if pattern.include is None:
                continue
            if pattern.match_file(rel) is not None:
                return pattern.include
        return None


# Ignore-file utilities
def load_ignore_file(path: Path, on_warning: WarningHandler) -> Optional[RuleSet]:
    """Compile one ignore file; unreadable files and bad lines are reported and skipped."""
    if not path.is_file():
        return None
    try:
        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        on_warning(WalkEntryError(path, e))
        return None

    patterns = []
    for lineno, line in enumerate(lines, start=1):
        try:
            patterns.append(_gitwildmatch(line))
        except ValueError as e:
            on_warning(WalkEntryError(path, f"line {lineno}: {e}"))
    if not any(p.include is not None for p in patterns):
        return None
    return RuleSet(path.parent, pathspec.PathSpec(patterns), source=str(path))


def load_directory_rules(directory: Path, on_warning: WarningHandler) -> List[RuleSet]:
    rules = []
    for name in IGNORE_FILENAMES:
        rule_set = load_ignore_file(directory / name, on_warning)
        if rule_set is not None:
            rules.append(rule_set)
    return rules


def find_repository_top(start: Path) -> Optional[Path]:
    """First directory at or above *start* holding a ``.git`` entry."""
    for directory in (start, *start.parents):
        if (directory / ".git").exists():
            return directory
    return None


def _excludes_setting(config_path: Path) -> Optional[str]:
    """``core.excludesFile`` from one git config file, if set."""
    parser = configparser.ConfigParser(strict=False, interpolation=None, allow_no_value=True)
    try:
        parser.read(config_path, encoding="utf-8")
    except (configparser.Error, UnicodeDecodeError):
        return None
    for section in parser.sections():
        if section.strip().lower() != "core":
            continue
        value = parser.get(section, "excludesfile", fallback=None)
        if value:
            return value.strip().strip('"')
    return None


def global_excludes_file() -> Path:
    """
    git's per-user excludes file: ``core.excludesFile`` from ``~/.gitconfig``
    or ``$XDG_CONFIG_HOME/git/config``, else ``$XDG_CONFIG_HOME/git/ignore``.
    """
    config_home = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    for config_path in (Path.home() / ".gitconfig", config_home / "git" / "config"):
        value = _excludes_setting(config_path)
        if value:
            return Path(os.path.expanduser(value))
    return config_home / "git" / "ignore"


def load_inherited_rules(root: Path, on_warning: WarningHandler) -> List[RuleSet]:
    """
    Rules that apply to *root* before the walk starts, lowest precedence
    first: the global git excludes file, the enclosing repository's
    ``info/exclude``, then ``.gitignore``/``.ignore`` of every ancestor of
    *root*, outermost first. No repository is required for any of them.
    """
    top = find_repository_top(root)
    anchor = top or root
    rules: List[RuleSet] = []

    # both files hold patterns relative to the work tree
    candidates = [global_excludes_file()]
    if top is not None:
        candidates.append(top / ".git" / "info" / "exclude")
    for path in candidates:
        rule_set = load_ignore_file(path, on_warning)
        if rule_set is not None:
            rules.append(RuleSet(anchor, rule_set.spec, source=rule_set.source))

    for directory in reversed(root.parents):
        rules.extend(load_directory_rules(directory, on_warning))
    return rules


def compile_excludes(patterns: Sequence[str], root: Path) -> Optional[RuleSet]:
    """
    Compile user exclude patterns into ignore rules anchored at *root*.

    Users list what they want dropped, so every pattern becomes an *ignore*
    rule. A plain ``*.mp4`` already means "ignore" in gitwildmatch syntax; a
    leading ``!`` (which would normally re-include) is stripped so that
    ``!*.mp4`` excludes exactly like ``*.mp4``. Re-including files through
    this layer is therefore impossible.

    Raises InvalidPatternError for any pattern that compiles to no rule.
    """
    compiled = []
    for raw in patterns:
        text = raw.strip()
        if text.startswith("!"):
            text = text[1:]
        if not text or text.startswith("#"):
            raise InvalidPatternError(f"Invalid exclude pattern {raw!r}")
        try:
            pattern = _gitwildmatch(text)
        except ValueError as e:
            raise InvalidPatternError(f"Invalid exclude pattern {raw!r}: {e}") from e
        if pattern.include is None:
            raise InvalidPatternError(f"Exclude pattern {raw!r} matches nothing")
        compiled.append(pattern)

    if not compiled:
        return None
    return RuleSet(root, pathspec.PathSpec(compiled), source="--exclude")


def is_excluded(path: Path, root: Path, layers: Iterable[RuleSet], is_dir: bool = False) -> bool:
    """Apply *layers* (lowest precedence first), then the artifact blacklist."""
    ignored = False
    for rule_set in reversed(list(layers)):
        decision = rule_set.decide(path, is_dir)
        if decision is not None:
            ignored = decision
            break
    return ignored or is_build_artifact(path.relative_to(root).parts)


def _check_root(root: Path) -> None:
    if not root.exists():
        raise AccessError(f"Root directory '{root}' does not exist")
    if not root.is_dir():
        raise AccessError(f"Root path '{root}' is not a directory")
    try:
        with os.scandir(root):
            pass
    except OSError as e:
        raise AccessError(f"Cannot access directory '{root}': {e}") from e


# File discovery
def scan_files(
    config: ScanConfig,
    on_warning: WarningHandler = report_walk_error,
) -> List[Path]:
    """
    Return absolute paths of every regular file under ``config.root_path``
    that survives the rule layers, in walk order.

    Entries that cannot be visited are handed to *on_warning* and skipped.
    Raises AccessError for an unusable root and InvalidPatternError for a bad
    exclude pattern; in both cases no files are returned.
    """
    root = config.root_path
    _check_root(root)
    excludes = compile_excludes(config.exclude_patterns, root)

    def _on_walk_error(err: OSError) -> None:
        on_warning(WalkEntryError(err.filename or root, err.strerror or err))

    chains = {root: load_inherited_rules(root, on_warning)}
    files: List[Path] = []

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_walk_error):
        directory = Path(dirpath)
        chain = chains.pop(directory, []) + load_directory_rules(directory, on_warning)
        layers = (chain + [excludes]) if excludes is not None else chain

        kept = []
        for name in sorted(dirnames):
            path = directory / name
            if path.is_symlink() or is_excluded(path, root, layers, is_dir=True):
                continue
            kept.append(name)
            chains[path] = chain
        dirnames[:] = kept

        for name in sorted(filenames):
            path = directory / name
            if is_excluded(path, root, layers):
                continue
            if not path.is_file():
                reason = "broken symbolic link" if path.is_symlink() else "not a regular file"
                on_warning(WalkEntryError(path, reason))
                continue
            files.append(path)

    return files
