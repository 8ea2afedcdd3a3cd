"""Content collection: resolve source and example patterns into documents."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Sequence, Set

from .config import PatternSpec, SiteConfig
from .logging import get_logger
from .models import DocumentKind, SourceDocument

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".circleci",
}

logger = get_logger("collector")


class CollectionError(RuntimeError):
    """Raised when the content root cannot be walked."""


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from the root .gitignore."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            return fnmatchcase(rel_path, self.pattern)

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.is_file():
        return []

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CollectionError(f"Cannot read ignore file {path}: {exc}") from exc

    rules: List[IgnoreRule] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _raise_walk_error(error: OSError) -> None:
    raise CollectionError(f"Cannot read directory {error.filename}: {error.strerror}") from error


def _iter_files(root: Path, rules: Sequence[IgnoreRule], excluded: Set[str]) -> Iterator[str]:
    """Yield root-relative POSIX paths in a stable, sorted walk order."""
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept = []
        for name in sorted(dirnames):
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if name in _EXCLUDED_DIRS or rel_path in excluded:
                continue
            if _should_ignore(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in sorted(filenames):
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            yield rel_path


class DocumentSequence:
    """Lazy, restartable view over the documents a configuration selects.

    Every iteration walks the tree afresh; identical inputs always produce the
    same ordered output.
    """

    def __init__(self, root: Path, sources: PatternSpec, examples: PatternSpec, output_dir: str | None = None) -> None:
        self.root = root
        self.sources = sources
        self.examples = examples
        self._excluded = {Path(output_dir).as_posix()} if output_dir else set()

    def __iter__(self) -> Iterator[SourceDocument]:
        _ensure_root(self.root)
        rules = _parse_gitignore(self.root / ".gitignore")
        files = list(_iter_files(self.root, rules, self._excluded))
        logger.debug("Walked %d candidate files under %s", len(files), self.root)

        seen: Set[Path] = set()
        for spec in (self.sources, self.examples):
            for pattern_index, pattern in enumerate(spec.patterns):
                matched = 0
                for rel_path in files:
                    if spec.match_index(rel_path) != pattern_index:
                        continue
                    resolved = (self.root / rel_path).resolve()
                    if resolved in seen:
                        continue
                    seen.add(resolved)
                    matched += 1
                    yield SourceDocument(
                        path=resolved,
                        display_path=self._display_path(rel_path, spec),
                        kind=self._classify(rel_path),
                    )
                if not matched:
                    logger.debug("Pattern %r matched no new files", pattern)

    def paths(self) -> List[Path]:
        return [document.path for document in self]

    def display_paths(self) -> List[str]:
        return [document.display_path for document in self]

    def _classify(self, rel_path: str) -> DocumentKind:
        if self.examples.matches(rel_path):
            return DocumentKind.EXAMPLE
        return DocumentKind.DOCUMENTATION

    def _display_path(self, rel_path: str, spec: PatternSpec) -> str:
        prefix = spec.strip_prefix.strip()
        if not prefix or Path(prefix) == Path("."):
            return rel_path
        absolute = self.root / rel_path
        try:
            return absolute.relative_to(self.root / prefix).as_posix()
        except ValueError:
            return rel_path


def _ensure_root(root: Path) -> None:
    if not root.exists():
        raise CollectionError(f"Content root not found: {root}")
    if not root.is_dir():
        raise CollectionError(f"Content root is not a directory: {root}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise CollectionError(f"Content root is not readable: {root}")


class ContentCollector:
    """Turns a site configuration into the ordered document list for generation."""

    def collect(self, config: SiteConfig, root: Path | None = None) -> DocumentSequence:
        """Return the documents selected by ``config`` under ``root``.

        The root is checked up front so an inaccessible tree fails before any
        stage starts; the walk itself is deferred until iteration.
        """
        root_path = Path(root if root is not None else config.root).expanduser().resolve()
        _ensure_root(root_path)
        return DocumentSequence(
            root_path,
            config.sources,
            config.examples,
            output_dir=config.publish.output_dir,
        )


__all__ = ["CollectionError", "ContentCollector", "DocumentSequence", "IgnoreRule"]
