"""Configuration loading for sitepipe (poxy.toml)."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

from .logging import get_logger

CONFIG_FILENAME = "poxy.toml"

_YAML_SUFFIXES = {".yml", ".yaml"}

_TOP_LEVEL_KEYS = {
    "name",
    "description",
    "license",
    "author",
    "cpp",
    "generate_tagfile",
    "show_includes",
    "theme",
    "github",
    "navbar",
    "warnings",
    "sources",
    "examples",
    "code_blocks",
    "publish",
}

_CPP_STANDARDS = (98, 3, 11, 14, 17, 20, 23, 26, 29)
_CPP_YEARS = {1998, 2003, 2011, 2014, 2017, 2020, 2023, 2026, 2029}
_GITHUB_PATTERN = re.compile(r"[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+")

logger = get_logger("config")


class ConfigError(RuntimeError):
    """Base class for configuration failures."""


class ConfigParseError(ConfigError):
    """Raised when the configuration file cannot be read or parsed."""


class ConfigValidationError(ConfigError):
    """Raised when the parsed configuration is semantically invalid."""

    def __init__(self, message: str, issues: Sequence[str]) -> None:
        super().__init__(message)
        self.issues = list(issues)


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


class NavbarMode(str, Enum):
    DEFAULT = "default"
    ALL = "all"
    NONE = "none"


class CodeBlockCategory(str, Enum):
    TYPES = "types"
    MACROS = "macros"
    ENUMS = "enums"


@dataclass(frozen=True)
class WarningsPolicy:
    treat_as_errors: bool = False


@dataclass(frozen=True)
class PatternSpec:
    """Glob patterns selecting input files, plus the prefix stripped for display."""

    patterns: Tuple[str, ...] = ()
    strip_prefix: str = ""
    compiled: Tuple[re.Pattern[str], ...] = field(default=(), repr=False)

    @classmethod
    def of(cls, patterns: Sequence[str], strip_prefix: str = "") -> "PatternSpec":
        return cls(
            patterns=tuple(patterns),
            strip_prefix=strip_prefix,
            compiled=tuple(compile_glob(pattern) for pattern in patterns),
        )

    def matches(self, rel_path: str) -> bool:
        """Return True when any pattern matches the root-relative POSIX path."""
        return self.match_index(rel_path) is not None

    def match_index(self, rel_path: str) -> Optional[int]:
        basename = rel_path.rsplit("/", 1)[-1]
        for index, (pattern, regex) in enumerate(zip(self.patterns, self.compiled)):
            target = rel_path if "/" in pattern else basename
            if regex.match(target):
                return index
        return None


@dataclass(frozen=True)
class CodeBlockTable:
    """Symbol-name classification used by the generator's syntax highlighting."""

    types: Tuple[re.Pattern[str], ...] = ()
    macros: Tuple[re.Pattern[str], ...] = ()
    enums: Tuple[re.Pattern[str], ...] = ()

    def patterns_for(self, category: CodeBlockCategory) -> Tuple[re.Pattern[str], ...]:
        return {
            CodeBlockCategory.TYPES: self.types,
            CodeBlockCategory.MACROS: self.macros,
            CodeBlockCategory.ENUMS: self.enums,
        }[category]

    def classify(self, name: str) -> Optional[CodeBlockCategory]:
        """Return the first category with a pattern fully matching ``name``."""
        for category in CodeBlockCategory:
            if any(pattern.fullmatch(name) for pattern in self.patterns_for(category)):
                return category
        return None


@dataclass(frozen=True)
class PublishConfig:
    """Deploy target and trigger settings (the CI half of the site config)."""

    trigger_branch: str = "main"
    output_dir: str = "html"
    target_branch: str = "gh-pages"
    message: str = "[skip ci] Updates"
    dotfiles: bool = True
    nojekyll: bool = True
    user_name: str = "ci-build"
    user_email: str = "ci-build@localhost"


@dataclass(frozen=True)
class SiteConfig:
    """Immutable site settings loaded once per process."""

    root: Path
    name: str
    sources: PatternSpec
    description: str = ""
    license: str = ""
    author: str = ""
    cpp: int = 17
    generate_tagfile: bool = False
    show_includes: bool = True
    theme: Theme = Theme.AUTO
    github: Optional[str] = None
    navbar: NavbarMode = NavbarMode.DEFAULT
    warnings: WarningsPolicy = field(default_factory=WarningsPolicy)
    examples: PatternSpec = field(default_factory=PatternSpec)
    code_blocks: CodeBlockTable = field(default_factory=CodeBlockTable)
    publish: PublishConfig = field(default_factory=PublishConfig)

    @property
    def output_path(self) -> Path:
        return self.root / self.publish.output_dir


def load_config(config_path: Path) -> SiteConfig:
    """Load and validate configuration from disk.

    ``config_path`` may be the repository root or the configuration file
    itself. Either a complete :class:`SiteConfig` is returned or an error is
    raised; validation problems are reported together.
    """
    config_file = resolve_config_path(config_path)
    data = _read_config(config_file)
    return build_config(data, root=config_file.parent, source=config_file.name)


def resolve_config_path(config_path: Path) -> Path:
    config_path = Path(config_path).expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def build_config(data: Mapping[str, Any], *, root: Path, source: str = CONFIG_FILENAME) -> SiteConfig:
    """Validate a parsed mapping and turn it into a :class:`SiteConfig`."""
    issues: List[str] = []

    unknown = sorted(str(key) for key in data if key not in _TOP_LEVEL_KEYS)
    if unknown:
        logger.debug("Ignoring unrecognised keys in %s: %s", source, ", ".join(unknown))

    name = _require_str(data, "name", issues)
    description = _optional_str(data, "description", issues) or ""
    license_name = _optional_str(data, "license", issues) or ""
    author = _optional_str(data, "author", issues) or ""
    cpp = _parse_cpp(data.get("cpp"), issues)
    generate_tagfile = _optional_bool(data, "generate_tagfile", False, issues)
    show_includes = _optional_bool(data, "show_includes", True, issues)
    theme = _parse_enum(data, "theme", Theme, Theme.AUTO, issues)
    navbar = _parse_enum(data, "navbar", NavbarMode, NavbarMode.DEFAULT, issues)
    github = _optional_str(data, "github", issues)
    if github is not None and not _GITHUB_PATTERN.fullmatch(github):
        issues.append(f"github: expected 'owner/repo', got {github!r}")

    warnings_data = _table(data, "warnings", issues)
    warnings = WarningsPolicy(
        treat_as_errors=_optional_bool(warnings_data, "treat_as_errors", False, issues, "warnings.")
    )

    sources_data = _table(data, "sources", issues)
    sources = _parse_pattern_spec(sources_data, "sources", "", issues, required=True)

    examples_data = _table(data, "examples", issues)
    examples = _parse_pattern_spec(
        examples_data, "examples", sources.strip_prefix, issues, required=False
    )

    code_blocks = _parse_code_blocks(_table(data, "code_blocks", issues), issues)
    publish = _parse_publish(_table(data, "publish", issues), issues)

    if issues:
        summary = f"{source} is invalid: " + "; ".join(issues)
        raise ConfigValidationError(summary, issues)

    assert name is not None
    return SiteConfig(
        root=Path(root).resolve(),
        name=name,
        description=description,
        license=license_name,
        author=author,
        cpp=cpp,
        generate_tagfile=generate_tagfile,
        show_includes=show_includes,
        theme=theme,
        github=github,
        navbar=navbar,
        warnings=warnings,
        sources=sources,
        examples=examples,
        code_blocks=code_blocks,
        publish=publish,
    )


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a file glob into a case-sensitive, anchored regex.

    ``*``, ``?`` and bracket expressions never match ``/``, so ``docs/*.md``
    selects only files directly inside ``docs``. A ``**`` segment spans any
    number of directories.
    """
    segments = pattern.split("/")
    parts: List[str] = []
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            parts.append(".*" if last else "(?:[^/]+/)*")
            continue
        parts.append(_translate_segment(segment))
        if not last:
            parts.append("/")
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


def _translate_segment(segment: str) -> str:
    out: List[str] = []
    index, length = 0, len(segment)
    while index < length:
        char = segment[index]
        index += 1
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            end = index
            if end < length and segment[end] == "!":
                end += 1
            if end < length and segment[end] == "]":
                end += 1
            while end < length and segment[end] != "]":
                end += 1
            if end >= length:
                out.append(re.escape(char))
                continue
            body = segment[index:end].replace("\\", "\\\\")
            index = end + 1
            if body.startswith("!"):
                body = "^" + body[1:]
            elif body.startswith("^"):
                body = "\\" + body
            out.append(f"[{body}]")
        else:
            out.append(re.escape(char))
    return "".join(out)


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigParseError(f"Configuration file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigParseError(f"Failed to read {path.name}: {exc}") from exc

    if path.suffix.lower() in _YAML_SUFFIXES:
        try:
            loaded = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigParseError(f"Failed to parse {path.name}: {exc}") from exc
        loaded = {} if loaded is None else loaded
    else:
        try:
            loaded = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigParseError(f"Failed to parse {path.name}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigParseError(f"{path.name} must contain a mapping at the root")
    return loaded


def _table(data: Mapping[str, Any], key: str, issues: List[str]) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        issues.append(f"{key}: expected a table, got {type(value).__name__}")
        return {}
    return value


def _require_str(data: Mapping[str, Any], key: str, issues: List[str], prefix: str = "") -> Optional[str]:
    if key not in data:
        issues.append(f"{prefix}{key}: required field is missing")
        return None
    value = _optional_str(data, key, issues, prefix)
    if value is not None and not value.strip():
        issues.append(f"{prefix}{key}: must not be empty")
        return None
    return value


def _optional_str(data: Mapping[str, Any], key: str, issues: List[str], prefix: str = "") -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        issues.append(f"{prefix}{key}: expected a string, got {type(value).__name__}")
        return None
    return value


def _optional_bool(
    data: Mapping[str, Any], key: str, default: bool, issues: List[str], prefix: str = ""
) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        issues.append(f"{prefix}{key}: expected a boolean, got {value!r}")
        return default
    return value


def _parse_enum(data: Mapping[str, Any], key: str, enum_type: type, default: Any, issues: List[str]) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        try:
            return enum_type(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in enum_type)
    issues.append(f"{key}: unknown value {value!r} (expected one of: {allowed})")
    return default


def _parse_cpp(value: Any, issues: List[str]) -> int:
    if value is None:
        return 17
    if isinstance(value, bool) or not isinstance(value, int):
        issues.append(f"cpp: expected an integer, got {value!r}")
        return 17
    normalised = value % 100 if value in _CPP_YEARS else value
    if normalised not in _CPP_STANDARDS:
        issues.append(f"cpp: unsupported language standard {value}")
        return 17
    return normalised


def _parse_patterns(value: Any, where: str, issues: List[str]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        issues.append(f"{where}: expected a list of strings, got {type(value).__name__}")
        return ()
    patterns: List[str] = []
    for item in value:
        if not isinstance(item, str):
            issues.append(f"{where}: expected a string, got {item!r}")
            continue
        patterns.append(item)
    return tuple(patterns)


def _parse_pattern_spec(
    data: Mapping[str, Any],
    section: str,
    default_prefix: str,
    issues: List[str],
    *,
    required: bool,
) -> PatternSpec:
    patterns = _parse_patterns(data.get("patterns"), f"{section}.patterns", issues)
    if required and not patterns:
        issues.append(f"{section}.patterns: at least one pattern is required")

    compiled: List[re.Pattern[str]] = []
    valid = True
    for pattern in patterns:
        problem = _glob_problem(pattern)
        if problem is not None:
            issues.append(f"{section}.patterns: {pattern!r} {problem}")
            valid = False
            continue
        try:
            compiled.append(compile_glob(pattern))
        except re.error as exc:
            issues.append(f"{section}.patterns: {pattern!r} does not compile ({exc})")
            valid = False

    strip_prefix = _optional_str(data, "strip_paths", issues, f"{section}.")
    if strip_prefix is None:
        strip_prefix = default_prefix
    elif _escapes_root(strip_prefix):
        issues.append(f"{section}.strip_paths: {strip_prefix!r} must be a path inside the repository")

    if not valid:
        compiled = []
    return PatternSpec(patterns=patterns, strip_prefix=strip_prefix, compiled=tuple(compiled))


def _glob_problem(pattern: str) -> Optional[str]:
    if not pattern.strip():
        return "is empty"
    if "\x00" in pattern:
        return "contains a NUL character"
    if pattern.startswith("/"):
        return "must be relative to the repository root"
    if ".." in PurePosixPath(pattern).parts:
        return "must not contain '..' segments"
    return None


def _escapes_root(path: str) -> bool:
    candidate = PurePosixPath(path)
    return candidate.is_absolute() or ".." in candidate.parts


def _parse_code_blocks(data: Mapping[str, Any], issues: List[str]) -> CodeBlockTable:
    compiled: Dict[CodeBlockCategory, Tuple[re.Pattern[str], ...]] = {}
    for category in CodeBlockCategory:
        where = f"code_blocks.{category.value}"
        regexes: List[re.Pattern[str]] = []
        for expression in _parse_patterns(data.get(category.value), where, issues):
            try:
                regexes.append(re.compile(expression))
            except re.error as exc:
                issues.append(f"{where}: {expression!r} does not compile ({exc})")
        compiled[category] = tuple(regexes)
    return CodeBlockTable(
        types=compiled[CodeBlockCategory.TYPES],
        macros=compiled[CodeBlockCategory.MACROS],
        enums=compiled[CodeBlockCategory.ENUMS],
    )


def _parse_publish(data: Mapping[str, Any], issues: List[str]) -> PublishConfig:
    defaults = PublishConfig()
    values: Dict[str, Any] = {}
    for key in ("trigger_branch", "output_dir", "target_branch", "message", "user_name", "user_email"):
        if key not in data:
            continue
        value = _require_str(data, key, issues, "publish.")
        if value is not None:
            values[key] = value
    for key in ("dotfiles", "nojekyll"):
        values[key] = _optional_bool(data, key, getattr(defaults, key), issues, "publish.")

    output_dir = values.get("output_dir")
    if output_dir is not None and (
        _escapes_root(output_dir) or PurePosixPath(output_dir) == PurePosixPath(".")
    ):
        issues.append(f"publish.output_dir: {output_dir!r} must be a sub-directory of the repository")
        values.pop("output_dir")
    return PublishConfig(**values)


__all__ = [
    "CONFIG_FILENAME",
    "CodeBlockCategory",
    "CodeBlockTable",
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    "NavbarMode",
    "PatternSpec",
    "PublishConfig",
    "SiteConfig",
    "Theme",
    "WarningsPolicy",
    "build_config",
    "compile_glob",
    "load_config",
    "resolve_config_path",
]
