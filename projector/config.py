"""Configuration loading for projector (config.yaml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

NESTED_PACKAGE_POLICIES = ("never", "when-monorepo", "always")

DEFAULT_IGNORE_PATTERNS = [
    "node_modules",
    ".git",
    ".svn",
    ".hg",
    "dist",
    "build",
    "target",
    "__pycache__",
    ".pytest_cache",
    ".venv",
    "venv",
    ".env",
    "tmp",
    "temp",
    "logs",
    ".DS_Store",
    ".vscode",
    ".idea",
    "coverage",
    ".nyc_output",
    ".cache",
]

DEFAULT_CODE_FILE_EXTENSIONS = [
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
    ".py", ".pyx", ".pyi",
    ".php", ".phtml",
    ".go",
    ".rs",
    ".java", ".kt", ".kts",
    ".c", ".cpp", ".cc", ".cxx", ".h", ".hpp",
    ".cs",
    ".rb",
    ".swift",
    ".dart",
    ".vue",
    ".svelte",
    ".html", ".htm",
    ".css", ".scss", ".sass", ".less",
    ".sh", ".bash", ".zsh", ".fish",
    ".ps1", ".psm1",
    ".bat", ".cmd",
]

DEFAULT_ROOT_MARKERS = [
    "package.json",
    "pyproject.toml",
    "setup.py",
    "requirements.txt",
    "Pipfile",
    "Cargo.toml",
    "go.mod",
    "composer.json",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    "Gemfile",
    "CMakeLists.txt",
]

DEFAULT_MONOREPO_MARKERS = [
    "pnpm-workspace.yaml",
    "lerna.json",
    "nx.json",
    "turbo.json",
    "rush.json",
    "go.work",
]

DEFAULT_LOCKFILES = [
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "poetry.lock",
    "Pipfile.lock",
    "Cargo.lock",
    "composer.lock",
]

DEFAULT_ROOT_THRESHOLD = 60


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class IgnoreConfig:
    """Global ignore rules and per-directory ignore-file settings."""

    patterns: List[str] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    use_ignore_files: bool = True
    ignore_file_name: str = ".projectorignore"


@dataclass
class CacheConfig:
    """Location and lifetime of the per-project analysis cache."""

    directory: Optional[Path] = None
    ttl_hours: float = 24.0


@dataclass
class ProjectsConfig:
    """Represents the settings defined in config.yaml."""

    scan_directory: Optional[Path] = None
    max_depth: int = 10
    ignore_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    code_file_extensions: List[str] = field(
        default_factory=lambda: list(DEFAULT_CODE_FILE_EXTENSIONS)
    )
    root_markers: List[str] = field(default_factory=lambda: list(DEFAULT_ROOT_MARKERS))
    monorepo_markers: List[str] = field(default_factory=lambda: list(DEFAULT_MONOREPO_MARKERS))
    lockfiles: List[str] = field(default_factory=lambda: list(DEFAULT_LOCKFILES))
    lockfiles_as_strong: bool = True
    min_code_files_to_consider: int = 5
    stop_at_vcs_root: bool = True
    include_nested_packages: str = "when-monorepo"
    denylist_paths: List[str] = field(default_factory=list)
    root_threshold: int = DEFAULT_ROOT_THRESHOLD
    ignore: IgnoreConfig = field(default_factory=IgnoreConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)


def config_home() -> Path:
    """Return the XDG config directory used for projector state."""
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".config"
    return root / "projector"


def default_config_path() -> Path:
    return config_home() / "config.yaml"


def load_config(config_path: Path | None = None) -> ProjectsConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    if not config_file.exists():
        return ProjectsConfig()

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    defaults = ProjectsConfig()

    scan_directory = _as_str(data.get("scan_directory"))
    policy = _as_str(data.get("include_nested_packages")) or defaults.include_nested_packages
    if policy not in NESTED_PACKAGE_POLICIES:
        policy = defaults.include_nested_packages

    ignore_data = _as_dict(data.get("ignore"))
    ignore = IgnoreConfig()
    if ignore_data:
        ignore.patterns = _as_str_list(ignore_data.get("patterns"))
        ignore.directories = _as_str_list(ignore_data.get("directories"))
        use_files = _as_bool(ignore_data.get("use_ignore_files"))
        if use_files is not None:
            ignore.use_ignore_files = use_files
        ignore.ignore_file_name = (
            _as_str(ignore_data.get("ignore_file_name")) or ignore.ignore_file_name
        )

    cache_data = _as_dict(data.get("cache"))
    cache = CacheConfig()
    if cache_data:
        directory = _as_str(cache_data.get("directory"))
        cache.directory = Path(directory).expanduser() if directory else None
        ttl = _as_float(cache_data.get("ttl_hours"))
        if ttl is not None and ttl > 0:
            cache.ttl_hours = ttl

    max_depth = _as_int(data.get("max_depth"))
    min_code = _as_int(data.get("min_code_files_to_consider"))
    threshold = _as_int(data.get("root_threshold"))

    return ProjectsConfig(
        scan_directory=Path(scan_directory).expanduser() if scan_directory else None,
        max_depth=max_depth if max_depth and max_depth > 0 else defaults.max_depth,
        ignore_patterns=_list_or_default(data, "ignore_patterns", defaults.ignore_patterns),
        code_file_extensions=[
            ext.lower()
            for ext in _list_or_default(
                data, "code_file_extensions", defaults.code_file_extensions
            )
        ],
        root_markers=_list_or_default(data, "root_markers", defaults.root_markers),
        monorepo_markers=_list_or_default(data, "monorepo_markers", defaults.monorepo_markers),
        lockfiles=_list_or_default(data, "lockfiles", defaults.lockfiles),
        lockfiles_as_strong=_bool_or_default(data, "lockfiles_as_strong", True),
        min_code_files_to_consider=(
            min_code if min_code is not None and min_code >= 0
            else defaults.min_code_files_to_consider
        ),
        stop_at_vcs_root=_bool_or_default(data, "stop_at_vcs_root", True),
        include_nested_packages=policy,
        denylist_paths=_as_str_list(data.get("denylist_paths")),
        root_threshold=threshold if threshold is not None else defaults.root_threshold,
        ignore=ignore,
        cache=cache,
    )


def _resolve_config_path(config_path: Path | None) -> Path:
    if config_path is None:
        return default_config_path()
    config_path = Path(config_path).expanduser()
    if config_path.is_dir():
        return (config_path / "config.yaml").resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _list_or_default(data: Dict[str, Any], key: str, default: Sequence[str]) -> List[str]:
    if key not in data or data.get(key) is None:
        return list(default)
    return _as_str_list(data.get(key))


def _bool_or_default(data: Dict[str, Any], key: str, default: bool) -> bool:
    value = _as_bool(data.get(key))
    return default if value is None else value


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []
