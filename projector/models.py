"""Core data models shared across projector components."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ProjectType(str, Enum):
    """Project ecosystems recognised by the type detector."""

    NODEJS = "nodejs"
    PYTHON = "python"
    RUST = "rust"
    GO = "go"
    PHP = "php"
    JAVA = "java"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DirectoryNode:
    """Immediate listing of one directory visited by the scanner."""

    path: str
    depth: int
    entries: Tuple[Tuple[str, bool], ...] = ()

    @property
    def files(self) -> List[str]:
        return [name for name, is_dir in self.entries if not is_dir]

    @property
    def dirs(self) -> List[str]:
        return [name for name, is_dir in self.entries if is_dir]


@dataclass
class RootSignals:
    """Evidence collected from a directory listing for root scoring."""

    files: List[str] = field(default_factory=list)
    dirs: List[str] = field(default_factory=list)
    manifests: List[str] = field(default_factory=list)
    lockfiles: List[str] = field(default_factory=list)
    monorepo_markers: List[str] = field(default_factory=list)
    has_git: bool = False
    has_docs_first: bool = False
    code_file_count: int = 0

    @property
    def has_manifest(self) -> bool:
        return bool(self.manifests)


@dataclass
class ProjectRoot:
    """A directory classified as the top of one discoverable project."""

    name: str
    path: str
    files: List[str]
    last_modified: int
    type: ProjectType = ProjectType.UNKNOWN
    languages: List[str] = field(default_factory=list)
    has_git: bool = False

    def with_details(
        self, *, type: ProjectType, languages: List[str], has_git: bool
    ) -> "ProjectRoot":
        return replace(self, type=type, languages=list(languages), has_git=has_git)


@dataclass
class ScanOptions:
    """Per-invocation scanner options."""

    max_depth: int = 10
    ignore_patterns: List[str] = field(default_factory=list)


@dataclass
class ProjectStatus:
    """Development status inferred for a project."""

    type: str = "unknown"
    details: str = ""
    confidence: float = 0.0


@dataclass
class TrackingFileSummary:
    """Cached view of one tracking file: where it is and when it last changed."""

    path: str
    type: str
    last_modified: int


@dataclass
class ProjectAnalysis:
    """Result of analysing a project; the cacheable payload."""

    status: ProjectStatus = field(default_factory=ProjectStatus)
    description: str = ""
    tracking_files: List[TrackingFileSummary] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    has_git: bool = False
    git: Optional[Dict[str, Any]] = None


@dataclass
class CachedProjectRecord:
    """Persisted analysis for one project plus the freshness data to validate it."""

    project_path: str
    name: str
    directory_modified: int
    cached_at: int
    analysis: ProjectAnalysis


@dataclass
class CacheWrite:
    """Outcome of a best-effort cache write."""

    record: Optional[CachedProjectRecord] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.record is not None


@dataclass
class CacheStats:
    """Running lookup counters for one cache manager."""

    hits: int = 0
    misses: int = 0
    invalidated: int = 0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        if self.lookups == 0:
            return 0.0
        return self.hits / self.lookups
