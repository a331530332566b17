"""Pipeline orchestration for the list flow: scan, detect, cache."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .config import ProjectsConfig, load_config
from .discovery import IgnoreMatcher, ProjectScanner, TypeDetector
from .logging import get_logger
from .models import ProjectAnalysis, ProjectRoot, ProjectStatus, ScanOptions
from .stores import CacheManager


@dataclass
class DiscoveredProject:
    """A discovered root paired with its (possibly cached) analysis."""

    root: ProjectRoot
    analysis: ProjectAnalysis
    from_cache: bool = False


class Orchestrator:
    """Coordinates discovery, type detection and the analysis cache."""

    def __init__(
        self,
        config: ProjectsConfig | None = None,
        scanner: ProjectScanner | None = None,
        cache: CacheManager | None = None,
        detector: TypeDetector | None = None,
    ) -> None:
        self.config = config if config is not None else load_config()
        self.ignore_matcher = IgnoreMatcher(self.config.ignore)
        self.scanner = scanner or ProjectScanner(self.config, ignore_matcher=self.ignore_matcher)
        self.cache = cache or CacheManager.from_config(self.config)
        self.detector = detector or TypeDetector()
        self.logger = get_logger("orchestrator")

    def run_list(
        self,
        path: str | Path | None = None,
        *,
        max_depth: Optional[int] = None,
        use_cache: bool = True,
    ) -> List[DiscoveredProject]:
        """Discover projects under ``path`` and attach their analysis."""
        base = Path(path) if path is not None else (self.config.scan_directory or Path.cwd())
        options = ScanOptions(
            max_depth=max_depth if max_depth is not None else self.config.max_depth,
            ignore_patterns=list(self.config.ignore_patterns),
        )
        roots = self.scanner.scan(base, options)

        discovered: List[DiscoveredProject] = []
        for root in roots:
            if self.ignore_matcher.should_ignore_project(root):
                self.logger.debug("Ignoring project %s", root.path)
                continue
            project = self.detector.enrich(root)
            discovered.append(self._analyse(project, use_cache=use_cache))

        if use_cache:
            stats = self.cache.stats()
            self.logger.info(
                "Cache: %d hits, %d misses, %d invalidated",
                stats.hits,
                stats.misses,
                stats.invalidated,
            )
        return discovered

    def _analyse(self, project: ProjectRoot, *, use_cache: bool) -> DiscoveredProject:
        if use_cache:
            record = self.cache.get(project.path)
            if record is not None:
                return DiscoveredProject(root=project, analysis=record.analysis, from_cache=True)

        analysis = ProjectAnalysis(
            status=ProjectStatus(),
            languages=list(project.languages),
            has_git=project.has_git,
        )
        if use_cache:
            result = self.cache.put(project.path, analysis)
            if not result.ok:
                self.logger.debug("Analysis for %s was not cached: %s", project.path, result.error)
        return DiscoveredProject(root=project, analysis=analysis)


__all__ = ["DiscoveredProject", "Orchestrator"]
