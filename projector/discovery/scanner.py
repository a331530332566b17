"""Recursive discovery of project roots below a base directory."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set, Tuple

from ..config import ProjectsConfig
from ..logging import get_logger
from ..models import DirectoryNode, ProjectRoot, RootSignals, ScanOptions
from .ignore_matcher import IgnoreContext, IgnoreMatcher, has_magic
from .root_scorer import RootSignalScorer, read_directory

logger = get_logger("discovery.scanner")


@dataclass
class _ScanState:
    """Collections private to one scan; only mutated from the event loop thread."""

    base_path: str
    max_depth: int
    ignore_patterns: Tuple[str, ...]
    visited: Set[str] = field(default_factory=set)
    roots: Set[str] = field(default_factory=set)
    projects: List[ProjectRoot] = field(default_factory=list)

    def mark_visited(self, real_path: str) -> bool:
        if real_path in self.visited:
            return False
        self.visited.add(real_path)
        return True

    def inside_root(self, *paths: str) -> bool:
        for candidate in paths:
            current = candidate
            while True:
                parent = os.path.dirname(current)
                if parent == current:
                    break
                if parent in self.roots:
                    return True
                current = parent
        return False

    def emit(self, project: ProjectRoot, real_path: str) -> None:
        self.roots.add(project.path)
        self.roots.add(real_path)
        self.projects.append(project)


class ProjectScanner:
    """Walks a directory tree and emits non-overlapping project roots."""

    CONCURRENCY_LIMIT = 5

    STRONG_INDICATORS = frozenset(
        {
            "package.json",
            "Cargo.toml",
            "go.mod",
            "requirements.txt",
            "setup.py",
            "pyproject.toml",
            "composer.json",
            "pom.xml",
            "build.gradle",
            "Makefile",
            "CMakeLists.txt",
            ".git",
        }
    )

    def __init__(
        self,
        config: ProjectsConfig | None = None,
        *,
        ignore_matcher: IgnoreMatcher | None = None,
        scorer: RootSignalScorer | None = None,
    ) -> None:
        self.config = config or ProjectsConfig()
        self.ignore_matcher = ignore_matcher or IgnoreMatcher(self.config.ignore)
        self.scorer = scorer or RootSignalScorer(self.config)

    def scan(self, base_path: str | Path, options: ScanOptions | None = None) -> List[ProjectRoot]:
        """Return project roots under ``base_path`` in traversal order."""
        return asyncio.run(self.scan_async(base_path, options))

    async def scan_async(
        self, base_path: str | Path, options: ScanOptions | None = None
    ) -> List[ProjectRoot]:
        base = os.path.abspath(os.path.expanduser(str(base_path)))
        if not os.path.exists(base):
            raise FileNotFoundError(f"Scan path not found: {base_path}")
        if not os.path.isdir(base):
            raise NotADirectoryError(f"Scan path is not a directory: {base_path}")

        if options is None:
            options = ScanOptions(
                max_depth=self.config.max_depth,
                ignore_patterns=list(self.config.ignore_patterns),
            )

        self.ignore_matcher.reset()
        state = _ScanState(
            base_path=base,
            max_depth=options.max_depth,
            ignore_patterns=tuple(options.ignore_patterns),
        )
        logger.debug("Scanning %s (max depth %d)", base, options.max_depth)
        await self._visit(base, 0, state, None, allow_inside_roots=False)
        logger.info("Discovered %d project roots under %s", len(state.projects), base)
        return state.projects

    # ------------------------------------------------------------------
    # Traversal

    async def _visit(
        self,
        path: str,
        depth: int,
        state: _ScanState,
        parent_context: Optional[IgnoreContext],
        *,
        allow_inside_roots: bool,
    ) -> None:
        if depth >= state.max_depth:
            return

        matcher = self.ignore_matcher
        if matcher.is_legacy_ignored(path, state.base_path, state.ignore_patterns):
            logger.debug("Skipping ignored directory %s", path)
            return
        context = await asyncio.to_thread(matcher.build_context, path, parent_context)
        if matcher.should_ignore_directory(path, os.path.basename(path), context):
            logger.debug("Skipping directory matched by ignore rules: %s", path)
            return

        real_path = await asyncio.to_thread(os.path.realpath, path)
        if not state.mark_visited(real_path):
            logger.debug("Skipping already visited %s -> %s", path, real_path)
            return
        if not allow_inside_roots and state.inside_root(path, real_path):
            return
        if any(entry and entry in real_path for entry in self.config.denylist_paths):
            logger.debug("Skipping denylisted path %s", real_path)
            return

        try:
            node = await asyncio.to_thread(read_directory, path, depth)
        except OSError as exc:
            logger.debug("Cannot read directory %s: %s", path, exc)
            return

        signals = await asyncio.to_thread(self.scorer.signals_from_node, node)
        score = self.scorer.score_signals(signals)

        if score >= self.scorer.threshold:
            logger.debug("Root %s (score %d)", path, score)
            await self._emit(node, real_path, state)
            await self._expand_workspaces(node, signals, context, state)
            return

        if self._looks_like_project(node):
            logger.debug("Root %s (project indicators, score %d)", path, score)
            await self._emit(node, real_path, state)
            return

        await self._descend(node, context, state)

    async def _descend(
        self, node: DirectoryNode, context: IgnoreContext, state: _ScanState
    ) -> None:
        children = [os.path.join(node.path, name) for name in sorted(node.dirs)]
        limit = self.CONCURRENCY_LIMIT
        for start in range(0, len(children), limit):
            batch = children[start : start + limit]
            results = await asyncio.gather(
                *(
                    self._visit(child, node.depth + 1, state, context, allow_inside_roots=False)
                    for child in batch
                ),
                return_exceptions=True,
            )
            for child, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.debug("Traversal of %s failed: %s", child, result)

    async def _emit(self, node: DirectoryNode, real_path: str, state: _ScanState) -> None:
        try:
            stat_result = await asyncio.to_thread(os.stat, node.path)
        except OSError as exc:
            logger.debug("Root %s vanished before it could be recorded: %s", node.path, exc)
            return
        project = ProjectRoot(
            name=os.path.basename(node.path) or node.path,
            path=node.path,
            files=[name for name, _ in node.entries],
            last_modified=stat_result.st_mtime_ns // 1_000_000,
        )
        state.emit(project, real_path)

    def _looks_like_project(self, node: DirectoryNode) -> bool:
        names = {name for name, _ in node.entries}
        if names & self.STRONG_INDICATORS:
            return True
        return self.scorer.count_code_files(node.files) > 0

    # ------------------------------------------------------------------
    # Monorepo workspaces

    async def _expand_workspaces(
        self,
        node: DirectoryNode,
        signals: RootSignals,
        context: IgnoreContext,
        state: _ScanState,
    ) -> None:
        if self.config.include_nested_packages == "never":
            return

        globs = await asyncio.to_thread(self.scorer.workspace_globs, node.path, signals)
        if not globs:
            return
        targets = await asyncio.to_thread(self._resolve_workspace_targets, node.path, globs)
        logger.debug("Expanding %d workspace packages of %s", len(targets), node.path)

        for target in targets:
            relative_parts = Path(os.path.relpath(target, node.path)).parts
            target_context = context
            current = node.path
            for part in relative_parts[:-1]:
                current = os.path.join(current, part)
                target_context = await asyncio.to_thread(
                    self.ignore_matcher.build_context, current, target_context
                )
            try:
                await self._visit(
                    target,
                    node.depth + len(relative_parts),
                    state,
                    target_context,
                    allow_inside_roots=True,
                )
            except Exception as exc:  # isolate one package from its siblings
                logger.debug("Traversal of workspace package %s failed: %s", target, exc)

    @staticmethod
    def _resolve_workspace_targets(root: str, globs: List[str]) -> List[str]:
        targets: List[str] = []
        root_prefix = root.rstrip(os.sep) + os.sep
        for raw in globs:
            pattern = raw.strip()
            if not pattern or pattern.startswith("!"):
                continue
            pattern = pattern[2:] if pattern.startswith("./") else pattern
            pattern = pattern.rstrip("/")
            if not pattern:
                continue

            candidates: List[str] = []
            if pattern.endswith("/*") and not has_magic(pattern[:-2]):
                base = os.path.join(root, pattern[:-2])
                try:
                    node = read_directory(base)
                except OSError as exc:
                    logger.debug("Workspace glob %s has no directory: %s", raw, exc)
                    continue
                candidates = [os.path.join(base, name) for name in sorted(node.dirs)]
            elif has_magic(pattern):
                try:
                    candidates = sorted(
                        str(match) for match in Path(root).glob(pattern) if match.is_dir()
                    )
                except (OSError, ValueError) as exc:
                    logger.warning("Invalid workspace glob %r in %s: %s", raw, root, exc)
                    continue
            else:
                candidate = os.path.normpath(os.path.join(root, pattern))
                if os.path.isdir(candidate):
                    candidates = [candidate]

            for candidate in candidates:
                candidate = os.path.normpath(candidate)
                if not candidate.startswith(root_prefix):
                    logger.debug("Skipping workspace package outside %s: %s", root, candidate)
                    continue
                if candidate not in targets:
                    targets.append(candidate)
        return targets


__all__ = ["ProjectScanner"]
