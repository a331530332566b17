"""Root-detection heuristics: signal collection, weighted scoring, workspace globs."""

from __future__ import annotations

import json
import os
import re
import tomllib
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple

import yaml

from ..config import ProjectsConfig
from ..logging import get_logger
from ..models import DirectoryNode, RootSignals

_DOCS_SUFFIXES = (".md", ".mdx")

_PARSE_ERRORS = (OSError, ValueError, yaml.YAMLError, ET.ParseError)

_GO_COMMENT = re.compile(r"\s*//.*$", re.MULTILINE)
_GO_USE_BLOCK = re.compile(r"\buse\s*\(([^)]*)\)", re.MULTILINE)
_GO_USE_SINGLE = re.compile(r"\buse\s+([^\s(]+)")
_GO_REMOTE = re.compile(r"^\w+@")
_GRADLE_INCLUDE = re.compile(r"include\s*\(([^)]*)\)|include\s+([^\n]+)")
_MAVEN_NAMESPACE = re.compile(r"\{(.+)}")

logger = get_logger("discovery.scorer")


def read_directory(path: str, depth: int = 0) -> DirectoryNode:
    """List ``path`` once; raises ``OSError`` when the directory cannot be read."""
    entries: List[Tuple[str, bool]] = []
    with os.scandir(path) as iterator:
        for entry in iterator:
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            entries.append((entry.name, is_dir))
    return DirectoryNode(path=path, depth=depth, entries=tuple(entries))


class RootSignalScorer:
    """Scores how likely a directory is to be the top of a project."""

    WEIGHTS: Dict[str, int] = {
        "manifest": 100,
        "lockfile": 60,
        "monorepo": 100,
        "vcs_with_manifest": 50,
        "vcs": 30,
        "docs_first": 60,
        "structure": 40,
        "code_files": 30,
        "noise_only": -50,
    }

    STRUCTURE_DIRS = frozenset({"src", "app", "lib", "tests", "test"})
    NOISE_DIRS = frozenset(
        {
            "node_modules",
            "vendor",
            "Pods",
            ".gradle",
            ".terraform",
            ".m2",
            "dist",
            "build",
            "coverage",
            ".nyc_output",
            ".cache",
            ".next",
            ".parcel-cache",
            "out",
            "bin",
            "examples",
            "fixtures",
            "samples",
        }
    )

    def __init__(self, config: ProjectsConfig | None = None) -> None:
        self.config = config or ProjectsConfig()
        self._extensions = {ext.lower() for ext in self.config.code_file_extensions}

    @property
    def threshold(self) -> int:
        return self.config.root_threshold

    # ------------------------------------------------------------------
    # Signals

    def collect_signals(self, directory: str) -> RootSignals:
        """Return signals for ``directory``; unreadable directories yield empty signals."""
        try:
            node = read_directory(directory)
        except OSError as exc:
            logger.debug("Cannot list %s for scoring: %s", directory, exc)
            return RootSignals()
        return self.signals_from_node(node)

    def signals_from_node(self, node: DirectoryNode) -> RootSignals:
        files = node.files
        dirs = node.dirs
        file_set = set(files)

        has_docs_first = False
        if "docs" in dirs:
            try:
                has_docs_first = any(
                    name.lower().endswith(_DOCS_SUFFIXES)
                    for name in os.listdir(os.path.join(node.path, "docs"))
                )
            except OSError:
                has_docs_first = False

        return RootSignals(
            files=files,
            dirs=dirs,
            manifests=[name for name in self.config.root_markers if name in file_set],
            lockfiles=[name for name in self.config.lockfiles if name in file_set],
            monorepo_markers=[
                name for name in self.config.monorepo_markers if name in file_set
            ],
            has_git=".git" in file_set or ".git" in dirs,
            has_docs_first=has_docs_first,
            code_file_count=self.count_code_files(files),
        )

    def count_code_files(self, files: Sequence[str]) -> int:
        return sum(1 for name in files if os.path.splitext(name)[1].lower() in self._extensions)

    # ------------------------------------------------------------------
    # Scoring

    def score_signals(self, signals: RootSignals) -> int:
        weights = self.WEIGHTS
        score = 0
        if signals.has_manifest:
            score += weights["manifest"]
        if signals.lockfiles and self.config.lockfiles_as_strong:
            score += weights["lockfile"]
        if signals.monorepo_markers:
            score += weights["monorepo"]
        if signals.has_git and signals.has_manifest:
            score += weights["vcs_with_manifest"]
        if signals.has_git and self.config.stop_at_vcs_root:
            score += weights["vcs"]

        if signals.has_docs_first:
            score += weights["docs_first"]
        if any(name in self.STRUCTURE_DIRS for name in signals.dirs):
            score += weights["structure"]
        if signals.code_file_count >= self.config.min_code_files_to_consider:
            score += weights["code_files"]

        if signals.dirs and all(name in self.NOISE_DIRS for name in signals.dirs):
            score += weights["noise_only"]
        return score

    def is_root(self, signals: RootSignals) -> bool:
        return self.score_signals(signals) >= self.threshold

    # ------------------------------------------------------------------
    # Monorepo workspaces

    def workspace_globs(self, directory: str, signals: RootSignals) -> List[str]:
        """Return the union of package globs declared by known workspace files."""
        root = Path(directory)
        present = set(signals.files)
        globs: List[str] = []
        for filename, parser in self._workspace_parsers():
            if filename not in present:
                continue
            try:
                found = parser(root / filename)
            except _PARSE_ERRORS as exc:
                logger.debug("Ignoring unreadable workspace file %s: %s", root / filename, exc)
                continue
            for item in found:
                if item and item not in globs:
                    globs.append(item)
        return globs

    def _workspace_parsers(self) -> List[Tuple[str, Callable[[Path], List[str]]]]:
        return [
            ("pnpm-workspace.yaml", self._pnpm_globs),
            ("lerna.json", self._lerna_globs),
            ("package.json", self._package_json_globs),
            ("go.work", self._go_work_globs),
            ("Cargo.toml", self._cargo_globs),
            ("pom.xml", self._maven_globs),
            ("settings.gradle", self._gradle_globs),
            ("settings.gradle.kts", self._gradle_globs),
        ]

    @staticmethod
    def _pnpm_globs(path: Path) -> List[str]:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            return _str_items(data.get("packages"))
        return []

    @staticmethod
    def _lerna_globs(path: Path) -> List[str]:
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            return _str_items(data.get("packages"))
        return []

    @staticmethod
    def _package_json_globs(path: Path) -> List[str]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except _PARSE_ERRORS:
            return []
        if not isinstance(data, dict):
            return []
        workspaces = data.get("workspaces")
        if isinstance(workspaces, dict):
            return _str_items(workspaces.get("packages"))
        return _str_items(workspaces)

    @staticmethod
    def _go_work_globs(path: Path) -> List[str]:
        content = _GO_COMMENT.sub("", path.read_text(encoding="utf-8"))
        entries: List[str] = []
        for block in _GO_USE_BLOCK.findall(content):
            entries.extend(line.strip() for line in block.splitlines())
        entries.extend(_GO_USE_SINGLE.findall(content))
        return [
            _strip_dot_prefix(entry)
            for entry in entries
            if entry and not _GO_REMOTE.match(entry)
        ]

    @staticmethod
    def _cargo_globs(path: Path) -> List[str]:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
        workspace = data.get("workspace")
        if isinstance(workspace, dict):
            return _str_items(workspace.get("members"))
        return []

    @staticmethod
    def _maven_globs(path: Path) -> List[str]:
        root = ET.fromstring(path.read_text(encoding="utf-8"))
        match = _MAVEN_NAMESPACE.match(root.tag)
        prefix = f"{{{match.group(1)}}}" if match else ""
        modules: List[str] = []
        for block in root.findall(f"{prefix}modules"):
            for module in block.findall(f"{prefix}module"):
                value = (module.text or "").strip()
                if value:
                    modules.append(value)
        return modules

    @staticmethod
    def _gradle_globs(path: Path) -> List[str]:
        content = path.read_text(encoding="utf-8")
        projects: List[str] = []
        for call_args, bare_args in _GRADLE_INCLUDE.findall(content):
            for part in (call_args or bare_args).split(","):
                cleaned = re.sub(r"['\"()\s]", "", part)
                cleaned = cleaned.lstrip(":").replace(":", "/")
                if cleaned:
                    projects.append(cleaned)
        return projects


def _str_items(value: object) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _strip_dot_prefix(value: str) -> str:
    return value[2:] if value.startswith("./") else value


__all__ = ["RootSignalScorer", "read_directory"]
