"""Hierarchical ignore rules for directory traversal and project filtering."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..config import IgnoreConfig
from ..logging import get_logger
from ..models import ProjectRoot

_GLOB_CHARS = ("*", "?", "[")

RULE_BASENAME = "basename"
RULE_GLOB = "glob"
RULE_PROJECT_NAME = "project-name"


def has_magic(pattern: str) -> bool:
    """Return True when the pattern contains glob metacharacters."""
    return any(char in pattern for char in _GLOB_CHARS)


def _is_path_pattern(pattern: str) -> bool:
    return "/" in pattern or "**" in pattern


@dataclass(frozen=True)
class IgnoreRule:
    """One ignore instruction, from the global config or an ignore-file."""

    pattern: str
    kind: str
    negated: bool = False
    source: str = "config"
    base_dir: Optional[str] = None

    @property
    def matches_full_path(self) -> bool:
        return self.kind != RULE_BASENAME and _is_path_pattern(self.pattern)


@dataclass(frozen=True)
class IgnoreContext:
    """Rules declared for one directory, linked to the context of its parent."""

    directory: str
    rules: Tuple[IgnoreRule, ...] = ()
    parent: Optional["IgnoreContext"] = None

    def chain(self) -> List[IgnoreRule]:
        """Return every rule in the chain, outermost context first."""
        contexts: List[IgnoreContext] = []
        current: Optional[IgnoreContext] = self
        while current is not None:
            contexts.append(current)
            current = current.parent
        rules: List[IgnoreRule] = []
        for context in reversed(contexts):
            rules.extend(context.rules)
        return rules


def parse_ignore_file(content: str, file_path: str) -> List[IgnoreRule]:
    """Parse ignore-file text into rules scoped to the file's directory."""
    base_dir = os.path.dirname(file_path)
    rules: List[IgnoreRule] = []
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negated = line.startswith("!")
        if negated:
            line = line[1:].strip()
            if not line:
                continue
        kind = RULE_GLOB if _is_path_pattern(line) else RULE_BASENAME
        rules.append(
            IgnoreRule(
                pattern=line,
                kind=kind,
                negated=negated,
                source=file_path,
                base_dir=base_dir,
            )
        )
    return rules


def glob_match(pattern: str, target: str) -> bool:
    """Match ``target`` against ``pattern`` one path segment at a time.

    Segments are compared with ``fnmatchcase``, so ``*``, ``?`` and
    ``[...]`` never cross a ``/``. A ``**`` segment spans zero or more
    segments, which lets ``**/x`` match ``x`` and ``a/**`` match ``a``
    itself. Raises ``ValueError`` for an unterminated character class.
    """
    if pattern.endswith("/") and len(pattern) > 1:
        pattern = pattern.rstrip("/")
    pattern_parts = tuple(pattern.split("/"))
    for part in pattern_parts:
        if _unterminated_class(part):
            raise ValueError(f"unterminated character class in {part!r}")
    return _match_parts(pattern_parts, tuple(target.split("/")))


def _match_parts(pattern_parts: Tuple[str, ...], target_parts: Tuple[str, ...]) -> bool:
    if not pattern_parts:
        return not target_parts
    head, rest = pattern_parts[0], pattern_parts[1:]
    if head == "**":
        return any(
            _match_parts(rest, target_parts[index:])
            for index in range(len(target_parts) + 1)
        )
    if not target_parts:
        return False
    return fnmatchcase(target_parts[0], head) and _match_parts(rest, target_parts[1:])


def _unterminated_class(segment: str) -> bool:
    index = segment.find("[")
    while index != -1:
        end = index + 1
        if end < len(segment) and segment[end] == "!":
            end += 1
        if end < len(segment) and segment[end] == "]":
            end += 1
        end = segment.find("]", end)
        if end == -1:
            return True
        index = segment.find("[", end + 1)
    return False


def _contains(pattern: str, target: str) -> bool:
    # A trailing "/" also matches the final segment of the target.
    return pattern in target or (pattern.endswith("/") and pattern in target + "/")


class IgnoreMatcher:
    """Evaluates global and per-directory ignore rules; the last matching rule wins."""

    def __init__(self, config: IgnoreConfig | None = None) -> None:
        self.config = config or IgnoreConfig()
        self.logger = get_logger("discovery.ignore")
        self._file_cache: Dict[str, Tuple[IgnoreRule, ...]] = {}
        self._invalid_patterns: Set[str] = set()
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Forget ignore-files read during a previous scan."""
        with self._lock:
            self._file_cache.clear()

    # ------------------------------------------------------------------
    # Traversal

    def load_ignore_file(self, dir_path: str) -> Tuple[IgnoreRule, ...]:
        """Return rules from the ignore-file in ``dir_path``, reading it at most once."""
        file_path = os.path.join(dir_path, self.config.ignore_file_name)
        with self._lock:
            cached = self._file_cache.get(file_path)
        if cached is not None:
            return cached

        try:
            content = Path(file_path).read_text(encoding="utf-8")
        except FileNotFoundError:
            rules: Tuple[IgnoreRule, ...] = ()
        except (OSError, UnicodeDecodeError) as exc:
            self.logger.warning("Could not read ignore file %s: %s", file_path, exc)
            rules = ()
        else:
            rules = tuple(parse_ignore_file(content, file_path))
            if rules:
                self.logger.debug("Loaded %d ignore rules from %s", len(rules), file_path)

        with self._lock:
            self._file_cache.setdefault(file_path, rules)
        return rules

    def build_context(
        self, dir_path: str, parent: Optional[IgnoreContext] = None
    ) -> IgnoreContext:
        """Return a new context for ``dir_path`` extending ``parent``."""
        rules: Tuple[IgnoreRule, ...] = ()
        if self.config.use_ignore_files:
            rules = self.load_ignore_file(dir_path)
        return IgnoreContext(directory=dir_path, rules=rules, parent=parent)

    def should_ignore_directory(
        self, dir_path: str, basename: str, context: Optional[IgnoreContext] = None
    ) -> bool:
        """Return True when ``dir_path`` must not be entered.

        Context rules are evaluated outermost first, then the global config
        rules. Every matching rule overwrites the decision, so a negated rule
        only re-includes a directory when it is the last one to match.
        """
        rules: List[IgnoreRule] = context.chain() if context is not None else []
        rules.extend(self._config_rules())

        ignored = False
        for rule in rules:
            if self._match_rule(rule, dir_path, basename):
                ignored = not rule.negated
        return ignored

    @staticmethod
    def is_legacy_ignored(
        dir_path: str, base_path: str, patterns: Iterable[str]
    ) -> bool:
        """Apply the scan's plain basename list and skip dot-directories below the base."""
        if dir_path == base_path:
            return False
        names = set(patterns)
        try:
            relative_parts = Path(os.path.relpath(dir_path, base_path)).parts
        except ValueError:
            relative_parts = (os.path.basename(dir_path),)
        for part in relative_parts:
            if part in names or part.startswith("."):
                return True
        return False

    # ------------------------------------------------------------------
    # Result filtering

    def should_ignore_project(self, project: ProjectRoot) -> bool:
        """Return True when a discovered project matches a global config pattern."""
        should_filter = False
        for rule in self._project_rules():
            matched = self.match_pattern(
                rule.pattern, project.name, RULE_PROJECT_NAME
            ) or self.match_pattern(rule.pattern, project.path, RULE_GLOB)
            if matched:
                should_filter = not rule.negated
        return should_filter

    # ------------------------------------------------------------------
    # Matching

    def match_pattern(self, pattern: str, target: str, kind: str) -> bool:
        if pattern == target:
            return True

        if kind in (RULE_BASENAME, RULE_PROJECT_NAME):
            name = os.path.basename(target.rstrip("/")) or target
            if has_magic(pattern):
                return self._glob_match(pattern, name)
            return name == pattern

        if has_magic(pattern):
            return self._glob_match(pattern, target)
        return _contains(pattern, target)

    def _match_rule(self, rule: IgnoreRule, dir_path: str, basename: str) -> bool:
        if not rule.matches_full_path:
            return self.match_pattern(rule.pattern, basename, RULE_BASENAME)

        if self.match_pattern(rule.pattern, dir_path, RULE_GLOB):
            return True
        if rule.base_dir:
            relative = _relative_to(dir_path, rule.base_dir)
            if relative:
                return self.match_pattern(rule.pattern.lstrip("/"), relative, RULE_GLOB)
        return False

    def _glob_match(self, pattern: str, target: str) -> bool:
        with self._lock:
            if pattern in self._invalid_patterns:
                return False
        try:
            return glob_match(pattern, target)
        except ValueError as exc:
            with self._lock:
                first = pattern not in self._invalid_patterns
                self._invalid_patterns.add(pattern)
            if first:
                self.logger.warning("Invalid ignore pattern %r: %s", pattern, exc)
            return False

    def _config_rules(self) -> List[IgnoreRule]:
        rules = [
            IgnoreRule(pattern=name, kind=RULE_BASENAME)
            for name in self.config.directories
        ]
        for pattern in self.config.patterns:
            kind = RULE_GLOB if _is_path_pattern(pattern) else RULE_BASENAME
            rules.append(IgnoreRule(pattern=pattern, kind=kind))
        return rules

    def _project_rules(self) -> Sequence[IgnoreRule]:
        return [
            IgnoreRule(pattern=pattern, kind=RULE_PROJECT_NAME)
            for pattern in self.config.patterns
        ]


def _relative_to(path: str, base: str) -> Optional[str]:
    prefix = base.rstrip(os.sep) + os.sep
    if not path.startswith(prefix):
        return None
    return path[len(prefix) :].replace(os.sep, "/") or None


__all__ = [
    "IgnoreContext",
    "IgnoreMatcher",
    "IgnoreRule",
    "has_magic",
    "glob_match",
    "parse_ignore_file",
]
