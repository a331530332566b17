"""Persistent per-project cache for analysis results."""

from __future__ import annotations

import hashlib
import json
import os
import re
import time
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import ProjectsConfig, config_home
from ..logging import get_logger
from ..models import (
    CachedProjectRecord,
    CacheStats,
    CacheWrite,
    ProjectAnalysis,
    ProjectStatus,
    TrackingFileSummary,
)

_CACHE_VERSION = 1
_MS_PER_HOUR = 60 * 60 * 1000
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9.-]")

DEFAULT_TTL_HOURS = 24.0


def _mtime_ms(path: str | Path) -> int:
    return os.stat(path).st_mtime_ns // 1_000_000


class CacheManager:
    """Stores one JSON record per project, keyed by a hash of its absolute path.

    A record is returned only while the project directory and every recorded
    tracking file are unmodified and the record is younger than the TTL.
    Records failing those checks are deleted on read. Writes are best-effort:
    failures are logged and reported through ``CacheWrite`` instead of raised.
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        *,
        ttl_hours: float = DEFAULT_TTL_HOURS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = Path(cache_dir) if cache_dir is not None else config_home() / "cache"
        self._ttl_ms = int(ttl_hours * _MS_PER_HOUR)
        self._clock = clock
        self._stats = CacheStats()
        self.logger = get_logger("cache")

    @classmethod
    def from_config(cls, config: ProjectsConfig) -> "CacheManager":
        return cls(config.cache.directory, ttl_hours=config.cache.ttl_hours)

    @property
    def location(self) -> Path:
        return self._dir

    def cache_file(self, project_path: str | Path) -> Path:
        path = os.path.abspath(str(project_path))
        digest = hashlib.md5(path.encode("utf-8")).hexdigest()
        safe_name = _UNSAFE_NAME_CHARS.sub("_", os.path.basename(path)) or "root"
        return self._dir / f"{safe_name}_{digest}.json"

    # ------------------------------------------------------------------
    # Lookups

    def get(self, project_path: str | Path) -> Optional[CachedProjectRecord]:
        path = os.path.abspath(str(project_path))
        cache_file = self.cache_file(path)
        try:
            raw = cache_file.read_bytes()
        except FileNotFoundError:
            self._stats.misses += 1
            return None
        except OSError as exc:
            self.logger.warning("Cannot read cache entry %s: %s", cache_file, exc)
            self._stats.misses += 1
            return None

        try:
            record = _record_from_dict(json.loads(raw.decode("utf-8")))
        except ValueError:
            record = None
        if record is None:
            self._invalidate(cache_file, "unreadable entry")
            return None

        reason = self._invalid_reason(record, path)
        if reason is not None:
            self._invalidate(cache_file, reason)
            return None

        self._stats.hits += 1
        return record

    def _invalid_reason(self, record: CachedProjectRecord, path: str) -> Optional[str]:
        if record.project_path != path:
            return "entry belongs to another path"
        if not os.path.isdir(path):
            return "project directory missing"
        try:
            if _mtime_ms(path) > record.directory_modified:
                return "project directory modified"
        except OSError:
            return "project directory missing"

        for tracking_file in record.analysis.tracking_files:
            try:
                if _mtime_ms(tracking_file.path) > tracking_file.last_modified:
                    return f"tracking file modified: {tracking_file.path}"
            except OSError:
                return f"tracking file missing: {tracking_file.path}"

        if self._now_ms() - record.cached_at > self._ttl_ms:
            return "entry expired"
        return None

    def _invalidate(self, cache_file: Path, reason: str) -> None:
        self.logger.debug("Invalidating cache entry %s (%s)", cache_file.name, reason)
        self._stats.invalidated += 1
        self._stats.misses += 1
        try:
            cache_file.unlink(missing_ok=True)
        except OSError as exc:
            self.logger.warning("Cannot remove stale cache entry %s: %s", cache_file, exc)

    # ------------------------------------------------------------------
    # Writes

    def put(self, project_path: str | Path, analysis: ProjectAnalysis) -> CacheWrite:
        path = os.path.abspath(str(project_path))
        try:
            record = CachedProjectRecord(
                project_path=path,
                name=os.path.basename(path),
                directory_modified=_mtime_ms(path),
                cached_at=self._now_ms(),
                analysis=analysis,
            )
            self._write(self.cache_file(path), record)
        except (OSError, TypeError, ValueError) as exc:
            self.logger.warning("Failed to cache project %s: %s", path, exc)
            return CacheWrite(error=str(exc))
        return CacheWrite(record=record)

    def update_git_insights_only(
        self, project_path: str | Path, insights: Dict[str, Any]
    ) -> CacheWrite:
        """Replace the git snapshot of an existing entry; no-op without one."""
        path = os.path.abspath(str(project_path))
        cache_file = self.cache_file(path)
        try:
            raw = cache_file.read_bytes()
        except FileNotFoundError:
            return CacheWrite()
        except OSError as exc:
            self.logger.debug("Skipping git insight update for %s: %s", path, exc)
            return CacheWrite(error=str(exc))

        try:
            record = _record_from_dict(json.loads(raw.decode("utf-8")))
        except ValueError:
            record = None
        if record is None:
            self.logger.debug("Removing unreadable cache entry %s", cache_file.name)
            try:
                cache_file.unlink(missing_ok=True)
            except OSError as exc:
                self.logger.warning("Cannot remove stale cache entry %s: %s", cache_file, exc)
            return CacheWrite(error="unreadable cache entry")

        updated = replace(record, analysis=replace(record.analysis, git=insights))
        try:
            self._write(cache_file, updated)
        except (OSError, TypeError, ValueError) as exc:
            self.logger.debug("Skipping git insight update for %s: %s", path, exc)
            return CacheWrite(error=str(exc))
        return CacheWrite(record=updated)

    def _write(self, cache_file: Path, record: CachedProjectRecord) -> None:
        payload = {"version": _CACHE_VERSION, **asdict(record)}
        text = json.dumps(payload, indent=2, sort_keys=True)
        cache_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = cache_file.with_name(f".{cache_file.name}.{os.getpid()}.tmp")
        try:
            tmp_file.write_text(text, encoding="utf-8")
            os.replace(tmp_file, cache_file)
        finally:
            tmp_file.unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Maintenance

    def clear(self) -> int:
        removed = 0
        for cache_file in self._entries():
            try:
                cache_file.unlink()
                removed += 1
            except OSError as exc:
                self.logger.debug("Cannot remove %s: %s", cache_file, exc)
        return removed

    def prune(self, max_age_hours: float) -> int:
        """Remove entries written more than ``max_age_hours`` ago."""
        cutoff = self._now_ms() - int(max_age_hours * _MS_PER_HOUR)
        pruned = 0
        for cache_file in self._entries():
            try:
                written_at = _written_at(cache_file)
                if written_at < cutoff:
                    cache_file.unlink()
                    pruned += 1
            except OSError as exc:
                self.logger.debug("Cannot prune %s: %s", cache_file, exc)
        return pruned

    def _entries(self) -> List[Path]:
        try:
            return sorted(self._dir.glob("*.json"))
        except OSError:
            return []

    # ------------------------------------------------------------------
    # Statistics

    def stats(self) -> CacheStats:
        return replace(self._stats)

    def reset_stats(self) -> None:
        self._stats = CacheStats()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)


def _written_at(cache_file: Path) -> int:
    try:
        payload = json.loads(cache_file.read_text(encoding="utf-8"))
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        cached_at = payload.get("cached_at")
        if isinstance(cached_at, int) and not isinstance(cached_at, bool):
            return cached_at
    return _mtime_ms(cache_file)


def _record_from_dict(payload: object) -> Optional[CachedProjectRecord]:
    if not isinstance(payload, dict) or payload.get("version") != _CACHE_VERSION:
        return None
    project_path = payload.get("project_path")
    name = payload.get("name")
    directory_modified = payload.get("directory_modified")
    cached_at = payload.get("cached_at")
    if (
        not isinstance(project_path, str)
        or not isinstance(name, str)
        or not isinstance(directory_modified, int)
        or not isinstance(cached_at, int)
    ):
        return None
    analysis = _analysis_from_dict(payload.get("analysis"))
    if analysis is None:
        return None
    return CachedProjectRecord(
        project_path=project_path,
        name=name,
        directory_modified=directory_modified,
        cached_at=cached_at,
        analysis=analysis,
    )


def _analysis_from_dict(payload: object) -> Optional[ProjectAnalysis]:
    if not isinstance(payload, dict):
        return None
    status_data = payload.get("status")
    if not isinstance(status_data, dict):
        return None
    confidence = status_data.get("confidence", 0.0)
    status = ProjectStatus(
        type=str(status_data.get("type", "unknown")),
        details=str(status_data.get("details", "")),
        confidence=float(confidence) if isinstance(confidence, (int, float)) else 0.0,
    )

    tracking_files: List[TrackingFileSummary] = []
    raw_tracking = payload.get("tracking_files", [])
    if not isinstance(raw_tracking, list):
        return None
    for item in raw_tracking:
        if not isinstance(item, dict):
            return None
        path = item.get("path")
        kind = item.get("type")
        last_modified = item.get("last_modified")
        if not isinstance(path, str) or not isinstance(kind, str) or not isinstance(last_modified, int):
            return None
        tracking_files.append(
            TrackingFileSummary(path=path, type=kind, last_modified=last_modified)
        )

    languages = payload.get("languages", [])
    git = payload.get("git")
    return ProjectAnalysis(
        status=status,
        description=str(payload.get("description", "")),
        tracking_files=tracking_files,
        languages=[str(item) for item in languages] if isinstance(languages, list) else [],
        has_git=bool(payload.get("has_git", False)),
        git=git if isinstance(git, dict) else None,
    )


__all__ = ["CacheManager", "DEFAULT_TTL_HOURS"]
