"""Project discovery: ignore rules, root scoring and the recursive scanner."""

from __future__ import annotations

from .detector import TypeDetector
from .ignore_matcher import IgnoreContext, IgnoreMatcher, IgnoreRule, parse_ignore_file
from .root_scorer import RootSignalScorer
from .scanner import ProjectScanner

__all__ = [
    "IgnoreContext",
    "IgnoreMatcher",
    "IgnoreRule",
    "ProjectScanner",
    "RootSignalScorer",
    "TypeDetector",
    "parse_ignore_file",
]
