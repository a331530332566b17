"""Tests for projector.discovery.ignore_matcher."""

from __future__ import annotations

from pathlib import Path

import pytest

from projector.config import IgnoreConfig
from projector.discovery.ignore_matcher import (
    RULE_BASENAME,
    RULE_GLOB,
    IgnoreContext,
    IgnoreMatcher,
    glob_match,
    parse_ignore_file,
)
from projector.models import ProjectRoot


def _project(path: str) -> ProjectRoot:
    return ProjectRoot(name=path.rsplit("/", 1)[-1], path=path, files=[], last_modified=0)


def _context(directory: str, content: str) -> IgnoreContext:
    rules = parse_ignore_file(content, f"{directory}/.projectorignore")
    return IgnoreContext(directory=directory, rules=tuple(rules))


def test_project_name_pattern_matches_whole_name_only() -> None:
    matcher = IgnoreMatcher(IgnoreConfig(patterns=["*-backup"], use_ignore_files=False))

    assert matcher.should_ignore_project(_project("/base/db-backup")) is True
    assert matcher.should_ignore_project(_project("/base/db-backups")) is False


def test_literal_project_pattern_matches_inside_the_path() -> None:
    matcher = IgnoreMatcher(IgnoreConfig(patterns=["backup"], use_ignore_files=False))

    assert matcher.should_ignore_project(_project("/base/db-backup")) is True
    assert matcher.should_ignore_project(_project("/base/backup")) is True
    assert matcher.should_ignore_project(_project("/base/db-back")) is False


def test_project_path_glob_filters_projects() -> None:
    matcher = IgnoreMatcher(IgnoreConfig(patterns=["**/archive/**"]))

    assert matcher.should_ignore_project(_project("/base/archive/old-site")) is True
    assert matcher.should_ignore_project(_project("/base/archived/site")) is False


def test_parse_ignore_file_skips_comments_and_marks_negation() -> None:
    rules = parse_ignore_file(
        "# generated output\n\nbuild-*\n!build-tools\napps/legacy\n**/tmp\n",
        "/base/.projectorignore",
    )

    assert [rule.pattern for rule in rules] == ["build-*", "build-tools", "apps/legacy", "**/tmp"]
    assert [rule.negated for rule in rules] == [False, True, False, False]
    assert [rule.kind for rule in rules] == [RULE_BASENAME, RULE_BASENAME, RULE_GLOB, RULE_GLOB]
    assert all(rule.base_dir == "/base" for rule in rules)
    assert all(rule.source == "/base/.projectorignore" for rule in rules)


def test_negated_rule_reincludes_when_it_matches_last() -> None:
    matcher = IgnoreMatcher()
    context = _context("/base", "build-*\n!build-tools\n")

    assert matcher.should_ignore_directory("/base/build-out", "build-out", context) is True
    assert matcher.should_ignore_directory("/base/build-tools", "build-tools", context) is False


def test_later_rule_overrides_earlier_negation() -> None:
    matcher = IgnoreMatcher()
    context = _context("/base", "!keep\nkeep\n")

    assert matcher.should_ignore_directory("/base/keep", "keep", context) is True


def test_child_context_negation_overrides_parent_rule() -> None:
    matcher = IgnoreMatcher()
    parent = _context("/base", "generated\n")
    child_rules = parse_ignore_file("!generated\n", "/base/app/.projectorignore")
    child = IgnoreContext(directory="/base/app", rules=tuple(child_rules), parent=parent)

    assert [rule.negated for rule in child.chain()] == [False, True]
    assert matcher.should_ignore_directory("/base/other/generated", "generated", parent) is True
    assert matcher.should_ignore_directory("/base/app/generated", "generated", child) is False


def test_config_rules_are_evaluated_after_context_rules() -> None:
    matcher = IgnoreMatcher(IgnoreConfig(directories=["vendor"]))
    context = _context("/base", "!vendor\n")

    assert matcher.should_ignore_directory("/base/vendor", "vendor", context) is True


def test_globstar_pattern_matches_directory_at_any_depth() -> None:
    matcher = IgnoreMatcher(IgnoreConfig(patterns=["**/archive/**"]))

    assert matcher.should_ignore_directory("/base/x/archive", "archive", None) is True
    assert matcher.should_ignore_directory("/base/x/archive/y", "y", None) is True
    assert matcher.should_ignore_directory("/base/x/archives", "archives", None) is False


def test_ignore_file_globs_match_relative_to_their_directory() -> None:
    matcher = IgnoreMatcher()
    context = _context("/base", "apps/legacy-*\nvendor/**\n")

    assert matcher.should_ignore_directory("/base/apps/legacy-web", "legacy-web", context) is True
    assert matcher.should_ignore_directory("/base/apps/web", "web", context) is False
    assert matcher.should_ignore_directory("/base/vendor", "vendor", context) is True
    assert matcher.should_ignore_directory("/base/vendor/lib", "lib", context) is True


def test_literal_path_pattern_matches_as_substring() -> None:
    matcher = IgnoreMatcher(IgnoreConfig(patterns=["old/site"]))

    assert matcher.should_ignore_directory("/base/old/site", "site", None) is True
    assert matcher.should_ignore_directory("/base/bold/sites", "sites", None) is True
    assert matcher.should_ignore_directory("/base/old/web", "web", None) is False


def test_invalid_pattern_fails_open(monkeypatch: pytest.MonkeyPatch) -> None:
    matcher = IgnoreMatcher(IgnoreConfig(patterns=["[abc", "tmp-*"]))
    warnings: list[str] = []
    monkeypatch.setattr(matcher.logger, "warning", lambda message, *args: warnings.append(message % args))

    assert matcher.should_ignore_directory("/base/abc", "abc", None) is False
    assert matcher.should_ignore_directory("/base/abd", "abd", None) is False
    assert matcher.should_ignore_directory("/base/tmp-1", "tmp-1", None) is True
    assert len(warnings) == 1
    assert "Invalid ignore pattern '[abc'" in warnings[0]


def test_glob_match_rules() -> None:
    assert glob_match("*.md", "README.md")
    assert not glob_match("*.md", "docs/README.md")
    assert glob_match("**/x", "x")
    assert glob_match("**/x", "a/b/x")
    assert glob_match("a/**", "a")
    assert glob_match("a/**", "a/b/c")
    assert glob_match("a?c", "abc")
    assert not glob_match("a?c", "a/c")
    assert glob_match("[!a]b", "cb")
    assert not glob_match("[!a]b", "ab")
    assert glob_match("build/", "build")
    with pytest.raises(ValueError):
        glob_match("[abc", "abc")


def test_load_ignore_file_reads_each_file_once_per_scan(tmp_path: Path) -> None:
    ignore_file = tmp_path / ".projectorignore"
    ignore_file.write_text("first\n", encoding="utf-8")
    matcher = IgnoreMatcher()

    assert [rule.pattern for rule in matcher.load_ignore_file(str(tmp_path))] == ["first"]

    ignore_file.write_text("second\n", encoding="utf-8")
    assert [rule.pattern for rule in matcher.load_ignore_file(str(tmp_path))] == ["first"]

    matcher.reset()
    assert [rule.pattern for rule in matcher.load_ignore_file(str(tmp_path))] == ["second"]


def test_build_context_skips_ignore_files_when_disabled(tmp_path: Path) -> None:
    (tmp_path / ".projectorignore").write_text("anything\n", encoding="utf-8")
    matcher = IgnoreMatcher(IgnoreConfig(use_ignore_files=False))

    context = matcher.build_context(str(tmp_path))

    assert context.rules == ()
    assert matcher.should_ignore_directory(str(tmp_path / "anything"), "anything", context) is False


def test_missing_ignore_file_yields_no_rules(tmp_path: Path) -> None:
    matcher = IgnoreMatcher(IgnoreConfig(ignore_file_name=".customignore"))

    assert matcher.load_ignore_file(str(tmp_path)) == ()


def test_legacy_patterns_apply_below_base_only() -> None:
    patterns = ["node_modules", "tmp"]

    assert IgnoreMatcher.is_legacy_ignored("/work/tmp", "/work/tmp", patterns) is False
    assert IgnoreMatcher.is_legacy_ignored("/work/tmp/app", "/work/tmp", patterns) is False
    assert IgnoreMatcher.is_legacy_ignored("/work/tmp/node_modules", "/work/tmp", patterns) is True
    assert IgnoreMatcher.is_legacy_ignored("/work/tmp/.hidden/app", "/work/tmp", patterns) is True
