"""Tests for projector.discovery.root_scorer."""

from __future__ import annotations

from projector.config import ProjectsConfig
from projector.discovery.root_scorer import RootSignalScorer, read_directory
from projector.models import RootSignals
from tests._fixtures.tree_builder import TreeBuilder


def test_manifest_and_vcs_score_above_threshold(tree_builder: TreeBuilder) -> None:
    tree_builder.write({"app/package.json": "{}\n"})
    tree_builder.mkdir("app/.git", "app/src")
    scorer = RootSignalScorer()

    signals = scorer.collect_signals(str(tree_builder.path("app")))

    assert signals.manifests == ["package.json"]
    assert signals.has_git is True
    # manifest + vcs bonus + vcs root + src layout
    assert scorer.score_signals(signals) == 100 + 50 + 30 + 40
    assert scorer.is_root(signals)


def test_structure_alone_stays_below_threshold() -> None:
    scorer = RootSignalScorer()
    signals = RootSignals(dirs=["src", "tests"])

    assert scorer.score_signals(signals) == 40
    assert not scorer.is_root(signals)


def test_docs_first_layout_is_a_root(tree_builder: TreeBuilder) -> None:
    tree_builder.write({"handbook/docs/index.md": "# Handbook\n"})
    tree_builder.write({"notes/docs/todo.txt": "later\n"})
    scorer = RootSignalScorer()

    handbook = scorer.collect_signals(str(tree_builder.path("handbook")))
    notes = scorer.collect_signals(str(tree_builder.path("notes")))

    assert handbook.has_docs_first is True
    assert scorer.is_root(handbook)
    assert notes.has_docs_first is False
    assert not scorer.is_root(notes)


def test_noise_only_directories_are_demoted() -> None:
    scorer = RootSignalScorer()
    signals = RootSignals(files=["package.json"], manifests=["package.json"], dirs=["node_modules", "dist"])

    assert scorer.score_signals(signals) == 50


def test_lockfile_weight_respects_strong_flag() -> None:
    signals = RootSignals(files=["yarn.lock"], lockfiles=["yarn.lock"])

    assert RootSignalScorer().score_signals(signals) == 60
    assert RootSignalScorer(ProjectsConfig(lockfiles_as_strong=False)).score_signals(signals) == 0


def test_vcs_alone_counts_only_when_stopping_at_vcs_root() -> None:
    signals = RootSignals(dirs=[".git"], has_git=True)

    assert RootSignalScorer().score_signals(signals) == 30
    assert RootSignalScorer(ProjectsConfig(stop_at_vcs_root=False)).score_signals(signals) == 0


def test_code_file_count_uses_configured_minimum(tree_builder: TreeBuilder) -> None:
    tree_builder.write({f"scripts/tool{index}.py": "pass\n" for index in range(3)})
    tree_builder.write({"scripts/README.txt": "tools\n"})
    path = str(tree_builder.path("scripts"))

    default = RootSignalScorer()
    relaxed = RootSignalScorer(ProjectsConfig(min_code_files_to_consider=3))

    assert default.collect_signals(path).code_file_count == 3
    assert default.score_signals(default.collect_signals(path)) == 0
    assert relaxed.score_signals(relaxed.collect_signals(path)) == 30


def test_adding_a_manifest_never_lowers_the_score() -> None:
    scorer = RootSignalScorer()
    variants = [
        RootSignals(),
        RootSignals(dirs=["node_modules"]),
        RootSignals(dirs=["src"], has_git=True),
        RootSignals(lockfiles=["poetry.lock"], code_file_count=9),
    ]
    for before in variants:
        after = RootSignals(**{**before.__dict__, "manifests": ["pyproject.toml"]})
        assert scorer.score_signals(after) >= scorer.score_signals(before)


def test_threshold_is_configurable() -> None:
    signals = RootSignals(dirs=["src"])

    assert not RootSignalScorer().is_root(signals)
    assert RootSignalScorer(ProjectsConfig(root_threshold=40)).is_root(signals)


def test_read_directory_flags_directories(tree_builder: TreeBuilder) -> None:
    tree_builder.write({"proj/setup.py": "\n"})
    tree_builder.mkdir("proj/pkg")

    node = read_directory(str(tree_builder.path("proj")), depth=2)

    assert node.depth == 2
    assert node.files == ["setup.py"]
    assert node.dirs == ["pkg"]


def test_unreadable_directory_yields_empty_signals(tree_builder: TreeBuilder) -> None:
    signals = RootSignalScorer().collect_signals(str(tree_builder.path("missing")))

    assert signals == RootSignals()


def _globs(tree_builder: TreeBuilder, files: dict) -> list:
    tree_builder.write({f"mono/{name}": content for name, content in files.items()})
    scorer = RootSignalScorer()
    directory = str(tree_builder.path("mono"))
    return scorer.workspace_globs(directory, scorer.collect_signals(directory))


def test_pnpm_workspace_globs(tree_builder: TreeBuilder) -> None:
    globs = _globs(
        tree_builder,
        {"pnpm-workspace.yaml": "packages:\n  - 'packages/*'\n  - 'apps/*'\n"},
    )

    assert globs == ["packages/*", "apps/*"]


def test_package_json_and_lerna_globs_are_merged(tree_builder: TreeBuilder) -> None:
    globs = _globs(
        tree_builder,
        {
            "lerna.json": '{"packages": ["packages/*"]}\n',
            "package.json": '{"workspaces": {"packages": ["packages/*", "tools/*"]}}\n',
        },
    )

    assert globs == ["packages/*", "tools/*"]


def test_go_work_uses_local_modules_only(tree_builder: TreeBuilder) -> None:
    globs = _globs(
        tree_builder,
        {
            "go.work": """
            go 1.21

            use (
                ./api
                ./web // frontend
            )
            use ./tools
            """,
        },
    )

    assert globs == ["api", "web", "tools"]


def test_cargo_maven_and_gradle_members(tree_builder: TreeBuilder) -> None:
    globs = _globs(
        tree_builder,
        {
            "Cargo.toml": '[workspace]\nmembers = ["crates/*", "cli"]\n',
            "pom.xml": (
                '<project xmlns="http://maven.apache.org/POM/4.0.0">'
                "<modules><module>core</module><module>web</module></modules>"
                "</project>\n"
            ),
            "settings.gradle": "rootProject.name = 'mono'\ninclude(':app:ui', ':lib')\n",
        },
    )

    assert globs == ["crates/*", "cli", "core", "web", "app/ui", "lib"]


def test_malformed_workspace_file_is_skipped(tree_builder: TreeBuilder) -> None:
    globs = _globs(
        tree_builder,
        {
            "pnpm-workspace.yaml": "packages: [unterminated\n",
            "package.json": '{"workspaces": ["apps/*"]}\n',
        },
    )

    assert globs == ["apps/*"]

