"""Project type and language detection for discovered roots."""

from __future__ import annotations

from typing import Dict, List, Tuple

from ..models import ProjectRoot, ProjectType

_TYPE_RULES: Tuple[Tuple[ProjectType, Tuple[str, ...]], ...] = (
    (ProjectType.NODEJS, ("package.json",)),
    (ProjectType.RUST, ("Cargo.toml",)),
    (ProjectType.GO, ("go.mod", "go.sum")),
    (ProjectType.PYTHON, ("requirements.txt", "setup.py", "pyproject.toml", "Pipfile")),
    (ProjectType.PHP, ("composer.json",)),
    (ProjectType.JAVA, ("pom.xml", "build.gradle", "build.gradle.kts")),
)

_PRIMARY_LANGUAGE: Dict[ProjectType, str] = {
    ProjectType.NODEJS: "JavaScript",
    ProjectType.PYTHON: "Python",
    ProjectType.RUST: "Rust",
    ProjectType.GO: "Go",
    ProjectType.PHP: "PHP",
    ProjectType.JAVA: "Java",
}

_LANGUAGE_INDICATORS: Dict[str, str] = {
    "tsconfig.json": "TypeScript",
    ".eslintrc.js": "JavaScript",
    ".eslintrc.json": "JavaScript",
    "webpack.config.js": "JavaScript",
    "babel.config.js": "JavaScript",
    "jest.config.js": "JavaScript",
    "vite.config.js": "JavaScript",
    "next.config.js": "JavaScript",
    "svelte.config.js": "JavaScript",
    "astro.config.mjs": "JavaScript",
}


class TypeDetector:
    """Fills the type, language and VCS fields of a discovered project."""

    def detect_project_type(self, project: ProjectRoot) -> ProjectType:
        files = set(project.files)
        for project_type, markers in _TYPE_RULES:
            if any(marker in files for marker in markers):
                return project_type
        return ProjectType.UNKNOWN

    def detect_languages(self, project: ProjectRoot, project_type: ProjectType | None = None) -> List[str]:
        project_type = project_type or self.detect_project_type(project)
        languages: List[str] = []
        primary = _PRIMARY_LANGUAGE.get(project_type)
        if primary:
            languages.append(primary)
        for filename, language in _LANGUAGE_INDICATORS.items():
            if filename in project.files and language not in languages:
                languages.append(language)
        return languages or ["Unknown"]

    def has_git_repository(self, project: ProjectRoot) -> bool:
        return ".git" in project.files

    def enrich(self, project: ProjectRoot) -> ProjectRoot:
        project_type = self.detect_project_type(project)
        return project.with_details(
            type=project_type,
            languages=self.detect_languages(project, project_type),
            has_git=self.has_git_repository(project),
        )


__all__ = ["TypeDetector"]
