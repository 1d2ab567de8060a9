"""Tests for entry resolution."""

import os
from pathlib import Path

import pytest

from rna.core.errors import ResolutionError
from rna.core.files import FileKind
from rna.core.resolver import compile_link_patterns, is_output_relative, resolve
from rna.core.targets import FileTarget, PackageTarget


@pytest.fixture
def monorepo(make_project, tmp_path: Path):
    root = make_project({"name": "mono", "workspaces": ["packages/*"]})
    make_project({"name": "app", "dependencies": {"ui": "*"}}, root=tmp_path / "packages" / "app")
    make_project({"name": "ui", "dependencies": {"core": "*"}}, root=tmp_path / "packages" / "ui")
    make_project({"name": "core"}, root=tmp_path / "packages" / "core")
    return root


class TestResolve:
    def test_no_arguments_builds_project(self, project) -> None:
        targets = resolve(project, [])
        assert targets == [PackageTarget(project=project)]

    def test_no_arguments_builds_every_workspace(self, monorepo) -> None:
        targets = resolve(monorepo, [])
        assert [t.name for t in targets] == ["app", "core", "ui"]

    def test_file_patterns(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/index.js": "", "src/style.scss": "", "src/notes.txt": ""})
        targets = resolve(project, ["src/*"])
        assert targets == [
            FileTarget(path=project.root / "src" / "index.js", kind=FileKind.SCRIPT),
            FileTarget(path=project.root / "src" / "style.scss", kind=FileKind.STYLE),
        ]

    def test_nothing_to_build(self, project) -> None:
        with pytest.raises(ResolutionError, match="missing files to build"):
            resolve(project, ["does-not-exist/*"])

    def test_workspace_by_name(self, monorepo) -> None:
        targets = resolve(monorepo, ["ui"])
        assert [t.name for t in targets] == ["ui"]

    def test_recursive_adds_dependencies_first(self, monorepo) -> None:
        targets = resolve(monorepo, ["app"], recursive=True)
        assert [t.name for t in targets] == ["core", "ui", "app"]

    def test_recursive_does_not_duplicate(self, monorepo) -> None:
        targets = resolve(monorepo, ["ui", "app"], recursive=True)
        assert [t.name for t in targets] == ["core", "ui", "app"]


class TestLinked:
    def test_linked_dependencies_come_first(self, make_project, tmp_path: Path) -> None:
        project = make_project({"name": "app", "dependencies": {"@acme/ui": "*", "left-pad": "*"}}, root=tmp_path / "app")
        shared = make_project({"name": "@acme/ui"}, root=tmp_path / "shared")
        modules = tmp_path / "app" / "node_modules" / "@acme"
        modules.mkdir(parents=True)
        os.symlink(shared.root, modules / "ui")

        targets = resolve(project, [], link=["@acme/.*"])
        assert targets[0] == PackageTarget(project=shared, linked=True)
        assert targets[1].name == "app"
        assert not targets[1].linked

    def test_filters_exclude_unmatched(self, make_project, tmp_path: Path) -> None:
        project = make_project({"name": "app", "dependencies": {"other": "*"}}, root=tmp_path / "app")
        other = make_project({"name": "other"}, root=tmp_path / "other")
        (tmp_path / "app" / "node_modules").mkdir()
        os.symlink(other.root, tmp_path / "app" / "node_modules" / "other")

        targets = resolve(project, [], link=["@acme/.*"])
        assert [t.name for t in targets] == ["app"]

    def test_invalid_pattern(self) -> None:
        with pytest.raises(ResolutionError, match="Invalid --link pattern"):
            compile_link_patterns(["("])


class TestOutputRelative:
    def test_single_argument(self) -> None:
        assert not is_output_relative(["src/index.js"])

    def test_several_arguments(self) -> None:
        assert is_output_relative(["a.js", "b.js"])

    def test_glob(self) -> None:
        assert is_output_relative(["src/*.js"])
