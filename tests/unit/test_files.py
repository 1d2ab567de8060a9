"""Tests for file kinds, sizes and project metadata."""

from pathlib import Path

import pytest

from rna.core.errors import RnaError
from rna.core.files import (
    DEFAULT_BROWSERSLIST,
    FileKind,
    Project,
    file_kind,
    file_sizes,
    format_bytes,
    sort_projects,
)


class TestFileKind:
    @pytest.mark.parametrize(
        "name,kind",
        [
            ("index.js", FileKind.SCRIPT),
            ("App.TSX", FileKind.SCRIPT),
            ("main.scss", FileKind.STYLE),
            ("index.html", FileKind.MARKUP),
            ("manifest.json", FileKind.MANIFEST),
            ("app.webmanifest", FileKind.MANIFEST),
            ("data.json", None),
            ("README", None),
        ],
    )
    def test_kinds(self, name: str, kind: FileKind | None) -> None:
        assert file_kind(name) == kind


class TestFormatBytes:
    def test_bytes(self) -> None:
        assert format_bytes(512) == "512 B"

    def test_kilobytes(self) -> None:
        assert format_bytes(2048) == "2.0 KB"

    def test_megabytes(self) -> None:
        assert format_bytes(3 * 1024 * 1024) == "3.0 MB"

    def test_file_sizes(self, tmp_path: Path) -> None:
        path = tmp_path / "big.txt"
        path.write_text("a" * 4096)
        size, zipped = file_sizes(path)
        assert size == "4.0 KB"
        assert zipped.endswith(" B")


class TestProject:
    def test_metadata(self, make_project) -> None:
        project = make_project({"name": "@acme/ui", "directories": {"dist": "dist"}, "config": {"port": 8080}})
        assert project.name == "@acme/ui"
        assert project.scope_name == "acme"
        assert project.scope_module == "ui"
        assert project.get("config.port") == 8080
        assert project.get("config.missing", "x") == "x"
        assert project.directories["dist"] == project.root / "dist"

    def test_directory_without_package_json(self, tmp_path: Path) -> None:
        project = Project(tmp_path)
        assert project.is_new
        assert project.name == tmp_path.name.lower().replace(" ", "_")

    def test_invalid_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{ nope")
        with pytest.raises(RnaError, match="Invalid JSON"):
            Project(tmp_path)

    def test_relative(self, project: Project) -> None:
        assert project.relative(project.root / "src" / "index.js") == str(Path("src") / "index.js")

    def test_workspaces(self, make_project, tmp_path: Path) -> None:
        root = make_project({"name": "mono", "workspaces": ["packages/*"]})
        make_project({"name": "a"}, root=tmp_path / "packages" / "a")
        make_project({"name": "b"}, root=tmp_path / "packages" / "b")
        (tmp_path / "packages" / "not-a-package").mkdir()

        names = [ws.name for ws in root.workspaces]
        assert names == ["a", "b"]
        assert Project(tmp_path / "packages" / "a").parent == root

    def test_no_workspaces(self, project: Project) -> None:
        assert project.workspaces is None
        assert project.parent is None


class TestBrowserslist:
    def test_default(self, project: Project) -> None:
        assert project.browserslist == DEFAULT_BROWSERSLIST

    def test_package_field(self, make_project) -> None:
        project = make_project({"name": "app", "browserslist": "last 2 versions"})
        assert project.browserslist == ["last 2 versions"]

    def test_config_file_wins(self, make_project) -> None:
        project = make_project(
            {"name": "app", "browserslist": ["defaults"]},
            {"browserslist.json": '["chrome 100"]'},
        )
        assert project.browserslist == ["chrome 100"]

    def test_inherited_from_monorepo(self, make_project, tmp_path: Path) -> None:
        make_project({"name": "mono", "workspaces": ["packages/*"], "browserslist": ["firefox 100"]})
        member = make_project({"name": "a"}, root=tmp_path / "packages" / "a")
        assert member.browserslist == ["firefox 100"]


class TestWorkspaceDependencies:
    def test_transitive_dependencies_first(self, make_project, tmp_path: Path) -> None:
        root = make_project({"name": "mono", "workspaces": ["packages/*"]})
        make_project({"name": "app", "dependencies": {"ui": "*"}}, root=tmp_path / "packages" / "app")
        make_project({"name": "ui", "dependencies": {"core": "*"}}, root=tmp_path / "packages" / "ui")
        make_project({"name": "core"}, root=tmp_path / "packages" / "core")

        app = next(ws for ws in root.workspaces if ws.name == "app")
        assert [p.name for p in root.workspace_dependencies(app)] == ["core", "ui"]

    def test_sort_projects_cycle_keeps_everything(self, make_project, tmp_path: Path) -> None:
        a = make_project({"name": "a", "dependencies": {"b": "*"}}, root=tmp_path / "a")
        b = make_project({"name": "b", "dependencies": {"a": "*"}}, root=tmp_path / "b")
        c = make_project({"name": "c"}, root=tmp_path / "c")

        ordered = sort_projects([a, b, c])
        assert ordered[0] == c
        assert set(ordered) == {a, b, c}


class TestResolvePatterns:
    def test_files_and_workspace_names(self, make_project, tmp_path: Path) -> None:
        root = make_project(
            {"name": "mono", "workspaces": ["packages/*"]},
            {"src/a.js": "", "src/b.css": ""},
        )
        make_project({"name": "ui"}, root=tmp_path / "packages" / "ui")

        entries = root.resolve(["ui", "src/*"])
        assert entries[0] == Project(tmp_path / "packages" / "ui")
        assert entries[1:] == [tmp_path.resolve() / "src" / "a.js", tmp_path.resolve() / "src" / "b.css"]

    def test_directories_without_package_are_skipped(self, project: Project, tmp_path: Path) -> None:
        (tmp_path / "empty").mkdir()
        assert project.resolve(["empty"]) == []
