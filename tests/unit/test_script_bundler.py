"""Tests for the script bundler."""

import json
from pathlib import Path

import pytest

from rna.bundlers import BundleStatus, ScriptBundler
from rna.bundlers.script import ModuleSize, camel_case, parse_specifiers
from rna.core.config import JsxConfig, ScriptFormat
from rna.core.errors import BuildError, ConfigError, LintError, WriteError
from rna.core.events import BundleEvent

LIBRARY = {
    "src/a.js": "export const a = 1;\n",
    "src/index.js": "import { a } from './a.js';\nexport const b = a + 1;\n",
}


async def make_bundle(project, **options) -> ScriptBundler:
    values = {
        "input": project.root / "src" / "index.js",
        "output": project.root / "dist" / "index.js",
        "lint": False,
    }
    values.update(options)
    bundle = ScriptBundler(project)
    await bundle.setup(**values)
    return bundle


def output_text(bundle: ScriptBundler) -> str:
    return bundle.output_bytes(bundle.output).decode()


class TestHelpers:
    def test_camel_case(self) -> None:
        assert camel_case("my-lib") == "myLib"
        assert camel_case("ui.kit_v2") == "uiKitV2"
        assert camel_case("2d") == "_2d"
        assert camel_case("---") == "bundle"

    def test_parse_specifiers(self) -> None:
        assert parse_specifiers(" a, b as c ,") == [("a", "a"), ("b", "c")]


class TestSetup:
    @pytest.mark.asyncio
    async def test_directory_output(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project, output=project.root / "dist")
        assert bundle.output == project.root / "dist" / "index.js"

    @pytest.mark.asyncio
    async def test_missing_output(self, project) -> None:
        with pytest.raises(ConfigError, match='missing "output" option for script'):
            await ScriptBundler(project).setup(input=project.root / "index.js")

    @pytest.mark.asyncio
    async def test_missing_input(self, project) -> None:
        with pytest.raises(ConfigError, match='missing "input" option for script'):
            await ScriptBundler(project).setup(output=project.root / "dist")

    @pytest.mark.asyncio
    async def test_name_from_output_for_iife(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project, output=project.root / "dist" / "my-lib.js", format=ScriptFormat.IIFE)
        assert bundle.options.name == "myLib"

    @pytest.mark.asyncio
    async def test_build_before_setup(self, project) -> None:
        with pytest.raises(ConfigError, match="not set up"):
            await ScriptBundler(project).build()


class TestFormats:
    @pytest.mark.asyncio
    async def test_esm_inlines_dependencies_first(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project, map=False)

        files = await bundle.build()

        text = output_text(bundle)
        assert "import" not in text
        assert text.index("const a = 1;") < text.index("export const b = a + 1;")
        assert "export const a" not in text
        assert files == [project.root / "src" / "index.js", project.root / "src" / "a.js"]
        assert bundle.status == BundleStatus.IDLE

    @pytest.mark.asyncio
    async def test_cjs(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project, format=ScriptFormat.CJS, map=False)
        await bundle.build()

        text = output_text(bundle)
        assert text.startswith("'use strict';\n")
        assert "export const" not in text
        assert "module.exports = { b: b };" in text

    @pytest.mark.asyncio
    async def test_iife_assigns_global(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(
            project, output=project.root / "dist" / "my-lib.js", format=ScriptFormat.IIFE, map=False
        )
        await bundle.build()

        text = output_text(bundle)
        assert text.startswith("var myLib = (function () {\n")
        assert "return { b: b };" in text
        assert text.rstrip().endswith("})();")

    @pytest.mark.asyncio
    async def test_umd(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project, format=ScriptFormat.UMD, name="Lib", map=False)
        await bundle.build()

        text = output_text(bundle)
        assert "global.Lib = factory()" in text
        assert "define.amd" in text

    @pytest.mark.asyncio
    async def test_default_export_expression(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/index.js": "export default 42;\n"})
        bundle = await make_bundle(project, format=ScriptFormat.CJS, map=False)
        await bundle.build()

        text = output_text(bundle)
        assert "var __index0_default = 42;" in text
        assert "module.exports = __index0_default;" in text

    @pytest.mark.asyncio
    async def test_jsx_pragma_header(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/index.jsx": "export const view = <div />;\n"})
        bundle = await make_bundle(
            project,
            input=project.root / "src" / "index.jsx",
            jsx=JsxConfig(pragma="h", pragma_frag="Fragment", module="preact"),
            map=False,
        )
        await bundle.build()

        lines = output_text(bundle).splitlines()
        assert lines[:3] == [
            "/** @jsx h */",
            "/** @jsxFrag Fragment */",
            "import { h, Fragment } from 'preact';",
        ]


class TestDependencies:
    @pytest.mark.asyncio
    async def test_unresolved_relative_import(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/index.js": "import { x } from './missing.js';\n"})
        bundle = await make_bundle(project)

        with pytest.raises(BuildError, match="Could not resolve './missing.js'") as exc_info:
            await bundle.build()

        assert exc_info.value.context.line == 1
        assert bundle.status == BundleStatus.ERROR
        assert project.root / "src" / "index.js" in bundle.files

    @pytest.mark.asyncio
    async def test_bare_imports_stay_external(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/index.js": "import lodash from 'lodash';\nexport default lodash;\n"})
        bundle = await make_bundle(project, map=False)
        await bundle.build()

        assert "import lodash from 'lodash';" in output_text(bundle)

    @pytest.mark.asyncio
    async def test_bundle_node_modules(self, make_project, events) -> None:
        project = make_project(
            {"name": "app"},
            {
                "node_modules/dep/package.json": json.dumps({"name": "dep", "main": "index.js"}),
                "node_modules/dep/index.js": "export default function dep() {\n  return 1;\n}\n",
                "src/index.js": "import dep from 'dep';\nimport other from 'not-installed';\nexport const value = dep();\n",
            },
        )
        bundle = await make_bundle(project, bundle=True, map=False)
        bundle.subscribe(events.append)
        await bundle.build()

        text = output_text(bundle)
        assert "function dep() {" in text
        assert "from 'dep'" not in text
        assert "import other from 'not-installed';" in text
        assert project.root / "node_modules" / "dep" / "index.js" in bundle.files
        warnings = [e.message for e in events if e.type == BundleEvent.WARN]
        assert any("not-installed" in message for message in warnings)

    @pytest.mark.asyncio
    async def test_require_is_tracked_not_inlined(self, make_project) -> None:
        project = make_project(
            {"name": "app"},
            {"src/b.js": "module.exports = 2;\n", "src/index.js": "const b = require('./b.js');\nexport default b;\n"},
        )
        bundle = await make_bundle(project, map=False)
        await bundle.build()

        assert "require('./b.js')" in output_text(bundle)
        assert project.root / "src" / "b.js" in bundle.files

    @pytest.mark.asyncio
    async def test_syntax_error_location(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/index.js": "export const a = 1;\nconst b = (2;\n"})
        bundle = await make_bundle(project)

        with pytest.raises(BuildError, match="Unclosed") as exc_info:
            await bundle.build()

        assert exc_info.value.context.line == 2
        assert exc_info.value.context.column == 11

    @pytest.mark.asyncio
    async def test_files_shrink_when_import_is_removed(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project)
        await bundle.build()

        index = project.root / "src" / "index.js"
        index.write_text("export const b = 2;\n")
        files = await bundle.build(index)

        assert files == [index]


class TestIncremental:
    @pytest.mark.asyncio
    async def test_partial_build_matches_full_build(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project)
        await bundle.build()

        changed = project.root / "src" / "a.js"
        changed.write_text("export const a = 10;\nexport const c = 3;\n")
        await bundle.build(changed)

        fresh = await make_bundle(project)
        await fresh.build()

        assert bundle.outputs == fresh.outputs
        for path in fresh.outputs:
            assert bundle.output_bytes(path) == fresh.output_bytes(path)
        assert "const a = 10;" in output_text(bundle)

    @pytest.mark.asyncio
    async def test_write_is_idempotent(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project)
        await bundle.build()

        written = await bundle.write()
        first = {path: path.read_bytes() for path in written}
        await bundle.write()

        assert written == [project.root / "dist" / "index.js", project.root / "dist" / "index.js.map"]
        assert {path: path.read_bytes() for path in written} == first

    @pytest.mark.asyncio
    async def test_write_before_build(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project)
        with pytest.raises(WriteError, match="no build to write"):
            await bundle.write()

    @pytest.mark.asyncio
    async def test_lifecycle_events(self, make_project, events) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project)
        bundle.subscribe(events.append)
        await bundle.build()
        await bundle.write()

        types = [e.type for e in events]
        assert types == [
            BundleEvent.BUILD_START,
            BundleEvent.BUILD_END,
            BundleEvent.BUNDLE_END,
            BundleEvent.WRITE_START,
            BundleEvent.WRITE_PROGRESS,
            BundleEvent.WRITE_PROGRESS,
            BundleEvent.WRITE_END,
        ]


class TestSourceMap:
    @pytest.mark.asyncio
    async def test_map_file(self, make_project) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project)
        await bundle.build()

        assert output_text(bundle).rstrip().endswith("//# sourceMappingURL=index.js.map")
        data = json.loads(bundle.output_bytes(bundle.map_file))
        assert data["version"] == 3
        assert data["file"] == "index.js"
        assert data["sources"] == ["../src/a.js", "../src/index.js"]
        assert data["sourcesContent"][0] == LIBRARY["src/a.js"]
        assert data["mappings"].startswith("AAAA")

    @pytest.mark.asyncio
    async def test_production_strips_blank_lines(self, make_project) -> None:
        project = make_project(
            {"name": "app"},
            {"src/index.js": "export function f() {\n\n    return 1;\n}\n"},
        )
        bundle = await make_bundle(project, production=True, map=False)
        await bundle.build()

        assert output_text(bundle) == "export function f() {\nreturn 1;\n}\n"


class TestLintAndAnalysis:
    @pytest.mark.asyncio
    async def test_lint_error_fails_build(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/index.js": "export const a = 1;\ndebugger;\n"})
        bundle = await make_bundle(project, lint=True)

        with pytest.raises(LintError, match="no-debugger"):
            await bundle.build()
        assert bundle.lint_result.error_count == 1

        (project.root / "src" / "index.js").write_text("export const a = 1;\n")
        await bundle.build(project.root / "src" / "index.js")
        assert not bundle.lint_result.has_errors()
        assert bundle.status == BundleStatus.IDLE

    @pytest.mark.asyncio
    async def test_files_of_failed_build_are_linted_on_retry(self, make_project) -> None:
        project = make_project(
            {"name": "app"},
            {
                "src/a.js": b"export const a = '\xff';\n",
                "src/index.js": "import { a } from './a.js';\ndebugger;\nexport const b = a;\n",
            },
        )
        bundle = await make_bundle(project, lint=True)

        with pytest.raises(BuildError, match="Cannot read"):
            await bundle.build()

        dependency = project.root / "src" / "a.js"
        dependency.write_text("export const a = 1;\n")
        with pytest.raises(LintError, match="no-debugger"):
            await bundle.build(dependency)
        assert bundle.lint_result.error_count == 1

    @pytest.mark.asyncio
    async def test_lint_warnings_do_not_fail(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/index.js": "export const a = 1;\nconsole.log(a);\n"})
        bundle = await make_bundle(project, lint=True)
        await bundle.build()
        assert bundle.lint_result.warning_count == 1

    @pytest.mark.asyncio
    async def test_analysis_report(self, make_project, events) -> None:
        project = make_project({"name": "app"}, LIBRARY)
        bundle = await make_bundle(project, analyze=True)
        bundle.subscribe(events.append)
        await bundle.build()

        [analysis] = [e for e in events if e.type == BundleEvent.ANALYSIS]
        assert {entry.path for entry in analysis.report} == {
            str(Path("src") / "a.js"),
            str(Path("src") / "index.js"),
        }
        assert all(isinstance(entry, ModuleSize) for entry in analysis.report)
        sizes = [entry.size for entry in analysis.report]
        assert sizes == sorted(sizes, reverse=True)
