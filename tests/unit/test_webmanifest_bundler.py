"""Tests for the web manifest bundler."""

import json
from io import BytesIO

import pytest
from PIL import Image

from rna.bundlers import IconBundler, IconDefinition, WebManifestBundler
from rna.core.errors import BuildError


async def make_bundle(project, manifest: str = "src/manifest.json", **options) -> WebManifestBundler:
    values = {
        "input": project.root / manifest,
        "output": project.root / "dist",
        "lint": False,
        "map": False,
    }
    values.update(options)
    bundle = WebManifestBundler(project)
    await bundle.setup(**values)
    return bundle


def manifest_data(bundle: WebManifestBundler) -> dict:
    return json.loads(bundle.output_bytes(bundle.output))


SMALL_ICONS = [IconDefinition(name="icon-48.png", size=48), IconDefinition(name="icon-96.png", size=96)]


class TestDefaults:
    @pytest.mark.asyncio
    async def test_generated_from_project(self, project) -> None:
        bundle = await make_bundle(project)
        await bundle.build()

        assert bundle.output == project.root / "dist" / "manifest.json"
        assert manifest_data(bundle) == {
            "name": "app",
            "short_name": "app",
            "description": "A test app",
            "start_url": "/",
            "scope": "/",
            "display": "standalone",
            "orientation": "any",
            "background_color": "#fff",
            "lang": "en-US",
        }

    @pytest.mark.asyncio
    async def test_existing_values_win(self, make_project) -> None:
        project = make_project(
            {"name": "app"},
            {"src/manifest.json": json.dumps({"name": "Site", "display": "fullscreen", "theme_color": "#000"})},
        )
        bundle = await make_bundle(project, scope="/app/", theme="#fff", lang="it")
        await bundle.build()

        data = manifest_data(bundle)
        assert data["name"] == "Site"
        assert data["short_name"] == "Site"
        assert data["display"] == "fullscreen"
        assert data["theme_color"] == "#000"
        assert data["scope"] == "/app/"
        assert data["lang"] == "it"
        assert "description" not in data

    @pytest.mark.asyncio
    async def test_output_ends_with_newline(self, project) -> None:
        bundle = await make_bundle(project)
        await bundle.build()
        assert bundle.output_bytes(bundle.output).endswith(b"}\n")

    @pytest.mark.asyncio
    async def test_invalid_json(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/manifest.json": '{\n  "name": \n}'})
        bundle = await make_bundle(project)

        with pytest.raises(BuildError, match="Invalid manifest") as exc_info:
            await bundle.build()
        assert exc_info.value.context.line == 3


class TestIcons:
    @pytest.mark.asyncio
    async def test_icons_rendered_by_child(self, make_project, png) -> None:
        project = make_project({"name": "app"}, {"src/icon.png": png(64, 64), "src/manifest.json": "{}"})
        bundle = await make_bundle(project, icon=project.root / "src" / "icon.png", icons=SMALL_ICONS)
        await bundle.build()
        written = await bundle.write()

        assert manifest_data(bundle)["icons"] == [
            {"src": "icon-48.png", "sizes": "48x48", "type": "image/png"},
            {"src": "icon-96.png", "sizes": "96x96", "type": "image/png"},
        ]
        [child] = bundle.children
        assert isinstance(child, IconBundler)
        assert project.root / "src" / "icon.png" in bundle.files

        icon = project.root / "dist" / "icon-96.png"
        assert icon in written
        with Image.open(BytesIO(icon.read_bytes())) as image:
            assert image.size == (96, 96)

    @pytest.mark.asyncio
    async def test_icon_directory_is_mirrored(self, make_project, png) -> None:
        project = make_project({"name": "app"}, {"src/images/icon.png": png(), "src/manifest.json": "{}"})
        bundle = await make_bundle(project, icon=project.root / "src" / "images" / "icon.png", icons=SMALL_ICONS)
        await bundle.build()

        assert manifest_data(bundle)["icons"][0]["src"] == "images/icon-48.png"
        assert bundle.children[0].output_dir == project.root / "dist" / "images"

    @pytest.mark.asyncio
    async def test_default_icon_set(self, make_project, png) -> None:
        project = make_project({"name": "app"}, {"src/icon.png": png(), "src/manifest.json": "{}"})
        bundle = await make_bundle(project, icon=project.root / "src" / "icon.png")
        await bundle.build()

        icons = manifest_data(bundle)["icons"]
        assert len(icons) == 9
        assert icons[0]["src"] == "android-chrome-36x36.png"
        assert icons[-1]["sizes"] == "512x512"

    @pytest.mark.asyncio
    async def test_declared_icons_are_kept(self, make_project, png) -> None:
        declared = [{"src": "custom.png", "sizes": "192x192", "type": "image/png"}]
        project = make_project(
            {"name": "app"},
            {"src/icon.png": png(), "src/manifest.json": json.dumps({"icons": declared})},
        )
        bundle = await make_bundle(project, icon=project.root / "src" / "icon.png")
        await bundle.build()

        assert manifest_data(bundle)["icons"] == declared
        assert bundle.children == []

    @pytest.mark.asyncio
    async def test_icon_change_rebuilds_child(self, make_project, png) -> None:
        project = make_project({"name": "app"}, {"src/icon.png": png(), "src/manifest.json": "{}"})
        bundle = await make_bundle(project, icon=project.root / "src" / "icon.png", icons=SMALL_ICONS)
        await bundle.build()

        icon = project.root / "src" / "icon.png"
        icon.write_bytes(png(32, 32, (0, 0, 255, 255)))
        await bundle.build(icon)
        assert bundle.children[0].builds == 2

        await bundle.build(project.root / "src" / "manifest.json")
        assert bundle.children[0].builds == 2
