"""
Web app manifest bundler.

Completes a manifest with defaults taken from the options and the project's
package.json. When an icon is configured and the manifest declares no icons,
a child ``IconBundler`` renders the standard icon set.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from rna.core.errors import ConfigError, make_build_error
from rna.core.files import real_path

from .base import Bundle
from .icon import IconBundler
from .options import BundlerKind, IconDefinition, IconOptions, WebManifestOptions

logger = logging.getLogger(__name__)

MANIFEST_ICONS = [
    IconDefinition(name=f"android-chrome-{size}x{size}.png", size=size)
    for size in (36, 48, 72, 96, 144, 192, 256, 384, 512)
]


class WebManifestBundler(Bundle):
    kind = BundlerKind.WEBMANIFEST
    options_type = WebManifestOptions
    label = "webmanifest"

    def _configure(self, options: WebManifestOptions) -> WebManifestOptions:
        if options.input is None:
            raise ConfigError(f'missing "input" option for {self.label}')
        if not options.output.suffix:
            return options.model_copy(update={"output": options.output / options.input.name})
        return options

    def _project_field(self, key: str) -> Any:
        return self.project.get(key) if self.project is not None else None

    def _read_manifest(self) -> dict[str, Any]:
        path = self.input
        if not path.exists():
            return {}
        source = self.read_source(path)
        try:
            data = json.loads(source)
        except json.JSONDecodeError as e:
            raise make_build_error(
                f"Invalid manifest {self.relative(path)}: {e.msg}", path, e.lineno, e.colno, source
            ) from e
        if not isinstance(data, dict):
            raise make_build_error(f"Manifest {self.relative(path)} must be a JSON object")
        return data

    async def _build(self, changed: set[Path]) -> dict[Path, bytes]:
        options = self.options
        manifest = self._read_manifest()

        manifest["name"] = manifest.get("name") or options.name or self._project_field("name")
        manifest["short_name"] = manifest.get("short_name") or manifest["name"]
        manifest["description"] = (
            manifest.get("description") or options.description or self._project_field("description")
        )
        manifest["start_url"] = manifest.get("start_url") or "/"
        manifest["scope"] = manifest.get("scope") or options.scope or "/"
        manifest["display"] = manifest.get("display") or "standalone"
        manifest["orientation"] = manifest.get("orientation") or "any"
        manifest["theme_color"] = manifest.get("theme_color") or options.theme
        manifest["background_color"] = manifest.get("background_color") or "#fff"
        manifest["lang"] = manifest.get("lang") or options.lang or "en-US"

        if options.icon is not None and not manifest.get("icons"):
            manifest["icons"] = await self._build_icons(changed)

        manifest = {key: value for key, value in manifest.items() if value}
        data = json.dumps(manifest, indent=2) + "\n"
        return {self.output: data.encode("utf-8")}

    async def _build_icons(self, changed: set[Path]) -> list[dict[str, str]]:
        options = self.options
        icon = real_path(options.icon)
        # Icons land next to the manifest, mirroring the icon's location
        relative_dir = Path(os.path.relpath(icon, self.input.parent)).parent
        icon_dir = (self.output.parent / relative_dir).resolve()

        child = await self.child_bundle(
            IconBundler,
            IconOptions(
                input=icon,
                output=icon_dir,
                icons=options.icons or MANIFEST_ICONS,
                map=False,
                lint=False,
            ),
        )
        await self.build_child(child, changed)

        return [
            {
                "src": Path(os.path.relpath(path, self.output.parent)).as_posix(),
                "sizes": f"{definition.size}x{definition.size}",
                "type": "image/png",
            }
            for definition, path in child.generated
        ]
