"""
Bundlers.

Each bundler kind has a ``Bundle`` subclass and a frozen options model:

    bundle = create_bundle(BundlerKind.SCRIPT, project)
    await bundle.setup(ScriptOptions(input=..., output=...))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from rna.core.errors import ConfigError
from rna.core.files import FileKind, Project, file_kind

from .base import Bundle, BundleStatus
from .html import HTMLBundler
from .icon import IconBundler
from .options import (
    AnyOptions,
    BundleOptions,
    BundlerKind,
    HTMLOptions,
    IconDefinition,
    IconOptions,
    ScriptOptions,
    StyleOptions,
    WebManifestOptions,
)
from .script import ScriptBundler
from .style import StyleBundler
from .webmanifest import MANIFEST_ICONS, WebManifestBundler

BUNDLERS: dict[BundlerKind, type[Bundle]] = {
    BundlerKind.SCRIPT: ScriptBundler,
    BundlerKind.STYLE: StyleBundler,
    BundlerKind.HTML: HTMLBundler,
    BundlerKind.WEBMANIFEST: WebManifestBundler,
    BundlerKind.ICON: IconBundler,
}

FILE_KINDS: dict[FileKind, BundlerKind] = {
    FileKind.SCRIPT: BundlerKind.SCRIPT,
    FileKind.STYLE: BundlerKind.STYLE,
    FileKind.MARKUP: BundlerKind.HTML,
    FileKind.MANIFEST: BundlerKind.WEBMANIFEST,
}

_options_adapter: TypeAdapter[Any] = TypeAdapter(AnyOptions)


def create_bundle(kind: BundlerKind | str, project: Project | None = None) -> Bundle:
    """Instantiate an (unconfigured) bundle of the given kind."""
    try:
        bundle_type = BUNDLERS[BundlerKind(kind)]
    except ValueError:
        valid = ", ".join(k.value for k in BundlerKind)
        raise ConfigError(f"Unknown bundler '{kind}'. Available bundlers: {valid}") from None
    return bundle_type(project)


def bundler_kind_for(path: Path) -> BundlerKind | None:
    """Bundler kind handling a source file, by extension."""
    kind = file_kind(path)
    return FILE_KINDS.get(kind) if kind is not None else None


def parse_options(data: dict[str, Any]) -> BundleOptions:
    """Validate a ``kind``-tagged options mapping into its frozen variant."""
    try:
        return _options_adapter.validate_python(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid bundle options: {e}") from e


__all__ = [
    "BUNDLERS",
    "MANIFEST_ICONS",
    "Bundle",
    "BundleOptions",
    "BundleStatus",
    "BundlerKind",
    "HTMLBundler",
    "HTMLOptions",
    "IconBundler",
    "IconDefinition",
    "IconOptions",
    "ScriptBundler",
    "ScriptOptions",
    "StyleBundler",
    "StyleOptions",
    "WebManifestBundler",
    "WebManifestOptions",
    "bundler_kind_for",
    "create_bundle",
    "parse_options",
]
