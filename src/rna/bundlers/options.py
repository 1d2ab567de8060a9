"""
Bundle configuration variants.

Each bundler kind has its own frozen options model. All of them share the
``BundleOptions`` base fields; ``kind`` tags the variant.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from rna.core.config import JsxConfig, ScriptFormat


class BundlerKind(StrEnum):
    """Available bundler kinds."""

    SCRIPT = "script"
    STYLE = "style"
    HTML = "html"
    WEBMANIFEST = "webmanifest"
    ICON = "icon"


class BundleOptions(BaseModel):
    """
    Fields shared by every bundler.

    Attributes:
        input: Source file (absent for inline sources)
        code: Inline source text
        output: Destination file or directory
        targets: Browserslist queries
        map: Emit source maps
        lint: Lint sources before building
        production: Produce minified output
    """

    input: Path | None = None
    code: str | None = None
    output: Path | None = None
    targets: list[str] = Field(default_factory=list)
    map: bool = True
    lint: bool = True
    production: bool = False

    model_config = ConfigDict(frozen=True)


class ScriptOptions(BundleOptions):
    kind: Literal[BundlerKind.SCRIPT] = BundlerKind.SCRIPT
    format: ScriptFormat = ScriptFormat.ESM
    name: str | None = None
    bundle: bool = False
    analyze: bool = False
    jsx: JsxConfig | None = None


class StyleOptions(BundleOptions):
    kind: Literal[BundlerKind.STYLE] = BundlerKind.STYLE


class IconDefinition(BaseModel):
    """One generated icon."""

    name: str
    size: int = Field(gt=0)
    gutter: int = Field(default=0, ge=0)
    background: str | None = None

    model_config = ConfigDict(frozen=True)


class IconOptions(BundleOptions):
    kind: Literal[BundlerKind.ICON] = BundlerKind.ICON
    icons: list[IconDefinition] = Field(default_factory=list)


class WebManifestOptions(BundleOptions):
    kind: Literal[BundlerKind.WEBMANIFEST] = BundlerKind.WEBMANIFEST
    name: str | None = None
    description: str | None = None
    scope: str | None = None
    theme: str | None = None
    lang: str | None = None
    icon: Path | None = None
    icons: list[IconDefinition] | None = None


class HTMLOptions(BundleOptions):
    kind: Literal[BundlerKind.HTML] = BundlerKind.HTML
    title: str | None = None
    description: str | None = None
    base: str | None = None
    format: ScriptFormat | None = None
    scripts: bool = True
    styles: bool = True
    webmanifest: bool = True
    jsx: JsxConfig | None = None


AnyOptions = Annotated[
    ScriptOptions | StyleOptions | HTMLOptions | WebManifestOptions | IconOptions,
    Field(discriminator="kind"),
]
