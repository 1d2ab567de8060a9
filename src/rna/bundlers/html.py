"""
HTML bundler.

Copies a page to the output directory. Local scripts, stylesheets and the web
manifest are built through child bundles; other local assets (images, icons,
media) are copied. References in the page are rewritten to the built files.
"""

from __future__ import annotations

import html
import logging
import os
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from pathlib import Path

from rna.core.config import ScriptFormat
from rna.core.errors import ConfigError, make_build_error
from rna.core.events import BundleEvent
from rna.core.files import is_markup_file

from .base import Bundle
from .options import BundlerKind, HTMLOptions, ScriptOptions, StyleOptions, WebManifestOptions
from .script import ScriptBundler
from .style import StyleBundler
from .webmanifest import WebManifestBundler

logger = logging.getLogger(__name__)

ASSET_ATTRIBUTES = {
    "img": ("src",),
    "source": ("src",),
    "audio": ("src",),
    "video": ("src", "poster"),
}
ICON_RELS = {"icon", "shortcut icon", "apple-touch-icon", "mask-icon"}


@dataclass
class Reference:
    kind: str
    attr: str
    value: str
    module: bool = False


@dataclass
class Tag:
    start: int
    text: str
    line: int
    column: int
    references: list[Reference] = field(default_factory=list)


class ReferenceParser(HTMLParser):
    """Collect local references and a few landmarks of an HTML page."""

    def __init__(self, source: str):
        super().__init__(convert_charrefs=True)
        self._line_starts = [0] + [m.end() for m in re.finditer("\n", source)]
        self.tags: list[Tag] = []
        self.head_start: int | None = None
        self.head_end: int | None = None
        self.title: tuple[int, int] | None = None
        self.has_base = False
        self.has_description = False
        self._title_start: int | None = None

    def _offset(self) -> int:
        line, column = self.getpos()
        return self._line_starts[line - 1] + column

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        attributes = {name: value or "" for name, value in attrs}
        start = self._offset()
        text = self.get_starttag_text() or ""
        line, column = self.getpos()
        references: list[Reference] = []

        if tag == "head":
            self.head_start = start + len(text)
        elif tag == "title":
            self._title_start = start + len(text)
        elif tag == "base":
            self.has_base = True
        elif tag == "meta" and attributes.get("name", "").lower() == "description":
            self.has_description = True
        elif tag == "script" and attributes.get("src"):
            module = attributes.get("type", "").lower() == "module"
            references.append(Reference("script", "src", attributes["src"], module))
        elif tag == "link" and attributes.get("href"):
            rel = attributes.get("rel", "").lower().strip()
            if "stylesheet" in rel.split():
                references.append(Reference("style", "href", attributes["href"]))
            elif rel == "manifest":
                references.append(Reference("manifest", "href", attributes["href"]))
            elif rel in ICON_RELS:
                references.append(Reference("asset", "href", attributes["href"]))
        elif tag in ASSET_ATTRIBUTES:
            for attr in ASSET_ATTRIBUTES[tag]:
                if attributes.get(attr):
                    references.append(Reference("asset", attr, attributes[attr]))

        if references:
            self.tags.append(Tag(start, text, line, column + 1, references))

    def handle_endtag(self, tag: str) -> None:
        if tag == "head":
            self.head_end = self._offset()
        elif tag == "title" and self._title_start is not None:
            self.title = (self._title_start, self._offset())
            self._title_start = None


def is_external(url: str) -> bool:
    return url.startswith(("http:", "https:", "//", "data:", "#", "/", "mailto:"))


def replace_attribute(tag_text: str, attr: str, value: str, new_value: str) -> str:
    pattern = re.compile(rf"""(\b{attr}\s*=\s*["']?){re.escape(value)}""", re.I)
    return pattern.sub(lambda m: m.group(1) + new_value, tag_text, count=1)


class HTMLBundler(Bundle):
    kind = BundlerKind.HTML
    options_type = HTMLOptions
    label = "html"

    def _configure(self, options: HTMLOptions) -> HTMLOptions:
        if options.input is None:
            raise ConfigError(f'missing "input" option for {self.label}')
        if not is_markup_file(options.input):
            raise ConfigError(f"{options.input} is not an HTML file")
        if not options.output.suffix:
            return options.model_copy(update={"output": options.output / options.input.name})
        return options

    @property
    def output_dir(self) -> Path:
        return self.output.parent

    def _target(self, path: Path, suffix: str | None = None) -> Path:
        """Output location of a referenced file, relative to the output directory."""
        relative = Path(os.path.relpath(path, self.input.parent))
        if relative.parts and relative.parts[0] == "..":
            relative = Path(path.name)
        return relative.with_suffix(suffix) if suffix else relative

    async def _reference(self, ref: Reference, path: Path, changed: set[Path], outputs: dict[Path, bytes]) -> str | None:
        """Build or copy one referenced file; returns the new reference."""
        options = self.options
        shared = {
            "targets": options.targets,
            "map": options.map,
            "lint": options.lint,
            "production": options.production,
        }

        if ref.kind == "script":
            if not options.scripts:
                return None
            target = self._target(path, ".js")
            script_format = ScriptFormat.ESM if ref.module else (options.format or ScriptFormat.IIFE)
            child = await self.child_bundle(
                ScriptBundler,
                ScriptOptions(
                    input=path,
                    output=self.output_dir / target,
                    format=script_format,
                    bundle=True,
                    jsx=options.jsx,
                    **shared,
                ),
            )
        elif ref.kind == "style":
            if not options.styles:
                return None
            target = self._target(path, ".css")
            child = await self.child_bundle(
                StyleBundler, StyleOptions(input=path, output=self.output_dir / target, **shared)
            )
        elif ref.kind == "manifest":
            if not options.webmanifest:
                return None
            target = self._target(path)
            child = await self.child_bundle(
                WebManifestBundler,
                WebManifestOptions(
                    input=path,
                    output=self.output_dir / target,
                    description=options.description,
                    scope=options.base,
                    **shared,
                ),
            )
        else:
            target = self._target(path)
            outputs[self.output_dir / target] = path.read_bytes()
            return target.as_posix()

        await self.build_child(child, changed)
        return target.as_posix()

    async def _build(self, changed: set[Path]) -> dict[Path, bytes]:
        options = self.options
        source = options.code if options.code is not None else self.read_source(self.input)
        parser = ReferenceParser(source)
        parser.feed(source)
        parser.close()

        outputs: dict[Path, bytes] = {}
        edits: list[tuple[int, int, str]] = []

        for tag in parser.tags:
            text = tag.text
            for ref in tag.references:
                if is_external(ref.value):
                    continue
                local = ref.value.split("?", 1)[0].split("#", 1)[0]
                path = self.input.parent / local
                if not path.is_file():
                    if ref.kind in ("script", "style"):
                        raise make_build_error(
                            f"Could not resolve '{ref.value}' from {self.relative(self.input)}",
                            self.input,
                            tag.line,
                            tag.column,
                            source,
                        )
                    self.emit(
                        BundleEvent.WARN,
                        input=self.input,
                        message=f"Missing asset '{ref.value}' in {self.relative(self.input)}",
                    )
                    continue
                path = self.add_resource(path)
                new_value = await self._reference(ref, path, changed, outputs)
                if new_value is not None and new_value != ref.value:
                    text = replace_attribute(text, ref.attr, ref.value, new_value)
            if text != tag.text:
                edits.append((tag.start, tag.start + len(tag.text), text))

        edits.extend(self._head_edits(parser))

        page = source
        for start, end, replacement in sorted(edits, key=lambda e: e[0], reverse=True):
            page = page[:start] + replacement + page[end:]

        logger.debug("Built page %s with %d child bundles", self.output, len(self._next_children))
        return {self.output: page.encode("utf-8"), **outputs}

    def _head_edits(self, parser: ReferenceParser) -> list[tuple[int, int, str]]:
        options = self.options
        edits: list[tuple[int, int, str]] = []
        head_additions: list[str] = []

        if options.title and parser.title is None:
            head_additions.append(f"<title>{html.escape(options.title)}</title>")
        if options.description and not parser.has_description:
            head_additions.append(f'<meta name="description" content="{html.escape(options.description)}">')

        if head_additions and parser.head_end is not None:
            edits.append((parser.head_end, parser.head_end, "".join(head_additions)))
        if options.base and not parser.has_base and parser.head_start is not None:
            edits.append((parser.head_start, parser.head_start, f'<base href="{html.escape(options.base)}">'))
        return edits
