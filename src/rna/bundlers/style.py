"""
Style bundler.

Inlines ``@import`` / ``@use`` / ``@forward`` targets (each file once),
resolving Sass partials and ``~package`` references, and copies local
``url()`` assets next to the output.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

from rna.core.errors import ConfigError, make_build_error
from rna.core.events import BundleEvent
from rna.core.files import STYLE_EXTENSIONS, is_style_file, real_path
from rna.core.source import scan
from rna.linters.style import StyleLinter

from .base import Bundle
from .options import BundlerKind, StyleOptions
from .sourcemap import OutputLine, render, source_map, split_lines

logger = logging.getLogger(__name__)

IMPORT_RE = re.compile(
    r"""^[ \t]*@(?P<rule>import|use|forward)\s+(?:url\(\s*)?(?P<q>['"]?)(?P<spec>[^'")\s;]+)(?P=q)\s*\)?"""
    r"""(?P<rest>[^;\n]*);[ \t]*$""",
    re.M,
)
URL_RE = re.compile(r"""url\(\s*(?P<q>['"]?)(?P<url>[^'")]+)(?P=q)\s*\)""")
MINIFY_RE = re.compile(r"\s*([{};,>])\s*")

ASSETS_DIR = "assets"


def is_external(url: str) -> bool:
    return url.startswith(("http:", "https:", "//", "data:", "#", "/")) or url.startswith("sass:")


def partial_candidates(base: Path) -> list[Path]:
    """Files a Sass-style import of ``base`` may refer to, in lookup order."""
    candidates = [base]
    suffixes = STYLE_EXTENSIONS if base.suffix.lower() not in STYLE_EXTENSIONS else ("",)
    for ext in suffixes:
        candidates.append(base.with_name(f"{base.name}{ext}"))
        candidates.append(base.with_name(f"_{base.name}{ext}"))
    for ext in STYLE_EXTENSIONS:
        candidates.append(base / f"index{ext}")
        candidates.append(base / f"_index{ext}")
    return candidates


class StyleBundler(Bundle):
    """Bundle a style entry, its imports and its assets."""

    kind = BundlerKind.STYLE
    options_type = StyleOptions
    label = "style"
    linter_types = (StyleLinter,)

    def __init__(self, project=None):
        super().__init__(project)
        self._assets: dict[Path, str] = {}

    def _configure(self, options: StyleOptions) -> StyleOptions:
        if options.input is not None and options.code is None and not is_style_file(options.input):
            raise ConfigError(f"{options.input} is not a style file")
        if not options.output.suffix:
            stem = options.input.stem if options.input is not None else "index"
            return options.model_copy(update={"output": options.output / f"{stem}.css"})
        return options

    @property
    def map_file(self) -> Path:
        return self.output.with_name(self.output.name + ".map")

    def _resolve(self, specifier: str, importer: Path) -> Path | None:
        if specifier.startswith("~"):
            name = specifier[1:]
            for directory in importer.parents:
                modules = directory / "node_modules"
                if modules.is_dir():
                    for candidate in partial_candidates(modules / name):
                        if candidate.is_file():
                            return candidate
            return None

        for candidate in partial_candidates(importer.parent / specifier):
            if candidate.is_file():
                return candidate
        return None

    def _inline(
        self,
        path: Path,
        source: str,
        lines: list[OutputLine],
        seen: set[Path],
        sources: dict[Path, str],
    ) -> None:
        code, issue = scan(source, line_comments=path.suffix.lower() != ".css")
        if issue is not None:
            raise make_build_error(
                f"Syntax error in {self.relative(path)}: {issue.message}",
                path,
                issue.line,
                issue.column,
                source,
            )
        sources[path] = source
        code = self._rewrite_urls(path, code)

        position = 0
        line = 1
        for match in IMPORT_RE.finditer(code):
            specifier = match["spec"]
            if is_external(specifier) or (match["rule"] == "import" and match["rest"].strip()):
                # Remote, builtin or media-qualified imports stay as they are
                continue

            chunk = code[position : match.start()]
            lines.extend(split_lines(chunk.rstrip("\n"), path, line) if chunk.strip("\n") else [])
            line += chunk.count("\n")

            resolved = self._resolve(specifier, path)
            if resolved is None:
                raise make_build_error(
                    f"Could not resolve '{specifier}' from {self.relative(path)}",
                    path,
                    line,
                    1,
                    source,
                )
            resolved = self.add_resource(resolved)
            if resolved not in seen:
                seen.add(resolved)
                self._inline(resolved, self.read_source(resolved), lines, seen, sources)

            line += match.group(0).count("\n")
            position = match.end()
            # Skip the newline ending the import statement
            if code.startswith("\n", position):
                position += 1
                line += 1

        rest = code[position:]
        if rest.strip():
            lines.extend(split_lines(rest.rstrip("\n"), path, line))

    def _rewrite_urls(self, path: Path, code: str) -> str:
        imports = [m.span() for m in IMPORT_RE.finditer(code)]

        def replace(match: re.Match[str]) -> str:
            url = match["url"].strip()
            if is_external(url) or any(start <= match.start() < end for start, end in imports):
                return match.group(0)
            clean = url.split("?", 1)[0].split("#", 1)[0]
            asset = path.parent / clean
            if not asset.is_file():
                self.emit(
                    BundleEvent.WARN,
                    input=self.input,
                    message=f"Missing asset '{url}' in {self.relative(path)}",
                )
                return match.group(0)
            asset = self.add_resource(asset)
            target = self._assets.setdefault(asset, self._asset_name(asset))
            return f'url("{ASSETS_DIR}/{target}")'

        return URL_RE.sub(replace, code)

    @staticmethod
    def _asset_name(asset: Path) -> str:
        digest = hashlib.sha256(asset.read_bytes()).hexdigest()[:8]
        return f"{asset.stem}-{digest}{asset.suffix}"

    async def _build(self, changed: set[Path]) -> dict[Path, bytes]:
        options = self.options
        self._assets = {}
        lines: list[OutputLine] = []
        sources: dict[Path, str] = {}

        if options.code is not None:
            entry = options.input or self.root / "index.css"
            source = options.code
        else:
            entry = options.input
            source = self.read_source(entry)
        self._inline(real_path(entry), source, lines, {real_path(entry)}, sources)

        if options.production:
            lines = [
                OutputLine(MINIFY_RE.sub(r"\1", line.text.strip()), line.source, line.line)
                for line in lines
            ]
            lines = [line for line in lines if line.text]

        outputs: dict[Path, bytes] = {}
        if options.map:
            lines.append(OutputLine(f"/*# sourceMappingURL={self.map_file.name} */"))
            outputs[self.map_file] = source_map(lines, self.output, sources).encode("utf-8")

        outputs = {self.output: render(lines).encode("utf-8"), **outputs}
        assets_dir = self.output.parent / ASSETS_DIR
        for asset, name in self._assets.items():
            outputs[assets_dir / name] = asset.read_bytes()

        logger.debug("Bundled %d style sources into %s", len(sources), self.output)
        return outputs
