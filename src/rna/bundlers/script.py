"""
Script bundler.

Follows static ``import`` / ``export ... from`` statements, concatenates the
reached modules dependency-first into one scope and wraps the result for the
requested format. ``require()`` and ``import()`` targets are tracked as
dependencies but left as runtime references.

Bare specifiers (``lodash``) stay external unless ``bundle`` is set, in which
case they are looked up in ``node_modules``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from rna.core.config import ScriptFormat
from rna.core.errors import ConfigError, make_build_error
from rna.core.events import BundleEvent
from rna.core.files import SCRIPT_EXTENSIONS, is_script_file, real_path
from rna.core.source import scan
from rna.linters.script import ScriptLinter

from .base import Bundle
from .options import BundlerKind, ScriptOptions
from .sourcemap import OutputLine, render, source_map, split_lines

logger = logging.getLogger(__name__)

STATIC_IMPORT_RE = re.compile(
    r"""^[ \t]*import\s+(?:(?P<clause>[\w$*{}\s,]+?)\s+from\s+)?"""
    r"""(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)[ \t]*;?""",
    re.M,
)
EXPORT_FROM_RE = re.compile(
    r"""^[ \t]*export\s+(?P<clause>\*(?:\s+as\s+[\w$]+)?|\{[^}]*\})\s+from\s+"""
    r"""(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)[ \t]*;?""",
    re.M,
)
CALL_RE = re.compile(r"""\b(?P<fn>require|import)\(\s*(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)\s*\)""")

EXPORT_DECLARATION_RE = re.compile(
    r"^(?P<indent>[ \t]*)export\s+(?=(?:async\s+)?function\b|class\b|const\b|let\b|var\b)"
    r"(?P<decl>(?:async\s+)?function\s*\*?\s*|class\s+|const\s+|let\s+|var\s+)(?P<name>[\w$]+)",
    re.M,
)
EXPORT_DEFAULT_NAMED_RE = re.compile(
    r"^(?P<indent>[ \t]*)export\s+default\s+(?P<decl>(?:async\s+)?function\s*\*?\s*|class\s+)(?P<name>[\w$]+)",
    re.M,
)
EXPORT_DEFAULT_RE = re.compile(r"^(?P<indent>[ \t]*)export\s+default\s+", re.M)
EXPORT_LIST_RE = re.compile(r"^[ \t]*export\s*\{(?P<names>[^}]*)\}(?!\s*from\b)[ \t]*;?", re.M)

INDEX_NAMES = tuple(f"index{ext}" for ext in SCRIPT_EXTENSIONS)
JSX_EXTENSIONS = (".jsx", ".tsx")


@dataclass
class Dependency:
    specifier: str
    kind: str
    start: int
    end: int
    clause: str | None = None
    path: Path | None = None

    @property
    def bundled(self) -> bool:
        return self.path is not None and self.kind in ("import", "export")


@dataclass
class Module:
    path: Path
    source: str
    code: str
    dependencies: list[Dependency] = field(default_factory=list)
    exports: dict[str, str] = field(default_factory=dict)
    id: str = ""


@dataclass(frozen=True)
class ModuleSize:
    path: str
    size: int


def camel_case(value: str) -> str:
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", value) if p]
    if not parts:
        return "bundle"
    name = parts[0][0].lower() + parts[0][1:] + "".join(p[0].upper() + p[1:] for p in parts[1:])
    return f"_{name}" if name[0].isdigit() else name


def parse_specifiers(clause: str) -> list[tuple[str, str]]:
    """Parse ``a, b as c`` into [(imported, local), ...]."""
    pairs = []
    for part in clause.split(","):
        part = part.strip()
        if not part:
            continue
        if " as " in part:
            imported, local = (p.strip() for p in part.split(" as ", 1))
        else:
            imported = local = part
        pairs.append((imported, local))
    return pairs


def resolve_file(base: Path) -> Path | None:
    """Resolve a path the way Node does: exact file, extensions, then index."""
    if base.is_file():
        return base
    for ext in SCRIPT_EXTENSIONS:
        candidate = base.with_name(base.name + ext)
        if candidate.is_file():
            return candidate
    if base.is_dir():
        package_json = base / "package.json"
        if package_json.is_file():
            data = json.loads(package_json.read_text(encoding="utf-8"))
            for field_name in ("module", "main"):
                if isinstance(data.get(field_name), str):
                    resolved = resolve_file(base / data[field_name])
                    if resolved is not None:
                        return resolved
        for name in INDEX_NAMES:
            candidate = base / name
            if candidate.is_file():
                return candidate
    return None


def resolve_package(specifier: str, importer: Path) -> Path | None:
    """Look a bare specifier up in the ``node_modules`` directories above ``importer``."""
    parts = specifier.split("/")
    size = 2 if specifier.startswith("@") else 1
    name, subpath = "/".join(parts[:size]), "/".join(parts[size:])
    for directory in importer.parents:
        package_dir = directory / "node_modules" / name
        if package_dir.is_dir():
            return resolve_file(package_dir / subpath if subpath else package_dir)
    return None


class ScriptBundler(Bundle):
    """Bundle a script entry and its static imports into one file."""

    kind = BundlerKind.SCRIPT
    options_type = ScriptOptions
    label = "script"
    linter_types = (ScriptLinter,)

    def _configure(self, options: ScriptOptions) -> ScriptOptions:
        if options.input is not None and options.code is None and not is_script_file(options.input):
            raise ConfigError(f"{options.input} is not a script file")

        updates = {}
        output = options.output
        if not output.suffix:
            stem = options.input.stem if options.input is not None else "index"
            output = output / f"{stem}.js"
            updates["output"] = output
        if options.name is None and options.format in (ScriptFormat.UMD, ScriptFormat.IIFE):
            updates["name"] = camel_case(output.stem)
        return options.model_copy(update=updates) if updates else options

    @property
    def map_file(self) -> Path:
        return self.output.with_name(self.output.name + ".map")

    # Module graph

    def _load_module(self, path: Path, text: str | None = None) -> Module:
        source = self.read_source(path) if text is None else text
        code, issue = scan(source)
        if issue is not None:
            raise make_build_error(
                f"Syntax error in {self.relative(path)}: {issue.message}",
                path,
                issue.line,
                issue.column,
                source,
            )

        module = Module(path=path, source=source, code=code)
        for match in STATIC_IMPORT_RE.finditer(code):
            module.dependencies.append(
                Dependency(match["spec"], "import", match.start(), match.end(), match["clause"])
            )
        for match in EXPORT_FROM_RE.finditer(code):
            module.dependencies.append(
                Dependency(match["spec"], "export", match.start(), match.end(), match["clause"])
            )
        for match in CALL_RE.finditer(code):
            kind = "require" if match["fn"] == "require" else "dynamic"
            module.dependencies.append(Dependency(match["spec"], kind, match.start(), match.end()))
        module.dependencies.sort(key=lambda d: d.start)

        for dep in module.dependencies:
            resolved = self._resolve(dep, module)
            dep.path = resolved
        return module

    def _resolve(self, dep: Dependency, module: Module) -> Path | None:
        specifier = dep.specifier
        if specifier.startswith((".", "/")):
            base = Path(specifier) if specifier.startswith("/") else module.path.parent / specifier
            resolved = resolve_file(base)
            if resolved is None:
                line = module.code.count("\n", 0, dep.start) + 1
                raise make_build_error(
                    f"Could not resolve '{specifier}' from {self.relative(module.path)}",
                    module.path,
                    line,
                    1,
                    module.source,
                )
            return resolved

        if not self.options.bundle:
            return None
        resolved = resolve_package(specifier, module.path)
        if resolved is None:
            self.emit(
                BundleEvent.WARN,
                input=self.input,
                message=f"Unresolved dependency '{specifier}' treated as external",
            )
        return resolved

    def _collect(self, entry: Path, text: str | None) -> list[Module]:
        """Load the module graph, dependencies first."""
        ordered: list[Module] = []
        done: set[Path] = set()
        visiting: set[Path] = set()

        def visit(path: Path, source: str | None = None) -> None:
            if path in done or path in visiting:
                return
            visiting.add(path)
            module = self._load_module(path, source)
            for dep in module.dependencies:
                if dep.bundled:
                    visit(self.add_resource(dep.path))
                elif dep.path is not None:
                    self.add_resource(dep.path)
            visiting.discard(path)
            done.add(path)
            module.id = f"__{camel_case(path.stem)}{len(ordered)}"
            ordered.append(module)

        visit(entry if text is not None else self.add_resource(entry), text)
        return ordered

    # Code generation

    def _rewrite(self, module: Module, modules: dict[Path, Module], entry: bool) -> str:
        """Replace bundled imports with local bindings and record exports."""
        code = module.code
        keep_exports = entry and self.options.format == ScriptFormat.ESM
        edits: list[tuple[int, int, str]] = []

        for dep in module.dependencies:
            if not dep.bundled:
                continue
            target = modules[real_path(dep.path)]
            statement = code[dep.start : dep.end]
            bindings = self._bindings(dep, target, module, keep_exports)
            padding = "\n" * (statement.count("\n") - bindings.count("\n"))
            edits.append((dep.start, dep.end, bindings + padding))

        for start, end, replacement in sorted(edits, reverse=True):
            code = code[:start] + replacement + code[end:]

        if keep_exports:
            return code
        return self._strip_exports(code, module)

    def _bindings(self, dep: Dependency, target: Module, module: Module, keep_exports: bool) -> str:
        clause = (dep.clause or "").strip()
        statements: list[str] = []

        if dep.kind == "export":
            if clause.startswith("*"):
                names = {k: v for k, v in target.exports.items() if k != "default"}
                if " as " in clause:
                    alias = clause.split(" as ", 1)[1].strip()
                    namespace = f"{target.id}_ns"
                    statements.append(f"var {namespace} = {self._object(target.exports)};")
                    names = {alias: namespace}
            else:
                names = {}
                for imported, exported in parse_specifiers(clause.strip("{} \n")):
                    local = self._lookup(target, imported, module)
                    if local is not None:
                        names[exported] = local
            if keep_exports and names:
                specifiers = ", ".join(v if k == v else f"{v} as {k}" for k, v in names.items())
                statements.append(f"export {{ {specifiers} }};")
            else:
                module.exports.update(names)
            return " ".join(statements)

        if not clause:
            return ""

        default, _, rest = clause.partition(",") if not clause.startswith(("{", "*")) else ("", "", clause)
        default = default.strip()
        rest = rest.strip()
        if default:
            local = self._lookup(target, "default", module)
            if local is not None and local != default:
                statements.append(f"var {default} = {local};")
        if rest.startswith("*"):
            namespace = rest.split(" as ", 1)[1].strip()
            statements.append(f"var {namespace} = {self._object(target.exports)};")
        elif rest.startswith("{"):
            for imported, local_name in parse_specifiers(rest.strip("{} \n")):
                local = self._lookup(target, imported, module)
                if local is not None and local != local_name:
                    statements.append(f"var {local_name} = {local};")
        return " ".join(statements)

    def _lookup(self, target: Module, name: str, importer: Module) -> str | None:
        local = target.exports.get(name)
        if local is None:
            self.emit(
                BundleEvent.WARN,
                input=self.input,
                message=f"'{name}' is not exported by {self.relative(target.path)}, "
                f"imported by {self.relative(importer.path)}",
            )
        return local

    def _strip_exports(self, code: str, module: Module) -> str:
        def declaration(match: re.Match[str]) -> str:
            module.exports[match["name"]] = match["name"]
            return f"{match['indent']}{match['decl']}{match['name']}"

        def default_named(match: re.Match[str]) -> str:
            module.exports["default"] = match["name"]
            return f"{match['indent']}{match['decl']}{match['name']}"

        def default_expression(match: re.Match[str]) -> str:
            local = f"{module.id}_default"
            module.exports["default"] = local
            return f"{match['indent']}var {local} = "

        def export_list(match: re.Match[str]) -> str:
            for local, exported in parse_specifiers(match["names"]):
                module.exports[exported] = local
            return "\n" * match.group(0).count("\n")

        code = EXPORT_DECLARATION_RE.sub(declaration, code)
        code = EXPORT_DEFAULT_NAMED_RE.sub(default_named, code)
        code = EXPORT_DEFAULT_RE.sub(default_expression, code)
        return EXPORT_LIST_RE.sub(export_list, code)

    @staticmethod
    def _object(exports: dict[str, str]) -> str:
        if not exports:
            return "{}"
        return "{ " + ", ".join(f"{name}: {local}" for name, local in exports.items()) + " }"

    def _exports_value(self, exports: dict[str, str]) -> str | None:
        if not exports:
            return None
        if list(exports) == ["default"]:
            return exports["default"]
        return self._object(exports)

    def _wrap(self, body: list[OutputLine], exports: dict[str, str], uses_jsx: bool) -> list[OutputLine]:
        options = self.options
        header: list[str] = []
        footer: list[str] = []
        value = self._exports_value(exports)

        jsx = options.jsx
        if uses_jsx and jsx is not None and jsx.pragma:
            header.append(f"/** @jsx {jsx.pragma} */")
            if jsx.pragma_frag:
                header.append(f"/** @jsxFrag {jsx.pragma_frag} */")
            if jsx.module and options.format == ScriptFormat.ESM:
                names = dict.fromkeys(p.split(".")[0] for p in (jsx.pragma, jsx.pragma_frag) if p)
                header.append(f"import {{ {', '.join(names)} }} from '{jsx.module}';")

        if options.format == ScriptFormat.CJS:
            header.append("'use strict';")
            if value is not None:
                footer.append(f"module.exports = {value};")
        elif options.format == ScriptFormat.IIFE:
            prefix = f"var {options.name} = " if value is not None else ""
            header.append(f"{prefix}(function () {{")
            header.append("'use strict';")
            if value is not None:
                footer.append(f"return {value};")
            footer.append("})();")
        elif options.format == ScriptFormat.UMD:
            header.extend(
                [
                    "(function (global, factory) {",
                    "typeof exports === 'object' && typeof module !== 'undefined' ? module.exports = factory() :",
                    "typeof define === 'function' && define.amd ? define(factory) :",
                    "(global = typeof globalThis !== 'undefined' ? globalThis : global || self, "
                    f"global.{options.name} = factory());",
                    "})(this, (function () {",
                    "'use strict';",
                ]
            )
            if value is not None:
                footer.append(f"return {value};")
            footer.append("}));")

        return (
            [OutputLine(line) for line in header]
            + body
            + [OutputLine(line) for line in footer]
        )

    async def _build(self, changed: set[Path]) -> dict[Path, bytes]:
        options = self.options
        if options.code is not None:
            entry = options.input or self.root / "index.js"
            modules = self._collect(entry, options.code)
        else:
            modules = self._collect(options.input, None)

        by_path = {m.path: m for m in modules}
        body: list[OutputLine] = []
        sizes: list[ModuleSize] = []
        for module in modules:
            code = self._rewrite(module, by_path, entry=module is modules[-1])
            sizes.append(ModuleSize(self.relative(module.path), len(code.encode("utf-8"))))
            body.extend(split_lines(code, module.path))

        if options.production:
            body = [OutputLine(line.text.strip(), line.source, line.line) for line in body]
            body = [line for line in body if line.text]

        entry_module = modules[-1]
        exports = {} if options.format == ScriptFormat.ESM else entry_module.exports
        uses_jsx = any(m.path.suffix in JSX_EXTENSIONS for m in modules)
        lines = self._wrap(body, exports, uses_jsx)

        outputs: dict[Path, bytes] = {}
        if options.map:
            lines.append(OutputLine(f"//# sourceMappingURL={self.map_file.name}"))
            sources = {m.path: m.source for m in modules}
            outputs[self.map_file] = source_map(lines, self.output, sources).encode("utf-8")

        outputs = {self.output: render(lines).encode("utf-8"), **outputs}

        if options.analyze:
            report = sorted(sizes, key=lambda s: s.size, reverse=True)
            self.emit(BundleEvent.ANALYSIS, input=self.input, report=report)

        logger.debug("Bundled %d modules into %s", len(modules), self.output)
        return outputs
