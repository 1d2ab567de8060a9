"""
Build configuration.

One ``BuildConfig`` is created per CLI invocation and threaded into the
planner and every bundle's options. Values come from, in increasing order of
precedence:

1. Built-in defaults
2. ``RNA_ENV`` (default for ``production`` only)
3. The ``[build]`` table of ``rna.toml`` at the project root
4. Explicit CLI flags

Example rna.toml:

    [build]
    output = "dist"
    format = "esm"
    map = false
    debounce = 0.3
    link = ["@acme/.*"]
"""

from __future__ import annotations

import tomllib
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .environment import RnaEnv, get_rna_env
from .errors import ConfigError

CONFIG_FILENAME = "rna.toml"
DEFAULT_DEBOUNCE = 0.2
DEFAULT_PORT = 3000


class ScriptFormat(StrEnum):
    """Output formats supported by the script bundler."""

    ESM = "esm"
    CJS = "cjs"
    UMD = "umd"
    IIFE = "iife"

    @classmethod
    def parse(cls, value: str) -> ScriptFormat:
        aliases = {"es": "esm", "es6": "esm", "module": "esm", "commonjs": "cjs"}
        normalized = aliases.get(value.lower(), value.lower())
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(f.value for f in cls)
            raise ConfigError(f"Unknown format '{value}'. Available formats: {valid}") from None


class JsxConfig(BaseModel):
    """JSX factory settings forwarded to script bundles."""

    pragma: str | None = None
    pragma_frag: str | None = None
    module: str | None = None

    model_config = ConfigDict(frozen=True)


class BuildConfig(BaseModel):
    """Every option of one ``rna build`` invocation."""

    output: str | None = None
    watch: bool = False
    targets: str | None = None
    use_targets: bool = True
    name: str | None = None
    format: ScriptFormat | None = None
    bundle: bool = False
    production: bool = False
    map: bool = True
    lint: bool = True
    recursive: bool = False
    link: list[str] = Field(default_factory=list)
    analyze: bool = False
    jsx: JsxConfig = Field(default_factory=JsxConfig)
    serve: bool = False
    port: int = DEFAULT_PORT
    debounce: float = Field(default=DEFAULT_DEBOUNCE, gt=0)

    model_config = ConfigDict(frozen=True)


def read_config_file(root: Path) -> dict[str, Any]:
    """Read the ``[build]`` table from ``rna.toml``, if present."""
    path = root / CONFIG_FILENAME
    if not path.exists():
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid {CONFIG_FILENAME}: {e}") from e
    build = data.get("build", {})
    if not isinstance(build, dict):
        raise ConfigError(f"[build] in {CONFIG_FILENAME} must be a table")
    return build


def load_config(
    root: Path,
    overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> BuildConfig:
    """
    Build the configuration for one invocation.

    Args:
        root: Project root holding an optional rna.toml
        overrides: CLI values; ``None`` entries mean "flag not given"
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: If rna.toml or a value is invalid
    """
    values: dict[str, Any] = {}
    if get_rna_env(environ) == RnaEnv.PRODUCTION:
        values["production"] = True

    values.update(read_config_file(root))
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    if isinstance(values.get("format"), str):
        values["format"] = ScriptFormat.parse(values["format"])
    if isinstance(values.get("link"), str):
        values["link"] = [p for p in values["link"].split(",") if p]

    try:
        return BuildConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid build configuration: {e}") from e
