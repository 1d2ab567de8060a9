"""Style linter."""

from __future__ import annotations

import re
from pathlib import Path

from rna.core.files import STYLE_EXTENSIONS

from .base import Linter, Rule, Severity


class StyleLinter(Linter):
    extensions = STYLE_EXTENSIONS
    rules = (
        Rule("declaration-no-important", re.compile(r"!important"), "Unexpected !important"),
        Rule("block-no-empty", re.compile(r"\{\s*\}"), "Unexpected empty block", Severity.ERROR),
        Rule(
            "color-no-invalid-hex",
            re.compile(r"#(?:[0-9a-fA-F]{5}|[0-9a-fA-F]{7}|[0-9a-fA-F]{9,})\b"),
            "Unexpected invalid hex color",
            Severity.ERROR,
        ),
        Rule("no-trailing-spaces", re.compile(r"[ \t]+$"), "Unexpected whitespace at end of line"),
    )

    def name(self) -> str:
        return "style"

    def uses_line_comments(self, path: Path) -> bool:
        # Plain CSS has no line comments
        return path.suffix.lower() != ".css"
