"""Script linter."""

from __future__ import annotations

import re
from pathlib import Path

from rna.core.files import SCRIPT_EXTENSIONS

from .base import Linter, LintMessage, Rule, Severity

DECLARATION_RE = re.compile(r"^\s*(?:export\s+)?(?:const|let|var|function|class)\s+([A-Za-z_$][\w$]*)")


class ScriptLinter(Linter):
    extensions = SCRIPT_EXTENSIONS
    rules = (
        Rule("no-debugger", re.compile(r"\bdebugger\b"), "Unexpected 'debugger' statement", Severity.ERROR),
        Rule("no-console", re.compile(r"\bconsole\.(?:log|debug|info)\b"), "Unexpected console statement"),
        Rule("no-var", re.compile(r"^\s*var\s"), "Unexpected var, use let or const instead"),
        Rule("eqeqeq", re.compile(r"[^=!<>]==(?!=)|!=(?!=)"), "Expected '===' and instead saw '=='"),
        Rule("no-trailing-spaces", re.compile(r"[ \t]+$"), "Trailing spaces not allowed"),
    )

    def name(self) -> str:
        return "script"

    def check(self, path: Path, text: str) -> list[LintMessage]:
        """Report top-level names declared twice in the same file."""
        severity = self._severity(Rule("no-redeclare", DECLARATION_RE, "", Severity.ERROR))
        if severity is None:
            return []

        seen: dict[str, int] = {}
        messages = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            if line[:1].isspace():
                continue
            match = DECLARATION_RE.match(line)
            if not match:
                continue
            declared = match.group(1)
            if declared in seen:
                messages.append(
                    LintMessage(
                        "no-redeclare",
                        severity,
                        lineno,
                        match.start(1) + 1,
                        f"'{declared}' is already defined on line {seen[declared]}",
                    )
                )
            else:
                seen[declared] = lineno
        return messages
