"""
Linter interface and lint results.

Linters check source files against a small set of rules and return a
``LintResult``. Results from several runs can be merged; re-linting a file
replaces its previous entry.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

from rna.core.source import check_syntax

logger = logging.getLogger(__name__)


class Severity(IntEnum):
    WARNING = 1
    ERROR = 2


SEVERITY_NAMES = {"off": None, "warn": Severity.WARNING, "warning": Severity.WARNING, "error": Severity.ERROR}


@dataclass(frozen=True)
class LintMessage:
    rule_id: str
    severity: Severity
    line: int
    column: int
    message: str


@dataclass
class FileLintResult:
    file_path: Path
    messages: list[LintMessage] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for m in self.messages if m.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for m in self.messages if m.severity == Severity.WARNING)


@dataclass
class LintResult:
    """Aggregated lint results, one entry per file."""

    results: list[FileLintResult] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(r.error_count for r in self.results)

    @property
    def warning_count(self) -> int:
        return sum(r.warning_count for r in self.results)

    def has_errors(self) -> bool:
        return self.error_count > 0

    def has_warnings(self) -> bool:
        return self.warning_count > 0

    def merge(self, other: LintResult) -> LintResult:
        """Combine two results; entries in ``other`` replace same-file entries."""
        replaced = {r.file_path for r in other.results}
        kept = [r for r in self.results if r.file_path not in replaced]
        return LintResult(results=kept + list(other.results))

    def format(self, root: Path | None = None) -> str:
        """Render the result as plain text (eslint "stylish" layout)."""
        lines: list[str] = []
        for result in self.results:
            if not result.messages:
                continue
            path = result.file_path
            if root is not None:
                try:
                    path = path.relative_to(root)
                except ValueError:
                    pass
            lines.append(str(path))
            for msg in result.messages:
                label = "error" if msg.severity == Severity.ERROR else "warning"
                lines.append(f"  {msg.line}:{msg.column}  {label}  {msg.message}  {msg.rule_id}")
            lines.append("")

        total = self.error_count + self.warning_count
        if total:
            lines.append(
                f"✖ {total} problem{'s' if total != 1 else ''} "
                f"({self.error_count} error{'s' if self.error_count != 1 else ''}, "
                f"{self.warning_count} warning{'s' if self.warning_count != 1 else ''})"
            )
        return "\n".join(lines)


@dataclass(frozen=True)
class Rule:
    """A line-based rule: every regex match is reported."""

    id: str
    pattern: re.Pattern[str]
    message: str
    severity: Severity = Severity.WARNING


class Linter(ABC):
    """
    Base class for source linters.

    Subclasses declare ``extensions`` and ``rules``. Rule severities can be
    overridden (or turned "off") through ``rule_config``.
    """

    extensions: tuple[str, ...] = ()
    rules: tuple[Rule, ...] = ()

    def __init__(self, rule_config: dict[str, str] | None = None):
        self.rule_config = rule_config or {}
        self.result = LintResult()

    def accepts(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def uses_line_comments(self, path: Path) -> bool:
        return True

    def _severity(self, rule: Rule) -> Severity | None:
        setting = self.rule_config.get(rule.id)
        if setting is None:
            return rule.severity
        return SEVERITY_NAMES.get(setting.lower(), rule.severity)

    def lint_source(self, path: Path, text: str) -> FileLintResult:
        """Lint one source text."""
        messages: list[LintMessage] = []

        issue = check_syntax(text, self.uses_line_comments(path))
        if issue is not None:
            messages.append(
                LintMessage("syntax", Severity.ERROR, issue.line, issue.column, f"Parsing error: {issue.message}")
            )

        for lineno, line in enumerate(text.splitlines(), start=1):
            for rule in self.rules:
                severity = self._severity(rule)
                if severity is None:
                    continue
                for match in rule.pattern.finditer(line):
                    messages.append(
                        LintMessage(rule.id, severity, lineno, match.start() + 1, rule.message)
                    )

        messages.extend(self.check(path, text))
        messages.sort(key=lambda m: (m.line, m.column))
        return FileLintResult(file_path=path, messages=messages)

    def check(self, path: Path, text: str) -> list[LintMessage]:
        """Extra whole-file checks for subclasses."""
        return []

    def lint(self, files: Iterable[Path]) -> LintResult:
        """
        Lint existing files handled by this linter.

        Results accumulate across calls on ``self.result``.
        """
        paths = [p for p in files if p.is_file() and self.accepts(p)]
        if not paths:
            return self.result

        current = LintResult()
        for path in paths:
            text = path.read_text(encoding="utf-8")
            current.results.append(self.lint_source(path, text))
            logger.debug("Linted %s", path)

        self.result = self.result.merge(current)
        return self.result

    @abstractmethod
    def name(self) -> str:
        """Human-readable linter name."""
