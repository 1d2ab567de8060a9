"""Source linters used by bundlers and ``rna lint``."""

from .base import FileLintResult, Linter, LintMessage, LintResult, Severity
from .script import ScriptLinter
from .style import StyleLinter

__all__ = [
    "FileLintResult",
    "LintMessage",
    "LintResult",
    "Linter",
    "ScriptLinter",
    "Severity",
    "StyleLinter",
]
