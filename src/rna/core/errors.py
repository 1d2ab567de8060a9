"""
Error types for target resolution, bundle configuration and builds.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class RnaError(Exception):
    """Base exception for all rna errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class ResolutionError(RnaError):
    """
    Raised when CLI arguments cannot be turned into build targets.

    Examples:
    - Patterns matching no file, directory or workspace
    - Package without any buildable field and no output override
    - File entry without an output destination
    """

    pass


class ConfigError(RnaError):
    """
    Raised when a bundle is set up with an invalid configuration.

    Examples:
    - Missing input or output
    - Unsupported script format
    - Input file kind not handled by the bundler
    """

    pass


class BuildError(RnaError):
    """
    Raised when a bundler fails to produce its output.

    Examples:
    - Unreadable or malformed source files
    - Lint errors when linting is enabled
    - Image decoding failures
    """

    pass


class LintError(BuildError):
    """Raised when lint errors prevent a build from completing."""

    pass


class WriteError(BuildError):
    """Raised when build output cannot be persisted to disk."""

    pass


@dataclass
class ErrorContext:
    """
    Source location attached to an error.

    Attributes:
        file: Path to the source file where the error occurred
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional source excerpt around the error
    """

    file: Path
    line: int
    column: int
    snippet: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "src/index.js:10:5"
        """
        location = f"{self.file}:{self.line}:{self.column}"
        if self.snippet:
            return f"{location}\n{self._format_snippet()}"
        return location

    def _format_snippet(self) -> str:
        """Format the snippet with line numbers and an error marker."""
        if not self.snippet:
            return ""

        lines = self.snippet.split("\n")
        formatted = []

        # Snippets start one line above the error
        start_line = max(1, self.line - 1)

        for i, line in enumerate(lines):
            line_num = start_line + i
            prefix = f"{line_num:4d} | "
            formatted.append(prefix + line)

            if line_num == self.line:
                marker_pos = len(prefix) + self.column - 1
                formatted.append(" " * marker_pos + "^^^")

        return "\n".join(formatted)


def make_build_error(
    message: str,
    file: Path | None = None,
    line: int | None = None,
    column: int | None = None,
    source: str | None = None,
) -> BuildError:
    """
    Helper to create a BuildError with optional location context.

    Args:
        message: Error description
        file: Optional source file path
        line: Optional line number
        column: Optional column number
        source: Optional full source text, used to cut a snippet

    Returns:
        BuildError with context if a location was provided
    """
    if file and line and column:
        snippet = None
        if source is not None:
            lines = source.splitlines()
            snippet = "\n".join(lines[max(0, line - 2) : line + 1])
        return BuildError(message, ErrorContext(file=file, line=line, column=column, snippet=snippet))
    return BuildError(message)
