"""
Lexical helpers shared by the script and style bundlers and the linters.

The scanner understands string literals and comments well enough to strip
comments and to check bracket balance. It is not a parser.
"""

from __future__ import annotations

from dataclasses import dataclass

PAIRS = {")": "(", "]": "[", "}": "{"}
OPENERS = set(PAIRS.values())


@dataclass(frozen=True)
class SyntaxIssue:
    """A lexical problem found in a source file."""

    line: int
    column: int
    message: str


def _position(text: str, index: int) -> tuple[int, int]:
    line = text.count("\n", 0, index) + 1
    column = index - (text.rfind("\n", 0, index) + 1) + 1
    return line, column


def _skip_string(text: str, start: int) -> int:
    """Return the index just past the string literal opening at ``start``."""
    quote = text[start]
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and quote != "`":
            # Unterminated single-line string; let the caller carry on
            return i
        i += 1
    return i


def scan(text: str, line_comments: bool = True) -> tuple[str, SyntaxIssue | None]:
    """
    Strip comments and check bracket balance in one pass.

    Args:
        text: Source text
        line_comments: Whether ``//`` starts a comment (JS, SCSS; not CSS)

    Returns:
        (text without comments, first syntax issue or None)
    """
    out: list[str] = []
    stack: list[tuple[str, int]] = []
    issue: SyntaxIssue | None = None
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if ch in "\"'`":
            end = _skip_string(text, i)
            out.append(text[i:end])
            i = end
            continue

        if ch == "/" and nxt == "*":
            end = text.find("*/", i + 2)
            if end == -1:
                if issue is None:
                    issue = SyntaxIssue(*_position(text, i), "Unterminated comment")
                break
            # Keep line count stable for later diagnostics
            out.append("\n" * text.count("\n", i, end))
            i = end + 2
            continue

        if ch == "/" and nxt == "/" and line_comments:
            # Leave protocol-relative URLs alone (url(//cdn...))
            if not (i > 0 and text[i - 1] == ":"):
                end = text.find("\n", i)
                i = n if end == -1 else end
                continue

        if ch in OPENERS:
            stack.append((ch, i))
        elif ch in PAIRS:
            if not stack or stack[-1][0] != PAIRS[ch]:
                if issue is None:
                    issue = SyntaxIssue(*_position(text, i), f"Unexpected token '{ch}'")
            else:
                stack.pop()

        out.append(ch)
        i += 1

    if issue is None and stack:
        opener, index = stack[-1]
        issue = SyntaxIssue(*_position(text, index), f"Unclosed '{opener}'")

    return "".join(out), issue


def strip_comments(text: str, line_comments: bool = True) -> str:
    return scan(text, line_comments)[0]


def check_syntax(text: str, line_comments: bool = True) -> SyntaxIssue | None:
    return scan(text, line_comments)[1]
