"""
Line-level source maps.

Bundlers assemble their output as ``OutputLine`` values, each remembering
the source line it came from. ``render`` joins the text and ``source_map``
produces a version 3 map with one segment per mapped line.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


@dataclass(frozen=True)
class OutputLine:
    text: str
    source: Path | None = None
    line: int = 0


def encode_vlq(value: int) -> str:
    """Base64 VLQ encoding of one signed integer."""
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    encoded = ""
    while True:
        digit = vlq & 31
        vlq >>= 5
        if vlq:
            digit |= 32
        encoded += BASE64[digit]
        if not vlq:
            return encoded


def render(lines: list[OutputLine]) -> str:
    return "\n".join(line.text for line in lines) + "\n"


def source_map(lines: list[OutputLine], output: Path, sources_content: dict[Path, str]) -> str:
    """
    Build a source map for ``output``.

    Args:
        lines: Output lines with their origins
        output: The generated file, used to relativize source paths
        sources_content: Original text of every source
    """
    sources: list[Path] = []
    index: dict[Path, int] = {}
    segments: list[str] = []
    prev_source = 0
    prev_line = 0

    for line in lines:
        if line.source is None:
            segments.append("")
            continue
        if line.source not in index:
            index[line.source] = len(sources)
            sources.append(line.source)
        source_index = index[line.source]
        original_line = line.line - 1
        segments.append(
            encode_vlq(0)
            + encode_vlq(source_index - prev_source)
            + encode_vlq(original_line - prev_line)
            + encode_vlq(0)
        )
        prev_source = source_index
        prev_line = original_line

    data = {
        "version": 3,
        "file": output.name,
        "sources": [Path(os.path.relpath(s, output.parent)).as_posix() for s in sources],
        "sourcesContent": [sources_content.get(s, "") for s in sources],
        "names": [],
        "mappings": ";".join(segments),
    }
    return json.dumps(data)


def split_lines(text: str, source: Path | None, first_line: int = 1) -> list[OutputLine]:
    """Split ``text`` into output lines starting at ``first_line`` of ``source``."""
    return [
        OutputLine(part, source, first_line + offset)
        for offset, part in enumerate(text.split("\n"))
    ]
