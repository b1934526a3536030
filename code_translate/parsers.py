"""Structural parsing: find the top-level syntactic units of a source file.

A parser either returns the units or None. None is the normal "no structure
available" answer (syntax error, unknown grammar) and sends the caller to the
line-based fallback.
"""

from __future__ import annotations

import ast
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from tree_sitter_language_pack import get_parser

logger = logging.getLogger(__name__)

# Extension -> tree-sitter grammar name
TREE_SITTER_GRAMMARS = {
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".rb": "ruby",
    ".java": "java",
    ".go": "go",
    ".php": "php",
    ".lua": "lua",
}


@dataclass(frozen=True)
class SyntacticUnit:
    start: int  # char offset
    end: int  # char offset, exclusive


class StructuralParser(Protocol):
    def parse(self, text: str) -> list[SyntacticUnit] | None: ...


def _line_starts(text: str) -> list[int]:
    return [0] + [m.end() for m in re.finditer("\n", text)]


class PythonAstParser:
    """Top-level statements via the stdlib ast module."""

    def parse(self, text: str) -> list[SyntacticUnit] | None:
        try:
            tree = ast.parse(text)
        except (SyntaxError, ValueError) as e:
            logger.debug("ast parse failed: %s", e)
            return None

        starts = _line_starts(text)

        def offset(lineno: int, col_bytes: int) -> int:
            line_start = starts[lineno - 1]
            line_end = starts[lineno] if lineno < len(starts) else len(text)
            # ast columns are UTF-8 byte offsets
            prefix = text[line_start:line_end].encode("utf-8")[:col_bytes]
            return line_start + len(prefix.decode("utf-8", errors="ignore"))

        units = []
        for node in tree.body:
            decorators = getattr(node, "decorator_list", None)
            if decorators:
                start = starts[min(d.lineno for d in decorators) - 1]
            else:
                start = offset(node.lineno, node.col_offset)
            end = offset(node.end_lineno, node.end_col_offset)
            units.append(SyntacticUnit(start, end))
        return units


class TreeSitterParser:
    """Top-level children of a tree-sitter parse tree.

    Any tree containing an error node is rejected rather than chunked.
    """

    def __init__(self, language: str):
        self.language = language

    def parse(self, text: str) -> list[SyntacticUnit] | None:
        data = text.encode("utf-8")
        try:
            parser = get_parser(self.language)
            tree = parser.parse(data)
        except Exception as e:
            # Unknown grammar, failed grammar download, binding errors
            logger.warning("tree-sitter %s unavailable: %s", self.language, e)
            return None

        root = tree.root_node
        if root.has_error:
            logger.debug("tree-sitter %s parse has errors", self.language)
            return None

        def to_char(byte_offset: int) -> int:
            return len(data[:byte_offset].decode("utf-8", errors="ignore"))

        return [
            SyntacticUnit(to_char(child.start_byte), to_char(child.end_byte))
            for child in root.children
        ]


def parser_for(path: Path, grammar: str | None = None) -> StructuralParser | None:
    """Pick a parser for a file. An explicit grammar name wins over the extension."""
    if grammar:
        if grammar == "python":
            return PythonAstParser()
        return TreeSitterParser(grammar)

    suffix = path.suffix.lower()
    if suffix == ".py":
        return PythonAstParser()
    language = TREE_SITTER_GRAMMARS.get(suffix)
    if language is None:
        return None
    return TreeSitterParser(language)
