"""Tests for structural and line-based chunking."""

import ast
import logging
from unittest.mock import MagicMock

import pytest

from code_translate.chunker import chunk_source, line_chunks, parse_units, structural_chunks
from code_translate.errors import ChunkTooLarge, ConfigError, ParseUnavailable
from code_translate.parsers import PythonAstParser, SyntacticUnit


def _lines_text(n_lines: int = 100, width: int = 119) -> str:
    """n lines of `width` chars joined by newlines: 120 chars (30 tokens) per line."""
    return "\n".join(f"line {i:03d} ".ljust(width, "x") for i in range(n_lines))


# =============================================================================
# line_chunks
# =============================================================================


class TestLineChunks:
    def test_three_thousand_cost_at_budget_thousand(self, estimator):
        text = _lines_text()
        assert estimator.estimate(text) == 3000

        chunks = line_chunks(text, 1000, estimator)

        assert len(chunks) >= 3
        assert all(c.cost <= 1000 for c in chunks)
        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert "\n".join(c.text for c in chunks) == text

    def test_never_drops_a_line(self, estimator):
        text = "first\n\n  indented\n" + "y" * 50 + "\nlast\n"
        chunks = line_chunks(text, 5, estimator)
        lines = [line for c in chunks for line in c.text.split("\n")]
        assert lines == text.split("\n")

    def test_offsets_match_text(self, estimator):
        text = _lines_text(20)
        for chunk in line_chunks(text, 100, estimator):
            assert text[chunk.start:chunk.end] == chunk.text

    def test_oversized_line_gets_own_chunk(self, estimator, caplog):
        long_line = "x" * 100
        text = f"a\n{long_line}\nb"
        with caplog.at_level(logging.WARNING):
            chunks = line_chunks(text, 10, estimator)
        assert [c.text for c in chunks] == ["a", long_line, "b"]
        assert "over budget" in caplog.text

    def test_single_chunk_when_under_budget(self, estimator):
        chunks = line_chunks("one\ntwo\n", 100, estimator)
        assert len(chunks) == 1
        assert chunks[0].text == "one\ntwo\n"
        assert chunks[0].unit_count == 3


# =============================================================================
# structural_chunks
# =============================================================================


class TestStructuralChunks:
    TEXT = "aaaa\n\nbbbb\ncccc\n"
    UNITS = [SyntacticUnit(0, 4), SyntacticUnit(6, 10), SyntacticUnit(11, 15)]

    def test_groups_units_greedily(self, estimator):
        chunks = structural_chunks(self.TEXT, self.UNITS, 3, estimator)
        assert [c.text for c in chunks] == ["aaaa\n\nbbbb", "\ncccc\n"]
        assert [c.unit_count for c in chunks] == [2, 1]

    def test_chunks_tile_the_text(self, estimator):
        chunks = structural_chunks(self.TEXT, self.UNITS, 3, estimator)
        assert "".join(c.text for c in chunks) == self.TEXT
        assert chunks[0].end == chunks[1].start

    def test_whole_text_fits_one_chunk(self, estimator):
        chunks = structural_chunks(self.TEXT, self.UNITS, 100, estimator)
        assert len(chunks) == 1
        assert chunks[0].text == self.TEXT

    def test_oversized_unit_raises(self, estimator):
        text = "aaaa\n\nbbbbbbbb\n"
        with pytest.raises(ChunkTooLarge) as exc_info:
            structural_chunks(text, [SyntacticUnit(0, 4), SyntacticUnit(6, 14)], 1, estimator)
        err = exc_info.value
        assert (err.start, err.end) == (6, 14)
        assert err.cost == 2
        assert err.budget == 1

    def test_gap_is_not_charged_against_the_unit(self, estimator):
        # Each unit fits alone; only the blank lines in front of them do not
        chunks = structural_chunks(self.TEXT, self.UNITS, 1, estimator)
        assert "".join(c.text for c in chunks) == self.TEXT
        assert sum(c.unit_count for c in chunks) == 3
        assert all(c.cost <= 1 for c in chunks)

    def test_large_comment_block_split_off_at_lines(self, estimator):
        comments = "".join(f"# note {i:02d}: keep this comment with the file\n" for i in range(60))
        text = comments + "x = 1\ny = 2\n"
        units = PythonAstParser().parse(text)

        chunks = structural_chunks(text, units, 100, estimator)

        assert len(chunks) > 1
        assert all(c.cost <= 100 for c in chunks)
        assert "".join(c.text for c in chunks) == text
        assert sum(c.unit_count for c in chunks) == 2
        assert chunks[-1].text.endswith("x = 1\ny = 2\n")
        for chunk in chunks:
            ast.parse(chunk.text)

    def test_no_units_no_chunks(self, estimator):
        assert structural_chunks("# only a comment\n", [], 10, estimator) == []

    def test_python_chunks_stay_within_budget_and_parse(self, estimator):
        text = "import os\n\n" + "".join(
            f"\n\ndef func_{i}(a, b):\n    # add\n    return a + b + {i}\n" for i in range(30)
        )
        units = PythonAstParser().parse(text)
        budget = 60

        chunks = structural_chunks(text, units, budget, estimator)

        assert len(chunks) > 1
        assert all(c.cost <= budget for c in chunks)
        assert "".join(c.text for c in chunks) == text
        for chunk in chunks:
            ast.parse(chunk.text)


# =============================================================================
# parse_units / chunk_source
# =============================================================================


class TestChunkSource:
    def test_parse_units_without_parser(self):
        with pytest.raises(ParseUnavailable):
            parse_units("x", None)

    def test_parse_units_when_parser_gives_up(self):
        parser = MagicMock()
        parser.parse.return_value = None
        with pytest.raises(ParseUnavailable):
            parse_units("x", parser)

    def test_prefers_structure(self, estimator):
        text = "a = 1\nb = 2\nc = 3\n"
        chunks, strategy = chunk_source(text, 3, estimator, PythonAstParser())
        assert strategy == "structural"
        assert "".join(c.text for c in chunks) == text

    def test_falls_back_to_lines_on_parse_failure(self, estimator, caplog):
        text = "def broken(:\n    pass\n"
        with caplog.at_level(logging.WARNING):
            chunks, strategy = chunk_source(text, 3, estimator, PythonAstParser())
        assert strategy == "lines"
        assert "\n".join(c.text for c in chunks) == text
        assert "falling back to lines" in caplog.text

    def test_falls_back_without_parser(self, estimator):
        _, strategy = chunk_source("x = 1\n", 3, estimator, None)
        assert strategy == "lines"

    def test_comments_only_falls_back_to_lines(self, estimator, caplog):
        text = "".join(f"# comment line {i:03d}\n" for i in range(50))
        with caplog.at_level(logging.INFO):
            chunks, strategy = chunk_source(text, 20, estimator, PythonAstParser())
        assert strategy == "lines"
        assert len(chunks) > 1
        assert "\n".join(c.text for c in chunks) == text
        assert "No top-level units" in caplog.text

    def test_lines_mode_skips_parser(self, estimator):
        parser = MagicMock()
        _, strategy = chunk_source("x = 1\n", 3, estimator, parser, mode="lines")
        assert strategy == "lines"
        parser.parse.assert_not_called()

    def test_unknown_mode(self, estimator):
        with pytest.raises(ConfigError):
            chunk_source("x", 3, estimator, None, mode="paragraphs")
