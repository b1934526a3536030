"""Split source files into translation-sized chunks."""

import logging
import re
from dataclasses import dataclass

from .errors import ChunkTooLarge, ConfigError, ParseUnavailable
from .estimator import SizeEstimator
from .parsers import StructuralParser, SyntacticUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Chunk:
    index: int
    start: int  # char offset of the first unit/line
    end: int  # exclusive
    text: str
    cost: int
    unit_count: int


def parse_units(text: str, parser: StructuralParser | None) -> list[SyntacticUnit]:
    """Run the structural parse, raising ParseUnavailable when there is none."""
    if parser is None:
        raise ParseUnavailable("no structural parser for this dialect")
    units = parser.parse(text)
    if units is None:
        raise ParseUnavailable(f"{type(parser).__name__} could not parse the source")
    return units


def _line_pieces(
    text: str,
    start: int,
    end: int,
    estimator: SizeEstimator,
    budget: int,
) -> list[tuple[int, int, int, int]]:
    """Split text[start:end] at newlines (kept) into (start, end, cost, 0) pieces."""
    pieces = []
    for match in re.finditer(r"[^\n]*\n|[^\n]+", text[start:end]):
        piece_start, piece_end = start + match.start(), start + match.end()
        cost = estimator.estimate(text[piece_start:piece_end])
        if cost > budget:
            logger.warning(
                "Text between units at chars %d-%d costs %d, over budget %d; sending it alone",
                piece_start, piece_end, cost, budget,
            )
        pieces.append((piece_start, piece_end, cost, 0))
    return pieces


def _unit_pieces(
    text: str,
    units: list[SyntacticUnit],
    budget: int,
    estimator: SizeEstimator,
) -> list[tuple[int, int, int, int]]:
    """Cut the text into (start, end, cost, unit_count) pieces that tile it.

    Gaps between units (blank lines, comments) ride with the following unit and
    trailing text with the last. When a gap would push its unit over budget it
    is split off at line boundaries instead. Only a unit whose own cost exceeds
    the budget raises ChunkTooLarge.
    """
    pieces = []
    prev_end = 0
    for i, unit in enumerate(units):
        unit_start = max(unit.start, prev_end)
        unit_end = max(unit.end, unit_start)
        end = len(text) if i == len(units) - 1 else unit_end

        cost = estimator.estimate(text[prev_end:end])
        if cost <= budget:
            pieces.append((prev_end, end, cost, 1))
        else:
            unit_cost = estimator.estimate(text[unit_start:unit_end])
            if unit_cost > budget:
                raise ChunkTooLarge(unit_start, unit_end, unit_cost, budget)
            pieces.extend(_line_pieces(text, prev_end, unit_start, estimator, budget))
            pieces.append((unit_start, unit_end, unit_cost, 1))
            pieces.extend(_line_pieces(text, unit_end, end, estimator, budget))
        prev_end = end
    return pieces


def structural_chunks(
    text: str,
    units: list[SyntacticUnit],
    budget: int,
    estimator: SizeEstimator,
) -> list[Chunk]:
    """Greedy first-fit grouping of whole syntactic units under `budget`.

    A unit that does not fit on its own raises ChunkTooLarge; units are never split.
    """
    if not units:
        logger.info("No top-level units found, nothing to chunk")
        return []

    chunks: list[Chunk] = []
    current_start = 0
    current_end = 0
    current_pieces = 0
    current_units = 0
    current_cost = 0

    def flush():
        chunk_text = text[current_start:current_end]
        chunks.append(Chunk(
            len(chunks), current_start, current_end, chunk_text,
            estimator.estimate(chunk_text), current_units,
        ))

    for start, end, cost, unit_count in _unit_pieces(text, units, budget, estimator):
        if current_pieces and current_cost + cost > budget:
            flush()
            current_pieces = 0
            current_units = 0
            current_cost = 0

        if not current_pieces:
            current_start = start
        current_end = end
        current_pieces += 1
        current_units += unit_count
        current_cost += cost

    if current_pieces:
        flush()

    return chunks


def line_chunks(text: str, budget: int, estimator: SizeEstimator) -> list[Chunk]:
    """Greedy grouping of lines under `budget`.

    A line over budget is not split; it becomes a chunk of its own.
    Joining the chunk texts with "\\n" gives back the input.
    """
    lines = text.split("\n")
    chunks: list[Chunk] = []
    current_lines: list[str] = []
    current_cost = 0
    chunk_offset = 0

    def flush():
        chunk_text = "\n".join(current_lines)
        chunks.append(Chunk(
            len(chunks), chunk_offset, chunk_offset + len(chunk_text), chunk_text,
            estimator.estimate(chunk_text), len(current_lines),
        ))

    for i, line in enumerate(lines):
        # Cost the newline too, so the running sum bounds the joined text
        cost = estimator.estimate(line + "\n" if i < len(lines) - 1 else line)

        if current_lines and current_cost + cost > budget:
            flush()
            chunk_offset += len(chunks[-1].text) + 1
            current_lines = []
            current_cost = 0

        if cost > budget:
            logger.warning("Line %d costs %d, over budget %d; sending it alone", i + 1, cost, budget)

        current_lines.append(line)
        current_cost += cost

    if current_lines:
        flush()

    return chunks


def chunk_source(
    text: str,
    budget: int,
    estimator: SizeEstimator,
    parser: StructuralParser | None,
    mode: str = "structural",
) -> tuple[list[Chunk], str]:
    """Chunk a file, preferring structure. Returns (chunks, strategy used)."""
    if mode not in ("structural", "lines"):
        raise ConfigError(f"Unknown chunk mode {mode!r}")

    if mode == "structural":
        try:
            units = parse_units(text, parser)
        except ParseUnavailable as e:
            logger.warning("Structural parse unavailable (%s), falling back to lines", e)
        else:
            if units or not text.strip():
                return structural_chunks(text, units, budget, estimator), "structural"
            # Comments only
            logger.info("No top-level units in non-blank source, falling back to lines")

    return line_chunks(text, budget, estimator), "lines"
