"""Per-file conversion: decide whole-file vs. chunked, translate, reassemble, write."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .chunker import chunk_source
from .errors import ConversionError
from .estimator import SizeEstimator
from .parsers import parser_for
from .translator import TranslationPort, translate_many

logger = logging.getLogger(__name__)

CHUNK_SEPARATOR = "\n\n"


class ConversionState(str, Enum):
    NOT_STARTED = "not_started"
    WHOLE_FILE = "whole_file"
    CHUNKING = "chunking"
    REASSEMBLING = "reassembling"
    WRITTEN = "written"
    PREVIEWED = "previewed"
    ORIGINAL_REMOVED = "original_removed"
    ORIGINAL_KEPT = "original_kept"


@dataclass
class ConversionResult:
    source: Path
    output: Path
    text: str
    strategy: str  # "empty", "whole", "structural" or "lines"
    chunk_count: int
    state: ConversionState


def output_path_for(path: Path, target_extension: str) -> Path:
    return path.with_suffix(target_extension)


class FileConverter:
    """Converts one file at a time. Holds no per-file state between calls."""

    def __init__(
        self,
        translator: TranslationPort,
        instructions: str,
        budget: int,
        estimator: SizeEstimator,
        target_extension: str,
        chunk_mode: str = "structural",
        keep_original: bool = False,
        preview: bool = False,
        grammar: str | None = None,
    ):
        self.translator = translator
        self.instructions = instructions
        self.budget = budget
        self.estimator = estimator
        self.target_extension = target_extension
        self.chunk_mode = chunk_mode
        self.keep_original = keep_original
        self.preview = preview
        self.grammar = grammar

    async def convert(self, path: Path) -> ConversionResult:
        """Translate `path` and write the sibling output file.

        Raises ConversionError (path + cause) on any per-file failure; the
        source is left untouched in that case.
        """
        state = ConversionState.NOT_STARTED
        output = output_path_for(path, self.target_extension)
        try:
            text = path.read_text(encoding="utf-8")
            cost = self.estimator.estimate(text)

            if not text.strip():
                logger.info("%s is blank, nothing to translate", path)
                translated, strategy, chunk_count = "", "empty", 0
            elif cost <= self.budget:
                state = ConversionState.WHOLE_FILE
                translated = await self.translator.translate(self.instructions, text)
                strategy, chunk_count = "whole", 1
            else:
                state = ConversionState.CHUNKING
                chunks, strategy = chunk_source(
                    text, self.budget, self.estimator,
                    parser_for(path, self.grammar), self.chunk_mode,
                )
                chunk_count = len(chunks)
                logger.info(
                    "%s exceeds budget (%d > %d), split into %d %s chunks",
                    path, cost, self.budget, chunk_count, strategy,
                )
                pieces = await translate_many(
                    self.translator, self.instructions, [c.text for c in chunks],
                )
                state = ConversionState.REASSEMBLING
                translated = CHUNK_SEPARATOR.join(pieces)

            if self.preview:
                print(f"\nPreview of conversion for {path}:")
                print("-" * 40)
                print(translated)
                print("-" * 40)
                return ConversionResult(
                    path, output, translated, strategy, chunk_count, ConversionState.PREVIEWED,
                )

            output.parent.mkdir(parents=True, exist_ok=True)
            if translated and not translated.endswith("\n"):
                translated += "\n"
            output.write_text(translated, encoding="utf-8")
            state = ConversionState.WRITTEN
            logger.info("Translated %s to %s (%s, %d chunks)", path, output, strategy, chunk_count)

            if self.keep_original or output == path:
                state = ConversionState.ORIGINAL_KEPT
            else:
                path.unlink()
                state = ConversionState.ORIGINAL_REMOVED
                logger.info("Original file removed: %s", path)

        except Exception as e:
            logger.error("Error converting %s during %s: %s", path, state.value, e)
            raise ConversionError(path, e, stage=state.value) from e

        return ConversionResult(path, output, translated, strategy, chunk_count, state)
