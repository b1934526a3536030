"""Main pipeline orchestrator: queue → convert file → checkpoint."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from .config import BACKENDS, CHUNK_MODES, ConvertConfig, compute_budget, validate_model
from .converter import FileConverter, output_path_for
from .errors import ConfigError, ConversionError
from .estimator import CharRatioEstimator, SizeEstimator, TokenizerEstimator
from .prompts import build_instructions, build_messages
from .translator import DryRunTranslator, LiteLLMTranslator, TranslationPort
from .work_queue import BatchQueue

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    converted: list[Path] = field(default_factory=list)
    failed: dict[Path, str] = field(default_factory=dict)
    skipped: list[Path] = field(default_factory=list)
    remaining: int = 0
    interrupted: bool = False

    def print_summary(self):
        print(f"\n=== Conversion Complete ===")
        print(f"Converted: {len(self.converted)} | Failed: {len(self.failed)} | "
              f"Remaining: {self.remaining} | Skipped: {len(self.skipped)}")
        for path, cause in self.failed.items():
            print(f"  FAILED {path}: {cause}")
        if self.interrupted:
            print("Stopped early by interrupt")


def build_estimator(config: ConvertConfig) -> SizeEstimator:
    if config.tokenizer_path is not None:
        return TokenizerEstimator.from_file(config.tokenizer_path)
    return CharRatioEstimator()


def build_translator(config: ConvertConfig) -> TranslationPort:
    if config.dry_run:
        return DryRunTranslator()
    return LiteLLMTranslator(
        backend=config.backend,
        model=config.model,
        max_concurrent=config.max_concurrent,
        timeout_seconds=config.timeout_seconds,
        max_retries=config.max_retries,
    )


def build_converter(
    config: ConvertConfig,
    translator: TranslationPort | None = None,
    estimator: SizeEstimator | None = None,
) -> FileConverter:
    """Validate config and wire a FileConverter. Raises ConfigError before any file is touched."""
    validate_model(config.backend, config.model)
    if config.chunk_mode not in CHUNK_MODES:
        raise ConfigError(f"Unknown chunk mode {config.chunk_mode!r} (choose from {', '.join(CHUNK_MODES)})")

    try:
        instructions = build_instructions(config)
    except OSError as e:
        raise ConfigError(f"Cannot read instructions file {config.instructions_path}: {e}") from e

    estimator = estimator or build_estimator(config)
    # Everything sent with each chunk besides the chunk itself
    overhead = sum(estimator.estimate(m["content"]) for m in build_messages(instructions, ""))
    backend = BACKENDS[config.backend]
    budget = compute_budget(backend["token_limit"], backend["response_reserve"], overhead)

    return FileConverter(
        translator=translator or build_translator(config),
        instructions=instructions,
        budget=budget.ceiling,
        estimator=estimator,
        target_extension=config.target_extension,
        chunk_mode=config.chunk_mode,
        keep_original=config.keep_original,
        preview=config.preview,
        grammar=config.grammar,
    )


async def run_conversion(
    config: ConvertConfig,
    translator: TranslationPort | None = None,
    estimator: SizeEstimator | None = None,
    stop_event: asyncio.Event | None = None,
) -> BatchSummary:
    """Main pipeline entry point: one file or a whole directory."""
    print(f"=== {config.source_dialect} → {config.target_dialect} Conversion ===")
    print(f"Input: {config.input_path}")
    print(f"Backend: {config.backend} / {config.model}")
    if config.dry_run:
        print("DRY RUN — no API calls will be made")
    if config.preview:
        print("PREVIEW — no files will be written")
    print()

    input_path = config.input_path
    if not input_path.exists():
        raise ConfigError(f"Input path {input_path} does not exist")

    converter = build_converter(config, translator, estimator)
    print(f"Chunk budget: {converter.budget} tokens ({config.chunk_mode} mode)")

    start_time = time.monotonic()
    if input_path.is_dir():
        summary = await run_directory(input_path, converter, config.source_extension, stop_event)
    else:
        summary = await run_single(input_path, converter, config.source_extension)

    summary.print_summary()
    print(f"Time: {time.monotonic() - start_time:.0f}s")
    return summary


async def run_single(path: Path, converter: FileConverter, source_extension: str) -> BatchSummary:
    summary = BatchSummary()
    if path.suffix != source_extension:
        print(f"Skipping non-{source_extension} file: {path}")
        summary.skipped.append(path)
        return summary

    try:
        await converter.convert(path)
    except ConversionError as e:
        summary.failed[path] = str(e.cause)
        summary.remaining = 1
    else:
        summary.converted.append(path)
    return summary


async def run_directory(
    directory: Path,
    converter: FileConverter,
    source_extension: str,
    stop_event: asyncio.Event | None = None,
) -> BatchSummary:
    """Convert every pending file in `directory`, checkpointing after each success.

    Failed files stay queued for the next run; the record is removed once empty.
    """
    summary = BatchSummary()

    if converter.preview:
        # Preview never touches the queue record
        for path in sorted(p for p in directory.resolve().rglob(f"*{source_extension}") if p.is_file()):
            try:
                await converter.convert(path)
            except ConversionError as e:
                summary.failed[path] = str(e.cause)
            else:
                summary.converted.append(path)
        return summary

    queue = BatchQueue.load_or_create(directory, source_extension)
    if not len(queue) and not queue.resumed:
        print(f"No {source_extension} files found in {directory}")
        return summary

    pending = queue.pending
    print(f"{'Resuming' if queue.resumed else 'Starting'} batch: {len(pending)} files")

    for i, path in enumerate(pending, 1):
        if stop_event is not None and stop_event.is_set():
            summary.interrupted = True
            break

        print(f"  [{i}/{len(pending)}] {path}...", end=" ", flush=True)

        if not path.exists():
            output = output_path_for(path, converter.target_extension)
            if output.exists():
                # Converted and removed before the last checkpoint landed
                print("already converted", flush=True)
                queue.complete(path)
                summary.converted.append(path)
                continue

        try:
            result = await converter.convert(path)
        except ConversionError as e:
            print("FAILED", flush=True)
            summary.failed[path] = str(e.cause)
            continue

        queue.complete(path)
        summary.converted.append(path)
        print(f"OK ({result.strategy}, {result.chunk_count} chunks)", flush=True)

    summary.remaining = len(queue)
    if not queue.finish():
        print(f"{summary.remaining} files remain queued in {queue.record_path}; rerun to resume")
    return summary
