#!/usr/bin/env -S python3 -u
"""
Source-file translation pipeline (CoffeeScript → JavaScript by default)

Splits files too large for one request into syntactic-unit chunks, translates
each chunk through an LLM backend and reassembles the result. Directory jobs
keep a .lock record of pending files so an interrupted run resumes where it
stopped.

Usage:
    python3 run_convert.py src/                                # convert a directory
    python3 run_convert.py app.coffee --keep-original          # one file, keep source
    python3 run_convert.py src/ --backend anthropic --model claude-3-5-sonnet-20241022
    python3 run_convert.py src/ --dry-run                      # chunk + write, no API calls
    python3 run_convert.py src/ --preview                      # print output, write nothing
    python3 run_convert.py src/ --status                       # show pending queue
    python3 run_convert.py lib/ --source-ext .py --target-ext .ts \\
        --source-dialect "Python 3.12" --target-dialect "TypeScript 5"
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

# Load .env file
_env_path = Path(__file__).resolve().parent / ".env"
if _env_path.exists():
    with open(_env_path) as _f:
        for _line in _f:
            _line = _line.strip()
            if _line and not _line.startswith("#") and "=" in _line:
                _key, _, _val = _line.partition("=")
                os.environ.setdefault(_key.strip(), _val.strip())

from code_translate.config import (
    BACKENDS,
    CHUNK_MODES,
    DEFAULT_BACKEND,
    DEFAULT_MODEL,
    MAX_CONCURRENT_REQUESTS,
    MAX_RETRIES,
    QUEUE_FILENAME,
    REQUEST_TIMEOUT_SECONDS,
    SOURCE_DIALECT,
    SOURCE_EXTENSION,
    TARGET_DIALECT,
    TARGET_EXTENSION,
    ConvertConfig,
)
from code_translate.errors import ConfigError
from code_translate.pipeline import run_conversion


def print_status(directory: Path):
    """Print the pending queue for a directory job, then exit."""
    record = directory / QUEUE_FILENAME
    if not record.exists():
        print(f"No batch in progress in {directory}")
        return
    with open(record, encoding="utf-8") as f:
        pending = [line.strip() for line in f if line.strip()]
    print(f"{len(pending)} files pending in {record}:")
    for p in pending:
        print(f"  {p}")


async def _run(config: ConvertConfig):
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _interrupt():
        if stop_event.is_set():
            raise KeyboardInterrupt
        print("\nInterrupt: finishing the current file, then stopping (Ctrl-C again to abort)")
        stop_event.set()

    try:
        loop.add_signal_handler(signal.SIGINT, _interrupt)
    except NotImplementedError:
        pass  # Windows: default KeyboardInterrupt handling

    return await run_conversion(config, stop_event=stop_event)


def main():
    parser = argparse.ArgumentParser(
        description="Translate oversized source files through an LLM, chunk by chunk",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("path", type=Path, help="Source file or directory to convert")
    parser.add_argument(
        "--backend", choices=sorted(BACKENDS), default=DEFAULT_BACKEND,
        help=f"Translation backend (default: {DEFAULT_BACKEND})",
    )
    parser.add_argument(
        "--model", default=DEFAULT_MODEL,
        help=f"Model identifier, must be allowed for the backend (default: {DEFAULT_MODEL})",
    )
    parser.add_argument("--source-dialect", default=SOURCE_DIALECT)
    parser.add_argument("--target-dialect", default=TARGET_DIALECT)
    parser.add_argument("--caveats", default="", help="Extra instructions for the translator")
    parser.add_argument(
        "--instructions", type=Path, default=None,
        help="File whose contents replace the generated instructions",
    )
    parser.add_argument("--source-ext", default=SOURCE_EXTENSION)
    parser.add_argument("--target-ext", default=TARGET_EXTENSION)
    parser.add_argument(
        "--chunk-mode", choices=CHUNK_MODES, default="structural",
        help="Prefer syntactic units (falls back to lines) or always split by line",
    )
    parser.add_argument(
        "--grammar", default=None,
        help="Structural grammar to use regardless of extension (e.g. python, javascript)",
    )
    parser.add_argument(
        "--tokenizer", type=Path, default=None,
        help="HuggingFace tokenizer.json for tighter size estimates",
    )
    parser.add_argument(
        "--keep-original", action="store_true",
        help="Keep source files after successful conversion",
    )
    parser.add_argument(
        "--preview", action="store_true",
        help="Print converted output instead of writing files",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Chunk and write files without calling the backend (chunks echoed back)",
    )
    parser.add_argument(
        "--max-concurrent", type=int, default=MAX_CONCURRENT_REQUESTS,
        help=f"Max concurrent chunk requests (default: {MAX_CONCURRENT_REQUESTS})",
    )
    parser.add_argument(
        "--timeout", type=float, default=REQUEST_TIMEOUT_SECONDS,
        help=f"Per-request timeout in seconds (default: {REQUEST_TIMEOUT_SECONDS})",
    )
    parser.add_argument(
        "--max-retries", type=int, default=MAX_RETRIES,
        help=f"Retries for transient backend errors (default: {MAX_RETRIES})",
    )
    parser.add_argument(
        "--status", action="store_true",
        help="Print the pending queue for a directory and exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.status:
        print_status(args.path.resolve())
        return

    config = ConvertConfig(
        input_path=args.path,
        source_dialect=args.source_dialect,
        target_dialect=args.target_dialect,
        caveats=args.caveats,
        instructions_path=args.instructions,
        backend=args.backend,
        model=args.model,
        keep_original=args.keep_original,
        chunk_mode=args.chunk_mode,
        grammar=args.grammar,
        preview=args.preview,
        dry_run=args.dry_run,
        source_extension=args.source_ext,
        target_extension=args.target_ext,
        tokenizer_path=args.tokenizer,
        max_concurrent=args.max_concurrent,
        timeout_seconds=args.timeout,
        max_retries=args.max_retries,
    )

    try:
        summary = asyncio.run(_run(config))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    if summary.failed or summary.remaining:
        sys.exit(1)


if __name__ == "__main__":
    main()
