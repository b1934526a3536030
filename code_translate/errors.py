"""Exception types for the translation pipeline.

Only ConfigError aborts a run; everything else is scoped to one file.
"""

from pathlib import Path


class CodeTranslateError(Exception):
    """Base class for pipeline errors."""


class ConfigError(CodeTranslateError):
    """Invalid configuration (non-positive budget, unknown model). Fatal before any file."""


class ParseUnavailable(CodeTranslateError):
    """Structural parse failed or no grammar exists; caller falls back to lines."""


class ChunkTooLarge(CodeTranslateError):
    """A single syntactic unit exceeds the budget on its own."""

    def __init__(self, start: int, end: int, cost: int, budget: int):
        self.start = start
        self.end = end
        self.cost = cost
        self.budget = budget
        super().__init__(
            f"Unit at chars {start}-{end} costs {cost}, over budget {budget}"
        )


class BackendError(CodeTranslateError):
    """Translation call failed, timed out, or returned unusable content."""


class ConversionError(CodeTranslateError):
    """A file could not be converted. Wraps the underlying cause."""

    def __init__(self, path: Path, cause: BaseException, stage: str = ""):
        self.path = path
        self.cause = cause
        self.stage = stage  # state the file was in when it failed
        super().__init__(f"{path}: {cause}")
