"""Configuration constants and runtime config for the code translation pipeline."""

from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

# File system
SOURCE_EXTENSION = ".coffee"
TARGET_EXTENSION = ".js"
QUEUE_FILENAME = ".lock"  # pending-file record inside the target directory

# Dialects folded into the instruction text
SOURCE_DIALECT = "CoffeeScript 2.x"
TARGET_DIALECT = "ES6"

# Backends: total request size (tokens), space reserved for the reply, allowed models.
# Model identifiers are passed to litellm as-is.
BACKENDS = {
    "openai": {
        "token_limit": 8192,
        "response_reserve": 2048,
        "models": ["gpt-4o", "gpt-4o-mini", "gpt-4.1"],
    },
    "xai": {
        "token_limit": 8192,
        "response_reserve": 2048,
        "models": ["xai/grok-2-1212", "xai/grok-beta"],
    },
    "anthropic": {
        "token_limit": 8192,
        "response_reserve": 2048,
        "models": ["claude-3-7-sonnet-20250219", "claude-3-5-sonnet-20241022"],
    },
}
DEFAULT_BACKEND = "openai"
DEFAULT_MODEL = "gpt-4o-mini"

# Size estimation (1 token ~ 4 characters, rounded up)
CHARS_PER_TOKEN = 4
TOKENIZER_SAFETY_MARGIN = 1.1

# Chunking
CHUNK_MODES = ("structural", "lines")

# API
MAX_CONCURRENT_REQUESTS = 4
REQUEST_TIMEOUT_SECONDS = 120
MAX_RETRIES = 3  # transient failures only
RETRY_BASE_DELAY_SECONDS = 2.0
TEMPERATURE = 0.2


@dataclass(frozen=True)
class Budget:
    """Per-request cost ceiling left for chunk text.

    Derived from the backend's request limit minus the reply reserve and the
    fixed instruction text sent with every chunk, and never more than the reply
    reserve: a translation is about as long as its source, and the reply is
    capped at `max_tokens=response_reserve`.
    """

    token_limit: int
    response_reserve: int
    overhead: int = 0

    @property
    def ceiling(self) -> int:
        room = self.token_limit - self.response_reserve - self.overhead
        return min(room, self.response_reserve)


def compute_budget(token_limit: int, response_reserve: int, overhead: int = 0) -> Budget:
    """Build a Budget, refusing one with no room left for source text."""
    budget = Budget(token_limit, response_reserve, overhead)
    if budget.ceiling <= 0:
        raise ConfigError(
            f"Non-positive chunk budget {budget.ceiling} "
            f"(limit {token_limit} - reply {response_reserve} - instructions {overhead})"
        )
    return budget


def validate_model(backend: str, model: str) -> dict:
    """Return the backend entry, or raise ConfigError for unknown backend/model."""
    backend_config = BACKENDS.get(backend)
    if backend_config is None:
        raise ConfigError(f"Unknown backend {backend!r} (choose from {', '.join(BACKENDS)})")
    if model not in backend_config["models"]:
        raise ConfigError(
            f"Invalid model {model!r} for {backend} "
            f"(allowed: {', '.join(backend_config['models'])})"
        )
    return backend_config


@dataclass(frozen=True)
class ConvertConfig:
    """Runtime configuration, overridable via CLI."""

    input_path: Path
    source_dialect: str = SOURCE_DIALECT
    target_dialect: str = TARGET_DIALECT
    caveats: str = ""
    instructions_path: Path | None = None  # overrides the generated instructions
    backend: str = DEFAULT_BACKEND
    model: str = DEFAULT_MODEL
    keep_original: bool = False
    chunk_mode: str = "structural"  # "structural" (fallback to lines) or "lines"
    grammar: str | None = None  # force a structural grammar (e.g. "python", "javascript")
    preview: bool = False
    dry_run: bool = False
    source_extension: str = SOURCE_EXTENSION
    target_extension: str = TARGET_EXTENSION
    tokenizer_path: Path | None = None  # HF tokenizer.json for tighter estimates
    max_concurrent: int = MAX_CONCURRENT_REQUESTS
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    max_retries: int = MAX_RETRIES
