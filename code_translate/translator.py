"""Translation backends: the port the pipeline calls, and a litellm adapter."""

import asyncio
import logging
import re
import time
from typing import Protocol

import litellm

from .config import (
    BACKENDS,
    MAX_CONCURRENT_REQUESTS,
    MAX_RETRIES,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_BASE_DELAY_SECONDS,
    TEMPERATURE,
)
from .errors import BackendError
from .prompts import build_messages

logger = logging.getLogger(__name__)

# Worth another attempt; anything else fails the chunk immediately
TRANSIENT_ERRORS = (
    asyncio.TimeoutError,
    litellm.Timeout,
    litellm.APIConnectionError,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)

_FENCE_RE = re.compile(r"```[\w+#.-]*[ \t]*\n(.*?)```", re.DOTALL)


class TranslationPort(Protocol):
    async def translate(self, instructions: str, chunk_text: str) -> str: ...


def extract_code(response_text: str) -> str:
    """Return the body of the first fenced code block, or the whole reply if unfenced."""
    match = _FENCE_RE.search(response_text)
    if match:
        return match.group(1).rstrip()
    if "```" in response_text:
        raise BackendError("Could not extract code: unterminated code fence in response")
    return response_text.strip()


class LiteLLMTranslator:
    """Async translator using litellm (handles OpenAI + Anthropic + xAI)."""

    def __init__(
        self,
        backend: str,
        model: str,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
    ):
        if backend not in BACKENDS:
            raise BackendError(f"Unknown backend {backend!r}")
        self.backend = backend
        self.model = model
        self.max_tokens = BACKENDS[backend]["response_reserve"]
        self._allowed_models = BACKENDS[backend]["models"]
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def translate(self, instructions: str, chunk_text: str) -> str:
        """Translate one chunk. Raises BackendError once retries are exhausted."""
        if self.model not in self._allowed_models:
            raise BackendError(f"Invalid model {self.model!r} for {self.backend}")

        messages = build_messages(instructions, chunk_text)

        async with self._semaphore:
            for attempt in range(self._max_retries + 1):
                start = time.monotonic()
                try:
                    response = await asyncio.wait_for(
                        litellm.acompletion(
                            model=self.model,
                            messages=messages,
                            max_tokens=self.max_tokens,
                            temperature=TEMPERATURE,
                            timeout=self._timeout,
                        ),
                        timeout=self._timeout,
                    )
                except TRANSIENT_ERRORS as e:
                    if attempt >= self._max_retries:
                        raise BackendError(
                            f"{self.model} failed after {attempt + 1} attempts: "
                            f"{str(e) or type(e).__name__}"
                        ) from e
                    delay = self._retry_base_delay * 2 ** attempt
                    logger.warning(
                        "%s transient error (%s), retry %d/%d in %.1fs",
                        self.model, type(e).__name__, attempt + 1, self._max_retries, delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                except Exception as e:
                    raise BackendError(f"{self.model}: {e}") from e

                latency_ms = int((time.monotonic() - start) * 1000)
                logger.debug("%s answered in %dms", self.model, latency_ms)
                return self._read_response(response)

        raise BackendError(f"{self.model}: no attempts made")

    def _read_response(self, response) -> str:
        try:
            choice = response.choices[0]
            content = choice.message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise BackendError(f"Unexpected response shape from {self.model}: {e}") from e
        if getattr(choice, "finish_reason", None) == "length":
            raise BackendError(f"{self.model} response truncated at {self.max_tokens} tokens")
        if not content or not content.strip():
            raise BackendError(f"Empty response from {self.model}")
        return extract_code(content)


class DryRunTranslator:
    """Echoes chunks back unchanged. No API calls; used for --dry-run."""

    def __init__(self):
        self.calls = 0

    async def translate(self, instructions: str, chunk_text: str) -> str:
        self.calls += 1
        return chunk_text


async def translate_many(
    port: TranslationPort,
    instructions: str,
    chunk_texts: list[str],
) -> list[str]:
    """Translate chunks concurrently; results come back in chunk order.

    The first failure cancels the chunks still in flight and propagates.
    """
    tasks = [asyncio.ensure_future(port.translate(instructions, text)) for text in chunk_texts]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
