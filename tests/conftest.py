"""Shared test fixtures for code_translate tests."""

import asyncio
from pathlib import Path

import pytest

from code_translate.errors import BackendError
from code_translate.estimator import CharRatioEstimator


class FakeTranslator:
    """Records every chunk and returns it upper-cased.

    `fail_on` makes any chunk containing that marker raise BackendError;
    `delay_for` maps a marker to a sleep so completion order can be shuffled.
    """

    def __init__(self, fail_on: str | None = None, delay_for: dict[str, float] | None = None):
        self.calls: list[str] = []
        self.fail_on = fail_on
        self.delay_for = delay_for or {}

    async def translate(self, instructions: str, chunk_text: str) -> str:
        self.calls.append(chunk_text)
        for marker, delay in self.delay_for.items():
            if marker in chunk_text:
                await asyncio.sleep(delay)
        if self.fail_on and self.fail_on in chunk_text:
            raise BackendError(f"upstream rejected chunk containing {self.fail_on}")
        return chunk_text.upper()


@pytest.fixture
def estimator() -> CharRatioEstimator:
    return CharRatioEstimator(4)


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Directory with three small CoffeeScript files and one unrelated file."""
    root = tmp_path / "project"
    (root / "lib").mkdir(parents=True)
    (root / "a.coffee").write_text("a = 1\n")
    (root / "lib" / "b.coffee").write_text("b = 2\n")
    (root / "lib" / "c.coffee").write_text("c = 3\n")
    (root / "README.md").write_text("# readme\n")
    return root
