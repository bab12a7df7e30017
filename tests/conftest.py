from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TypeVar

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from morsetrainer.content_loader import Curriculum, load_content  # noqa: E402
from morsetrainer.encoding import EncodingTable  # noqa: E402

T = TypeVar("T")


class ScriptedRandom:
    """Deterministic random source: returns candidates at scripted indices, then the first one."""

    def __init__(self, indices: Sequence[int] = ()) -> None:
        self._indices = list(indices)
        self.seen: list[list[object]] = []

    def choice(self, seq: Sequence[T]) -> T:
        self.seen.append(list(seq))
        index = self._indices.pop(0) if self._indices else 0
        return seq[index % len(seq)]


@pytest.fixture(scope="session")
def content() -> tuple[EncodingTable, Curriculum]:
    """Bundled table and curriculum, loaded once."""
    return load_content()


@pytest.fixture()
def table(content: tuple[EncodingTable, Curriculum]) -> EncodingTable:
    return content[0]


@pytest.fixture()
def curriculum(content: tuple[EncodingTable, Curriculum]) -> Curriculum:
    return content[1]
