"""Core domain models for Morse encoding drills."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MorseToken(Enum):
    """One element of a Morse sequence."""

    DOT = "."
    DASH = "-"
    GAP = "/"


class Verdict(Enum):
    """Outcome of judging one answer."""

    CORRECT = "correct"
    INCORRECT = "incorrect"


class TransitionEvent(Enum):
    """Level change produced after an answer is recorded."""

    NONE = "none"
    ADVANCE = "advance"
    DEMOTE = "demote"
    COMPLETE = "complete"


@dataclass(frozen=True)
class EncodingEntry:
    """One symbol (character or word) and its canonical Morse sequence."""

    symbol: str
    morse: tuple[MorseToken, ...]


@dataclass(frozen=True, order=True)
class Level:
    """Curriculum stage, ordered and compared by rank only."""

    rank: int
    name: str = field(compare=False)
    symbols: tuple[str, ...] = field(compare=False)
    accuracy_requirement: float = field(compare=False)
    is_word_level: bool = field(default=False, compare=False)
    speed_requirement: float | None = field(default=None, compare=False)


@dataclass(frozen=True)
class SessionSummary:
    """Immutable end-of-session report."""

    attempts: int
    correct: int
    incorrect: int
    accuracy: float
    level_reached: int
    elapsed_seconds: float
    average_response_seconds: float | None


@dataclass(frozen=True)
class AnswerOutcome:
    """Everything the runner needs to render feedback for one answer."""

    verdict: Verdict
    expected: tuple[MorseToken, ...]
    transition: TransitionEvent
    level: Level
