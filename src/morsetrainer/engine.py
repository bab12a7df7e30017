"""Learning progression engine: prompt selection, judging, and level changes."""

from __future__ import annotations

import logging
import random
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from .config import ProgressionConfig
from .content_loader import Curriculum
from .encoding import EncodingTable, parse_morse
from .errors import EmptyLevelError
from .models import AnswerOutcome, EncodingEntry, Level, MorseToken, SessionSummary, TransitionEvent, Verdict
from .progress import Progress

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    """Anything that can pick one item from a sequence, e.g. `random.Random`."""

    def choice(self, seq: Sequence[T]) -> T: ...


@dataclass
class SessionStats:
    """Counters for the running session."""

    attempts: int = 0
    correct: int = 0
    incorrect: int = 0
    started_at: float = field(default_factory=time.monotonic)
    response_seconds: float = 0.0
    timed_answers: int = 0

    @property
    def accuracy(self) -> float:
        return 0.0 if self.attempts == 0 else self.correct / self.attempts


class ProgressionEngine:
    """Owns Progress and SessionStats for one session and applies the level rules."""

    def __init__(
        self,
        table: EncodingTable,
        curriculum: Curriculum,
        progress: Progress,
        config: ProgressionConfig | None = None,
        rng: RandomSource | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize engine for one session over a loaded Progress record."""
        self.table = table
        self.curriculum = curriculum
        self.config = config or ProgressionConfig()
        self._progress = progress
        self._rng: RandomSource = rng or random.Random()
        self._clock = clock
        self.stats = SessionStats(started_at=clock())
        self._window: deque[bool] = deque(maxlen=self.config.window_size)
        self._last_prompt: EncodingEntry | None = None
        self._summary: SessionSummary | None = None

    @property
    def progress(self) -> Progress:
        """Progress record; treat as read-only outside the engine."""
        return self._progress

    @property
    def level(self) -> Level:
        """Current curriculum level."""
        return self.curriculum.level(self._progress.current_level)

    @property
    def window(self) -> tuple[bool, ...]:
        """Recent verdicts at the current level, oldest first."""
        return tuple(self._window)

    def advance_ratio(self, level: Level | None = None) -> float:
        """Accuracy needed to master a level."""
        if self.config.advance_ratio is not None:
            return self.config.advance_ratio
        return (level or self.level).accuracy_requirement

    def next_prompt(self) -> EncodingEntry:
        """Pick the next entry to quiz from the current level."""
        level = self.level
        entries = self.table.entries_for(level)
        if not entries:
            raise EmptyLevelError(level.rank)
        candidates = list(entries)
        if self.config.avoid_repeats and self._last_prompt is not None and len(candidates) > 1:
            candidates = [entry for entry in candidates if entry.symbol != self._last_prompt.symbol]
        prompt = self._rng.choice(candidates)
        self._last_prompt = prompt
        return prompt

    def evaluate(self, prompt: EncodingEntry, learner_input: str) -> Verdict:
        """Judge input by exact token equality; unparseable input is incorrect.

        Words also accept spaces between letters in place of `/`.
        """
        if parse_morse(learner_input) == prompt.morse:
            return Verdict.CORRECT
        if MorseToken.GAP in prompt.morse and parse_morse(learner_input, spaces_as_gaps=True) == prompt.morse:
            return Verdict.CORRECT
        return Verdict.INCORRECT

    def record_answer(self, verdict: Verdict, response_seconds: float | None = None) -> None:
        """Update session counters and the rolling window for the current level."""
        self.stats.attempts += 1
        if verdict is Verdict.CORRECT:
            self.stats.correct += 1
        else:
            self.stats.incorrect += 1
        if response_seconds is not None and response_seconds >= 0:
            self.stats.response_seconds += response_seconds
            self.stats.timed_answers += 1
        self._window.append(verdict is Verdict.CORRECT)

    def maybe_transition(self) -> TransitionEvent:
        """Apply advance/hold/demote rules to the current window."""
        samples = len(self._window)
        if samples == 0:
            return TransitionEvent.NONE
        accuracy = sum(self._window) / samples
        level = self.level

        if samples >= self.config.min_advance_samples and accuracy >= self.advance_ratio(level):
            counts = self._progress.mastery_count_per_level
            counts[level.rank] = counts.get(level.rank, 0) + 1
            self._window.clear()
            if level.rank >= self.curriculum.last.rank:
                self._progress.curriculum_complete = True
                logger.info("Curriculum mastered at level %d", level.rank)
                return TransitionEvent.COMPLETE
            self._progress.current_level = level.rank + 1
            logger.info("Advanced from level %d to %d (accuracy %.2f)", level.rank, level.rank + 1, accuracy)
            return TransitionEvent.ADVANCE

        if (
            level.rank > self.curriculum.first.rank
            and samples >= self.config.min_demote_samples
            and accuracy < self.config.demote_ratio
        ):
            self._progress.current_level = level.rank - 1
            self._window.clear()
            logger.info("Demoted from level %d to %d (accuracy %.2f)", level.rank, level.rank - 1, accuracy)
            return TransitionEvent.DEMOTE

        return TransitionEvent.NONE

    def answer(
        self, prompt: EncodingEntry, learner_input: str, response_seconds: float | None = None
    ) -> AnswerOutcome:
        """Judge, record, and apply level rules for one answer."""
        verdict = self.evaluate(prompt, learner_input)
        self.record_answer(verdict, response_seconds)
        transition = self.maybe_transition()
        return AnswerOutcome(verdict=verdict, expected=prompt.morse, transition=transition, level=self.level)

    def forfeit(self, prompt: EncodingEntry, response_seconds: float | None = None) -> AnswerOutcome:
        """Score a revealed prompt as incorrect and apply level rules."""
        self.record_answer(Verdict.INCORRECT, response_seconds)
        transition = self.maybe_transition()
        return AnswerOutcome(
            verdict=Verdict.INCORRECT, expected=prompt.morse, transition=transition, level=self.level
        )

    def session_over(self) -> bool:
        """Return whether the configured session length was reached."""
        limit = self.config.session_length
        return limit is not None and self.stats.attempts >= limit

    def end_session(self) -> SessionSummary:
        """Fold session counters into lifetime progress and summarize; idempotent."""
        if self._summary is not None:
            return self._summary
        stats = self.stats
        self._progress.lifetime_attempts += stats.attempts
        self._progress.lifetime_correct += stats.correct
        average = stats.response_seconds / stats.timed_answers if stats.timed_answers else None
        self._summary = SessionSummary(
            attempts=stats.attempts,
            correct=stats.correct,
            incorrect=stats.incorrect,
            accuracy=stats.accuracy,
            level_reached=self._progress.current_level,
            elapsed_seconds=max(0.0, self._clock() - stats.started_at),
            average_response_seconds=average,
        )
        return self._summary
