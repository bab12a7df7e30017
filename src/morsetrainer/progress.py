"""JSON persistence for learner progress."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from . import __version__
from .errors import PersistenceError

FORMAT_VERSION = 1
FIRST_LEVEL = 1

logger = logging.getLogger(__name__)


@dataclass
class Progress:
    """Durable learner record; owned by the engine during a session."""

    current_level: int = FIRST_LEVEL
    mastery_count_per_level: dict[int, int] = field(default_factory=dict)
    lifetime_attempts: int = 0
    lifetime_correct: int = 0
    curriculum_complete: bool = False

    def mastery_count(self, rank: int) -> int:
        """Return how many times the mastery threshold at a level was met."""
        return self.mastery_count_per_level.get(rank, 0)

    def highest_unlocked(self, max_rank: int) -> int:
        """Return the highest level reachable given mastery of all lower levels."""
        rank = FIRST_LEVEL
        while rank < max_rank and self.mastery_count(rank) > 0:
            rank += 1
        return rank


class ProgressStore:
    """Reads and writes one progress document."""

    def __init__(self, path: Path | str, max_level: int) -> None:
        """Initialize store for a file path and curriculum size."""
        self.path = Path(path)
        self._max_level = max_level

    def load(self) -> Progress:
        """Load progress, falling back to defaults when missing or unreadable.

        A missing file is created with defaults. A corrupt file is left on disk
        untouched until the next save overwrites it.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            progress = Progress()
            try:
                self.save(progress)
            except PersistenceError as exc:
                logger.warning("Could not create progress file: %s", exc)
            return progress
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read progress from %s: %s", self.path, exc)
            return Progress()

        try:
            raw: object = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Could not load progress from %s: %s", self.path, exc)
            return Progress()

        try:
            return self._from_document(raw)
        except ValueError as exc:
            logger.warning("Ignoring malformed progress in %s: %s", self.path, exc)
            return Progress()

    def save(self, progress: Progress) -> None:
        """Write progress atomically; raises PersistenceError on I/O failure."""
        payload = {
            "format_version": FORMAT_VERSION,
            "saved_at": datetime.now(UTC).isoformat(),
            "app_version": __version__,
            "current_level": progress.current_level,
            "mastery_count_per_level": {
                str(rank): count for rank, count in sorted(progress.mastery_count_per_level.items())
            },
            "lifetime_attempts": progress.lifetime_attempts,
            "lifetime_correct": progress.lifetime_correct,
            "curriculum_complete": progress.curriculum_complete,
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".progress-", suffix=".json", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(json.dumps(payload, indent=2))
                    handle.write("\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Could not save progress to {self.path}: {exc}") from exc
        logger.debug("Saved progress to %s (level %d)", self.path, progress.current_level)

    def reset(self) -> Progress:
        """Overwrite stored progress with defaults."""
        progress = Progress()
        self.save(progress)
        return progress

    def _from_document(self, raw: object) -> Progress:
        """Validate and normalize a decoded progress document."""
        if not isinstance(raw, dict):
            raise ValueError("root must be a JSON object")
        document = cast(dict[str, object], raw)

        format_version = _coerce_int(document.get("format_version", FORMAT_VERSION))
        if format_version is None:
            raise ValueError("invalid format_version")
        if format_version > FORMAT_VERSION:
            raise ValueError(f"format version {format_version} is newer than supported {FORMAT_VERSION}")

        level = _coerce_int(document.get("current_level", FIRST_LEVEL))
        if level is None:
            raise ValueError("invalid current_level")

        mastery: dict[int, int] = {}
        mastery_raw = document.get("mastery_count_per_level", {})
        if not isinstance(mastery_raw, dict):
            raise ValueError("mastery_count_per_level must be an object")
        for key, value in cast(dict[str, object], mastery_raw).items():
            rank = _coerce_int(key)
            count = _coerce_int(value)
            if rank is None or count is None:
                raise ValueError(f"invalid mastery entry {key!r}: {value!r}")
            if not FIRST_LEVEL <= rank <= self._max_level:
                logger.warning("Dropping mastery count for unknown level %s", key)
                continue
            if count > 0:
                mastery[rank] = count

        attempts = _coerce_int(document.get("lifetime_attempts", 0))
        correct = _coerce_int(document.get("lifetime_correct", 0))
        if attempts is None or correct is None:
            raise ValueError("invalid lifetime counters")
        attempts = max(0, attempts)
        correct = min(max(0, correct), attempts)

        complete = _coerce_bool(document.get("curriculum_complete", False))
        if complete is None:
            raise ValueError("invalid curriculum_complete")

        progress = Progress(
            current_level=level,
            mastery_count_per_level=mastery,
            lifetime_attempts=attempts,
            lifetime_correct=correct,
            curriculum_complete=complete,
        )

        unlocked = progress.highest_unlocked(self._max_level)
        if not FIRST_LEVEL <= progress.current_level <= unlocked:
            clamped = min(max(progress.current_level, FIRST_LEVEL), unlocked)
            logger.warning(
                "Stored level %d is not unlocked; resuming at level %d",
                progress.current_level,
                clamped,
            )
            progress.current_level = clamped
        if progress.curriculum_complete and progress.mastery_count(self._max_level) == 0:
            progress.curriculum_complete = False
        return progress


def _coerce_int(value: object) -> int | None:
    """Coerce a JSON value to int, rejecting floats with fractions and junk."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _coerce_bool(value: object) -> bool | None:
    """Coerce a JSON value to bool; accepts true/false literals or their strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return {"true": True, "false": False}.get(value.strip().lower())
    return None
