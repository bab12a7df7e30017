"""Load the bundled encoding table and curriculum from JSON resources."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from importlib import resources
from pathlib import Path
from typing import Any

from .encoding import EncodingTable
from .errors import ConfigurationError, EmptyLevelError, SymbolNotFoundError
from .models import Level

CONTENT_PACKAGE = "morsetrainer.content"
TABLE_FILE = "morse.json"
CURRICULUM_FILE = "curriculum.json"

logger = logging.getLogger(__name__)


class Curriculum:
    """Ordered levels, first character level through the word level."""

    def __init__(self, levels: list[Level]) -> None:
        """Initialize from levels already sorted by rank."""
        if not levels:
            raise ConfigurationError("Curriculum has no levels.")
        self._levels = tuple(levels)
        self._by_rank = {level.rank: level for level in levels}

    @property
    def levels(self) -> tuple[Level, ...]:
        """All levels in rank order."""
        return self._levels

    @property
    def first(self) -> Level:
        return self._levels[0]

    @property
    def last(self) -> Level:
        return self._levels[-1]

    def level(self, rank: int) -> Level:
        """Get level by rank."""
        try:
            return self._by_rank[rank]
        except KeyError:
            raise ConfigurationError(f"Unknown level rank: {rank}") from None

    def has_rank(self, rank: int) -> bool:
        return rank in self._by_rank

    def is_word_level(self, rank: int) -> bool:
        return self.level(rank).is_word_level

    def __len__(self) -> int:
        return len(self._levels)


def _level_from_dict(raw: dict[str, Any]) -> Level:
    """Build a level from raw JSON content."""
    rank = int(raw["rank"])
    words = raw.get("words")
    if words is not None:
        symbols = tuple(str(word).strip().upper() for word in words if str(word).strip())
    else:
        symbols = tuple(str(symbol).strip().upper() for symbol in raw.get("symbols", []) if str(symbol).strip())
    accuracy = float(raw.get("accuracy_requirement", 0.8))
    if not 0.0 < accuracy <= 1.0:
        raise ConfigurationError(f"Level {rank} accuracy_requirement must be in (0, 1], got {accuracy}.")
    speed = None if raw.get("speed_requirement") is None else float(raw["speed_requirement"])
    if speed is not None and speed <= 0:
        raise ConfigurationError(f"Level {rank} speed_requirement must be positive, got {speed}.")
    return Level(
        rank=rank,
        name=str(raw.get("name", f"Level {rank}")),
        symbols=symbols,
        accuracy_requirement=accuracy,
        is_word_level=words is not None,
        speed_requirement=speed,
    )


def _build(table_raw: Any, curriculum_raw: Any) -> tuple[EncodingTable, Curriculum]:
    """Validate raw content and build table + curriculum."""
    if not isinstance(table_raw, dict) or not isinstance(table_raw.get("symbols"), dict):
        raise ConfigurationError(f"{TABLE_FILE}: expected an object with a 'symbols' mapping.")
    if not isinstance(curriculum_raw, dict) or not isinstance(curriculum_raw.get("levels"), list):
        raise ConfigurationError(f"{CURRICULUM_FILE}: expected an object with a 'levels' list.")

    codes = {str(symbol): str(code) for symbol, code in table_raw["symbols"].items()}
    try:
        levels = [_level_from_dict(item) for item in curriculum_raw["levels"]]
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"{CURRICULUM_FILE}: invalid level definition ({exc}).") from exc

    _validate_ranks(levels)
    _validate_symbol_sets(levels)

    words = [symbol for level in levels if level.is_word_level for symbol in level.symbols]
    try:
        table = EncodingTable.from_codes(codes, words)
    except SymbolNotFoundError as exc:
        raise ConfigurationError(f"Word uses a character missing from the table: {exc.symbol!r}.") from exc
    except ValueError as exc:
        raise ConfigurationError(f"{TABLE_FILE}: {exc}") from exc

    for level in levels:
        if level.is_word_level:
            continue
        for symbol in level.symbols:
            if symbol not in table:
                raise ConfigurationError(f"Level {level.rank} symbol {symbol!r} is missing from the table.")

    logger.debug("Loaded %d table entries across %d levels", len(table), len(levels))
    return table, Curriculum(levels)


def load_content() -> tuple[EncodingTable, Curriculum]:
    """Load bundled table and curriculum."""
    root = resources.files(CONTENT_PACKAGE)
    table_raw = _read_json(root.joinpath(TABLE_FILE).read_text, TABLE_FILE)
    curriculum_raw = _read_json(root.joinpath(CURRICULUM_FILE).read_text, CURRICULUM_FILE)
    return _build(table_raw, curriculum_raw)


def load_content_from_dir(path: Path) -> tuple[EncodingTable, Curriculum]:
    """Load table and curriculum from directory for tests/tools."""
    table_raw = _read_json((path / TABLE_FILE).read_text, TABLE_FILE)
    curriculum_raw = _read_json((path / CURRICULUM_FILE).read_text, CURRICULUM_FILE)
    return _build(table_raw, curriculum_raw)


def _read_json(read_text: Callable[..., str], name: str) -> Any:
    """Read and decode one JSON content file."""
    try:
        text = read_text(encoding="utf-8-sig")
        return json.loads(text, object_pairs_hook=lambda pairs: _unique_keys(pairs, name))
    except OSError as exc:
        raise ConfigurationError(f"Could not read {name}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{name} is not valid JSON: {exc}") from exc


def _validate_ranks(levels: list[Level]) -> None:
    """Validate ranks are exactly 1..N in file order and only the last level holds words."""
    ranks = [level.rank for level in levels]
    if ranks != list(range(1, len(levels) + 1)):
        raise ConfigurationError(f"Level ranks must be 1..{len(levels)} in order, got {ranks}.")
    for level in levels[:-1]:
        if level.is_word_level:
            raise ConfigurationError(f"Only the last level may be a word level (level {level.rank}).")


def _validate_symbol_sets(levels: list[Level]) -> None:
    """Validate every level is non-empty and no symbol appears in two levels."""
    seen: dict[str, int] = {}
    for level in levels:
        if not level.symbols:
            raise EmptyLevelError(level.rank)
        for symbol in level.symbols:
            previous = seen.get(symbol)
            if previous is not None:
                raise ConfigurationError(f"Duplicate symbol {symbol!r} in levels {previous} and {level.rank}.")
            seen[symbol] = level.rank


def _unique_keys(pairs: list[tuple[str, Any]], name: str) -> dict[str, Any]:
    """Reject JSON objects that repeat a key."""
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ConfigurationError(f"{name}: duplicate key {key!r}.")
        result[key] = value
    return result
