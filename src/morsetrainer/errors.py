"""Error types raised by the trainer.

Learner input never raises: anything that does not parse as Morse is simply
scored incorrect by the engine.
"""

from __future__ import annotations


class MorseTrainerError(Exception):
    """Base class for trainer errors."""


class ConfigurationError(MorseTrainerError):
    """Bundled content or progression settings are unusable; fatal at startup."""


class EmptyLevelError(ConfigurationError):
    """A curriculum level has no symbols to quiz."""

    def __init__(self, rank: int) -> None:
        super().__init__(f"Level {rank} has no symbols to practice.")
        self.rank = rank


class PersistenceError(MorseTrainerError):
    """Progress could not be written to disk."""


class SymbolNotFoundError(MorseTrainerError, KeyError):
    """Symbol is not present in the encoding table."""

    def __init__(self, symbol: str) -> None:
        super().__init__(symbol)
        self.symbol = symbol

    def __str__(self) -> str:
        return f"No Morse encoding for symbol {self.symbol!r}."
