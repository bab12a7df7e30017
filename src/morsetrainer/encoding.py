"""Static symbol-to-Morse table plus learner input normalization."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from .errors import SymbolNotFoundError
from .models import EncodingEntry, Level, MorseToken

DOT_CHARS = frozenset(".·•")
DASH_CHARS = frozenset("-_−–")
GAP_CHARS = frozenset("/|")


class EncodingTable:
    """Immutable lookup from symbol to Morse sequence."""

    def __init__(self, entries: Iterable[EncodingEntry]) -> None:
        """Build table; symbols must be unique."""
        table: dict[str, EncodingEntry] = {}
        for entry in entries:
            key = _symbol_key(entry.symbol)
            if key in table:
                raise ValueError(f"Duplicate symbol: {entry.symbol}")
            table[key] = entry
        self._entries: Mapping[str, EncodingEntry] = table

    @classmethod
    def from_codes(cls, codes: Mapping[str, str], words: Iterable[str] = ()) -> EncodingTable:
        """Build table from dot/dash strings and spell words from those characters."""
        entries = [EncodingEntry(symbol=symbol, morse=code_to_tokens(code)) for symbol, code in codes.items()]
        by_symbol = {_symbol_key(entry.symbol): entry for entry in entries}
        for word in words:
            morse: list[MorseToken] = []
            for char in word:
                letter = by_symbol.get(_symbol_key(char))
                if letter is None:
                    raise SymbolNotFoundError(char)
                if morse:
                    morse.append(MorseToken.GAP)
                morse.extend(letter.morse)
            entries.append(EncodingEntry(symbol=word, morse=tuple(morse)))
        return cls(entries)

    def lookup(self, symbol: str) -> tuple[MorseToken, ...]:
        """Return Morse sequence for symbol."""
        return self.entry(symbol).morse

    def entry(self, symbol: str) -> EncodingEntry:
        """Return table entry for symbol."""
        entry = self._entries.get(_symbol_key(symbol))
        if entry is None:
            raise SymbolNotFoundError(symbol)
        return entry

    def entries_for(self, level: Level) -> tuple[EncodingEntry, ...]:
        """Return entries for a level's symbols, in the level's order."""
        return tuple(self.entry(symbol) for symbol in level.symbols)

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and _symbol_key(symbol) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[EncodingEntry]:
        return iter(self._entries.values())


def code_to_tokens(code: str) -> tuple[MorseToken, ...]:
    """Convert a canonical dot/dash string like `.-` to tokens."""
    tokens: list[MorseToken] = []
    for char in code:
        if char == ".":
            tokens.append(MorseToken.DOT)
        elif char == "-":
            tokens.append(MorseToken.DASH)
        else:
            raise ValueError(f"Invalid Morse code character {char!r} in {code!r}.")
    if not tokens:
        raise ValueError("Morse code must not be empty.")
    return tuple(tokens)


def parse_morse(text: str, spaces_as_gaps: bool = False) -> tuple[MorseToken, ...] | None:
    """Normalize learner input into tokens, or None when it is not Morse.

    Letter gaps inside words are typed as `/` (or `|`). By default whitespace
    only separates tokens; with `spaces_as_gaps` each whitespace run between
    elements is a letter gap too, so `... --- ...` spells SOS. Repeated gaps
    collapse and edge gaps are dropped.
    """
    tokens: list[MorseToken] = []
    gap = False
    for char in text:
        if char.isspace():
            gap = gap or (spaces_as_gaps and bool(tokens))
            continue
        if char in GAP_CHARS:
            gap = bool(tokens)
            continue
        if char in DOT_CHARS:
            token = MorseToken.DOT
        elif char in DASH_CHARS:
            token = MorseToken.DASH
        else:
            return None
        if gap:
            tokens.append(MorseToken.GAP)
            gap = False
        tokens.append(token)
    if not tokens:
        return None
    return tuple(tokens)


def format_morse(tokens: Iterable[MorseToken]) -> str:
    """Render tokens the way learners type them, e.g. `. -` or `. . . / - - -`."""
    return " ".join(token.value for token in tokens)


def _symbol_key(symbol: str) -> str:
    return symbol.strip().upper()
