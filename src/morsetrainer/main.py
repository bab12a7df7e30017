"""CLI entrypoint and interactive drill runner."""

from __future__ import annotations

import argparse
import logging
import random
import sys
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from . import __version__
from .config import ProgressionConfig, default_progress_path
from .content_loader import Curriculum, load_content
from .encoding import EncodingTable, format_morse, parse_morse
from .engine import ProgressionEngine
from .errors import ConfigurationError, PersistenceError
from .models import AnswerOutcome, Level, SessionSummary, TransitionEvent, Verdict
from .progress import Progress, ProgressStore

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
ClockFn = Callable[[], float]
QUIT_COMMANDS = {":q", ":quit", ":exit"}
SHOW_COMMANDS = {":show", ":s"}
LEVEL_COMMANDS = {":level", ":l"}

EXIT_OK = 0
EXIT_PERSISTENCE_FAILED = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_USAGE_ERROR = 2

logger = logging.getLogger(__name__)


def _store(progress_file: str | None, max_level: int) -> ProgressStore:
    """Create progress store at the requested or per-user default path."""
    path = Path(progress_file).expanduser() if progress_file else default_progress_path()
    return ProgressStore(path, max_level=max_level)


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(prog="morsetrainer", description="Morse code encoding drills")
    parser.add_argument("command", nargs="?", default="play", choices=["play", "status", "reset", "table"])
    parser.add_argument("--progress-file", help="progress JSON file (default: per-user config directory)")
    parser.add_argument("--session-length", type=int, help="end the session after this many prompts")
    parser.add_argument("--window-size", type=int, help="recent answers judged for level changes")
    parser.add_argument("--advance-ratio", type=float, help="accuracy needed to advance (default: per level)")
    parser.add_argument("--demote-ratio", type=float, help="accuracy below which a level is demoted")
    parser.add_argument("--seed", type=int, help="seed prompt selection for repeatable drills")
    parser.add_argument("--level", type=int, help="level shown by the table command (default: current)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log progression details to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _config_from_args(args: argparse.Namespace) -> ProgressionConfig:
    """Build progression settings from CLI overrides."""
    overrides: dict[str, object] = {}
    if args.window_size is not None:
        overrides["window_size"] = args.window_size
        overrides["min_advance_samples"] = args.window_size
        overrides["min_demote_samples"] = args.window_size
    if args.advance_ratio is not None:
        overrides["advance_ratio"] = args.advance_ratio
    if args.demote_ratio is not None:
        overrides["demote_ratio"] = args.demote_ratio
    if args.session_length is not None:
        overrides["session_length"] = args.session_length
    return replace(ProgressionConfig(), **overrides)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def run(argv: list[str] | None = None, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run the CLI application."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        table, curriculum = load_content()
        config = _config_from_args(args)
    except ConfigurationError as exc:
        print_fn(f"Configuration error: {exc}")
        return EXIT_CONFIGURATION_ERROR

    store = _store(args.progress_file, len(curriculum))
    if args.command == "reset":
        return reset_flow(store, input_fn, print_fn)

    progress = store.load()
    if args.command == "status":
        _status_flow(curriculum, progress, print_fn)
        return EXIT_OK
    if args.command == "table":
        rank = args.level if args.level is not None else progress.current_level
        return _table_flow(table, curriculum, rank, print_fn)

    engine = ProgressionEngine(table, curriculum, progress, config=config, rng=random.Random(args.seed))
    return play_session(engine, store, input_fn, print_fn)


def play_session(
    engine: ProgressionEngine,
    store: ProgressStore,
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
    clock: ClockFn = time.monotonic,
) -> int:
    """Drive prompt, answer, feedback until quit or session end, then persist."""
    print_fn("\n=== Morse Code Trainer ===")
    _print_level(engine, print_fn)
    print_fn("Type dots and dashes like '. -'. Separate letters of a word with spaces or '/'.")
    print_fn("Commands: :show reveals the answer, :level shows level info, :q quits.")

    try:
        while not engine.session_over():
            prompt = engine.next_prompt()
            started = clock()
            while True:
                user_input = input_fn(f"\nEncode {prompt.symbol!r}: ")
                lowered = user_input.strip().lower()
                if lowered in LEVEL_COMMANDS:
                    _print_level(engine, print_fn)
                    continue
                break
            if lowered in QUIT_COMMANDS:
                break

            elapsed = max(0.0, clock() - started)
            if lowered in SHOW_COMMANDS:
                print_fn(f"Answer: {format_morse(prompt.morse)}")
                outcome = engine.forfeit(prompt, elapsed)
            else:
                outcome = engine.answer(prompt, user_input, elapsed)
                _print_verdict(outcome, user_input, print_fn)

            if outcome.transition is not TransitionEvent.NONE:
                _print_transition(engine, outcome, print_fn)
                _checkpoint(store, engine.progress, print_fn)
    except (EOFError, KeyboardInterrupt):
        print_fn("")

    summary = engine.end_session()
    _print_summary(engine, summary, print_fn)
    try:
        store.save(engine.progress)
    except PersistenceError as exc:
        print_fn(f"Could not save progress: {exc}")
        return EXIT_PERSISTENCE_FAILED
    print_fn("Progress saved.")
    return EXIT_OK


def reset_flow(store: ProgressStore, input_fn: InputFn, print_fn: PrintFn) -> int:
    """Reset stored progress after explicit confirmation."""
    print_fn(f"WARNING: This permanently resets all Morse progress stored in {store.path}.")
    try:
        confirm = input_fn("Type YES to confirm reset: ").strip()
    except (EOFError, KeyboardInterrupt):
        confirm = ""
    if confirm != "YES":
        print_fn("Reset cancelled.")
        return EXIT_OK
    try:
        store.reset()
    except PersistenceError as exc:
        print_fn(f"Could not reset progress: {exc}")
        return EXIT_PERSISTENCE_FAILED
    print_fn("Progress reset to level 1.")
    return EXIT_OK


def _checkpoint(store: ProgressStore, progress: Progress, print_fn: PrintFn) -> None:
    """Save after a level change; a failure is reported and the session continues."""
    try:
        store.save(progress)
    except PersistenceError as exc:
        logger.warning("Checkpoint failed: %s", exc)
        print_fn(f"Warning: could not save progress checkpoint ({exc}).")


def _level_label(level: Level, total: int) -> str:
    return f"Level {level.rank}/{total}: {level.name}"


def _print_level(engine: ProgressionEngine, print_fn: PrintFn) -> None:
    level = engine.level
    print_fn(_level_label(level, len(engine.curriculum)))
    print_fn(f"Symbols: {' '.join(level.symbols)}")
    window = engine.window
    needed = engine.advance_ratio()
    samples = engine.config.min_advance_samples
    print_fn(f"Recent: {sum(window)}/{len(window)} correct (need {needed:.0%} of {samples})")


def _print_verdict(outcome: AnswerOutcome, user_input: str, print_fn: PrintFn) -> None:
    if outcome.verdict is Verdict.CORRECT:
        print_fn("Correct.")
        return
    print_fn(f"Incorrect. Expected: {format_morse(outcome.expected)}")
    if parse_morse(user_input) is None:
        print_fn("Use '.' for dot, '-' for dash and '/' between letters.")


def _print_transition(engine: ProgressionEngine, outcome: AnswerOutcome, print_fn: PrintFn) -> None:
    total = len(engine.curriculum)
    if outcome.transition is TransitionEvent.ADVANCE:
        print_fn(f"\nLevel up! {_level_label(outcome.level, total)}")
        print_fn(f"New symbols: {' '.join(outcome.level.symbols)}")
    elif outcome.transition is TransitionEvent.DEMOTE:
        print_fn(f"\nLet's review {_level_label(outcome.level, total)}")
    elif outcome.transition is TransitionEvent.COMPLETE:
        print_fn("\nCurriculum complete! Keep practicing words as long as you like.")


def _print_summary(engine: ProgressionEngine, summary: SessionSummary, print_fn: PrintFn) -> None:
    level = engine.curriculum.level(summary.level_reached)
    print_fn("\n=== Session Summary ===")
    print_fn(f"Attempts: {summary.attempts}")
    print_fn(f"Correct: {summary.correct}")
    print_fn(f"Incorrect: {summary.incorrect}")
    print_fn(f"Accuracy: {summary.accuracy * 100:.1f}%")
    print_fn(f"Level reached: {_level_label(level, len(engine.curriculum))}")
    if summary.average_response_seconds is not None:
        print_fn(f"Average response: {summary.average_response_seconds:.1f}s")
    if level.speed_requirement is not None:
        print_fn(f"Target speed: {level.speed_requirement:g} WPM")


def _status_flow(curriculum: Curriculum, progress: Progress, print_fn: PrintFn) -> None:
    """Print level, mastery table, and lifetime statistics."""
    total = len(curriculum)
    current = curriculum.level(progress.current_level)
    print_fn("\n=== Morse Progress ===")
    print_fn(f"Current: {_level_label(current, total)}")
    if current.speed_requirement is not None:
        print_fn(f"Target speed: {current.speed_requirement:g} WPM")
    if progress.curriculum_complete:
        print_fn("Curriculum complete.")
    accuracy = 0.0
    if progress.lifetime_attempts:
        accuracy = 100.0 * progress.lifetime_correct / progress.lifetime_attempts
    print_fn(f"Lifetime: {progress.lifetime_correct}/{progress.lifetime_attempts} correct ({accuracy:.1f}%)")

    name_width = max(len("Name"), max(len(level.name) for level in curriculum.levels))
    header = f"{'#':>2} {'Name':<{name_width}} {'Stage':<8} {'Mastered':>8} Symbols"
    print_fn(header)
    print_fn("-" * len(header))
    for level in curriculum.levels:
        if level.rank == progress.current_level:
            stage = "current"
        elif progress.mastery_count(level.rank) > 0:
            stage = "mastered"
        else:
            stage = "locked"
        print_fn(
            f"{level.rank:>2} "
            f"{level.name:<{name_width}} "
            f"{stage:<8} "
            f"{progress.mastery_count(level.rank):>8} "
            f"{' '.join(level.symbols)}"
        )


def _table_flow(table: EncodingTable, curriculum: Curriculum, rank: int, print_fn: PrintFn) -> int:
    """Print the encoding of every symbol in one level."""
    if not curriculum.has_rank(rank):
        print_fn(f"Unknown level {rank}; choose 1-{len(curriculum)}.")
        return EXIT_USAGE_ERROR
    level = curriculum.level(rank)
    print_fn(f"\n{_level_label(level, len(curriculum))}")
    entries = table.entries_for(level)
    symbol_width = max(len(entry.symbol) for entry in entries)
    for entry in entries:
        print_fn(f"{entry.symbol:<{symbol_width}}  {format_morse(entry.morse)}")
    return EXIT_OK


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
