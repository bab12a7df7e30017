import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

import morsetrainer.main as main
from conftest import ScriptedRandom
from morsetrainer.config import ProgressionConfig
from morsetrainer.engine import ProgressionEngine
from morsetrainer.errors import ConfigurationError, PersistenceError
from morsetrainer.progress import Progress, ProgressStore


def _inputs(values: list[str]) -> Any:
    items: Iterator[str] = iter(values)

    def read(_: str) -> str:
        try:
            return next(items)
        except StopIteration:
            raise EOFError from None

    return read


def _session(table, curriculum, tmp_path: Path, progress: Progress | None = None, **config) -> tuple:
    store = ProgressStore(tmp_path / "progress.json", max_level=len(curriculum))
    engine = ProgressionEngine(
        table,
        curriculum,
        progress or Progress(),
        config=ProgressionConfig(**config),
        rng=ScriptedRandom(),
    )
    return engine, store


def test_play_session_scores_answers_and_saves(table, curriculum, tmp_path: Path) -> None:
    engine, store = _session(table, curriculum, tmp_path)
    outputs: list[str] = []
    code = main.play_session(engine, store, _inputs([".", "- -", ":q"]), outputs.append)
    assert code == 0
    assert "Correct." in outputs
    assert "Incorrect. Expected: -" in outputs
    assert "Attempts: 2" in outputs
    saved = store.load()
    assert saved.lifetime_attempts == 2
    assert saved.lifetime_correct == 1


def test_play_session_prompts_show_symbol(table, curriculum, tmp_path: Path) -> None:
    engine, store = _session(table, curriculum, tmp_path)
    prompts: list[str] = []

    def read(prompt: str) -> str:
        prompts.append(prompt)
        return ":q"

    assert main.play_session(engine, store, read, lambda _: None) == 0
    assert prompts == ["\nEncode 'E': "]


def test_play_session_non_morse_input_gets_hint(table, curriculum, tmp_path: Path) -> None:
    engine, store = _session(table, curriculum, tmp_path)
    outputs: list[str] = []
    main.play_session(engine, store, _inputs(["e", ":q"]), outputs.append)
    assert "Incorrect. Expected: ." in outputs
    assert any("'.' for dot" in line for line in outputs)


def test_play_session_show_and_level_commands(table, curriculum, tmp_path: Path) -> None:
    engine, store = _session(table, curriculum, tmp_path)
    outputs: list[str] = []
    main.play_session(engine, store, _inputs([":level", ":show", ":q"]), outputs.append)
    assert "Answer: ." in outputs
    assert sum(1 for line in outputs if line.startswith("Level 1/9")) == 2
    assert "Attempts: 1" in outputs
    assert "Incorrect: 1" in outputs


def test_play_session_level_up_checkpoints(table, curriculum, tmp_path: Path) -> None:
    engine, store = _session(
        table, curriculum, tmp_path, window_size=2, min_advance_samples=2, min_demote_samples=2, session_length=3
    )
    saves: list[int] = []
    real_save = store.save

    def tracking_save(progress: Progress) -> None:
        saves.append(progress.current_level)
        real_save(progress)

    store.save = tracking_save  # type: ignore[method-assign]
    outputs: list[str] = []
    code = main.play_session(engine, store, _inputs([".", "-", ". -"]), outputs.append)
    assert code == 0
    assert any(line.startswith("\nLevel up! Level 2/9") for line in outputs)
    assert saves == [2, 2]
    assert json.loads(store.path.read_text(encoding="utf-8"))["current_level"] == 2


def test_play_session_demotion_message(table, curriculum, tmp_path: Path) -> None:
    progress = Progress(current_level=2, mastery_count_per_level={1: 1})
    engine, store = _session(
        table, curriculum, tmp_path, progress, window_size=2, min_advance_samples=2, min_demote_samples=2
    )
    outputs: list[str] = []
    main.play_session(engine, store, _inputs(["x", "x", ":q"]), outputs.append)
    assert any(line.startswith("\nLet's review Level 1/9") for line in outputs)
    assert store.load().current_level == 1


def test_play_session_eof_ends_normally(table, curriculum, tmp_path: Path) -> None:
    engine, store = _session(table, curriculum, tmp_path)
    outputs: list[str] = []
    assert main.play_session(engine, store, _inputs(["."]), outputs.append) == 0
    assert "Progress saved." in outputs


def test_play_session_save_failure_exits_nonzero(table, curriculum, tmp_path: Path) -> None:
    engine, store = _session(table, curriculum, tmp_path)

    def failing_save(progress: Progress) -> None:
        raise PersistenceError("disk full")

    store.save = failing_save  # type: ignore[method-assign]
    outputs: list[str] = []
    assert main.play_session(engine, store, _inputs([":q"]), outputs.append) == 1
    assert "Could not save progress: disk full" in outputs


def test_checkpoint_failure_does_not_stop_session(table, curriculum, tmp_path: Path) -> None:
    engine, store = _session(
        table, curriculum, tmp_path, window_size=1, min_advance_samples=1, min_demote_samples=1, session_length=2
    )
    calls = {"count": 0}
    real_save = store.save

    def flaky_save(progress: Progress) -> None:
        calls["count"] += 1
        if calls["count"] == 1:
            raise PersistenceError("busy")
        real_save(progress)

    store.save = flaky_save  # type: ignore[method-assign]
    outputs: list[str] = []
    assert main.play_session(engine, store, _inputs([".", ". -"]), outputs.append) == 0
    assert any("could not save progress checkpoint" in line for line in outputs)
    assert "Attempts: 2" in outputs


def test_run_play_resumes_saved_progress(tmp_path: Path) -> None:
    progress_file = tmp_path / "progress.json"
    progress_file.write_text(
        json.dumps({"current_level": 2, "mastery_count_per_level": {"1": 1}}),
        encoding="utf-8",
    )
    outputs: list[str] = []
    code = main.run(["--progress-file", str(progress_file), "--seed", "7"], _inputs([":q"]), outputs.append)
    assert code == 0
    assert any(line.startswith("Level 2/9") for line in outputs)


def test_run_session_length_flag(tmp_path: Path) -> None:
    progress_file = tmp_path / "progress.json"
    outputs: list[str] = []
    code = main.run(
        ["--progress-file", str(progress_file), "--session-length", "2"],
        _inputs(["x", "x", "never-read"]),
        outputs.append,
    )
    assert code == 0
    assert "Attempts: 2" in outputs
    assert json.loads(progress_file.read_text(encoding="utf-8"))["lifetime_attempts"] == 2


def test_run_invalid_threshold_is_configuration_error(tmp_path: Path) -> None:
    outputs: list[str] = []
    code = main.run(["--progress-file", str(tmp_path / "p.json"), "--window-size", "0"], _inputs([]), outputs.append)
    assert code == 2
    assert outputs[0].startswith("Configuration error:")


def test_run_content_failure_aborts_startup(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def broken() -> None:
        raise ConfigurationError("Level 3 has no symbols to practice.")

    monkeypatch.setattr(main, "load_content", broken)
    outputs: list[str] = []
    assert main.run(["--progress-file", str(tmp_path / "p.json")], _inputs([]), outputs.append) == 2
    assert outputs == ["Configuration error: Level 3 has no symbols to practice."]


def test_run_status(tmp_path: Path) -> None:
    progress_file = tmp_path / "progress.json"
    progress_file.write_text(
        json.dumps(
            {
                "current_level": 3,
                "mastery_count_per_level": {"1": 2, "2": 1},
                "lifetime_attempts": 20,
                "lifetime_correct": 15,
            }
        ),
        encoding="utf-8",
    )
    outputs: list[str] = []
    assert main.run(["status", "--progress-file", str(progress_file)], _inputs([]), outputs.append) == 0
    assert "Current: Level 3/9: Three-element letters" in outputs
    assert "Lifetime: 15/20 correct (75.0%)" in outputs
    rows = [line for line in outputs if line[:2].strip().isdigit()]
    assert len(rows) == 9
    assert "mastered" in rows[0]
    assert "current" in rows[2]
    assert "locked" in rows[8]


def test_run_table_for_level(tmp_path: Path) -> None:
    outputs: list[str] = []
    args = ["table", "--level", "2", "--progress-file", str(tmp_path / "p.json")]
    assert main.run(args, _inputs([]), outputs.append) == 0
    assert "A  . -" in outputs
    assert "N  - ." in outputs


def test_run_table_unknown_level(tmp_path: Path) -> None:
    outputs: list[str] = []
    args = ["table", "--level", "42", "--progress-file", str(tmp_path / "p.json")]
    assert main.run(args, _inputs([]), outputs.append) == 2
    assert outputs == ["Unknown level 42; choose 1-9."]


def test_run_reset_requires_confirmation(tmp_path: Path) -> None:
    progress_file = tmp_path / "progress.json"
    store = ProgressStore(progress_file, max_level=9)
    store.save(Progress(current_level=2, mastery_count_per_level={1: 1}, lifetime_attempts=4, lifetime_correct=4))

    outputs: list[str] = []
    assert main.run(["reset", "--progress-file", str(progress_file)], _inputs(["no"]), outputs.append) == 0
    assert "Reset cancelled." in outputs
    assert store.load().current_level == 2

    assert main.run(["reset", "--progress-file", str(progress_file)], _inputs(["YES"]), outputs.append) == 0
    assert store.load() == Progress()


def test_main_entry_exits_with_run_code(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "run", lambda: 1)
    with pytest.raises(SystemExit) as excinfo:
        main.main_entry()
    assert excinfo.value.code == 1


def test_run_table_level_zero_is_unknown(tmp_path: Path) -> None:
    outputs: list[str] = []
    args = ["table", "--level", "0", "--progress-file", str(tmp_path / "p.json")]
    assert main.run(args, _inputs([]), outputs.append) == 2
    assert outputs == ["Unknown level 0; choose 1-9."]


def test_status_and_summary_show_target_speed(table, curriculum, tmp_path: Path) -> None:
    outputs: list[str] = []
    assert main.run(["status", "--progress-file", str(tmp_path / "p.json")], _inputs([]), outputs.append) == 0
    assert "Target speed: 10 WPM" in outputs

    engine, store = _session(table, curriculum, tmp_path)
    outputs = []
    main.play_session(engine, store, _inputs([":q"]), outputs.append)
    assert "Target speed: 10 WPM" in outputs


def test_play_session_word_typed_with_spaces(table, curriculum, tmp_path: Path) -> None:
    mastery = {rank: 1 for rank in range(1, 9)}
    progress = Progress(current_level=9, mastery_count_per_level=mastery)
    engine, store = _session(table, curriculum, tmp_path, progress)
    outputs: list[str] = []
    main.play_session(engine, store, _inputs(["- .... .", ":q"]), outputs.append)
    assert "Correct." in outputs
