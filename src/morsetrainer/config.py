"""Tunable progression thresholds and progress-file location."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError

APP_DIR_NAME = "morsetrainer"
PROGRESS_FILE_NAME = "progress.json"
HOME_ENV_VAR = "MORSETRAINER_HOME"


@dataclass(frozen=True)
class ProgressionConfig:
    """Mastery and demotion rule settings.

    - `window_size`: how many of the most recent answers at the current level are judged.
    - `min_advance_samples`: answers the window must hold before an advance can fire.
    - `advance_ratio`: accuracy needed to advance; `None` uses each level's own requirement.
    - `demote_ratio`: accuracy strictly below this demotes one level.
    - `min_demote_samples`: answers the window must hold before a demotion can fire.
    - `session_length`: prompts per session; `None` runs until the learner quits.
    """

    window_size: int = 10
    min_advance_samples: int = 10
    advance_ratio: float | None = None
    demote_ratio: float = 0.3
    min_demote_samples: int = 10
    session_length: int | None = None
    avoid_repeats: bool = True

    def __post_init__(self) -> None:
        if self.window_size < 1:
            raise ConfigurationError("window_size must be at least 1.")
        if not 1 <= self.min_advance_samples <= self.window_size:
            raise ConfigurationError("min_advance_samples must be between 1 and window_size.")
        if not 1 <= self.min_demote_samples <= self.window_size:
            raise ConfigurationError("min_demote_samples must be between 1 and window_size.")
        if self.advance_ratio is not None and not 0.0 < self.advance_ratio <= 1.0:
            raise ConfigurationError("advance_ratio must be in (0, 1].")
        if not 0.0 <= self.demote_ratio < 1.0:
            raise ConfigurationError("demote_ratio must be in [0, 1).")
        if self.advance_ratio is not None and self.demote_ratio >= self.advance_ratio:
            raise ConfigurationError("demote_ratio must be lower than advance_ratio.")
        if self.session_length is not None and self.session_length < 1:
            raise ConfigurationError("session_length must be at least 1.")


def default_progress_path() -> Path:
    """Resolve per-user progress file path."""
    override = os.environ.get(HOME_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser() / PROGRESS_FILE_NAME

    xdg = os.environ.get("XDG_CONFIG_HOME", "").strip()
    if xdg:
        return Path(xdg).expanduser() / APP_DIR_NAME / PROGRESS_FILE_NAME

    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA", "").strip()
        if appdata:
            return Path(appdata) / APP_DIR_NAME / PROGRESS_FILE_NAME

    return Path.home() / ".config" / APP_DIR_NAME / PROGRESS_FILE_NAME
