from __future__ import annotations

import logging

import pytest

from reflex_trainer.config import (
    INTERSTITIALS_ENV,
    LOG_LEVEL_ENV,
    LOG_PATH_ENV,
    SEED_ENV,
    TASKS_ENV,
    AppSettings,
    configure_logging,
)
from reflex_trainer.sequencer import DEFAULT_ORDER, TaskId


def test_defaults_from_empty_environment() -> None:
    settings = AppSettings.from_env({})

    assert settings.log_level == "INFO"
    assert settings.log_path is None
    assert settings.seed is None
    assert settings.order == DEFAULT_ORDER
    assert settings.interstitials is True


def test_values_parsed_from_environment() -> None:
    settings = AppSettings.from_env(
        {
            LOG_LEVEL_ENV: "debug",
            SEED_ENV: " 42 ",
            TASKS_ENV: "prosaccade, reaction_time",
            INTERSTITIALS_ENV: "off",
        }
    )

    assert settings.log_level == "DEBUG"
    assert settings.seed == 42
    assert settings.order == (TaskId.PROSACCADE, TaskId.REACTION_TIME)
    assert settings.interstitials is False

    session = settings.session_config()
    assert session.order == (TaskId.PROSACCADE, TaskId.REACTION_TIME)
    assert session.interstitials is False
    assert settings.session_config(order=(TaskId.OPTOKINETIC,)).order == (TaskId.OPTOKINETIC,)


@pytest.mark.parametrize(
    "env",
    [
        {LOG_LEVEL_ENV: "loud"},
        {SEED_ENV: "abc"},
        {TASKS_ENV: "reaction_time,juggling"},
        {INTERSTITIALS_ENV: "maybe"},
    ],
)
def test_invalid_environment_values_raise(env: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        AppSettings.from_env(env)


def test_configure_logging_writes_debug_to_file(tmp_path) -> None:
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    log_path = tmp_path / "logs" / "session.log"
    try:
        configure_logging(AppSettings(log_level="WARNING", log_path=log_path))
        assert root.level == logging.DEBUG

        logging.getLogger("reflex_trainer.test").debug("stimulus onset")
        for handler in root.handlers:
            handler.flush()

        text = log_path.read_text(encoding="utf-8")
        assert "[DEBUG] reflex_trainer.test: stimulus onset" in text
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_configure_logging_closes_replaced_file_handler(tmp_path) -> None:
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    try:
        configure_logging(AppSettings(log_path=tmp_path / "first.log"))
        (first,) = [h for h in root.handlers if isinstance(h, logging.FileHandler)]

        configure_logging(AppSettings(log_path=tmp_path / "second.log"))
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]

        assert first not in root.handlers
        assert first.stream is None
        assert len(file_handlers) == 1
        assert file_handlers[0].baseFilename.endswith("second.log")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)
