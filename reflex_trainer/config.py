from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .sequencer import DEFAULT_ORDER, SessionConfig, TaskId

LOG_LEVEL_ENV = "REFLEX_TRAINER_LOG_LEVEL"
LOG_PATH_ENV = "REFLEX_TRAINER_LOG_PATH"
SEED_ENV = "REFLEX_TRAINER_SEED"
TASKS_ENV = "REFLEX_TRAINER_TESTS"
INTERSTITIALS_ENV = "REFLEX_TRAINER_INTERSTITIALS"

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True, slots=True)
class AppSettings:
    log_level: str = "INFO"
    log_path: Path | None = None
    seed: int | None = None
    order: tuple[TaskId, ...] = DEFAULT_ORDER
    interstitials: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppSettings":
        env = os.environ if environ is None else environ

        level = env.get(LOG_LEVEL_ENV, "").strip().upper() or "INFO"
        if level not in _LEVELS:
            raise ValueError(f"{LOG_LEVEL_ENV} must be one of {', '.join(_LEVELS)}, got {level!r}")

        raw_path = env.get(LOG_PATH_ENV, "").strip()
        log_path = Path(raw_path).expanduser() if raw_path else None

        raw_seed = env.get(SEED_ENV, "").strip()
        seed: int | None = None
        if raw_seed:
            try:
                seed = int(raw_seed)
            except ValueError:
                raise ValueError(f"{SEED_ENV} must be an integer, got {raw_seed!r}") from None

        order = _parse_order(env.get(TASKS_ENV, ""))

        raw_inter = env.get(INTERSTITIALS_ENV, "").strip().lower()
        if raw_inter in ("", "1", "true", "yes", "on"):
            interstitials = True
        elif raw_inter in ("0", "false", "no", "off"):
            interstitials = False
        else:
            raise ValueError(f"{INTERSTITIALS_ENV} must be 0 or 1, got {raw_inter!r}")

        return cls(
            log_level=level,
            log_path=log_path,
            seed=seed,
            order=order,
            interstitials=interstitials,
        )

    def session_config(self, *, order: tuple[TaskId, ...] | None = None) -> SessionConfig:
        return SessionConfig(
            order=self.order if order is None else order,
            interstitials=self.interstitials,
        )


def _parse_order(raw: str) -> tuple[TaskId, ...]:
    names = [part.strip().lower() for part in raw.split(",") if part.strip()]
    if not names:
        return DEFAULT_ORDER

    valid = {t.value: t for t in TaskId}
    unknown = [n for n in names if n not in valid]
    if unknown:
        raise ValueError(
            f"{TASKS_ENV} has unknown test id(s) {', '.join(unknown)}; "
            f"expected any of {', '.join(valid)}"
        )
    return tuple(valid[n] for n in names)


def configure_logging(settings: AppSettings) -> None:
    """Console handler always; file handler when a log path is configured."""

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if settings.log_path is not None else settings.log_level)
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()

    console = logging.StreamHandler()
    console.setLevel(settings.log_level)
    console.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    root.addHandler(console)

    if settings.log_path is not None:
        settings.log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(settings.log_path, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(fh)

    logging.debug("Logging initialised: console=%s file=%s", settings.log_level, settings.log_path)
