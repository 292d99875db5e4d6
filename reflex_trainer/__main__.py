from __future__ import annotations

from .app import run


def main() -> int:
    """Entry point for ``python -m reflex_trainer`` and the ``reflex-trainer`` script."""
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
