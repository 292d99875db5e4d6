"""Test package for the Reflex Trainer.

Core modules (geometry, stats, trial engines, sequencer) are driven
headlessly with a fake clock and a real ``ClockScheduler``. The pygame
shell is smoke-tested with SDL's dummy video driver so no real window
opens. Run ``pytest`` from the project root.
"""
