"""Pygame UI shell for the Reflex Trainer.

- Full session: every configured test in order, with "Test N/M" slides.
- Single test: any one test as a one-task session.

Deterministic timing/placement/scoring/state lives in reflex_trainer/* (core
modules). This shell only pumps the scheduler, forwards clicks, and draws the
RenderFrame the sequencer hands back.
"""

from __future__ import annotations

import logging
import random
import zlib
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import Clock, ClockScheduler, RealClock
from .cognitive_core import ImageGrid, Marker, MarkerShape, RenderFrame, StripeLayer
from .config import AppSettings, configure_logging
from .geometry import Point, Size
from .sequencer import TASK_REGISTRY, ResultsPhase, Sequencer, StartPhase, TaskId

logger = logging.getLogger(__name__)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuEntry:
    label: str
    on_select: Callable[[], None]


WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

COLORS: dict[str, tuple[int, int, int]] = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (225, 40, 40),
    "blue": (40, 100, 240),
    "cyan": (0, 225, 235),
    "yellow": (245, 220, 60),
    "green": (60, 200, 90),
    "dark_gray": (64, 64, 64),
}


def _rgb(name: str) -> tuple[int, int, int]:
    return COLORS.get(name, (255, 0, 255))


class App:
    """Window surface plus a stack of screens; only the top screen sees events."""

    def __init__(self, surface: pygame.Surface) -> None:
        self._surface = surface
        self._stack: list[Screen] = []
        self._alive = True

    @property
    def running(self) -> bool:
        return self._alive

    def viewport(self) -> Size:
        w, h = self._surface.get_size()
        return Size(float(w), float(h))

    def push(self, screen: Screen) -> None:
        self._stack.append(screen)

    def pop(self) -> None:
        # The bottom screen stays; it owns quitting.
        if len(self._stack) > 1:
            self._stack.pop()

    def quit(self) -> None:
        self._alive = False

    def dispatch(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
        elif event.type == pygame.VIDEORESIZE:
            self._surface = pygame.display.get_surface()
        elif self._stack:
            self._stack[-1].handle_event(event)

    def draw(self) -> None:
        if self._stack:
            self._stack[-1].render(self._surface)


class MenuScreen:
    """Numbered vertical menu: arrows + Enter, digit keys, or the mouse."""

    _BG = (10, 14, 24)
    _ROW = (24, 32, 52)
    _ROW_EDGE = (70, 96, 160)
    _CURSOR = (236, 242, 255)
    _TEXT = (230, 238, 250)
    _TEXT_ON_CURSOR = (16, 28, 70)
    _HINT = (150, 162, 186)

    def __init__(
        self,
        app: App,
        title: str,
        entries: list[MenuEntry],
        *,
        on_back: Callable[[], None] | None = None,
    ) -> None:
        if not entries:
            raise ValueError("a menu needs at least one entry")
        self._app = app
        self._title = title
        self._entries = entries
        self._cursor = 0
        self._on_back = app.pop if on_back is None else on_back
        self._title_font = pygame.font.Font(None, 48)
        self._entry_font = pygame.font.Font(None, 30)
        self._hint_font = pygame.font.Font(None, 20)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            key = event.key
            if key in (pygame.K_UP, pygame.K_w):
                self._cursor = (self._cursor - 1) % len(self._entries)
            elif key in (pygame.K_DOWN, pygame.K_s):
                self._cursor = (self._cursor + 1) % len(self._entries)
            elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                self._select(self._cursor)
            elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
                self._on_back()
            elif pygame.K_1 <= key <= pygame.K_9:
                self._select(key - pygame.K_1)
        elif event.type == pygame.MOUSEMOTION:
            hit = self._hit(event.pos)
            if hit is not None:
                self._cursor = hit
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            hit = self._hit(event.pos)
            if hit is not None:
                self._select(hit)

    def _select(self, index: int) -> None:
        if 0 <= index < len(self._entries):
            self._cursor = index
            self._entries[index].on_select()

    def _rows(self, w: int, h: int) -> list[pygame.Rect]:
        top = max(100, h // 4)
        row_h = max(28, min(42, (h - top - 50) // len(self._entries) - 8))
        width = min(480, w - 60)
        left = (w - width) // 2
        return [pygame.Rect(left, top + i * (row_h + 8), width, row_h) for i in range(len(self._entries))]

    def _hit(self, pos: tuple[int, int]) -> int | None:
        w, h = pygame.display.get_surface().get_size()
        for index, row in enumerate(self._rows(w, h)):
            if row.collidepoint(pos):
                return index
        return None

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(self._BG)

        heading = self._title_font.render(self._title, True, self._TEXT)
        surface.blit(heading, heading.get_rect(midtop=(w // 2, max(24, h // 12))))

        for index, row in enumerate(self._rows(w, h)):
            on_cursor = index == self._cursor
            pygame.draw.rect(surface, self._CURSOR if on_cursor else self._ROW, row, border_radius=6)
            if not on_cursor:
                pygame.draw.rect(surface, self._ROW_EDGE, row, 1, border_radius=6)
            label = f"{index + 1}. {self._entries[index].label}"
            text = self._entry_font.render(label, True, self._TEXT_ON_CURSOR if on_cursor else self._TEXT)
            surface.blit(text, text.get_rect(midleft=(row.x + 14, row.centery)))

        hint = self._hint_font.render("Up/Down + Enter, 1-9 or click to choose  |  Esc: back", True, self._HINT)
        surface.blit(hint, hint.get_rect(midbottom=(w // 2, h - 10)))


class SessionScreen:
    def __init__(
        self,
        app: App,
        *,
        clock: Clock,
        settings: AppSettings,
        order: tuple[TaskId, ...] | None = None,
    ) -> None:
        self._app = app
        self._clock = clock
        self._scheduler = ClockScheduler(clock)
        seed = settings.seed if settings.seed is not None else _new_seed()
        self._sequencer = Sequencer(
            clock=clock,
            scheduler=self._scheduler,
            viewport=app.viewport(),
            seed=seed,
            config=settings.session_config(order=order),
        )
        logger.info("Session screen opened (seed=%d)", seed)

        self._headline_font = pygame.font.Font(None, 96)
        self._body_font = pygame.font.Font(None, 32)
        self._small_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            # Emergency exit from any state.
            if event.key == pygame.K_F12:
                self._close()
                return
            if event.key == pygame.K_ESCAPE:
                if isinstance(self._sequencer.phase, (StartPhase, ResultsPhase)):
                    self._close()
                else:
                    self._sequencer.restart()
                return
            if event.key == pygame.K_r:
                self._sequencer.restart()
                return
            if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                self._sequencer.confirm()
            return

        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            x, y = event.pos
            self._sequencer.pointer_tapped(Point(float(x), float(y)), self._clock.now())

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        self._sequencer.set_viewport(Size(float(w), float(h)))
        self._scheduler.pump()
        self._draw_frame(surface, self._sequencer.frame())

    def _close(self) -> None:
        self._sequencer.restart()
        self._app.pop()

    def _draw_frame(self, surface: pygame.Surface, frame: RenderFrame) -> None:
        surface.fill(_rgb(frame.background))

        if frame.stripes is not None:
            self._draw_stripes(surface, frame.stripes)
        if frame.image_grid is not None:
            self._draw_image_grid(surface, frame.image_grid)
        if frame.fixation is not None:
            self._draw_marker(surface, frame.fixation)
        if frame.target is not None:
            self._draw_marker(surface, frame.target)

        self._draw_text(surface, frame)

    def _draw_text(self, surface: pygame.Surface, frame: RenderFrame) -> None:
        w, h = surface.get_size()
        color = _rgb(frame.text_color)

        y = 40
        if frame.headline is not None:
            head = self._headline_font.render(frame.headline, True, color)
            cy = h // 2 if not frame.lines else max(70, h // 6)
            rect = head.get_rect(center=(w // 2, cy))
            surface.blit(head, rect)
            y = rect.bottom + 20

        for line in frame.lines:
            if y > h - 30:
                break
            if line:
                txt = self._body_font.render(line, True, color)
                surface.blit(txt, txt.get_rect(midtop=(w // 2, y)))
            y += 30

    @staticmethod
    def _draw_marker(surface: pygame.Surface, marker: Marker) -> None:
        color = _rgb(marker.color)
        cx, cy = int(round(marker.position.x)), int(round(marker.position.y))
        half = max(1, int(round(marker.size / 2.0)))
        if marker.shape is MarkerShape.PLUS:
            thick = max(2, half // 4)
            pygame.draw.line(surface, color, (cx - half, cy), (cx + half, cy), thick)
            pygame.draw.line(surface, color, (cx, cy - half), (cx, cy + half), thick)
        else:
            pygame.draw.circle(surface, color, (cx, cy), half)

    @staticmethod
    def _draw_stripes(surface: pygame.Surface, layer: StripeLayer) -> None:
        w, h = surface.get_size()
        color = _rgb(layer.color)
        x = layer.offset_x
        for width in layer.widths:
            if x > w:
                break
            if x + width >= 0:
                pygame.draw.rect(surface, color, pygame.Rect(int(x), 0, max(1, int(round(width))), h))
            x += width + layer.gap

    def _draw_image_grid(self, surface: pygame.Surface, grid: ImageGrid) -> None:
        w, h = surface.get_size()
        qw, qh = w // 2, h // 2
        inset = max(8, min(qw, qh) // 10)
        for idx, image in enumerate(grid.images):
            col, row = idx % 2, idx // 2
            rect = pygame.Rect(col * qw + inset, row * qh + inset, qw - 2 * inset, qh - 2 * inset)
            pygame.draw.rect(surface, self._image_color(image), rect)
            label = self._small_font.render(image, True, (10, 10, 10))
            surface.blit(label, label.get_rect(center=rect.center))

    @staticmethod
    def _image_color(image: str) -> pygame.Color:
        # Stand-in artwork: a stable colour per logical image id.
        color = pygame.Color(0, 0, 0)
        color.hsva = (zlib.crc32(image.encode("utf-8")) % 360, 55, 90, 100)
        return color


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def _build_menus(app: App, settings: AppSettings, clock: Clock) -> MenuScreen:
    def open_session(order: tuple[TaskId, ...] | None = None) -> None:
        app.push(SessionScreen(app, clock=clock, settings=settings, order=order))

    def drill(task: TaskId) -> MenuEntry:
        return MenuEntry(TASK_REGISTRY[task].title, lambda: open_session((task,)))

    drills = MenuScreen(app, "Single Test", [drill(task) for task in TaskId] + [MenuEntry("Back", app.pop)])

    return MenuScreen(
        app,
        "Reflex Trainer",
        [
            MenuEntry("Full Session", open_session),
            MenuEntry("Single Test", lambda: app.push(drills)),
            MenuEntry("Quit", app.quit),
        ],
        on_back=app.quit,
    )


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    settings = AppSettings.from_env()
    configure_logging(settings)

    pygame.init()
    pygame.display.set_caption("Reflex Trainer")
    app = App(pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE))
    app.push(_build_menus(app, settings, RealClock()))
    logger.info("Reflex Trainer started (tests: %s)", ", ".join(t.value for t in settings.order))

    ticker = pygame.time.Clock()
    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.dispatch(event)
            app.draw()
            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break
            ticker.tick(TARGET_FPS)
    finally:
        pygame.quit()
        logger.info("Reflex Trainer closed after %d frames", frame)

    return 0
