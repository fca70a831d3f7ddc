"""
Keyboard-driven crop editing over a batch of sessions.

The controller is toolkit-agnostic: a front end turns its own key events
into ``KeyEvent`` values and feeds them to ``handle()`` (push), or hands an
iterable of events to ``run()`` (pull, blocking on the iterable).  Only
key presses act; releases are ignored.

Exactly one session, the one under the cursor, changes per event.
Nothing is written to disk except on SAVE.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

from trombinoscope.config import DEFAULT_MODIFIER_MULTIPLIERS, NUDGE_BASE
from trombinoscope.metadata import MetadataError
from trombinoscope.models import Direction
from trombinoscope.session import CropSession

logger = logging.getLogger(__name__)


class Key(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"
    ROTATE_LEFT = "rotate_left"
    ROTATE_RIGHT = "rotate_right"
    NEXT = "next"
    PREVIOUS = "previous"
    SAVE = "save"
    QUIT = "quit"


class Modifier(Enum):
    SHIFT = "shift"
    CONTROL = "control"
    ALT = "alt"


@dataclass(frozen=True)
class KeyEvent:
    key: Key
    pressed: bool = True
    modifiers: frozenset = field(default_factory=frozenset)


@dataclass(frozen=True)
class PersistFailure:
    path: Path
    error: Exception


_DIRECTIONS = {
    Key.UP: Direction.UP,
    Key.DOWN: Direction.DOWN,
    Key.LEFT: Direction.LEFT,
    Key.RIGHT: Direction.RIGHT,
    Key.ZOOM_IN: Direction.ZOOM_IN,
    Key.ZOOM_OUT: Direction.ZOOM_OUT,
}

_ROTATIONS = {Key.ROTATE_LEFT: -1, Key.ROTATE_RIGHT: 1}


def compute_step(base: int, modifiers: Iterable[Modifier], multipliers: dict | None = None) -> int:
    """
    Scale ``base`` by the multiplier of every active modifier.

    ``multipliers`` is keyed by modifier name (``"shift"``...); missing
    modifiers count as 1.  A positive base never yields less than 1.
    """
    if base <= 0:
        return 0
    if multipliers is None:
        multipliers = DEFAULT_MODIFIER_MULTIPLIERS
    step = base
    for mod in set(modifiers):
        step *= multipliers.get(mod.value, 1)
    return max(1, round(step))


class EditController:
    def __init__(
        self,
        sessions: list[CropSession],
        step_base: int = NUDGE_BASE,
        multipliers: dict | None = None,
        on_change: Callable[[CropSession], None] | None = None,
        on_save: Callable[[list[CropSession], list[PersistFailure]], None] | None = None,
    ):
        self.sessions = sessions
        self.index = 0
        self.step_base = step_base
        self.multipliers = dict(DEFAULT_MODIFIER_MULTIPLIERS if multipliers is None else multipliers)
        self._on_change = on_change
        self._on_save = on_save

    @property
    def current(self) -> CropSession | None:
        if not self.sessions:
            return None
        return self.sessions[self.index]

    def handle(self, event: KeyEvent) -> bool:
        """Apply one event.  Returns False once the loop should stop."""
        if not event.pressed:
            return True
        key = event.key
        if key is Key.QUIT:
            logger.debug("Quit requested at photo %d", self.index)
            return False
        if key is Key.SAVE:
            self.save_all()
            return True
        if not self.sessions:
            return True

        if key in _DIRECTIONS:
            step = compute_step(self.step_base, event.modifiers, self.multipliers)
            self.current.mutate(_DIRECTIONS[key], step)
        elif key in _ROTATIONS:
            self.current.rotate(_ROTATIONS[key])
        elif key is Key.NEXT:
            self.index = min(self.index + 1, len(self.sessions) - 1)
        elif key is Key.PREVIOUS:
            self.index = max(self.index - 1, 0)
        else:
            return True

        if self._on_change is not None:
            self._on_change(self.current)
        return True

    def run(self, events: Iterable[KeyEvent]) -> None:
        """Consume events until QUIT or until the source is exhausted."""
        if self._on_change is not None and self.current is not None:
            self._on_change(self.current)
        for event in events:
            if not self.handle(event):
                break

    def save_all(self, notify: bool = True) -> list[PersistFailure]:
        """
        Persist every session in order.

        A failure on one file does not stop the others; every failure is
        logged and returned.  ``on_save`` is only called when ``notify`` is
        set.
        """
        failures = []
        for session in self.sessions:
            try:
                session.persist()
            except (OSError, MetadataError) as exc:
                logger.error("Failed to embed metadata in %s: %s", session.path, exc)
                failures.append(PersistFailure(session.path, exc))
        logger.info("Saved %d/%d photo(s)", len(self.sessions) - len(failures), len(self.sessions))
        if notify and self._on_save is not None:
            self._on_save(self.sessions, failures)
        return failures
