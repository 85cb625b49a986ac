"""
Countdown Presenter

Presentation-side companion of the undo manager: follows the active entry,
samples a progress value from 100 down to 0 over the undo window, and
turns button presses into manager calls.

The presenter owns no undo state. Reaching 0 dismisses the entry; it
never calls the reversal.
"""

import math
from typing import Optional

from pydantic import BaseModel

from financia.models.undo import UndoEntry, UndoResult
from financia.undo.manager import UndoManager
from financia.undo.scheduler import RepeatingTask


class CountdownView(BaseModel):
    """What the undo toast should show right now."""
    visible: bool
    description: str = ""
    progress: float = 100.0
    seconds_left: int = 0
    undo_enabled: bool = False
    undo_label: str = "Undo"


class CountdownPresenter:
    """
    Drives the undo toast for one manager.

    Args:
        manager: The session's undo manager
        window_ms: Countdown length; defaults to the manager's undo window
        tick_ms: Sampling interval; defaults to `countdown_tick_ms`
    """

    def __init__(
        self,
        manager: UndoManager,
        window_ms: Optional[int] = None,
        tick_ms: Optional[int] = None,
    ):
        self._manager = manager
        self._window_ms = window_ms or manager.settings.window_ms
        self._tick_ms = tick_ms or manager.settings.countdown_tick_ms

        self._entry: Optional[UndoEntry] = None
        self._started_at: float = 0.0
        self._progress: float = 100.0
        self._is_undoing = False
        self._ticker: Optional[RepeatingTask] = None

        self._unsubscribe = manager.subscribe(self._on_active_changed)
        self._on_active_changed(manager.active_undo)

    @property
    def entry(self) -> Optional[UndoEntry]:
        return self._entry

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def seconds_left(self) -> int:
        return math.ceil(self._progress * self._window_ms / 100_000)

    @property
    def is_undoing(self) -> bool:
        return self._is_undoing

    def render(self) -> CountdownView:
        if self._entry is None:
            return CountdownView(visible=False)
        return CountdownView(
            visible=True,
            description=self._entry.description,
            progress=self._progress,
            seconds_left=self.seconds_left,
            undo_enabled=not self._is_undoing,
            undo_label="Undoing..." if self._is_undoing else "Undo",
        )

    def tick(self) -> None:
        """Sample the countdown; dismisses the entry when it reaches 0."""
        if self._entry is None:
            return
        elapsed = self._manager.scheduler.now_ms() - self._started_at
        remaining = max(0.0, self._window_ms - elapsed)
        self._progress = min(self._progress, remaining / self._window_ms * 100)

        if self._progress <= 0:
            entry_id = self._entry.id
            self._stop_ticker()
            self._manager.dismiss_undo(entry_id)

    async def press_undo(self) -> Optional[UndoResult]:
        """
        Undo the shown entry.

        Returns None without calling the manager while a previous press
        is still pending or when nothing is shown.
        """
        if self._is_undoing or self._entry is None:
            return None
        self._is_undoing = True
        try:
            return await self._manager.undo(self._entry.id)
        finally:
            self._is_undoing = False

    def press_dismiss(self) -> None:
        if self._entry is not None:
            self._manager.dismiss_undo(self._entry.id)

    def close(self) -> None:
        self._unsubscribe()
        self._stop_ticker()
        self._entry = None

    def _on_active_changed(self, entry: Optional[UndoEntry]) -> None:
        if entry is None:
            self._stop_ticker()
            self._entry = None
            self._progress = 100.0
            return
        if self._entry is not None and self._entry.id == entry.id:
            return

        self._stop_ticker()
        self._entry = entry
        self._progress = 100.0
        self._started_at = self._manager.scheduler.now_ms()
        self._ticker = self._manager.scheduler.call_every(
            self._tick_ms,
            self.tick,
            name="undo-countdown",
        )

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
