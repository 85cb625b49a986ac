"""
Shared fixtures.

Time-dependent behavior is tested with a controllable clock; async code is
driven with asyncio.run inside plain test functions.
"""

import pytest

from financia.config import BackupSettings, UndoSettings
from financia.undo import Scheduler, UndoManager


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_manager(clock):
    """Factory for managers on the fake clock with default policy values."""
    def factory(real_clock: bool = False, audit_logger=None, **overrides):
        values = {
            "window_ms": 5000,
            "max_entries": 10,
            "sweep_interval_ms": 1000,
            "countdown_tick_ms": 50,
        }
        values.update(overrides)
        scheduler = Scheduler() if real_clock else Scheduler(clock=clock)
        return UndoManager(
            settings=UndoSettings(**values),
            scheduler=scheduler,
            audit_logger=audit_logger,
        )
    return factory


@pytest.fixture
def backup_settings(tmp_path):
    return BackupSettings(
        export_dir=str(tmp_path / "exports"),
        state_file=str(tmp_path / "state" / "backup_state.json"),
        reminder_interval_days=7,
        postpone_days=1,
    )

