"""Deletion of transient upload and output files.

Two mechanisms: a one-shot deferred delete per job, started after delivery,
and a recurring sweep over both storage directories that removes files older
than the retention threshold. Time and timers are injectable so tests can
drive both without waiting on the wall clock.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from .interfaces import Clock, TimerFactory, TimerHandle

LOGGER = logging.getLogger(__name__)


def threading_timer(delay: float, fn: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    return timer


def delete_file(path: Optional[str | Path]) -> bool:
    """Best-effort delete. A missing file is not an error."""
    if not path:
        return False
    p = Path(path)
    try:
        p.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        LOGGER.error("Error cleaning up file %s: %s", p, exc)
        return False
    LOGGER.info("Cleaned up file: %s", p.name)
    return True


@dataclass
class DeferredDelete:
    paths: tuple[Path, ...]
    due_at: float
    on_done: Optional[Callable[[], None]] = None
    done: bool = False

    def run(self) -> None:
        if self.done:
            return
        self.done = True
        for p in self.paths:
            delete_file(p)
        if self.on_done is not None:
            try:
                self.on_done()
            except Exception:
                LOGGER.exception("Cleanup completion callback failed")


class CleanupScheduler:
    def __init__(
        self,
        incoming_dir: str | Path,
        outgoing_dir: str | Path,
        *,
        delay: float = 5.0,
        max_age: float = 24 * 60 * 60,
        sweep_interval: float = 60 * 60,
        clock: Clock = time.time,
        timer: TimerFactory = threading_timer,
    ) -> None:
        self._incoming = Path(incoming_dir)
        self._outgoing = Path(outgoing_dir)
        self._delay = delay
        self._max_age = max_age
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._timer = timer
        self._task: Optional[asyncio.Task] = None

    @property
    def directories(self) -> tuple[Path, Path]:
        return (self._incoming, self._outgoing)

    def ensure_directories(self) -> None:
        for d in self.directories:
            if not d.exists():
                d.mkdir(parents=True, exist_ok=True)
                LOGGER.info("Created directory: %s", d)

    def schedule_deferred_delete(
        self,
        paths: Iterable[Optional[str | Path]],
        delay: Optional[float] = None,
        on_done: Optional[Callable[[], None]] = None,
    ) -> DeferredDelete:
        """Delete ``paths`` once ``delay`` seconds have passed. Cannot be cancelled."""
        delay = self._delay if delay is None else delay
        handle = DeferredDelete(
            paths=tuple(Path(p) for p in paths if p),
            due_at=self._clock() + delay,
            on_done=on_done,
        )
        self._timer(delay, handle.run).start()
        return handle

    def delete_now(self, paths: Iterable[Optional[str | Path]]) -> None:
        for p in paths:
            delete_file(p)

    def run_sweep(self, directory: str | Path, max_age: Optional[float] = None) -> list[Path]:
        """Delete files in ``directory`` whose age is strictly greater than ``max_age`` seconds."""
        max_age = self._max_age if max_age is None else max_age
        d = Path(directory)
        if not d.is_dir():
            return []
        now = self._clock()
        removed: list[Path] = []
        for entry in sorted(d.iterdir()):
            try:
                if not entry.is_file():
                    continue
                age = now - entry.stat().st_mtime
            except FileNotFoundError:
                continue
            if age > max_age and delete_file(entry):
                removed.append(entry)
        if removed:
            LOGGER.info("Sweep removed %d old file(s) from %s", len(removed), d)
        return removed

    def sweep_all(self) -> list[Path]:
        removed: list[Path] = []
        for d in self.directories:
            removed.extend(self.run_sweep(d))
        return removed

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await asyncio.to_thread(self.sweep_all)
            except Exception:
                LOGGER.exception("Periodic sweep failed")
