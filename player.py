#!/usr/bin/env python3
"""
player.py — Real-time playback of a sampled camera path.

PlaybackController walks the PathCache samples on an asyncio task, writes
each one into the pose sink, and sleeps one (compensated) frame interval
between samples. stop() is cooperative: the task notices it before the next
write, remembers where it was, and a later start() resumes from there.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from pose import Pose
from signals import Signal

logger = logging.getLogger("PathCam.Player")

# Sleep a little less than a frame to absorb scheduling overhead
TIMER_COMPENSATION = 0.9


class PlaybackController:
    """
    Idle -> Running -> Idle.

    `samples_fn` returns the current sample list (rebuilding it if stale),
    `interval_fn` the sample spacing in seconds. Notifications:
        frame_interpolated(index, pose)   after each sink write
        interpolation_stopped()           after the last sample was played
    """

    def __init__(self, sink, samples_fn: Callable[[], List[Pose]],
                 interval_fn: Callable[[], float],
                 timer_compensation: float = TIMER_COMPENSATION):
        self.sink        = sink
        self._samples_fn = samples_fn
        self._interval_fn = interval_fn
        self.timer_compensation = timer_compensation

        self.next_index: int = 0
        self._running: bool = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

        self.frame_interpolated    = Signal("frame_interpolated")
        self.interpolation_stopped = Signal("interpolation_stopped")

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """
        Begin (or resume) playback on the running event loop.
        Returns False if already running or there is nothing to play.
        """
        if self._running:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("Playback needs a running event loop; not started.")
            return False

        samples = self._samples_fn()
        if not samples:
            return False
        if self.next_index >= len(samples):
            self.next_index = 0

        # A stopped-but-still-sleeping task keeps its own (set) event
        self._stop_event = asyncio.Event()
        self._running = True
        self._task = loop.create_task(self._loop(samples, self._stop_event))
        logger.info(f"Playback started at sample {self.next_index}/{len(samples)}")
        return True

    def stop(self):
        """Ask the playback task to halt before its next frame. Idempotent."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._running:
            logger.info(f"Playback stopped at sample {self.next_index}")
        self._running = False

    def reset(self):
        """Stop and forget the resume position."""
        self.stop()
        self.next_index = 0

    async def wait(self):
        """Wait for the current playback task to finish."""
        if self._task is not None:
            await asyncio.shield(self._task)

    def _frame_delay(self) -> float:
        return self._interval_fn() * self.timer_compensation

    async def _loop(self, samples: List[Pose], stop_event: asyncio.Event):
        completed = False
        try:
            delay = self._frame_delay()
            last = len(samples) - 1
            for index in range(self.next_index, len(samples)):
                if stop_event.is_set():
                    break
                pose = samples[index]
                self.sink.set_position_and_orientation(pose.position, pose.orientation)
                self.next_index = 0 if index == last else index + 1
                self.frame_interpolated.emit(index, pose)
                await asyncio.sleep(delay)
            else:
                completed = not stop_event.is_set()
        finally:
            if self._stop_event is stop_event:
                self._running = False

        if completed:
            logger.info("Playback complete.")
            self.interpolation_stopped.emit()
