#!/usr/bin/env python3
"""
signals.py — Minimal observer list for PathCam notifications.

A Signal is a named list of callbacks. emit() dispatches synchronously to
the listeners connected at that moment; a failing listener is logged and
skipped so it cannot break the emitter (the playback loop in particular).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger("PathCam.Signals")


@dataclass
class Connection:
    """Handle returned by Signal.connect()."""
    callback_id: int
    signal: Optional["Signal"] = None

    def disconnect(self):
        if self.signal is not None:
            self.signal._remove(self.callback_id)
            self.signal = None


class Signal:

    def __init__(self, name: str):
        self.name = name
        self._callbacks: Dict[int, Callable] = {}
        self._next_id = 0

    def connect(self, callback: Callable) -> Connection:
        callback_id = self._next_id
        self._next_id += 1
        self._callbacks[callback_id] = callback
        return Connection(callback_id=callback_id, signal=self)

    def disconnect_all(self):
        self._callbacks.clear()

    def emit(self, *args, **kwargs):
        for callback in list(self._callbacks.values()):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Signal handler error [{self.name}]: {e}")

    def __len__(self):
        return len(self._callbacks)

    def _remove(self, callback_id: int):
        self._callbacks.pop(callback_id, None)
