"""
Cooldown ledger for decision deduplication.

A parked or slow car is confirmed over and over; the ledger makes sure only
the first decision per plate inside a window is emitted.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional


class CooldownLedger:
    """
    Last-decision times per plate key.

    The window anchors to the first emitted decision: suppressed decisions do
    not refresh it. Records are kept for `retention` seconds so prune() can
    bound memory.
    """

    def __init__(self, window: float = 15.0, retention: float = 60.0):
        if retention < window:
            raise ValueError(f"Cooldown retention ({retention}s) must be >= window ({window}s)")
        self.window = window
        self.retention = retention
        self._last: Dict[str, float] = {}
        self._lock = threading.Lock()

    def try_acquire(self, key: str, now: Optional[float] = None) -> bool:
        """
        Record a decision for key unless one is still cooling down.

        Returns:
            True when the caller may emit, False when suppressed.
        """
        now = time.time() if now is None else now
        with self._lock:
            last = self._last.get(key)
            if last is not None and (now - last) < self.window:
                return False
            self._last[key] = now
            return True

    def prune(self, now: Optional[float] = None) -> int:
        """Drop records older than the retention window. Returns how many were dropped."""
        now = time.time() if now is None else now
        with self._lock:
            stale = [k for k, t in self._last.items() if now - t > self.retention]
            for k in stale:
                del self._last[k]
        if stale:
            logging.debug(f"Cooldown ledger pruned {len(stale)} record(s)")
        return len(stale)

    def last_decision_time(self, key: str) -> Optional[float]:
        with self._lock:
            return self._last.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._last)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._last
