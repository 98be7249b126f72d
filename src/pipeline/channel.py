"""
Decision publication channel.

Each observer gets its own bounded queue and worker thread, so a slow
observer (e.g. a gate relay or an HTTP hook) never stalls the frame loop or
the other observers.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, List, Optional

from models.decision_event import DecisionEvent

DecisionObserver = Callable[[DecisionEvent], None]

# Sentinel that tells a worker to exit once its queue is drained
_CLOSE = object()


class _Subscription:
    def __init__(self, observer: DecisionObserver, name: str, maxsize: int):
        self.observer = observer
        self.name = name
        self.queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.delivered = 0
        self.thread = threading.Thread(target=self._run, name=f"observer-{name}", daemon=True)

    def _run(self) -> None:
        while True:
            item = self.queue.get()
            if item is _CLOSE:
                return
            try:
                self.observer(item)
                self.delivered += 1
            except Exception as e:
                logging.exception(f"Decision observer '{self.name}' failed: {e}")


class DecisionChannel:
    """
    Fan-out of decision events to subscribed observers.

    publish() never blocks: if an observer's queue is full the event is
    dropped for that observer only and a warning is logged.

    Example:
        channel = DecisionChannel(queue_size=32)
        channel.subscribe(log_decision_event, name="log")
        channel.publish(event)
        ...
        channel.close()
    """

    def __init__(self, queue_size: int = 32):
        self.queue_size = queue_size
        self._subscriptions: List[_Subscription] = []
        self._lock = threading.Lock()
        self._closed = False
        self.published_count = 0

    def subscribe(self, observer: DecisionObserver, name: Optional[str] = None) -> None:
        """Register an observer; it starts receiving events published after this call."""
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot subscribe to a closed channel")
            sub = _Subscription(
                observer,
                name or getattr(observer, "__name__", f"observer{len(self._subscriptions)}"),
                self.queue_size,
            )
            self._subscriptions.append(sub)
        sub.thread.start()
        logging.info(f"Decision observer subscribed: {sub.name}")

    def publish(self, event: DecisionEvent) -> None:
        with self._lock:
            if self._closed:
                logging.warning(f"Dropping decision for {event.code}: channel closed")
                return
            subs = list(self._subscriptions)
            self.published_count += 1

        for sub in subs:
            try:
                sub.queue.put_nowait(event)
            except queue.Full:
                sub.dropped += 1
                logging.warning(
                    f"Observer '{sub.name}' queue full, dropped decision for {event.code} "
                    f"(dropped total: {sub.dropped})"
                )

    def close(self, timeout: float = 5.0) -> None:
        """Stop accepting events, let workers drain their queues, and join them."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subs = list(self._subscriptions)

        for sub in subs:
            try:
                sub.queue.put(_CLOSE, timeout=timeout)
            except queue.Full:
                logging.warning(f"Observer '{sub.name}' is stuck, abandoning {sub.queue.qsize()} pending events")
        for sub in subs:
            sub.thread.join(timeout=timeout)
            if sub.thread.is_alive():
                logging.warning(f"Observer '{sub.name}' did not finish within {timeout}s")
        logging.info(f"Decision channel closed ({self.published_count} events published)")

    @property
    def is_closed(self) -> bool:
        return self._closed

    def observer_stats(self) -> dict:
        """Delivered/dropped counters per observer name."""
        return {
            s.name: {"delivered": s.delivered, "dropped": s.dropped, "pending": s.queue.qsize()}
            for s in self._subscriptions
        }


def log_decision_event(event: DecisionEvent) -> None:
    """Built-in observer that writes every decision to the log."""
    d = event.decision
    if d.authorized:
        logging.info(f"ACCESS GRANTED: {d.code} ({d.info}) [{d.reason}]")
    else:
        logging.warning(f"ACCESS DENIED: {d.code} ({d.info}) [{d.reason}]")
