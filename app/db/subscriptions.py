"""Realtime listeners on Firestore documents and queries.

A ``Subscription`` delivers every committed change visible to its target, in
commit order, until it is cancelled. Firestore invokes the callbacks on its own
listener thread, so anything that feeds an event loop goes through
``snapshot_stream``.
"""
import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Callable, List, Optional

logger = logging.getLogger("darbar.subscriptions")


class Subscription:
    def __init__(self, target, on_change: Callable[[List[Any]], None],
                 on_error: Optional[Callable[[Exception], None]] = None):
        self._on_change = on_change
        self._on_error = on_error
        self._lock = threading.Lock()
        self._cancelled = False
        self._watch = target.on_snapshot(self._handle)

    def _handle(self, snapshots, changes, read_time):
        if self._cancelled:
            return
        try:
            self._on_change(snapshots)
        except Exception as e:
            logger.error(f"Snapshot handler failed: {e}")
            if self._on_error:
                self._on_error(e)

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self):
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
        try:
            self._watch.unsubscribe()
        except Exception as e:
            logger.warning(f"Failed to unsubscribe listener: {e}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.cancel()


async def snapshot_stream(start: Callable[[Callable[[Any], None]], Any]) -> AsyncIterator[Any]:
    """
    Runs ``start(push)`` and yields everything pushed to it on the current loop.

    ``start`` must return an object with ``cancel()``; it is called when the
    consumer stops iterating (disconnect, cancellation or error).
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def push(item):
        loop.call_soon_threadsafe(queue.put_nowait, item)

    watcher = start(push)
    try:
        while True:
            yield await queue.get()
    finally:
        watcher.cancel()
