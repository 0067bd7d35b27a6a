"""Change subscriptions as cancellable snapshot streams.

MySQL has no push notifications, so a stream polls its query and yields a
new snapshot only when the result differs from the last one delivered.
One consumer per stream; a consumer that changes parameters (e.g. another
class) cancels its old stream before opening the next one.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Iterator, Optional, TypeVar

from ..core.constants import DEFAULT_STREAM_POLL_SECONDS

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET = object()


class SnapshotStream(Generic[T]):
    def __init__(
        self,
        fetch: Callable[[], T],
        *,
        poll_seconds: float = DEFAULT_STREAM_POLL_SECONDS,
        on_snapshot: Optional[Callable[[T], None]] = None,
        name: str = "stream",
    ):
        self._fetch = fetch
        self._poll_seconds = float(poll_seconds)
        self._on_snapshot = on_snapshot
        self._name = name
        self._cancelled = threading.Event()
        self._last = _UNSET

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        if not self._cancelled.is_set():
            logger.debug("%s cancelled", self._name)
        self._cancelled.set()

    def poll_once(self) -> Optional[T]:
        """Fetch once; return the snapshot if it changed since the last delivery, else None."""

        if self.cancelled:
            return None
        snapshot = self._fetch()
        if self._last is not _UNSET and snapshot == self._last:
            return None
        self._last = snapshot
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)
        return snapshot

    def __iter__(self) -> Iterator[T]:
        while not self.cancelled:
            try:
                snapshot = self.poll_once()
            except Exception:
                # Read failures degrade to "no update"; the next poll tries again.
                logger.exception("%s failed to fetch a snapshot", self._name)
                snapshot = None
            if snapshot is not None and not self.cancelled:
                yield snapshot
            self._cancelled.wait(self._poll_seconds)


class StreamRegistry:
    """Keeps at most one live stream per consumer key."""

    def __init__(self):
        self._streams: dict[str, SnapshotStream] = {}
        self._lock = threading.Lock()

    def replace(self, key: str, stream: SnapshotStream) -> SnapshotStream:
        with self._lock:
            previous = self._streams.get(key)
            self._streams[key] = stream
        if previous is not None:
            previous.cancel()
        return stream

    def cancel(self, key: str) -> None:
        with self._lock:
            stream = self._streams.pop(key, None)
        if stream is not None:
            stream.cancel()

    def active(self, key: str) -> Optional[SnapshotStream]:
        with self._lock:
            return self._streams.get(key)
