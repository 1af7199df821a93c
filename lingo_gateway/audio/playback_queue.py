"""Thread-safe FIFO of PCM blobs feeding the WebRTC track.

Each blob belongs to one playback source. The queue:
- Never drops audio — blobs drain front to back in fixed-size reads
- Calls the blob's on_done callback once its last byte has been read
- Can discard a single owner's audio when that source is stopped
- Returns silence when empty
"""

import threading
from collections import deque
from typing import Callable, List, Optional


class _Entry:
    __slots__ = ("data", "owner", "on_done")

    def __init__(self, data: bytes, owner: object, on_done: Optional[Callable[[], None]]):
        self.data = data
        self.owner = owner
        self.on_done = on_done


class PlaybackQueue:
    """Unbounded FIFO of PCM byte blobs, read out in fixed-size chunks.

    Producers call enqueue() with one blob per playback source.
    The consumer calls read(n) every 20ms to get exactly n bytes, zero-padded
    if not enough data is available.
    """

    def __init__(self):
        self._entries: deque[_Entry] = deque()
        self._current: Optional[_Entry] = None
        self._offset = 0
        self._lock = threading.Lock()

    @property
    def available(self) -> int:
        """Total bytes available for reading."""
        with self._lock:
            total = len(self._current.data) - self._offset if self._current else 0
            for entry in self._entries:
                total += len(entry.data)
            return total

    def enqueue(self, data: bytes, owner: object = None, on_done: Optional[Callable[[], None]] = None):
        """Append a PCM blob. An empty blob counts as finished immediately."""
        if not data:
            if on_done:
                on_done()
            return
        with self._lock:
            self._entries.append(_Entry(data, owner, on_done))

    def read(self, n: int) -> bytes:
        """Read exactly n bytes, advancing through queued blobs.

        Returns silence (zeros) for any bytes beyond what's available.
        Completion callbacks run after the lock is released.
        """
        finished: List[Callable[[], None]] = []
        with self._lock:
            result = bytearray(n)
            written = 0

            while written < n:
                if self._current is None:
                    if not self._entries:
                        break  # rest is silence
                    self._current = self._entries.popleft()
                    self._offset = 0

                data = self._current.data
                to_copy = min(len(data) - self._offset, n - written)
                result[written:written + to_copy] = data[self._offset:self._offset + to_copy]
                self._offset += to_copy
                written += to_copy

                if self._offset >= len(data):
                    if self._current.on_done:
                        finished.append(self._current.on_done)
                    self._current = None
                    self._offset = 0

        for callback in finished:
            callback()
        return bytes(result)

    def remove(self, owner: object) -> int:
        """Discard all unread audio belonging to `owner`. Returns bytes dropped."""
        with self._lock:
            dropped = 0
            if self._current is not None and self._current.owner is owner:
                dropped += len(self._current.data) - self._offset
                self._current = None
                self._offset = 0
            kept = deque()
            for entry in self._entries:
                if entry.owner is owner:
                    dropped += len(entry.data)
                else:
                    kept.append(entry)
            self._entries = kept
            return dropped

    def clear(self):
        """Discard all queued audio without firing callbacks."""
        with self._lock:
            self._entries.clear()
            self._current = None
            self._offset = 0
