"""
Bounded index chunks for bulk writes.

chunk_slice(length, chunk_size) yields IndexChunk ranges covering
[0, length) in ascending order. Drivers slice their record lists with these
ranges so a single statement or pipeline never carries more than chunk_size
records.

The ranges are produced by a background thread into a queue of depth one:
the producer runs at most one chunk ahead of the consumer and blocks until
the previous chunk is taken. Iteration is single pass. close() (or leaving a
``with`` block) stops the producer between emissions. Abandoning a
partially consumed iterator without close() leaves the producer polling.
"""
import queue
import threading
from dataclasses import dataclass
from typing import Iterator, Optional

_DONE = object()
_PUT_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class IndexChunk:
    """Half-open range [start, stop) over a sequence."""
    start: int
    stop: int

    def as_slice(self) -> slice:
        return slice(self.start, self.stop)

    def __len__(self):
        return self.stop - self.start


class ChunkIterator:
    """
    Lazy, single-pass iterator over IndexChunk ranges.

    The producer thread starts on the first call to next(). Once the
    sequence is exhausted or closed, further iteration stops immediately.
    """

    def __init__(self, length: int, chunk_size: int):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        if length < 0:
            raise ValueError(f"length must not be negative, got {length}")

        self.length = length
        self.chunk_size = chunk_size
        self._queue: "queue.Queue" = queue.Queue(maxsize=1)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._finished = False

    def _offer(self, item) -> bool:
        """Block until the consumer has room for item; False if stopped first."""
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=_PUT_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _produce(self):
        for start in range(0, self.length, self.chunk_size):
            chunk = IndexChunk(start, min(start + self.chunk_size, self.length))
            if not self._offer(chunk):
                return
        self._offer(_DONE)

    def _start(self):
        self._thread = threading.Thread(
            target=self._produce,
            name=f"chunk-slice-{self.length}-{self.chunk_size}",
            daemon=True,
        )
        self._thread.start()

    def __iter__(self) -> Iterator[IndexChunk]:
        return self

    def __next__(self) -> IndexChunk:
        if self._finished:
            raise StopIteration
        if self._thread is None:
            self._start()

        item = self._queue.get()
        if item is _DONE:
            self._finished = True
            self._join()
            raise StopIteration
        return item

    def close(self):
        """Stop the producer and discard any chunk in flight."""
        if self._finished:
            return
        self._finished = True
        self._stop.set()
        try:
            self._queue.get_nowait()
        except queue.Empty:
            pass
        self._join()

    def _join(self):
        if self._thread is not None:
            self._thread.join()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def chunk_slice(length: int, chunk_size: int) -> ChunkIterator:
    """
    Split [0, length) into consecutive ranges of at most chunk_size.

    Yields exactly ceil(length / chunk_size) chunks, none when length is 0.

    A caller that stops before exhaustion must call close() (or iterate
    inside a ``with`` block); otherwise the producer thread keeps polling
    for room in the queue until the process exits.

    Args:
        length: Number of records to split
        chunk_size: Maximum records per chunk (>= 1)

    Returns:
        ChunkIterator over IndexChunk ranges
    """
    return ChunkIterator(length, chunk_size)
