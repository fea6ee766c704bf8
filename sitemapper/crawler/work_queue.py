"""Thread-safe FIFO work queue with lease/ack/retry and drain detection."""

from __future__ import annotations

from collections import deque
import threading

from .types import Job, Message


class QueueClosedError(RuntimeError):
    """Raised when adding work to a queue that has drained or been closed."""


class LeaseError(RuntimeError):
    """Raised when acknowledging a message that is not currently leased."""


class IncrementingIDGenerator:
    """Hands out monotonically increasing message ids."""

    def __init__(self, start: int = 0) -> None:
        self._next = start
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value


class WorkQueue:
    """Queue of crawl jobs used by the coordinator and its workers.

    - `next()` leases the oldest pending message; the worker must settle it
      with exactly one `delete()` (done) or `error()` (retry).
    - Outstanding work is pending + leased. When a `delete()` brings it to
      zero the queue latches as drained: `wait()` returns and every blocked
      `next()` wakes up with `None`.
    - `close()` is the cancellation path and wakes everyone the same way.
    """

    def __init__(self, id_generator: IncrementingIDGenerator | None = None) -> None:
        self._ids = id_generator or IncrementingIDGenerator()

        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self._pending: deque[Message] = deque()
        self._leased: dict[int, Message] = {}

        self._drained = False
        self._closed = False
        self._done = threading.Event()

        self._added_count = 0
        self._leased_count = 0
        self._deleted_count = 0
        self._retried_count = 0

    def add(self, job: Job) -> Message:
        """Append a new message for `job` at the tail of the queue."""

        message = Message(id=self._ids.next_id(), job=job)
        with self._cond:
            if self._drained or self._closed:
                raise QueueClosedError(f"Cannot add {job.url}: queue is no longer accepting work")
            self._pending.append(message)
            self._added_count += 1
            self._cond.notify()
        return message

    def next(self, timeout: float | None = None) -> Message | None:
        """Lease the oldest pending message.

        Blocks until a message is available. Returns `None` once the queue has
        drained or been closed, or when `timeout` expires first.
        """

        with self._cond:
            available = self._cond.wait_for(
                lambda: self._pending or self._drained or self._closed,
                timeout=timeout,
            )
            if not available or self._drained or self._closed:
                return None

            message = self._pending.popleft()
            self._leased[message.id] = message
            self._leased_count += 1
            return message

    def delete(self, message: Message) -> None:
        """Acknowledge a leased message as finished."""

        with self._cond:
            self._release(message)
            self._deleted_count += 1
            if not self._pending and not self._leased:
                self._drained = True
                self._done.set()
                self._cond.notify_all()

    def error(self, message: Message) -> None:
        """Return a leased message to the tail of the queue for another attempt."""

        with self._cond:
            self._release(message)
            message.attempts += 1
            self._pending.append(message)
            self._retried_count += 1
            self._cond.notify()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the queue drains or closes; True iff it drained."""

        self._done.wait(timeout)
        with self._lock:
            return self._drained

    def close(self) -> None:
        """Stop handing out work and wake every waiter."""

        with self._cond:
            self._closed = True
            self._done.set()
            self._cond.notify_all()

    def _release(self, message: Message) -> None:
        if self._leased.pop(message.id, None) is None:
            raise LeaseError(f"Message {message.id} ({message.job.url}) is not leased")

    @property
    def drained(self) -> bool:
        with self._lock:
            return self._drained

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def leased_count(self) -> int:
        with self._lock:
            return len(self._leased)

    @property
    def outstanding(self) -> int:
        """Pending plus leased messages."""

        with self._lock:
            return len(self._pending) + len(self._leased)

    def snapshot(self) -> dict[str, int | bool]:
        """Return queue counters for logs/stats reporting."""

        with self._lock:
            return {
                "drained": self._drained,
                "closed": self._closed,
                "pending": len(self._pending),
                "leased": len(self._leased),
                "added": self._added_count,
                "leases": self._leased_count,
                "deleted": self._deleted_count,
                "retried": self._retried_count,
            }


__all__ = [
    "IncrementingIDGenerator",
    "LeaseError",
    "QueueClosedError",
    "WorkQueue",
]
