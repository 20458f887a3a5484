from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional
import logging
import queue
import threading

from events import Event

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation flag handed to a background job.

    Wraps a threading.Event; the UI thread calls cancel() and the job polls
    `cancelled` (or waits on it) at its own checkpoints.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)


class JobDispatcher:
    """Run one-shot jobs off the UI thread and queue their result events.

    A job is a plain callable returning an Event (or None). The callable only
    sees the arguments it was submitted with; it must not touch controller
    state. Results are picked up by the UI thread through drain()/next_event(),
    so every completion is applied on the same thread that handles input.
    """

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="catdbterm-job")
        self._queue: "queue.Queue[Event]" = queue.Queue()
        self._lock = threading.Lock()
        self._inflight = 0
        self._closed = False

    def submit(self, func: Callable[..., Optional[Event]], *args, **kwargs) -> None:
        if self._closed:
            logger.debug("Dispatcher closed; dropping job %s", getattr(func, "__name__", func))
            return
        with self._lock:
            self._inflight += 1
        self._executor.submit(self._run, func, args, kwargs)

    def _run(self, func, args, kwargs) -> None:
        name = getattr(func, "__name__", repr(func))
        try:
            event = func(*args, **kwargs)
            if event is not None:
                self._queue.put(event)
        except Exception:
            # job functions report their own failures as events; this is a bug in the job
            logger.exception("Background job %s raised", name)
        finally:
            with self._lock:
                self._inflight -= 1

    def post(self, event: Event) -> None:
        """Put an event on the queue from any thread."""
        self._queue.put(event)

    def has_pending(self) -> bool:
        with self._lock:
            return self._inflight > 0 or not self._queue.empty()

    def next_event(self, timeout: Optional[float] = None) -> Optional[Event]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self, max_items: int = 50) -> List[Event]:
        out: List[Event] = []
        for _ in range(max_items):
            try:
                out.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return out

    def shutdown(self, wait: bool = False) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)
