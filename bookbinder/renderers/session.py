import logging
import threading
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Optional

from ..errors import BookBinderError, RenderCancelled, RenderEngineFailure, RenderEngineTimeout
from ..models import FragmentKind, RenderedFragment
from .base import RenderEngine

logger = logging.getLogger(__name__)


class RenderSession:
    """Request-scoped gateway to a render engine.

    Every call gets a per-call timeout capped by what is left of the
    request's wall-clock budget. Cover, front and content may be submitted
    together; cancel() drops pending calls and asks the engine to abort
    running ones. Nothing rendered in a session outlives it.
    """

    def __init__(
        self,
        engine: RenderEngine,
        call_timeout: float = 120.0,
        total_budget: float = 300.0,
        max_workers: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.call_timeout = call_timeout
        self.total_budget = total_budget
        self._clock = clock
        self._deadline = clock() + total_budget
        self._cancelled = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="bookbinder-render")
        self._lock = threading.Lock()
        self._pending = set()
        self._submitted = {}  # future -> clock time it was submitted
        self.calls = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.cancel()
        self.close()

    @property
    def remaining(self) -> float:
        return self._deadline - self._clock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def submit(self, kind: FragmentKind, html: str, css: str,
               iteration: Optional[int] = None) -> Future:
        if self.cancelled:
            raise RenderCancelled("Render request was cancelled", fragment=kind.value, iteration=iteration)
        if self.remaining <= 0:
            raise RenderEngineTimeout("Render budget exhausted", fragment=kind.value, iteration=iteration)

        self.calls += 1
        submitted = self._clock()
        future = self._executor.submit(self._run, kind, html, css, iteration)
        with self._lock:
            self._pending.add(future)
            self._submitted[future] = submitted
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future):
        with self._lock:
            self._pending.discard(future)

    def result(self, kind: FragmentKind, future: Future,
               iteration: Optional[int] = None) -> RenderedFragment:
        remaining = self.remaining
        if remaining <= 0:
            self.cancel()
            raise RenderEngineTimeout(
                f"Render budget of {self.total_budget:g}s exhausted",
                fragment=kind.value, iteration=iteration,
            )

        # Per-call timeout counts from submission.
        with self._lock:
            submitted = self._submitted.pop(future, None)
        elapsed = self._clock() - submitted if submitted is not None else 0
        wait = max(0, min(self.call_timeout - elapsed, remaining))
        try:
            return future.result(timeout=wait)
        except FutureTimeout as e:
            self.cancel()
            raise RenderEngineTimeout(
                f"Render did not finish within {self.call_timeout:g}s",
                fragment=kind.value, iteration=iteration,
            ) from e
        except CancelledError as e:
            raise RenderCancelled("Render request was cancelled", fragment=kind.value, iteration=iteration) from e

    def render(self, kind: FragmentKind, html: str, css: str,
               iteration: Optional[int] = None) -> RenderedFragment:
        return self.result(kind, self.submit(kind, html, css, iteration), iteration)

    def _run(self, kind: FragmentKind, html: str, css: str, iteration: Optional[int]) -> RenderedFragment:
        if self.cancelled:
            raise RenderCancelled("Render request was cancelled", fragment=kind.value, iteration=iteration)

        started = self._clock()
        try:
            output = self.engine.render(html, css)
        except BookBinderError as e:
            # Attach the fragment context the engine does not know about.
            if e.fragment is None:
                e.fragment = kind.value
            if e.iteration is None:
                e.iteration = iteration
            raise
        except Exception as e:
            raise RenderEngineFailure(
                f"{self.engine.name} failed: {e}", fragment=kind.value, iteration=iteration
            ) from e

        if self.cancelled:
            raise RenderCancelled("Render request was cancelled", fragment=kind.value, iteration=iteration)
        if output.page_count < 0 or not output.data:
            raise RenderEngineFailure(
                f"{self.engine.name} returned an empty document", fragment=kind.value, iteration=iteration
            )

        logger.debug("Rendered %s: %d page(s) in %.2fs", kind.value, output.page_count, self._clock() - started)
        return RenderedFragment(kind=kind, data=output.data, page_count=output.page_count)

    def cancel(self):
        if self.cancelled:
            return
        self._cancelled.set()
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.cancel()
        self.engine.abort()

    def close(self):
        self._executor.shutdown(wait=not self.cancelled, cancel_futures=True)
