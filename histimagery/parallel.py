"""
Bounded concurrent runner for archive fetch tasks.

Runs a lazy sequence of zero-argument callables on a thread pool with at most
N tasks in flight, yielding each result as soon as its task finishes.

Behaviour:
- The task iterable is only advanced when a slot frees up.
- Results arrive in completion order, not submission order.
- A task that raised re-raises its exception when its result is dequeued.
  Sibling tasks are not interrupted.
- If the consumer stops iterating, no further tasks are started; tasks
  already running finish in the background.
- If a cancel event is set, submission stops and RunCancelledError is raised.

Usage:
    runner = BoundedRunner(max_concurrency=8)
    for result in runner.run(fetch_tasks):
        merge(result)
"""

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, Iterator, Optional, Set, TypeVar

from histimagery.errors import RunCancelledError
from histimagery.logging_config import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

# How often (seconds) a blocked consumer re-checks the cancel event
CANCEL_POLL_SECONDS = 0.1


class BoundedRunner:
    """Executes fetch tasks with a concurrency ceiling; the only concurrency primitive here."""

    def __init__(self, max_concurrency: int, cancel_event: Optional[threading.Event] = None):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.max_concurrency = max_concurrency
        self.cancel_event = cancel_event

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def run(self, tasks: Iterable[Callable[[], T]]) -> Iterator[T]:
        """
        Run `tasks` and yield their results as they complete.

        Args:
            tasks: Iterable of zero-argument callables, consumed lazily

        Yields:
            One result per task

        Raises:
            Whatever a task raised, when that task's result is reached
            RunCancelledError: if the cancel event was set
        """
        task_iter = iter(tasks)
        executor = ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="histimagery-fetch")
        in_flight: Set[Future] = set()
        exhausted = False

        def refill() -> bool:
            while len(in_flight) < self.max_concurrency:
                if self.cancelled:
                    return False
                try:
                    task = next(task_iter)
                except StopIteration:
                    return True
                in_flight.add(executor.submit(task))
            return False

        try:
            exhausted = refill()
            while in_flight:
                if self.cancelled:
                    raise RunCancelledError(f"Cancelled with {len(in_flight)} task(s) in flight")

                timeout = CANCEL_POLL_SECONDS if self.cancel_event is not None else None
                done, _ = wait(in_flight, timeout=timeout, return_when=FIRST_COMPLETED)
                if not done:
                    continue

                in_flight.difference_update(done)
                if not exhausted:
                    exhausted = refill()

                for future in done:
                    yield future.result()

            if self.cancelled and not exhausted:
                raise RunCancelledError("Cancelled before all tasks were submitted")
        finally:
            if in_flight:
                logger.debug("Leaving %d task(s) to finish in the background", len(in_flight))
            executor.shutdown(wait=False, cancel_futures=True)
