"""Parallel Executor - bounded, order-preserving parallelism for generation calls."""

import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Sequence, TypeVar

from scenecast.core.config import Settings
from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.error_handler import CancellationError

T = TypeVar("T")
R = TypeVar("R")


class ParallelExecutor:
    """Manages controlled parallelism for scene generation and API calls."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize parallel executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.max_workers = getattr(settings, "scene_asset_concurrency", 3)

    def map_ordered(
        self,
        items: Sequence[T],
        fn: Callable[[T, int], R],
        max_workers: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[R]:
        """
        Apply ``fn(item, index)`` to every item with at most ``max_workers`` in flight.

        Workers pull indices from a shared queue and write each result into a
        pre-sized list at its own index, so output order matches input order
        whatever the completion order. The first failure stops workers from
        claiming further items and is re-raised once in-flight items finish.
        Items still running are not interrupted here: the caller stops them
        through the token it handed to ``fn``, and the CancellationErrors they
        then raise never mask the failure that started the abort.

        Args:
            items: Items to process
            fn: Callable receiving (item, index)
            max_workers: Pool size (defaults to scene_asset_concurrency)
            cancel_token: Optional token; once cancelled no new item is claimed
                and CancellationError is raised

        Returns:
            Results in input order
        """
        if not items:
            return []

        workers = max(1, min(max_workers or self.max_workers, len(items)))
        pending: "queue.Queue[int]" = queue.Queue()
        for index in range(len(items)):
            pending.put(index)

        results: list[Any] = [None] * len(items)
        abort = threading.Event()
        failures: list[Exception] = []
        failures_lock = threading.Lock()

        def worker() -> None:
            while not abort.is_set():
                if cancel_token is not None and cancel_token.cancelled:
                    return
                try:
                    index = pending.get_nowait()
                except queue.Empty:
                    return
                try:
                    results[index] = fn(items[index], index)
                except Exception as e:
                    with failures_lock:
                        failures.append(e)
                    abort.set()
                    return

        self.logger.debug(f"Parallel execution: {len(items)} items with max {workers} workers")
        start_time = time.time()

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scene-worker") as executor:
            futures = [executor.submit(worker) for _ in range(workers)]
            for future in futures:
                future.result()

        elapsed = time.time() - start_time

        if cancel_token is not None and cancel_token.cancelled:
            self.logger.info(f"Parallel execution cancelled after {elapsed:.2f}s")
            raise CancellationError()

        if failures:
            primary = next((e for e in failures if not isinstance(e, CancellationError)), failures[0])
            self.logger.warning(f"❌ Parallel execution aborted after {elapsed:.2f}s: {primary}")
            raise primary

        self.logger.debug(f"✅ Parallel execution complete: {len(items)} items in {elapsed:.2f}s")
        return results

    def execute_api_calls(
        self,
        tasks: list[Callable],
        task_names: Optional[list[str]] = None,
        log_prefix: str = "",
    ) -> list[tuple[Any, Optional[Exception]]]:
        """
        Execute independent API calls concurrently and wait for all of them.

        Args:
            tasks: List of callable tasks to execute
            task_names: Optional list of task names for logging
            log_prefix: Optional prefix for log lines (e.g. "[scene 2] ")

        Returns:
            List of tuples: (result, exception) for each task, in task order
        """
        if not tasks:
            return []

        results: list[Any] = [None] * len(tasks)
        with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="api-call") as executor:
            future_to_index = {}
            for i, task in enumerate(tasks):
                future_to_index[executor.submit(task)] = i

            for future, i in future_to_index.items():
                task_name = task_names[i] if task_names and i < len(task_names) else f"api_call_{i+1}"
                try:
                    results[i] = (future.result(), None)
                except Exception as e:
                    if not isinstance(e, CancellationError):
                        self.logger.warning(f"{log_prefix}❌ {task_name} failed: {e}")
                    results[i] = (None, e)

        return results
