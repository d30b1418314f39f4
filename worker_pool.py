#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Fixed-size thread pool that executes independent tasks and reports their outcomes."""

import enum
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from errors import PoolClosedError
from logger_utils import get_logger

logger = get_logger("hardlinker.pool")

_STOP = object()


class PoolState(enum.Enum):
    OPEN = "open"
    DRAINING = "draining"
    CLOSED = "closed"


@dataclass(frozen=True)
class TaskOutcome:
    task: Any
    ok: bool
    error: Optional[BaseException] = None


class WorkerPool:
    """
    A fixed set of worker threads consuming a shared task queue.

    Workers start eagerly in the constructor. Each finished task is reported back
    over an outcome queue and aggregated by whoever calls drain(), so no counter is
    shared between threads.

    Lifecycle: OPEN (accepting tasks) -> DRAINING (no new tasks, queue still being
    worked) -> CLOSED (every worker has exited). Transitions never go backwards.
    """

    def __init__(self, worker_count: int, handler: Callable[[Any], Any], max_pending: int = 0, name: str = "link"):
        if worker_count < 1:
            raise ValueError(f"worker_count must be at least 1, got {worker_count}")
        self.worker_count = worker_count
        self.name = name
        self._handler = handler
        self._tasks: queue.Queue = queue.Queue(maxsize=max_pending)
        self._outcomes: queue.Queue = queue.Queue()
        self._state = PoolState.OPEN
        self._state_lock = threading.Lock()
        self.submitted = 0
        self.succeeded = 0
        self.failed = 0
        self.failures: List[TaskOutcome] = []
        self._workers = [
            threading.Thread(target=self._work, name=f"{name}-worker-{i}", daemon=True)
            for i in range(worker_count)
        ]
        for worker in self._workers:
            worker.start()
        logger.debug(f"Started {worker_count} '{name}' workers (max_pending={max_pending or 'unbounded'})")

    @property
    def state(self) -> PoolState:
        return self._state

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.drain()
        return False

    def submit(self, task) -> None:
        """Queue a task. Blocks only when a bounded queue is full."""
        if self._state is not PoolState.OPEN:
            raise PoolClosedError(f"Pool '{self.name}' is {self._state.value}; cannot accept new tasks")
        self._tasks.put(task)
        self.submitted += 1

    def drain(self) -> None:
        """Stop accepting tasks and block until every submitted task has finished."""
        with self._state_lock:
            if self._state is not PoolState.OPEN:
                return
            self._state = PoolState.DRAINING
        logger.debug(f"Draining '{self.name}' pool with {self.submitted} submitted tasks")
        for _ in self._workers:
            self._tasks.put(_STOP)
        for worker in self._workers:
            worker.join()
        self._collect_outcomes()
        self._state = PoolState.CLOSED
        logger.info(f"Pool '{self.name}' closed. Succeeded: {self.succeeded}, Failed: {self.failed}")

    def _collect_outcomes(self) -> None:
        while True:
            try:
                outcome = self._outcomes.get_nowait()
            except queue.Empty:
                break
            if outcome.ok:
                self.succeeded += 1
            else:
                self.failed += 1
                self.failures.append(outcome)

    def _work(self) -> None:
        while True:
            task = self._tasks.get()
            if task is _STOP:
                return
            try:
                self._handler(task)
            except Exception as e:
                logger.error(f"Task {task} failed: {e}")
                self._outcomes.put(TaskOutcome(task=task, ok=False, error=e))
            else:
                self._outcomes.put(TaskOutcome(task=task, ok=True))
