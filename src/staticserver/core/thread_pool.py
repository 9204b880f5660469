"""
=============================================================================
WORKER THREAD POOL
=============================================================================

Runs one task per accepted connection on a bounded set of worker threads.

=============================================================================
WHY A POOL INSTEAD OF threading.Thread PER CONNECTION?
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Acceptor ──submit(conn)──►  [ task queue (bounded) ]               │
    │                                   │      │      │                    │
    │                                   ▼      ▼      ▼                    │
    │                               worker  worker  worker  (min..max)     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

- A burst of 10,000 connections does not create 10,000 threads.
- submit() never blocks the acceptor: when the queue is full it returns
  False and the server answers 503 right away.
- Every task runs inside a try/except at the worker boundary. A handler
  that blows up is logged with its traceback; the worker keeps going and
  the acceptor never notices.

Threads are a good fit here: the work is blocking I/O (socket reads,
file reads, socket writes) and the GIL is released during all of it.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred function call.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        timeout: Max seconds the task may WAIT in the queue; a task that
                 waited longer is dropped (its client has likely gone).
        on_expire: Called with the same args when the task is dropped.
        submitted_at: When the task entered the queue.
    """
    func: Callable[..., Any]
    args: tuple = ()
    timeout: Optional[float] = None
    on_expire: Optional[Callable[..., Any]] = None
    submitted_at: float = field(default_factory=time.monotonic)

    @property
    def waited(self) -> float:
        return time.monotonic() - self.submitted_at

    @property
    def expired(self) -> bool:
        return self.timeout is not None and self.waited > self.timeout


class Worker(threading.Thread):
    """
    Worker thread: take a task, run it, repeat until a poison pill (None).

        while True:
            task = queue.get()
            if task is None: break      ← poison pill from shutdown()
            run task (exceptions logged, never raised)
            queue.task_done()
    """

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int):
        super().__init__(name=f"worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.state = WorkerState.IDLE
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            task = self.task_queue.get()
            try:
                if task is None:
                    break
                self._execute(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, task: Task):
        self.state = WorkerState.BUSY
        start = time.monotonic()

        try:
            if task.expired:
                logger.warning(
                    f"Task dropped after waiting {task.waited:.2f}s "
                    f"(timeout {task.timeout}s)"
                )
                self.tasks_failed += 1
                if task.on_expire is not None:
                    task.on_expire(*task.args)
                return

            task.func(*task.args)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed task in {time.monotonic() - start:.3f}s"
            )

        except Exception as e:
            # Task boundary: log and keep the worker alive.
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after "
                f"{time.monotonic() - start:.3f}s: {e}"
            )

        finally:
            self.state = WorkerState.IDLE


class ThreadPool:
    """
    Thread pool with a bounded queue and scale-up from min to max workers.

        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()

        if not pool.submit(handle_connection, args=(conn,)):
            reject(conn)                      # queue full → 503

        pool.shutdown(wait=True, timeout=30)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # Protects _workers
        self._started = False
        self._shutting_down = False
        self._next_worker_id = 0

    def start(self):
        """Start the minimum number of workers. Idempotent."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()
        self._started = True
        self._shutting_down = False

    def _add_worker(self) -> Worker:
        # Caller holds self._lock.
        worker = Worker(self._task_queue, self._next_worker_id)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        timeout: Optional[float] = None,
        on_expire: Optional[Callable[..., Any]] = None,
    ) -> bool:
        """
        Queue a task without blocking.

        Returns:
            True if the task was queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutting_down:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, timeout=timeout, on_expire=on_expire)
        try:
            self._task_queue.put_nowait(task)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """Add a worker when every worker is busy and tasks are waiting."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            if self.busy_workers < len(self._workers):
                return
            if self._task_queue.qsize() > 0:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop accepting tasks, optionally drain the queue, stop workers.

        Args:
            wait: Wait for queued tasks to finish before stopping.
            timeout: Upper bound on the wait, in seconds.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutting_down = True

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            while self._task_queue.unfinished_tasks:
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("Thread pool shutdown timeout, abandoning queued tasks")
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for _ in workers:
            try:
                self._task_queue.put_nowait(None)
            except queue.Full:
                pass  # Daemon workers die with the process

        for worker in workers:
            worker.join(timeout=2.0)

        self._started = False
        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def queued(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        """Worker and task counts, for debugging and logs."""
        return {
            "workers": {"total": self.worker_count, "busy": self.busy_workers},
            "tasks": {
                "queued": self.queued,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
