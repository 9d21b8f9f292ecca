"""
Bounded worker pool that applies one collector to every folder.

Folders are fed through a queue whose capacity equals the worker count; each
worker pulls the next folder, runs the collector on it and records a terminal
state. A failing collector is logged and the pool moves on: nothing a
collector raises reaches the caller of run().

Each folder is owned by exactly one worker while its task is in flight, so
collectors mutate their folder without locking. The pool's own lock covers
the task-state table, the completed counter and the progress callback.
"""
import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .constants import DEFAULT_PARALLEL_WORKERS
from .models import Project
from .utils import describe_error

logger = logging.getLogger(__name__)

CollectFn = Callable[[Project], None]
ProgressFn = Callable[[int, int], None]

_STOP = None


class TaskState(str, Enum):
    QUEUED = "queued"
    IN_FLIGHT = "in-flight"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = (TaskState.DONE, TaskState.FAILED)


class WorkerPool:
    """
    Fixed-size pool of collection workers.

    Args:
        workers: Number of concurrent workers (also the queue capacity)
        on_progress: Called as on_progress(completed, total) after every task

    After run() returns, `states` holds one terminal TaskState per input
    folder (by position), `completed` equals the number of folders and
    `failed` lists the folders whose collector raised.
    """

    def __init__(self, workers: int = DEFAULT_PARALLEL_WORKERS,
                 on_progress: Optional[ProgressFn] = None):
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.workers = workers
        self.on_progress = on_progress

        self._lock = threading.Lock()
        self.states: List[TaskState] = []
        self.completed = 0
        self.failed: List[Project] = []
        self._total = 0

    def run(self, projects: List[Project], collect_fn: CollectFn, phase: str = "") -> List[Project]:
        """
        Run collect_fn over every folder and wait for all of them.

        Returns the same folders, in input order, with whatever metrics the
        collector managed to fill in. If feeding is interrupted (Ctrl-C), the
        unstarted tasks are dropped, the workers stop after their current
        task and the interrupt is re-raised.
        """
        with self._lock:
            self.states = [TaskState.QUEUED] * len(projects)
            self.completed = 0
            self.failed = []
            self._total = len(projects)

        if not projects:
            return projects

        label = f"[{phase}] " if phase else ""
        worker_count = min(self.workers, len(projects))
        logger.info(f"{label}Collecting {len(projects)} folders with {worker_count} workers")

        tasks: "queue.Queue[Optional[Tuple[int, Project]]]" = queue.Queue(maxsize=self.workers)

        with ThreadPoolExecutor(max_workers=worker_count,
                                thread_name_prefix=f"collect-{phase or 'worker'}") as executor:
            futures = [
                executor.submit(self._worker, tasks, collect_fn, label)
                for _ in range(worker_count)
            ]

            # Blocks whenever the queue is full
            try:
                for index, project in enumerate(projects):
                    tasks.put((index, project))
            except BaseException:
                # Interrupted mid-feed: drop queued tasks so the sentinels fit
                self._drain(tasks)
                raise
            finally:
                for _ in range(worker_count):
                    tasks.put(_STOP)

            for future in as_completed(futures):
                future.result()

        failed = len(self.failed)
        if failed:
            logger.warning(f"{label}Collection failed for {failed} of {len(projects)} folders")
        else:
            logger.info(f"{label}Collected {len(projects)} folders")

        return projects

    def _worker(self, tasks: "queue.Queue", collect_fn: CollectFn, label: str) -> None:
        while True:
            task = tasks.get()
            if task is _STOP:
                return
            index, project = task
            self._set_state(index, TaskState.IN_FLIGHT)
            try:
                collect_fn(project)
            except Exception as e:
                logger.error(
                    f"{label}Failed to collect folder {project.name} ({project.id}): {describe_error(e)}"
                )
                self._finish(index, project, TaskState.FAILED)
            else:
                self._finish(index, project, TaskState.DONE)

    @staticmethod
    def _drain(tasks: "queue.Queue") -> None:
        while True:
            try:
                tasks.get_nowait()
            except queue.Empty:
                return

    def _set_state(self, index: int, state: TaskState) -> None:
        with self._lock:
            self.states[index] = state

    def _finish(self, index: int, project: Project, state: TaskState) -> None:
        with self._lock:
            self.states[index] = state
            if state is TaskState.FAILED:
                self.failed.append(project)
            self.completed += 1
            if self.on_progress:
                try:
                    self.on_progress(self.completed, self._total)
                except Exception as e:
                    logger.warning(f"Progress callback failed: {e}")
