"""
Background task handler for compression and rendering
"""
import logging
import threading
from queue import Empty, Queue
from typing import Any, Callable, Optional
from .models import ExportProgress


logger = logging.getLogger(__name__)


class TaskRunner:
    """Runs one task at a time on a daemon thread with progress reporting"""

    def __init__(self):
        """Initialize task runner"""
        self.current_task: Optional[threading.Thread] = None
        self.progress_queue: Queue = Queue()
        self.cancel_flag = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None

    def is_running(self) -> bool:
        """Check if a task is currently running"""
        return self.current_task is not None and self.current_task.is_alive()

    def cancel(self):
        """Request cancellation of current task"""
        self.cancel_flag.set()

    def is_cancelled(self) -> bool:
        """Check if cancellation was requested"""
        return self.cancel_flag.is_set()

    def run_task(self, task_func: Callable, *args, **kwargs):
        """
        Run a task in background thread

        The return value is stored in ``result``; an exception raised by
        the task is stored in ``error`` instead.

        Args:
            task_func: Function to execute
            *args, **kwargs: Arguments to pass to function
        """
        if self.is_running():
            raise RuntimeError("A task is already running")

        self.cancel_flag.clear()
        self.result = None
        self.error = None
        self.current_task = threading.Thread(
            target=self._run,
            args=(task_func, args, kwargs),
            daemon=True
        )
        self.current_task.start()

    def _run(self, task_func: Callable, args: tuple, kwargs: dict):
        try:
            self.result = task_func(*args, **kwargs)
        except Exception as e:
            logger.exception("Background task %s failed", getattr(task_func, "__name__", task_func))
            self.error = e

    def wait(self, timeout: Optional[float] = None) -> Any:
        """
        Block until the current task finishes

        Returns:
            The task's return value

        Raises:
            TimeoutError: if the task is still running after timeout
            Exception: whatever the task raised
        """
        if self.current_task is not None:
            self.current_task.join(timeout)
            if self.current_task.is_alive():
                raise TimeoutError("Task did not finish in time")
        if self.error is not None:
            raise self.error
        return self.result

    def report_progress(self, progress: ExportProgress):
        """Report progress from background task"""
        self.progress_queue.put(progress)

    def get_progress(self) -> Optional[ExportProgress]:
        """Get latest progress update (non-blocking)"""
        try:
            return self.progress_queue.get_nowait()
        except Empty:
            return None
