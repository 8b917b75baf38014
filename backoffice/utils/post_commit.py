# utils/post_commit.py
"""
Post-commit task dispatcher.

Work submitted here runs strictly after the business transaction has
committed, on a background worker thread with its own application context.
A failing task is retried with exponential backoff and then logged; it can
never roll back or fail the request that submitted it.
"""

import heapq
import itertools
import logging
import queue
import threading
import time
from collections import OrderedDict
from datetime import datetime


# Priority constants
class Priority:
    HIGH = 0
    NORMAL = 1
    LOW = 2


class TaskStatus:
    QUEUED = 'queued'
    RUNNING = 'running'
    DONE = 'done'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


class PriorityTaskQueue:
    def __init__(self):
        self.queue = queue.PriorityQueue()
        self.task_map = {}
        self.counter = itertools.count()
        self.lock = threading.Lock()

    def put(self, task, priority=Priority.NORMAL):
        """Add a task to the queue with a priority level"""
        task['priority'] = priority
        self.queue.put((priority, next(self.counter), task))

        with self.lock:
            self.task_map[task['task_id']] = task

        return task['task_id']

    def get(self, timeout=None):
        """Get the next task based on priority, or None when the wait times out"""
        try:
            _, _, task = self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

        with self.lock:
            self.task_map.pop(task['task_id'], None)

        return task

    def cancel(self, task_id):
        """Cancel a task if it's still in the queue"""
        with self.lock:
            task = self.task_map.pop(task_id, None)
        if task is None:
            return False
        task['cancelled'] = True
        return True

    def size(self):
        return self.queue.qsize()


class PostCommitQueue:
    """Runs best-effort side effects after commit, inline or on a worker thread."""

    def __init__(self, app=None):
        self.app = None
        self.tasks = PriorityTaskQueue()
        self.statuses = OrderedDict()
        self.status_limit = 1000
        self.worker_thread = None
        self.running = False
        self.asynchronous = False
        self.max_attempts = 3
        self.logger = logging.getLogger('post_commit')
        self._shutdown_event = threading.Event()
        self._status_lock = threading.Lock()
        # Failed tasks waiting out their backoff: (due, seq, task)
        self._delayed = []
        self._delayed_lock = threading.Lock()

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        self.asynchronous = app.config.get('POST_COMMIT_ASYNC', False)
        self.max_attempts = app.config.get('POST_COMMIT_MAX_ATTEMPTS', 3)
        self.status_limit = app.config.get('POST_COMMIT_STATUS_LIMIT', 1000)

        if self.asynchronous and not self.running:
            self.start_worker()

            import atexit
            atexit.register(self.stop_worker)

    def start_worker(self):
        if self.worker_thread is None or not self.worker_thread.is_alive():
            self.running = True
            self._shutdown_event.clear()
            self.worker_thread = threading.Thread(
                target=self._process_queue,
                daemon=True,
                name="PostCommitWorker"
            )
            self.worker_thread.start()
            self.logger.info("Post-commit worker thread started")

    def stop_worker(self):
        self.running = False
        self._shutdown_event.set()

        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=5)
            if self.worker_thread.is_alive():
                self.logger.warning("Post-commit worker did not shut down gracefully")

    def submit(self, name, func, *args, priority=Priority.NORMAL, **kwargs):
        """
        Schedule ``func(*args, **kwargs)`` to run after the current commit.

        Returns:
            str: task id usable with ``cancel`` and ``status``
        """
        task_id = f"{name}_{int(datetime.now().timestamp() * 1000)}_{next(self.tasks.counter)}"
        task = {
            'task_id': task_id,
            'name': name,
            'func': func,
            'args': args,
            'kwargs': kwargs,
            'attempts': 0,
            'priority': priority,
        }
        self._set_status(task_id, TaskStatus.QUEUED)

        if not self.asynchronous:
            self._run(task)
            return task_id

        self.tasks.put(task, priority=priority)
        return task_id

    def cancel(self, task_id):
        cancelled = self.tasks.cancel(task_id)
        if not cancelled:
            with self._delayed_lock:
                for _, _, task in self._delayed:
                    if task['task_id'] == task_id:
                        task['cancelled'] = True
                        cancelled = True
        if cancelled:
            self._set_status(task_id, TaskStatus.CANCELLED)
        return cancelled

    def status(self, task_id):
        """Status of a recent task; the oldest entries are dropped past ``status_limit``."""
        with self._status_lock:
            return self.statuses.get(task_id)

    def _set_status(self, task_id, status):
        with self._status_lock:
            self.statuses[task_id] = status
            self.statuses.move_to_end(task_id)
            while len(self.statuses) > self.status_limit:
                self.statuses.popitem(last=False)

    def _run(self, task):
        """Execute one attempt. Failures are logged, never raised."""
        task['attempts'] += 1
        self._set_status(task['task_id'], TaskStatus.RUNNING)
        try:
            task['func'](*task['args'], **task['kwargs'])
            self._set_status(task['task_id'], TaskStatus.DONE)
            return True
        except Exception as e:
            self._set_status(task['task_id'], TaskStatus.FAILED)
            self.logger.error(
                f"Post-commit task {task['name']} failed (attempt {task['attempts']}): {str(e)}",
                exc_info=True
            )
            return False

    def _schedule_retry(self, task, delay):
        with self._delayed_lock:
            heapq.heappush(self._delayed, (time.monotonic() + delay, next(self.tasks.counter), task))
        self._set_status(task['task_id'], TaskStatus.QUEUED)

    def _release_due(self):
        """Move retries whose backoff has elapsed onto the queue. Returns seconds until the next one."""
        now = time.monotonic()
        with self._delayed_lock:
            while self._delayed and self._delayed[0][0] <= now:
                _, _, task = heapq.heappop(self._delayed)
                self.tasks.put(task, priority=task.get('priority', Priority.NORMAL))
            if self._delayed:
                return self._delayed[0][0] - now
        return None

    def _process_queue(self):
        while self.running and not self._shutdown_event.is_set():
            try:
                next_due = self._release_due()
                timeout = 1.0 if next_due is None else min(1.0, max(next_due, 0.01))
                task = self.tasks.get(timeout=timeout)
                if not task:
                    continue

                if task.get('cancelled', False):
                    self.logger.info(f"Task {task['task_id']} was cancelled. Skipping.")
                    continue

                with self.app.app_context():
                    succeeded = self._run(task)

                if not succeeded and task['attempts'] < self.max_attempts:
                    delay = min(2 ** task['attempts'], 60)
                    self.logger.info(f"Retrying task {task['task_id']} in {delay} seconds")
                    self._schedule_retry(task, delay)

            except Exception as e:
                self.logger.error(f"Post-commit worker error: {str(e)}", exc_info=True)
                time.sleep(1)

        self.logger.info("Post-commit worker thread exited")
