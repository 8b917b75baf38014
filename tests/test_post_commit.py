import threading
import time

from backoffice.utils.post_commit import Priority, PostCommitQueue, PriorityTaskQueue, TaskStatus


def test_inline_task_runs_immediately(app):
    queue = PostCommitQueue(app)
    calls = []

    task_id = queue.submit('record', calls.append, 'invoice')

    assert calls == ['invoice']
    assert queue.status(task_id) == TaskStatus.DONE


def test_inline_failure_is_logged_not_raised(app, caplog):
    queue = PostCommitQueue(app)

    def boom():
        raise RuntimeError('renderer crashed')

    task_id = queue.submit('invoice', boom)

    assert queue.status(task_id) == TaskStatus.FAILED
    assert 'renderer crashed' in caplog.text


def test_priority_queue_orders_by_priority_then_fifo():
    tasks = PriorityTaskQueue()
    tasks.put({'task_id': 'low'}, priority=Priority.LOW)
    tasks.put({'task_id': 'first-normal'}, priority=Priority.NORMAL)
    tasks.put({'task_id': 'high'}, priority=Priority.HIGH)
    tasks.put({'task_id': 'second-normal'}, priority=Priority.NORMAL)

    order = [tasks.get(timeout=0.1)['task_id'] for _ in range(4)]

    assert order == ['high', 'first-normal', 'second-normal', 'low']
    assert tasks.get(timeout=0.01) is None


def test_queued_task_can_be_cancelled(app):
    queue = PostCommitQueue()
    queue.app = app
    queue.asynchronous = True
    calls = []

    task_id = queue.submit('invoice', calls.append, 'x')

    assert queue.cancel(task_id)
    assert queue.status(task_id) == TaskStatus.CANCELLED
    assert queue.tasks.size() == 1
    assert calls == []


def test_worker_retries_until_success(app):
    app.config['POST_COMMIT_ASYNC'] = True
    app.config['POST_COMMIT_MAX_ATTEMPTS'] = 3
    queue = PostCommitQueue()
    done = threading.Event()
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 2:
            raise RuntimeError('transient')
        done.set()

    queue.init_app(app)
    try:
        task_id = queue.submit('flaky', flaky)
        assert done.wait(timeout=10)
    finally:
        queue.stop_worker()

    assert len(attempts) == 2
    assert queue.status(task_id) == TaskStatus.DONE


def test_status_map_keeps_only_recent_tasks(app):
    app.config['POST_COMMIT_STATUS_LIMIT'] = 10
    queue = PostCommitQueue(app)

    task_ids = [queue.submit('noop', lambda: None) for _ in range(50)]

    assert len(queue.statuses) == 10
    assert queue.status(task_ids[0]) is None
    assert queue.status(task_ids[-1]) == TaskStatus.DONE


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


def test_failing_task_does_not_hold_up_the_queue(app):
    app.config['POST_COMMIT_ASYNC'] = True
    app.config['POST_COMMIT_MAX_ATTEMPTS'] = 3
    queue = PostCommitQueue()
    delivered = threading.Event()

    def broken():
        raise RuntimeError('renderer crashed')

    queue.init_app(app)
    try:
        queue.submit('broken', broken, priority=Priority.HIGH)
        queue.submit('ok', delivered.set)

        # First retry of the broken task is 2 seconds out
        assert delivered.wait(timeout=1.5)
    finally:
        queue.stop_worker()


def test_task_waiting_for_retry_can_be_cancelled(app):
    app.config['POST_COMMIT_ASYNC'] = True
    app.config['POST_COMMIT_MAX_ATTEMPTS'] = 3
    queue = PostCommitQueue()
    attempts = []

    def broken():
        attempts.append(1)
        raise RuntimeError('renderer crashed')

    queue.init_app(app)
    try:
        task_id = queue.submit('broken', broken)
        assert _wait_for(lambda: attempts and queue.status(task_id) == TaskStatus.QUEUED)

        assert queue.cancel(task_id)
        assert queue.status(task_id) == TaskStatus.CANCELLED
        time.sleep(2.5)
    finally:
        queue.stop_worker()

    assert len(attempts) == 1
    assert queue.status(task_id) == TaskStatus.CANCELLED
