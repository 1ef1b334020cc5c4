# services/tasks.py - side-effect tasks (score fetch/save, certificate notification)
# Tasks run on a small thread pool with the submitting app's context pushed;
# in eager mode (tests) the callable runs inline and the task is already done.
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from flask import Flask, current_app, has_app_context

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[Any], None]
FailureCallback = Callable[[BaseException], None]


class Task:
    def __init__(self, name: str, future: Future):
        self.name = name
        self._future = future
        self._lock = threading.Lock()
        self._pending_callbacks = 0
        # Set whenever no registered callback is still running or queued
        self._settled = threading.Event()
        self._settled.set()

    def add_done_callback(
        self,
        on_success: Optional[SuccessCallback] = None,
        on_failure: Optional[FailureCallback] = None,
    ) -> None:
        """Register callbacks; they fire immediately when the task is already done."""
        with self._lock:
            self._pending_callbacks += 1
            self._settled.clear()

        def _dispatch(fut: Future):
            exc = fut.exception()
            try:
                if exc is None:
                    if on_success is not None:
                        on_success(fut.result())
                elif on_failure is not None:
                    on_failure(exc)
            except Exception:
                logger.exception("task_callback_failed name=%s", self.name)
            finally:
                with self._lock:
                    self._pending_callbacks -= 1
                    if self._pending_callbacks == 0:
                        self._settled.set()

        self._future.add_done_callback(_dispatch)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until done and every callback has run; True when the task succeeded.

        Returns False on timeout as well; check ``settled`` to tell the cases apart.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        try:
            self._future.result(timeout=timeout)
        except Exception:
            # Either the task failed or the wait timed out before it finished
            if not self._future.done():
                return False
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        if not self._settled.wait(remaining):
            return False
        return self._future.exception() is None

    @property
    def done(self) -> bool:
        return self._future.done()

    @property
    def settled(self) -> bool:
        return self._future.done() and self._settled.is_set()

    @property
    def succeeded(self) -> bool:
        return self._future.done() and self._future.exception() is None

    @property
    def error(self) -> Optional[BaseException]:
        if not self._future.done():
            return None
        return self._future.exception()

    @property
    def result(self) -> Any:
        return self._future.result() if self.succeeded else None

    def __repr__(self):
        state = "pending" if not self.done else ("ok" if self.succeeded else "failed")
        return f"<Task {self.name} {state}>"


class TaskRunner:
    def __init__(self, max_workers: int = 4, eager: bool = False):
        self.eager = eager
        self._executor = None if eager else ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="side-effect"
        )

    def submit(
        self,
        name: str,
        fn: Callable[..., Any],
        *args,
        on_success: Optional[SuccessCallback] = None,
        on_failure: Optional[FailureCallback] = None,
        **kwargs,
    ) -> Task:
        logger.debug("task_submitted name=%s eager=%s", name, self.eager)
        if self.eager:
            future: Future = Future()
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)
        else:
            app = current_app._get_current_object() if has_app_context() else None
            future = self._executor.submit(_run_with_app_context, app, fn, args, kwargs)
        task = Task(name, future)
        task.add_done_callback(on_success, on_failure)
        return task

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


def _run_with_app_context(app: Optional[Flask], fn, args, kwargs):
    if app is None:
        return fn(*args, **kwargs)
    with app.app_context():
        return fn(*args, **kwargs)


def init_task_runner(app: Flask) -> TaskRunner:
    eager = app.config.get("TASKS_EAGER")
    if eager is None:
        eager = bool(app.config.get("TESTING"))
    runner = TaskRunner(max_workers=app.config.get("TASK_WORKERS", 4), eager=eager)
    app.extensions["task_runner"] = runner
    return runner


def get_task_runner() -> TaskRunner:
    return current_app.extensions["task_runner"]
