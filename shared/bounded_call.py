"""
Time-boxed calls and fire-and-forget background tasks.

A bounded call stops *waiting* after its deadline; the worker thread keeps
running until the wrapped call returns on its own.
"""
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1.0

_default_executor: Optional[ThreadPoolExecutor] = None


class CallTimeout(Exception):
    def __init__(self, timeout: float, description: str = None):
        self.timeout = timeout
        self.description = description or "call"
        super().__init__(f"{self.description} did not complete within {timeout:.3f}s")


def get_default_executor() -> ThreadPoolExecutor:
    """Lazily create the shared executor used when callers bring none."""
    global _default_executor
    if _default_executor is None:
        _default_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix='bounded')
    return _default_executor


def bounded_call(
    fn: Callable[..., Any],
    *args,
    timeout: float = DEFAULT_TIMEOUT,
    executor: ThreadPoolExecutor = None,
    description: str = None,
    **kwargs
) -> Any:
    """
    Run ``fn`` and wait at most ``timeout`` seconds for it.

    Errors raised by ``fn`` propagate unchanged. If the deadline passes,
    ``CallTimeout`` is raised and the pending call is left to finish in
    the background.
    """
    executor = executor or get_default_executor()
    future = executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeoutError:
        raise CallTimeout(timeout, description or getattr(fn, '__name__', None))


def fire_and_forget(
    executor: ThreadPoolExecutor,
    fn: Callable[..., Any],
    *args,
    description: str = None,
    **kwargs
) -> Future:
    """Submit ``fn`` in the background; a failure is logged, never raised."""
    label = description or getattr(fn, '__name__', 'background task')
    future = (executor or get_default_executor()).submit(fn, *args, **kwargs)

    def _log_outcome(done: Future):
        if done.cancelled():
            logger.warning(f"{label} was cancelled")
            return
        error = done.exception()
        if error is not None:
            logger.warning(f"{label} failed: {error}")

    future.add_done_callback(_log_outcome)
    return future
