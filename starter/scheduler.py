import threading
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class RepeatingTask:
    """
    Runs ``fn`` every ``interval`` seconds on a daemon thread.

    Runs never overlap: the next wait starts once the previous run has
    returned. ``cancel()`` stops all future runs; a run already in
    progress is allowed to finish.
    """

    def __init__(self, interval: float, fn: Callable[[], None], name: str = 'repeating-task'):
        self.interval = interval
        self.fn = fn
        self.name = name
        self._stopped = threading.Event()
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stopped.is_set()

    def start(self):
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def _run(self):
        while not self._stopped.wait(self.interval):
            try:
                self.fn()
            except Exception:
                logger.exception(f"{self.name} run failed")

    def cancel(self, wait: bool = False, timeout: float = None):
        self._stopped.set()
        if wait and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
