"""Background reclamation

CleanupWorker runs reclamation tasks (orphaned image files, expired
in-memory records) on a fixed interval in a daemon thread, independent of
request traffic.

Example:
    >>> worker = CleanupWorker(3600, [image_service.sweep_orphans]).start()
    >>> worker.stop()
"""

import logging
import threading
from collections.abc import Callable, Sequence


logger = logging.getLogger(__name__)


type CleanupTask = Callable[[], int]


class CleanupWorker:
    """Run cleanup tasks every `interval` seconds until stopped

    Each task returns how many items it reclaimed. A failing task is logged
    and retried on the next tick; it never stops the worker or the other
    tasks.
    """

    def __init__(self, interval: float, tasks: Sequence[CleanupTask], name: str = 'seqre-cleanup'):
        if interval <= 0:
            raise ValueError(f'Cleanup interval must be positive (given value: {interval}).')

        self.interval = interval
        self.tasks = list(tasks)
        self.name = name
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        reclaimed = 0
        for task in self.tasks:
            try:
                reclaimed += task()
            except Exception:
                logger.exception('Cleanup task failed.', extra={'task': getattr(task, '__qualname__', repr(task))})
        return reclaimed

    def _run(self) -> None:
        logger.info('Cleanup worker started.', extra={'interval': self.interval})
        while not self._stopped.wait(self.interval):
            self.run_once()
        logger.info('Cleanup worker stopped.')

    def start(self) -> 'CleanupWorker':
        if self.running:
            return self
        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stopped.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
