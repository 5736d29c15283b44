import logging
import threading
from typing import Callable, Hashable

logger = logging.getLogger(__name__)


class CompletionScheduler:
    """Runs callbacks once after a fixed delay on daemon timers.

    Timers stay tracked until they fire, so ``shutdown`` can cancel or drain
    whatever is still pending.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._timers: dict[Hashable, tuple[threading.Timer, Callable[[], None]]] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(self, key: Hashable, callback: Callable[[], None]) -> bool:
        with self._lock:
            if self._closed:
                logger.warning("Scheduler is shut down, completion for %s dropped", key)
                return False
            timer = threading.Timer(self.delay, self._fire, args=(key,))
            timer.daemon = True
            self._timers[key] = (timer, callback)
            timer.start()
        logger.debug("Scheduled completion for %s in %.2fs", key, self.delay)
        return True

    def _fire(self, key: Hashable) -> None:
        with self._lock:
            entry = self._timers.pop(key, None)
        if entry is None:
            return
        self._run(key, entry[1])

    def _run(self, key: Hashable, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Deferred completion for %s failed", key)

    def shutdown(self, drain: bool = False) -> None:
        with self._lock:
            self._closed = True
            entries = list(self._timers.items())
            self._timers.clear()

        for _, (timer, _) in entries:
            timer.cancel()

        if drain:
            for key, (_, callback) in entries:
                self._run(key, callback)
        elif entries:
            logger.info("Cancelled %d pending completion(s)", len(entries))
