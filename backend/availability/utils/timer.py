import logging
import time
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class RequestTimer:
    """Span timer for request paths that call out to slow collaborators.

    Usage::

        timer = RequestTimer("create_invite")

        async with timer.aspan("db_write"):
            ...

        timer.summary()  # one DEBUG line per span with its share of the total
    """

    def __init__(self, name: str, enabled: bool | None = None):
        self.name = name
        self.enabled = logger.isEnabledFor(logging.DEBUG) if enabled is None else enabled
        self.spans: list[tuple[str, float]] = []
        self._start = time.perf_counter()

    def _offset_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000

    def _close(self, label: str, started: float) -> None:
        elapsed = time.perf_counter() - started
        self.spans.append((label, elapsed))
        logger.debug("[%s] %s: %.1fms (T+%.1fms)", self.name, label, elapsed * 1000, self._offset_ms())

    @asynccontextmanager
    async def aspan(self, label: str):
        if not self.enabled:
            yield
            return
        started = time.perf_counter()
        try:
            yield
        finally:
            self._close(label, started)

    def summary(self) -> None:
        if not self.enabled or not self.spans:
            return
        total = time.perf_counter() - self._start
        lines = [f"[{self.name}] total {total * 1000:.1f}ms"]
        for label, elapsed in self.spans:
            pct = (elapsed / total * 100) if total > 0 else 0
            lines.append(f"  {label:.<30} {elapsed * 1000:>8.1f}ms  ({pct:4.1f}%)")
        logger.debug("\n".join(lines))
