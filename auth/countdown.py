"""Per-second resend countdown as a cancellable asyncio task.

The countdown never keeps its own counter. Every tick reads the remaining
seconds from the issuer, so re-renders or late ticks cannot drift.
"""

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], None]


class ResendCountdown:
    """Ticks once per interval until remaining() reaches zero.

    Usage:
        countdown = ResendCountdown(issuer.seconds_remaining, on_tick=render)
        countdown.start()
        ...
        countdown.cancel()  # on navigation or dispose
    """

    def __init__(
        self,
        remaining: Callable[[], int],
        on_tick: TickCallback | None = None,
        interval: float = 1.0,
    ):
        self._remaining = remaining
        self._on_tick = on_tick
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def seconds_remaining(self) -> int:
        return self._remaining()

    def start(self) -> None:
        """(Re)start ticking. Any previous task is cancelled first.

        Must be called from a running event loop.
        """
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        """Stop ticking. Safe to call when not running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        remaining = self._remaining()
        self._emit(remaining)
        while remaining > 0:
            await asyncio.sleep(self._interval)
            remaining = self._remaining()
            self._emit(remaining)

    def _emit(self, remaining: int) -> None:
        if self._on_tick is None:
            return
        try:
            self._on_tick(remaining)
        except Exception:
            # Ticking continues after a callback error
            logger.exception("Countdown tick callback failed")
