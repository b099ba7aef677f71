from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

T = TypeVar("T")


class FetchCancelled(Exception):
    """
    Raised inside the fetcher when its token fires mid-request.

    Never escapes `PaginatedFetcher.fetch_category`; it is turned into "return what we have".
    """


class CancellationToken:
    """
    One-shot cancellation signal plus the timer service the fetcher sleeps on.

    Sleeping and awaiting through the token makes both interruptible, so cancelling a
    viewport load aborts outstanding requests instead of waiting for them.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise FetchCancelled()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for `seconds`; returns False if cancelled before the delay elapsed.
        """
        if self.cancelled:
            return False
        if seconds <= 0:
            await asyncio.sleep(0)
            return not self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def run(self, aw: Awaitable[T]) -> T:
        """
        Await `aw` unless the token fires first, in which case `aw` is cancelled and
        FetchCancelled is raised.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        # Let the request unwind; asyncio.wait never raises the task's own error.
        await asyncio.wait({work})
        if not work.cancelled():
            work.exception()
        raise FetchCancelled()
