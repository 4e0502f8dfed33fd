from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, wait
from typing import Optional

from .exceptions import IngestCancelledError, IngestTimeoutError


class CancelToken:
    """
    One-shot cooperative cancellation signal shared by every worker of a batch.

    The token also exposes a Future that resolves on cancel, so it can take
    part in a first-completed-wins wait next to the work and the deadline.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._future: Future = Future()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        self._future.set_result(None)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def future(self) -> Future:
        return self._future

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise IngestCancelledError("cancelled")


def race(work: Future, token: CancelToken, timeout: Optional[float]):
    """
    Wait for whichever settles first: the work, the cancel signal or the
    deadline. Returns the work's result or raises its exception,
    IngestCancelledError or IngestTimeoutError. The work itself is never
    interrupted; a losing future is simply abandoned. A `timeout` of None
    waits without a deadline.
    """
    done, _ = wait([work, token.future], timeout=timeout, return_when=FIRST_COMPLETED)
    if token.future in done:
        raise IngestCancelledError("cancelled")
    if work not in done:
        raise IngestTimeoutError("request timed out")
    return work.result()
