"""Cooperative cancellation of a run."""
import threading
import time
from typing import Optional

from dns01_renewer import errors


class CancelToken:
    """Flag observed by long running operations at every wait and network call.

    Cancelling is safe from other threads and from signal handlers; a
    pending wait notices it once the current sleep interval ends.

    """
    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = 'cancelled') -> None:
        """Request cancellation."""
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Has cancellation been requested?"""
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise `.Cancelled` if cancellation has been requested."""
        if self._event.is_set():
            raise errors.Cancelled(self.reason or 'cancelled')

    def sleep(self, seconds: float) -> None:
        """Sleep between two polls, raising `.Cancelled` before and after."""
        self.raise_if_cancelled()
        if seconds > 0:
            time.sleep(seconds)
        self.raise_if_cancelled()
