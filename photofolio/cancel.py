import threading
from typing import Optional

from photofolio.errors import Cancelled


class CancelToken:
    """
    Cooperative cancellation signal for one command invocation.
    Every drive page, drive item and fetch chunk checks it.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason = "cancelled"
        self._timer: Optional[threading.Timer] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled"):
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def cancel_after(self, seconds: float, reason: str = None):
        """
        Cancel the token once `seconds` have elapsed.
        """
        if reason is None:
            reason = f"command timeout after {seconds:g} seconds"
        self._timer = threading.Timer(seconds, self.cancel, args=(reason,))
        self._timer.daemon = True
        self._timer.start()

    def dispose(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise Cancelled(self.reason)
