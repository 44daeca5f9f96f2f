import pytest

from photofolio.cancel import CancelToken
from photofolio.errors import Cancelled


def test_first_reason_wins():
    cancel = CancelToken()
    cancel.cancel("command interrupted")
    cancel.cancel("command timeout after 1 seconds")

    with pytest.raises(Cancelled, match="command interrupted"):
        cancel.raise_if_cancelled()


def test_cancel_after_timeout():
    cancel = CancelToken()
    cancel.cancel_after(0.01)

    assert cancel._event.wait(5)
    assert cancel.reason == "command timeout after 0.01 seconds"


def test_dispose_stops_pending_timeout():
    cancel = CancelToken()
    cancel.cancel_after(0.05)
    cancel.dispose()

    assert not cancel._event.wait(0.2)
    cancel.raise_if_cancelled()
