import threading
from contextlib import contextmanager
from signal import signal, SIGINT


@contextmanager
def suppress_keyboard_interrupt_as_cancellation():
    """
    Context manager that suppresses KeyboardInterrupt and instead yields a cancellation token that can be polled to
    check if a keyboard interrupt has occurred during the lifetime of the context.
    """
    token = CancellationToken()

    prev_handler = signal(SIGINT, lambda _, __: token.cancel())
    try:
        yield token
    finally:
        signal(SIGINT, prev_handler)


class CancellationToken:
    def __init__(self):
        self._cancelled = threading.Event()

    @property
    def is_cancelled(self):
        """
        Has this token been cancelled?
        """
        return self._cancelled.is_set()

    def cancel(self):
        """
        Cancel this token.
        """
        self._cancelled.set()

    def wait_cancellation(self, timeout=None) -> bool:
        """
        Block until this token is cancelled, or the timeout elapses.

        :param timeout: Maximum number of seconds to wait, or `None` to wait
            indefinitely.
        :return: `True` if the token was cancelled.
        """
        return self._cancelled.wait(timeout)
