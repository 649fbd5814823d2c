"""In-process I2C bus shared by a master and a simulated slave."""

from __future__ import annotations

import threading

from freefall.i2c import BusyFlag

__all__ = ["I2CBus"]


class I2CBus:
    """One-byte data line plus the START, ACK, TRANSMIT and STOP signals.

    All four conditions share one lock; a party holds the lock for the whole
    of its side of a transaction and releases it only while waiting.
    """

    def __init__(self) -> None:
        self.mem = bytearray(1)
        self.lock = threading.RLock()
        self.start = threading.Condition(self.lock)
        self.ack = threading.Condition(self.lock)
        self.transmit = threading.Condition(self.lock)
        self.stop = threading.Condition(self.lock)
        self.busy = BusyFlag.FREE
        self.closed = False

    def wait(self, condition: threading.Condition, timeout: float | None = None) -> bool:
        """Wait on one of the bus signals with the lock held.

        Returns True when signalled, False on timeout or once the bus is closed.
        """
        if self.closed:
            return False
        notified = condition.wait(timeout)
        return notified and not self.closed

    def close(self) -> None:
        """Mark the bus closed and wake every waiting party."""
        with self.lock:
            self.closed = True
            for condition in (self.start, self.ack, self.transmit, self.stop):
                condition.notify_all()