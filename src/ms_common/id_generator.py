"""Snowflake-style ID generator for orders, order lines and payments.

IDs are decimal strings that grow with time, so `ORDER BY id DESC` doubles
as "newest first" and keyset pagination can use `id < :cursor_id`.
Order ids also travel to the payment gateway as the external reference and
come back in webhooks, which is why they are all-digit strings.
"""

import threading
import time

from config.settings import settings


class SnowflakeIdGenerator:
    """Layout (64 bits):
      - 41 bits: millisecond timestamp (since custom epoch)
      - 10 bits: node id (0-1023)
      - 12 bits: sequence (0-4095 per millisecond)
    """

    _EPOCH_MS = 1_704_067_200_000  # 2024-01-01T00:00:00Z
    _NODE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, node_id: int = 0) -> None:
        if not (0 <= node_id < (1 << self._NODE_BITS)):
            raise ValueError(f"node_id must be 0-{(1 << self._NODE_BITS) - 1}")
        self._node_id = node_id
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = self._current_ms()
            if now_ms < self._last_ms:
                # Clock stepped backwards: keep issuing from the last timestamp
                now_ms = self._last_ms
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    now_ms = self._wait_next_ms(now_ms)
            else:
                self._sequence = 0

            self._last_ms = now_ms
            return str(
                ((now_ms - self._EPOCH_MS) << (self._NODE_BITS + self._SEQUENCE_BITS))
                | (self._node_id << self._SEQUENCE_BITS)
                | self._sequence
            )

    def _current_ms(self) -> int:
        return time.time_ns() // 1_000_000

    def _wait_next_ms(self, last_ms: int) -> int:
        now_ms = self._current_ms()
        while now_ms <= last_ms:
            now_ms = self._current_ms()
        return now_ms


_default_generator = SnowflakeIdGenerator(settings.NODE_ID)


def generate_id() -> str:
    """Next id from the process-wide generator."""
    return _default_generator.next_id()
