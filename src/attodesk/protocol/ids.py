"""Identifier helpers."""

from __future__ import annotations

import secrets
import threading
import time
import uuid as _uuid

# Monotonic state for same-millisecond IDs (RFC 9562 Method 2)
_state_lock = threading.Lock()
_last_timestamp_ms = 0
_counter = 0

_USE_NATIVE = hasattr(_uuid, "uuid7")


def uuid7() -> str:
    """Generate a time-ordered UUID v7 string."""
    if _USE_NATIVE:
        return str(_uuid.uuid7())

    global _last_timestamp_ms, _counter

    with _state_lock:
        timestamp_ms = int(time.time() * 1000)

        if timestamp_ms <= _last_timestamp_ms:
            _counter += 1
            if _counter > 0xFFF:
                # Counter overflow borrows the next millisecond.
                _last_timestamp_ms += 1
                _counter = 0
            timestamp_ms = _last_timestamp_ms
        else:
            _counter = secrets.randbits(11)
            _last_timestamp_ms = timestamp_ms

        time_high = (timestamp_ms >> 16) & 0xFFFFFFFF
        time_low = timestamp_ms & 0xFFFF
        time_low_and_version = (time_low << 16) | (7 << 12) | _counter

        rand_b = secrets.randbits(62)
        variant_and_rand = (0b10 << 62) | rand_b

        uuid_int = (time_high << 96) | (time_low_and_version << 64) | variant_and_rand
        return str(_uuid.UUID(int=uuid_int))


def random_id() -> str:
    return str(_uuid.uuid4())


__all__ = ["uuid7", "random_id"]
