"""In-process mutual exclusion keyed by booking id."""

from __future__ import annotations

import asyncio
import uuid
import weakref

_locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()


def lock_for(booking_id: uuid.UUID) -> asyncio.Lock:
    """Return the lock serializing lifecycle transitions of one booking.

    Unrelated bookings get unrelated locks. A lock is dropped once nothing
    holds or awaits it.
    """
    lock = _locks.get(booking_id)
    if lock is None:
        lock = asyncio.Lock()
        _locks[booking_id] = lock
    return lock
