"""Per-patient locks shared by the escalation engine and the acknowledgment handler."""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class PatientLocks:
    """Serializes writers of one patient's escalation state within the process."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, patient_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(patient_id)
        if lock is None:
            lock = self._locks[patient_id] = asyncio.Lock()
        self._users[patient_id] = self._users.get(patient_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[patient_id] -= 1
            if self._users[patient_id] == 0:
                # Nobody waiting, drop the lock so the map stays bounded
                del self._users[patient_id]
                del self._locks[patient_id]

