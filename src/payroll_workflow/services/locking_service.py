"""In-process serialization for payroll versions and loan balances."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator


@dataclass
class _KeyedLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0  # current holder plus waiters


class LockRegistry:
    """Keyed asyncio locks.

    Payroll calculation is serialized per (employee, month) and loan
    balance changes per loan. There is no cross-key contention. Across
    processes the database advisory lock and row locks take over.

    A key's lock is dropped once its last holder releases it, so the
    registry only holds keys that are in use.

    Usage:
        async with registry.payroll(100, "2024-03"):
            ...
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], _KeyedLock] = {}

    @asynccontextmanager
    async def _hold(self, kind: str, key: str) -> AsyncIterator[None]:
        entry = self._locks.setdefault((kind, key), _KeyedLock())
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[(kind, key)]

    def payroll(self, employee_no: int, salary_month: str):
        return self._hold("payroll", f"{employee_no}:{salary_month}")

    def loan(self, loan_id: int):
        return self._hold("loan", str(loan_id))

    def __len__(self) -> int:
        return len(self._locks)


default_locks = LockRegistry()
