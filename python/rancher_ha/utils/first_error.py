"""
rancher_ha/utils/first_error.py

Concurrent fan-out where one failure never cancels its siblings. Every job runs
to completion; the first error observed is kept in a lock-guarded,
single-assignment slot, and the keys of all failed jobs are recorded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Mapping, Optional, TypeVar

from rancher_ha.utils.errors import describe_chain

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FirstErrorSlot:
    """Holds the first error offered to it; later errors only mark their key as failed."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._error: Optional[BaseException] = None
        self._failed: List[int] = []

    async def offer(self, key: int, exc: BaseException) -> bool:
        """Record a failure for `key`. True if `exc` became the first error."""
        async with self._lock:
            self._failed.append(key)
            if self._error is None:
                self._error = exc
                return True
            return False

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def failed(self) -> List[int]:
        return sorted(self._failed)


async def gather_isolated(
    jobs: Mapping[int, Awaitable[T]],
    slot: FirstErrorSlot,
    label: str = "job",
) -> Dict[int, T]:
    """
    Run all `jobs` concurrently and wait for every one of them.

    Args:
        jobs: Awaitables keyed by an ordinal (instance or node number).
        slot: Receives each failure; the first one is kept.
        label: Used in log lines, e.g. "HA instance".

    Returns:
        Results of the jobs that succeeded, by key.
    """
    results: Dict[int, T] = {}

    async def _run(key: int, job: Awaitable[T]) -> None:
        try:
            results[key] = await job
        except Exception as exc:
            logger.error("%s %d failed: %s", label, key, describe_chain(exc))
            await slot.offer(key, exc)

    runners: List[Awaitable[Any]] = [_run(key, job) for key, job in jobs.items()]
    await asyncio.gather(*runners)
    return results
