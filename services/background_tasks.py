"""
Background Task Runner

Runs fire-and-forget work (access log appends) as independent asyncio
tasks. Callers never await the result; failures are captured by a
DiagnosticsSink for operators and are never retried.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Deque, Dict, List, Optional, Set

from config import DIAGNOSTICS_HISTORY_SIZE
from models.entities import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosticRecord:
    """A background failure kept for operator diagnostics"""
    operation: str
    error: str
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict:
        return {
            'operation': self.operation,
            'error': self.error,
            'occurred_at': self.occurred_at.isoformat(),
        }


class DiagnosticsSink:
    """
    Bounded in-memory history of swallowed failures.

    Every record is also logged at ERROR level.
    """

    def __init__(self, max_records: Optional[int] = None):
        self._records: Deque[DiagnosticRecord] = deque(
            maxlen=DIAGNOSTICS_HISTORY_SIZE if max_records is None else max_records
        )
        self.total_failures = 0

    def record(self, operation: str, error: BaseException) -> DiagnosticRecord:
        entry = DiagnosticRecord(operation=operation, error=f"{type(error).__name__}: {error}")
        self._records.append(entry)
        self.total_failures += 1
        logger.error(f"❌ Background {operation} failed: {entry.error}")
        return entry

    def recent(self, limit: int = 20) -> List[DiagnosticRecord]:
        return list(self._records)[-limit:][::-1]


class BackgroundTaskRunner:
    """
    Holds strong references to running tasks so they are not garbage
    collected mid-flight, and routes their failures to the sink.
    """

    def __init__(self, diagnostics: DiagnosticsSink):
        self.diagnostics = diagnostics
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, operation: str, coro: Awaitable) -> asyncio.Task:
        """
        Schedule a coroutine without awaiting it.

        Args:
            operation: Short name used in diagnostics (e.g. "access log append")
            coro: Coroutine to run

        Returns:
            The created task (callers normally ignore it)
        """
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(operation, t))
        return task

    def _on_done(self, operation: str, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            self.diagnostics.record(operation, asyncio.CancelledError("task cancelled"))
            return
        error = task.exception()
        if error is not None:
            self.diagnostics.record(operation, error)

    async def drain(self, timeout: Optional[float] = None):
        """Wait for all currently scheduled tasks (used at shutdown and in tests)."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"⚠️ {len(pending)} background task(s) cancelled at shutdown")
