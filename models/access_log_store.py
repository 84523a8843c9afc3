"""
Access Log Store Module

Append-only storage for access attempts plus the "most recent N" read
surface used by dashboards.
"""

import abc
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from config import ACCESS_LOG_DEFAULT_LIMIT, ACCESS_LOG_MAX_LIMIT
from database.connection import Database
from database.models import AccessLog, Employee
from models.entities import AccessAttempt, AccessLogEntry, AccessMethod, AccessOutcome, as_utc
from services.errors import StoreUnavailableError

STORE_NAME = "access log"


def clamp_limit(limit: int) -> int:
    """Keep a requested page size within 1..ACCESS_LOG_MAX_LIMIT."""
    return max(1, min(int(limit), ACCESS_LOG_MAX_LIMIT))


class AccessLogStore(abc.ABC):
    """Interface for recording access attempts. Entries are never updated."""

    @abc.abstractmethod
    async def append(self, attempt: AccessAttempt) -> AccessAttempt:
        """Persist one attempt and return it with its assigned id."""

    @abc.abstractmethod
    async def recent(self, limit: int = ACCESS_LOG_DEFAULT_LIMIT) -> List[AccessLogEntry]:
        """Newest attempts first, joined with identity name and department."""


class SqlAccessLogStore(AccessLogStore):
    """Access log store backed by the access_logs table."""

    def __init__(self, database: Database):
        self.database = database

    async def append(self, attempt: AccessAttempt) -> AccessAttempt:
        row = AccessLog(
            employee_id=attempt.identity_id,
            employee_name=attempt.display_name_snapshot,
            location=attempt.location,
            access_method=attempt.method.value,
            access_status=attempt.outcome.value,
            access_time=attempt.occurred_at,
        )
        try:
            async with self.database.session() as session:
                session.add(row)
                await session.flush()
                record_id = row.id
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e)) from e

        return AccessAttempt(
            id=record_id,
            identity_id=attempt.identity_id,
            display_name_snapshot=attempt.display_name_snapshot,
            location=attempt.location,
            method=attempt.method,
            outcome=attempt.outcome,
            occurred_at=attempt.occurred_at,
        )

    async def recent(self, limit: int = ACCESS_LOG_DEFAULT_LIMIT) -> List[AccessLogEntry]:
        stmt = (
            select(AccessLog, Employee.name, Employee.department)
            .outerjoin(Employee, AccessLog.employee_id == Employee.id)
            .order_by(AccessLog.access_time.desc(), AccessLog.id.desc())
            .limit(clamp_limit(limit))
        )
        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e)) from e

        entries = []
        for log, identity_name, department in rows:
            attempt = AccessAttempt(
                id=log.id,
                identity_id=log.employee_id,
                display_name_snapshot=log.employee_name or "Unknown",
                location=log.location,
                method=AccessMethod(log.access_method),
                outcome=AccessOutcome(log.access_status),
                occurred_at=as_utc(log.access_time),
            )
            entries.append(AccessLogEntry(attempt=attempt, identity_name=identity_name, department=department))
        return entries
