"""
Directory Store Module

Read access to enrolled identities. From the access core's point of view the
directory is read-only, except for the last-access timestamp written after a
granted attempt and the credential enrollment performed at registration.
"""

import abc
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from database.connection import Database
from database.models import Employee
from models.entities import EnrolledIdentity, IdentityStatus, as_utc
from services.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

STORE_NAME = "directory"


class DirectoryStore(abc.ABC):
    """Interface the credential matcher reads identities through."""

    @abc.abstractmethod
    async def list_candidates(self) -> List[EnrolledIdentity]:
        """Active and enrolled identities, in store iteration order."""

    @abc.abstractmethod
    async def touch_last_access(self, identity_id: int, at: datetime) -> None:
        """Set last_access_at for one identity (last write wins)."""

    @abc.abstractmethod
    async def get_identity(self, identity_id: int) -> Optional[EnrolledIdentity]:
        ...

    @abc.abstractmethod
    async def enroll(
        self,
        identity_id: int,
        face_template: Optional[str] = None,
        fingerprint_template: Optional[str] = None,
        card_id: Optional[str] = None,
    ) -> Optional[EnrolledIdentity]:
        """Store credentials and mark the identity enrolled. None if unknown."""

    @abc.abstractmethod
    async def count_identities(self) -> int:
        ...


def employee_to_identity(row: Employee) -> EnrolledIdentity:
    """Convert an Employee row to the domain entity."""
    try:
        status = IdentityStatus(row.status)
    except ValueError:
        logger.warning(f"⚠️ Unknown status '{row.status}' for employee {row.id}, treating as Inactive")
        status = IdentityStatus.INACTIVE

    return EnrolledIdentity(
        id=row.id,
        display_name=row.name,
        department=row.department,
        role=row.role or "",
        status=status,
        enrolled=bool(row.biometric_enrolled),
        face_template=row.face_template,
        fingerprint_template=row.fingerprint_template,
        card_id=row.card_id,
        last_access_at=as_utc(row.last_access),
    )


class SqlDirectoryStore(DirectoryStore):
    """
    Directory store backed by the employees table.

    Every database error is reported as StoreUnavailableError so callers
    handle one tagged error instead of driver exceptions.
    """

    def __init__(self, database: Database):
        self.database = database

    async def list_candidates(self) -> List[EnrolledIdentity]:
        stmt = (
            select(Employee)
            .where(Employee.biometric_enrolled.is_(True))
            .where(Employee.status == IdentityStatus.ACTIVE.value)
            .order_by(Employee.id)
        )
        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e)) from e

        return [employee_to_identity(row) for row in rows]

    async def touch_last_access(self, identity_id: int, at: datetime) -> None:
        stmt = update(Employee).where(Employee.id == identity_id).values(last_access=at)
        try:
            async with self.database.session() as session:
                await session.execute(stmt)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e)) from e

    async def get_identity(self, identity_id: int) -> Optional[EnrolledIdentity]:
        try:
            async with self.database.session() as session:
                row = await session.get(Employee, identity_id)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e)) from e

        return employee_to_identity(row) if row is not None else None

    async def enroll(
        self,
        identity_id: int,
        face_template: Optional[str] = None,
        fingerprint_template: Optional[str] = None,
        card_id: Optional[str] = None,
    ) -> Optional[EnrolledIdentity]:
        try:
            async with self.database.session() as session:
                row = await session.get(Employee, identity_id)
                if row is None:
                    return None
                row.face_template = face_template
                row.fingerprint_template = fingerprint_template
                row.card_id = card_id
                row.biometric_enrolled = True
                await session.flush()
                identity = employee_to_identity(row)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e)) from e

        logger.info(f"🔐 Credentials enrolled for employee {identity_id}")
        return identity

    async def count_identities(self) -> int:
        try:
            async with self.database.session() as session:
                result = await session.execute(select(func.count()).select_from(Employee))
                return int(result.scalar_one())
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e)) from e
