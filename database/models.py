"""
SQLAlchemy Models for the Access Control System

Defines the employees (directory) and access_logs tables.
"""

from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Employee(Base):
    """
    Employee directory table.

    Holds enrolled credentials for access matching. Roster management
    happens outside this service; only last_access is written here.

    Attributes:
        id: Auto-increment primary key
        name: Unique display name
        department: Department name
        role: Job role
        status: Active / Inactive / On Leave
        biometric_enrolled: Whether credentials have been registered
        face_template: Opaque face template (long text)
        fingerprint_template: Opaque fingerprint template (long text)
        card_id: Access card identifier
        last_access: Timestamp of the last granted access
    """
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    department = Column(String(50), nullable=False)
    role = Column(String(50), nullable=True, default="")
    status = Column(String(20), nullable=False, default="Active", index=True)
    biometric_enrolled = Column(Boolean, nullable=False, default=False)
    face_template = Column(Text, nullable=True)
    fingerprint_template = Column(Text, nullable=True)
    card_id = Column(String(50), nullable=True)
    last_access = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<Employee(id={self.id}, name='{self.name}', status='{self.status}')>"


class AccessLog(Base):
    """
    Append-only access attempt log.

    employee_id is NULL for denied attempts. Rows keep the employee id
    even if the roster entry is removed later.
    """
    __tablename__ = "access_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    employee_name = Column(String(100), nullable=True)
    location = Column(String(100), nullable=False, default="Main Entrance")
    access_method = Column(String(30), nullable=False)
    access_status = Column(String(10), nullable=False)
    access_time = Column(DateTime(timezone=True), default=_utcnow, index=True)

    def __repr__(self):
        return (
            f"<AccessLog(id={self.id}, employee_id={self.employee_id}, "
            f"method='{self.access_method}', status='{self.access_status}')>"
        )
