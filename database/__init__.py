# Database package
from .connection import Database
from .models import AccessLog, Base, Employee

__all__ = ["Database", "Base", "Employee", "AccessLog"]
