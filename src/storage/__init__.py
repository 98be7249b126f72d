"""
Storage module.

SQLite vehicle registry and access log.
"""

from .database import Database, RegistryError

__all__ = ["Database", "RegistryError"]
