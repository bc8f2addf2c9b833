"""Database adapters."""
from .schema import CURRENT_SCHEMA_VERSION, get_schema_version, init_schema
from .sqlite import Sqlite

__all__ = ["Sqlite", "init_schema", "get_schema_version", "CURRENT_SCHEMA_VERSION"]
