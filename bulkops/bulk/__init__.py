from .base import BulkBackend
from .sql import SqlBulkBackend

__all__ = ["BulkBackend", "SqlBulkBackend"]
