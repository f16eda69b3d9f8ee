from .backend import EngineBackend, ExecutionBackend
from .session import DbSession

__all__ = [
    "ExecutionBackend",
    "EngineBackend",
    "DbSession",
]
