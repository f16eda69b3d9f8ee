from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class MutationConfig:
    row_by_row_threshold: int = 50
    prefer_bulk_api: bool = False
    page_size: int = 500
    batch_size: int = 1000

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.row_by_row_threshold < 0:
            raise ValueError("row_by_row_threshold must be >= 0")
        if self.page_size <= 0:
            raise ValueError("page_size must be > 0")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")

    @classmethod
    def from_env(cls, prefix: str = "BULKOPS_") -> "MutationConfig":
        """
        Build a config from environment variables, e.g. BULKOPS_PAGE_SIZE.
        Unset or empty variables keep the defaults.
        """
        defaults = cls()
        return cls(
            row_by_row_threshold=_env_int(
                f"{prefix}ROW_BY_ROW_THRESHOLD", defaults.row_by_row_threshold
            ),
            prefer_bulk_api=_env_bool(f"{prefix}PREFER_BULK_API", defaults.prefer_bulk_api),
            page_size=_env_int(f"{prefix}PAGE_SIZE", defaults.page_size),
            batch_size=_env_int(f"{prefix}BATCH_SIZE", defaults.batch_size),
        )
