"""Database layer for stay-hard."""

from .engine import get_db_path, init_db, reset_user_data, write_transaction
from .repositories import (
    CallLogRepository,
    DayCycleRepository,
    IdentityRepository,
    ProgressRepository,
    SetupRepository,
    TransactionRepository,
)

__all__ = [
    "CallLogRepository",
    "DayCycleRepository",
    "get_db_path",
    "IdentityRepository",
    "init_db",
    "ProgressRepository",
    "reset_user_data",
    "SetupRepository",
    "TransactionRepository",
    "write_transaction",
]
