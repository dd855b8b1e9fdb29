"""
Storage Layer - Async PostgreSQL database and repositories.

Public API:
    Database, DatabaseConfig - Connection pool management

    Models:
        Contract, ContractStatus - Read-only contract snapshot
        AlertRecord, AlertType - Alert ledger rows

    Repositories:
        ContractRepository - Active-contract snapshot provider
        AlertRepository - Alert ledger (exists / insert / mark read / reads)
        DuplicateAlertError - Raised when the unread-alert invariant blocks an insert
"""
from contract_monitor.storage.database import Database, DatabaseConfig
from contract_monitor.storage.models import (
    AlertRecord,
    AlertType,
    Contract,
    ContractStatus,
)
from contract_monitor.storage.repositories import (
    AlertRepository,
    ContractRepository,
    DuplicateAlertError,
)

__all__ = [
    "Database",
    "DatabaseConfig",
    "AlertRecord",
    "AlertType",
    "Contract",
    "ContractStatus",
    "AlertRepository",
    "ContractRepository",
    "DuplicateAlertError",
]
