"""
Repository exports.
"""
from contract_monitor.storage.repositories.alert_repo import (
    AlertRepository,
    DuplicateAlertError,
)
from contract_monitor.storage.repositories.contract_repo import ContractRepository

__all__ = [
    "AlertRepository",
    "ContractRepository",
    "DuplicateAlertError",
]
