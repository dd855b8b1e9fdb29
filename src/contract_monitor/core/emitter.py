"""
Deduplicating alert emitter.

For each due trigger, make sure exactly one unread alert exists. The ledger
is re-queried on every call; nothing is remembered between scans.

The exists() pre-check only saves a write in the common steady state where
the alert is already sitting unread. The atomic insert is what actually
arbitrates between concurrent workers: a losing insert raises
DuplicateAlertError and is reported as SKIPPED.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from contract_monitor.core.triggers import AlertCandidate
from contract_monitor.storage.models import AlertRecord, AlertType
from contract_monitor.storage.repositories.alert_repo import DuplicateAlertError

logger = logging.getLogger(__name__)


class AlertLedger(Protocol):
    """The subset of AlertRepository the emitter needs."""

    async def alert_exists(
        self, contract_id: int, alert_type: AlertType, unread_only: bool = True
    ) -> bool:
        ...

    async def insert_alert(
        self, contract_id: int, alert_type: AlertType, message: str
    ) -> AlertRecord:
        ...


class EmitOutcome(Enum):
    """Result of one emission attempt."""

    INSERTED = "inserted"
    SKIPPED = "skipped"


class AlertEmitter:
    """
    Writes alerts to the ledger without ever creating a second unread
    alert for the same (contract, type).

    Usage:
        emitter = AlertEmitter(alert_repo)
        outcome = await emitter.try_emit(42, AlertType.EXPIRY, "Contract ... expires")

    Ledger errors other than the dedup conflict propagate to the caller.
    """

    def __init__(self, ledger: AlertLedger) -> None:
        self._ledger = ledger

    async def try_emit(
        self,
        contract_id: int,
        alert_type: AlertType,
        message: str,
    ) -> EmitOutcome:
        if await self._ledger.alert_exists(contract_id, alert_type, unread_only=True):
            logger.debug(f"Unread {alert_type.value} alert already open for contract {contract_id}")
            return EmitOutcome.SKIPPED

        try:
            record = await self._ledger.insert_alert(contract_id, alert_type, message)
        except DuplicateAlertError:
            logger.debug(
                f"Lost insert race for {alert_type.value} alert on contract {contract_id}"
            )
            return EmitOutcome.SKIPPED

        logger.info(
            f"Raised {alert_type.value} alert {record.id} for contract {contract_id}: {message}"
        )
        return EmitOutcome.INSERTED

    async def emit(self, candidate: AlertCandidate) -> EmitOutcome:
        return await self.try_emit(
            candidate.contract_id, candidate.alert_type, candidate.message
        )
