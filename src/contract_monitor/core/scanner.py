"""
One compliance scan pass.

Fetch the active contracts, evaluate both trigger rules for each, and hand
every due alert to the emitter. A pass is a best-effort batch:

- snapshot fetch fails      -> logged, pass ends with nothing emitted
- bad end_date on a contract -> logged as warning, contract skipped
- ledger error on a contract -> logged as error, contract abandoned
                               for this pass, remaining contracts continue

run_scan() never raises for any of these; the returned ScanSummary is the
only report.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol

from contract_monitor.core.emitter import AlertEmitter, EmitOutcome
from contract_monitor.core.triggers import InvalidContractDataError, evaluate_contract
from contract_monitor.storage.models import Contract

logger = logging.getLogger(__name__)


class ContractSnapshotProvider(Protocol):
    async def list_active(self) -> list[Contract]:
        ...


@dataclass
class ScanSummary:
    """Outcome of a single scan pass."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    contracts_scanned: int = 0
    alerts_emitted: int = 0
    alerts_skipped: int = 0
    invalid_contracts: int = 0
    errors: int = 0
    interrupted: bool = False
    error_details: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "contracts_scanned": self.contracts_scanned,
            "alerts_emitted": self.alerts_emitted,
            "alerts_skipped": self.alerts_skipped,
            "invalid_contracts": self.invalid_contracts,
            "errors": self.errors,
            "interrupted": self.interrupted,
            "error_details": list(self.error_details),
        }


class ComplianceScanner:
    """
    Runs scan passes over the active contract set.

    Holds no state between passes; the alert ledger is the only memory.

    Usage:
        scanner = ComplianceScanner(contract_repo, AlertEmitter(alert_repo))
        summary = await scanner.run_scan()
    """

    def __init__(
        self,
        contracts: ContractSnapshotProvider,
        emitter: AlertEmitter,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._contracts = contracts
        self._emitter = emitter
        self._clock = clock

    async def run_scan(
        self,
        now: Optional[datetime] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> ScanSummary:
        """
        Execute one full pass.

        Args:
            now: Evaluation instant (defaults to the injected clock)
            stop_event: When set, the pass stops after the current contract

        Returns:
            ScanSummary with counts for observability
        """
        now = now or self._clock()
        summary = ScanSummary(started_at=self._clock())
        logger.info(f"Compliance scan started (as of {now.date().isoformat()})")

        try:
            contracts = await self._contracts.list_active()
        except Exception as e:
            logger.error(f"Failed to load active contracts, scan aborted: {e}")
            summary.errors += 1
            summary.error_details.append(f"snapshot: {e}")
            summary.finished_at = self._clock()
            return summary

        for contract in contracts:
            if stop_event is not None and stop_event.is_set():
                logger.info("Shutdown requested, stopping scan early")
                summary.interrupted = True
                break

            summary.contracts_scanned += 1
            await self._scan_contract(contract, now, summary)

        summary.finished_at = self._clock()
        logger.info(
            f"Compliance scan finished: scanned={summary.contracts_scanned}, "
            f"emitted={summary.alerts_emitted}, skipped={summary.alerts_skipped}, "
            f"invalid={summary.invalid_contracts}, errors={summary.errors}"
        )
        return summary

    async def _scan_contract(
        self, contract: Contract, now: datetime, summary: ScanSummary
    ) -> None:
        try:
            candidates = evaluate_contract(contract, now)
        except InvalidContractDataError as e:
            logger.warning(f"Skipping contract with invalid data: {e}")
            summary.invalid_contracts += 1
            return

        for candidate in candidates:
            try:
                outcome = await self._emitter.emit(candidate)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Abandon the rest of this contract; siblings are unaffected
                logger.error(
                    f"Failed to emit {candidate.alert_type.value} alert "
                    f"for contract {contract.id}: {e}"
                )
                summary.errors += 1
                summary.error_details.append(f"contract {contract.id}: {e}")
                return

            if outcome is EmitOutcome.INSERTED:
                summary.alerts_emitted += 1
            else:
                summary.alerts_skipped += 1
