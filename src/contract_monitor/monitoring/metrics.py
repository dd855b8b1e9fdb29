"""
Dashboard statistics.

Counts are computed per viewer, so an employee's dashboard only reflects
the contracts (and alerts on contracts) they own.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict

from contract_monitor.core.triggers import (
    InvalidContractDataError,
    is_expiring,
    resolve_end_date,
)
from contract_monitor.storage.models import ContractStatus
from contract_monitor.visibility import Viewer

if TYPE_CHECKING:
    from contract_monitor.storage import AlertRepository, ContractRepository

logger = logging.getLogger(__name__)


@dataclass
class DashboardStats:
    """Summary numbers for one viewer's dashboard."""

    total_contracts: int = 0
    active_contracts: int = 0
    expiring_soon: int = 0
    unread_alerts: int = 0
    monthly_cost: Decimal = Decimal("0")
    calculated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_contracts": self.total_contracts,
            "active_contracts": self.active_contracts,
            "expiring_soon": self.expiring_soon,
            "unread_alerts": self.unread_alerts,
            "monthly_cost": float(self.monthly_cost),
            "calculated_at": self.calculated_at.isoformat(),
        }


class StatsCollector:
    """
    Builds DashboardStats from the contract and alert repositories.

    Usage:
        collector = StatsCollector(contract_repo, alert_repo)
        stats = await collector.get_dashboard_stats(viewer, date.today())
    """

    def __init__(
        self,
        contracts: "ContractRepository",
        alerts: "AlertRepository",
    ) -> None:
        self._contracts = contracts
        self._alerts = alerts

    async def get_dashboard_stats(self, viewer: Viewer, today: date) -> DashboardStats:
        stats = DashboardStats()
        contracts = await self._contracts.list_visible(viewer)
        stats.total_contracts = len(contracts)

        for contract in contracts:
            if contract.status is not ContractStatus.ACTIVE:
                continue

            stats.active_contracts += 1
            stats.monthly_cost += contract.cost_amount or Decimal("0")

            try:
                end_date = resolve_end_date(contract)
            except InvalidContractDataError as e:
                logger.debug(f"Ignoring unparseable end date in stats: {e}")
                continue
            if end_date is not None and is_expiring(end_date, today):
                stats.expiring_soon += 1

        stats.unread_alerts = await self._alerts.count_unread_visible(viewer)
        return stats
