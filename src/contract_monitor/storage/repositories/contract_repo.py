"""
Contract snapshot provider.

Contracts are owned by the record-management service; the monitor only ever
reads them. Every call hits the database so a scan always sees the status
as of the moment it starts.
"""
from __future__ import annotations

from contract_monitor.visibility import Viewer, VisibilityFilter
from contract_monitor.storage.models import Contract, ContractStatus
from contract_monitor.storage.repositories.base import BaseRepository

CONTRACT_COLUMNS = """
    id, title, status, end_date, notice_period_days,
    created_by, partner_name, cost_amount
"""


class ContractRepository(BaseRepository[Contract]):
    """Read-only access to contract records."""

    table_name = "contracts"
    model_class = Contract

    async def list_active(self) -> list[Contract]:
        """All contracts currently in 'active' status."""
        query = f"""
            SELECT {CONTRACT_COLUMNS}
            FROM contracts
            WHERE status = $1
            ORDER BY id
        """
        records = await self.db.fetch(query, ContractStatus.ACTIVE.value)
        return self._records_to_models(records)

    async def list_visible(self, viewer: Viewer) -> list[Contract]:
        """Contracts the viewer may see, any status."""
        clause, params = VisibilityFilter.sql_clause(viewer, "created_by", 1)
        query = f"""
            SELECT {CONTRACT_COLUMNS}
            FROM contracts
            WHERE TRUE{clause}
            ORDER BY id
        """
        records = await self.db.fetch(query, *params)
        return self._records_to_models(records)
