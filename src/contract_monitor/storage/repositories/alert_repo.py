"""
Alert ledger.

The ledger is the single source of truth for "has this deadline already been
flagged?". The partial unique index uq_alerts_unread_contract_type allows at
most one unread row per (contract_id, alert_type); insert_alert leans on it
so that two workers racing on the same contract cannot both win.

Marking an alert read lifts the block, and the next scan may raise a fresh
alert for the same condition.
"""
from __future__ import annotations

from typing import Optional

import asyncpg

from contract_monitor.visibility import Viewer, VisibilityFilter
from contract_monitor.storage.models import AlertRecord, AlertType
from contract_monitor.storage.repositories.base import BaseRepository


class DuplicateAlertError(Exception):
    """An unread alert for this (contract, type) already exists."""

    def __init__(self, contract_id: int, alert_type: AlertType) -> None:
        self.contract_id = contract_id
        self.alert_type = AlertType(alert_type)
        super().__init__(
            f"Unread {self.alert_type.value} alert already exists for contract {contract_id}"
        )


class AlertRepository(BaseRepository[AlertRecord]):
    """Repository for the alerts table."""

    table_name = "alerts"
    model_class = AlertRecord

    async def alert_exists(
        self,
        contract_id: int,
        alert_type: AlertType,
        unread_only: bool = True,
    ) -> bool:
        """Check for an existing alert of this type on this contract."""
        query = """
            SELECT 1 FROM alerts
            WHERE contract_id = $1 AND alert_type = $2
        """
        if unread_only:
            query += " AND is_read = FALSE"
        query += " LIMIT 1"

        result = await self.db.fetchval(query, contract_id, AlertType(alert_type).value)
        return result is not None

    async def insert_alert(
        self,
        contract_id: int,
        alert_type: AlertType,
        message: str,
    ) -> AlertRecord:
        """
        Insert a new unread alert.

        ON CONFLICT targets the partial unique index, so the insert and the
        dedup check are one atomic statement.

        Raises:
            DuplicateAlertError: an unread alert for the pair already exists
        """
        alert_type = AlertType(alert_type)
        query = """
            INSERT INTO alerts (contract_id, alert_type, message)
            VALUES ($1, $2, $3)
            ON CONFLICT (contract_id, alert_type) WHERE is_read = FALSE DO NOTHING
            RETURNING *
        """
        try:
            record = await self.db.fetchrow(query, contract_id, alert_type.value, message)
        except asyncpg.UniqueViolationError as e:
            raise DuplicateAlertError(contract_id, alert_type) from e

        if record is None:
            raise DuplicateAlertError(contract_id, alert_type)
        return self._record_to_model(record)

    async def mark_read(self, alert_id: int, owner_id: Optional[int] = None) -> bool:
        """
        Mark an alert as read.

        Args:
            alert_id: Alert to acknowledge
            owner_id: If set, only succeed when the parent contract belongs
                      to this user

        Returns:
            True if a row was updated
        """
        if owner_id is None:
            query = """
                UPDATE alerts SET is_read = TRUE
                WHERE id = $1
                RETURNING id
            """
            result = await self.db.fetchval(query, alert_id)
        else:
            query = """
                UPDATE alerts a SET is_read = TRUE
                FROM contracts c
                WHERE a.id = $1 AND a.contract_id = c.id AND c.created_by = $2
                RETURNING a.id
            """
            result = await self.db.fetchval(query, alert_id, owner_id)
        return result is not None

    async def list_visible(
        self,
        viewer: Viewer,
        limit: int = 100,
        unread_only: bool = False,
    ) -> list[AlertRecord]:
        """Alerts the viewer may see, most recent first."""
        clause, params = VisibilityFilter.sql_clause(viewer, "c.created_by", 2)
        query = f"""
            SELECT a.*, c.title AS contract_title, c.created_by AS owner_id
            FROM alerts a
            JOIN contracts c ON a.contract_id = c.id
            WHERE TRUE{clause}
        """
        if unread_only:
            query += " AND a.is_read = FALSE"
        query += """
            ORDER BY a.created_at DESC, a.id DESC
            LIMIT $1
        """
        records = await self.db.fetch(query, limit, *params)
        return self._records_to_models(records)

    async def count_unread_visible(self, viewer: Viewer) -> int:
        """Number of unread alerts the viewer may see."""
        clause, params = VisibilityFilter.sql_clause(viewer, "c.created_by", 1)
        query = f"""
            SELECT COUNT(*)
            FROM alerts a
            JOIN contracts c ON a.contract_id = c.id
            WHERE a.is_read = FALSE{clause}
        """
        return await self.db.fetchval(query, *params) or 0
