"""
Pydantic models matching the PostgreSQL schema in storage/schema.py.

Contract rows are read-only to the monitor. Alert rows are created by the
scanner and only ever flipped to read afterwards.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContractStatus(str, Enum):
    """Lifecycle status of a contract record."""

    ACTIVE = "active"
    DRAFT = "draft"
    TERMINATED = "terminated"
    EXPIRED = "expired"


class AlertType(str, Enum):
    """Deadline an alert warns about."""

    EXPIRY = "expiry"
    NOTICE = "notice"


# =============================================================================
# CONTRACTS
# =============================================================================


class Contract(BaseModel):
    """Snapshot of a contract as stored by the record-management service."""

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: int
    title: str
    status: ContractStatus = ContractStatus.ACTIVE
    # Either a parsed date or the raw text column; triggers.resolve_end_date
    # normalises it.
    end_date: Optional[Union[date, str]] = None
    notice_period_days: int = 0
    owner_id: Optional[int] = Field(default=None, alias="created_by")
    partner_name: Optional[str] = None
    cost_amount: Optional[Decimal] = None

    @field_validator("notice_period_days", mode="before")
    @classmethod
    def _null_notice_is_zero(cls, value):
        return 0 if value is None else value


# =============================================================================
# ALERTS
# =============================================================================


class AlertRecord(BaseModel):
    """One row of the alert ledger."""

    id: int
    contract_id: int
    alert_type: AlertType
    message: str
    is_read: bool = False
    created_at: Optional[datetime] = None

    # Populated by read queries that join the parent contract
    contract_title: Optional[str] = None
    owner_id: Optional[int] = None
