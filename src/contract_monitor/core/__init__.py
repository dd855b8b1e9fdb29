"""
Core Layer - Compliance monitoring and alert engine.

This module provides:
    - evaluate_contract: Pure trigger evaluation (expiry, notice period)
    - AlertCandidate: An alert that is due for a contract
    - InvalidContractDataError: Contract data a trigger cannot use
    - AlertEmitter / EmitOutcome: Dedup-safe alert insertion
    - ComplianceScanner / ScanSummary: One best-effort scan pass
    - ScanScheduler / SchedulerConfig / SchedulerState: Periodic, non-overlapping scans

Data Flow:
    1. ScanScheduler wakes (daily) or run_now() is called
    2. ComplianceScanner loads active contracts
    3. evaluate_contract computes due triggers per contract
    4. AlertEmitter inserts each alert unless an unread one already exists
"""

# Trigger evaluation
from .triggers import (
    EXPIRY_WINDOW_DAYS,
    NOTICE_WARNING_LEAD_DAYS,
    AlertCandidate,
    InvalidContractDataError,
    evaluate_contract,
    is_expiring,
    is_notice_due,
    notice_deadline,
    resolve_end_date,
)

# Emission
from .emitter import AlertEmitter, AlertLedger, EmitOutcome

# Scanning
from .scanner import ComplianceScanner, ContractSnapshotProvider, ScanSummary

# Scheduling
from .scheduler import ScanScheduler, SchedulerConfig, SchedulerState

__all__ = [
    # Triggers
    "EXPIRY_WINDOW_DAYS",
    "NOTICE_WARNING_LEAD_DAYS",
    "AlertCandidate",
    "InvalidContractDataError",
    "evaluate_contract",
    "is_expiring",
    "is_notice_due",
    "notice_deadline",
    "resolve_end_date",
    # Emission
    "AlertEmitter",
    "AlertLedger",
    "EmitOutcome",
    # Scanning
    "ComplianceScanner",
    "ContractSnapshotProvider",
    "ScanSummary",
    # Scheduling
    "ScanScheduler",
    "SchedulerConfig",
    "SchedulerState",
]
