"""
Contract Compliance Monitor.

Scans active contracts once a day and raises advance-warning alerts before
contractual deadlines (expiry, notice period) are missed. Alerts are stored
in a shared PostgreSQL ledger that enforces one unread alert per
(contract, alert type).
"""

__version__ = "0.1.0"
