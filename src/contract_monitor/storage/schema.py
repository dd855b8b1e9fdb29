"""
DDL for the tables the monitor reads and writes.

The contracts table normally belongs to the record-management service; it is
created here only so a standalone deployment has something to scan. Its
end_date column is free text, exactly as that service stores it.

The partial unique index on alerts is what enforces "one unread alert per
(contract, type)" across every worker sharing the database.
"""

CREATE_CONTRACTS = """
    CREATE TABLE IF NOT EXISTS contracts (
        id SERIAL PRIMARY KEY,
        title TEXT NOT NULL,
        partner_name TEXT,
        status TEXT NOT NULL DEFAULT 'active',
        end_date TEXT,
        notice_period_days INTEGER DEFAULT 0,
        cost_amount NUMERIC,
        created_by INTEGER,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

CREATE_ALERTS = """
    CREATE TABLE IF NOT EXISTS alerts (
        id SERIAL PRIMARY KEY,
        contract_id INTEGER NOT NULL REFERENCES contracts(id) ON DELETE CASCADE,
        alert_type TEXT NOT NULL,
        message TEXT NOT NULL,
        is_read BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

CREATE_UNREAD_ALERT_INDEX = """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_alerts_unread_contract_type
    ON alerts (contract_id, alert_type)
    WHERE is_read = FALSE
"""

CREATE_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_contracts_status ON contracts(status)",
    "CREATE INDEX IF NOT EXISTS idx_contracts_created_by ON contracts(created_by)",
    "CREATE INDEX IF NOT EXISTS idx_alerts_created_at ON alerts(created_at DESC)",
)

SCHEMA_STATEMENTS = (
    CREATE_CONTRACTS,
    CREATE_ALERTS,
    CREATE_UNREAD_ALERT_INDEX,
    *CREATE_INDEXES,
)
