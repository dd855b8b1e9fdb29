"""
Integration tests for the contract compliance monitor.

These tests run the scanner, scheduler and dashboard together over the
in-memory ledger from tests/conftest.py. No database is needed.

Run with:
    pytest tests/integration/ -v -m integration

Skip with:
    pytest -m "not integration"
"""
