"""
Integration test fixtures.

These tests drive the real scanner, emitter, scheduler and dashboard
together over the in-memory stores from tests/conftest.py.
"""

import pytest

# Mark all tests in this directory as integration tests
pytestmark = pytest.mark.integration
