"""
Unit Test Configuration
=======================
Fixtures for pure logic tests - NO I/O ALLOWED.

All unit tests should be completely isolated from:
- Network (node RPC, HTTP)
- File system (except tmp_path)
"""

import pytest


# ============================================================================
# AUTOUSE: ENFORCE I/O ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_unit_tests(monkeypatch):
    """
    Automatically disable all network I/O for unit tests.
    Any test that accidentally tries to make a network call will fail.
    """
    def block_network(*args, **kwargs):
        raise RuntimeError(
            "Network I/O detected in unit test! "
            "Unit tests must be pure logic with no external dependencies. "
            "Use the MockLedger or integration tests for node calls."
        )

    monkeypatch.setattr("httpx.AsyncClient.get", block_network)
    monkeypatch.setattr("httpx.AsyncClient.post", block_network)


# ============================================================================
# LEDGER FIXTURES
# ============================================================================


@pytest.fixture
def ledger():
    """Fresh in-memory ledger with results visible on first lookup."""
    from tests.mocks.mock_ledger import MockLedger
    return MockLedger()


@pytest.fixture
def encoder():
    from guardian_recovery.protocol.encoder import ProtocolEncoder
    return ProtocolEncoder()


@pytest.fixture
def builder():
    from guardian_recovery.execution.deploy_builder import DeployBuilder
    return DeployBuilder("casper-test")
