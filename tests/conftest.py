"""
Guardian Recovery Test Configuration
====================================
Shared fixtures, sample keys and pytest markers for the test suite.
"""

import pytest
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from guardian_recovery.shared.system.logging import Logger  # noqa: E402
from tests.mocks.keys import ed25519_key, secp256k1_key  # noqa: E402


# ============================================================================
# PYTEST MARKERS
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks integration tests"
    )
    Logger.set_silent(True)


# ============================================================================
# SAMPLE KEYS
# ============================================================================

@pytest.fixture
def owner_key():
    return ed25519_key(0x11)


@pytest.fixture
def guardian_keys():
    return [ed25519_key(0x21), ed25519_key(0x22), secp256k1_key(0x23)]


@pytest.fixture
def new_key():
    return ed25519_key(0x31)


@pytest.fixture
def registry_hash():
    return "hash-" + "cd" * 32


@pytest.fixture
def session_wasm():
    return b"\x00asm\x01\x00\x00\x00" + b"\x00" * 24
