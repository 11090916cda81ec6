"""
Guardian Recovery Test Mocks
============================
Reusable mock classes for isolated testing.
"""

from tests.mocks.keys import ed25519_key, secp256k1_key, sign, sign_deploy
from tests.mocks.mock_ledger import MockLedger

__all__ = [
    "MockLedger",
    "ed25519_key",
    "secp256k1_key",
    "sign",
    "sign_deploy",
]
