"""
Integration Test Configuration
==============================
Fixtures for component wiring tests with mocked external services.
"""

import json

import httpx
import pytest


# ============================================================================
# MOCKED NODE TRANSPORT
# ============================================================================


class RecordingNode:
    """
    httpx.MockTransport handler answering JSON-RPC calls from a table.

    Each entry in `responses` is either a result dict, an
    {"error": {...}} dict, or a callable taking the params.
    """

    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        answer = self.responses[payload["method"]]
        if callable(answer):
            answer = answer(payload["params"])
        body = {"jsonrpc": "2.0", "id": payload["id"]}
        if "error" in answer:
            body["error"] = answer["error"]
        else:
            body["result"] = answer
        return httpx.Response(200, json=body)


@pytest.fixture
def make_node_client():
    """Build a LedgerNodeClient whose HTTP calls hit a RecordingNode."""
    from guardian_recovery.infrastructure.node_client import LedgerNodeClient

    def factory(responses):
        node = RecordingNode(responses)
        http = httpx.AsyncClient(transport=httpx.MockTransport(node))
        return LedgerNodeClient("http://node.test:7777", http_client=http), node

    return factory


@pytest.fixture
def ledger():
    from tests.mocks.mock_ledger import MockLedger
    return MockLedger()
