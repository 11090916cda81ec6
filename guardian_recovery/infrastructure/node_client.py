"""
Ledger Node Client
==================
Async JSON-RPC client for a Casper node.

Only the four calls the recovery client depends on:
- chain_get_state_root_hash
- state_get_item      (account / contract named-key reads)
- account_put_deploy
- info_get_deploy

One httpx.AsyncClient is shared by all calls; it is safe for concurrent
independent requests.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx

from guardian_recovery.errors import LedgerRpcError
from guardian_recovery.shared.system.logging import Logger


# JSON-RPC 2.0 "Parse error"
PARSE_ERROR_CODE = -32700


class LedgerClient(Protocol):
    """The ledger operations the recovery client relies on."""

    async def get_state_root_hash(self) -> str: ...

    async def get_block_state(
        self, state_root_hash: str, key: str, path: List[str]
    ) -> Dict[str, Any]: ...

    async def put_deploy(self, deploy_json: Dict[str, Any]) -> str: ...

    async def get_deploy(
        self, deploy_hash: str
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]: ...


class LedgerNodeClient:
    """
    JSON-RPC 2.0 client against `{node_url}/rpc`.

    Usage:
        async with LedgerNodeClient("http://localhost:7777") as node:
            root = await node.get_state_root_hash()
    """

    def __init__(
        self,
        node_url: str,
        request_timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.rpc_url = node_url.rstrip("/")
        if not self.rpc_url.endswith("/rpc"):
            self.rpc_url += "/rpc"
        self._http = http_client or httpx.AsyncClient(timeout=request_timeout)
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "LedgerNodeClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        response = await self._http.post(self.rpc_url, json=payload)
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError:
            Logger.debug(f"[LEDGER] {method} returned non-JSON: {response.text[:120]!r}")
            raise LedgerRpcError(
                PARSE_ERROR_CODE, f"Invalid JSON response from {self.rpc_url}"
            ) from None
        if not isinstance(body, dict):
            raise LedgerRpcError(
                PARSE_ERROR_CODE, f"Unexpected JSON-RPC envelope: {type(body).__name__}"
            )

        if body.get("error"):
            error = body["error"]
            Logger.debug(f"[LEDGER] {method} error: {error}")
            raise LedgerRpcError(
                int(error.get("code", 0)), error.get("message", "Unknown RPC error"),
                error.get("data"),
            )
        return body.get("result") or {}

    # =========================================================================
    # STATE
    # =========================================================================

    async def get_state_root_hash(self) -> str:
        result = await self._call("chain_get_state_root_hash", {})
        return result["state_root_hash"]

    async def get_block_state(
        self, state_root_hash: str, key: str, path: List[str]
    ) -> Dict[str, Any]:
        """Stored value at `key` / `path` (e.g. an account's named key)."""
        result = await self._call(
            "state_get_item",
            {"state_root_hash": state_root_hash, "key": key, "path": list(path)},
        )
        return result.get("stored_value") or {}

    # =========================================================================
    # DEPLOYS
    # =========================================================================

    async def put_deploy(self, deploy_json: Dict[str, Any]) -> str:
        result = await self._call("account_put_deploy", {"deploy": deploy_json})
        return result["deploy_hash"]

    async def get_deploy(
        self, deploy_hash: str
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        result = await self._call("info_get_deploy", {"deploy_hash": deploy_hash})
        return result.get("deploy") or {}, result.get("execution_results") or []
