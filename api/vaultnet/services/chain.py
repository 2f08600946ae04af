"""Read-only JSON-RPC client for the chain node.

Only two methods are used: eth_getTransactionReceipt and
eth_getTransactionByHash. The client never submits transactions.

Design notes:
- Every call is bounded by the httpx timeout configured on the shared client.
- The node is treated as unreliable and eventually consistent. Timeouts,
  transport errors, non-200 responses, JSON-RPC error objects and unparseable
  bodies are all surfaced as PendingOrUnknownTransaction so the caller retries
  later. Nothing is retried inside this module.
- A null result (unknown or not yet mined hash) is returned as None; the
  ledger decides what that means.
"""

import itertools
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from vaultnet.errors import PendingOrUnknownTransaction
from vaultnet.metrics import chain_rpc_duration

log = structlog.get_logger()

RECEIPT_STATUS_SUCCESS = "0x1"


@dataclass(frozen=True)
class TransactionReceipt:
    tx_hash: str
    status: Optional[str]
    to: Optional[str]

    @property
    def succeeded(self) -> bool:
        return self.status == RECEIPT_STATUS_SUCCESS


@dataclass(frozen=True)
class Transaction:
    tx_hash: str
    value_wei: int
    sender: Optional[str]
    to: Optional[str]


class ChainRpcClient:
    """Minimal Ethereum JSON-RPC reader over a shared httpx.AsyncClient."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        rpc_url: str,
        timeout: float = 10.0,
    ) -> None:
        self.http_client = http_client
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        start = time.monotonic()
        try:
            response = await self.http_client.post(
                self.rpc_url, json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            log.warning("chain_rpc_timeout", method=method, timeout=self.timeout)
            raise PendingOrUnknownTransaction(f"{method} timed out") from exc
        except (httpx.HTTPError, ValueError) as exc:
            log.error("chain_rpc_failed", method=method, error=str(exc))
            raise PendingOrUnknownTransaction(f"{method} failed: {exc}") from exc
        finally:
            chain_rpc_duration.labels(method=method).observe(time.monotonic() - start)

        if not isinstance(body, dict):
            raise PendingOrUnknownTransaction(f"{method} returned a non-object body")
        if body.get("error"):
            log.error("chain_rpc_error", method=method, rpc_error=body["error"])
            raise PendingOrUnknownTransaction(f"{method} rpc error: {body['error']}")
        return body.get("result")

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        result = await self._call("eth_getTransactionReceipt", [tx_hash])
        if not result:
            return None
        return TransactionReceipt(
            tx_hash=tx_hash,
            status=result.get("status"),
            to=result.get("to"),
        )

    async def get_transaction(self, tx_hash: str) -> Optional[Transaction]:
        result = await self._call("eth_getTransactionByHash", [tx_hash])
        if not result:
            return None
        try:
            value_wei = int(result.get("value") or "0x0", 16)
        except (TypeError, ValueError) as exc:
            raise PendingOrUnknownTransaction(
                f"unparseable transaction value: {result.get('value')!r}"
            ) from exc
        return Transaction(
            tx_hash=tx_hash,
            value_wei=value_wei,
            sender=result.get("from"),
            to=result.get("to"),
        )
