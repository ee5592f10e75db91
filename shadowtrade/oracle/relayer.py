"""
ShadowTrade Relayer Bridge

Connects the protocol to a remote decryption relayer over HTTP:

- outbound: queued oracle requests are POSTed to the relayer
- inbound: finished results are fetched, applied as ORACLE callbacks,
  and acknowledged

Relayer wire format (JSON):
    POST {url}/v1/requests       body: request.to_dict()
    GET  {url}/v1/results        -> {"results": [result, ...]}
    POST {url}/v1/results/ack    body: {"request_ids": [...]}

    decryption result:   {"kind": "decryption", "request_id", "plaintext", "proof"}
    verification result: {"kind": "verification", "request_id", "verified"}
"""

from __future__ import annotations
import asyncio
import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import httpx

from shadowtrade.constants import RELAYER_POLL_INTERVAL_SEC, RELAYER_TIMEOUT_SEC
from shadowtrade.core.types import Address, parse_bytes
from shadowtrade.errors import InvalidParameterError, ShadowTradeError
from shadowtrade.oracle.messages import OracleRequest

if TYPE_CHECKING:
    from shadowtrade.state.machine import ShadowProtocol

logger = logging.getLogger(__name__)


class RelayerError(Exception):
    """Relayer unreachable or answered with an error status."""
    pass


class RelayerClient:
    """Thin async HTTP client for the relayer API."""

    def __init__(
        self,
        url: str,
        timeout: float = RELAYER_TIMEOUT_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout,
            transport=transport,
        )

    async def submit(self, request: OracleRequest) -> None:
        await self._call("POST", "/v1/requests", json=request.to_dict())

    async def fetch_results(self) -> List[Dict[str, Any]]:
        body = await self._call("GET", "/v1/results")
        return list(body.get("results", []))

    async def acknowledge(self, request_ids: List[int]) -> None:
        await self._call("POST", "/v1/results/ack", json={"request_ids": request_ids})

    async def close(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise RelayerError(f"{method} {path} failed: {e}") from e

        if not resp.content:
            return {}
        return resp.json()


class RelayerBridge:
    """
    Background task moving requests and results between protocol and relayer.

    Requests that fail to submit go back to the outbox and are retried on
    the next tick. Results the protocol rejects are still acknowledged so the
    relayer does not redeliver them forever.
    """

    def __init__(
        self,
        protocol: "ShadowProtocol",
        client: RelayerClient,
        oracle_account: Address,
        poll_interval: float = RELAYER_POLL_INTERVAL_SEC
    ):
        self.protocol = protocol
        self.client = client
        self.oracle_account = oracle_account
        self.poll_interval = poll_interval
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def forward_outbox(self) -> int:
        """Submit every queued request; returns how many were sent."""
        messages = self.protocol.outbox.drain()
        for i, message in enumerate(messages):
            try:
                await self.client.submit(message)
            except RelayerError:
                self.protocol.outbox.requeue(messages[i:])
                raise
            logger.debug(f"Forwarded {message.kind} request #{message.request_id}")
        return len(messages)

    async def poll_results(self) -> int:
        """Apply finished results; returns how many the protocol accepted."""
        results = await self.client.fetch_results()
        if not results:
            return 0

        accepted = 0
        handled: List[Any] = []
        for result in results:
            raw_id = result.get("request_id") if isinstance(result, dict) else None
            try:
                self.apply_result(result)
                accepted += 1
            except ShadowTradeError as e:
                logger.warning(f"Relayer result #{raw_id} rejected: {e}")
            if raw_id is not None:
                handled.append(raw_id)

        if handled:
            await self.client.acknowledge(handled)
        return accepted

    def apply_result(self, result: Any) -> None:
        """
        Deliver one relayer result as an ORACLE callback.

        Raises:
            InvalidParameterError: result is malformed
            ShadowTradeError: the protocol rejected the callback
        """
        if not isinstance(result, dict):
            raise InvalidParameterError("result", f"expected object, got {type(result).__name__}")

        kind = result.get("kind")
        if kind not in ("decryption", "verification"):
            raise InvalidParameterError("kind", f"unknown result kind {kind!r}")

        try:
            request_id = result["request_id"]
            if isinstance(request_id, bool):
                raise TypeError("request_id must be an integer")
            request_id = int(request_id)
            if kind == "decryption":
                plaintext = Address.from_hex(result["plaintext"])
                proof = parse_bytes(result["proof"])
            else:
                verified = result["verified"]
                if not isinstance(verified, bool):
                    raise TypeError("verified must be a boolean")
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise InvalidParameterError("result", f"malformed {kind} result: {e!r}") from e

        if kind == "decryption":
            self.protocol.on_decryption_callback(self.oracle_account, request_id, plaintext, proof)
        else:
            self.protocol.on_verification_callback(self.oracle_account, request_id, verified)

    async def tick(self) -> None:
        await self.forward_outbox()
        await self.poll_results()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Relayer bridge started: {self.client.url}")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.client.close()
        logger.info("Relayer bridge stopped")

    async def _run(self) -> None:
        while self._running:
            try:
                await self.tick()
            except RelayerError as e:
                logger.error(f"Relayer error: {e}")
            except Exception as e:
                logger.error(f"Relayer bridge error: {e}", exc_info=True)
            await asyncio.sleep(self.poll_interval)
