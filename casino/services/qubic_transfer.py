"""Transfers from the casino wallet to a player.

The casino wallet service owns key material and signing. This adapter only
reads the current network tick, asks the wallet service to send ``amount`` QU
to ``destination`` at ``tick + TICK_OFFSET`` and classifies failures:

- ``TransferRejectedError``: nothing was sent (bad input, no tick, connection
  refused, 4xx, explicit error payload). Safe to retry later.
- ``TransferUnknownError``: the request may have reached the network (timeout
  after sending, dropped connection, 5xx, no transaction id). Needs an operator.
"""

import logging

import httpx

from casino.errors import TransferRejectedError, TransferUnknownError, ValidationFailed
from casino.load_secrets import (
    casino_public_id,
    casino_wallet_url,
    qubic_rpc_url,
    tick_offset,
    transfer_timeout,
)
from casino.validation import normalize_public_id

TICK_TIMEOUT = 10.0
TX_ID_FIELDS = ("transactionId", "txId", "id", "hash")


class TransferClient:
    """Interface used by the settlement coordinator."""

    async def transfer(self, destination: str, amount: int) -> str:
        raise NotImplementedError


class QubicTransferClient(TransferClient):
    def __init__(
        self,
        rpc_url: str = qubic_rpc_url,
        wallet_url: str = casino_wallet_url,
        source_id: str | None = casino_public_id,
        offset: int = tick_offset,
        timeout: float = transfer_timeout,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        self.wallet_url = wallet_url.rstrip("/")
        self.source_id = source_id
        self.offset = offset
        self.timeout = timeout
        self.transport = transport

    async def get_current_tick(self, client: httpx.AsyncClient) -> int:
        response = await client.get(f"{self.rpc_url}/v1/tick-info", timeout=TICK_TIMEOUT)
        response.raise_for_status()
        data = response.json()
        tick = data.get("tickInfo", data).get("tick")
        if not isinstance(tick, int):
            raise ValueError(f"tick-info response has no tick: {data}")
        return tick

    async def transfer(self, destination: str, amount: int) -> str:
        """Send ``amount`` QU to ``destination``.

        Returns:
            str: transaction id reported by the wallet service
        """
        if self.source_id is None:
            raise TransferRejectedError("CASINO_PUBLIC_ID is not configured")
        try:
            destination = normalize_public_id(destination)
        except ValidationFailed as e:
            raise TransferRejectedError(e.message, destination=destination) from e
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise TransferRejectedError("Transfer amount must be a positive integer", amount=amount)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                tick = await self.get_current_tick(client)
            except (httpx.HTTPError, ValueError) as e:
                raise TransferRejectedError(f"Could not read current tick: {e}") from e

            payload = {
                "sourceId": self.source_id,
                "destinationId": destination,
                "amount": amount,
                "targetTick": tick + self.offset,
            }
            logging.info(f"Sending {amount} QU to {destination} at tick {tick + self.offset}")
            try:
                response = await client.post(f"{self.wallet_url}/v1/transfers", json=payload)
            except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                raise TransferRejectedError(f"Wallet service unreachable: {e}") from e
            except httpx.TransportError as e:
                raise TransferUnknownError(f"Transfer outcome unknown: {e}", target_tick=tick + self.offset) from e

        if 400 <= response.status_code < 500:
            raise TransferRejectedError(
                f"Wallet service rejected transfer: {response.status_code}",
                body=response.text[:200],
            )
        if response.status_code >= 500:
            raise TransferUnknownError(
                f"Wallet service error: {response.status_code}", target_tick=tick + self.offset
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransferUnknownError("Wallet service returned invalid JSON") from e
        if data.get("error"):
            raise TransferRejectedError(f"Transfer rejected: {data['error']}")
        tx_id = next((data[field] for field in TX_ID_FIELDS if data.get(field)), None)
        if tx_id is None:
            raise TransferUnknownError("Wallet service did not return a transaction id", response=data)
        return str(tx_id)
