import asyncio
import logging
from datetime import datetime
from typing import Callable
from uuid import UUID

from casino.domain.fairness import SeedPair, verify_commitment
from casino.errors import (
    Conflict,
    NotFound,
    TransferRejectedError,
    TransferUnknownError,
    ValidationFailed,
)
from casino.load_secrets import transfer_timeout
from casino.services.game_db import PayoutLedger
from casino.services.qubic_transfer import TransferClient


class SettlementCoordinator:
    """Pays each obligation at most once.

    Order of operations for every payout:
    1. verify the round/session commitment (when seeds are given)
    2. persist PENDING + amount together with the game's terminal fields
    3. call the transfer collaborator exactly once, bounded by ``timeout``
    4. persist SENT + tx id, or FAILED (with the reconciliation flag when the
       outcome of the transfer is unknown)
    """

    def __init__(
        self,
        transfer_client: TransferClient,
        timeout: float = transfer_timeout,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.transfer_client = transfer_client
        self.timeout = timeout
        self.clock = clock

    async def settle(
        self,
        ledger: PayoutLedger,
        key: UUID,
        destination: str,
        amount: int,
        expected: dict | None = None,
        values: dict | None = None,
        rejected_values: dict | None = None,
        seeds: SeedPair | None = None,
    ):
        """Settle one payout.

        Args:
            ledger (PayoutLedger): table that holds the payout columns
            key (UUID): row id
            destination (str): player's public id
            amount (int): QU to send, must be positive
            expected (dict | None): extra preconditions for the PENDING write
            values (dict | None): terminal game fields written with PENDING
            rejected_values (dict | None): fields restored if the transfer is definitely rejected
            seeds (SeedPair | None): commitment checked before anything is written

        Returns:
            the row snapshot after settlement (or the existing one if already SENT)
        """
        current, reserved = await self.reserve(ledger, key, amount, expected, values, seeds)
        if not reserved:
            return current
        return await self.dispatch(ledger, key, destination, amount, rejected_values)

    async def reserve(
        self,
        ledger: PayoutLedger,
        key: UUID,
        amount: int,
        expected: dict | None = None,
        values: dict | None = None,
        seeds: SeedPair | None = None,
    ):
        """Steps 1 and 2 of ``settle``: persist PENDING before any transfer.

        Returns:
            tuple: (row snapshot, True when this call reserved the payout; False
            when the payout was already SENT)
        """
        if seeds is not None:
            verify_commitment(seeds.public_seed, seeds.private_seed, seeds.private_seed_hash)

        current = await ledger.read(key)
        if current is None:
            raise NotFound("Nothing to settle", key=str(key))
        if current.payout_status == "SENT":
            return current, False
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationFailed("Payout amount must be a positive integer", amount=amount)

        claimed = await ledger.mark_pending(key, amount, expected or {}, values or {}, self.clock())
        current = await ledger.read(key)
        if not claimed:
            if current is not None and current.payout_status == "SENT":
                return current, False
            raise Conflict(
                "Payout is already in progress or the record changed",
                key=str(key),
                payout_status=None if current is None else current.payout_status,
                reconcile=None if current is None else current.payout_reconcile,
            )
        return current, True

    async def dispatch(
        self,
        ledger: PayoutLedger,
        key: UUID,
        destination: str,
        amount: int,
        rejected_values: dict | None = None,
    ):
        """Send a payout whose row is already PENDING and record the outcome."""
        try:
            tx_id = await asyncio.wait_for(
                self.transfer_client.transfer(destination, amount), self.timeout
            )
        except TransferRejectedError as e:
            logging.warning(f"Payout {key} of {amount} to {destination} rejected: {e.message}")
            await ledger.mark_failed(key, e.message, False, rejected_values or {}, self.clock())
            raise
        except TransferUnknownError as e:
            logging.error(f"Payout {key} of {amount} to {destination} has unknown outcome: {e.message}")
            await ledger.mark_failed(key, e.message, True, {}, self.clock())
            raise
        except asyncio.TimeoutError as e:
            logging.error(f"Payout {key} of {amount} to {destination} timed out after {self.timeout}s")
            await ledger.mark_failed(key, "Transfer timed out", True, {}, self.clock())
            raise TransferUnknownError("Transfer timed out", key=str(key)) from e
        except Exception as e:
            logging.exception(f"Payout {key} of {amount} to {destination} failed unexpectedly")
            await ledger.mark_failed(key, f"Unexpected transfer error: {e}", True, {}, self.clock())
            raise TransferUnknownError("Transfer outcome unknown", key=str(key)) from e

        await ledger.mark_sent(key, tx_id, self.clock())
        logging.info(f"Payout {key}: sent {amount} QU to {destination}, tx {tx_id}")
        return await ledger.read(key)
