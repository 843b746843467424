"""DB service layer shared by every game mode.

- Game services call this module (or CRUD helpers inside their own
  ``session.begin()`` blocks); routers never touch sessions.
- ``PayoutLedger`` is the persistence side of settlement: each method runs in
  its own short transaction so that state is durable before and after the
  transfer call.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Type
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import async_sessionmaker

from casino.crud import ReadData, UpdateData
from casino.models.schema_models import MineGameSchema, RoundBetSchema, VideoPokerGameSchema
from casino.models.schemas import Base, MineGame, RoundBet, VideoPokerGame

UNSETTLED_MODELS = (MineGame, VideoPokerGame, RoundBet)


class PayoutLedger:
    """Payout columns of one table, addressed by primary key."""

    def __init__(self, Session: async_sessionmaker, model: Type[Base], schema: Type[BaseModel]):
        self.Session = Session
        self.model = model
        self.schema = schema

    async def read(self, key: UUID):
        async with self.Session() as session:
            row = await session.get(self.model, key, populate_existing=True)
            if row is None:
                return None
            return self.schema.model_validate(row)

    async def mark_pending(
        self, key: UUID, amount: int, expected: dict, values: dict, now: datetime
    ) -> bool:
        """Claim the payout: NONE/FAILED -> PENDING together with the game's terminal fields.

        Rows flagged for reconciliation are never claimed again.
        """
        expected = {"payout_status": ("NONE", "FAILED"), "payout_reconcile": False, **expected}
        values = {
            **values,
            "payout_status": "PENDING",
            "payout_amount": amount,
            "payout_error": None,
            "payout_updated_at": now,
        }
        async with self.Session() as session:
            async with session.begin():
                return await UpdateData.conditional_update(self.model, key, expected, values, session)

    async def mark_sent(self, key: UUID, tx_id: str, now: datetime) -> bool:
        values = {"payout_status": "SENT", "payout_tx_id": tx_id, "payout_updated_at": now}
        async with self.Session() as session:
            async with session.begin():
                updated = await UpdateData.conditional_update(
                    self.model, key, {"payout_status": "PENDING"}, values, session
                )
        if not updated:
            logging.critical(f"{self.model.__tablename__} {key}: transfer {tx_id} sent but row was not PENDING")
        return updated

    async def mark_failed(
        self, key: UUID, error: str, reconcile: bool, values: dict, now: datetime
    ) -> bool:
        values = {
            **values,
            "payout_status": "FAILED",
            "payout_error": error[:512],
            "payout_reconcile": reconcile,
            "payout_updated_at": now,
        }
        async with self.Session() as session:
            async with session.begin():
                updated = await UpdateData.conditional_update(
                    self.model, key, {"payout_status": "PENDING"}, values, session
                )
        if not updated:
            logging.error(f"{self.model.__tablename__} {key}: could not record failed payout: {error}")
        return updated


def mine_ledger(Session: async_sessionmaker) -> PayoutLedger:
    return PayoutLedger(Session, MineGame, MineGameSchema)


def video_poker_ledger(Session: async_sessionmaker) -> PayoutLedger:
    return PayoutLedger(Session, VideoPokerGame, VideoPokerGameSchema)


def round_bet_ledger(Session: async_sessionmaker) -> PayoutLedger:
    return PayoutLedger(Session, RoundBet, RoundBetSchema)


async def report_unsettled_payouts(
    Session: async_sessionmaker,
    pending_grace: timedelta = timedelta(minutes=2),
    clock: Callable[[], datetime] = datetime.now,
) -> int:
    """Log every payout that needs an operator. Never retries anything.

    Returns:
        int: number of rows reported
    """
    pending_before = clock() - pending_grace
    reported = 0
    async with Session() as session:
        for model in UNSETTLED_MODELS:
            rows = await ReadData.read_unsettled(model, pending_before, session)
            for row in rows:
                reported += 1
                logging.critical(
                    f"Unsettled payout in {model.__tablename__}: "
                    f"wallet={row.wallet_id} status={row.payout_status} "
                    f"amount={row.payout_amount} reconcile={row.payout_reconcile} "
                    f"error={row.payout_error}"
                )
    if reported == 0:
        logging.info("No unsettled payouts")
    return reported
