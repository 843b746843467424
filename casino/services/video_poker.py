"""Video poker (jacks or better): deal five, hold any, draw once."""

import logging
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from casino.crud import CreateData, ReadData, UpdateData
from casino.domain import fairness, poker_rules
from casino.domain.payout_rules import POKER_PAY_TABLE, poker_payout
from casino.entity_locks import EntityLockManager
from casino.errors import (
    Conflict,
    Forbidden,
    NotFound,
    TransferRejectedError,
    TransferUnknownError,
    ValidationFailed,
)
from casino.load_secrets import session_ttl_seconds
from casino.models.schema_models import VideoPokerGameSchema
from casino.models.schemas import VideoPokerGame
from casino.services.game_db import video_poker_ledger
from casino.services.settlement import SettlementCoordinator
from casino.validation import normalize_public_id, require_positive_int, require_token


class VideoPokerService:
    def __init__(
        self,
        Session: async_sessionmaker,
        settlement: SettlementCoordinator,
        ttl: timedelta = timedelta(seconds=session_ttl_seconds),
        clock: Callable[[], datetime] = datetime.now,
        locks: EntityLockManager | None = None,
    ):
        self.Session = Session
        self.settlement = settlement
        self.ttl = ttl
        self.clock = clock
        self.locks = locks or EntityLockManager()
        self.ledger = video_poker_ledger(Session)

    async def _expire(self, game: VideoPokerGameSchema, session) -> bool:
        return await UpdateData.conditional_update(
            VideoPokerGame,
            game.game_id,
            {"status": "LIVE", "version": game.version},
            {"status": "EXPIRED", "ended_at": self.clock()},
            session,
        )

    async def init(
        self, wallet_id: str, amount: int, bet_tx_id: str, seeds: fairness.SeedPair | None = None
    ) -> VideoPokerGameSchema:
        """Deal a new hand

        Args:
            wallet_id (str): player's public id
            amount (int): stake in QU
            bet_tx_id (str): idempotency token of the stake transfer

        Returns:
            VideoPokerGameSchema: LIVE session with the five dealt cards
        """
        wallet_id = normalize_public_id(wallet_id)
        amount = require_positive_int(amount, "amount")
        bet_tx_id = require_token(bet_tx_id)
        seeds = seeds or fairness.commit()
        now = self.clock()
        try:
            async with self.Session() as session:
                async with session.begin():
                    for live in await ReadData.read_live_video_poker_games(wallet_id, session):
                        if live.expires_at <= now:
                            await self._expire(live, session)
                    if await ReadData.token_exists(bet_tx_id, session):
                        raise Conflict("Bet transaction already used", bet_tx_id=bet_tx_id)
                    game = await CreateData.add_video_poker_game(
                        {
                            "wallet_id": wallet_id,
                            "status": "LIVE",
                            "bet_amount": amount,
                            "bet_tx_id": bet_tx_id,
                            "public_seed": seeds.public_seed,
                            "private_seed": seeds.private_seed,
                            "private_seed_hash": seeds.private_seed_hash,
                            "initial_hand": fairness.deal_hand(seeds),
                            "version": 0,
                            "payout_status": "NONE",
                            "payout_amount": 0,
                            "payout_reconcile": False,
                            "created_at": now,
                            "expires_at": now + self.ttl,
                        },
                        session,
                    )
                    await CreateData.add_bet_token(bet_tx_id, "video_poker", game.game_id, session)
        except IntegrityError as e:
            raise Conflict("Bet transaction already used", bet_tx_id=bet_tx_id) from e
        logging.info(f"Video poker game {game.game_id} dealt for {wallet_id}: {amount} QU")
        return game

    async def _load(self, game_id: UUID, wallet_id: str) -> VideoPokerGameSchema:
        expired = False
        async with self.Session() as session:
            async with session.begin():
                game = await ReadData.read_video_poker_game(game_id, session)
                if game is None:
                    raise NotFound("Game not found", game_id=str(game_id))
                if game.wallet_id != wallet_id:
                    raise Forbidden("Game belongs to another wallet", game_id=str(game_id))
                if game.status == "LIVE" and game.expires_at <= self.clock():
                    expired = await self._expire(game, session)
        if expired:
            raise Conflict("Game expired, deal again", game_id=str(game_id), status="EXPIRED")
        return game

    async def draw(self, wallet_id: str, game_id: UUID, hold) -> VideoPokerGameSchema:
        """Replace every card not in ``hold`` and settle the final hand.

        ``hold`` is a list of positions 0..4 or an equivalent bit mask. Drawing
        an already finished hand returns the stored result. A failed payout
        leaves the hand ENDED with payout FAILED so it can be claimed.
        """
        wallet_id = normalize_public_id(wallet_id)
        try:
            hold_mask = poker_rules.normalize_hold(hold)
        except ValueError as e:
            raise ValidationFailed(str(e), field="hold") from e

        async with self.locks.hold(("video-poker", game_id)):
            game = await self._load(game_id, wallet_id)
            if game.status == "ENDED" and game.result is not None:
                return game
            if game.status != "LIVE":
                raise Conflict("Game is not live", game_id=str(game_id), status=game.status)

            seeds = fairness.seeds_of(game)
            fairness.verify_commitment(seeds.public_seed, seeds.private_seed, seeds.private_seed_hash)
            replacements = fairness.draw_replacements(
                seeds, game.initial_hand, poker_rules.replacements_needed(hold_mask)
            )
            final_hand = poker_rules.apply_draw(game.initial_hand, hold_mask, replacements)
            category = poker_rules.evaluate_hand(final_hand)
            payout = poker_payout(game.bet_amount, category)
            values = {
                "status": "ENDED",
                "hold_mask": hold_mask,
                "final_hand": final_hand,
                "result": category,
                "multiplier": POKER_PAY_TABLE[category],
                "profit": payout - game.bet_amount,
                "ended_at": self.clock(),
            }
            expected = {"status": "LIVE", "version": game.version}
            if payout == 0:
                async with self.Session() as session:
                    async with session.begin():
                        updated = await UpdateData.conditional_update(
                            VideoPokerGame, game_id, expected, values, session
                        )
                if not updated:
                    raise Conflict("Game changed concurrently", game_id=str(game_id))
                logging.info(f"Video poker game {game_id}: {category}, no payout")
                return await self.ledger.read(game_id)

            game, reserved = await self.settlement.reserve(
                self.ledger, game_id, payout, expected=expected, values=values
            )
            if not reserved:
                return game

        logging.info(f"Video poker game {game_id}: {category}, paying {payout} QU")
        try:
            return await self.settlement.dispatch(self.ledger, game_id, wallet_id, payout)
        except (TransferRejectedError, TransferUnknownError) as e:
            # The hand is over either way; the payout stays FAILED for claim.
            logging.warning(f"Video poker game {game_id}: payout not sent: {e.message}")
            return await self.ledger.read(game_id)

    async def fetch(self, wallet_id: str) -> VideoPokerGameSchema:
        """Resume the wallet's latest LIVE hand."""
        wallet_id = normalize_public_id(wallet_id)
        now = self.clock()
        active = None
        async with self.Session() as session:
            async with session.begin():
                for live in await ReadData.read_live_video_poker_games(wallet_id, session):
                    if live.expires_at <= now:
                        await self._expire(live, session)
                    elif active is None:
                        active = live
        if active is None:
            raise NotFound("No live game", wallet_id=wallet_id)
        return active

    async def claim(self, wallet_id: str, game_id: UUID) -> VideoPokerGameSchema:
        """Retry a FAILED payout with the recorded amount."""
        wallet_id = normalize_public_id(wallet_id)
        async with self.locks.hold(("video-poker", game_id)):
            game = await self._load(game_id, wallet_id)
            if game.payout_status == "SENT":
                return game
            if game.payout_status != "FAILED" or game.payout_amount <= 0:
                raise Conflict(
                    "No failed payout to claim", game_id=str(game_id), payout_status=game.payout_status
                )
            if game.payout_reconcile:
                raise Conflict(
                    "Payout outcome unknown, awaiting reconciliation",
                    game_id=str(game_id),
                    payout_status=game.payout_status,
                )
            game, reserved = await self.settlement.reserve(
                self.ledger,
                game_id,
                game.payout_amount,
                expected={"status": "ENDED", "version": game.version},
                seeds=fairness.seeds_of(game),
            )
            if not reserved:
                return game

        return await self.settlement.dispatch(self.ledger, game_id, wallet_id, game.payout_amount)
