"""Shared machinery for multiplayer rounds (crash, slide).

One engine task per game mode owns phase transitions. Joins, manual cashouts
and the scheduler's own transitions all run under ``self.lock`` so that only
one of them can move a bet out of ACTIVE. Bet rows are additionally written
with status compare-and-set, so a second process cannot double-settle either.
"""

import asyncio
import logging
import time
from collections import deque
from datetime import datetime
from typing import Callable, Dict
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from casino.crud import CreateData, ReadData, UpdateData
from casino.domain import fairness
from casino.domain.crash_rules import is_valid_target
from casino.domain.payout_rules import multiplier_payout
from casino.errors import (
    Conflict,
    Forbidden,
    IntegrityViolation,
    NotFound,
    TransferRejectedError,
    TransferUnknownError,
    ValidationFailed,
)
from casino.load_secrets import crash_max_multiplier
from casino.models.schema_models import GameRoundSchema, RoundBetSchema
from casino.models.schemas import GameRound, RoundBet
from casino.redis_publisher import RoundEventPublisher
from casino.services.game_db import round_bet_ledger
from casino.services.settlement import SettlementCoordinator
from casino.validation import normalize_public_id, require_positive_int, require_token

ERROR_BACKOFF_SECONDS = 1.0


class RoundEngine:
    game = ""
    opening_phase = "STARTING"
    join_phase = "STARTING"
    history_size = 30
    gap_ms = 1000

    def __init__(
        self,
        Session: async_sessionmaker,
        settlement: SettlementCoordinator,
        publisher: RoundEventPublisher | None = None,
        max_multiplier: int = crash_max_multiplier,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable = asyncio.sleep,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.Session = Session
        self.settlement = settlement
        self.publisher = publisher
        self.max_multiplier = max_multiplier
        self.clock = clock
        self.sleep = sleep
        self.now = now
        self.ledger = round_bet_ledger(Session)

        self.lock = asyncio.Lock()
        self.round: GameRoundSchema | None = None
        self.seeds: fairness.SeedPair | None = None
        self.phase: str | None = None
        self.crash100: int | None = None
        self.bets: Dict[str, RoundBetSchema] = {}
        self.round_tokens: set[str] = set()
        self.history = deque(maxlen=self.history_size)
        self.payout_tasks: set[asyncio.Task] = set()

        self.running = False
        self.halted = False
        self.task: asyncio.Task | None = None

    # Lifecycle

    async def start(self):
        if self.running:
            return
        await self.load_history()
        self.running = True
        self.task = asyncio.create_task(self.run())
        logging.info(f"{self.game} engine started")

    async def stop(self):
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        await self.drain_payouts()
        logging.info(f"{self.game} engine stopped")

    async def run(self):
        while self.running:
            try:
                await self.run_round()
                await self.sleep(self.gap_ms / 1000)
            except IntegrityViolation as e:
                self.halted = True
                self.running = False
                logging.critical(f"{self.game} engine halted: {e.message} {e.context}")
                break
            except Exception as e:
                logging.error(f"{self.game} round loop error: {e}", exc_info=True)
                await self.sleep(ERROR_BACKOFF_SECONDS)

    async def run_round(self, seeds: fairness.SeedPair | None = None):
        raise NotImplementedError

    async def retry_step(self, step: Callable):
        """Run one phase step of the current round until it goes through.

        A failed step leaves the round where it was, so it is retried instead
        of opening a new round over open bets. Only ``IntegrityViolation``
        escapes.
        """
        while True:
            try:
                return await step()
            except IntegrityViolation:
                raise
            except Exception as e:
                logging.error(f"{self.game} {step.__name__} failed, retrying: {e}", exc_info=True)
                await self.sleep(ERROR_BACKOFF_SECONDS)

    async def drain_payouts(self):
        """Wait for every in-flight payout dispatch."""
        if self.payout_tasks:
            await asyncio.gather(*list(self.payout_tasks), return_exceptions=True)

    async def load_history(self):
        async with self.Session() as session:
            rounds = await ReadData.read_recent_rounds(self.game, self.history_size, session)
        self.history.clear()
        for past in rounds:
            self.history.append(self._history_entry(past.round_id, past.crash_point, fairness.seeds_of(past)))

    # Events

    async def publish(self, event: str, payload: dict):
        if self.publisher is not None:
            await self.publisher.publish(self.game, event, payload)

    def _history_entry(self, round_id: UUID, crash100: int, seeds: fairness.SeedPair) -> dict:
        return {
            "round_id": round_id,
            "crash_point": crash100,
            "public_seed": seeds.public_seed,
            "private_seed": seeds.private_seed,
            "private_seed_hash": seeds.private_seed_hash,
        }

    def commitment(self) -> dict:
        return {
            "round_id": str(self.round.round_id),
            "public_seed": self.seeds.public_seed,
            "private_seed_hash": self.seeds.private_seed_hash,
        }

    # Round state

    async def open_round(self, seeds: fairness.SeedPair | None = None) -> GameRoundSchema:
        """Create the next round with a fresh commitment."""
        if self.halted:
            raise IntegrityViolation(f"{self.game} engine is halted")
        seeds = seeds or fairness.commit()
        async with self.lock:
            async with self.Session() as session:
                async with session.begin():
                    new_round = await CreateData.add_round(
                        {
                            "game": self.game,
                            "phase": self.opening_phase,
                            "public_seed": seeds.public_seed,
                            "private_seed": seeds.private_seed,
                            "private_seed_hash": seeds.private_seed_hash,
                            "version": 0,
                            "created_at": self.now(),
                        },
                        session,
                    )
            self.round = new_round
            self.seeds = seeds
            self.phase = self.opening_phase
            # secret until the round is over
            self.crash100 = fairness.crash_point(seeds.public_seed, seeds.private_seed, self.max_multiplier)
            self.bets = {}
            self.round_tokens = set()
        logging.info(f"{self.game} round {new_round.round_id} opened")
        return new_round

    async def _set_phase(self, phase: str, **values):
        """Persist a phase change. Caller holds ``self.lock``."""
        async with self.Session() as session:
            async with session.begin():
                await UpdateData.conditional_update(
                    GameRound, self.round.round_id, {}, {"phase": phase, **values}, session
                )
        self.phase = phase

    def _reveal_seeds(self) -> fairness.SeedPair:
        return fairness.verify_commitment(
            self.seeds.public_seed, self.seeds.private_seed, self.seeds.private_seed_hash
        )

    # Bets

    async def join(self, wallet_id: str, amount: int, target: int, bet_tx_id: str) -> RoundBetSchema:
        """Place one bet in the current round

        Args:
            wallet_id (str): player's public id
            amount (int): stake in QU
            target (int): target multiplier in hundredths, at least 101
            bet_tx_id (str): idempotency token of the stake transfer

        Returns:
            RoundBetSchema: the ACTIVE bet
        """
        wallet_id = normalize_public_id(wallet_id)
        amount = require_positive_int(amount, "amount")
        if not is_valid_target(target):
            raise ValidationFailed("target must be an integer of at least 101 (1.01x)", field="target")
        bet_tx_id = require_token(bet_tx_id)

        async with self.lock:
            if self.round is None or self.phase != self.join_phase:
                raise Conflict("Round is not accepting bets", phase=self.phase)
            if wallet_id in self.bets:
                raise Conflict("Already joined this round", phase=self.phase, wallet_id=wallet_id)
            if bet_tx_id in self.round_tokens:
                raise Conflict("Transaction already used in this round", bet_tx_id=bet_tx_id)
            try:
                async with self.Session() as session:
                    async with session.begin():
                        if await ReadData.token_exists(bet_tx_id, session):
                            raise Conflict("Transaction already used in a previous round", bet_tx_id=bet_tx_id)
                        bet = await CreateData.add_round_bet(
                            {
                                "round_id": self.round.round_id,
                                "game": self.game,
                                "wallet_id": wallet_id,
                                "amount": amount,
                                "target": target,
                                "bet_tx_id": bet_tx_id,
                                "status": "ACTIVE",
                                "version": 0,
                                "payout_status": "NONE",
                                "payout_amount": 0,
                                "payout_reconcile": False,
                                "created_at": self.now(),
                            },
                            session,
                        )
                        await CreateData.add_bet_token(bet_tx_id, self.game, bet.bet_id, session)
            except IntegrityError as e:
                raise Conflict("Bet already recorded", bet_tx_id=bet_tx_id, wallet_id=wallet_id) from e
            self.bets[wallet_id] = bet
            self.round_tokens.add(bet_tx_id)
        logging.info(f"{self.game} round {bet.round_id}: {wallet_id} bet {amount} QU at {target}")
        await self.publish("game-bets", {"bet": bet.model_dump(mode="json")})
        return bet

    async def _cash_out_locked(self, bet: RoundBetSchema, multiplier100: int):
        """ACTIVE -> CASHED_OUT with payout PENDING. Caller holds ``self.lock``.

        Returns:
            tuple: (bet snapshot, reserved flag, payout amount)
        """
        amount = multiplier_payout(bet.amount, multiplier100)
        bet, reserved = await self.settlement.reserve(
            self.ledger,
            bet.bet_id,
            amount,
            expected={"status": "ACTIVE"},
            values={"status": "CASHED_OUT", "cashout_multiplier": multiplier100},
        )
        self.bets[bet.wallet_id] = bet
        return bet, reserved, amount

    async def _cash_out_at_target_locked(self, bet: RoundBetSchema):
        """Automatic cashout at the bet's own target; the payout runs as a separate task."""
        try:
            bet, reserved, amount = await self._cash_out_locked(bet, bet.target)
        except Conflict:
            # a previous attempt already moved the row on
            stored = await self.ledger.read(bet.bet_id)
            self.bets[bet.wallet_id] = stored
            logging.warning(f"{self.game} bet {bet.bet_id}: already {stored.status}/{stored.payout_status}")
            return
        if reserved:
            self._spawn_payout(bet, amount)

    async def _mark_lost_locked(self):
        lost = [bet for bet in self.bets.values() if bet.status == "ACTIVE"]
        if not lost:
            return
        async with self.Session() as session:
            async with session.begin():
                for bet in lost:
                    await UpdateData.conditional_update(
                        RoundBet, bet.bet_id, {"status": "ACTIVE"}, {"status": "LOST"}, session
                    )
        for bet in lost:
            self.bets[bet.wallet_id] = bet.model_copy(update={"status": "LOST", "version": bet.version + 1})

    def _spawn_payout(self, bet: RoundBetSchema, amount: int):
        task = asyncio.create_task(self._dispatch_payout(bet, amount))
        self.payout_tasks.add(task)
        task.add_done_callback(self.payout_tasks.discard)

    async def _dispatch_payout(self, bet: RoundBetSchema, amount: int) -> RoundBetSchema | None:
        """Send a reserved payout; failures stay recorded on the bet for claim or reconciliation."""
        try:
            settled = await self.settlement.dispatch(self.ledger, bet.bet_id, bet.wallet_id, amount)
        except (TransferRejectedError, TransferUnknownError) as e:
            logging.warning(f"{self.game} bet {bet.bet_id}: payout not sent: {e.message}")
            return None
        async with self.lock:
            if bet.wallet_id in self.bets and self.bets[bet.wallet_id].bet_id == bet.bet_id:
                self.bets[bet.wallet_id] = settled
        await self.publish("bet-cashout", {"bet": settled.model_dump(mode="json")})
        return settled

    async def claim_bet(self, wallet_id: str, bet_id: UUID) -> RoundBetSchema:
        """Retry a FAILED payout of a cashed out bet with its recorded amount."""
        wallet_id = normalize_public_id(wallet_id)
        bet = await self.ledger.read(bet_id)
        if bet is None or bet.game != self.game:
            raise NotFound("Bet not found", bet_id=str(bet_id))
        if bet.wallet_id != wallet_id:
            raise Forbidden("Bet belongs to another wallet", bet_id=str(bet_id))
        if bet.payout_status == "SENT":
            return bet
        if bet.status != "CASHED_OUT" or bet.payout_status != "FAILED":
            raise Conflict(
                "No failed payout to claim",
                bet_id=str(bet_id),
                status=bet.status,
                payout_status=bet.payout_status,
            )
        if bet.payout_reconcile:
            raise Conflict(
                "Payout outcome unknown, awaiting reconciliation",
                bet_id=str(bet_id),
                payout_status=bet.payout_status,
            )
        return await self.settlement.settle(
            self.ledger,
            bet_id,
            wallet_id,
            bet.payout_amount,
            expected={"status": "CASHED_OUT", "version": bet.version},
        )

    async def round_bets(self, round_id: UUID) -> list[RoundBetSchema]:
        async with self.Session() as session:
            return await ReadData.read_round_bets(round_id, session)
