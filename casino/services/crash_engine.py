import logging

from casino.crud import UpdateData
from casino.domain import fairness
from casino.domain.crash_rules import live_multiplier
from casino.errors import Conflict, NotFound, TransferRejectedError
from casino.load_secrets import crash_growth_rate, crash_starting_ms, crash_tick_ms
from casino.models.schema_models import RoundBetSchema
from casino.models.schemas import RoundBet
from casino.services.round_engine import RoundEngine
from casino.validation import normalize_public_id


class CrashRoundEngine(RoundEngine):
    """STARTING (countdown, bets open) -> IN_PROGRESS (multiplier rising) -> OVER."""

    game = "crash"
    opening_phase = "STARTING"
    join_phase = "STARTING"
    history_size = 30
    gap_ms = 1000

    def __init__(
        self,
        *args,
        starting_ms: int = crash_starting_ms,
        tick_ms: int = crash_tick_ms,
        growth_rate: float = crash_growth_rate,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.starting_ms = starting_ms
        self.tick_ms = tick_ms
        self.growth_rate = growth_rate
        self.started_at: float | None = None
        self.countdown_started_at: float | None = None
        self.multiplier = 100

    def current_multiplier(self) -> int:
        elapsed_ms = (self.clock() - self.started_at) * 1000
        return live_multiplier(elapsed_ms, self.growth_rate)

    def countdown_ms(self) -> int | None:
        if self.phase != "STARTING" or self.countdown_started_at is None:
            return None
        left = self.starting_ms - (self.clock() - self.countdown_started_at) * 1000
        return max(0, int(left))

    async def open_round(self, seeds: fairness.SeedPair | None = None):
        new_round = await super().open_round(seeds)
        self.started_at = None
        self.multiplier = 100
        self.countdown_started_at = self.clock()
        await self.publish("game-starting", {**self.commitment(), "countdown_ms": self.starting_ms})
        return new_round

    async def begin_round(self) -> bool:
        """STARTING -> IN_PROGRESS. With no bets the countdown restarts instead."""
        async with self.lock:
            if self.phase != "STARTING":
                raise Conflict("Round is not starting", phase=self.phase)
            if not self.bets:
                self.countdown_started_at = self.clock()
                restart = True
            else:
                await self._set_phase("IN_PROGRESS", started_at=self.now())
                self.started_at = self.clock()
                self.multiplier = 100
                restart = False
        if restart:
            logging.debug(f"crash round {self.round.round_id}: no bets, restarting countdown")
            await self.publish("game-starting", {**self.commitment(), "countdown_ms": self.starting_ms})
            return False
        logging.info(f"crash round {self.round.round_id} started with {len(self.bets)} bets")
        await self.publish("game-start", {"round_id": str(self.round.round_id)})
        return True

    async def tick(self) -> bool:
        """Advance the curve once.

        Auto cashouts for targets already reached are taken before the crash
        check, so a target equal to the crash point still wins.

        Returns:
            bool: True once the round is OVER
        """
        async with self.lock:
            if self.phase == "OVER":
                return True
            if self.phase != "IN_PROGRESS":
                return False
            m = self.current_multiplier()
            for bet in list(self.bets.values()):
                if bet.status == "ACTIVE" and bet.target <= min(m, self.crash100):
                    await self._cash_out_at_target_locked(bet)
            if m >= self.crash100:
                await self._end_round_locked()
                crashed = True
            else:
                self.multiplier = m
                crashed = False

        if crashed:
            await self.publish(
                "game-end",
                {**self.history[0], "round_id": str(self.round.round_id)},
            )
        else:
            await self.publish("game-tick", {"round_id": str(self.round.round_id), "multiplier": m})
        return crashed

    async def _end_round_locked(self):
        seeds = self._reveal_seeds()
        self.multiplier = self.crash100
        await self._mark_lost_locked()
        await self._set_phase("OVER", crash_point=self.crash100, ended_at=self.now())
        self.history.appendleft(self._history_entry(self.round.round_id, self.crash100, seeds))
        logging.info(f"crash round {self.round.round_id} crashed at {self.crash100}")

    async def cashout(self, wallet_id: str) -> RoundBetSchema:
        """Manual cashout at the live multiplier at the instant of the request."""
        wallet_id = normalize_public_id(wallet_id)
        async with self.lock:
            bet = self.bets.get(wallet_id)
            if bet is None:
                raise NotFound("No bet in the current round", wallet_id=wallet_id)
            if bet.payout_status == "SENT":
                return bet
            if self.phase != "IN_PROGRESS":
                raise Conflict("Round is not in progress", phase=self.phase, status=bet.status)
            if bet.status != "ACTIVE":
                raise Conflict(
                    "Bet is not active",
                    phase=self.phase,
                    status=bet.status,
                    payout_status=bet.payout_status,
                )
            m = self.current_multiplier()
            if m >= self.crash100:
                raise Conflict("Too late", phase=self.phase, status=bet.status)
            bet, reserved, amount = await self._cash_out_locked(bet, m)
            round_id = self.round.round_id
            if not reserved:
                return bet

        try:
            settled = await self.settlement.dispatch(self.ledger, bet.bet_id, wallet_id, amount)
        except TransferRejectedError:
            await self._reactivate(bet, round_id)
            raise
        async with self.lock:
            if self.bets.get(wallet_id) is not None and self.bets[wallet_id].bet_id == settled.bet_id:
                self.bets[wallet_id] = settled
        await self.publish("bet-cashout", {"bet": settled.model_dump(mode="json")})
        return settled

    async def _reactivate(self, bet: RoundBetSchema, round_id):
        """After a definite rejection the bet rides again while the round is still running."""
        async with self.lock:
            if self.round is None or self.round.round_id != round_id or self.phase != "IN_PROGRESS":
                logging.warning(f"crash bet {bet.bet_id}: payout rejected after round end, left claimable")
                return
            async with self.Session() as session:
                async with session.begin():
                    updated = await UpdateData.conditional_update(
                        RoundBet,
                        bet.bet_id,
                        {"status": "CASHED_OUT", "payout_status": "FAILED"},
                        {"status": "ACTIVE", "cashout_multiplier": None},
                        session,
                    )
            if updated:
                self.bets[bet.wallet_id] = await self.ledger.read(bet.bet_id)

    async def run_round(self, seeds: fairness.SeedPair | None = None):
        await self.open_round(seeds)
        while True:
            await self.sleep(self.starting_ms / 1000)
            if await self.retry_step(self.begin_round):
                break
        while not await self.retry_step(self.tick):
            await self.sleep(self.tick_ms / 1000)
