import logging

from casino.domain import fairness
from casino.domain.crash_rules import slide_outcome
from casino.errors import Conflict
from casino.load_secrets import slide_betting_ms, slide_playing_ms
from casino.services.round_engine import RoundEngine


class SlideRoundEngine(RoundEngine):
    """STARTING -> BETTING (join window) -> PLAYING (point revealed) -> WAITING.

    Every bet names a target up front; it wins when the revealed point reaches
    the target and is paid at the target.
    """

    game = "slide"
    opening_phase = "STARTING"
    join_phase = "BETTING"
    history_size = 6
    gap_ms = 2000

    def __init__(
        self,
        *args,
        starting_ms: int = 1000,
        betting_ms: int = slide_betting_ms,
        playing_ms: int = slide_playing_ms,
        max_track_points: int = 1500,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.starting_ms = starting_ms
        self.betting_ms = betting_ms
        self.playing_ms = playing_ms
        self.max_track_points = max_track_points
        self.track: list[int] | None = None

    async def open_round(self, seeds: fairness.SeedPair | None = None):
        new_round = await super().open_round(seeds)
        self.track = None
        await self.publish("game-starting", self.commitment())
        return new_round

    async def open_betting(self):
        async with self.lock:
            if self.phase != "STARTING":
                raise Conflict("Round is not starting", phase=self.phase)
            await self._set_phase("BETTING")
        await self.publish("game-betting", {**self.commitment(), "betting_ms": self.betting_ms})

    async def play(self):
        """Close bets and reveal the point with its display track."""
        async with self.lock:
            if self.phase != "BETTING":
                raise Conflict("Round is not taking bets", phase=self.phase)
            seeds = self._reveal_seeds()
            self.track = fairness.slide_track(seeds, self.crash100, self.max_track_points)
            await self._set_phase("PLAYING", started_at=self.now())
        logging.info(f"slide round {self.round.round_id}: point {self.crash100}, {len(self.bets)} bets")
        await self.publish(
            "slide-track",
            {"round_id": str(self.round.round_id), "crash_point": self.crash100, "track": self.track},
        )

    async def settle_round(self):
        """Pay every winning bet at its target, mark the rest LOST.

        Payouts are dispatched as background tasks, so the next round does not
        wait on a slow transfer.
        """
        async with self.lock:
            if self.phase != "PLAYING":
                raise Conflict("Round is not playing", phase=self.phase)
            for bet in list(self.bets.values()):
                if bet.status == "ACTIVE" and slide_outcome(self.crash100, bet.target):
                    await self._cash_out_at_target_locked(bet)
            await self._mark_lost_locked()
            await self._set_phase("WAITING", crash_point=self.crash100, ended_at=self.now())
            self.history.appendleft(self._history_entry(self.round.round_id, self.crash100, self.seeds))

        await self.publish("game-end", {**self.history[0], "round_id": str(self.round.round_id)})

    async def run_round(self, seeds: fairness.SeedPair | None = None):
        await self.open_round(seeds)
        await self.sleep(self.starting_ms / 1000)
        await self.retry_step(self.open_betting)
        await self.sleep(self.betting_ms / 1000)
        await self.retry_step(self.play)
        await self.sleep(self.playing_ms / 1000)
        await self.retry_step(self.settle_round)
