from casino.domain import fairness
from casino.domain.poker_rules import card_from_index
from casino.models.dc_models import (
    BetModel,
    CardModel,
    HistoryEntryModel,
    MineGameModel,
    PayoutModel,
    RoundModel,
    VideoPokerGameModel,
)
from casino.models.schema_models import (
    MineGameSchema,
    PayoutSchema,
    RoundBetSchema,
    VideoPokerGameSchema,
)
from casino.services.mines import revealed_cells

ROUND_OVER_PHASES = ("OVER", "WAITING")


class DataConverter:
    """This class is used to convert stored rows into client snapshots.

    Private seeds and mine positions are only included once the session or
    round is over.
    """

    def convert_payout(self, row: PayoutSchema) -> PayoutModel:
        return PayoutModel(
            status=row.payout_status,
            amount=row.payout_amount,
            tx_id=row.payout_tx_id,
            error=row.payout_error,
            needs_reconciliation=row.payout_reconcile,
        )

    def convert_mine_game(self, game: MineGameSchema) -> MineGameModel:
        """Convert a mine game row to the snapshot sent to the player

        Args:
            game (MineGameSchema): stored game

        Returns:
            MineGameModel: board state, seeds revealed only after the game is over
        """
        finished = game.status != "LIVE"
        return MineGameModel(
            game_id=game.game_id,
            status=game.status,
            mines=game.mines,
            amount=game.amount,
            revealed_cells=revealed_cells(game.revealed_mask),
            revealed_gems=game.revealed_gems,
            hit_mine=game.hit_mine,
            multiplier=game.multiplier,
            mine_cells=revealed_cells(game.mine_mask) if finished else None,
            public_seed=game.public_seed,
            private_seed_hash=game.private_seed_hash,
            private_seed=game.private_seed if finished else None,
            payout=self.convert_payout(game),
        )

    def convert_video_poker_game(self, game: VideoPokerGameSchema) -> VideoPokerGameModel:
        finished = game.status != "LIVE"
        return VideoPokerGameModel(
            game_id=game.game_id,
            status=game.status,
            bet_amount=game.bet_amount,
            initial_hand=[CardModel(**card_from_index(c)) for c in game.initial_hand],
            final_hand=(
                [CardModel(**card_from_index(c)) for c in game.final_hand]
                if game.final_hand is not None
                else None
            ),
            hold_mask=game.hold_mask,
            result=game.result,
            multiplier=game.multiplier,
            profit=game.profit,
            public_seed=game.public_seed,
            private_seed_hash=game.private_seed_hash,
            private_seed=game.private_seed if finished else None,
            payout=self.convert_payout(game),
        )

    def convert_bet(self, bet: RoundBetSchema) -> BetModel:
        return BetModel(
            bet_id=bet.bet_id,
            round_id=bet.round_id,
            wallet_id=bet.wallet_id,
            amount=bet.amount,
            target=bet.target,
            status=bet.status,
            cashout_multiplier=bet.cashout_multiplier,
            payout=self.convert_payout(bet),
        )

    def convert_round_state(self, engine) -> RoundModel:
        """Snapshot of a crash or slide engine's current round."""
        if engine.round is None:
            return RoundModel(
                game=engine.game,
                phase="IDLE",
                history=[HistoryEntryModel(**entry) for entry in engine.history],
            )
        over = engine.phase in ROUND_OVER_PHASES
        revealed = over or engine.phase == "PLAYING"
        seeds: fairness.SeedPair = engine.seeds
        return RoundModel(
            game=engine.game,
            round_id=engine.round.round_id,
            phase=engine.phase,
            public_seed=seeds.public_seed,
            private_seed_hash=seeds.private_seed_hash,
            private_seed=seeds.private_seed if over else None,
            crash_point=engine.crash100 if revealed else None,
            multiplier=getattr(engine, "multiplier", None),
            countdown_ms=engine.countdown_ms() if hasattr(engine, "countdown_ms") else None,
            track=getattr(engine, "track", None),
            players=[self.convert_bet(bet) for bet in engine.bets.values()],
            history=[HistoryEntryModel(**entry) for entry in engine.history],
        )
