from datetime import datetime
from typing import List, Type
from uuid import UUID

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from casino.models.schema_models import (
    GameRoundSchema,
    MineGameSchema,
    RoundBetSchema,
    VideoPokerGameSchema,
)
from casino.models.schemas import (
    Base,
    BetToken,
    GameRound,
    MineGame,
    MineMove,
    RoundBet,
    VideoPokerGame,
)

# NOTE: helpers here never commit. Callers own the transaction (session.begin()).

PRIMARY_KEYS = {
    MineGame: MineGame.game_id,
    VideoPokerGame: VideoPokerGame.game_id,
    GameRound: GameRound.round_id,
    RoundBet: RoundBet.bet_id,
}


def _condition(column, expected):
    if expected is None:
        return column.is_(None)
    if isinstance(expected, (list, tuple, set, frozenset)):
        return column.in_(list(expected))
    return column == expected


class CreateData:
    @staticmethod
    async def add_mine_game(values: dict, session: AsyncSession) -> MineGameSchema:
        """Insert a mine game row

        Args:
            values (dict): column values of the new row
            session (AsyncSession): session inside an open transaction
        """
        row = MineGame(**values)
        session.add(row)
        await session.flush()
        return MineGameSchema.model_validate(row)

    @staticmethod
    async def add_mine_move(game_id: UUID, cell: int, hit_mine: bool, session: AsyncSession):
        session.add(MineMove(game_id=game_id, cell=cell, hit_mine=hit_mine))
        await session.flush()

    @staticmethod
    async def add_video_poker_game(values: dict, session: AsyncSession) -> VideoPokerGameSchema:
        row = VideoPokerGame(**values)
        session.add(row)
        await session.flush()
        return VideoPokerGameSchema.model_validate(row)

    @staticmethod
    async def add_round(values: dict, session: AsyncSession) -> GameRoundSchema:
        row = GameRound(**values)
        session.add(row)
        await session.flush()
        return GameRoundSchema.model_validate(row)

    @staticmethod
    async def add_round_bet(values: dict, session: AsyncSession) -> RoundBetSchema:
        row = RoundBet(**values)
        session.add(row)
        await session.flush()
        return RoundBetSchema.model_validate(row)

    @staticmethod
    async def add_bet_token(token: str, game: str, reference_id: UUID, session: AsyncSession):
        """Record an idempotency token. The primary key rejects any replay.

        Raises:
            IntegrityError: the token was already used by some game
        """
        session.add(BetToken(token=token, game=game, reference_id=reference_id))
        await session.flush()


class ReadData:
    @staticmethod
    async def read_mine_game(
        game_id: UUID, session: AsyncSession, for_update: bool = False
    ) -> MineGameSchema | None:
        stmt = (
            select(MineGame)
            .execution_options(populate_existing=True)
            .where(MineGame.game_id == game_id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        row = result.scalars().first()
        if row is None:
            return None
        return MineGameSchema.model_validate(row)

    @staticmethod
    async def read_live_mine_games(wallet_id: str, session: AsyncSession) -> List[MineGameSchema]:
        stmt = (
            select(MineGame)
            .execution_options(populate_existing=True)
            .where(MineGame.wallet_id == wallet_id, MineGame.status == "LIVE")
            .order_by(MineGame.created_at.desc())
        )
        result = await session.execute(stmt)
        return [MineGameSchema.model_validate(row) for row in result.scalars().all()]

    @staticmethod
    async def read_latest_mine_game(wallet_id: str, session: AsyncSession) -> MineGameSchema | None:
        stmt = (
            select(MineGame)
            .execution_options(populate_existing=True)
            .where(MineGame.wallet_id == wallet_id)
            .order_by(MineGame.created_at.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        row = result.scalars().first()
        if row is None:
            return None
        return MineGameSchema.model_validate(row)

    @staticmethod
    async def read_video_poker_game(game_id: UUID, session: AsyncSession) -> VideoPokerGameSchema | None:
        stmt = select(VideoPokerGame).execution_options(populate_existing=True).where(VideoPokerGame.game_id == game_id)
        result = await session.execute(stmt)
        row = result.scalars().first()
        if row is None:
            return None
        return VideoPokerGameSchema.model_validate(row)

    @staticmethod
    async def read_live_video_poker_games(
        wallet_id: str, session: AsyncSession
    ) -> List[VideoPokerGameSchema]:
        stmt = (
            select(VideoPokerGame)
            .execution_options(populate_existing=True)
            .where(VideoPokerGame.wallet_id == wallet_id, VideoPokerGame.status == "LIVE")
            .order_by(VideoPokerGame.created_at.desc())
        )
        result = await session.execute(stmt)
        return [VideoPokerGameSchema.model_validate(row) for row in result.scalars().all()]

    @staticmethod
    async def read_round(round_id: UUID, session: AsyncSession) -> GameRoundSchema | None:
        stmt = select(GameRound).execution_options(populate_existing=True).where(GameRound.round_id == round_id)
        result = await session.execute(stmt)
        row = result.scalars().first()
        if row is None:
            return None
        return GameRoundSchema.model_validate(row)

    @staticmethod
    async def read_recent_rounds(game: str, limit: int, session: AsyncSession) -> List[GameRoundSchema]:
        stmt = (
            select(GameRound)
            .execution_options(populate_existing=True)
            .where(GameRound.game == game, GameRound.crash_point.is_not(None))
            .order_by(GameRound.ended_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return [GameRoundSchema.model_validate(row) for row in result.scalars().all()]

    @staticmethod
    async def read_round_bets(round_id: UUID, session: AsyncSession) -> List[RoundBetSchema]:
        stmt = (
            select(RoundBet)
            .execution_options(populate_existing=True)
            .where(RoundBet.round_id == round_id)
            .order_by(RoundBet.created_at)
        )
        result = await session.execute(stmt)
        return [RoundBetSchema.model_validate(row) for row in result.scalars().all()]

    @staticmethod
    async def token_exists(token: str, session: AsyncSession) -> bool:
        result = await session.execute(select(BetToken.token).where(BetToken.token == token))
        return result.scalar() is not None

    @staticmethod
    async def read_unsettled(
        model: Type[Base], pending_before: datetime, session: AsyncSession
    ) -> list:
        """Rows stuck in PENDING since before ``pending_before`` or flagged for reconciliation."""
        stmt = select(model).where(
            or_(
                (model.payout_status == "PENDING") & (model.payout_updated_at < pending_before),
                model.payout_reconcile.is_(True),
            )
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())


class UpdateData:
    @staticmethod
    async def conditional_update(
        model: Type[Base], key: UUID, expected: dict, values: dict, session: AsyncSession
    ) -> bool:
        """Compare-and-set update of one row.

        Args:
            model (Type[Base]): ORM class, one of PRIMARY_KEYS
            key (UUID): primary key of the row
            expected (dict): column -> value (or collection of allowed values) that must hold
            values (dict): column -> new value; ``version`` is bumped automatically

        Returns:
            bool: True when exactly this row was updated
        """
        stmt = update(model).where(
            PRIMARY_KEYS[model] == key,
            *[_condition(getattr(model, column), value) for column, value in expected.items()],
        )
        values = dict(values)
        if hasattr(model, "version"):
            values["version"] = model.version + 1
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        result = await session.execute(stmt)
        return result.rowcount == 1
