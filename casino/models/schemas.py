from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import Column, UniqueConstraint
from sqlalchemy.types import BigInteger, Boolean, DateTime, Integer, JSON, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from uuid6 import uuid7
from datetime import datetime

JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class PayoutColumns:
    """Settlement state shared by every record that can owe the player money."""

    payout_status = Column(String(16), nullable=False, default="NONE")
    payout_amount = Column(BigInteger, nullable=False, default=0)
    payout_tx_id = Column(String(128), nullable=True)
    payout_error = Column(String(512), nullable=True)
    payout_reconcile = Column(Boolean, nullable=False, default=False)
    payout_updated_at = Column(DateTime, nullable=True)


class SeedColumns:
    public_seed = Column(String(128), nullable=False)
    private_seed = Column(String(128), nullable=False)
    private_seed_hash = Column(String(64), nullable=False)


class MineGame(PayoutColumns, SeedColumns, Base):
    __tablename__ = "mine_games"
    game_id = Column(Uuid, primary_key=True, default=uuid7)
    wallet_id = Column(String(60), nullable=False, index=True)
    status = Column(String(16), nullable=False, default="LIVE")
    mines = Column(Integer, nullable=False)
    amount = Column(BigInteger, nullable=False)
    mine_mask = Column(Integer, nullable=False)
    revealed_mask = Column(Integer, nullable=False, default=0)
    hit_mine = Column(Boolean, nullable=False, default=False)
    bet_tx_id = Column(String(128), nullable=False)
    house_edge = Column(String(16), nullable=False)
    multiplier = Column(String(32), nullable=True)
    revealed_gems = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.now)
    expires_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=True)


class MineMove(Base):
    __tablename__ = "mine_moves"
    move_id = Column(Uuid, primary_key=True, default=uuid7)
    game_id = Column(Uuid, nullable=False, index=True)
    cell = Column(Integer, nullable=False)
    hit_mine = Column(Boolean, nullable=False)
    created_at = Column(DateTime, default=datetime.now)


class VideoPokerGame(PayoutColumns, SeedColumns, Base):
    __tablename__ = "video_poker_games"
    game_id = Column(Uuid, primary_key=True, default=uuid7)
    wallet_id = Column(String(60), nullable=False, index=True)
    status = Column(String(16), nullable=False, default="LIVE")
    bet_amount = Column(BigInteger, nullable=False)
    bet_tx_id = Column(String(128), nullable=False)
    initial_hand = Column(JsonColumn, nullable=False)
    hold_mask = Column(Integer, nullable=True)
    final_hand = Column(JsonColumn, nullable=True)
    result = Column(String(32), nullable=True)
    multiplier = Column(Integer, nullable=True)
    profit = Column(BigInteger, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.now)
    expires_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=True)


class GameRound(SeedColumns, Base):
    __tablename__ = "game_rounds"
    round_id = Column(Uuid, primary_key=True, default=uuid7)
    game = Column(String(16), nullable=False, index=True)
    phase = Column(String(16), nullable=False)
    crash_point = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.now)
    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)


class RoundBet(PayoutColumns, Base):
    __tablename__ = "round_bets"
    __table_args__ = (UniqueConstraint("round_id", "wallet_id", name="uq_round_bets_wallet"),)
    bet_id = Column(Uuid, primary_key=True, default=uuid7)
    round_id = Column(Uuid, nullable=False, index=True)
    game = Column(String(16), nullable=False)
    wallet_id = Column(String(60), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    target = Column(Integer, nullable=False)
    bet_tx_id = Column(String(128), nullable=False)
    status = Column(String(16), nullable=False, default="ACTIVE")
    cashout_multiplier = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.now)


class BetToken(Base):
    """Every accepted idempotency token, across all game modes."""

    __tablename__ = "bet_tokens"
    token = Column(String(128), primary_key=True)
    game = Column(String(16), nullable=False)
    reference_id = Column(Uuid, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
