from pydantic import BaseModel
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class PayoutSchema(BaseModel):
    payout_status: str
    payout_amount: int
    payout_tx_id: Optional[str] = None
    payout_error: Optional[str] = None
    payout_reconcile: bool = False

    class Config:
        from_attributes = True


class MineGameSchema(PayoutSchema):
    game_id: UUID
    wallet_id: str
    status: str
    mines: int
    amount: int
    mine_mask: int
    revealed_mask: int
    hit_mine: bool
    bet_tx_id: str
    public_seed: str
    private_seed: str
    private_seed_hash: str
    house_edge: str
    multiplier: Optional[str] = None
    revealed_gems: int
    version: int
    created_at: datetime
    expires_at: datetime
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VideoPokerGameSchema(PayoutSchema):
    game_id: UUID
    wallet_id: str
    status: str
    bet_amount: int
    bet_tx_id: str
    public_seed: str
    private_seed: str
    private_seed_hash: str
    initial_hand: List[int]
    hold_mask: Optional[int] = None
    final_hand: Optional[List[int]] = None
    result: Optional[str] = None
    multiplier: Optional[int] = None
    profit: Optional[int] = None
    version: int
    created_at: datetime
    expires_at: datetime
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GameRoundSchema(BaseModel):
    round_id: UUID
    game: str
    phase: str
    public_seed: str
    private_seed: str
    private_seed_hash: str
    crash_point: Optional[int] = None
    version: int
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoundBetSchema(PayoutSchema):
    bet_id: UUID
    round_id: UUID
    game: str
    wallet_id: str
    amount: int
    target: int
    bet_tx_id: str
    status: str
    cashout_multiplier: Optional[int] = None
    version: int
    created_at: datetime

    class Config:
        from_attributes = True
