from pydantic import BaseModel
from enum import Enum
from uuid import UUID
from typing import Optional, List


class SessionStatus(str, Enum):
    live = "LIVE"
    ended = "ENDED"
    expired = "EXPIRED"


class PayoutStatus(str, Enum):
    none = "NONE"
    pending = "PENDING"
    sent = "SENT"
    failed = "FAILED"


class BetStatus(str, Enum):
    active = "ACTIVE"
    cashed_out = "CASHED_OUT"
    lost = "LOST"


class GameName(str, Enum):
    mines = "mines"
    video_poker = "video_poker"
    crash = "crash"
    slide = "slide"


# Requests


class MineCreateModel(BaseModel):
    wallet_id: str
    amount: int
    mines: int
    bet_tx_id: str


class MineRevealModel(BaseModel):
    wallet_id: str
    game_id: UUID
    cell: int


class MineGameRefModel(BaseModel):
    wallet_id: str
    game_id: Optional[UUID] = None


class MineAutobetModel(MineCreateModel):
    cells: List[int]


class VideoPokerInitModel(BaseModel):
    wallet_id: str
    amount: int
    bet_tx_id: str


class VideoPokerDrawModel(BaseModel):
    wallet_id: str
    game_id: UUID
    hold: List[int] | int = []


class VideoPokerGameRefModel(BaseModel):
    wallet_id: str
    game_id: UUID


class RoundJoinModel(BaseModel):
    wallet_id: str
    amount: int
    target: int  # hundredths, 150 means 1.50x
    bet_tx_id: str


class RoundCashoutModel(BaseModel):
    wallet_id: str


class BetClaimModel(BaseModel):
    wallet_id: str
    bet_id: UUID


class VerifyModel(BaseModel):
    game: GameName
    public_seed: str
    private_seed: str
    private_seed_hash: Optional[str] = None
    mines: Optional[int] = None
    hold_mask: Optional[int] = None


# Client snapshots


class CardModel(BaseModel):
    rank: str
    suit: str


class PayoutModel(BaseModel):
    status: PayoutStatus
    amount: int
    tx_id: Optional[str] = None
    error: Optional[str] = None
    needs_reconciliation: bool = False


class MineGameModel(BaseModel):
    game_id: UUID
    status: SessionStatus
    mines: int
    amount: int
    revealed_cells: List[int]
    revealed_gems: int
    hit_mine: bool
    multiplier: Optional[str] = None
    mine_cells: Optional[List[int]] = None  # only once the session is over
    public_seed: str
    private_seed_hash: str
    private_seed: Optional[str] = None
    payout: PayoutModel


class VideoPokerGameModel(BaseModel):
    game_id: UUID
    status: SessionStatus
    bet_amount: int
    initial_hand: List[CardModel]
    final_hand: Optional[List[CardModel]] = None
    hold_mask: Optional[int] = None
    result: Optional[str] = None
    multiplier: Optional[int] = None
    profit: Optional[int] = None
    public_seed: str
    private_seed_hash: str
    private_seed: Optional[str] = None
    payout: PayoutModel


class BetModel(BaseModel):
    bet_id: UUID
    round_id: UUID
    wallet_id: str
    amount: int
    target: int
    status: BetStatus
    cashout_multiplier: Optional[int] = None
    payout: PayoutModel


class HistoryEntryModel(BaseModel):
    round_id: UUID
    crash_point: int
    public_seed: str
    private_seed: str
    private_seed_hash: str


class RoundModel(BaseModel):
    game: GameName
    round_id: Optional[UUID] = None
    phase: str
    public_seed: Optional[str] = None
    private_seed_hash: Optional[str] = None
    private_seed: Optional[str] = None
    crash_point: Optional[int] = None
    multiplier: Optional[int] = None
    countdown_ms: Optional[int] = None
    track: Optional[List[int]] = None
    players: List[BetModel] = []
    history: List[HistoryEntryModel] = []
