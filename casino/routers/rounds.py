from typing import List
from uuid import UUID

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from casino.app_services import crash_engine, redis, slide_engine
from casino.converter import DataConverter
from casino.models.dc_models import (
    BetClaimModel,
    BetModel,
    RoundCashoutModel,
    RoundJoinModel,
    RoundModel,
)
from casino.redis_subscriber import RedisSubscriber
from casino.services.round_engine import RoundEngine

crash_router = APIRouter(prefix="/crash", tags=["crash"])
slide_router = APIRouter(prefix="/slide", tags=["slide"])
data_converter = DataConverter()


def stream_rounds(engine: RoundEngine) -> StreamingResponse:
    redis_subscriber = RedisSubscriber(engine)
    return StreamingResponse(
        redis_subscriber.event_generator(redis),
        media_type="text/event-stream; charset=utf-8",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


async def list_round_bets(engine: RoundEngine, round_id: UUID) -> List[BetModel]:
    bets = await engine.round_bets(round_id)
    return [data_converter.convert_bet(bet) for bet in bets]


class CrashAPI:
    @staticmethod
    @crash_router.post("/join", response_model=BetModel)
    async def join(request: RoundJoinModel):
        """Join the round that is counting down

        Args:
            request (RoundJoinModel): target is the auto cashout multiplier in hundredths

        Returns:
            BetModel: ACTIVE bet
        """
        bet = await crash_engine.join(
            request.wallet_id, request.amount, request.target, request.bet_tx_id
        )
        return data_converter.convert_bet(bet)

    @staticmethod
    @crash_router.post("/cashout", response_model=BetModel)
    async def cashout(request: RoundCashoutModel):
        bet = await crash_engine.cashout(request.wallet_id)
        return data_converter.convert_bet(bet)

    @staticmethod
    @crash_router.post("/claim", response_model=BetModel)
    async def claim(request: BetClaimModel):
        bet = await crash_engine.claim_bet(request.wallet_id, request.bet_id)
        return data_converter.convert_bet(bet)

    @staticmethod
    @crash_router.get("/state", response_model=RoundModel)
    async def state():
        return data_converter.convert_round_state(crash_engine)

    @staticmethod
    @crash_router.get("/rounds/{round_id}/bets", response_model=List[BetModel])
    async def round_bets(round_id: UUID):
        return await list_round_bets(crash_engine, round_id)

    @staticmethod
    @crash_router.get("/stream")
    async def stream():
        return stream_rounds(crash_engine)


class SlideAPI:
    @staticmethod
    @slide_router.post("/join", response_model=BetModel)
    async def join(request: RoundJoinModel):
        bet = await slide_engine.join(
            request.wallet_id, request.amount, request.target, request.bet_tx_id
        )
        return data_converter.convert_bet(bet)

    @staticmethod
    @slide_router.post("/claim", response_model=BetModel)
    async def claim(request: BetClaimModel):
        bet = await slide_engine.claim_bet(request.wallet_id, request.bet_id)
        return data_converter.convert_bet(bet)

    @staticmethod
    @slide_router.get("/state", response_model=RoundModel)
    async def state():
        return data_converter.convert_round_state(slide_engine)

    @staticmethod
    @slide_router.get("/rounds/{round_id}/bets", response_model=List[BetModel])
    async def round_bets(round_id: UUID):
        return await list_round_bets(slide_engine, round_id)

    @staticmethod
    @slide_router.get("/stream")
    async def stream():
        return stream_rounds(slide_engine)
