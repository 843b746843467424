from fastapi import APIRouter

from casino.app_services import video_poker_service
from casino.converter import DataConverter
from casino.models.dc_models import (
    VideoPokerDrawModel,
    VideoPokerGameModel,
    VideoPokerGameRefModel,
    VideoPokerInitModel,
)

video_poker_router = APIRouter(prefix="/video-poker", tags=["video_poker"])
data_converter = DataConverter()


class VideoPokerAPI:
    @staticmethod
    @video_poker_router.post("/init", response_model=VideoPokerGameModel)
    async def init_game(request: VideoPokerInitModel):
        game = await video_poker_service.init(request.wallet_id, request.amount, request.bet_tx_id)
        return data_converter.convert_video_poker_game(game)

    @staticmethod
    @video_poker_router.post("/draw", response_model=VideoPokerGameModel)
    async def draw(request: VideoPokerDrawModel):
        """Replace the cards that are not held and settle the hand

        Args:
            request (VideoPokerDrawModel): hold is a list of positions 0..4 or a 5-bit mask

        Returns:
            VideoPokerGameModel: ENDED game with final hand, result and payout
        """
        game = await video_poker_service.draw(request.wallet_id, request.game_id, request.hold)
        return data_converter.convert_video_poker_game(game)

    @staticmethod
    @video_poker_router.get("/game/{wallet_id}", response_model=VideoPokerGameModel)
    async def fetch(wallet_id: str):
        game = await video_poker_service.fetch(wallet_id)
        return data_converter.convert_video_poker_game(game)

    @staticmethod
    @video_poker_router.post("/claim", response_model=VideoPokerGameModel)
    async def claim(request: VideoPokerGameRefModel):
        game = await video_poker_service.claim(request.wallet_id, request.game_id)
        return data_converter.convert_video_poker_game(game)
