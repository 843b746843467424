import logging
from typing import Optional

from fastapi import APIRouter

from casino.app_services import mines_service
from casino.converter import DataConverter
from casino.models.dc_models import (
    MineAutobetModel,
    MineCreateModel,
    MineGameModel,
    MineGameRefModel,
    MineRevealModel,
)

mines_router = APIRouter(prefix="/mine", tags=["mines"])
data_converter = DataConverter()


class MinesAPI:
    @staticmethod
    @mines_router.post("/create", response_model=MineGameModel)
    async def create_game(request: MineCreateModel):
        """Start a board for a staked bet

        Args:
            request (MineCreateModel): wallet, stake, number of mines and the stake's transaction id

        Returns:
            MineGameModel: LIVE game with its seed commitment
        """
        game = await mines_service.create(
            request.wallet_id, request.amount, request.mines, request.bet_tx_id
        )
        logging.info(f"mines game {game.game_id} created for {game.wallet_id}")
        return data_converter.convert_mine_game(game)

    @staticmethod
    @mines_router.post("/reveal", response_model=MineGameModel)
    async def reveal_cell(request: MineRevealModel):
        game = await mines_service.reveal(request.wallet_id, request.game_id, request.cell)
        return data_converter.convert_mine_game(game)

    @staticmethod
    @mines_router.post("/cashout", response_model=MineGameModel)
    async def cashout(request: MineGameRefModel):
        game = await mines_service.cashout(request.wallet_id, request.game_id)
        return data_converter.convert_mine_game(game)

    @staticmethod
    @mines_router.post("/claim", response_model=MineGameModel)
    async def claim(request: MineGameRefModel):
        """Retry a failed payout with its recorded amount."""
        game = await mines_service.claim(request.wallet_id, request.game_id)
        return data_converter.convert_mine_game(game)

    @staticmethod
    @mines_router.get("/status/{wallet_id}", response_model=Optional[MineGameModel])
    async def status(wallet_id: str):
        game = await mines_service.status(wallet_id)
        if game is None:
            return None
        return data_converter.convert_mine_game(game)

    @staticmethod
    @mines_router.post("/autobet", response_model=MineGameModel)
    async def autobet(request: MineAutobetModel):
        game = await mines_service.autobet(
            request.wallet_id, request.amount, request.mines, request.bet_tx_id, request.cells
        )
        return data_converter.convert_mine_game(game)
