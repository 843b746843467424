"""Mines sessions: one LIVE board per wallet, 25 cells, seeded mine layout.

Decisions (reveal, cashout eligibility) are taken under a per-game lock and
written with a version-checked UPDATE. Transfers happen outside the lock
through the settlement coordinator.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from casino.crud import CreateData, ReadData, UpdateData
from casino.domain import fairness
from casino.domain.payout_rules import format_multiplier, mines_multiplier, mines_payout
from casino.entity_locks import EntityLockManager
from casino.errors import (
    Conflict,
    Forbidden,
    NotFound,
    TransferRejectedError,
    TransferUnknownError,
    ValidationFailed,
)
from casino.load_secrets import house_edge, session_ttl_seconds
from casino.models.schema_models import MineGameSchema
from casino.models.schemas import MineGame
from casino.services.game_db import mine_ledger
from casino.services.settlement import SettlementCoordinator
from casino.validation import normalize_public_id, require_positive_int, require_token

MIN_MINES = 1
MAX_MINES = fairness.BOARD_CELLS - 1


def revealed_cells(mask: int) -> List[int]:
    return [cell for cell in range(fairness.BOARD_CELLS) if mask & (1 << cell)]


class MinesService:
    def __init__(
        self,
        Session: async_sessionmaker,
        settlement: SettlementCoordinator,
        edge: str = house_edge,
        ttl: timedelta = timedelta(seconds=session_ttl_seconds),
        clock: Callable[[], datetime] = datetime.now,
        locks: EntityLockManager | None = None,
    ):
        self.Session = Session
        self.settlement = settlement
        self.edge = edge
        self.ttl = ttl
        self.clock = clock
        self.locks = locks or EntityLockManager()
        self.ledger = mine_ledger(Session)

    async def _expire(self, game: MineGameSchema, session) -> str | None:
        """Close a stale LIVE game. A game that still owes a failed payout ends instead
        of expiring so the payout stays claimable.

        Returns:
            str | None: the new status, None when the row changed underneath
        """
        new_status = "ENDED" if game.payout_status == "FAILED" else "EXPIRED"
        updated = await UpdateData.conditional_update(
            MineGame,
            game.game_id,
            {"status": "LIVE", "version": game.version},
            {"status": new_status, "ended_at": self.clock()},
            session,
        )
        return new_status if updated else None

    async def _load(self, game_id: UUID, wallet_id: str) -> MineGameSchema:
        """Read a game owned by ``wallet_id``; a stale LIVE game is expired on the way."""
        new_status = None
        async with self.Session() as session:
            async with session.begin():
                game = await ReadData.read_mine_game(game_id, session, for_update=True)
                if game is None:
                    raise NotFound("Game not found", game_id=str(game_id))
                if game.wallet_id != wallet_id:
                    raise Forbidden("Game belongs to another wallet", game_id=str(game_id))
                if game.status == "LIVE" and game.expires_at <= self.clock():
                    new_status = await self._expire(game, session)
        if new_status == "EXPIRED":
            logging.info(f"Mines game {game_id} expired")
            raise Conflict("Game expired", game_id=str(game_id), status="EXPIRED")
        if new_status is not None:
            game = await self.ledger.read(game_id)
        return game

    async def create(
        self,
        wallet_id: str,
        amount: int,
        mines: int,
        bet_tx_id: str,
        seeds: fairness.SeedPair | None = None,
    ) -> MineGameSchema:
        """Open a new board.

        Args:
            wallet_id (str): player's public id
            amount (int): stake in QU
            mines (int): number of mines, 1..24
            bet_tx_id (str): idempotency token of the stake transfer

        Returns:
            MineGameSchema: the LIVE game
        """
        wallet_id = normalize_public_id(wallet_id)
        amount = require_positive_int(amount, "amount")
        if isinstance(mines, bool) or not isinstance(mines, int) or not MIN_MINES <= mines <= MAX_MINES:
            raise ValidationFailed(f"mines must be an integer within {MIN_MINES}..{MAX_MINES}", field="mines")
        bet_tx_id = require_token(bet_tx_id)
        seeds = seeds or fairness.commit()
        now = self.clock()

        async with self.locks.hold(("mines-wallet", wallet_id)):
            try:
                async with self.Session() as session:
                    async with session.begin():
                        for live in await ReadData.read_live_mine_games(wallet_id, session):
                            if live.expires_at > now:
                                raise Conflict(
                                    "An active game already exists",
                                    game_id=str(live.game_id),
                                    status=live.status,
                                )
                            await self._expire(live, session)
                        if await ReadData.token_exists(bet_tx_id, session):
                            raise Conflict("Bet transaction already used", bet_tx_id=bet_tx_id)
                        game = await CreateData.add_mine_game(
                            {
                                "wallet_id": wallet_id,
                                "status": "LIVE",
                                "mines": mines,
                                "amount": amount,
                                "mine_mask": fairness.mine_layout(seeds, mines),
                                "revealed_mask": 0,
                                "hit_mine": False,
                                "bet_tx_id": bet_tx_id,
                                "public_seed": seeds.public_seed,
                                "private_seed": seeds.private_seed,
                                "private_seed_hash": seeds.private_seed_hash,
                                "house_edge": str(self.edge),
                                "revealed_gems": 0,
                                "version": 0,
                                "payout_status": "NONE",
                                "payout_amount": 0,
                                "payout_reconcile": False,
                                "created_at": now,
                                "expires_at": now + self.ttl,
                            },
                            session,
                        )
                        await CreateData.add_bet_token(bet_tx_id, "mines", game.game_id, session)
            except IntegrityError as e:
                raise Conflict("Bet transaction already used", bet_tx_id=bet_tx_id) from e
        logging.info(f"Mines game {game.game_id} created for {wallet_id}: {amount} QU, {mines} mines")
        return game

    async def reveal(self, wallet_id: str, game_id: UUID, cell: int) -> MineGameSchema:
        """Reveal one cell. A mine or the last safe cell ends the game."""
        wallet_id = normalize_public_id(wallet_id)
        if isinstance(cell, bool) or not isinstance(cell, int) or not 0 <= cell < fairness.BOARD_CELLS:
            raise ValidationFailed("cell must be an integer within 0..24", field="cell")

        async with self.locks.hold(("mines", game_id)):
            game = await self._load(game_id, wallet_id)
            if game.status != "LIVE":
                raise Conflict("Game is not live", game_id=str(game_id), status=game.status)
            bit = 1 << cell
            if game.revealed_mask & bit:
                return game

            hit = bool(game.mine_mask & bit)
            revealed_mask = game.revealed_mask | bit
            gems = game.revealed_gems + (0 if hit else 1)
            now = self.clock()
            values = {"revealed_mask": revealed_mask, "revealed_gems": gems}
            if hit:
                values.update({"status": "ENDED", "hit_mine": True, "multiplier": "0", "ended_at": now})
            else:
                values["multiplier"] = format_multiplier(mines_multiplier(game.mines, gems, game.house_edge))
            all_safe = not hit and gems == fairness.BOARD_CELLS - game.mines
            if all_safe:
                values.update({"status": "ENDED", "ended_at": now})
            if hit or all_safe:
                # the private seed becomes visible once the game ends
                fairness.verify_commitment(game.public_seed, game.private_seed, game.private_seed_hash)

            async with self.Session() as session:
                async with session.begin():
                    updated = await UpdateData.conditional_update(
                        MineGame, game_id, {"status": "LIVE", "version": game.version}, values, session
                    )
                    if not updated:
                        raise Conflict("Game changed concurrently", game_id=str(game_id))
                    await CreateData.add_mine_move(game_id, cell, hit, session)
            game = await self.ledger.read(game_id)

        if hit:
            logging.info(f"Mines game {game_id}: mine at cell {cell}")
        if all_safe:
            logging.info(f"Mines game {game_id}: every safe cell revealed, paying out")
            try:
                return await self.cashout(wallet_id, game_id)
            except (TransferRejectedError, TransferUnknownError) as e:
                # The board is over either way; the payout stays FAILED for claim or reconciliation.
                logging.warning(f"Mines game {game_id}: payout not sent: {e.message}")
                return await self.ledger.read(game_id)
        return game

    async def cashout(self, wallet_id: str, game_id: UUID) -> MineGameSchema:
        """Pay the current multiplier and end the game. Repeating after SENT returns the same result."""
        wallet_id = normalize_public_id(wallet_id)
        async with self.locks.hold(("mines", game_id)):
            game = await self._load(game_id, wallet_id)
            if game.payout_status == "SENT":
                return game
            if game.hit_mine:
                raise Conflict("Mine was hit, nothing to cash out", game_id=str(game_id), status=game.status)
            if game.payout_status == "PENDING":
                raise Conflict("Payout in progress", game_id=str(game_id), payout_status="PENDING")
            if game.revealed_gems < 1:
                raise ValidationFailed("Reveal at least one cell before cashing out", game_id=str(game_id))

            amount = mines_payout(game.amount, game.mines, game.revealed_gems, game.house_edge)
            if game.status == "LIVE":
                expected = {"status": "LIVE", "version": game.version}
                values = {"status": "ENDED", "ended_at": self.clock()}
                rejected_values = {"status": "LIVE", "ended_at": None}
            elif game.status == "ENDED" and game.revealed_gems == fairness.BOARD_CELLS - game.mines:
                if game.payout_status == "FAILED":
                    raise Conflict("Payout failed, use claim", game_id=str(game_id), payout_status="FAILED")
                expected = {"status": "ENDED", "version": game.version}
                values = {}
                rejected_values = {}
            else:
                raise Conflict("Game is not live", game_id=str(game_id), status=game.status)
            game, reserved = await self.settlement.reserve(
                self.ledger,
                game_id,
                amount,
                expected=expected,
                values=values,
                seeds=fairness.seeds_of(game),
            )
            if not reserved:
                return game

        return await self.settlement.dispatch(self.ledger, game_id, wallet_id, amount, rejected_values)

    async def claim(self, wallet_id: str, game_id: UUID | None = None) -> MineGameSchema:
        """Retry a FAILED payout with the amount recorded at cashout."""
        wallet_id = normalize_public_id(wallet_id)
        if game_id is None:
            async with self.Session() as session:
                latest = await ReadData.read_latest_mine_game(wallet_id, session)
            if latest is None:
                raise NotFound("No game to claim", wallet_id=wallet_id)
            game_id = latest.game_id

        async with self.locks.hold(("mines", game_id)):
            game = await self._load(game_id, wallet_id)
            if game.payout_status == "SENT":
                return game
            if game.hit_mine:
                raise Conflict("Mine was hit, nothing to claim", game_id=str(game_id))
            if game.payout_status != "FAILED" or game.payout_amount <= 0:
                raise Conflict(
                    "No failed payout to claim", game_id=str(game_id), payout_status=game.payout_status
                )
            if game.payout_reconcile:
                raise Conflict(
                    "Payout outcome unknown, awaiting reconciliation",
                    game_id=str(game_id),
                    payout_status=game.payout_status,
                )
            expected = {"status": game.status, "version": game.version}
            values = {"status": "ENDED", "ended_at": game.ended_at or self.clock()}
            rejected_values = {"status": game.status, "ended_at": game.ended_at}
            game, reserved = await self.settlement.reserve(
                self.ledger,
                game_id,
                game.payout_amount,
                expected=expected,
                values=values,
                seeds=fairness.seeds_of(game),
            )
            if not reserved:
                return game

        return await self.settlement.dispatch(
            self.ledger, game_id, wallet_id, game.payout_amount, rejected_values
        )

    async def status(self, wallet_id: str) -> MineGameSchema | None:
        """The wallet's active game, expiring stale ones."""
        wallet_id = normalize_public_id(wallet_id)
        now = self.clock()
        active = None
        async with self.Session() as session:
            async with session.begin():
                for live in await ReadData.read_live_mine_games(wallet_id, session):
                    if live.expires_at <= now:
                        await self._expire(live, session)
                    elif active is None:
                        active = live
        return active

    async def autobet(
        self,
        wallet_id: str,
        amount: int,
        mines: int,
        bet_tx_id: str,
        cells: List[int],
        seeds: fairness.SeedPair | None = None,
    ) -> MineGameSchema:
        """Create a board, reveal ``cells`` in order and cash out unless a mine is hit."""
        if not cells:
            raise ValidationFailed("cells must not be empty", field="cells")
        if len(set(cells)) != len(cells):
            raise ValidationFailed("cells must be distinct", field="cells")
        for cell in cells:
            if isinstance(cell, bool) or not isinstance(cell, int) or not 0 <= cell < fairness.BOARD_CELLS:
                raise ValidationFailed("cell must be an integer within 0..24", field="cells")
        if isinstance(mines, int) and len(cells) > fairness.BOARD_CELLS - mines:
            raise ValidationFailed("more cells than safe cells", field="cells")

        game = await self.create(wallet_id, amount, mines, bet_tx_id, seeds=seeds)
        for cell in cells:
            game = await self.reveal(wallet_id, game.game_id, cell)
            if game.status != "LIVE":
                return game
        return await self.cashout(wallet_id, game.game_id)
