"""
Tests for the Mines session machine.

Seeds ``test-public-seed-2`` put mines on cells 8, 11 and 13 for a 3-mine board.
"""

import asyncio

import pytest

from casino.errors import (
    Conflict,
    Forbidden,
    NotFound,
    TransferRejectedError,
    TransferUnknownError,
    ValidationFailed,
)
from casino.services.mines import MinesService, revealed_cells

from conftest import OTHER_WALLET, WALLET, seeds

MINES = {8, 11, 13}
SAFE = [c for c in range(25) if c not in MINES]


@pytest.fixture
def mines_service(session_factory, settlement, clock):
    return MinesService(session_factory, settlement, edge="0.025", clock=clock)


async def new_game(service, token="bet-1", mines=3, amount=1000):
    return await service.create(WALLET, amount, mines, token, seeds=seeds(2))


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_commits_layout(self, mines_service):
        game = await new_game(mines_service)

        assert game.status == "LIVE"
        assert set(revealed_cells(game.mine_mask)) == MINES
        assert game.revealed_gems == 0
        assert game.payout_status == "NONE"

    @pytest.mark.asyncio
    async def test_wallet_id_is_normalized(self, mines_service):
        game = await mines_service.create("  " + WALLET.lower() + " ", 1000, 3, "bet-1", seeds=seeds(2))

        assert game.wallet_id == WALLET

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "wallet, amount, mines, token",
        [
            ("SHORT", 1000, 3, "bet-1"),
            (WALLET, 0, 3, "bet-1"),
            (WALLET, 1000, 0, "bet-1"),
            (WALLET, 1000, 25, "bet-1"),
            (WALLET, 1000, 3, "  "),
        ],
    )
    async def test_invalid_input(self, mines_service, wallet, amount, mines, token):
        with pytest.raises(ValidationFailed):
            await mines_service.create(wallet, amount, mines, token)

    @pytest.mark.asyncio
    async def test_one_live_game_per_wallet(self, mines_service):
        await new_game(mines_service)

        with pytest.raises(Conflict):
            await new_game(mines_service, token="bet-2")

    @pytest.mark.asyncio
    async def test_token_replay_rejected(self, mines_service, clock):
        await new_game(mines_service)
        clock.advance(minutes=10)

        with pytest.raises(Conflict):
            await new_game(mines_service)

    @pytest.mark.asyncio
    async def test_stale_game_does_not_block(self, mines_service, clock):
        first = await new_game(mines_service)
        clock.advance(minutes=10)

        second = await new_game(mines_service, token="bet-2")

        assert second.game_id != first.game_id
        assert (await mines_service.ledger.read(first.game_id)).status == "EXPIRED"
        with pytest.raises(Conflict):
            await mines_service.reveal(WALLET, first.game_id, 0)


class TestReveal:
    @pytest.mark.asyncio
    async def test_safe_reveal_updates_multiplier(self, mines_service):
        game = await new_game(mines_service)

        game = await mines_service.reveal(WALLET, game.game_id, 0)

        assert game.revealed_gems == 1
        assert revealed_cells(game.revealed_mask) == [0]
        assert game.multiplier == "1.1079"
        assert game.status == "LIVE"

    @pytest.mark.asyncio
    async def test_mine_ends_game(self, mines_service, transfer_client):
        game = await new_game(mines_service)

        game = await mines_service.reveal(WALLET, game.game_id, 11)

        assert game.status == "ENDED"
        assert game.hit_mine is True
        assert game.multiplier == "0"
        transfer_client.transfer.assert_not_called()
        with pytest.raises(Conflict):
            await mines_service.cashout(WALLET, game.game_id)

    @pytest.mark.asyncio
    async def test_repeated_reveal_is_a_no_op(self, mines_service):
        game = await new_game(mines_service)
        first = await mines_service.reveal(WALLET, game.game_id, 0)

        again = await mines_service.reveal(WALLET, game.game_id, 0)

        assert again.revealed_gems == 1
        assert again.version == first.version
        assert again.mine_mask == game.mine_mask

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cell", [-1, 25, True])
    async def test_out_of_range_cell(self, mines_service, cell):
        game = await new_game(mines_service)

        with pytest.raises(ValidationFailed):
            await mines_service.reveal(WALLET, game.game_id, cell)

        stored = await mines_service.ledger.read(game.game_id)
        assert stored.revealed_mask == 0
        assert stored.mine_mask == game.mine_mask

    @pytest.mark.asyncio
    async def test_other_wallet_is_forbidden(self, mines_service):
        game = await new_game(mines_service)

        with pytest.raises(Forbidden):
            await mines_service.reveal(OTHER_WALLET, game.game_id, 0)

    @pytest.mark.asyncio
    async def test_every_safe_cell_pays_out(self, mines_service, transfer_client):
        game = await mines_service.create(WALLET, 100, 24, "bet-1", seeds=seeds(2))
        safe = next(c for c in range(25) if c not in revealed_cells(game.mine_mask))

        game = await mines_service.reveal(WALLET, game.game_id, safe)

        assert game.status == "ENDED"
        assert game.payout_status == "SENT"
        assert game.payout_amount == 2437
        transfer_client.transfer.assert_awaited_once_with(WALLET, 2437)

    @pytest.mark.asyncio
    async def test_last_safe_cell_with_rejected_payout_returns_board(self, mines_service, transfer_client):
        transfer_client.transfer.side_effect = [TransferRejectedError("wallet offline"), "tx-2"]
        game = await mines_service.create(WALLET, 100, 24, "bet-1", seeds=seeds(2))
        safe = next(c for c in range(25) if c not in revealed_cells(game.mine_mask))

        game = await mines_service.reveal(WALLET, game.game_id, safe)

        assert game.status == "ENDED"
        assert game.revealed_gems == 1
        assert game.payout_status == "FAILED"
        assert game.payout_amount == 2437

        claimed = await mines_service.claim(WALLET, game.game_id)
        assert claimed.payout_status == "SENT"
        assert claimed.payout_tx_id == "tx-2"

    @pytest.mark.asyncio
    async def test_last_safe_cell_with_unknown_payout_returns_board(self, mines_service, transfer_client):
        transfer_client.transfer.side_effect = [TransferUnknownError("dropped")]
        game = await mines_service.create(WALLET, 100, 24, "bet-1", seeds=seeds(2))
        safe = next(c for c in range(25) if c not in revealed_cells(game.mine_mask))

        game = await mines_service.reveal(WALLET, game.game_id, safe)

        assert game.status == "ENDED"
        assert game.payout_status == "FAILED"
        assert game.payout_reconcile is True


class TestCashout:
    @pytest.mark.asyncio
    async def test_five_gems_pays_known_amount(self, mines_service, transfer_client):
        game = await new_game(mines_service)
        for cell in SAFE[:5]:
            game = await mines_service.reveal(WALLET, game.game_id, cell)

        game = await mines_service.cashout(WALLET, game.game_id)

        assert game.status == "ENDED"
        assert game.payout_status == "SENT"
        assert game.payout_amount == 1967
        assert game.payout_tx_id == "tx-1"
        transfer_client.transfer.assert_awaited_once_with(WALLET, 1967)

    @pytest.mark.asyncio
    async def test_double_cashout_pays_once(self, mines_service, transfer_client):
        game = await new_game(mines_service)
        game = await mines_service.reveal(WALLET, game.game_id, 0)

        first = await mines_service.cashout(WALLET, game.game_id)
        second = await mines_service.cashout(WALLET, game.game_id)

        assert second.payout_tx_id == first.payout_tx_id
        assert second.payout_amount == first.payout_amount
        assert transfer_client.transfer.await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_cashouts_pay_once(self, mines_service, transfer_client):
        game = await new_game(mines_service)
        game = await mines_service.reveal(WALLET, game.game_id, 0)

        results = await asyncio.gather(
            mines_service.cashout(WALLET, game.game_id),
            mines_service.cashout(WALLET, game.game_id),
            return_exceptions=True,
        )

        paid = [r for r in results if not isinstance(r, Exception)]
        assert paid and all(r.payout_tx_id == "tx-1" for r in paid)
        assert all(isinstance(r, Conflict) for r in results if isinstance(r, Exception))
        assert transfer_client.transfer.await_count == 1

    @pytest.mark.asyncio
    async def test_cashout_needs_a_gem(self, mines_service):
        game = await new_game(mines_service)

        with pytest.raises(ValidationFailed):
            await mines_service.cashout(WALLET, game.game_id)

    @pytest.mark.asyncio
    async def test_rejected_transfer_keeps_game_live(self, mines_service, transfer_client):
        transfer_client.transfer.side_effect = [TransferRejectedError("insufficient funds"), "tx-9"]
        game = await new_game(mines_service)
        game = await mines_service.reveal(WALLET, game.game_id, 0)

        with pytest.raises(TransferRejectedError):
            await mines_service.cashout(WALLET, game.game_id)

        stored = await mines_service.ledger.read(game.game_id)
        assert stored.status == "LIVE"
        assert stored.payout_status == "FAILED"
        assert stored.payout_reconcile is False

        claimed = await mines_service.claim(WALLET)

        assert claimed.status == "ENDED"
        assert claimed.payout_status == "SENT"
        assert claimed.payout_tx_id == "tx-9"
        assert claimed.payout_amount == stored.payout_amount

    @pytest.mark.asyncio
    async def test_unknown_outcome_needs_reconciliation(self, mines_service, transfer_client):
        transfer_client.transfer.side_effect = [TransferUnknownError("connection dropped")]
        game = await new_game(mines_service)
        game = await mines_service.reveal(WALLET, game.game_id, 0)

        with pytest.raises(TransferUnknownError):
            await mines_service.cashout(WALLET, game.game_id)

        stored = await mines_service.ledger.read(game.game_id)
        assert stored.status == "ENDED"
        assert stored.payout_status == "FAILED"
        assert stored.payout_reconcile is True
        with pytest.raises(Conflict, match="reconciliation"):
            await mines_service.claim(WALLET, game.game_id)
        assert transfer_client.transfer.await_count == 1


class TestStatusAndClaim:
    @pytest.mark.asyncio
    async def test_status_returns_live_game(self, mines_service):
        game = await new_game(mines_service)

        assert (await mines_service.status(WALLET)).game_id == game.game_id
        assert await mines_service.status(OTHER_WALLET) is None

    @pytest.mark.asyncio
    async def test_status_expires_stale_game(self, mines_service, clock):
        await new_game(mines_service)
        clock.advance(minutes=10)

        assert await mines_service.status(WALLET) is None

    @pytest.mark.asyncio
    async def test_claim_without_games(self, mines_service):
        with pytest.raises(NotFound):
            await mines_service.claim(WALLET)

    @pytest.mark.asyncio
    async def test_claim_without_failure(self, mines_service):
        game = await new_game(mines_service)

        with pytest.raises(Conflict):
            await mines_service.claim(WALLET, game.game_id)


class TestAutobet:
    @pytest.mark.asyncio
    async def test_autobet_cashes_out(self, mines_service, transfer_client):
        game = await mines_service.autobet(WALLET, 1000, 3, "bet-1", SAFE[:5], seeds=seeds(2))

        assert game.payout_status == "SENT"
        assert game.payout_amount == 1967

    @pytest.mark.asyncio
    async def test_autobet_stops_on_mine(self, mines_service, transfer_client):
        game = await mines_service.autobet(WALLET, 1000, 3, "bet-1", [0, 8, 1], seeds=seeds(2))

        assert game.hit_mine is True
        assert game.revealed_gems == 1
        transfer_client.transfer.assert_not_called()

    @pytest.mark.asyncio
    async def test_autobet_rejects_duplicate_cells(self, mines_service):
        with pytest.raises(ValidationFailed):
            await mines_service.autobet(WALLET, 1000, 3, "bet-1", [0, 0], seeds=seeds(2))
