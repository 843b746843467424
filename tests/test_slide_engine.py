"""
Tests for the Slide round machine. Seeds ``test-public-seed-1`` land on 2.03x.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from casino.converter import DataConverter
from casino.errors import Conflict
from casino.services.mines import MinesService
from casino.services.slide_engine import SlideRoundEngine

from conftest import OTHER_WALLET, WALLET, seeds


@pytest.fixture
def publisher():
    return AsyncMock()


@pytest.fixture
def engine(session_factory, settlement, publisher, monotonic, clock):
    return SlideRoundEngine(session_factory, settlement, publisher, clock=monotonic, now=clock)


async def betting_round(engine):
    await engine.open_round(seeds(1))
    await engine.open_betting()


class TestSlideRound:
    @pytest.mark.asyncio
    async def test_bets_only_while_betting(self, engine):
        await engine.open_round(seeds(1))

        with pytest.raises(Conflict):
            await engine.join(WALLET, 1000, 200, "s-1")

        await engine.open_betting()
        bet = await engine.join(WALLET, 1000, 200, "s-1")
        assert bet.status == "ACTIVE"

    @pytest.mark.asyncio
    async def test_winners_paid_at_target(self, engine, transfer_client):
        await betting_round(engine)
        winner = await engine.join(WALLET, 1000, 200, "s-1")
        loser = await engine.join(OTHER_WALLET, 1000, 250, "s-2")

        await engine.play()
        await engine.settle_round()
        await engine.drain_payouts()

        won = await engine.ledger.read(winner.bet_id)
        lost = await engine.ledger.read(loser.bet_id)
        assert won.status == "CASHED_OUT"
        assert won.cashout_multiplier == 200
        assert won.payout_amount == 2000
        assert won.payout_status == "SENT"
        assert lost.status == "LOST"
        assert lost.payout_status == "NONE"
        transfer_client.transfer.assert_awaited_once_with(WALLET, 2000)

    @pytest.mark.asyncio
    async def test_target_equal_to_point_wins(self, engine):
        await betting_round(engine)
        bet = await engine.join(WALLET, 1000, 203, "s-1")

        await engine.play()
        await engine.settle_round()
        await engine.drain_payouts()

        assert (await engine.ledger.read(bet.bet_id)).payout_amount == 2030

    @pytest.mark.asyncio
    async def test_play_reveals_track(self, engine, publisher):
        await betting_round(engine)

        await engine.play()

        assert engine.phase == "PLAYING"
        assert engine.track[-1] == 203
        track_events = [c for c in publisher.publish.await_args_list if c.args[1] == "slide-track"]
        assert track_events[0].args[2]["crash_point"] == 203

    @pytest.mark.asyncio
    async def test_round_ends_waiting_with_history(self, engine):
        await betting_round(engine)
        await engine.play()
        await engine.settle_round()

        assert engine.phase == "WAITING"
        assert engine.history[0]["crash_point"] == 203

    @pytest.mark.asyncio
    async def test_point_hidden_while_betting(self, engine):
        await betting_round(engine)

        snapshot = DataConverter().convert_round_state(engine)

        assert snapshot.phase == "BETTING"
        assert snapshot.crash_point is None
        assert snapshot.private_seed is None
        assert snapshot.private_seed_hash == seeds(1).private_seed_hash

    @pytest.mark.asyncio
    async def test_token_used_by_another_game(self, engine, session_factory, settlement, clock):
        mines = MinesService(session_factory, settlement, clock=clock)
        await mines.create(WALLET, 1000, 3, "shared-token", seeds=seeds(2))
        await betting_round(engine)

        with pytest.raises(Conflict):
            await engine.join(WALLET, 1000, 200, "shared-token")

    @pytest.mark.asyncio
    async def test_phase_order_enforced(self, engine):
        await engine.open_round(seeds(1))

        with pytest.raises(Conflict):
            await engine.play()
        with pytest.raises(Conflict):
            await engine.settle_round()

    @pytest.mark.asyncio
    async def test_next_round_does_not_wait_for_payouts(self, engine, transfer_client):
        release = asyncio.Event()

        async def slow_transfer(destination, amount):
            await release.wait()
            return "tx-slow"

        transfer_client.transfer.side_effect = slow_transfer
        await betting_round(engine)
        bet = await engine.join(WALLET, 1000, 200, "s-1")
        await engine.play()

        await engine.settle_round()

        assert engine.phase == "WAITING"
        assert (await engine.ledger.read(bet.bet_id)).payout_status == "PENDING"
        release.set()
        await engine.drain_payouts()
        assert (await engine.ledger.read(bet.bet_id)).payout_tx_id == "tx-slow"


class TestSlideLoop:
    @pytest.mark.asyncio
    async def test_failed_settlement_step_is_retried(self, engine, monotonic, settlement, monkeypatch):
        reserve = settlement.reserve
        attempts = []

        async def locked_once(*args, **kwargs):
            attempts.append(args[1])
            if len(attempts) == 1:
                raise OperationalError("UPDATE round_bets", {}, Exception("database is locked"))
            return await reserve(*args, **kwargs)

        monkeypatch.setattr(settlement, "reserve", locked_once)
        joined = []

        async def fake_sleep(seconds):
            if engine.phase == "BETTING" and not joined:
                joined.append(await engine.join(WALLET, 1000, 200, "s-1"))
            monotonic.advance_ms(seconds * 1000)

        engine.sleep = fake_sleep
        await engine.run_round(seeds(1))
        await engine.drain_payouts()

        assert len(attempts) == 2
        assert engine.phase == "WAITING"
        settled = await engine.ledger.read(joined[0].bet_id)
        assert settled.round_id == engine.round.round_id
        assert settled.status == "CASHED_OUT"
        assert settled.payout_amount == 2000
        assert settled.payout_status == "SENT"
