"""
Tests for the HTTP surface that needs no database or Redis.
"""

import pytest
from fastapi.testclient import TestClient

from casino.main import app

from conftest import PRIVATE_SEED


@pytest.fixture
def client():
    # no context manager: the lifespan (tables, engines, scheduler) is not started
    return TestClient(app)


class TestFairnessVerify:
    def test_crash_point(self, client):
        response = client.post(
            "/fairness/verify",
            json={"game": "crash", "public_seed": "test-public-seed-1", "private_seed": PRIVATE_SEED},
        )

        assert response.status_code == 200
        assert response.json()["crash_point"] == 203

    def test_mines_layout(self, client):
        response = client.post(
            "/fairness/verify",
            json={
                "game": "mines",
                "public_seed": "test-public-seed-2",
                "private_seed": PRIVATE_SEED,
                "mines": 3,
            },
        )

        assert response.json()["mine_cells"] == [8, 11, 13]

    def test_commitment_mismatch_is_reported(self, client):
        response = client.post(
            "/fairness/verify",
            json={
                "game": "slide",
                "public_seed": "test-public-seed-1",
                "private_seed": PRIVATE_SEED,
                "private_seed_hash": "0" * 64,
            },
        )

        assert response.status_code == 500
        assert response.json()["kind"] == "integrity"

    def test_missing_mines_count(self, client):
        response = client.post(
            "/fairness/verify",
            json={"game": "mines", "public_seed": "p", "private_seed": "s"},
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "validation"


class TestErrorBodies:
    def test_invalid_wallet_is_validation_error(self, client):
        response = client.post(
            "/mine/create",
            json={"wallet_id": "short", "amount": 10, "mines": 3, "bet_tx_id": "t"},
        )

        assert response.status_code == 400
        assert response.json() == {
            "kind": "validation",
            "message": "Invalid Qubic public id",
            "context": {"field": "wallet_id"},
        }
