"""
Tests for commit-reveal seeds and the seeded outcomes derived from them.

Expected values were computed independently with openssl (HMAC-SHA256).
"""

import pytest

from casino.domain import fairness, poker_rules
from casino.domain.verification import verify_outcome
from casino.errors import IntegrityViolation

from conftest import PRIVATE_SEED, seeds


class TestCommitment:
    """Commitment is the sha256 hex digest of the private seed."""

    def test_hash_of_known_seed(self):
        assert fairness.hash_seed(PRIVATE_SEED) == (
            "7dc8e76f2f188ea818779226a7560a0d12183c0c8c796fb55d53d431e6ef9ff9"
        )

    def test_commit_hashes_private_seed(self):
        pair = fairness.commit()

        assert fairness.hash_seed(pair.private_seed) == pair.private_seed_hash
        assert len(pair.public_seed) == 64
        assert len(pair.private_seed) == 64

    def test_fresh_commitments_differ(self):
        assert fairness.commit().private_seed != fairness.commit().private_seed

    def test_verify_commitment_accepts_matching_seed(self):
        pair = seeds(1)

        assert fairness.verify_commitment(
            pair.public_seed, pair.private_seed, pair.private_seed_hash
        ) == pair

    def test_verify_commitment_rejects_mismatch(self):
        pair = seeds(1)

        with pytest.raises(IntegrityViolation):
            fairness.verify_commitment(pair.public_seed, "tampered", pair.private_seed_hash)


class TestCrashPoint:
    """Crash point golden vectors."""

    @pytest.mark.parametrize(
        "n, expected",
        [(1, 203), (2, 649), (3, 110), (4, 992), (5, 102), (6, 269)],
    )
    def test_golden_vectors(self, n, expected):
        assert fairness.crash_point(f"test-public-seed-{n}", PRIVATE_SEED) == expected

    def test_clamped_to_max_multiplier(self):
        assert fairness.crash_point("test-public-seed-4", PRIVATE_SEED, max_multiplier=500) == 500

    def test_never_below_one(self):
        for n in range(1, 50):
            assert fairness.crash_point(f"seed-{n}", PRIVATE_SEED) >= 100


class TestShuffles:
    """Mine layout and deck order from the keyed stream."""

    def test_mine_permutation_vector(self):
        board = fairness.seeded_shuffle(
            list(range(25)), f"test-public-seed-2:{PRIVATE_SEED}:mines"
        )

        assert board == [11, 13, 8, 4, 1, 23, 3, 17, 24, 12, 21, 7, 19, 18, 10, 22, 2, 0, 5, 6, 20, 16, 9, 14, 15]

    def test_mine_cells_are_prefix_of_permutation(self):
        assert fairness.mine_cells(seeds(2), 3) == [11, 13, 8]

    def test_mine_layout_mask(self):
        assert fairness.mine_layout(seeds(2), 3) == (1 << 11) | (1 << 13) | (1 << 8)

    def test_mine_layout_rejects_bad_count(self):
        with pytest.raises(ValueError):
            fairness.mine_layout(seeds(2), 25)

    def test_deal_vector(self):
        deck = fairness.shuffle_deck(seeds(2), "init")

        assert deck[:10] == [28, 30, 41, 14, 1, 12, 17, 40, 16, 4]
        assert fairness.deal_hand(seeds(2)) == [28, 30, 41, 14, 1]

    def test_dealt_cards(self):
        cards = [poker_rules.card_from_index(c) for c in fairness.deal_hand(seeds(2))]

        assert cards == [
            {"rank": "4", "suit": "Clubs"},
            {"rank": "6", "suit": "Clubs"},
            {"rank": "4", "suit": "Spades"},
            {"rank": "3", "suit": "Diamonds"},
            {"rank": "3", "suit": "Hearts"},
        ]

    def test_draw_replacements_skip_dealt_cards(self):
        dealt = fairness.deal_hand(seeds(2))
        replacements = fairness.draw_replacements(seeds(2), dealt, 5)

        assert replacements == [49, 36, 50, 20, 51]
        assert not set(replacements) & set(dealt)

    def test_shuffle_is_a_permutation(self):
        deck = fairness.shuffle_deck(seeds(7), "init")

        assert sorted(deck) == list(range(52))


class TestSlideTrack:
    def test_track_ends_on_crash_point(self):
        track = fairness.slide_track(seeds(1), 203)

        assert track[-1] == 203
        assert all(100 <= point < 203 for point in track[:-1])

    def test_track_is_reproducible(self):
        assert fairness.slide_track(seeds(1), 203) == fairness.slide_track(seeds(1), 203)

    def test_track_length_is_capped(self):
        assert len(fairness.slide_track(seeds(4), 992, max_points=50)) == 50


class TestVerifyOutcome:
    """Independent verification from revealed seeds."""

    def test_crash(self):
        pair = seeds(1)

        result = verify_outcome("crash", pair.public_seed, pair.private_seed, pair.private_seed_hash)

        assert result["crash_point"] == 203

    def test_mines(self):
        pair = seeds(2)

        result = verify_outcome("mines", pair.public_seed, pair.private_seed, mines=3)

        assert result["mine_cells"] == [8, 11, 13]

    def test_video_poker_with_hold(self):
        pair = seeds(2)

        result = verify_outcome("video_poker", pair.public_seed, pair.private_seed, hold_mask=0)

        assert result["result"] == "jacks_or_better"
        assert len(result["final_hand"]) == 5

    def test_commitment_mismatch(self):
        pair = seeds(2)

        with pytest.raises(IntegrityViolation):
            verify_outcome("crash", pair.public_seed, pair.private_seed, "0" * 64)

    def test_mines_requires_count(self):
        pair = seeds(2)

        with pytest.raises(ValueError):
            verify_outcome("mines", pair.public_seed, pair.private_seed)
