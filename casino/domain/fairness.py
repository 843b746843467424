"""Commit-reveal seeds and every seeded outcome derived from them.

A round or session commits to ``sha256(private_seed)`` before any stake is
accepted. Once the private seed is revealed, anybody can recompute the crash
point, the mine layout or the deck order with the functions below.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass

from casino.errors import IntegrityViolation

BOARD_CELLS = 25
DECK_SIZE = 52
TWO_POW_52 = 2**52
MIN_CRASH_100 = 100


@dataclass(frozen=True)
class SeedPair:
    public_seed: str
    private_seed: str
    private_seed_hash: str


def seeds_of(record) -> SeedPair:
    """Seed pair stored on a round or session row."""
    return SeedPair(record.public_seed, record.private_seed, record.private_seed_hash)


def hash_seed(private_seed: str) -> str:
    return hashlib.sha256(private_seed.encode("utf-8")).hexdigest()


def commit(public_seed: str | None = None, private_seed: str | None = None) -> SeedPair:
    """Create a fresh seed pair. The commitment is fixed at creation time.

    Args:
        public_seed (str | None): Use a given public seed instead of a random one
        private_seed (str | None): Use a given private seed instead of a random one

    Returns:
        SeedPair: Seeds plus sha256 commitment of the private seed
    """
    public_seed = public_seed or secrets.token_hex(32)
    private_seed = private_seed or secrets.token_hex(32)
    return SeedPair(public_seed, private_seed, hash_seed(private_seed))


def verify_commitment(public_seed: str, private_seed: str, private_seed_hash: str) -> SeedPair:
    """Check the private seed against its published commitment before it is used.

    Raises:
        IntegrityViolation: The stored seed does not hash to the commitment
    """
    if not hmac.compare_digest(hash_seed(private_seed), private_seed_hash):
        logging.critical(
            f"Commitment mismatch for public seed {public_seed}: refusing to reveal"
        )
        raise IntegrityViolation(
            "Private seed does not match its commitment", public_seed=public_seed
        )
    return SeedPair(public_seed, private_seed, private_seed_hash)


def crash_point(public_seed: str, private_seed: str, max_multiplier: int = 100000) -> int:
    """Crash multiplier in hundredths (203 means 2.03x).

    HMAC-SHA256 keyed by the private seed over the public seed; the top 52 bits
    ``r`` give ``(100 * 2^52 - r) // (2^52 - r)``, clamped to
    ``[100, max_multiplier]``.
    """
    digest = hmac.new(
        private_seed.encode("utf-8"), public_seed.encode("utf-8"), hashlib.sha256
    ).hexdigest()
    r = int(digest[:13], 16)
    crash100 = (100 * TWO_POW_52 - r) // (TWO_POW_52 - r)
    return max(MIN_CRASH_100, min(crash100, max_multiplier))


def _keyed_u32_stream(key: str):
    seed = key.encode("utf-8")
    counter = 0
    while True:
        digest = hmac.new(seed, str(counter).encode("utf-8"), hashlib.sha256).digest()
        counter += 1
        yield int.from_bytes(digest[:4], "big")


def seeded_shuffle(items: list, key: str) -> list:
    """Fisher-Yates shuffle driven by the keyed HMAC stream.

    ``j = (u32 * (i + 1)) >> 32`` which is the integer form of
    ``floor(u32 / 2^32 * (i + 1))``.
    """
    shuffled = list(items)
    stream = _keyed_u32_stream(key)
    for i in range(len(shuffled) - 1, 0, -1):
        j = (next(stream) * (i + 1)) >> 32
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def shuffle_key(seeds: SeedPair, tag: str) -> str:
    return f"{seeds.public_seed}:{seeds.private_seed}:{tag}"


def mine_cells(seeds: SeedPair, mines: int) -> list[int]:
    return seeded_shuffle(list(range(BOARD_CELLS)), shuffle_key(seeds, "mines"))[:mines]


def mine_layout(seeds: SeedPair, mines: int) -> int:
    """Bit mask of mined cells (bit ``i`` set means cell ``i`` holds a mine)."""
    if not 1 <= mines < BOARD_CELLS:
        raise ValueError(f"mines must be within 1..{BOARD_CELLS - 1}")
    mask = 0
    for cell in mine_cells(seeds, mines):
        mask |= 1 << cell
    return mask


def shuffle_deck(seeds: SeedPair, tag: str) -> list[int]:
    return seeded_shuffle(list(range(DECK_SIZE)), shuffle_key(seeds, tag))


def deal_hand(seeds: SeedPair) -> list[int]:
    return shuffle_deck(seeds, "init")[:5]


def draw_replacements(seeds: SeedPair, dealt: list[int], count: int) -> list[int]:
    """Replacement cards for a draw, never repeating any of the five dealt cards."""
    excluded = set(dealt)
    remaining = [card for card in shuffle_deck(seeds, "draw") if card not in excluded]
    return remaining[:count]


def slide_track(seeds: SeedPair, crash100: int, max_points: int = 1500) -> list[int]:
    """Display track for a slide round, in hundredths.

    Every point is drawn from the keyed stream so the track is reproducible.
    Values stay below the crash point except the last one which lands on it.
    """
    stream = _keyed_u32_stream(shuffle_key(seeds, "track"))
    points = max(2, min(max_points, crash100))
    track = []
    for _ in range(points - 1):
        # uniform in [100, crash100) when crash100 > 100
        span = max(1, crash100 - 100)
        track.append(100 + ((next(stream) * span) >> 32))
    track.append(crash100)
    return track
