from collections import Counter

SUITS = ["Hearts", "Diamonds", "Clubs", "Spades"]
RANKS = ["2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A"]
JACK_VALUE = 11
ACE_VALUE = 14


def card_index(rank: str, suit: str) -> int:
    return SUITS.index(suit) * 13 + RANKS.index(rank)


def card_from_index(index: int) -> dict:
    if not 0 <= index < 52:
        raise ValueError(f"card index out of range: {index}")
    suit, rank = divmod(index, 13)
    return {"rank": RANKS[rank], "suit": SUITS[suit]}


def rank_value(index: int) -> int:
    return index % 13 + 2


def _is_straight(values: list[int]) -> bool:
    unique = sorted(set(values))
    if len(unique) != 5:
        return False
    if unique[-1] - unique[0] == 4:
        return True
    # wheel: A-2-3-4-5
    return unique == [2, 3, 4, 5, ACE_VALUE]


def evaluate_hand(cards: list[int]) -> str:
    """Return the best paying category of a five card hand."""
    if len(cards) != 5 or len(set(cards)) != 5:
        raise ValueError("a hand is five distinct cards")
    values = [rank_value(c) for c in cards]
    flush = len({c // 13 for c in cards}) == 1
    straight = _is_straight(values)
    counts = sorted(Counter(values).values(), reverse=True)

    if flush and straight:
        if sorted(values) == [10, 11, 12, 13, ACE_VALUE]:
            return "royal_flush"
        return "straight_flush"
    if counts[0] == 4:
        return "four_of_a_kind"
    if counts[:2] == [3, 2]:
        return "full_house"
    if flush:
        return "flush"
    if straight:
        return "straight"
    if counts[0] == 3:
        return "three_of_a_kind"
    if counts[:2] == [2, 2]:
        return "two_pair"
    if counts[0] == 2:
        pair_value = next(v for v, n in Counter(values).items() if n == 2)
        if pair_value >= JACK_VALUE:
            return "jacks_or_better"
    return "no_win"


def normalize_hold(hold) -> int:
    """Accept a list of positions (0..4) or an int bit mask and return the mask.

    Duplicate positions are ignored.
    """
    if isinstance(hold, bool):
        raise ValueError("hold must be a list of positions or a bit mask")
    if isinstance(hold, int):
        if not 0 <= hold < 32:
            raise ValueError("hold mask must be within 0..31")
        return hold
    mask = 0
    for position in hold or []:
        if isinstance(position, bool) or not isinstance(position, int) or not 0 <= position <= 4:
            raise ValueError(f"hold position out of range: {position}")
        mask |= 1 << position
    return mask


def apply_draw(initial_hand: list[int], hold_mask: int, replacements: list[int]) -> list[int]:
    """Fill non-held positions in order with the replacement cards."""
    final_hand = list(initial_hand)
    supply = iter(replacements)
    for position in range(5):
        if not hold_mask & (1 << position):
            final_hand[position] = next(supply)
    return final_hand


def replacements_needed(hold_mask: int) -> int:
    return 5 - bin(hold_mask).count("1")
