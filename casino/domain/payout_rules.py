from decimal import Decimal
from fractions import Fraction
from math import comb

from casino.domain.fairness import BOARD_CELLS

DEFAULT_HOUSE_EDGE = "0.025"

POKER_PAY_TABLE = {
    "royal_flush": 800,
    "straight_flush": 60,
    "four_of_a_kind": 22,
    "full_house": 9,
    "flush": 6,
    "straight": 4,
    "three_of_a_kind": 3,
    "two_pair": 2,
    "jacks_or_better": 1,
    "no_win": 0,
}


def parse_house_edge(house_edge: str | Decimal | Fraction = DEFAULT_HOUSE_EDGE) -> Fraction:
    edge = Fraction(Decimal(str(house_edge))) if not isinstance(house_edge, Fraction) else house_edge
    if not 0 <= edge < 1:
        raise ValueError("house edge must be within [0, 1)")
    return edge


def mines_multiplier(
    mines: int, revealed: int, house_edge: str | Decimal | Fraction = DEFAULT_HOUSE_EDGE
) -> Fraction:
    """Fair odds of surviving ``revealed`` picks, reduced by the house edge.

    Args:
        mines (int): Number of mines on the 25 cell board
        revealed (int): Number of safe cells revealed so far

    Returns:
        Fraction: exact multiplier, 0 when nothing is revealed yet
    """
    safe_cells = BOARD_CELLS - mines
    if revealed < 1:
        return Fraction(0)
    if revealed > safe_cells:
        raise ValueError("revealed exceeds the number of safe cells")
    fair = Fraction(comb(BOARD_CELLS, revealed), comb(safe_cells, revealed))
    return fair * (1 - parse_house_edge(house_edge))


def mines_payout(
    stake: int, mines: int, revealed: int, house_edge: str | Decimal | Fraction = DEFAULT_HOUSE_EDGE
) -> int:
    multiplier = mines_multiplier(mines, revealed, house_edge)
    return int(stake * multiplier)  # Fraction -> int floors non-negative values


def format_multiplier(multiplier: Fraction, places: int = 4) -> str:
    """Render a rational multiplier for display and storage (truncated)."""
    scale = 10**places
    scaled = multiplier.numerator * scale // multiplier.denominator
    return f"{scaled // scale}.{scaled % scale:0{places}d}"


def multiplier_payout(stake: int, multiplier100: int) -> int:
    """Crash and slide payout for a multiplier expressed in hundredths."""
    return stake * multiplier100 // 100


def poker_payout(stake: int, category: str) -> int:
    return stake * POKER_PAY_TABLE[category]
