from casino.domain import fairness, poker_rules


def verify_outcome(
    game: str,
    public_seed: str,
    private_seed: str,
    private_seed_hash: str | None = None,
    mines: int | None = None,
    hold_mask: int | None = None,
    max_multiplier: int = 100000,
) -> dict:
    """Recompute the outcome of a finished round or session from its seeds.

    Args:
        game (str): "crash", "slide", "mines" or "video_poker"
        private_seed_hash (str | None): When given, the commitment is checked first

    Returns:
        dict: the recomputed outcome, shaped per game
    """
    if private_seed_hash is not None:
        seeds = fairness.verify_commitment(public_seed, private_seed, private_seed_hash)
    else:
        seeds = fairness.SeedPair(public_seed, private_seed, fairness.hash_seed(private_seed))

    result = {"game": game, "private_seed_hash": seeds.private_seed_hash}
    if game in ("crash", "slide"):
        result["crash_point"] = fairness.crash_point(public_seed, private_seed, max_multiplier)
    elif game == "mines":
        if mines is None:
            raise ValueError("mines is required to verify a mines layout")
        result["mine_cells"] = sorted(fairness.mine_cells(seeds, mines))
    elif game == "video_poker":
        initial_hand = fairness.deal_hand(seeds)
        result["initial_hand"] = [poker_rules.card_from_index(c) for c in initial_hand]
        if hold_mask is not None:
            hold_mask = poker_rules.normalize_hold(hold_mask)
            replacements = fairness.draw_replacements(
                seeds, initial_hand, poker_rules.replacements_needed(hold_mask)
            )
            final_hand = poker_rules.apply_draw(initial_hand, hold_mask, replacements)
            result["final_hand"] = [poker_rules.card_from_index(c) for c in final_hand]
            result["result"] = poker_rules.evaluate_hand(final_hand)
    else:
        raise ValueError(f"unknown game: {game}")
    return result
