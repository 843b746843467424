import numpy as np

DEFAULT_GROWTH_RATE = 0.00012


def live_multiplier(elapsed_ms: float, growth_rate: float = DEFAULT_GROWTH_RATE) -> int:
    """Exponential crash curve in hundredths, ``floor(100 * e^(k * t))``.

    Args:
        elapsed_ms (float): Time since the round entered IN_PROGRESS
        growth_rate (float): Curve steepness per millisecond

    Returns:
        int: multiplier x100, never below 100
    """
    if elapsed_ms <= 0:
        return 100
    return max(100, int(np.floor(100 * np.exp(growth_rate * elapsed_ms))))


def time_to_multiplier(multiplier100: int, growth_rate: float = DEFAULT_GROWTH_RATE) -> float:
    """Milliseconds after start at which the curve reaches ``multiplier100``."""
    if multiplier100 <= 100:
        return 0.0
    return float(np.log(multiplier100 / 100) / growth_rate)


def is_valid_target(target100: int) -> bool:
    return isinstance(target100, int) and not isinstance(target100, bool) and target100 >= 101


def slide_outcome(crash100: int, target100: int) -> bool:
    """A slide bet wins when the revealed point reaches its target."""
    return crash100 >= target100
