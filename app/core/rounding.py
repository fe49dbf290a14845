import math


def round_half_up(value: float, digits: int = 0):
    """Round .5 away from zero for positive values; the builtin round() rounds half to even."""
    if digits == 0:
        return int(math.floor(value + 0.5))
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale
