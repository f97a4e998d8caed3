import math


def round_half_up(value: float) -> int:
    # .5 always rounds up (round() would round half to even).
    return int(math.floor(value + 0.5))


def round_to_tenth(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def clamp(value, low, high):
    return max(low, min(high, value))
