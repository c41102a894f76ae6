"""Shared DSP helpers: lookup tables, noise, saturation and one-pole filters."""

from __future__ import annotations

import math
from dataclasses import dataclass

LUT_SIZE = 2048
LUT_MASK = LUT_SIZE - 1

_TWO_PI = 2.0 * math.pi


def _sine_table() -> list[float]:
    return [math.sin(i * _TWO_PI / LUT_SIZE) for i in range(LUT_SIZE)]


sin_lut: list[float] = _sine_table()
dither_lut: list[float] = [0.0] * LUT_SIZE


class _LinearCongruential:
    """32-bit linear congruential generator with a fixed starting seed."""

    def __init__(self, seed: int) -> None:
        self.state = seed & 0xFFFFFFFF

    def next_unit(self) -> float:
        self.state = (1664525 * self.state + 1013904223) & 0xFFFFFFFF
        return (self.state & 0xFFFF) * (1.0 / 32768.0) - 1.0


_NOISE = _LinearCongruential(123456789)


def fast_random() -> float:
    """Return the next value of the shared noise generator, in [-1, 1)."""
    return _NOISE.next_unit()


def fast_soft_clip(x: float) -> float:
    """Cubic soft clipper, hard-limited to +/-1 beyond +/-1.5."""
    if x < -1.5:
        return -1.0
    if x > 1.5:
        return 1.0
    return x - (0.1481 * x * x * x)


def velocity_curve(vel: float, curve: float = 2.0) -> float:
    """Map a linear 0..1 velocity through a power curve."""
    return math.pow(vel, curve)


def init_lut() -> None:
    """Fill the sine table and the triangular dither table in place."""
    for i in range(LUT_SIZE):
        sin_lut[i] = math.sin(i * _TWO_PI / LUT_SIZE)
        dither_lut[i] = (fast_random() + fast_random()) * (0.5 / 32768.0)


def get_sin_lut(phase: float) -> float:
    """Sine of a 0..1 phase using the table with linear interpolation."""
    idx_f = phase * LUT_SIZE
    idx = int(idx_f)
    i0 = idx & LUT_MASK
    i1 = (idx + 1) & LUT_MASK
    frac = idx_f - idx
    return sin_lut[i0] + frac * (sin_lut[i1] - sin_lut[i0])


def lut_sin(phase: float) -> float:
    """Sine of a 0..1 phase using the nearest-lower table entry."""
    return sin_lut[int(phase * LUT_SIZE) & LUT_MASK]


@dataclass
class OnePoleLowPass:
    """One-pole low-pass filter; ``coefficient`` is the smoothing amount."""

    coefficient: float
    state: float = 0.0

    def process(self, sample: float) -> float:
        self.state += (sample - self.state) * self.coefficient
        return self.state


@dataclass
class OnePoleHighPass:
    """One-pole high-pass filter built from a tracking low-pass state."""

    coefficient: float
    state: float = 0.0

    def process(self, sample: float) -> float:
        output = sample - self.state
        self.state += output * self.coefficient
        return output