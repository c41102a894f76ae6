"""Synthesised hi-hat: inharmonic sine cluster plus noise through a high-pass."""

from __future__ import annotations

import math
from dataclasses import dataclass

from .dsp import fast_random, lut_sin

_RATIOS = (1.0, 1.48, 2.15, 3.71)


@dataclass
class HatsParams:
    """Hat controls: decay and timbre in 0..1, ``open`` selects the long envelope."""

    decay: float = 0.5
    timbre: float = 0.5
    open: bool = False


class HatsVoice:
    """A closed or open hi-hat voice rendering one sample per ``process`` call."""

    def __init__(self, sample_rate: float) -> None:
        self._sr_inv = 1.0 / sample_rate
        self.active = False
        self.params = HatsParams()
        self._env = 0.0
        self._env_mul = 0.0
        self._phase = [0.0] * 4
        self._inc = [0.0] * 4
        self._svf_low = 0.0
        self._svf_band = 0.0

    def set_params(self, params: HatsParams) -> None:
        self.params = params

    def trigger(self, velocity: float = 1.0) -> None:
        self.active = True
        self._env = velocity

        p = self.params
        min_ms, max_ms = (300.0, 900.0) if p.open else (40.0, 100.0)
        ms = min_ms + p.decay * (max_ms - min_ms)
        self._env_mul = math.exp(-6907.8 * self._sr_inv / ms)

        base_freq = 300.0 + p.timbre * 300.0
        self._phase = [0.0] * 4
        self._inc = [base_freq * r * self._sr_inv for r in _RATIOS]

    def choke(self) -> None:
        """Silence the voice immediately."""
        self.active = False
        self._env = 0.0

    def process(self) -> float:
        if not self.active:
            return 0.0

        self._env *= self._env_mul
        if self._env < 0.001:
            self.active = False
            return 0.0

        for i, inc in enumerate(self._inc):
            drift = 1.0 + fast_random() * 0.005
            phase = self._phase[i] + inc * drift
            if phase >= 1.0:
                phase -= 1.0
            self._phase[i] = phase

        metal = sum(lut_sin(ph) for ph in self._phase) * 0.25
        noise = fast_random()

        timbre = self.params.timbre
        mix = metal * (0.3 + timbre * 0.7) + noise * (0.6 - timbre * 0.4)

        cutoff = 0.15 + timbre * 0.25
        q = 0.5 + timbre * 0.5
        f = min(cutoff * 2.0, 0.9)

        hp = mix - self._svf_low - q * self._svf_band
        self._svf_band += f * hp
        self._svf_low += f * self._svf_band
        return hp * self._env