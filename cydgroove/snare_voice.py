"""Synthesised snare with rim-shot and hand-clap modes."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass

from .dsp import lut_sin

MODE_SNARE = 0
MODE_RIM = 1
MODE_CLAP = 2

_MASK32 = 0xFFFFFFFF


def _env_mul(ms: float, sr_inv: float) -> float:
    """Per-sample multiplier that decays to -60 dB over ``ms`` milliseconds."""
    ms = max(ms, 0.1)
    return math.exp(-6907.8 * sr_inv / ms)


def _fast_sat(x: float) -> float:
    if x < -1.5:
        return -1.0
    if x > 1.5:
        return 1.0
    return x - (0.296 * x * x * x)


@dataclass
class SnareParams:
    """Snare controls: tone, decay, timbre in 0..1; mode 0=snare, 1=rim, 2=clap."""

    tone: float = 0.5
    decay: float = 0.5
    timbre: float = 0.5
    mode: int = MODE_SNARE


class SnareVoice:
    """A snare/rim/clap voice rendering one sample per ``process`` call."""

    def __init__(self, sample_rate: float, seed: int | None = None) -> None:
        self._sr_inv = 1.0 / sample_rate
        self.active = False
        if seed is None:
            seed = random.getrandbits(32) or 1
        self._rng = seed & _MASK32
        self.params = SnareParams()

        self._env_body = self._env_mul_body = 0.0
        self._env_noise = self._env_mul_noise = 0.0
        self._env_click = self._env_mul_click = 0.0
        self._env_pitch = self._env_mul_pitch = 0.0
        self._env_rim = self._env_mul_rim = 0.0

        self._clap_burst_count = 0
        self._clap_burst_samples = 0
        self._clap_burst_envs = [0.0] * 4

        self._phase = self._phase_inc = 0.0
        self._phase2 = self._phase_inc2 = 0.0
        self._base_freq = 0.0

        self._click_gain = self._wire_gain = 0.0
        self._filter_c1 = self._filter_c2 = 0.0

        self._wire1 = self._wire2 = 0.0
        self._dc_x1 = self._dc_y1 = 0.0

    def set_params(self, params: SnareParams) -> None:
        self.params = params

    def _xorshift(self) -> int:
        s = self._rng
        s ^= (s << 13) & _MASK32
        s ^= s >> 17
        s ^= (s << 5) & _MASK32
        self._rng = s
        return s

    def _noise(self) -> float:
        return (self._xorshift() & 65535) / 32768.0 - 1.0

    def trigger(self, velocity: float = 1.0) -> None:
        self.active = True
        self._phase = 0.0
        self._phase2 = 0.0

        self._env_body = velocity
        self._env_noise = velocity
        self._env_click = velocity
        self._env_pitch = 1.0
        self._env_rim = velocity

        p = self.params
        dyn_decay = p.decay * (0.4 + velocity * 0.6)
        dyn_timbre = p.timbre * (0.5 + velocity * 0.5)
        dyn_tone = p.tone

        if p.mode == MODE_RIM:
            self._env_mul_rim = _env_mul(20.0 + dyn_decay * 100.0, self._sr_inv)
            self._phase_inc = (800.0 + dyn_tone * 1200.0) * self._sr_inv
        elif p.mode == MODE_CLAP:
            self._env_mul_noise = _env_mul(100.0 + dyn_decay * 300.0, self._sr_inv)
            self._wire1 = 0.0
            self._clap_burst_count = 4
            self._clap_burst_samples = 0
            self._clap_burst_envs = [velocity, 0.0, 0.0, 0.0]
        else:
            self._env_mul_body = _env_mul(80.0 + dyn_decay * 170.0, self._sr_inv)
            self._env_mul_noise = _env_mul(60.0 + dyn_decay * 390.0, self._sr_inv)
            self._env_mul_click = _env_mul(1.5 + dyn_timbre * 1.5, self._sr_inv)
            self._env_mul_pitch = _env_mul(15.0, self._sr_inv)

            self._base_freq = 170.0 + dyn_tone * 70.0 + velocity * 20.0
            self._phase_inc = self._base_freq * self._sr_inv
            self._phase_inc2 = self._base_freq * 1.48 * self._sr_inv

            self._filter_c1 = 0.12 + dyn_timbre * 0.10
            self._filter_c2 = 0.28 + dyn_timbre * 0.15
            self._wire_gain = 1.0 + dyn_timbre * 0.8
            self._click_gain = 0.5 + dyn_timbre * 1.0

    def process(self) -> float:
        if not self.active:
            return 0.0

        mode = self.params.mode
        if mode == MODE_SNARE:
            out = self._render_snare()
        elif mode == MODE_RIM:
            out = self._render_rim()
        else:
            out = self._render_clap()

        y = out - self._dc_x1 + 0.995 * self._dc_y1
        self._dc_x1 = out
        self._dc_y1 = y
        return y

    def _render_snare(self) -> float:
        self._env_body *= self._env_mul_body
        self._env_noise *= self._env_mul_noise
        self._env_click *= self._env_mul_click
        self._env_pitch *= self._env_mul_pitch

        if self._env_body < 0.001 and self._env_noise < 0.001:
            self.active = False
            return 0.0

        snap = self._env_pitch * self._env_pitch
        self._phase += self._phase_inc * (1.0 + snap * 0.5)
        if self._phase >= 1.0:
            self._phase -= 1.0
        self._phase2 += self._phase_inc2
        if self._phase2 >= 1.0:
            self._phase2 -= 1.0

        m = lut_sin(self._phase) * 0.65 + lut_sin(self._phase2) * 0.35
        m += m * m * 0.2
        membrane = _fast_sat(m * self._env_body * 1.1)

        click = 0.0
        if self._env_click > 0.001:
            click = _fast_sat(
                self._env_click * (1.0 - 2.0 * self._phase) * self._click_gain
            )

        n = self._noise()
        self._wire1 += (n - self._wire1) * self._filter_c1
        self._wire2 += (n - self._wire2) * self._filter_c2
        wire = (self._wire2 - self._wire1) * self._env_noise * self._wire_gain

        return _fast_sat(membrane * 0.9 + wire + click * 0.6)

    def _render_rim(self) -> float:
        self._env_rim *= self._env_mul_rim
        if self._env_rim < 0.001:
            self.active = False
            return 0.0

        self._phase += self._phase_inc
        if self._phase >= 1.0:
            self._phase -= 1.0

        tone = lut_sin(self._phase)
        n = self._noise()
        return _fast_sat((tone * 0.8 + n * 0.2) * self._env_rim * 2.0)

    def _render_clap(self) -> float:
        self._env_noise *= self._env_mul_noise

        bursts = self._clap_burst_envs
        if all(e <= 0.001 for e in bursts) and self._env_noise < 0.001:
            self.active = False
            return 0.0

        if self._clap_burst_samples > 0:
            self._clap_burst_samples -= 1
        elif self._clap_burst_count > 0:
            burst_idx = 4 - self._clap_burst_count
            if burst_idx < 4:
                bursts[burst_idx] = self._env_noise * (0.9 - burst_idx * 0.15)
            self._clap_burst_count -= 1
            base_spacing = 900 - (4 - self._clap_burst_count) * 150
            self._clap_burst_samples = base_spacing + (self._xorshift() % 200)

        self._wire1 += (self._noise() - self._wire1) * 0.35

        burst_sum = 0.0
        for i, env in enumerate(bursts):
            if env > 0.001:
                burst_sum += self._wire1 * env
                bursts[i] = env * 0.92

        return _fast_sat(burst_sum * 2.0)