"""Synthesised kick drum: swept sine with click, drive and resonant low-pass."""

from __future__ import annotations

from dataclasses import dataclass, field

from .dsp import fast_soft_clip, lut_sin


@dataclass
class KickParams:
    """Kick controls, each 0..1."""

    tune: float = 0.5
    length: float = 0.4
    punch: float = 0.5
    drive: float = 0.0


@dataclass
class KickVoice:
    """A single kick drum voice rendering one sample per ``process`` call."""

    sample_rate: float
    params: KickParams = field(default_factory=KickParams)
    active: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._sr_inv = 1.0 / self.sample_rate
        self._env_gain = 0.0
        self._env_pitch = 0.0
        self._click_env = 0.0
        self._phase = 0.0
        self._svf_low = 0.0
        self._svf_band = 0.0
        self._dc_x1 = 0.0
        self._dc_y1 = 0.0
        self.set_params(self.params)

    @property
    def envelope(self) -> float:
        """Current amplitude envelope level."""
        return self._env_gain

    def set_params(self, params: KickParams) -> None:
        self.params = params
        self._base_freq = 35.0 + params.tune * 50.0
        self._gain_mul = 1.0 - (0.00025 + (1.0 - params.length) * 0.002)
        self._pitch_mul = 0.96
        self._sweep_amount = 150.0 + params.punch * 350.0
        self._drive_factor = 1.0 + params.drive * 4.0
        self._svf_q = 0.5 + params.punch * 0.4
        self._cutoff_base = 0.04 + params.drive * 0.08

    def trigger(self, velocity: float = 1.0) -> None:
        self.active = True
        self._phase = 0.0
        self._env_gain = velocity
        self._env_pitch = 1.0
        self._click_env = 1.0

    def process(self) -> float:
        if not self.active:
            return 0.0

        self._env_gain *= self._gain_mul
        self._env_pitch *= self._pitch_mul
        if self._env_gain < 0.001:
            self.active = False
            return 0.0

        pitch_env = self._env_pitch * self._env_pitch
        current_freq = self._base_freq + self._sweep_amount * pitch_env

        self._phase += current_freq * self._sr_inv
        if self._phase >= 1.0:
            self._phase -= 1.0

        sine = lut_sin(self._phase)
        shaped = sine * (1.0 + 0.5 * sine * sine)

        if self._click_env > 0.001:
            shaped += (
                self._click_env
                * (1.0 - 2.0 * self._phase)
                * (0.1 + self.params.punch * 0.4)
            )
            self._click_env *= 0.5

        out = fast_soft_clip(shaped * self._drive_factor) * self._env_gain

        f = min((self._cutoff_base + pitch_env * 0.05) * 2.0, 0.9)
        hp = out - self._svf_low - self._svf_q * self._svf_band
        self._svf_band += f * hp
        self._svf_low += f * self._svf_band
        out = self._svf_low

        y = out - self._dc_x1 + 0.995 * self._dc_y1
        self._dc_x1 = out
        self._dc_y1 = y
        return y