"""Monophonic bass voice: saw/triangle/sub oscillator with glide and resonant low-pass."""

from __future__ import annotations

from dataclasses import dataclass

from .dsp import lut_sin


@dataclass
class BassParams:
    """Bass controls: ``freq`` in Hz, the rest 0..1."""

    freq: float = 55.0
    release: float = 0.5
    brightness: float = 0.5
    harmonics: float = 0.5
    drive: float = 0.5
    snap: float = 0.5


class BassVoice:
    """A bass voice with legato glide, rendering one sample per ``process`` call."""

    def __init__(self, sample_rate: float) -> None:
        self._sr_inv = 1.0 / sample_rate
        self.active = False
        self.legato = False
        self._current_freq = 0.0
        self._phase = 0.0
        self._sub_phase = 0.0
        self._svf_low = 0.0
        self._svf_band = 0.0
        self._env = 0.0
        self._filt_env = 0.0
        self._xm1 = 0.0
        self._ym1 = 0.0
        self.params = BassParams()
        self.set_params(self.params)

    def set_params(self, params: BassParams) -> None:
        """Copy the controls in; a frequency at or below 0.01 Hz leaves the pitch alone."""
        own = self.params
        if params.freq > 0.01:
            own.freq = params.freq
        own.release = params.release
        own.brightness = params.brightness
        own.harmonics = params.harmonics
        own.drive = params.drive
        own.snap = params.snap

        self._glide_rate = 0.0005 + own.brightness * 0.003
        r_factor = 1.0 - own.release
        self._env_mul = 1.0 - (0.00005 + r_factor * 0.002)
        self._drive_gain = 1.0 + own.drive * 2.5
        self._cutoff_base = 0.05 + own.brightness * 0.4

    def trigger(self, velocity: float = 1.0, freq: float | None = None) -> None:
        """Start a note; retriggering while sounding slides instead of restarting."""
        if freq is not None:
            self.params.freq = freq

        was_active = self.active
        self.active = True
        self._env = velocity

        p = self.params
        dyn_snap = p.snap * (0.5 + velocity * 0.5)
        self._filt_env = velocity * dyn_snap
        self._drive_gain = 1.0 + p.drive * 2.5 * (0.8 + velocity * 0.4)

        if not was_active:
            self._current_freq = p.freq
            self._phase = 0.0
            self._sub_phase = 0.0
            self._svf_low = 0.0
            self._svf_band = 0.0
            self._xm1 = 0.0
            self._ym1 = 0.0

        if velocity > 0.8:
            effective_release = p.release * 0.5 + 0.5
        else:
            effective_release = p.release * 0.8
        effective_release = min(effective_release, 0.99)
        self._env_mul = 1.0 - (0.00005 + (1.0 - effective_release) * 0.002)

        self.legato = was_active
        if freq is not None and not self.legato:
            self._current_freq = freq

    def set_freq(self, freq: float) -> None:
        """Glide to a new pitch without retriggering, lifting a faded envelope."""
        self.params.freq = freq
        self.legato = True
        if self._env < 0.2:
            self._env = 0.5

    def process(self) -> float:
        if not self.active:
            return 0.0

        self._env *= self._env_mul
        if self._env < 0.001:
            self.active = False
            return 0.0

        p = self.params
        self._current_freq += (p.freq - self._current_freq) * self._glide_rate

        delta = self._current_freq * self._sr_inv
        self._phase += delta
        if self._phase >= 1.0:
            self._phase -= 1.0
        self._sub_phase += delta * 0.5
        if self._sub_phase >= 1.0:
            self._sub_phase -= 1.0

        saw = 2.0 * self._phase - 1.0
        tri = 2.0 * abs(saw) - 1.0
        sub = lut_sin(self._sub_phase)

        pd = sub * p.harmonics * 0.3 if p.harmonics > 0.01 else 0.0
        p_dist = self._phase + pd
        if p_dist >= 1.0:
            p_dist -= 1.0
        if p_dist < 0.0:
            p_dist += 1.0
        saw_dist = 2.0 * p_dist - 1.0

        osc = saw_dist * 0.4 + tri * 0.1 + sub * 0.5

        self._filt_env += (self._env - self._filt_env) * 0.15

        cutoff = min(max(self._cutoff_base + self._filt_env * p.snap, 0.01), 0.99)
        q = 0.7 + p.brightness * 0.8
        f = cutoff * 0.5

        signal = osc * self._drive_gain
        if signal < -1.5:
            driven = -1.0
        elif signal > 1.5:
            driven = 1.0
        else:
            driven = signal - (0.1481 * signal * signal * signal)

        hp = driven - self._svf_low - q * self._svf_band
        self._svf_band += f * hp
        self._svf_low += f * self._svf_band
        filtered = self._svf_low

        out = filtered - self._xm1 + 0.995 * self._ym1
        self._xm1 = filtered
        self._ym1 = out
        return out