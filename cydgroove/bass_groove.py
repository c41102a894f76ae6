"""Generative bass line: scale-aware walker, groove modes, motifs, swing and slides."""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Callable, Optional, Protocol

from .voice_manager import VoiceID, VoiceManager

_MASK32 = 0xFFFFFFFF


class BassScale(IntEnum):
    MINOR = 0
    MAJOR = 1
    DORIAN = 2
    PHRYGIAN = 3


class GrooveMode(IntEnum):
    FOLLOW_KICK = 0
    OFFBEAT = 1
    RANDOM = 2
    MOTIF = 3


_SCALES: dict[BassScale, tuple[int, ...]] = {
    BassScale.MINOR: (0, 2, 3, 5, 7, 8, 10),
    BassScale.MAJOR: (0, 2, 4, 5, 7, 9, 11),
    BassScale.DORIAN: (0, 2, 3, 5, 7, 9, 10),
    BassScale.PHRYGIAN: (0, 1, 3, 5, 7, 8, 10),
}

# Scale degrees per [scale][motif][step]; -1 is a rest.
_MOTIF_DEGREES: tuple[tuple[tuple[int, ...], ...], ...] = (
    (
        (0, -1, 2, -1, 4, -1, 2, -1, 0, -1, 3, -1, 4, -1, 2, -1),
        (0, -1, 0, 2, -1, 3, -1, 2, 4, -1, 3, -1, 2, -1, 0, -1),
        (0, 2, -1, 3, -1, 4, -1, 3, 2, -1, 0, -1, 2, -1, 4, -1),
        (0, -1, 4, -1, 3, -1, 2, -1, 0, -1, 2, -1, 3, -1, 4, -1),
    ),
    (
        (0, -1, 2, -1, 4, -1, 5, -1, 4, -1, 2, -1, 0, -1, 2, -1),
        (0, -1, 0, 2, -1, 4, -1, 5, 4, -1, 2, -1, 1, -1, 0, -1),
        (0, 2, -1, 4, -1, 5, -1, 4, 2, -1, 0, -1, 1, -1, 2, -1),
        (0, -1, 5, -1, 4, -1, 2, -1, 0, -1, 1, -1, 2, -1, 4, -1),
    ),
    (
        (0, -1, 2, -1, 3, -1, 5, -1, 4, -1, 2, -1, 0, -1, 3, -1),
        (0, -1, 0, 2, -1, 3, -1, 5, 3, -1, 2, -1, 1, -1, 0, -1),
        (0, 2, -1, 3, -1, 5, -1, 4, 2, -1, 0, -1, 1, -1, 3, -1),
        (0, -1, 4, -1, 3, -1, 2, -1, 0, -1, 1, -1, 3, -1, 5, -1),
    ),
    (
        (0, -1, 1, -1, 3, -1, 4, -1, 3, -1, 1, -1, 0, -1, 1, -1),
        (0, -1, 0, 1, -1, 3, -1, 4, 3, -1, 1, -1, 0, -1, 1, -1),
        (0, 1, -1, 3, -1, 4, -1, 3, 1, -1, 0, -1, 1, -1, 3, -1),
        (0, -1, 4, -1, 3, -1, 1, -1, 0, -1, 1, -1, 3, -1, 4, -1),
    ),
)

_MOTIF_ACCENTS = (
    1.0, 0.0, 0.72, 0.0, 0.95, 0.0, 0.68, 0.0,
    0.88, 0.0, 0.74, 0.0, 0.92, 0.0, 0.80, 0.0,
)


class BassMidiSink(Protocol):
    def trigger_bass(self, midi_note: int, velocity: float, gate_ms: float) -> None: ...


def _equal_tempered(note: int) -> float:
    if not 0 <= note < 128:
        return 0.0
    return 440.0 * 2.0 ** ((note - 69) / 12.0)


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


@dataclass
class BassGrooveParams:
    """Harmony, rhythm and movement controls for the bass generator."""

    root_note: int = 36
    scale_type: BassScale = BassScale.MINOR
    octave_offset: int = 0
    mode: GrooveMode = GrooveMode.FOLLOW_KICK
    density: float = 0.05
    min_interval_ms: float = 9.0
    range: int = 5
    slide_prob: float = 0.3
    phrase_variation: float = 0.5
    swing: float = 0.0
    accent_prob: float = 0.3
    ghost_prob: float = 0.2
    motif_index: int = 0


class BassGroove:
    """Decides when and what the bass plays on each sequencer step."""

    def __init__(
        self,
        voices: VoiceManager,
        midi_out: Optional[BassMidiSink] = None,
        note_freq: Optional[Callable[[int], float]] = None,
        seed: Optional[int] = None,
    ) -> None:
        self._voices = voices
        self._midi_out = midi_out
        self._note_freq = note_freq or _equal_tempered
        self._params = BassGrooveParams()

        self.last_note = 36
        self._time_since_trigger_ms = 1000.0
        self._kick_received = False

        if seed is None:
            seed = random.getrandbits(32)
        seed &= _MASK32
        self._rng = seed or 0x5EEDCAFE

        self._scale = _SCALES[BassScale.MINOR]

        self._degree = 0
        self._octave = 0
        self._alt_state = False
        self._phrase_step = 0
        self._phrase_variant = 0

        self._pending_motif_degree: Optional[int] = None
        self._has_pending_trigger = False
        self._pending_accent = False
        self._pending_delay_ms = 0.0

    @property
    def params(self) -> BassGrooveParams:
        """A copy of the current parameters."""
        return replace(self._params)

    def update_params(self, params: BassGrooveParams) -> None:
        """Adopt new parameters, clamping each to its allowed range."""
        p = replace(params)
        p.density = _clamp(p.density, 0.0, 0.8)
        p.phrase_variation = _clamp(p.phrase_variation, 0.0, 1.0)
        p.swing = _clamp(p.swing, 0.0, 1.0)
        p.accent_prob = _clamp(p.accent_prob, 0.0, 1.0)
        p.ghost_prob = _clamp(p.ghost_prob, 0.0, 1.0)
        if p.motif_index >= 4:
            p.motif_index = 0
        try:
            p.mode = GrooveMode(p.mode)
        except ValueError:
            p.mode = GrooveMode.FOLLOW_KICK
        try:
            p.scale_type = BassScale(p.scale_type)
        except ValueError:
            p.scale_type = BassScale.MINOR
        self._params = p
        self._scale = _SCALES[p.scale_type]

    def on_kick(self) -> None:
        """Note that the kick fired, for the next tick's kick-following logic."""
        self._kick_received = True

    def on_tick(self, current_step: int) -> None:
        """Run the rhythm decision for one sequencer step."""
        p = self._params
        wrapped = current_step % 64
        self._phrase_step = wrapped % 16
        self._phrase_variant = (wrapped // 16) % 2
        self._alt_state = self._phrase_variant == 1

        has_kick = self._kick_received
        self._kick_received = False

        if self._time_since_trigger_ms < p.min_interval_ms:
            return

        is_down_beat = self._phrase_step == 0
        is_quarter = wrapped % 4 == 0
        is_offbeat = wrapped % 4 == 2
        swing_boost = 1.0 + p.swing * 0.8
        swing_beat_reduce = 1.0 - p.swing * 0.45
        is_even = (wrapped & 1) == 0

        if is_down_beat:
            prob = 0.95
            self._degree = 0
            self._octave = 0
        elif p.mode == GrooveMode.FOLLOW_KICK:
            if has_kick:
                prob = 0.78 + p.density * 0.22
            elif is_offbeat:
                prob = p.density * 0.55 * swing_boost
            else:
                prob = p.density * 0.28
        elif p.mode == GrooveMode.OFFBEAT:
            if is_quarter:
                prob = p.density * 0.2 * swing_beat_reduce
            elif is_offbeat:
                prob = p.density * 1.25 * swing_boost
            else:
                prob = p.density * 0.7
        else:
            prob = p.density
            if is_offbeat:
                prob *= swing_boost
            elif is_quarter:
                prob *= swing_beat_reduce
        prob = _clamp(prob, 0.0, 1.0)

        if p.mode == GrooveMode.MOTIF:
            step_idx = self._phrase_step & 0x0F
            motif_degree = _MOTIF_DEGREES[p.scale_type][p.motif_index & 0x03][step_idx]
            if motif_degree >= 0:
                self._pending_motif_degree = motif_degree
                accent = _MOTIF_ACCENTS[step_idx] >= 0.85 or is_down_beat
                self._schedule(accent, is_even)
            return

        if self._random_unit() < prob:
            accent = (
                is_down_beat
                or is_quarter
                or self._random_unit() < p.accent_prob
            )
            self._schedule(accent, is_even)

    def process(self, dt_ms: float) -> None:
        """Advance time by ``dt_ms`` and fire a swung note once its delay has passed."""
        self._time_since_trigger_ms += dt_ms
        if not self._has_pending_trigger:
            return
        self._pending_delay_ms -= dt_ms
        if self._pending_delay_ms > 0.0:
            return
        accent = self._pending_accent
        self._has_pending_trigger = False
        self._pending_accent = False
        self._pending_delay_ms = 0.0
        self._trigger(accent)

    # ---- internals ----------------------------------------------------

    def _schedule(self, accent: bool, is_even: bool) -> None:
        swing = self._params.swing
        if is_even and swing > 0.01:
            self._has_pending_trigger = True
            self._pending_accent = accent
            self._pending_delay_ms = swing * 80.0
        else:
            self._trigger(accent)

    def _xorshift(self) -> int:
        s = self._rng
        s ^= (s << 13) & _MASK32
        s ^= s >> 17
        s ^= (s << 5) & _MASK32
        self._rng = s
        return s

    def _random_unit(self) -> float:
        return self._xorshift() / 4294967295.0

    def _trigger(self, force_accent: bool) -> None:
        p = self._params
        note = self._generate_note()
        freq = self._note_freq(note)

        slide = self._random_unit() < p.slide_prob
        if p.slide_prob <= 0.01:
            slide = False

        ghost = (not force_accent) and self._random_unit() < p.ghost_prob
        if ghost:
            velocity = 0.35 + self._random_unit() * 0.2
        elif force_accent:
            velocity = 0.9 + self._random_unit() * 0.1
        else:
            velocity = 0.6 + self._random_unit() * 0.3

        if slide and self._voices.is_voice_active(VoiceID.BASS):
            self._voices.set_freq(VoiceID.BASS, freq)
        else:
            self._voices.trigger_freq(VoiceID.BASS, freq, velocity)

        gate_ms = 90.0 + self._voices.get_params(VoiceID.BASS).decay * 510.0
        if slide:
            gate_ms += 80.0
        if force_accent:
            gate_ms += 120.0
        gate_ms = _clamp(gate_ms, 60.0, 1200.0)
        if self._midi_out is not None:
            self._midi_out.trigger_bass(note, velocity, gate_ms)

        self.last_note = note
        self._time_since_trigger_ms = 0.0

    def _generate_note(self) -> int:
        p = self._params
        scale = self._scale
        n = len(scale)

        if self._pending_motif_degree is not None:
            degree = self._pending_motif_degree % n
            self._pending_motif_degree = None
            self._degree = degree
            self._octave = 0
            note = p.root_note + scale[degree] + p.octave_offset * 12
            return int(_clamp(note, 0, 127))

        range_semitones = max(p.range, 0)

        def semitones_for_span(span: int) -> int:
            if span <= 0:
                return 0
            octs, deg = divmod(span, n)
            return octs * 12 + scale[deg]

        max_span = 0
        while semitones_for_span(max_span + 1) <= range_semitones:
            max_span += 1

        current = self._octave * n + self._degree
        candidate = current

        var = p.phrase_variation
        is_closure = self._phrase_step == 15
        prefer_cadence = is_closure or (
            self._phrase_variant == 1 and self._phrase_step >= 12
        )
        stable_bias = int(30.0 * var) if prefer_cadence else 0

        r = self._xorshift() % 100
        if r < 50 + stable_bias:
            root_chance = 50 + int(35.0 * var)
            if self._xorshift() % 100 < root_chance:
                candidate = self._octave * n
            else:
                candidate = self._octave * n + 4
        elif r < 80 + int(10.0 * var):
            step = 1 if self._xorshift() & 1 else -1
            if self._alt_state and self._random_unit() < 0.25 + 0.35 * var:
                step = -step
            candidate = current + step
        else:
            jump = self._xorshift() % 3 + 2
            candidate = current + (-jump if self._alt_state and var > 0.2 else jump)

        if is_closure and self._random_unit() < 0.7 + 0.25 * var:
            candidate = self._octave * n
            if self._random_unit() < 0.45 - 0.25 * var:
                candidate = self._octave * n + 4

        delta = int(_clamp(candidate - current, -max_span, max_span))
        candidate = int(_clamp(current + delta, -max_span, max_span))

        self._octave, self._degree = divmod(candidate, n)

        note = p.root_note + scale[self._degree] + (self._octave + p.octave_offset) * 12
        return int(_clamp(note, 0, 127))