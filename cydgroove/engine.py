"""Sequencer engine: Euclidean tracks, preset slots, transport and UI actions."""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional

from .bass_groove import BassGroove, BassGrooveParams, BassScale, GrooveMode
from .dsp import init_lut
from .midi_out import MidiOutEngine
from .presets import (
    BASS_ROOT_NOTE_MAX,
    BASS_ROOT_NOTE_MIN,
    BOOT_SLOT_COUNT,
    SLOT_COUNT,
    PresetData,
    SlotStore,
    bass_midi_to_root_class,
    bass_root_note_to_normalized_pitch,
    bass_scale_from_global,
    factory_preset,
    global_scale_from_bass,
    normalized_pitch_to_bass_root_note,
)
from .voice_manager import VOICE_COUNT, VoiceID, VoiceManager, VoiceParam, VoiceParams

TRACK_COUNT = VOICE_COUNT
MAX_STEPS = 64
DEFAULT_SAMPLE_RATE = 44100.0

_GHOST_TRACKS = (1, 2, 3)

# Bass control indices beyond the plain 0..10 range.
_BASS_MOTIF_INDEX = 11
_BASS_SWING = 12
_BASS_GHOST_PROB = 13
_BASS_ACCENT_PROB = 14


def _clamp(value, low, high):
    return min(max(value, low), high)


class UiMode(IntEnum):
    PATTERN_EDIT = 0
    PERFORMANCE = 1
    SOUND_EDIT = 2
    MIXER = 3
    SYSTEM = 4


class UiActionType(IntEnum):
    TOGGLE_PLAY = 0
    CHANGE_MODE = 1
    SELECT_TRACK = 2
    TOGGLE_MUTE = 3
    SET_BPM = 4
    NUDGE_BPM = 5
    SET_STEPS = 6
    SET_HITS = 7
    SET_ROTATION = 8
    SET_BASS_PARAM = 9
    SET_SOUND_PARAM = 10
    SET_VOICE_GAIN = 11
    SET_MASTER_GAIN = 12
    RANDOMIZE_TRACK = 13
    SAVE_SLOT = 14
    LOAD_SLOT = 15


@dataclass(frozen=True)
class UiAction:
    """A request from the user interface: what to do, on which index, with what value."""

    type: UiActionType
    index: int = 0
    value: int = 0


@dataclass
class Track:
    """One sequencer track: Euclidean settings, its rendered pattern and sound controls."""

    steps: int = 16
    hits: int = 4
    pattern: list[int] = field(default_factory=list)
    rotation_offset: int = 0
    decay: float = 0.5
    pitch: float = 0.5
    color: float = 0.5
    drive: float = 0.0
    snap: float = 0.0
    harmonics: float = 0.0

    @property
    def pattern_len(self) -> int:
        return len(self.pattern)


def euclidean_pattern(steps: int, hits: int) -> list[int]:
    """Spread ``hits`` onsets as evenly as possible over ``steps`` (1 = hit, 0 = rest)."""
    if steps <= 0:
        return []
    if hits <= 0:
        return [0] * steps
    if hits >= steps:
        return [1] * steps
    pattern = []
    bucket = 0
    for _ in range(steps):
        bucket += hits
        if bucket >= steps:
            bucket -= steps
            pattern.append(1)
        else:
            pattern.append(0)
    return pattern


def _fit_root(reference_note: int, root_class: int) -> int:
    """Root note of ``root_class`` near ``reference_note``'s octave, inside the bass range."""
    candidate = (reference_note // 12) * 12 + root_class % 12
    while candidate < BASS_ROOT_NOTE_MIN:
        candidate += 12
    while candidate > BASS_ROOT_NOTE_MAX:
        candidate -= 12
    return _clamp(candidate, BASS_ROOT_NOTE_MIN, BASS_ROOT_NOTE_MAX)


_TRACK_FIELD_FOR_PARAM = {
    VoiceParam.PITCH: "pitch",
    VoiceParam.DECAY: "decay",
    VoiceParam.TIMBRE: "color",
    VoiceParam.DRIVE: "drive",
}

_FULL_PARAM_MAP = (VoiceParam.PITCH, VoiceParam.DECAY, VoiceParam.TIMBRE, VoiceParam.DRIVE)
_SHORT_PARAM_MAP = (VoiceParam.PITCH, VoiceParam.DECAY, VoiceParam.TIMBRE)


class Engine:
    """Owns tracks, slots, voices, the bass generator and MIDI out."""

    def __init__(
        self,
        store: Optional[SlotStore] = None,
        sample_rate: float = DEFAULT_SAMPLE_RATE,
        seed: Optional[int] = None,
    ) -> None:
        self.store = store
        self.sample_rate = sample_rate
        self._rng = random.Random(seed)
        self._lock = threading.RLock()

        self.tracks = [Track() for _ in range(TRACK_COUNT)]
        self.slots: list[PresetData] = [factory_preset(i) for i in range(SLOT_COUNT)]
        self.track_versions = [0] * TRACK_COUNT
        self.track_mutes = [False] * TRACK_COUNT

        self.bpm = 80
        self.is_playing = True
        self.global_root = 0
        self.global_scale = 0
        self.current_step = 0
        self.ui_mode = UiMode.PATTERN_EDIT
        self.last_mode = UiMode.PATTERN_EDIT
        self.ui_active_track = 0
        self.ui_active_param_index = 0
        self.is_param_edit_mode = False
        self.ui_active_pattern_attribute = 0
        self.engine_ready = False
        self.master_volume = 1.0
        self.is_shift_held = False
        self.auto_rotate_downbeat = False
        self._boot_counter = 0

        self._note_freqs = [440.0 * 2.0 ** ((i - 69) / 12.0) for i in range(128)]
        self.midi_out = MidiOutEngine()
        self.voices = VoiceManager(sample_rate, seed)
        self.bass_groove = BassGroove(self.voices, self.midi_out, self.note_freq, seed)
        self._apply_default_bass()

    # ---- setup ----------------------------------------------------------

    def _apply_default_bass(self) -> None:
        params = BassGrooveParams(
            root_note=36,
            scale_type=BassScale.MINOR,
            octave_offset=0,
            mode=GrooveMode.FOLLOW_KICK,
            density=0.6,
            min_interval_ms=150.0,
            range=7,
            slide_prob=0.2,
            phrase_variation=0.6,
            motif_index=0,
            swing=0.25,
            accent_prob=0.32,
            ghost_prob=0.18,
        )
        self.bass_groove.update_params(params)
        self.global_root = bass_midi_to_root_class(params.root_note)
        self.global_scale = global_scale_from_bass(params.scale_type)
        self._set_bass_voice_pitch(params.root_note)

    def boot(self) -> int:
        """Prepare tables, advance the boot counter and bring up its slot; returns the slot."""
        init_lut()
        self.midi_out.reset()
        if self.store is not None:
            slot = self.store.next_boot_slot()
        else:
            self._boot_counter = (self._boot_counter + 1) % BOOT_SLOT_COUNT
            slot = self._boot_counter
        self.load_slot(slot)
        self.apply_slot_to_active(slot)
        self.engine_ready = True
        return slot

    def pattern_lock(self) -> threading.RLock:
        """Re-entrant lock guarding the track patterns; use it as a context manager."""
        return self._lock

    def note_freq(self, note: int) -> float:
        """Equal-tempered frequency of a MIDI note, or 0.0 outside 0..127."""
        if not 0 <= note < 128:
            return 0.0
        return self._note_freqs[note]

    def tick_interval_us(self) -> int:
        """Sixteenth-note period in microseconds for the current tempo (clamped 30..300)."""
        bpm = _clamp(self.bpm, 30, 300)
        return 60_000_000 // (bpm * 4)

    # ---- patterns -------------------------------------------------------

    def recalculate_pattern(self, track_id: int) -> None:
        with self._lock:
            self._recalculate_unlocked(track_id)

    def _recalculate_unlocked(self, track_id: int) -> None:
        if not 0 <= track_id < TRACK_COUNT:
            return
        track = self.tracks[track_id]
        if track.steps > MAX_STEPS:
            track.steps = MAX_STEPS
        steps, hits = track.steps, track.hits

        pattern = euclidean_pattern(steps, hits)
        length = len(pattern)

        if self.auto_rotate_downbeat and length > 0 and 0 < hits < steps:
            first = pattern.index(1)
            pattern = pattern[first:] + pattern[:first]

        if length > 0 and track.rotation_offset != 0:
            rot = track.rotation_offset % length
            if rot:
                pattern = pattern[-rot:] + pattern[:-rot]

        self.track_versions[track_id] += 1

        rendered = []
        first_hit = True
        for value in pattern:
            if value:
                base = 127 if first_hit else 85
                first_hit = False
                hum = self._rng.randrange(11) - 5
                rendered.append(_clamp(base + hum, 1, 127))
            elif track_id in _GHOST_TRACKS and self._rng.randrange(100) < 15:
                rendered.append(20 + self._rng.randrange(15))
            else:
                rendered.append(0)
        track.pattern = rendered

        self.track_versions[track_id] += 1

    def randomize(self) -> None:
        """Nudge every track's hit count by up to two and re-render all patterns."""
        with self._lock:
            for track in self.tracks:
                track.hits = _clamp(track.hits + self._rng.randrange(5) - 2, 0, max(track.steps, 0))
                length = track.pattern_len
                if length > 0:
                    r = self._rng.randrange(length)
                    if r:
                        track.pattern = track.pattern[-r:] + track.pattern[:-r]
            for i in range(TRACK_COUNT):
                self._recalculate_unlocked(i)

    # ---- slots ----------------------------------------------------------

    def _capture_active_to_slot(self, slot_id: int) -> None:
        slot = self.slots[slot_id]
        for i, track in enumerate(self.tracks):
            slot.t_hits[i] = track.hits
            slot.t_steps[i] = track.steps
            vp = self.voices.get_params(i)
            slot.synth_pitch[i] = vp.pitch
            slot.synth_decay[i] = vp.decay
            slot.synth_timbre[i] = vp.timbre
            slot.synth_drive[i] = vp.drive
            slot.synth_snap[i] = vp.snap
            slot.synth_harmonics[i] = vp.harmonics
        slot.root = self.global_root
        slot.scale = self.global_scale
        bg = self.bass_groove.params
        slot.bass_density = bg.density
        slot.bass_range = bg.range
        slot.bass_mode = int(bg.mode)
        slot.bass_motif_index = bg.motif_index
        slot.bass_swing = bg.swing
        slot.bass_accent_prob = bg.accent_prob
        slot.bass_ghost_prob = bg.ghost_prob
        slot.bass_phrase_variation = bg.phrase_variation
        slot.snare_mode = self.voices.get_params(VoiceID.SNARE).mode
        slot.bpm = self.bpm

    def save_slot(self, slot_id: int, capture: bool = True) -> None:
        """Optionally capture the live state into a slot, then persist it."""
        if not 0 <= slot_id < SLOT_COUNT:
            return
        if capture:
            self._capture_active_to_slot(slot_id)
        if self.store is not None:
            self.store.save(slot_id, self.slots[slot_id])

    def load_slot(self, slot_id: int) -> None:
        """Read a slot from the store, falling back to its factory preset."""
        if not 0 <= slot_id < SLOT_COUNT:
            return
        if self.store is not None:
            self.slots[slot_id] = self.store.load(slot_id)
        else:
            self.slots[slot_id] = factory_preset(slot_id)

    def load_all_slots(self) -> None:
        for slot_id in range(SLOT_COUNT):
            self.load_slot(slot_id)

    def apply_slot_to_active(self, slot_id: int) -> None:
        """Make a slot the live state: tracks, voices, key and bass groove."""
        if not 0 <= slot_id < SLOT_COUNT:
            return
        slot = self.slots[slot_id]
        with self._lock:
            self.global_root = slot.root
            self.global_scale = slot.scale

            for i, track in enumerate(self.tracks):
                track.hits = slot.t_hits[i]
                track.steps = slot.t_steps[i]
                self.voices.set_params(
                    i,
                    VoiceParams(
                        pitch=slot.synth_pitch[i],
                        decay=slot.synth_decay[i],
                        timbre=slot.synth_timbre[i],
                        mode=slot.snare_mode if i == VoiceID.SNARE else 0,
                        drive=slot.synth_drive[i],
                        snap=slot.synth_snap[i],
                        harmonics=slot.synth_harmonics[i],
                    ),
                )

            bg = self.bass_groove.params
            reference = normalized_pitch_to_bass_root_note(slot.synth_pitch[VoiceID.BASS])
            bg.root_note = _fit_root(reference, slot.root)
            bg.scale_type = bass_scale_from_global(slot.scale)
            bg.density = slot.bass_density
            bg.range = slot.bass_range
            bg.mode = slot.bass_mode
            bg.motif_index = slot.bass_motif_index & 0x03
            bg.swing = slot.bass_swing
            bg.accent_prob = slot.bass_accent_prob
            bg.ghost_prob = slot.bass_ghost_prob
            bg.phrase_variation = slot.bass_phrase_variation
            self.bass_groove.update_params(bg)
            self.sync_globals_from_bass_groove()

            for i in range(TRACK_COUNT):
                self._recalculate_unlocked(i)

    # ---- bass / key sync ------------------------------------------------

    def _set_bass_voice_pitch(self, root_note: int) -> None:
        params = self.voices.get_params(VoiceID.BASS)
        params.pitch = bass_root_note_to_normalized_pitch(root_note)
        self.voices.set_params(VoiceID.BASS, params)

    def sync_bass_groove_from_globals(self) -> None:
        """Move the bass root and scale to the global key."""
        bp = self.bass_groove.params
        bp.root_note = _fit_root(bp.root_note, self.global_root)
        bp.scale_type = bass_scale_from_global(self.global_scale)
        self.bass_groove.update_params(bp)
        self._set_bass_voice_pitch(bp.root_note)

    def sync_globals_from_bass_groove(self) -> None:
        """Take the global key from the bass root and scale."""
        bp = self.bass_groove.params
        self.global_root = bass_midi_to_root_class(bp.root_note)
        self.global_scale = global_scale_from_bass(bp.scale_type)
        self._set_bass_voice_pitch(bp.root_note)

    def sync_bass_groove_from_voice_pitch(self, normalized_pitch: float) -> None:
        bp = self.bass_groove.params
        bp.root_note = normalized_pitch_to_bass_root_note(normalized_pitch)
        self.bass_groove.update_params(bp)
        self.sync_globals_from_bass_groove()

    # ---- transport ------------------------------------------------------

    def play(self) -> None:
        if not self.is_playing:
            self.current_step = 0
            self.is_playing = True
            self.midi_out.send_transport_start()

    def stop(self) -> None:
        if self.is_playing:
            self.is_playing = False
            self.midi_out.send_transport_stop()
            self.midi_out.all_notes_off()

    # ---- UI actions -----------------------------------------------------

    def handle_ui_action(self, action: UiAction) -> None:
        kind = action.type
        value = action.value

        if kind == UiActionType.TOGGLE_PLAY:
            if value == 0:
                self.stop() if self.is_playing else self.play()
            elif value == 1:
                self.play()
            else:
                self.stop()
        elif kind == UiActionType.CHANGE_MODE:
            self.ui_mode = UiMode(value)
        elif kind == UiActionType.SELECT_TRACK:
            self.ui_active_track = _clamp(value, 0, TRACK_COUNT - 1)
        elif kind == UiActionType.TOGGLE_MUTE:
            track = _clamp(value, 0, TRACK_COUNT - 1)
            self.track_mutes[track] = not self.track_mutes[track]
        elif kind in (UiActionType.SET_BPM, UiActionType.NUDGE_BPM):
            next_bpm = value if kind == UiActionType.SET_BPM else self.bpm + value
            self.bpm = _clamp(next_bpm, 40, 240)
        elif kind in (UiActionType.SET_STEPS, UiActionType.SET_HITS, UiActionType.SET_ROTATION):
            self._edit_track_rhythm(kind, _clamp(action.index, 0, TRACK_COUNT - 1), value)
        elif kind == UiActionType.SET_BASS_PARAM:
            self._set_bass_control(action.index, value)
        elif kind == UiActionType.SET_SOUND_PARAM:
            self.ui_active_param_index = action.index
            self._set_voice_param_normalized(self.ui_active_track, action.index, value / 100.0)
        elif kind == UiActionType.SET_VOICE_GAIN:
            self.voices.set_voice_gain(_clamp(action.index, 0, TRACK_COUNT - 1), value / 100.0)
        elif kind == UiActionType.SET_MASTER_GAIN:
            self.voices.set_master_volume(_clamp(value, 0, 100) / 100.0)
        elif kind == UiActionType.RANDOMIZE_TRACK:
            self._randomize_track(_clamp(action.index, 0, TRACK_COUNT - 1))

    def _edit_track_rhythm(self, kind: UiActionType, track_id: int, value: int) -> None:
        with self._lock:
            track = self.tracks[track_id]
            if kind == UiActionType.SET_STEPS:
                track.steps = _clamp(value, 1, MAX_STEPS)
                track.hits = _clamp(track.hits, 0, track.steps)
            elif kind == UiActionType.SET_HITS:
                track.hits = _clamp(value, 0, track.steps)
            else:
                track.rotation_offset = _clamp(value, 0, max(0, track.steps - 1))
            self._recalculate_unlocked(track_id)

    def _randomize_track(self, track_id: int) -> None:
        with self._lock:
            track = self.tracks[track_id]
            steps = _clamp(track.steps, 1, MAX_STEPS)
            min_hits = 1 if track_id == VoiceID.BASS else 0
            track.hits = min_hits + self._rng.randrange(steps - min_hits + 1)
            track.rotation_offset = self._rng.randrange(steps)
            self._recalculate_unlocked(track_id)

    def _set_voice_param_normalized(self, track_id: int, param_idx: int, normalized: float) -> None:
        if not 0 <= track_id < TRACK_COUNT:
            return
        value = _clamp(normalized, 0.0, 1.0)
        mapping = (
            _FULL_PARAM_MAP
            if track_id in (VoiceID.KICK, VoiceID.BASS)
            else _SHORT_PARAM_MAP
        )
        if not 0 <= param_idx < len(mapping):
            return
        target = mapping[param_idx]

        self.voices.set_param(track_id, target, value)
        setattr(self.tracks[track_id], _TRACK_FIELD_FOR_PARAM[target], value)

        if track_id == VoiceID.BASS and target == VoiceParam.PITCH:
            self.sync_bass_groove_from_voice_pitch(value)

    def _set_bass_control(self, param_idx: int, value: int) -> None:
        params = self.bass_groove.params
        clamped = _clamp(value, 0, 100)

        if param_idx == 0:
            params.density = _clamp(clamped / 100.0, 0.0, 1.0)
        elif param_idx == 1:
            params.range = _clamp(1 + clamped * 11 // 100, 1, 12)
        elif param_idx == 2:
            params.scale_type = BassScale(_clamp(clamped * 4 // 100, 0, 3))
        elif param_idx == 3:
            params.root_note = _clamp(
                24 + clamped * 24 // 100, BASS_ROOT_NOTE_MIN, BASS_ROOT_NOTE_MAX
            )
        elif param_idx == 4:
            params.mode = GrooveMode(_clamp(int(value * 4 / 100), 0, 3))
        elif param_idx == 5:
            params.motif_index = _clamp(int(value * 4 / 100), 0, 3)
        elif param_idx == 6:
            params.swing = _clamp(value / 100.0, 0.0, 1.0)
        elif param_idx == 7:
            params.accent_prob = _clamp(value / 100.0, 0.0, 1.0)
        elif param_idx == 8:
            params.ghost_prob = _clamp(value / 100.0, 0.0, 1.0)
        elif param_idx == 9:
            params.phrase_variation = _clamp(value / 100.0, 0.0, 1.0)
        elif param_idx == 10:
            params.slide_prob = _clamp(value / 100.0, 0.0, 1.0)
        elif param_idx == _BASS_MOTIF_INDEX:
            params.motif_index = _clamp(clamped * 4 // 100, 0, 3)
            params.mode = GrooveMode.MOTIF
        elif param_idx == _BASS_SWING:
            params.swing = clamped / 100.0
        elif param_idx == _BASS_GHOST_PROB:
            params.ghost_prob = clamped / 100.0
        elif param_idx == _BASS_ACCENT_PROB:
            params.accent_prob = clamped / 100.0
        else:
            return

        self.bass_groove.update_params(params)
        self.sync_globals_from_bass_groove()