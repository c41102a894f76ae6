"""Pattern presets: factory slots, bass root/scale mappings and persistent slot storage."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Union

from .bass_groove import BassScale, GrooveMode
from .voice_manager import VOICE_COUNT, VoiceID

TRACK_COUNT = VOICE_COUNT
SLOT_COUNT = 16
BOOT_SLOT_COUNT = 6
BASS_ROOT_NOTE_MIN = 24
BASS_ROOT_NOTE_MAX = 48


def _per_track(value: Any):
    return field(default_factory=lambda: [value] * TRACK_COUNT)


@dataclass
class PresetData:
    """Everything a slot remembers: rhythm per track, voice sound, key and bass groove."""

    t_hits: list[int] = _per_track(0)
    t_steps: list[int] = _per_track(16)
    synth_pitch: list[float] = _per_track(0.5)
    synth_decay: list[float] = _per_track(0.5)
    synth_timbre: list[float] = _per_track(0.0)
    synth_drive: list[float] = _per_track(0.0)
    synth_snap: list[float] = _per_track(0.0)
    synth_harmonics: list[float] = _per_track(0.0)
    root: int = 0
    scale: int = 0
    bass_density: float = 0.6
    bass_range: int = 7
    bass_mode: int = int(GrooveMode.FOLLOW_KICK)
    bass_motif_index: int = 0
    bass_swing: float = 0.25
    bass_accent_prob: float = 0.32
    bass_ghost_prob: float = 0.18
    bass_phrase_variation: float = 0.6
    snare_mode: int = 0
    bpm: int = 120


def _check_slot(slot_id: int) -> None:
    if not 0 <= slot_id < SLOT_COUNT:
        raise ValueError(f"slot {slot_id} out of range 0..{SLOT_COUNT - 1}")


def bass_root_class_to_midi(root_class: int) -> int:
    """MIDI note of a pitch class in the octave starting at C2."""
    return 36 + root_class % 12


def bass_midi_to_root_class(root_note: int) -> int:
    return root_note % 12


def bass_root_note_to_normalized_pitch(root_note: int) -> float:
    """Map a bass root note in 24..48 onto 0..1, clamping outside notes."""
    clamped = min(max(int(root_note), BASS_ROOT_NOTE_MIN), BASS_ROOT_NOTE_MAX)
    return (clamped - BASS_ROOT_NOTE_MIN) / (BASS_ROOT_NOTE_MAX - BASS_ROOT_NOTE_MIN)


def normalized_pitch_to_bass_root_note(normalized_pitch: float) -> int:
    """Map 0..1 onto the nearest bass root note in 24..48."""
    clamped = min(max(normalized_pitch, 0.0), 1.0)
    value = BASS_ROOT_NOTE_MIN + clamped * (BASS_ROOT_NOTE_MAX - BASS_ROOT_NOTE_MIN)
    return int(value + 0.5)


_GLOBAL_TO_BASS = {1: BassScale.MAJOR, 2: BassScale.DORIAN, 3: BassScale.PHRYGIAN}


def bass_scale_from_global(scale: int) -> BassScale:
    """Global scale index to bass scale; unknown indices give minor."""
    return _GLOBAL_TO_BASS.get(scale, BassScale.MINOR)


def global_scale_from_bass(scale: BassScale) -> int:
    return {
        BassScale.MAJOR: 1,
        BassScale.DORIAN: 2,
        BassScale.PHRYGIAN: 3,
    }.get(scale, 0)


def factory_preset(slot_id: int) -> PresetData:
    """The built-in preset for a slot; slots past the six named ones are blank."""
    _check_slot(slot_id)
    p = PresetData()
    every = range(TRACK_COUNT)

    if slot_id == 0:  # industrial
        p.scale, p.bpm = 1, 125
        p.t_hits[0] = 4
        p.t_hits[2] = 4
        p.synth_decay[0] = 0.6
        p.synth_timbre[0] = 0.8
    elif slot_id == 1:  # glitch
        p.root, p.scale, p.bpm = 2, 2, 110
        p.t_hits[0], p.t_steps[0] = 5, 13
        p.t_hits[1], p.t_steps[1] = 3, 7
        for i in range(2, TRACK_COUNT):
            p.t_hits[i] = 4
    elif slot_id == 2:  # dub
        p.root, p.scale, p.bpm = 5, 0, 110
        p.snare_mode = 2
        p.t_hits = [4] * TRACK_COUNT
        p.synth_decay[0] = 0.8
        p.synth_timbre[0] = 0.2
    elif slot_id == 3:  # aggressive
        p.root, p.scale, p.bpm = 0, 3, 140
        p.t_hits = [8] * TRACK_COUNT
        p.synth_timbre = [1.0] * TRACK_COUNT
    elif slot_id == 4:  # ambient
        p.root, p.scale, p.bpm = 7, 0, 80
        for i in every:
            p.t_hits[i] = 2
            p.synth_decay[i] = 0.9
    elif slot_id == 5:  # minimal
        p.root, p.scale, p.bpm = 9, 1, 122
        for i in every:
            p.t_hits[i] = 3
            p.synth_decay[i] = 0.1
            p.synth_timbre[i] = 0.9

    p.synth_pitch[VoiceID.BASS] = bass_root_note_to_normalized_pitch(
        bass_root_class_to_midi(p.root)
    )
    return p


_PRESET_FIELDS = {f.name for f in fields(PresetData)}


class SlotStore:
    """Saved slots and the boot counter, kept in one JSON file."""

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = Path(path)

    def save(self, slot_id: int, preset: PresetData) -> None:
        _check_slot(slot_id)
        doc = self._read()
        doc.setdefault("slots", {})[str(slot_id)] = asdict(preset)
        self._write(doc)

    def load(self, slot_id: int) -> PresetData:
        """The saved preset for a slot, or its factory preset if never saved."""
        _check_slot(slot_id)
        stored = self._read().get("slots", {}).get(str(slot_id))
        if stored is None:
            return factory_preset(slot_id)
        values = {k: v for k, v in stored.items() if k in _PRESET_FIELDS}
        return PresetData(**values)

    def next_boot_slot(self) -> int:
        """Advance the persistent boot counter through 0..5 and return it."""
        doc = self._read()
        counter = (int(doc.get("boot_cnt", 0)) + 1) % BOOT_SLOT_COUNT
        doc["boot_cnt"] = counter
        self._write(doc)
        return counter

    def _read(self) -> dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return {}

    def _write(self, doc: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(doc, fh)
        os.replace(tmp, self.path)