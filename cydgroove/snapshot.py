"""A consistent copy of the engine state for drawing the interface."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

from .bass_groove import BassGrooveParams
from .engine import MAX_STEPS, TRACK_COUNT, Engine, UiMode
from .voice_manager import VoiceID, VoiceParams


def _zeros(value):
    return field(default_factory=lambda: (value,) * TRACK_COUNT)


def _blank_voice_params() -> tuple:
    return tuple(
        VoiceParams(
            pitch=0.0, decay=0.0, timbre=0.0, mode=0, drive=0.0, snap=0.0, harmonics=0.0
        )
        for _ in range(TRACK_COUNT)
    )


@dataclass(frozen=True)
class UiStateSnapshot:
    """Everything the screens read, copied so drawing never races the sequencer."""

    bpm: int = 120
    is_playing: bool = True
    current_step: int = 0
    active_track: int = 0
    mode: UiMode = UiMode.PATTERN_EDIT
    track_mutes: tuple = _zeros(False)
    track_steps: tuple = _zeros(0)
    track_hits: tuple = _zeros(0)
    track_rotations: tuple = _zeros(0)
    patterns: tuple = field(default_factory=lambda: ((),) * TRACK_COUNT)
    pattern_lens: tuple = _zeros(0)
    voice_params: tuple = field(default_factory=_blank_voice_params)
    voice_gain: tuple = _zeros(0.0)
    master_volume: float = 0.5
    bass_params: BassGrooveParams = field(default_factory=BassGrooveParams)


def capture_snapshot(engine: Engine) -> UiStateSnapshot:
    """Copy the engine's current state; patterns are read under the pattern lock."""
    voices = engine.voices
    tracks = engine.tracks
    with engine.pattern_lock():
        patterns = tuple(tuple(t.pattern[:MAX_STEPS]) for t in tracks)
    return UiStateSnapshot(
        bpm=engine.bpm,
        is_playing=engine.is_playing,
        current_step=engine.current_step,
        active_track=engine.ui_active_track,
        mode=engine.ui_mode,
        track_mutes=tuple(engine.track_mutes),
        track_steps=tuple(t.steps for t in tracks),
        track_hits=tuple(t.hits for t in tracks),
        track_rotations=tuple(t.rotation_offset for t in tracks),
        patterns=patterns,
        pattern_lens=tuple(len(p) for p in patterns),
        voice_params=tuple(
            copy.copy(voices.get_params(VoiceID(i))) for i in range(TRACK_COUNT)
        ),
        voice_gain=tuple(voices.get_voice_gain(VoiceID(i)) for i in range(TRACK_COUNT)),
        master_volume=getattr(voices, "master_volume", 0.5),
        bass_params=engine.bass_groove.params,
    )