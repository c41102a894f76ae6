"""Mixer owning every drum and bass voice, with published parameters and an event queue."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum

from .bass_voice import BassParams, BassVoice
from .hats_voice import HatsParams, HatsVoice
from .kick_voice import KickParams, KickVoice
from .snare_voice import SnareParams, SnareVoice


class VoiceID(IntEnum):
    KICK = 0
    SNARE = 1
    HAT_C = 2
    HAT_O = 3
    BASS = 4


VOICE_COUNT = len(VoiceID)
_EVENT_QUEUE_SIZE = 64


class VoiceParam(IntEnum):
    PITCH = 0
    DECAY = 1
    TIMBRE = 2
    MODE = 3
    DRIVE = 4
    SNAP = 5
    HARMONICS = 6


_PARAM_FIELDS = {
    VoiceParam.PITCH: "pitch",
    VoiceParam.DECAY: "decay",
    VoiceParam.TIMBRE: "timbre",
    VoiceParam.DRIVE: "drive",
    VoiceParam.SNAP: "snap",
    VoiceParam.HARMONICS: "harmonics",
}


@dataclass
class VoiceParams:
    """Normalised per-voice controls; ``mode`` selects the snare variant."""

    pitch: float = 0.0
    decay: float = 0.0
    timbre: float = 0.0
    mode: int = 0
    drive: float = 0.0
    snap: float = 0.0
    harmonics: float = 0.0


class VoiceEventType(Enum):
    TRIGGER = 0
    TRIGGER_FREQ = 1
    SET_FREQ = 2
    CHOKE = 3


@dataclass(frozen=True)
class VoiceEvent:
    voice: int
    type: VoiceEventType
    velocity: float = 0.0
    freq: float = 0.0


@dataclass
class _StateSnapshot:
    params: list[VoiceParams] = field(
        default_factory=lambda: [VoiceParams() for _ in range(VOICE_COUNT)]
    )
    voice_gains: list[float] = field(default_factory=lambda: [0.0] * VOICE_COUNT)
    master_volume: float = 0.0
    master_drive: float = 0.0

    def copy(self) -> _StateSnapshot:
        return _StateSnapshot(
            params=[replace(p) for p in self.params],
            voice_gains=list(self.voice_gains),
            master_volume=self.master_volume,
            master_drive=self.master_drive,
        )


def _voice_index(voice: int) -> int | None:
    idx = int(voice)
    return idx if 0 <= idx < VOICE_COUNT else None


class VoiceManager:
    """Owns the five voices; control-side edits reach the audio side on ``sync_params``."""

    def __init__(self, sample_rate: float, seed: int | None = None) -> None:
        self._kick = KickVoice(sample_rate)
        self._snare = SnareVoice(sample_rate, seed)
        self._hat_c = HatsVoice(sample_rate)
        self._hat_o = HatsVoice(sample_rate)
        self._bass = BassVoice(sample_rate)

        ui = _StateSnapshot(master_volume=0.5, master_drive=0.0)
        for i in range(VOICE_COUNT):
            ui.params[i] = VoiceParams(pitch=0.5, decay=0.5)
            ui.voice_gains[i] = 0.1 if i == VoiceID.BASS else 0.5
        self._ui_state = ui

        self._lock = threading.Lock()
        self._published = ui.copy()
        self._published_version = 0
        self._synced_version = 0
        self._audio_state = ui.copy()
        self._events: deque[VoiceEvent] = deque()

        self._apply_audio_state()

    # ---- control side -------------------------------------------------

    def set_params(self, voice: int, params: VoiceParams) -> None:
        idx = _voice_index(voice)
        if idx is None:
            return
        self._ui_state.params[idx] = replace(params)
        self._publish()

    def set_param(self, voice: int, param: VoiceParam, value: float) -> None:
        idx = _voice_index(voice)
        if idx is None:
            return
        target = self._ui_state.params[idx]
        if param == VoiceParam.MODE:
            if idx == VoiceID.SNARE:
                target.mode = int(value)
        elif param in _PARAM_FIELDS:
            setattr(target, _PARAM_FIELDS[VoiceParam(param)], value)
        self._publish()

    def get_params(self, voice: int) -> VoiceParams:
        idx = _voice_index(voice)
        if idx is None:
            return VoiceParams()
        return replace(self._ui_state.params[idx])

    def trigger(self, voice: int, velocity: float = 1.0) -> bool:
        return self._enqueue(VoiceEvent(voice, VoiceEventType.TRIGGER, velocity))

    def trigger_freq(self, voice: int, freq: float, velocity: float = 1.0) -> bool:
        return self._enqueue(
            VoiceEvent(voice, VoiceEventType.TRIGGER_FREQ, velocity, freq)
        )

    def set_freq(self, voice: int, freq: float) -> bool:
        return self._enqueue(VoiceEvent(voice, VoiceEventType.SET_FREQ, 0.0, freq))

    def choke(self, voice: int) -> bool:
        return self._enqueue(VoiceEvent(voice, VoiceEventType.CHOKE))

    def is_voice_active(self, voice: int) -> bool:
        if int(voice) == VoiceID.BASS:
            return self._bass.active
        return False

    @property
    def master_volume(self) -> float:
        return self._ui_state.master_volume

    @property
    def master_drive(self) -> float:
        return self._ui_state.master_drive

    def set_master_volume(self, vol: float) -> None:
        self._ui_state.master_volume = min(max(vol, 0.0), 1.0)
        self._publish()

    def set_master_drive(self, drive: float) -> None:
        self._ui_state.master_drive = min(max(drive, 0.0), 1.0)
        self._publish()

    def set_voice_gain(self, voice: int, gain: float) -> None:
        idx = _voice_index(voice)
        if idx is None:
            return
        self._ui_state.voice_gains[idx] = min(max(gain, 0.0), 1.2)
        self._publish()

    def get_voice_gain(self, voice: int) -> float:
        idx = _voice_index(voice)
        if idx is None:
            return 0.0
        return self._ui_state.voice_gains[idx]

    # ---- audio side ---------------------------------------------------

    def sync_params(self) -> None:
        """Adopt the most recently published parameters, if any are new."""
        with self._lock:
            if self._published_version == self._synced_version:
                return
            self._audio_state = self._published.copy()
            self._synced_version = self._published_version
        self._apply_audio_state()

    def process(self) -> float:
        """Handle queued events, then render and mix one sample."""
        while True:
            with self._lock:
                if not self._events:
                    break
                event = self._events.popleft()
            self._handle_event(event)

        state = self._audio_state
        gains = state.voice_gains
        k = self._kick.process() * gains[VoiceID.KICK]
        s = self._snare.process() * gains[VoiceID.SNARE]
        hc = self._hat_c.process() * gains[VoiceID.HAT_C]
        ho = self._hat_o.process() * gains[VoiceID.HAT_O]

        ducking = max(1.0 - self._kick.envelope * 0.6, 0.0)
        b = self._bass.process() * gains[VoiceID.BASS] * ducking

        mix = (k + s + hc + ho + b) * (1.0 + state.master_drive * 2.0)
        return mix * state.master_volume

    # ---- internals ----------------------------------------------------

    def _publish(self) -> None:
        with self._lock:
            self._published = self._ui_state.copy()
            self._published_version += 1

    def _enqueue(self, event: VoiceEvent) -> bool:
        with self._lock:
            if len(self._events) >= _EVENT_QUEUE_SIZE - 1:
                return False
            self._events.append(event)
            return True

    def _apply_audio_state(self) -> None:
        p = self._audio_state.params
        kick = p[VoiceID.KICK]
        self._kick.set_params(
            KickParams(
                tune=kick.pitch, length=kick.decay, punch=kick.timbre, drive=kick.drive
            )
        )
        snare = p[VoiceID.SNARE]
        self._snare.set_params(
            SnareParams(
                tone=snare.pitch, decay=snare.decay, timbre=snare.timbre, mode=snare.mode
            )
        )
        hat_c = p[VoiceID.HAT_C]
        self._hat_c.set_params(HatsParams(decay=hat_c.decay, timbre=hat_c.timbre, open=False))
        hat_o = p[VoiceID.HAT_O]
        self._hat_o.set_params(HatsParams(decay=hat_o.decay, timbre=hat_o.timbre, open=True))
        bass = p[VoiceID.BASS]
        self._bass.set_params(
            BassParams(
                freq=0.0,
                release=bass.decay,
                brightness=bass.timbre,
                harmonics=bass.harmonics,
                drive=bass.drive,
                snap=bass.snap,
            )
        )

    def _handle_event(self, event: VoiceEvent) -> None:
        voice = int(event.voice)
        if event.type is VoiceEventType.TRIGGER:
            if voice == VoiceID.KICK:
                self._kick.trigger(event.velocity)
            elif voice == VoiceID.SNARE:
                self._snare.trigger(event.velocity)
            elif voice == VoiceID.HAT_C:
                self._hat_c.trigger(event.velocity)
            elif voice == VoiceID.HAT_O:
                self._hat_o.trigger(event.velocity)
                self._hat_c.choke()
            elif voice == VoiceID.BASS:
                self._bass.trigger(event.velocity)
        elif event.type is VoiceEventType.TRIGGER_FREQ:
            if voice == VoiceID.BASS:
                self._bass.trigger(event.velocity, event.freq)
            else:
                self._handle_event(
                    VoiceEvent(event.voice, VoiceEventType.TRIGGER, event.velocity)
                )
        elif event.type is VoiceEventType.SET_FREQ:
            if voice == VoiceID.BASS:
                self._bass.set_freq(event.freq)
        elif event.type is VoiceEventType.CHOKE:
            if voice == VoiceID.HAT_C:
                self._hat_c.choke()
            elif voice == VoiceID.HAT_O:
                self._hat_o.choke()