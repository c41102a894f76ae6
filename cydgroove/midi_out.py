"""MIDI output: drum and bass note messages, transport and a bounded message queue."""

from __future__ import annotations

import math
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .voice_manager import VoiceID

STATUS_NOTE_OFF = 0x80
STATUS_NOTE_ON = 0x90
STATUS_CC = 0xB0
STATUS_START = 0xFA
STATUS_STOP = 0xFC
CC_ALL_NOTES_OFF = 123

CHANNEL_BASS = 0
CHANNEL_DRUMS = 9

MESSAGE_QUEUE_SIZE = 96

_DRUM_NOTES = {
    VoiceID.KICK: 36,
    VoiceID.SNARE: 38,
    VoiceID.HAT_C: 42,
    VoiceID.HAT_O: 46,
}


class MidiMessageType(IntEnum):
    NOTE_OFF = 0
    NOTE_ON = 1
    CONTROL_CHANGE = 2
    START = 3
    STOP = 4


@dataclass(frozen=True)
class MidiMessage:
    """One outgoing MIDI message; ``length`` is the number of wire bytes."""

    type: MidiMessageType = MidiMessageType.NOTE_ON
    status: int = 0
    data1: int = 0
    data2: int = 0
    length: int = 0
    source_voice: Optional[int] = None
    sequence: int = 0

    @property
    def data(self) -> bytes:
        """The message as it goes on the wire."""
        return bytes((self.status, self.data1, self.data2)[: self.length])


class MidiOutputTarget(ABC):
    """Receiver that is handed every message as it is emitted."""

    @abstractmethod
    def handle_midi_message(self, message: MidiMessage) -> None:
        """Deliver ``message`` to the output."""


def _clamp_velocity(velocity: float) -> int:
    clamped = min(max(velocity, 0.0), 1.0)
    return int(math.floor(1.0 + clamped * 126.0 + 0.5))


def _drum_note(voice: int) -> int:
    try:
        return _DRUM_NOTES.get(VoiceID(int(voice)), 0)
    except ValueError:
        return 0


class MidiOutEngine:
    """Turns voice triggers into MIDI messages; the oldest message is dropped when full."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._target: Optional[MidiOutputTarget] = None
        self.reset()

    def reset(self) -> None:
        """Empty the queue, restart sequence numbers and forget the sounding bass note."""
        with self._lock:
            self._queue: deque[MidiMessage] = deque(maxlen=MESSAGE_QUEUE_SIZE - 1)
            self._sequence = 0
            self._bass_active = False
            self._bass_note = 36
            self._bass_gate_ms = 0.0

    @property
    def bass_note_active(self) -> bool:
        with self._lock:
            return self._bass_active

    def set_target(self, target: Optional[MidiOutputTarget]) -> None:
        with self._lock:
            self._target = target

    def send_transport_start(self) -> None:
        self._emit(MidiMessageType.START, STATUS_START, 0, 0, 1, None)

    def send_transport_stop(self) -> None:
        self._emit(MidiMessageType.STOP, STATUS_STOP, 0, 0, 1, None)

    def trigger_drum(self, voice: int, velocity: float) -> None:
        note = _drum_note(voice)
        if note == 0:
            return
        self._emit(
            MidiMessageType.NOTE_ON,
            STATUS_NOTE_ON | CHANNEL_DRUMS,
            note,
            _clamp_velocity(velocity),
            3,
            int(voice),
        )

    def trigger_bass(self, midi_note: int, velocity: float, gate_ms: float) -> None:
        """Start a bass note held for ``gate_ms`` (30..2000), ending any sounding one."""
        gate = min(max(gate_ms, 30.0), 2000.0)
        with self._lock:
            previous = self._bass_note if self._bass_active else None
            self._bass_active = True
            self._bass_note = midi_note
            self._bass_gate_ms = gate

        if previous is not None:
            self._bass_off(previous)
        self._emit(
            MidiMessageType.NOTE_ON,
            STATUS_NOTE_ON | CHANNEL_BASS,
            midi_note,
            _clamp_velocity(velocity),
            3,
            int(VoiceID.BASS),
        )

    def note_off_voice(self, voice: int) -> None:
        if int(voice) == VoiceID.BASS:
            self.release_bass()
            return
        note = _drum_note(voice)
        if note == 0:
            return
        self._emit(
            MidiMessageType.NOTE_OFF,
            STATUS_NOTE_OFF | CHANNEL_DRUMS,
            note,
            0,
            3,
            int(voice),
        )

    def release_bass(self) -> None:
        with self._lock:
            if not self._bass_active:
                return
            note = self._bass_note
            self._bass_active = False
            self._bass_gate_ms = 0.0
        self._bass_off(note)

    def all_notes_off(self) -> None:
        self.release_bass()
        self._emit(
            MidiMessageType.CONTROL_CHANGE,
            STATUS_CC | CHANNEL_BASS,
            CC_ALL_NOTES_OFF,
            0,
            3,
            int(VoiceID.BASS),
        )
        self._emit(
            MidiMessageType.CONTROL_CHANGE,
            STATUS_CC | CHANNEL_DRUMS,
            CC_ALL_NOTES_OFF,
            0,
            3,
            None,
        )

    def process(self, dt_ms: float) -> None:
        """Advance the bass gate by ``dt_ms`` and release the note when it runs out."""
        if dt_ms <= 0.0:
            return
        with self._lock:
            if not self._bass_active:
                return
            self._bass_gate_ms -= dt_ms
            if self._bass_gate_ms > 0.0:
                return
            note = self._bass_note
            self._bass_active = False
            self._bass_gate_ms = 0.0
        self._bass_off(note)

    def pop_message(self) -> Optional[MidiMessage]:
        """Take the oldest queued message, or ``None`` if the queue is empty."""
        with self._lock:
            return self._queue.popleft() if self._queue else None

    def pending_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def _bass_off(self, note: int) -> None:
        self._emit(
            MidiMessageType.NOTE_OFF,
            STATUS_NOTE_OFF | CHANNEL_BASS,
            note,
            0,
            3,
            int(VoiceID.BASS),
        )

    def _emit(
        self,
        type_: MidiMessageType,
        status: int,
        data1: int,
        data2: int,
        length: int,
        source_voice: Optional[int],
    ) -> None:
        with self._lock:
            message = MidiMessage(
                type_, status, data1, data2, length, source_voice, self._sequence
            )
            self._sequence = (self._sequence + 1) & 0xFFFFFFFF
            self._queue.append(message)
            target = self._target
        if target is not None:
            target.handle_midi_message(message)