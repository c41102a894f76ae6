"""The audio loop: sequencer ticks, command handling and rendering sample blocks."""

from __future__ import annotations

import argparse
import math
import sys
import threading
import wave
from array import array
from typing import Optional

from .control import CommandType, ControlManager, IPCCommand
from .dsp import LUT_MASK, dither_lut, fast_soft_clip
from .engine import TRACK_COUNT, Engine, UiAction, UiActionType
from .presets import SlotStore
from .voice_manager import VOICE_COUNT, VoiceID, VoiceParam

BUFFER_LEN = 256
STEP_WRAP = 64


def _lround(x: float) -> int:
    if x >= 0:
        return int(math.floor(x + 0.5))
    return -int(math.floor(-x + 0.5))


class AudioTask:
    """Renders interleaved stereo 16-bit blocks and drives the sequencer between them."""

    def __init__(
        self,
        engine: Engine,
        control: Optional[ControlManager] = None,
        use_internal_dac: bool = False,
    ) -> None:
        self.engine = engine
        self.control = control
        self.use_internal_dac = use_internal_dac
        self._tick_lock = threading.Lock()
        self._tick_pending = False
        self._dither_idx = 0

    @property
    def block_duration_ms(self) -> float:
        return BUFFER_LEN / self.engine.sample_rate * 1000.0

    def on_timer(self) -> None:
        """Sequencer clock: mark a step as due while the transport is running."""
        with self._tick_lock:
            if self.engine.is_playing:
                self._tick_pending = True

    def handle_command(self, cmd: IPCCommand) -> None:
        engine = self.engine
        voices = engine.voices
        if cmd.type == CommandType.NOTE_ON:
            if not 0 <= cmd.voice_id < VOICE_COUNT:
                return
            voice = VoiceID(cmd.voice_id)
            if voice == VoiceID.BASS:
                note = min(max(_lround(cmd.value), 0), 127)
                freq = engine.note_freq(note)
                gate_ms = 120.0 + voices.get_params(VoiceID.BASS).decay * 480.0
                voices.trigger_freq(VoiceID.BASS, freq, cmd.aux_value)
                engine.midi_out.trigger_bass(note, cmd.aux_value, gate_ms)
            else:
                if voice == VoiceID.KICK:
                    engine.bass_groove.on_kick()
                engine.midi_out.trigger_drum(voice, cmd.aux_value)
                voices.trigger(voice, cmd.aux_value)
        elif cmd.type == CommandType.NOTE_OFF:
            if 0 <= cmd.voice_id < VOICE_COUNT:
                engine.midi_out.note_off_voice(VoiceID(cmd.voice_id))
        elif cmd.type == CommandType.SET_PARAM:
            if not 0 <= cmd.voice_id < VOICE_COUNT:
                return
            try:
                param = VoiceParam(cmd.param_id)
            except ValueError:
                return
            voices.set_param(VoiceID(cmd.voice_id), param, cmd.value)
        elif cmd.type == CommandType.TRANSPORT:
            if cmd.value > 0.5:
                engine.play()
            else:
                engine.stop()
        elif cmd.type == CommandType.UI_ACTION:
            try:
                action_type = UiActionType(cmd.voice_id)
            except ValueError:
                return
            engine.handle_ui_action(UiAction(action_type, cmd.param_id, int(cmd.value)))

    def _run_tick(self) -> None:
        engine = self.engine
        with engine.pattern_lock():
            step = engine.current_step
            if not engine.track_mutes[VoiceID.BASS]:
                engine.bass_groove.on_tick(step)

            for voice_index in range(TRACK_COUNT):
                track = engine.tracks[voice_index]
                length = track.pattern_len
                if length <= 0 or engine.track_mutes[voice_index]:
                    continue
                value = track.pattern[step % length]
                if value == 0:
                    continue
                velocity = 0.9 if value == 1 else value / 127.0
                voice = VoiceID(voice_index)
                if voice == VoiceID.KICK:
                    engine.bass_groove.on_kick()
                    engine.midi_out.trigger_drum(voice, velocity)
                    engine.voices.trigger(voice, velocity)
                elif voice != VoiceID.BASS:
                    engine.midi_out.trigger_drum(voice, velocity)
                    engine.voices.trigger(voice, velocity)

            engine.current_step = (step + 1) % STEP_WRAP

    def render_block(self) -> array:
        """Run one block of the loop and return ``2 * BUFFER_LEN`` interleaved 16-bit words."""
        engine = self.engine
        voices = engine.voices
        voices.sync_params()

        duration_ms = self.block_duration_ms
        engine.bass_groove.process(duration_ms)
        engine.midi_out.process(duration_ms)

        with self._tick_lock:
            due, self._tick_pending = self._tick_pending, False
        if due:
            self._run_tick()

        if self.control is not None:
            for cmd in self.control.commands():
                self.handle_command(cmd)

        words = array("H", bytes(4 * BUFFER_LEN))
        for i in range(BUFFER_LEN):
            mix = fast_soft_clip(voices.process() * 0.9)
            dither = dither_lut[self._dither_idx]
            self._dither_idx = (self._dither_idx + 1) & LUT_MASK
            sample = min(max(mix + dither, -1.0), 1.0)
            if self.use_internal_dac:
                word = (int(sample * 127.0 + 128.0) << 8) & 0xFFFF
            else:
                word = int(sample * 32767.0) & 0xFFFF
            words[2 * i] = word
            words[2 * i + 1] = word
        return words


def _parse_args(argv: Optional[list[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cydgroove", description="Render the groove box offline to a stereo WAV file."
    )
    parser.add_argument("--output", required=True, help="WAV file to write")
    parser.add_argument("--seconds", type=float, default=4.0, help="length to render")
    parser.add_argument("--slots", help="JSON file holding saved slots and the boot counter")
    parser.add_argument("--seed", type=int, help="seed for the random generators")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    store = SlotStore(args.slots) if args.slots else None
    engine = Engine(store=store, seed=args.seed)
    engine.boot()
    task = AudioTask(engine)

    sample_rate = int(engine.sample_rate)
    blocks = max(1, math.ceil(args.seconds * sample_rate / BUFFER_LEN))
    block_us = BUFFER_LEN / engine.sample_rate * 1_000_000.0
    elapsed_us = 0.0

    with wave.open(args.output, "wb") as out:
        out.setnchannels(2)
        out.setsampwidth(2)
        out.setframerate(sample_rate)
        for _ in range(blocks):
            interval = engine.tick_interval_us()
            while elapsed_us >= interval:
                task.on_timer()
                elapsed_us -= interval
            words = task.render_block()
            if sys.byteorder == "big":
                words.byteswap()
            out.writeframes(words.tobytes())
            elapsed_us += block_us
    return 0


if __name__ == "__main__":
    raise SystemExit(main())