import wave

import pytest

from cydgroove.audio_task import BUFFER_LEN, AudioTask, main
from cydgroove.control import CommandType, ControlManager, IPCCommand
from cydgroove.engine import Engine, UiActionType
from cydgroove.midi_out import MidiMessageType
from cydgroove.pattern_storage import PatternStorage
from cydgroove.voice_manager import VoiceID


@pytest.fixture
def engine():
    eng = Engine(seed=7)
    eng.boot()
    return eng


def _drain(midi):
    messages = []
    while (msg := midi.pop_message()) is not None:
        messages.append(msg)
    return messages


def _kick_only(engine):
    for track in engine.tracks:
        track.pattern = []
    engine.tracks[0].pattern = [127] + [0] * 15
    engine.track_mutes[VoiceID.BASS] = True
    engine.current_step = 0
    engine.midi_out.reset()


def test_block_is_interleaved_stereo(engine):
    task = AudioTask(engine)
    words = task.render_block()
    assert len(words) == 2 * BUFFER_LEN
    assert all(words[2 * i] == words[2 * i + 1] for i in range(BUFFER_LEN))


def test_internal_dac_words_use_high_byte(engine):
    task = AudioTask(engine, use_internal_dac=True)
    words = task.render_block()
    assert all(word & 0xFF == 0 for word in words)


def test_timer_advances_step_while_playing(engine):
    task = AudioTask(engine)
    engine.current_step = 5
    task.on_timer()
    task.render_block()
    assert engine.current_step == 6
    task.render_block()
    assert engine.current_step == 6


def test_timer_ignored_when_stopped(engine):
    task = AudioTask(engine)
    engine.is_playing = False
    engine.current_step = 3
    task.on_timer()
    task.render_block()
    assert engine.current_step == 3


def test_step_wraps_at_sixty_four(engine):
    task = AudioTask(engine)
    engine.current_step = 63
    task.on_timer()
    task.render_block()
    assert engine.current_step == 0


def test_kick_hit_sends_drum_note(engine):
    _kick_only(engine)
    task = AudioTask(engine)
    task.on_timer()
    task.render_block()
    notes = [(m.status, m.data1, m.data2) for m in _drain(engine.midi_out)]
    assert (0x99, 36, 127) in notes


def test_muted_kick_is_silent_on_midi(engine):
    _kick_only(engine)
    engine.track_mutes[VoiceID.KICK] = True
    task = AudioTask(engine)
    task.on_timer()
    task.render_block()
    drum_ons = [m.data1 for m in _drain(engine.midi_out) if m.status == 0x99]
    assert drum_ons == []
    assert engine.current_step == 1


def test_transport_command_stops(engine):
    engine.midi_out.reset()
    task = AudioTask(engine)
    task.handle_command(IPCCommand(CommandType.TRANSPORT, value=0.0))
    assert engine.is_playing is False
    types = [m.type for m in _drain(engine.midi_out)]
    assert MidiMessageType.STOP in types


def test_ui_action_command_sets_bpm(engine):
    task = AudioTask(engine)
    task.handle_command(
        IPCCommand(CommandType.UI_ACTION, voice_id=int(UiActionType.SET_BPM), value=150.0)
    )
    assert engine.bpm == 150


def test_bass_note_on_sends_rounded_note(engine):
    engine.midi_out.reset()
    task = AudioTask(engine)
    task.handle_command(
        IPCCommand(CommandType.NOTE_ON, voice_id=int(VoiceID.BASS), value=40.4, aux_value=0.8)
    )
    ons = [m for m in _drain(engine.midi_out) if m.type == MidiMessageType.NOTE_ON]
    assert [(m.status, m.data1) for m in ons] == [(0x90, 40)]
    assert engine.midi_out.bass_note_active is True


def test_queued_commands_are_applied(engine, tmp_path):
    storage = PatternStorage(engine, tmp_path)
    with ControlManager(storage) as control:
        control.send_command(IPCCommand(CommandType.TRANSPORT, value=0.0))
        task = AudioTask(engine, control)
        task.render_block()
        assert engine.is_playing is False
        assert list(control.commands()) == []


def test_main_writes_stereo_wav(tmp_path):
    out = tmp_path / "out.wav"
    assert main(["--output", str(out), "--seconds", "0.05", "--seed", "1"]) == 0
    with wave.open(str(out), "rb") as wav:
        assert wav.getnchannels() == 2
        assert wav.getsampwidth() == 2
        assert wav.getnframes() > 0
        assert wav.getnframes() % BUFFER_LEN == 0