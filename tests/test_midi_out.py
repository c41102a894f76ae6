import pytest

from cydgroove.midi_out import (
    MESSAGE_QUEUE_SIZE,
    MidiMessageType,
    MidiOutEngine,
    MidiOutputTarget,
)
from cydgroove.voice_manager import VoiceID


class Recorder(MidiOutputTarget):
    def __init__(self):
        self.messages = []

    def handle_midi_message(self, message):
        self.messages.append(message)


def drain(engine):
    out = []
    while (msg := engine.pop_message()) is not None:
        out.append(msg)
    return out


def test_pop_on_empty_queue_returns_none():
    engine = MidiOutEngine()
    assert engine.pop_message() is None
    assert engine.pending_count() == 0


def test_kick_drum_note_on_wire_bytes():
    engine = MidiOutEngine()
    engine.trigger_drum(VoiceID.KICK, 1.0)
    msg = engine.pop_message()
    assert msg.type is MidiMessageType.NOTE_ON
    assert msg.status & 0xF0 == 0x90
    assert msg.status & 0x0F == 9
    assert msg.data1 == 36
    assert msg.data2 == 127
    assert msg.data == bytes([msg.status, 36, 127])


@pytest.mark.parametrize(
    "voice,note", [(VoiceID.SNARE, 38), (VoiceID.HAT_C, 42), (VoiceID.HAT_O, 46)]
)
def test_drum_notes(voice, note):
    engine = MidiOutEngine()
    engine.trigger_drum(voice, 0.5)
    assert engine.pop_message().data1 == note


def test_bass_is_not_a_drum():
    engine = MidiOutEngine()
    engine.trigger_drum(VoiceID.BASS, 1.0)
    assert engine.pending_count() == 0


def test_velocity_is_clamped_to_midi_range():
    engine = MidiOutEngine()
    engine.trigger_drum(VoiceID.KICK, 5.0)
    engine.trigger_drum(VoiceID.KICK, -3.0)
    engine.trigger_drum(VoiceID.KICK, 0.0)
    high, low, zero = drain(engine)
    assert high.data2 == 127
    assert low.data2 == 1
    assert zero.data2 == low.data2


def test_velocity_is_monotonic():
    engine = MidiOutEngine()
    for v in (0.1, 0.3, 0.6, 0.9):
        engine.trigger_drum(VoiceID.SNARE, v)
    vels = [m.data2 for m in drain(engine)]
    assert vels == sorted(vels)
    assert all(1 <= v <= 127 for v in vels)


def test_transport_messages_are_single_byte():
    engine = MidiOutEngine()
    engine.send_transport_start()
    engine.send_transport_stop()
    start, stop = drain(engine)
    assert start.type is MidiMessageType.START
    assert start.data == bytes([0xFA])
    assert stop.type is MidiMessageType.STOP
    assert stop.data == bytes([0xFC])


def test_sequence_numbers_increase():
    engine = MidiOutEngine()
    for _ in range(5):
        engine.trigger_drum(VoiceID.KICK, 1.0)
    seqs = [m.sequence for m in drain(engine)]
    assert seqs == list(range(5))


def test_retrigger_bass_releases_previous_note():
    engine = MidiOutEngine()
    engine.trigger_bass(40, 1.0, 500.0)
    engine.trigger_bass(43, 1.0, 500.0)
    first_on, off, second_on = drain(engine)
    assert first_on.type is MidiMessageType.NOTE_ON and first_on.data1 == 40
    assert off.type is MidiMessageType.NOTE_OFF and off.data1 == 40
    assert off.status & 0xF0 == 0x80 and off.status & 0x0F == 0
    assert second_on.data1 == 43
    assert second_on.source_voice == VoiceID.BASS


def test_gate_releases_bass_after_time():
    engine = MidiOutEngine()
    engine.trigger_bass(45, 0.8, 100.0)
    drain(engine)
    engine.process(60.0)
    assert engine.pending_count() == 0
    assert engine.bass_note_active
    engine.process(40.0)
    off = engine.pop_message()
    assert off.type is MidiMessageType.NOTE_OFF
    assert off.data1 == 45
    assert not engine.bass_note_active


def test_gate_has_minimum_length():
    engine = MidiOutEngine()
    engine.trigger_bass(45, 0.8, 1.0)
    drain(engine)
    engine.process(29.0)
    assert engine.pending_count() == 0
    engine.process(1.0)
    assert engine.pop_message().type is MidiMessageType.NOTE_OFF


def test_process_ignores_non_positive_time():
    engine = MidiOutEngine()
    engine.trigger_bass(45, 0.8, 30.0)
    drain(engine)
    engine.process(0.0)
    engine.process(-100.0)
    assert engine.bass_note_active


def test_note_off_for_silent_bass_does_nothing():
    engine = MidiOutEngine()
    engine.note_off_voice(VoiceID.BASS)
    engine.release_bass()
    assert engine.pending_count() == 0


def test_note_off_drum():
    engine = MidiOutEngine()
    engine.note_off_voice(VoiceID.HAT_O)
    msg = engine.pop_message()
    assert msg.type is MidiMessageType.NOTE_OFF
    assert msg.data1 == 46
    assert msg.data2 == 0


def test_all_notes_off_releases_bass_and_sends_cc():
    engine = MidiOutEngine()
    engine.trigger_bass(50, 1.0, 500.0)
    drain(engine)
    engine.all_notes_off()
    off, cc_bass, cc_drums = drain(engine)
    assert off.type is MidiMessageType.NOTE_OFF and off.data1 == 50
    assert cc_bass.type is MidiMessageType.CONTROL_CHANGE
    assert cc_bass.data1 == 123
    assert cc_bass.status & 0x0F == 0
    assert cc_drums.data1 == 123
    assert cc_drums.status & 0x0F == 9
    assert not engine.bass_note_active


def test_full_queue_drops_oldest():
    engine = MidiOutEngine()
    total = 200
    for _ in range(total):
        engine.trigger_drum(VoiceID.KICK, 1.0)
    pending = engine.pending_count()
    assert pending < MESSAGE_QUEUE_SIZE
    msgs = drain(engine)
    assert len(msgs) == pending
    assert msgs[-1].sequence == total - 1
    assert msgs[0].sequence == total - pending


def test_target_receives_every_message():
    engine = MidiOutEngine()
    rec = Recorder()
    engine.set_target(rec)
    engine.send_transport_start()
    engine.trigger_drum(VoiceID.SNARE, 0.7)
    assert rec.messages == drain(engine)
    engine.set_target(None)
    engine.send_transport_stop()
    assert len(rec.messages) == 2


def test_reset_clears_queue_and_sequence():
    engine = MidiOutEngine()
    engine.trigger_bass(40, 1.0, 500.0)
    engine.trigger_drum(VoiceID.KICK, 1.0)
    engine.reset()
    assert engine.pending_count() == 0
    assert not engine.bass_note_active
    engine.send_transport_start()
    assert engine.pop_message().sequence == 0