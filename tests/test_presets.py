import pytest

from cydgroove.bass_groove import BassScale
from cydgroove.presets import (
    BASS_ROOT_NOTE_MAX,
    BASS_ROOT_NOTE_MIN,
    SLOT_COUNT,
    PresetData,
    SlotStore,
    bass_midi_to_root_class,
    bass_root_class_to_midi,
    bass_root_note_to_normalized_pitch,
    bass_scale_from_global,
    factory_preset,
    global_scale_from_bass,
    normalized_pitch_to_bass_root_note,
)
from cydgroove.voice_manager import VoiceID


def test_factory_industrial_slot():
    p = factory_preset(0)
    assert p.bpm == 125
    assert p.scale == 1
    assert p.t_hits[0] == 4 and p.t_hits[2] == 4
    assert p.t_hits[1] == 0


def test_factory_glitch_slot_steps():
    p = factory_preset(1)
    assert p.t_steps[0] == 13
    assert p.t_steps[1] == 7
    assert p.t_hits[2:] == [4] * (len(p.t_hits) - 2)


def test_factory_dub_uses_clap_snare():
    assert factory_preset(2).snare_mode == 2


def test_blank_slots_share_defaults():
    assert factory_preset(6) == factory_preset(15)
    assert all(h == 0 for h in factory_preset(10).t_hits)


def test_factory_bass_pitch_matches_root():
    for slot in range(SLOT_COUNT):
        p = factory_preset(slot)
        note = normalized_pitch_to_bass_root_note(p.synth_pitch[VoiceID.BASS])
        assert bass_midi_to_root_class(note) == p.root % 12


@pytest.mark.parametrize("slot", [-1, SLOT_COUNT])
def test_factory_rejects_bad_slot(slot):
    with pytest.raises(ValueError):
        factory_preset(slot)


def test_root_class_round_trip():
    for rc in range(-24, 24):
        midi = bass_root_class_to_midi(rc)
        assert 36 <= midi < 48
        assert bass_midi_to_root_class(midi) == rc % 12


def test_normalized_pitch_endpoints():
    assert bass_root_note_to_normalized_pitch(BASS_ROOT_NOTE_MIN) == 0.0
    assert bass_root_note_to_normalized_pitch(BASS_ROOT_NOTE_MAX) == 1.0
    assert bass_root_note_to_normalized_pitch(0) == 0.0
    assert bass_root_note_to_normalized_pitch(127) == 1.0


def test_normalized_pitch_round_trip():
    for note in range(BASS_ROOT_NOTE_MIN, BASS_ROOT_NOTE_MAX + 1):
        pitch = bass_root_note_to_normalized_pitch(note)
        assert normalized_pitch_to_bass_root_note(pitch) == note


def test_normalized_pitch_clamps():
    assert normalized_pitch_to_bass_root_note(-2.0) == BASS_ROOT_NOTE_MIN
    assert normalized_pitch_to_bass_root_note(7.0) == BASS_ROOT_NOTE_MAX


def test_scale_mapping_round_trip():
    for scale in BassScale:
        assert bass_scale_from_global(global_scale_from_bass(scale)) is scale


def test_unknown_global_scale_is_minor():
    assert bass_scale_from_global(9) is BassScale.MINOR
    assert bass_scale_from_global(-1) is BassScale.MINOR


def test_unsaved_slot_loads_factory(tmp_path):
    store = SlotStore(tmp_path / "slots.json")
    assert store.load(3) == factory_preset(3)


def test_save_load_round_trip(tmp_path):
    path = tmp_path / "slots.json"
    preset = PresetData(bpm=133, root=4, bass_swing=0.5)
    preset.t_hits[1] = 7
    SlotStore(path).save(9, preset)
    assert SlotStore(path).load(9) == preset
    assert SlotStore(path).load(8) == factory_preset(8)


def test_save_rejects_bad_slot(tmp_path):
    store = SlotStore(tmp_path / "slots.json")
    with pytest.raises(ValueError):
        store.save(SLOT_COUNT, PresetData())
    with pytest.raises(ValueError):
        store.load(-1)


def test_boot_slot_cycles_through_six(tmp_path):
    store = SlotStore(tmp_path / "slots.json")
    values = [store.next_boot_slot() for _ in range(12)]
    assert sorted(values[:6]) == list(range(6))
    assert values[:6] == values[6:]


def test_boot_counter_persists(tmp_path):
    reference = SlotStore(tmp_path / "a.json")
    expected = [reference.next_boot_slot() for _ in range(5)]

    path = tmp_path / "b.json"
    got = [SlotStore(path).next_boot_slot() for _ in range(5)]
    assert got == expected


def test_boot_counter_keeps_saved_slots(tmp_path):
    path = tmp_path / "slots.json"
    store = SlotStore(path)
    preset = PresetData(bpm=90)
    store.save(0, preset)
    store.next_boot_slot()
    assert store.load(0) == preset