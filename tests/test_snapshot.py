from cydgroove.engine import TRACK_COUNT, Engine, UiMode
from cydgroove.snapshot import UiStateSnapshot, capture_snapshot
from cydgroove.voice_manager import VoiceID


def _engine():
    engine = Engine(seed=5)
    engine.boot()
    return engine


def test_default_snapshot_values():
    snap = UiStateSnapshot()
    assert snap.bpm == 120
    assert snap.is_playing is True
    assert snap.mode == UiMode.PATTERN_EDIT
    assert snap.pattern_lens == (0,) * TRACK_COUNT


def test_capture_reflects_transport_and_selection():
    engine = _engine()
    engine.bpm = 111
    engine.is_playing = False
    engine.current_step = 9
    engine.ui_active_track = 2
    engine.ui_mode = UiMode.MIXER
    engine.track_mutes[3] = True
    snap = capture_snapshot(engine)
    assert snap.bpm == 111
    assert snap.is_playing is False
    assert snap.current_step == 9
    assert snap.active_track == 2
    assert snap.mode == UiMode.MIXER
    assert snap.track_mutes == tuple(engine.track_mutes)


def test_capture_copies_tracks_and_patterns():
    engine = _engine()
    snap = capture_snapshot(engine)
    assert snap.track_steps == tuple(t.steps for t in engine.tracks)
    assert snap.track_hits == tuple(t.hits for t in engine.tracks)
    assert snap.track_rotations == tuple(t.rotation_offset for t in engine.tracks)
    for i, track in enumerate(engine.tracks):
        assert list(snap.patterns[i]) == track.pattern
        assert snap.pattern_lens[i] == track.pattern_len


def test_capture_reads_voice_state():
    engine = _engine()
    engine.voices.set_voice_gain(VoiceID.SNARE, 0.9)
    snap = capture_snapshot(engine)
    for i in range(TRACK_COUNT):
        assert snap.voice_gain[i] == engine.voices.get_voice_gain(VoiceID(i))
        assert snap.voice_params[i].decay == engine.voices.get_params(VoiceID(i)).decay
    assert snap.bass_params == engine.bass_groove.params


def test_snapshot_is_independent_of_later_changes():
    engine = _engine()
    snap = capture_snapshot(engine)
    saved = snap.patterns[0]
    engine.tracks[0].pattern = [0] * 5
    engine.tracks[0].steps = 5
    assert snap.patterns[0] == saved
    assert snap.track_steps[0] != 5 or saved != (0,) * 5