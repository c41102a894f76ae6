import math

import pytest

from cydgroove.snare_voice import SnareParams, SnareVoice

SR = 48000.0


def _render_until_silent(voice, limit=200000):
    outputs = []
    for _ in range(limit):
        outputs.append(voice.process())
        if not voice.active:
            break
    return outputs


def test_idle_voice_is_silent():
    voice = SnareVoice(SR, seed=1)
    assert voice.process() == 0.0
    assert voice.active is False


@pytest.mark.parametrize("mode", [0, 1, 2])
def test_each_mode_sounds_then_stops(mode):
    voice = SnareVoice(SR, seed=12345)
    voice.set_params(SnareParams(mode=mode))
    voice.trigger(1.0)
    outputs = _render_until_silent(voice)
    assert voice.active is False
    assert len(outputs) < 200000
    assert any(abs(s) > 0.01 for s in outputs)
    assert all(math.isfinite(s) and abs(s) < 5.0 for s in outputs)


def test_rim_is_shorter_than_snare():
    snare = SnareVoice(SR, seed=7)
    snare.set_params(SnareParams(mode=0))
    snare.trigger(1.0)
    rim = SnareVoice(SR, seed=7)
    rim.set_params(SnareParams(mode=1))
    rim.trigger(1.0)
    assert len(_render_until_silent(rim)) < len(_render_until_silent(snare))


def test_longer_decay_rings_longer():
    short = SnareVoice(SR, seed=3)
    short.set_params(SnareParams(decay=0.0))
    short.trigger(1.0)
    long_ = SnareVoice(SR, seed=3)
    long_.set_params(SnareParams(decay=1.0))
    long_.trigger(1.0)
    assert len(_render_until_silent(long_)) > len(_render_until_silent(short))


def test_same_seed_is_deterministic():
    a = SnareVoice(SR, seed=99)
    b = SnareVoice(SR, seed=99)
    a.trigger(0.7)
    b.trigger(0.7)
    assert [a.process() for _ in range(512)] == [b.process() for _ in range(512)]


def test_different_seeds_differ():
    a = SnareVoice(SR, seed=1)
    b = SnareVoice(SR, seed=2)
    a.trigger(1.0)
    b.trigger(1.0)
    assert [a.process() for _ in range(512)] != [b.process() for _ in range(512)]


def test_set_params_is_kept():
    voice = SnareVoice(SR, seed=5)
    params = SnareParams(tone=0.2, decay=0.3, timbre=0.4, mode=2)
    voice.set_params(params)
    assert voice.params == params