# cydgroove

A small generative groovebox engine written in pure Python. It has five synthesised
voices (kick, snare/rim/clap, closed and open hats, bass), Euclidean step patterns,
a generative bass line that can follow the kick, sixteen preset slots, and a MIDI
message queue that mirrors every note the engine plays. It needs nothing beyond the
standard library.

## Install

    pip install .

To run the tests:

    pip install ".[test]"
    pytest

## Command line

The `cydgroove` command boots the engine and renders the sequencer offline into a
16-bit stereo WAV file at 44100 Hz:

    cydgroove --output groove.wav --seconds 8

Options:

- `--output` (required) – the WAV file to write.
- `--seconds` – how much audio to render (default 4.0).
- `--slots` – a JSON file that holds saved slots and the boot counter. Each run
  advances the counter through slots 0–5 and plays that slot; without this option
  a factory preset is used.
- `--seed` – a seed for the random generators, so a render can be repeated.

## Example

    from cydgroove.engine import Engine, UiAction, UiActionType, euclidean_pattern
    from cydgroove.audio_task import AudioTask

    euclidean_pattern(8, 3)          # [0, 0, 1, 0, 0, 1, 0, 1]

    engine = Engine(seed=1)
    engine.boot()                    # returns the slot that was brought up
    engine.handle_ui_action(UiAction(UiActionType.SET_BPM, value=128))

    task = AudioTask(engine)
    task.on_timer()                  # one sequencer step is due
    block = task.render_block()      # array('H') of 2 * 256 interleaved words

## Modules

- `cydgroove.dsp` – sine and dither tables (`init_lut`, `get_sin_lut`, `lut_sin`),
  `fast_random`, `fast_soft_clip`, `velocity_curve`, and the `OnePoleLowPass` /
  `OnePoleHighPass` filters.
- `cydgroove.kick_voice`, `snare_voice`, `hats_voice`, `bass_voice` – the voices
  (`KickVoice`, `SnareVoice`, `HatsVoice`, `BassVoice`) with their parameter
  dataclasses. Each `process()` call renders one sample.
- `cydgroove.voice_manager` – `VoiceManager` owns the voices, queues triggers,
  publishes parameter edits to the audio side on `sync_params()`, and mixes with
  per-voice gain, master volume, master drive and kick ducking of the bass.
- `cydgroove.bass_groove` – `BassGroove`, the generative bass: four scales
  (`BassScale`), four groove modes (`GrooveMode`: follow kick, offbeat, random,
  motif), swing, accents, ghost notes and slides, configured by `BassGrooveParams`.
- `cydgroove.midi_out` – `MidiOutEngine` turns drum and bass triggers, transport
  start/stop and all-notes-off into `MidiMessage` values in a bounded queue
  (`pop_message`, `pending_count`); the oldest message is dropped when full. Bass
  notes are released when their gate runs out. An optional `MidiOutputTarget`
  is handed each message as it is emitted.
- `cydgroove.presets` – `PresetData`, `factory_preset`, the bass root/scale
  mapping helpers, and `SlotStore`, which keeps saved slots and the boot counter
  in one JSON file.
- `cydgroove.engine` – `Engine`: tracks (`Track`), slots, transport (`play`,
  `stop`), `randomize`, slot save/load/apply, key sync between the bass and the
  global root/scale, `tick_interval_us`, and `handle_ui_action` for `UiAction`
  values.
- `cydgroove.pattern_storage` – `PatternStorage` writes each slot's track steps,
  hits, rotation and tempo to `pattern_NN.json` in a directory; failures raise
  `StorageError`.
- `cydgroove.wav_bank` – `read_mono16` / `load_mono16` read 16-bit PCM WAV files
  into a mono `WavSample` (stereo is averaged); bad files raise `WavFormatError`.
- `cydgroove.control` – `ControlManager` queues `IPCCommand` values for the audio
  loop (`commands()`), and runs slot saves and loads on a worker thread, reporting
  them as `StorageEvent` values through `poll_storage_event()`.
- `cydgroove.snapshot` – `capture_snapshot` copies the engine state into a frozen
  `UiStateSnapshot`.
- `cydgroove.audio_task` – `AudioTask` ties sequencer ticks, queued commands and
  mixing together into rendered sample blocks; `main` is the command above.

## What it does not do

- It does not play audio through a sound device; audio comes out as sample
  blocks from `AudioTask.render_block` or as a WAV file from the command.
- It does not open MIDI ports; messages stay in the `MidiOutEngine` queue or go
  to a `MidiOutputTarget` you supply.
- It has no screen or touch interface. `capture_snapshot` gives the state such
  an interface would draw, and `UiAction` values are how it would drive the engine.