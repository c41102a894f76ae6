"""Generative Euclidean drum machine, bass groove synthesiser and MIDI output engine."""

__version__ = "0.1.0"