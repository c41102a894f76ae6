"""Loader for 16-bit PCM WAV files, folded down to mono."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from os import PathLike
from typing import BinaryIO, Union

_FMT = struct.Struct("<HHIIHH")


class WavFormatError(ValueError):
    """Raised when a file is not a usable 16-bit PCM WAV."""


@dataclass
class WavSample:
    """Mono 16-bit sample data with the file's rate and original channel count."""

    sample_rate: int = 0
    channels: int = 0
    data: list[int] = field(default_factory=list)


def _chunk_header(buf: bytes, pos: int) -> tuple[bytes, int] | None:
    if pos + 8 > len(buf):
        return None
    return buf[pos : pos + 4], struct.unpack_from("<I", buf, pos + 4)[0]


def read_mono16(stream: BinaryIO, max_frames: int) -> WavSample:
    """Parse a WAV stream, keeping at most ``max_frames`` frames; stereo is averaged."""
    buf = stream.read()

    header = _chunk_header(buf, 0)
    if header is None or len(buf) < 12:
        raise WavFormatError("file too short for a RIFF header")
    if header[0] != b"RIFF" or buf[8:12] != b"WAVE":
        raise WavFormatError("not a RIFF/WAVE file")

    fmt: tuple[int, ...] | None = None
    data_offset = 0
    data_size = 0
    pos = 12
    while pos < len(buf):
        chunk = _chunk_header(buf, pos)
        if chunk is None:
            break
        chunk_id, chunk_size = chunk
        pos += 8
        if chunk_id == b"fmt ":
            if chunk_size < _FMT.size:
                raise WavFormatError("fmt chunk too short")
            if pos + _FMT.size > len(buf):
                break
            fmt = _FMT.unpack_from(buf, pos)
        elif chunk_id == b"data":
            data_offset = pos
            data_size = chunk_size
        if pos + chunk_size > len(buf):
            break
        pos += chunk_size

    if fmt is None:
        raise WavFormatError("missing fmt chunk")
    audio_format, channels, sample_rate, _byte_rate, block_align, bits = fmt
    if audio_format != 1 or bits != 16:
        raise WavFormatError("only 16-bit PCM is supported")
    if data_size == 0:
        raise WavFormatError("missing or empty data chunk")
    if block_align == 0 or channels == 0 or sample_rate == 0:
        raise WavFormatError("invalid format fields")

    total_frames = min(max_frames, data_size // block_align)

    def sample_at(offset: int) -> int:
        if offset + 2 > len(buf):
            return 0
        return struct.unpack_from("<h", buf, offset)[0]

    samples: list[int] = []
    offset = data_offset
    for _ in range(total_frames):
        left = sample_at(offset)
        offset += 2
        if channels > 1:
            right = sample_at(offset)
            offset += 2
            samples.append(int((left + right) / 2))
        else:
            samples.append(left)

    return WavSample(sample_rate=sample_rate, channels=channels, data=samples)


def load_mono16(path: Union[str, PathLike], max_frames: int) -> WavSample:
    """Read a WAV file from disk; see :func:`read_mono16`."""
    with open(path, "rb") as stream:
        return read_mono16(stream, max_frames)