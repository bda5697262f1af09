"""Canonical export container: 16-bit PCM RIFF/WAVE with a 44-byte header."""

from __future__ import annotations

import struct
from pathlib import Path

import numpy as np

from voice_fx.audio import SignalBuffer

HEADER_SIZE = 44


def encode_wav(audio: SignalBuffer) -> bytes:
    """Serialize a signal as interleaved little-endian PCM16.

    Each sample is clamped to [-1, 1], scaled by 32767 and truncated
    toward zero.
    """
    n_channels = audio.channels
    clamped = np.clip(audio.samples, -1.0, 1.0)
    pcm = np.trunc(clamped * 32767.0).astype("<i2")
    raw = pcm.T.tobytes()  # frame-major -> interleaved
    data_size = len(raw)
    byte_rate = audio.sample_rate * n_channels * 2
    block_align = n_channels * 2

    header = b"".join(
        [
            b"RIFF",
            struct.pack("<I", 36 + data_size),
            b"WAVE",
            b"fmt ",
            struct.pack("<I", 16),  # chunk size
            struct.pack("<H", 1),  # PCM
            struct.pack("<H", n_channels),
            struct.pack("<I", audio.sample_rate),
            struct.pack("<I", byte_rate),
            struct.pack("<H", block_align),
            struct.pack("<H", 16),
            b"data",
            struct.pack("<I", data_size),
        ]
    )
    return header + raw


def decode_wav(data: bytes) -> SignalBuffer:
    """Parse a WAV byte string into a signal.

    Supports PCM16, PCM32 (tag 1) and float32 (tag 3). Raises ValueError on
    anything else.
    """
    if len(data) < HEADER_SIZE or data[:4] != b"RIFF" or data[8:12] != b"WAVE":
        raise ValueError("Not a valid WAV file")

    # Parse chunks
    pos = 12
    fmt_tag = 0
    n_channels = 0
    sample_rate = 0
    bits_per_sample = 0
    audio_data: bytes | None = None

    while pos <= len(data) - 8:
        chunk_id = data[pos : pos + 4]
        chunk_size = struct.unpack_from("<I", data, pos + 4)[0]
        chunk_data = data[pos + 8 : pos + 8 + chunk_size]

        if chunk_id == b"fmt ":
            if len(chunk_data) < 16:
                raise ValueError("Truncated fmt chunk")
            fmt_tag = struct.unpack_from("<H", chunk_data, 0)[0]
            n_channels = struct.unpack_from("<H", chunk_data, 2)[0]
            sample_rate = struct.unpack_from("<I", chunk_data, 4)[0]
            bits_per_sample = struct.unpack_from("<H", chunk_data, 14)[0]
        elif chunk_id == b"data":
            audio_data = chunk_data

        pos += 8 + chunk_size
        if chunk_size % 2 == 1:
            pos += 1  # pad byte

    if n_channels == 0:
        raise ValueError("No fmt chunk in WAV file")
    if audio_data is None:
        raise ValueError("No data chunk in WAV file")

    # Decode samples
    if fmt_tag == 1:  # PCM
        if bits_per_sample == 16:
            width = len(audio_data) - len(audio_data) % 2
            samples = np.frombuffer(audio_data[:width], dtype="<i2") / 32768.0
        elif bits_per_sample == 32:
            width = len(audio_data) - len(audio_data) % 4
            samples = np.frombuffer(audio_data[:width], dtype="<i4") / 2147483648.0
        else:
            raise ValueError(f"Unsupported PCM bit depth: {bits_per_sample}")
    elif fmt_tag == 3:  # IEEE float
        width = len(audio_data) - len(audio_data) % 4
        samples = np.frombuffer(audio_data[:width], dtype="<f4").astype(np.float64)
    else:
        raise ValueError(f"Unsupported WAV format tag: {fmt_tag}")

    # De-interleave channels
    n_frames = len(samples) // n_channels
    frames = samples[: n_frames * n_channels].reshape(n_frames, n_channels).T
    return SignalBuffer(frames, sample_rate)


def write_wav(path: str | Path, audio: SignalBuffer) -> Path:
    """Write a signal to ``path`` as PCM16 and return the path."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(encode_wav(audio))
    return out
