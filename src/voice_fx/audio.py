"""Signal containers passed between capture, rendering and serialization."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from voice_fx import settings


@dataclass(frozen=True, eq=False)
class SignalBuffer:
    """Immutable multi-channel signal, ``samples`` shaped ``(channels, frames)``."""

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        data = np.array(self.samples, dtype=np.float64, ndmin=2, copy=True)
        if data.ndim != 2:
            raise ValueError(f"Expected (channels, frames) samples, got shape {data.shape}")
        if data.shape[0] < 1:
            raise ValueError("A signal needs at least one channel")
        if self.sample_rate <= 0:
            raise ValueError(f"Invalid sample rate: {self.sample_rate}")
        data.setflags(write=False)
        object.__setattr__(self, "samples", data)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @property
    def channels(self) -> int:
        return self.samples.shape[0]

    @property
    def frames(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate

    @classmethod
    def silence(cls, seconds: float, sample_rate: int, channels: int = 1) -> SignalBuffer:
        return cls(np.zeros((channels, int(round(seconds * sample_rate)))), sample_rate)


@dataclass(frozen=True, eq=False)
class RenderedAudio(SignalBuffer):
    """Rendered output, clamped to [-1, 1] and ready for 16-bit serialization."""

    bit_depth: int = settings.BIT_DEPTH

    def __post_init__(self) -> None:
        object.__setattr__(self, "samples", np.clip(self.samples, -1.0, 1.0))
        super().__post_init__()
