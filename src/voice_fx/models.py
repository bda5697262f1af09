from __future__ import annotations

import math
from enum import Enum
from typing import Annotated, ClassVar, Literal, Union

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Effect selection
# ---------------------------------------------------------------------------


class EffectId(str, Enum):
    DELAY = "delay"
    REVERB = "reverb"
    TREMOLO = "tremolo"
    PHASER = "phaser"
    TELEPHONE = "telephone"
    ECHO = "echo"
    UNDERWATER = "underwater"
    RADIO = "radio"


INTENSITY_MIN = 0
INTENSITY_MAX = 100


def clamp_intensity(value: float) -> int:
    """Round and clamp an intensity value into [0, 100]; NaN counts as 0."""
    value = float(value)
    if math.isnan(value):
        return INTENSITY_MIN
    return int(round(min(INTENSITY_MAX, max(INTENSITY_MIN, value))))


# ---------------------------------------------------------------------------
# Stage specs (discriminated union on "op")
#
# PORTS lists the edge targets a stage accepts: "in" is the audio input,
# anything else names a parameter whose base value is offset by the sum of
# the signals connected to it.
# ---------------------------------------------------------------------------


class Gain(BaseModel):
    PORTS: ClassVar[tuple[str, ...]] = ("in", "gain")

    id: str
    op: Literal["gain"] = "gain"
    gain: float = 1.0


class Constant(BaseModel):
    PORTS: ClassVar[tuple[str, ...]] = ("offset",)

    id: str
    op: Literal["constant"] = "constant"
    offset: float = 1.0


class DelayLine(BaseModel):
    PORTS: ClassVar[tuple[str, ...]] = ("in", "delay_time")

    id: str
    op: Literal["delay"] = "delay"
    delay_time: float = 0.0  # seconds
    max_delay: float = 1.0  # seconds


class BiquadFilter(BaseModel):
    PORTS: ClassVar[tuple[str, ...]] = ("in", "frequency", "q", "gain")

    id: str
    op: Literal["biquad"] = "biquad"
    mode: Literal["lowpass", "highpass", "bandpass", "allpass", "peaking"]
    frequency: float = 350.0
    q: float = 0.7071
    gain: float = 0.0  # dB, peaking only


class Oscillator(BaseModel):
    PORTS: ClassVar[tuple[str, ...]] = ("frequency",)

    id: str
    op: Literal["oscillator"] = "oscillator"
    waveform: Literal["sine"] = "sine"
    frequency: float = 440.0


class Convolver(BaseModel):
    PORTS: ClassVar[tuple[str, ...]] = ("in",)

    id: str
    op: Literal["convolver"] = "convolver"
    duration: float = 1.0  # impulse length, seconds
    seed: int = 0
    normalize: bool = True


class Compressor(BaseModel):
    PORTS: ClassVar[tuple[str, ...]] = ("in",)

    id: str
    op: Literal["compressor"] = "compressor"
    threshold: float = -24.0  # dB
    knee: float = 30.0  # dB
    ratio: float = 12.0
    attack: float = 0.003  # seconds
    release: float = 0.25  # seconds


class WaveShaper(BaseModel):
    PORTS: ClassVar[tuple[str, ...]] = ("in",)

    id: str
    op: Literal["waveshaper"] = "waveshaper"
    curve: Literal["tanh"] = "tanh"
    drive: float = 1.0
    samples: int = 44100


# Discriminated union of all stage types
Stage = Annotated[
    Union[
        Gain,
        Constant,
        DelayLine,
        BiquadFilter,
        Oscillator,
        Convolver,
        Compressor,
        WaveShaper,
    ],
    Field(discriminator="op"),
]


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


class Edge(BaseModel):
    source: str
    target: str
    port: str = "in"


class EffectGraph(BaseModel):
    """A stage arena plus an edge list with one entry and one exit stage."""

    name: str
    input: str = "input"
    output: str = "output"
    nodes: list[Stage] = []
    edges: list[Edge] = []

    def node(self, node_id: str) -> Stage:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(f"Unknown node: '{node_id}'")
