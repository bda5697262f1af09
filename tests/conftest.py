from __future__ import annotations

import numpy as np
import pytest

from voice_fx import DelayLine, Edge, EffectGraph, Gain

SR = 8000


@pytest.fixture
def noise() -> np.ndarray:
    """A quarter second of mono noise at 8 kHz, shape (1, frames)."""
    rng = np.random.default_rng(1234)
    return rng.uniform(-0.5, 0.5, (1, SR // 4))


@pytest.fixture
def impulse() -> np.ndarray:
    """Unit impulse followed by one second of silence at 1 kHz."""
    x = np.zeros((1, 1000))
    x[0, 0] = 1.0
    return x


@pytest.fixture
def fbdelay_graph() -> EffectGraph:
    """Feedback delay: input -> delay <-> feedback, delay + input -> output."""
    return EffectGraph(
        name="fbdelay",
        nodes=[
            Gain(id="input"),
            DelayLine(id="delay", delay_time=0.25),
            Gain(id="feedback", gain=0.5),
            Gain(id="output"),
        ],
        edges=[
            Edge(source="input", target="delay"),
            Edge(source="delay", target="feedback"),
            Edge(source="feedback", target="delay"),
            Edge(source="input", target="output"),
            Edge(source="delay", target="output"),
        ],
    )


@pytest.fixture
def shortloop_graph() -> EffectGraph:
    """Feedback loop closed by a zero-length delay (clamped to one block)."""
    return EffectGraph(
        name="shortloop",
        nodes=[
            Gain(id="input"),
            Gain(id="loop"),
            Gain(id="feedback", gain=0.5),
            DelayLine(id="fb_delay", delay_time=0.0),
            Gain(id="output"),
        ],
        edges=[
            Edge(source="input", target="loop"),
            Edge(source="loop", target="feedback"),
            Edge(source="feedback", target="fb_delay"),
            Edge(source="fb_delay", target="loop"),
            Edge(source="loop", target="output"),
        ],
    )
