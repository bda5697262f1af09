"""Effect topologies -- one fixed stage recipe per effect.

Every recipe shares the same frame::

    input -> dry ------------------> output
    input -> (wet path) -> wet ----> output

with the dry and wet gains derived from intensity by :func:`mix_gains`.
"""

from __future__ import annotations

from typing import Callable

from voice_fx import settings
from voice_fx.models import (
    BiquadFilter,
    Compressor,
    Constant,
    Convolver,
    DelayLine,
    Edge,
    EffectGraph,
    EffectId,
    Gain,
    Oscillator,
    Stage,
    WaveShaper,
    clamp_intensity,
)

Builder = Callable[[int], EffectGraph]

# (dry reduction, wet ceiling): dry = 1 - m * a, wet = m * b for m = intensity / 100
_MIX_CURVES: dict[EffectId, tuple[float, float]] = {
    EffectId.DELAY: (0.5, 0.8),
    EffectId.REVERB: (0.3, 0.6),
}

PHASER_CENTERS = (200.0, 300.0, 400.0, 500.0)
ECHO_TAPS = ((0.2, 0.3), (0.4, 0.2), (0.6, 0.1))  # (seconds, feedback)
PASS_Q = 10 ** (1 / 20)  # Web Audio default Q of 1 dB for lowpass and highpass


def mix_gains(effect_id: EffectId | str, intensity: float) -> tuple[float, float]:
    """Return (dry, wet) gains for an effect at an intensity."""
    m = clamp_intensity(intensity) / 100.0
    dry_drop, wet_max = _MIX_CURVES.get(EffectId(effect_id), (1.0, 1.0))
    return 1.0 - m * dry_drop, m * wet_max


def _e(source: str, target: str, port: str = "in") -> Edge:
    return Edge(source=source, target=target, port=port)


def _mixed(
    effect_id: EffectId,
    intensity: int,
    stages: list[Stage],
    edges: list[Edge],
    heads: list[str],
    tails: list[str],
) -> EffectGraph:
    """Wrap a wet path (entered at heads, left at tails) in the dry/wet frame."""
    dry, wet = mix_gains(effect_id, intensity)
    return EffectGraph(
        name=effect_id.value,
        nodes=[
            Gain(id="input"),
            Gain(id="dry", gain=dry),
            Gain(id="wet", gain=wet),
            Gain(id="output"),
            *stages,
        ],
        edges=[
            _e("input", "dry"),
            *[_e("input", head) for head in heads],
            *edges,
            *[_e(tail, "wet") for tail in tails],
            _e("dry", "output"),
            _e("wet", "output"),
        ],
    )


def passthrough() -> EffectGraph:
    """Identity graph: output equals input."""
    return EffectGraph(
        name="passthrough",
        nodes=[Gain(id="input"), Gain(id="output")],
        edges=[_e("input", "output")],
    )


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------


def delay(intensity: int) -> EffectGraph:
    """Single delay with feedback; time and feedback grow with intensity."""
    m = clamp_intensity(intensity) / 100.0
    return _mixed(
        EffectId.DELAY,
        intensity,
        stages=[
            DelayLine(id="delay", delay_time=0.1 + m * 0.4),
            Gain(id="feedback", gain=m * 0.6),
        ],
        edges=[_e("delay", "feedback"), _e("feedback", "delay")],
        heads=["delay"],
        tails=["delay"],
    )


def reverb(intensity: int) -> EffectGraph:
    """Convolution with a synthesized 1-3 s impulse."""
    m = clamp_intensity(intensity) / 100.0
    return _mixed(
        EffectId.REVERB,
        intensity,
        stages=[Convolver(id="convolver", duration=1.0 + 2.0 * m, seed=settings.REVERB_SEED)],
        edges=[],
        heads=["convolver"],
        tails=["convolver"],
    )


def tremolo(intensity: int) -> EffectGraph:
    # gain = 0.5 + 0.5 * sin(2 pi 4 t), never negative
    return _mixed(
        EffectId.TREMOLO,
        intensity,
        stages=[
            Gain(id="tremolo", gain=0.0),
            Oscillator(id="lfo", frequency=4.0),
            Gain(id="lfo_depth", gain=0.5),
            Constant(id="dc_offset", offset=0.5),
        ],
        edges=[
            _e("lfo", "lfo_depth"),
            _e("lfo_depth", "tremolo", "gain"),
            _e("dc_offset", "tremolo", "gain"),
        ],
        heads=["tremolo"],
        tails=["tremolo"],
    )


def phaser(intensity: int) -> EffectGraph:
    """Four swept all-pass filters with half the cascade output fed back.

    The loop closes through ``feedback_delay``, which the runner holds at
    its minimum of one block.
    """
    stages: list[Stage] = [Gain(id="loop")]
    edges: list[Edge] = []
    previous = "loop"
    for i, center in enumerate(PHASER_CENTERS):
        nid = f"allpass_{i}"
        stages.append(BiquadFilter(id=nid, mode="allpass", frequency=center, q=1.0))
        edges.append(_e(previous, nid))
        edges.append(_e("lfo_depth", nid, "frequency"))
        previous = nid
    stages += [
        Oscillator(id="lfo", frequency=0.8),
        Gain(id="lfo_depth", gain=200.0),
        Gain(id="feedback", gain=0.5),
        DelayLine(id="feedback_delay", delay_time=0.0),
    ]
    edges += [
        _e("lfo", "lfo_depth"),
        _e(previous, "feedback"),
        _e("feedback", "feedback_delay"),
        _e("feedback_delay", "loop"),
    ]
    return _mixed(EffectId.PHASER, intensity, stages, edges, heads=["loop"], tails=[previous])


def telephone(intensity: int) -> EffectGraph:
    """300 Hz - 3 kHz band with makeup gain."""
    return _mixed(
        EffectId.TELEPHONE,
        intensity,
        stages=[
            BiquadFilter(id="highpass", mode="highpass", frequency=300.0, q=PASS_Q),
            BiquadFilter(id="lowpass", mode="lowpass", frequency=3000.0, q=PASS_Q),
            Gain(id="makeup", gain=2.0),
        ],
        edges=[_e("highpass", "lowpass"), _e("lowpass", "makeup")],
        heads=["highpass"],
        tails=["makeup"],
    )


def echo(intensity: int) -> EffectGraph:
    """Three parallel feedback delays summed onto the wet bus."""
    stages: list[Stage] = []
    edges: list[Edge] = []
    taps: list[str] = []
    for i, (seconds, amount) in enumerate(ECHO_TAPS, start=1):
        tap, fb = f"delay_{i}", f"feedback_{i}"
        stages += [DelayLine(id=tap, delay_time=seconds), Gain(id=fb, gain=amount)]
        edges += [_e(tap, fb), _e(fb, tap)]
        taps.append(tap)
    return _mixed(EffectId.ECHO, intensity, stages, edges, heads=taps, tails=taps)


def underwater(intensity: int) -> EffectGraph:
    """Muffling lowpass into a short, slowly wobbling delay."""
    return _mixed(
        EffectId.UNDERWATER,
        intensity,
        stages=[
            BiquadFilter(id="lowpass", mode="lowpass", frequency=800.0, q=PASS_Q),
            DelayLine(id="wobble", delay_time=0.02, max_delay=0.05),
            Oscillator(id="lfo", frequency=2.0),
            Gain(id="lfo_depth", gain=0.005),
        ],
        edges=[
            _e("lowpass", "wobble"),
            _e("lfo", "lfo_depth"),
            _e("lfo_depth", "wobble", "delay_time"),
        ],
        heads=["lowpass"],
        tails=["wobble"],
    )


def radio(intensity: int) -> EffectGraph:
    """Heavy compression, tanh saturation and a presence boost."""
    return _mixed(
        EffectId.RADIO,
        intensity,
        stages=[
            Compressor(
                id="compressor", threshold=-20.0, knee=30.0, ratio=12.0, attack=0.003, release=0.25
            ),
            WaveShaper(id="shaper", curve="tanh", drive=3.0),
            BiquadFilter(id="presence", mode="peaking", frequency=2000.0, q=1.0, gain=6.0),
        ],
        edges=[_e("compressor", "shaper"), _e("shaper", "presence")],
        heads=["compressor"],
        tails=["presence"],
    )


BUILDERS: dict[EffectId, Builder] = {
    EffectId.DELAY: delay,
    EffectId.REVERB: reverb,
    EffectId.TREMOLO: tremolo,
    EffectId.PHASER: phaser,
    EffectId.TELEPHONE: telephone,
    EffectId.ECHO: echo,
    EffectId.UNDERWATER: underwater,
    EffectId.RADIO: radio,
}


def build_topology(effect_id: EffectId | str, intensity: float) -> EffectGraph:
    """Build the graph for a known effect. Raises ValueError for unknown IDs."""
    return BUILDERS[EffectId(effect_id)](clamp_intensity(intensity))
