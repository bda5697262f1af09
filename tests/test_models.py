from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from voice_fx import (
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
    WaveShaper,
    clamp_intensity,
)

# ---------------------------------------------------------------------------
# Stage construction
# ---------------------------------------------------------------------------


class TestStageConstruction:
    def test_gain_default(self) -> None:
        n = Gain(id="g")
        assert n.op == "gain"
        assert n.gain == 1.0

    def test_delay(self) -> None:
        n = DelayLine(id="d", delay_time=0.3)
        assert n.op == "delay"
        assert n.max_delay == 1.0

    def test_biquad_modes(self) -> None:
        for mode in ("lowpass", "highpass", "bandpass", "allpass", "peaking"):
            assert BiquadFilter(id="f", mode=mode).mode == mode

    def test_biquad_bad_mode(self) -> None:
        with pytest.raises(ValidationError):
            BiquadFilter(id="f", mode="notch")

    def test_oscillator(self) -> None:
        n = Oscillator(id="lfo", frequency=4.0)
        assert n.waveform == "sine"

    def test_convolver(self) -> None:
        n = Convolver(id="c", duration=2.0, seed=7)
        assert n.normalize is True

    def test_compressor_defaults(self) -> None:
        n = Compressor(id="c")
        assert n.ratio == 12.0
        assert n.attack == 0.003

    def test_waveshaper(self) -> None:
        n = WaveShaper(id="w", drive=3.0)
        assert n.curve == "tanh"
        assert n.samples == 44100

    def test_constant(self) -> None:
        assert Constant(id="dc", offset=0.5).offset == 0.5


class TestPorts:
    def test_audio_stages_take_input(self) -> None:
        for cls in (Gain, DelayLine, BiquadFilter, Convolver, Compressor, WaveShaper):
            assert "in" in cls.PORTS

    def test_sources_take_no_audio(self) -> None:
        assert "in" not in Oscillator.PORTS
        assert "in" not in Constant.PORTS

    def test_modulatable_params(self) -> None:
        assert "gain" in Gain.PORTS
        assert "delay_time" in DelayLine.PORTS
        assert "frequency" in BiquadFilter.PORTS
        assert "frequency" in Oscillator.PORTS

    def test_ports_not_serialized(self) -> None:
        assert "PORTS" not in Gain(id="g").model_dump()


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class TestEffectGraph:
    def test_defaults(self) -> None:
        g = EffectGraph(name="empty")
        assert g.input == "input"
        assert g.output == "output"
        assert g.nodes == []
        assert g.edges == []

    def test_edge_default_port(self) -> None:
        assert Edge(source="a", target="b").port == "in"

    def test_node_lookup(self, fbdelay_graph: EffectGraph) -> None:
        assert isinstance(fbdelay_graph.node("delay"), DelayLine)

    def test_node_lookup_unknown(self, fbdelay_graph: EffectGraph) -> None:
        with pytest.raises(KeyError, match="Unknown node"):
            fbdelay_graph.node("nope")

    def test_json_round_trip(self, fbdelay_graph: EffectGraph) -> None:
        text = fbdelay_graph.model_dump_json()
        restored = EffectGraph.model_validate_json(text)
        assert restored == fbdelay_graph
        assert isinstance(restored.nodes[1], DelayLine)

    def test_discriminator_from_dict(self) -> None:
        data = {
            "name": "g",
            "nodes": [
                {"id": "input", "op": "gain"},
                {"id": "f", "op": "biquad", "mode": "lowpass", "frequency": 800.0},
                {"id": "output", "op": "gain", "gain": 2.0},
            ],
            "edges": [
                {"source": "input", "target": "f"},
                {"source": "f", "target": "output"},
            ],
        }
        g = EffectGraph.model_validate(json.loads(json.dumps(data)))
        assert isinstance(g.nodes[1], BiquadFilter)
        assert g.nodes[2].gain == 2.0

    def test_unknown_op_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EffectGraph.model_validate({"name": "g", "nodes": [{"id": "x", "op": "flanger"}]})


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class TestEffectId:
    def test_values(self) -> None:
        assert [e.value for e in EffectId] == [
            "delay",
            "reverb",
            "tremolo",
            "phaser",
            "telephone",
            "echo",
            "underwater",
            "radio",
        ]

    def test_from_string(self) -> None:
        assert EffectId("radio") is EffectId.RADIO

    def test_unknown(self) -> None:
        with pytest.raises(ValueError):
            EffectId("alien")


class TestClampIntensity:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0, 0), (100, 100), (50, 50), (-10, 0), (250, 100), (49.6, 50), ("30", 30)],
    )
    def test_clamp(self, value: object, expected: int) -> None:
        assert clamp_intensity(value) == expected  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(float("nan"), 0), ("nan", 0), (float("inf"), 100), (float("-inf"), 0)],
    )
    def test_non_finite(self, value: object, expected: int) -> None:
        assert clamp_intensity(value) == expected  # type: ignore[arg-type]
