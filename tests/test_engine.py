"""Tests for the block-based graph runner."""

from __future__ import annotations

import numpy as np
import pytest

from voice_fx import (
    Constant,
    DelayLine,
    Edge,
    EffectGraph,
    Gain,
    GraphRunner,
    Oscillator,
    RunnerClosedError,
    passthrough,
    run_graph,
)
from voice_fx.stages import DelayStage


class TestRunnerBasics:
    def test_passthrough(self, noise: np.ndarray) -> None:
        np.testing.assert_array_equal(run_graph(passthrough(), noise, 8000), noise)

    def test_accepts_1d_block(self) -> None:
        runner = GraphRunner(passthrough(), 8000)
        out = runner.process(np.array([0.1, 0.2, 0.3]))
        assert out.shape == (1, 3)

    def test_channel_mismatch(self) -> None:
        runner = GraphRunner(passthrough(), 8000, channels=2)
        with pytest.raises(ValueError, match="Expected 2 channel"):
            runner.process(np.zeros((1, 16)))

    def test_invalid_graph_rejected(self) -> None:
        g = EffectGraph(name="broken", nodes=[Gain(id="input")])
        with pytest.raises(ValueError, match="Invalid graph 'broken'"):
            GraphRunner(g, 8000)

    def test_defaults_from_settings(self) -> None:
        runner = GraphRunner(passthrough())
        assert runner.sr == 44100.0
        assert runner.block_size == 128

    def test_empty_block(self) -> None:
        runner = GraphRunner(passthrough(), 8000)
        assert runner.process(np.zeros((1, 0))).shape == (1, 0)

    def test_stage_lookup(self, fbdelay_graph: EffectGraph) -> None:
        runner = GraphRunner(fbdelay_graph, 1000)
        stage = runner.stage("delay")
        assert isinstance(stage, DelayStage)
        assert stage.loop


class TestBlockIndependence:
    def test_chunking_does_not_change_output(
        self, fbdelay_graph: EffectGraph, noise: np.ndarray
    ) -> None:
        whole = run_graph(fbdelay_graph, noise, 8000, block_size=64)
        runner = GraphRunner(fbdelay_graph, 8000, block_size=64)
        parts = [runner.process(noise[:, i : i + 100]) for i in range(0, noise.shape[1], 100)]
        np.testing.assert_allclose(np.concatenate(parts, axis=1), whole, atol=1e-12)


class TestFeedback:
    def test_fbdelay_impulse(self, fbdelay_graph: EffectGraph, impulse: np.ndarray) -> None:
        out = run_graph(fbdelay_graph, impulse, 1000)
        assert out[0, 0] == pytest.approx(1.0)
        assert out[0, 250] == pytest.approx(1.0)
        assert out[0, 500] == pytest.approx(0.5)
        assert out[0, 750] == pytest.approx(0.25)
        assert np.count_nonzero(np.abs(out) > 1e-9) == 4

    def test_short_loop_held_at_one_block(
        self, shortloop_graph: EffectGraph, impulse: np.ndarray
    ) -> None:
        out = run_graph(shortloop_graph, impulse, 1000, block_size=16)
        assert out[0, 0] == pytest.approx(1.0)
        assert out[0, 16] == pytest.approx(0.5)
        assert out[0, 32] == pytest.approx(0.25)
        assert not out[0, 1:16].any()

    def test_feedback_decays(self, fbdelay_graph: EffectGraph, noise: np.ndarray) -> None:
        x = np.zeros((1, 8000 * 4))
        x[:, : noise.shape[1]] = noise
        out = run_graph(fbdelay_graph, x, 8000)
        assert np.abs(out[:, -4000:]).max() < np.abs(out[:, :4000]).max() * 0.1


class TestModulation:
    def test_parameter_summed_with_base(self) -> None:
        g = EffectGraph(
            name="dc_gain",
            nodes=[
                Gain(id="input"),
                Gain(id="output", gain=0.25),
                Constant(id="a", offset=0.25),
                Constant(id="b", offset=0.5),
            ],
            edges=[
                Edge(source="input", target="output"),
                Edge(source="a", target="output", port="gain"),
                Edge(source="b", target="output", port="gain"),
            ],
        )
        out = run_graph(g, np.full((1, 10), 2.0), 8000)
        np.testing.assert_allclose(out, 2.0)

    def test_lfo_modulates_delay(self) -> None:
        g = EffectGraph(
            name="vibrato",
            nodes=[
                Gain(id="input"),
                DelayLine(id="output", delay_time=0.01, max_delay=0.02),
                Oscillator(id="lfo", frequency=5.0),
                Gain(id="depth", gain=0.005),
            ],
            edges=[
                Edge(source="input", target="output"),
                Edge(source="lfo", target="depth"),
                Edge(source="depth", target="output", port="delay_time"),
            ],
        )
        sr = 8000
        ramp = np.arange(sr, dtype=float)[np.newaxis, :]
        out = run_graph(g, ramp, sr)
        lag = ramp[0, 200:] - out[0, 200:]
        assert lag.min() == pytest.approx(0.005 * sr, abs=1.0)
        assert lag.max() == pytest.approx(0.015 * sr, abs=1.0)

    def test_multichannel_broadcasts_control(self) -> None:
        g = EffectGraph(
            name="stereo",
            nodes=[Gain(id="input"), Gain(id="output", gain=0.0), Constant(id="dc", offset=0.5)],
            edges=[
                Edge(source="input", target="output"),
                Edge(source="dc", target="output", port="gain"),
            ],
        )
        x = np.array([[1.0, 2.0], [-1.0, -2.0]])
        np.testing.assert_allclose(run_graph(g, x, 8000), x * 0.5)


class TestClose:
    def test_close_twice(self) -> None:
        runner = GraphRunner(passthrough(), 8000)
        runner.close()
        assert runner.closed
        with pytest.raises(RunnerClosedError):
            runner.close()

    def test_process_after_close(self) -> None:
        runner = GraphRunner(passthrough(), 8000)
        runner.close()
        with pytest.raises(RunnerClosedError, match="is closed"):
            runner.process(np.zeros((1, 4)))

    def test_runners_share_no_state(self, fbdelay_graph: EffectGraph, impulse: np.ndarray) -> None:
        a = GraphRunner(fbdelay_graph, 1000)
        b = GraphRunner(fbdelay_graph, 1000)
        a.process(impulse)
        np.testing.assert_array_equal(b.process(np.zeros((1, 1000))), 0.0)
