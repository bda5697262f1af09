"""Tests for live monitoring; the audio device is mocked out."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

try:
    import sounddevice as sd

    from voice_fx import monitor
except OSError:  # PortAudio library missing
    pytest.skip("PortAudio not available", allow_module_level=True)

from voice_fx import decode_wav
from voice_fx.cli import main


def _feed(mon: monitor.LiveMonitor, block: np.ndarray) -> np.ndarray:
    """Push one (frames, channels) block through the stream callback."""
    out = np.zeros_like(block, dtype=np.float32)
    mon._callback(block.astype(np.float32), out, block.shape[0], None, None)
    return out


class TestLiveMonitor:
    def test_opens_duplex_stream(self) -> None:
        with patch("voice_fx.monitor.sd.Stream") as stream_cls:
            mon = monitor.LiveMonitor("telephone", 40, sample_rate=8000)
            mon.start()
            assert mon.running
            kwargs = stream_cls.call_args.kwargs
            assert kwargs["samplerate"] == 8000
            assert kwargs["channels"] == 1
            assert kwargs["dtype"] == "float32"
            stream_cls.return_value.start.assert_called_once()
            mon.stop()
            stream_cls.return_value.close.assert_called_once()
            assert not mon.running

    def test_start_twice_is_noop(self) -> None:
        with patch("voice_fx.monitor.sd.Stream") as stream_cls:
            mon = monitor.LiveMonitor(sample_rate=8000)
            mon.start()
            mon.start()
            assert stream_cls.call_count == 1
            mon.stop()

    def test_preview_level(self) -> None:
        mon = monitor.LiveMonitor("delay", 0, sample_rate=8000)
        block = np.full((32, 1), 0.5)
        np.testing.assert_allclose(_feed(mon, block), 0.35, rtol=1e-6)
        assert mon.stop() is None

    def test_record_level_and_capture(self) -> None:
        mon = monitor.LiveMonitor("delay", 0, sample_rate=8000, record=True)
        first = np.full((16, 1), 0.5)
        second = np.full((16, 1), -0.25)
        np.testing.assert_allclose(_feed(mon, first), 0.3, rtol=1e-6)
        _feed(mon, second)
        captured = mon.stop()
        assert captured is not None
        assert captured.sample_rate == 8000
        assert captured.frames == 32
        # raw input is kept, not the processed signal
        np.testing.assert_allclose(captured.samples[0, :16], 0.5)
        np.testing.assert_allclose(captured.samples[0, 16:], -0.25)

    def test_record_nothing(self) -> None:
        mon = monitor.LiveMonitor(sample_rate=8000, channels=2, record=True)
        captured = mon.stop()
        assert captured is not None
        assert captured.samples.shape == (2, 0)

    def test_set_effect_swaps_patch(self) -> None:
        mon = monitor.LiveMonitor("delay", 50, sample_rate=8000)
        old = mon.router.patch
        mon.set_effect("radio", 70)
        assert old is not None and old.closed
        assert mon.router.patch.effect_id == "radio"
        mon.stop()

    def test_stop_tears_down_graph(self) -> None:
        with patch("voice_fx.monitor.sd.Stream"):
            mon = monitor.LiveMonitor("echo", 50, sample_rate=8000)
            patch_ = mon.router.patch
            mon.start()
            mon.stop()
        assert patch_ is not None and patch_.closed
        assert mon.router.patch is None

    def test_device_unavailable(self) -> None:
        with patch("voice_fx.monitor.sd.Stream", side_effect=sd.PortAudioError("no device")):
            mon = monitor.LiveMonitor("echo", 50, sample_rate=8000)
            patch_ = mon.router.patch
            with pytest.raises(monitor.DeviceUnavailableError, match="Could not access"):
                mon.start()
        assert not mon.running
        assert patch_ is mon.router.patch
        assert patch_ is not None and not patch_.closed

    def test_retry_after_device_error_keeps_effect(self) -> None:
        mon = monitor.LiveMonitor("echo", 50, sample_rate=8000)
        with patch("voice_fx.monitor.sd.Stream", side_effect=sd.PortAudioError("no device")):
            with pytest.raises(monitor.DeviceUnavailableError):
                mon.start()
        with patch("voice_fx.monitor.sd.Stream"):
            mon.start()
            assert mon.running
            assert mon.router.patch is not None
            assert (mon.router.patch.effect_id, mon.router.patch.intensity) == ("echo", 50)
            mon.stop()

    def test_restart_after_stop_repatches(self) -> None:
        with patch("voice_fx.monitor.sd.Stream"):
            mon = monitor.LiveMonitor("delay", 20, sample_rate=8000)
            mon.start()
            mon.set_effect("radio", 70)
            mon.stop()
            assert mon.router.patch is None
            mon.start()
            assert mon.router.patch is not None
            assert (mon.router.patch.effect_id, mon.router.patch.intensity) == ("radio", 70)
            mon.stop()

    def test_start_failure_closes_stream(self) -> None:
        stream = MagicMock()
        stream.start.side_effect = sd.PortAudioError("busy")
        with patch("voice_fx.monitor.sd.Stream", return_value=stream):
            mon = monitor.LiveMonitor(sample_rate=8000)
            with pytest.raises(monitor.DeviceUnavailableError):
                mon.start()
        stream.close.assert_called_once()

    def test_context_manager(self) -> None:
        with patch("voice_fx.monitor.sd.Stream") as stream_cls:
            with monitor.LiveMonitor(sample_rate=8000) as mon:
                assert mon.running
            stream_cls.return_value.stop.assert_called_once()


class TestCliLive:
    def test_preview_device_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("voice_fx.monitor.sd.Stream", side_effect=sd.PortAudioError("no device")):
            rc = main(["preview", "-e", "phaser", "-d", "0"])
        assert rc == 1
        assert "Could not access the microphone" in capsys.readouterr().err

    def test_preview(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("voice_fx.monitor.sd.Stream"):
            rc = main(["preview", "-e", "tremolo", "-d", "0"])
        assert rc == 0
        assert "Speak into your microphone" in capsys.readouterr().out

    def test_record_exports_wav(self, tmp_path: Path) -> None:
        out = tmp_path / "rec.wav"
        with patch("voice_fx.monitor.sd.Stream"):
            rc = main(
                ["record", "-e", "telephone", "-d", "0", "--sample-rate", "8000", "-o", str(out)]
            )
        assert rc == 0
        decoded = decode_wav(out.read_bytes())
        assert decoded.sample_rate == 8000
        assert decoded.frames == 0
