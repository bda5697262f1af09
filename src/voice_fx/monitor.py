"""Live monitoring and recording on the default audio device."""

from __future__ import annotations

import logging
import threading
from typing import Any

import numpy as np
import sounddevice as sd

from voice_fx import settings
from voice_fx.audio import SignalBuffer
from voice_fx.models import EffectId
from voice_fx.router import SignalRouter

logger = logging.getLogger(__name__)


class DeviceUnavailableError(RuntimeError):
    """The capture/playback device could not be opened."""


class LiveMonitor:
    """Play the microphone back through an effect while it is captured.

    PortAudio hands over the raw device signal; no echo cancellation, noise
    suppression or automatic gain control is applied. With ``record=True``
    the unprocessed input is also kept and returned by :meth:`stop`.
    """

    def __init__(
        self,
        effect_id: EffectId | str | None = settings.DEFAULT_EFFECT,
        intensity: float = settings.DEFAULT_INTENSITY,
        *,
        sample_rate: int | None = None,
        channels: int | None = None,
        record: bool = False,
        device: int | str | None = None,
    ) -> None:
        self.sample_rate = int(sample_rate or settings.DEFAULT_SAMPLE_RATE)
        self.channels = channels or settings.DEFAULT_CHANNELS
        self.record = record
        self.device = device
        level = settings.RECORD_LEVEL if record else settings.PREVIEW_LEVEL
        self.router = SignalRouter(self.sample_rate, self.channels, level)
        self.effect_id = effect_id
        self.intensity = intensity
        self.router.set_effect(effect_id, intensity)
        self._lock = threading.Lock()
        self._captured: list[np.ndarray] = []
        self._stream: sd.Stream | None = None

    @property
    def running(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        """Open the duplex stream. Raises DeviceUnavailableError on failure.

        The selected effect survives a failed start, and a monitor that was
        stopped is patched again before the stream reopens.
        """
        if self._stream is not None:
            return
        with self._lock:
            if self.router.patch is None:
                self.router.set_effect(self.effect_id, self.intensity)
        stream: sd.Stream | None = None
        try:
            stream = sd.Stream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                device=self.device,
                callback=self._callback,
            )
            stream.start()
        except sd.PortAudioError as e:
            if stream is not None:
                stream.close()
            raise DeviceUnavailableError(f"Could not access the microphone: {e}") from e
        self._stream = stream
        logger.info(
            "%s started (%d Hz, %d channel(s))",
            "recording" if self.record else "preview",
            self.sample_rate,
            self.channels,
        )

    def set_effect(self, effect_id: EffectId | str | None, intensity: float) -> None:
        """Swap the live effect; the old graph is torn down first."""
        with self._lock:
            self.router.set_effect(effect_id, intensity)
            self.effect_id = effect_id
            self.intensity = intensity

    def stop(self) -> SignalBuffer | None:
        """Release the device and return the raw capture when recording."""
        stream, self._stream = self._stream, None
        try:
            if stream is not None:
                stream.stop()
        finally:
            if stream is not None:
                stream.close()
            with self._lock:
                self.router.close()

        if not self.record:
            return None
        if self._captured:
            samples = np.concatenate(self._captured, axis=1)
        else:
            samples = np.zeros((self.channels, 0))
        self._captured = []
        return SignalBuffer(samples, self.sample_rate)

    def __enter__(self) -> LiveMonitor:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()

    def _callback(
        self, indata: np.ndarray, outdata: np.ndarray, frames: int, time: Any, status: Any
    ) -> None:
        if status:
            logger.debug("stream status: %s", status)
        block = indata.T.astype(np.float64)
        if self.record:
            self._captured.append(block)
        with self._lock:
            routed = self.router.process(block)
        outdata[:] = routed.T
