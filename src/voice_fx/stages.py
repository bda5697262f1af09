"""Unit DSP stages -- block processors instantiated from stage specs.

Every processor takes a ``(channels, n)`` audio block (or ``None`` when
nothing is connected) plus a dict of parameter modulation signals, and
returns a block. Control sources (oscillators, constants) emit ``(1, n)``
blocks that broadcast against multi-channel audio.
"""

from __future__ import annotations

import math

import numpy as np
from scipy import fft, signal

from voice_fx.models import (
    BiquadFilter,
    Compressor,
    Constant,
    Convolver,
    DelayLine,
    Gain,
    Oscillator,
    Stage,
    WaveShaper,
)

Mods = dict[str, np.ndarray]

_TWO_PI = 2.0 * math.pi
_MIN_FREQUENCY = 10.0


class StageProcessor:
    """Base class for a running stage owned by exactly one graph runner."""

    def __init__(self, node: Stage, sample_rate: float, channels: int) -> None:
        self.node = node
        self.sr = float(sample_rate)
        self.channels = channels

    def process(self, x: np.ndarray | None, mods: Mods, n: int) -> np.ndarray:
        raise NotImplementedError

    def _full(self, x: np.ndarray | None, n: int) -> np.ndarray:
        if x is None:
            return np.zeros((self.channels, n))
        return np.broadcast_to(x, (self.channels, n))

    @staticmethod
    def _param(base: float, mods: Mods, name: str) -> float | np.ndarray:
        """Base value plus any connected modulation (a-rate)."""
        mod = mods.get(name)
        if mod is None:
            return base
        return base + mod

    @staticmethod
    def _control(base: float, mods: Mods, name: str) -> float:
        """Base value plus modulation sampled at the block start (k-rate)."""
        mod = mods.get(name)
        if mod is None:
            return base
        return base + float(mod[0, 0])


# ---------------------------------------------------------------------------
# Gain / sources
# ---------------------------------------------------------------------------


class GainStage(StageProcessor):
    node: Gain

    def process(self, x: np.ndarray | None, mods: Mods, n: int) -> np.ndarray:
        if x is None:
            return np.zeros((1, n))
        return x * self._param(self.node.gain, mods, "gain")


class ConstantStage(StageProcessor):
    node: Constant

    def process(self, x: np.ndarray | None, mods: Mods, n: int) -> np.ndarray:
        return np.full((1, n), self.node.offset) + mods.get("offset", 0.0)


class OscillatorStage(StageProcessor):
    node: Oscillator

    def __init__(self, node: Oscillator, sample_rate: float, channels: int) -> None:
        super().__init__(node, sample_rate, channels)
        self._phase = 0.0

    def process(self, x: np.ndarray | None, mods: Mods, n: int) -> np.ndarray:
        freq = self._param(self.node.frequency, mods, "frequency")
        if np.ndim(freq) == 0:
            incr = _TWO_PI * float(freq) / self.sr
            phase = self._phase + incr * np.arange(n)
            self._phase = (self._phase + incr * n) % _TWO_PI
        else:
            incr = _TWO_PI * np.asarray(freq)[0] / self.sr
            phase = self._phase + np.concatenate(([0.0], np.cumsum(incr[:-1])))
            self._phase = float(phase[-1] + incr[-1]) % _TWO_PI
        return np.sin(phase)[np.newaxis, :]


# ---------------------------------------------------------------------------
# Delay
# ---------------------------------------------------------------------------


class DelayStage(StageProcessor):
    """Ring-buffer delay with linearly interpolated fractional reads.

    A delay on a feedback loop (``loop=True``) is split in two: ``read``
    produces the block from samples written in earlier blocks and ``write``
    stores the block input once the rest of the graph has run. Its delay is
    clamped to at least one block so the read never needs the pending input.
    """

    node: DelayLine

    def __init__(
        self,
        node: DelayLine,
        sample_rate: float,
        channels: int,
        block_size: int,
        loop: bool = False,
    ) -> None:
        super().__init__(node, sample_rate, channels)
        self.loop = loop
        self._min = float(block_size) if loop else 0.0
        self._max = max(node.max_delay * self.sr, self._min)
        self._cap = int(math.ceil(self._max)) + block_size + 2
        self._buf = np.zeros((channels, self._cap))
        self._pos = 0

    def process(self, x: np.ndarray | None, mods: Mods, n: int) -> np.ndarray:
        self._store(x, n)
        y = self.read(mods, n)
        self._pos += n
        return y

    def read(self, mods: Mods, n: int) -> np.ndarray:
        delay = self._param(self.node.delay_time, mods, "delay_time")
        if np.ndim(delay) == 0:
            d = np.full(n, float(delay) * self.sr)
        else:
            d = np.asarray(delay)[0] * self.sr
        d = np.clip(d, self._min, self._max)
        t = self._pos + np.arange(n) - d
        i0 = np.floor(t).astype(np.int64)
        frac = t - i0
        a = self._buf[:, i0 % self._cap]
        b = self._buf[:, (i0 + 1) % self._cap]
        return a + (b - a) * frac

    def write(self, x: np.ndarray | None, n: int) -> None:
        self._store(x, n)
        self._pos += n

    def _store(self, x: np.ndarray | None, n: int) -> None:
        idx = (self._pos + np.arange(n)) % self._cap
        self._buf[:, idx] = self._full(x, n)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def biquad_coefficients(
    mode: str,
    frequency: float,
    q: float,
    gain_db: float,
    sample_rate: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Audio EQ Cookbook coefficients, normalized so that ``a[0] == 1``."""
    nyquist = sample_rate / 2.0
    f = min(max(frequency, _MIN_FREQUENCY), nyquist * 0.999)
    w0 = _TWO_PI * f / sample_rate
    cos_w0 = math.cos(w0)
    alpha = math.sin(w0) / (2.0 * max(q, 1e-4))

    if mode == "lowpass":
        b = [(1.0 - cos_w0) / 2.0, 1.0 - cos_w0, (1.0 - cos_w0) / 2.0]
        a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]
    elif mode == "highpass":
        b = [(1.0 + cos_w0) / 2.0, -(1.0 + cos_w0), (1.0 + cos_w0) / 2.0]
        a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]
    elif mode == "bandpass":
        b = [alpha, 0.0, -alpha]
        a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]
    elif mode == "allpass":
        b = [1.0 - alpha, -2.0 * cos_w0, 1.0 + alpha]
        a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]
    elif mode == "peaking":
        amp = 10.0 ** (gain_db / 40.0)
        b = [1.0 + alpha * amp, -2.0 * cos_w0, 1.0 - alpha * amp]
        a = [1.0 + alpha / amp, -2.0 * cos_w0, 1.0 - alpha / amp]
    else:
        raise ValueError(f"Unknown biquad mode: {mode}")

    b_arr = np.array(b) / a[0]
    a_arr = np.array(a) / a[0]
    return b_arr, a_arr


class BiquadStage(StageProcessor):
    node: BiquadFilter

    def __init__(self, node: BiquadFilter, sample_rate: float, channels: int) -> None:
        super().__init__(node, sample_rate, channels)
        self._zi = np.zeros((channels, 2))
        self._key: tuple[float, float, float] | None = None
        self._b = np.array([1.0, 0.0, 0.0])
        self._a = np.array([1.0, 0.0, 0.0])

    def process(self, x: np.ndarray | None, mods: Mods, n: int) -> np.ndarray:
        key = (
            self._control(self.node.frequency, mods, "frequency"),
            self._control(self.node.q, mods, "q"),
            self._control(self.node.gain, mods, "gain"),
        )
        if key != self._key:
            self._b, self._a = biquad_coefficients(self.node.mode, *key, self.sr)
            self._key = key
        y, self._zi = signal.lfilter(self._b, self._a, self._full(x, n), axis=-1, zi=self._zi)
        return y


# ---------------------------------------------------------------------------
# Convolution
# ---------------------------------------------------------------------------


def reverb_impulse(
    duration: float, sample_rate: float, channels: int, seed: int = 0
) -> np.ndarray:
    """Synthesize a decaying noise impulse response, shape ``(channels, length)``.

    Squared linear decay over the whole length, with extra noise in the
    first 0.1 s standing in for early reflections.
    """
    length = max(1, int(sample_rate * duration))
    rng = np.random.default_rng(seed)
    decay = (1.0 - np.arange(length) / length) ** 2
    impulse = rng.uniform(-1.0, 1.0, (channels, length)) * decay * 0.3
    early = min(length, int(sample_rate * 0.1))
    impulse[:, :early] += rng.uniform(-1.0, 1.0, (channels, early)) * decay[:early] * 0.1
    return impulse


class ConvolverStage(StageProcessor):
    """Zero-latency streaming convolution over a uniformly partitioned impulse.

    The first ``block_size`` taps run as a direct FIR. The remaining taps are
    cut into ``block_size`` partitions whose spectra are computed once, so a
    completed input block costs one forward FFT, one multiply-accumulate over
    the spectra of recent blocks and one inverse FFT, whatever the impulse
    length.
    """

    node: Convolver

    def __init__(
        self, node: Convolver, sample_rate: float, channels: int, block_size: int = 128
    ) -> None:
        super().__init__(node, sample_rate, channels)
        ir = reverb_impulse(node.duration, self.sr, channels, node.seed)
        if node.normalize:
            energy = np.sqrt(np.sum(ir**2, axis=-1, keepdims=True))
            ir = ir / np.maximum(energy, 1e-12)
        self.impulse = ir

        p = self.partition = max(1, int(block_size))
        self._head = np.zeros((channels, max(p, 2)))
        self._head[:, : min(p, ir.shape[-1])] = ir[:, :p]
        self._zi = np.zeros((channels, self._head.shape[-1] - 1))

        rest = ir[:, p:]
        count = self.partitions = -(-rest.shape[-1] // p)
        parts = np.zeros((channels, count * p))
        parts[:, : rest.shape[-1]] = rest
        spectra = np.zeros((count, channels, p + 1), dtype=complex)
        if count:
            spectra = fft.rfft(parts.reshape(channels, count, p).transpose(1, 0, 2), n=2 * p)
        # reversed and doubled: any rotation of the input ring is one contiguous slice
        self._spectra = np.concatenate([spectra[::-1], spectra[::-1]])
        self._ring = np.zeros((count, channels, p + 1), dtype=complex)
        self._slot = 0
        self._pending = np.zeros((channels, p))
        self._fill = 0
        self._late = np.zeros((channels, p))
        self._overlap = np.zeros((channels, p))

    def process(self, x: np.ndarray | None, mods: Mods, n: int) -> np.ndarray:
        x = self._full(x, n)
        y = np.empty((self.channels, n))
        for c in range(self.channels):
            y[c], self._zi[c] = signal.lfilter(self._head[c], [1.0], x[c], zi=self._zi[c])
        if not self.partitions:
            return y

        p = self.partition
        done = 0
        while done < n:
            m = min(n - done, p - self._fill)
            span = slice(self._fill, self._fill + m)
            y[:, done : done + m] += self._late[:, span]
            self._pending[:, span] = x[:, done : done + m]
            self._fill += m
            done += m
            if self._fill == p:
                self._flush()
        return y

    def _flush(self) -> None:
        """Convolve the completed block into the late part of the next two blocks."""
        p, count = self.partition, self.partitions
        self._ring[self._slot] = fft.rfft(self._pending, n=2 * p)
        start = count - 1 - self._slot
        acc = np.einsum("kcf,kcf->cf", self._ring, self._spectra[start : start + count])
        out = fft.irfft(acc, n=2 * p)
        self._late = out[:, :p] + self._overlap
        self._overlap = out[:, p:]
        self._slot = (self._slot + 1) % count
        self._fill = 0


# ---------------------------------------------------------------------------
# Dynamics / waveshaping
# ---------------------------------------------------------------------------


class CompressorStage(StageProcessor):
    """Feed-forward compressor with a soft knee and channel-linked detection."""

    node: Compressor

    def __init__(self, node: Compressor, sample_rate: float, channels: int) -> None:
        super().__init__(node, sample_rate, channels)
        self._attack = math.exp(-1.0 / (node.attack * self.sr)) if node.attack > 0 else 0.0
        self._release = math.exp(-1.0 / (node.release * self.sr)) if node.release > 0 else 0.0
        self._gr = 0.0  # smoothed gain reduction, dB

    def gain_reduction(self, level_db: np.ndarray) -> np.ndarray:
        """Static curve: gain change in dB (<= 0) for each input level."""
        over = level_db - self.node.threshold
        slope = 1.0 / self.node.ratio - 1.0
        knee = self.node.knee
        if knee <= 0:
            return np.where(over > 0, slope * over, 0.0)
        in_knee = slope * (over + knee / 2.0) ** 2 / (2.0 * knee)
        return np.where(
            2.0 * over < -knee,
            0.0,
            np.where(2.0 * np.abs(over) <= knee, in_knee, slope * over),
        )

    def process(self, x: np.ndarray | None, mods: Mods, n: int) -> np.ndarray:
        x = self._full(x, n)
        level = np.max(np.abs(x), axis=0)
        target = self.gain_reduction(20.0 * np.log10(np.maximum(level, 1e-10)))
        smoothed = np.empty(n)
        g = self._gr
        for i, t in enumerate(target.tolist()):
            coeff = self._attack if t < g else self._release
            g = coeff * g + (1.0 - coeff) * t
            smoothed[i] = g
        self._gr = g
        return x * 10.0 ** (smoothed / 20.0)


def soft_clip_curve(drive: float, samples: int = 44100) -> np.ndarray:
    """Sampled tanh transfer curve over [-1, 1)."""
    xs = np.arange(samples) * 2.0 / samples - 1.0
    return np.tanh(xs * drive)


class WaveShaperStage(StageProcessor):
    node: WaveShaper

    def __init__(self, node: WaveShaper, sample_rate: float, channels: int) -> None:
        super().__init__(node, sample_rate, channels)
        self.curve = soft_clip_curve(node.drive, node.samples)
        self._index = np.arange(self.curve.size, dtype=float)

    def process(self, x: np.ndarray | None, mods: Mods, n: int) -> np.ndarray:
        x = self._full(x, n)
        span = self.curve.size - 1
        v = np.clip((x + 1.0) * (span / 2.0), 0.0, span)
        return np.interp(v.ravel(), self._index, self.curve).reshape(x.shape)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def make_stage(
    node: Stage,
    sample_rate: float,
    channels: int,
    block_size: int,
    loop: bool = False,
) -> StageProcessor:
    """Instantiate the processor for a stage spec."""
    if isinstance(node, Gain):
        return GainStage(node, sample_rate, channels)
    if isinstance(node, Constant):
        return ConstantStage(node, sample_rate, channels)
    if isinstance(node, DelayLine):
        return DelayStage(node, sample_rate, channels, block_size, loop=loop)
    if isinstance(node, BiquadFilter):
        return BiquadStage(node, sample_rate, channels)
    if isinstance(node, Oscillator):
        return OscillatorStage(node, sample_rate, channels)
    if isinstance(node, Convolver):
        return ConvolverStage(node, sample_rate, channels, block_size)
    if isinstance(node, Compressor):
        return CompressorStage(node, sample_rate, channels)
    if isinstance(node, WaveShaper):
        return WaveShaperStage(node, sample_rate, channels)
    raise ValueError(f"Unsupported stage type: {type(node).__name__}")
