"""Render a synthetic vowel through every catalog effect at three intensities.

Writes build/<effect>-<intensity>.wav for each combination, plus a DOT file
per effect topology.
"""

import numpy as np

from voice_fx import (
    SignalBuffer,
    build_effect,
    graph_to_dot_file,
    list_effects,
    render,
    write_wav,
)

SAMPLE_RATE = 44100
INTENSITIES = (25, 50, 100)


def vowel(seconds: float = 1.5) -> SignalBuffer:
    """Crude "ah": a 140 Hz pulse train shaped by two formant bumps."""
    t = np.arange(int(seconds * SAMPLE_RATE)) / SAMPLE_RATE
    f0 = 140.0
    partials = np.arange(1, 40)
    formants = np.exp(-(((partials * f0) - 700.0) / 200.0) ** 2) + 0.5 * np.exp(
        -(((partials * f0) - 1200.0) / 250.0) ** 2
    )
    x = (formants[:, None] * np.sin(2 * np.pi * f0 * partials[:, None] * t)).sum(axis=0)
    envelope = np.minimum(1.0, np.minimum(t, t[-1] - t) * 20.0)
    return SignalBuffer(0.5 * x / np.abs(x).max() * envelope, SAMPLE_RATE)


if __name__ == "__main__":
    source = vowel()
    write_wav("build/dry.wav", source)
    for info in list_effects():
        for intensity in INTENSITIES:
            out = render(source, info.id, intensity)
            path = write_wav(f"build/{info.id.value}-{intensity}.wav", out)
            print(f"{info.name:<12} {intensity:>3}%  peak {np.abs(out.samples).max():.3f}  {path}")
        graph_to_dot_file(build_effect(info.id, 50), "build")
