"""Offline rendering: finite signal + effect -> fixed-format output."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import soundfile as sf

from voice_fx.audio import RenderedAudio, SignalBuffer
from voice_fx.catalog import build_effect
from voice_fx.engine import run_graph
from voice_fx.models import EffectId
from voice_fx.wav import encode_wav

logger = logging.getLogger(__name__)


def render(
    buffer: SignalBuffer,
    effect_id: EffectId | str | None,
    intensity: float,
    *,
    block_size: int | None = None,
) -> RenderedAudio:
    """Apply an effect to a whole buffer, ahead of time.

    The output has exactly as many frames as the input; reverb and delay
    tails past the end of the recording are cut off.
    """
    graph = build_effect(effect_id, intensity)
    out = run_graph(graph, buffer.samples, buffer.sample_rate, block_size)
    logger.info(
        "rendered %s: %d frame(s), %d channel(s) at %d Hz",
        graph.name,
        buffer.frames,
        buffer.channels,
        buffer.sample_rate,
    )
    return RenderedAudio(out, buffer.sample_rate)


def decode_recording(blob: bytes) -> SignalBuffer:
    """Decode an encoded recording (any container libsndfile reads)."""
    data, sample_rate = sf.read(io.BytesIO(blob), dtype="float64", always_2d=True)
    return SignalBuffer(data.T, sample_rate)


def export_recording(blob: bytes, effect_id: EffectId | str | None, intensity: float) -> bytes:
    """Decode, render and serialize a recording to WAV.

    If the recording cannot be decoded or rendered, the original blob is
    returned unchanged so the export still succeeds.
    """
    try:
        rendered = render(decode_recording(blob), effect_id, intensity)
    except (sf.SoundFileError, RuntimeError, ValueError) as e:
        logger.warning("could not apply '%s', exporting original recording: %s", effect_id, e)
        return blob
    return encode_wav(rendered)


def render_file(
    input_path: str | Path,
    output_path: str | Path,
    effect_id: EffectId | str | None,
    intensity: float,
) -> Path:
    """Export a recording file with an effect applied and return the output path."""
    blob = Path(input_path).read_bytes()
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(export_recording(blob, effect_id, intensity))
    return out
