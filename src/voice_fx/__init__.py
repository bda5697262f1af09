"""voice-fx: voice effect graphs, live monitoring and offline rendering."""

from voice_fx.audio import RenderedAudio, SignalBuffer
from voice_fx.catalog import CATALOG, EffectInfo, build_effect, get_effect, list_effects
from voice_fx.engine import GraphRunner, RunnerClosedError, run_graph
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
from voice_fx.render import decode_recording, export_recording, render, render_file
from voice_fx.router import Patch, SignalRouter, set_effect
from voice_fx.topologies import build_topology, mix_gains, passthrough
from voice_fx.toposort import toposort
from voice_fx.validate import GraphValidationError, validate_graph
from voice_fx.visualize import graph_to_dot, graph_to_dot_file
from voice_fx.wav import decode_wav, encode_wav, write_wav

__version__ = "0.1.0"

__all__ = [
    "CATALOG",
    "BiquadFilter",
    "Compressor",
    "Constant",
    "Convolver",
    "DelayLine",
    "Edge",
    "EffectGraph",
    "EffectId",
    "EffectInfo",
    "Gain",
    "GraphRunner",
    "GraphValidationError",
    "Oscillator",
    "Patch",
    "RenderedAudio",
    "RunnerClosedError",
    "SignalBuffer",
    "SignalRouter",
    "Stage",
    "WaveShaper",
    "build_effect",
    "build_topology",
    "clamp_intensity",
    "decode_recording",
    "decode_wav",
    "encode_wav",
    "export_recording",
    "get_effect",
    "graph_to_dot",
    "graph_to_dot_file",
    "list_effects",
    "mix_gains",
    "passthrough",
    "render",
    "render_file",
    "run_graph",
    "set_effect",
    "toposort",
    "validate_graph",
    "write_wav",
]
