"""Graphviz DOT visualization for effect graphs."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from voice_fx._deps import find_loop_delays, is_feedback_edge
from voice_fx.models import (
    BiquadFilter,
    Compressor,
    Constant,
    Convolver,
    DelayLine,
    EffectGraph,
    Gain,
    Oscillator,
    WaveShaper,
)


def _node_attrs(node: object) -> tuple[str, str, str]:
    """Return (shape, fillcolor, label) for a graph node."""
    if isinstance(node, Gain):
        return "box", "#fff3cd", f"{node.id}\\nx{node.gain:g}"
    if isinstance(node, Constant):
        return "box", "#e9ecef", f"{node.id}\\n{node.offset:g}"
    if isinstance(node, DelayLine):
        return "box3d", "#fde0c8", f"{node.id}\\ndelay {node.delay_time:g}s"
    if isinstance(node, BiquadFilter):
        return "box", "#fde0c8", f"{node.id}\\n{node.mode} {node.frequency:g}Hz"
    if isinstance(node, Oscillator):
        return "box", "#e2d5f1", f"{node.id}\\n{node.waveform} {node.frequency:g}Hz"
    if isinstance(node, Convolver):
        return "box3d", "#fde0c8", f"{node.id}\\nconvolver {node.duration:g}s"
    if isinstance(node, Compressor):
        return "box", "#fde0c8", f"{node.id}\\ncompressor {node.ratio:g}:1"
    if isinstance(node, WaveShaper):
        return "box", "#fff3cd", f"{node.id}\\n{node.curve} x{node.drive:g}"
    return "box", "#ffffff", str(getattr(node, "id", "?"))


def graph_to_dot(graph: EffectGraph) -> str:
    """Convert an effect graph to a Graphviz DOT string."""
    lines: list[str] = []
    w = lines.append

    w(f'digraph "{graph.name}" {{')
    w("    rankdir=LR;")
    w('    node [fontname="Helvetica" fontsize=10];')
    w("")

    for node in graph.nodes:
        shape, color, label = _node_attrs(node)
        if node.id == graph.input:
            color = "#d4edda"
        elif node.id == graph.output:
            color = "#f8d7da"
        w(f'    "{node.id}" [shape={shape} style=filled fillcolor="{color}" label="{label}"];')

    w("")

    loop_delays = find_loop_delays(graph)
    for edge in graph.edges:
        attrs: list[str] = []
        if edge.port != "in":
            attrs.append(f'label="{edge.port}" style=dotted')
        elif is_feedback_edge(edge, loop_delays):
            attrs.append('style=dashed label="fb"')
        suffix = f" [{' '.join(attrs)}]" if attrs else ""
        w(f'    "{edge.source}" -> "{edge.target}"{suffix};')

    w("}")
    return "\n".join(lines) + "\n"


def graph_to_dot_file(graph: EffectGraph, output_dir: str | Path) -> Path:
    """Write a DOT file for the graph to output_dir/{name}.dot.

    If the ``dot`` binary is on PATH, also renders a PDF to
    ``output_dir/{name}.pdf``.

    Returns the path to the written ``.dot`` file.
    """
    dot_src = graph_to_dot(graph)
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    dot_path = out / f"{graph.name}.dot"
    dot_path.write_text(dot_src)

    dot_bin = shutil.which("dot")
    if dot_bin is not None:
        pdf_path = out / f"{graph.name}.pdf"
        subprocess.run(
            [dot_bin, "-Tpdf", str(dot_path), "-o", str(pdf_path)],
            check=True,
        )

    return dot_path
