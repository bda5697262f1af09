"""Hand-built feedback delay: delay line, bounded feedback gain, and dry/wet mix."""

import numpy as np

from voice_fx import (
    DelayLine,
    Edge,
    EffectGraph,
    Gain,
    SignalBuffer,
    graph_to_dot_file,
    run_graph,
    validate_graph,
    write_wav,
)

SAMPLE_RATE = 44100

graph = EffectGraph(
    name="fbdelay",
    nodes=[
        Gain(id="input"),
        DelayLine(id="delay", delay_time=0.25),
        Gain(id="feedback", gain=0.5),
        Gain(id="dry", gain=0.7),
        Gain(id="wet", gain=0.5),
        Gain(id="output"),
    ],
    edges=[
        Edge(source="input", target="delay"),
        Edge(source="delay", target="feedback"),
        Edge(source="feedback", target="delay"),
        Edge(source="input", target="dry"),
        Edge(source="delay", target="wet"),
        Edge(source="dry", target="output"),
        Edge(source="wet", target="output"),
    ],
)

if __name__ == "__main__":
    errors = validate_graph(graph)
    if errors:
        print("Validation errors:")
        for e in errors:
            print(f"  - {e}")
        raise SystemExit(1)
    print("Graph is valid.")
    print()
    print(graph.model_dump_json(indent=2))

    # a short click train, one click every 0.6 s
    clicks = np.zeros(SAMPLE_RATE * 2)
    clicks[:: int(SAMPLE_RATE * 0.6)] = 0.8
    out = run_graph(graph, clicks, SAMPLE_RATE)
    path = write_wav("build/fbdelay.wav", SignalBuffer(out, SAMPLE_RATE))
    print(f"\nRendered: {path}")
    dot_path = graph_to_dot_file(graph, "build")
    print(f"DOT: {dot_path}")
