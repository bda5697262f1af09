"""Block-based executor for effect graphs."""

from __future__ import annotations

import logging
from collections import defaultdict

import numpy as np

from voice_fx import settings
from voice_fx._deps import find_loop_delays
from voice_fx.models import EffectGraph
from voice_fx.stages import DelayStage, StageProcessor, make_stage
from voice_fx.toposort import toposort
from voice_fx.validate import validate_graph

logger = logging.getLogger(__name__)


class RunnerClosedError(RuntimeError):
    """Raised when a torn-down runner is used or closed again."""


class GraphRunner:
    """A running instance of an effect graph.

    Owns one processor per stage; nothing is shared with other runners.
    Audio flows through in blocks of at most ``block_size`` frames. Within a
    block stages run in topological order; delay lines on a feedback loop
    emit their block first and receive their input after the pass.
    """

    def __init__(
        self,
        graph: EffectGraph,
        sample_rate: float | None = None,
        channels: int = 1,
        block_size: int | None = None,
    ) -> None:
        errors = [e for e in validate_graph(graph) if e.severity == "error"]
        if errors:
            raise ValueError(f"Invalid graph '{graph.name}': " + "; ".join(errors))

        self.graph = graph
        self.sr = float(sample_rate or settings.DEFAULT_SAMPLE_RATE)
        self.channels = channels
        self.block_size = block_size or settings.BLOCK_SIZE
        self.closed = False

        loop_delays = find_loop_delays(graph)
        self._order = [node.id for node in toposort(graph)]
        self._stages: dict[str, StageProcessor] = {
            node.id: make_stage(
                node, self.sr, channels, self.block_size, loop=node.id in loop_delays
            )
            for node in graph.nodes
        }
        self._loop_delays: list[tuple[str, DelayStage]] = [
            (nid, stage)
            for nid, stage in self._stages.items()
            if isinstance(stage, DelayStage) and stage.loop
        ]

        # target -> port -> source IDs
        self._incoming: dict[str, dict[str, list[str]]] = defaultdict(lambda: defaultdict(list))
        for edge in graph.edges:
            self._incoming[edge.target][edge.port].append(edge.source)

        logger.debug(
            "built runner for '%s': %d stages, %d loop delays, %d Hz",
            graph.name,
            len(self._stages),
            len(self._loop_delays),
            int(self.sr),
        )

    def stage(self, node_id: str) -> StageProcessor:
        return self._stages[node_id]

    def process(self, block: np.ndarray) -> np.ndarray:
        """Run a ``(channels, frames)`` block through the graph."""
        if self.closed:
            raise RunnerClosedError(f"Runner for '{self.graph.name}' is closed")
        block = np.asarray(block, dtype=np.float64)
        if block.ndim == 1:
            block = block[np.newaxis, :]
        if block.shape[0] != self.channels:
            raise ValueError(f"Expected {self.channels} channel(s), got {block.shape[0]}")

        frames = block.shape[1]
        out = np.zeros((self.channels, frames))
        for start in range(0, frames, self.block_size):
            stop = min(start + self.block_size, frames)
            out[:, start:stop] = self._run_block(block[:, start:stop])
        return out

    def close(self) -> None:
        """Release all stages. Closing twice raises RunnerClosedError."""
        if self.closed:
            raise RunnerClosedError(f"Runner for '{self.graph.name}' is already closed")
        self.closed = True
        self._stages.clear()
        self._loop_delays = []

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _run_block(self, block: np.ndarray) -> np.ndarray:
        n = block.shape[1]
        outs: dict[str, np.ndarray] = {}
        for nid in self._order:
            stage = self._stages[nid]
            ports = self._incoming[nid]
            mods = {
                port: self._gather(sources, outs)
                for port, sources in ports.items()
                if port != "in"
            }
            if isinstance(stage, DelayStage) and stage.loop:
                outs[nid] = stage.read(mods, n)
                continue
            x = self._gather(ports.get("in", []), outs)
            if nid == self.graph.input:
                x = block if x is None else x + block
            outs[nid] = stage.process(x, mods, n)

        for nid, delay in self._loop_delays:
            delay.write(self._gather(self._incoming[nid].get("in", []), outs), n)

        return np.broadcast_to(outs[self.graph.output], (self.channels, n))

    @staticmethod
    def _gather(sources: list[str], outs: dict[str, np.ndarray]) -> np.ndarray | None:
        """Sum the block outputs of all sources feeding one port."""
        total: np.ndarray | None = None
        for src in sources:
            total = outs[src] if total is None else total + outs[src]
        return total


def run_graph(
    graph: EffectGraph,
    samples: np.ndarray,
    sample_rate: float,
    block_size: int | None = None,
) -> np.ndarray:
    """Run a whole ``(channels, frames)`` signal through a fresh runner."""
    samples = np.atleast_2d(np.asarray(samples, dtype=np.float64))
    runner = GraphRunner(graph, sample_rate, samples.shape[0], block_size)
    try:
        return runner.process(samples)
    finally:
        runner.close()
