"""Topological ordering of effect graph stages."""

from __future__ import annotations

import heapq
from collections import defaultdict

from voice_fx._deps import build_forward_deps
from voice_fx.models import EffectGraph, Stage


def stage_order(graph: EffectGraph) -> tuple[list[str], list[str]]:
    """Kahn's algorithm over the non-feedback edges.

    Returns ``(ordered, stuck)``: the stage IDs that could be ordered, with
    ready stages taken alphabetically, and the sorted IDs left on a loop
    that does not pass through a delay line.
    """
    pending: dict[str, int] = {node.id: 0 for node in graph.nodes}
    dependents: dict[str, list[str]] = defaultdict(list)
    for nid, sources in build_forward_deps(graph).items():
        for src in sources:
            if src in pending and nid in pending:
                pending[nid] += 1
                dependents[src].append(nid)

    ready = [nid for nid, count in pending.items() if count == 0]
    heapq.heapify(ready)
    ordered: list[str] = []
    while ready:
        nid = heapq.heappop(ready)
        ordered.append(nid)
        for dep in dependents[nid]:
            pending[dep] -= 1
            if pending[dep] == 0:
                heapq.heappush(ready, dep)

    done = set(ordered)
    return ordered, sorted(nid for nid in pending if nid not in done)


def toposort(graph: EffectGraph) -> list[Stage]:
    """Return graph stages in evaluation order.

    Raises ValueError if the graph contains a loop that does not pass
    through a delay line.
    """
    ordered, stuck = stage_order(graph)
    if stuck:
        raise ValueError(f"Graph contains a loop without a delay line: {', '.join(stuck)}")
    by_id = {node.id: node for node in graph.nodes}
    return [by_id[nid] for nid in ordered]
