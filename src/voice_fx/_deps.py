"""Shared dependency helpers for graph analysis."""

from __future__ import annotations

from collections import defaultdict

from voice_fx.models import DelayLine, Edge, EffectGraph


def build_successors(graph: EffectGraph) -> dict[str, set[str]]:
    """Build forward adjacency: {node_id: set of node_ids it feeds}."""
    succ: dict[str, set[str]] = defaultdict(set)
    for edge in graph.edges:
        succ[edge.source].add(edge.target)
    return succ


def find_loop_delays(graph: EffectGraph) -> set[str]:
    """Return the IDs of delay lines that sit on a feedback loop.

    A delay line is on a loop when it can reach itself through any edge.
    """
    succ = build_successors(graph)
    loop_delays: set[str] = set()
    for node in graph.nodes:
        if not isinstance(node, DelayLine):
            continue
        seen: set[str] = set()
        stack = list(succ[node.id])
        while stack:
            current = stack.pop()
            if current == node.id:
                loop_delays.add(node.id)
                break
            if current in seen:
                continue
            seen.add(current)
            stack.extend(succ[current])
    return loop_delays


def is_feedback_edge(edge: Edge, loop_delays: set[str]) -> bool:
    """Return True if an edge writes into a loop delay (not a data dependency).

    A loop delay produces its block output from samples written in earlier
    blocks, so its audio input can be delivered after everything else ran.
    Parameter edges (e.g. delay-time modulation) remain data dependencies.
    """
    return edge.port == "in" and edge.target in loop_delays


def build_forward_deps(graph: EffectGraph) -> dict[str, set[str]]:
    """Build forward dependency map: {node_id: set of node_ids it depends on}.

    Excludes feedback edges and edges whose source is not a known node.
    """
    node_ids = {node.id for node in graph.nodes}
    loop_delays = find_loop_delays(graph)
    deps: dict[str, set[str]] = defaultdict(set)
    for edge in graph.edges:
        if edge.source not in node_ids or edge.target not in node_ids:
            continue
        if not is_feedback_edge(edge, loop_delays):
            deps[edge.target].add(edge.source)
    return deps
