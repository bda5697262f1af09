from __future__ import annotations

from collections import defaultdict

from voice_fx import settings
from voice_fx._deps import build_successors, find_loop_delays
from voice_fx.models import EffectGraph, Gain
from voice_fx.toposort import stage_order


class GraphValidationError(str):
    """A structured validation error that behaves as a plain string.

    Subclasses ``str`` so call sites can compare, join and print errors
    directly while still reading ``kind`` and ``severity``.
    """

    kind: str
    node_id: str | None
    field_name: str | None
    severity: str  # "error" | "warning"

    def __new__(
        cls,
        kind: str,
        message: str,
        *,
        node_id: str | None = None,
        field_name: str | None = None,
        severity: str = "error",
    ) -> GraphValidationError:
        return super().__new__(cls, message)

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        node_id: str | None = None,
        field_name: str | None = None,
        severity: str = "error",
    ) -> None:
        self.kind = kind
        self.node_id = node_id
        self.field_name = field_name
        self.severity = severity


def validate_graph(graph: EffectGraph) -> list[GraphValidationError]:
    """Validate an effect graph and return a list of errors (empty = valid)."""
    errors: list[GraphValidationError] = []
    nodes = {}

    # 1. Unique IDs
    for node in graph.nodes:
        if node.id in nodes:
            errors.append(
                GraphValidationError(
                    "duplicate_id", f"Duplicate node ID: '{node.id}'", node_id=node.id
                )
            )
        nodes[node.id] = node

    # 2. Single entry and exit -- both must be stages, the entry must take audio
    if graph.input not in nodes:
        errors.append(
            GraphValidationError(
                "bad_entry",
                f"Entry '{graph.input}' does not reference a node",
                field_name="input",
            )
        )
    elif "in" not in nodes[graph.input].PORTS:
        errors.append(
            GraphValidationError(
                "bad_entry",
                f"Entry '{graph.input}' has no audio input",
                node_id=graph.input,
                field_name="input",
            )
        )
    if graph.output not in nodes:
        errors.append(
            GraphValidationError(
                "bad_exit",
                f"Exit '{graph.output}' does not reference a node",
                field_name="output",
            )
        )

    # 3. Edge resolution -- both ends known, port accepted by the target
    for edge in graph.edges:
        if edge.source not in nodes:
            errors.append(
                GraphValidationError(
                    "dangling_edge",
                    f"Edge into '{edge.target}' references unknown source '{edge.source}'",
                    node_id=edge.target,
                    field_name=edge.port,
                )
            )
        if edge.target not in nodes:
            errors.append(
                GraphValidationError(
                    "dangling_edge",
                    f"Edge from '{edge.source}' references unknown target '{edge.target}'",
                    node_id=edge.source,
                )
            )
        elif edge.port not in nodes[edge.target].PORTS:
            errors.append(
                GraphValidationError(
                    "bad_port",
                    f"Node '{edge.target}' has no port '{edge.port}'",
                    node_id=edge.target,
                    field_name=edge.port,
                )
            )

    if errors:
        return errors

    succ = build_successors(graph)

    # 4. Feedback loops close through a delay line fed by a bounded gain
    modulated = {e.target for e in graph.edges if e.port == "gain"}
    for delay_id in sorted(find_loop_delays(graph)):
        downstream = _reachable(succ, delay_id)
        for edge in graph.edges:
            if edge.target != delay_id or edge.port != "in" or edge.source not in downstream:
                continue
            source = nodes[edge.source]
            if (
                not isinstance(source, Gain)
                or source.id in modulated
                or abs(source.gain) > settings.MAX_FEEDBACK_GAIN
            ):
                errors.append(
                    GraphValidationError(
                        "runaway_feedback",
                        f"Feedback into delay '{delay_id}' from '{edge.source}' must pass "
                        f"through a fixed gain of at most {settings.MAX_FEEDBACK_GAIN}",
                        node_id=delay_id,
                        field_name="in",
                    )
                )

    # 5. Every stage must contribute to the exit
    feeds_exit = _reachable(_reverse(succ), graph.output) | {graph.output}
    for nid in nodes:
        if nid not in feeds_exit:
            errors.append(
                GraphValidationError(
                    "unreachable",
                    f"Node '{nid}' does not reach exit '{graph.output}'",
                    node_id=nid,
                )
            )

    # 6. No loops without a delay -- ordering on non-feedback edges must succeed
    _, stuck = stage_order(graph)
    if stuck:
        errors.append(
            GraphValidationError(
                "cycle",
                f"Graph contains a loop without a delay line: {', '.join(stuck)}",
            )
        )

    return errors


def _reachable(adjacency: dict[str, set[str]], start: str) -> set[str]:
    """Return every node reachable from start (start itself only via a loop)."""
    seen: set[str] = set()
    stack = list(adjacency.get(start, ()))
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        stack.extend(adjacency.get(current, ()))
    return seen


def _reverse(adjacency: dict[str, set[str]]) -> dict[str, set[str]]:
    rev: dict[str, set[str]] = defaultdict(set)
    for src, targets in adjacency.items():
        for dst in targets:
            rev[dst].add(src)
    return rev
