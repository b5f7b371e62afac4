"""Dependency graph of a pipeline, used for cycle detection."""

from __future__ import annotations
from dataclasses import dataclass, field

from blast.pipeline.models import Pipeline


@dataclass
class DAGNode:
    """An asset in the dependency graph, by name."""
    name: str
    upstream: list[str] = field(default_factory=list)
    downstream: list[str] = field(default_factory=list)


class DAGResolver:
    """Name-level graph built from the declared dependencies of a pipeline.

    Unlike the resolved asset edges, this keeps edges in declaration order
    and tolerates duplicate names, which is what the linter needs.
    """

    def __init__(self):
        self.nodes: dict[str, DAGNode] = {}

    @classmethod
    def from_pipeline(cls, pipeline: Pipeline) -> "DAGResolver":
        dag = cls()
        for asset in pipeline.tasks:
            dag.add_asset(asset.name)
        for asset in pipeline.tasks:
            for dep in asset.depends_on:
                # Missing upstreams are reported by their own rule.
                if dep in dag.nodes:
                    dag.add_dependency(upstream=dep, downstream=asset.name)
        return dag

    def add_asset(self, name: str) -> None:
        self.nodes.setdefault(name, DAGNode(name=name))

    def add_dependency(self, upstream: str, downstream: str) -> None:
        """Record that ``downstream`` runs after ``upstream``."""
        self.add_asset(upstream)
        self.add_asset(downstream)
        up, down = self.nodes[upstream], self.nodes[downstream]
        if downstream not in up.downstream:
            up.downstream.append(downstream)
        if upstream not in down.upstream:
            down.upstream.append(upstream)

    def detect_cycles(self) -> list[str] | None:
        """Return the first loop found as ``[a, b, ..., a]``, or None."""
        done: set[str] = set()

        for root in self.nodes:
            if root in done:
                continue
            path: list[str] = [root]
            on_path: set[str] = {root}
            stack = [iter(self.nodes[root].downstream)]
            while stack:
                child = next(stack[-1], None)
                if child is None:
                    stack.pop()
                    name = path.pop()
                    on_path.discard(name)
                    done.add(name)
                    continue
                if child in on_path:
                    return path[path.index(child):] + [child]
                if child not in done:
                    path.append(child)
                    on_path.add(child)
                    stack.append(iter(self.nodes[child].downstream))
        return None
