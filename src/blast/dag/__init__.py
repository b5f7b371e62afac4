"""Graph view over a pipeline's assets."""

from blast.dag.resolver import DAGNode, DAGResolver

__all__ = ["DAGNode", "DAGResolver"]
