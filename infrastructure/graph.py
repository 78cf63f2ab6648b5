"""Explicit dependency graph of the resources that make up a site."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from infrastructure.errors import GraphError


@dataclass
class ResourceNode:
  """A resource in the graph.

  ``value`` holds the provisioned record (ARN, ids) once the node is ready,
  and ``ready_at`` the moment it reached that state.
  """

  name: str
  kind: str
  depends_on: tuple[str, ...] = ()
  owned: bool = True
  value: Any = None
  ready_at: datetime | None = None

  @property
  def ready(self) -> bool:
    return self.ready_at is not None


@dataclass
class ResourceGraph:
  """Nodes keyed by name, edges given by each node's ``depends_on``."""

  nodes: dict[str, ResourceNode] = field(default_factory=dict)

  def add(
    self, name: str, kind: str, depends_on: tuple[str, ...] = (), owned: bool = True
  ) -> ResourceNode:
    if name in self.nodes:
      raise GraphError(f"Duplicate resource {name}")
    node = ResourceNode(name=name, kind=kind, depends_on=tuple(depends_on), owned=owned)
    self.nodes[name] = node
    return node

  def __contains__(self, name: object) -> bool:
    return name in self.nodes

  def __getitem__(self, name: str) -> ResourceNode:
    return self.nodes[name]

  def dependencies(self, name: str) -> dict[str, Any]:
    """Values of the direct dependencies of ``name``, keyed by node name."""
    return {dep: self.nodes[dep].value for dep in self.nodes[name].depends_on}

  def creation_order(self) -> list[ResourceNode]:
    """Topological order: dependencies first, otherwise insertion order.

    Raises:
      GraphError: On a dependency on an unknown node or a cycle.
    """
    order: list[ResourceNode] = []
    done: set[str] = set()
    visiting: list[str] = []

    def visit(name: str) -> None:
      if name in done:
        return
      if name in visiting:
        cycle = visiting[visiting.index(name) :] + [name]
        raise GraphError(f"Dependency cycle: {' -> '.join(cycle)}")
      visiting.append(name)
      for dep in self.nodes[name].depends_on:
        if dep not in self.nodes:
          raise GraphError(f"{name} depends on unknown resource {dep}")
        visit(dep)
      visiting.pop()
      done.add(name)
      order.append(self.nodes[name])

    for name in self.nodes:
      visit(name)
    return order

  def destruction_order(self) -> list[ResourceNode]:
    """Reverse of the creation order: dependents go before what they use."""
    return list(reversed(self.creation_order()))

  def ready_nodes(self, owned_only: bool = True) -> list[str]:
    return [
      node.name
      for node in self.creation_order()
      if node.ready and (node.owned or not owned_only)
    ]
