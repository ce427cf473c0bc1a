"""
Resource Graph Module
=====================

In-memory relationship graph of cloud resources for one synchronization
pass.

A graph holds :class:`Resource` nodes keyed by ``(type, id)`` and directed,
typed edges between them. Every mutation is serialized by an internal lock
so concurrent fetch and relationship tasks can share one instance.

Classes
-------
Resource
    Immutable resource node.
Relation
    Edge kinds (parent/child, security group application).
Graph
    Thread-safe container of resources and edges.

Example
-------
>>> g = Graph()
>>> region = init_region("us-east-1")
>>> g.add_resource(region)
>>> vpc = Resource(type="vpc", id="vpc-1", region="us-east-1")
>>> g.add_resource(vpc)
>>> g.add_parent_of(region, vpc)
>>> g.parent_of(vpc) == region
True
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from awsync.core.exceptions import GraphError

# Module logger
logger = logging.getLogger(__name__)

REGION = "region"

ResourceKey = Tuple[str, str]


@dataclass(frozen=True)
class Resource:
    """
    A single cloud resource.

    Parameters
    ----------
    type : str
        Resource type tag (e.g. 'instance', 'subnet').
    id : str
        Provider-assigned identifier.
    region : str
        Owning region.
    properties : dict, optional
        Opaque attribute bag built from the raw API record.
    """

    type: str
    id: str
    region: str = ""
    properties: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> ResourceKey:
        return (self.type, self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "region": self.region,
            "properties": self.properties,
        }

    def __repr__(self) -> str:
        return f"Resource(type='{self.type}', id='{self.id}')"


class Relation(str, Enum):
    """Kinds of directed edges between resources."""

    PARENT_OF = "parent_of"
    APPLIES_ON = "applies_on"


def init_region(region: str) -> Resource:
    """Build the synthetic region node for ``region``."""
    return Resource(type=REGION, id=region, region=region)


class Graph:
    """
    Thread-safe, mergeable graph of resources and relationships.

    Edges may only reference resources already present in the graph.
    Re-adding an identical resource is a no-op; adding a different
    resource under an existing ``(type, id)`` raises :class:`GraphError`.
    """

    def __init__(self) -> None:
        self._resources: Dict[ResourceKey, Resource] = {}
        self._edges: Set[Tuple[Relation, ResourceKey, ResourceKey]] = set()
        self._lock = threading.RLock()

    # =========================================================================
    # Mutation
    # =========================================================================

    def add_resource(self, res: Resource) -> None:
        """
        Insert a resource.

        Raises
        ------
        GraphError
            If a different resource is already stored under the same key.
        """
        with self._lock:
            existing = self._resources.get(res.key)
            if existing is not None:
                if existing.properties != res.properties or existing.region != res.region:
                    raise GraphError(
                        f"conflicting resource {res.type}[{res.id}] already in graph",
                        details={"type": res.type, "id": res.id},
                    )
                return
            self._resources[res.key] = res

    def add_graph(self, other: Graph) -> None:
        """Merge every resource and edge of ``other`` into this graph."""
        if other is self:
            return
        resources, edges = other._snapshot()
        with self._lock:
            for res in resources:
                self.add_resource(res)
            self._edges.update(edges)

    def add_parent_of(self, parent: Resource, child: Resource) -> None:
        """Add a ``parent -> child`` edge."""
        self._add_edge(Relation.PARENT_OF, parent, child)

    def add_applies_on(self, src: Resource, dst: Resource) -> None:
        """Add a ``src applies on dst`` edge (e.g. security group on instance)."""
        self._add_edge(Relation.APPLIES_ON, src, dst)

    def _add_edge(self, relation: Relation, src: Resource, dst: Resource) -> None:
        with self._lock:
            for res in (src, dst):
                if res.key not in self._resources:
                    raise GraphError(
                        f"cannot add {relation.value} edge: "
                        f"{res.type}[{res.id}] not in graph",
                        details={"relation": relation.value},
                    )
            self._edges.add((relation, src.key, dst.key))

    # =========================================================================
    # Queries
    # =========================================================================

    def get_resource(self, res_type: str, res_id: str) -> Optional[Resource]:
        with self._lock:
            return self._resources.get((res_type, res_id))

    def find_resources(self, res_type: Optional[str] = None) -> List[Resource]:
        """Return resources, optionally restricted to one type, sorted by key."""
        with self._lock:
            found = [
                r for r in self._resources.values()
                if res_type is None or r.type == res_type
            ]
        return sorted(found, key=lambda r: r.key)

    def resource_types(self) -> Set[str]:
        with self._lock:
            return {t for t, _ in self._resources}

    def edges(self, relation: Optional[Relation] = None) -> List[Tuple[Resource, Resource]]:
        """Return ``(src, dst)`` pairs for every edge of ``relation`` (or all)."""
        with self._lock:
            pairs = [
                (self._resources[src], self._resources[dst])
                for rel, src, dst in self._edges
                if relation is None or rel == relation
            ]
        return sorted(pairs, key=lambda p: (p[0].key, p[1].key))

    def children_of(self, parent: Resource) -> List[Resource]:
        return [
            dst for src, dst in self.edges(Relation.PARENT_OF)
            if src.key == parent.key
        ]

    def parent_of(self, child: Resource) -> Optional[Resource]:
        for src, dst in self.edges(Relation.PARENT_OF):
            if dst.key == child.key:
                return src
        return None

    def _snapshot(self) -> Tuple[List[Resource], Set[Tuple[Relation, ResourceKey, ResourceKey]]]:
        with self._lock:
            return list(self._resources.values()), set(self._edges)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the graph to a dictionary for JSON serialization.

        Returns
        -------
        dict
            ``{"resources": [...], "edges": [...]}``, both sorted.
        """
        return {
            "resources": [r.to_dict() for r in self.find_resources()],
            "edges": [
                {
                    "relation": rel.value,
                    "from": {"type": src[0], "id": src[1]},
                    "to": {"type": dst[0], "id": dst[1]},
                }
                for rel, src, dst in sorted(
                    self._snapshot()[1], key=lambda e: (e[0].value, e[1], e[2])
                )
            ],
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._resources)

    def __contains__(self, res: object) -> bool:
        if not isinstance(res, Resource):
            return False
        with self._lock:
            return res.key in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.find_resources())

    def __repr__(self) -> str:
        with self._lock:
            return f"Graph(resources={len(self._resources)}, edges={len(self._edges)})"
