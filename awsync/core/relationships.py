"""
Relationship Resolvers
======================

Functions that link a freshly fetched resource to others already in the
graph. A resolver has the signature ``resolver(graph, resource, raw)``
where ``raw`` is the API record the resource was built from.

Resolvers run after every resource type has been fetched, so a missing
counterpart means its type was disabled or failed to fetch. That case is
skipped. Only malformed records raise :class:`RelationshipResolutionError`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from awsync.core.exceptions import RelationshipResolutionError
from awsync.core.graph import REGION, Graph, Resource

# Module logger
logger = logging.getLogger(__name__)

Resolver = Callable[[Graph, Resource, Mapping[str, Any]], None]


def _malformed(res: Resource, reason: str) -> RelationshipResolutionError:
    return RelationshipResolutionError(
        f"cannot resolve relations of {res.type}[{res.id}]: {reason}",
        resource_type=res.type,
        resource_id=res.id,
    )


def _link_parent(graph: Graph, parent_type: str, parent_id: Any, child: Resource) -> None:
    if not isinstance(parent_id, str):
        raise _malformed(child, f"{parent_type} reference is not a string: {parent_id!r}")
    parent = graph.get_resource(parent_type, parent_id)
    if parent is None:
        logger.debug(f"{child.type}[{child.id}]: parent {parent_type}[{parent_id}] not synced")
        return
    graph.add_parent_of(parent, child)


def region_parent(graph: Graph, child: Resource, raw: Mapping[str, Any]) -> None:
    """Attach ``child`` under its region node."""
    _link_parent(graph, REGION, child.region, child)


def parent_from_field(parent_type: str, field: str) -> Resolver:
    """Build a resolver reading the parent identifier from ``raw[field]``."""

    def resolve(graph: Graph, child: Resource, raw: Mapping[str, Any]) -> None:
        parent_id = raw.get(field)
        if parent_id is None:
            return
        _link_parent(graph, parent_type, parent_id, child)

    resolve.__name__ = f"parent_{parent_type}_from_{field}"
    return resolve


def parent_from_attachments(
    parent_type: str,
    list_field: str,
    id_field: str,
) -> Resolver:
    """
    Build a resolver linking ``child`` under every attached parent.

    Unattached resources are placed under their region.
    """

    def resolve(graph: Graph, child: Resource, raw: Mapping[str, Any]) -> None:
        attachments = raw.get(list_field) or []
        if not isinstance(attachments, list):
            raise _malformed(child, f"'{list_field}' is not a list")
        if not attachments:
            region_parent(graph, child, raw)
            return
        for attachment in attachments:
            if not isinstance(attachment, Mapping):
                raise _malformed(child, f"bad entry in '{list_field}'")
            _link_parent(graph, parent_type, attachment.get(id_field), child)

    resolve.__name__ = f"parent_{parent_type}_from_{list_field}"
    return resolve


def applied_by(src_type: str, list_field: str, id_field: str) -> Resolver:
    """
    Build a resolver adding ``src applies_on child`` edges.

    Used for security groups listed on an instance record.
    """

    def resolve(graph: Graph, child: Resource, raw: Mapping[str, Any]) -> None:
        entries = raw.get(list_field) or []
        if not isinstance(entries, list):
            raise _malformed(child, f"'{list_field}' is not a list")
        for entry in entries:
            if not isinstance(entry, Mapping):
                raise _malformed(child, f"bad entry in '{list_field}'")
            src = graph.get_resource(src_type, entry.get(id_field))
            if src is not None:
                graph.add_applies_on(src, child)

    resolve.__name__ = f"{src_type}_applies_on_from_{list_field}"
    return resolve
