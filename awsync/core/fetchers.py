"""
Resource Fetchers Module
========================

Static per-type fetch declarations and the generic routine that runs
them against a botocore client.

Each :class:`FetcherDescriptor` names the API call that lists one resource
type, where the records live in the response and which field carries the
identifier. :func:`fetch_all` calls the API once, or page by page through
a botocore paginator, converting every record into a :class:`Resource`
inside a type-local graph.

Example
-------
>>> vpcs = FetcherDescriptor(
...     resource_type="vpc",
...     api="ec2",
...     api_method="describe_vpcs",
...     outputs_extractor="Vpcs",
...     id_key="VpcId",
... )
>>> out = fetch_all(vpcs, client.get_client("ec2"), "us-east-1")
>>> len(out.graph), out.error
(2, None)

Notes
-----
The first record that fails to convert or insert stops the fetch: no
further pages are requested. Records converted before that point stay in
the returned graph and the error is returned alongside them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from awsync.core.exceptions import GraphError
from awsync.core.graph import Graph, Resource

# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetcherDescriptor:
    """
    Declaration of how one resource type is listed.

    Parameters
    ----------
    resource_type : str
        Type tag of the produced resources (e.g. 'subnet').
    api : str
        boto3 service name (e.g. 'ec2').
    api_method : str
        Client method or paginator name (e.g. 'describe_subnets').
    outputs_extractor : str
        Response key holding the records (e.g. 'Subnets').
    id_key : str
        Record key holding the identifier (e.g. 'SubnetId').
    multipage : bool, default=False
        Whether to iterate a paginator instead of a single call.
    outputs_container : str, optional
        Response key wrapping record lists (e.g. 'Reservations').
    request_kwargs : dict, optional
        Extra arguments passed to every request.
    """

    resource_type: str
    api: str
    api_method: str
    outputs_extractor: str
    id_key: str
    multipage: bool = False
    outputs_container: Optional[str] = None
    request_kwargs: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class FetchOutput:
    """
    Result of one per-type fetch.

    Attributes
    ----------
    graph : Graph
        Type-local graph of converted resources (possibly partial).
    raw : list of dict
        Raw API records collected, in API order.
    error : Exception, optional
        API error or first conversion error, unclassified.
    """

    graph: Graph
    raw: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def new_resource(
    descriptor: FetcherDescriptor,
    record: Mapping[str, Any],
    region: str,
) -> Resource:
    """
    Convert a raw API record into a :class:`Resource`.

    Tags lists (``[{"Key": .., "Value": ..}]``) are flattened into a dict.

    Raises
    ------
    GraphError
        If the record has no identifier or its tags are malformed.
    """
    res_id = record.get(descriptor.id_key) if isinstance(record, Mapping) else None
    if not res_id:
        raise GraphError(
            f"{descriptor.resource_type}: record has no '{descriptor.id_key}'",
            details={"resource_type": descriptor.resource_type},
        )

    properties = {k: v for k, v in record.items() if k != "Tags"}
    if "Tags" in record:
        tags = record.get("Tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, Mapping) for t in tags):
            raise GraphError(
                f"{descriptor.resource_type}[{res_id}]: malformed 'Tags'",
                details={"resource_type": descriptor.resource_type},
            )
        properties["Tags"] = {tag.get("Key"): tag.get("Value") for tag in tags}
    return Resource(
        type=descriptor.resource_type,
        id=str(res_id),
        region=region,
        properties=properties,
    )


def _iter_records(
    descriptor: FetcherDescriptor,
    page: Mapping[str, Any],
) -> Iterator[Dict[str, Any]]:
    if descriptor.outputs_container:
        for container in page.get(descriptor.outputs_container, []):
            yield from container.get(descriptor.outputs_extractor, [])
    else:
        yield from page.get(descriptor.outputs_extractor, [])


def _iter_pages(descriptor: FetcherDescriptor, client) -> Iterator[Mapping[str, Any]]:
    kwargs = dict(descriptor.request_kwargs)
    if descriptor.multipage:
        paginator = client.get_paginator(descriptor.api_method)
        yield from paginator.paginate(**kwargs)
    else:
        yield getattr(client, descriptor.api_method)(**kwargs)


def fetch_all(
    descriptor: FetcherDescriptor,
    client,
    region: str,
) -> FetchOutput:
    """
    List every resource of one type.

    Parameters
    ----------
    descriptor : FetcherDescriptor
        What to fetch.
    client : botocore.client.BaseClient
        Client for ``descriptor.api``.
    region : str
        Region stamped on every produced resource.

    Returns
    -------
    FetchOutput
        Always returned; ``error`` is set on API failure or on the first
        bad record, with whatever was collected before it.
    """
    graph = Graph()
    raw: List[Dict[str, Any]] = []
    bad_res_err: Optional[BaseException] = None

    try:
        for page in _iter_pages(descriptor, client):
            try:
                for record in _iter_records(descriptor, page):
                    raw.append(record)
                    graph.add_resource(new_resource(descriptor, record, region))
            except GraphError as e:
                bad_res_err = e
            except (AttributeError, TypeError, ValueError) as e:
                bad_res_err = GraphError(
                    f"{descriptor.resource_type}: cannot convert record: {e}",
                    details={"resource_type": descriptor.resource_type},
                )
            if bad_res_err is not None:
                break
    except (ClientError, BotoCoreError) as e:
        logger.debug(f"fetch {descriptor.resource_type}: {e}")
        return FetchOutput(graph=graph, raw=raw, error=e)

    if bad_res_err is not None:
        logger.debug(
            f"fetch {descriptor.resource_type}: stopped after {len(raw)} "
            f"records: {bad_res_err}"
        )
    return FetchOutput(graph=graph, raw=raw, error=bad_res_err)
