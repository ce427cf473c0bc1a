"""
Base Service Module
===================

Abstract base class for every synchronized AWS service.

A service declares the resource types it can list (one
:class:`~awsync.core.fetchers.FetcherDescriptor` each) and the relationship
resolvers to run per type. :meth:`BaseService.fetch_resources` then runs a
two-phase synchronization:

1. **Fetch**: every enabled type is listed concurrently. Sub-graphs are
   merged into the pass graph as their futures complete; failures are
   collected, with authorization failures normalized to
   :data:`~awsync.core.exceptions.ERR_FETCH_ACCESS_DENIED`.
2. **Resolve**: once phase 1 has fully joined, every type fetched
   successfully links its raw records into the graph concurrently.

No task is cancelled when a sibling fails. The graph is always returned,
together with the aggregate error if anything failed.

Classes
-------
SyncResult
    Graph plus aggregate error for one service.
BaseService
    Abstract base class for services.

Example
-------
>>> from awsync.services import InfraService
>>> service = InfraService(AWSClient(region="eu-west-1"), SyncConfig())
>>> result = service.fetch_resources()
>>> print(result.resource_counts())
>>> if result.error:
...     print(f"partial sync: {result.error}")
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from botocore.exceptions import ClientError

from awsync.core.config import SyncConfig, resource_sync_key, service_sync_key
from awsync.core.errors import ErrorCollector
from awsync.core.exceptions import (
    ERR_FETCH_ACCESS_DENIED,
    GraphError,
    RelationshipResolutionError,
    UnsupportedResourceTypeError,
)
from awsync.core.fetchers import FetcherDescriptor, FetchOutput, fetch_all
from awsync.core.graph import Graph, init_region
from awsync.core.relationships import Resolver

# Module logger
logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access Denied"
ACCESS_DENIED_CODES = frozenset(
    {"AccessDenied", "AccessDeniedException", "UnauthorizedOperation"}
)


def classify_fetch_error(err: BaseException) -> BaseException:
    """
    Normalize a raw fetch error.

    botocore request failures whose message is the provider's
    ``"Access Denied"`` text (or whose code is an authorization code)
    become the access-denied sentinel. Anything else is returned unchanged.
    """
    if isinstance(err, ClientError):
        error = err.response.get("Error", {})
        if error.get("Message") == ACCESS_DENIED or error.get("Code") in ACCESS_DENIED_CODES:
            return ERR_FETCH_ACCESS_DENIED
    return err


@dataclass
class SyncResult:
    """
    Outcome of synchronizing one service (or fetching one type).

    Parameters
    ----------
    service : str
        Service name.
    region : str
        Region synchronized.
    graph : Graph
        Assembled graph, possibly partial.
    error : Exception, optional
        :class:`AggregateSyncError` for a full pass, the raw error for a
        single-type fetch, ``None`` on success.
    fetched_types : list of str
        Types whose phase 1 fetch succeeded.
    failed_types : list of str
        Types whose phase 1 fetch failed.
    """

    service: str
    region: str
    graph: Graph
    error: Optional[BaseException] = None
    fetched_types: List[str] = field(default_factory=list)
    failed_types: List[str] = field(default_factory=list)
    sync_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_errors(self) -> bool:
        return self.error is not None

    def raise_for_error(self) -> None:
        """Raise the recorded error, if any."""
        if self.error is not None:
            raise self.error

    def resource_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for res in self.graph.find_resources():
            counts[res.type] = counts.get(res.type, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "region": self.region,
            "sync_time": self.sync_time.isoformat(),
            "fetched_types": self.fetched_types,
            "failed_types": self.failed_types,
            "resource_counts": self.resource_counts(),
            "error": str(self.error) if self.error is not None else None,
            "graph": self.graph.to_dict(),
        }

    def __repr__(self) -> str:
        return (
            f"SyncResult(service='{self.service}', region='{self.region}', "
            f"resources={len(self.graph)}, has_errors={self.has_errors})"
        )


class BaseService(ABC):
    """
    Abstract base class for synchronized services.

    Parameters
    ----------
    aws_client : AWSClient
        Client for AWS API access; shared by all fetch tasks.
    config : SyncConfig, optional
        Enable/disable switches. Everything is enabled by default.

    Methods
    -------
    get_service_name()
        Service name used in config keys (abstract).
    get_fetchers()
        Declared resource type fetchers (abstract).
    get_relationship_resolvers()
        Resolvers per resource type.
    fetch_resources()
        Full two-phase synchronization.
    fetch_by_type(resource_type)
        Single-type fetch, no relationships.

    Examples
    --------
    Declaring a service:

    >>> class StorageService(BaseService):
    ...     def get_service_name(self) -> str:
    ...         return "s3"
    ...
    ...     def get_fetchers(self):
    ...         return (
    ...             FetcherDescriptor("bucket", "s3", "list_buckets",
    ...                               "Buckets", "Name"),
    ...         )
    """

    def __init__(self, aws_client, config: Optional[SyncConfig] = None) -> None:
        self.aws_client = aws_client
        self.region = aws_client.region
        self.config = config or SyncConfig()
        logger.debug(f"Initialized {self.__class__.__name__} for region {self.region}")

    @abstractmethod
    def get_service_name(self) -> str:
        """
        Get the service name.

        Returns
        -------
        str
            Name used in ``aws.<service>.sync`` config keys (e.g. 'ec2').
        """
        pass

    @abstractmethod
    def get_fetchers(self) -> Sequence[FetcherDescriptor]:
        """Get the fetch declarations, one per resource type."""
        pass

    def get_relationship_resolvers(self) -> Mapping[str, Sequence[Resolver]]:
        """Get relationship resolvers keyed by resource type."""
        return {}

    @property
    def name(self) -> str:
        return self.get_service_name()

    def resource_types(self) -> List[str]:
        return [d.resource_type for d in self.get_fetchers()]

    def get_fetcher(self, resource_type: str) -> FetcherDescriptor:
        """
        Look up the descriptor of ``resource_type``.

        Raises
        ------
        UnsupportedResourceTypeError
            If the type is not declared by this service.
        """
        for descriptor in self.get_fetchers():
            if descriptor.resource_type == resource_type:
                return descriptor
        raise UnsupportedResourceTypeError(
            f"aws {self.name}: unsupported fetch for type {resource_type}",
            resource_type=resource_type,
            service=self.name,
        )

    # =========================================================================
    # Configuration
    # =========================================================================

    def is_sync_disabled(self) -> bool:
        return not self.config.get_bool(service_sync_key(self.name), True)

    def is_type_enabled(self, resource_type: str) -> bool:
        return self.config.get_bool(resource_sync_key(self.name, resource_type), True)

    # =========================================================================
    # Fetching
    # =========================================================================

    def fetch_type(self, descriptor: FetcherDescriptor) -> FetchOutput:
        """Run the fetch of one resource type."""
        client = self.aws_client.get_client(descriptor.api)
        return fetch_all(descriptor, client, self.region)

    def fetch_by_type(self, resource_type: str) -> SyncResult:
        """
        Fetch a single resource type, without relationship resolution.

        The error, if any, is returned raw (not classified).

        Raises
        ------
        UnsupportedResourceTypeError
            If the type is not declared by this service.
        """
        descriptor = self.get_fetcher(resource_type)
        out = self.fetch_type(descriptor)
        return SyncResult(
            service=self.name,
            region=self.region,
            graph=out.graph,
            error=out.error,
            fetched_types=[resource_type] if out.ok else [],
            failed_types=[] if out.ok else [resource_type],
        )

    def fetch_resources(self) -> SyncResult:
        """
        Synchronize every enabled resource type of this service.

        Returns
        -------
        SyncResult
            Always carries the graph; ``error`` is an
            :class:`AggregateSyncError` when anything failed.

        Raises
        ------
        CredentialsError
            If credentials cannot be obtained before fetching starts.
        """
        graph = Graph()
        if self.is_sync_disabled():
            logger.debug(f"sync: *disabled* for service {self.name}")
            return SyncResult(service=self.name, region=self.region, graph=graph)

        graph.add_resource(init_region(self.region))

        enabled: List[FetcherDescriptor] = []
        for descriptor in self.get_fetchers():
            if self.is_type_enabled(descriptor.resource_type):
                enabled.append(descriptor)
            else:
                logger.debug(
                    f"sync: *disabled* for resource {self.name}[{descriptor.resource_type}]"
                )

        # Resolve clients up front: a credential failure aborts the pass
        for api in sorted({d.api for d in enabled}):
            self.aws_client.get_client(api)

        logger.info(f"Starting {self.name} sync of {len(enabled)} resource types in {self.region}")

        fetch_errors = ErrorCollector(f"{self.name}:fetch")
        raw_lists, failed_types = self._run_fetch_phase(enabled, graph, fetch_errors)

        resolve_errors = ErrorCollector(f"{self.name}:resolve")
        self._run_resolve_phase(
            [d for d in enabled if d.resource_type in raw_lists],
            raw_lists,
            graph,
            resolve_errors,
        )

        sync_errors = ErrorCollector(self.name)
        sync_errors.extend(fetch_errors)
        sync_errors.extend(resolve_errors)

        result = SyncResult(
            service=self.name,
            region=self.region,
            graph=graph,
            error=sync_errors.to_exception(),
            fetched_types=sorted(raw_lists),
            failed_types=sorted(failed_types),
        )

        if result.has_errors:
            logger.warning(f"{self.name} sync completed with {len(sync_errors)} errors: {sync_errors}")
        logger.info(f"{self.name} sync complete: {len(graph)} resources in {self.region}")
        return result

    def _run_fetch_phase(
        self,
        descriptors: List[FetcherDescriptor],
        graph: Graph,
        errors: ErrorCollector,
    ) -> tuple:
        """
        Phase 1: fetch every type concurrently and merge sub-graphs.

        Returns
        -------
        tuple
            (raw records by type for successful fetches, failed types)
        """
        raw_lists: Dict[str, List[Dict[str, Any]]] = {}
        failed_types: List[str] = []
        if not descriptors:
            return raw_lists, failed_types

        with ThreadPoolExecutor(
            max_workers=len(descriptors),
            thread_name_prefix=f"{self.name}-fetch",
        ) as executor:
            futures = {executor.submit(self.fetch_type, d): d for d in descriptors}

            for future in as_completed(futures):
                resource_type = futures[future].resource_type
                try:
                    out = future.result()
                except Exception as e:
                    out = FetchOutput(graph=Graph(), error=e)

                # Partial results of a failed fetch are kept
                try:
                    graph.add_graph(out.graph)
                except GraphError as e:
                    errors.add(e)
                    if out.error is not None:
                        errors.add(classify_fetch_error(out.error))
                    failed_types.append(resource_type)
                    continue

                if out.error is not None:
                    logger.warning(f"Failed to fetch {self.name}[{resource_type}]: {out.error}")
                    errors.add(classify_fetch_error(out.error))
                    failed_types.append(resource_type)
                else:
                    raw_lists[resource_type] = out.raw
                    logger.debug(f"Fetched {len(out.raw)} {self.name}[{resource_type}]")

        return raw_lists, failed_types

    def _run_resolve_phase(
        self,
        descriptors: List[FetcherDescriptor],
        raw_lists: Mapping[str, List[Dict[str, Any]]],
        graph: Graph,
        errors: ErrorCollector,
    ) -> None:
        """Phase 2: link raw records of each fetched type into ``graph``."""
        resolvers = self.get_relationship_resolvers()
        tasks = [d for d in descriptors if resolvers.get(d.resource_type)]
        if not tasks:
            return

        with ThreadPoolExecutor(
            max_workers=len(tasks),
            thread_name_prefix=f"{self.name}-resolve",
        ) as executor:
            futures = {
                executor.submit(
                    self._resolve_type,
                    d,
                    raw_lists[d.resource_type],
                    resolvers[d.resource_type],
                    graph,
                ): d
                for d in tasks
            }
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as e:
                    logger.warning(
                        f"Failed to resolve {self.name}[{futures[future].resource_type}] "
                        f"relations: {e}"
                    )
                    errors.add(e)

    def _resolve_type(
        self,
        descriptor: FetcherDescriptor,
        raw: List[Dict[str, Any]],
        resolvers: Sequence[Resolver],
        graph: Graph,
    ) -> None:
        """Run every resolver on every raw record; stops at the first error."""
        for record in raw:
            res_id = record.get(descriptor.id_key)
            res = graph.get_resource(descriptor.resource_type, str(res_id))
            if res is None:
                raise RelationshipResolutionError(
                    f"{descriptor.resource_type}[{res_id}] missing from graph",
                    resource_type=descriptor.resource_type,
                    resource_id=str(res_id),
                )
            for fn in resolvers:
                fn(graph, res, record)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(region='{self.region}', service='{self.name}')"
