"""
Sync Manager Module
===================

Runs the synchronization of several services in parallel and aggregates
their graphs and errors.

Classes
-------
MultiServiceSyncResult
    Aggregated results from synchronizing multiple services.
SyncManager
    Orchestrates whole-account synchronization.

Example
-------
>>> from awsync.core.sync_manager import SyncManager
>>>
>>> manager = SyncManager(AWSClient(region="eu-west-1", cache_dir="~/.awsync"))
>>> result = manager.sync()
>>> graph = result.merged_graph()
>>> print(f"{len(graph)} resources, failed services: {result.failed_services}")

Notes
-----
Credentials are resolved once, before any service starts, so a failed
credential retrieval aborts the whole call instead of being reported once
per service.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Type

from awsync.core.aws_client import AWSClient
from awsync.core.base_service import BaseService, SyncResult
from awsync.core.config import SyncConfig
from awsync.core.graph import Graph

# Module logger
logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]


@dataclass
class MultiServiceSyncResult:
    """
    Aggregated results from synchronizing multiple services.

    Parameters
    ----------
    region : str
        Region synchronized.
    services_synced : list of str
        Services that were requested.
    results_by_service : dict
        Mapping of service name to SyncResult.
    errors : dict, optional
        Mapping of service name to its error (aggregate or unexpected).
    sync_time : datetime, optional
        When the sync was performed.
    """

    region: str
    services_synced: List[str]
    results_by_service: Dict[str, SyncResult]
    errors: Dict[str, BaseException] = field(default_factory=dict)
    sync_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def successful_services(self) -> List[str]:
        return [s for s in self.services_synced if s not in self.errors]

    @property
    def failed_services(self) -> List[str]:
        return sorted(self.errors)

    def merged_graph(self) -> Graph:
        """
        Merge every service graph into one.

        The region node shared by all services appears once.
        """
        merged = Graph()
        for name in sorted(self.results_by_service):
            merged.add_graph(self.results_by_service[name].graph)
        return merged

    def resource_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for res in self.merged_graph().find_resources():
            counts[res.type] = counts.get(res.type, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "services_synced": self.services_synced,
            "sync_time": self.sync_time.isoformat(),
            "resource_counts": self.resource_counts(),
            "errors": {name: str(err) for name, err in sorted(self.errors.items())},
            "graph": self.merged_graph().to_dict(),
        }

    def __repr__(self) -> str:
        return (
            f"MultiServiceSyncResult(region='{self.region}', "
            f"services={len(self.services_synced)}, "
            f"failed={len(self.errors)})"
        )


class SyncManager:
    """
    Manages whole-account synchronization.

    Parameters
    ----------
    aws_client : AWSClient
        Client shared by every service.
    config : SyncConfig, optional
        Enable/disable switches.
    services : dict, optional
        Service registry (name to class). Defaults to every known service.
    max_workers : int, optional
        Maximum services synchronized at once. Defaults to one per service.
    """

    def __init__(
        self,
        aws_client: AWSClient,
        config: Optional[SyncConfig] = None,
        services: Optional[Dict[str, Type[BaseService]]] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        if services is None:
            from awsync.services import SERVICES

            services = SERVICES
        self.aws_client = aws_client
        self.config = config or SyncConfig()
        self.services = dict(services)
        self.max_workers = max_workers

        logger.debug(f"Initialized SyncManager with services={sorted(self.services)}")

    def get_service(self, name: str) -> BaseService:
        """
        Instantiate the service named ``name``.

        Raises
        ------
        KeyError
            If the service is unknown.
        """
        try:
            service_class = self.services[name]
        except KeyError:
            raise KeyError(f"unknown service '{name}', expected one of {sorted(self.services)}")
        return service_class(self.aws_client, self.config)

    def _sync_service(
        self,
        name: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> tuple:
        """
        Synchronize one service (internal method).

        Returns
        -------
        tuple
            (name, SyncResult or None, error or None)
        """
        try:
            if progress_callback:
                progress_callback(name, "syncing")

            result = self.get_service(name).fetch_resources()

            if progress_callback:
                progress_callback(name, "error" if result.has_errors else "complete")
            return (name, result, result.error)

        except Exception as e:
            logger.error(f"Error syncing {name}: {e}")
            if progress_callback:
                progress_callback(name, "error")
            return (name, None, e)

    def sync(
        self,
        service_names: Optional[List[str]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> MultiServiceSyncResult:
        """
        Synchronize services in parallel.

        Parameters
        ----------
        service_names : list of str, optional
            Services to synchronize. If None, all registered services.
        progress_callback : callable, optional
            Called with (service, status); status is one of 'syncing',
            'complete', 'error'.

        Raises
        ------
        CredentialsError
            If credentials cannot be retrieved.
        KeyError
            If an unknown service is requested.
        """
        names = list(service_names) if service_names else sorted(self.services)
        for name in names:
            if name not in self.services:
                raise KeyError(f"unknown service '{name}', expected one of {sorted(self.services)}")

        # Fail fast on credentials before fanning out
        _ = self.aws_client.session

        logger.info(f"Starting sync of {len(names)} services in {self.aws_client.region}")

        results_by_service: Dict[str, SyncResult] = {}
        errors: Dict[str, BaseException] = {}

        if names:
            with ThreadPoolExecutor(max_workers=self.max_workers or len(names)) as executor:
                futures = [
                    executor.submit(self._sync_service, name, progress_callback)
                    for name in names
                ]
                for future in as_completed(futures):
                    name, result, error = future.result()
                    if result is not None:
                        results_by_service[name] = result
                    if error is not None:
                        errors[name] = error
                        logger.warning(f"Service {name} failed: {error}")

        result = MultiServiceSyncResult(
            region=self.aws_client.region,
            services_synced=names,
            results_by_service=results_by_service,
            errors=errors,
        )
        logger.info(
            f"Sync complete: {sum(len(r.graph) for r in results_by_service.values())} "
            f"resources across {len(results_by_service)} services"
        )
        return result

    def sync_service(self, name: str) -> SyncResult:
        """Synchronize a single service (convenience method)."""
        return self.get_service(name).fetch_resources()

    def __repr__(self) -> str:
        return (
            f"SyncManager(region='{self.aws_client.region}', "
            f"services={sorted(self.services)})"
        )
