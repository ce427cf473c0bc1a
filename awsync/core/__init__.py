"""
Core Components
===============

- :class:`AWSClient` - boto3 session and shared service clients
- :class:`FileCacheProvider` - on-disk credential cache
- :class:`Graph` - thread-safe resource relationship graph
- :class:`BaseService` - two-phase concurrent fetch orchestrator
- :class:`SyncManager` - parallel synchronization of several services
- :class:`SyncConfig` - enable/disable switches and cache root
- Exception hierarchy for error handling

Example
-------
>>> from awsync.core import AWSClient, SyncConfig, SyncManager
>>>
>>> config = SyncConfig.load("awsync.yaml")
>>> client = AWSClient(region="us-east-1", profile="admin", cache_dir=config.cache_dir)
>>> result = SyncManager(client, config).sync()
"""

from awsync.core.aws_client import AWSClient
from awsync.core.base_service import BaseService, SyncResult, classify_fetch_error
from awsync.core.config import SyncConfig
from awsync.core.credentials import (
    BotocoreCredentialProvider,
    CachedCredential,
    CredentialOrigin,
    FileCacheProvider,
)
from awsync.core.errors import ErrorCollector
from awsync.core.exceptions import (
    ERR_FETCH_ACCESS_DENIED,
    AccessDeniedError,
    AggregateSyncError,
    AWSClientError,
    AwsyncError,
    CacheReadError,
    CredentialsError,
    FetchError,
    GraphError,
    RegionError,
    RelationshipResolutionError,
    ServiceError,
    UnsupportedResourceTypeError,
)
from awsync.core.fetchers import FetcherDescriptor, FetchOutput, fetch_all
from awsync.core.graph import Graph, Relation, Resource
from awsync.core.sync_manager import MultiServiceSyncResult, SyncManager

__all__ = [
    # Client and credentials
    "AWSClient",
    "BotocoreCredentialProvider",
    "CachedCredential",
    "CredentialOrigin",
    "FileCacheProvider",
    # Graph
    "Graph",
    "Relation",
    "Resource",
    # Fetching
    "BaseService",
    "FetchOutput",
    "FetcherDescriptor",
    "SyncResult",
    "classify_fetch_error",
    "fetch_all",
    # Orchestration
    "ErrorCollector",
    "MultiServiceSyncResult",
    "SyncConfig",
    "SyncManager",
    # Exceptions
    "AwsyncError",
    "AWSClientError",
    "CredentialsError",
    "RegionError",
    "ServiceError",
    "CacheReadError",
    "FetchError",
    "AccessDeniedError",
    "UnsupportedResourceTypeError",
    "ERR_FETCH_ACCESS_DENIED",
    "GraphError",
    "RelationshipResolutionError",
    "AggregateSyncError",
]
