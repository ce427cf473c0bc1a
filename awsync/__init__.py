"""
awsync: concurrent AWS resource graph synchronization
=====================================================

Lists an AWS account's resources with many concurrent describe/list calls,
assembles them into a relationship graph, and tolerates per-type failures.
Assumed-role credentials are cached on disk between invocations.

Modules
-------
core
    AWS client, credential cache, graph, fetch orchestration
services
    Per-service resource declarations (EC2, IAM)

Example
-------
>>> from awsync import AWSClient, InfraService
>>>
>>> client = AWSClient(region="us-east-1", profile="admin", cache_dir="~/.awsync")
>>> result = InfraService(client).fetch_resources()
>>> print(f"{len(result.graph)} resources, errors: {result.error}")

Notes
-----
Requires AWS credentials configured via environment variables, the shared
credentials/config files, or an instance/container role.
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Public API
from awsync.core.aws_client import AWSClient
from awsync.core.base_service import BaseService, SyncResult
from awsync.core.config import SyncConfig
from awsync.core.exceptions import AggregateSyncError, AWSClientError
from awsync.core.graph import Graph, Resource
from awsync.core.sync_manager import MultiServiceSyncResult, SyncManager
from awsync.services import AccessService, InfraService

__all__ = [
    "__version__",
    "__license__",
    "AWSClient",
    "AWSClientError",
    "AccessService",
    "AggregateSyncError",
    "BaseService",
    "Graph",
    "InfraService",
    "MultiServiceSyncResult",
    "Resource",
    "SyncConfig",
    "SyncManager",
    "SyncResult",
]
