"""
Synchronized Services
=====================

Service implementations, one per AWS API family.

Available Services
------------------
InfraService
    EC2 networking and compute (``ec2``).
AccessService
    IAM identities and policies (``iam``).

Adding New Services
-------------------
1. Create a module in this package declaring a tuple of
   ``FetcherDescriptor`` and a resolver mapping.
2. Subclass ``BaseService`` and implement ``get_service_name`` and
   ``get_fetchers`` (and ``get_relationship_resolvers`` if needed).
3. Register the class in ``SERVICES`` below.
"""

from typing import Dict, List, Type

from awsync.core.base_service import BaseService
from awsync.services import access, infra
from awsync.services.access import AccessService
from awsync.services.infra import InfraService

SERVICES: Dict[str, Type[BaseService]] = {
    "ec2": InfraService,
    "iam": AccessService,
}

SERVICE_NAMES: List[str] = list(SERVICES)

SERVICE_PER_RESOURCE_TYPE: Dict[str, str] = {
    fetcher.resource_type: name
    for name, fetchers in (("ec2", infra.FETCHERS), ("iam", access.FETCHERS))
    for fetcher in fetchers
}

RESOURCE_TYPES: List[str] = list(SERVICE_PER_RESOURCE_TYPE)

__all__ = [
    "AccessService",
    "InfraService",
    "RESOURCE_TYPES",
    "SERVICES",
    "SERVICE_NAMES",
    "SERVICE_PER_RESOURCE_TYPE",
]
