"""
Access Service Module
=====================

Synchronizes IAM identities and customer-managed policies.

IAM is global; resources are stamped with the client's region and hang
directly under that region node.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

from awsync.core.base_service import BaseService
from awsync.core.fetchers import FetcherDescriptor
from awsync.core.relationships import Resolver, region_parent

FETCHERS = (
    FetcherDescriptor(
        resource_type="user",
        api="iam",
        api_method="list_users",
        outputs_extractor="Users",
        id_key="UserId",
        multipage=True,
    ),
    FetcherDescriptor(
        resource_type="group",
        api="iam",
        api_method="list_groups",
        outputs_extractor="Groups",
        id_key="GroupId",
        multipage=True,
    ),
    FetcherDescriptor(
        resource_type="role",
        api="iam",
        api_method="list_roles",
        outputs_extractor="Roles",
        id_key="RoleId",
        multipage=True,
    ),
    FetcherDescriptor(
        resource_type="policy",
        api="iam",
        api_method="list_policies",
        outputs_extractor="Policies",
        id_key="PolicyId",
        multipage=True,
        request_kwargs={"Scope": "Local"},
    ),
)

RELATIONSHIP_RESOLVERS: Dict[str, List[Resolver]] = {
    fetcher.resource_type: [region_parent] for fetcher in FETCHERS
}


class AccessService(BaseService):
    """IAM service; switches read as ``aws.iam.sync`` and ``aws.iam.<type>.sync``."""

    def get_service_name(self) -> str:
        return "iam"

    def get_fetchers(self) -> Sequence[FetcherDescriptor]:
        return FETCHERS

    def get_relationship_resolvers(self) -> Dict[str, List[Resolver]]:
        return RELATIONSHIP_RESOLVERS
