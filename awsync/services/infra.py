"""
Infra Service Module
====================

Synchronizes EC2 networking and compute resources.

Resource Types
--------------
============== ============================ ========= ==========================
Type           API call                     Paginated Parent
============== ============================ ========= ==========================
vpc            describe_vpcs                no        region
subnet         describe_subnets             no        vpc
instance       describe_instances           yes       subnet
securitygroup  describe_security_groups     yes       vpc
internetgateway describe_internet_gateways  no        attached vpc(s) or region
routetable     describe_route_tables        no        vpc
volume         describe_volumes             yes       region
keypair        describe_key_pairs           no        region
============== ============================ ========= ==========================

Security groups listed on an instance record also get an ``applies_on``
edge to that instance.

Example
-------
>>> service = InfraService(AWSClient(region="us-east-1"))
>>> result = service.fetch_resources()
>>> vpc = result.graph.find_resources("vpc")[0]
>>> [s.id for s in result.graph.children_of(vpc)]
['subnet-0a1b2c']
"""

from __future__ import annotations

from typing import Dict, List, Sequence

from awsync.core.base_service import BaseService
from awsync.core.fetchers import FetcherDescriptor
from awsync.core.relationships import (
    Resolver,
    applied_by,
    parent_from_attachments,
    parent_from_field,
    region_parent,
)

FETCHERS = (
    FetcherDescriptor(
        resource_type="vpc",
        api="ec2",
        api_method="describe_vpcs",
        outputs_extractor="Vpcs",
        id_key="VpcId",
    ),
    FetcherDescriptor(
        resource_type="subnet",
        api="ec2",
        api_method="describe_subnets",
        outputs_extractor="Subnets",
        id_key="SubnetId",
    ),
    FetcherDescriptor(
        resource_type="instance",
        api="ec2",
        api_method="describe_instances",
        outputs_extractor="Instances",
        outputs_container="Reservations",
        id_key="InstanceId",
        multipage=True,
    ),
    FetcherDescriptor(
        resource_type="securitygroup",
        api="ec2",
        api_method="describe_security_groups",
        outputs_extractor="SecurityGroups",
        id_key="GroupId",
        multipage=True,
    ),
    FetcherDescriptor(
        resource_type="internetgateway",
        api="ec2",
        api_method="describe_internet_gateways",
        outputs_extractor="InternetGateways",
        id_key="InternetGatewayId",
    ),
    FetcherDescriptor(
        resource_type="routetable",
        api="ec2",
        api_method="describe_route_tables",
        outputs_extractor="RouteTables",
        id_key="RouteTableId",
    ),
    FetcherDescriptor(
        resource_type="volume",
        api="ec2",
        api_method="describe_volumes",
        outputs_extractor="Volumes",
        id_key="VolumeId",
        multipage=True,
    ),
    FetcherDescriptor(
        resource_type="keypair",
        api="ec2",
        api_method="describe_key_pairs",
        outputs_extractor="KeyPairs",
        id_key="KeyName",
    ),
)

RELATIONSHIP_RESOLVERS: Dict[str, List[Resolver]] = {
    "vpc": [region_parent],
    "subnet": [parent_from_field("vpc", "VpcId")],
    "instance": [
        parent_from_field("subnet", "SubnetId"),
        applied_by("securitygroup", "SecurityGroups", "GroupId"),
    ],
    "securitygroup": [parent_from_field("vpc", "VpcId")],
    "internetgateway": [parent_from_attachments("vpc", "Attachments", "VpcId")],
    "routetable": [parent_from_field("vpc", "VpcId")],
    "volume": [region_parent],
    "keypair": [region_parent],
}


class InfraService(BaseService):
    """
    EC2 infrastructure service.

    Parameters
    ----------
    aws_client : AWSClient
        Instance of AWSClient for AWS API access.
    config : SyncConfig, optional
        Switches read as ``aws.ec2.sync`` and ``aws.ec2.<type>.sync``.
    """

    def get_service_name(self) -> str:
        return "ec2"

    def get_fetchers(self) -> Sequence[FetcherDescriptor]:
        return FETCHERS

    def get_relationship_resolvers(self) -> Dict[str, List[Resolver]]:
        return RELATIONSHIP_RESOLVERS
