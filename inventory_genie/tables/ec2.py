"""
EC2 Tables
==========

Regions, key pairs, network interfaces and fleets.

Classes
-------
EC2RegionTable
    ``aws_ec2_region``: every region visible to the account.
EC2KeyPairTable
    ``aws_ec2_key_pair``: key pairs, with a lookup by ``key_name``.
EC2NetworkInterfaceTable
    ``aws_ec2_network_interface``: ENIs, filterable by VPC and subnet.
EC2FleetTable
    ``aws_ec2_fleet``: EC2 Fleets.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.pagination import NextTokenPaging, SinglePage, stream_pages
from inventory_genie.core.query import QueryData, Row
from inventory_genie.tables.common import get_common_columns
from inventory_genie.tables.utils import build_arn, iso, name_from_tags, tags_to_map, zone_to_region

logger = logging.getLogger(__name__)


def ec2_filters(d: QueryData, mapping: Dict[str, str]) -> List[Dict[str, Any]]:
    """Translate qualifiers into EC2 ``Filters`` (column to filter name)."""
    filters = []
    for column, filter_name in mapping.items():
        values = d.equals_qual_list(column)
        if values:
            filters.append({"Name": filter_name, "Values": values})
    return filters


class EC2RegionTable(BaseTable):
    """Every region visible to the account, enabled or not."""

    name = "aws_ec2_region"
    description = "AWS EC2 Region"
    service = "ec2"
    list_action = "DescribeRegions"
    regional = False

    def list(self, d: QueryData) -> None:
        ec2 = d.connection.clients.get_ec2_client(d.connection.default_region)
        request: Dict[str, Any] = {"AllRegions": True}
        names = d.equals_qual_list("name")
        if names:
            request["RegionNames"] = names
        stream_pages(
            d,
            fetch=lambda req: ec2.describe_regions(**req),
            request=request,
            items=lambda resp: resp.get("Regions", []),
            paging=SinglePage(),
            service=self.service,
            action=self.list_action,
        )

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        common = get_common_columns(d)
        name = item["RegionName"]
        return {
            "name": name,
            "endpoint": item.get("Endpoint"),
            "opt_in_status": item.get("OptInStatus"),
            "title": name,
            "akas": [build_arn(common.partition, "ec2", name, common.account_id, "")],
            "region": name,
            **common.as_columns(),
        }


class EC2KeyPairTable(BaseTable):
    """Key pairs in each region."""

    name = "aws_ec2_key_pair"
    description = "AWS EC2 Key Pair"
    service = "ec2"
    list_action = "DescribeKeyPairs"
    get_key_columns = ("key_name",)
    not_found_codes = ("InvalidKeyPair.NotFound",)

    def list(self, d: QueryData) -> None:
        ec2 = d.client("ec2")
        stream_pages(
            d,
            fetch=lambda req: ec2.describe_key_pairs(**req),
            request={},
            items=lambda resp: resp.get("KeyPairs", []),
            paging=SinglePage(),
            service=self.service,
            action=self.list_action,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        ec2 = d.client("ec2")
        d.wait_for_list_rate_limit(self.service, self.list_action)
        response = ec2.describe_key_pairs(KeyNames=[d.equals_qual_string("key_name")])
        pairs = response.get("KeyPairs", [])
        return pairs[0] if pairs else None

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        common = get_common_columns(d)
        name = item["KeyName"]
        return {
            "key_name": name,
            "key_pair_id": item.get("KeyPairId"),
            "key_fingerprint": item.get("KeyFingerprint"),
            "key_type": item.get("KeyType"),
            "create_time": iso(item.get("CreateTime")),
            "title": name,
            "tags": tags_to_map(item.get("Tags")),
            "akas": [
                build_arn(
                    common.partition, "ec2", d.region, common.account_id, f"key-pair/{name}"
                )
            ],
            "region": d.region,
            **common.as_columns(),
        }


class EC2NetworkInterfaceTable(BaseTable):
    """Elastic network interfaces."""

    name = "aws_ec2_network_interface"
    description = "AWS EC2 Network Interface"
    service = "ec2"
    list_action = "DescribeNetworkInterfaces"

    def list(self, d: QueryData) -> None:
        ec2 = d.client("ec2")
        request: Dict[str, Any] = {}
        ids = d.equals_qual_list("network_interface_id")
        if ids:
            # MaxResults cannot be combined with explicit ids
            request["NetworkInterfaceIds"] = ids
        else:
            request["MaxResults"] = d.page_size(1000, 5)
        filters = ec2_filters(
            d,
            {
                "vpc_id": "vpc-id",
                "subnet_id": "subnet-id",
                "status": "status",
                "interface_type": "interface-type",
            },
        )
        if filters:
            request["Filters"] = filters

        stream_pages(
            d,
            fetch=lambda req: ec2.describe_network_interfaces(**req),
            request=request,
            items=lambda resp: resp.get("NetworkInterfaces", []),
            paging=NextTokenPaging(),
            service=self.service,
            action=self.list_action,
            ignore_codes=("InvalidNetworkInterfaceID.NotFound",),
        )

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        common = get_common_columns(d)
        eni_id = item["NetworkInterfaceId"]
        attachment = item.get("Attachment") or {}
        association = item.get("Association") or {}
        tags = item.get("TagSet")
        return {
            "network_interface_id": eni_id,
            "interface_type": item.get("InterfaceType"),
            "status": item.get("Status"),
            "description": item.get("Description"),
            "vpc_id": item.get("VpcId"),
            "subnet_id": item.get("SubnetId"),
            "availability_zone": item.get("AvailabilityZone"),
            "mac_address": item.get("MacAddress"),
            "private_ip_address": item.get("PrivateIpAddress"),
            "private_dns_name": item.get("PrivateDnsName"),
            "association_public_ip": association.get("PublicIp"),
            "attached_instance_id": attachment.get("InstanceId"),
            "attachment_status": attachment.get("Status"),
            "source_dest_check": item.get("SourceDestCheck"),
            "requester_managed": item.get("RequesterManaged"),
            "groups": [g.get("GroupId") for g in item.get("Groups", [])],
            "private_ip_addresses": [
                p.get("PrivateIpAddress") for p in item.get("PrivateIpAddresses", [])
            ],
            "title": name_from_tags(tags) or eni_id,
            "tags": tags_to_map(tags),
            "akas": [
                build_arn(
                    common.partition,
                    "ec2",
                    d.region,
                    common.account_id,
                    f"network-interface/{eni_id}",
                )
            ],
            "region": zone_to_region(item.get("AvailabilityZone")) or d.region,
            **common.as_columns(),
        }


class EC2FleetTable(BaseTable):
    """EC2 Fleets."""

    name = "aws_ec2_fleet"
    description = "AWS EC2 Fleet"
    service = "ec2"
    list_action = "DescribeFleets"

    def list(self, d: QueryData) -> None:
        ec2 = d.client("ec2")
        request: Dict[str, Any] = {}
        ids = d.equals_qual_list("fleet_id")
        if ids:
            request["FleetIds"] = ids
        else:
            request["MaxResults"] = d.page_size(1000, 1)

        stream_pages(
            d,
            fetch=lambda req: ec2.describe_fleets(**req),
            request=request,
            items=lambda resp: resp.get("Fleets", []),
            paging=NextTokenPaging(),
            service=self.service,
            action=self.list_action,
        )

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        common = get_common_columns(d)
        fleet_id = item["FleetId"]
        capacity = item.get("TargetCapacitySpecification") or {}
        return {
            "fleet_id": fleet_id,
            "fleet_state": item.get("FleetState"),
            "activity_status": item.get("ActivityStatus"),
            "type": item.get("Type"),
            "create_time": iso(item.get("CreateTime")),
            "excess_capacity_termination_policy": item.get(
                "ExcessCapacityTerminationPolicy"
            ),
            "total_target_capacity": capacity.get("TotalTargetCapacity"),
            "on_demand_target_capacity": capacity.get("OnDemandTargetCapacity"),
            "spot_target_capacity": capacity.get("SpotTargetCapacity"),
            "default_target_capacity_type": capacity.get("DefaultTargetCapacityType"),
            "title": name_from_tags(item.get("Tags")) or fleet_id,
            "tags": tags_to_map(item.get("Tags")),
            "akas": [
                build_arn(
                    common.partition, "ec2", d.region, common.account_id, f"fleet/{fleet_id}"
                )
            ],
            "region": d.region,
            **common.as_columns(),
        }
