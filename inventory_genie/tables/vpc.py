"""
VPC Tables
==========

VPCs, subnets, NAT gateways, VPN gateways, customer gateways and Client VPN
endpoints.

Notes
-----
``DescribeVpcs`` and ``DescribeSubnets`` reject ``MaxResults`` together
with explicit ids, so the page size is only sent for unfiltered listings.
``DescribeVpnGateways`` and ``DescribeCustomerGateways`` are not paginated.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.pagination import NextTokenPaging, SinglePage, stream_pages
from inventory_genie.core.query import QueryData, Row
from inventory_genie.tables.common import get_common_columns
from inventory_genie.tables.ec2 import ec2_filters
from inventory_genie.tables.utils import build_arn, iso, name_from_tags, tags_to_map

logger = logging.getLogger(__name__)


def _ec2_arn(d: QueryData, resource: str) -> str:
    common = get_common_columns(d)
    return build_arn(common.partition, "ec2", d.region, common.account_id, resource)


class VPCTable(BaseTable):
    """Virtual private clouds."""

    name = "aws_vpc"
    description = "AWS VPC"
    service = "ec2"
    list_action = "DescribeVpcs"
    get_key_columns = ("vpc_id",)
    not_found_codes = ("InvalidVpcID.NotFound", "InvalidVpcID.Malformed")

    def list(self, d: QueryData) -> None:
        ec2 = d.client("ec2")
        request: Dict[str, Any] = {"MaxResults": d.page_size(1000, 5)}
        filters = ec2_filters(
            d, {"cidr_block": "cidr", "state": "state", "owner_id": "owner-id"}
        )
        is_default = d.equals_qual_bool("is_default")
        if is_default is not None:
            filters.append(
                {"Name": "is-default", "Values": [str(is_default).lower()]}
            )
        if filters:
            request["Filters"] = filters

        stream_pages(
            d,
            fetch=lambda req: ec2.describe_vpcs(**req),
            request=request,
            items=lambda resp: resp.get("Vpcs", []),
            paging=NextTokenPaging(),
            service=self.service,
            action=self.list_action,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        ec2 = d.client("ec2")
        d.wait_for_list_rate_limit(self.service, self.list_action)
        response = ec2.describe_vpcs(VpcIds=[d.equals_qual_string("vpc_id")])
        vpcs = response.get("Vpcs", [])
        return vpcs[0] if vpcs else None

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        vpc_id = item["VpcId"]
        tags = item.get("Tags")
        return {
            "vpc_id": vpc_id,
            "cidr_block": item.get("CidrBlock"),
            "state": item.get("State"),
            "is_default": item.get("IsDefault"),
            "dhcp_options_id": item.get("DhcpOptionsId"),
            "instance_tenancy": item.get("InstanceTenancy"),
            "owner_id": item.get("OwnerId"),
            "cidr_block_association_set": [
                a.get("CidrBlock") for a in item.get("CidrBlockAssociationSet", [])
            ],
            "ipv6_cidr_block_association_set": [
                a.get("Ipv6CidrBlock")
                for a in item.get("Ipv6CidrBlockAssociationSet", [])
            ],
            "title": name_from_tags(tags) or vpc_id,
            "tags": tags_to_map(tags),
            "akas": [_ec2_arn(d, f"vpc/{vpc_id}")],
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }


class VPCSubnetTable(BaseTable):
    """VPC subnets."""

    name = "aws_vpc_subnet"
    description = "AWS VPC Subnet"
    service = "ec2"
    list_action = "DescribeSubnets"
    get_key_columns = ("subnet_id",)
    not_found_codes = ("InvalidSubnetID.NotFound", "InvalidSubnetID.Malformed")

    def list(self, d: QueryData) -> None:
        ec2 = d.client("ec2")
        request: Dict[str, Any] = {"MaxResults": d.page_size(1000, 5)}
        filters = ec2_filters(
            d,
            {
                "vpc_id": "vpc-id",
                "availability_zone": "availability-zone",
                "cidr_block": "cidr-block",
                "state": "state",
            },
        )
        if filters:
            request["Filters"] = filters

        stream_pages(
            d,
            fetch=lambda req: ec2.describe_subnets(**req),
            request=request,
            items=lambda resp: resp.get("Subnets", []),
            paging=NextTokenPaging(),
            service=self.service,
            action=self.list_action,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        ec2 = d.client("ec2")
        d.wait_for_list_rate_limit(self.service, self.list_action)
        response = ec2.describe_subnets(SubnetIds=[d.equals_qual_string("subnet_id")])
        subnets = response.get("Subnets", [])
        return subnets[0] if subnets else None

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        subnet_id = item["SubnetId"]
        tags = item.get("Tags")
        return {
            "subnet_id": subnet_id,
            "subnet_arn": item.get("SubnetArn"),
            "vpc_id": item.get("VpcId"),
            "cidr_block": item.get("CidrBlock"),
            "state": item.get("State"),
            "availability_zone": item.get("AvailabilityZone"),
            "availability_zone_id": item.get("AvailabilityZoneId"),
            "available_ip_address_count": item.get("AvailableIpAddressCount"),
            "default_for_az": item.get("DefaultForAz"),
            "map_public_ip_on_launch": item.get("MapPublicIpOnLaunch"),
            "owner_id": item.get("OwnerId"),
            "title": name_from_tags(tags) or subnet_id,
            "tags": tags_to_map(tags),
            "akas": [item.get("SubnetArn") or _ec2_arn(d, f"subnet/{subnet_id}")],
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }


class VPCNatGatewayTable(BaseTable):
    """NAT gateways."""

    name = "aws_vpc_nat_gateway"
    description = "AWS VPC NAT Gateway"
    service = "ec2"
    list_action = "DescribeNatGateways"

    def list(self, d: QueryData) -> None:
        ec2 = d.client("ec2")
        request: Dict[str, Any] = {}
        ids = d.equals_qual_list("nat_gateway_id")
        if ids:
            request["NatGatewayIds"] = ids
        else:
            request["MaxResults"] = d.page_size(1000, 5)
        filters = ec2_filters(
            d, {"vpc_id": "vpc-id", "subnet_id": "subnet-id", "state": "state"}
        )
        if filters:
            request["Filter"] = filters

        stream_pages(
            d,
            fetch=lambda req: ec2.describe_nat_gateways(**req),
            request=request,
            items=lambda resp: resp.get("NatGateways", []),
            paging=NextTokenPaging(),
            service=self.service,
            action=self.list_action,
            ignore_codes=("NatGatewayNotFound",),
        )

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        nat_id = item["NatGatewayId"]
        tags = item.get("Tags")
        return {
            "nat_gateway_id": nat_id,
            "state": item.get("State"),
            "connectivity_type": item.get("ConnectivityType"),
            "vpc_id": item.get("VpcId"),
            "subnet_id": item.get("SubnetId"),
            "create_time": iso(item.get("CreateTime")),
            "delete_time": iso(item.get("DeleteTime")),
            "failure_code": item.get("FailureCode"),
            "failure_message": item.get("FailureMessage"),
            "nat_gateway_addresses": [
                {
                    "allocation_id": a.get("AllocationId"),
                    "network_interface_id": a.get("NetworkInterfaceId"),
                    "private_ip": a.get("PrivateIp"),
                    "public_ip": a.get("PublicIp"),
                }
                for a in item.get("NatGatewayAddresses", [])
            ],
            "title": name_from_tags(tags) or nat_id,
            "tags": tags_to_map(tags),
            "akas": [_ec2_arn(d, f"natgateway/{nat_id}")],
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }


class VPCVpnGatewayTable(BaseTable):
    """Virtual private gateways."""

    name = "aws_vpc_vpn_gateway"
    description = "AWS VPC VPN Gateway"
    service = "ec2"
    list_action = "DescribeVpnGateways"

    def list(self, d: QueryData) -> None:
        ec2 = d.client("ec2")
        request: Dict[str, Any] = {}
        ids = d.equals_qual_list("vpn_gateway_id")
        if ids:
            request["VpnGatewayIds"] = ids
        filters = ec2_filters(d, {"state": "state", "type": "type"})
        if filters:
            request["Filters"] = filters

        stream_pages(
            d,
            fetch=lambda req: ec2.describe_vpn_gateways(**req),
            request=request,
            items=lambda resp: resp.get("VpnGateways", []),
            paging=SinglePage(),
            service=self.service,
            action=self.list_action,
            ignore_codes=("InvalidVpnGatewayID.NotFound",),
        )

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        gateway_id = item["VpnGatewayId"]
        tags = item.get("Tags")
        return {
            "vpn_gateway_id": gateway_id,
            "state": item.get("State"),
            "type": item.get("Type"),
            "amazon_side_asn": item.get("AmazonSideAsn"),
            "availability_zone": item.get("AvailabilityZone"),
            "vpc_attachments": [
                {"vpc_id": a.get("VpcId"), "state": a.get("State")}
                for a in item.get("VpcAttachments", [])
            ],
            "title": name_from_tags(tags) or gateway_id,
            "tags": tags_to_map(tags),
            "akas": [_ec2_arn(d, f"vpn-gateway/{gateway_id}")],
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }


class VPCCustomerGatewayTable(BaseTable):
    """Customer gateways."""

    name = "aws_vpc_customer_gateway"
    description = "AWS VPC Customer Gateway"
    service = "ec2"
    list_action = "DescribeCustomerGateways"

    def list(self, d: QueryData) -> None:
        ec2 = d.client("ec2")
        request: Dict[str, Any] = {}
        ids = d.equals_qual_list("customer_gateway_id")
        if ids:
            request["CustomerGatewayIds"] = ids
        filters = ec2_filters(
            d, {"ip_address": "ip-address", "state": "state", "type": "type"}
        )
        if filters:
            request["Filters"] = filters

        stream_pages(
            d,
            fetch=lambda req: ec2.describe_customer_gateways(**req),
            request=request,
            items=lambda resp: resp.get("CustomerGateways", []),
            paging=SinglePage(),
            service=self.service,
            action=self.list_action,
            ignore_codes=("InvalidCustomerGatewayID.NotFound",),
        )

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        gateway_id = item["CustomerGatewayId"]
        tags = item.get("Tags")
        return {
            "customer_gateway_id": gateway_id,
            "type": item.get("Type"),
            "state": item.get("State"),
            "bgp_asn": item.get("BgpAsn"),
            "ip_address": item.get("IpAddress"),
            "certificate_arn": item.get("CertificateArn"),
            "device_name": item.get("DeviceName"),
            "title": name_from_tags(tags) or gateway_id,
            "tags": tags_to_map(tags),
            "akas": [_ec2_arn(d, f"customer-gateway/{gateway_id}")],
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }


class VPCClientVpnEndpointTable(BaseTable):
    """Client VPN endpoints and the certificates their clients authenticate with."""

    name = "aws_vpc_client_vpn_endpoint"
    description = "AWS VPC Client VPN Endpoint"
    service = "ec2"
    list_action = "DescribeClientVpnEndpoints"
    get_key_columns = ("client_vpn_endpoint_id",)
    not_found_codes = (
        "InvalidClientVpnEndpointId.NotFound",
        "InvalidClientVpnEndpointId.Malformed",
    )

    def list(self, d: QueryData) -> None:
        ec2 = d.client("ec2")
        request: Dict[str, Any] = {"MaxResults": d.page_size(1000, 5)}
        filters = ec2_filters(d, {"transport_protocol": "transport-protocol"})
        if filters:
            request["Filters"] = filters

        stream_pages(
            d,
            fetch=lambda req: ec2.describe_client_vpn_endpoints(**req),
            request=request,
            items=lambda resp: resp.get("ClientVpnEndpoints", []),
            paging=NextTokenPaging(),
            service=self.service,
            action=self.list_action,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        ec2 = d.client("ec2")
        d.wait_for_list_rate_limit(self.service, self.list_action)
        response = ec2.describe_client_vpn_endpoints(
            ClientVpnEndpointIds=[d.equals_qual_string("client_vpn_endpoint_id")]
        )
        endpoints = response.get("ClientVpnEndpoints", [])
        return endpoints[0] if endpoints else None

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        endpoint_id = item["ClientVpnEndpointId"]
        tags = item.get("Tags")
        status = item.get("Status") or {}
        return {
            "client_vpn_endpoint_id": endpoint_id,
            "description": item.get("Description"),
            "status": status.get("Code"),
            "status_message": status.get("Message"),
            "creation_time": item.get("CreationTime"),
            "deletion_time": item.get("DeletionTime"),
            "dns_name": item.get("DnsName"),
            "client_cidr_block": item.get("ClientCidrBlock"),
            "dns_servers": item.get("DnsServers", []),
            "split_tunnel": item.get("SplitTunnel"),
            "vpn_protocol": item.get("VpnProtocol"),
            "transport_protocol": item.get("TransportProtocol"),
            "vpn_port": item.get("VpnPort"),
            "server_certificate_arn": item.get("ServerCertificateArn"),
            "client_root_certificate_chain_arns": [
                (a.get("MutualAuthentication") or {}).get("ClientRootCertificateChain")
                for a in item.get("AuthenticationOptions", [])
                if a.get("Type") == "certificate-authentication"
            ],
            "authentication_types": [
                a.get("Type") for a in item.get("AuthenticationOptions", [])
            ],
            "vpc_id": item.get("VpcId"),
            "security_group_ids": item.get("SecurityGroupIds", []),
            "self_service_portal_url": item.get("SelfServicePortalUrl"),
            "session_timeout_hours": item.get("SessionTimeoutHours"),
            "title": name_from_tags(tags) or endpoint_id,
            "tags": tags_to_map(tags),
            "akas": [_ec2_arn(d, f"client-vpn-endpoint/{endpoint_id}")],
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }
