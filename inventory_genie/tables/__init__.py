"""
Resource Tables
===============

The catalogue of AWS resource tables.

Available Tables
----------------
EC2
    aws_ec2_region, aws_ec2_key_pair, aws_ec2_network_interface,
    aws_ec2_fleet
VPC
    aws_vpc, aws_vpc_subnet, aws_vpc_nat_gateway, aws_vpc_vpn_gateway,
    aws_vpc_customer_gateway, aws_vpc_client_vpn_endpoint
IAM
    aws_iam_user, aws_iam_role, aws_iam_credential_report
Secrets Manager
    aws_secretsmanager_secret
EKS
    aws_eks_cluster
RDS
    aws_rds_db_instance
Systems Manager
    aws_ssm_managed_instance
CloudWatch metrics
    aws_ec2_instance_metric_cpu_utilization_hourly,
    aws_ec2_instance_metric_cpu_utilization_daily,
    aws_ebs_volume_metric_read_ops_hourly,
    aws_ebs_volume_metric_write_ops_hourly,
    aws_ebs_volume_metric_write_ops_daily

Example
-------
>>> from inventory_genie.tables import get_table
>>>
>>> table = get_table("aws_vpc")
>>> table.regional
True
"""

from __future__ import annotations

from typing import Dict, List, Type

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.exceptions import UnknownTableError
from inventory_genie.tables.ec2 import (
    EC2FleetTable,
    EC2KeyPairTable,
    EC2NetworkInterfaceTable,
    EC2RegionTable,
)
from inventory_genie.tables.eks import EKSClusterTable
from inventory_genie.tables.iam import (
    IAMCredentialReportTable,
    IAMRoleTable,
    IAMUserTable,
)
from inventory_genie.tables.metrics import (
    EBSVolumeReadOpsHourlyTable,
    EBSVolumeWriteOpsDailyTable,
    EBSVolumeWriteOpsHourlyTable,
    EC2InstanceCPUUtilizationDailyTable,
    EC2InstanceCPUUtilizationHourlyTable,
)
from inventory_genie.tables.rds import RDSDBInstanceTable
from inventory_genie.tables.secretsmanager import SecretsManagerSecretTable
from inventory_genie.tables.ssm import SSMManagedInstanceTable
from inventory_genie.tables.vpc import (
    VPCClientVpnEndpointTable,
    VPCCustomerGatewayTable,
    VPCNatGatewayTable,
    VPCSubnetTable,
    VPCTable,
    VPCVpnGatewayTable,
)

TABLES: Dict[str, Type[BaseTable]] = {
    table.name: table
    for table in (
        EC2RegionTable,
        EC2KeyPairTable,
        EC2NetworkInterfaceTable,
        EC2FleetTable,
        VPCTable,
        VPCSubnetTable,
        VPCNatGatewayTable,
        VPCVpnGatewayTable,
        VPCCustomerGatewayTable,
        VPCClientVpnEndpointTable,
        IAMUserTable,
        IAMRoleTable,
        IAMCredentialReportTable,
        SecretsManagerSecretTable,
        EKSClusterTable,
        RDSDBInstanceTable,
        SSMManagedInstanceTable,
        EC2InstanceCPUUtilizationHourlyTable,
        EC2InstanceCPUUtilizationDailyTable,
        EBSVolumeReadOpsHourlyTable,
        EBSVolumeWriteOpsHourlyTable,
        EBSVolumeWriteOpsDailyTable,
    )
}


def table_names() -> List[str]:
    """Return every table name, sorted."""
    return sorted(TABLES)


def get_table(name: str) -> BaseTable:
    """
    Instantiate a table by name.

    Raises
    ------
    UnknownTableError
        If ``name`` is not in the catalogue.
    """
    table_class = TABLES.get(name)
    if table_class is None:
        raise UnknownTableError(
            f"Unknown table '{name}'",
            table=name,
            details={"hint": "Run 'inventory-genie tables' to list tables"},
        )
    return table_class()


__all__ = ["TABLES", "get_table", "table_names"]
