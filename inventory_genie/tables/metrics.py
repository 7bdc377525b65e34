"""
CloudWatch Metric Tables
========================

Hourly and daily statistics of one CloudWatch metric per parent resource.

Each metric table lists its parent resources (EC2 instances or EBS volumes)
in the branch region, then pages ``GetMetricData`` for every parent and
emits one row per datapoint with the average, maximum and minimum of the
period.

Granularity
-----------
==========  ============  ==========
Granularity Period        Window
==========  ============  ==========
DAILY       86400 s       30 days
HOURLY      3600 s        30 days
other       300 s         5 days
==========  ============  ==========

Notes
-----
``GetMetricData`` sometimes answers HTTP 200 with an ``InternalError``
status and no values. Every call is wrapped in the general retry policy
with a validator that turns that response into a retryable error.
"""

from __future__ import annotations

import logging
import time
from abc import abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.pagination import NextTokenPaging, stream_pages
from inventory_genie.core.query import QueryData, Row, RowBudget
from inventory_genie.core.retry import GENERAL, is_empty_metric_response, with_retry
from inventory_genie.tables.common import get_common_columns
from inventory_genie.tables.utils import iso

logger = logging.getLogger(__name__)

STATISTICS = ("Average", "Maximum", "Minimum")


def metric_window(granularity: str) -> Tuple[int, int]:
    """
    Return ``(period_seconds, window_days)`` for a granularity.

    Example
    -------
    >>> metric_window("daily")
    (86400, 30)
    """
    granularity = granularity.upper()
    if granularity == "DAILY":
        return 86400, 30
    if granularity == "HOURLY":
        return 3600, 30
    return 300, 5


def merge_metric_results(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Combine the per-statistic series of a response into datapoints.

    Returns
    -------
    list of dict
        One ``{"timestamp", "average", "maximum", "minimum"}`` dict per
        timestamp, oldest first. A statistic with no value at a timestamp
        is left out of that dict.
    """
    points: Dict[Any, Dict[str, Any]] = {}
    for result in response.get("MetricDataResults", []):
        statistic = result.get("Id")
        for ts, value in zip(result.get("Timestamps", []), result.get("Values", [])):
            point = points.setdefault(ts, {"timestamp": ts})
            point[statistic] = value
    return [points[ts] for ts in sorted(points)]


class MetricTable(BaseTable):
    """
    Base class for per-resource CloudWatch metric tables.

    Class Attributes
    ----------------
    namespace : str
        CloudWatch namespace, e.g. ``AWS/EC2``.
    metric_name : str
        Metric name, e.g. ``CPUUtilization``.
    dimension_name : str
        Dimension identifying the parent, e.g. ``InstanceId``.
    key_column : str
        Row column holding the parent id, e.g. ``instance_id``.
    granularity : str
        ``DAILY`` or ``HOURLY``.
    """

    service = "cloudwatch"
    list_action = "GetMetricData"
    namespace: str = ""
    metric_name: str = ""
    dimension_name: str = ""
    key_column: str = ""
    granularity: str = "HOURLY"

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.sleep = sleep
        self.now = now or (lambda: datetime.now(timezone.utc))

    # =========================================================================
    # Parent resources
    # =========================================================================

    @abstractmethod
    def list_parents(self, d: QueryData) -> List[str]:
        """Return the parent resource ids of the branch."""
        pass

    def _collect_ids(
        self,
        d: QueryData,
        fetch: Callable[[Dict[str, Any]], Dict[str, Any]],
        request: Dict[str, Any],
        items: Callable[[Dict[str, Any]], List[Any]],
        action: str,
    ) -> List[str]:
        parents = replace(
            d,
            budget=RowBudget(),
            rows=[],
            transform=lambda item, _: item,
        )
        stream_pages(
            parents,
            fetch=fetch,
            request=request,
            items=items,
            paging=NextTokenPaging(),
            service="ec2",
            action=action,
        )
        return parents.rows

    # =========================================================================
    # Listing
    # =========================================================================

    def metric_request(self, resource_id: str) -> Dict[str, Any]:
        period, days = metric_window(self.granularity)
        end = self.now()
        queries = [
            {
                "Id": statistic.lower(),
                "MetricStat": {
                    "Metric": {
                        "Namespace": self.namespace,
                        "MetricName": self.metric_name,
                        "Dimensions": [
                            {"Name": self.dimension_name, "Value": resource_id}
                        ],
                    },
                    "Period": period,
                    "Stat": statistic,
                },
                "ReturnData": True,
            }
            for statistic in STATISTICS
        ]
        return {
            "MetricDataQueries": queries,
            "StartTime": end - timedelta(days=days),
            "EndTime": end,
            "ScanBy": "TimestampAscending",
        }

    def list(self, d: QueryData) -> None:
        cloudwatch = d.client("cloudwatch")
        for resource_id in self.list_parents(d):
            if d.rows_remaining() <= 0:
                return
            self.list_metric(d, cloudwatch, resource_id)

    def list_metric(self, d: QueryData, cloudwatch: Any, resource_id: str) -> int:
        """Stream every datapoint of one parent resource."""

        def fetch(request: Dict[str, Any]) -> Dict[str, Any]:
            return with_retry(
                lambda: cloudwatch.get_metric_data(**request),
                policy=GENERAL,
                validate=is_empty_metric_response,
                sleep=self.sleep,
                description=f"cloudwatch:GetMetricData {resource_id}",
            )

        def items(response: Dict[str, Any]) -> List[Dict[str, Any]]:
            points = merge_metric_results(response)
            for point in points:
                point["resource_id"] = resource_id
            return points

        return stream_pages(
            d,
            fetch=fetch,
            request=self.metric_request(resource_id),
            items=items,
            paging=NextTokenPaging(),
            service=self.service,
            action=self.list_action,
        )

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        return {
            self.key_column: item["resource_id"],
            "metric_name": self.metric_name,
            "namespace": self.namespace,
            "average": item.get("average"),
            "maximum": item.get("maximum"),
            "minimum": item.get("minimum"),
            "timestamp": iso(item["timestamp"]),
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }


class InstanceMetricTable(MetricTable):
    """Metric tables whose parents are EC2 instances."""

    namespace = "AWS/EC2"
    dimension_name = "InstanceId"
    key_column = "instance_id"

    def list_parents(self, d: QueryData) -> List[str]:
        ids = d.equals_qual_list("instance_id")
        if ids:
            return ids
        ec2 = d.client("ec2")
        return self._collect_ids(
            d,
            fetch=lambda req: ec2.describe_instances(**req),
            request={"MaxResults": 1000},
            items=lambda resp: [
                i["InstanceId"]
                for r in resp.get("Reservations", [])
                for i in r.get("Instances", [])
            ],
            action="DescribeInstances",
        )


class VolumeMetricTable(MetricTable):
    """Metric tables whose parents are EBS volumes."""

    namespace = "AWS/EBS"
    dimension_name = "VolumeId"
    key_column = "volume_id"

    def list_parents(self, d: QueryData) -> List[str]:
        ids = d.equals_qual_list("volume_id")
        if ids:
            return ids
        ec2 = d.client("ec2")
        return self._collect_ids(
            d,
            fetch=lambda req: ec2.describe_volumes(**req),
            request={"MaxResults": 500},
            items=lambda resp: [v["VolumeId"] for v in resp.get("Volumes", [])],
            action="DescribeVolumes",
        )


class EC2InstanceCPUUtilizationHourlyTable(InstanceMetricTable):
    name = "aws_ec2_instance_metric_cpu_utilization_hourly"
    description = "AWS EC2 Instance CPU utilization metrics, hourly, last 30 days"
    metric_name = "CPUUtilization"
    granularity = "HOURLY"


class EC2InstanceCPUUtilizationDailyTable(InstanceMetricTable):
    name = "aws_ec2_instance_metric_cpu_utilization_daily"
    description = "AWS EC2 Instance CPU utilization metrics, daily, last 30 days"
    metric_name = "CPUUtilization"
    granularity = "DAILY"


class EBSVolumeReadOpsHourlyTable(VolumeMetricTable):
    name = "aws_ebs_volume_metric_read_ops_hourly"
    description = "AWS EBS Volume read operations, hourly, last 30 days"
    metric_name = "VolumeReadOps"
    granularity = "HOURLY"


class EBSVolumeWriteOpsHourlyTable(VolumeMetricTable):
    name = "aws_ebs_volume_metric_write_ops_hourly"
    description = "AWS EBS Volume write operations, hourly, last 30 days"
    metric_name = "VolumeWriteOps"
    granularity = "HOURLY"


class EBSVolumeWriteOpsDailyTable(VolumeMetricTable):
    name = "aws_ebs_volume_metric_write_ops_daily"
    description = "AWS EBS Volume write operations, daily, last 30 days"
    metric_name = "VolumeWriteOps"
    granularity = "DAILY"
