"""
Tests for the resource tables.
"""

import json
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from inventory_genie.core.exceptions import ReportTimeoutError, UnknownTableError
from inventory_genie.core.query import QueryData, RowBudget
from inventory_genie.core.region_manager import RegionManager
from inventory_genie.tables import TABLES, get_table, table_names
from inventory_genie.tables.common import CommonColumns, get_common_columns
from inventory_genie.tables.ec2 import EC2KeyPairTable
from inventory_genie.tables.eks import EKSClusterTable
from inventory_genie.tables.iam import (
    IAMCredentialReportTable,
    IAMRoleTable,
    IAMUserTable,
    parse_credential_report,
)
from inventory_genie.tables.metrics import (
    EC2InstanceCPUUtilizationDailyTable,
    EBSVolumeReadOpsHourlyTable,
    MetricTable,
    merge_metric_results,
    metric_window,
)
from inventory_genie.tables.secretsmanager import SecretsManagerSecretTable
from inventory_genie.tables.utils import (
    build_arn,
    csv_to_list,
    null_if_marker,
    tags_to_map,
    to_bool,
    zone_to_region,
)


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def stub_clients(offline_context, monkeypatch):
    """Serve fake service clients, keyed by service name, from the offline context."""
    offline_context.cached("common_columns", lambda: CommonColumns("123456789012", "aws"))
    clients = {}
    monkeypatch.setattr(
        offline_context.clients,
        "get_client",
        lambda service, region=None: clients[service],
    )
    return clients


class TestCatalogue:
    """Tests for the table catalogue."""

    def test_every_table_is_named(self):
        """Test that catalogue keys match table names."""
        assert len(TABLES) == 22
        for name, table_class in TABLES.items():
            assert table_class.name == name
            assert table_class.description
            assert table_class.list_action

    def test_table_names_sorted(self):
        """Test the sorted name listing."""
        assert table_names() == sorted(TABLES)

    def test_unknown_table(self):
        """Test the error for a missing table."""
        with pytest.raises(UnknownTableError) as exc_info:
            get_table("aws_nothing")
        assert exc_info.value.table == "aws_nothing"


class TestUtils:
    """Tests for the column transforms."""

    def test_tags_to_map(self):
        """Test both tag shapes."""
        assert tags_to_map([{"Key": "Name", "Value": "web"}]) == {"Name": "web"}
        assert tags_to_map([{"TagKey": "env", "TagValue": "prod"}]) == {"env": "prod"}
        assert tags_to_map([]) is None
        assert tags_to_map(None) is None

    def test_zone_to_region(self):
        """Test availability zone to region."""
        assert zone_to_region("eu-west-1b") == "eu-west-1"
        assert zone_to_region("us-east-1") == "us-east-1"
        assert zone_to_region(None) is None

    def test_csv_to_list(self):
        """Test comma-separated string splitting."""
        assert csv_to_list("a, b,,c") == ["a", "b", "c"]
        assert csv_to_list("") == []

    def test_build_arn(self):
        """Test ARN construction, including global resources."""
        assert (
            build_arn("aws", "ec2", "us-east-1", "123456789012", "vpc/vpc-1")
            == "arn:aws:ec2:us-east-1:123456789012:vpc/vpc-1"
        )
        assert build_arn("aws", "iam", None, "123", "user/a") == "arn:aws:iam::123:user/a"

    def test_report_markers(self):
        """Test placeholder handling for report values."""
        assert null_if_marker("N/A") is None
        assert null_if_marker("no_information") is None
        assert null_if_marker("2024-01-01T00:00:00+00:00") == "2024-01-01T00:00:00+00:00"
        assert to_bool("true") is True
        assert to_bool("false") is False
        assert to_bool("not_supported") is None


class TestCommonColumns:
    """Tests for the account hydrate."""

    def test_cached_per_context(self, context):
        """Test that the identity is fetched once per context."""
        d = QueryData(connection=context, table="aws_vpc", region="us-east-1")

        first = get_common_columns(d)
        second = get_common_columns(d.for_region("eu-west-1"))

        assert first is second
        assert first.partition == "aws"
        assert len(first.account_id) == 12


class TestVPCTables:
    """Tests for the VPC tables against moto."""

    def test_list_vpcs(self, context, vpc):
        """Test listing VPCs with tag-derived titles."""
        result = RegionManager(context).query(get_table("aws_vpc"))

        rows = {row["vpc_id"]: row for row in result.rows}
        assert vpc in rows
        row = rows[vpc]
        assert row["cidr_block"] == "10.0.0.0/16"
        assert row["title"] == "core"
        assert row["tags"] == {"Name": "core"}
        assert row["region"] == "us-east-1"
        assert row["akas"][0].endswith(f":vpc/{vpc}")

    def test_get_vpc(self, context, vpc):
        """Test the get path by vpc_id."""
        result = RegionManager(context).query(
            get_table("aws_vpc"), quals={"vpc_id": vpc}
        )
        assert [row["vpc_id"] for row in result.rows] == [vpc]

    def test_missing_vpc_is_no_row(self, context):
        """Test that a missing id yields no rows and no error."""
        result = RegionManager(context).query(
            get_table("aws_vpc"), quals={"vpc_id": "vpc-00000000000000000"}
        )
        assert result.rows == []
        assert not result.has_errors

    def test_subnets_by_vpc(self, context, vpc, subnet):
        """Test qualifier filters on subnets."""
        result = RegionManager(context).query(
            get_table("aws_vpc_subnet"), quals={"vpc_id": vpc}
        )

        assert [row["subnet_id"] for row in result.rows] == [subnet]
        assert result.rows[0]["availability_zone"] == "us-east-1a"

    def test_limit(self, context, ec2_client):
        """Test that the row limit caps the listing."""
        for i in range(3):
            ec2_client.create_vpc(CidrBlock=f"10.{i + 1}.0.0/16")

        result = RegionManager(context).query(get_table("aws_vpc"), limit=2)
        assert result.row_count == 2


class TestEC2Tables:
    """Tests for the EC2 tables against moto."""

    def test_key_pair_get_and_not_found(self, context, ec2_client):
        """Test key pair lookup and the not-found path."""
        ec2_client.create_key_pair(KeyName="deploy")
        manager = RegionManager(context)

        found = manager.query(get_table("aws_ec2_key_pair"), quals={"key_name": "deploy"})
        missing = manager.query(get_table("aws_ec2_key_pair"), quals={"key_name": "absent"})

        assert [row["key_name"] for row in found.rows] == ["deploy"]
        assert missing.rows == []
        assert not missing.has_errors

    def test_key_pair_other_errors_surface(self, offline_context):
        """Test that non-not-found get errors are not swallowed."""

        class DeniedTable(EC2KeyPairTable):
            def get(self, d):
                raise client_error("UnauthorizedOperation")

        d = QueryData(
            connection=offline_context,
            table="aws_ec2_key_pair",
            region="us-east-1",
            quals={"key_name": "deploy"},
        )
        with pytest.raises(ClientError):
            DeniedTable().execute(d)

    def test_regions_table_is_global(self, context):
        """Test the region catalogue table."""
        result = RegionManager(context).query(get_table("aws_ec2_region"))

        names = [row["name"] for row in result.rows]
        assert result.regions_queried == ["global"]
        assert "us-east-1" in names
        assert "eu-west-1" in names


class TestIAMTables:
    """Tests for the IAM tables against moto."""

    def test_list_users(self, context, iam_client):
        """Test listing users as a global table."""
        iam_client.create_user(UserName="alice")
        iam_client.create_user(UserName="bob")

        result = RegionManager(context).query(get_table("aws_iam_user"))

        assert sorted(row["name"] for row in result.rows) == ["alice", "bob"]
        assert {row["region"] for row in result.rows} == {"global"}

    def test_get_user(self, context, iam_client):
        """Test the get path and the NoSuchEntity not-found code."""
        iam_client.create_user(UserName="alice")
        manager = RegionManager(context)

        found = manager.query(IAMUserTable(sleep=lambda _: None), quals={"name": "alice"})
        missing = manager.query(IAMUserTable(sleep=lambda _: None), quals={"name": "nobody"})

        assert [row["name"] for row in found.rows] == ["alice"]
        assert missing.rows == []
        assert not missing.has_errors

    def test_credential_report(self, context, iam_client):
        """Test generating and reading the credential report."""
        iam_client.create_user(UserName="alice")

        result = RegionManager(context).query(
            IAMCredentialReportTable(sleep=lambda _: None)
        )

        users = [row["user_name"] for row in result.rows]
        assert "alice" in users
        alice = next(row for row in result.rows if row["user_name"] == "alice")
        assert alice["password_enabled"] is False
        assert alice["region"] == "global"

    def test_user_hydrates(self, context, iam_client):
        """Test the group, policy and MFA columns of a user."""
        iam_client.create_user(UserName="alice")
        iam_client.create_user(UserName="bob")
        iam_client.create_group(GroupName="admins")
        iam_client.add_user_to_group(GroupName="admins", UserName="alice")
        policy_arn = iam_client.create_policy(
            PolicyName="read-only", PolicyDocument=json.dumps(READ_POLICY)
        )["Policy"]["Arn"]
        iam_client.attach_user_policy(UserName="alice", PolicyArn=policy_arn)
        serial = iam_client.create_virtual_mfa_device(VirtualMFADeviceName="alice")[
            "VirtualMFADevice"
        ]["SerialNumber"]
        iam_client.enable_mfa_device(
            UserName="alice",
            SerialNumber=serial,
            AuthenticationCode1="123456",
            AuthenticationCode2="654321",
        )

        result = RegionManager(context).query(IAMUserTable(sleep=lambda _: None))

        rows = {row["name"]: row for row in result.rows}
        assert rows["alice"]["groups"] == ["admins"]
        assert rows["alice"]["attached_policy_arns"] == [policy_arn]
        assert rows["alice"]["mfa_enabled"] is True
        assert [m["serial_number"] for m in rows["alice"]["mfa_devices"]] == [serial]
        assert rows["bob"]["groups"] == []
        assert rows["bob"]["attached_policy_arns"] == []
        assert rows["bob"]["mfa_enabled"] is False
        assert rows["bob"]["mfa_devices"] == []

    def test_role_attached_policies(self, context, iam_client):
        """Test the attached policy column of a role, on list and get."""
        iam_client.create_role(
            RoleName="deployer", AssumeRolePolicyDocument=json.dumps(TRUST_POLICY)
        )
        policy_arn = iam_client.create_policy(
            PolicyName="read-only", PolicyDocument=json.dumps(READ_POLICY)
        )["Policy"]["Arn"]
        iam_client.attach_role_policy(RoleName="deployer", PolicyArn=policy_arn)
        manager = RegionManager(context)

        listed = manager.query(IAMRoleTable(sleep=lambda _: None))
        found = manager.query(
            IAMRoleTable(sleep=lambda _: None), quals={"name": "deployer"}
        )

        deployer = next(row for row in listed.rows if row["name"] == "deployer")
        assert deployer["attached_policy_arns"] == [policy_arn]
        assert found.rows[0]["attached_policy_arns"] == [policy_arn]

    def test_user_deleted_after_listing(self, offline_context, stub_clients):
        """Test that a user gone before the hydrate is skipped."""
        stub_clients["iam"] = FakeIAMUsers(["gone", "alice"], missing={"gone"})
        d = QueryData(connection=offline_context, table="aws_iam_user", region=None)

        IAMUserTable(sleep=lambda _: None).execute(d)

        assert [row["name"] for row in d.rows] == ["alice"]

    def test_hydrate_retries_throttling(self, offline_context, stub_clients, no_sleep):
        """Test that hydrate pages retry throttling and follow markers."""
        sleep, delays = no_sleep
        iam = stub_clients["iam"] = FakeIAMUsers(["alice"], throttle_groups=1)
        d = QueryData(connection=offline_context, table="aws_iam_user", region=None)

        IAMUserTable(sleep=sleep).execute(d)

        assert d.rows[0]["groups"] == ["admins", "ops"]
        assert delays == [pytest.approx(0.1)]
        assert iam.group_requests == [
            {"UserName": "alice"},
            {"UserName": "alice"},
            {"UserName": "alice", "Marker": "page-2"},
        ]


READ_POLICY = {
    "Version": "2012-10-17",
    "Statement": [{"Effect": "Allow", "Action": "s3:GetObject", "Resource": "*"}],
}

TRUST_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "ec2.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}


class FakeIAMUsers:
    """IAM stub listing users whose groups come in two marker pages."""

    def __init__(self, names, missing=(), throttle_groups=0):
        self.names = names
        self.missing = set(missing)
        self.throttle_groups = throttle_groups
        self.group_requests = []

    def list_users(self, **request):
        return {
            "Users": [
                {"UserName": n, "Arn": f"arn:aws:iam::123456789012:user/{n}"}
                for n in self.names
            ]
        }

    def list_groups_for_user(self, **request):
        self.group_requests.append(request)
        if request["UserName"] in self.missing:
            raise client_error("NoSuchEntity", "ListGroupsForUser")
        if self.throttle_groups:
            self.throttle_groups -= 1
            raise client_error("Throttling", "ListGroupsForUser")
        if "Marker" not in request:
            return {
                "Groups": [{"GroupName": "admins"}],
                "IsTruncated": True,
                "Marker": "page-2",
            }
        return {"Groups": [{"GroupName": "ops"}], "IsTruncated": False}

    def list_attached_user_policies(self, **request):
        return {"AttachedPolicies": [], "IsTruncated": False}

    def list_mfa_devices(self, **request):
        return {"MFADevices": [], "IsTruncated": False}


class FakeIAM:
    """IAM stub whose credential report never finishes."""

    def __init__(self):
        self.generated = 0
        self.gets = 0

    def get_credential_report(self):
        self.gets += 1
        raise client_error("ReportInProgress" if self.generated else "ReportNotPresent")

    def generate_credential_report(self):
        self.generated += 1
        return {"State": "STARTED"}


class TestCredentialReportPolling:
    """Tests for credential report generation polling."""

    def test_timeout(self, no_sleep):
        """Test the bounded poll and its timeout error."""
        sleep, delays = no_sleep
        table = IAMCredentialReportTable(sleep=sleep)
        iam = FakeIAM()

        with pytest.raises(ReportTimeoutError):
            table._fetch_report(iam)

        assert iam.generated == 1
        assert iam.gets == 1 + 11
        assert len(delays) == 10
        assert delays[0] == 1.0

    def test_terminal_error_not_polled(self, no_sleep):
        """Test that other errors propagate at once."""
        sleep, delays = no_sleep

        class DeniedIAM(FakeIAM):
            def get_credential_report(self):
                raise client_error("AccessDenied")

        with pytest.raises(ClientError):
            IAMCredentialReportTable(sleep=sleep)._fetch_report(DeniedIAM())
        assert delays == []

    def test_parse_report(self):
        """Test CSV parsing of report content."""
        content = (
            b"user,arn,password_enabled,mfa_active\n"
            b"alice,arn:aws:iam::123456789012:user/alice,true,false\n"
        )
        records = parse_credential_report(content)

        assert records == [
            {
                "user": "alice",
                "arn": "arn:aws:iam::123456789012:user/alice",
                "password_enabled": "true",
                "mfa_active": "false",
            }
        ]


class TestSecretsManagerTable:
    """Tests for the Secrets Manager table against moto."""

    def test_list_hydrates(self, context, secrets_client):
        """Test that listed secrets are described."""
        secrets_client.create_secret(
            Name="db-password",
            SecretString="hunter2",
            Description="database",
            Tags=[{"Key": "team", "Value": "data"}],
        )

        result = RegionManager(context).query(
            SecretsManagerSecretTable(sleep=lambda _: None)
        )

        assert len(result.rows) == 1
        row = result.rows[0]
        assert row["name"] == "db-password"
        assert row["description"] == "database"
        assert row["tags"] == {"team": "data"}
        assert "hunter2" not in str(row)

    def test_get_by_arn(self, context, secrets_client):
        """Test the get path by ARN."""
        arn = secrets_client.create_secret(Name="api-key", SecretString="x")["ARN"]

        result = RegionManager(context).query(
            SecretsManagerSecretTable(sleep=lambda _: None), quals={"arn": arn}
        )
        assert [row["arn"] for row in result.rows] == [arn]

    def test_version_ids(self, context, secrets_client):
        """Test that every version of a secret is listed."""
        arn = secrets_client.create_secret(Name="db-password", SecretString="v1")["ARN"]
        second = secrets_client.put_secret_value(SecretId=arn, SecretString="v2")
        manager = RegionManager(context)

        listed = manager.query(SecretsManagerSecretTable(sleep=lambda _: None))
        found = manager.query(
            SecretsManagerSecretTable(sleep=lambda _: None), quals={"arn": arn}
        )

        for result in (listed, found):
            version_ids = result.rows[0]["version_ids"]
            assert len(version_ids) == 2
            assert second["VersionId"] in version_ids

    def test_secret_deleted_after_listing(self, offline_context, stub_clients):
        """Test that a secret gone before the hydrate keeps its list columns."""
        stub_clients["secretsmanager"] = FakeSecrets()
        d = QueryData(
            connection=offline_context,
            table="aws_secretsmanager_secret",
            region="us-east-1",
        )

        SecretsManagerSecretTable(sleep=lambda _: None).execute(d)

        assert len(d.rows) == 1
        assert d.rows[0]["name"] == "gone"
        assert d.rows[0]["version_ids"] is None


class FakeSecrets:
    """Secrets Manager stub whose only secret is deleted after listing."""

    arn = "arn:aws:secretsmanager:us-east-1:123456789012:secret:gone-AbCdEf"

    def list_secrets(self, **request):
        return {"SecretList": [{"ARN": self.arn, "Name": "gone"}]}

    def describe_secret(self, SecretId):
        raise client_error("ResourceNotFoundException", "DescribeSecret")

    def list_secret_version_ids(self, **request):
        raise client_error("ResourceNotFoundException", "ListSecretVersionIds")


class TestEKSTable:
    """Tests for the EKS table against moto."""

    def test_list_clusters(self, context):
        """Test listing and describing clusters."""
        eks = context.clients.get_eks_client("us-east-1")
        eks.create_cluster(
            name="demo",
            roleArn="arn:aws:iam::123456789012:role/eks",
            resourcesVpcConfig={},
        )

        result = RegionManager(context).query(get_table("aws_eks_cluster"))

        assert [row["name"] for row in result.rows] == ["demo"]
        assert result.rows[0]["role_arn"] == "arn:aws:iam::123456789012:role/eks"

    def test_cluster_deleted_after_listing(self, offline_context, stub_clients):
        """Test that a cluster gone before DescribeCluster is skipped."""
        eks = stub_clients["eks"] = FakeEKS(["gone", "live"], missing={"gone"})
        d = QueryData(
            connection=offline_context,
            table="aws_eks_cluster",
            region="us-east-1",
            budget=RowBudget(1),
        )

        EKSClusterTable(sleep=lambda _: None).execute(d)

        assert [row["name"] for row in d.rows] == ["live"]
        assert eks.described == ["gone", "live"]

    def test_describe_errors_surface(self, offline_context, stub_clients):
        """Test that errors other than not-found still fail the listing."""
        stub_clients["eks"] = FakeEKS(["locked"], denied={"locked"})
        d = QueryData(connection=offline_context, table="aws_eks_cluster", region="us-east-1")

        with pytest.raises(ClientError):
            EKSClusterTable(sleep=lambda _: None).execute(d)


class FakeEKS:
    """EKS stub listing fixed cluster names."""

    def __init__(self, names, missing=(), denied=()):
        self.names = names
        self.missing = set(missing)
        self.denied = set(denied)
        self.described = []

    def list_clusters(self, **request):
        return {"clusters": list(self.names)}

    def describe_cluster(self, name):
        self.described.append(name)
        if name in self.missing:
            raise client_error("ResourceNotFoundException", "DescribeCluster")
        if name in self.denied:
            raise client_error("AccessDeniedException", "DescribeCluster")
        return {
            "cluster": {
                "name": name,
                "arn": f"arn:aws:eks:us-east-1:123456789012:cluster/{name}",
                "status": "ACTIVE",
            }
        }


class FakeCloudWatch:
    """CloudWatch stub serving queued GetMetricData responses."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def get_metric_data(self, **request):
        self.requests.append(request)
        return self.responses.pop(0)


def metric_response(values_by_stat, timestamps, status="Complete"):
    return {
        "MetricDataResults": [
            {"Id": stat, "Timestamps": timestamps, "Values": values, "StatusCode": status}
            for stat, values in values_by_stat.items()
        ]
    }


class TestMetricTables:
    """Tests for the CloudWatch metric tables."""

    @pytest.mark.parametrize(
        "granularity, window",
        [("DAILY", (86400, 30)), ("hourly", (3600, 30)), ("MINUTE", (300, 5))],
    )
    def test_metric_window(self, granularity, window):
        """Test period and window per granularity."""
        assert metric_window(granularity) == window

    def test_merge_metric_results(self):
        """Test merging per-statistic series into datapoints."""
        t1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        t2 = datetime(2024, 1, 2, tzinfo=timezone.utc)
        response = metric_response(
            {"average": [2.0, 1.0], "maximum": [4.0, 3.0]}, [t2, t1]
        )

        points = merge_metric_results(response)

        assert points == [
            {"timestamp": t1, "average": 1.0, "maximum": 3.0},
            {"timestamp": t2, "average": 2.0, "maximum": 4.0},
        ]

    def test_parent_listing_is_abstract(self):
        """Test that a metric table must say how to list its parents."""

        class NoParents(MetricTable):
            name = "aws_nothing_metric"

        with pytest.raises(TypeError):
            NoParents()

    def test_missing_statistic_is_null(self, offline_context):
        """Test that a statistic without values becomes None, not zero."""
        offline_context.cached("common_columns", lambda: CommonColumns("123456789012", "aws"))
        t1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        response = metric_response({"average": [0.5], "maximum": [0.9]}, [t1])
        response["MetricDataResults"].append(
            {"Id": "minimum", "Timestamps": [], "Values": [], "StatusCode": "Complete"}
        )
        table = EBSVolumeReadOpsHourlyTable()
        d = QueryData(connection=offline_context, table=table.name, region="us-east-1")

        points = merge_metric_results(response)
        row = table.to_row(dict(points[0], resource_id="vol-0abc"), d)

        assert points == [{"timestamp": t1, "average": 0.5, "maximum": 0.9}]
        assert row["average"] == 0.5
        assert row["maximum"] == 0.9
        assert row["minimum"] is None

    def test_metric_request(self):
        """Test the GetMetricData request of a daily table."""
        now = datetime(2024, 2, 1, tzinfo=timezone.utc)
        table = EC2InstanceCPUUtilizationDailyTable(now=lambda: now)

        request = table.metric_request("i-0abc")

        assert request["EndTime"] == now
        assert (request["EndTime"] - request["StartTime"]).days == 30
        assert [q["Id"] for q in request["MetricDataQueries"]] == [
            "average", "maximum", "minimum"
        ]
        stat = request["MetricDataQueries"][0]["MetricStat"]
        assert stat["Period"] == 86400
        assert stat["Metric"]["Namespace"] == "AWS/EC2"
        assert stat["Metric"]["Dimensions"] == [{"Name": "InstanceId", "Value": "i-0abc"}]

    def test_list_metric_retries_empty_success(self, offline_context, no_sleep):
        """Test that the empty-success anomaly is retried before rows stream."""
        sleep, delays = no_sleep
        offline_context.cached("common_columns", lambda: CommonColumns("123456789012", "aws"))
        t1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        cloudwatch = FakeCloudWatch(
            [
                metric_response({"average": []}, [], status="InternalError"),
                metric_response(
                    {"average": [5.0], "maximum": [9.0], "minimum": [1.0]}, [t1]
                ),
            ]
        )
        table = EBSVolumeReadOpsHourlyTable(sleep=sleep)
        d = QueryData(
            connection=offline_context,
            table=table.name,
            region="us-east-1",
            transform=table.to_row,
        )

        assert table.list_metric(d, cloudwatch, "vol-0abc") == 1

        assert len(cloudwatch.requests) == 2
        assert delays == [pytest.approx(0.1)]
        row = d.rows[0]
        assert row["volume_id"] == "vol-0abc"
        assert row["average"] == 5.0
        assert row["maximum"] == 9.0
        assert row["minimum"] == 1.0
        assert row["timestamp"] == t1.isoformat()
        assert row["account_id"] == "123456789012"

    def test_instance_qualifier_skips_parent_listing(self, offline_context):
        """Test that an instance_id qualifier names the parents directly."""
        table = EC2InstanceCPUUtilizationDailyTable()
        d = QueryData(
            connection=offline_context,
            table=table.name,
            region="us-east-1",
            quals={"instance_id": ["i-1", "i-2"]},
        )
        assert table.list_parents(d) == ["i-1", "i-2"]


class FakeSSM:
    """Systems Manager stub serving instance information in pages of one."""

    def __init__(self, instances):
        self.instances = instances
        self.requests = []

    def describe_instance_information(self, **request):
        self.requests.append(request)
        for f in request.get("Filters", []):
            if f["Key"] == "InstanceIds":
                known = [i for i in self.instances if i["InstanceId"] in f["Values"]]
                if not known:
                    raise client_error("InvalidInstanceId", "DescribeInstanceInformation")
                return {"InstanceInformationList": known}
        index = int(request.get("NextToken", "0"))
        response = {"InstanceInformationList": self.instances[index : index + 1]}
        if index + 1 < len(self.instances):
            response["NextToken"] = str(index + 1)
        return response


MANAGED_INSTANCES = [
    {
        "InstanceId": "i-0abc",
        "ComputerName": "web-1.internal",
        "ResourceType": "EC2Instance",
        "PingStatus": "Online",
        "AgentVersion": "3.3.40.0",
        "IsLatestVersion": True,
        "PlatformType": "Linux",
        "IPAddress": "10.0.1.15",
        "LastPingDateTime": datetime(2024, 1, 1, tzinfo=timezone.utc),
    },
    {
        "InstanceId": "mi-0def",
        "ResourceType": "ManagedInstance",
        "PingStatus": "ConnectionLost",
        "AgentVersion": "3.1.0.0",
        "IsLatestVersion": False,
        "PlatformType": "Windows",
    },
]


class TestSSMManagedInstanceTable:
    """Tests for the Systems Manager managed instance table."""

    def test_list_pages(self, offline_context, stub_clients):
        """Test NextToken paging and the agent columns."""
        ssm = stub_clients["ssm"] = FakeSSM(MANAGED_INSTANCES)
        d = QueryData(
            connection=offline_context, table="aws_ssm_managed_instance", region="us-east-1"
        )

        get_table("aws_ssm_managed_instance").execute(d)

        assert [row["instance_id"] for row in d.rows] == ["i-0abc", "mi-0def"]
        assert len(ssm.requests) == 2
        ec2_host, hybrid_host = d.rows
        assert ec2_host["ping_status"] == "Online"
        assert ec2_host["is_latest_version"] is True
        assert ec2_host["title"] == "web-1.internal"
        assert ec2_host["last_ping_date_time"] == "2024-01-01T00:00:00+00:00"
        assert ec2_host["akas"] == ["arn:aws:ec2:us-east-1:123456789012:instance/i-0abc"]
        assert hybrid_host["title"] == "mi-0def"
        assert hybrid_host["akas"] == [
            "arn:aws:ssm:us-east-1:123456789012:managed-instance/mi-0def"
        ]

    def test_qualifiers_become_filters(self, offline_context, stub_clients):
        """Test that ping_status is pushed down as a filter."""
        ssm = stub_clients["ssm"] = FakeSSM(MANAGED_INSTANCES)
        d = QueryData(
            connection=offline_context,
            table="aws_ssm_managed_instance",
            region="us-east-1",
            quals={"ping_status": "Online"},
        )

        get_table("aws_ssm_managed_instance").execute(d)

        assert ssm.requests[0]["Filters"] == [{"Key": "PingStatus", "Values": ["Online"]}]

    def test_get_and_not_found(self, offline_context, stub_clients):
        """Test the lookup by instance_id and the InvalidInstanceId code."""
        stub_clients["ssm"] = FakeSSM(MANAGED_INSTANCES)
        table = get_table("aws_ssm_managed_instance")
        found, missing = (
            QueryData(
                connection=offline_context,
                table=table.name,
                region="us-east-1",
                quals={"instance_id": instance_id},
            )
            for instance_id in ("mi-0def", "i-absent")
        )

        table.execute(found)
        table.execute(missing)

        assert [row["instance_id"] for row in found.rows] == ["mi-0def"]
        assert missing.rows == []


class FakeClientVpn:
    """EC2 stub answering DescribeClientVpnEndpoints."""

    endpoint = {
        "ClientVpnEndpointId": "cvpn-endpoint-0abc",
        "Description": "engineering",
        "Status": {"Code": "available"},
        "CreationTime": "2024-01-01T00:00:00",
        "DnsName": "*.cvpn-endpoint-0abc.prod.clientvpn.us-east-1.amazonaws.com",
        "ClientCidrBlock": "172.16.0.0/22",
        "SplitTunnel": True,
        "VpnProtocol": "openvpn",
        "TransportProtocol": "udp",
        "VpnPort": 443,
        "ServerCertificateArn": "arn:aws:acm:us-east-1:123456789012:certificate/server",
        "AuthenticationOptions": [
            {
                "Type": "certificate-authentication",
                "MutualAuthentication": {
                    "ClientRootCertificateChain": (
                        "arn:aws:acm:us-east-1:123456789012:certificate/client-root"
                    )
                },
            }
        ],
        "VpcId": "vpc-0abc",
        "SecurityGroupIds": ["sg-0abc"],
        "Tags": [{"Key": "Name", "Value": "eng-vpn"}],
    }

    def describe_client_vpn_endpoints(self, **request):
        ids = request.get("ClientVpnEndpointIds")
        if ids and ids != [self.endpoint["ClientVpnEndpointId"]]:
            raise client_error(
                "InvalidClientVpnEndpointId.NotFound", "DescribeClientVpnEndpoints"
            )
        return {"ClientVpnEndpoints": [self.endpoint]}


class TestClientVpnEndpointTable:
    """Tests for the Client VPN endpoint table."""

    def query(self, context, quals=None):
        d = QueryData(
            connection=context,
            table="aws_vpc_client_vpn_endpoint",
            region="us-east-1",
            quals=quals or {},
        )
        get_table("aws_vpc_client_vpn_endpoint").execute(d)
        return d.rows

    def test_list(self, offline_context, stub_clients):
        """Test the endpoint and certificate columns."""
        stub_clients["ec2"] = FakeClientVpn()

        rows = self.query(offline_context)

        assert len(rows) == 1
        row = rows[0]
        assert row["status"] == "available"
        assert row["title"] == "eng-vpn"
        assert row["authentication_types"] == ["certificate-authentication"]
        assert row["client_root_certificate_chain_arns"] == [
            "arn:aws:acm:us-east-1:123456789012:certificate/client-root"
        ]
        assert row["akas"] == [
            "arn:aws:ec2:us-east-1:123456789012:client-vpn-endpoint/cvpn-endpoint-0abc"
        ]

    def test_get_and_not_found(self, offline_context, stub_clients):
        """Test the lookup by endpoint id and its not-found code."""
        stub_clients["ec2"] = FakeClientVpn()

        found = self.query(
            offline_context, {"client_vpn_endpoint_id": "cvpn-endpoint-0abc"}
        )
        missing = self.query(
            offline_context, {"client_vpn_endpoint_id": "cvpn-endpoint-0000"}
        )

        assert [row["client_vpn_endpoint_id"] for row in found] == ["cvpn-endpoint-0abc"]
        assert missing == []
