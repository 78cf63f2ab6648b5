"""Pytest fixtures and in-memory AWS clients for provisioner tests."""

import copy
import hashlib
import io
import itertools
import json
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

from infrastructure.clients import AwsClients
from infrastructure.config import SiteConfig

ACCOUNT_ID = "123456789012"
ZONE_ID = "Z0123456789ABC"

MUTATING_PREFIXES = (
  "change_",
  "create_",
  "delete_",
  "publish_",
  "put_",
  "request_",
  "update_",
)


def client_error(code: str, operation: str, message: str = "") -> ClientError:
  return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


class CallLog:
  """Ordered record of every API call made against the fakes."""

  def __init__(self) -> None:
    self.calls: list[tuple[str, str, dict[str, Any]]] = []

  def record(self, service: str, operation: str, **kwargs: Any) -> None:
    self.calls.append((service, operation, kwargs))

  def operations(self) -> list[str]:
    return [f"{service}.{operation}" for service, operation, _ in self.calls]

  def mutating(self) -> list[str]:
    return [
      f"{service}.{operation}"
      for service, operation, _ in self.calls
      if operation.startswith(MUTATING_PREFIXES)
    ]

  def clear(self) -> None:
    self.calls.clear()


class FakePaginator:
  """Single page paginator over a list method."""

  def __init__(self, method: Callable[..., dict[str, Any]]) -> None:
    self.method = method

  def paginate(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
    yield self.method(**kwargs)


class FakeRoute53:
  def __init__(self, log: CallLog) -> None:
    self.log = log
    self.zones: list[dict[str, Any]] = []
    self.records: dict[tuple[str, str, str], dict[str, Any]] = {}
    self.changes = itertools.count(1)

  def add_zone(self, name: str, zone_id: str, private: bool = False) -> None:
    self.zones.append(
      {
        "Id": f"/hostedzone/{zone_id}",
        "Name": f"{name}.",
        "Config": {"PrivateZone": private},
      }
    )

  def list_hosted_zones_by_name(self, DNSName: str, MaxItems: str = "100") -> dict[str, Any]:
    self.log.record("route53", "list_hosted_zones_by_name", DNSName=DNSName)
    matching = [z for z in self.zones if z["Name"].rstrip(".") == DNSName]
    others = sorted(
      (z for z in self.zones if z["Name"].rstrip(".") > DNSName), key=lambda z: z["Name"]
    )
    return {"HostedZones": (matching + others)[: int(MaxItems)]}

  def list_resource_record_sets(
    self,
    HostedZoneId: str,
    StartRecordName: str,
    StartRecordType: str,
    MaxItems: str = "1",
  ) -> dict[str, Any]:
    self.log.record("route53", "list_resource_record_sets", Name=StartRecordName)
    key = (HostedZoneId, _fqdn(StartRecordName), StartRecordType)
    if key in self.records:
      return {"ResourceRecordSets": [copy.deepcopy(self.records[key])]}
    return {"ResourceRecordSets": []}

  def change_resource_record_sets(self, HostedZoneId: str, ChangeBatch: dict[str, Any]) -> dict[str, Any]:
    self.log.record("route53", "change_resource_record_sets", ChangeBatch=ChangeBatch)
    for change in ChangeBatch["Changes"]:
      record_set = copy.deepcopy(change["ResourceRecordSet"])
      record_set["Name"] = _fqdn(record_set["Name"])
      key = (HostedZoneId, record_set["Name"], record_set["Type"])
      if change["Action"] == "DELETE":
        if key not in self.records:
          raise client_error("InvalidChangeBatch", "ChangeResourceRecordSets")
        del self.records[key]
      else:
        self.records[key] = record_set
    return {"ChangeInfo": {"Id": f"/change/C{next(self.changes)}", "Status": "PENDING"}}

  def get_change(self, Id: str) -> dict[str, Any]:
    self.log.record("route53", "get_change", Id=Id)
    return {"ChangeInfo": {"Id": Id, "Status": "INSYNC"}}

  def record(self, name: str, record_type: str) -> dict[str, Any] | None:
    return self.records.get((ZONE_ID, _fqdn(name), record_type))


class FakeAcm:
  """ACM that issues a certificate once its validation CNAME exists."""

  def __init__(self, log: CallLog, route53: FakeRoute53) -> None:
    self.log = log
    self.route53 = route53
    self.certificates: dict[str, dict[str, Any]] = {}
    self.numbers = itertools.count(1)
    self.never_issue = False
    self.fail_validation = False
    self.details_delay = 1  # describe calls before the validation record appears
    self.issued_at: dict[str, int] = {}

  def request_certificate(self, DomainName: str, ValidationMethod: str, **kwargs: Any) -> dict[str, Any]:
    self.log.record("acm", "request_certificate", DomainName=DomainName)
    arn = f"arn:aws:acm:us-east-1:{ACCOUNT_ID}:certificate/cert-{next(self.numbers)}"
    self.certificates[arn] = {
      "CertificateArn": arn,
      "DomainName": DomainName,
      "Status": "PENDING_VALIDATION",
      "DomainValidationOptions": [{"DomainName": DomainName}],
      "_describes": 0,
    }
    return {"CertificateArn": arn}

  def describe_certificate(self, CertificateArn: str) -> dict[str, Any]:
    self.log.record("acm", "describe_certificate", CertificateArn=CertificateArn)
    cert = self.certificates[CertificateArn]
    cert["_describes"] += 1
    option = cert["DomainValidationOptions"][0]
    if cert["_describes"] > self.details_delay and "ResourceRecord" not in option:
      option["ResourceRecord"] = {
        "Name": f"_x1.{cert['DomainName']}.",
        "Type": "CNAME",
        "Value": "_x2.acm-validations.aws.",
      }

    if cert["Status"] == "PENDING_VALIDATION" and "ResourceRecord" in option:
      published = self.route53.record(option["ResourceRecord"]["Name"], "CNAME")
      if published is not None:
        if self.fail_validation:
          cert["Status"] = "FAILED"
          cert["FailureReason"] = "CAA_ERROR"
        elif not self.never_issue:
          cert["Status"] = "ISSUED"
          self.issued_at[CertificateArn] = len(self.log.calls)

    return {"Certificate": {k: copy.deepcopy(v) for k, v in cert.items() if not k.startswith("_")}}

  def _list(self, CertificateStatuses: list[str] | None = None) -> dict[str, Any]:
    self.log.record("acm", "list_certificates")
    return {
      "CertificateSummaryList": [
        {"CertificateArn": c["CertificateArn"], "DomainName": c["DomainName"], "Status": c["Status"]}
        for c in self.certificates.values()
        if CertificateStatuses is None or c["Status"] in CertificateStatuses
      ]
    }

  def get_paginator(self, name: str) -> FakePaginator:
    assert name == "list_certificates"
    return FakePaginator(self._list)

  def delete_certificate(self, CertificateArn: str) -> None:
    self.log.record("acm", "delete_certificate", CertificateArn=CertificateArn)
    del self.certificates[CertificateArn]


class FakeS3:
  def __init__(self, log: CallLog) -> None:
    self.log = log
    self.buckets: dict[str, dict[str, Any]] = {}
    self.foreign_buckets: set[str] = set()
    self.fail_keys: set[str] = set()

  def _bucket(self, name: str, operation: str) -> dict[str, Any]:
    if name not in self.buckets:
      raise client_error("NoSuchBucket", operation)
    return self.buckets[name]

  def head_bucket(self, Bucket: str, ExpectedBucketOwner: str | None = None) -> dict[str, Any]:
    self.log.record("s3", "head_bucket", Bucket=Bucket)
    if Bucket in self.foreign_buckets:
      raise client_error("403", "HeadBucket", "Forbidden")
    if Bucket not in self.buckets:
      raise client_error("404", "HeadBucket", "Not Found")
    return {}

  def create_bucket(self, Bucket: str, CreateBucketConfiguration: dict[str, Any] | None = None) -> dict[str, Any]:
    self.log.record("s3", "create_bucket", Bucket=Bucket, Config=CreateBucketConfiguration)
    if Bucket in self.foreign_buckets:
      raise client_error("BucketAlreadyExists", "CreateBucket")
    self.buckets[Bucket] = {"objects": {}, "policy": None, "public_access_block": None, "tags": {}}
    return {"Location": f"/{Bucket}"}

  def get_public_access_block(self, Bucket: str) -> dict[str, Any]:
    self.log.record("s3", "get_public_access_block", Bucket=Bucket)
    block = self._bucket(Bucket, "GetPublicAccessBlock")["public_access_block"]
    if block is None:
      raise client_error("NoSuchPublicAccessBlockConfiguration", "GetPublicAccessBlock")
    return {"PublicAccessBlockConfiguration": dict(block)}

  def put_public_access_block(self, Bucket: str, PublicAccessBlockConfiguration: dict[str, bool]) -> None:
    self.log.record("s3", "put_public_access_block", Bucket=Bucket)
    self._bucket(Bucket, "PutPublicAccessBlock")["public_access_block"] = dict(
      PublicAccessBlockConfiguration
    )

  def get_bucket_policy(self, Bucket: str) -> dict[str, Any]:
    self.log.record("s3", "get_bucket_policy", Bucket=Bucket)
    policy = self._bucket(Bucket, "GetBucketPolicy")["policy"]
    if policy is None:
      raise client_error("NoSuchBucketPolicy", "GetBucketPolicy")
    return {"Policy": policy}

  def put_bucket_policy(self, Bucket: str, Policy: str) -> None:
    self.log.record("s3", "put_bucket_policy", Bucket=Bucket)
    self._bucket(Bucket, "PutBucketPolicy")["policy"] = Policy

  def _list_objects(self, Bucket: str) -> dict[str, Any]:
    self.log.record("s3", "list_objects_v2", Bucket=Bucket)
    objects = self._bucket(Bucket, "ListObjectsV2")["objects"]
    return {
      "Contents": [
        {"Key": key, "ETag": f'"{hashlib.md5(obj["Body"]).hexdigest()}"'}
        for key, obj in sorted(objects.items())
      ]
    }

  def get_paginator(self, name: str) -> FakePaginator:
    assert name == "list_objects_v2"
    return FakePaginator(self._list_objects)

  def put_object(self, Bucket: str, Key: str, Body: Any, **kwargs: Any) -> dict[str, Any]:
    self.log.record("s3", "put_object", Bucket=Bucket, Key=Key, streamed=hasattr(Body, "read"))
    if Key in self.fail_keys:
      raise client_error("InternalError", "PutObject")
    if hasattr(Body, "read"):
      Body = Body.read()
    self._bucket(Bucket, "PutObject")["objects"][Key] = {"Body": Body, **kwargs}
    return {"ETag": f'"{hashlib.md5(Body).hexdigest()}"'}

  def delete_objects(self, Bucket: str, Delete: dict[str, Any]) -> dict[str, Any]:
    self.log.record("s3", "delete_objects", Bucket=Bucket)
    objects = self._bucket(Bucket, "DeleteObjects")["objects"]
    for item in Delete["Objects"]:
      objects.pop(item["Key"], None)
    return {}

  def get_bucket_tagging(self, Bucket: str) -> dict[str, Any]:
    self.log.record("s3", "get_bucket_tagging", Bucket=Bucket)
    tags = self._bucket(Bucket, "GetBucketTagging")["tags"]
    if not tags:
      raise client_error("NoSuchTagSet", "GetBucketTagging")
    return {"TagSet": [{"Key": k, "Value": v} for k, v in tags.items()]}

  def put_bucket_tagging(self, Bucket: str, Tagging: dict[str, Any]) -> None:
    self.log.record("s3", "put_bucket_tagging", Bucket=Bucket)
    self._bucket(Bucket, "PutBucketTagging")["tags"] = {
      tag["Key"]: tag["Value"] for tag in Tagging["TagSet"]
    }

  def delete_bucket_tagging(self, Bucket: str) -> None:
    self.log.record("s3", "delete_bucket_tagging", Bucket=Bucket)
    self._bucket(Bucket, "DeleteBucketTagging")["tags"] = {}

  def delete_bucket(self, Bucket: str) -> None:
    self.log.record("s3", "delete_bucket", Bucket=Bucket)
    if self._bucket(Bucket, "DeleteBucket")["objects"]:
      raise client_error("BucketNotEmpty", "DeleteBucket")
    del self.buckets[Bucket]


def run_viewer_request(uri: str) -> str:
  """What the JavaScript in viewer_request.js.j2 does to a request URI."""
  needs_index = uri.endswith("/") or uri.rfind(".") < uri.rfind("/")
  if uri != "/" and needs_index:
    return uri + "index.html" if uri.endswith("/") else uri + "/index.html"
  return uri


class FakeCloudFront:
  """CloudFront with functions, OACs, distributions and invalidations."""

  def __init__(self, log: CallLog) -> None:
    self.log = log
    self.functions: dict[str, dict[str, Any]] = {}
    self.origin_access_controls: dict[str, dict[str, Any]] = {}
    self.distributions: dict[str, dict[str, Any]] = {}
    self.invalidations: list[dict[str, Any]] = []
    self.ids = itertools.count(1)
    self.broken_function = False
    self.deploy_polls = 1  # get_distribution calls before Status is Deployed
    self.failing_invalidations = 0

  # Functions

  def _function(self, name: str, operation: str) -> dict[str, Any]:
    if name not in self.functions:
      raise client_error("NoSuchFunctionExists", operation)
    return self.functions[name]

  def _function_summary(self, name: str, stage: str) -> dict[str, Any]:
    fn = self.functions[name]
    return {
      "Name": name,
      "FunctionConfig": fn["config"],
      "FunctionMetadata": {"FunctionARN": fn["arn"], "Stage": stage},
    }

  def create_function(self, Name: str, FunctionConfig: dict[str, Any], FunctionCode: bytes) -> dict[str, Any]:
    self.log.record("cloudfront", "create_function", Name=Name)
    self.functions[Name] = {
      "config": FunctionConfig,
      "dev_code": FunctionCode,
      "live_code": None,
      "etag": "F1",
      "arn": f"arn:aws:cloudfront::{ACCOUNT_ID}:function/{Name}",
    }
    return {"ETag": "F1", "FunctionSummary": self._function_summary(Name, "DEVELOPMENT")}

  def update_function(self, Name: str, IfMatch: str, FunctionConfig: dict[str, Any], FunctionCode: bytes) -> dict[str, Any]:
    self.log.record("cloudfront", "update_function", Name=Name)
    fn = self._function(Name, "UpdateFunction")
    assert IfMatch == fn["etag"]
    fn["config"], fn["dev_code"] = FunctionConfig, FunctionCode
    fn["etag"] = f"F{next(self.ids)}"
    return {"ETag": fn["etag"], "FunctionSummary": self._function_summary(Name, "DEVELOPMENT")}

  def describe_function(self, Name: str, Stage: str = "DEVELOPMENT") -> dict[str, Any]:
    self.log.record("cloudfront", "describe_function", Name=Name, Stage=Stage)
    fn = self._function(Name, "DescribeFunction")
    if Stage == "LIVE" and fn["live_code"] is None:
      raise client_error("NoSuchFunctionExists", "DescribeFunction")
    return {"ETag": fn["etag"], "FunctionSummary": self._function_summary(Name, Stage)}

  def get_function(self, Name: str, Stage: str = "DEVELOPMENT") -> dict[str, Any]:
    self.log.record("cloudfront", "get_function", Name=Name, Stage=Stage)
    fn = self._function(Name, "GetFunction")
    code = fn["live_code"] if Stage == "LIVE" else fn["dev_code"]
    return {"FunctionCode": io.BytesIO(code), "ETag": fn["etag"]}

  def test_function(self, Name: str, IfMatch: str, Stage: str, EventObject: bytes) -> dict[str, Any]:
    self.log.record("cloudfront", "test_function", Name=Name)
    self._function(Name, "TestFunction")
    request = json.loads(EventObject)["request"]
    uri = request["uri"] if self.broken_function else run_viewer_request(request["uri"])
    return {
      "TestResult": {
        "FunctionErrorMessage": "",
        "FunctionOutput": json.dumps({"request": {**request, "uri": uri}}),
      }
    }

  def publish_function(self, Name: str, IfMatch: str) -> dict[str, Any]:
    self.log.record("cloudfront", "publish_function", Name=Name)
    fn = self._function(Name, "PublishFunction")
    fn["live_code"] = fn["dev_code"]
    return {"FunctionSummary": self._function_summary(Name, "LIVE")}

  def delete_function(self, Name: str, IfMatch: str) -> None:
    self.log.record("cloudfront", "delete_function", Name=Name)
    self._function(Name, "DeleteFunction")
    del self.functions[Name]

  # Origin access controls

  def list_origin_access_controls(self, Marker: str = "") -> dict[str, Any]:
    self.log.record("cloudfront", "list_origin_access_controls")
    items = [{"Id": oac_id, "Name": oac["Name"]} for oac_id, oac in self.origin_access_controls.items()]
    return {"OriginAccessControlList": {"Items": items, "IsTruncated": False}}

  def create_origin_access_control(self, OriginAccessControlConfig: dict[str, Any]) -> dict[str, Any]:
    self.log.record("cloudfront", "create_origin_access_control")
    oac_id = f"OAC{next(self.ids)}"
    self.origin_access_controls[oac_id] = dict(OriginAccessControlConfig)
    return {"OriginAccessControl": {"Id": oac_id}, "ETag": "O1"}

  def get_origin_access_control(self, Id: str) -> dict[str, Any]:
    self.log.record("cloudfront", "get_origin_access_control", Id=Id)
    return {"OriginAccessControl": {"Id": Id}, "ETag": "O1"}

  def delete_origin_access_control(self, Id: str, IfMatch: str) -> None:
    self.log.record("cloudfront", "delete_origin_access_control", Id=Id)
    del self.origin_access_controls[Id]

  # Distributions

  def _summary(self, dist_id: str) -> dict[str, Any]:
    dist = self.distributions[dist_id]
    return {
      "Id": dist_id,
      "ARN": dist["arn"],
      "DomainName": dist["domain"],
      "Status": dist["status"],
      "Aliases": copy.deepcopy(dist["config"]["Aliases"]),
    }

  def create_distribution(self, DistributionConfig: dict[str, Any]) -> dict[str, Any]:
    self.log.record("cloudfront", "create_distribution")
    dist_id = f"E{next(self.ids):012d}"
    config = copy.deepcopy(DistributionConfig)
    # Fields CloudFront fills in with defaults
    config.setdefault("Logging", {"Enabled": False, "IncludeCookies": False, "Bucket": "", "Prefix": ""})
    config["Origins"]["Items"][0].setdefault("ConnectionAttempts", 3)
    config["DefaultCacheBehavior"].setdefault("SmoothStreaming", False)
    config["DefaultCacheBehavior"].setdefault("LambdaFunctionAssociations", {"Quantity": 0})
    _echo_method_order(config)
    self.distributions[dist_id] = {
      "config": config,
      "status": "InProgress",
      "polls": 0,
      "etag": "D1",
      "arn": f"arn:aws:cloudfront::{ACCOUNT_ID}:distribution/{dist_id}",
      "domain": f"d{dist_id.lower()}.cloudfront.net",
    }
    return {"Distribution": self._summary(dist_id), "ETag": "D1"}

  def get_distribution(self, Id: str) -> dict[str, Any]:
    self.log.record("cloudfront", "get_distribution", Id=Id)
    dist = self.distributions[Id]
    dist["polls"] += 1
    if dist["polls"] >= self.deploy_polls:
      dist["status"] = "Deployed"
    return {"Distribution": self._summary(Id), "ETag": dist["etag"]}

  def get_distribution_config(self, Id: str) -> dict[str, Any]:
    self.log.record("cloudfront", "get_distribution_config", Id=Id)
    dist = self.distributions[Id]
    return {"DistributionConfig": copy.deepcopy(dist["config"]), "ETag": dist["etag"]}

  def update_distribution(self, Id: str, IfMatch: str, DistributionConfig: dict[str, Any]) -> dict[str, Any]:
    self.log.record("cloudfront", "update_distribution", Id=Id)
    dist = self.distributions[Id]
    assert IfMatch == dist["etag"]
    dist["config"] = copy.deepcopy(DistributionConfig)
    _echo_method_order(dist["config"])
    dist["status"], dist["polls"] = "InProgress", 0
    dist["etag"] = f"D{next(self.ids)}"
    return {"Distribution": self._summary(Id), "ETag": dist["etag"]}

  def delete_distribution(self, Id: str, IfMatch: str) -> None:
    self.log.record("cloudfront", "delete_distribution", Id=Id)
    dist = self.distributions[Id]
    if dist["config"]["Enabled"] or dist["status"] != "Deployed":
      raise client_error("DistributionNotDisabled", "DeleteDistribution")
    del self.distributions[Id]

  def _list_distributions(self) -> dict[str, Any]:
    self.log.record("cloudfront", "list_distributions")
    return {"DistributionList": {"Items": [self._summary(d) for d in self.distributions]}}

  def get_paginator(self, name: str) -> FakePaginator:
    assert name == "list_distributions"
    return FakePaginator(self._list_distributions)

  def create_invalidation(self, DistributionId: str, InvalidationBatch: dict[str, Any]) -> dict[str, Any]:
    self.log.record("cloudfront", "create_invalidation", DistributionId=DistributionId)
    if self.failing_invalidations:
      self.failing_invalidations -= 1
      raise client_error("Throttling", "CreateInvalidation", "Rate exceeded")
    invalidation = {"Id": f"I{next(self.ids)}", "Status": "InProgress", "Batch": InvalidationBatch}
    self.invalidations.append(invalidation)
    return {"Invalidation": {"Id": invalidation["Id"], "Status": "InProgress"}}

  def get_invalidation(self, DistributionId: str, Id: str) -> dict[str, Any]:
    self.log.record("cloudfront", "get_invalidation", Id=Id)
    return {"Invalidation": {"Id": Id, "Status": "Completed"}}


# CloudFront returns methods in this order, whatever order they were sent in
METHOD_ORDER = ["HEAD", "DELETE", "POST", "GET", "OPTIONS", "PUT", "PATCH"]


def _echo_method_order(config: dict[str, Any]) -> None:
  allowed = config["DefaultCacheBehavior"]["AllowedMethods"]
  allowed["Items"] = sorted(allowed["Items"], key=METHOD_ORDER.index)
  cached = allowed["CachedMethods"]
  cached["Items"] = sorted(cached["Items"], key=METHOD_ORDER.index)


class FakeSts:
  def __init__(self, log: CallLog, account_id: str = ACCOUNT_ID) -> None:
    self.log = log
    self.account_id = account_id

  def get_caller_identity(self) -> dict[str, Any]:
    self.log.record("sts", "get_caller_identity")
    return {"Account": self.account_id}


class FakeAws:
  """All fakes sharing one call log, with example.com already hosted."""

  def __init__(self) -> None:
    self.log = CallLog()
    self.route53 = FakeRoute53(self.log)
    self.acm = FakeAcm(self.log, self.route53)
    self.s3 = FakeS3(self.log)
    self.cloudfront = FakeCloudFront(self.log)
    self.sts = FakeSts(self.log)
    self.route53.add_zone("example.com", ZONE_ID)

  def clients(self) -> AwsClients:
    return AwsClients(
      route53=self.route53,
      acm=self.acm,
      s3=self.s3,
      cloudfront=self.cloudfront,
      sts=self.sts,
    )


class TickingClock:
  """Clock that advances one second on every reading."""

  def __init__(self) -> None:
    self.now = datetime(2026, 1, 1, tzinfo=UTC)

  def __call__(self) -> datetime:
    self.now += timedelta(seconds=1)
    return self.now


def _fqdn(name: str) -> str:
  return name.rstrip(".").lower() + "."


@pytest.fixture
def aws() -> FakeAws:
  """In-memory AWS with the example.com hosted zone."""
  return FakeAws()


@pytest.fixture
def clients(aws: FakeAws) -> AwsClients:
  return aws.clients()


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
  """Sleep replacement that returns immediately."""
  return lambda seconds: None


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
  """Built site with an index, an error page and a stylesheet."""
  root = tmp_path / "dist"
  (root / "css").mkdir(parents=True)
  (root / "index.html").write_text("<h1>Hello</h1>")
  (root / "error.html").write_text("<h1>Not here</h1>")
  (root / "css" / "styles.css").write_text("body { color: red; }")
  return root


@pytest.fixture
def site_config(site_dir: Path) -> SiteConfig:
  return SiteConfig(
    root_domain="example.com",
    sub_domain="www",
    asset_path=str(site_dir),
    account_id=ACCOUNT_ID,
    poll_interval=1.0,
  )


@pytest.fixture
def clock() -> TickingClock:
  return TickingClock()
