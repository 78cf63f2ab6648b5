"""CloudFront distribution in front of the site bucket."""

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from infrastructure.errors import CertificateNotReadyError, DistributionDeployTimeoutError
from infrastructure.provisioners.certificate import Certificate
from infrastructure.provisioners.edge_function import VIEWER_REQUEST, EdgeFunction
from infrastructure.provisioners.storage import Bucket
from infrastructure.waiter import wait_until

logger = logging.getLogger(__name__)

ORIGIN_ID = "s3-origin"
DEFAULT_ROOT_OBJECT = "index.html"
MINIMUM_PROTOCOL_VERSION = "TLSv1.2_2021"
# Managed "CachingOptimized" cache policy
CACHING_OPTIMIZED_POLICY_ID = "658327ea-f89d-4fab-a63d-7e88639e58f6"

# Replaced as a whole on update instead of merged key by key
_REPLACED_KEYS = {"ViewerCertificate"}
# Collections CloudFront echoes back in its own order
_UNORDERED_KEYS = {"Aliases", "AllowedMethods", "CachedMethods"}


@dataclass(frozen=True)
class ErrorResponse:
  """Custom error response served instead of a raw origin error."""

  http_status: int
  response_http_status: int
  response_page_path: str
  ttl_seconds: int


# Access denied from the private bucket is shown as the site's error page
ERROR_RESPONSES = (
  ErrorResponse(
    http_status=403,
    response_http_status=403,
    response_page_path="/error.html",
    ttl_seconds=30 * 60,
  ),
)


@dataclass(frozen=True)
class PlainBehavior:
  """Default behavior without a viewer-request function."""


@dataclass(frozen=True)
class RewriteBehavior:
  """Default behavior whose viewer requests pass through the rewrite function."""

  edge_function: EdgeFunction


DefaultBehavior = PlainBehavior | RewriteBehavior


def select_behavior(edge_function: EdgeFunction | None) -> DefaultBehavior:
  if edge_function is None:
    return PlainBehavior()
  return RewriteBehavior(edge_function)


@dataclass(frozen=True)
class Distribution:
  """CloudFront distribution serving exactly the site domain."""

  distribution_id: str
  arn: str
  domain_name: str
  aliases: tuple[str, ...]
  certificate_arn: str
  behavior: DefaultBehavior
  error_responses: tuple[ErrorResponse, ...] = ERROR_RESPONSES
  status: str = "InProgress"


def check_certificate(certificate: Certificate, site_domain: str) -> None:
  """Reject certificates that are not issued or not for ``site_domain``."""
  if not certificate.validated:
    raise CertificateNotReadyError(
      f"Certificate {certificate.arn} is {certificate.validation_state.value}, not validated"
    )
  if certificate.domain_name != site_domain:
    raise CertificateNotReadyError(
      f"Certificate {certificate.arn} is for {certificate.domain_name}, not {site_domain}"
    )


def build_config(
  *,
  site_domain: str,
  bucket: Bucket,
  certificate: Certificate,
  behavior: DefaultBehavior,
  origin_access_control_id: str,
  caller_reference: str,
) -> dict[str, Any]:
  """DistributionConfig for the CloudFront API.

  Raises:
    CertificateNotReadyError: If the certificate may not be referenced.
  """
  check_certificate(certificate, site_domain)

  if isinstance(behavior, RewriteBehavior):
    function_associations: dict[str, Any] = {
      "Quantity": 1,
      "Items": [
        {
          "FunctionARN": behavior.edge_function.arn,
          "EventType": VIEWER_REQUEST,
        }
      ],
    }
  else:
    function_associations = {"Quantity": 0}

  return {
    "CallerReference": caller_reference,
    "Comment": f"Static site {site_domain}",
    "Enabled": True,
    "Aliases": {"Quantity": 1, "Items": [site_domain]},
    "DefaultRootObject": DEFAULT_ROOT_OBJECT,
    "HttpVersion": "http2",
    "IsIPV6Enabled": True,
    "PriceClass": "PriceClass_All",
    "Origins": {
      "Quantity": 1,
      "Items": [
        {
          "Id": ORIGIN_ID,
          "DomainName": bucket.regional_domain_name,
          "OriginPath": "",
          "OriginAccessControlId": origin_access_control_id,
          "S3OriginConfig": {"OriginAccessIdentity": ""},
        }
      ],
    },
    "DefaultCacheBehavior": {
      "TargetOriginId": ORIGIN_ID,
      "ViewerProtocolPolicy": "redirect-to-https",
      "Compress": True,
      "CachePolicyId": CACHING_OPTIMIZED_POLICY_ID,
      "AllowedMethods": {
        "Quantity": 3,
        "Items": ["GET", "HEAD", "OPTIONS"],
        "CachedMethods": {"Quantity": 2, "Items": ["GET", "HEAD"]},
      },
      "FunctionAssociations": function_associations,
    },
    "CustomErrorResponses": {
      "Quantity": len(ERROR_RESPONSES),
      "Items": [
        {
          "ErrorCode": response.http_status,
          "ResponsePagePath": response.response_page_path,
          "ResponseCode": str(response.response_http_status),
          "ErrorCachingMinTTL": response.ttl_seconds,
        }
        for response in ERROR_RESPONSES
      ],
    },
    "ViewerCertificate": {
      "ACMCertificateArn": certificate.arn,
      "SSLSupportMethod": "sni-only",
      "MinimumProtocolVersion": MINIMUM_PROTOCOL_VERSION,
    },
  }


class DistributionBuilder:
  """Create or converge the distribution for a site."""

  def __init__(
    self,
    cloudfront: Any,
    *,
    timeout: float = 1800.0,
    interval: float = 15.0,
    wait_for_deployment: bool = True,
    sleep: Callable[[float], None] = time.sleep,
  ) -> None:
    self.cloudfront = cloudfront
    self.timeout = timeout
    self.interval = interval
    self.wait_for_deployment = wait_for_deployment
    self.sleep = sleep

  def build(
    self,
    site_domain: str,
    bucket: Bucket,
    certificate: Certificate,
    behavior: DefaultBehavior,
  ) -> Distribution:
    """Create the distribution, or update it when its config drifted.

    Raises:
      CertificateNotReadyError: Before any API call, for a certificate that
        is not validated or does not match the site domain.
      DistributionDeployTimeoutError: If waiting for deployment times out.
    """
    check_certificate(certificate, site_domain)
    oac_id = self._ensure_origin_access_control(site_domain)

    summary = self.find(site_domain)
    if summary is None:
      config = build_config(
        site_domain=site_domain,
        bucket=bucket,
        certificate=certificate,
        behavior=behavior,
        origin_access_control_id=oac_id,
        caller_reference=str(uuid.uuid4()),
      )
      logger.info("Creating distribution for %s", site_domain)
      created = self.cloudfront.create_distribution(DistributionConfig=config)["Distribution"]
      distribution_id, arn = created["Id"], created["ARN"]
      domain_name, status = created["DomainName"], created["Status"]
    else:
      distribution_id, arn = summary["Id"], summary["ARN"]
      domain_name, status = summary["DomainName"], summary["Status"]

      response = self.cloudfront.get_distribution_config(Id=distribution_id)
      current = response["DistributionConfig"]
      desired = build_config(
        site_domain=site_domain,
        bucket=bucket,
        certificate=certificate,
        behavior=behavior,
        origin_access_control_id=oac_id,
        caller_reference=current["CallerReference"],
      )
      if is_subset(desired, current):
        logger.info("Distribution %s is up to date", distribution_id)
      else:
        logger.info("Updating distribution %s", distribution_id)
        updated = self.cloudfront.update_distribution(
          Id=distribution_id,
          IfMatch=response["ETag"],
          DistributionConfig=merge_config(current, desired),
        )["Distribution"]
        status = updated["Status"]

    if self.wait_for_deployment and status != "Deployed":
      self._wait_deployed(distribution_id)
      status = "Deployed"

    return Distribution(
      distribution_id=distribution_id,
      arn=arn,
      domain_name=domain_name,
      aliases=(site_domain,),
      certificate_arn=certificate.arn,
      behavior=behavior,
      status=status,
    )

  def find(self, site_domain: str) -> dict[str, Any] | None:
    """Summary of the distribution serving ``site_domain``, if any."""
    paginator = self.cloudfront.get_paginator("list_distributions")
    for page in paginator.paginate():
      for summary in page.get("DistributionList", {}).get("Items", []):
        if site_domain in summary.get("Aliases", {}).get("Items", []):
          return dict(summary)
    return None

  def delete(self, site_domain: str) -> bool:
    """Disable, wait for, and delete the distribution and its OAC.

    Returns False if there was no distribution.
    """
    summary = self.find(site_domain)
    if summary is None:
      self._delete_origin_access_control(site_domain)
      return False

    distribution_id = summary["Id"]
    response = self.cloudfront.get_distribution_config(Id=distribution_id)
    config, etag = response["DistributionConfig"], response["ETag"]

    if config["Enabled"]:
      logger.info("Disabling distribution %s", distribution_id)
      config["Enabled"] = False
      etag = self.cloudfront.update_distribution(
        Id=distribution_id, IfMatch=etag, DistributionConfig=config
      )["ETag"]
      self._wait_deployed(distribution_id)
    elif summary.get("Status") != "Deployed":
      self._wait_deployed(distribution_id)

    logger.info("Deleting distribution %s", distribution_id)
    self.cloudfront.delete_distribution(Id=distribution_id, IfMatch=etag)
    self._delete_origin_access_control(site_domain)
    return True

  def _wait_deployed(self, distribution_id: str) -> None:
    def deployed() -> bool | None:
      response = self.cloudfront.get_distribution(Id=distribution_id)
      return True if response["Distribution"]["Status"] == "Deployed" else None

    logger.info("Waiting for distribution %s to deploy", distribution_id)
    wait_until(
      deployed,
      description=f"distribution {distribution_id} to deploy",
      timeout=self.timeout,
      interval=self.interval,
      error=DistributionDeployTimeoutError,
      sleep=self.sleep,
    )

  def _find_origin_access_control(self, name: str) -> str | None:
    marker = ""
    while True:
      params = {"Marker": marker} if marker else {}
      listing = self.cloudfront.list_origin_access_controls(**params)[
        "OriginAccessControlList"
      ]
      for item in listing.get("Items", []):
        if item["Name"] == name:
          return str(item["Id"])
      if not listing.get("IsTruncated"):
        return None
      marker = listing["NextMarker"]

  def _ensure_origin_access_control(self, site_domain: str) -> str:
    name = _origin_access_control_name(site_domain)
    existing = self._find_origin_access_control(name)
    if existing is not None:
      return existing

    logger.info("Creating origin access control %s", name)
    response = self.cloudfront.create_origin_access_control(
      OriginAccessControlConfig={
        "Name": name,
        "Description": f"CloudFront access to {site_domain}",
        "SigningProtocol": "sigv4",
        "SigningBehavior": "always",
        "OriginAccessControlOriginType": "s3",
      }
    )
    return str(response["OriginAccessControl"]["Id"])

  def _delete_origin_access_control(self, site_domain: str) -> None:
    oac_id = self._find_origin_access_control(_origin_access_control_name(site_domain))
    if oac_id is None:
      return
    etag = self.cloudfront.get_origin_access_control(Id=oac_id)["ETag"]
    self.cloudfront.delete_origin_access_control(Id=oac_id, IfMatch=etag)


def is_subset(desired: Any, actual: Any) -> bool:
  """True if every value in ``desired`` is present and equal in ``actual``.

  Keys that CloudFront fills in with defaults are ignored. Lists must
  match element by element, except the items of _UNORDERED_KEYS, which
  are compared as sets.
  """
  return _contains(normalize_config(desired), normalize_config(actual))


def normalize_config(value: Any) -> Any:
  """Copy of ``value`` with the items of unordered collections sorted."""
  if isinstance(value, list):
    return [normalize_config(item) for item in value]
  if not isinstance(value, dict):
    return value
  normalized: dict[str, Any] = {}
  for key, item in value.items():
    item = normalize_config(item)
    if key in _UNORDERED_KEYS and isinstance(item, dict) and isinstance(item.get("Items"), list):
      item = {**item, "Items": sorted(item["Items"])}
    normalized[key] = item
  return normalized


def _contains(desired: Any, actual: Any) -> bool:
  if isinstance(desired, dict):
    return isinstance(actual, dict) and all(
      key in actual and _contains(value, actual[key]) for key, value in desired.items()
    )
  if isinstance(desired, list):
    return (
      isinstance(actual, list)
      and len(desired) == len(actual)
      and all(_contains(d, a) for d, a in zip(desired, actual, strict=True))
    )
  return bool(desired == actual)


def merge_config(current: dict[str, Any], desired: dict[str, Any]) -> dict[str, Any]:
  """Overlay ``desired`` on ``current``, keeping fields CloudFront added.

  Quantity/Items collections are replaced whole so stale items never survive.
  """
  merged = dict(current)
  for key, value in desired.items():
    existing = current.get(key)
    if (
      isinstance(value, dict)
      and isinstance(existing, dict)
      and "Quantity" not in value
      and key not in _REPLACED_KEYS
    ):
      merged[key] = merge_config(existing, value)
    else:
      merged[key] = value
  return merged


def _origin_access_control_name(site_domain: str) -> str:
  return f"{site_domain}-oac"[-64:]
