"""ACM certificate with DNS validation."""

import enum
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from infrastructure.errors import (
  CertificateValidationFailedError,
  CertificateValidationTimeoutError,
)
from infrastructure.provisioners.zone import HostedZone
from infrastructure.waiter import wait_until

logger = logging.getLogger(__name__)

# Statuses from which a certificate never becomes ISSUED
_TERMINAL_FAILURES = {"FAILED", "VALIDATION_TIMED_OUT", "REVOKED", "EXPIRED", "INACTIVE"}


class ValidationState(enum.Enum):
  PENDING = "pending"
  VALIDATED = "validated"
  FAILED = "failed"


@dataclass(frozen=True)
class Certificate:
  """TLS certificate for exactly one site domain."""

  arn: str
  domain_name: str
  validation_state: ValidationState

  @property
  def validated(self) -> bool:
    return self.validation_state is ValidationState.VALIDATED


class CertificateProvisioner:
  """Request a DNS validated certificate and wait until ACM issues it."""

  def __init__(
    self,
    acm: Any,
    route53: Any,
    *,
    timeout: float = 1800.0,
    interval: float = 15.0,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
  ) -> None:
    self.acm = acm
    self.route53 = route53
    self.timeout = timeout
    self.interval = interval
    self.sleep = sleep
    self.monotonic = monotonic

  def provision(self, site_domain: str, zone: HostedZone) -> Certificate:
    """Return an issued certificate for ``site_domain``.

    An existing certificate for the domain is reused. When it is already
    issued no mutating call is made.

    Raises:
      CertificateValidationTimeoutError: If ACM does not issue the
        certificate within the timeout. A later apply may still succeed.
      CertificateValidationFailedError: If ACM gives up on the request.
    """
    arn = self.find(site_domain)
    if arn is None:
      logger.info("Requesting certificate for %s", site_domain)
      response = self.acm.request_certificate(
        DomainName=site_domain,
        ValidationMethod="DNS",
        IdempotencyToken=_idempotency_token(site_domain),
      )
      arn = response["CertificateArn"]

    details = self._describe(arn)
    if details["Status"] == "ISSUED":
      logger.info("Certificate already issued: %s", arn)
      return Certificate(arn, site_domain, ValidationState.VALIDATED)
    self._raise_if_failed(details)

    # Both waits share one deadline
    deadline = self.monotonic() + self.timeout
    record = wait_until(
      lambda: self._validation_record(arn),
      description=f"DNS validation details of {arn}",
      timeout=self.timeout,
      interval=self.interval,
      error=CertificateValidationTimeoutError,
      sleep=self.sleep,
      monotonic=self.monotonic,
    )
    self._ensure_validation_record(zone, record)

    logger.info("Waiting for certificate validation of %s", site_domain)
    wait_until(
      lambda: self._issued(arn),
      description=f"certificate {arn} to be issued",
      timeout=max(deadline - self.monotonic(), 0.0),
      interval=self.interval,
      error=CertificateValidationTimeoutError,
      sleep=self.sleep,
      monotonic=self.monotonic,
    )
    logger.info("Certificate issued: %s", arn)
    return Certificate(arn, site_domain, ValidationState.VALIDATED)

  def find(self, site_domain: str) -> str | None:
    """ARN of a usable certificate for the domain, preferring issued ones."""
    pending: str | None = None
    paginator = self.acm.get_paginator("list_certificates")
    for page in paginator.paginate(CertificateStatuses=["ISSUED", "PENDING_VALIDATION"]):
      for summary in page.get("CertificateSummaryList", []):
        if summary.get("DomainName") != site_domain:
          continue
        if summary.get("Status", "ISSUED") == "ISSUED":
          return str(summary["CertificateArn"])
        pending = pending or str(summary["CertificateArn"])
    return pending

  def delete(self, site_domain: str, zone: HostedZone | None) -> bool:
    """Delete the certificate and its validation record. Returns False if absent."""
    arn = self.find(site_domain)
    if arn is None:
      return False

    record = self._validation_record(arn)
    if zone is not None and record is not None:
      existing = self._existing_record(zone, record["Name"])
      if existing is not None:
        self.route53.change_resource_record_sets(
          HostedZoneId=zone.zone_id,
          ChangeBatch={"Changes": [{"Action": "DELETE", "ResourceRecordSet": existing}]},
        )

    logger.info("Deleting certificate %s", arn)
    self.acm.delete_certificate(CertificateArn=arn)
    return True

  def _describe(self, arn: str) -> dict[str, Any]:
    response = self.acm.describe_certificate(CertificateArn=arn)
    certificate: dict[str, Any] = response["Certificate"]
    return certificate

  def _raise_if_failed(self, details: dict[str, Any]) -> None:
    if details["Status"] in _TERMINAL_FAILURES:
      reason = details.get("FailureReason", details["Status"])
      raise CertificateValidationFailedError(
        f"Certificate {details['CertificateArn']} cannot be issued: {reason}"
      )

  def _validation_record(self, arn: str) -> dict[str, str] | None:
    options = self._describe(arn).get("DomainValidationOptions", [])
    # ACM fills in the record asynchronously after the request
    if options and "ResourceRecord" in options[0]:
      record: dict[str, str] = options[0]["ResourceRecord"]
      return record
    return None

  def _issued(self, arn: str) -> dict[str, Any] | None:
    details = self._describe(arn)
    if details["Status"] == "ISSUED":
      return details
    self._raise_if_failed(details)
    return None

  def _existing_record(self, zone: HostedZone, name: str) -> dict[str, Any] | None:
    response = self.route53.list_resource_record_sets(
      HostedZoneId=zone.zone_id,
      StartRecordName=name,
      StartRecordType="CNAME",
      MaxItems="1",
    )
    for record_set in response.get("ResourceRecordSets", []):
      if _fqdn(record_set["Name"]) == _fqdn(name) and record_set["Type"] == "CNAME":
        return dict(record_set)
    return None

  def _ensure_validation_record(self, zone: HostedZone, record: dict[str, str]) -> None:
    existing = self._existing_record(zone, record["Name"])
    if existing is not None:
      values = [r["Value"] for r in existing.get("ResourceRecords", [])]
      if values == [record["Value"]]:
        logger.info("Validation record %s already present", record["Name"])
        return

    logger.info("Creating validation record %s -> %s", record["Name"], record["Value"])
    self.route53.change_resource_record_sets(
      HostedZoneId=zone.zone_id,
      ChangeBatch={
        "Comment": "ACM DNS validation",
        "Changes": [
          {
            "Action": "UPSERT",
            "ResourceRecordSet": {
              "Name": record["Name"],
              "Type": record["Type"],
              "TTL": 300,
              "ResourceRecords": [{"Value": record["Value"]}],
            },
          }
        ],
      },
    )


def _idempotency_token(site_domain: str) -> str:
  # ACM accepts at most 32 word characters
  return re.sub(r"\W", "", site_domain)[:32]


def _fqdn(name: str) -> str:
  return name.rstrip(".").lower() + "."
