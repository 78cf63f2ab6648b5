"""Route 53 alias records pointing the site domain at CloudFront."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from infrastructure.errors import WaitTimeoutError
from infrastructure.provisioners.distribution import Distribution
from infrastructure.provisioners.zone import HostedZone
from infrastructure.waiter import wait_until

logger = logging.getLogger(__name__)

# Fixed hosted zone ID of every CloudFront distribution
CLOUDFRONT_HOSTED_ZONE_ID = "Z2FDTNDATAQYW2"
RECORD_TYPES = ("A", "AAAA")


@dataclass(frozen=True)
class AliasRecord:
  """Alias records for ``name`` targeting a distribution's edge domain."""

  name: str
  target: str
  zone_id: str
  record_types: tuple[str, ...] = RECORD_TYPES


class DnsAliasBinder:
  """Bind the site domain to the distribution with A and AAAA aliases."""

  def __init__(
    self,
    route53: Any,
    *,
    timeout: float = 300.0,
    interval: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
  ) -> None:
    self.route53 = route53
    self.timeout = timeout
    self.interval = interval
    self.sleep = sleep

  def bind(self, zone: HostedZone, site_domain: str, distribution: Distribution) -> AliasRecord:
    """UPSERT the alias records unless they already target the distribution."""
    record = AliasRecord(name=site_domain, target=distribution.domain_name, zone_id=zone.zone_id)

    stale = [
      record_type
      for record_type in record.record_types
      if not _targets(self._existing(zone, site_domain, record_type), record.target)
    ]
    if not stale:
      logger.info("Alias records for %s already point at %s", site_domain, record.target)
      return record

    logger.info("Binding %s -> %s (%s)", site_domain, record.target, ", ".join(stale))
    response = self.route53.change_resource_record_sets(
      HostedZoneId=zone.zone_id,
      ChangeBatch={
        "Comment": f"Alias for {site_domain}",
        "Changes": [
          {"Action": "UPSERT", "ResourceRecordSet": _alias_record_set(record, t)}
          for t in stale
        ],
      },
    )
    self._wait_in_sync(response["ChangeInfo"]["Id"])
    return record

  def unbind(self, zone: HostedZone, site_domain: str) -> bool:
    """Delete the alias records of ``site_domain``. Returns False if none exist."""
    changes = []
    for record_type in RECORD_TYPES:
      existing = self._existing(zone, site_domain, record_type)
      if existing is not None and "AliasTarget" in existing:
        changes.append({"Action": "DELETE", "ResourceRecordSet": existing})
    if not changes:
      return False

    logger.info("Deleting alias records for %s", site_domain)
    self.route53.change_resource_record_sets(
      HostedZoneId=zone.zone_id, ChangeBatch={"Changes": changes}
    )
    return True

  def _existing(self, zone: HostedZone, name: str, record_type: str) -> dict[str, Any] | None:
    response = self.route53.list_resource_record_sets(
      HostedZoneId=zone.zone_id,
      StartRecordName=name,
      StartRecordType=record_type,
      MaxItems="1",
    )
    for record_set in response.get("ResourceRecordSets", []):
      if _fqdn(record_set["Name"]) == _fqdn(name) and record_set["Type"] == record_type:
        return dict(record_set)
    return None

  def _wait_in_sync(self, change_id: str) -> None:
    def in_sync() -> bool | None:
      status = self.route53.get_change(Id=change_id)["ChangeInfo"]["Status"]
      return True if status == "INSYNC" else None

    wait_until(
      in_sync,
      description=f"Route 53 change {change_id}",
      timeout=self.timeout,
      interval=self.interval,
      error=WaitTimeoutError,
      sleep=self.sleep,
    )


def _alias_record_set(record: AliasRecord, record_type: str) -> dict[str, Any]:
  return {
    "Name": record.name,
    "Type": record_type,
    "AliasTarget": {
      "HostedZoneId": CLOUDFRONT_HOSTED_ZONE_ID,
      "DNSName": record.target,
      "EvaluateTargetHealth": False,
    },
  }


def _targets(record_set: dict[str, Any] | None, target: str) -> bool:
  if record_set is None:
    return False
  alias = record_set.get("AliasTarget")
  if not alias:
    return False
  return bool(
    alias["HostedZoneId"] == CLOUDFRONT_HOSTED_ZONE_ID
    and _fqdn(alias["DNSName"]) == _fqdn(target)
  )


def _fqdn(name: str) -> str:
  return name.rstrip(".").lower() + "."
