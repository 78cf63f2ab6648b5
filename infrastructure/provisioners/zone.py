"""Route 53 hosted zone lookup."""

import logging
from dataclasses import dataclass
from typing import Any

from infrastructure.errors import ZoneNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostedZone:
  """Existing public hosted zone. Never created or modified here."""

  zone_id: str
  name: str


class DomainResolver:
  """Resolve the public hosted zone of a root domain."""

  def __init__(self, route53: Any) -> None:
    self.route53 = route53

  def resolve(self, root_domain: str) -> HostedZone:
    """Find the hosted zone named exactly ``root_domain``.

    Raises:
      ZoneNotFoundError: If no public zone matches. Not retried, a missing
        zone means the configuration is wrong.
    """
    root_domain = root_domain.rstrip(".").lower()
    response = self.route53.list_hosted_zones_by_name(DNSName=root_domain, MaxItems="10")

    for zone in response.get("HostedZones", []):
      zone_name = zone["Name"].rstrip(".").lower()
      if zone_name != root_domain:
        # Zones are sorted by name, so nothing later can match
        break
      if zone.get("Config", {}).get("PrivateZone", False):
        continue
      zone_id = zone["Id"].split("/")[-1]
      logger.info("Found hosted zone %s (%s)", zone_name, zone_id)
      return HostedZone(zone_id=zone_id, name=zone_name)

    raise ZoneNotFoundError(root_domain)
