"""Apply and destroy the complete static site resource graph."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from infrastructure.clients import AwsClients
from infrastructure.config import SiteConfig
from infrastructure.errors import PartialApplyError, StaticSiteError, ZoneNotFoundError
from infrastructure.graph import ResourceGraph
from infrastructure.provisioners import (
  CertificateProvisioner,
  ContentDeployer,
  DistributionBuilder,
  DnsAliasBinder,
  DomainResolver,
  EdgeRewriteFunction,
  HostedZone,
  StorageBucket,
  select_behavior,
  validate_asset_path,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiteOutputs:
  """Values other tooling may rely on after a successful apply."""

  site_url: str
  bucket_name: str
  certificate_arn: str
  distribution_id: str
  distribution_domain_name: str
  hosted_zone_id: str

  def to_dict(self) -> dict[str, str]:
    return {
      "Site": self.site_url,
      "Bucket": self.bucket_name,
      "Certificate": self.certificate_arn,
      "DistributionId": self.distribution_id,
      "DistributionDomainName": self.distribution_domain_name,
      "HostedZoneId": self.hosted_zone_id,
    }


class StaticSite:
  """Complete static website infrastructure.

  Resources, in creation order:
  - Route 53 hosted zone lookup (existing zone, never modified)
  - ACM certificate (DNS validated, waits for issuance)
  - Private S3 bucket named after the site domain
  - (Optional) CloudFront Function rewriting folder paths to index.html
  - CloudFront distribution with Origin Access Control
  - Route 53 alias records for the site domain
  - Content sync followed by a ``/*`` invalidation
  """

  def __init__(
    self,
    config: SiteConfig,
    clients: AwsClients,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], datetime] | None = None,
  ) -> None:
    config.validate()
    self.config = config
    self.clock = clock or (lambda: datetime.now(UTC))

    self.resolver = DomainResolver(clients.route53)
    self.certificates = CertificateProvisioner(
      clients.acm,
      clients.route53,
      timeout=config.certificate_timeout,
      interval=config.poll_interval,
      sleep=sleep,
    )
    self.storage = StorageBucket(clients.s3, account_id=config.account_id)
    self.edge_function = EdgeRewriteFunction(clients.cloudfront)
    self.distributions = DistributionBuilder(
      clients.cloudfront,
      timeout=config.distribution_timeout,
      interval=config.poll_interval,
      wait_for_deployment=config.wait_for_deployment,
      sleep=sleep,
    )
    self.dns = DnsAliasBinder(clients.route53, sleep=sleep)
    self.deployer = ContentDeployer(
      clients.s3,
      clients.cloudfront,
      max_workers=config.upload_workers,
      sleep=sleep,
    )

    self._steps: dict[str, Callable[[dict[str, Any]], Any]] = {
      "hosted-zone": self._resolve_zone,
      "certificate": self._provision_certificate,
      "bucket": self._ensure_bucket,
      "edge-function": self._publish_edge_function,
      "distribution": self._build_distribution,
      "alias-record": self._bind_alias,
      "deployment": self._deploy_content,
    }
    self.graph = self.plan(self.config.folder_redirects)

  @staticmethod
  def plan(folder_redirects: bool) -> ResourceGraph:
    """Resource graph of the site. The edge function exists only for redirects."""
    graph = ResourceGraph()
    graph.add("zone", "hosted-zone", owned=False)
    graph.add("certificate", "certificate", depends_on=("zone",))
    graph.add("bucket", "bucket")
    distribution_deps: tuple[str, ...] = ("bucket", "certificate")
    if folder_redirects:
      graph.add("edge_function", "edge-function")
      distribution_deps += ("edge_function",)
    graph.add("distribution", "distribution", depends_on=distribution_deps)
    graph.add("alias", "alias-record", depends_on=("zone", "distribution"))
    graph.add("deployment", "deployment", depends_on=("bucket", "distribution"), owned=False)
    return graph

  def apply(self) -> SiteOutputs:
    """Create or converge every resource, then deploy the content.

    Raises:
      AssetPathInvalidError: Before any AWS call if the assets are missing.
      PartialApplyError: If a step fails after an owned resource exists.
      StaticSiteError: Any other typed failure from the first steps.
    """
    validate_asset_path(self.config.asset_path)

    for node in self.graph.creation_order():
      try:
        node.value = self._steps[node.kind](self.graph.dependencies(node.name))
      except (StaticSiteError, ClientError, BotoCoreError) as e:
        existing = self.graph.ready_nodes()
        if existing:
          raise PartialApplyError(node.name, existing, e) from e
        raise
      node.ready_at = self.clock()
      logger.info("%s ready", node.name)

    return self.outputs()

  def outputs(self) -> SiteOutputs:
    zone = self.graph["zone"].value
    bucket = self.graph["bucket"].value
    certificate = self.graph["certificate"].value
    distribution = self.graph["distribution"].value
    return SiteOutputs(
      site_url=self.config.site_url,
      bucket_name=bucket.name,
      certificate_arn=certificate.arn,
      distribution_id=distribution.distribution_id,
      distribution_domain_name=distribution.domain_name,
      hosted_zone_id=zone.zone_id,
    )

  def destroy(self) -> list[str]:
    """Tear down in reverse dependency order. Returns the removed resources.

    Nothing is rolled back on failure; the error propagates and a later
    destroy picks up where this one stopped.

    Raises:
      BucketNotEmptyError: If the bucket holds objects and
        auto_delete_objects is disabled.
    """
    zone: HostedZone | None
    try:
      zone = self.resolver.resolve(self.config.root_domain)
    except ZoneNotFoundError:
      logger.warning("Hosted zone %s is gone, skipping DNS records", self.config.root_domain)
      zone = None

    site_domain = self.config.site_domain
    teardown: dict[str, Callable[[], bool]] = {
      "alias-record": lambda: zone is not None and self.dns.unbind(zone, site_domain),
      "distribution": lambda: self.distributions.delete(site_domain),
      # Removed even when redirects were switched off after an earlier apply
      "edge-function": lambda: self.edge_function.delete(site_domain),
      "bucket": lambda: self.storage.delete(
        site_domain, auto_delete_objects=self.config.auto_delete_objects
      ),
      "certificate": lambda: self.certificates.delete(site_domain, zone),
    }

    removed: list[str] = []
    for node in self.plan(folder_redirects=True).destruction_order():
      step = teardown.get(node.kind)
      if step is not None and step():
        removed.append(node.name)
        logger.info("%s removed", node.name)
    return removed

  def _resolve_zone(self, deps: dict[str, Any]) -> Any:
    return self.resolver.resolve(self.config.root_domain)

  def _provision_certificate(self, deps: dict[str, Any]) -> Any:
    return self.certificates.provision(self.config.site_domain, deps["zone"])

  def _ensure_bucket(self, deps: dict[str, Any]) -> Any:
    return self.storage.ensure(self.config.site_domain, self.config.region)

  def _publish_edge_function(self, deps: dict[str, Any]) -> Any:
    return self.edge_function.provision(self.config.site_domain)

  def _build_distribution(self, deps: dict[str, Any]) -> Any:
    behavior = select_behavior(deps.get("edge_function"))
    distribution = self.distributions.build(
      self.config.site_domain, deps["bucket"], deps["certificate"], behavior
    )
    # Origin Access Control only works once the bucket trusts this distribution
    self.storage.grant_distribution_read(deps["bucket"], distribution.arn)
    return distribution

  def _bind_alias(self, deps: dict[str, Any]) -> Any:
    return self.dns.bind(deps["zone"], self.config.site_domain, deps["distribution"])

  def _deploy_content(self, deps: dict[str, Any]) -> Any:
    return self.deployer.deploy(self.config.asset_path, deps["bucket"], deps["distribution"])
