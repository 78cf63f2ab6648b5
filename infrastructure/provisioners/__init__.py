"""Provisioners for each resource of a static site."""

from .certificate import Certificate, CertificateProvisioner, ValidationState
from .deployment import ContentDeployer, Deployment, DeploymentResult, validate_asset_path
from .distribution import (
  DefaultBehavior,
  Distribution,
  DistributionBuilder,
  PlainBehavior,
  RewriteBehavior,
  select_behavior,
)
from .dns import AliasRecord, DnsAliasBinder
from .edge_function import EdgeFunction, EdgeRewriteFunction, rewrite_uri
from .storage import Bucket, StorageBucket
from .zone import DomainResolver, HostedZone

__all__ = [
  "AliasRecord",
  "Bucket",
  "Certificate",
  "CertificateProvisioner",
  "ContentDeployer",
  "DefaultBehavior",
  "Deployment",
  "DeploymentResult",
  "Distribution",
  "DistributionBuilder",
  "DnsAliasBinder",
  "DomainResolver",
  "EdgeFunction",
  "EdgeRewriteFunction",
  "HostedZone",
  "PlainBehavior",
  "RewriteBehavior",
  "StorageBucket",
  "ValidationState",
  "rewrite_uri",
  "select_behavior",
  "validate_asset_path",
]
