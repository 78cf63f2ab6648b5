"""Typed errors raised while provisioning a static site."""


class StaticSiteError(Exception):
  """Base class for every provisioning failure."""


class ConfigurationError(StaticSiteError, ValueError):
  """Required input is missing or malformed. Raised before any AWS call."""


class ZoneNotFoundError(StaticSiteError, LookupError):
  """No public hosted zone matches the root domain."""

  def __init__(self, domain: str) -> None:
    super().__init__(f"No public Route 53 hosted zone found for {domain}")
    self.domain = domain


class WaitTimeoutError(StaticSiteError, TimeoutError):
  """A bounded polling wait ran out of time.

  The resource may still reach its target state, so re-running apply
  without any configuration change can succeed.
  """


class CertificateValidationTimeoutError(WaitTimeoutError):
  """ACM did not issue the certificate within the allotted window."""


ValidationTimeoutError = CertificateValidationTimeoutError


class DistributionDeployTimeoutError(WaitTimeoutError):
  """CloudFront did not finish deploying the distribution in time."""


class CertificateValidationFailedError(StaticSiteError):
  """ACM reported the certificate request as failed."""


class CertificateNotReadyError(StaticSiteError, ValueError):
  """A certificate that is not validated or not for the site was passed on."""


class NameCollisionError(StaticSiteError):
  """The bucket name is already taken by another AWS account."""

  def __init__(self, bucket_name: str) -> None:
    super().__init__(
      f"Bucket name {bucket_name} is already taken; choose a different subdomain"
    )
    self.bucket_name = bucket_name


class AssetPathInvalidError(StaticSiteError):
  """The asset source path is missing, not a directory, or empty."""

  def __init__(self, path: str, reason: str) -> None:
    super().__init__(f"Asset path {path} is invalid: {reason}")
    self.path = path
    self.reason = reason


class EdgeFunctionValidationError(StaticSiteError):
  """The compiled viewer-request function disagrees with rewrite_uri."""


class UploadFailedError(StaticSiteError):
  """One or more object transfers failed; the cache was not invalidated."""

  def __init__(self, failed: dict[str, str]) -> None:
    keys = ", ".join(sorted(failed))
    super().__init__(f"{len(failed)} object transfer(s) failed: {keys}")
    self.failed = failed


class BucketNotEmptyError(StaticSiteError):
  """Teardown found objects in a bucket without auto-cleanup enabled."""

  def __init__(self, bucket_name: str) -> None:
    super().__init__(
      f"Bucket {bucket_name} is not empty and auto_delete_objects is disabled"
    )
    self.bucket_name = bucket_name


class PartialApplyError(StaticSiteError):
  """A step failed after earlier resources were created.

  Nothing is rolled back. ``existing`` names the resources that reached a
  ready state so the caller can re-run apply or tear down explicitly.
  """

  def __init__(self, step: str, existing: list[str], cause: Exception) -> None:
    created = ", ".join(existing)
    super().__init__(f"Apply failed at {step} ({cause}); resources now present: {created}")
    self.step = step
    self.existing = existing
    self.cause = cause


class GraphError(StaticSiteError):
  """The resource graph references unknown nodes or contains a cycle."""
