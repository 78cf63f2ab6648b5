"""Configuration loader for the static site."""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from infrastructure.errors import ConfigurationError

# ACM certificates used by CloudFront must live in us-east-1
DEFAULT_REGION = "us-east-1"

_LABEL = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")
_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off", ""}


@dataclass(frozen=True)
class SiteConfig:
  """Configuration for the static site."""

  root_domain: str
  sub_domain: str
  asset_path: str
  folder_redirects: bool = False
  account_id: str | None = None
  region: str = DEFAULT_REGION
  auto_delete_objects: bool = False
  certificate_timeout: float = 1800.0  # seconds
  distribution_timeout: float = 1800.0  # seconds
  poll_interval: float = 15.0  # seconds
  upload_workers: int = 8
  wait_for_deployment: bool = True

  @property
  def site_domain(self) -> str:
    """Full domain of the site, also used as bucket and record name."""
    return f"{self.sub_domain}.{self.root_domain}"

  @property
  def site_url(self) -> str:
    return f"https://{self.site_domain}"

  def validate(self) -> None:
    """Check every field, raising ConfigurationError listing all problems."""
    problems: list[str] = []

    if not self.root_domain:
      problems.append("domain is required")
    elif "." not in self.root_domain or not all(
      _LABEL.match(label) for label in self.root_domain.split(".")
    ):
      problems.append(f"domain {self.root_domain!r} is not a valid DNS name")

    if not self.sub_domain:
      problems.append("subdomain is required")
    elif not all(_LABEL.match(label) for label in self.sub_domain.split(".")):
      problems.append(f"subdomain {self.sub_domain!r} is not a valid DNS label")

    # S3 bucket names are limited to 63 characters
    if self.root_domain and self.sub_domain and len(self.site_domain) > 63:
      problems.append(f"{self.site_domain} is longer than 63 characters")

    if not self.asset_path:
      problems.append("webPath is required")

    if self.account_id is not None and not re.fullmatch(r"\d{12}", self.account_id):
      problems.append(f"accountId {self.account_id!r} must be 12 digits")

    if not self.region:
      problems.append("region must not be empty")

    for name in ("certificate_timeout", "distribution_timeout", "poll_interval"):
      if getattr(self, name) <= 0:
        problems.append(f"{name} must be positive")

    if self.upload_workers < 1:
      problems.append("upload_workers must be at least 1")

    if problems:
      raise ConfigurationError("; ".join(problems))

  @classmethod
  def from_context(
    cls, context: Mapping[str, Any], base_dir: Path | None = None
  ) -> "SiteConfig":
    """Build a config from context-style camelCase keys.

    Args:
      context: Mapping with keys such as ``domain``, ``subdomain``, ``webPath``
        and ``folderRedirects``. Values may be strings, as passed with ``-c``.
      base_dir: Directory that a relative ``webPath`` is resolved against.

    Returns:
      A validated SiteConfig.

    Raises:
      ConfigurationError: If a value is missing or malformed.
    """
    web_path = str(context.get("webPath") or "")
    if web_path and base_dir is not None and not Path(web_path).is_absolute():
      web_path = str(base_dir / web_path)

    account_id = context.get("accountId")

    config = cls(
      root_domain=str(context.get("domain") or "").strip().lower(),
      sub_domain=str(context.get("subdomain") or "").strip().lower(),
      asset_path=web_path,
      folder_redirects=_to_bool("folderRedirects", context.get("folderRedirects", False)),
      account_id=str(account_id) if account_id else None,
      region=str(context.get("region") or DEFAULT_REGION),
      auto_delete_objects=_to_bool(
        "autoDeleteObjects", context.get("autoDeleteObjects", False)
      ),
      certificate_timeout=_to_number(
        "certificateTimeout", context.get("certificateTimeout", 1800.0), float
      ),
      distribution_timeout=_to_number(
        "distributionTimeout", context.get("distributionTimeout", 1800.0), float
      ),
      poll_interval=_to_number("pollInterval", context.get("pollInterval", 15.0), float),
      upload_workers=_to_number("uploadWorkers", context.get("uploadWorkers", 8), int),
      wait_for_deployment=_to_bool(
        "waitForDeployment", context.get("waitForDeployment"), default=True
      ),
    )
    config.validate()
    return config

  @classmethod
  def from_yaml(
    cls, path: Path | str = "sites.yaml", overrides: Mapping[str, Any] | None = None
  ) -> "SiteConfig":
    """Load configuration from a YAML file, with optional context overrides."""
    path = Path(path)
    try:
      with open(path) as f:
        data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
      raise ConfigurationError(f"Config file {path} not found") from e
    except yaml.YAMLError as e:
      raise ConfigurationError(f"Config file {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
      raise ConfigurationError(f"Config file {path} must contain a mapping")

    # Context overrides win over values from the file
    merged = {**data, **(overrides or {})}
    return cls.from_context(merged, base_dir=path.parent)


def _to_bool(key: str, value: Any, default: bool = False) -> bool:
  if value is None:
    return default
  if isinstance(value, bool):
    return value
  text = str(value).strip().lower()
  if text in _TRUE:
    return True
  if text in _FALSE:
    return False
  raise ConfigurationError(f"{key} must be a boolean, got {value!r}")


def _to_number(key: str, value: Any, kind: type) -> Any:
  try:
    return kind(value)
  except (TypeError, ValueError) as e:
    raise ConfigurationError(f"{key} must be a number, got {value!r}") from e
