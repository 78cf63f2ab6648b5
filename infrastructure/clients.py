"""boto3 clients used by the provisioners."""

from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config

from infrastructure.config import DEFAULT_REGION

# Standard retry mode backs off on throttling from the control plane APIs
_CLIENT_CONFIG = Config(
  connect_timeout=10,
  read_timeout=60,
  retries={"max_attempts": 5, "mode": "standard"},
)


@dataclass
class AwsClients:
  """One client per service touched while provisioning a site."""

  route53: Any
  acm: Any
  s3: Any
  cloudfront: Any
  sts: Any

  @classmethod
  def from_session(
    cls, session: boto3.Session | None = None, region: str = DEFAULT_REGION
  ) -> "AwsClients":
    """Create clients from a boto3 session.

    ACM is always addressed in us-east-1 because CloudFront only accepts
    certificates from that region. Route 53 and CloudFront are global.
    """
    session = session or boto3.Session()
    return cls(
      route53=session.client("route53", config=_CLIENT_CONFIG),
      acm=session.client("acm", region_name=DEFAULT_REGION, config=_CLIENT_CONFIG),
      s3=session.client("s3", region_name=region, config=_CLIENT_CONFIG),
      cloudfront=session.client("cloudfront", config=_CLIENT_CONFIG),
      sts=session.client("sts", region_name=region, config=_CLIENT_CONFIG),
    )


def get_account_id(sts: Any) -> str:
  """Get AWS account ID from current credentials."""
  return str(sts.get_caller_identity()["Account"])


def error_code(error: Exception) -> str:
  """Return the AWS error code of a botocore ClientError, or an empty string."""
  response = getattr(error, "response", None) or {}
  return str(response.get("Error", {}).get("Code", ""))
