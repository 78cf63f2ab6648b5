"""Private S3 bucket holding the site content."""

import json
import logging
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import ClientError

from infrastructure.clients import error_code
from infrastructure.errors import BucketNotEmptyError, NameCollisionError

logger = logging.getLogger(__name__)

POLICY_SID = "AllowCloudFrontServicePrincipalReadOnly"

_BLOCK_ALL = {
  "BlockPublicAcls": True,
  "IgnorePublicAcls": True,
  "BlockPublicPolicy": True,
  "RestrictPublicBuckets": True,
}


@dataclass(frozen=True)
class Bucket:
  """Bucket named after the site domain. Never publicly readable."""

  name: str
  region: str
  public_access: bool = False

  @property
  def arn(self) -> str:
    return f"arn:aws:s3:::{self.name}"

  @property
  def regional_domain_name(self) -> str:
    return f"{self.name}.s3.{self.region}.amazonaws.com"


class StorageBucket:
  """Create, lock down and remove the site bucket."""

  def __init__(self, s3: Any, *, account_id: str | None = None) -> None:
    self.s3 = s3
    self.account_id = account_id

  def ensure(self, bucket_name: str, region: str) -> Bucket:
    """Create the bucket if needed and block all public access.

    Raises:
      NameCollisionError: If another account owns a bucket with this name.
    """
    if not self.exists(bucket_name):
      self._create(bucket_name, region)
    self._block_public_access(bucket_name)
    return Bucket(name=bucket_name, region=region)

  def exists(self, bucket_name: str) -> bool:
    params: dict[str, Any] = {"Bucket": bucket_name}
    if self.account_id:
      params["ExpectedBucketOwner"] = self.account_id
    try:
      self.s3.head_bucket(**params)
      return True
    except ClientError as e:
      code = error_code(e)
      if code in ("404", "NoSuchBucket", "NotFound"):
        return False
      if code in ("403", "AccessDenied", "Forbidden"):
        raise NameCollisionError(bucket_name) from e
      raise

  def grant_distribution_read(self, bucket: Bucket, distribution_arn: str) -> None:
    """Allow only the given CloudFront distribution to read objects."""
    statement = {
      "Sid": POLICY_SID,
      "Effect": "Allow",
      "Principal": {"Service": "cloudfront.amazonaws.com"},
      "Action": "s3:GetObject",
      "Resource": f"{bucket.arn}/*",
      "Condition": {"StringEquals": {"AWS:SourceArn": distribution_arn}},
    }

    policy = self._get_policy(bucket.name)
    statements = policy.get("Statement", [])
    if statement in statements:
      return

    statements = [s for s in statements if s.get("Sid") != POLICY_SID] + [statement]
    policy = {"Version": "2012-10-17", **policy, "Statement": statements}
    logger.info("Granting %s read access to %s", distribution_arn, bucket.name)
    self.s3.put_bucket_policy(Bucket=bucket.name, Policy=json.dumps(policy))

  def delete(self, bucket_name: str, *, auto_delete_objects: bool = False) -> bool:
    """Delete the bucket. Returns False if it does not exist.

    Raises:
      BucketNotEmptyError: If objects remain and auto_delete_objects is off.
    """
    if not self.exists(bucket_name):
      return False

    keys = self.list_keys(bucket_name)
    if keys and not auto_delete_objects:
      raise BucketNotEmptyError(bucket_name)

    for start in range(0, len(keys), 1000):
      batch = keys[start : start + 1000]
      self.s3.delete_objects(
        Bucket=bucket_name,
        Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
      )
    if keys:
      logger.info("Emptied bucket %s (%d objects)", bucket_name, len(keys))

    logger.info("Deleting bucket %s", bucket_name)
    self.s3.delete_bucket(Bucket=bucket_name)
    return True

  def list_keys(self, bucket_name: str) -> list[str]:
    keys: list[str] = []
    paginator = self.s3.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket_name):
      keys.extend(obj["Key"] for obj in page.get("Contents", []))
    return keys

  def _create(self, bucket_name: str, region: str) -> None:
    logger.info("Creating bucket %s in %s", bucket_name, region)
    params: dict[str, Any] = {"Bucket": bucket_name}
    if region != "us-east-1":
      params["CreateBucketConfiguration"] = {"LocationConstraint": region}
    try:
      self.s3.create_bucket(**params)
    except ClientError as e:
      code = error_code(e)
      if code == "BucketAlreadyExists":
        raise NameCollisionError(bucket_name) from e
      if code != "BucketAlreadyOwnedByYou":
        raise

  def _block_public_access(self, bucket_name: str) -> None:
    try:
      response = self.s3.get_public_access_block(Bucket=bucket_name)
      current = response["PublicAccessBlockConfiguration"]
    except ClientError as e:
      if error_code(e) != "NoSuchPublicAccessBlockConfiguration":
        raise
      current = {}

    if all(current.get(key) is True for key in _BLOCK_ALL):
      return

    self.s3.put_public_access_block(
      Bucket=bucket_name, PublicAccessBlockConfiguration=dict(_BLOCK_ALL)
    )

  def _get_policy(self, bucket_name: str) -> dict[str, Any]:
    try:
      response = self.s3.get_bucket_policy(Bucket=bucket_name)
    except ClientError as e:
      if error_code(e) == "NoSuchBucketPolicy":
        return {}
      raise
    policy: dict[str, Any] = json.loads(response["Policy"])
    return policy
