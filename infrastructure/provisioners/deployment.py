"""Sync the built site into the bucket and invalidate the CDN cache."""

import hashlib
import logging
import mimetypes
import time
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from botocore.exceptions import ClientError

from infrastructure.clients import error_code
from infrastructure.errors import AssetPathInvalidError, UploadFailedError, WaitTimeoutError
from infrastructure.provisioners.distribution import Distribution
from infrastructure.provisioners.storage import Bucket
from infrastructure.waiter import wait_until

logger = logging.getLogger(__name__)

INVALIDATION_PATHS = ("/*",)
# Bucket tag set while the content changed but the cache was not yet invalidated
PENDING_INVALIDATION_TAG = "static-site:pending-invalidation"


@dataclass(frozen=True)
class Deployment:
  """One apply-time content push. Not persisted."""

  source_path: str
  destination_bucket: str
  invalidation_paths: tuple[str, ...] = INVALIDATION_PATHS


@dataclass
class DeploymentResult:
  """What a deployment changed."""

  deployment: Deployment
  uploaded: list[str] = field(default_factory=list)
  deleted: list[str] = field(default_factory=list)
  unchanged: int = 0
  invalidation_id: str | None = None

  @property
  def changed(self) -> bool:
    return bool(self.uploaded or self.deleted)


def validate_asset_path(asset_path: str) -> Path:
  """Check that the asset folder exists and holds at least one file.

  Raises:
    AssetPathInvalidError: Otherwise. Called before any AWS call.
  """
  path = Path(asset_path)
  if not path.exists():
    raise AssetPathInvalidError(asset_path, "does not exist")
  if not path.is_dir():
    raise AssetPathInvalidError(asset_path, "is not a directory")
  if not any(p.is_file() for p in path.rglob("*")):
    raise AssetPathInvalidError(asset_path, "contains no files")
  return path


def local_files(root: Path) -> dict[str, Path]:
  """Map of S3 key to local file for every file under ``root``."""
  return {
    file_path.relative_to(root).as_posix(): file_path
    for file_path in sorted(root.rglob("*"))
    if file_path.is_file()
  }


def md5_hex(file_path: Path) -> str:
  digest = hashlib.md5(usedforsecurity=False)
  with open(file_path, "rb") as f:
    for chunk in iter(lambda: f.read(1024 * 1024), b""):
      digest.update(chunk)
  return digest.hexdigest()


class ContentDeployer:
  """Make the bucket match the asset tree, then invalidate ``/*``.

  Uploads run concurrently. The invalidation waits for all of them and is
  skipped entirely when any transfer failed. Until it succeeds the bucket
  carries PENDING_INVALIDATION_TAG, so a later deploy retries it even when
  no file changed.
  """

  def __init__(
    self,
    s3: Any,
    cloudfront: Any,
    *,
    max_workers: int = 8,
    prune: bool = True,
    wait_for_invalidation: bool = False,
    timeout: float = 900.0,
    interval: float = 15.0,
    sleep: Callable[[float], None] = time.sleep,
  ) -> None:
    self.s3 = s3
    self.cloudfront = cloudfront
    self.max_workers = max_workers
    self.prune = prune
    self.wait_for_invalidation = wait_for_invalidation
    self.timeout = timeout
    self.interval = interval
    self.sleep = sleep

  def deploy(self, asset_path: str, bucket: Bucket, distribution: Distribution) -> DeploymentResult:
    """Sync ``asset_path`` into ``bucket`` and invalidate ``distribution``.

    Raises:
      AssetPathInvalidError: If the asset folder is missing or empty.
      UploadFailedError: If any object transfer failed. No invalidation
        is issued in that case.
    """
    root = validate_asset_path(asset_path)
    deployment = Deployment(source_path=str(root), destination_bucket=bucket.name)
    result = DeploymentResult(deployment=deployment)

    local = local_files(root)
    remote = self._remote_etags(bucket.name)

    to_upload = [key for key, path in local.items() if remote.get(key) != md5_hex(path)]
    to_delete = sorted(set(remote) - set(local)) if self.prune else []
    result.unchanged = len(local) - len(to_upload)

    pending = self.invalidation_pending(bucket.name)
    if (to_upload or to_delete) and not pending:
      self._set_invalidation_pending(bucket.name, True)

    failed: dict[str, str] = {}
    if to_upload:
      logger.info("Uploading %d file(s) to s3://%s/", len(to_upload), bucket.name)
      with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
        outcomes = pool.map(lambda key: self._upload(bucket.name, key, local[key]), to_upload)
        for key, error in zip(to_upload, outcomes, strict=True):
          if error is None:
            result.uploaded.append(key)
          else:
            failed[key] = error

    if failed:
      raise UploadFailedError(failed)

    if to_delete:
      failed.update(self._delete(bucket.name, to_delete))
      result.deleted = [key for key in to_delete if key not in failed]
      if failed:
        raise UploadFailedError(failed)

    if not result.changed:
      if not pending:
        logger.info("Bucket %s already matches %s", bucket.name, root)
        return result
      logger.info("Retrying the invalidation left pending for %s", bucket.name)

    result.invalidation_id = self.invalidate(distribution, deployment.invalidation_paths)
    self._set_invalidation_pending(bucket.name, False)
    return result

  def invalidation_pending(self, bucket_name: str) -> bool:
    return PENDING_INVALIDATION_TAG in self._bucket_tags(bucket_name)

  def invalidate(self, distribution: Distribution, paths: tuple[str, ...]) -> str:
    response = self.cloudfront.create_invalidation(
      DistributionId=distribution.distribution_id,
      InvalidationBatch={
        "Paths": {"Quantity": len(paths), "Items": list(paths)},
        "CallerReference": str(uuid.uuid4()),
      },
    )
    invalidation_id = str(response["Invalidation"]["Id"])
    logger.info(
      "Created invalidation %s for %s", invalidation_id, distribution.distribution_id
    )

    if self.wait_for_invalidation:

      def completed() -> bool | None:
        status = self.cloudfront.get_invalidation(
          DistributionId=distribution.distribution_id, Id=invalidation_id
        )["Invalidation"]["Status"]
        return True if status == "Completed" else None

      wait_until(
        completed,
        description=f"invalidation {invalidation_id}",
        timeout=self.timeout,
        interval=self.interval,
        error=WaitTimeoutError,
        sleep=self.sleep,
      )
    return invalidation_id

  def _bucket_tags(self, bucket_name: str) -> dict[str, str]:
    try:
      response = self.s3.get_bucket_tagging(Bucket=bucket_name)
    except ClientError as e:
      if error_code(e) == "NoSuchTagSet":
        return {}
      raise
    return {tag["Key"]: tag["Value"] for tag in response.get("TagSet", [])}

  def _set_invalidation_pending(self, bucket_name: str, pending: bool) -> None:
    tags = self._bucket_tags(bucket_name)
    if pending:
      tags[PENDING_INVALIDATION_TAG] = "true"
    else:
      tags.pop(PENDING_INVALIDATION_TAG, None)

    # put_bucket_tagging replaces the whole tag set
    if tags:
      self.s3.put_bucket_tagging(
        Bucket=bucket_name,
        Tagging={"TagSet": [{"Key": k, "Value": v} for k, v in tags.items()]},
      )
    else:
      self.s3.delete_bucket_tagging(Bucket=bucket_name)

  def _remote_etags(self, bucket_name: str) -> dict[str, str]:
    etags: dict[str, str] = {}
    paginator = self.s3.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket_name):
      for obj in page.get("Contents", []):
        etags[obj["Key"]] = obj["ETag"].strip('"')
    return etags

  def _upload(self, bucket_name: str, key: str, file_path: Path) -> str | None:
    """Upload one file. Returns an error message instead of raising."""
    content_type, _ = mimetypes.guess_type(file_path.name)
    extra: dict[str, Any] = {"ContentType": content_type or "application/octet-stream"}
    if file_path.suffix == ".html":
      extra["CacheControl"] = "no-cache"
    try:
      with open(file_path, "rb") as f:
        self.s3.put_object(Bucket=bucket_name, Key=key, Body=f, **extra)
    except (ClientError, OSError) as e:
      logger.error("Failed to upload %s: %s", key, e)
      return str(e)
    return None

  def _delete(self, bucket_name: str, keys: list[str]) -> dict[str, str]:
    failed: dict[str, str] = {}
    for start in range(0, len(keys), 1000):
      batch = keys[start : start + 1000]
      response = self.s3.delete_objects(
        Bucket=bucket_name,
        Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
      )
      for error in response.get("Errors", []):
        failed[error["Key"]] = error.get("Message", error.get("Code", "delete failed"))
    if keys:
      logger.info("Removed %d stale object(s) from %s", len(keys) - len(failed), bucket_name)
    return failed
