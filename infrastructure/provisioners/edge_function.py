"""CloudFront Function that rewrites folder paths to index.html."""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from botocore.exceptions import ClientError
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from infrastructure.clients import error_code
from infrastructure.errors import EdgeFunctionValidationError

logger = logging.getLogger(__name__)

INDEX_DOCUMENT = "index.html"
RUNTIME = "cloudfront-js-2.0"
VIEWER_REQUEST = "viewer-request"

# Checked against the compiled function before it is published
SAMPLE_URIS = (
  "/",
  "/blog/",
  "/blog",
  "/styles.css",
  "/a/b/",
  "/docs/v1.2",
  "/a.b/c",
)


def rewrite_uri(uri: str) -> str:
  """Map a directory style request path to its index document.

  ``/`` is left alone so the distribution's default root object applies.
  A path whose last ``.`` comes before its last ``/`` is treated as a
  folder, so ``/docs/v1.2`` counts as a file and is left unchanged.
  """
  if uri == "/":
    return uri
  if uri.endswith("/"):
    return uri + INDEX_DOCUMENT
  if uri.rfind(".") < uri.rfind("/"):
    return uri + "/" + INDEX_DOCUMENT
  return uri


@dataclass(frozen=True)
class EdgeFunction:
  """Published CloudFront Function attached to viewer requests."""

  name: str
  source: str
  arn: str
  trigger_event: str = VIEWER_REQUEST


def function_name(site_domain: str) -> str:
  # CloudFront Function names allow [a-zA-Z0-9-_] up to 64 characters
  base = re.sub(r"[^a-zA-Z0-9_-]", "-", site_domain)
  return f"{base[:48]}-folder-rewrite"


class EdgeRewriteFunction:
  """Build, validate and publish the folder rewrite function."""

  def __init__(self, cloudfront: Any) -> None:
    self.cloudfront = cloudfront
    self.templates_dir = Path(__file__).parent.parent / "templates"
    self.jinja_env = Environment(
      loader=FileSystemLoader(str(self.templates_dir)),
      autoescape=False,
      keep_trailing_newline=True,
      undefined=StrictUndefined,
    )

  def render(self, site_domain: str) -> str:
    template = self.jinja_env.get_template("viewer_request.js.j2")
    return template.render(site_domain=site_domain, index_document=INDEX_DOCUMENT)

  def provision(self, site_domain: str) -> EdgeFunction:
    """Publish the function, or reuse the LIVE stage when its code is current.

    Raises:
      EdgeFunctionValidationError: If the DEVELOPMENT stage does not
        produce the same paths as rewrite_uri. Nothing is published then.
    """
    name = function_name(site_domain)
    source = self.render(site_domain)

    live_arn = self._live_arn_if_current(name, source)
    if live_arn is not None:
      logger.info("Function %s is up to date", name)
      return EdgeFunction(name=name, source=source, arn=live_arn)

    config = {"Comment": f"Folder rewrite for {site_domain}", "Runtime": RUNTIME}
    development = self._describe(name, "DEVELOPMENT")
    if development is None:
      logger.info("Creating function %s", name)
      response = self.cloudfront.create_function(
        Name=name, FunctionConfig=config, FunctionCode=source.encode()
      )
    else:
      logger.info("Updating function %s", name)
      response = self.cloudfront.update_function(
        Name=name,
        IfMatch=development["ETag"],
        FunctionConfig=config,
        FunctionCode=source.encode(),
      )
    etag = response["ETag"]

    self.validate(name, etag)

    response = self.cloudfront.publish_function(Name=name, IfMatch=etag)
    arn = response["FunctionSummary"]["FunctionMetadata"]["FunctionARN"]
    logger.info("Published function %s", arn)
    return EdgeFunction(name=name, source=source, arn=arn)

  def validate(self, name: str, etag: str) -> None:
    """Run the DEVELOPMENT stage against SAMPLE_URIS and compare with rewrite_uri."""
    mismatches: list[str] = []
    for uri in SAMPLE_URIS:
      result = self.cloudfront.test_function(
        Name=name,
        IfMatch=etag,
        Stage="DEVELOPMENT",
        EventObject=json.dumps(_viewer_request_event(uri)).encode(),
      )["TestResult"]

      if result.get("FunctionErrorMessage"):
        raise EdgeFunctionValidationError(
          f"Function {name} failed for {uri}: {result['FunctionErrorMessage']}"
        )

      output = json.loads(result.get("FunctionOutput") or "{}")
      actual = output.get("request", output).get("uri")
      expected = rewrite_uri(uri)
      if actual != expected:
        mismatches.append(f"{uri} -> {actual} (expected {expected})")

    if mismatches:
      raise EdgeFunctionValidationError(
        f"Function {name} disagrees with rewrite_uri: {'; '.join(mismatches)}"
      )

  def delete(self, site_domain: str) -> bool:
    """Delete the function. Returns False if it does not exist."""
    name = function_name(site_domain)
    development = self._describe(name, "DEVELOPMENT")
    if development is None:
      return False
    logger.info("Deleting function %s", name)
    self.cloudfront.delete_function(Name=name, IfMatch=development["ETag"])
    return True

  def _describe(self, name: str, stage: str) -> dict[str, Any] | None:
    try:
      response: dict[str, Any] = self.cloudfront.describe_function(Name=name, Stage=stage)
      return response
    except ClientError as e:
      if error_code(e) == "NoSuchFunctionExists":
        return None
      raise

  def _live_arn_if_current(self, name: str, source: str) -> str | None:
    live = self._describe(name, "LIVE")
    if live is None:
      return None
    code = self.cloudfront.get_function(Name=name, Stage="LIVE")["FunctionCode"]
    if hasattr(code, "read"):
      code = code.read()
    if code != source.encode():
      return None
    arn: str = live["FunctionSummary"]["FunctionMetadata"]["FunctionARN"]
    return arn


def _viewer_request_event(uri: str) -> dict[str, Any]:
  return {
    "version": "1.0",
    "context": {"eventType": VIEWER_REQUEST},
    "viewer": {"ip": "198.51.100.10"},
    "request": {
      "method": "GET",
      "uri": uri,
      "headers": {},
      "cookies": {},
      "querystring": {},
    },
  }
