#!/usr/bin/env python3
"""Command line entry point for provisioning the static website."""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from infrastructure.clients import AwsClients, get_account_id
from infrastructure.config import SiteConfig
from infrastructure.errors import ConfigurationError, PartialApplyError, StaticSiteError
from infrastructure.static_site import StaticSite


def parse_context(pairs: list[str]) -> dict[str, str]:
  """Turn ``key=value`` strings into a context mapping."""
  context: dict[str, str] = {}
  for pair in pairs:
    key, sep, value = pair.partition("=")
    if not sep or not key:
      raise ConfigurationError(f"Context value {pair!r} must look like key=value")
    context[key.strip()] = value.strip()
  return context


def load_config(config_path: str | None, context: dict[str, str]) -> SiteConfig:
  """Read the YAML file when given, with ``-c`` values taking precedence."""
  if config_path:
    return SiteConfig.from_yaml(Path(config_path), overrides=context)
  return SiteConfig.from_context(context, base_dir=Path.cwd())


def resolve_account(config: SiteConfig, clients: AwsClients) -> SiteConfig:
  """Fill in the account ID from STS, or check it matches the credentials."""
  account_id = get_account_id(clients.sts)
  if config.account_id and config.account_id != account_id:
    raise ConfigurationError(
      f"accountId {config.account_id} does not match the credentials' account {account_id}"
    )
  return dataclasses.replace(config, account_id=account_id)


def main(argv: list[str] | None = None) -> None:
  """Apply or destroy the site described by the configuration."""
  parser = argparse.ArgumentParser(
    description="Provision a static website on S3, CloudFront, ACM and Route 53"
  )
  parser.add_argument(
    "command",
    nargs="?",
    choices=["apply", "destroy"],
    default="apply",
    help="apply (default) creates or converges the site, destroy tears it down",
  )
  parser.add_argument(
    "--config",
    help="YAML file with domain, subdomain, webPath, folderRedirects, accountId, region",
  )
  parser.add_argument(
    "-c",
    "--context",
    action="append",
    default=[],
    metavar="KEY=VALUE",
    help="Configuration value, e.g. -c domain=example.com -c subdomain=www",
  )
  parser.add_argument(
    "--format",
    choices=["text", "json"],
    default="text",
    help="Output format (default: text)",
  )
  parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
  args = parser.parse_args(argv)

  logging.basicConfig(
    level=logging.DEBUG if args.verbose else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
  )

  try:
    config = load_config(args.config, parse_context(args.context))
    clients = AwsClients.from_session(boto3.Session(), region=config.region)
    config = resolve_account(config, clients)
    site = StaticSite(config, clients)

    if args.command == "destroy":
      removed = site.destroy()
      print(f"Removed: {', '.join(removed) if removed else 'nothing'}")
      return

    outputs = site.apply()
  except PartialApplyError as e:
    print(f"Error: {e}", file=sys.stderr)
    print("Re-run apply to converge, or destroy to remove what exists.", file=sys.stderr)
    sys.exit(1)
  except StaticSiteError as e:
    print(f"Error: {e}", file=sys.stderr)
    sys.exit(1)
  except (ClientError, BotoCoreError) as e:
    print(f"AWS error: {e}", file=sys.stderr)
    sys.exit(1)

  if args.format == "json":
    print(json.dumps(outputs.to_dict(), indent=2))
  else:
    for key, value in outputs.to_dict().items():
      print(f"{key} = {value}")


if __name__ == "__main__":
  main()
