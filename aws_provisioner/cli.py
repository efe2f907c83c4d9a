"""Command line interface for the AWS environment provisioner."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, NoReturn, Optional

import boto3

from .config import VALID_ENVIRONMENTS, ProvisionConfig
from .core import print_report, provision, report_to_dict
from .errors import InvalidEnvironmentError, PrerequisiteError, UsageError
from .preflight import check_prerequisites

logger = logging.getLogger(__name__)

QUIET_LOGGERS = ("boto3", "botocore", "paramiko", "urllib3")


class _ArgumentParser(argparse.ArgumentParser):
    """Parser that reports usage problems as :class:`UsageError` instead of exiting 2."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="aws-provisioner",
        description="Provision the security group, key pair, EC2 instances, S3 buckets "
        "and IAM users of a demo environment, then deploy and verify a web page.",
    )
    parser.add_argument(
        "environment",
        nargs="*",
        help=f"Environment label, one of: {', '.join(VALID_ENVIRONMENTS)}",
    )
    parser.add_argument("--profile", help="AWS CLI profile to use (default: $AWS_PROFILE)", default=None)
    parser.add_argument("--region", help="AWS region (default: $AWS_REGION or us-east-1)", default=None)
    parser.add_argument("--company", help="Company prefix for bucket names", default=None)
    parser.add_argument("--key-dir", dest="key_dir", help="Directory for the private key file", default=None)
    parser.add_argument(
        "--reuse-instances",
        action="store_true",
        help="Reuse running instances with the same Name tag instead of launching duplicates",
    )
    parser.add_argument("--json", dest="json_path", help="Optional path to export the run report as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Return parsed arguments; raise :class:`UsageError` unless exactly one environment is given."""

    args = build_parser().parse_args(argv)
    if len(args.environment) != 1:
        raise UsageError(
            f"expected exactly one environment argument, got {len(args.environment)}"
        )
    args.environment = args.environment[0]
    return args


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point used by ``python -m aws_provisioner``."""

    try:
        args = parse_args(argv)
    except UsageError as exc:
        print(build_parser().format_usage().rstrip(), file=sys.stderr)
        print(f"Error: {exc}", file=sys.stderr)
        return exc.exit_code

    configure_logging(args.verbose)

    try:
        config = ProvisionConfig.from_env(
            args.environment,
            profile=args.profile,
            region=args.region,
            company=args.company,
            key_dir=args.key_dir,
            reuse_instances=args.reuse_instances,
        )
    except InvalidEnvironmentError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return exc.exit_code

    try:
        check_prerequisites(config)
    except PrerequisiteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return exc.exit_code

    session = boto3.Session(profile_name=config.profile, region_name=config.region)
    report = provision(session, config)
    print_report(report)

    if args.json_path:
        with open(args.json_path, "w", encoding="utf-8") as fh:
            json.dump(report_to_dict(report), fh, indent=2, default=str)
        print(f"Report exported to {args.json_path}")

    return report.exit_code


__all__ = ["build_parser", "configure_logging", "main", "parse_args"]
