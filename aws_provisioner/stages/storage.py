"""S3 bucket creation for the department data buckets."""
from __future__ import annotations

import logging
from typing import List

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..results import ResourceRecord, StageResult
from ..utils import error_code, record_from_exception
from . import StageContext, register_stage

logger = logging.getLogger(__name__)

STAGE = "buckets"
MISSING_CODES = {"404", "NoSuchBucket", "NotFound"}


@register_stage(STAGE, order=40)
def ensure_buckets(context: StageContext) -> StageResult:
    """Create each department bucket that does not exist yet.

    The first failure ends the stage; later buckets are not attempted but the
    run continues.
    """

    s3 = context.session.client("s3")
    region = context.config.region
    resources: List[ResourceRecord] = []

    for bucket in context.manifest.buckets:
        try:
            if _bucket_exists(s3, bucket.name):
                logger.info("S3 bucket %s already exists", bucket.name)
                resources.append(ResourceRecord("S3", bucket.name, "EXISTING", bucket.department))
                continue
            _create_bucket(s3, bucket.name, region)
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Error creating S3 bucket %s: %s", bucket.name, exc)
            resources.append(
                record_from_exception("S3", "Failed to create bucket", exc, resource_id=bucket.name)
            )
            return StageResult(
                STAGE, "SKIPPED", f"Stopped at bucket {bucket.name}: {exc}", resources
            )
        logger.info("Created S3 bucket %s", bucket.name)
        resources.append(ResourceRecord("S3", bucket.name, "CREATED", bucket.department))

    return StageResult(STAGE, "SUCCESS", f"{len(resources)} bucket(s) ready", resources)


def _bucket_exists(s3: BaseClient, name: str) -> bool:
    try:
        s3.head_bucket(Bucket=name)
    except ClientError as exc:
        code = error_code(exc)
        if code in MISSING_CODES:
            return False
        if code in {"403", "AccessDenied", "Forbidden"}:
            logger.warning("S3 bucket %s exists but is not accessible to this account", name)
            return True
        raise
    return True


def _create_bucket(s3: BaseClient, name: str, region: str) -> None:
    if region == "us-east-1":
        s3.create_bucket(Bucket=name)
    else:
        s3.create_bucket(
            Bucket=name,
            CreateBucketConfiguration={"LocationConstraint": region},
        )


__all__ = ["ensure_buckets"]
