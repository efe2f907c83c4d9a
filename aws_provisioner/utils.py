"""Shared helpers for provisioning stages."""
from __future__ import annotations

from typing import Iterator

import boto3
from botocore.exceptions import ClientError, OperationNotPageableError

from .results import ResourceRecord, ResourceStatus


def safe_paginate(client: boto3.client, method_name: str, result_key: str, **kwargs) -> Iterator[dict]:
    """Iterate through paginated boto3 results while handling pagination gaps."""

    try:
        paginator = client.get_paginator(method_name)
    except OperationNotPageableError:
        response = getattr(client, method_name)(**kwargs)
        for item in response.get(result_key, []):
            yield item
        return

    for page in paginator.paginate(**kwargs):
        for item in page.get(result_key, []):
            yield item


def error_code(exc: Exception) -> str:
    """Return the AWS error code from a botocore exception, if present."""

    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "")
    return ""


def record_from_exception(
    service: str,
    action: str,
    exc: Exception,
    *,
    resource_id: str = "*",
    status: ResourceStatus = "FAILED",
) -> ResourceRecord:
    """Create a :class:`ResourceRecord` describing an exception raised by ``action``.

    The helper keeps failure details formatted the same way across stages while
    leaving the caller in control of the status and resource identifier.
    """

    action = action.rstrip(".")
    return ResourceRecord(
        service=service, resource_id=resource_id, status=status, details=f"{action}: {exc}"
    )


__all__ = ["error_code", "record_from_exception", "safe_paginate"]
