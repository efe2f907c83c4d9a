"""SSH key pair creation."""
from __future__ import annotations

import logging
import os

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..results import ResourceRecord, StageResult
from ..utils import error_code, record_from_exception
from . import StageContext, register_stage

logger = logging.getLogger(__name__)

STAGE = "key-pair"


@register_stage(STAGE, order=20)
def ensure_key_pair(context: StageContext) -> StageResult:
    """Create the key pair once and keep its private key on local disk."""

    config = context.config
    ec2 = context.session.client("ec2")
    key_path = config.key_path
    try:
        if _key_pair_exists(ec2, config.key_name):
            logger.info("Key pair %s already exists", config.key_name)
            if not os.path.exists(key_path):
                logger.warning(
                    "Private key %s is missing locally; SSH to new instances will fail", key_path
                )
            context.state.key_path = key_path
            return StageResult(
                STAGE,
                "SUCCESS",
                f"Key pair {config.key_name} already exists",
                [ResourceRecord("EC2", config.key_name, "EXISTING", key_path)],
            )

        response = ec2.create_key_pair(KeyName=config.key_name)
        _write_private_key(key_path, response["KeyMaterial"])
    except (ClientError, BotoCoreError, OSError) as exc:
        logger.error("Key pair setup failed: %s", exc)
        return StageResult(
            STAGE,
            "FATAL",
            f"Key pair setup failed: {exc}",
            [record_from_exception("EC2", "Failed to create key pair", exc,
                                   resource_id=config.key_name)],
        )

    logger.info("Created key pair %s and saved it to %s", config.key_name, key_path)
    context.state.key_path = key_path
    return StageResult(
        STAGE,
        "SUCCESS",
        f"Created key pair {config.key_name}",
        [ResourceRecord("EC2", config.key_name, "CREATED", key_path)],
    )


def _key_pair_exists(ec2: BaseClient, key_name: str) -> bool:
    try:
        response = ec2.describe_key_pairs(KeyNames=[key_name])
    except ClientError as exc:
        if error_code(exc) == "InvalidKeyPair.NotFound":
            return False
        raise
    return bool(response.get("KeyPairs"))


def _write_private_key(path: str, material: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    if os.path.exists(path):
        # a previous read-only key file would block the write
        os.chmod(path, 0o600)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(material)
    os.chmod(path, 0o400)


__all__ = ["ensure_key_pair"]
