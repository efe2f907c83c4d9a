"""IAM users, the admin group and its policy."""
from __future__ import annotations

import logging
from typing import List

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..results import ResourceRecord, StageResult
from ..utils import error_code, record_from_exception
from . import StageContext, register_stage

logger = logging.getLogger(__name__)

STAGE = "identity"


@register_stage(STAGE, order=90)
def ensure_identity(context: StageContext) -> StageResult:
    """Create missing users and the group, attach the policy, add members.

    Policy attachment and group membership always run, even when every
    resource already existed.
    """

    manifest = context.manifest
    iam = context.session.client("iam")
    resources: List[ResourceRecord] = []
    try:
        for user_name in manifest.users:
            if _entity_exists(iam.get_user, UserName=user_name):
                logger.info("IAM user %s already exists", user_name)
                resources.append(ResourceRecord("IAM", user_name, "EXISTING", "user"))
            else:
                iam.create_user(UserName=user_name)
                logger.info("Created IAM user %s", user_name)
                resources.append(ResourceRecord("IAM", user_name, "CREATED", "user"))

        if _entity_exists(iam.get_group, GroupName=manifest.group):
            logger.info("IAM group %s already exists", manifest.group)
            resources.append(ResourceRecord("IAM", manifest.group, "EXISTING", "group"))
        else:
            iam.create_group(GroupName=manifest.group)
            logger.info("Created IAM group %s", manifest.group)
            resources.append(ResourceRecord("IAM", manifest.group, "CREATED", "group"))

        iam.attach_group_policy(GroupName=manifest.group, PolicyArn=manifest.group_policy_arn)
        logger.info("Attached %s to group %s", manifest.group_policy_arn, manifest.group)
        resources.append(
            ResourceRecord("IAM", f"{manifest.group}:{manifest.group_policy_arn}", "OK", "policy")
        )

        for user_name in manifest.users:
            iam.add_user_to_group(GroupName=manifest.group, UserName=user_name)
            logger.info("Added %s to group %s", user_name, manifest.group)
            resources.append(ResourceRecord("IAM", f"{manifest.group}:{user_name}", "OK", "membership"))
    except (ClientError, BotoCoreError) as exc:
        logger.error("IAM provisioning failed: %s", exc)
        resources.append(record_from_exception("IAM", "Failed to provision IAM", exc))
        return StageResult(STAGE, "FATAL", f"IAM provisioning failed: {exc}", resources)

    return StageResult(
        STAGE,
        "SUCCESS",
        f"{len(manifest.users)} user(s) in group {manifest.group}",
        resources,
    )


def _entity_exists(getter, **kwargs) -> bool:
    try:
        getter(**kwargs)
    except ClientError as exc:
        if error_code(exc) == "NoSuchEntity":
            return False
        raise
    return True


__all__ = ["ensure_identity"]
