"""EC2 instance launch, one instance per manifest entry."""
from __future__ import annotations

import logging
from typing import Dict, List

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import StageError
from ..manifest import InstanceSpec
from ..results import LaunchedInstance, ResourceRecord, StageResult
from ..utils import record_from_exception, safe_paginate
from . import StageContext, register_stage

logger = logging.getLogger(__name__)

STAGE = "instances"
LIVE_STATES = ["pending", "running"]


@register_stage(STAGE, order=30)
def launch_instances(context: StageContext) -> StageResult:
    """Launch every manifest instance and wait until all of them are running.

    Instances are launched unconditionally unless ``reuse_instances`` is set,
    so running twice yields two copies of each Name tag. Existing copies are
    reported with a warning.
    """

    config = context.config
    state = context.state
    ec2 = context.session.client("ec2")
    resources: List[ResourceRecord] = []
    launched: Dict[str, LaunchedInstance] = {}

    try:
        if not state.security_group_id:
            raise StageError("No security group id available for instance launch")

        for spec in context.manifest.instances:
            existing = _find_live_instances(ec2, spec.name)
            if existing and config.reuse_instances:
                instance_id = existing[0]
                logger.info("Reusing %s: %s", spec.name, instance_id)
                resources.append(ResourceRecord("EC2", instance_id, "EXISTING", spec.name))
            else:
                if existing:
                    logger.warning(
                        "%s already has %d live instance(s) (%s); launching another",
                        spec.name,
                        len(existing),
                        ", ".join(existing),
                    )
                instance_id = _run_instance(ec2, spec, config.instance_type,
                                            config.key_name, state.security_group_id)
                logger.info("Launched %s: %s", spec.name, instance_id)
                resources.append(ResourceRecord("EC2", instance_id, "CREATED", spec.name))
            launched[spec.name] = LaunchedInstance(
                name=spec.name,
                instance_id=instance_id,
                ssh_user=spec.ssh_user,
                package_manager=spec.package_manager,
            )

        if launched:
            _wait_and_resolve_ips(ec2, launched)
    except (ClientError, BotoCoreError) as exc:
        logger.error("Instance provisioning failed: %s", exc)
        resources.append(record_from_exception("EC2", "Failed to provision instances", exc))
        state.instances.update(launched)
        return StageResult(STAGE, "FATAL", f"Instance provisioning failed: {exc}", resources)
    except StageError as exc:
        logger.error("%s", exc)
        return StageResult(STAGE, "FATAL", str(exc), resources)

    state.instances.update(launched)
    return StageResult(STAGE, "SUCCESS", f"{len(launched)} instance(s) running", resources)


def _find_live_instances(ec2: BaseClient, name: str) -> List[str]:
    instance_ids: List[str] = []
    filters = [
        {"Name": "tag:Name", "Values": [name]},
        {"Name": "instance-state-name", "Values": LIVE_STATES},
    ]
    for reservation in safe_paginate(ec2, "describe_instances", "Reservations", Filters=filters):
        for instance in reservation.get("Instances", []):
            instance_ids.append(instance["InstanceId"])
    return instance_ids


def _run_instance(
    ec2: BaseClient, spec: InstanceSpec, instance_type: str, key_name: str, group_id: str
) -> str:
    response = ec2.run_instances(
        ImageId=spec.image_id,
        InstanceType=instance_type,
        KeyName=key_name,
        SecurityGroupIds=[group_id],
        MinCount=1,
        MaxCount=1,
        TagSpecifications=[
            {
                "ResourceType": "instance",
                "Tags": [{"Key": "Name", "Value": spec.name}],
            }
        ],
    )
    return response["Instances"][0]["InstanceId"]


def _wait_and_resolve_ips(ec2: BaseClient, launched: Dict[str, LaunchedInstance]) -> None:
    """Block until every instance runs, then record its public IP."""

    instance_ids = [instance.instance_id for instance in launched.values()]
    logger.info("Waiting for %d instance(s) to enter the running state", len(instance_ids))
    ec2.get_waiter("instance_running").wait(InstanceIds=instance_ids)

    public_ips: Dict[str, str] = {}
    response = ec2.describe_instances(InstanceIds=instance_ids)
    for reservation in response.get("Reservations", []):
        for instance in reservation.get("Instances", []):
            ip = instance.get("PublicIpAddress")
            if ip:
                public_ips[instance["InstanceId"]] = ip

    for instance in launched.values():
        instance.public_ip = public_ips.get(instance.instance_id)
        if instance.public_ip:
            logger.info("%s is running at %s", instance.name, instance.public_ip)
        else:
            logger.warning("%s (%s) has no public IP address", instance.name, instance.instance_id)


__all__ = ["launch_instances"]
