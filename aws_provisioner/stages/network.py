"""Security group setup in the default VPC."""
from __future__ import annotations

import logging
from typing import List, Optional

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import StageError
from ..results import ResourceRecord, StageResult
from ..utils import error_code, record_from_exception
from . import StageContext, register_stage

logger = logging.getLogger(__name__)

STAGE = "security-group"


@register_stage(STAGE, order=10)
def ensure_security_group(context: StageContext) -> StageResult:
    """Create the web security group (or reuse it) and open the ingress ports."""

    config = context.config
    ec2 = context.session.client("ec2")
    resources: List[ResourceRecord] = []
    try:
        vpc_id = _default_vpc_id(ec2)
        group_id = _find_security_group(ec2, config.security_group_name, vpc_id)
        if group_id:
            logger.info("Security group %s already exists: %s", config.security_group_name, group_id)
            resources.append(ResourceRecord("EC2", group_id, "EXISTING", config.security_group_name))
        else:
            response = ec2.create_security_group(
                GroupName=config.security_group_name,
                Description="Allow SSH and HTTP traffic",
                VpcId=vpc_id,
            )
            group_id = response["GroupId"]
            logger.info("Created security group %s: %s", config.security_group_name, group_id)
            resources.append(ResourceRecord("EC2", group_id, "CREATED", config.security_group_name))

        for port in config.ingress_ports:
            resources.append(_authorize_port(ec2, group_id, port, config.ingress_cidr))
    except (ClientError, BotoCoreError) as exc:
        logger.error("Security group setup failed: %s", exc)
        resources.append(
            record_from_exception("EC2", "Failed to set up security group", exc,
                                  resource_id=config.security_group_name)
        )
        return StageResult(STAGE, "FATAL", f"Security group setup failed: {exc}", resources)
    except StageError as exc:
        logger.error("%s", exc)
        return StageResult(STAGE, "FATAL", str(exc), resources)

    context.state.security_group_id = group_id
    return StageResult(STAGE, "SUCCESS", f"Using security group {group_id}", resources)


def _default_vpc_id(ec2: BaseClient) -> str:
    response = ec2.describe_vpcs(Filters=[{"Name": "isDefault", "Values": ["true"]}])
    vpcs = response.get("Vpcs", [])
    if not vpcs:
        raise StageError("No default VPC found in this region")
    return vpcs[0]["VpcId"]


def _find_security_group(ec2: BaseClient, name: str, vpc_id: str) -> Optional[str]:
    response = ec2.describe_security_groups(
        Filters=[
            {"Name": "group-name", "Values": [name]},
            {"Name": "vpc-id", "Values": [vpc_id]},
        ]
    )
    groups = response.get("SecurityGroups", [])
    return groups[0]["GroupId"] if groups else None


def _authorize_port(ec2: BaseClient, group_id: str, port: int, cidr: str) -> ResourceRecord:
    resource_id = f"{group_id}:tcp/{port}"
    try:
        ec2.authorize_security_group_ingress(
            GroupId=group_id,
            IpPermissions=[
                {
                    "IpProtocol": "tcp",
                    "FromPort": port,
                    "ToPort": port,
                    "IpRanges": [{"CidrIp": cidr}],
                }
            ],
        )
    except ClientError as exc:
        if error_code(exc) != "InvalidPermission.Duplicate":
            raise
        logger.info("Ingress rule tcp/%d from %s already present", port, cidr)
        return ResourceRecord("EC2", resource_id, "EXISTING", f"tcp/{port} from {cidr}")
    logger.info("Opened tcp/%d from %s on %s", port, cidr, group_id)
    return ResourceRecord("EC2", resource_id, "CREATED", f"tcp/{port} from {cidr}")


__all__ = ["ensure_security_group"]
