"""Declarative list of the resources a run ensures exist."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from .config import ProvisionConfig

# us-east-1 images; other regions need PROVISION_AMI_<NAME> overrides.
DEFAULT_IMAGES = {
    "AmazonLinuxInstance": "ami-0c02fb55956c7d316",
    "UbuntuInstance": "ami-0557a15b87f6559cf",
    "CentOSInstance": "ami-002070d43b0a4f171",
}

DEPARTMENTS: Tuple[str, ...] = ("marketing", "sales", "hr", "operations", "media")

IAM_USERS: Tuple[str, ...] = (
    "datawise-admin1",
    "datawise-admin2",
    "datawise-admin3",
    "datawise-admin4",
    "datawise-admin5",
)
IAM_GROUP = "admin"
ADMIN_POLICY_ARN = "arn:aws:iam::aws:policy/AdministratorAccess"


@dataclass(frozen=True)
class InstanceSpec:
    """One EC2 instance, identified by its ``Name`` tag."""

    name: str
    image_id: str
    ssh_user: str
    package_manager: str

    @property
    def web_server_package(self) -> str:
        return "apache2" if self.package_manager == "apt" else "httpd"


@dataclass(frozen=True)
class BucketSpec:
    department: str
    name: str


@dataclass
class Manifest:
    """Ordered resource specs consumed by the provisioning stages."""

    instances: List[InstanceSpec] = field(default_factory=list)
    buckets: List[BucketSpec] = field(default_factory=list)
    users: List[str] = field(default_factory=list)
    group: str = IAM_GROUP
    group_policy_arn: str = ADMIN_POLICY_ARN


def bucket_name(company: str, department: str) -> str:
    return f"{company}-{department}-data-bucket"


def default_manifest(config: ProvisionConfig) -> Manifest:
    """Return the standard three-instance, five-bucket, five-user manifest."""

    def image(name: str) -> str:
        return config.ami_overrides.get(name.lower(), DEFAULT_IMAGES[name])

    instances = [
        InstanceSpec("AmazonLinuxInstance", image("AmazonLinuxInstance"), "ec2-user", "yum"),
        InstanceSpec("UbuntuInstance", image("UbuntuInstance"), "ubuntu", "apt"),
        InstanceSpec("CentOSInstance", image("CentOSInstance"), "centos", "yum"),
    ]
    buckets = [BucketSpec(dept, bucket_name(config.company, dept)) for dept in DEPARTMENTS]
    return Manifest(instances=instances, buckets=buckets, users=list(IAM_USERS))


__all__ = [
    "ADMIN_POLICY_ARN",
    "BucketSpec",
    "DEFAULT_IMAGES",
    "DEPARTMENTS",
    "IAM_GROUP",
    "IAM_USERS",
    "InstanceSpec",
    "Manifest",
    "bucket_name",
    "default_manifest",
]
