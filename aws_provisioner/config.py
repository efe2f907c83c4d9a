"""Run configuration for the provisioner."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from .errors import InvalidEnvironmentError

DEFAULT_REGION = "us-east-1"

ENVIRONMENT_MESSAGES: Dict[str, str] = {
    "local": "Running in local mode: resources are for a developer sandbox.",
    "testing": "Running in testing mode: resources are for the QA account.",
    "production": "Running in production mode: resources are billable and shared.",
}

VALID_ENVIRONMENTS: Tuple[str, ...] = tuple(ENVIRONMENT_MESSAGES)


def validate_environment(label: str) -> str:
    """Return the normalised environment *label* or raise :class:`InvalidEnvironmentError`."""

    normalized = label.strip().lower()
    if normalized not in ENVIRONMENT_MESSAGES:
        valid = ", ".join(VALID_ENVIRONMENTS)
        raise InvalidEnvironmentError(
            f"Unknown environment '{label}'. Valid environments: {valid}"
        )
    return normalized


@dataclass
class ProvisionConfig:
    """Every tunable of a provisioning run, passed explicitly to each stage."""

    environment: str
    profile: Optional[str] = None
    region: str = DEFAULT_REGION
    company: str = "datawise"
    security_group_name: str = "datawise-security-group"
    key_name: str = "test-keypair"
    key_dir: str = "."
    instance_type: str = "t2.micro"
    ingress_ports: Tuple[int, ...] = (22, 80)
    ingress_cidr: str = "0.0.0.0/0"
    ssh_timeout: float = 30.0
    http_timeout: float = 10.0
    reuse_instances: bool = False
    ami_overrides: Dict[str, str] = field(default_factory=dict)

    @property
    def key_path(self) -> str:
        return os.path.join(self.key_dir, f"{self.key_name}.pem")

    @property
    def environment_message(self) -> str:
        return ENVIRONMENT_MESSAGES[self.environment]

    @classmethod
    def from_env(
        cls,
        environment: str,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "ProvisionConfig":
        """Build a config for *environment*, reading defaults from *environ*.

        Explicit keyword *overrides* (typically CLI options) win over
        environment variables. ``None`` values in *overrides* are ignored.
        """

        env = os.environ if environ is None else environ
        values = {
            "profile": env.get("AWS_PROFILE") or None,
            "region": env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or DEFAULT_REGION,
            "company": env.get("PROVISION_COMPANY") or "datawise",
            "key_dir": env.get("PROVISION_KEY_DIR") or ".",
            "instance_type": env.get("PROVISION_INSTANCE_TYPE") or "t2.micro",
            "ami_overrides": {
                key[len("PROVISION_AMI_"):].lower(): value
                for key, value in env.items()
                if key.startswith("PROVISION_AMI_") and value
            },
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(environment=validate_environment(environment), **values)


__all__ = [
    "DEFAULT_REGION",
    "ENVIRONMENT_MESSAGES",
    "ProvisionConfig",
    "VALID_ENVIRONMENTS",
    "validate_environment",
]
