"""Data models describing the outcome of a provisioning run."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

StageStatus = Literal["SUCCESS", "SKIPPED", "FATAL"]
ResourceStatus = Literal["CREATED", "EXISTING", "SKIPPED", "FAILED", "OK"]


@dataclass
class ResourceRecord:
    """Represents what happened to a single cloud or remote resource."""

    service: str
    resource_id: str
    status: ResourceStatus
    details: str = ""


@dataclass
class StageResult:
    """Outcome of one pipeline stage.

    ``SKIPPED`` marks a recoverable failure: the stage gave up early but the
    run continues. ``FATAL`` stops the run.
    """

    stage: str
    status: StageStatus
    message: str
    resources: List[ResourceRecord] = field(default_factory=list)

    @property
    def fatal(self) -> bool:
        return self.status == "FATAL"


@dataclass
class LaunchedInstance:
    """An EC2 instance started (or reused) for one manifest entry."""

    name: str
    instance_id: str
    ssh_user: str
    package_manager: str
    public_ip: Optional[str] = None


@dataclass
class ProvisionState:
    """Identifiers captured by earlier stages and consumed by later ones."""

    security_group_id: Optional[str] = None
    key_path: Optional[str] = None
    instances: Dict[str, LaunchedInstance] = field(default_factory=dict)


@dataclass
class ProvisionReport:
    """Aggregated stage results from a full provisioning run."""

    environment: str
    results: List[StageResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(result.fatal for result in self.results)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


__all__ = [
    "LaunchedInstance",
    "ProvisionReport",
    "ProvisionState",
    "ResourceRecord",
    "ResourceStatus",
    "StageResult",
    "StageStatus",
]
