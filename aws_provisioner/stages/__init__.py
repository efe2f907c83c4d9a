"""Provisioning stages and the ordered registry that runs them."""
from __future__ import annotations

from dataclasses import dataclass, field
import importlib
import pkgutil
from typing import Callable, Dict, List, Tuple

import boto3

from ..config import ProvisionConfig
from ..manifest import Manifest
from ..probe import HttpProbe, http_status
from ..remote import ShellFactory, connect_shell
from ..results import ProvisionState, StageResult


@dataclass
class StageContext:
    """Everything a stage may read or update, threaded through the whole run."""

    session: boto3.session.Session
    config: ProvisionConfig
    manifest: Manifest
    state: ProvisionState = field(default_factory=ProvisionState)
    shell_factory: ShellFactory = connect_shell
    http_probe: HttpProbe = http_status


Stage = Callable[[StageContext], StageResult]


class StageRegistry:
    """Registry that stores pipeline stages together with their run order."""

    def __init__(self) -> None:
        self._stages: Dict[str, Tuple[int, Stage]] = {}

    @staticmethod
    def _normalize(name: str) -> str:
        if not name:
            raise ValueError("Stage name must be a non-empty string")
        return name.strip().lower()

    def register(self, name: str, order: int) -> Callable[[Stage], Stage]:
        """Return a decorator that registers the wrapped stage as *name*."""

        normalized = self._normalize(name)

        def decorator(func: Stage) -> Stage:
            if normalized in self._stages and self._stages[normalized][1] is not func:
                raise ValueError(f"Stage '{name}' is already registered")
            for other, (other_order, _) in self._stages.items():
                if other != normalized and other_order == order:
                    raise ValueError(f"Stage '{name}' reuses order {order} of '{other}'")
            self._stages[normalized] = (order, func)
            return func

        return decorator

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self._normalize(name) in self._stages

    def __getitem__(self, name: str) -> Stage:
        return self._stages[self._normalize(name)][1]

    def ordered(self) -> List[Tuple[str, Stage]]:
        """Return ``(name, stage)`` pairs in run order."""

        items = sorted(self._stages.items(), key=lambda item: item[1][0])
        return [(name, func) for name, (_, func) in items]

    def names(self) -> List[str]:
        return [name for name, _ in self.ordered()]


STAGE_REGISTRY = StageRegistry()
register_stage = STAGE_REGISTRY.register


def _import_stage_modules() -> None:
    """Import modules that register stages via decorators."""

    package_name = __name__
    package_paths = getattr(__spec__, "submodule_search_locations", None)
    if not package_paths:
        return

    for module_info in pkgutil.iter_modules(package_paths):
        module_name = module_info.name
        if module_name.startswith("_"):
            continue
        importlib.import_module(f"{package_name}.{module_name}")


_import_stage_modules()

__all__ = [
    "STAGE_REGISTRY",
    "Stage",
    "StageContext",
    "StageRegistry",
    "register_stage",
]
