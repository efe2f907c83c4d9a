"""Exception hierarchy for the provisioner."""
from __future__ import annotations


class ProvisionError(RuntimeError):
    """Base class for errors that abort a provisioning run."""

    exit_code = 1


class UsageError(ProvisionError):
    """Wrong number of arguments or an unknown option."""


class InvalidEnvironmentError(ProvisionError):
    """The environment label is not one of the supported values."""

    exit_code = 2


class PrerequisiteError(ProvisionError):
    """A local precondition (AWS CLI, profile) is not satisfied."""


class StageError(ProvisionError):
    """Raised inside a stage to report a failure that must stop the run."""


__all__ = [
    "InvalidEnvironmentError",
    "PrerequisiteError",
    "ProvisionError",
    "StageError",
    "UsageError",
]
