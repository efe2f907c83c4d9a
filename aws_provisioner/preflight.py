"""Local checks that run before any AWS session is created."""
from __future__ import annotations

import logging
import shutil
from typing import List

import botocore.session
from botocore.exceptions import BotoCoreError, ProfileNotFound

from .config import ProvisionConfig, validate_environment
from .errors import PrerequisiteError

logger = logging.getLogger(__name__)

AWS_CLI = "aws"


def check_prerequisites(config: ProvisionConfig) -> None:
    """Raise :class:`PrerequisiteError` unless the AWS CLI and profile are available.

    A profile must be selected, through ``--profile`` or ``AWS_PROFILE``, and
    it must be defined in the shared AWS config or credentials file.
    """

    cli_path = shutil.which(AWS_CLI)
    if cli_path is None:
        raise PrerequisiteError(
            "AWS CLI not found on PATH. Install it and configure a profile first."
        )
    logger.info("Found AWS CLI at %s", cli_path)

    if not config.profile:
        raise PrerequisiteError(
            "No AWS profile selected. Set AWS_PROFILE or pass --profile."
        )

    if config.profile not in _available_profiles(config.profile):
        raise PrerequisiteError(
            f"AWS profile '{config.profile}' is not configured. "
            f"Run 'aws configure --profile {config.profile}'."
        )
    logger.info("Using AWS profile %s", config.profile)


def _available_profiles(profile: str) -> List[str]:
    """Return profile names from the shared config files.

    botocore reads ``AWS_PROFILE`` on its own, so a dangling value surfaces
    here as :class:`ProfileNotFound`.
    """

    try:
        return list(botocore.session.Session().available_profiles)
    except ProfileNotFound as exc:
        raise PrerequisiteError(
            f"AWS profile '{profile}' is not configured. "
            f"Run 'aws configure --profile {profile}'."
        ) from exc
    except BotoCoreError as exc:
        raise PrerequisiteError(f"Could not read AWS configuration: {exc}") from exc


__all__ = ["AWS_CLI", "check_prerequisites", "validate_environment"]
