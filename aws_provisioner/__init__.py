"""Provisioning toolkit for a small demo AWS environment."""

from __future__ import annotations

from .config import ProvisionConfig
from .core import build_context, print_report, provision, run_pipeline
from .manifest import Manifest, default_manifest
from .results import ProvisionReport, ResourceRecord, StageResult

__all__ = [
    "Manifest",
    "ProvisionConfig",
    "ProvisionReport",
    "ResourceRecord",
    "StageResult",
    "build_context",
    "default_manifest",
    "print_report",
    "provision",
    "run_pipeline",
]
