"""Core orchestration for a provisioning run."""
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Iterable, List, Optional, Sequence, Tuple

import boto3

from .config import ProvisionConfig
from .errors import StageError
from .manifest import Manifest, default_manifest
from .results import ProvisionReport, StageResult
from .stages import STAGE_REGISTRY, Stage, StageContext

logger = logging.getLogger(__name__)


def build_context(
    session: boto3.session.Session,
    config: ProvisionConfig,
    manifest: Optional[Manifest] = None,
    **overrides,
) -> StageContext:
    """Return a fresh :class:`StageContext` for one run."""

    return StageContext(
        session=session,
        config=config,
        manifest=manifest if manifest is not None else default_manifest(config),
        **overrides,
    )


def run_pipeline(
    context: StageContext, stages: Optional[Sequence[Tuple[str, Stage]]] = None
) -> ProvisionReport:
    """Run *stages* (default: every registered stage) in order.

    This is the single place that decides whether the run continues: SUCCESS
    and SKIPPED results move on to the next stage, FATAL stops the run.
    Nothing created before a FATAL stage is rolled back.
    """

    ordered = list(stages) if stages is not None else STAGE_REGISTRY.ordered()
    report = ProvisionReport(environment=context.config.environment)
    logger.info(context.config.environment_message)

    for name, stage in ordered:
        logger.info("==> %s", name)
        try:
            result = stage(context)
        except StageError as exc:
            result = StageResult(name, "FATAL", str(exc))
        report.results.append(result)

        if result.status == "SKIPPED":
            logger.warning("Stage %s skipped: %s", name, result.message)
        elif result.fatal:
            logger.error("Stage %s failed, stopping: %s", name, result.message)
            break
        else:
            logger.info("Stage %s done: %s", name, result.message)

    return report


def provision(
    session: boto3.session.Session,
    config: ProvisionConfig,
    manifest: Optional[Manifest] = None,
    **overrides,
) -> ProvisionReport:
    """Build a context and run every registered stage."""

    return run_pipeline(build_context(session, config, manifest, **overrides))


def print_report(report: ProvisionReport) -> None:
    """Pretty-print stage results to stdout."""

    results: List[StageResult] = list(report.results)
    if not results:
        print("No stages were run.")
        return

    header = f"{'Stage':<16} {'Status':<8} Message"
    print(header)
    print("-" * len(header))
    for result in results:
        message = (result.message[:77] + "...") if len(result.message) > 80 else result.message
        print(f"{result.stage:<16} {result.status:<8} {message}")

    failures = list(iter_failed_resources(report))
    if failures:
        print()
        print("Failed resources:")
        for stage, resource_id, details in failures:
            print(f"  [{stage}] {resource_id}: {details}")
    print()
    print(f"Environment {report.environment}: {'OK' if report.ok else 'FAILED'}")


def report_to_dict(report: ProvisionReport) -> dict:
    data = asdict(report)
    data["ok"] = report.ok
    data["exit_code"] = report.exit_code
    return data


def iter_failed_resources(report: ProvisionReport) -> Iterable[Tuple[str, str, str]]:
    """Yield ``(stage, resource_id, details)`` for every failed resource."""

    for result in report.results:
        for record in result.resources:
            if record.status == "FAILED":
                yield result.stage, record.resource_id, record.details


__all__ = [
    "build_context",
    "iter_failed_resources",
    "print_report",
    "provision",
    "report_to_dict",
    "run_pipeline",
]
