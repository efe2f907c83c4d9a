"""Remote configuration of the launched instances over SSH."""
from __future__ import annotations

import logging
import posixpath
from typing import List, Optional

import paramiko

from ..remote import (
    REMOTE_INDEX_PATH,
    REMOTE_SCRIPT_PATH,
    WEB_ROOT,
    RemoteShell,
    bootstrap_script,
    index_page,
    web_server_commands,
)
from ..results import ResourceRecord, StageResult
from ..utils import record_from_exception
from . import StageContext, register_stage

logger = logging.getLogger(__name__)

REMOTE_ERRORS = (paramiko.SSHException, OSError)


@register_stage("upload-scripts", order=50)
def upload_scripts(context: StageContext) -> StageResult:
    """Copy the bootstrap script to every instance, stopping at the first failure."""

    stage = "upload-scripts"
    resources: List[ResourceRecord] = []
    for instance in context.state.instances.values():
        try:
            with context.shell_factory(instance, context.config) as shell:
                shell.upload(bootstrap_script(instance.package_manager), REMOTE_SCRIPT_PATH, 0o755)
        except REMOTE_ERRORS as exc:
            logger.warning("Failed to upload script to %s: %s", instance.name, exc)
            resources.append(
                record_from_exception("SSH", "Failed to upload script", exc,
                                      resource_id=instance.name)
            )
            return StageResult(stage, "SKIPPED", f"Upload to {instance.name} failed: {exc}", resources)
        logger.info("Uploaded %s to %s", REMOTE_SCRIPT_PATH, instance.name)
        resources.append(ResourceRecord("SSH", instance.name, "OK", REMOTE_SCRIPT_PATH))
    return StageResult(stage, "SUCCESS", f"Script uploaded to {len(resources)} instance(s)", resources)


@register_stage("execute-scripts", order=60)
def execute_scripts(context: StageContext) -> StageResult:
    """Run the uploaded bootstrap script, stopping at the first failure."""

    stage = "execute-scripts"
    resources: List[ResourceRecord] = []
    for instance in context.state.instances.values():
        try:
            with context.shell_factory(instance, context.config) as shell:
                result = shell.run(f"sudo bash {REMOTE_SCRIPT_PATH}")
        except REMOTE_ERRORS as exc:
            logger.warning("Failed to execute script on %s: %s", instance.name, exc)
            resources.append(
                record_from_exception("SSH", "Failed to execute script", exc,
                                      resource_id=instance.name)
            )
            return StageResult(stage, "SKIPPED", f"Execution on {instance.name} failed: {exc}", resources)

        if not result.ok:
            details = f"exit status {result.exit_status}: {result.stderr.strip()}"
            logger.warning("Script failed on %s with %s", instance.name, details)
            resources.append(ResourceRecord("SSH", instance.name, "FAILED", details))
            return StageResult(stage, "SKIPPED", f"Script failed on {instance.name}", resources)

        for line in result.stdout.splitlines():
            logger.info("[%s] %s", instance.name, line)
        resources.append(ResourceRecord("SSH", instance.name, "OK", "bootstrap script ran"))
    return StageResult(stage, "SUCCESS", f"Script ran on {len(resources)} instance(s)", resources)


@register_stage("deploy-webapp", order=70)
def deploy_webapp(context: StageContext) -> StageResult:
    """Install and start Apache on each instance and publish the index page."""

    stage = "deploy-webapp"
    resources: List[ResourceRecord] = []
    for instance in context.state.instances.values():
        try:
            with context.shell_factory(instance, context.config) as shell:
                failure = _run_all(shell, web_server_commands(instance.package_manager))
                if failure is None:
                    page = index_page(instance.name, context.config.environment)
                    shell.upload(page, REMOTE_INDEX_PATH)
                    target = posixpath.join(WEB_ROOT, "index.html")
                    failure = _run_all(shell, [f"sudo mv {REMOTE_INDEX_PATH} {target}"])
        except REMOTE_ERRORS as exc:
            logger.warning("Web app deployment to %s failed: %s", instance.name, exc)
            resources.append(
                record_from_exception("SSH", "Failed to deploy web app", exc,
                                      resource_id=instance.name)
            )
            continue

        if failure:
            logger.warning("Web app deployment to %s failed: %s", instance.name, failure)
            resources.append(ResourceRecord("SSH", instance.name, "FAILED", failure))
        else:
            logger.info("Deployed web app to %s", instance.name)
            resources.append(ResourceRecord("SSH", instance.name, "OK", "apache running"))

    failed = [record.resource_id for record in resources if record.status == "FAILED"]
    if failed:
        return StageResult(stage, "SKIPPED", f"Deployment failed on {', '.join(failed)}", resources)
    return StageResult(stage, "SUCCESS", f"Web app deployed to {len(resources)} instance(s)", resources)


def _run_all(shell: RemoteShell, commands: List[str]) -> Optional[str]:
    """Run *commands* in order; return a description of the first failure."""

    for command in commands:
        result = shell.run(command)
        if not result.ok:
            return f"'{command}' exited {result.exit_status}: {result.stderr.strip()}"
    return None


__all__ = ["deploy_webapp", "execute_scripts", "upload_scripts"]
