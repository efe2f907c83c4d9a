"""HTTP verification of the deployed web page."""
from __future__ import annotations

import http.client
import logging
import urllib.error
from typing import List

from ..results import ResourceRecord, StageResult
from . import StageContext, register_stage

logger = logging.getLogger(__name__)

STAGE = "verify"


@register_stage(STAGE, order=80)
def verify_webapps(context: StageContext) -> StageResult:
    """Probe every instance over HTTP; any non-200 answer fails the run.

    All instances are probed before the verdict, in manifest order.
    """

    resources: List[ResourceRecord] = []
    for instance in context.state.instances.values():
        if not instance.public_ip:
            logger.error("%s has no public IP to probe", instance.name)
            resources.append(ResourceRecord("HTTP", instance.name, "FAILED", "no public IP"))
            continue

        url = f"http://{instance.public_ip}/"
        try:
            status = context.http_probe(url, context.config.http_timeout)
        except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
            logger.error("Web app on %s is unreachable at %s: %s", instance.name, url, exc)
            resources.append(ResourceRecord("HTTP", instance.name, "FAILED", f"{url}: {exc}"))
            continue

        if status == 200:
            logger.info("Web app on %s is up (%s)", instance.name, url)
            resources.append(ResourceRecord("HTTP", instance.name, "OK", f"{url} -> 200"))
        else:
            logger.error("Web app on %s returned HTTP %d", instance.name, status)
            resources.append(ResourceRecord("HTTP", instance.name, "FAILED", f"{url} -> {status}"))

    failed = [record.resource_id for record in resources if record.status == "FAILED"]
    if failed:
        return StageResult(STAGE, "FATAL", f"Web app check failed on {', '.join(failed)}", resources)
    return StageResult(STAGE, "SUCCESS", f"{len(resources)} web app(s) responded 200", resources)


__all__ = ["verify_webapps"]
