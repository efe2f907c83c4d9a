"""HTTP health probe for the deployed web page."""
from __future__ import annotations

import urllib.error
import urllib.request
from typing import Callable

HttpProbe = Callable[[str, float], int]


def http_status(url: str, timeout: float) -> int:
    """Return the HTTP status code for a GET of *url*.

    Non-2xx responses are returned as their status code. Connection errors
    propagate as :class:`urllib.error.URLError` or :class:`OSError`.
    """

    request = urllib.request.Request(url, headers={"User-Agent": "aws-provisioner"})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return response.status
    except urllib.error.HTTPError as exc:
        return exc.code


__all__ = ["HttpProbe", "http_status"]
