"""
Client for the trace-by-id endpoint of a running tracing server.

    GET {endpoint}/api/traces/{trace_id}
"""

from __future__ import annotations

import json
import logging
import re
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from .exceptions import QueryError, TraceNotFoundError, ValidationError

logger = logging.getLogger(__name__)

_TRACE_ID_RE = re.compile(r"^[0-9a-fA-F]{1,32}$")


def validate_trace_id(trace_id: str) -> str:
    """Check a trace id is 1-32 hex digits and return it lowercased."""
    if not _TRACE_ID_RE.match(trace_id):
        raise ValidationError("trace_id", "must be 1-32 hexadecimal characters", trace_id)
    return trace_id.lower()


class TraceQueryClient:
    """Fetch traces by id over HTTP.

    Args:
        endpoint: Base URL of the API, e.g. ``http://localhost:3200``
        org_id: Tenant to query; sent as ``X-Scope-OrgID`` when set
        timeout: Request timeout in seconds
    """

    def __init__(self, endpoint: str, org_id: str | None = None, timeout: float = 30.0):
        if "://" not in endpoint:
            endpoint = f"http://{endpoint}"
        self.endpoint = endpoint.rstrip("/")
        self.org_id = org_id
        self.timeout = timeout

    def trace_url(self, trace_id: str) -> str:
        return f"{self.endpoint}/api/traces/{urllib.parse.quote(trace_id)}"

    def get_trace(self, trace_id: str) -> dict[str, Any]:
        """Fetch a trace.

        Raises:
            ValidationError: If the trace id is malformed
            TraceNotFoundError: If the server has no such trace
            QueryError: On any other HTTP or connection failure
        """
        trace_id = validate_trace_id(trace_id)
        url = self.trace_url(trace_id)

        headers = {"Accept": "application/json"}
        if self.org_id:
            headers["X-Scope-OrgID"] = self.org_id
        req = urllib.request.Request(url, headers=headers, method="GET")

        logger.debug("Querying trace", extra={"url": url, "org_id": self.org_id or ""})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise TraceNotFoundError(url, trace_id) from e
            raise QueryError(url, status=e.code, cause=e) from e
        except (urllib.error.URLError, OSError) as e:
            raise QueryError(url, cause=e) from e

        try:
            data = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise QueryError(url, cause=e, message=f"Invalid JSON from {url}: {e}") from e

        if not isinstance(data, dict):
            raise QueryError(url, message=f"Unexpected response from {url}: not a JSON object")
        return data
