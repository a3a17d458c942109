"""Lowest-level HTTP for API-backed capabilities: send one request, map failures to the error taxonomy."""
import logging
from typing import Any

import httpx

from dropsniper.core.errors import NetworkTimeout, PlatformRejected, TransientUnavailable

logger = logging.getLogger(__name__)

# Status codes that mean "this request will never work as sent"
_REJECT_STATUSES = {400, 401, 403, 404, 422}
# Status codes that mean "inventory moved or platform busy; try again"
_TRANSIENT_STATUSES = {409, 410, 412, 423, 429}


def _error_text(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:300]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)[:300]
    return str(body)[:300]


def check_status(label: str, status_code: int, error_text: str = "") -> None:
    """Raise the taxonomy error for a non-2xx status. Shared with the browser-backed capability."""
    if 200 <= status_code < 300:
        return
    message = f"{label} API error: {status_code} {error_text}".rstrip()
    if status_code in _REJECT_STATUSES:
        raise PlatformRejected(message, detail={"status_code": status_code})
    if status_code in _TRANSIENT_STATUSES or status_code >= 500:
        raise TransientUnavailable(message, detail={"status_code": status_code})
    raise PlatformRejected(message, detail={"status_code": status_code})


def request_json(
    method: str,
    url: str,
    *,
    label: str,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json_body: dict[str, Any] | None = None,
    form: dict[str, str] | None = None,
    timeout: float = 30.0,
    client: httpx.Client | None = None,
) -> dict[str, Any]:
    """
    Send one request and return the decoded JSON object ({} for empty bodies).

    Raises NetworkTimeout on timeouts/transport errors, PlatformRejected on 4xx auth/validation,
    TransientUnavailable on conflict/rate-limit/5xx. `label` prefixes error messages (e.g. "Resy").
    """
    try:
        if client is not None:
            r = client.request(method, url, headers=headers, params=params, json=json_body, data=form, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as c:
                r = c.request(method, url, headers=headers, params=params, json=json_body, data=form)
    except httpx.TimeoutException as e:
        raise NetworkTimeout(f"{label} request timed out after {timeout:.0f}s") from e
    except httpx.TransportError as e:
        raise NetworkTimeout(f"{label} transport error: {e!s}") from e

    if not r.is_success:
        check_status(label, r.status_code, _error_text(r))
    if not r.content:
        return {}
    try:
        data = r.json()
    except ValueError:
        logger.debug("%s returned non-JSON body: %s", label, r.text[:200])
        return {"_raw_body": r.text[:2000]}
    return data if isinstance(data, dict) else {"data": data}
