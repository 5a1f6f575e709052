"""Outbound calls to collaborator services (notifications and the like).

Requests carry a short-lived service-role JWT and the current request id so
the receiving service can authorize the call and correlate its logs.
"""

from typing import Any

import httpx

from libs.auth.dependencies import _service_role_jwt
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


def _headers(calling_service: str) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {_service_role_jwt(calling_service)}",
        "X-Caller-Service": calling_service,
    }
    request_id = get_request_id()
    if request_id:
        headers["X-Request-ID"] = request_id
    return headers


async def internal_post(
    *,
    service_url: str,
    path: str,
    calling_service: str,
    json: Any = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> httpx.Response:
    """POST to another service as ``calling_service``.

    Raises ``httpx.RequestError`` on connection failures and timeouts; HTTP
    error statuses are returned for the caller to inspect.
    """
    async with httpx.AsyncClient(base_url=service_url, timeout=timeout) as client:
        response = await client.post(path, json=json, headers=_headers(calling_service))
    logger.debug(
        "%s -> POST %s%s: %d", calling_service, service_url, path, response.status_code
    )
    return response
