"""HTTP node handler - network-call connector."""

import json
from typing import Any, Dict, Optional

import httpx

from core.logging import get_logger, log_connector_call
from models.nodes import HttpRequestParams
from services.execution.exceptions import ConnectorError
from services.execution.models import RunContext

logger = get_logger(__name__)

DEFAULT_USER_AGENT = "AutoFlow-Workflow-Engine/1.0"


def _request_body(params: HttpRequestParams) -> Optional[str]:
    if params.method not in ("POST", "PUT", "PATCH") or params.body in (None, ""):
        return None
    if isinstance(params.body, str):
        return params.body
    return json.dumps(params.body)


def _preview(data: Any, limit: int = 200) -> Any:
    if isinstance(data, str) and len(data) > limit:
        return data[:limit] + "..."
    return data


async def handle_http_request(
    node_id: str,
    params: HttpRequestParams,
    context: RunContext,
    timeout: float = 30.0,
    user_agent: str = DEFAULT_USER_AGENT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Handle HTTP request node execution.

    Makes one HTTP request to an external API.

    Args:
        node_id: The node ID
        params: Validated parameters
        context: Run data context
        timeout: Request timeout in seconds
        user_agent: Value of the User-Agent header
        transport: Optional httpx transport (tests use MockTransport)

    Returns:
        Response payload with status, headers and parsed data

    Raises:
        ConnectorError: On timeout, transport failure or non-2xx status
    """
    headers = params.header_map()
    body = _request_body(params)

    # Default content type for POST/PUT requests with body
    if body is not None and params.method in ("POST", "PUT") \
            and not any(k.lower() == "content-type" for k in headers):
        headers["Content-Type"] = "application/json"
    headers["User-Agent"] = user_agent

    logger.info("[HTTP Request] Executing", node_id=node_id, run_id=context.run_id,
                method=params.method, url=params.url)

    client_kwargs: Dict[str, Any] = {"timeout": timeout, "follow_redirects": True}
    if transport is not None:
        client_kwargs["transport"] = transport

    try:
        async with httpx.AsyncClient(**client_kwargs) as client:
            response = await client.request(params.method, params.url, headers=headers, content=body)
    except httpx.TimeoutException as e:
        logger.error("HTTP request timed out", node_id=node_id, url=params.url)
        raise ConnectorError("http", f"HTTP request timeout after {timeout:g} seconds") from e
    except httpx.HTTPError as e:
        logger.error("HTTP request failed", node_id=node_id, error=str(e))
        raise ConnectorError("http", f"HTTP request failed: {e}") from e

    # Parse response data
    if "application/json" in response.headers.get("content-type", ""):
        try:
            response_data = response.json()
        except ValueError:
            response_data = response.text
    else:
        response_data = response.text

    if not response.is_success:
        log_connector_call(logger, "http", node_id, False, status=response.status_code,
                           response=_preview(response_data))
        raise ConnectorError(
            "http",
            f"HTTP request failed with status {response.status_code} {response.reason_phrase}".rstrip(),
        )

    log_connector_call(logger, "http", node_id, True, status=response.status_code)
    return {
        "success": True,
        "status": response.status_code,
        "statusText": response.reason_phrase,
        "headers": dict(response.headers),
        "data": response_data,
    }
