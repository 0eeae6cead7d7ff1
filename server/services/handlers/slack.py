"""Slack node handler - chat-notify connector.

With a bot token configured, posts through the Slack Web API
(`chat.postMessage`). Without one, the send is simulated after a short
latency so workflows remain runnable in development.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from core.logging import get_logger, log_connector_call
from models.nodes import SlackMessageParams
from services.execution.exceptions import ConnectorError
from services.execution.models import RunContext

logger = get_logger(__name__)


async def handle_slack_message(
    node_id: str,
    params: SlackMessageParams,
    context: RunContext,
    bot_token: Optional[str] = None,
    api_url: str = "https://slack.com/api/chat.postMessage",
    timeout: float = 30.0,
    simulated_latency: float = 0.5,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Send one chat message.

    Raises:
        ConnectorError: If the API call fails or Slack answers `ok: false`
    """
    logger.info("[Slack] Sending message", node_id=node_id, run_id=context.run_id,
                channel=params.channel, username=params.username,
                simulated=not bot_token)

    result: Dict[str, Any] = {
        "success": True,
        "channel": params.channel,
        "message": params.message,
        "username": params.username,
    }

    if not bot_token:
        await asyncio.sleep(simulated_latency)
        log_connector_call(logger, "slack", node_id, True, simulated=True, channel=params.channel)
        result["simulated"] = True
        result["timestamp"] = datetime.now(timezone.utc).isoformat()
        return result

    client_kwargs: Dict[str, Any] = {"timeout": timeout}
    if transport is not None:
        client_kwargs["transport"] = transport

    try:
        async with httpx.AsyncClient(**client_kwargs) as client:
            response = await client.post(
                api_url,
                headers={"Authorization": f"Bearer {bot_token}"},
                json={"channel": params.channel, "text": params.message, "username": params.username},
            )
            response.raise_for_status()
            data = response.json()
    except httpx.TimeoutException as e:
        raise ConnectorError("slack", f"Slack message timeout after {timeout:g} seconds") from e
    except (httpx.HTTPError, ValueError) as e:
        raise ConnectorError("slack", f"Slack message failed: {e}") from e

    if not data.get("ok"):
        raise ConnectorError("slack", f"Slack message failed: {data.get('error', 'unknown error')}")

    log_connector_call(logger, "slack", node_id, True, channel=data.get("channel"), ts=data.get("ts"))
    result["ts"] = data.get("ts")
    result["timestamp"] = datetime.now(timezone.utc).isoformat()
    return result
