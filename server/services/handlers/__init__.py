"""Node handlers package.

This package contains all node execution handlers organized by category:
- http.py: HTTP Request (network-call connector)
- slack.py: Slack message (chat-notify connector)
- data_store.py: Database operation (data-store connector)
- logic.py: Conditional, Delay, Error Handler, Transform
- triggers.py: Schedule and Webhook acknowledgements

Every handler has the signature
`async def handler(node_id, params, context, **bound) -> dict` and raises on
failure; `bound` holds settings-derived keyword arguments bound via
functools.partial in the NodeExecutor registry.
"""

# Connector handlers
from .http import handle_http_request
from .slack import handle_slack_message
from .data_store import handle_database_operation

# Logic handlers
from .logic import (
    handle_conditional,
    handle_delay,
    handle_error_handler,
    handle_transform,
)

# Trigger handlers
from .triggers import (
    handle_schedule_trigger,
    handle_webhook_trigger,
)

__all__ = [
    # Connectors
    'handle_http_request',
    'handle_slack_message',
    'handle_database_operation',
    # Logic
    'handle_conditional',
    'handle_delay',
    'handle_error_handler',
    'handle_transform',
    # Triggers
    'handle_schedule_trigger',
    'handle_webhook_trigger',
]
