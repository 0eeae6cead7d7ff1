"""Centralized constants for node kinds, subtypes and schedule intervals.

This module provides a single source of truth for the node type strings
shared by the executor, the scheduler and the parameter models.
"""

from datetime import timedelta
from typing import Dict, FrozenSet

# =============================================================================
# NODE KINDS
# =============================================================================

KIND_TRIGGER = 'trigger'
KIND_ACTION = 'action'
KIND_LOGIC = 'logic'

NODE_KINDS: FrozenSet[str] = frozenset([
    KIND_TRIGGER,
    KIND_ACTION,
    KIND_LOGIC,
])

# =============================================================================
# NODE SUBTYPES
# =============================================================================

# Actions backed by a connector (one external side effect each)
ACTION_SUBTYPES: FrozenSet[str] = frozenset([
    'http',
    'slack',
    'database',
])

# Deterministic in-process logic handlers
LOGIC_SUBTYPES: FrozenSet[str] = frozenset([
    'conditional',
    'delay',
    'error-handler',
    'transform',
])

# Triggers acknowledged by the executor; the decision to run happens upstream
TRIGGER_SUBTYPES: FrozenSet[str] = frozenset([
    'schedule',
    'webhook',
])

SCHEDULE_TRIGGER = (KIND_TRIGGER, 'schedule')

# =============================================================================
# LOGIC NODE OPTIONS
# =============================================================================

CONDITION_OPERATORS = (
    'equals',
    'not_equals',
    'greater_than',
    'less_than',
    'contains',
    'starts_with',
    'ends_with',
)

DELAY_UNITS: Dict[str, int] = {
    'seconds': 1,
    'minutes': 60,
    'hours': 3600,
}

ERROR_HANDLER_ACTIONS = (
    'Log Error',
    'Send Notification',
    'Retry',
    'Stop Workflow',
)

TRANSFORM_OUTPUT_FIELDS: Dict[str, str] = {
    'JSON Parse': 'parsed_data',
    'JSON Stringify': 'stringified_data',
    'Extract Field': 'extracted_value',
    'Format String': 'formatted_string',
    'Custom Script': 'script_result',
}

DATABASE_OPERATIONS = ('Insert', 'Update', 'Delete', 'Select')

# =============================================================================
# SCHEDULER
# =============================================================================

SCHEDULE_INTERVALS: Dict[str, timedelta] = {
    'Every 5 minutes': timedelta(minutes=5),
    'Every hour': timedelta(hours=1),
    'Daily': timedelta(days=1),
    'Weekly': timedelta(weeks=1),
}

DEFAULT_SCHEDULE_INTERVAL = timedelta(hours=1)

# =============================================================================
# JOB SOURCES
# =============================================================================

SOURCE_MANUAL = 'manual'
SOURCE_SCHEDULER = 'scheduler'
SOURCE_WEBHOOK = 'webhook'
