"""Condition evaluation for the conditional logic node.

Evaluates `operand1 <operator> operand2` after templates have been resolved.

Supported operators:
- equals: String coercions are equal
- not_equals: String coercions differ
- greater_than: Numeric >, operands parsed as floats
- less_than: Numeric <, operands parsed as floats
- contains: String coercion of operand1 contains operand2
- starts_with: String starts with value
- ends_with: String ends with value

Unknown operators evaluate to False.
"""

import json
import math
import re
from typing import Dict, Any

from core.logging import get_logger

logger = get_logger(__name__)

# Leading decimal number, as in "12.5px" -> 12.5
_LEADING_NUMBER = re.compile(r'^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')


def get_nested_value(data: Any, field_path: str) -> Any:
    """Get a nested value from a dictionary using dot notation.

    Args:
        data: Dictionary (or list) to extract value from
        field_path: Dot-separated path (e.g., "result.status", "items.0.name")

    Returns:
        Value at path or None if not found

    Examples:
        >>> get_nested_value({"result": {"status": "ok"}}, "result.status")
        "ok"
        >>> get_nested_value({"items": [{"name": "a"}]}, "items.0.name")
        "a"
    """
    if data is None or not field_path:
        return None

    current = data

    for part in field_path.split('.'):
        if current is None:
            return None

        # Handle array index
        if part.isdigit() and isinstance(current, (list, tuple)):
            index = int(part)
            if 0 <= index < len(current):
                current = current[index]
            else:
                return None
        # Handle dict key
        elif isinstance(current, dict):
            current = current.get(part)
        else:
            return None

    return current


def as_text(value: Any) -> str:
    """String coercion used by the string comparators."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def as_number(value: Any) -> float:
    """Parse the leading number of a value; NaN when there is none."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return math.nan
    match = _LEADING_NUMBER.match(str(value))
    return float(match.group(0)) if match else math.nan


def evaluate(operand1: Any, operator: str, operand2: Any) -> bool:
    """Evaluate one condition; unknown operators are False."""
    result = _evaluate_operator(operator, operand1, operand2)
    logger.debug("Condition evaluated",
                 operator=operator,
                 operand1=operand1,
                 operand2=operand2,
                 result=result)
    return result


def _evaluate_operator(operator: str, actual: Any, target: Any) -> bool:
    """Evaluate a single operator.

    Args:
        operator: Operator name
        actual: Left operand
        target: Right operand

    Returns:
        Comparison result
    """
    # Equality operators
    if operator == "equals":
        return as_text(actual) == as_text(target)

    elif operator == "not_equals":
        return as_text(actual) != as_text(target)

    # Comparison operators (numeric); NaN compares False
    elif operator == "greater_than":
        return as_number(actual) > as_number(target)

    elif operator == "less_than":
        return as_number(actual) < as_number(target)

    # String operators
    elif operator == "contains":
        return as_text(target) in as_text(actual)

    elif operator == "starts_with":
        return as_text(actual).startswith(as_text(target))

    elif operator == "ends_with":
        return as_text(actual).endswith(as_text(target))

    else:
        logger.warning("Unknown operator", operator=operator)
        return False


# Operator metadata for the editor
OPERATORS: Dict[str, Dict[str, Any]] = {
    "equals": {"label": "Equals", "description": "Values are equal as text"},
    "not_equals": {"label": "Not Equals", "description": "Values differ as text"},
    "greater_than": {"label": "Greater Than", "description": "Number is greater than target"},
    "less_than": {"label": "Less Than", "description": "Number is less than target"},
    "contains": {"label": "Contains", "description": "Text contains value"},
    "starts_with": {"label": "Starts With", "description": "Text starts with value"},
    "ends_with": {"label": "Ends With", "description": "Text ends with value"},
}


def get_available_operators() -> Dict[str, Dict[str, Any]]:
    """Get operator metadata for the editor."""
    return OPERATORS.copy()
