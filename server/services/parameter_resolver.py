"""Parameter Resolver - Template variable resolution.

Resolves {{key.path}} template variables in node config using the run's data
context (node outputs by id or label key, previous_node, error, trigger).
"""

import re
from typing import Dict, Any, List

from core.logging import get_logger
from services.execution.conditions import as_text

logger = get_logger(__name__)

# Compiled regex for template matching
TEMPLATE_PATTERN = re.compile(r'\{\{\s*([^}]+?)\s*\}\}')

# Sentinel for "path does not exist" (None is a legitimate value)
_MISSING = object()


class ParameterResolver:
    """Resolves template variables in node parameters."""

    def resolve(self, parameters: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
        """Resolve all template variables in parameters.

        Args:
            parameters: Raw node config
            data: Run data context, see `RunContext.template_data()`

        Returns:
            A new config mapping; the input is not modified.
        """
        # Case-insensitive lookup
        data_lower = {str(k).lower(): v for k, v in data.items()}

        template_params = [k for k, v in parameters.items() if isinstance(v, str) and '{{' in v]
        if template_params:
            logger.debug("Resolving templates",
                         params_with_templates=template_params,
                         available_keys=list(data_lower.keys()))

        def resolve(value: Any) -> Any:
            if isinstance(value, str) and '{{' in value:
                return self._resolve_string(value, data_lower)
            if isinstance(value, dict):
                return {k: resolve(v) for k, v in value.items()}
            if isinstance(value, list):
                return [resolve(item) for item in value]
            return value

        return {k: resolve(v) for k, v in parameters.items()}

    def _resolve_string(self, value: str, data: Dict[str, Any]) -> Any:
        """Resolve templates in a string value; unresolvable ones stay as written."""
        matches = list(TEMPLATE_PATTERN.finditer(value))

        # If entire value is just the template, preserve type
        if len(matches) == 1 and value.strip() == matches[0].group(0):
            resolved = self._lookup(matches[0].group(1), data)
            return value if resolved is _MISSING else resolved

        def replace(match: "re.Match") -> str:
            resolved = self._lookup(match.group(1), data)
            if resolved is _MISSING:
                logger.debug("Unresolved template", template=match.group(0))
                return match.group(0)
            return as_text(resolved)

        return TEMPLATE_PATTERN.sub(replace, value)

    def _lookup(self, expression: str, data: Dict[str, Any]) -> Any:
        path = expression.split('.')
        key = path[0].lower()
        if key not in data:
            return _MISSING
        return self._navigate_path(data[key], path[1:])

    def _navigate_path(self, data: Any, path: List[str]) -> Any:
        """Navigate through nested dicts and lists using path parts."""
        current = data
        for part in path:
            if isinstance(current, dict) and part in current:
                current = current[part]
            elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                return _MISSING
        return current
