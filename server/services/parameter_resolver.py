"""Parameter Resolver - Template variable resolution.

Resolves {{@nodeId:Label.field}} references in node config against the outputs
of nodes that already ran in the same execution. The label is display-only; the
node id after '@' is the lookup key and the remainder after the first '.' is the
field path (a.b, a[0], a.b[0].c, items.0.name).
"""

import copy
import re
from typing import Dict, Any, List, Tuple

import orjson

from core.logging import get_logger
from services.execution.errors import UnknownNode, FieldNotFound

logger = get_logger(__name__)

# Compiled regex for template matching
TEMPLATE_PATTERN = re.compile(r'\{\{@([^:}]+):(.*?)\}\}')
PATH_SEGMENT_PATTERN = re.compile(r'\[(\d+)\]|([^.\[\]]+)')
VALID_PATH_PATTERN = re.compile(r'^(?:[^.\[\]]+)?(?:\[\d+\])*(?:\.[^.\[\]]+(?:\[\d+\])*)*$')


def split_reference(rest: str) -> str:
    """Return the field path of a token body ("Label.a.b" -> "a.b")."""
    _, _, field_path = rest.partition('.')
    return field_path.strip()


def parse_field_path(node_id: str, field_path: str) -> List[Any]:
    """Split a field path into dict keys (str) and list indices (int)."""
    if not VALID_PATH_PATTERN.match(field_path):
        raise FieldNotFound(node_id, field_path, "malformed path")
    parts: List[Any] = []
    for index, key in PATH_SEGMENT_PATTERN.findall(field_path):
        parts.append(int(index) if index else key)
    return parts


def _integral_floats_to_int(value: Any) -> Any:
    # JSON.stringify writes 2.0 as 2
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _integral_floats_to_int(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_integral_floats_to_int(item) for item in value]
    return value


def stringify(value: Any) -> str:
    """Render a value for interpolation into surrounding text."""
    if isinstance(value, str):
        return value
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return orjson.dumps(_integral_floats_to_int(value), default=str).decode()
    return str(value)


class ParameterResolver:
    """Resolves template variables in node parameters."""

    def resolve(self, value: Any, outputs: Dict[str, Any]) -> Any:
        """Resolve all template variables in a JSON value.

        Args:
            value: Node config (dict, list or scalar), may contain templates
            outputs: node_id -> output of nodes that completed successfully

        Returns:
            A new value with every template replaced

        Raises:
            UnknownNode: referenced node has no output
            FieldNotFound: field path does not exist in the output
        """
        if isinstance(value, str):
            if '{{@' in value:
                return self._resolve_string(value, outputs)
            return value
        if isinstance(value, dict):
            return {k: self.resolve(v, outputs) for k, v in value.items()}
        if isinstance(value, list):
            return [self.resolve(item, outputs) for item in value]
        return value

    def lookup(self, node_id: str, field_path: str, outputs: Dict[str, Any]) -> Any:
        """Fetch one referenced value, detached from the stored output."""
        if node_id not in outputs:
            raise UnknownNode(node_id)
        return copy.deepcopy(self._navigate_path(node_id, outputs[node_id], field_path))

    def find_references(self, value: Any) -> List[str]:
        """Node ids referenced anywhere in a value, in order of first appearance."""
        found: List[str] = []

        def walk(item: Any) -> None:
            if isinstance(item, str):
                for match in TEMPLATE_PATTERN.finditer(item):
                    node_id = match.group(1).strip()
                    if node_id not in found:
                        found.append(node_id)
            elif isinstance(item, dict):
                for v in item.values():
                    walk(v)
            elif isinstance(item, list):
                for v in item:
                    walk(v)

        walk(value)
        return found

    def substitute_variables(self, expression: str,
                             outputs: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """Replace each template with a variable name for the condition sandbox.

        Repeated references to the same node id and field path share one variable.

        Returns:
            (expression over __v0..__vN, variable name -> resolved value)
        """
        variables: Dict[Tuple[str, str], str] = {}
        bindings: Dict[str, Any] = {}

        def replace(match: re.Match) -> str:
            node_id = match.group(1).strip()
            field_path = split_reference(match.group(2))
            key = (node_id, field_path)
            if key not in variables:
                name = f"__v{len(variables)}"
                variables[key] = name
                bindings[name] = self.lookup(node_id, field_path, outputs)
            return variables[key]

        return TEMPLATE_PATTERN.sub(replace, expression), bindings

    def _resolve_string(self, value: str, outputs: Dict[str, Any]) -> Any:
        """Resolve templates in a string value."""
        stripped = value.strip()
        first = TEMPLATE_PATTERN.search(stripped)
        if first and first.span() == (0, len(stripped)):
            # Entire value is one template: preserve type
            return self.lookup(first.group(1).strip(), split_reference(first.group(2)), outputs)

        def replace(match: re.Match) -> str:
            node_id = match.group(1).strip()
            field_path = split_reference(match.group(2))
            resolved = self.lookup(node_id, field_path, outputs)
            logger.debug("Resolved template", node_id=node_id, field_path=field_path)
            return stringify(resolved)

        return TEMPLATE_PATTERN.sub(replace, value)

    def _navigate_path(self, node_id: str, data: Any, field_path: str) -> Any:
        """Navigate through nested dicts and lists using the parsed path."""
        if not field_path:
            return data

        current = data
        for part in parse_field_path(node_id, field_path):
            if isinstance(current, dict):
                key = str(part)
                if key not in current:
                    raise FieldNotFound(node_id, field_path, f"missing key '{key}'")
                current = current[key]
            elif isinstance(current, list):
                if isinstance(part, str) and not part.isdigit():
                    raise FieldNotFound(node_id, field_path, f"'{part}' is not a list index")
                index = int(part)
                if index >= len(current):
                    raise FieldNotFound(node_id, field_path, f"index {index} out of range")
                current = current[index]
            else:
                raise FieldNotFound(
                    node_id, field_path,
                    f"cannot read '{part}' from {type(current).__name__}"
                )
        return current
