"""Transform functions for transform nodes.

A transform is a pure function of its resolved config; the output becomes the
node's output. Built-ins:

- passthrough: returns config "value" (or the whole config when absent)
- pick: selects "fields" from the object in "source"
- merge: shallow-merges the objects listed in "sources"
- jsonParse: parses the JSON string in "text"
"""

import copy
import json
from typing import Any, Callable, Dict

from core.logging import get_logger
from services.execution.errors import TransformError

logger = get_logger(__name__)

TransformFn = Callable[[Dict[str, Any]], Any]


def _passthrough(config: Dict[str, Any]) -> Any:
    return copy.deepcopy(config.get('value', config))


def _pick(config: Dict[str, Any]) -> Any:
    source = config.get('source')
    fields = config.get('fields')
    if not isinstance(source, dict):
        raise TransformError("pick: 'source' must be an object")
    if isinstance(fields, str):
        fields = [f.strip() for f in fields.split(',') if f.strip()]
    if not isinstance(fields, list):
        raise TransformError("pick: 'fields' must be a list or comma separated string")
    return {field: source[field] for field in fields if field in source}


def _merge(config: Dict[str, Any]) -> Any:
    sources = config.get('sources')
    if not isinstance(sources, list):
        raise TransformError("merge: 'sources' must be a list of objects")
    merged: Dict[str, Any] = {}
    for index, source in enumerate(sources):
        if not isinstance(source, dict):
            raise TransformError(f"merge: source {index} is not an object")
        merged.update(source)
    return merged


def _json_parse(config: Dict[str, Any]) -> Any:
    text = config.get('text')
    if not isinstance(text, str):
        raise TransformError("jsonParse: 'text' must be a string")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise TransformError(f"jsonParse: invalid JSON ({e.msg} at position {e.pos})") from e


class TransformRegistry:
    """Registry of named transform functions."""

    def __init__(self):
        self._transforms: Dict[str, TransformFn] = {
            'passthrough': _passthrough,
            'pick': _pick,
            'merge': _merge,
            'jsonParse': _json_parse,
        }

    def register(self, transform_type: str, fn: TransformFn) -> None:
        self._transforms[transform_type] = fn

    def apply(self, transform_type: str, config: Dict[str, Any]) -> Any:
        """Run a transform; every failure surfaces as TransformError."""
        fn = self._transforms.get(transform_type)
        if fn is None:
            raise TransformError(f"Unknown transform: {transform_type}")
        try:
            return fn(config)
        except TransformError:
            raise
        except Exception as e:
            logger.warning("Transform failed", transform_type=transform_type, error=str(e))
            raise TransformError(f"{transform_type}: {e}") from e
