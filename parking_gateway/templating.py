# parking_gateway/templating.py
import json
import re
from typing import Any, Mapping, Optional

TOKEN_RE = re.compile(r"\{\{\s*([a-zA-Z0-9_.\-\[\]]+)\s*\}\}")
LEGACY_TOKEN_RE = re.compile(r"#\{([a-zA-Z0-9_.\-\[\]]+)\}")
_INDEX_RE = re.compile(r"\[(\d+)\]")


def get_value_by_path(obj: Any, path: Optional[str], default: Any = None) -> Any:
    """Walk ``obj`` along a dot path; ``a[0]`` and ``a.0`` are equivalent.

    Returns ``default`` as soon as a segment cannot be followed. A null stored
    at the final segment comes back as None, so callers passing a sentinel
    ``default`` can tell the two apart.
    """
    if not path:
        return default
    parts = [p for p in _INDEX_RE.sub(r".\1", path).split(".") if p]
    current = obj
    for part in parts:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return default
    return current


def stringify(value: Any) -> str:
    # Same text a browser runtime would produce for String(value)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def apply_template(value: str, context: Mapping[str, Any]) -> str:
    normalized = LEGACY_TOKEN_RE.sub(r"{{\1}}", value)

    def _resolve(match: re.Match) -> str:
        key = match.group(1)
        if "." in key or "[" in key:
            raw = get_value_by_path(context, key)
        else:
            raw = context.get(key)
        return stringify(raw)

    return TOKEN_RE.sub(_resolve, normalized)


def replace_templates(value: Any, context: Mapping[str, Any]) -> Any:
    if isinstance(value, str):
        return apply_template(value, context)
    if isinstance(value, list):
        return [replace_templates(item, context) for item in value]
    if isinstance(value, dict):
        return {key: replace_templates(val, context) for key, val in value.items()}
    return value
