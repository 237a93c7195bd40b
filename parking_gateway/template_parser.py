# parking_gateway/template_parser.py
"""
Request / response template parsing.

A request template is either a JSON object or a short snippet of
``const name = value;`` declarations. The snippet form is only normalized into
the same mapping the JSON form produces; validation happens once, through
``RequestTemplate``.
"""
import logging
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .directives import (
    DIRECTIVE_NAMES,
    apply_directives,
    extract_directive,
    parse_mapping,
    safe_json_loads,
    strip_directives,
)
from .models import RequestTemplate, ResponseRule

logger = logging.getLogger(__name__)

BODY_TYPES = ("raw", "form", "json")


def _const_string(name: str) -> re.Pattern:
    return re.compile(r"const\s+%s\s*=\s*([`'\"])([\s\S]*?)\1\s*;?" % name)


def _const_object(name: str) -> re.Pattern:
    return re.compile(r"const\s+%s\s*=\s*(?=\{)" % name)


URL_RE = _const_string("url")
METHOD_RE = _const_string("method")
BODY_TYPE_RE = _const_string("bodyType")
BODY_STRING_RE = _const_string("body")
HEADERS_RE = _const_object("headers")
BODY_OBJECT_RE = _const_object("body")


def balanced_literal(text: str, start: int) -> Optional[str]:
    """Return the ``{...}`` block opening at ``start``, skipping braces inside quotes."""
    depth = 0
    quote = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'`":
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
        i += 1
    return None


def _object_literal(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    return balanced_literal(text, match.end())


def snippet_to_mapping(text: str) -> Optional[Dict[str, Any]]:
    url_match = URL_RE.search(text)
    if not url_match:
        return None

    mapping: Dict[str, Any] = {"url": url_match.group(2)}

    method_match = METHOD_RE.search(text)
    if method_match:
        mapping["method"] = method_match.group(2)

    headers_literal = _object_literal(HEADERS_RE, text)
    if headers_literal:
        headers = parse_mapping(headers_literal)
        if headers is not None:
            mapping["headers"] = headers

    body_literal = _object_literal(BODY_OBJECT_RE, text)
    if body_literal:
        body = parse_mapping(body_literal)
        if body is not None:
            mapping["body"] = body
    else:
        body_string_match = BODY_STRING_RE.search(text)
        if body_string_match:
            mapping["body"] = body_string_match.group(2)

    body_type_match = BODY_TYPE_RE.search(text)
    if body_type_match:
        mapping["bodyType"] = body_type_match.group(2)

    return mapping


def resolve_body_type(raw_type: Any, body: Any) -> Optional[str]:
    if isinstance(raw_type, str) and raw_type.strip().lower() in BODY_TYPES:
        return raw_type.strip().lower()
    if isinstance(body, dict):
        return "form"
    if isinstance(body, str):
        return "form" if "=" in body else "raw"
    return None


def parse_request_template(raw: Optional[str]) -> Optional[RequestTemplate]:
    if not raw:
        return None

    body_directive = extract_directive(raw, "body")
    header_directive = extract_directive(raw, "header")
    trimmed = strip_directives(raw, DIRECTIVE_NAMES).strip()
    if not trimmed:
        return None

    if trimmed.startswith("{"):
        mapping = safe_json_loads(trimmed)
    else:
        mapping = snippet_to_mapping(trimmed)

    if not isinstance(mapping, dict) or not mapping.get("url"):
        return None

    mapping["bodyType"] = resolve_body_type(mapping.get("bodyType"), mapping.get("body"))
    if mapping.get("headers") is None:
        mapping.pop("headers", None)

    try:
        template = RequestTemplate.model_validate(mapping)
    except ValidationError as e:
        logger.warning("[TEMPLATE] request template rejected: %s", e.errors())
        return None

    apply_directives(template, body_directive, header_directive)
    return template


def parse_response_rule(raw: Optional[str]) -> Optional[ResponseRule]:
    if not raw or not raw.strip():
        return None
    parsed = safe_json_loads(raw)
    if not isinstance(parsed, dict):
        return None
    try:
        return ResponseRule.model_validate(parsed)
    except ValidationError as e:
        logger.warning("[TEMPLATE] response template rejected: %s", e.errors())
        return None
