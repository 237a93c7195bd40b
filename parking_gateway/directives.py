# parking_gateway/directives.py
"""
Inline ``#body{...}`` / ``#header{...}`` overrides.

Directives can sit in a discount type's request template or in a guest note.
Template directives are applied when the template is parsed; note directives
are applied on top of that when the request is built, so the note wins.
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

import httpx

from .models import RequestTemplate
from .templating import stringify

DIRECTIVE_NAMES = ("body", "header")
_PAIR_SPLIT_RE = re.compile(r"[&;\r\n]+")


def _directive_re(names: Iterable[str]) -> re.Pattern:
    return re.compile(r"#(?:%s)\{([\s\S]*?)\}" % "|".join(names), re.IGNORECASE)


def extract_directive(raw: Optional[str], name: str) -> Optional[str]:
    if not raw:
        return None
    match = _directive_re([name]).search(raw)
    if not match:
        return None
    return match.group(1).strip()


def strip_directives(raw: Optional[str], names: Iterable[str] = DIRECTIVE_NAMES) -> Optional[str]:
    if not raw:
        return raw
    return _directive_re(names).sub("", raw)


def safe_json_loads(value: Optional[str]) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return None


def parse_object_literal(raw: str) -> Optional[Dict[str, Any]]:
    """Parse a loosely written JS object literal (quotes, bare keys, trailing commas)."""
    cleaned = raw.strip()
    if not cleaned.startswith("{"):
        return None
    cleaned = cleaned.replace("`", '"').replace("'", '"')
    cleaned = re.sub(r"([,{]\s*)([\w-]+)\s*:", r'\1"\2":', cleaned)
    cleaned = re.sub(r",\s*([}\]])", r"\1", cleaned)
    parsed = safe_json_loads(cleaned)
    return parsed if isinstance(parsed, dict) else None


def parse_mapping(raw: str) -> Optional[Dict[str, Any]]:
    parsed = parse_object_literal(raw)
    if parsed is None:
        parsed = safe_json_loads(raw)
    return parsed if isinstance(parsed, dict) else None


def _split_pairs(raw: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for part in _PAIR_SPLIT_RE.split(raw):
        part = part.strip()
        if not part:
            continue
        sep = part.find("=")
        if sep < 0:
            sep = part.find(":")
        if sep <= 0:
            continue
        key = part[:sep].strip()
        if key:
            pairs[key] = part[sep + 1:].strip()
    return pairs


def parse_header_directive(raw: str) -> Optional[Dict[str, str]]:
    trimmed = raw.strip()
    if not trimmed:
        return None
    if trimmed.startswith("{"):
        obj = parse_mapping(trimmed)
        if obj:
            return {str(k): stringify(v) for k, v in obj.items()}
    headers = _split_pairs(trimmed)
    return headers or None


def parse_key_value_pairs(raw: str) -> Optional[Dict[str, Any]]:
    trimmed = raw.strip()
    if not trimmed:
        return None
    if trimmed.startswith("{"):
        return parse_mapping(trimmed) or None
    if "=" not in trimmed and ":" not in trimmed:
        return None
    return _split_pairs(trimmed) or None


def parse_note_variables(note: Optional[str]) -> Dict[str, str]:
    variables: Dict[str, str] = {}
    trimmed = (note or "").strip()
    if not trimmed:
        return variables
    if trimmed.startswith("{"):
        parsed = safe_json_loads(trimmed)
        if isinstance(parsed, dict):
            for key, value in parsed.items():
                if value is None:
                    continue
                variables[key] = stringify(value)
            return variables
    return _split_pairs(trimmed)


# ---------- Case-insensitive headers ----------
def find_header_key(headers: Dict[str, Any], name: str) -> Optional[str]:
    lower = name.lower()
    for key in headers:
        if key.lower() == lower:
            return key
    return None


def has_header(headers: Dict[str, Any], name: str) -> bool:
    return find_header_key(headers, name) is not None


def set_header(headers: Dict[str, Any], name: str, value: Any) -> None:
    """Set ``name``, reusing an existing key of any case in place."""
    headers[find_header_key(headers, name) or name] = value


def merge_headers(headers: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(headers)
    for key, value in overrides.items():
        set_header(merged, key, value)
    return merged


# ---------- Applying directives ----------
def set_form_params(encoded: str, overrides: Dict[str, Any]) -> str:
    # set() collapses repeated keys onto the first occurrence
    params = httpx.QueryParams(encoded)
    for key, value in overrides.items():
        params = params.set(key, stringify(value))
    return str(params)


def apply_header_directive(template: RequestTemplate, directive: Optional[str]) -> None:
    overrides = parse_header_directive(directive or "")
    if overrides:
        template.headers = merge_headers(template.headers or {}, overrides)


def apply_body_directive(template: RequestTemplate, directive: Optional[str]) -> None:
    trimmed = (directive or "").strip()
    if not trimmed:
        return

    overrides = parse_key_value_pairs(trimmed)

    if isinstance(template.body, dict) and overrides:
        template.body = {**template.body, **overrides}
        return

    if isinstance(template.body, str) and template.body and overrides:
        template.body = set_form_params(template.body, overrides)
        if not template.bodyType:
            template.bodyType = "form"
        return

    template.body = trimmed
    template.bodyType = "raw"


def apply_directives(template: RequestTemplate, body: Optional[str], header: Optional[str]) -> None:
    # header first, then body
    if header:
        apply_header_directive(template, header)
    if body:
        apply_body_directive(template, body)


@dataclass
class NoteDirectives:
    body: Optional[str] = None
    header: Optional[str] = None
    cleaned: Optional[str] = None
    variables: Dict[str, str] = field(default_factory=dict)


def split_note(note: Optional[str]) -> NoteDirectives:
    if not note:
        return NoteDirectives()
    cleaned = strip_directives(note).strip()
    return NoteDirectives(
        body=extract_directive(note, "body"),
        header=extract_directive(note, "header"),
        cleaned=cleaned or None,
        variables=parse_note_variables(cleaned),
    )
