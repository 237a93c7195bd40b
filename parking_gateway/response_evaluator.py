# parking_gateway/response_evaluator.py
"""
Interpretation of upstream responses.

The upstream speaks loosely: JSON, JSONP, or JSON buried in an HTML page.
``evaluate_response`` applies an operator-written ``ResponseRule``; when a
discount type has none, ``heuristic_result`` looks for the ``info`` block the
parking backend returns on success and otherwise trusts the HTTP status.
"""
import json
import re
from typing import Any, Optional

from .errors import UPSTREAM_PARSE_ERROR
from .models import DiscountInfo, Evaluation, ResponseRule, SubmissionResult, UpstreamResponse
from .templating import get_value_by_path, stringify

INVALID_JSON_MESSAGE = "Invalid JSON response"
INVALID_REGEX_MESSAGE = "Invalid success regex"

_JSONP_RE = re.compile(r"^[a-zA-Z_$][\w$]*\(([\s\S]*)\)\s*;?$")
_MISSING = object()


def _loads_container(text: str) -> Any:
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, (dict, list)) else None


def parse_json_leniently(text: Optional[str]) -> Any:
    """Direct parse, then JSONP ``callback(...)``, then the outermost ``{...}`` slice."""
    trimmed = (text or "").strip()
    if not trimmed:
        return None

    parsed = _loads_container(trimmed)
    if parsed is not None:
        return parsed

    jsonp = _JSONP_RE.match(trimmed)
    if jsonp:
        parsed = _loads_container(jsonp.group(1).strip())
        if parsed is not None:
            return parsed

    first, last = trimmed.find("{"), trimmed.rfind("}")
    if first != -1 and last > first:
        return _loads_container(trimmed[first:last + 1])
    return None


def _truthy(value: Any) -> bool:
    if isinstance(value, (dict, list)):
        return True
    return bool(value)


def _as_text(value: Any) -> str:
    # JSON null compares and prints as "null", not as an empty string
    return "null" if value is None else stringify(value)


def _equals(target: Any, expected: Any) -> bool:
    if target is _MISSING:
        return False
    if type(target) is type(expected) and target == expected:
        return True
    return _as_text(target) == _as_text(expected)


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def extract_discount_info(payload: Any) -> Optional[DiscountInfo]:
    if not isinstance(payload, dict):
        return None
    info = payload.get("info")
    if not isinstance(info, dict) or "discountcharge" not in info:
        return None
    try:
        charge = float(info.get("discountcharge") or 0)
    except (TypeError, ValueError):
        charge = 0.0
    return DiscountInfo(
        plate=stringify(info.get("plate") or ""),
        discountcharge=charge,
        needcharge=stringify(info.get("needcharge") or "0"),
        entertime=stringify(info.get("entertime") or ""),
        staytime=stringify(info.get("staytime") or ""),
    )


def upstream_errmsg(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict) or not isinstance(payload.get("info"), dict):
        return None
    errmsg = payload["info"].get("errmsg")
    if errmsg and errmsg != "ok":
        return stringify(errmsg)
    return None


def effective_type(rule: ResponseRule) -> str:
    if rule.type:
        return rule.type
    success = rule.success
    if (success and success.path) or rule.messagePath or rule.redirectPath:
        return "json"
    return "text"


def evaluate_response(text: str, rule: Optional[ResponseRule]) -> Optional[Evaluation]:
    if rule is None:
        return None

    success_rule = rule.success

    if effective_type(rule) == "json":
        payload = parse_json_leniently(text)
        if payload is None:
            return Evaluation(success=False, message=INVALID_JSON_MESSAGE, errorCode=UPSTREAM_PARSE_ERROR)

        success = False
        if success_rule:
            target = get_value_by_path(payload, success_rule.path, _MISSING)
            if success_rule.equals is not None:
                success = _equals(target, success_rule.equals)
            elif success_rule.regex:
                subject = _as_text(target) if target is not _MISSING else _dump(payload)
                try:
                    success = re.search(success_rule.regex, subject) is not None
                except re.error:
                    return Evaluation(success=False, message=INVALID_REGEX_MESSAGE, json=payload)
            elif success_rule.path:
                success = target is not _MISSING and _truthy(target)

        message = get_value_by_path(payload, rule.messagePath, _MISSING)
        redirect = get_value_by_path(payload, rule.redirectPath)
        return Evaluation(
            success=success,
            message=_as_text(message) if message is not _MISSING else None,
            redirectUrl=redirect if isinstance(redirect, str) else None,
            json=payload,
        )

    if success_rule and success_rule.regex:
        try:
            matched = re.search(success_rule.regex, text) is not None
        except re.error:
            return Evaluation(success=False, message=INVALID_REGEX_MESSAGE)
        return Evaluation(success=matched, message=text)
    if success_rule and success_rule.equals is not None:
        return Evaluation(success=stringify(success_rule.equals) in text, message=text)
    return Evaluation(success=False, message=text)


def rule_result(evaluation: Evaluation, response: UpstreamResponse) -> SubmissionResult:
    info = extract_discount_info(evaluation.json)
    if info is None:
        info = extract_discount_info(parse_json_leniently(response.text))
    return SubmissionResult(
        success=evaluation.success,
        message=evaluation.message,
        rawResponse=response.text,
        redirectUrl=evaluation.redirectUrl,
        discountInfo=info,
        errorCode=evaluation.errorCode,
    )


def heuristic_result(response: UpstreamResponse) -> SubmissionResult:
    payload = parse_json_leniently(response.text)
    info = extract_discount_info(payload)
    if info is not None:
        return SubmissionResult(success=True, rawResponse=response.text, discountInfo=info)
    if response.ok:
        return SubmissionResult(success=True, rawResponse=response.text)
    return SubmissionResult(
        success=False,
        message=upstream_errmsg(payload) or "Request failed",
        rawResponse=response.text,
    )
