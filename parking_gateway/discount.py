# parking_gateway/discount.py
"""
One parking discount submission, end to end.

``select_mode`` decides once, from the stored configuration, whether the
discount type runs the legacy request or an operator template; the two paths
never mix within a submission.
"""
import logging
from typing import Dict, Mapping, Optional

import httpx

from .config import DEFAULT_BODY_PARAMS, LEGACY_HEADERS, PARKING_API_URL
from .directives import NoteDirectives, safe_json_loads, split_note
from .errors import NETWORK_ERROR, NOT_FOUND, ConfigurationError
from .models import (
    CustomMode,
    DiscountTypeConfig,
    LegacyMode,
    OperatingMode,
    PreparedRequest,
    SubmissionResult,
)
from .request_builder import build_request, execute_request
from .response_evaluator import (
    evaluate_response,
    extract_discount_info,
    heuristic_result,
    parse_json_leniently,
    rule_result,
    upstream_errmsg,
)
from .store import NO_DISCOUNT_CODE, DiscountTypeStore
from .templating import stringify
from .template_parser import parse_request_template, parse_response_rule

logger = logging.getLogger(__name__)

REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError)

TemplateContext = Dict[str, Optional[str]]


def select_mode(discount_type: DiscountTypeConfig) -> OperatingMode:
    name = discount_type.name

    rule = parse_response_rule(discount_type.responseTemplate)
    if discount_type.responseTemplate and discount_type.responseTemplate.strip() and rule is None:
        raise ConfigurationError(f"Custom response template parse failed for {name}")

    if discount_type.useCustomRequest:
        raw = (discount_type.requestTemplate or "").strip()
        if not raw:
            raise ConfigurationError(f"Custom request enabled but template is empty for {name}")
        template = parse_request_template(raw)
        if template is None:
            raise ConfigurationError(f"Custom request template parse failed for {name}")
        return CustomMode(template=template, rule=rule)

    if not discount_type.jsessionid:
        raise ConfigurationError(f"Discount type {name} missing Session ID. Configure in settings.")

    stored = safe_json_loads(discount_type.postParams)
    return LegacyMode(
        jsessionid=discount_type.jsessionid,
        referer=discount_type.refererUrl or None,
        post_params=stored if isinstance(stored, dict) else {},
    )


def build_context(
    plate_number: str,
    discount_type: DiscountTypeConfig,
    note: NoteDirectives,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    extra: Optional[Mapping[str, Optional[str]]] = None,
) -> TemplateContext:
    # Note variables and extra are layered last and may shadow name/phone/note
    context: TemplateContext = {
        "plate": plate_number,
        "discountType": discount_type.code,
        "jsessionid": discount_type.jsessionid or None,
        "referer": discount_type.refererUrl or None,
        "scanUrl": discount_type.scanUrl or None,
        "note": note.cleaned or None,
        "name": name or None,
        "phone": phone or None,
    }
    context.update(note.variables)
    context.update(extra or {})
    return context


def build_legacy_request(mode: LegacyMode, plate_number: str) -> PreparedRequest:
    headers = {**LEGACY_HEADERS, "Cookie": f"JSESSIONID={mode.jsessionid}"}
    if mode.referer:
        headers["Referer"] = mode.referer
    params = {**DEFAULT_BODY_PARAMS, **mode.post_params, "plate": plate_number}
    body = str(httpx.QueryParams([(k, stringify(v) if v is not None else "null") for k, v in params.items()]))
    return PreparedRequest(method="POST", url=PARKING_API_URL, headers=headers, body=body)


async def _send_custom(
    client: httpx.AsyncClient,
    mode: CustomMode,
    discount_type: DiscountTypeConfig,
    plate_number: str,
    note: Optional[str],
    name: Optional[str],
    phone: Optional[str],
    extra: Optional[Mapping[str, Optional[str]]],
) -> SubmissionResult:
    directives = split_note(note)
    context = build_context(plate_number, discount_type, directives, name, phone, extra)
    prepared = build_request(mode.template, context, directives)
    response = await execute_request(client, prepared)

    evaluation = evaluate_response(response.text, mode.rule)
    if evaluation is not None:
        return rule_result(evaluation, response)
    return heuristic_result(response)


async def _send_legacy(client: httpx.AsyncClient, mode: LegacyMode, plate_number: str) -> SubmissionResult:
    response = await execute_request(client, build_legacy_request(mode, plate_number))
    payload = parse_json_leniently(response.text)
    info = extract_discount_info(payload)
    if info is not None:
        return SubmissionResult(success=True, rawResponse=response.text, discountInfo=info)
    return SubmissionResult(
        success=False,
        message=upstream_errmsg(payload) or "Parking discount request failed",
        rawResponse=response.text,
    )


async def send_parking_discount(
    client: httpx.AsyncClient,
    store: DiscountTypeStore,
    plate_number: str,
    discount_type_code: str,
    note: Optional[str] = None,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    extra: Optional[Mapping[str, Optional[str]]] = None,
) -> SubmissionResult:
    if discount_type_code == NO_DISCOUNT_CODE:
        return SubmissionResult(success=False, message="Discount type not set")

    discount_type = store.get_by_code(discount_type_code)
    if discount_type is None:
        return SubmissionResult(
            success=False,
            message=f"Discount type not found: {discount_type_code}",
            errorCode=NOT_FOUND,
        )

    try:
        mode = select_mode(discount_type)
    except ConfigurationError as e:
        logger.warning("[SUBMIT] type=%s configuration error: %s", discount_type_code, e)
        return SubmissionResult(success=False, message=str(e), errorCode=e.code)

    try:
        if isinstance(mode, CustomMode):
            result = await _send_custom(
                client, mode, discount_type, plate_number, note, name, phone, extra
            )
        else:
            result = await _send_legacy(client, mode, plate_number)
    except REQUEST_ERRORS as e:
        logger.error("[SUBMIT] type=%s plate=%s request failed: %r", discount_type_code, plate_number, e)
        return SubmissionResult(
            success=False,
            message="Failed to request parking system",
            errorCode=NETWORK_ERROR,
        )

    logger.info(
        "[SUBMIT] type=%s plate=%s mode=%s success=%s",
        discount_type_code,
        plate_number,
        "custom" if isinstance(mode, CustomMode) else "legacy",
        result.success,
    )
    return result
