# parking_gateway/request_builder.py
import json
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from .directives import NoteDirectives, apply_directives, has_header, set_header
from .models import PreparedRequest, RequestTemplate, UpstreamResponse
from .templating import apply_template, replace_templates, stringify

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"


def serialize_body(body: Any, body_type: Optional[str], context: Mapping[str, Any]) -> Optional[str]:
    if body is None:
        return None
    resolved = replace_templates(body, context)
    if isinstance(resolved, str):
        return resolved
    if body_type == "json":
        return json.dumps(resolved, ensure_ascii=False, separators=(",", ":"))
    return str(httpx.QueryParams([(key, stringify(value)) for key, value in resolved.items()]))


def build_request(
    template: RequestTemplate,
    context: Mapping[str, Any],
    note: Optional[NoteDirectives] = None,
) -> PreparedRequest:
    effective = template.model_copy(deep=True)
    if note is not None:
        apply_directives(effective, note.body, note.header)

    url = apply_template(effective.url, context)
    method = (effective.method or "POST").upper()

    headers: Dict[str, str] = {
        key: apply_template(stringify(value), context)
        for key, value in (effective.headers or {}).items()
    }
    if not has_header(headers, "cookie") and context.get("jsessionid"):
        set_header(headers, "Cookie", f"JSESSIONID={context['jsessionid']}")
    if not has_header(headers, "referer") and context.get("referer"):
        set_header(headers, "Referer", context["referer"])

    body: Optional[str] = None
    if method != "GET":
        body_type = effective.bodyType or ("form" if isinstance(effective.body, dict) else None)
        body = serialize_body(effective.body, body_type, context)
        if body_type == "json" and not has_header(headers, "content-type"):
            set_header(headers, "Content-Type", JSON_CONTENT_TYPE)
        elif body_type == "form" and not has_header(headers, "content-type"):
            set_header(headers, "Content-Type", FORM_CONTENT_TYPE)

    return PreparedRequest(method=method, url=url, headers=headers, body=body)


async def execute_request(client: httpx.AsyncClient, prepared: PreparedRequest) -> UpstreamResponse:
    r = await client.request(
        prepared.method,
        prepared.url,
        headers=prepared.headers,
        content=prepared.body.encode("utf-8") if prepared.body is not None else None,
    )
    logger.info("[UPSTREAM] %s %s status=%s", prepared.method, prepared.url, r.status_code)
    return UpstreamResponse(status_code=r.status_code, text=r.text)
