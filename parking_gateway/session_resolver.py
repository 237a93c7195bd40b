# parking_gateway/session_resolver.py
import json
import logging
import re
from typing import Optional

import httpx

from .config import DEFAULT_BODY_PARAMS, MOBILE_USER_AGENT, REDIRECT_PARAM_KEYS
from .errors import NOT_FOUND, SESSION_ERROR
from .models import ScanUrlUpdateResult, SessionResolution
from .store import DiscountTypeStore

logger = logging.getLogger(__name__)

JSESSIONID_RE = re.compile(r"jsessionid=([A-Z0-9]+)", re.IGNORECASE)
SESSION_NOT_FOUND_MESSAGE = "Could not extract session id from URL, check that the URL is correct"


async def resolve_session(client: httpx.AsyncClient, scan_url: str) -> Optional[SessionResolution]:
    try:
        r = await client.get(
            scan_url,
            headers={"User-Agent": MOBILE_USER_AGENT},
            follow_redirects=False,
        )
        location = r.headers.get("Location")
        if location:
            redirect_url = str(httpx.URL(scan_url).join(location))
            match = JSESSIONID_RE.search(redirect_url)
            if not match:
                logger.info("[SESSION] redirect without jsessionid url=%s", redirect_url)
                return None
            query = dict(httpx.URL(redirect_url).params.multi_items())
            return SessionResolution(jsessionid=match.group(1), redirectUrl=redirect_url, query=query)

        match = JSESSIONID_RE.search(r.text)
        if match:
            return SessionResolution(jsessionid=match.group(1))
        logger.info("[SESSION] no redirect and no jsessionid status=%s url=%s", r.status_code, scan_url)
        return None
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("[SESSION] resolve failed url=%s: %s", scan_url, e)
        return None


async def fetch_jsessionid(client: httpx.AsyncClient, scan_url: str) -> Optional[str]:
    resolved = await resolve_session(client, scan_url)
    return resolved.jsessionid if resolved else None


async def update_discount_url(
    client: httpx.AsyncClient,
    store: DiscountTypeStore,
    code: str,
    scan_url: str,
) -> ScanUrlUpdateResult:
    """Point a discount type at a new scan URL and refresh its session data."""
    discount_type = store.get_by_code(code)
    if discount_type is None:
        return ScanUrlUpdateResult(
            success=False, message=f"Discount type not found: {code}", errorCode=NOT_FOUND
        )

    resolved = await resolve_session(client, scan_url)
    if resolved is None:
        return ScanUrlUpdateResult(
            success=False, message=SESSION_NOT_FOUND_MESSAGE, errorCode=SESSION_ERROR
        )

    # POST parameters come from the redirect query rather than the hardcoded defaults
    query = resolved.query or {}
    post_params = {key: query.get(key) or DEFAULT_BODY_PARAMS[key] for key in REDIRECT_PARAM_KEYS}

    store.update(
        code,
        scanUrl=scan_url,
        jsessionid=resolved.jsessionid,
        refererUrl=resolved.redirectUrl,
        postParams=json.dumps(post_params),
    )
    logger.info("[SESSION] discount type %s updated jsessionid=%s", code, resolved.jsessionid)
    return ScanUrlUpdateResult(success=True, jsessionid=resolved.jsessionid)
