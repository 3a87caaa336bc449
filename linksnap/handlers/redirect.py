import time
from datetime import datetime, timezone

from linksnap import config
from linksnap.apigw import (
    create_response,
    elapsed_ms,
    extract_http_info,
    get_header,
    log_json,
    request_id_of,
)
from linksnap.models import ClickEvent
from linksnap.store import get_default_store


def lambda_handler(event, context):
    """
    GET /{shortId}
    - 원본 URL 조회
    - 클릭 이벤트 기록 (실패해도 리다이렉트는 되게)
    - 301/302 Redirect
    """
    start = time.time()

    method, route, path = extract_http_info(event)
    headers = event.get("headers") or {}
    user_agent = get_header(headers, "user-agent") or ""
    referer = get_header(headers, "referer") or "direct"

    log_ctx = dict(
        requestId=request_id_of(context),
        route=route,
        method=method,
        path=path,
        referer=referer,
        userAgent=user_agent,
    )
    short_id = None

    try:
        short_id = extract_short_id(event)
        if not short_id:
            log_json("WARN", "shortId missing", statusCode=400, latencyMs=elapsed_ms(start), **log_ctx)
            return create_response(400, {"error": "Short ID is required"})

        store = get_default_store()
        entry = store.get_entry(short_id)
        if entry is None:
            log_json("WARN", "url not found", shortId=short_id, statusCode=404, latencyMs=elapsed_ms(start), **log_ctx)
            return create_response(404, {"error": "URL not found"})

        try:
            store.append_event(short_id, ClickEvent(
                timestamp=datetime.now(timezone.utc),
                referrer=referer,
                user_agent=user_agent,
            ))
        except Exception as e:
            log_json(
                "ERROR",
                "click record failed",
                shortId=short_id,
                errorType=type(e).__name__,
                errorMessage=str(e),
                **log_ctx,
            )

        log_json(
            "INFO",
            "redirect handled",
            shortId=short_id,
            statusCode=config.REDIRECT_STATUS,
            latencyMs=elapsed_ms(start),
            **log_ctx,
        )
        return {
            "statusCode": config.REDIRECT_STATUS,
            "headers": {
                "Location": entry.original_url,
                "Cache-Control": "no-cache, no-store, must-revalidate",
                "Pragma": "no-cache",
                "Expires": "0",
            },
            "body": "",
        }

    except Exception as e:
        log_json(
            "ERROR",
            "redirect failed",
            shortId=short_id,
            statusCode=500,
            latencyMs=elapsed_ms(start),
            errorType=type(e).__name__,
            errorMessage=str(e),
            **log_ctx,
        )
        return create_response(500, {"error": "Internal server error"})


def extract_short_id(event) -> str | None:
    pp = event.get("pathParameters") or {}
    short_id = pp.get("shortId")
    if short_id:
        return short_id

    raw_path = (event.get("rawPath") or event.get("path") or "").strip("/")
    if raw_path and raw_path.lower() not in ("prod", "dev"):
        return raw_path.split("/")[-1]

    return None
