import time
from datetime import datetime

from linksnap import config
from linksnap.aggregator import compute_site_stats, compute_url_stats
from linksnap.apigw import (
    create_response,
    elapsed_ms,
    extract_http_info,
    get_header,
    is_preflight,
    log_json,
    request_id_of,
)
from linksnap.models import iso_z
from linksnap.store import get_default_store


def now_local() -> datetime:
    return datetime.now(config.REPORT_TZ)


def lambda_handler(event, context):
    """
    GET /stats/{shortId} -> 단일 URL 통계
    GET /stats           -> 사이트 전체 통계 + 인기/최근 URL별 상세 통계(urlStats)
    """
    start = time.time()

    method, route, path = extract_http_info(event)
    headers = event.get("headers") or {}

    if is_preflight(event):
        return create_response(200, {})

    log_ctx = dict(
        requestId=request_id_of(context),
        route=route,
        method=method,
        path=path,
        userAgent=get_header(headers, "user-agent"),
    )
    short_id = (event.get("pathParameters") or {}).get("shortId")

    try:
        store = get_default_store()
        now = now_local()

        if short_id:
            entry = store.get_entry(short_id)
            if entry is None:
                log_json("WARN", "stats url not found", shortId=short_id, statusCode=404,
                         latencyMs=elapsed_ms(start), **log_ctx)
                return create_response(404, {"error": "URL not found"})

            body = url_stats_body(entry, now)
            log_json(
                "INFO",
                "stats fetched",
                shortId=short_id,
                statusCode=200,
                latencyMs=elapsed_ms(start),
                totalClicks=body["totalClicks"],
                **log_ctx,
            )
            return create_response(200, body)

        entries = store.get_all_entries()
        site = compute_site_stats(entries, now=now)

        # 인기 + 최근 URL 상세 통계 (중복 제거, 순서 유지)
        wanted = dict.fromkeys(u.short_code for u in site.popular_urls + site.recent_urls)
        by_code = {e.short_code: e for e in entries}
        url_stats = [url_stats_body(by_code[code], now) for code in wanted]

        body = {**site.to_dict(), "urlStats": url_stats}
        log_json(
            "INFO",
            "site stats fetched",
            statusCode=200,
            latencyMs=elapsed_ms(start),
            totalUrls=site.total_urls,
            totalClicks=site.total_clicks,
            **log_ctx,
        )
        return create_response(200, body)

    except Exception as e:
        log_json(
            "ERROR",
            "stats failed",
            shortId=short_id,
            statusCode=500,
            latencyMs=elapsed_ms(start),
            errorType=type(e).__name__,
            errorMessage=str(e),
            **log_ctx,
        )
        return create_response(500, {"error": "Failed to fetch analytics"})


def url_stats_body(entry, now: datetime) -> dict:
    return {
        "shortCode": entry.short_code,
        "originalUrl": entry.original_url,
        "createdAt": iso_z(entry.created_at),
        **compute_url_stats(entry, now).to_dict(),
    }
