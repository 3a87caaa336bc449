import time

from linksnap import config
from linksnap.apigw import (
    create_response,
    elapsed_ms,
    extract_http_info,
    get_header,
    is_preflight,
    log_json,
    parse_body,
    request_id_of,
    safe_domain,
    validate_url,
)
from linksnap.models import iso_z
from linksnap.store import ShortCodeExhausted, create_short_url, get_default_store


def lambda_handler(event, context):
    """
    POST /shorten {"url": "..."}
    - URL 검증 (http/https, host 필수)
    - shortCode 생성 + 충돌 시 재시도
    - 201 {urlId, shortCode, shortUrl, originalUrl, createdAt}
    """
    start = time.time()

    method, route, path = extract_http_info(event)
    headers = event.get("headers") or {}
    user_agent = get_header(headers, "user-agent")
    request_id = request_id_of(context)

    # CORS preflight
    if is_preflight(event):
        return create_response(200, {})

    log_ctx = dict(requestId=request_id, route=route, method=method, path=path, userAgent=user_agent)

    try:
        body = parse_body(event)
        original_url = (body.get("url") or "").strip()

        err = validate_url(original_url)
        if err:
            log_json(
                "WARN",
                "shorten invalid url",
                statusCode=400,
                latencyMs=elapsed_ms(start),
                urlDomain=safe_domain(original_url),
                errorMessage=err,
                **log_ctx,
            )
            return create_response(400, {"error": err})

        entry = create_short_url(get_default_store(), original_url)
        short_url = build_short_url(event, entry.short_code)

        log_json(
            "INFO",
            "shorten created",
            statusCode=201,
            latencyMs=elapsed_ms(start),
            createdShortCode=entry.short_code,
            urlDomain=safe_domain(original_url),
            **log_ctx,
        )
        return create_response(201, {
            "urlId": entry.id,
            "shortCode": entry.short_code,
            "shortUrl": short_url,
            "originalUrl": entry.original_url,
            "createdAt": iso_z(entry.created_at),
        })

    except ShortCodeExhausted as e:
        log_json(
            "ERROR",
            "shorten id generation failed",
            statusCode=500,
            latencyMs=elapsed_ms(start),
            errorMessage=str(e),
            **log_ctx,
        )
        return create_response(500, {"error": "Failed to generate unique short code"})

    except ValueError:
        log_json("WARN", "shorten invalid json body", statusCode=400, latencyMs=elapsed_ms(start), **log_ctx)
        return create_response(400, {"error": "Invalid JSON body"})

    except Exception as e:
        log_json(
            "ERROR",
            "shorten failed",
            statusCode=500,
            latencyMs=elapsed_ms(start),
            errorType=type(e).__name__,
            errorMessage=str(e),
            **log_ctx,
        )
        return create_response(500, {"error": "Internal server error"})


def build_short_url(event, short_code: str) -> str:
    if config.BASE_URL:
        return f"{config.BASE_URL}/{short_code}"

    # API Gateway fallback
    rc = event.get("requestContext") or {}
    domain = rc.get("domainName")
    stage = rc.get("stage")
    if domain and stage and stage != "$default":
        return f"https://{domain}/{stage}/{short_code}"
    if domain:
        return f"https://{domain}/{short_code}"
    return f"/{short_code}"
