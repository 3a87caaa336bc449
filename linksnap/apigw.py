import base64
import json
import time
from datetime import datetime
from decimal import Decimal
from urllib.parse import urlparse


def create_response(status_code: int, body: dict, headers: dict | None = None):
    merged = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Headers": "Content-Type,Authorization",
        "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
    }
    if headers:
        merged.update(headers)
    return {
        "statusCode": status_code,
        "headers": merged,
        "body": json.dumps(body, ensure_ascii=False, default=_json_default),
    }


def _json_default(o):
    if isinstance(o, Decimal):
        # 정수면 int로, 소수면 float로
        if o % 1 == 0:
            return int(o)
        return float(o)
    if isinstance(o, datetime):
        return o.isoformat()
    raise TypeError(f"Type not serializable: {type(o)}")


def log_json(level, message, **kwargs):
    log_obj = {
        "level": level,
        "message": message,
        **kwargs,
    }
    print(json.dumps(log_obj, ensure_ascii=False, default=_json_default))


def elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


def extract_http_info(event):
    method = None
    route = None
    path = None

    # HTTP API (v2)
    rc = event.get("requestContext", {}) or {}
    http = rc.get("http", {}) or {}
    if http:
        method = http.get("method")
        path = http.get("path")
        route_key = event.get("routeKey")  # ex) "GET /stats/{shortId}"
        route = route_key if route_key and route_key != "$default" else path

    # REST API (v1) fallback
    if method is None:
        method = event.get("httpMethod")
    if path is None:
        path = event.get("path")
    if route is None:
        route = event.get("resource") or path

    return method, route, path


def is_preflight(event) -> bool:
    method, _, _ = extract_http_info(event)
    return method == "OPTIONS"


def get_header(headers, key):
    if not headers:
        return None
    return headers.get(key) or headers.get(key.lower()) or headers.get(key.title())


def parse_body(event):
    raw = event.get("body")
    if raw is None:
        return {}
    if event.get("isBase64Encoded"):
        raw = base64.b64decode(raw).decode("utf-8", errors="replace")
    if isinstance(raw, (dict, list)):
        return raw
    body = json.loads(raw)
    if not isinstance(body, dict):
        raise ValueError("JSON body must be an object")
    return body


def validate_url(url: str):
    if not url:
        return "URL is required"
    try:
        p = urlparse(url)
    except ValueError:
        return "Invalid URL"

    if p.scheme not in ("http", "https"):
        return "URL must start with http:// or https://"
    if not p.netloc:
        return "Invalid URL"

    # block localhost (light SSRF mitigation)
    host = (p.hostname or "").lower()
    if host in ("localhost", "127.0.0.1", "::1"):
        return "Invalid URL"

    return None


def safe_domain(url: str | None) -> str | None:
    if not url:
        return None
    try:
        return (urlparse(url).hostname or "").lower() or None
    except ValueError:
        return None


def request_id_of(context):
    return getattr(context, "aws_request_id", None)
