import hmac
import time

from linksnap import config
from linksnap.apigw import (
    create_response,
    elapsed_ms,
    extract_http_info,
    is_preflight,
    log_json,
    parse_body,
    request_id_of,
)

SESSION_COOKIE = "admin_session"


def validate_credentials(email: str, password: str) -> bool:
    email_ok = hmac.compare_digest(email.encode("utf-8"), config.ADMIN_EMAIL.encode("utf-8"))
    password_ok = hmac.compare_digest(password.encode("utf-8"), config.ADMIN_PASSWORD.encode("utf-8"))
    return email_ok and password_ok


def lambda_handler(event, context):
    """POST /auth/login {"email", "password"} -> admin_session cookie"""
    start = time.time()

    method, route, path = extract_http_info(event)
    if is_preflight(event):
        return create_response(200, {})

    log_ctx = dict(requestId=request_id_of(context), route=route, method=method, path=path)

    try:
        body = parse_body(event)
        email = str(body.get("email") or "")
        password = str(body.get("password") or "")

        if not email or not password:
            log_json("WARN", "login missing fields", statusCode=400, latencyMs=elapsed_ms(start), **log_ctx)
            return create_response(400, {"error": "이메일과 비밀번호를 입력해주세요"})

        if not validate_credentials(email, password):
            log_json("WARN", "login rejected", statusCode=401, latencyMs=elapsed_ms(start), **log_ctx)
            return create_response(401, {"error": "이메일 또는 비밀번호가 올바르지 않습니다"})

        cookie = f"{SESSION_COOKIE}=authenticated; Max-Age={config.SESSION_MAX_AGE}; Path=/; HttpOnly; Secure; SameSite=Lax"
        log_json("INFO", "login succeeded", statusCode=200, latencyMs=elapsed_ms(start), **log_ctx)
        return create_response(200, {"success": True}, headers={"Set-Cookie": cookie})

    except ValueError:
        log_json("WARN", "login invalid json body", statusCode=400, latencyMs=elapsed_ms(start), **log_ctx)
        return create_response(400, {"error": "Invalid JSON body"})

    except Exception as e:
        log_json(
            "ERROR",
            "login failed",
            statusCode=500,
            latencyMs=elapsed_ms(start),
            errorType=type(e).__name__,
            errorMessage=str(e),
            **log_ctx,
        )
        return create_response(500, {"error": "로그인 처리 중 오류가 발생했습니다"})
