import time
from datetime import datetime, timezone

from linksnap import insights
from linksnap.apigw import (
    create_response,
    elapsed_ms,
    extract_http_info,
    is_preflight,
    log_json,
    parse_body,
    request_id_of,
)
from linksnap.models import iso_z
from linksnap.store import get_default_store

AI_ERROR_MESSAGE = "AI 분석 생성에 실패했습니다"


def lambda_handler(event, context):
    """
    POST /ai/insights {"type": "url|traffic|marketing|conversion|site|full"}
    - 전체 클릭 로그 요약 -> Bedrock 프롬프트
    - 응답 markdown을 섹션 단위로 잘라 대시보드 형태로 변환
    """
    start = time.time()

    method, route, path = extract_http_info(event)
    if is_preflight(event):
        return create_response(200, {})

    log_ctx = dict(requestId=request_id_of(context), route=route, method=method, path=path)
    analysis_type = None

    try:
        body = parse_body(event)
        analysis_type = insights.resolve_analysis_type(body.get("type"))

        summary = insights.build_data_summary(get_default_store().get_all_entries())
        prompt = insights.build_prompt(analysis_type, summary)

        try:
            markdown = insights.invoke_bedrock(prompt)
        except Exception as e:
            log_json(
                "ERROR",
                "insights model call failed",
                analysisType=analysis_type,
                statusCode=502,
                latencyMs=elapsed_ms(start),
                errorType=type(e).__name__,
                errorMessage=str(e),
                **log_ctx,
            )
            return create_response(502, {"error": AI_ERROR_MESSAGE})

        if not markdown:
            log_json("ERROR", "insights empty model output", analysisType=analysis_type, statusCode=502,
                     latencyMs=elapsed_ms(start), **log_ctx)
            return create_response(502, {"error": AI_ERROR_MESSAGE})

        result = {
            **insights.shape_insights(analysis_type, markdown),
            "analysisType": analysis_type,
            "dataSummary": summary,
            "generatedAt": iso_z(datetime.now(timezone.utc)),
        }
        log_json(
            "INFO",
            "insights generated",
            analysisType=analysis_type,
            statusCode=200,
            latencyMs=elapsed_ms(start),
            totalClicks=summary["total_clicks"],
            **log_ctx,
        )
        return create_response(200, result)

    except ValueError:
        log_json("WARN", "insights invalid json body", statusCode=400, latencyMs=elapsed_ms(start), **log_ctx)
        return create_response(400, {"error": "Invalid JSON body"})

    except Exception as e:
        log_json(
            "ERROR",
            "insights failed",
            analysisType=analysis_type,
            statusCode=500,
            latencyMs=elapsed_ms(start),
            errorType=type(e).__name__,
            errorMessage=str(e),
            **log_ctx,
        )
        return create_response(500, {"error": AI_ERROR_MESSAGE})
