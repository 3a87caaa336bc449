"""
AI insights: a data summary of the click logs, a Bedrock text model prompt,
and reshaping of the model's markdown answer into dashboard sections.
"""
import json
import re
from dataclasses import dataclass
from functools import lru_cache

import boto3

from linksnap import config
from linksnap.aggregator import compute_site_stats, device_breakdown, referrer_breakdown

SUMMARY_TOP_N = 5

HEADER_PAT = re.compile(r"^(#{2,3})\s+(.+)$")
CLEAN_HEADER_PAT = re.compile(r"^#{2,3}\s+\d*\.?\s*", re.M)
NUMBER_PREFIX_PAT = re.compile(r"^\d+\.\s*")

TRAFFIC_KEYWORDS = ("트래픽", "패턴")
REFERRER_KEYWORDS = ("채널", "유입", "경로")
MARKETING_KEYWORDS = ("마케팅", "타겟", "전환", "액션", "실행")


def resolve_analysis_type(requested: str | None) -> str:
    if requested in ("url", "traffic"):
        return "traffic"
    if requested in ("marketing", "conversion"):
        return "conversion"
    return "full"


def build_data_summary(entries) -> dict:
    site = compute_site_stats(entries)
    events = [ev for e in entries for ev in e.events]
    return {
        "total_urls": site.total_urls,
        "total_clicks": site.total_clicks,
        "top_referers": [r.name for r in referrer_breakdown(events)[:SUMMARY_TOP_N]],
        "top_devices": [d.name for d in device_breakdown(events)[:SUMMARY_TOP_N]],
        "top_urls": [
            {"url": u.original_url, "clicks": u.clicks}
            for u in site.popular_urls[:SUMMARY_TOP_N]
        ],
    }


def build_prompt(analysis_type: str, summary: dict) -> str:
    focus = {
        "traffic": "트래픽 패턴과 유입 경로(채널)에 집중하라.",
        "conversion": "마케팅 타겟, 전환 개선, 실행 가능한 액션 아이템에 집중하라.",
        "full": "트래픽 패턴, 유입 채널, 마케팅 제안을 모두 다뤄라.",
    }[analysis_type]
    raw_json = json.dumps(summary, ensure_ascii=False)

    return f"""
너는 URL 단축 서비스의 클릭 데이터 분석가다.
아래 요약 데이터를 보고 관리자 대시보드에 표시할 한국어 인사이트를 작성하라.

규칙:
- 한국어로 작성
- 각 섹션은 '### 1. 제목' 형식의 헤더로 시작
- 추정 내용은 반드시 '(추정)' 표시
- 입력 데이터 범위 밖의 수치를 만들지 말 것
- {focus}

섹션 예시: 트래픽 패턴 분석 / 유입 채널 분석 / 마케팅 타겟 제안 / 실행 액션 아이템

입력 데이터(JSON):
{raw_json}
""".strip()


@lru_cache(maxsize=1)
def _bedrock_client():
    return boto3.client("bedrock-runtime", region_name=config.BEDROCK_REGION)


def invoke_bedrock(prompt: str) -> str:
    """Amazon Nova 계열 InvokeModel 형식 (텍스트 생성)"""
    body = {
        "messages": [
            {
                "role": "user",
                "content": [
                    {"text": prompt}
                ]
            }
        ],
        "inferenceConfig": {
            "max_new_tokens": config.BEDROCK_MAX_TOKENS,
            "temperature": 0.3
        }
    }

    resp = _bedrock_client().invoke_model(
        modelId=config.BEDROCK_MODEL_ID,
        body=json.dumps(body).encode("utf-8"),
        contentType="application/json",
        accept="application/json",
    )
    return extract_model_text(json.loads(resp["body"].read()))


def extract_model_text(payload: dict) -> str:
    texts = []

    # output.message.content[]
    message = (payload.get("output") or {}).get("message") or {}
    for item in message.get("content", []):
        if isinstance(item, dict) and item.get("text"):
            texts.append(item["text"])

    # results[0].outputText
    if not texts:
        for r in payload.get("results", []):
            if r.get("outputText"):
                texts.append(r["outputText"])

    if not texts:
        for key in ("generation", "text", "outputText"):
            t = payload.get(key)
            if isinstance(t, str) and t.strip():
                texts.append(t.strip())

    return "\n".join(texts).strip()


# ---------------- markdown reshaping ----------------

@dataclass
class Section:
    title: str
    content: str


def parse_sections(markdown: str) -> list[Section]:
    """Split on '## ' / '### ' headers. Text before the first header is dropped."""
    sections = []
    current = None
    body = []

    for line in (markdown or "").split("\n"):
        m = HEADER_PAT.match(line)
        if m:
            if current is not None:
                sections.append(Section(current, "\n".join(body).strip()))
            current = m.group(2)
            body = []
        elif current is not None:
            body.append(line)

    if current is not None:
        sections.append(Section(current, "\n".join(body).strip()))
    return sections


def clean_markdown(text: str) -> str:
    text = CLEAN_HEADER_PAT.sub("", text or "")
    return re.sub(r"^\s*\n", "\n", text, flags=re.M).strip()


def renumber_sections(sections: list[Section]) -> str:
    return "\n\n".join(
        f"{i}. {NUMBER_PREFIX_PAT.sub('', s.title).strip()}\n{s.content.strip()}"
        for i, s in enumerate(sections, start=1)
    )


def _find(sections, keywords):
    for s in sections:
        if any(k in s.title for k in keywords):
            return s
    return None


def shape_insights(analysis_type: str, markdown: str) -> dict:
    sections = parse_sections(markdown)

    if analysis_type == "traffic":
        traffic = _find(sections, TRAFFIC_KEYWORDS)
        referrer = _find(sections, REFERRER_KEYWORDS)
        # empty sections fall through to the next candidate
        traffic_text = (
            (traffic.content if traffic else "")
            or (sections[0].content if sections else "")
            or markdown
        )
        referrer_text = (
            (referrer.content if referrer else "")
            or (sections[2].content if len(sections) > 2 else "")
        )
        return {
            "trafficPattern": clean_markdown(traffic_text),
            "referrerAnalysis": clean_markdown(referrer_text),
        }

    if analysis_type == "conversion":
        marketing = [s for s in sections if any(k in s.title for k in MARKETING_KEYWORDS)]
        return {"targetAnalysis": renumber_sections(marketing) if marketing else clean_markdown(markdown)}

    return {"trendAnalysis": renumber_sections(sections) if sections else clean_markdown(markdown)}
