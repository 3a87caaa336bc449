import io
import json

import pytest

from conftest import click, http_event, make_entry
from linksnap import insights
from linksnap.handlers import insights as insights_handler

SAMPLE_MARKDOWN = """분석 결과입니다.

### 1. 트래픽 패턴 분석
오후 2시에 클릭이 집중됩니다.

### 2. 마케팅 타겟 제안
모바일 사용자 대상 캠페인을 권장합니다.

### 3. 유입 채널 분석
google.com 유입이 가장 많습니다.

## 4. 실행 액션 아이템
- 트위터 게시 시간 조정
"""


class TestAnalysisType:
    @pytest.mark.parametrize("requested, expected", [
        ("url", "traffic"),
        ("traffic", "traffic"),
        ("marketing", "conversion"),
        ("conversion", "conversion"),
        ("site", "full"),
        ("full", "full"),
        (None, "full"),
        ("whatever", "full"),
    ])
    def test_mapping(self, requested, expected):
        assert insights.resolve_analysis_type(requested) == expected


class TestSections:
    def test_parse_sections(self):
        sections = insights.parse_sections(SAMPLE_MARKDOWN)

        assert [s.title for s in sections] == [
            "1. 트래픽 패턴 분석", "2. 마케팅 타겟 제안", "3. 유입 채널 분석", "4. 실행 액션 아이템",
        ]
        assert sections[0].content == "오후 2시에 클릭이 집중됩니다."

    def test_traffic_shape(self):
        shaped = insights.shape_insights("traffic", SAMPLE_MARKDOWN)

        assert shaped == {
            "trafficPattern": "오후 2시에 클릭이 집중됩니다.",
            "referrerAnalysis": "google.com 유입이 가장 많습니다.",
        }

    def test_empty_traffic_section_falls_back_to_first(self):
        md = "### 1. 요약\n본문A\n### 2. 트래픽 패턴\n### 3. 유입 채널\n본문C"

        shaped = insights.shape_insights("traffic", md)

        assert shaped == {"trafficPattern": "본문A", "referrerAnalysis": "본문C"}

    def test_empty_referrer_section_falls_back_to_third(self):
        md = "### 1. 트래픽 패턴\n본문A\n### 2. 유입 채널\n\n### 3. 기타\n본문C"

        shaped = insights.shape_insights("traffic", md)

        assert shaped == {"trafficPattern": "본문A", "referrerAnalysis": "본문C"}

    def test_conversion_renumbers_marketing_sections(self):
        shaped = insights.shape_insights("conversion", SAMPLE_MARKDOWN)

        assert shaped["targetAnalysis"] == (
            "1. 마케팅 타겟 제안\n모바일 사용자 대상 캠페인을 권장합니다.\n\n"
            "2. 실행 액션 아이템\n- 트위터 게시 시간 조정"
        )

    def test_full_renumbers_everything(self):
        text = insights.shape_insights("full", SAMPLE_MARKDOWN)["trendAnalysis"]

        assert text.startswith("1. 트래픽 패턴 분석\n")
        assert "\n\n3. 유입 채널 분석\n" in text
        assert "###" not in text

    def test_unstructured_answer_falls_back_to_cleaned_text(self):
        plain = "그냥 한 문단짜리 답변"

        assert insights.shape_insights("full", plain) == {"trendAnalysis": plain}
        assert insights.shape_insights("traffic", plain) == {"trafficPattern": plain, "referrerAnalysis": ""}


class TestModelPayload:
    def test_nova_message_shape(self):
        payload = {"output": {"message": {"content": [{"text": "### 1. 트래픽"}, {"text": "본문"}]}}}

        assert insights.extract_model_text(payload) == "### 1. 트래픽\n본문"

    def test_results_shape(self):
        assert insights.extract_model_text({"results": [{"outputText": "결과"}]}) == "결과"

    def test_invoke_bedrock_request(self, monkeypatch):
        calls = {}

        class FakeBedrock:
            def invoke_model(self, **kwargs):
                calls.update(kwargs)
                body = json.dumps({"output": {"message": {"content": [{"text": "ok"}]}}}).encode("utf-8")
                return {"body": io.BytesIO(body)}

        monkeypatch.setattr(insights, "_bedrock_client", lambda: FakeBedrock())

        assert insights.invoke_bedrock("prompt") == "ok"
        sent = json.loads(calls["body"])
        assert sent["messages"][0]["content"][0]["text"] == "prompt"
        assert calls["contentType"] == "application/json"


class TestDataSummary:
    def test_summary_from_entries(self, now):
        entries = [
            make_entry("aaa111", events=[click(now, referrer="https://google.com/x")] * 3),
            make_entry("bbb222", events=[click(now, user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 16_0)")]),
        ]

        summary = insights.build_data_summary(entries)

        assert summary["total_urls"] == 2
        assert summary["total_clicks"] == 4
        assert summary["top_referers"] == ["google.com", "direct"]
        assert summary["top_devices"] == ["Windows", "iPhone"]
        assert summary["top_urls"][0] == {"url": "https://example.com/aaa111", "clicks": 3}

    def test_prompt_embeds_summary(self):
        prompt = insights.build_prompt("traffic", {"total_clicks": 42})

        assert '"total_clicks": 42' in prompt
        assert "트래픽 패턴" in prompt


class TestHandler:
    def test_traffic_insights(self, store, lambda_context, monkeypatch, now):
        store.put_entry(make_entry("abc123", events=[click(now)] * 2))
        prompts = []

        def fake_model(prompt):
            prompts.append(prompt)
            return SAMPLE_MARKDOWN

        monkeypatch.setattr(insights, "invoke_bedrock", fake_model)

        resp = insights_handler.lambda_handler(
            http_event("POST", "/ai/insights", body={"type": "url"}), lambda_context
        )

        assert resp["statusCode"] == 200
        data = json.loads(resp["body"])
        assert data["analysisType"] == "traffic"
        assert data["trafficPattern"] == "오후 2시에 클릭이 집중됩니다."
        assert data["dataSummary"]["total_clicks"] == 2
        assert data["generatedAt"].endswith("Z")
        assert len(prompts) == 1

    def test_model_failure_is_502(self, store, lambda_context, monkeypatch):
        def broken(prompt):
            raise RuntimeError("AccessDeniedException")

        monkeypatch.setattr(insights, "invoke_bedrock", broken)

        resp = insights_handler.lambda_handler(
            http_event("POST", "/ai/insights", body={"type": "site"}), lambda_context
        )

        assert resp["statusCode"] == 502
        assert json.loads(resp["body"])["error"] == insights_handler.AI_ERROR_MESSAGE

    def test_empty_model_output_is_502(self, store, lambda_context, monkeypatch):
        monkeypatch.setattr(insights, "invoke_bedrock", lambda prompt: "")

        resp = insights_handler.lambda_handler(http_event("POST", "/ai/insights", body={}), lambda_context)

        assert resp["statusCode"] == 502
