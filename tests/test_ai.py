import json

import httpx
import pytest

from vervain.ai import AIAnalyzer, AIVerdict, EmailFields, build_user_message, label_for_confidence, parse_reply
from vervain.errors import AIAnalysisError, MissingAPIKey

VERDICT = {
    "confidence": 82,
    "label": "suspicious",
    "pushed": {
        "urgency": {"detected": True, "evidence": "Pay within 24 hours"},
        "pressure": {"detected": False, "evidence": None},
    },
    "verify": [
        {"flag": "sender_domain", "status": "warning", "detail": "acme-support.net mimics acme.com"},
        {"flag": "greeting", "status": "ok", "detail": "Personal greeting"},
    ],
    "reasoning": "Look-alike sender domain with urgent payment request.",
}

EMAIL = EmailFields(
    sender_name="Jane Roe",
    sender_email="jane@acme-support.net",
    subject="Overdue invoice",
    body="Please pay now.",
    urls=["https://acme-pay.com/invoice"],
)


def _anthropic_reply(text):
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_anthropic_request_and_fenced_reply():
    requests = []

    def handler(request):
        requests.append(request)
        return _anthropic_reply("```json\n" + json.dumps(VERDICT) + "\n```")

    client = _client(handler)
    analyzer = AIAnalyzer(api_key="sk-test", client=client)
    verdict = await analyzer.analyze(EMAIL)
    await client.aclose()

    assert verdict.confidence == 82
    assert verdict.label == "suspicious"
    assert verdict.detected_pushed == ["urgency"]
    assert [w["flag"] for w in verdict.warnings] == ["sender_domain"]

    request = requests[0]
    assert request.url == httpx.URL("https://api.anthropic.com/v1/messages")
    assert request.headers["x-api-key"] == "sk-test"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.content)
    assert body["model"] == "claude-sonnet-4-5-20250929"
    assert body["max_tokens"] == 1024
    assert "PUSHED" in body["system"]
    assert "jane@acme-support.net" in body["messages"][0]["content"]


@pytest.mark.asyncio
async def test_openai_provider():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(
            200, json={"choices": [{"message": {"content": json.dumps({"confidence": 45})}}]}
        )

    client = _client(handler)
    analyzer = AIAnalyzer(api_key="sk-openai", provider="openai", model="gpt-test", client=client)
    verdict = await analyzer.analyze(EMAIL)
    await client.aclose()

    assert verdict.label == "caution"
    request = requests[0]
    assert request.headers["authorization"] == "Bearer sk-openai"
    body = json.loads(request.content)
    assert body["model"] == "gpt-test"
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][0]["role"] == "system"


@pytest.mark.asyncio
async def test_invalid_json_is_retried_once():
    replies = iter(["not json", json.dumps(VERDICT)])
    calls = []

    def handler(request):
        calls.append(request)
        return _anthropic_reply(next(replies))

    client = _client(handler)
    verdict = await AIAnalyzer(api_key="k", client=client).analyze(EMAIL)
    await client.aclose()
    assert len(calls) == 2
    assert verdict.confidence == 82


@pytest.mark.asyncio
async def test_second_invalid_reply_raises():
    calls = []

    def handler(request):
        calls.append(request)
        return _anthropic_reply("still not json")

    client = _client(handler)
    with pytest.raises(AIAnalysisError):
        await AIAnalyzer(api_key="k", client=client).analyze(EMAIL)
    await client.aclose()
    assert len(calls) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,fragment",
    [(401, "Invalid API key"), (429, "Rate limited"), (500, "API error (500)")],
)
async def test_http_errors_are_readable(status, fragment):
    client = _client(lambda request: httpx.Response(status, text="nope"))
    with pytest.raises(AIAnalysisError) as excinfo:
        await AIAnalyzer(api_key="k", client=client).analyze(EMAIL)
    await client.aclose()
    assert fragment in str(excinfo.value)
    assert excinfo.value.status_code == status


@pytest.mark.asyncio
async def test_timeout_maps_to_analysis_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    client = _client(handler)
    with pytest.raises(AIAnalysisError, match="timed out"):
        await AIAnalyzer(api_key="k", client=client).analyze(EMAIL)
    await client.aclose()


@pytest.mark.asyncio
async def test_missing_key_and_disabled():
    with pytest.raises(MissingAPIKey):
        await AIAnalyzer(api_key="").analyze(EMAIL)
    with pytest.raises(AIAnalysisError, match="not enabled"):
        await AIAnalyzer(api_key="k", enabled=False).analyze(EMAIL)


def test_unknown_provider_rejected():
    with pytest.raises(ValueError):
        AIAnalyzer(api_key="k", provider="bard")


def test_user_message_truncates_long_bodies():
    long_body = "x" * 12_000
    message = build_user_message(EmailFields(sender_email="a@b.c", body=long_body))
    assert "x" * 10_000 in message
    assert "x" * 10_001 not in message
    assert message.endswith("[Email truncated - original was 12000 characters]")
    assert "**URLs found in email:**" not in message

    short = build_user_message(EMAIL)
    assert "- https://acme-pay.com/invoice" in short
    assert "truncated" not in short


def test_verdict_normalisation():
    assert label_for_confidence(30) == "safe"
    assert label_for_confidence(31) == "caution"
    assert label_for_confidence(61) == "suspicious"

    verdict = AIVerdict.from_dict({"confidence": "250", "label": "weird", "verify": ["junk"]})
    assert verdict.confidence == 100
    assert verdict.label == "suspicious"
    assert verdict.verify == []
    assert parse_reply('```\n{"confidence": 1}\n```') == {"confidence": 1}
    with pytest.raises(ValueError):
        parse_reply("[1, 2]")


@pytest.mark.asyncio
async def test_wrongly_typed_fields_are_dropped():
    reply = json.dumps({"confidence": 70, "pushed": ["urgency"], "verify": 5, "reasoning": None})
    client = _client(lambda request: _anthropic_reply(reply))
    verdict = await AIAnalyzer(api_key="k", client=client).analyze(EMAIL)
    await client.aclose()

    assert verdict.confidence == 70
    assert verdict.label == "suspicious"
    assert verdict.pushed == {}
    assert verdict.verify == []
    assert verdict.reasoning == ""

    assert AIVerdict.from_dict({"pushed": "urgency", "verify": {"flag": "x"}}).to_dict()["verify"] == []
