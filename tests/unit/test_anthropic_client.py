import json

import httpx
import pytest

from core.anthropic_client import AnthropicClassifier, parse_model_output
from model.attempt import AttemptStatus
from model.registry import DocumentRef
from util.errors import ParseError, QuotaError, TransportError

GOOD = {
    "status": "DONE",
    "recommended_code": "8471300000",
    "confidence": 88,
    "justification": "Portable ADP machine under 10 kg.",
    "alternatives": [
        {"code": "8471410000", "reason": "non-portable", "confidence": 20},
        {"code": "8471490000", "reason": "", "confidence": 5},
        {"code": "8471500000", "reason": "", "confidence": 3},
        {"code": "8471600000", "reason": "", "confidence": 1},
    ],
    "evidence": [{"source": "omd", "doc_id": "omd-84", "ref": "8471.30", "excerpt": "Portable machines"}],
    "next_question": None,
}


def _envelope(text: str) -> dict:
    return {"content": [{"type": "text", "text": text}], "stop_reason": "end_turn"}


def _client(handler) -> AnthropicClassifier:
    return AnthropicClassifier(
        api_key="k",
        model="m",
        api_url="https://api.anthropic.test/v1/messages",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_parse_model_output_maps_fields():
    out = parse_model_output(json.dumps(GOOD))
    assert out.status == AttemptStatus.DONE
    assert out.recommended_code == "8471300000"
    assert out.confidence == 88
    assert len(out.alternatives) == 3
    assert out.evidence[0].docId == "omd-84"


def test_parse_tolerates_code_fences():
    out = parse_model_output("```json\n" + json.dumps(GOOD) + "\n```")
    assert out.recommended_code == "8471300000"


def test_parse_question():
    payload = dict(GOOD, status="NEED_INFO", recommended_code=None)
    payload["next_question"] = {
        "id": "q_textile_construction",
        "label": "Knitted or woven?",
        "type": "select",
        "options": [{"value": "knit", "label": "Knitted"}],
        "required": True,
    }
    out = parse_model_output(json.dumps(payload))
    assert out.next_question.id == "q_textile_construction"
    assert out.next_question.options[0].value == "knit"


@pytest.mark.parametrize(
    "text",
    [
        "I think this is a laptop, code 8471.30",
        "",
        json.dumps({"recommended_code": "8471300000"}),
        json.dumps(dict(GOOD, status="HALLUCINATION_DETECTED")),
        json.dumps([GOOD]),
    ],
)
def test_parse_rejects_anything_else(text):
    with pytest.raises(ParseError):
        parse_model_output(text)


@pytest.mark.asyncio
async def test_infer_sends_messages_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_envelope(json.dumps(GOOD)))

    out = await _client(handler).infer("SYS", "USER", [DocumentRef(id="d1", type="invoice")])

    assert out.recommended_code == "8471300000"
    assert seen["headers"]["x-api-key"] == "k"
    assert seen["body"]["system"] == "SYS"
    assert seen["body"]["messages"] == [{"role": "user", "content": "USER"}]
    assert seen["body"]["temperature"] == 0.0


@pytest.mark.asyncio
async def test_non_json_answer_is_a_parse_error():
    def handler(request):
        return httpx.Response(200, json=_envelope("Sorry, I cannot classify this."))

    with pytest.raises(ParseError):
        await _client(handler).infer("s", "u", [])


@pytest.mark.asyncio
async def test_rate_limit_is_a_quota_error():
    def handler(request):
        return httpx.Response(429, json={"error": {"type": "rate_limit_error"}})

    with pytest.raises(QuotaError):
        await _client(handler).infer("s", "u", [])


@pytest.mark.asyncio
async def test_server_error_is_a_transport_error():
    def handler(request):
        return httpx.Response(529, json={"error": {"type": "overloaded_error"}})

    with pytest.raises(TransportError):
        await _client(handler).infer("s", "u", [])


@pytest.mark.asyncio
async def test_network_failure_is_a_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransportError):
        await _client(handler).infer("s", "u", [])
