import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from ventcomfort.rate_limit import FixedWindowRateLimiter
from ventcomfort.server import COMFORT_PATH, create_app

from .conftest import UPSTREAM_MODEL, make_envelope


def _client(settings, handler, limiter=None) -> TestClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TestClient(create_app(settings, limiter=limiter, http_client=http_client))


def _ok(content):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=make_envelope(content))

    return handler


def test_comfort_success(settings, api_key, valid_content):
    client = _client(settings, _ok(valid_content))

    resp = client.post(COMFORT_PATH, json={"problem": "我最近睡不好", "requestId": "r-42"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["version"] == "comfort.v1"
    assert body["category"] == "health"
    assert len(body["comfort"]) == 3
    assert body["ext"]["debug"]["model"] == UPSTREAM_MODEL
    assert body["ext"]["debug"]["finish_reason"] == "stop"
    assert body["ext"]["requestId"] == "r-42"
    assert resp.headers["content-type"].startswith("application/json")


def test_model_debug_values_are_overridden(settings, api_key, valid_content):
    valid_content["ext"]["debug"] = {"model": "spoofed", "finish_reason": "spoofed"}
    client = _client(settings, _ok(valid_content))

    body = client.post(COMFORT_PATH, json={"problem": "hi"}).json()

    assert body["ext"]["debug"] == {"model": UPSTREAM_MODEL, "finish_reason": "stop"}


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH", "OPTIONS"])
def test_wrong_method(settings, api_key, valid_content, method):
    client = _client(settings, _ok(valid_content))
    resp = client.request(method, COMFORT_PATH)
    assert resp.status_code == 405
    assert resp.json() == {"error": "Method Not Allowed"}


def test_head_is_not_allowed(settings, api_key, valid_content):
    client = _client(settings, _ok(valid_content))
    resp = client.head(COMFORT_PATH)
    assert resp.status_code == 405
    assert resp.headers["content-type"].startswith("application/json")


def test_empty_problem(settings, api_key, valid_content):
    client = _client(settings, _ok(valid_content))
    resp = client.post(COMFORT_PATH, json={"problem": ""})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing problem"}


def test_problem_too_long(settings, api_key, valid_content):
    client = _client(settings, _ok(valid_content))
    resp = client.post(COMFORT_PATH, json={"problem": "x" * 241})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Problem too long"}


def test_invalid_json_body(settings, api_key, valid_content):
    client = _client(settings, _ok(valid_content))
    resp = client.post(COMFORT_PATH, content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid JSON body"}


def test_missing_credential(settings, monkeypatch, valid_content):
    monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)
    client = _client(settings, _ok(valid_content))
    resp = client.post(COMFORT_PATH, json={"problem": "hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Missing DASHSCOPE_API_KEY"}


def test_rate_limited_after_thirty(settings, api_key, valid_content, clock):
    limiter = FixedWindowRateLimiter(clock=clock)
    client = _client(settings, _ok(valid_content), limiter=limiter)

    statuses = [client.post(COMFORT_PATH, json={"problem": "hi"}).status_code for _ in range(30)]
    assert statuses == [200] * 30

    resp = client.post(COMFORT_PATH, json={"problem": "hi"})
    assert resp.status_code == 429
    assert resp.headers["retry-after"].isdigit()
    assert int(resp.headers["retry-after"]) >= 1
    assert resp.json() == {"error": "Rate limit exceeded", "retryAfterSeconds": 60}

    clock.advance(60)
    assert client.post(COMFORT_PATH, json={"problem": "hi"}).status_code == 200


def test_rate_limit_keys_on_forwarded_for(settings, api_key, valid_content, clock):
    limiter = FixedWindowRateLimiter(clock=clock, max_requests=1)
    client = _client(settings, _ok(valid_content), limiter=limiter)

    first = client.post(COMFORT_PATH, json={"problem": "hi"}, headers={"x-forwarded-for": "9.9.9.9, 10.0.0.1"})
    other = client.post(COMFORT_PATH, json={"problem": "hi"}, headers={"x-forwarded-for": "8.8.8.8"})
    again = client.post(COMFORT_PATH, json={"problem": "hi"}, headers={"x-forwarded-for": "9.9.9.9"})

    assert [first.status_code, other.status_code, again.status_code] == [200, 200, 429]


def test_upstream_http_error(settings, api_key):
    client = _client(settings, lambda request: httpx.Response(503, text="overloaded"))
    resp = client.post(COMFORT_PATH, json={"problem": "hi", "requestId": "r-1"})
    assert resp.status_code == 502
    assert resp.json() == {"error": "Upstream error", "status": 503, "body": "overloaded", "requestId": "r-1"}


def test_upstream_timeout(settings, api_key, valid_content):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, text=make_envelope(valid_content))

    client = _client(settings, handler)
    resp = client.post(COMFORT_PATH, json={"problem": "hi", "requestId": "r-2"})

    assert resp.status_code == 502
    assert resp.json() == {"error": "Upstream timeout", "requestId": "r-2"}


def test_upstream_transport_failure(settings, api_key):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(settings, handler)
    resp = client.post(COMFORT_PATH, json={"problem": "hi", "requestId": "r-3"})

    assert resp.status_code == 502
    assert resp.json() == {"error": "Upstream request failed", "requestId": "r-3"}


def test_invalid_schema_returns_raw(settings, api_key, valid_content):
    valid_content["comfort"] = ["Only one sentence."]
    client = _client(settings, _ok(valid_content))

    resp = client.post(COMFORT_PATH, json={"problem": "hi", "requestId": "r-4"})

    assert resp.status_code == 502
    body = resp.json()
    assert body["error"] == "Invalid model output schema"
    assert body["requestId"] == "r-4"
    assert json.loads(body["raw"]) == valid_content


def test_non_json_model_output(settings, api_key):
    client = _client(settings, _ok("Sorry, here is some prose instead."))
    resp = client.post(COMFORT_PATH, json={"problem": "hi", "requestId": "r-5"})
    assert resp.status_code == 502
    assert resp.json() == {"error": "Model returned non-JSON content", "requestId": "r-5"}


def test_wrapped_model_output_is_recovered(settings, api_key, valid_content):
    wrapped = "```json\n" + json.dumps(valid_content, ensure_ascii=False) + "\n```"
    client = _client(settings, _ok(wrapped))
    resp = client.post(COMFORT_PATH, json={"problem": "hi"})
    assert resp.status_code == 200
    assert resp.json()["comfort"] == valid_content["comfort"]


def test_upstream_receives_sanitized_problem(settings, api_key, valid_content):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text=make_envelope(valid_content))

    client = _client(settings, handler)
    client.post(COMFORT_PATH, json={"problem": "  lots   of\n space  ", "locale": "en-US"})

    messages = seen["body"]["messages"]
    assert [message["role"] for message in messages] == ["system", "user"]
    assert '"lots of space"' in messages[1]["content"]
    assert '"en-US"' in messages[1]["content"]
