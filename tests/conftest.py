import copy
import json

import pytest

from ventcomfort.config import Settings

UPSTREAM_MODEL = "qwen-plus-2025-01-25"

VALID_CONTENT = {
    "version": "comfort.v1",
    "language": "zh-CN",
    "category": "health",
    "comfort": [
        "睡不好的日子真的很磨人，你会累是很正常的。",
        "身体在提醒你需要多一点休息，而不是在责怪你。",
        "今晚先试着对自己温柔一点，能睡多少就算多少。",
    ],
    "affirmation": "你已经在好好照顾自己了。",
    "tags": ["睡眠", "疲惫", "自我照顾"],
    "sql_hint": {"topic": "sleep", "emotion": "tired", "severity": "low", "entities": []},
    "ext": {"clientId": "", "requestId": "", "debug": {"model": "", "finish_reason": ""}},
}


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_envelope(content, model: str = UPSTREAM_MODEL, finish_reason: str = "stop") -> str:
    if not isinstance(content, str):
        content = json.dumps(content, ensure_ascii=False)
    return json.dumps(
        {
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "model": model,
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": content},
                    "finish_reason": finish_reason,
                }
            ],
        },
        ensure_ascii=False,
    )


@pytest.fixture
def valid_content() -> dict:
    return copy.deepcopy(VALID_CONTENT)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(base_url="https://upstream.test/v1", upstream_timeout=0.2)


@pytest.fixture
def api_key(monkeypatch) -> str:
    monkeypatch.setenv("DASHSCOPE_API_KEY", "test-key")
    return "test-key"
