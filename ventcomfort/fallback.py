"""Canned-phrase comfort used when the remote model is unavailable."""

import random

from .models import COMFORT_VERSION, ComfortPayload, Debug, Ext, SqlHint
from .sanitize import normalize_whitespace

DEFAULT_PROBLEM = "一些你暂时不想面对的事情"
LOCAL_MODEL = "local"
COMFORT_COUNT = 2

KEYWORDS: list[tuple[str, list[str]]] = [
    ("work_study", ["工作", "加班", "老板", "同事", "项目", "绩效", "kpi", "会议", "汇报", "deadline", "客户"]),
    ("relationship", ["朋友", "社交", "群", "消息", "回复", "尴尬", "见面", "关系", "人际"]),
    ("relationship", ["恋爱", "喜欢", "分手", "前任", "对象", "暧昧", "结婚", "离婚", "爱", "感情"]),
    ("work_study", ["考试", "作业", "论文", "答辩", "绩点", "学校", "老师", "学习", "上课", "复习"]),
    ("family", ["家", "父母", "妈妈", "爸爸", "家庭", "孩子", "亲戚"]),
]

COMFORT_POOLS: dict[str, list[str]] = {
    "other": [
        "你不是不做，你只是把它从“现在”移到了“之后”。",
        "想逃避，说明这件事对你来说真的不轻松。",
        "也许你不是不想做这件事，你只是不想一次做完它。",
        "现在放下，并不等于永远不面对。",
    ],
    "work_study": [
        "你不是懒，你只是被消耗了。",
        "工作有时会把人压住。你不用为此道歉。",
        "你只是先把它从“今天”挪开一会儿。",
        "你可以先保留力气，再决定怎么做。",
        "学业的重量有时会让人喘不过气，这很正常。",
        "你不是不努力，你只是需要一个缓冲。",
        "先放下，脑子才能慢慢回来。",
        "你可以把它拆小一点，留到更合适的时候。",
    ],
    "relationship": [
        "不想回消息也没关系，你可以先把自己放在第一位。",
        "社交的压力是真实的，不是你太敏感。",
        "你可以选择暂时不解释。",
        "你不用在每一段关系里都表现得“足够好”。",
        "感情里的难受，不需要立刻整理成答案。",
        "你不需要马上想清楚，也不需要马上释怀。",
        "你只是先不碰它一下。",
        "你可以允许自己难过一会儿。",
    ],
    "family": [
        "家里的事有时会让人无力。你不必立刻扛起来。",
        "你可以先把自己照顾好，再决定要不要面对。",
        "暂时不处理，并不代表你不在乎。",
        "你不需要一个人把所有事都撑住。",
    ],
}

AFFIRMATIONS = [
    "你已经很努力了。",
    "你可以慢一点。",
    "你现在这样也可以。",
    "能撑到这里，已经说明你不容易。",
    "你不需要证明自己才值得被温柔对待。",
    "你的感受不需要被“合理化”才算数。",
]


def classify(text: str) -> str:
    lowered = (text or "").lower()
    for category, words in KEYWORDS:
        if any(word in lowered for word in words):
            return category
    return "other"


def pick_comfort(
    problem: str,
    *,
    client_id: str = "",
    request_id: str = "",
    rng: random.Random | None = None,
) -> ComfortPayload:
    rng = rng or random.Random()
    problem_text = normalize_whitespace(problem) or DEFAULT_PROBLEM
    category = classify(problem_text)

    pool = list(dict.fromkeys(COMFORT_POOLS.get(category, []) + COMFORT_POOLS["other"]))
    comfort = rng.sample(pool, COMFORT_COUNT)

    return ComfortPayload(
        version=COMFORT_VERSION,
        language="zh-CN",
        category=category,
        comfort=comfort,
        affirmation=rng.choice(AFFIRMATIONS),
        tags=[],
        sql_hint=SqlHint(),
        ext=Ext(clientId=client_id, requestId=request_id, debug=Debug(model=LOCAL_MODEL)),
    )
