import re
from typing import Any

from .errors import MissingProblem, ProblemTooLong
from .models import ComfortRequest

MAX_PROBLEM_LENGTH = 240

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def coerce_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def sanitize_request(body: Any) -> ComfortRequest:
    """Normalize an inbound JSON body into a ComfortRequest.

    Non-object bodies and non-string fields are treated as absent. The
    problem length is checked after whitespace normalization.
    """
    if not isinstance(body, dict):
        body = {}

    fields = {
        key: normalize_whitespace(coerce_str(body.get(key)))
        for key in ("problem", "locale", "clientId", "requestId")
    }

    if not fields["problem"]:
        raise MissingProblem()
    if len(fields["problem"]) > MAX_PROBLEM_LENGTH:
        raise ProblemTooLong()

    return ComfortRequest.model_validate(fields)
