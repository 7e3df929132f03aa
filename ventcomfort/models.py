from typing import Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

COMFORT_VERSION = "comfort.v1"

CATEGORIES: dict[str, str] = {
    "relationship": "relationships, intimacy, social life",
    "work_study": "work, study, exams",
    "family": "family",
    "health": "health, sleep, the body",
    "money": "money and finances",
    "self_worth": "self-worth, guilt, shame",
    "future": "the future, uncertainty, choices",
    "stress": "stress, anxiety, general low mood",
    "other": "anything else",
}


class ComfortRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    problem: str
    locale: str = ""
    client_id: str = Field(default="", alias="clientId")
    request_id: str = Field(default="", alias="requestId")


class SqlHint(BaseModel):
    model_config = ConfigDict(extra="allow")

    topic: str = ""
    emotion: str = ""
    severity: str = ""
    entities: List[str] = Field(default_factory=list)


class Debug(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: str = ""
    finish_reason: str = ""

    @field_validator("model", "finish_reason", mode="before")
    @classmethod
    def blank_non_strings(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""


class Ext(BaseModel):
    model_config = ConfigDict(extra="allow")

    clientId: str = ""
    requestId: str = ""
    debug: Debug = Field(default_factory=Debug)

    @field_validator("clientId", "requestId", mode="before")
    @classmethod
    def stringify_echo(cls, value: Any) -> str:
        # Falsy values count as missing and are filled from the request later.
        if not value or isinstance(value, (dict, list)):
            return ""
        return str(value)

    @field_validator("debug", mode="before")
    @classmethod
    def replace_non_object_debug(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, Debug)) else {}


class ComfortPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: Literal["comfort.v1"]
    language: str
    category: str
    comfort: List[str] = Field(..., min_length=2, max_length=4)
    affirmation: str
    tags: List[str]
    sql_hint: SqlHint
    ext: Ext

    @field_validator("comfort")
    @classmethod
    def strip_sentences(cls, value: List[str]) -> List[str]:
        sentences = [sentence.strip() for sentence in value]
        if any(not sentence for sentence in sentences):
            raise ValueError("comfort sentences must not be blank")
        return sentences

