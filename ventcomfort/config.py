import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv
from rich.logging import RichHandler

from .errors import ConfigurationError, MissingCredential

DEFAULT_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value.strip() if value and value.strip() else default


def _env_number(name: str, default, cast, allow_zero: bool = False):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        number = cast(value.strip())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from exc
    if number < 0 or (number == 0 and not allow_zero):
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return number


@dataclass(frozen=True)
class Settings:
    api_key_env: str = "DASHSCOPE_API_KEY"
    base_url: str = DEFAULT_BASE_URL
    model: str = "qwen-plus"
    temperature: float = 0.6
    max_tokens: int = 400
    upstream_timeout: float = 12.0
    rate_limit_window: float = 60.0
    rate_limit_max: int = 30
    rate_limit_max_entries: int = 10_000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            api_key_env=_env_str("VENTCOMFORT_API_KEY_ENV", cls.api_key_env),
            base_url=_env_str("VENTCOMFORT_BASE_URL", cls.base_url),
            model=_env_str("VENTCOMFORT_MODEL", cls.model),
            temperature=_env_number("VENTCOMFORT_TEMPERATURE", cls.temperature, float, allow_zero=True),
            max_tokens=_env_number("VENTCOMFORT_MAX_TOKENS", cls.max_tokens, int),
            upstream_timeout=_env_number("VENTCOMFORT_UPSTREAM_TIMEOUT", cls.upstream_timeout, float),
            rate_limit_window=_env_number("VENTCOMFORT_RATE_WINDOW", cls.rate_limit_window, float),
            rate_limit_max=_env_number("VENTCOMFORT_RATE_MAX", cls.rate_limit_max, int),
            rate_limit_max_entries=_env_number("VENTCOMFORT_RATE_MAX_ENTRIES", cls.rate_limit_max_entries, int),
            log_level=_env_str("VENTCOMFORT_LOG_LEVEL", cls.log_level).upper(),
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def read_api_key(self) -> str:
        # Read on every call; absence is a per-request error.
        api_key = os.getenv(self.api_key_env)
        if not api_key or not api_key.strip():
            raise MissingCredential(self.api_key_env)
        return api_key.strip()


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not any(isinstance(handler, RichHandler) for handler in root.handlers):
        root.addHandler(RichHandler(rich_tracebacks=True, show_path=False))
    root.setLevel(level)
    logging.getLogger("httpx").setLevel(logging.WARNING)
