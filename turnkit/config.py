import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    """Runtime settings loaded from environment variables (and a ``.env`` file)."""

    dynamodb_table_name: str = "turnkit"
    dynamodb_region: str | None = None
    dynamodb_endpoint_url: str | None = None
    model_name: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    max_tokens: int = 1000
    system_prompt: str | None = None
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    keep_checkpoint_history: bool = False
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            dynamodb_table_name=os.getenv("DYNAMODB_TABLE_NAME", cls.dynamodb_table_name),
            dynamodb_region=os.getenv("AWS_DYNAMODB_REGION"),
            dynamodb_endpoint_url=os.getenv("AWS_DYNAMODB_ENDPOINT_URL"),
            model_name=os.getenv("LLM_MODEL_NAME", cls.model_name),
            temperature=float(os.getenv("LLM_TEMPERATURE", str(cls.temperature))),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", str(cls.max_tokens))),
            system_prompt=os.getenv("LLM_SYSTEM_PROMPT"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_base_url=os.getenv("OPENAI_BASE_URL"),
            keep_checkpoint_history=_env_flag("CHECKPOINT_KEEP_HISTORY"),
            debug=_env_flag("LLM_DEBUG_MODE"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    return Settings.from_env()
