from typing import TYPE_CHECKING

from httpx import Timeout
from pydantic_ai.models.openai import OpenAIChatModel, OpenAIChatModelSettings
from pydantic_ai.providers.openai import OpenAIProvider

if TYPE_CHECKING:
    from turnkit.config import Settings

DEFAULT_TIMEOUT = Timeout(60.0, connect=5.0)


class OpenAIModelClient(OpenAIChatModel):
    """OpenAI (or OpenAI-compatible) chat model with its request settings baked in.

    Any extra keyword is passed through as an ``OpenAIChatModelSettings`` entry,
    e.g. ``seed=7`` or ``openai_reasoning_effort="low"``. ``None`` values are
    left out so the provider defaults apply.
    """

    def __init__(
        self,
        model_name: str,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | Timeout | None = DEFAULT_TIMEOUT,
        **settings: object,
    ):
        requested = {
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": timeout,
            **settings,
        }
        model_settings = OpenAIChatModelSettings(
            **{key: value for key, value in requested.items() if value is not None}  # type: ignore[typeddict-item]
        )
        super().__init__(
            model_name,
            provider=OpenAIProvider(base_url=base_url, api_key=api_key),
            settings=model_settings,
        )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "OpenAIModelClient":
        return cls(
            settings.model_name,
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )
