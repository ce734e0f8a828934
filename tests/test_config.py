import pytest

from turnkit.config import Settings, get_settings
from turnkit.providers.pydantic_ai import OpenAIModelClient, PydanticAIModelGateway
from turnkit.runners.factory import create_engine
from turnkit.stores.dynamodb import DynamoDBCheckpointStore, DynamoDBMessageStore

ENV_VARS = [
    "DYNAMODB_TABLE_NAME",
    "AWS_DYNAMODB_REGION",
    "AWS_DYNAMODB_ENDPOINT_URL",
    "LLM_MODEL_NAME",
    "LLM_TEMPERATURE",
    "LLM_MAX_TOKENS",
    "LLM_SYSTEM_PROMPT",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "CHECKPOINT_KEEP_HISTORY",
    "LLM_DEBUG_MODE",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env()

    assert settings.model_name == "gpt-3.5-turbo"
    assert settings.temperature == 0.7
    assert settings.max_tokens == 1000
    assert settings.system_prompt is None
    assert settings.keep_checkpoint_history is False
    assert settings.debug is False


def test_values_are_read_from_environment(clean_env):
    clean_env.setenv("DYNAMODB_TABLE_NAME", "chats")
    clean_env.setenv("AWS_DYNAMODB_ENDPOINT_URL", "http://localhost:8000")
    clean_env.setenv("LLM_MODEL_NAME", "gpt-4o-mini")
    clean_env.setenv("LLM_TEMPERATURE", "0.2")
    clean_env.setenv("LLM_MAX_TOKENS", "256")
    clean_env.setenv("CHECKPOINT_KEEP_HISTORY", "true")
    clean_env.setenv("LLM_DEBUG_MODE", "1")

    settings = Settings.from_env()

    assert settings.dynamodb_table_name == "chats"
    assert settings.dynamodb_endpoint_url == "http://localhost:8000"
    assert settings.model_name == "gpt-4o-mini"
    assert settings.temperature == 0.2
    assert settings.max_tokens == 256
    assert settings.keep_checkpoint_history is True
    assert settings.debug is True


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()


def test_create_engine_wires_dynamodb_and_openai():
    settings = Settings(
        dynamodb_table_name="chats",
        dynamodb_region="us-east-1",
        openai_api_key="sk-test",
        system_prompt="Be brief.",
        keep_checkpoint_history=True,
    )

    engine = create_engine(settings)

    assert isinstance(engine.message_store, DynamoDBMessageStore)
    assert isinstance(engine.checkpoint_store, DynamoDBCheckpointStore)
    assert engine.message_store.table_name == "chats"
    assert isinstance(engine.model_gateway, PydanticAIModelGateway)
    assert isinstance(engine.model_gateway.model, OpenAIModelClient)
    assert engine.system_prompt == "Be brief."
    assert engine.keep_checkpoint_history is True
