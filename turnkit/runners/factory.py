import logging

import boto3

from turnkit.config import Settings, get_settings
from turnkit.providers.pydantic_ai import OpenAIModelClient, PydanticAIModelGateway
from turnkit.runners.conversation_engine import ConversationEngine
from turnkit.stores.dynamodb import DynamoDBCheckpointStore, DynamoDBMessageStore

logger = logging.getLogger(__name__)


def create_model_gateway(settings: Settings) -> PydanticAIModelGateway:
    return PydanticAIModelGateway(OpenAIModelClient.from_settings(settings))


def create_engine(settings: Settings | None = None) -> ConversationEngine:
    """Build a ConversationEngine backed by DynamoDB and an OpenAI-compatible model."""
    settings = settings or get_settings()
    client = boto3.client(
        "dynamodb",
        region_name=settings.dynamodb_region,
        endpoint_url=settings.dynamodb_endpoint_url,
    )
    if settings.debug:
        logging.getLogger("turnkit").setLevel(logging.DEBUG)
    logger.debug(
        "Creating engine: table=%s model=%s", settings.dynamodb_table_name, settings.model_name
    )
    return ConversationEngine(
        DynamoDBMessageStore(settings.dynamodb_table_name, client=client),
        DynamoDBCheckpointStore(settings.dynamodb_table_name, client=client),
        create_model_gateway(settings),
        system_prompt=settings.system_prompt,
        keep_checkpoint_history=settings.keep_checkpoint_history,
    )
