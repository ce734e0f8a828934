"""DynamoDB-backed message and checkpoint stores.

Both stores share one single-table layout:

    message     pk=USER#{user}              sk=MSG#{message}
                GSI1PK=USER#{user}#CHAT#{conversation}  GSI1SK=createdAt
    checkpoint  pk=USER#{user}#CHAT#{conversation}      sk=CHECKPOINT#{checkpoint}
                GSI1PK=USER#{user}          GSI1SK=ordering timestamp

The boto3 client is synchronous, so every call runs in the event loop's
default executor. Client errors surface as :class:`StoreUnavailable`.
"""

import asyncio
import base64
import functools
import json
import logging
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from turnkit.errors import StoreUnavailable
from turnkit.models.checkpoint import (
    Checkpoint,
    CheckpointMetadata,
    CheckpointPage,
    CheckpointState,
)
from turnkit.models.message import Message, MessagePage
from turnkit.models.types import now_ms
from turnkit.stores.base import DEFAULT_CHECKPOINT_PAGE_SIZE, CheckpointStore, MessageStore

logger = logging.getLogger(__name__)

DEFAULT_INDEX_NAME = "GSI1"
# DynamoDB caps BatchWriteItem at 25 requests
BATCH_WRITE_LIMIT = 25

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


# --- keys ---


def user_pk(user_id: str) -> str:
    return f"USER#{user_id}"


def conversation_pk(user_id: str, conversation_id: str) -> str:
    return f"USER#{user_id}#CHAT#{conversation_id}"


def message_sk(message_id: str) -> str:
    return f"MSG#{message_id}"


def checkpoint_sk(checkpoint_id: str) -> str:
    return f"CHECKPOINT#{checkpoint_id}"


# --- attribute value conversion ---


def _to_dynamo(value: Any) -> Any:
    """Make a JSON-like value storable: floats become Decimal."""
    return json.loads(json.dumps(value), parse_float=Decimal)


def _from_dynamo(value: Any) -> Any:
    """Undo the Decimal wrapping DynamoDB applies to every number."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value


def serialize_item(item: dict[str, Any]) -> dict[str, Any]:
    return {key: _serializer.serialize(_to_dynamo(value)) for key, value in item.items()}


def deserialize_item(item: dict[str, Any]) -> dict[str, Any]:
    return {key: _from_dynamo(_deserializer.deserialize(value)) for key, value in item.items()}


def encode_cursor(last_evaluated_key: dict[str, Any] | None) -> str | None:
    if not last_evaluated_key:
        return None
    raw = json.dumps(last_evaluated_key, sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> dict[str, Any]:
    return json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))


# --- record shapes ---


def message_to_item(message: Message) -> dict[str, Any]:
    return {
        "pk": user_pk(message.user_id),
        "sk": message_sk(message.id),
        "type": "MSG",
        "content": message.content,
        "isFromUser": message.is_from_user,
        "conversationId": message.conversation_id,
        "createdAt": message.created_at,
        "lastModified": message.last_modified,
        "GSI1PK": conversation_pk(message.user_id, message.conversation_id),
        "GSI1SK": message.created_at,
    }


def message_from_item(item: dict[str, Any]) -> Message:
    return Message(
        id=item["sk"].removeprefix("MSG#"),
        user_id=item["pk"].removeprefix("USER#"),
        conversation_id=item["conversationId"],
        content=item.get("content", ""),
        is_from_user=item["isFromUser"],
        created_at=item["createdAt"],
        last_modified=item.get("lastModified", item["createdAt"]),
    )


def checkpoint_to_item(
    user_id: str,
    conversation_id: str,
    checkpoint_id: str,
    state: CheckpointState,
    metadata: CheckpointMetadata,
    ordering_key: int,
) -> dict[str, Any]:
    return {
        "pk": conversation_pk(user_id, conversation_id),
        "sk": checkpoint_sk(checkpoint_id),
        "GSI1PK": user_pk(user_id),
        "GSI1SK": ordering_key,
        "state": state.model_dump(by_alias=True, exclude_unset=False),
        "metadata": metadata.model_dump(),
    }


def checkpoint_from_item(user_id: str, conversation_id: str, item: dict[str, Any]) -> Checkpoint:
    return Checkpoint(
        user_id=user_id,
        conversation_id=conversation_id,
        checkpoint_id=item["sk"].removeprefix("CHECKPOINT#"),
        ordering_key=item["GSI1SK"],
        state=CheckpointState.model_validate(item.get("state") or {}),
        metadata=CheckpointMetadata.model_validate(item.get("metadata") or {}),
    )


class DynamoDBTable:
    """Shared plumbing for stores living in one DynamoDB table."""

    def __init__(
        self,
        table_name: str,
        *,
        client: Any | None = None,
        index_name: str = DEFAULT_INDEX_NAME,
    ):
        self.table_name = table_name
        self.index_name = index_name
        self._client = client if client is not None else boto3.client("dynamodb")

    async def _call(self, operation: str, *, missing_ok: bool = False, **params: Any) -> Any:
        """Run one client operation off the event loop.

        Args:
            operation: boto3 client method name, e.g. ``"get_item"``.
            missing_ok: Return None instead of raising when a condition check fails.
            **params: Request parameters.
        """
        loop = asyncio.get_running_loop()
        method = getattr(self._client, operation)
        try:
            return await loop.run_in_executor(None, functools.partial(method, **params))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if missing_ok and code == "ConditionalCheckFailedException":
                return None
            logger.error("DynamoDB %s on %s failed: %s", operation, self.table_name, code)
            raise StoreUnavailable(f"DynamoDB {operation} failed: {e}") from e
        except BotoCoreError as e:
            logger.error("DynamoDB %s on %s failed: %s", operation, self.table_name, e)
            raise StoreUnavailable(f"DynamoDB {operation} failed: {e}") from e


class DynamoDBMessageStore(DynamoDBTable, MessageStore):
    """Message store over a DynamoDB table with a ``GSI1`` conversation index."""

    async def get(self, user_id: str, message_id: str) -> Message | None:
        response = await self._call(
            "get_item",
            TableName=self.table_name,
            Key=serialize_item({"pk": user_pk(user_id), "sk": message_sk(message_id)}),
            ConsistentRead=True,
        )
        item = response.get("Item")
        return message_from_item(deserialize_item(item)) if item else None

    async def put(self, message: Message) -> None:
        await self._call(
            "put_item",
            TableName=self.table_name,
            Item=serialize_item(message_to_item(message)),
        )

    async def query_by_conversation(
        self,
        user_id: str,
        conversation_id: str,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        ascending: bool = True,
    ) -> MessagePage:
        # The index is eventually consistent: a message written moments ago
        # may not be listed yet.
        params: dict[str, Any] = {
            "TableName": self.table_name,
            "IndexName": self.index_name,
            "KeyConditionExpression": "GSI1PK = :GSI1PK",
            "ExpressionAttributeValues": serialize_item(
                {":GSI1PK": conversation_pk(user_id, conversation_id)}
            ),
            "ScanIndexForward": ascending,
        }
        if limit is not None:
            params["Limit"] = limit
        if cursor is not None:
            params["ExclusiveStartKey"] = decode_cursor(cursor)
        response = await self._call("query", **params)
        return MessagePage(
            items=[message_from_item(deserialize_item(i)) for i in response.get("Items", [])],
            next_cursor=encode_cursor(response.get("LastEvaluatedKey")),
        )

    async def update_content(self, user_id: str, message_id: str, content: str) -> Message | None:
        response = await self._call(
            "update_item",
            missing_ok=True,
            TableName=self.table_name,
            Key=serialize_item({"pk": user_pk(user_id), "sk": message_sk(message_id)}),
            UpdateExpression="SET #content = :content, lastModified = :lastModified",
            ConditionExpression="attribute_exists(pk)",
            ExpressionAttributeNames={"#content": "content"},
            ExpressionAttributeValues=serialize_item(
                {":content": content, ":lastModified": now_ms()}
            ),
            ReturnValues="ALL_NEW",
        )
        if response is None:
            return None
        return message_from_item(deserialize_item(response["Attributes"]))

    async def delete(self, user_id: str, message_id: str) -> None:
        await self._call(
            "delete_item",
            TableName=self.table_name,
            Key=serialize_item({"pk": user_pk(user_id), "sk": message_sk(message_id)}),
        )


class DynamoDBCheckpointStore(DynamoDBTable, CheckpointStore):
    """Checkpoint store over a DynamoDB table.

    ``GSI1`` is keyed by user, so checkpoints of every conversation of a user
    share one index partition; listing filters it down to one scope.
    """

    async def get(
        self, user_id: str, conversation_id: str, checkpoint_id: str
    ) -> Checkpoint | None:
        response = await self._call(
            "get_item",
            TableName=self.table_name,
            Key=serialize_item(
                {
                    "pk": conversation_pk(user_id, conversation_id),
                    "sk": checkpoint_sk(checkpoint_id),
                }
            ),
            ConsistentRead=True,
        )
        item = response.get("Item")
        if not item:
            return None
        return checkpoint_from_item(user_id, conversation_id, deserialize_item(item))

    async def put(
        self,
        user_id: str,
        conversation_id: str,
        checkpoint_id: str,
        state: CheckpointState,
        metadata: CheckpointMetadata,
    ) -> None:
        item = checkpoint_to_item(
            user_id, conversation_id, checkpoint_id, state, metadata, ordering_key=now_ms()
        )
        await self._call("put_item", TableName=self.table_name, Item=serialize_item(item))

    async def delete(self, user_id: str, conversation_id: str) -> None:
        keys: list[dict[str, Any]] = []
        params: dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": "pk = :pk AND begins_with(sk, :sk)",
            "ExpressionAttributeValues": serialize_item(
                {":pk": conversation_pk(user_id, conversation_id), ":sk": "CHECKPOINT#"}
            ),
            "ProjectionExpression": "pk, sk",
        }
        while True:
            response = await self._call("query", **params)
            keys.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            params["ExclusiveStartKey"] = last_key

        for i in range(0, len(keys), BATCH_WRITE_LIMIT):
            batch = [{"DeleteRequest": {"Key": key}} for key in keys[i : i + BATCH_WRITE_LIMIT]]
            response = await self._call(
                "batch_write_item", RequestItems={self.table_name: batch}
            )
            if response.get("UnprocessedItems"):
                raise StoreUnavailable(
                    f"DynamoDB batch_write_item left unprocessed deletes for "
                    f"{conversation_pk(user_id, conversation_id)}"
                )
        logger.debug(
            "Deleted %d checkpoints for %s", len(keys), conversation_pk(user_id, conversation_id)
        )

    async def list(
        self,
        user_id: str,
        conversation_id: str,
        *,
        limit: int = DEFAULT_CHECKPOINT_PAGE_SIZE,
        start_key: str | None = None,
    ) -> CheckpointPage:
        """List checkpoints newest first.

        ``Limit`` applies before the scope filter, so a page can hold fewer
        than ``limit`` checkpoints while ``last_key`` is still set.
        """
        params: dict[str, Any] = {
            "TableName": self.table_name,
            "IndexName": self.index_name,
            "KeyConditionExpression": "GSI1PK = :GSI1PK",
            "FilterExpression": "pk = :pk AND begins_with(sk, :sk)",
            "ExpressionAttributeValues": serialize_item(
                {
                    ":GSI1PK": user_pk(user_id),
                    ":pk": conversation_pk(user_id, conversation_id),
                    ":sk": "CHECKPOINT#",
                }
            ),
            "Limit": limit,
            "ScanIndexForward": False,
        }
        if start_key is not None:
            params["ExclusiveStartKey"] = decode_cursor(start_key)
        response = await self._call("query", **params)
        return CheckpointPage(
            checkpoints=[
                checkpoint_from_item(user_id, conversation_id, deserialize_item(i))
                for i in response.get("Items", [])
            ],
            last_key=encode_cursor(response.get("LastEvaluatedKey")),
        )
