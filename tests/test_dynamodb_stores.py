import boto3
import pytest
from botocore.stub import ANY, Stubber

from turnkit.errors import StoreUnavailable
from turnkit.models.checkpoint import CheckpointMetadata, CheckpointState
from turnkit.models.message import Message, MessageReference
from turnkit.stores.dynamodb import (
    DynamoDBCheckpointStore,
    DynamoDBMessageStore,
    checkpoint_to_item,
    decode_cursor,
    encode_cursor,
    message_to_item,
    serialize_item,
)

TABLE = "turnkit-test"


@pytest.fixture
def client():
    return boto3.client(
        "dynamodb",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubber(client):
    with Stubber(client) as stub:
        yield stub
        stub.assert_no_pending_responses()


def make_message(**overrides) -> Message:
    fields = dict(
        id="m1",
        user_id="u1",
        conversation_id="c1",
        content="Hello",
        is_from_user=True,
        created_at=1700000000000,
        last_modified=1700000000000,
    )
    fields.update(overrides)
    return Message(**fields)


def make_state() -> CheckpointState:
    return CheckpointState(
        message_refs=[
            MessageReference(message_id="m1", is_from_user=True),
            MessageReference(message_id="m2", is_from_user=False),
        ]
    )


def test_message_item_layout():
    item = message_to_item(make_message())

    assert item["pk"] == "USER#u1"
    assert item["sk"] == "MSG#m1"
    assert item["type"] == "MSG"
    assert item["GSI1PK"] == "USER#u1#CHAT#c1"
    assert item["GSI1SK"] == 1700000000000
    assert item["isFromUser"] is True


def test_checkpoint_item_layout():
    metadata = CheckpointMetadata(source="loop", step=3, writes=None, parents={})

    item = checkpoint_to_item("u1", "c1", "latest", make_state(), metadata, ordering_key=42)

    assert item["pk"] == "USER#u1#CHAT#c1"
    assert item["sk"] == "CHECKPOINT#latest"
    assert item["GSI1PK"] == "USER#u1"
    assert item["GSI1SK"] == 42
    assert item["state"] == {
        "messageRefs": [
            {"messageId": "m1", "isFromUser": True},
            {"messageId": "m2", "isFromUser": False},
        ]
    }
    assert item["metadata"] == {"source": "loop", "step": 3, "writes": None, "parents": {}}


def test_cursor_is_opaque_but_reversible():
    key = {"pk": {"S": "USER#u1"}, "sk": {"S": "MSG#m1"}}

    cursor = encode_cursor(key)

    assert isinstance(cursor, str)
    assert decode_cursor(cursor) == key
    assert encode_cursor(None) is None
    assert encode_cursor({}) is None


@pytest.mark.asyncio
async def test_message_put_writes_item(client, stubber):
    message = make_message()
    stubber.add_response(
        "put_item",
        {},
        {"TableName": TABLE, "Item": serialize_item(message_to_item(message))},
    )

    await DynamoDBMessageStore(TABLE, client=client).put(message)


@pytest.mark.asyncio
async def test_message_get_round_trips(client, stubber):
    message = make_message(is_from_user=False, content="Hi there")
    stubber.add_response(
        "get_item",
        {"Item": serialize_item(message_to_item(message))},
        {
            "TableName": TABLE,
            "Key": {"pk": {"S": "USER#u1"}, "sk": {"S": "MSG#m1"}},
            "ConsistentRead": True,
        },
    )

    loaded = await DynamoDBMessageStore(TABLE, client=client).get("u1", "m1")

    assert loaded == message


@pytest.mark.asyncio
async def test_message_get_missing_returns_none(client, stubber):
    stubber.add_response("get_item", {}, {"TableName": TABLE, "Key": ANY, "ConsistentRead": True})

    assert await DynamoDBMessageStore(TABLE, client=client).get("u1", "nope") is None


@pytest.mark.asyncio
async def test_query_all_follows_pages(client, stubber):
    first = make_message(id="m1")
    second = make_message(id="m2", is_from_user=False, created_at=1700000000001)
    last_key = {
        "pk": {"S": "USER#u1"},
        "sk": {"S": "MSG#m1"},
        "GSI1PK": {"S": "USER#u1#CHAT#c1"},
        "GSI1SK": {"N": "1700000000000"},
    }
    query_params = {
        "TableName": TABLE,
        "IndexName": "GSI1",
        "KeyConditionExpression": "GSI1PK = :GSI1PK",
        "ExpressionAttributeValues": {":GSI1PK": {"S": "USER#u1#CHAT#c1"}},
        "ScanIndexForward": True,
    }
    stubber.add_response(
        "query",
        {"Items": [serialize_item(message_to_item(first))], "LastEvaluatedKey": last_key},
        query_params,
    )
    stubber.add_response(
        "query",
        {"Items": [serialize_item(message_to_item(second))]},
        {**query_params, "ExclusiveStartKey": last_key},
    )

    messages = await DynamoDBMessageStore(TABLE, client=client).query_all("u1", "c1")

    assert [m.id for m in messages] == ["m1", "m2"]


@pytest.mark.asyncio
async def test_update_content_of_missing_message_returns_none(client, stubber):
    stubber.add_client_error(
        "update_item",
        service_error_code="ConditionalCheckFailedException",
        expected_params={
            "TableName": TABLE,
            "Key": {"pk": {"S": "USER#u1"}, "sk": {"S": "MSG#m1"}},
            "UpdateExpression": "SET #content = :content, lastModified = :lastModified",
            "ConditionExpression": "attribute_exists(pk)",
            "ExpressionAttributeNames": {"#content": "content"},
            "ExpressionAttributeValues": ANY,
            "ReturnValues": "ALL_NEW",
        },
    )

    result = await DynamoDBMessageStore(TABLE, client=client).update_content("u1", "m1", "new")

    assert result is None


@pytest.mark.asyncio
async def test_update_content_returns_updated_message(client, stubber):
    updated = make_message(content="new", last_modified=1700000005000)
    stubber.add_response(
        "update_item",
        {"Attributes": serialize_item(message_to_item(updated))},
        {
            "TableName": TABLE,
            "Key": ANY,
            "UpdateExpression": ANY,
            "ConditionExpression": ANY,
            "ExpressionAttributeNames": ANY,
            "ExpressionAttributeValues": ANY,
            "ReturnValues": "ALL_NEW",
        },
    )

    result = await DynamoDBMessageStore(TABLE, client=client).update_content("u1", "m1", "new")

    assert result == updated


@pytest.mark.asyncio
async def test_client_errors_become_store_unavailable(client, stubber):
    stubber.add_client_error("put_item", service_error_code="ProvisionedThroughputExceededException")

    with pytest.raises(StoreUnavailable):
        await DynamoDBMessageStore(TABLE, client=client).put(make_message())


@pytest.mark.asyncio
async def test_checkpoint_get_round_trips(client, stubber):
    metadata = CheckpointMetadata(
        source="loop", step=2, writes={"invoke_model": {"message_id": "m2"}}, parents={"latest": "m0"}
    )
    item = checkpoint_to_item("u1", "c1", "latest", make_state(), metadata, ordering_key=99)
    stubber.add_response(
        "get_item",
        {"Item": serialize_item(item)},
        {
            "TableName": TABLE,
            "Key": {"pk": {"S": "USER#u1#CHAT#c1"}, "sk": {"S": "CHECKPOINT#latest"}},
            "ConsistentRead": True,
        },
    )

    latest = await DynamoDBCheckpointStore(TABLE, client=client).get_latest("u1", "c1")

    state, loaded_metadata = latest
    assert state == make_state()
    assert loaded_metadata == metadata


@pytest.mark.asyncio
async def test_checkpoint_get_latest_of_fresh_scope_is_none(client, stubber):
    stubber.add_response("get_item", {}, {"TableName": TABLE, "Key": ANY, "ConsistentRead": True})

    assert await DynamoDBCheckpointStore(TABLE, client=client).get_latest("u1", "c1") is None


@pytest.mark.asyncio
async def test_checkpoint_put_writes_item(client, stubber):
    stubber.add_response("put_item", {}, {"TableName": TABLE, "Item": ANY})

    await DynamoDBCheckpointStore(TABLE, client=client).put(
        "u1", "c1", "latest", make_state(), CheckpointMetadata(source="loop", step=1)
    )


@pytest.mark.asyncio
async def test_checkpoint_list_filters_to_scope(client, stubber):
    item = checkpoint_to_item(
        "u1", "c1", "latest", make_state(), CheckpointMetadata(step=1), ordering_key=5
    )
    stubber.add_response(
        "query",
        {"Items": [serialize_item(item)]},
        {
            "TableName": TABLE,
            "IndexName": "GSI1",
            "KeyConditionExpression": "GSI1PK = :GSI1PK",
            "FilterExpression": "pk = :pk AND begins_with(sk, :sk)",
            "ExpressionAttributeValues": {
                ":GSI1PK": {"S": "USER#u1"},
                ":pk": {"S": "USER#u1#CHAT#c1"},
                ":sk": {"S": "CHECKPOINT#"},
            },
            "Limit": 10,
            "ScanIndexForward": False,
        },
    )

    page = await DynamoDBCheckpointStore(TABLE, client=client).list("u1", "c1", limit=10)

    assert [c.checkpoint_id for c in page.checkpoints] == ["latest"]
    assert page.checkpoints[0].ordering_key == 5
    assert page.last_key is None


@pytest.mark.asyncio
async def test_checkpoint_delete_batches_by_25(client, stubber):
    keys = [
        {"pk": {"S": "USER#u1#CHAT#c1"}, "sk": {"S": f"CHECKPOINT#{i}"}} for i in range(30)
    ]
    stubber.add_response(
        "query",
        {"Items": keys},
        {
            "TableName": TABLE,
            "KeyConditionExpression": "pk = :pk AND begins_with(sk, :sk)",
            "ExpressionAttributeValues": {
                ":pk": {"S": "USER#u1#CHAT#c1"},
                ":sk": {"S": "CHECKPOINT#"},
            },
            "ProjectionExpression": "pk, sk",
        },
    )
    for batch in (keys[:25], keys[25:]):
        stubber.add_response(
            "batch_write_item",
            {"UnprocessedItems": {}},
            {"RequestItems": {TABLE: [{"DeleteRequest": {"Key": key}} for key in batch]}},
        )

    await DynamoDBCheckpointStore(TABLE, client=client).delete("u1", "c1")


@pytest.mark.asyncio
async def test_checkpoint_delete_with_unprocessed_items_fails(client, stubber):
    key = {"pk": {"S": "USER#u1#CHAT#c1"}, "sk": {"S": "CHECKPOINT#latest"}}
    stubber.add_response("query", {"Items": [key]}, None)
    stubber.add_response(
        "batch_write_item",
        {"UnprocessedItems": {TABLE: [{"DeleteRequest": {"Key": key}}]}},
        None,
    )

    with pytest.raises(StoreUnavailable):
        await DynamoDBCheckpointStore(TABLE, client=client).delete("u1", "c1")
