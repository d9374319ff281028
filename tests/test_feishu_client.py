import json
from datetime import UTC, datetime

import pytest

from autoreply.adapters.feishu import FeishuClient
from autoreply.errors import CredentialError
from autoreply.models.domain import (
    ActionKind,
    ContentKind,
    ConversationKind,
    EventType,
    SenderKind,
)


def receive_body(**message_overrides) -> dict:  # type: ignore[no-untyped-def]
    message = {
        "message_id": "om_abc",
        "chat_id": "oc_123",
        "chat_type": "group",
        "message_type": "text",
        "content": '{"text":"hello bot"}',
        "create_time": "1714557600000",
    }
    message.update(message_overrides)
    return {
        "schema": "2.0",
        "header": {
            "event_id": "ev_1",
            "event_type": "im.message.receive_v1",
            "token": "verify-me",
            "app_id": "cli_app",
        },
        "event": {
            "sender": {
                "sender_id": {"open_id": "ou_1", "user_id": "u_1"},
                "sender_type": "user",
            },
            "message": message,
        },
    }


@pytest.fixture
def feishu() -> FeishuClient:
    return FeishuClient(base_url="https://open.feishu.cn/open-apis/")


@pytest.mark.unit
def test_base_url_trailing_slash_is_stripped(feishu: FeishuClient) -> None:
    assert feishu.base_url == "https://open.feishu.cn/open-apis"


@pytest.mark.unit
def test_to_envelope_normalizes_event_type() -> None:
    envelope = FeishuClient.to_envelope(receive_body())

    assert envelope.verification_token == "verify-me"
    assert envelope.event_type == EventType.MESSAGE_RECEIVED.value
    assert envelope.payload["message"]["chat_id"] == "oc_123"


@pytest.mark.unit
def test_to_envelope_keeps_unknown_event_type() -> None:
    body = receive_body()
    body["header"]["event_type"] = "drive.file.created_v1"

    assert FeishuClient.to_envelope(body).event_type == "drive.file.created_v1"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_message_parses_event(feishu: FeishuClient) -> None:
    message = await feishu.receive_message(receive_body()["event"])

    assert message.message_id == "om_abc"
    assert message.conversation_id == "oc_123"
    assert message.conversation_kind == ConversationKind.GROUP
    assert message.content_kind == ContentKind.TEXT
    assert message.sender_kind == SenderKind.HUMAN
    assert message.sender_id == "ou_1"
    assert message.text() == "hello bot"
    assert message.created_at == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_message_maps_direct_chat_and_app_sender(feishu: FeishuClient) -> None:
    event = receive_body(chat_type="p2p", message_type="image")["event"]
    event["sender"]["sender_type"] = "app"

    message = await feishu.receive_message(event)

    assert message.conversation_kind == ConversationKind.DIRECT
    assert message.content_kind == ContentKind.IMAGE
    assert message.sender_kind == SenderKind.AUTOMATED_AGENT


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event",
    [
        {},
        {"message": {"message_id": "om_1"}},
        receive_body(chat_type="topic")["event"],
        receive_body(message_type="hologram")["event"],
        receive_body(chat_id=None)["event"],
    ],
)
async def test_receive_message_rejects_malformed_events(feishu: FeishuClient, event: dict) -> None:
    with pytest.raises(ValueError):
        await feishu.receive_message(event)


@pytest.mark.unit
def test_text_body() -> None:
    body = FeishuClient.build_message_body("oc_1", ActionKind.TEXT, "Hi, how can I help?", "uuid-1")

    assert body == {
        "receive_id": "oc_1",
        "msg_type": "text",
        "content": json.dumps({"text": "Hi, how can I help?"}),
        "uuid": "uuid-1",
    }


@pytest.mark.unit
def test_card_body_from_dict() -> None:
    card = {"elements": [{"tag": "div", "text": {"content": "你好"}}]}

    body = FeishuClient.build_message_body("oc_1", ActionKind.CARD, card, "uuid-2")

    assert body["msg_type"] == "interactive"
    assert json.loads(body["content"]) == card


@pytest.mark.unit
def test_card_body_from_serialized_string() -> None:
    body = FeishuClient.build_message_body("oc_1", ActionKind.CARD, '{"elements":[]}', "uuid-3")

    assert body["msg_type"] == "interactive"
    assert body["content"] == '{"elements":[]}'


@pytest.mark.unit
def test_token_response_at_top_level() -> None:
    data = {"code": 0, "msg": "ok", "tenant_access_token": "t-abc", "expire": 7200}

    assert FeishuClient._parse_token_response(data) == ("t-abc", 7200)


@pytest.mark.unit
def test_token_response_nested_under_data() -> None:
    data = {"code": 0, "data": {"tenant_access_token": "t-abc", "expire": 3600}}

    assert FeishuClient._parse_token_response(data) == ("t-abc", 3600)


@pytest.mark.unit
@pytest.mark.parametrize(
    "data",
    [
        None,
        {"code": 99991663, "msg": "app secret invalid"},
        {"code": 0, "expire": 7200},
        {"code": 0, "tenant_access_token": "t-abc"},
        {"code": 0, "tenant_access_token": "t-abc", "expire": 0},
    ],
)
def test_bad_token_responses(data) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(CredentialError):
        FeishuClient._parse_token_response(data)


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("message_overrides", "sender_overrides"),
    [
        ({"chat_type": ["p2p"]}, {}),
        ({"message_type": {"text": True}}, {}),
        ({}, {"sender_type": ["user"]}),
        ({}, {"sender_id": "ou_x"}),
    ],
)
async def test_receive_message_rejects_wrongly_typed_fields(
    feishu: FeishuClient, message_overrides: dict, sender_overrides: dict
) -> None:
    event = receive_body(**message_overrides)["event"]
    event["sender"].update(sender_overrides)

    with pytest.raises(ValueError):
        await feishu.receive_message(event)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_out_of_range_create_time_falls_back_to_now(feishu: FeishuClient) -> None:
    before = datetime.now(UTC)

    message = await feishu.receive_message(receive_body(create_time="9" * 30)["event"])

    assert message.created_at >= before
