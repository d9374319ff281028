"""Feishu (Lark) open API client implementation."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

import aiohttp

from autoreply.adapters.base import MessagingClient
from autoreply.errors import CredentialError, DispatchError
from autoreply.models.domain import (
    ActionKind,
    ContentKind,
    ConversationKind,
    EventEnvelope,
    EventType,
    InboundMessage,
    SendResult,
    SenderKind,
)

logger = logging.getLogger(__name__)

FEISHU_EVENT_TYPES = {
    "im.message.receive_v1": EventType.MESSAGE_RECEIVED,
    "im.chat.created_v1": EventType.CHAT_CREATED,
    "im.chat.member.user_added_v1": EventType.CHAT_MEMBER_ADDED,
    "im.chat.member.user_deleted_v1": EventType.CHAT_MEMBER_REMOVED,
    "im.chat.member.user_withdrawn_v1": EventType.CHAT_MEMBER_REMOVED,
}

FEISHU_CHAT_TYPES = {
    "p2p": ConversationKind.DIRECT,
    "group": ConversationKind.GROUP,
}

FEISHU_SENDER_TYPES = {
    "user": SenderKind.HUMAN,
    "app": SenderKind.AUTOMATED_AGENT,
    "system": SenderKind.SYSTEM,
}

FEISHU_MESSAGE_TYPES = {
    "text": ContentKind.TEXT,
    "post": ContentKind.TEXT,
    "image": ContentKind.IMAGE,
    "sticker": ContentKind.IMAGE,
    "file": ContentKind.FILE,
    "audio": ContentKind.AUDIO,
    "media": ContentKind.VIDEO,
    "interactive": ContentKind.INTERACTIVE,
}


class FeishuClient(MessagingClient):
    """Messaging client for the Feishu open API.

    Opens a short-lived aiohttp session per call. Auto-replies are sent to the
    conversation (chat_id), with the attempt's idempotency token as the
    request ``uuid`` so Feishu deduplicates retried sends.
    """

    def __init__(self, base_url: str = "https://open.feishu.cn/open-apis", timeout: int = 10):
        """Initialize Feishu client.

        Args:
            base_url: Open API base URL
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @staticmethod
    def to_envelope(body: dict) -> EventEnvelope:
        """Convert a raw v2 event callback body into a transport envelope.

        Args:
            body: Parsed JSON body posted by Feishu

        Returns:
            EventEnvelope with normalized event type
        """
        header = body.get("header") or {}
        raw_type = header.get("event_type", "")
        event_type = FEISHU_EVENT_TYPES.get(raw_type)
        return EventEnvelope(
            verification_token=header.get("token", ""),
            event_type=event_type.value if event_type else raw_type,
            payload=body.get("event") or {},
        )

    async def authenticate(self, app_id: str, app_secret: str) -> tuple[str, int]:
        """Fetch a tenant access token."""
        url = f"{self.base_url}/auth/v3/tenant_access_token/internal"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json={"app_id": app_id, "app_secret": app_secret},
                    timeout=self.timeout,
                ) as response:
                    data = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            raise CredentialError(f"Authentication request failed: {e}") from e

        return self._parse_token_response(data)

    @staticmethod
    def _parse_token_response(data: Any) -> tuple[str, int]:
        if not isinstance(data, dict):
            raise CredentialError("Authentication response is not a JSON object")
        if data.get("code") != 0:
            raise CredentialError(f"Authentication failed: {data.get('msg', 'unknown error')}")

        # The token may sit at the top level or under "data"
        body = data.get("data") if isinstance(data.get("data"), dict) else data
        token = body.get("tenant_access_token")
        expire = body.get("expire")
        if not isinstance(token, str) or not token:
            raise CredentialError("Authentication response missing tenant_access_token")
        if not isinstance(expire, int) or expire <= 0:
            raise CredentialError(f"Authentication response has invalid expire: {expire!r}")
        return token, expire

    async def receive_message(self, payload: dict) -> InboundMessage:
        """Parse an im.message.receive_v1 event body."""
        message = payload.get("message")
        sender = payload.get("sender")
        if not isinstance(message, dict) or not isinstance(sender, dict):
            raise ValueError("Event payload missing message or sender")

        conversation_kind = self._lookup(FEISHU_CHAT_TYPES, message, "chat_type")
        content_kind = self._lookup(FEISHU_MESSAGE_TYPES, message, "message_type")
        sender_kind = self._lookup(FEISHU_SENDER_TYPES, sender, "sender_type")

        sender_ids = sender.get("sender_id") or {}
        if not isinstance(sender_ids, dict):
            raise ValueError(f"Expected sender_id object, got {type(sender_ids).__name__}")
        return InboundMessage(
            message_id=message.get("message_id"),
            conversation_id=message.get("chat_id"),
            conversation_kind=conversation_kind,
            content_kind=content_kind,
            content=message.get("content", ""),
            sender_id=(
                sender_ids.get("open_id") or sender_ids.get("user_id") or sender_ids.get("union_id") or ""
            ),
            sender_kind=sender_kind,
            created_at=self._parse_create_time(message.get("create_time")),
        )

    @staticmethod
    def _lookup(mapping: dict[str, Any], source: dict, field: str) -> Any:
        value = source.get(field, "")
        if not isinstance(value, str) or value not in mapping:
            raise ValueError(f"Unsupported {field} in message event: {value!r}")
        return mapping[value]

    @staticmethod
    def _parse_create_time(value: Any) -> datetime:
        """Feishu sends epoch milliseconds as a string."""
        try:
            return datetime.fromtimestamp(int(value) / 1000, tz=UTC)
        except (TypeError, ValueError, OverflowError, OSError):
            return datetime.now(UTC)

    @staticmethod
    def build_message_body(
        conversation_id: str,
        action_kind: ActionKind,
        payload: str | dict[str, Any],
        idempotency_token: str,
    ) -> dict[str, Any]:
        """Build the im/v1/messages request body."""
        if isinstance(payload, dict):
            msg_type = "interactive"
            content = json.dumps(payload, ensure_ascii=False)
        elif action_kind == ActionKind.CARD:
            # Card payload already serialized
            msg_type = "interactive"
            content = payload
        else:
            msg_type = "text"
            content = json.dumps({"text": payload}, ensure_ascii=False)

        return {
            "receive_id": conversation_id,
            "msg_type": msg_type,
            "content": content,
            "uuid": idempotency_token,
        }

    async def send(
        self,
        token: str,
        conversation_id: str,
        action_kind: ActionKind,
        payload: str | dict[str, Any],
        idempotency_token: str,
    ) -> SendResult:
        """Send a message to a chat."""
        url = f"{self.base_url}/im/v1/messages?receive_id_type=chat_id"
        body = self.build_message_body(conversation_id, action_kind, payload, idempotency_token)
        headers = {"Authorization": f"Bearer {token}"}

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url, json=body, headers=headers, timeout=self.timeout
                ) as response:
                    data = await response.json(content_type=None)
                    status = response.status
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            raise DispatchError(f"Send request failed: {e}") from e

        if not isinstance(data, dict) or data.get("code") != 0:
            msg = data.get("msg", "unknown error") if isinstance(data, dict) else data
            raise DispatchError(f"Feishu send failed (HTTP {status}): {msg}")

        message_id = (data.get("data") or {}).get("message_id", "")
        logger.info(f"Sent {body['msg_type']} message {message_id} to chat {conversation_id}")
        return SendResult(message_id=message_id)
