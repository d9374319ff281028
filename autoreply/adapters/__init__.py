"""Messaging client package for the outbound chat API."""

from autoreply.adapters.base import Authenticator, MessagingClient
from autoreply.adapters.feishu import FeishuClient

__all__ = [
    "Authenticator",
    "FeishuClient",
    "MessagingClient",
]
