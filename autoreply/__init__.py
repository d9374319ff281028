"""Automated message-response engine for Feishu chat integrations."""

__version__ = "0.1.0"
