"""Inbound port — platform-agnostic message representation."""

from dataclasses import dataclass


@dataclass(frozen=True)
class InboundMessage:
    """Zalo/Telegram/CLI-agnostic inbound chat message."""

    chat_id: str
    sender_id: str
    sequence: int  # platform-assigned, monotonic
    text: str = ""
    message_id: str = ""
    is_bot: bool = False
