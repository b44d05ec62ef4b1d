"""Port interfaces (Hexagonal Architecture)."""

from gmat_bot.ports.inbound import InboundMessage
from gmat_bot.ports.outbound import (
    AssetPublisher,
    ContentProvider,
    MessagingPort,
    Renderer,
    ReplyPayload,
)

__all__ = [
    "InboundMessage",
    "AssetPublisher",
    "ContentProvider",
    "MessagingPort",
    "Renderer",
    "ReplyPayload",
]
