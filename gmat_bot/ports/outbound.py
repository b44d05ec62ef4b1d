"""Outbound ports — interfaces for external system adapters."""

import random
from typing import List, Optional, Protocol, Union, runtime_checkable

from gmat_bot.domain.models import Category, ContentItem, PhotoReply, TextReply
from gmat_bot.ports.inbound import InboundMessage

ReplyPayload = Union[TextReply, PhotoReply]


@runtime_checkable
class MessagingPort(Protocol):
    """Interface for the chat platform: long-poll and reply."""

    async def poll(self, cursor: int, timeout: int) -> List[InboundMessage]: ...

    async def reply(self, chat_id: str, payload: ReplyPayload) -> None: ...


@runtime_checkable
class ContentProvider(Protocol):
    """Interface for the question corpus."""

    async def fetch(
        self,
        category: Category,
        count: int = 1,
        rng: Optional[random.Random] = None,
    ) -> List[ContentItem]: ...


@runtime_checkable
class Renderer(Protocol):
    """Interface for HTML-to-image rendering backends."""

    async def render(self, html: str) -> bytes: ...


@runtime_checkable
class AssetPublisher(Protocol):
    """Interface for durable public image hosting."""

    async def publish(self, image: bytes, name: str) -> str: ...
