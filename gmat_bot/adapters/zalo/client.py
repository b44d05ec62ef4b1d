"""Zalo Bot API client using aiohttp. Implements MessagingPort."""

import asyncio
import dataclasses
import json
import sys
from collections import OrderedDict
from typing import Any, Dict, Iterator, List, Optional

import aiohttp

from gmat_bot.config import CONFIG
from gmat_bot.domain.errors import AuthError, ProtocolError, TransientError
from gmat_bot.domain.models import PhotoReply, TextReply
from gmat_bot.ports.inbound import InboundMessage

# Client-side read timeout is a little longer than the server-side long poll
POLL_GRACE_SECONDS = 5
SEND_TIMEOUT_SECONDS = 30
CAPTION_LIMIT = 2000
TEXT_LIMIT = 2000

_AUTH_CODES = {401, 403}
_NO_UPDATES_CODE = 408


def _log(msg: str):
    print(msg, file=sys.stderr)


class ZaloClient:
    """Async Zalo Bot API client: long-poll getUpdates, sendMessage, sendPhoto.

    Updates carrying an `update_id` are sequenced by it and the cursor is
    sent back as `offset`. Updates without one are sequenced by their
    timestamp, which several messages can share, so those get a local
    strictly increasing sequence and are deduplicated by message id.
    """

    _MAX_RECENT_IDS = 1000

    def __init__(self, bot_token: Optional[str] = None, api_base: Optional[str] = None):
        self._token = bot_token if bot_token is not None else CONFIG["zalo_bot_token"]
        self._api_base = (api_base or CONFIG["zalo_api_base"]).rstrip("/")
        self._uses_update_ids = False
        self._last_date: Optional[int] = None
        self._next_sequence = 0
        self._recent_ids: "OrderedDict[str, None]" = OrderedDict()

    @property
    def is_configured(self) -> bool:
        return bool(self._token)

    @staticmethod
    def truncate_text(text: str, limit: int) -> str:
        if len(text) <= limit:
            return text
        return text[: limit - 3] + "..."

    def _url(self, method: str) -> str:
        return f"{self._api_base}/bot{self._token}/{method}"

    async def _call(self, method: str, payload: Dict[str, Any], timeout: float) -> Any:
        """POST one API method and return the `result` field.

        Raises AuthError, TransientError or ProtocolError. asyncio.TimeoutError
        is left to the caller, which decides whether a timeout is an error.
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self._url(method),
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=timeout),
                ) as resp:
                    status = resp.status
                    raw = await resp.read()
        except asyncio.TimeoutError:
            # aiohttp.ServerTimeoutError is also a ClientError; keep it a timeout
            raise
        except aiohttp.ClientError as e:
            raise TransientError(f"{method}: {type(e).__name__}: {e}") from e

        body = raw.decode("utf-8", errors="replace")
        if status in _AUTH_CODES:
            raise AuthError(f"{method}: HTTP {status}: {body[:200]}")
        if status == 429 or status >= 500:
            raise TransientError(f"{method}: HTTP {status}: {body[:200]}")

        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            # UnicodeDecodeError included
            if status >= 400:
                raise ProtocolError(f"{method}: HTTP {status}: {body[:200]}") from e
            raise ProtocolError(f"{method}: response is not JSON: {body[:200]!r}") from e
        if not isinstance(data, dict) or "ok" not in data:
            raise ProtocolError(f"{method}: unexpected response shape: {body[:200]!r}")

        if not data["ok"]:
            code = data.get("error_code")
            if not isinstance(code, int):
                code = status
            description = data.get("description") or data.get("message") or body[:200]
            if code in _AUTH_CODES:
                raise AuthError(f"{method}: {code} {description}")
            if code == _NO_UPDATES_CODE:
                raise asyncio.TimeoutError()
            if code == 429 or code >= 500:
                raise TransientError(f"{method}: {code} {description}")
            raise ProtocolError(f"{method}: {code} {description}")

        return data.get("result")

    # -- MessagingPort --

    async def poll(self, cursor: int, timeout: int) -> List[InboundMessage]:
        """Long-poll for updates at or after `cursor`. Empty list on timeout."""
        payload = {"timeout": timeout}
        if self._uses_update_ids:
            payload["offset"] = cursor
        try:
            result = await self._call("getUpdates", payload, timeout + POLL_GRACE_SECONDS)
        except asyncio.TimeoutError:
            return []

        keyed, timestamped = [], []
        for update in self._iter_updates(result):
            message = self._parse_update(update)
            if message is None:
                continue
            if update.get("update_id") is not None:
                keyed.append(message)
            else:
                timestamped.append(message)
        if keyed:
            self._uses_update_ids = True
        fresh = [m for m in keyed if m.sequence >= cursor]
        return fresh + self._sequence_by_date(timestamped, cursor)

    async def reply(self, chat_id: str, payload) -> None:
        """Send a TextReply or PhotoReply. Never retried here."""
        if isinstance(payload, PhotoReply):
            method = "sendPhoto"
            body = {
                "chat_id": chat_id,
                "photo": payload.image_url,
                "caption": self.truncate_text(payload.caption, CAPTION_LIMIT),
            }
        elif isinstance(payload, TextReply):
            method = "sendMessage"
            body = {"chat_id": chat_id, "text": self.truncate_text(payload.text, TEXT_LIMIT)}
        else:
            raise TypeError(f"Unsupported reply payload: {type(payload).__name__}")

        try:
            await self._call(method, body, SEND_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as e:
            raise TransientError(f"{method}: timed out") from e
        _log(f"[zalo] {method} delivered to chat {chat_id}")

    # -- Sequencing --

    def _sequence_by_date(
        self, messages: List[InboundMessage], cursor: int
    ) -> List[InboundMessage]:
        """Give timestamp-keyed messages unique sequences at or above `cursor`.

        A message older than the newest timestamp already returned is a
        re-delivery. One sharing that timestamp is new unless its message id
        was returned before.
        """
        floor = cursor if self._last_date is None else self._last_date
        fresh = []
        for message in sorted(messages, key=lambda m: m.sequence):
            date = message.sequence
            if date < floor or self._seen(message.message_id):
                continue
            sequence = max(date, cursor, self._next_sequence)
            self._next_sequence = sequence + 1
            self._last_date = date if self._last_date is None else max(self._last_date, date)
            fresh.append(dataclasses.replace(message, sequence=sequence))
        return fresh

    def _seen(self, message_id: str) -> bool:
        if not message_id:
            return False
        if message_id in self._recent_ids:
            return True
        self._recent_ids[message_id] = None
        while len(self._recent_ids) > self._MAX_RECENT_IDS:
            self._recent_ids.popitem(last=False)
        return False

    # -- Parsing --

    @staticmethod
    def _iter_updates(result: Any) -> Iterator[Dict[str, Any]]:
        """The API answers with a single update object, a list of updates, or
        something else entirely when there is nothing to deliver.
        """
        if isinstance(result, dict):
            updates = [result]
        elif isinstance(result, list):
            updates = result
        else:
            return
        for update in updates:
            if isinstance(update, dict):
                yield update

    @classmethod
    def parse_updates(cls, result: Any) -> List[InboundMessage]:
        """Extract messages from a getUpdates result, skipping malformed updates."""
        messages = []
        for update in cls._iter_updates(result):
            message = cls._parse_update(update)
            if message is not None:
                messages.append(message)
        return messages

    @staticmethod
    def _parse_update(update: Dict[str, Any]) -> Optional[InboundMessage]:
        raw = update.get("message")
        if not isinstance(raw, dict):
            return None
        event = update.get("event_name")

        chat = raw.get("chat")
        sender = raw.get("from", raw.get("sender"))
        if sender is None:
            sender = {}
        if not isinstance(chat, dict) or not isinstance(sender, dict):
            _log(f"[zalo] skipping update with malformed chat or sender: {event}")
            return None

        sequence = update.get("update_id")
        if sequence is None:
            sequence = raw.get("date")
        try:
            sequence = int(sequence)
        except (TypeError, ValueError, OverflowError):
            _log(f"[zalo] skipping update without a sequence: {event}")
            return None
        if not chat.get("id"):
            _log(f"[zalo] skipping update without a chat id: {event}")
            return None

        text = raw.get("text")
        return InboundMessage(
            chat_id=str(chat["id"]),
            sender_id=str(sender.get("id", "")),
            sequence=sequence,
            text=text if isinstance(text, str) else "",
            message_id=str(raw.get("message_id", "")),
            is_bot=bool(sender.get("is_bot", False)),
        )
