"""Long-polling service loop: poll, interpret, respond, advance cursor.

Pure domain logic. The platform, the pipeline, the clock and the sleep
function are injected so the loop runs in tests without real time passing.
"""

from __future__ import annotations

import asyncio
import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional

from gmat_bot.config import DEFAULT_CAPTION
from gmat_bot.domain.commands import HELP_TEXT, interpret
from gmat_bot.domain.errors import (
    AuthError,
    PipelineError,
    PlatformError,
    ProtocolError,
    TransientError,
)
from gmat_bot.domain.models import Category, PhotoReply, TextReply
from gmat_bot.domain.pipeline import QuestionPipeline, build_caption

if TYPE_CHECKING:
    from gmat_bot.ports.inbound import InboundMessage
    from gmat_bot.ports.outbound import MessagingPort


def _log(msg: str):
    print(msg, file=sys.stderr)


@dataclass
class ServiceStats:
    """Counters reported when the loop exits."""

    polls: int = 0
    poll_failures: int = 0
    messages: int = 0
    photos_sent: int = 0
    help_sent: int = 0
    dropped: int = 0  # observed but not answered
    stop_reason: str = ""

    def summary(self) -> str:
        return (
            f"polls={self.polls} poll_failures={self.poll_failures} "
            f"messages={self.messages} photos={self.photos_sent} "
            f"help={self.help_sent} dropped={self.dropped} "
            f"reason={self.stop_reason or 'running'}"
        )


class ServiceLoop:
    """Drives the request/respond cycle until a deadline or a fatal auth error.

    Messages are handled one at a time in ascending sequence order. The
    cursor moves past a message before it is handled, so a failure while
    handling it means no reply rather than a retried reply.
    """

    def __init__(
        self,
        messaging: "MessagingPort",
        pipeline: QuestionPipeline,
        *,
        duration: float,
        poll_timeout: int = 30,
        cursor: int = 0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        backoff_base: float = 5.0,
        backoff_cap: float = 60.0,
        caption: str = DEFAULT_CAPTION,
        help_text: str = HELP_TEXT,
    ):
        self._messaging = messaging
        self._pipeline = pipeline
        self._duration = duration
        self._poll_timeout = poll_timeout
        self._cursor = cursor
        self._clock = clock
        self._sleep = sleep
        self._backoff_base = backoff_base
        self._backoff_cap = backoff_cap
        self._caption = caption
        self._help_text = help_text
        self._consecutive_failures = 0
        self._stop_requested = False
        self.stats = ServiceStats()

    @property
    def cursor(self) -> int:
        return self._cursor

    def stop(self):
        """Ask the loop to exit at the next cycle boundary."""
        self._stop_requested = True

    def backoff_delay(self, failures: int) -> float:
        """Capped exponential delay after `failures` consecutive poll errors."""
        if failures <= 0:
            return 0.0
        return min(self._backoff_base * (2 ** (failures - 1)), self._backoff_cap)

    async def run(self) -> ServiceStats:
        """Run until the deadline or stop(). AuthError from poll propagates."""
        deadline = self._clock() + self._duration
        _log(
            f"[service] started: cursor={self._cursor} "
            f"duration={self._duration:.0f}s poll_timeout={self._poll_timeout}s"
        )

        while True:
            if self._stop_requested:
                self.stats.stop_reason = "stopped"
                break
            if self._clock() >= deadline:
                self.stats.stop_reason = "deadline"
                break

            batch = await self._poll_once()
            if not batch:
                continue

            _log(f"[service] received {len(batch)} new message(s)")
            await self._dispatch_batch(batch)

        _log(f"[service] stopped: {self.stats.summary()}")
        return self.stats

    async def _poll_once(self) -> Optional[List["InboundMessage"]]:
        """One poll. Returns None after a retryable failure (already slept)."""
        self.stats.polls += 1
        try:
            messages = await self._messaging.poll(self._cursor, self._poll_timeout)
        except AuthError as e:
            self.stats.stop_reason = "auth_error"
            _log(f"[service] authentication rejected, stopping: {e}")
            _log(f"[service] stopped: {self.stats.summary()}")
            raise
        except (TransientError, ProtocolError) as e:
            self.stats.poll_failures += 1
            self._consecutive_failures += 1
            delay = self.backoff_delay(self._consecutive_failures)
            kind = "malformed response" if isinstance(e, ProtocolError) else "error"
            _log(
                f"[service] poll {kind} ({self._consecutive_failures} in a row): {e}; "
                f"retrying in {delay:.0f}s"
            )
            await self._sleep(delay)
            return None

        self._consecutive_failures = 0
        # Drop anything the platform re-delivered below the cursor
        fresh = [m for m in messages if m.sequence >= self._cursor]
        return sorted(fresh, key=lambda m: m.sequence)

    async def _dispatch_batch(self, batch: List["InboundMessage"]):
        for message in batch:
            self._cursor = max(self._cursor, message.sequence + 1)
            self.stats.messages += 1
            try:
                await self._handle(message)
            except PipelineError as e:
                self.stats.dropped += 1
                _log(f"[service] no reply for #{message.sequence} in {message.chat_id}: {e}")
            except PlatformError as e:
                self.stats.dropped += 1
                _log(f"[service] reply to {message.chat_id} failed: {e}")
            except Exception as e:
                self.stats.dropped += 1
                _log(
                    f"[service] unexpected error on #{message.sequence} "
                    f"in {message.chat_id}: {type(e).__name__}: {e}"
                )

    async def _handle(self, message: "InboundMessage"):
        category = interpret(message.text)
        _log(
            f"[service] #{message.sequence} from {message.sender_id} "
            f"in {message.chat_id}: {message.text[:50]!r} -> {category.value}"
        )

        if category is Category.UNRECOGNIZED:
            await self._messaging.reply(message.chat_id, TextReply(self._help_text))
            self.stats.help_sent += 1
            return

        asset = await self._pipeline.run(category)
        caption = build_caption(self._caption, asset)
        await self._messaging.reply(message.chat_id, PhotoReply(asset.url, caption))
        self.stats.photos_sent += 1
        _log(f"[service] sent {asset.item_id} to {message.chat_id}")
