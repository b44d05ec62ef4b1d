"""Unit tests for ZaloClient."""

import asyncio
import itertools
import json

import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from gmat_bot.adapters.zalo.client import ZaloClient
from gmat_bot.domain.errors import AuthError, ProtocolError, TransientError
from gmat_bot.domain.models import Category, PhotoReply, PublishedAsset, TextReply
from gmat_bot.domain.service import ServiceLoop
from gmat_bot.ports.inbound import InboundMessage
from gmat_bot.ports.outbound import MessagingPort


def _mock_aiohttp_session(responses):
    """Return a mock that replaces aiohttp.ClientSession context manager.
    responses: list of (status, body) tuples or exceptions, consumed in order.
    body is raw bytes, text, or a JSON-serializable object.
    Every request is recorded on the returned class as `calls`.
    """
    class FakeResponse:
        def __init__(self, status, body):
            self.status = status
            if isinstance(body, bytes):
                self._body = body
            elif isinstance(body, str):
                self._body = body.encode("utf-8")
            else:
                self._body = json.dumps(body).encode("utf-8")

        async def read(self):
            return self._body

        async def __aenter__(self):
            return self

        async def __aexit__(self, *args):
            pass

    class FakeSession:
        calls = []

        def post(self, url, **kwargs):
            FakeSession.calls.append((url, kwargs))
            item = responses.pop(0)
            if isinstance(item, BaseException):
                raise item
            return FakeResponse(*item)

        async def __aenter__(self):
            return self

        async def __aexit__(self, *args):
            pass

    return FakeSession


def _update(seq, text="ps", chat="chat-1", sender="user-1"):
    return {
        "event_name": "message.text.received",
        "message": {
            "message_id": f"m{seq}",
            "date": seq,
            "text": text,
            "chat": {"id": chat, "chat_type": "PRIVATE"},
            "from": {"id": sender, "is_bot": False},
        },
    }


@pytest.fixture
def client():
    return ZaloClient(bot_token="tok123", api_base="https://bot-api.example")


class TestConfig:
    def test_is_configured(self, client):
        assert client.is_configured is True

    def test_unconfigured(self):
        assert ZaloClient(bot_token="").is_configured is False

    def test_conforms_to_port(self, client):
        assert isinstance(client, MessagingPort)

    def test_truncate(self):
        assert ZaloClient.truncate_text("hello", 10) == "hello"
        result = ZaloClient.truncate_text("a" * 50, 20)
        assert len(result) == 20
        assert result.endswith("...")


class TestParseUpdates:
    def test_single_update(self):
        messages = ZaloClient.parse_updates(_update(100))
        assert messages == [
            InboundMessage(
                chat_id="chat-1", sender_id="user-1", sequence=100,
                text="ps", message_id="m100", is_bot=False,
            )
        ]

    def test_list_of_updates(self):
        messages = ZaloClient.parse_updates([_update(1), _update(2, chat="chat-2")])
        assert [m.chat_id for m in messages] == ["chat-1", "chat-2"]

    def test_update_id_preferred_over_date(self):
        update = _update(1700000000000)
        update["update_id"] = 42
        assert ZaloClient.parse_updates(update)[0].sequence == 42

    def test_legacy_sender_field(self):
        update = _update(5)
        update["message"]["sender"] = update["message"].pop("from")
        assert ZaloClient.parse_updates(update)[0].sender_id == "user-1"

    def test_non_text_message_has_empty_text(self):
        update = _update(5)
        del update["message"]["text"]
        assert ZaloClient.parse_updates(update)[0].text == ""

    def test_unknown_result_shape_is_empty(self):
        assert ZaloClient.parse_updates(None) == []
        assert ZaloClient.parse_updates("nothing") == []

    def test_skips_malformed_updates(self):
        no_message = {"event_name": "user.joined"}
        no_seq = _update(1)
        del no_seq["message"]["date"]
        no_chat = _update(2)
        no_chat["message"]["chat"] = {}
        messages = ZaloClient.parse_updates([no_message, no_seq, no_chat, _update(3), "junk"])
        assert [m.sequence for m in messages] == [3]

    @pytest.mark.parametrize("field,value", [
        ("chat", "chat-1"),
        ("chat", ["chat-1"]),
        ("from", "user-1"),
        ("from", 42),
    ])
    def test_skips_non_object_chat_or_sender(self, field, value):
        bad = _update(1)
        bad["message"][field] = value
        messages = ZaloClient.parse_updates([bad, _update(2)])
        assert [m.sequence for m in messages] == [2]

    def test_skips_non_object_legacy_sender(self):
        bad = _update(1)
        del bad["message"]["from"]
        bad["message"]["sender"] = "user-1"
        assert ZaloClient.parse_updates(bad) == []

    def test_missing_sender_is_tolerated(self):
        update = _update(4)
        del update["message"]["from"]
        assert ZaloClient.parse_updates(update)[0].sender_id == ""

    def test_out_of_range_sequence_is_skipped(self):
        update = _update(1)
        update["message"]["date"] = float("inf")
        assert ZaloClient.parse_updates(update) == []


class TestSequencing:
    @pytest.mark.asyncio
    async def test_offset_sent_once_update_ids_seen(self, client):
        keyed = _update(1700000000000)
        keyed["update_id"] = 11
        session = _mock_aiohttp_session([
            (200, {"ok": True, "result": [keyed]}),
            (200, {"ok": True, "result": []}),
        ])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            first = await client.poll(cursor=0, timeout=30)
            await client.poll(cursor=12, timeout=30)

        assert [m.sequence for m in first] == [11]
        assert session.calls[0][1]["json"] == {"timeout": 30}
        assert session.calls[1][1]["json"] == {"timeout": 30, "offset": 12}

    @pytest.mark.asyncio
    async def test_same_timestamp_in_later_poll_is_delivered(self, client):
        first = _update(500, chat="a")
        later = _update(500, chat="b")
        later["message"]["message_id"] = "m500-b"
        session = _mock_aiohttp_session([
            (200, {"ok": True, "result": [first]}),
            (200, {"ok": True, "result": [later]}),
        ])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            batch1 = await client.poll(cursor=0, timeout=30)
            cursor = batch1[0].sequence + 1
            batch2 = await client.poll(cursor=cursor, timeout=30)

        assert [m.chat_id for m in batch2] == ["b"]
        assert batch2[0].sequence >= cursor

    @pytest.mark.asyncio
    async def test_redelivered_message_id_is_dropped(self, client):
        session = _mock_aiohttp_session([
            (200, {"ok": True, "result": [_update(500)]}),
            (200, {"ok": True, "result": [_update(500), _update(501)]}),
        ])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            batch1 = await client.poll(cursor=0, timeout=30)
            batch2 = await client.poll(cursor=batch1[0].sequence + 1, timeout=30)

        assert [m.message_id for m in batch2] == ["m501"]

    @pytest.mark.asyncio
    async def test_older_timestamp_is_dropped(self, client):
        session = _mock_aiohttp_session([
            (200, {"ok": True, "result": [_update(500)]}),
            (200, {"ok": True, "result": [_update(400)]}),
        ])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            batch1 = await client.poll(cursor=0, timeout=30)
            batch2 = await client.poll(cursor=batch1[0].sequence + 1, timeout=30)

        assert batch2 == []

    @pytest.mark.asyncio
    async def test_equal_timestamps_in_one_batch_get_distinct_sequences(self, client):
        a, b = _update(500, chat="a"), _update(500, chat="b")
        b["message"]["message_id"] = "m500-b"
        session = _mock_aiohttp_session([(200, {"ok": True, "result": [a, b]})])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            batch = await client.poll(cursor=0, timeout=30)

        assert [m.chat_id for m in batch] == ["a", "b"]
        assert batch[0].sequence < batch[1].sequence


class TestPoll:
    @pytest.mark.asyncio
    async def test_poll_returns_messages(self, client):
        session = _mock_aiohttp_session([(200, {"ok": True, "result": [_update(7), _update(8)]})])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            messages = await client.poll(cursor=0, timeout=30)
        assert [m.sequence for m in messages] == [7, 8]
        url, kwargs = session.calls[0]
        assert url == "https://bot-api.example/bottok123/getUpdates"
        assert kwargs["json"] == {"timeout": 30}

    @pytest.mark.asyncio
    async def test_poll_filters_below_cursor(self, client):
        session = _mock_aiohttp_session([(200, {"ok": True, "result": [_update(7), _update(8)]})])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            messages = await client.poll(cursor=8, timeout=30)
        assert [m.sequence for m in messages] == [8]

    @pytest.mark.asyncio
    async def test_client_timeout_is_empty(self, client):
        session = _mock_aiohttp_session([asyncio.TimeoutError()])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            assert await client.poll(cursor=0, timeout=30) == []

    @pytest.mark.asyncio
    async def test_server_timeout_is_empty(self, client):
        session = _mock_aiohttp_session([aiohttp.ServerTimeoutError("read timeout")])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            assert await client.poll(cursor=0, timeout=30) == []

    @pytest.mark.asyncio
    async def test_no_updates_code_is_empty(self, client):
        session = _mock_aiohttp_session([
            (200, {"ok": False, "error_code": 408, "description": "Request timeout"}),
        ])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            assert await client.poll(cursor=0, timeout=30) == []

    @pytest.mark.asyncio
    async def test_empty_result_object(self, client):
        session = _mock_aiohttp_session([(200, {"ok": True, "result": {}})])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            assert await client.poll(cursor=0, timeout=30) == []

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, client):
        session = _mock_aiohttp_session([aiohttp.ClientConnectionError("refused")])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(TransientError):
                await client.poll(cursor=0, timeout=30)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 502, 503, 429])
    async def test_server_errors_are_transient(self, client, status):
        session = _mock_aiohttp_session([(status, "upstream trouble")])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(TransientError):
                await client.poll(cursor=0, timeout=30)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_status_is_auth_error(self, client, status):
        session = _mock_aiohttp_session([(status, {"ok": False, "error_code": status})])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(AuthError):
                await client.poll(cursor=0, timeout=30)

    @pytest.mark.asyncio
    async def test_auth_error_in_body(self, client):
        session = _mock_aiohttp_session([
            (200, {"ok": False, "error_code": 401, "description": "Unauthorized"}),
        ])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(AuthError, match="Unauthorized"):
                await client.poll(cursor=0, timeout=30)

    @pytest.mark.asyncio
    async def test_non_json_is_protocol_error(self, client):
        session = _mock_aiohttp_session([(200, "<html>oops</html>")])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(ProtocolError):
                await client.poll(cursor=0, timeout=30)

    @pytest.mark.asyncio
    async def test_non_utf8_body_is_protocol_error(self, client):
        session = _mock_aiohttp_session([(200, b'{"ok": true, "result": "\xff\xfe"}')])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(ProtocolError):
                await client.poll(cursor=0, timeout=30)

    @pytest.mark.asyncio
    async def test_non_utf8_error_body_keeps_status_mapping(self, client):
        session = _mock_aiohttp_session([(502, b"\xff\xfe gateway")])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(TransientError):
                await client.poll(cursor=0, timeout=30)

    @pytest.mark.asyncio
    async def test_odd_error_code_is_protocol_error(self, client):
        session = _mock_aiohttp_session([
            (200, {"ok": False, "error_code": [401], "description": "odd"}),
        ])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(ProtocolError, match="odd"):
                await client.poll(cursor=0, timeout=30)

    @pytest.mark.asyncio
    async def test_missing_ok_is_protocol_error(self, client):
        session = _mock_aiohttp_session([(200, {"result": []})])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(ProtocolError):
                await client.poll(cursor=0, timeout=30)

    @pytest.mark.asyncio
    async def test_other_api_error_is_protocol_error(self, client):
        session = _mock_aiohttp_session([
            (200, {"ok": False, "error_code": 400, "description": "Bad Request"}),
        ])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(ProtocolError, match="Bad Request"):
                await client.poll(cursor=0, timeout=30)


class TestReply:
    @pytest.mark.asyncio
    async def test_send_photo(self, client):
        session = _mock_aiohttp_session([(200, {"ok": True, "result": {"message_id": "x"}})])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            await client.reply("chat-9", PhotoReply("https://host/x.png", "caption"))
        url, kwargs = session.calls[0]
        assert url.endswith("/bottok123/sendPhoto")
        assert kwargs["json"] == {
            "chat_id": "chat-9", "photo": "https://host/x.png", "caption": "caption",
        }

    @pytest.mark.asyncio
    async def test_send_text(self, client):
        session = _mock_aiohttp_session([(200, {"ok": True, "result": {}})])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            await client.reply("chat-9", TextReply("help"))
        url, kwargs = session.calls[0]
        assert url.endswith("/sendMessage")
        assert kwargs["json"] == {"chat_id": "chat-9", "text": "help"}

    @pytest.mark.asyncio
    async def test_reply_is_not_retried(self, client):
        session = _mock_aiohttp_session([(503, "down"), (200, {"ok": True, "result": {}})])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(TransientError):
                await client.reply("chat-9", TextReply("help"))
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_reply_timeout_is_transient(self, client):
        session = _mock_aiohttp_session([asyncio.TimeoutError()])
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            with pytest.raises(TransientError):
                await client.reply("chat-9", TextReply("help"))

    @pytest.mark.asyncio
    async def test_unsupported_payload(self, client):
        with pytest.raises(TypeError):
            await client.reply("chat-9", "plain string")


class TestServiceLoopWithClient:
    """ServiceLoop driven by a real ZaloClient over bad upstream answers."""

    @pytest.mark.asyncio
    async def test_loop_survives_malformed_responses(self, client):
        bad_chat = _update(1, text="ps")
        bad_chat["message"]["chat"] = "chat-1"
        session = _mock_aiohttp_session([
            (200, b'{"ok": true, "result": "\xff\xfe"}'),
            (200, {"ok": True, "result": [bad_chat]}),
            (200, {"ok": True, "result": [_update(2, text="ps")]}),
            (200, {"ok": True, "result": {"message_id": "sent"}}),
        ])
        pipeline = MagicMock()
        pipeline.run = AsyncMock(return_value=PublishedAsset(
            url="https://host/q.png", category=Category.PROBLEM_SOLVING, item_id="ps-1",
        ))
        ticks = itertools.count()
        delays = []

        async def sleep(delay):
            delays.append(delay)

        # the clock ticks once per cycle check, so a duration of 4 allows three polls
        loop = ServiceLoop(
            client, pipeline, duration=4, clock=lambda: next(ticks), sleep=sleep,
        )
        with patch("gmat_bot.adapters.zalo.client.aiohttp.ClientSession", session):
            stats = await loop.run()

        assert stats.stop_reason == "deadline"
        assert stats.poll_failures == 1
        assert delays == [5.0]
        pipeline.run.assert_awaited_once_with(Category.PROBLEM_SOLVING)
        method_url, kwargs = session.calls[-1]
        assert method_url.endswith("/sendPhoto")
        assert kwargs["json"]["chat_id"] == "chat-1"
        assert loop.cursor == 3
