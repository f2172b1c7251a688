"""
WeChat Command Dispatcher Tests

Decision table coverage: events, bind, unbind, forward, prompt.
"""

from unittest.mock import MagicMock

import pytest

from bindings import Binding, StubBindingStore
from transport.wechat.dispatcher import (
    BIND_PROMPT_TEXT,
    INVALID_URL_TEXT,
    PROCESSING_TEXT,
    UNBIND_SUCCESS_TEXT,
    WELCOME_TEXT,
    DispatchAction,
    dispatch,
    is_valid_endpoint_url,
)
from transport.wechat.schemas import InboundMessage, MsgType

USER = "oUser123"


def text_message(content: str, user: str = USER) -> InboundMessage:
    return InboundMessage(
        from_user=user,
        to_user="gh_account",
        msg_type=MsgType.TEXT,
        raw_type="text",
        create_time=1700000000,
        content=content,
    )


def event_message(event: str) -> InboundMessage:
    return InboundMessage(
        from_user=USER,
        to_user="gh_account",
        msg_type=MsgType.EVENT,
        raw_type="event",
        event=event,
    )


@pytest.fixture
def store():
    return StubBindingStore()


@pytest.fixture
def bound_store():
    store = StubBindingStore()
    store.storage[USER] = Binding(user_id=USER, endpoint_url="https://x.example/webhook", token="tok1")
    return store


class TestEvents:
    """Test platform events."""

    @pytest.mark.asyncio
    async def test_subscribe_replies_welcome(self, store):
        scheduler = MagicMock()

        result = await dispatch(event_message("subscribe"), store, scheduler)

        assert result.action == DispatchAction.WELCOME
        assert result.reply_text == WELCOME_TEXT
        scheduler.assert_not_called()
        assert store.storage == {}

    @pytest.mark.asyncio
    async def test_other_event_replies_empty(self, store):
        result = await dispatch(event_message("unsubscribe"), store, MagicMock())

        assert result.action == DispatchAction.ACK
        assert result.reply_text is None

    @pytest.mark.asyncio
    async def test_events_ignore_binding(self, bound_store):
        """Events never forward, even for bound users."""
        scheduler = MagicMock()

        result = await dispatch(event_message("CLICK"), bound_store, scheduler)

        assert result.action == DispatchAction.ACK
        scheduler.assert_not_called()


class TestUnbound:
    """Test NoBinding state."""

    @pytest.mark.asyncio
    async def test_bind_creates_binding(self, store):
        result = await dispatch(text_message("bind https://x.example/webhook tok1"), store, MagicMock())

        binding = await store.get(USER)
        assert binding is not None
        assert binding.endpoint_url == "https://x.example/webhook"
        assert binding.token == "tok1"
        assert result.action == DispatchAction.BIND
        assert "https://x.example/webhook" in result.reply_text
        assert result.binding == binding

    @pytest.mark.asyncio
    async def test_bind_keyword_case_insensitive(self, store):
        result = await dispatch(text_message("BIND http://10.0.0.5:8080/hook t"), store, MagicMock())

        assert result.action == DispatchAction.BIND
        assert (await store.get(USER)).endpoint_url == "http://10.0.0.5:8080/hook"

    @pytest.mark.asyncio
    async def test_bind_with_extra_whitespace(self, store):
        result = await dispatch(text_message("  bind   https://x.example/webhook\ttok1 "), store, MagicMock())

        assert result.action == DispatchAction.BIND
        assert (await store.get(USER)).token == "tok1"

    @pytest.mark.asyncio
    async def test_bind_invalid_url(self, store):
        result = await dispatch(text_message("bind not-a-url tok1"), store, MagicMock())

        assert result.action == DispatchAction.BIND_REJECTED
        assert result.reply_text == INVALID_URL_TEXT
        assert await store.get(USER) is None

    @pytest.mark.asyncio
    async def test_bind_missing_token_prompts(self, store):
        result = await dispatch(text_message("bind https://x.example/webhook"), store, MagicMock())

        assert result.action == DispatchAction.PROMPT_BIND
        assert await store.get(USER) is None

    @pytest.mark.asyncio
    async def test_plain_text_prompts_bind(self, store):
        scheduler = MagicMock()

        result = await dispatch(text_message("hello"), store, scheduler)

        assert result.action == DispatchAction.PROMPT_BIND
        assert result.reply_text == BIND_PROMPT_TEXT
        scheduler.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_text_prompts_bind(self, store):
        image = InboundMessage(
            from_user=USER, to_user="gh", msg_type=MsgType.IMAGE, raw_type="image",
            pic_url="http://pic",
        )

        result = await dispatch(image, store, MagicMock())

        assert result.action == DispatchAction.PROMPT_BIND

    @pytest.mark.asyncio
    async def test_unbind_when_unbound_prompts(self, store):
        result = await dispatch(text_message("unbind"), store, MagicMock())
        assert result.action == DispatchAction.PROMPT_BIND


class TestBound:
    """Test Bound state."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", ["unbind", " UNBIND ", "Unbind\n"])
    async def test_unbind_deletes_binding(self, bound_store, command):
        scheduler = MagicMock()

        result = await dispatch(text_message(command), bound_store, scheduler)

        assert result.action == DispatchAction.UNBIND
        assert result.reply_text == UNBIND_SUCCESS_TEXT
        assert await bound_store.get(USER) is None
        scheduler.assert_not_called()

    @pytest.mark.asyncio
    async def test_text_forwards(self, bound_store):
        scheduler = MagicMock()
        message = text_message("what's the weather?")

        result = await dispatch(message, bound_store, scheduler)

        assert result.action == DispatchAction.FORWARD
        assert result.reply_text == PROCESSING_TEXT
        scheduler.assert_called_once()
        forwarded_message, binding = scheduler.call_args.args
        assert forwarded_message == message
        assert binding.endpoint_url == "https://x.example/webhook"

    @pytest.mark.asyncio
    async def test_unbind_with_suffix_forwards(self, bound_store):
        scheduler = MagicMock()

        result = await dispatch(text_message("unbind please"), bound_store, scheduler)

        assert result.action == DispatchAction.FORWARD
        assert await bound_store.get(USER) is not None

    @pytest.mark.asyncio
    async def test_bind_while_bound_forwards(self, bound_store):
        """Rebinding requires unbind first."""
        scheduler = MagicMock()

        result = await dispatch(text_message("bind https://y.example/hook tok2"), bound_store, scheduler)

        assert result.action == DispatchAction.FORWARD
        assert (await bound_store.get(USER)).endpoint_url == "https://x.example/webhook"

    @pytest.mark.asyncio
    async def test_voice_forwards(self, bound_store):
        scheduler = MagicMock()
        voice = InboundMessage(
            from_user=USER, to_user="gh", msg_type=MsgType.VOICE, raw_type="voice",
            recognition="hello",
        )

        result = await dispatch(voice, bound_store, scheduler)

        assert result.action == DispatchAction.FORWARD
        scheduler.assert_called_once()

    @pytest.mark.asyncio
    async def test_bindings_are_per_user(self, bound_store):
        result = await dispatch(text_message("hi", user="oSomeoneElse"), bound_store, MagicMock())
        assert result.action == DispatchAction.PROMPT_BIND


class TestUrlValidation:
    """Test endpoint URL validation."""

    @pytest.mark.parametrize("url", [
        "https://x.example/webhook",
        "http://localhost:8080",
        "http://10.0.0.5/hook?x=1",
    ])
    def test_valid(self, url):
        assert is_valid_endpoint_url(url) is True

    @pytest.mark.parametrize("url", ["not-a-url", "ftp://x.example", "https://", "/relative/path"])
    def test_invalid(self, url):
        assert is_valid_endpoint_url(url) is False
