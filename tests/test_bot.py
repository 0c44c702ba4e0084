import pytest
from botbuilder.core import TurnContext
from botbuilder.schema import Activity

from bot import ECHO_PREFIX, HandlerTable, build_handler_table, on_message
from conectores.bot_framework import ERROR_NOTICE, on_turn_error
from tests.helpers import RecordingAdapter, message_body


def _context(adapter: RecordingAdapter, body: dict) -> TurnContext:
    return TurnContext(adapter, Activity().deserialize(body))


@pytest.mark.asyncio
async def test_message_handler_echoes_text() -> None:
    adapter = RecordingAdapter()

    result = await on_message(_context(adapter, message_body("hello")))

    assert [a.text for a in adapter.sent] == ["Echo: hello"]
    assert adapter.sent[0].type == "message"
    assert result is not None and result.id == "reply-1"


@pytest.mark.asyncio
async def test_message_without_text_echoes_prefix_only() -> None:
    adapter = RecordingAdapter()
    body = message_body()
    del body["text"]

    await on_message(_context(adapter, body))

    assert adapter.sent[0].text == ECHO_PREFIX


@pytest.mark.asyncio
async def test_message_handler_propagates_send_failure() -> None:
    adapter = RecordingAdapter(fail=True)

    with pytest.raises(ConnectionError):
        await on_message(_context(adapter, message_body("hello")))


def test_default_table_only_handles_messages() -> None:
    table = build_handler_table()

    assert table.handles("message")
    assert not table.handles("typing")
    assert not table.handles("conversationUpdate")
    assert not table.handles(None)
    assert table.types == frozenset({"message"})


def test_with_handler_returns_new_table() -> None:
    async def on_typing(_: TurnContext) -> None:
        return None

    table = build_handler_table()
    extended = table.with_handler("typing", on_typing)

    assert extended.handles("typing")
    assert not table.handles("typing")
    assert extended.get("message") is on_message


@pytest.mark.asyncio
async def test_unregistered_type_is_a_noop() -> None:
    adapter = RecordingAdapter()
    table = build_handler_table()

    result = await table.on_turn(_context(adapter, message_body(type="conversationUpdate")))

    assert result is None
    assert adapter.sent == []


@pytest.mark.asyncio
async def test_substitute_handler_table() -> None:
    calls = []

    async def shout(turn_context: TurnContext):
        calls.append(turn_context.activity.text)
        return await turn_context.send_activity(turn_context.activity.text.upper())

    adapter = RecordingAdapter()
    table = HandlerTable({"message": shout})

    await table.on_turn(_context(adapter, message_body("hey")))

    assert calls == ["hey"]
    assert adapter.sent[0].text == "HEY"


@pytest.mark.asyncio
async def test_turn_error_notifies_user_and_reraises() -> None:
    async def broken(_: TurnContext):
        raise RuntimeError("boom")

    adapter = RecordingAdapter()
    adapter.on_turn_error = on_turn_error
    table = HandlerTable({"message": broken})

    with pytest.raises(RuntimeError, match="boom"):
        await adapter.run_pipeline(_context(adapter, message_body()), table.on_turn)

    assert [a.text for a in adapter.sent] == [ERROR_NOTICE]
