from __future__ import annotations

from typing import List

from botbuilder.core import BotAdapter, TurnContext
from botbuilder.schema import Activity, ResourceResponse

from conectores.bot_framework import BotFrameworkGateway, ParsedRequest, on_turn_error
from settings import DefaultConfig


def message_body(text: str = "hello", **extra) -> dict:
    body = {
        "type": "message",
        "id": "act-1",
        "text": text,
        "channelId": "msteams",
        "serviceUrl": "https://smba.example.net/teams/",
        "conversation": {"id": "conv-1"},
        "from": {"id": "user-1", "name": "User"},
        "recipient": {"id": "bot-1", "name": "Bot"},
    }
    body.update(extra)
    return body


class RecordingAdapter(BotAdapter):
    """Send capability that records outbound activities instead of posting them."""

    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.fail = fail
        self.sent: List[Activity] = []

    async def send_activities(self, context: TurnContext, activities: List[Activity]):
        if self.fail:
            raise ConnectionError("channel unreachable")
        self.sent.extend(activities)
        return [ResourceResponse(id=f"reply-{len(self.sent)}") for _ in activities]

    async def update_activity(self, context: TurnContext, activity: Activity):
        raise NotImplementedError()

    async def delete_activity(self, context: TurnContext, reference):
        raise NotImplementedError()


class StubAuthentication:
    """Accepts anonymous requests and any bearer token except ``Bearer bad``."""

    async def authenticate_request(self, activity: Activity, auth_header: str):
        if auth_header == "Bearer bad":
            raise PermissionError("Unauthorized Access. Request is not authorized")
        return object()


class FakeGateway(BotFrameworkGateway):
    def __init__(self, fail_send: bool = False) -> None:
        self.config = DefaultConfig(environ={})
        self.auth = StubAuthentication()
        self.adapter = RecordingAdapter(fail=fail_send)
        self.adapter.on_turn_error = on_turn_error
        self.dispatched: List[Activity] = []

    async def process_activity(self, parsed: ParsedRequest, handlers):
        self.dispatched.append(parsed.activity)
        context = TurnContext(self.adapter, parsed.activity)
        return await self.adapter.run_pipeline(context, handlers.on_turn)

    async def is_valid_app_id(self) -> bool:
        return False
