# bot.py - Tabla de handlers por tipo de activity (responde un eco)
import logging
from types import MappingProxyType
from typing import Awaitable, Callable, FrozenSet, Mapping, Optional

from botbuilder.core import MessageFactory, TurnContext
from botbuilder.schema import ActivityTypes, ResourceResponse

log = logging.getLogger("teams-gateway.bot")

ECHO_PREFIX = "Echo: "

Handler = Callable[[TurnContext], Awaitable[Optional[ResourceResponse]]]


async def on_message(turn_context: TurnContext) -> Optional[ResourceResponse]:
    text = turn_context.activity.text or ""
    log.info("Processing message: %s", text)
    return await turn_context.send_activity(MessageFactory.text(f"{ECHO_PREFIX}{text}"))


class HandlerTable:
    """Read-only mapping from activity type to handler.

    A type with no entry produces no reply; the endpoint also uses
    ``handles()`` to acknowledge those activities without dispatching them.
    """

    def __init__(self, handlers: Mapping[str, Handler]) -> None:
        self._handlers = MappingProxyType(dict(handlers))

    def handles(self, activity_type: Optional[str]) -> bool:
        return activity_type in self._handlers

    def get(self, activity_type: Optional[str]) -> Optional[Handler]:
        return self._handlers.get(activity_type)

    def with_handler(self, activity_type: str, handler: Handler) -> "HandlerTable":
        merged = dict(self._handlers)
        merged[activity_type] = handler
        return HandlerTable(merged)

    @property
    def types(self) -> FrozenSet[str]:
        return frozenset(self._handlers)

    async def on_turn(self, turn_context: TurnContext) -> Optional[ResourceResponse]:
        activity_type = turn_context.activity.type
        handler = self._handlers.get(activity_type)
        if handler is None:
            log.debug("No handler for activity type %s", activity_type)
            return None
        return await handler(turn_context)


def build_handler_table() -> HandlerTable:
    # conversationUpdate / typing no tienen handler: se reconocen sin respuesta
    return HandlerTable({ActivityTypes.message.value: on_message})
