# conectores/bot_framework.py
# Envoltura mínima sobre CloudAdapter: parse (deserializa + autentica) y dispatch.
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import msal
from aiohttp import web
from botbuilder.core import InvokeResponse, Middleware, TurnContext
from botbuilder.integration.aiohttp import CloudAdapter, ConfigurationBotFrameworkAuthentication
from botbuilder.integration.aiohttp.configuration_service_client_credential_factory import (
    ConfigurationServiceClientCredentialFactory,
)
from botbuilder.schema import Activity
from botframework.connector.auth import AuthenticateRequestResult

logger = logging.getLogger("teams-gateway.bf")

SCOPE = ["https://api.botframework.com/.default"]
ERROR_NOTICE = "The bot encountered an error or bug."


class ParseError(Exception):
    """Inbound request could not be turned into an authenticated Activity."""


@dataclass(frozen=True)
class ParsedRequest:
    activity: Activity
    auth_result: AuthenticateRequestResult


async def on_turn_error(context: TurnContext, error: Exception) -> None:
    logger.error("[BOT ERROR] %s", error, exc_info=error)
    try:
        await context.send_activity(ERROR_NOTICE)
    except Exception as e:
        logger.error("[BOT ERROR][send_activity] %s", e)
    # El endpoint decide el status HTTP
    raise error


class BotFrameworkGateway:
    def __init__(self, config) -> None:
        self.config = config
        self.auth = ConfigurationBotFrameworkAuthentication(config)
        self.adapter = CloudAdapter(self.auth)
        self.adapter.on_turn_error = on_turn_error

    def use(self, middleware: Middleware) -> "BotFrameworkGateway":
        self.adapter.use(middleware)
        return self

    async def parse_request(self, req: web.Request) -> ParsedRequest:
        if "application/json" not in req.headers.get("Content-Type", ""):
            raise ParseError("Content-Type must be application/json")

        try:
            body = await req.json()
        except ValueError as e:
            raise ParseError(f"Malformed JSON body: {e}") from e

        if not isinstance(body, dict):
            raise ParseError("Activity must be a JSON object")
        if not body.get("type"):
            raise ParseError("Activity has no type")

        try:
            activity: Activity = Activity().deserialize(body)
        except Exception as e:
            raise ParseError(f"Invalid activity: {e}") from e

        auth_header = req.headers.get("Authorization", "")
        try:
            auth_result = await self.auth.authenticate_request(activity, auth_header)
        except Exception as e:
            raise ParseError(f"Unauthorized: {e}") from e

        return ParsedRequest(activity=activity, auth_result=auth_result)

    async def process_activity(self, parsed: ParsedRequest, handlers) -> Optional[InvokeResponse]:
        # Orden CloudAdapter: (auth_result, activity, callback)
        return await self.adapter.process_activity(
            parsed.auth_result, parsed.activity, handlers.on_turn
        )

    async def is_valid_app_id(self) -> bool:
        factory = ConfigurationServiceClientCredentialFactory(self.config)
        return bool(await factory.is_valid_app_id(self.config.APP_ID))


def describe_activity(activity: Activity) -> Dict[str, Any]:
    return {
        "type": getattr(activity, "type", None),
        "channelId": getattr(activity, "channel_id", None),
        "serviceUrl": getattr(activity, "service_url", None),
        "recipientId": getattr(getattr(activity, "recipient", None), "id", None),
    }


def msal_authority(app_type: str, tenant: str) -> str:
    if app_type == "SingleTenant" and tenant:
        return f"https://login.microsoftonline.com/{tenant}"
    return "https://login.microsoftonline.com/botframework.com"


def acquire_bf_token(app_id: str, app_secret: str, authority: str) -> Dict[str, Any]:
    """Obtiene un token para Bot Framework con MSAL (client credentials)."""
    cca = msal.ConfidentialClientApplication(
        client_id=app_id, client_credential=app_secret, authority=authority
    )
    res = cca.acquire_token_for_client(scopes=SCOPE)
    out: Dict[str, Any] = {k: v for k, v in res.items() if k != "access_token"}
    out["has_access_token"] = "access_token" in res
    out["authority"] = authority
    return out
