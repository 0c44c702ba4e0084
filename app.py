# app.py - Teams Echo Gateway con CloudAdapter (aiohttp) + Diagnóstico y App Insights
import sys
import asyncio
import logging
from collections import Counter
from typing import Optional

from aiohttp import web
from botbuilder.applicationinsights import ApplicationInsightsTelemetryClient, bot_telemetry_processor
from botbuilder.core import BotTelemetryClient, NullTelemetryClient, TelemetryLoggerMiddleware

from bot import HandlerTable, build_handler_table
from conectores.bot_framework import (
    BotFrameworkGateway,
    ParseError,
    acquire_bf_token,
    describe_activity,
    msal_authority,
)
from settings import DefaultConfig, configure_logging, public_env_snapshot

log = logging.getLogger("teams-gateway")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


# ==========
# Telemetría opcional a App Insights
# ==========
def _instrumentation_key(connection_string: str) -> str:
    parts = dict(p.split("=", 1) for p in connection_string.split(";") if "=" in p)
    return parts.get("InstrumentationKey", connection_string)


def build_telemetry(config: DefaultConfig, gateway) -> BotTelemetryClient:
    conn = config.APPLICATIONINSIGHTS_CONNECTION_STRING
    if not conn:
        return NullTelemetryClient()
    try:
        ai_client = ApplicationInsightsTelemetryClient(
            _instrumentation_key(conn), telemetry_processor=bot_telemetry_processor
        )
        # Loguea actividades entrantes/salientes sin PII
        gateway.use(TelemetryLoggerMiddleware(ai_client, log_personal_information=False))
        log.info("[AI] Application Insights habilitado")
        return ai_client
    except Exception as e:
        log.warning("[AI] No se pudo inicializar App Insights: %s", e)
        return NullTelemetryClient()


# ==========
# App AIOHTTP
# ==========
def create_app(
    config: Optional[DefaultConfig] = None,
    gateway=None,
    handlers: Optional[HandlerTable] = None,
    telemetry: Optional[BotTelemetryClient] = None,
) -> web.Application:
    config = config or DefaultConfig()
    gateway = gateway or BotFrameworkGateway(config)
    handlers = handlers or build_handler_table()
    telemetry = telemetry or build_telemetry(config, gateway)
    stats: Counter = Counter()

    def _cors(response: web.Response) -> web.Response:
        if config.ENABLE_CORS:
            response.headers.update(CORS_HEADERS)
        return response

    async def messages(req: web.Request) -> web.Response:
        log.info("[REQ] from=%s | method=%s | has_auth=%s",
                 req.remote, req.method, bool(req.headers.get("Authorization")))

        try:
            parsed = await gateway.parse_request(req)
        except ParseError as e:
            log.warning("[REQ] Failed to parse request: %s", e)
            return _cors(web.Response(status=400, text=str(e) or "Bad Request"))

        activity = parsed.activity
        log.info("[DIAG] Activity type=%s | serviceUrl=%s", activity.type, activity.service_url)

        if not handlers.handles(activity.type):
            log.info("[REQ] %s activity acknowledged without dispatch", activity.type)
            return _cors(web.Response(status=200))

        try:
            await gateway.process_activity(parsed, handlers)
        except Exception as e:
            # Siempre 200 al canal para evitar reintentos de un mensaje ya procesado
            stats["dispatch_failures"] += 1
            log.error("[DISPATCH][SWALLOWED] Failed to process activity: %s | %s",
                      e, describe_activity(activity))
            telemetry.track_event(
                "DispatchErrorSwallowed",
                {"activity_type": str(activity.type), "error": type(e).__name__},
            )
            return _cors(web.Response(status=config.DISPATCH_ERROR_STATUS))

        log.info("[DISPATCH] Request processed successfully.")
        return _cors(web.Response(status=200))

    async def preflight(_: web.Request) -> web.Response:
        return web.Response(status=200, headers=CORS_HEADERS)

    async def ping(_: web.Request) -> web.Response:
        return web.Response(status=200, text="pong")

    async def diag_env(_: web.Request) -> web.Response:
        snapshot = public_env_snapshot(config)
        snapshot["dispatch_failures"] = stats["dispatch_failures"]
        return web.json_response(snapshot)

    # ¿el SDK considera válido el AppId configurado?
    async def diag_authcfg(_: web.Request) -> web.Response:
        try:
            is_valid = await gateway.is_valid_app_id()
        except Exception as e:
            return web.json_response({"ok": False, "exception": str(e)}, status=500)
        return web.json_response({
            "is_valid_app_id": is_valid,
            "password_len": len(config.APP_PASSWORD or ""),
            "app_type": config.APP_TYPE,
            "tenant": config.APP_TENANTID or "(none)",
        })

    # --- Diagnóstico de token MSAL (para validar secreto) ---
    async def diag_msal(_: web.Request) -> web.Response:
        if not config.APP_ID or not config.APP_PASSWORD:
            return web.json_response({"ok": False, "error": "APP_ID/APP_PASSWORD missing"}, status=500)
        authority = msal_authority(config.APP_TYPE, config.APP_TENANTID)
        log.info("Initializing with Entra authority: %s", authority)
        try:
            loop = asyncio.get_running_loop()
            token = await loop.run_in_executor(
                None, acquire_bf_token, config.APP_ID, config.APP_PASSWORD, authority
            )
        except Exception as e:
            return web.json_response({"ok": False, "exception": str(e)}, status=500)
        ok = bool(token.get("has_access_token"))
        return web.json_response({"ok": ok, **token}, status=200 if ok else 500)

    app = web.Application()
    app.router.add_post("/api/messages", messages)
    if config.ENABLE_CORS:
        app.router.add_route("OPTIONS", "/api/messages", preflight)
    app.router.add_route("*", "/api/ping", ping)
    app.router.add_get("/diag/env", diag_env)
    app.router.add_get("/diag/authcfg", diag_authcfg)
    app.router.add_get("/diag/msal", diag_msal)
    return app


def main() -> None:
    config = DefaultConfig()
    configure_logging(config.LOG_LEVEL)
    config.log_status()

    try:
        gateway = BotFrameworkGateway(config)
    except Exception as error:
        log.critical("Error creating adapter: %s", error, exc_info=True)
        sys.exit(1)

    app = create_app(config, gateway=gateway)
    log.info("Starting server on port:%s...", config.PORT)
    log.info("Bot endpoint: http://localhost:%s/api/messages", config.PORT)
    web.run_app(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
