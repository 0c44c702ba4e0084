# settings.py - Configuración por ENV para el gateway de eco (Bot Framework)
import os
import logging
from typing import Mapping, Optional

log = logging.getLogger("teams-gateway.settings")

DEFAULT_PORT = 3978
LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=level or os.getenv("LOG_LEVEL", "INFO"),
        format=LOG_FORMAT,
    )


def mask_secret(value: Optional[str], visible: int = 3) -> str:
    """Prefijo acotado + longitud; nunca el valor completo."""
    if not value:
        return "MISSING"
    if len(value) <= visible * 2:
        return f"***(len={len(value)})"
    return f"{value[:visible]}***(len={len(value)})"


def _as_bool(raw: Optional[str]) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes", "on")


def _as_int(name: str, raw: Optional[str], fallback: int) -> int:
    if raw is None or not raw.strip():
        return fallback
    try:
        return int(raw)
    except ValueError:
        log.warning("[CFG] %s=%r no es un entero; usando %s", name, raw, fallback)
        return fallback


def _as_status(name: str, raw: Optional[str], fallback: int = 200) -> int:
    status = _as_int(name, raw, fallback)
    if not 100 <= status <= 599:
        log.warning("[CFG] %s=%r no es un status HTTP válido; usando %s", name, raw, fallback)
        return fallback
    return status


class DefaultConfig:
    """Echo gateway configuration.

    Attribute names are the ones the SDK reads with ``getattr`` from the
    configuration object (``ConfigurationBotFrameworkAuthentication`` and
    ``ConfigurationServiceClientCredentialFactory``).
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        env = os.environ if environ is None else environ

        self.APP_ID = env.get("APP_ID", "")
        self.APP_PASSWORD = env.get("APP_PASSWORD", "")
        self.APP_TYPE = env.get("APP_TYPE", "MultiTenant")
        self.APP_TENANTID = env.get("APP_TENANT_ID", "")

        self.HOST = env.get("HOST", "0.0.0.0")
        self.PORT = _as_int("PORT", env.get("PORT"), DEFAULT_PORT)

        # Solo se usan si se define OPENID_METADATA_URL (modo "parameterized" del SDK)
        self.TO_BOT_FROM_CHANNEL_OPENID_METADATA_URL = env.get("OPENID_METADATA_URL") or None
        self.TO_CHANNEL_FROM_BOT_LOGIN_URL = env.get("TO_CHANNEL_FROM_BOT_LOGIN_URL") or None
        self.TO_CHANNEL_FROM_BOT_OAUTH_SCOPE = env.get("TO_CHANNEL_FROM_BOT_OAUTH_SCOPE") or None
        self.TO_BOT_FROM_CHANNEL_TOKEN_ISSUER = env.get("TO_BOT_FROM_CHANNEL_TOKEN_ISSUER") or None

        self.LOG_LEVEL = env.get("LOG_LEVEL", "INFO")
        self.ENABLE_CORS = _as_bool(env.get("ENABLE_CORS"))
        self.DISPATCH_ERROR_STATUS = _as_status(
            "DISPATCH_ERROR_STATUS", env.get("DISPATCH_ERROR_STATUS")
        )
        self.APPLICATIONINSIGHTS_CONNECTION_STRING = (
            env.get("APPLICATIONINSIGHTS_CONNECTION_STRING") or None
        )

    def log_status(self) -> None:
        """Reporta qué credenciales están presentes (sin exponer el secreto)."""
        if not self.APP_ID:
            log.warning("[CFG] WARNING: APP_ID is not set")
        else:
            log.info("[CFG] APP_ID is set: %s", self.APP_ID)

        if not self.APP_PASSWORD:
            log.warning("[CFG] WARNING: APP_PASSWORD is not set")
        else:
            log.info("[CFG] APP_PASSWORD is set: %s", mask_secret(self.APP_PASSWORD))

        log.info("[CFG] APP_TYPE=%s | tenant=%s | PORT=%s",
                 self.APP_TYPE, self.APP_TENANTID or "(none)", self.PORT)
        if self.TO_BOT_FROM_CHANNEL_OPENID_METADATA_URL:
            log.info("[CFG] OpenID metadata URL=%s", self.TO_BOT_FROM_CHANNEL_OPENID_METADATA_URL)


def public_env_snapshot(config: DefaultConfig) -> dict:
    out = {}
    for key in ("APP_ID", "APP_PASSWORD", "APP_TENANTID", "APPLICATIONINSIGHTS_CONNECTION_STRING"):
        out[key] = "SET(***masked***)" if getattr(config, key) else "MISSING"
    out["EFFECTIVE_APP_ID"] = config.APP_ID
    out["EFFECTIVE_APP_TYPE"] = config.APP_TYPE
    out["PORT"] = config.PORT
    out["OPENID_METADATA_URL"] = config.TO_BOT_FROM_CHANNEL_OPENID_METADATA_URL or "(default)"
    out["ENABLE_CORS"] = config.ENABLE_CORS
    out["DISPATCH_ERROR_STATUS"] = config.DISPATCH_ERROR_STATUS
    return out
