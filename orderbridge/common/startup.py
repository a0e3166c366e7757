"""Startup-time helpers for safe config logging."""

from orderbridge.common.config import CommonSettings
from orderbridge.common.logging import logger

_SECRET_MARKERS = ("key", "secret", "password", "token")


def _safe_value(name: str, value: object) -> object:
    """Redact values whose setting name looks secret-like."""

    if value is None:
        return "<unset>"
    if any(marker in name.lower() for marker in _SECRET_MARKERS):
        return "<redacted>"
    return value


def log_startup_config(config: CommonSettings, fields: list[str] | None = None) -> None:
    """Log resolved settings (all, or the named subset) for quick troubleshooting."""

    names = fields if fields is not None else list(type(config).model_fields)
    resolved = {name: _safe_value(name, getattr(config, name)) for name in names}
    logger.info("startup_config service=%s config=%s", config.service_name, resolved)
