# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration loader for the alert relay.

Settings are read once at process start from an INI file (path taken from
``RELAY_CONFIG``, default ``config.ini``; a missing file is allowed) with
environment variables as fallbacks. The result is an immutable
:class:`RelaySettings` that is passed explicitly to every component.

Example:
    Configuration file format (config.ini)::

        [smtp]
        host = smtp.example.com
        port = 587
        secure = false
        user = alerts@example.com
        password = secret

        [server]
        port = 3000
        api_key = change-me

        [sender]
        name = Automatizacion TSI
        email = alerts@example.com

        [upload]
        dir = /var/lib/alert-relay/uploads

        [recipients]
        Alerta PRL = prl@example.com; safety@example.com
        DBC ANEXOS MANTTO AlertaPrl = maintenance@example.com

    Loading settings::

        settings = load_settings()
        settings.rules[0].match_token  # "Alerta PRL"

Environment variables:
    RELAY_CONFIG, SMTP_HOST, SMTP_PORT, SMTP_SECURE, SMTP_USER, SMTP_PASS,
    SMTP_TIMEOUT, HOST, PORT, API_KEY, SERVICE_NAME, FROM_NAME, FROM_EMAIL,
    UPLOAD_DIR, LOG_LEVEL, RELAY_DEFAULT_RECIPIENT
"""

from __future__ import annotations

import configparser
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from .exceptions import ConfigurationError
from .logger import get_logger
from .models import RecipientRule, SenderIdentity
from .resolver import split_addresses

logger = get_logger("ConfigLoader")

DEFAULT_SERVICE_NAME = "webhook-alertas"
DEFAULT_FROM_NAME = "Automatizacion TSI"
DEFAULT_RECIPIENT = "alertas@example.com"

# Alert families produced by the upstream reporting system.
DEFAULT_MATCH_TOKENS = (
    "Alerta PRL",
    "DBC ANEXOS MANTTO AlertaPrl",
    "DBC IMAGENKLIN AlertaPrl",
    "DBC IMGSTOP GO OTROS AlertaPrl",
)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class SmtpSettings:
    """Outbound relay connection settings.

    Attributes:
        host: SMTP server hostname, or None when sending is not configured.
        port: SMTP server port.
        secure: Implicit TLS on connect (port 465 style). When False the
            connection is upgraded with STARTTLS if the server offers it.
        user: Username for SMTP authentication.
        password: Password for SMTP authentication.
        timeout: Per-command timeout in seconds (connect, greeting, socket).
    """

    host: str | None = None
    port: int = 587
    secure: bool = False
    user: str | None = None
    password: str | None = field(default=None, repr=False)
    timeout: float = 20.0


@dataclass(frozen=True)
class RelaySettings:
    """Process-wide configuration, built once at startup."""

    smtp: SmtpSettings = field(default_factory=SmtpSettings)
    api_key: str = field(default="", repr=False)
    http_host: str = "0.0.0.0"
    http_port: int = 3000
    service_name: str = DEFAULT_SERVICE_NAME
    from_name: str = DEFAULT_FROM_NAME
    from_email: str | None = None
    upload_dir: str = "uploads"
    log_level: str = "INFO"
    rules: tuple[RecipientRule, ...] = ()

    @property
    def sender(self) -> SenderIdentity:
        """Sender identity; the address falls back to the SMTP user."""
        return SenderIdentity(name=self.from_name, address=self.from_email or self.smtp.user or "")


def default_rules(recipient: str = DEFAULT_RECIPIENT) -> tuple[RecipientRule, ...]:
    """Built-in rule table used when the config file has no [recipients] section."""
    return tuple(RecipientRule(match_token=token, addresses=(recipient,)) for token in DEFAULT_MATCH_TOKENS)


def parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ConfigurationError(f"Invalid boolean value: {value!r}")


def parse_rules(items: list[tuple[str, str]]) -> tuple[RecipientRule, ...]:
    """Build the rule table from ``(token, addresses)`` pairs, keeping their order.

    Raises:
        ConfigurationError: If a token has no usable address.
    """
    rules: list[RecipientRule] = []
    for token, value in items:
        try:
            rules.append(RecipientRule(match_token=token.strip(), addresses=tuple(split_addresses(value))))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid recipient rule {token!r}: {e.errors()[0]['msg']}") from e
    return tuple(rules)


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(interpolation=None)
    # Match tokens are case-sensitive
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    return parser


def load_settings(
    config_path: str | os.PathLike[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> RelaySettings:
    """Load settings from an INI file with environment variables as fallbacks.

    Args:
        config_path: INI file to read. Defaults to ``RELAY_CONFIG`` or
            ``config.ini``. A missing file is not an error.
        environ: Environment mapping, ``os.environ`` by default.

    Returns:
        The immutable settings for this process.

    Raises:
        ConfigurationError: On malformed numbers, booleans or recipient rules.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get("RELAY_CONFIG", "config.ini"))
    parser = _new_parser()
    if path.exists():
        parser.read(path, encoding="utf-8")
        logger.debug(f"Loaded configuration from {path}")
    elif config_path is not None:
        logger.warning(f"Config file not found: {path}, using environment only")

    def get(section: str, option: str, env_name: str, default: str | None = None) -> str | None:
        if parser.has_option(section, option):
            return parser.get(section, option).strip()
        value = env.get(env_name)
        return value.strip() if value is not None else default

    def get_int(section: str, option: str, env_name: str, default: int) -> int:
        value = get(section, option, env_name)
        if not value:
            return default
        try:
            return int(value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid integer for [{section}] {option}: {value!r}") from e

    def get_float(section: str, option: str, env_name: str, default: float) -> float:
        value = get(section, option, env_name)
        if not value:
            return default
        try:
            return float(value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid number for [{section}] {option}: {value!r}") from e

    smtp = SmtpSettings(
        host=get("smtp", "host", "SMTP_HOST") or None,
        port=get_int("smtp", "port", "SMTP_PORT", 587),
        secure=parse_bool(get("smtp", "secure", "SMTP_SECURE"), default=False),
        user=get("smtp", "user", "SMTP_USER") or None,
        password=get("smtp", "password", "SMTP_PASS") or None,
        timeout=get_float("smtp", "timeout", "SMTP_TIMEOUT", 20.0),
    )

    if parser.has_section("recipients"):
        rules = parse_rules(parser.items("recipients"))
    else:
        rules = default_rules(env.get("RELAY_DEFAULT_RECIPIENT", DEFAULT_RECIPIENT))
    if not rules:
        logger.warning("Recipient rule table is empty; alerts need explicit recipients")

    settings = RelaySettings(
        smtp=smtp,
        api_key=get("server", "api_key", "API_KEY", "") or "",
        http_host=get("server", "host", "HOST", "0.0.0.0") or "0.0.0.0",
        http_port=get_int("server", "port", "PORT", 3000),
        service_name=get("server", "service_name", "SERVICE_NAME", DEFAULT_SERVICE_NAME) or DEFAULT_SERVICE_NAME,
        from_name=get("sender", "name", "FROM_NAME", DEFAULT_FROM_NAME) or DEFAULT_FROM_NAME,
        from_email=get("sender", "email", "FROM_EMAIL") or None,
        upload_dir=os.path.expanduser(get("upload", "dir", "UPLOAD_DIR", "uploads") or "uploads"),
        log_level=(get("logging", "level", "LOG_LEVEL", "INFO") or "INFO").upper(),
        rules=rules,
    )
    if not settings.api_key:
        logger.warning("No API key configured: every alert upload will be rejected")
    logger.info(f"Loaded {len(rules)} recipient rules")
    return settings
