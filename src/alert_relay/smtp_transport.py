# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""One-shot SMTP transport built on aiosmtplib.

Each send opens a fresh connection, delivers a single message and closes the
connection again. There is no pool and no retry: the relay makes at most one
delivery attempt per request.

Every network step is bounded. aiosmtplib applies the configured timeout to
connect, greeting and each SMTP command, and the connect/login and send
phases are additionally wrapped in ``asyncio.wait_for`` so a stalled relay
cannot hold a request indefinitely.

Example:
    Sending a message::

        transport = SMTPTransport(settings.smtp)
        refused = await transport.send(message)
        if refused:
            ...  # some recipients were rejected by the server

        # At startup
        ok = await transport.verify()
"""

from __future__ import annotations

import asyncio
import ssl
from email.message import EmailMessage

import aiosmtplib

from .config_loader import SmtpSettings
from .logger import get_logger

CONNECT_TIMEOUT = 30.0
SEND_TIMEOUT = 60.0


class TransportNotConfigured(RuntimeError):
    """Raised when a send is attempted without an SMTP host."""

    def __init__(self, message: str = "SMTP host is not configured"):
        super().__init__(message)


class SMTPTransport:
    """Connects to the configured relay for every delivery.

    TLS behavior based on the ``secure`` flag:
    - ``secure=True``: direct TLS (implicit TLS, typically port 465)
    - ``secure=False``: plain connection upgraded with STARTTLS when the
      server advertises it (typically port 587)

    Attributes:
        settings: Connection settings.
        logger: Logger for connection diagnostics.
    """

    def __init__(self, settings: SmtpSettings, logger=None):
        self.settings = settings
        self.logger = logger or get_logger("SMTPTransport")

    def _tls_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        return context

    async def _connect(self) -> aiosmtplib.SMTP:
        """Open and authenticate a connection to the relay.

        Raises:
            TransportNotConfigured: If no host is configured.
            asyncio.TimeoutError: If connect and login take too long.
            aiosmtplib.SMTPException: If connection, TLS or authentication fails.
        """
        cfg = self.settings
        if not cfg.host:
            raise TransportNotConfigured()
        if cfg.secure:
            smtp = aiosmtplib.SMTP(
                hostname=cfg.host,
                port=cfg.port,
                use_tls=True,
                start_tls=False,
                timeout=cfg.timeout,
                tls_context=self._tls_context(),
            )
        else:
            # start_tls=None upgrades only if the server offers STARTTLS
            smtp = aiosmtplib.SMTP(
                hostname=cfg.host,
                port=cfg.port,
                use_tls=False,
                start_tls=None,
                timeout=cfg.timeout,
                tls_context=self._tls_context(),
            )

        async def _do_connect():
            await smtp.connect()
            if cfg.user and cfg.password:
                await smtp.login(cfg.user, cfg.password)

        try:
            await asyncio.wait_for(_do_connect(), timeout=CONNECT_TIMEOUT)
        except Exception:
            smtp.close()
            raise
        return smtp

    async def _close(self, smtp: aiosmtplib.SMTP) -> None:
        try:
            await asyncio.wait_for(smtp.quit(), timeout=self.settings.timeout)
        except Exception as exc:
            self.logger.debug("SMTP quit failed (%s), closing socket", exc)
            smtp.close()

    async def send(self, message: EmailMessage) -> dict[str, str]:
        """Deliver ``message`` to the recipients in its headers.

        Returns:
            Recipients refused by the server mapped to the server reply. Empty
            when every recipient was accepted.

        Raises:
            TransportNotConfigured: If no host is configured.
            asyncio.TimeoutError: If connecting or sending times out.
            aiosmtplib.SMTPException: Any protocol-level failure, including
                every recipient being refused.
        """
        smtp = await self._connect()
        try:
            errors, _response = await asyncio.wait_for(smtp.send_message(message), timeout=SEND_TIMEOUT)
        finally:
            await self._close(smtp)
        return {addr: f"{reply.code} {reply.message}" for addr, reply in errors.items()}

    async def verify(self) -> bool:
        """Check that the relay accepts a connection and the credentials.

        Failures are logged, never raised.
        """
        try:
            smtp = await self._connect()
            try:
                await asyncio.wait_for(smtp.noop(), timeout=self.settings.timeout)
            finally:
                await self._close(smtp)
        except Exception as exc:
            self.logger.error("SMTP unavailable: %s", str(exc) or type(exc).__name__)
            return False
        self.logger.info("SMTP verified (%s:%s), ready to send", self.settings.host, self.settings.port)
        return True
