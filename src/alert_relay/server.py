# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point for uvicorn.

This module builds the application from the process configuration at import
time and verifies the SMTP relay in the background when the server starts.

Usage:
    uvicorn alert_relay.server:app --host 0.0.0.0 --port 3000

Environment variables:
    RELAY_CONFIG: Path to the INI configuration file (default: config.ini)
    See :mod:`alert_relay.config_loader` for the full list.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from .api import create_app
from .config_loader import RelaySettings, load_settings
from .core import AlertRelay
from .logger import configure_logging


def build_app(settings: RelaySettings) -> FastAPI:
    """Create the relay and its application with an SMTP-verifying lifespan."""
    relay = AlertRelay(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Verify the relay without delaying startup; a failure is only logged."""
        verify_task = asyncio.create_task(relay.verify_smtp())
        yield
        if not verify_task.done():
            verify_task.cancel()
        with suppress(asyncio.CancelledError):
            await verify_task

    return create_app(relay, lifespan=lifespan)


_settings = load_settings()
configure_logging(_settings.log_level)

app = build_app(_settings)
