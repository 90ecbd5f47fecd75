# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application factory for the alert relay.

Endpoints:
    - ``GET /``: liveness probe with service name and uptime (no auth)
    - ``GET /mailtest``: sends a probe message without attachment (no auth)
    - ``POST /alerta``: multipart upload of one ``file`` plus optional
      ``subject``, ``body`` and ``recipients`` fields; requires ``X-API-Key``
    - ``GET /metrics``: Prometheus metrics; requires ``X-API-Key``

Every error, including malformed multipart bodies, unknown routes and
wrong methods, is answered with ``{"ok": false, "error": <message>}``.

The API key is checked before the multipart body is decoded, so a rejected
request never reaches the upload store.

Example:
    Creating and running the application::

        relay = AlertRelay(load_settings())
        app = create_app(relay)
        uvicorn.run(app, host="0.0.0.0", port=3000)
"""

import time
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.security import APIKeyHeader
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core import AlertRelay
from .exceptions import BadRequest, InternalError, RelayError, Unauthorized, UpstreamFailure
from .logger import get_logger
from .models import AlertRequest, AlertSentResponse, HealthResponse, SentSummary, StatusResponse

logger = get_logger("api")

API_KEY_HEADER_NAME = "X-API-Key"
FILE_FIELD = "file"

api_key_scheme = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


def _error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message}, headers=headers)


def _text_field(form, name: str) -> str | None:
    value = form.get(name)
    return value if isinstance(value, str) else None


def create_app(
    relay: AlertRelay,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    relay:
        The :class:`~alert_relay.core.AlertRelay` running the pipeline.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by uvicorn.
    """
    api = FastAPI(title=relay.settings.service_name, lifespan=lifespan)
    api.state.relay = relay
    api.state.started_at = time.monotonic()

    async def require_api_key(api_key: str | None = Depends(api_key_scheme)) -> None:
        """Compare the trimmed ``X-API-Key`` header with the configured secret."""
        received = (api_key or "").strip()
        expected = (relay.settings.api_key or "").strip()
        if not received or received != expected:
            logger.warning(
                "API key mismatch (received %d chars, expected %d chars)", len(received), len(expected)
            )
            relay.metrics.inc_rejected("unauthorized")
            raise Unauthorized()

    auth_dependency = Depends(require_api_key)

    @api.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        return _error_response(exc.status_code, exc.message)

    @api.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        """Malformed multipart bodies, unknown routes and wrong methods."""
        logger.warning("%s %s rejected: %s %s", request.method, request.url.path, exc.status_code, exc.detail)
        return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @api.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        messages = "; ".join(error.get("msg", "invalid value") for error in exc.errors())
        logger.warning("Validation error on %s %s: %s", request.method, request.url.path, messages)
        return _error_response(422, messages or "Invalid request")

    @api.get("/", response_model=HealthResponse, response_model_exclude_none=True)
    async def health():
        """Liveness probe (no authentication required)."""
        return HealthResponse(
            ok=True,
            service=relay.settings.service_name,
            uptime=round(time.monotonic() - api.state.started_at, 3),
        )

    @api.get("/mailtest", response_model=StatusResponse, response_model_exclude_none=True)
    async def mailtest():
        """Send a message without attachment to the SMTP account itself."""
        outcome = await relay.send_probe()
        if not outcome.sent:
            raise UpstreamFailure(outcome.error or "SMTP send failed")
        return StatusResponse(ok=True)

    @api.post("/alerta", response_model=AlertSentResponse, response_model_exclude_none=True, dependencies=[auth_dependency])
    async def alerta(request: Request):
        """Forward the uploaded file by email to the resolved recipients."""
        async with request.form() as form:
            files = [item for item in form.getlist(FILE_FIELD) if isinstance(item, UploadFile)]
            if not files:
                relay.metrics.inc_rejected("no_file")
                raise BadRequest("file is required")
            if len(files) > 1:
                relay.metrics.inc_rejected("too_many_files")
                raise BadRequest("only one file is allowed")
            upload = files[0]
            alert = AlertRequest(
                file_name=upload.filename or "",
                upload=upload,
                subject_override=_text_field(form, "subject"),
                body_override=_text_field(form, "body"),
                recipients_override=_text_field(form, "recipients"),
            )
            try:
                plan, outcome = await relay.handle_alert(alert)
            except RelayError:
                raise
            except Exception as exc:
                logger.exception("Unexpected error while handling alert '%s'", alert.file_name)
                raise InternalError(str(exc) or type(exc).__name__) from exc

        if not outcome.sent:
            return _error_response(500, outcome.error or "SMTP send failed")
        return AlertSentResponse(
            ok=True,
            sent=SentSummary(
                subject=plan.subject,
                to=list(plan.recipients),
                filename=plan.attachment_name,
                rejected=list(outcome.refused) or None,
            ),
        )

    @api.get("/metrics", dependencies=[auth_dependency])
    async def metrics():
        """Expose Prometheus metrics collected by the relay."""
        return Response(content=relay.metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    return api
