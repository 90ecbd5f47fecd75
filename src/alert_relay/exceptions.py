# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Error kinds raised while handling an alert request.

Every request-level error derives from :class:`RelayError` and carries the
HTTP status it maps to. The API layer converts them into
``{"ok": false, "error": <message>}`` responses.
"""

from __future__ import annotations

NO_RECIPIENTS_MESSAGE = "No recipients matched by filename and none provided"


class RelayError(Exception):
    """Base class for errors answered with a JSON error body."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(RelayError):
    """Missing or mismatched API key."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class BadRequest(RelayError):
    """The request cannot be processed as submitted."""

    status_code = 400


class NoRecipientsMatched(BadRequest):
    """No explicit recipients were given and no rule matches the file name."""

    def __init__(self, message: str = NO_RECIPIENTS_MESSAGE):
        super().__init__(message)


class UpstreamFailure(RelayError):
    """The SMTP relay refused or failed the delivery."""

    status_code = 502


class InternalError(RelayError):
    """Anything not anticipated by the pipeline."""

    status_code = 500


class ConfigurationError(ValueError):
    """Raised at startup when settings cannot be parsed."""
