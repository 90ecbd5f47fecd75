# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Data models for the alert relay.

Models:
    - RecipientRule: Static match token to address list mapping
    - DeliveryPlan: Resolved subject, body, recipients and attachment name
    - DeliveryOutcome: Result of a single delivery attempt
    - SenderIdentity: Display name and address used in the From header
    - AlertRequest: One inbound upload with its optional fields
    - HealthResponse, SentSummary, AlertSentResponse, StatusResponse:
      HTTP response schemas
"""

from __future__ import annotations

from dataclasses import dataclass
from email.utils import formataddr
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecipientRule(BaseModel):
    """Associates a file-name substring with the addresses that receive it.

    Attributes:
        match_token: Literal, case-sensitive substring looked up in the file name.
        addresses: Destination addresses, in the order they are declared.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    match_token: Annotated[str, Field(min_length=1, description="Substring matched against the file name")]
    addresses: Annotated[tuple[str, ...], Field(min_length=1, description="Destination addresses")]

    @field_validator("addresses")
    @classmethod
    def addresses_not_blank(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject blank entries so a matching rule always yields real recipients."""
        if any(not addr.strip() for addr in v):
            raise ValueError("addresses must not contain blank entries")
        return v


class DeliveryPlan(BaseModel):
    """Everything the dispatcher needs to send one alert.

    Attributes:
        subject: Message subject.
        body: Plain-text message body.
        recipients: Direct (To) recipients, never empty.
        attachment_name: File name given to the attachment.
        matched_token: Token of the rule that supplied the recipients, or
            None when they came from the request.
    """

    model_config = ConfigDict(frozen=True)

    subject: str
    body: str
    recipients: Annotated[tuple[str, ...], Field(min_length=1)]
    attachment_name: str
    matched_token: str | None = None


class DeliveryOutcome(BaseModel):
    """Result of one transport call.

    A send that the server accepted for at least one recipient is ``sent``;
    addresses it refused are listed in ``refused`` and described in ``error``.
    """

    model_config = ConfigDict(frozen=True)

    sent: bool
    error: str | None = None
    refused: tuple[str, ...] = ()


class SenderIdentity(BaseModel):
    """Sender display name and address."""

    model_config = ConfigDict(frozen=True)

    name: str
    address: str

    @property
    def formatted(self) -> str:
        """Value for the ``From`` header, e.g. ``"Ops Bot" <ops@example.com>``."""
        return formataddr((self.name, self.address))


@dataclass(frozen=True)
class AlertRequest:
    """One inbound alert upload.

    ``upload`` is the decoded multipart file (anything with an async
    ``read(size)``); it is only consumed by :class:`~alert_relay.storage.UploadStore`.
    """

    file_name: str
    upload: Any
    subject_override: str | None = None
    body_override: str | None = None
    recipients_override: str | None = None


class StatusResponse(BaseModel):
    """Base schema shared by every response."""

    ok: bool
    error: str | None = None


class HealthResponse(StatusResponse):
    service: str
    uptime: float


class SentSummary(BaseModel):
    subject: str
    to: list[str]
    filename: str
    rejected: list[str] | None = None


class AlertSentResponse(StatusResponse):
    """Response returned by ``POST /alerta`` once the relay accepted the message."""

    sent: SentSummary
