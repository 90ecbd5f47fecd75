# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Message construction and single-attempt delivery.

The dispatcher turns a :class:`~alert_relay.models.DeliveryPlan` and the
uploaded bytes into an ``EmailMessage`` and hands it to the transport exactly
once. Transport errors never propagate: they are folded into a
:class:`~alert_relay.models.DeliveryOutcome` whose ``error`` carries the
transport's message (and the SMTP reply code when known).

A multi-recipient send is one operation with one outcome. If the server
accepts the message for some recipients and refuses others, the message has
gone out: the outcome is ``sent`` and its ``error`` lists the refused
addresses.
"""

from __future__ import annotations

import mimetypes
from email.message import EmailMessage
from typing import Protocol

import aiosmtplib

from .logger import get_logger
from .models import DeliveryOutcome, DeliveryPlan, SenderIdentity

PROBE_SUBJECT = "Test SMTP Railway"
PROBE_BODY = "Hola, prueba SMTP sin adjuntos."

logger = get_logger("Dispatcher")


class Transport(Protocol):
    async def send(self, message: EmailMessage) -> dict[str, str]: ...


def guess_mime(filename: str) -> tuple[str, str]:
    """Return ``(maintype, subtype)`` for an attachment name."""
    mime_type, _ = mimetypes.guess_type(filename)
    if not mime_type or "/" not in mime_type:
        return "application", "octet-stream"
    maintype, subtype = mime_type.split("/", 1)
    return maintype, subtype


def describe_error(exc: BaseException) -> str:
    """Human-readable transport error, with the SMTP reply code when available."""
    smtp_code = None
    text = ""
    if isinstance(exc, aiosmtplib.SMTPException):
        # args may hold (code, message); the message attribute is the server text
        smtp_code = getattr(exc, "code", None)
        text = getattr(exc, "message", "") or ""
    text = text or str(exc) or type(exc).__name__
    if smtp_code and f"{smtp_code}" not in text:
        return f"{text} (SMTP {smtp_code})"
    return text


def build_message(plan: DeliveryPlan, attachment: bytes, sender: SenderIdentity) -> EmailMessage:
    """Compose the alert email: plain-text body plus one attachment."""
    msg = EmailMessage()
    msg["From"] = sender.formatted
    msg["To"] = ", ".join(plan.recipients)
    msg["Subject"] = plan.subject
    msg.set_content(plan.body)
    maintype, subtype = guess_mime(plan.attachment_name)
    msg.add_attachment(attachment, maintype=maintype, subtype=subtype, filename=plan.attachment_name)
    return msg


def build_probe_message(sender: SenderIdentity, recipient: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = sender.formatted
    msg["To"] = recipient
    msg["Subject"] = PROBE_SUBJECT
    msg.set_content(PROBE_BODY)
    return msg


async def _deliver(message: EmailMessage, transport: Transport) -> DeliveryOutcome:
    try:
        refused = await transport.send(message)
    except Exception as exc:
        return DeliveryOutcome(sent=False, error=describe_error(exc))
    if refused:
        details = "; ".join(f"{addr}: {reply}" for addr, reply in refused.items())
        return DeliveryOutcome(sent=True, error=f"Recipients refused: {details}", refused=tuple(refused))
    return DeliveryOutcome(sent=True)


async def dispatch(
    plan: DeliveryPlan,
    attachment: bytes,
    sender: SenderIdentity,
    transport: Transport,
) -> DeliveryOutcome:
    """Send the planned alert with a single transport call.

    Args:
        plan: Resolved subject, body, recipients and attachment name.
        attachment: Raw bytes of the uploaded file.
        sender: Identity used for the ``From`` header.
        transport: Object whose ``send`` delivers an ``EmailMessage``.

    Returns:
        ``sent=True`` when the server accepted the message for at least one
        recipient, otherwise ``sent=False`` with the error text.
    """
    message = build_message(plan, attachment, sender)
    outcome = await _deliver(message, transport)
    if outcome.sent and outcome.refused:
        logger.warning("Alert '%s' delivered with refusals. %s", plan.subject, outcome.error)
    elif outcome.sent:
        logger.info("Alert '%s' delivered to %s", plan.subject, ", ".join(plan.recipients))
    else:
        logger.error("Alert '%s' not delivered: %s", plan.subject, outcome.error)
    return outcome


async def send_probe(sender: SenderIdentity, recipient: str, transport: Transport) -> DeliveryOutcome:
    """Send the no-attachment diagnostic message to ``recipient``."""
    outcome = await _deliver(build_probe_message(sender, recipient), transport)
    if not outcome.sent:
        logger.error("mailtest error: %s", outcome.error)
    return outcome
