import asyncio
import logging

import aiosmtplib
import pytest

from alert_relay.dispatcher import (
    PROBE_BODY,
    PROBE_SUBJECT,
    build_message,
    describe_error,
    dispatch,
    guess_mime,
    send_probe,
)
from alert_relay.models import DeliveryPlan, SenderIdentity
from conftest import FakeTransport

SENDER = SenderIdentity(name="Automatizacion TSI", address="alerts@example.com")
PLAN = DeliveryPlan(
    subject="Alerta PRL report",
    body="See attachment.",
    recipients=("ops@example.com", "boss@example.com"),
    attachment_name="Alerta PRL report.pdf",
)


def test_build_message_headers_body_and_attachment():
    msg = build_message(PLAN, b"%PDF-1.4 data", SENDER)

    assert msg["From"] == "Automatizacion TSI <alerts@example.com>"
    assert msg["To"] == "ops@example.com, boss@example.com"
    assert msg["Subject"] == "Alerta PRL report"

    body = msg.get_body(preferencelist=("plain",))
    assert body.get_content().strip() == "See attachment."

    attachments = list(msg.iter_attachments())
    assert len(attachments) == 1
    assert attachments[0].get_filename() == "Alerta PRL report.pdf"
    assert attachments[0].get_content_type() == "application/pdf"
    assert attachments[0].get_content() == b"%PDF-1.4 data"


def test_guess_mime_defaults_to_octet_stream():
    assert guess_mime("report.pdf") == ("application", "pdf")
    assert guess_mime("report.unknownext") == ("application", "octet-stream")
    assert guess_mime("noext") == ("application", "octet-stream")


@pytest.mark.asyncio
async def test_dispatch_success_makes_one_transport_call():
    transport = FakeTransport()
    outcome = await dispatch(PLAN, b"data", SENDER, transport)

    assert outcome.sent is True
    assert outcome.error is None
    assert len(transport.messages) == 1


@pytest.mark.asyncio
async def test_dispatch_timeout_becomes_failed_outcome():
    transport = FakeTransport(exc=asyncio.TimeoutError())
    outcome = await dispatch(PLAN, b"data", SENDER, transport)

    assert outcome.sent is False
    assert outcome.error == "TimeoutError"
    assert len(transport.messages) == 1


@pytest.mark.asyncio
async def test_dispatch_reports_smtp_code():
    transport = FakeTransport(exc=aiosmtplib.SMTPResponseException(554, "Transaction failed"))
    outcome = await dispatch(PLAN, b"data", SENDER, transport)

    assert outcome.sent is False
    assert outcome.error == "Transaction failed (SMTP 554)"


@pytest.mark.asyncio
async def test_dispatch_partial_refusal_is_sent_with_refusals_listed(caplog):
    transport = FakeTransport(refused={"boss@example.com": "550 mailbox unavailable"})
    with caplog.at_level(logging.WARNING, logger="Dispatcher"):
        outcome = await dispatch(PLAN, b"data", SENDER, transport)

    assert outcome.sent is True
    assert outcome.refused == ("boss@example.com",)
    assert outcome.error == "Recipients refused: boss@example.com: 550 mailbox unavailable"
    assert len(transport.messages) == 1
    assert "boss@example.com" in caplog.text


@pytest.mark.asyncio
async def test_send_probe_has_no_attachment():
    transport = FakeTransport()
    outcome = await send_probe(SENDER, "bot@example.com", transport)

    assert outcome.sent is True
    msg = transport.messages[0]
    assert msg["To"] == "bot@example.com"
    assert msg["Subject"] == PROBE_SUBJECT
    assert msg.get_content().strip() == PROBE_BODY
    assert list(msg.iter_attachments()) == []


@pytest.mark.asyncio
async def test_send_probe_failure():
    transport = FakeTransport(exc=ConnectionRefusedError("connection refused"))
    outcome = await send_probe(SENDER, "bot@example.com", transport)
    assert outcome.sent is False
    assert outcome.error == "connection refused"


def test_describe_error():
    assert describe_error(RuntimeError("boom")) == "boom"
    assert describe_error(TimeoutError()) == "TimeoutError"
    assert describe_error(aiosmtplib.SMTPResponseException(535, "535 auth failed")) == "535 auth failed"
