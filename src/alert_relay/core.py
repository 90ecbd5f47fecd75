# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Request pipeline for the alert relay.

:class:`AlertRelay` wires the components together and runs one alert
through them:

    stored upload -> resolve recipients -> dispatch -> release upload

The temporary file is held with :meth:`UploadStore.hold`, so it is released
on every exit path: resolution failure, delivery success, delivery failure
and unexpected errors alike. Nothing in the relay is mutated while a request
runs; concurrent requests share only the immutable settings and rule table.

Example:
    Running the relay outside the HTTP layer::

        relay = AlertRelay(load_settings())
        plan, outcome = await relay.handle_alert(
            AlertRequest(file_name="Alerta PRL 2024.pdf", upload=upload)
        )
"""

from __future__ import annotations

from .config_loader import RelaySettings
from .dispatcher import dispatch, send_probe
from .exceptions import NoRecipientsMatched
from .logger import get_logger
from .models import AlertRequest, DeliveryOutcome, DeliveryPlan, RecipientRule, SenderIdentity
from .prometheus import RelayMetrics
from .resolver import resolve
from .smtp_transport import SMTPTransport
from .storage import UploadStore


class AlertRelay:
    """Coordinates resolution, delivery and cleanup for alert uploads.

    Attributes:
        settings: Immutable process configuration.
        transport: Outbound SMTP transport (anything with ``async send(message)``).
        store: Transient upload storage.
        metrics: Prometheus counters.
        logger: Logger instance for diagnostic output.
    """

    def __init__(
        self,
        settings: RelaySettings,
        transport=None,
        store: UploadStore | None = None,
        metrics: RelayMetrics | None = None,
        logger=None,
    ):
        self.settings = settings
        self.transport = transport or SMTPTransport(settings.smtp)
        self.store = store or UploadStore(settings.upload_dir)
        self.metrics = metrics or RelayMetrics()
        self.logger = logger or get_logger("AlertRelay")

    @property
    def rules(self) -> tuple[RecipientRule, ...]:
        return self.settings.rules

    @property
    def sender(self) -> SenderIdentity:
        return self.settings.sender

    async def handle_alert(self, request: AlertRequest) -> tuple[DeliveryPlan, DeliveryOutcome]:
        """Store, resolve and deliver one alert upload.

        Args:
            request: The validated inbound alert.

        Returns:
            The resolved plan and the delivery outcome.

        Raises:
            NoRecipientsMatched: No usable recipients override and no rule
                matched the file name. Nothing is sent.
        """
        async with self.store.hold(request.upload, request.file_name) as stored:
            file_name = stored.name
            try:
                plan = resolve(
                    file_name,
                    request.subject_override,
                    request.body_override,
                    request.recipients_override,
                    self.rules,
                )
            except NoRecipientsMatched:
                self.metrics.inc_rejected("no_recipients")
                self.logger.warning("No recipients for '%s': no rule matched and none provided", file_name)
                raise

            if plan.matched_token is None:
                self.logger.info("Alert '%s' addressed by request to %d recipients", file_name, len(plan.recipients))
            else:
                self.logger.info("Alert '%s' matched rule '%s'", file_name, plan.matched_token)

            outcome = await dispatch(plan, await stored.read_bytes(), self.sender, self.transport)

        if outcome.sent:
            self.metrics.inc_sent("alert")
        else:
            self.metrics.inc_error("alert")
        return plan, outcome

    async def send_probe(self) -> DeliveryOutcome:
        """Send the diagnostic message to the operator's own SMTP account."""
        recipient = self.settings.smtp.user or self.sender.address
        outcome = await send_probe(self.sender, recipient, self.transport)
        if outcome.sent:
            self.metrics.inc_sent("probe")
        else:
            self.metrics.inc_error("probe")
        return outcome

    async def verify_smtp(self) -> bool:
        """Check relay connectivity; returns False when the transport cannot verify."""
        verify = getattr(self.transport, "verify", None)
        if verify is None:
            return False
        return await verify()
