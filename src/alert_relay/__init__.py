"""Webhook-to-email relay for alert reports.

This package receives a single uploaded file over HTTP, works out who should
get it and forwards it as an email attachment through an SMTP relay:

- Recipient resolution from the file name or explicit request fields
- One-shot SMTP delivery with bounded timeouts
- Scoped temporary storage, removed on every exit path
- FastAPI endpoints for alerts, liveness and a mail probe
- Prometheus counters and a small command-line interface

Example:
    Building and serving the application::

        from alert_relay.api import create_app
        from alert_relay.config_loader import load_settings
        from alert_relay.core import AlertRelay

        relay = AlertRelay(load_settings())
        app = create_app(relay)
"""

__version__ = "1.0.0"
