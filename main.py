import uvicorn

from alert_relay.config_loader import load_settings
from alert_relay.logger import configure_logging

if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    # The application itself is built by alert_relay.server from the same configuration
    uvicorn.run("alert_relay.server:app", host=settings.http_host, port=settings.http_port)
