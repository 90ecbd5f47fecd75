import pytest

from alert_relay.config_loader import RelaySettings, SmtpSettings
from alert_relay.core import AlertRelay
from alert_relay.models import RecipientRule
from alert_relay.storage import UploadStore


class FakeTransport:
    """Records messages instead of talking to an SMTP server."""

    def __init__(self, exc=None, refused=None, verified=True):
        self.exc = exc
        self.refused = refused or {}
        self.verified = verified
        self.messages = []

    async def send(self, message):
        self.messages.append(message)
        if self.exc is not None:
            raise self.exc
        return dict(self.refused)

    async def verify(self):
        return self.verified


class CountingStore(UploadStore):
    """UploadStore that counts saves and releases."""

    def __init__(self, upload_dir):
        super().__init__(upload_dir)
        self.saved = []
        self.releases = 0

    async def save(self, upload, original_name=""):
        handle = await super().save(upload, original_name)
        self.saved.append(handle)
        return handle

    async def release(self, handle):
        self.releases += 1
        await super().release(handle)


class FakeUpload:
    """Minimal stand-in for a decoded multipart file."""

    def __init__(self, data: bytes, filename: str = "report.pdf"):
        self._data = data
        self._pos = 0
        self.filename = filename

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._pos
        chunk = self._data[self._pos:self._pos + size]
        self._pos += len(chunk)
        return chunk


RULES = (
    RecipientRule(match_token="Alerta PRL", addresses=("ops@example.com",)),
    RecipientRule(match_token="DBC ANEXOS MANTTO AlertaPrl", addresses=("maint@example.com", "boss@example.com")),
)


@pytest.fixture
def settings(tmp_path):
    return RelaySettings(
        smtp=SmtpSettings(host="smtp.local", port=587, user="bot@example.com", password="pw"),
        api_key="secret-key",
        service_name="webhook-alertas",
        from_name="Automatizacion TSI",
        from_email="alerts@example.com",
        upload_dir=str(tmp_path / "uploads"),
        rules=RULES,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def store(settings):
    return CountingStore(settings.upload_dir)


@pytest.fixture
def relay(settings, transport, store):
    return AlertRelay(settings, transport=transport, store=store)
