import pytest

from alert_relay.config_loader import (
    DEFAULT_MATCH_TOKENS,
    DEFAULT_RECIPIENT,
    default_rules,
    load_settings,
    parse_bool,
)
from alert_relay.exceptions import ConfigurationError


def write_config(tmp_path, text):
    path = tmp_path / "config.ini"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_file_or_environment(tmp_path):
    settings = load_settings(tmp_path / "missing.ini", environ={})

    assert settings.http_port == 3000
    assert settings.http_host == "0.0.0.0"
    assert settings.smtp.host is None
    assert settings.smtp.port == 587
    assert settings.smtp.secure is False
    assert settings.smtp.timeout == 20.0
    assert settings.api_key == ""
    assert settings.service_name == "webhook-alertas"
    assert settings.from_name == "Automatizacion TSI"
    assert settings.upload_dir == "uploads"
    assert settings.rules == default_rules()
    assert [rule.match_token for rule in settings.rules] == list(DEFAULT_MATCH_TOKENS)
    assert all(rule.addresses == (DEFAULT_RECIPIENT,) for rule in settings.rules)


def test_environment_values(tmp_path):
    env = {
        "SMTP_HOST": "smtp.example.com",
        "SMTP_PORT": "465",
        "SMTP_SECURE": "TRUE",
        "SMTP_USER": "bot@example.com",
        "SMTP_PASS": "pw",
        "API_KEY": "  secret  ",
        "PORT": "8080",
        "FROM_NAME": "Alerts",
        "LOG_LEVEL": "debug",
        "RELAY_DEFAULT_RECIPIENT": "team@example.com",
    }
    settings = load_settings(tmp_path / "missing.ini", environ=env)

    assert settings.smtp.host == "smtp.example.com"
    assert settings.smtp.port == 465
    assert settings.smtp.secure is True
    assert settings.smtp.user == "bot@example.com"
    assert settings.smtp.password == "pw"
    assert settings.api_key == "secret"
    assert settings.http_port == 8080
    assert settings.log_level == "DEBUG"
    assert settings.rules[0].addresses == ("team@example.com",)


def test_sender_address_falls_back_to_smtp_user(tmp_path):
    settings = load_settings(tmp_path / "missing.ini", environ={"SMTP_USER": "bot@example.com"})
    assert settings.sender.address == "bot@example.com"
    assert settings.sender.name == "Automatizacion TSI"

    settings = load_settings(
        tmp_path / "missing.ini",
        environ={"SMTP_USER": "bot@example.com", "FROM_EMAIL": "alerts@example.com"},
    )
    assert settings.sender.address == "alerts@example.com"


def test_file_takes_precedence_over_environment(tmp_path):
    path = write_config(
        tmp_path,
        """
[smtp]
host = smtp.file.example.com
port = 2525

[server]
api_key = from-file
""",
    )
    settings = load_settings(path, environ={"SMTP_HOST": "smtp.env.example.com", "API_KEY": "from-env"})

    assert settings.smtp.host == "smtp.file.example.com"
    assert settings.smtp.port == 2525
    assert settings.api_key == "from-file"


def test_recipients_section_keeps_case_and_order(tmp_path):
    path = write_config(
        tmp_path,
        """
[recipients]
Zeta Report = z@example.com
Alerta PRL = prl@example.com; safety@example.com, boss@example.com
DBC IMAGENKLIN AlertaPrl = 100%@example.com
""",
    )
    settings = load_settings(path, environ={})

    assert [rule.match_token for rule in settings.rules] == [
        "Zeta Report",
        "Alerta PRL",
        "DBC IMAGENKLIN AlertaPrl",
    ]
    assert settings.rules[1].addresses == ("prl@example.com", "safety@example.com", "boss@example.com")
    assert settings.rules[2].addresses == ("100%@example.com",)


def test_empty_recipients_section_gives_empty_rule_table(tmp_path):
    path = write_config(tmp_path, "[recipients]\n")
    assert load_settings(path, environ={}).rules == ()


def test_config_path_from_environment(tmp_path):
    path = write_config(tmp_path, "[server]\nport = 9000\n")
    settings = load_settings(environ={"RELAY_CONFIG": str(path)})
    assert settings.http_port == 9000


def test_rule_without_addresses_is_rejected(tmp_path):
    path = write_config(tmp_path, "[recipients]\nAlerta PRL = ;,\n")
    with pytest.raises(ConfigurationError, match="Alerta PRL"):
        load_settings(path, environ={})


def test_invalid_port_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError, match="port"):
        load_settings(tmp_path / "missing.ini", environ={"SMTP_PORT": "smtp"})


def test_invalid_boolean_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "missing.ini", environ={"SMTP_SECURE": "maybe"})


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, False), ("true", True), ("On", True), ("1", True), ("false", False), ("0", False), ("", False)],
)
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected


def test_settings_repr_hides_secrets(tmp_path):
    settings = load_settings(tmp_path / "missing.ini", environ={"API_KEY": "topsecret", "SMTP_PASS": "hunter2"})
    assert "topsecret" not in repr(settings)
    assert "hunter2" not in repr(settings)
