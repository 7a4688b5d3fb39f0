from __future__ import annotations

from pylivemap._redact import redact_for_log
from pylivemap.config import LiveMapConfig, MqttSettings


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "accept": "application/json",
        "authorization": "Bearer abc.def",
        "Cookie": "session=1",
        "mqtt": {"host": "broker", "password": "pw"},
        "items": [{"token": "t"}],
    }

    redacted = redact_for_log(payload)
    assert redacted["accept"] == "application/json"
    assert redacted["authorization"] == "<redacted>"
    assert redacted["Cookie"] == "<redacted>"
    assert redacted["mqtt"] == {"host": "broker", "password": "<redacted>"}
    assert redacted["items"] == [{"token": "<redacted>"}]


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_summarizes_bytes() -> None:
    assert redact_for_log(b"\x00\x01\x02") == "<bytes:3b>"


def test_redact_for_log_masks_bearer_fragments_in_strings() -> None:
    message = "DELETE /api/v1/region/x failed with header Bearer eyJhbGciOi.payload.sig"
    assert redact_for_log(message) == "DELETE /api/v1/region/x failed with header Bearer <redacted>"


def test_redact_for_log_expands_config_dataclasses() -> None:
    config = LiveMapConfig(access_token="tok", mqtt=MqttSettings(username="u", password="pw"))

    redacted = redact_for_log(config)

    assert redacted["access_token"] == "<redacted>"
    assert redacted["mqtt"]["password"] == "<redacted>"
    assert redacted["mqtt"]["username"] == "u"
    assert redacted["base_url"] == config.base_url
