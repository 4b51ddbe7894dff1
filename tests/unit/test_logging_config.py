from __future__ import annotations

import json
import logging

import pytest
import structlog

from visium.config import Settings
from visium.logging_config import configure_logging, get_log_level

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


def test_get_log_level_maps_setting():
    assert get_log_level(Settings(log_level="DEBUG")) == logging.DEBUG
    assert get_log_level(Settings(log_level="ERROR")) == logging.ERROR


def test_json_format_emits_one_json_object_per_event(capsys):
    configure_logging(Settings(log_level="INFO", log_format="json"))

    structlog.get_logger().info("Ingestion committed", objectives=2)

    line = capsys.readouterr().out.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["event"] == "Ingestion committed"
    assert payload["objectives"] == 2
    assert payload["level"] == "info"
    assert "timestamp" in payload


def test_events_below_configured_level_are_filtered(capsys):
    configure_logging(Settings(log_level="WARNING", log_format="json"))

    structlog.get_logger().info("Ingestion started")

    assert capsys.readouterr().out == ""
