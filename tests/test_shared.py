"""Tests for shared configuration and telemetry setup."""

import logging
from unittest.mock import patch

from shared.config import Settings
from shared.logging import setup_logging
from shared.metrics import setup_metrics
from shared.tracing import setup_tracing


def test_settings_defaults(monkeypatch):
    """Test default configuration values."""
    monkeypatch.delenv("CAPATH", raising=False)
    monkeypatch.delenv("BOOTSTRAP_CA_COMMON_NAME", raising=False)

    settings = Settings(_env_file=None)

    assert settings.CAPATH == "."
    assert settings.DEFAULT_KEY_SIZE == 2048
    assert settings.DEFAULT_VALIDITY_DAYS == 397
    assert settings.MAX_VALIDITY_DAYS == 825
    assert settings.BOOTSTRAP_CA_COMMON_NAME is None


def test_settings_from_environment(monkeypatch, tmp_path):
    """Test that environment variables override defaults."""
    monkeypatch.setenv("CAPATH", str(tmp_path))
    monkeypatch.setenv("DEFAULT_KEY_SIZE", "4096")
    monkeypatch.setenv("BOOTSTRAP_CA_COMMON_NAME", "root.test")

    settings = Settings(_env_file=None)

    assert settings.CAPATH == str(tmp_path)
    assert settings.DEFAULT_KEY_SIZE == 4096
    assert settings.BOOTSTRAP_CA_COMMON_NAME == "root.test"


def test_setup_logging():
    """Test that setup_logging configures OTel provider."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        with (
            patch("shared.logging.set_logger_provider") as mock_set_provider,
            patch("shared.logging.LoggerProvider") as mock_provider_cls,
            patch("shared.logging.LoggingHandler"),
            patch("shared.logging.BatchLogRecordProcessor"),
            patch("shared.logging.ConsoleLogRecordExporter"),
        ):
            setup_logging("DEBUG")

        mock_provider_cls.assert_called_once()
        mock_set_provider.assert_called_once()
        assert root.level == logging.DEBUG
    finally:
        root.handlers = handlers
        root.setLevel(level)


def test_setup_metrics():
    """Test that setup_metrics configures OTel meter provider."""
    with (
        patch("shared.metrics.MeterProvider") as mock_provider_cls,
        patch("shared.metrics.metrics.set_meter_provider") as mock_set_provider,
        patch("shared.metrics.PrometheusMetricReader"),
        patch("shared.metrics.PeriodicExportingMetricReader"),
        patch("shared.metrics.ConsoleMetricExporter"),
    ):
        setup_metrics("test-app")

    mock_provider_cls.assert_called_once()
    mock_set_provider.assert_called_once()


def test_setup_tracing():
    """Test that setup_tracing configures the tracer provider."""
    with (
        patch("shared.tracing.TracerProvider") as mock_provider_cls,
        patch("shared.tracing.trace.set_tracer_provider") as mock_set_provider,
        patch("shared.tracing.BatchSpanProcessor"),
        patch("shared.tracing.ConsoleSpanExporter"),
    ):
        setup_tracing("test-app")

    mock_provider_cls.assert_called_once()
    mock_provider_cls.return_value.add_span_processor.assert_called_once()
    mock_set_provider.assert_called_once()
