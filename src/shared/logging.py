import logging
import sys

from opentelemetry._logs import set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, ConsoleLogRecordExporter

from .config import settings


def setup_logging(level: str | None = None) -> None:
    """Route standard logging through an OpenTelemetry logger provider.

    Records are exported to the console; a plain stream handler is kept for
    immediate output while the batch processor is still buffering.
    """
    level = level or settings.LOG_LEVEL

    logger_provider = LoggerProvider()
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(ConsoleLogRecordExporter()))
    set_logger_provider(logger_provider)

    handler = LoggingHandler(level=getattr(logging, level), logger_provider=logger_provider)

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root.addHandler(stream_handler)


