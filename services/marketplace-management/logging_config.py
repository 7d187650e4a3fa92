"""Structured logging configuration."""
import logging
import sys
from typing import Optional

from opentelemetry import trace
from pythonjsonlogger import jsonlogger

from config import LOG_LEVEL, OTEL_ENABLED, OTEL_EXPORTER_OTLP_ENDPOINT, SERVICE_NAME
from monitoring import service_resource

# Note: OpenTelemetry logging SDK is experimental
try:
    from opentelemetry._logs import set_logger_provider
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
    from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
    from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
    OTLP_LOGGING_AVAILABLE = True
except ImportError:
    OTLP_LOGGING_AVAILABLE = False

NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps every record with the service and active span."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            log_record['trace_id'] = format(span_context.trace_id, '032x')
            log_record['span_id'] = format(span_context.span_id, '016x')

        log_record['service'] = SERVICE_NAME

        if 'message' in log_record:
            log_record['msg'] = log_record.pop('message')


def otlp_log_handler(level: int) -> Optional[logging.Handler]:
    """Handler exporting records to the collector, or None if the SDK is missing."""
    if not OTLP_LOGGING_AVAILABLE:
        return None

    logger_provider = LoggerProvider(resource=service_resource())
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True))
    )
    set_logger_provider(logger_provider)
    return LoggingHandler(level=level, logger_provider=logger_provider)


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure structured logging for the application."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(CustomJsonFormatter(
        '%(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level'}
    ))
    root_logger.addHandler(console_handler)

    if OTEL_ENABLED:
        try:
            handler = otlp_log_handler(root_logger.level)
        except Exception as e:
            logging.warning("Failed to configure OTLP logging handler", extra={"error": str(e)})
        else:
            if handler is None:
                logging.warning("OTLP logging SDK not available - logs will only go to stdout")
            else:
                root_logger.addHandler(handler)
                logging.info("OTLP logging handler configured")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
