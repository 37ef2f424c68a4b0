"""Structured JSON logging with trace correlation."""
import logging
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger
from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource

from config import (
    DEPLOYMENT_ENVIRONMENT,
    LOG_LEVEL,
    OTEL_EXPORTER_OTLP_ENDPOINT,
    SERVICE_NAME,
)

# Loggers that drown out checkout events at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "pyroscope")


class StorefrontJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record, tagged with service and trace ids."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        ctx = trace.get_current_span().get_span_context()
        if ctx.is_valid:
            log_record['trace_id'] = format(ctx.trace_id, '032x')
            log_record['span_id'] = format(ctx.span_id, '016x')

        log_record['service'] = SERVICE_NAME
        log_record['environment'] = DEPLOYMENT_ENVIRONMENT

        if 'message' in log_record:
            log_record['msg'] = log_record.pop('message')


def _otlp_handler(level: int) -> Optional[logging.Handler]:
    """Handler shipping records to the collector, or None when export is off."""
    if not OTEL_EXPORTER_OTLP_ENDPOINT:
        return None

    logger_provider = LoggerProvider(resource=Resource.create({
        "service.name": SERVICE_NAME,
        "deployment.environment": DEPLOYMENT_ENVIRONMENT
    }))
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        ))
    )
    set_logger_provider(logger_provider)
    return LoggingHandler(level=level, logger_provider=logger_provider)


def setup_logging(level: Optional[int] = None):
    """
    Configure the root logger: JSON to stdout, plus OTLP export when an
    endpoint is configured.

    Args:
        level: Log level; defaults to LOG_LEVEL from the environment
    """
    if level is None:
        level = logging.getLevelName(LOG_LEVEL.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StorefrontJsonFormatter(
        '%(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level'}
    ))
    root_logger.addHandler(console_handler)

    otlp_handler = _otlp_handler(level)
    if otlp_handler is not None:
        root_logger.addHandler(otlp_handler)
        logging.info("OTLP log export enabled", extra={
            "endpoint": OTEL_EXPORTER_OTLP_ENDPOINT
        })

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
