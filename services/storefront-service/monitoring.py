"""Monitoring and observability setup.

Traces and metrics are exported over OTLP when ``OTEL_EXPORTER_OTLP_ENDPOINT``
is set. With an empty endpoint the global no-op providers stay in place, so
instruments below can be used unconditionally (local runs and tests).

Exemplars are attached automatically to histogram data points recorded inside
an active span, so a spike in ``storefront.orders.amount`` links to the
checkout traces that produced it.
"""
import logging
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
import pyroscope

from config import (
    DEPLOYMENT_ENVIRONMENT,
    OTEL_EXPORTER_OTLP_ENDPOINT,
    PYROSCOPE_SERVER,
    SERVICE_NAME,
)

logger = logging.getLogger(__name__)


def init_tracing() -> trace.Tracer:
    """
    Initialize OpenTelemetry tracing.

    Returns:
        Tracer instance
    """
    if OTEL_EXPORTER_OTLP_ENDPOINT:
        resource = Resource.create({
            "service.name": SERVICE_NAME,
            "deployment.environment": DEPLOYMENT_ENVIRONMENT
        })

        tracer_provider = TracerProvider(resource=resource)
        otlp_span_exporter = OTLPSpanExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
        trace.set_tracer_provider(tracer_provider)

        logger.info(f"Tracing initialized with endpoint: {OTEL_EXPORTER_OTLP_ENDPOINT}")
    else:
        logger.info("Tracing exporter disabled")

    return trace.get_tracer(__name__)


def init_metrics() -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Returns:
        Meter instance
    """
    if OTEL_EXPORTER_OTLP_ENDPOINT:
        resource = Resource.create({
            "service.name": SERVICE_NAME,
            "deployment.environment": DEPLOYMENT_ENVIRONMENT
        })

        otlp_metric_exporter = OTLPMetricExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        otlp_metric_reader = PeriodicExportingMetricReader(
            otlp_metric_exporter,
            export_interval_millis=5000
        )

        meter_provider = MeterProvider(
            resource=resource,
            metric_readers=[otlp_metric_reader]
        )
        metrics.set_meter_provider(meter_provider)

        logger.info("Metrics initialized with OTLP exporter")
    else:
        logger.info("Metrics exporter disabled")

    return metrics.get_meter(__name__)


def init_profiling() -> None:
    """Initialize Pyroscope profiling."""
    if not PYROSCOPE_SERVER:
        return
    try:
        pyroscope.configure(
            application_name=SERVICE_NAME,
            server_address=PYROSCOPE_SERVER,
            tags={"env": DEPLOYMENT_ENVIRONMENT}
        )
        logger.info(f"Profiling initialized with server: {PYROSCOPE_SERVER}")
    except Exception as e:
        logger.warning(f"Failed to initialize profiling: {e}")


# Initialize tracer and meter
tracer = init_tracing()
meter = init_metrics()

# Business metrics using OpenTelemetry

# Cart metrics
cart_additions_counter = meter.create_counter(
    "storefront.cart.additions",
    description="Total number of add-to-cart operations",
    unit="1"
)

# Order placement metrics
orders_placed_counter = meter.create_counter(
    "storefront.orders.placed",
    description="Total number of orders created from carts",
    unit="1"
)

order_amount_histogram = meter.create_histogram(
    "storefront.orders.amount",
    description="Order total amount",
    unit="CNY"
)

checkout_rejections_counter = meter.create_counter(
    "storefront.checkout.rejections",
    description="Checkout attempts rejected before or during the order transaction",
    unit="1"
)

# Order lifecycle metrics
payments_counter = meter.create_counter(
    "storefront.payments",
    description="Simulated payment attempts by outcome",
    unit="1"
)

order_status_transitions_counter = meter.create_counter(
    "storefront.orders.status_transitions",
    description="Order status transitions applied",
    unit="1"
)

# Inventory metrics
stock_adjustments_counter = meter.create_counter(
    "storefront.inventory.adjustments",
    description="Administrative absolute stock edits",
    unit="1"
)

# Security monitoring metrics
auth_failures_counter = meter.create_counter(
    "storefront.auth.failures",
    description="Total number of authentication failures",
    unit="1"
)

auth_attempts_counter = meter.create_counter(
    "storefront.auth.attempts",
    description="Total number of authentication attempts",
    unit="1"
)
