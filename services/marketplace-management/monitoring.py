"""Monitoring and observability setup.

Instruments are created from the global OpenTelemetry API at import time.
Until ``init_telemetry`` installs the SDK providers they are no-op proxies,
so tests and local runs import every module without a collector.
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
    API_VERSION, METRICS_EXPORT_INTERVAL_MS, OTEL_EXPORTER_OTLP_ENDPOINT, PYROSCOPE_SERVER,
    SERVICE_NAME,
)

logger = logging.getLogger(__name__)


def service_resource() -> Resource:
    """Resource attributes shared by traces, metrics and logs."""
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": API_VERSION,
    })


def init_telemetry() -> None:
    """
    Install OTLP tracing and metrics providers.

    Must run before the app is instrumented; the module-level instruments
    below start exporting as soon as the meter provider is set.
    """
    resource = service_resource()

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True))
    )
    trace.set_tracer_provider(tracer_provider)

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True),
        export_interval_millis=METRICS_EXPORT_INTERVAL_MS
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))

    logger.info("Telemetry initialized", extra={"otlp_endpoint": OTEL_EXPORTER_OTLP_ENDPOINT})


def init_profiling() -> None:
    """Start continuous profiling with Pyroscope."""
    try:
        pyroscope.configure(
            application_name=SERVICE_NAME,
            server_address=PYROSCOPE_SERVER,
            tags={"service": SERVICE_NAME, "version": API_VERSION}
        )
        logger.info("Profiling initialized", extra={"pyroscope_server": PYROSCOPE_SERVER})
    except Exception as e:
        logger.warning("Failed to initialize profiling", extra={"error": str(e)})


meter = metrics.get_meter(SERVICE_NAME)

# Cart metrics
cart_mutations_counter = meter.create_counter(
    "marketplace.cart.mutations",
    description="Cart mutations by action",
    unit="1"
)

# Checkout metrics
checkout_counter = meter.create_counter(
    "marketplace.checkouts",
    description="Checkout attempts by outcome",
    unit="1"
)

checkout_amount_histogram = meter.create_histogram(
    "marketplace.checkout.amount",
    description="Order total (valor_total) of successful checkouts",
    unit="BRL"
)

checkout_step_failures_counter = meter.create_counter(
    "marketplace.checkout.step_failures",
    description="Checkout saga steps that failed, by step and criticality",
    unit="1"
)

checkout_compensations_counter = meter.create_counter(
    "marketplace.checkout.compensations",
    description="Compensating actions run after a failed checkout",
    unit="1"
)

# Loyalty metrics
points_granted_counter = meter.create_counter(
    "marketplace.points.granted",
    description="Reward points credited at checkout",
    unit="1"
)

# Security monitoring metrics
auth_failures_counter = meter.create_counter(
    "marketplace.auth.failures",
    description="Total number of authentication failures",
    unit="1"
)

rate_limit_exceeded_counter = meter.create_counter(
    "marketplace.rate_limit.exceeded",
    description="Total number of rate limit violations",
    unit="1"
)
