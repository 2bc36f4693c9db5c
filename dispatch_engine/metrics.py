from fastapi import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry

# Dedicated registry so the exposed metrics are only the ones defined here.
APP_REGISTRY = CollectorRegistry()

SMS_DISPATCH_REQUESTS_TOTAL = Counter(
    'sms_dispatch_requests_total',
    'Total number of dispatch requests received.',
    registry=APP_REGISTRY
)
SMS_DISPATCH_REJECTED_TOTAL = Counter(
    'sms_dispatch_rejected_total',
    'Total number of dispatch requests rejected by validation.',
    registry=APP_REGISTRY
)
SMS_DISPATCH_FINAL_STATUS_TOTAL = Counter(
    'sms_dispatch_final_status_total',
    'Dispatch outcomes by final status and whether fallback was used.',
    ['status', 'fallback_used'],
    registry=APP_REGISTRY
)
SMS_PROVIDER_SEND_ATTEMPTS_TOTAL = Counter(
    'sms_provider_send_attempts_total',
    'Provider send attempts by gateway and outcome.',
    ['gateway', 'outcome'],
    registry=APP_REGISTRY
)
SMS_PROVIDER_SEND_LATENCY_SECONDS = Histogram(
    'sms_provider_send_latency_seconds',
    'Latency of a single provider send attempt in seconds.',
    ['gateway'],
    registry=APP_REGISTRY
)
SMS_PROVIDER_FAILOVERS_TOTAL = Counter(
    'sms_provider_failovers_total',
    'Number of times dispatch moved from the primary to the fallback gateway.',
    ['from_gateway', 'to_gateway'],
    registry=APP_REGISTRY
)
SMS_BULKGATE_PROTOCOL_FALLBACKS_TOTAL = Counter(
    'sms_bulkgate_protocol_fallbacks_total',
    'Number of BulkGate sends retried on the legacy protocol after a v2 rejection.',
    ['status_code'],
    registry=APP_REGISTRY
)
SMS_COLLABORATOR_FAILURES_TOTAL = Counter(
    'sms_collaborator_failures_total',
    'Failures of the attempt logger or credit ledger after a dispatch.',
    ['collaborator'],
    registry=APP_REGISTRY
)


def metrics_content() -> Response:
    """Returns the metrics in the Prometheus text exposition format."""
    return Response(content=generate_latest(APP_REGISTRY), media_type=CONTENT_TYPE_LATEST)
