"""
Prometheus Metrics for the Contact Relay

Exposes metrics for:
- Submission outcomes (accepted, rejected by reason, redirected)
- Rate limiter blocks
- Mail delivery results and latency
"""

from prometheus_client import (
    Counter, Histogram,
    CollectorRegistry, generate_latest,
    CONTENT_TYPE_LATEST
)

# Registry for contact relay metrics
REGISTRY = CollectorRegistry()

# ============================================================================
# Submission Metrics
# ============================================================================

SUBMISSIONS_TOTAL = Counter(
    'contact_relay_submissions_total',
    'Submissions handled by the pipeline, by outcome',
    ['outcome'],  # 'accepted', 'redirected' or a rejection reason
    registry=REGISTRY
)

RATE_LIMIT_BLOCKS_TOTAL = Counter(
    'contact_relay_rate_limit_blocks_total',
    'Write requests refused by the rate limiter',
    registry=REGISTRY
)

# ============================================================================
# Delivery Metrics
# ============================================================================

DELIVERIES_TOTAL = Counter(
    'contact_relay_deliveries_total',
    'Mail hand-offs to the delivery collaborator, by result',
    ['result'],  # 'sent' or 'failed'
    registry=REGISTRY
)

DELIVERY_LATENCY = Histogram(
    'contact_relay_delivery_latency_seconds',
    'Time spent handing a message to the mail transport',
    registry=REGISTRY
)


def get_metrics_text() -> str:
    """Return metrics in Prometheus text format."""
    return generate_latest(REGISTRY).decode('utf-8')


def get_metrics_content_type() -> str:
    """Return the Prometheus exposition content type."""
    return CONTENT_TYPE_LATEST
