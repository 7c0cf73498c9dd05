"""
Prometheus metrics for automation scheduling, dispatch, delivery tracking and webhooks.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., messages dispatched)
    - Histogram: Observations bucketed by value (e.g., sweep duration)
    - Gauge: Point-in-time value that can go up or down (e.g., host unread total)

Example:
    >>> from guest_messaging.metrics import dispatch_total, sweep_duration
    >>> with sweep_duration.time():
    ...     result = run_sweep(context)
    >>> dispatch_total.labels(channel="whatsapp", status="sent").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Automation Metrics
# =============================================================================

scheduled_created = Counter(
    "guest_messaging_scheduled_created_total",
    "Scheduled messages created by rule evaluation",
    ["timing_type"],
)
"""
Counter for scheduled messages enqueued.

Labels:
    timing_type: Rule timing variant (on_create_delay, before_arrival, ...)
"""

scheduled_cancelled = Counter(
    "guest_messaging_scheduled_cancelled_total",
    "Pending scheduled messages cancelled",
    ["reason"],
)
"""
Counter for cancelled scheduled messages.

Labels:
    reason: Cancellation reason string
"""

evaluations_total = Counter(
    "guest_messaging_evaluations_total",
    "Automation evaluations per reservation",
    ["trigger"],
)
"""
Counter for rule evaluations.

Labels:
    trigger: created, updated, dates_changed, manual, backfill, enabled
"""

# =============================================================================
# Dispatch Metrics
# =============================================================================

sweep_total = Counter(
    "guest_messaging_sweeps_total",
    "Dispatch sweeps run",
)
"""Counter for dispatch sweep runs."""

sweep_duration = Histogram(
    "guest_messaging_sweep_duration_seconds",
    "Duration of one dispatch sweep in seconds",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, float("inf")),
)
"""Histogram for dispatch sweep duration."""

dispatch_total = Counter(
    "guest_messaging_dispatch_total",
    "Dispatch outcomes per channel",
    ["channel", "status"],
)
"""
Counter for dispatch outcomes.

Labels:
    channel: inapp, whatsapp, sms, email, ota
    status: sent or failed
"""

claim_conflicts = Counter(
    "guest_messaging_claim_conflicts_total",
    "Due rows another worker claimed first",
)
"""Counter for lost claim races (no dispatch performed)."""

claims_expired = Counter(
    "guest_messaging_claims_expired_total",
    "In-flight claims failed after exceeding the lease",
)
"""Counter for expired claims."""

# =============================================================================
# Delivery Metrics
# =============================================================================

delivery_transitions = Counter(
    "guest_messaging_delivery_transitions_total",
    "Delivery status transition attempts",
    ["status", "outcome"],
)
"""
Counter for delivery state transitions.

Labels:
    status: Target status (sent, delivered, read, failed)
    outcome: applied, or ignored when the state machine rejected it
"""

unread_total = Gauge(
    "guest_messaging_unread_total",
    "Unread messages across all threads",
    ["viewer"],
)
"""
Gauge for global unread counts, refreshed by the unread aggregator.

Labels:
    viewer: host or guest
"""

# =============================================================================
# Channel API Metrics
# =============================================================================

channel_requests = Counter(
    "guest_messaging_channel_requests_total",
    "Requests made to channel provider APIs",
    ["channel", "status_code"],
)
"""
Counter for provider API requests.

Labels:
    channel: Provider channel
    status_code: HTTP status code, or "error" when no response was received
"""

channel_latency = Histogram(
    "guest_messaging_channel_latency_seconds",
    "Channel provider API request latency in seconds",
    ["channel"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
"""Histogram for provider API request latency."""

# =============================================================================
# Webhook Metrics
# =============================================================================

webhook_events = Counter(
    "guest_messaging_webhook_events_total",
    "Inbound webhook events",
    ["event_type", "outcome"],
)
"""
Counter for inbound webhook events.

Labels:
    event_type: booking.created, message.received, ...
    outcome: processed, duplicate, rejected, failed
"""
