"""Prometheus metrics for the notification engine.

Usage:
    from notification_service.features.notifications.metrics import (
        notification_channel_sends_total,
    )

    notification_channel_sends_total.labels(channel="email", status="failed").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Notification Lifecycle Metrics
# =============================================================================

notification_created_total = Counter(
    "notification_created_total",
    "Total number of notifications created",
    labelnames=["status"],
)
"""
Labels:
    status: Initial status (pending or scheduled)
"""

notification_dispatch_cycles_total = Counter(
    "notification_dispatch_cycles_total",
    "Total number of dispatch cycles by outcome",
    labelnames=["outcome"],
)
"""
Labels:
    outcome: delivered, failed, render_error
"""

# =============================================================================
# Channel Metrics
# =============================================================================

notification_channel_sends_total = Counter(
    "notification_channel_sends_total",
    "Total (recipient, channel) sends by channel and result",
    labelnames=["channel", "status"],
)
"""
Labels:
    channel: Delivery channel
    status: success or failed
"""

notification_send_duration_seconds = Histogram(
    "notification_send_duration_seconds",
    "Channel send duration in seconds",
    labelnames=["channel"],
    buckets=[0.005, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
"""
Buckets span in-app materialization (milliseconds) up to external
gateways that hit the send timeout.
"""

notification_channel_suppressed_total = Counter(
    "notification_channel_suppressed_total",
    "Channels removed from a dispatch by routing or preferences",
    labelnames=["channel", "reason"],
)
"""
Labels:
    channel: Suppressed channel
    reason: disabled, quiet_hours, preference
"""

notification_channel_fallback_total = Counter(
    "notification_channel_fallback_total",
    "Quiet-hour fallbacks taken by the route resolver",
    labelnames=["from_channel", "to_channel"],
)

# =============================================================================
# Template and Inbox Metrics
# =============================================================================

notification_template_versions_total = Counter(
    "notification_template_versions_total",
    "Total number of template versions appended",
)

notification_inbox_entries_total = Counter(
    "notification_inbox_entries_total",
    "Total number of inbox entries materialized",
    labelnames=["severity"],
)


__all__ = [
    "notification_channel_fallback_total",
    "notification_channel_sends_total",
    "notification_channel_suppressed_total",
    "notification_created_total",
    "notification_dispatch_cycles_total",
    "notification_inbox_entries_total",
    "notification_send_duration_seconds",
    "notification_template_versions_total",
]
