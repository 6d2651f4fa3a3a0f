"""Prometheus counters for reminder scheduling and dispatch.

Metrics exported:
- reminders_sent_total{type, tenant_id, status}: send attempts (success/error)
- reminders_skipped_total{reason}: deliveries absorbed without sending
- reminders_scheduled_total{tenant_id, status}: enqueue attempts (queued/duplicate)

Sends are counted inside Celery's prefork children. With
``PROMETHEUS_MULTIPROC_DIR`` set, every process writes its samples there and
``export_registry`` aggregates them, so the worker's metrics server (and the
API's ``/metrics``, when it shares the directory) report all processes.
"""

from __future__ import annotations

import os

from prometheus_client import REGISTRY, CollectorRegistry, Counter, multiprocess


class ReminderMetrics:
    """Counter bundle bound to one registry, so tests can use a private one."""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.sent = Counter(
            "reminders_sent_total",
            "Total reminder send attempts by outcome",
            labelnames=["type", "tenant_id", "status"],
            registry=registry,
        )
        self.skipped = Counter(
            "reminders_skipped_total",
            "Total reminder deliveries skipped without sending",
            labelnames=["reason"],
            registry=registry,
        )
        self.scheduled = Counter(
            "reminders_scheduled_total",
            "Total reminder enqueue attempts",
            labelnames=["tenant_id", "status"],
            registry=registry,
        )

    def record_sent(self, reminder_type: str, tenant_id: str, status: str) -> None:
        self.sent.labels(type=reminder_type, tenant_id=tenant_id, status=status).inc()

    def record_skipped(self, reason: str) -> None:
        self.skipped.labels(reason=reason).inc()

    def record_scheduled(self, tenant_id: str, status: str) -> None:
        self.scheduled.labels(tenant_id=tenant_id, status=status).inc()


_default: ReminderMetrics | None = None


def get_metrics() -> ReminderMetrics:
    """Process-wide metrics on the default registry (created once)."""
    global _default
    if _default is None:
        _default = ReminderMetrics()
    return _default


def export_registry() -> CollectorRegistry:
    """Registry to scrape: the multiprocess aggregate when enabled."""
    if not os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        return REGISTRY
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    return registry


def mark_process_dead(pid: int) -> None:
    """Drop live gauges of an exited worker child (counters are kept)."""
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        multiprocess.mark_process_dead(pid)
