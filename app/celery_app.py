"""Celery application instance shared across the backend.

Start a worker with:
    celery -A app.celery_app worker -Q reminder -l info --concurrency=2

Export its metrics with PROMETHEUS_MULTIPROC_DIR=<empty dir> and
WORKER_METRICS_PORT=<port> in the environment.
"""

import logging
import os

from celery import Celery
from celery.signals import setup_logging, worker_init, worker_process_shutdown
from prometheus_client import start_http_server

from app.metrics import export_registry, mark_process_dead
from app.utils.logging import configure_logging
from config import settings

_LOGGER = logging.getLogger(__name__)

BROKER_URL = settings.REDIS_URL

celery_app = Celery("patient_outreach", broker=BROKER_URL, backend=BROKER_URL)

# Global task settings
# Redeliver on crash: ack only after the handler returns.
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.task_default_retry_delay = settings.REMINDER_RETRY_DELAY_SECONDS
celery_app.conf.worker_prefetch_multiplier = 1
# Countdown tasks sit unacked on the worker; Redis redelivers them after this window.
celery_app.conf.broker_transport_options = {
    "visibility_timeout": settings.BROKER_VISIBILITY_TIMEOUT_SECONDS,
}

celery_app.conf.task_routes = {
    "app.workers.reminder.send": {"queue": "reminder"},
}


@setup_logging.connect
def _configure_worker_logging(**kwargs):  # noqa: ARG001
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT, settings.SERVICE_NAME)


@worker_init.connect
def start_worker_metrics_server(**kwargs):  # noqa: ARG001
    """Serve /metrics from the worker's main process.

    Sends are counted in prefork children; their samples only reach this
    server through ``PROMETHEUS_MULTIPROC_DIR``.
    """
    port = settings.WORKER_METRICS_PORT
    if port is None:
        return
    if not os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        _LOGGER.warning("PROMETHEUS_MULTIPROC_DIR not set; child process metrics will be missing")
    start_http_server(port, registry=export_registry())
    _LOGGER.info("Worker metrics server started", extra={"port": port})


@worker_process_shutdown.connect
def _forget_child_metrics(pid=None, **kwargs):  # noqa: ARG001
    mark_process_dead(pid or os.getpid())


# --- Ensure tasks are registered ---
import app.workers.reminder
