"""Structured logging for the reminder service.

Call sites keep using ``logging.getLogger(__name__)`` and pass fields through
``extra=``. ``configure_logging`` installs a structlog ``ProcessorFormatter``
on the root logger so those records come out as JSON lines (production) or
colored console lines (local dev), each tagged with the service name.
"""

from __future__ import annotations

import logging
import sys

import structlog

_NOISE_LOGGERS = (
    "uvicorn.access",
    "kombu",
    "amqp",
)


def _add_service(service: str):
    def processor(logger, method_name, event_dict):  # noqa: ARG001
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def configure_logging(level: str = "INFO", fmt: str = "json", service: str | None = None) -> None:
    """Route every stdlib logger through structlog.

    ``fmt`` is ``"json"`` for machine-parseable lines or ``"text"`` for the
    console renderer.
    """
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]
    if service:
        pre_chain.append(_add_service(service))

    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=pre_chain,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    # Reconfiguration must not duplicate output
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
